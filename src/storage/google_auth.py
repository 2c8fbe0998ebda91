import logging
import os
from typing import Dict, Optional
from datetime import timezone

from cryptography.fernet import Fernet, InvalidToken
from google.oauth2.credentials import Credentials

from storage.db import get_pool

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar.events",
]


class GoogleAuthStore:
    """
    Encrypted storage for the Google Calendar OAuth tokens.

    With ``persistent=True`` rows live in the ``google_credentials`` table,
    otherwise in a process-local dict (tokens are encrypted either way).
    """

    def __init__(self, persistent: bool = True, key: Optional[str] = None):
        key = key or os.getenv("GOOGLE_TOKEN_ENCRYPTION_KEY")
        if not key:
            logger.warning(
                "GOOGLE_TOKEN_ENCRYPTION_KEY not set. Generating a temporary key."
            )
            key = Fernet.generate_key().decode()

        self.fernet = Fernet(key.encode() if isinstance(key, str) else key)
        self.persistent = persistent
        self._memory: Dict[str, dict] = {}

    def _encrypt(self, data: Optional[str]) -> Optional[str]:
        if not data:
            return None
        return self.fernet.encrypt(data.encode()).decode()

    def _decrypt(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        try:
            return self.fernet.decrypt(token.encode()).decode()
        except InvalidToken:
            logger.error("Failed to decrypt stored Google token")
            return None

    async def save_credentials(
        self, user_id: str, credentials: Credentials, email: Optional[str] = None
    ) -> None:
        access_token_enc = self._encrypt(credentials.token)
        refresh_token_enc = self._encrypt(credentials.refresh_token)

        if not self.persistent:
            previous = self._memory.get(user_id, {})
            self._memory[user_id] = {
                "access_token": access_token_enc,
                # Re-consent does not always return a refresh token; keep the old one
                "refresh_token": refresh_token_enc or previous.get("refresh_token"),
                "token_expiry": credentials.expiry,
                "email": email or previous.get("email"),
            }
            logger.info(f"Saved Google credentials for user {user_id} (in-memory)")
            return

        await get_pool().execute(
            """
            INSERT INTO google_credentials (user_id, access_token, refresh_token, token_expiry, email)
            VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT (user_id) DO UPDATE SET
                access_token = EXCLUDED.access_token,
                refresh_token = COALESCE(EXCLUDED.refresh_token, google_credentials.refresh_token),
                token_expiry = EXCLUDED.token_expiry,
                email = COALESCE(EXCLUDED.email, google_credentials.email),
                updated_at = NOW()
            """,
            user_id,
            access_token_enc,
            refresh_token_enc,
            credentials.expiry,
            email,
        )
        logger.info(f"Saved Google credentials for user {user_id}")

    async def _load_row(self, user_id: str) -> Optional[dict]:
        if not self.persistent:
            return self._memory.get(user_id)
        row = await get_pool().fetchrow(
            "SELECT access_token, refresh_token, token_expiry, email "
            "FROM google_credentials WHERE user_id = $1",
            user_id,
        )
        return dict(row) if row else None

    async def get_credentials(self, user_id: str) -> Optional[Credentials]:
        row = await self._load_row(user_id)
        if not row:
            return None

        access_token = self._decrypt(row["access_token"])
        if not access_token:
            return None

        # google-auth compares expiry against a naive UTC datetime
        expiry = row["token_expiry"]
        if expiry and expiry.tzinfo:
            expiry = expiry.astimezone(timezone.utc).replace(tzinfo=None)

        return Credentials(
            token=access_token,
            refresh_token=self._decrypt(row["refresh_token"]),
            token_uri=GOOGLE_TOKEN_URI,
            client_id=os.getenv("GOOGLE_CLIENT_ID"),
            client_secret=os.getenv("GOOGLE_CLIENT_SECRET"),
            scopes=CALENDAR_SCOPES,
            expiry=expiry,
        )

    async def get_email(self, user_id: str) -> Optional[str]:
        row = await self._load_row(user_id)
        return row["email"] if row else None

    async def delete_credentials(self, user_id: str) -> None:
        if self.persistent:
            await get_pool().execute("DELETE FROM google_credentials WHERE user_id = $1", user_id)
        else:
            self._memory.pop(user_id, None)
        logger.info(f"Deleted Google credentials for user {user_id}")
