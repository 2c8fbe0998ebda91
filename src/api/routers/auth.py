import os
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from google_auth_oauthlib.flow import Flow
from storage.google_auth import CALENDAR_SCOPES, GOOGLE_TOKEN_URI, GoogleAuthStore
from api.dependencies import DEFAULT_USER_ID, get_google_auth_store

router = APIRouter()
logger = logging.getLogger(__name__)

GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI = os.getenv(
    "GOOGLE_REDIRECT_URI", "http://localhost:5000/auth/google/callback"
)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5000/")

OAUTH_SCOPES = ["openid", "https://www.googleapis.com/auth/userinfo.email", *CALENDAR_SCOPES]


def _make_flow() -> Flow:
    return Flow.from_client_config(
        {
            "web": {
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET,
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": GOOGLE_TOKEN_URI,
            }
        },
        scopes=OAUTH_SCOPES,
        redirect_uri=GOOGLE_REDIRECT_URI,
    )


def _frontend_redirect(query: str) -> RedirectResponse:
    return RedirectResponse(f"{FRONTEND_URL}?{query}", status_code=307)


@router.get("/auth/google/login")
async def google_login():
    """Redirect the browser to Google's consent page."""
    if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
        raise HTTPException(status_code=500, detail="Google credentials not configured")

    authorization_url, _state = _make_flow().authorization_url(
        access_type="offline", include_granted_scopes="true", prompt="consent"
    )
    return RedirectResponse(authorization_url, status_code=307)


@router.get("/auth/google/callback")
async def google_callback(
    code: Optional[str] = None,
    error: Optional[str] = None,
    google_auth_store: Optional[GoogleAuthStore] = Depends(get_google_auth_store),
):
    if error or not code:
        logger.error(f"OAuth error: {error}")
        return _frontend_redirect(f"calendar_error={error or 'missing_code'}")

    if google_auth_store is None:
        return _frontend_redirect("calendar_error=auth_store_unavailable")

    try:
        flow = _make_flow()
        flow.fetch_token(code=code)
        credentials = flow.credentials

        email = None
        try:
            session = flow.authorized_session()
            email = session.get("https://www.googleapis.com/userinfo/v2/me").json().get("email")
        except Exception as e:
            logger.warning(f"Failed to fetch user email: {e}")

        await google_auth_store.save_credentials(DEFAULT_USER_ID, credentials, email)
    except Exception as e:
        logger.error(f"OAuth callback failed: {e}")
        return _frontend_redirect("calendar_error=oauth_failed")

    return _frontend_redirect("calendar_connected=true")


@router.get("/auth/google/status")
async def google_status(
    google_auth_store: Optional[GoogleAuthStore] = Depends(get_google_auth_store),
) -> dict:
    if google_auth_store is None:
        return {"connected": False, "error": "Auth store not initialized"}

    creds = await google_auth_store.get_credentials(DEFAULT_USER_ID)
    email = await google_auth_store.get_email(DEFAULT_USER_ID)
    return {"connected": creds is not None, "email": email}


@router.post("/auth/google/disconnect")
async def google_disconnect(
    google_auth_store: Optional[GoogleAuthStore] = Depends(get_google_auth_store),
) -> dict:
    if google_auth_store is None:
        raise HTTPException(status_code=500, detail="Auth store not initialized")

    await google_auth_store.delete_credentials(DEFAULT_USER_ID)
    return {"status": "disconnected"}
