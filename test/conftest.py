from datetime import datetime, timezone

import pytest

from api.backend import PlannerBackend
from api.main import create_app
from api.state import AppState
from extraction.task_breakdown import TaskBreakdown
from llm.llm_client import LLMClient
from scheduling.scheduler import Scheduler
from storage.google_auth import GoogleAuthStore
from storage.task_store import InMemoryTaskStore

FIXED_NOW = datetime(2025, 3, 10, 9, 7, 23, tzinfo=timezone.utc)


class FakeProvider:
    def __init__(self, response_text: str):
        self._response_text = response_text
        self.calls = []

    def generate(self, *, system: str, user: str) -> str:
        self.calls.append(user)
        return self._response_text


class FailingProvider:
    def generate(self, *, system: str, user: str) -> str:
        raise ConnectionError("network unreachable")


class FakeOCR:
    def __init__(self, text: str = "Write quarterly report"):
        self.text = text
        self.seen = []

    def extract(self, image_bytes: bytes) -> str:
        self.seen.append(image_bytes)
        return self.text


@pytest.fixture
def fake_provider_factory():
    def _make(response_text: str):
        return FakeProvider(response_text)
    return _make


@pytest.fixture
def store():
    return InMemoryTaskStore()


@pytest.fixture
def make_app(store):
    def _make(provider=None, ocr=None):
        provider = provider or FakeProvider(
            '{"subtasks":[{"title":"Outline","duration":10},{"title":"Draft","duration":90}]}'
        )
        backend = PlannerBackend(
            store,
            breakdown=TaskBreakdown(llm_client=LLMClient(provider=provider)),
            scheduler=Scheduler(now_fn=lambda: FIXED_NOW),
        )
        state = AppState(
            store=store,
            backend=backend,
            ocr=ocr or FakeOCR(),
            google_auth_store=GoogleAuthStore(persistent=False),
        )
        return create_app(state=state)
    return _make
