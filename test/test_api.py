import io
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from api.backend import PlannerBackend
from api.dependencies import get_calendar_integration
from api.main import create_app
from api.state import AppState
from integration.calendar_integration import CalendarIntegration
from ocr import text_extractor
from ocr.text_extractor import TextExtractor
from storage.google_auth import GoogleAuthStore
from storage.task_store import InMemoryTaskStore
from conftest import FailingProvider, FakeOCR


@pytest.fixture
def client(make_app):
    return TestClient(make_app())


def _calendar_app(make_app, side_effect):
    app = make_app()
    service = MagicMock()
    service.events().insert().execute.side_effect = side_effect
    app.dependency_overrides[get_calendar_integration] = lambda: CalendarIntegration(service=service)
    return app, service


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["storage"] == "in-memory"


def test_ai_breakdown_clamps_durations(client):
    r = client.post("/api/ai-breakdown", json={"title": "Write report"})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert [s["duration"] for s in body["subtasks"]] == [25, 60]
    assert [s["order"] for s in body["subtasks"]] == [0, 1]


def test_ai_breakdown_requires_title(client):
    r = client.post("/api/ai-breakdown", json={"description": "no title"})
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "Task title is required"}

    r = client.post("/api/ai-breakdown", json={"title": "   "})
    assert r.status_code == 400


def test_ai_breakdown_failure_is_reported(make_app):
    client = TestClient(make_app(provider=FailingProvider()))
    r = client.post("/api/ai-breakdown", json={"title": "Write report"})
    assert r.status_code == 502
    assert r.json()["success"] is False
    assert "network unreachable" in r.json()["error"]


def test_schedule_persists_and_returns_buffered_events(client, store):
    r = client.post(
        "/api/schedule",
        json={
            "title": "Essay",
            "description": "History essay",
            "manual": True,
            "subtasks": [
                {"title": "Research", "duration": 30},
                {"title": "Write", "description": "first draft", "duration": 45},
            ],
        },
    )
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["task"]["title"] == "Essay"

    schedule = body["schedule"]
    assert [(e["startTime"], e["endTime"]) for e in schedule] == [
        ("2025-03-10T09:15:00Z", "2025-03-10T09:45:00Z"),
        ("2025-03-10T09:55:00Z", "2025-03-10T10:40:00Z"),
    ]
    assert all(e["bufferMinutes"] == 10 for e in schedule)
    assert schedule[1]["description"] == "first draft"

    tasks = client.get("/api/tasks").json()["tasks"]
    assert len(tasks) == 1
    assert tasks[0]["manual"] is True
    assert [s["order"] for s in tasks[0]["subtasks"]] == [0, 1]
    assert [e["startTime"] for e in tasks[0]["schedule"]] == [e["startTime"] for e in schedule]


def test_schedule_manual_durations_not_clamped(client):
    r = client.post(
        "/api/schedule",
        json={"title": "Quick", "subtasks": [{"title": "Tiny", "duration": 5}]},
    )
    assert r.status_code == 200
    event = r.json()["schedule"][0]
    assert (event["startTime"], event["endTime"]) == ("2025-03-10T09:15:00Z", "2025-03-10T09:20:00Z")


@pytest.mark.parametrize(
    "payload",
    [
        {"subtasks": []},
        {"title": "X"},
        {"title": "X", "subtasks": "not a list"},
        {"title": "X", "subtasks": [{"title": "no duration"}]},
    ],
)
def test_schedule_rejects_invalid_data(client, payload):
    r = client.post("/api/schedule", json=payload)
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_schedule_empty_subtasks_gives_empty_schedule(client):
    r = client.post("/api/schedule", json={"title": "Nothing yet", "subtasks": []})
    assert r.status_code == 200
    assert r.json()["schedule"] == []


def test_ingest_text_breaks_down_and_schedules(client):
    r = client.post("/ingest/text", json={"title": "Write report", "description": "Q1"})
    assert r.status_code == 200
    body = r.json()
    assert [s["title"] for s in body["subtasks"]] == ["Outline", "Draft"]
    assert [(e["startTime"], e["endTime"]) for e in body["schedule"]] == [
        ("2025-03-10T09:15:00Z", "2025-03-10T09:40:00Z"),
        ("2025-03-10T09:50:00Z", "2025-03-10T10:50:00Z"),
    ]


def test_ocr_returns_text(make_app):
    ocr = FakeOCR("Finish slides")
    client = TestClient(make_app(ocr=ocr))
    r = client.post("/api/ocr", files={"image": ("note.png", b"\x89PNG fake", "image/png")})
    assert r.status_code == 200
    assert r.json() == {"success": True, "text": "Finish slides"}
    assert ocr.seen == [b"\x89PNG fake"]

    r = client.post("/ingest/image", files={"image": ("note.png", b"x", "image/png")})
    assert r.status_code == 200


def test_ocr_validation(client):
    r = client.post("/api/ocr")
    assert r.status_code == 400
    assert r.json()["error"] == "No image file provided"

    r = client.post("/api/ocr", files={"image": ("notes.txt", b"hello", "text/plain")})
    assert r.status_code == 400
    assert r.json()["error"] == "Only image files are allowed"


def test_ocr_size_limit(client, monkeypatch):
    from api.routers import planner

    monkeypatch.setattr(planner, "MAX_UPLOAD_BYTES", 4)
    r = client.post("/api/ocr", files={"image": ("big.png", b"12345", "image/png")})
    assert r.status_code == 400


def test_calendar_requires_connection(client):
    r = client.post("/api/calendar/add-events", json={"taskId": 1, "events": []})
    assert r.status_code == 503
    assert r.json() == {"success": False, "error": "Google Calendar not connected"}


def test_calendar_partial_failure(make_app, store):
    app, _ = _calendar_app(
        make_app, [{"id": "g-1"}, RuntimeError("rate limited"), {"id": "g-3"}]
    )
    client = TestClient(app)

    created = client.post(
        "/api/schedule",
        json={
            "title": "Three steps",
            "subtasks": [
                {"title": "A", "duration": 30},
                {"title": "B", "duration": 30},
                {"title": "C", "duration": 30},
            ],
        },
    ).json()

    r = client.post(
        "/api/calendar/add-events",
        json={"taskId": created["task"]["id"], "events": created["schedule"]},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["successCount"] == 2
    assert [res["success"] for res in body["results"]] == [True, False, True]
    assert body["results"][1]["error"] == "rate limited"
    assert body["message"] == "Successfully added 2 events to Google Calendar"

    task = client.get("/api/tasks").json()["tasks"][0]
    assert [e["googleEventId"] for e in task["schedule"]] == ["g-1", None, "g-3"]


def test_agenda_pushes_slot_events(make_app):
    app, service = _calendar_app(make_app, [{"id": "g-1"}, {"id": "g-2"}])
    client = TestClient(app)

    r = client.post(
        "/agenda",
        json={
            "taskTitle": "Day plan",
            "events": [
                {"title": "Deep work", "startTime": "9:00", "duration": 45, "bufferMinutes": 10},
                {"description": "Emails", "startTime": "13:00", "duration": 30},
            ],
        },
    )
    assert r.status_code == 200
    assert r.json()["successCount"] == 2

    bodies = [c.kwargs["body"] for c in service.events().insert.call_args_list if "body" in c.kwargs]
    assert [b["summary"] for b in bodies] == ["Deep work", "Emails"]
    assert "T09:00:00" in bodies[0]["start"]["dateTime"]
    assert "T09:45:00" in bodies[0]["end"]["dateTime"]


def test_delete_task(client):
    created = client.post(
        "/api/schedule", json={"title": "Gone soon", "subtasks": [{"title": "A", "duration": 30}]}
    ).json()
    assert client.delete(f"/api/tasks/{created['task']['id']}").json() == {"success": True}
    assert client.get("/api/tasks").json()["tasks"] == []
    assert client.delete(f"/api/tasks/{created['task']['id']}").status_code == 404


def test_google_status_disconnected(client):
    r = client.get("/auth/google/status")
    assert r.json() == {"connected": False, "email": None}


def test_metrics_endpoint_exposes_prometheus_text(client):
    client.post("/api/ai-breakdown", json={"title": "Write report"})
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "text/plain" in r.headers.get("content-type", "")
    assert 'planner_requests_total{endpoint="/api/ai-breakdown",status="ok"}' in r.text
    assert "planner_subtasks_generated_total" in r.text


def _two_task_app(make_app):
    app, _ = _calendar_app(make_app, lambda **_: {"id": "g-x"})
    client = TestClient(app)
    first = client.post(
        "/api/schedule", json={"title": "First", "subtasks": [{"title": "A", "duration": 30}]}
    ).json()
    second = client.post(
        "/api/schedule", json={"title": "Second", "subtasks": [{"title": "B", "duration": 30}]}
    ).json()
    return client, first, second


def test_calendar_only_stores_ids_for_the_named_task(make_app):
    client, first, second = _two_task_app(make_app)

    r = client.post(
        "/api/calendar/add-events",
        json={"taskId": second["task"]["id"], "events": first["schedule"]},
    )
    assert r.status_code == 200
    assert r.json()["successCount"] == 1

    tasks = {t["title"]: t for t in client.get("/api/tasks").json()["tasks"]}
    assert tasks["First"]["schedule"][0]["googleEventId"] is None
    assert tasks["Second"]["schedule"][0]["googleEventId"] is None


def test_calendar_unknown_task(make_app):
    client, first, _ = _two_task_app(make_app)
    r = client.post("/api/calendar/add-events", json={"taskId": 999, "events": first["schedule"]})
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "Task 999 not found"}


@pytest.mark.parametrize("start_time", ["25:00", "9:75", "24:00"])
def test_agenda_rejects_out_of_range_slot(make_app, start_time):
    app, service = _calendar_app(make_app, [{"id": "g-1"}])
    client = TestClient(app)
    r = client.post(
        "/agenda",
        json={"events": [{"title": "Late", "startTime": start_time, "duration": 30}]},
    )
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "Invalid request data"}
    assert not any("body" in c.kwargs for c in service.events().insert.call_args_list)


def test_schedule_subtask_without_title_is_generic_error(client):
    r = client.post("/api/schedule", json={"title": "X", "subtasks": [{"duration": 30}]})
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "Invalid request data"}


def test_ocr_truncated_image_is_reported(make_app, monkeypatch):
    def decode(image, lang):
        image.load()
        return ""

    monkeypatch.setattr(text_extractor.pytesseract, "image_to_string", decode)
    buf = io.BytesIO()
    Image.effect_noise((200, 200), 64).save(buf, format="PNG")

    client = TestClient(make_app(ocr=TextExtractor()))
    r = client.post("/api/ocr", files={"image": ("cut.png", buf.getvalue()[:100], "image/png")})
    assert r.status_code == 500
    assert r.json()["success"] is False
    assert r.json()["error"].startswith("Could not read image")


class BrokenStore(InMemoryTaskStore):
    async def create_task(self, title, description, manual, subtasks, schedule):
        raise ConnectionError("db down")


def test_unexpected_errors_keep_the_json_shape():
    store = BrokenStore()
    state = AppState(
        store=store,
        backend=PlannerBackend(store),
        ocr=FakeOCR(),
        google_auth_store=GoogleAuthStore(persistent=False),
    )
    client = TestClient(create_app(state=state), raise_server_exceptions=False)

    r = client.post("/api/schedule", json={"title": "X", "subtasks": [{"title": "A", "duration": 30}]})
    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "db down"}


def test_metrics_cover_task_list_and_calendar_routes(make_app):
    client, first, _ = _two_task_app(make_app)
    client.get("/api/tasks")
    client.post(
        "/api/calendar/add-events",
        json={"taskId": first["task"]["id"], "events": first["schedule"]},
    )
    client.post("/agenda", json={"events": [{"title": "A", "startTime": "9:00", "duration": 30}]})

    text = client.get("/metrics").text
    for endpoint in ("/api/tasks", "/api/calendar/add-events", "/agenda"):
        assert f'planner_requests_total{{endpoint="{endpoint}",status="ok"}}' in text
