import pytest
from fastapi.testclient import TestClient

from relay.api.deps import get_job_system
from relay.domain.errors import TriggerFailed
from relay.domain.states import RunStatus
from relay.main import app
from relay.settings import settings
from relay.wire.sse import FrameDecoder, decode_event


def read_events(response):
    decoder = FrameDecoder()
    payloads = decoder.feed(response.text) + decoder.close()
    return [decode_event(p) for p in payloads]


# Fixture for the test client (synchronous)
@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(settings, "HELLO_WORLD_DELAY_SECONDS", 0.01)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def failing_jobs():
    class RejectingJobs:
        async def trigger(self, task_name, payload):
            raise TriggerFailed(task_name, "scheduler rejected payload")

        def subscribe(self, handle):
            raise AssertionError("not expected")

    app.dependency_overrides[get_job_system] = lambda: RejectingJobs()


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_trigger_returns_task_id(client):
    response = client.get("/api/hello-world")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "triggered"
    assert data["taskId"].startswith("run_")
    assert data["message"].startswith("Task triggered successfully")


def test_stream_relays_run_until_completed(client):
    task_id = client.get("/api/hello-world").json()["taskId"]

    response = client.post("/api/hello-world", json={"taskId": task_id})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"

    events = read_events(response)
    assert events[-1].status is RunStatus.COMPLETED
    assert events[-1].message == "Hello, James!"
    assert all(not e.is_terminal for e in events[:-1])


@pytest.mark.parametrize("body", [{}, {"taskId": ""}, {"taskId": None}, None])
def test_stream_requires_task_id(client, body):
    response = client.post("/api/hello-world", json=body)

    assert response.status_code == 400
    assert response.json() == {"error": "Task ID required"}


@pytest.mark.parametrize("task_id", ["run 1; drop", 123, ["run_x"], {"id": "run_x"}])
def test_stream_rejects_malformed_task_id(client, task_id):
    response = client.post("/api/hello-world", json={"taskId": task_id})

    assert response.status_code == 400
    assert "error" in response.json()


def test_stream_for_unknown_run_ends_with_error_event(client):
    response = client.post("/api/hello-world", json={"taskId": "run_does_not_exist"})

    assert response.status_code == 200
    events = read_events(response)
    assert len(events) == 1
    assert events[0].status is RunStatus.ERROR
    assert events[0].error == "Run run_does_not_exist not found"


def test_trigger_failure_is_a_server_error(client, failing_jobs):
    response = client.get("/api/hello-world")

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to trigger task", "details": "scheduler rejected payload"}


def test_webhook_triggers_task_with_payload(client):
    response = client.post("/api/webhook", json={"name": "Ada"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["receivedPayload"] == {"name": "Ada"}
    assert data["message"] == "Webhook received and task triggered successfully"

    events = read_events(client.post("/api/hello-world", json={"taskId": data["taskId"]}))
    assert events[-1].status is RunStatus.COMPLETED
    assert events[-1].message == "Hello, {'name': 'Ada'}!"


@pytest.mark.parametrize("body", [b"null", b"\"\"", b"false", b"0", b"0.0"])
def test_webhook_without_payload(client, body):
    response = client.post("/api/webhook", content=body, headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json() == {"error": "No payload provided"}


def test_webhook_with_unparseable_body(client):
    response = client.post("/api/webhook", content=b"{oops", headers={"Content-Type": "application/json"})

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to process webhook"
    assert response.json()["details"]


def test_webhook_trigger_failure(client, failing_jobs):
    response = client.post("/api/webhook", json={"name": "Ada"})

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to process webhook"
    assert "scheduler rejected payload" in response.json()["details"]


def test_webhook_usage_document(client):
    response = client.get("/api/webhook")

    assert response.status_code == 200
    assert response.json()["method"] == "POST"


def test_metrics_exposes_relay_counters(client):
    task_id = client.get("/api/hello-world").json()["taskId"]
    client.post("/api/hello-world", json={"taskId": task_id})

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "relay_streams_opened_total" in response.text
    assert 'relay_jobs_triggered_total{task="hello-world",outcome="triggered"}' in response.text


@pytest.mark.parametrize("payload", [True, 1, [], {}, "James"])
def test_webhook_accepts_other_json_values(client, payload):
    response = client.post("/api/webhook", json=payload)

    assert response.status_code == 200
    assert response.json()["receivedPayload"] == payload
