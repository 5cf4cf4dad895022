# ===================================================
# 📁 tests/unit/test_webhook_api.py
# ===================================================
import hashlib
import hmac
import json

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from apps.webhook_api import main as webhook_main
from apps.webhook_api.main import RunRegistry, app, get_config, get_orchestrator, verify_github_signature
from core.orchestrator.state import RunReport, RunState
from shared.app_config import DeployConfig


@pytest.fixture
def orchestrator():
    async def fake_run(event, artifact_ref=None, run_id=None):
        return RunReport(run_id=run_id, final_state=RunState.VERIFIED, succeeded=True, identifier="212")

    mock = MagicMock()
    mock.run = AsyncMock(side_effect=fake_run)
    return mock


@pytest.fixture
def client(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_config] = lambda: DeployConfig({})
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_branch_webhook_accepts_and_runs(client, orchestrator):
    response = client.post("/api/webhooks/branch", json={"ref": "refs/heads/feature/pr-212", "artifact_ref": "s3://b/k.zip"})

    assert response.status_code == 202
    run_id = response.json()["run_id"]
    event = orchestrator.run.await_args.args[0]
    assert event.branch == "feature/pr-212"
    assert event.source == "webhook"
    assert orchestrator.run.await_args.kwargs == {"artifact_ref": "s3://b/k.zip", "run_id": run_id}

    status = client.get(f"/api/runs/{run_id}").json()
    assert status["status"] == "finished"
    assert status["report"]["final_state"] == "Verified"


def test_branch_webhook_rejects_empty_ref(client, orchestrator):
    response = client.post("/api/webhooks/branch", json={"ref": "  "})
    assert response.status_code == 422
    orchestrator.run.assert_not_awaited()


def test_unknown_run_is_404(client):
    assert client.get("/api/runs/does-not-exist").status_code == 404


def test_github_push_event(client, orchestrator):
    payload = {"ref": "refs/heads/bugfix-123", "after": "abc1234", "repository": {"full_name": "acme/widgets"}}
    response = client.post("/api/webhooks/github", json=payload, headers={"X-GitHub-Event": "push"})

    assert response.status_code == 202
    event = orchestrator.run.await_args.args[0]
    assert event.branch == "bugfix-123"
    assert event.commit_sha == "abc1234"
    assert event.repository == "acme/widgets"
    assert event.source == "github"


def test_github_pull_request_event_carries_change_id(client, orchestrator):
    payload = {
        "action": "synchronize",
        "number": 212,
        "pull_request": {"number": 212, "head": {"ref": "feature/login", "sha": "f00d"}},
        "repository": {"full_name": "acme/widgets"},
    }
    response = client.post("/api/webhooks/github", json=payload, headers={"X-GitHub-Event": "pull_request"})

    assert response.status_code == 202
    event = orchestrator.run.await_args.args[0]
    assert event.change_id == "212"
    assert event.ref == "feature/login"


@pytest.mark.parametrize("event_name, payload", [
    ("pull_request", {"action": "closed", "pull_request": {"number": 1, "head": {"ref": "x"}}}),
    ("push", {"ref": "refs/tags/v1.0.0"}),
    ("push", {"ref": "refs/heads/gone", "deleted": True}),
    ("issues", {"action": "opened"}),
])
def test_github_events_that_do_not_deploy_are_ignored(client, orchestrator, event_name, payload):
    response = client.post("/api/webhooks/github", json=payload, headers={"X-GitHub-Event": event_name})
    assert response.status_code == 200
    assert response.json()["event"] == event_name
    orchestrator.run.assert_not_awaited()


def test_github_signature_enforced_when_secret_configured(client, orchestrator):
    app.dependency_overrides[get_config] = lambda: DeployConfig({"GITHUB_WEBHOOK_SECRET": "s3cret"})
    body = json.dumps({"ref": "refs/heads/bugfix-123"}).encode("utf-8")

    bad = client.post("/api/webhooks/github", content=body,
                      headers={"X-GitHub-Event": "push", "X-Hub-Signature-256": "sha256=deadbeef"})
    assert bad.status_code == 401

    signature = "sha256=" + hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()
    good = client.post("/api/webhooks/github", content=body,
                       headers={"X-GitHub-Event": "push", "X-Hub-Signature-256": signature,
                                "Content-Type": "application/json"})
    assert good.status_code == 202


def test_verify_github_signature_without_secret():
    assert verify_github_signature(None, b"{}", None) is True
    assert verify_github_signature("s", b"{}", None) is False


def test_crashed_run_is_reported_not_left_running(client, orchestrator):
    orchestrator.run = AsyncMock(side_effect=RuntimeError("client misconfigured"))
    response = client.post("/api/webhooks/branch", json={"ref": "bugfix-123"})

    assert response.status_code == 202
    status = client.get(f"/api/runs/{response.json()['run_id']}").json()
    assert status["status"] == "crashed"
    assert "RuntimeError" in status["error"]


def test_run_registry_drops_oldest_settled_runs():
    registry = RunRegistry(max_runs=2)
    registry.accepted("in-flight")
    registry.running("in-flight")
    for run_id in ("a", "b", "c"):
        registry.finished(RunReport(run_id=run_id, final_state=RunState.VERIFIED, succeeded=True))

    assert len(registry) == 2
    assert registry.get("in-flight").status == "running"
    assert registry.get("a") is None
    assert registry.get("b") is None
    assert registry.get("c").status == "finished"


def test_evicted_run_is_404(client, monkeypatch):
    monkeypatch.setattr(webhook_main, "run_registry", RunRegistry(max_runs=1))
    first = client.post("/api/webhooks/branch", json={"ref": "bugfix-1"}).json()["run_id"]
    second = client.post("/api/webhooks/branch", json={"ref": "bugfix-2"}).json()["run_id"]

    assert client.get(f"/api/runs/{first}").status_code == 404
    assert client.get(f"/api/runs/{second}").json()["status"] == "finished"
