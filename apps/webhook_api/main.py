# ===================================================
# 📁 apps/webhook_api/main.py
# ===================================================
import hashlib
import hmac
import json
import logging
import uuid
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import Dict, Any, Optional

from fastapi import FastAPI, HTTPException, Request, BackgroundTasks, Depends, Header
from starlette.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from shared.app_config import app_config, DeployConfig
from shared.app_logger import get_app_logger
from core.observability.tracing import setup_tracing
from core.orchestrator.factory import build_clients, build_orchestrator
from core.orchestrator.main_orchestrator import Orchestrator
from core.orchestrator.state import RunReport
from interfaces.types.deployment import BranchEvent
from .api_models import BranchWebhookRequest, RunAcceptedResponse, WebhookIgnoredResponse, RunStatusResponse

logger = get_app_logger("webhook_api", service_name_override=app_config.service_name)

PULL_REQUEST_ACTIONS = {"opened", "synchronize", "reopened"}


class RunRegistry:
    """
    In-process view of runs started by this API instance.
    Keeps at most `max_runs` entries; the oldest settled runs are dropped first.
    """

    SETTLED = ("finished", "crashed")

    def __init__(self, max_runs: int = 500):
        self.max_runs = max_runs
        self._runs: "OrderedDict[str, RunStatusResponse]" = OrderedDict()

    def accepted(self, run_id: str) -> None:
        self._put(RunStatusResponse(run_id=run_id, status="accepted"))

    def running(self, run_id: str) -> None:
        self._put(RunStatusResponse(run_id=run_id, status="running"))

    def finished(self, report: RunReport) -> None:
        self._put(RunStatusResponse(run_id=report.run_id, status="finished", report=report))

    def crashed(self, run_id: str, error: str) -> None:
        self._put(RunStatusResponse(run_id=run_id, status="crashed", error=error))

    def get(self, run_id: str) -> Optional[RunStatusResponse]:
        return self._runs.get(run_id)

    def __len__(self) -> int:
        return len(self._runs)

    def _put(self, entry: RunStatusResponse) -> None:
        self._runs[entry.run_id] = entry
        self._runs.move_to_end(entry.run_id)
        self._evict()

    def _evict(self) -> None:
        excess = len(self._runs) - self.max_runs
        if excess <= 0:
            return
        # Runs still in flight are kept so their status stays queryable
        for run_id in [rid for rid, entry in self._runs.items() if entry.status in self.SETTLED][:excess]:
            del self._runs[run_id]
            logger.debug(f"Dropped run {run_id} from the run registry")


run_registry = RunRegistry(max_runs=app_config.run_history_limit)


@asynccontextmanager
async def lifespan(app: FastAPI):
    clients = build_clients(app_config)
    app.state.orchestrator = build_orchestrator(app_config, clients)
    logger.info(f"Webhook API ready (environment={app_config.environment}, store={app_config.config_store_url})")
    try:
        yield
    finally:
        await clients.aclose()


app = FastAPI(
    title="Branch Deploy Webhook API",
    description="Receives branch events and runs the deployment pipeline for each.",
    version="0.1.0",
    lifespan=lifespan,
)

_tracer_provider = setup_tracing(app_config.service_name, app_config.otel_exporter_otlp_traces_endpoint)
if _tracer_provider:
    FastAPIInstrumentor.instrument_app(app, tracer_provider=_tracer_provider)


def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


def get_config() -> DeployConfig:
    return app_config


def verify_github_signature(secret: Optional[str], body: bytes, signature_header: Optional[str]) -> bool:
    """X-Hub-Signature-256 check. Always true when no secret is configured."""
    if not secret:
        return True
    if not signature_header or not signature_header.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header[len("sha256="):])


def event_from_github(event_name: str, payload: Dict[str, Any]) -> Optional[BranchEvent]:
    """Maps a GitHub push / pull_request payload to a BranchEvent; None for events that do not deploy."""
    repository = (payload.get("repository") or {}).get("full_name")
    if event_name == "push":
        ref = payload.get("ref", "")
        if payload.get("deleted") or not ref.startswith("refs/heads/"):
            return None
        return BranchEvent(ref=ref, commit_sha=payload.get("after"), repository=repository, source="github")
    if event_name == "pull_request":
        if payload.get("action") not in PULL_REQUEST_ACTIONS:
            return None
        pull_request = payload.get("pull_request") or {}
        head = pull_request.get("head") or {}
        number = pull_request.get("number", payload.get("number"))
        return BranchEvent(
            ref=head.get("ref", ""),
            change_id=str(number) if number is not None else None,
            commit_sha=head.get("sha"),
            repository=repository,
            source="github",
        )
    return None


async def execute_run(orchestrator: Orchestrator, event: BranchEvent, run_id: str, artifact_ref: Optional[str] = None) -> None:
    run_registry.running(run_id)
    try:
        report = await orchestrator.run(event, artifact_ref=artifact_ref, run_id=run_id)
    except Exception as e:
        logger.error(f"Run {run_id} crashed: {e}", exc_info=True)
        run_registry.crashed(run_id, f"{type(e).__name__}: {e}")
        return
    run_registry.finished(report)


def _accept(background_tasks: BackgroundTasks, orchestrator: Orchestrator, event: BranchEvent,
            artifact_ref: Optional[str] = None) -> RunAcceptedResponse:
    run_id = str(uuid.uuid4())
    run_registry.accepted(run_id)
    background_tasks.add_task(execute_run, orchestrator, event, run_id, artifact_ref)
    logger.info(f"Accepted {event.source} event for ref '{event.ref}' as run {run_id}")
    return RunAcceptedResponse(message="Deployment run accepted.", run_id=run_id, ref=event.ref)


# === API Endpoints ===

@app.get("/api/health", tags=["Health"], summary="Health check for the webhook API")
async def health_check(config: DeployConfig = Depends(get_config)):
    return {
        "service_name": config.service_name,
        "status": "healthy",
        "environment": config.environment,
    }


@app.post("/api/webhooks/branch", response_model=RunAcceptedResponse, status_code=202, tags=["Webhooks"])
async def branch_webhook(request_data: BranchWebhookRequest,
                         background_tasks: BackgroundTasks,
                         orchestrator: Orchestrator = Depends(get_orchestrator)):
    if not request_data.ref.strip():
        raise HTTPException(status_code=422, detail="ref must not be empty")
    event = BranchEvent(
        ref=request_data.ref,
        change_id=request_data.change_id,
        commit_sha=request_data.commit_sha,
        repository=request_data.repository,
        source="webhook",
    )
    return _accept(background_tasks, orchestrator, event, request_data.artifact_ref)


@app.post("/api/webhooks/github", status_code=202, tags=["Webhooks"])
async def github_webhook(request: Request,
                         background_tasks: BackgroundTasks,
                         x_github_event: Optional[str] = Header(None),
                         x_hub_signature_256: Optional[str] = Header(None),
                         orchestrator: Orchestrator = Depends(get_orchestrator),
                         config: DeployConfig = Depends(get_config)):
    body = await request.body()
    if not verify_github_signature(config.github_webhook_secret, body, x_hub_signature_256):
        logger.warning("Rejected GitHub webhook with missing or invalid signature.")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")
    try:
        payload = json.loads(body or b"{}")
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail=f"Invalid JSON payload: {e}")

    event_name = x_github_event or ""
    event = event_from_github(event_name, payload)
    if event is None:
        ignored = WebhookIgnoredResponse(message="Event does not trigger a deployment.", event=event_name)
        return JSONResponse(status_code=200, content=ignored.model_dump())
    return _accept(background_tasks, orchestrator, event)


@app.get("/api/runs/{run_id}", response_model=RunStatusResponse, tags=["Runs"])
async def get_run(run_id: str):
    status = run_registry.get(run_id)
    if status is None:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found")
    return status
