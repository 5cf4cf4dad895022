# ===================================================
# 📁 apps/webhook_api/api_models.py
# ===================================================
from typing import Optional

from pydantic import BaseModel, Field

from core.orchestrator.state import RunReport


class BranchWebhookRequest(BaseModel):
    ref: str = Field(..., description="Branch name or full ref, e.g. 'refs/heads/feature/pr-212'")
    change_id: Optional[str] = Field(None, description="Platform change id (pull request number), if known")
    commit_sha: Optional[str] = None
    repository: Optional[str] = Field(None, description="owner/repo")
    artifact_ref: Optional[str] = Field(None, description="s3://bucket/key of the built artifact")


class RunAcceptedResponse(BaseModel):
    message: str
    run_id: str
    ref: str


class WebhookIgnoredResponse(BaseModel):
    message: str
    event: str


class RunStatusResponse(BaseModel):
    run_id: str
    status: str # accepted | running | finished | crashed
    report: Optional[RunReport] = None
    error: Optional[str] = None
