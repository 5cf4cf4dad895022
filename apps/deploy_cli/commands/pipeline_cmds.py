# ================================================
# 📁 apps/deploy_cli/commands/pipeline_cmds.py
# ================================================
import typer
import asyncio
import json # For pretty printing dicts
import logging
from typing_extensions import Annotated
from typing import Optional

from interfaces.types.deployment import BranchEvent
from core.identifier.extractor import IdentifierExtractor
from core.orchestrator.exceptions import OrchestrationError
from core.orchestrator.naming import NamingTemplates
from core.readiness.poller import ReadinessPoller
from ..cli_config import cli_config_instance
from ..client_factory import get_deploy_clients, get_orchestrator, close_deploy_clients

logger = logging.getLogger(__name__)

BranchOpt = Annotated[Optional[str], typer.Option("--branch", "-b", help="Branch or ref (default: CI branch variable, then git).")]
CommitOpt = Annotated[Optional[str], typer.Option("--commit", "-c", help="Commit SHA (default: GIT_COMMIT / GITHUB_SHA).")]
ChangeIdOpt = Annotated[Optional[str], typer.Option("--change-id", help="Platform change id (default: CHANGE_ID).")]


def _event(branch: Optional[str], commit: Optional[str], change_id: Optional[str]) -> BranchEvent:
    return BranchEvent(
        ref=branch or cli_config_instance.branch or "",
        commit_sha=commit or cli_config_instance.commit,
        change_id=change_id or cli_config_instance.change_id,
        repository=cli_config_instance.deploy.github_repository,
        source="cli",
    )


def resolve_cmd(
    branch: BranchOpt = None,
    commit: CommitOpt = None,
    change_id: ChangeIdOpt = None,
    lookup: Annotated[bool, typer.Option("--lookup/--no-lookup", help="Consult the proposal lookup API.")] = True,
    as_json: Annotated[bool, typer.Option("--json", help="Print identifier, method and resource names as JSON.")] = False,
):
    """Derives the deployment identifier for a branch and prints it."""
    event = _event(branch, commit, change_id)
    config = cli_config_instance.deploy

    async def _run():
        clients = get_deploy_clients()
        try:
            extractor = IdentifierExtractor(vcs=clients.vcs, hash_length=config.identifier_hash_length)
            return await extractor.resolve(event.ref, event.commit_sha, platform_change_id=event.change_id,
                                           lookup=clients.lookup if lookup else None)
        finally:
            await close_deploy_clients()

    try:
        identifier = asyncio.run(_run())
    except OrchestrationError as e:
        typer.secho(f"Error resolving identifier: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    if as_json:
        names = NamingTemplates.from_config(config).render(identifier.value)
        payload = {
            "identifier": identifier.value,
            "method": identifier.method.value,
            "branch": identifier.source_branch,
            "resources": names.model_dump(),
        }
        typer.echo(json.dumps(payload, indent=2))
    else:
        typer.echo(identifier.value)


def run_cmd(
    branch: BranchOpt = None,
    commit: CommitOpt = None,
    change_id: ChangeIdOpt = None,
    artifact: Annotated[Optional[str], typer.Option("--artifact", "-a", help="s3://bucket/key or local zip (default: ARTIFACT_REF, then ARTIFACT_BUCKET).")] = None,
):
    """Runs the full pipeline: resolve, publish config, trigger infra, wait, deploy, verify."""
    event = _event(branch, commit, change_id)
    typer.echo(f"Starting deployment run for ref '{event.ref or '(detached)'}'...", err=True)

    async def _run():
        try:
            return await get_orchestrator().run(event, artifact_ref=artifact or cli_config_instance.artifact_ref)
        finally:
            await close_deploy_clients()

    report = asyncio.run(_run())
    typer.echo(report.model_dump_json(indent=2, by_alias=True))

    for warning in report.warnings:
        typer.secho(f"Warning [{warning.stage}] {warning.reason}: {warning.detail}", fg=typer.colors.YELLOW, err=True)
    if not report.succeeded:
        typer.secho(f"Run {report.run_id} ended in {report.final_state.value}: {report.error_kind}: {report.error_message}",
                    fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.secho(f"Run {report.run_id} ended in {report.final_state.value}.", fg=typer.colors.GREEN, err=True)


def infra_status_cmd(
    identifier: Annotated[Optional[str], typer.Option("--identifier", "-i", help="Deployment identifier.")] = None,
    provisioning_name: Annotated[Optional[str], typer.Option("--stack", help="Provisioning (stack) name; overrides --identifier.")] = None,
):
    """Queries infrastructure readiness once for an identifier."""
    if not identifier and not provisioning_name:
        typer.secho("Either --identifier or --stack is required.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)
    name = provisioning_name or NamingTemplates.from_config(cli_config_instance.deploy).render(identifier).provisioning_name

    async def _run():
        try:
            return await ReadinessPoller(get_deploy_clients().infra, max_attempts=1).query_status(name)
        finally:
            await close_deploy_clients()

    status = asyncio.run(_run())
    typer.echo(json.dumps({"provisioningName": name, "status": status.value}))
