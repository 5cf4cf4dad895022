# ===================================================
# 📁 tests/unit/test_orchestrator.py
# ===================================================
import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from core.orchestrator.state import RunState
from core.readiness import ReadinessPoller
from core.jobs import DownstreamJobInvoker
from interfaces.types.deployment import BranchEvent, InfraStackStatus
from sdk.exceptions import APIError, AuthenticationError, StoreError
from sdk.models import JobStatus

ARTIFACT = "s3://build-artifacts/api-handler-212.zip"


def states(report):
    return [t.state for t in report.history]


def reasons(report):
    return [w.reason for w in report.warnings]


@pytest.mark.asyncio
async def test_happy_path_reaches_verified(make_orchestrator, fake_clients, tmp_path):
    report = await make_orchestrator().run(BranchEvent(ref="refs/heads/feature/pr-212", commit_sha="abc1234"), artifact_ref=ARTIFACT)

    assert report.final_state == RunState.VERIFIED
    assert report.succeeded is True
    assert report.identifier == "212"
    assert report.derivation_method == "PatternMatch"
    assert states(report) == [
        RunState.INIT, RunState.IDENTIFIER_RESOLVED, RunState.CONFIG_PUBLISHED, RunState.INFRA_TRIGGERED,
        RunState.INFRA_READY, RunState.ARTIFACT_DEPLOYED, RunState.VERIFIED,
    ]
    assert report.warnings == []
    assert report.record.target_name == "api-handler-212"
    assert (tmp_path / "configs" / "212" / "config.json").exists()
    fake_clients.jobs.trigger.assert_awaited_once_with("infrastructure-provision", {"DEPLOYMENT_ID": "212"})
    fake_clients.infra.get_status.assert_awaited_with("api-handler-stack-212")
    fake_clients.deploy.update_artifact.assert_awaited_once_with("api-handler-212", ARTIFACT)


@pytest.mark.asyncio
async def test_infra_timeout_is_degraded_not_fatal(make_orchestrator, fake_clients):
    fake_clients.infra.get_status = AsyncMock(return_value=InfraStackStatus.IN_PROGRESS)
    report = await make_orchestrator().run(BranchEvent(ref="bugfix-123"), artifact_ref=ARTIFACT)

    assert RunState.INFRA_TIMEOUT in states(report)
    assert RunState.INFRA_READY not in states(report)
    assert "PollTimeout" in reasons(report)
    assert fake_clients.infra.get_status.await_count == 3
    assert report.final_state == RunState.VERIFIED


@pytest.mark.asyncio
async def test_missing_target_ends_in_verify_skipped(make_orchestrator, fake_clients):
    fake_clients.deploy.target_exists = AsyncMock(return_value=False)
    report = await make_orchestrator().run(BranchEvent(ref="bugfix-123"), artifact_ref=ARTIFACT)

    assert report.final_state == RunState.VERIFY_SKIPPED
    assert report.succeeded is True
    assert reasons(report) == ["DeployTargetMissing", "VerifyMissing"]
    fake_clients.deploy.update_artifact.assert_not_awaited()


@pytest.mark.asyncio
async def test_job_trigger_failure_is_a_warning(make_orchestrator, fake_clients):
    fake_clients.jobs.trigger = AsyncMock(side_effect=APIError("Jenkins down", status_code=503))
    report = await make_orchestrator().run(BranchEvent(ref="bugfix-123"), artifact_ref=ARTIFACT)

    assert RunState.INFRA_TRIGGERED in states(report)
    assert "JobInvocationFailed" in reasons(report)
    assert report.final_state == RunState.VERIFIED


@pytest.mark.asyncio
async def test_unexpected_trigger_error_is_a_warning(make_orchestrator, fake_clients):
    fake_clients.jobs.trigger = AsyncMock(side_effect=TypeError("bad payload"))
    report = await make_orchestrator().run(BranchEvent(ref="bugfix-123"), artifact_ref=ARTIFACT)

    assert "JobInvocationFailed" in reasons(report)
    assert report.final_state == RunState.VERIFIED


@pytest.mark.asyncio
async def test_unexpected_status_client_error_degrades_to_infra_timeout(make_orchestrator, fake_clients):
    fake_clients.infra.get_status = AsyncMock(side_effect=ValueError("unexpected describe_stacks shape"))
    report = await make_orchestrator().run(BranchEvent(ref="bugfix-123"), artifact_ref=ARTIFACT)

    assert RunState.INFRA_TIMEOUT in states(report)
    assert fake_clients.infra.get_status.await_count == 3
    assert report.final_state == RunState.VERIFIED


@pytest.mark.asyncio
async def test_blocking_job_failure_is_a_warning(make_orchestrator, fake_clients):
    fake_clients.jobs.wait_for_result = AsyncMock(return_value=JobStatus.FAILURE)
    report = await make_orchestrator(wait_for_job=True).run(BranchEvent(ref="bugfix-123"), artifact_ref=ARTIFACT)

    fake_clients.jobs.wait_for_result.assert_awaited_once()
    assert "JobInvocationFailed" in reasons(report)
    assert report.final_state == RunState.VERIFIED


@pytest.mark.asyncio
async def test_resolution_failure_stops_the_run(make_orchestrator, fake_clients, tmp_path):
    report = await make_orchestrator().run(BranchEvent(ref="HEAD"), artifact_ref=ARTIFACT)

    assert report.final_state == RunState.RESOLUTION_FAILED
    assert report.succeeded is False
    assert report.error_kind == "ResolutionError"
    assert report.identifier is None
    assert not (tmp_path / "configs").exists()
    fake_clients.jobs.trigger.assert_not_awaited()


@pytest.mark.asyncio
async def test_lookup_failure_is_resolution_failed(make_orchestrator):
    lookup = MagicMock()
    lookup.find_open_proposals = AsyncMock(side_effect=APIError("unreachable"))
    report = await make_orchestrator(lookup=lookup).run(BranchEvent(ref="release/x"), artifact_ref=ARTIFACT)

    assert report.final_state == RunState.RESOLUTION_FAILED
    assert report.error_kind == "LookupError"


@pytest.mark.asyncio
async def test_publish_failure_stops_the_run(make_orchestrator, fake_clients):
    store = MagicMock()
    store.put_if_absent = AsyncMock(side_effect=StoreError("store unreachable"))
    report = await make_orchestrator(store=store).run(BranchEvent(ref="bugfix-123"), artifact_ref=ARTIFACT)

    assert report.final_state == RunState.PUBLISH_FAILED
    assert report.error_kind == "PublishTransportError"
    assert report.identifier == "123"
    fake_clients.jobs.trigger.assert_not_awaited()


@pytest.mark.asyncio
async def test_deploy_auth_failure_is_fatal(make_orchestrator, fake_clients):
    fake_clients.deploy.update_artifact = AsyncMock(side_effect=AuthenticationError())
    report = await make_orchestrator().run(BranchEvent(ref="bugfix-123"), artifact_ref=ARTIFACT)

    assert report.final_state == RunState.DEPLOY_FAILED
    assert report.error_kind == "DeployTransportError"
    assert RunState.ARTIFACT_DEPLOYED not in states(report)


@pytest.mark.asyncio
async def test_verify_transport_failure_is_deploy_failed(make_orchestrator, fake_clients):
    fake_clients.deploy.target_exists = AsyncMock(side_effect=[True, APIError("timeout talking to lambda")])
    report = await make_orchestrator().run(BranchEvent(ref="bugfix-123"), artifact_ref=ARTIFACT)

    assert states(report)[-2:] == [RunState.ARTIFACT_DEPLOYED, RunState.DEPLOY_FAILED]
    assert report.error_kind == "DeployTransportError"


@pytest.mark.asyncio
async def test_repeat_run_treats_existing_config_as_success(make_orchestrator):
    orchestrator = make_orchestrator()
    first = await orchestrator.run(BranchEvent(ref="bugfix-123"), artifact_ref=ARTIFACT)
    second = await orchestrator.run(BranchEvent(ref="bugfix-123"), artifact_ref=ARTIFACT)

    assert first.final_state == second.final_state == RunState.VERIFIED
    assert second.record.created_at == first.record.created_at
    assert second.history[2].note == "PublishConflict"


@pytest.mark.asyncio
async def test_artifact_defaults_to_bucket_and_package_name(make_orchestrator, fake_clients):
    await make_orchestrator(artifact_bucket="builds").run(BranchEvent(ref="bugfix-123"))
    fake_clients.deploy.update_artifact.assert_awaited_once_with("api-handler-123", "s3://builds/api-handler-123.zip")


@pytest.mark.asyncio
async def test_missing_artifact_is_a_warning(make_orchestrator, fake_clients):
    report = await make_orchestrator().run(BranchEvent(ref="bugfix-123"))

    assert "ArtifactMissing" in reasons(report)
    fake_clients.deploy.update_artifact.assert_not_awaited()
    assert report.final_state == RunState.VERIFIED


@pytest.mark.asyncio
async def test_run_deadline_times_out(make_orchestrator, fake_clients):
    async def slow_status(_name):
        await asyncio.sleep(5)
        return InfraStackStatus.COMPLETE

    fake_clients.infra.get_status = slow_status
    orchestrator = make_orchestrator(
        poller=ReadinessPoller(fake_clients.infra, interval_seconds=0, max_attempts=1),
        run_timeout_seconds=0.05,
    )
    report = await orchestrator.run(BranchEvent(ref="bugfix-123"), artifact_ref=ARTIFACT)

    assert report.final_state == RunState.TIMED_OUT
    assert report.error_kind == "RunTimeout"
    assert states(report)[-2] == RunState.INFRA_TRIGGERED


@pytest.mark.asyncio
async def test_invoker_without_job_client_warns(make_orchestrator):
    orchestrator = make_orchestrator(invoker=DownstreamJobInvoker(None, job_name="infrastructure-provision"))
    report = await orchestrator.run(BranchEvent(ref="bugfix-123"), artifact_ref=ARTIFACT)

    assert "JobInvocationFailed" in reasons(report)
    assert report.final_state == RunState.VERIFIED
