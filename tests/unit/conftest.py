# ===================================================
# 📁 tests/unit/conftest.py
# ===================================================
import pytest
from unittest.mock import AsyncMock, MagicMock

from core.config_store import ConfigPublisher, FileSystemConfigStore
from core.deploy import ArtifactDeployer, DeploymentVerifier
from core.identifier import IdentifierExtractor
from core.jobs import DownstreamJobInvoker
from core.orchestrator.factory import DeployClients
from core.orchestrator.main_orchestrator import Orchestrator
from core.readiness import ReadinessPoller
from interfaces.types.deployment import InfraStackStatus
from sdk.models import JobStatus

QUEUE_URL = "https://jenkins.example.com/queue/item/42/"


@pytest.fixture
def fake_clients() -> DeployClients:
    """Clients that report a healthy world: job accepted, stack complete, target present."""
    jobs = MagicMock()
    jobs.trigger = AsyncMock(return_value=QUEUE_URL)
    jobs.wait_for_result = AsyncMock(return_value=JobStatus.SUCCESS)

    infra = MagicMock()
    infra.get_status = AsyncMock(return_value=InfraStackStatus.COMPLETE)

    deploy = MagicMock()
    deploy.target_exists = AsyncMock(return_value=True)
    deploy.update_artifact = AsyncMock(return_value=None)

    vcs = MagicMock()
    vcs.discover_branch = AsyncMock(return_value=None)

    return DeployClients(vcs=vcs, lookup=None, jobs=jobs, infra=infra, deploy=deploy)


@pytest.fixture
def make_orchestrator(tmp_path, fake_clients):
    def _make(store=None, **overrides) -> Orchestrator:
        clients = fake_clients
        kwargs = dict(
            extractor=IdentifierExtractor(vcs=clients.vcs),
            publisher=ConfigPublisher(store or FileSystemConfigStore(str(tmp_path / "configs"))),
            invoker=DownstreamJobInvoker(clients.jobs, job_name="infrastructure-provision"),
            poller=ReadinessPoller(clients.infra, interval_seconds=0, max_attempts=3, sleep=AsyncMock()),
            deployer=ArtifactDeployer(clients.deploy),
            verifier=DeploymentVerifier(clients.deploy),
            lookup=clients.lookup,
        )
        kwargs.update(overrides)
        return Orchestrator(**kwargs)
    return _make
