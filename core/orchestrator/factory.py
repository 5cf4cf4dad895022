"""
factory.py
Builds concrete clients and a wired Orchestrator from a DeployConfig.
The environment is read only here and in shared.app_config.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from shared.app_config import DeployConfig
from sdk import (
    GitVcsClient,
    GitHubLookupClient,
    JenkinsJobClient,
    CloudFormationStatusClient,
    LambdaDeployClient,
)
from sdk.protocols import VcsClient, LookupClient, JobClient, InfraStatusClient, DeployClient
from core.identifier.extractor import IdentifierExtractor
from core.config_store.publisher import ConfigPublisher, store_from_url
from core.jobs.invoker import DownstreamJobInvoker
from core.readiness.poller import ReadinessPoller
from core.deploy.deployer import ArtifactDeployer, DeploymentVerifier
from .main_orchestrator import Orchestrator
from .naming import NamingTemplates

logger = logging.getLogger(__name__)


@dataclass
class DeployClients:
    vcs: Optional[VcsClient]
    lookup: Optional[LookupClient]
    jobs: Optional[JobClient]
    infra: InfraStatusClient
    deploy: DeployClient

    async def aclose(self) -> None:
        for client in (self.lookup, self.jobs):
            close = getattr(client, "close", None)
            if close is not None:
                await close()


def build_clients(config: DeployConfig, repo_path: Optional[str] = None) -> DeployClients:
    lookup = None
    if config.github_repository:
        lookup = GitHubLookupClient(
            repository=config.github_repository,
            base_url=config.github_api_url,
            token=config.github_token,
            retry_attempts=config.lookup_retry_attempts,
        )
    else:
        logger.info("No GITHUB_REPOSITORY configured; identifier resolution will not consult proposal lookup.")

    jobs = None
    if config.jenkins_url:
        jobs = JenkinsJobClient(base_url=config.jenkins_url, user=config.jenkins_user, api_token=config.jenkins_api_token)

    return DeployClients(
        vcs=GitVcsClient(repo_path=repo_path),
        lookup=lookup,
        jobs=jobs,
        infra=CloudFormationStatusClient(region_name=config.aws_region),
        deploy=LambdaDeployClient(region_name=config.aws_region),
    )


def build_orchestrator(config: DeployConfig, clients: DeployClients) -> Orchestrator:
    return Orchestrator(
        extractor=IdentifierExtractor(vcs=clients.vcs, hash_length=config.identifier_hash_length),
        publisher=ConfigPublisher(store_from_url(config.config_store_url, config.config_store_redis_prefix)),
        invoker=DownstreamJobInvoker(
            clients.jobs,
            job_name=config.infra_job_name,
            parameter_name=config.infra_job_parameter,
            wait_timeout_seconds=config.infra_job_timeout_seconds,
        ),
        poller=ReadinessPoller(
            clients.infra,
            interval_seconds=config.poll_interval_seconds,
            max_attempts=config.poll_max_attempts,
            deadline_seconds=config.poll_deadline_seconds,
            backoff_multiplier=config.poll_backoff_multiplier,
            max_interval_seconds=config.poll_max_interval_seconds,
        ),
        deployer=ArtifactDeployer(clients.deploy),
        verifier=DeploymentVerifier(clients.deploy),
        naming=NamingTemplates.from_config(config),
        lookup=clients.lookup,
        wait_for_job=config.infra_job_wait,
        artifact_bucket=config.artifact_bucket,
        run_timeout_seconds=config.run_timeout_seconds,
    )
