import logging

# --- Client errors ---
from .exceptions import (
    BranchDeploySDKError, APIError, AuthenticationError,
    NotFoundError, RequestTimeoutError, CommandError, StoreError, MalformedRecordError,
)
from .models import JobStatus
from .protocols import VcsClient, LookupClient, JobClient, InfraStatusClient, DeployClient

# --- Concrete clients ---
from .git_client import GitVcsClient
from .github_client import GitHubLookupClient
from .jenkins_client import JenkinsJobClient
from .aws_clients import CloudFormationStatusClient, LambdaDeployClient

# Configure logging to prevent "No handler found" warnings
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "BranchDeploySDKError",
    "APIError",
    "AuthenticationError",
    "NotFoundError",
    "RequestTimeoutError",
    "CommandError",
    "StoreError",
    "MalformedRecordError",
    "JobStatus",
    "VcsClient",
    "LookupClient",
    "JobClient",
    "InfraStatusClient",
    "DeployClient",
    "GitVcsClient",
    "GitHubLookupClient",
    "JenkinsJobClient",
    "CloudFormationStatusClient",
    "LambdaDeployClient",
]
