# =====================
# 📁 sdk/aws_clients.py
# =====================
import asyncio
import logging
from pathlib import Path
from typing import Optional, Tuple, Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, EndpointConnectionError, NoCredentialsError

from interfaces.types.deployment import InfraStackStatus
from .exceptions import APIError, AuthenticationError, NotFoundError, RequestTimeoutError
from .models import SDKLambdaTarget, SDKStackSummary

logger = logging.getLogger(__name__)

AUTH_ERROR_CODES = {
    "AccessDenied", "AccessDeniedException", "UnrecognizedClientException",
    "InvalidClientTokenId", "ExpiredToken", "ExpiredTokenException", "SignatureDoesNotMatch",
}
NOT_FOUND_ERROR_CODES = {"ResourceNotFoundException", "NoSuchKey", "NoSuchBucket"}

BOTO_CONFIG = Config(retries={"max_attempts": 3, "mode": "standard"})


def translate_boto_error(error: Exception, operation: str) -> Exception:
    """Maps botocore failures onto the sdk exception hierarchy."""
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "")
        message = error.response.get("Error", {}).get("Message", str(error))
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if code in AUTH_ERROR_CODES:
            return AuthenticationError(message=f"{operation}: {message}", status_code=status or 403, error_body=code)
        if code in NOT_FOUND_ERROR_CODES:
            return NotFoundError(message=f"{operation}: {message}", status_code=status or 404, error_body=code)
        return APIError(message=f"{operation} failed: {code} {message}", status_code=status, error_body=code)
    if isinstance(error, NoCredentialsError):
        return AuthenticationError(message=f"{operation}: no AWS credentials available")
    if isinstance(error, EndpointConnectionError):
        return RequestTimeoutError(message=f"{operation}: {error}")
    return APIError(message=f"{operation} failed: {error}")


def parse_artifact_ref(artifact_ref: str) -> Tuple[Optional[str], str]:
    """'s3://bucket/key' -> (bucket, key); anything else is a local zip path -> (None, path)."""
    if artifact_ref.startswith("s3://"):
        bucket, _, key = artifact_ref[len("s3://"):].partition("/")
        if not bucket or not key:
            raise ValueError(f"Malformed S3 artifact reference '{artifact_ref}'")
        return bucket, key
    return None, artifact_ref


class CloudFormationStatusClient:
    """Reads the provisioning state of a CloudFormation stack."""

    def __init__(self, region_name: str = "us-east-1", client: Any = None):
        self._cfn = client or boto3.client("cloudformation", region_name=region_name, config=BOTO_CONFIG)

    def _describe(self, stack_name: str) -> Optional[SDKStackSummary]:
        try:
            response = self._cfn.describe_stacks(StackName=stack_name)
        except ClientError as e:
            error = e.response.get("Error", {})
            if error.get("Code") == "ValidationError" and "does not exist" in error.get("Message", ""):
                return None
            raise
        stacks = response.get("Stacks", [])
        if not stacks:
            return None
        stack = stacks[0]
        return SDKStackSummary(stack_name=stack["StackName"], stack_status=stack["StackStatus"],
                               outputs=stack.get("Outputs", []))

    async def get_status(self, provisioning_name: str) -> InfraStackStatus:
        try:
            summary = await asyncio.to_thread(self._describe, provisioning_name)
        except (ClientError, BotoCoreError) as e:
            raise translate_boto_error(e, f"describe_stacks({provisioning_name})") from e
        if summary is None:
            return InfraStackStatus.NOT_FOUND
        return map_stack_status(summary["stack_status"])


def map_stack_status(stack_status: str) -> InfraStackStatus:
    # A failed update rolls back to the previous working stack, which is usable
    if stack_status == "UPDATE_ROLLBACK_COMPLETE":
        return InfraStackStatus.COMPLETE
    if stack_status.endswith("_FAILED") or stack_status in ("ROLLBACK_COMPLETE", "DELETE_COMPLETE"):
        return InfraStackStatus.FAILED
    if stack_status.endswith("_IN_PROGRESS"):
        return InfraStackStatus.IN_PROGRESS
    if stack_status.endswith("_COMPLETE"):
        return InfraStackStatus.COMPLETE
    logger.warning(f"Unrecognized stack status '{stack_status}'. Treating as in progress.")
    return InfraStackStatus.IN_PROGRESS


class LambdaDeployClient:
    """Existence checks and code updates for Lambda functions."""

    def __init__(self, region_name: str = "us-east-1", client: Any = None, wait_for_update: bool = True):
        self._lambda = client or boto3.client("lambda", region_name=region_name, config=BOTO_CONFIG)
        self.wait_for_update = wait_for_update

    def _get_function(self, target_name: str) -> Optional[SDKLambdaTarget]:
        try:
            response = self._lambda.get_function(FunctionName=target_name)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ResourceNotFoundException":
                return None
            raise
        configuration = response.get("Configuration", {})
        return SDKLambdaTarget(
            function_name=configuration.get("FunctionName", target_name),
            state=configuration.get("State"),
            last_update_status=configuration.get("LastUpdateStatus"),
            code_sha256=configuration.get("CodeSha256"),
        )

    async def describe_target(self, target_name: str) -> Optional[SDKLambdaTarget]:
        try:
            return await asyncio.to_thread(self._get_function, target_name)
        except (ClientError, BotoCoreError) as e:
            raise translate_boto_error(e, f"get_function({target_name})") from e

    async def target_exists(self, target_name: str) -> bool:
        target = await self.describe_target(target_name)
        if target is not None:
            logger.debug(f"Lambda '{target_name}' state={target['state']} last_update={target['last_update_status']}")
        return target is not None

    def _update_code(self, target_name: str, artifact_ref: str) -> str:
        bucket, key_or_path = parse_artifact_ref(artifact_ref)
        if bucket:
            response = self._lambda.update_function_code(FunctionName=target_name, S3Bucket=bucket, S3Key=key_or_path, Publish=True)
        else:
            response = self._lambda.update_function_code(FunctionName=target_name, ZipFile=Path(key_or_path).read_bytes(), Publish=True)
        if self.wait_for_update:
            self._lambda.get_waiter("function_updated_v2").wait(FunctionName=target_name)
        return response.get("CodeSha256", "")

    async def update_artifact(self, target_name: str, artifact_ref: str) -> None:
        try:
            code_sha = await asyncio.to_thread(self._update_code, target_name, artifact_ref)
        except (ClientError, BotoCoreError) as e:
            raise translate_boto_error(e, f"update_function_code({target_name})") from e
        except (OSError, ValueError) as e:
            raise APIError(message=f"Cannot read artifact '{artifact_ref}': {e}") from e
        logger.info(f"Lambda '{target_name}' updated from {artifact_ref} (CodeSha256={code_sha})")
