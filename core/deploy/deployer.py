# ============================================
# 📁 core/deploy/deployer.py
# ============================================
import logging
from enum import Enum

from interfaces.types.deployment import DeploymentIdentifier
from sdk.exceptions import BranchDeploySDKError, NotFoundError
from sdk.protocols import DeployClient
from core.orchestrator.exceptions import DeployTransportError

logger = logging.getLogger(__name__)


class DeployResult(str, Enum):
    UPDATED = "Updated"
    SKIPPED_NOT_FOUND = "SkippedNotFound"


class VerifyResult(str, Enum):
    FOUND = "Found"
    NOT_FOUND = "NotFound"


class ArtifactDeployer:
    """
    Pushes a built artifact into the deploy target owned by an identifier.
    The target may not be provisioned yet; that is a skip, not an error.
    """

    def __init__(self, client: DeployClient):
        self.client = client

    async def deploy(self, identifier: DeploymentIdentifier, artifact_ref: str, target_name: str) -> DeployResult:
        try:
            if not await self.client.target_exists(target_name):
                logger.warning(f"Deploy target '{target_name}' for '{identifier.value}' does not exist yet; skipping update.")
                return DeployResult.SKIPPED_NOT_FOUND
            await self.client.update_artifact(target_name, artifact_ref)
        except NotFoundError:
            # Target vanished between the existence check and the update
            logger.warning(f"Deploy target '{target_name}' disappeared before the update; skipping.")
            return DeployResult.SKIPPED_NOT_FOUND
        except BranchDeploySDKError as e:
            raise DeployTransportError(f"Deploying {artifact_ref} to '{target_name}' failed: {e}", stage="deploy") from e
        logger.info(f"Deployed {artifact_ref} to '{target_name}' for identifier '{identifier.value}'.")
        return DeployResult.UPDATED


class DeploymentVerifier:
    def __init__(self, client: DeployClient):
        self.client = client

    async def verify(self, target_name: str) -> VerifyResult:
        try:
            found = await self.client.target_exists(target_name)
        except BranchDeploySDKError as e:
            raise DeployTransportError(f"Verifying '{target_name}' failed: {e}", stage="verify") from e
        if not found:
            logger.warning(f"Verification could not find '{target_name}'.")
            return VerifyResult.NOT_FOUND
        logger.info(f"Verified '{target_name}' exists.")
        return VerifyResult.FOUND
