from .deployer import ArtifactDeployer, DeploymentVerifier, DeployResult, VerifyResult

__all__ = ["ArtifactDeployer", "DeploymentVerifier", "DeployResult", "VerifyResult"]
