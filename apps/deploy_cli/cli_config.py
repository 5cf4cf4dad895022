# ========================================
# 📁 apps/deploy_cli/cli_config.py
# ========================================
import os
import logging
from typing import Optional, Mapping

from shared.app_config import DeployConfig

logger = logging.getLogger(__name__)

# First non-empty variable wins. Jenkins multibranch names first, then GitHub Actions.
BRANCH_ENV_VARS = ("BRANCH_NAME", "GIT_BRANCH", "GITHUB_HEAD_REF", "GITHUB_REF_NAME")
COMMIT_ENV_VARS = ("GIT_COMMIT", "GITHUB_SHA")
CHANGE_ID_ENV_VARS = ("CHANGE_ID",)


def _first_env(env: Mapping[str, str], names) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value:
            return value
    return None


class CLIConfig:
    def __init__(self, env: Optional[Mapping[str, str]] = None):
        env = env if env is not None else os.environ
        self.branch: Optional[str] = _first_env(env, BRANCH_ENV_VARS)
        self.commit: Optional[str] = _first_env(env, COMMIT_ENV_VARS)
        self.change_id: Optional[str] = _first_env(env, CHANGE_ID_ENV_VARS)
        self.artifact_ref: Optional[str] = env.get("ARTIFACT_REF") or None
        self.repo_path: str = env.get("WORKSPACE") or os.getcwd()
        self.deploy: DeployConfig = DeployConfig(env)

        if not self.branch:
            logger.debug("No CI branch variable set; --branch or git discovery will be needed.")


cli_config_instance = CLIConfig()
