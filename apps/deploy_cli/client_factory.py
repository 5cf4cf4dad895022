# ==============================================
# 📁 apps/deploy_cli/client_factory.py
# ==============================================
import logging
from typing import Optional

from core.orchestrator.factory import DeployClients, build_clients, build_orchestrator
from core.orchestrator.main_orchestrator import Orchestrator
from .cli_config import cli_config_instance

logger = logging.getLogger(__name__)
_clients_instance: Optional[DeployClients] = None


def get_deploy_clients() -> DeployClients:
    """
    Provides a singleton DeployClients bundle, configured from the CI environment via CLIConfig.
    """
    global _clients_instance
    if _clients_instance is None:
        try:
            _clients_instance = build_clients(cli_config_instance.deploy, repo_path=cli_config_instance.repo_path)
        except ValueError as ve:
            logger.error(f"ValueError during client initialization: {ve}")
            raise
        logger.info(f"Deploy clients initialized for CLI (region={cli_config_instance.deploy.aws_region})")
    return _clients_instance


def get_orchestrator() -> Orchestrator:
    return build_orchestrator(cli_config_instance.deploy, get_deploy_clients())


async def close_deploy_clients():
    """Closes the HTTP clients if they were initialized."""
    global _clients_instance
    if _clients_instance:
        try:
            await _clients_instance.aclose()
            logger.debug("Deploy clients closed by CLI.")
        finally:
            _clients_instance = None # Reset for potential re-init
