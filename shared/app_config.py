# ============================
# 📁 shared/app_config.py
# ============================
import os
import logging
from typing import Optional, Any, Mapping

logger = logging.getLogger(__name__)

TRUE_VALUES = ['true', '1', 't', 'y', 'yes']


class DeployConfig:
    """
    Environment-driven settings for the deploy engine.
    Read once; everything downstream receives explicit values from this object.
    """

    def __init__(self, env: Optional[Mapping[str, str]] = None):
        self._env: Mapping[str, str] = env if env is not None else os.environ

        # General Application Settings
        self.service_name: str = self._get("SERVICE_NAME", "branch-deploy")
        self.environment: str = self._get("APP_ENV", "development").lower()
        self.log_level: str = self._get("LOG_LEVEL", "INFO").upper()
        self.otel_exporter_otlp_traces_endpoint: Optional[str] = self._get("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")

        # Proposal lookup (GitHub pulls API)
        self.github_api_url: str = self._get("GITHUB_API_URL", "https://api.github.com")
        self.github_repository: Optional[str] = self._get("GITHUB_REPOSITORY") # "owner/repo"
        self.github_token: Optional[str] = self._get("GITHUB_TOKEN")
        self.lookup_retry_attempts: int = self._get_int_env("LOOKUP_RETRY_ATTEMPTS", 3)

        # Downstream infrastructure job (Jenkins)
        self.jenkins_url: Optional[str] = self._get("JENKINS_URL")
        self.jenkins_user: Optional[str] = self._get("JENKINS_USER")
        self.jenkins_api_token: Optional[str] = self._get("JENKINS_API_TOKEN")
        self.infra_job_name: str = self._get("INFRA_JOB_NAME", "infrastructure-provision")
        self.infra_job_parameter: str = self._get("INFRA_JOB_PARAMETER", "DEPLOYMENT_ID")
        self.infra_job_wait: bool = self._get_bool_env("INFRA_JOB_WAIT", False)
        self.infra_job_timeout_seconds: float = self._get_float_env("INFRA_JOB_TIMEOUT_SECONDS", 1800.0)

        # Cloud target
        self.aws_region: str = self._get("AWS_REGION", "us-east-1")

        # Readiness polling
        self.poll_interval_seconds: float = self._get_float_env("POLL_INTERVAL_SECONDS", 30.0)
        self.poll_max_attempts: int = self._get_int_env("POLL_MAX_ATTEMPTS", 20)
        self.poll_deadline_seconds: Optional[float] = self._get_optional_float_env("POLL_DEADLINE_SECONDS")
        self.poll_backoff_multiplier: float = self._get_float_env("POLL_BACKOFF_MULTIPLIER", 1.0)
        self.poll_max_interval_seconds: float = self._get_float_env("POLL_MAX_INTERVAL_SECONDS", 300.0)

        # Shared configuration store
        self.config_store_url: str = self._get("CONFIG_STORE_URL", "file://./deploy-configs")
        self.config_store_redis_prefix: str = self._get("CONFIG_STORE_REDIS_PREFIX", "branch_deploy:config:")

        # Resource naming
        self.target_name_template: str = self._get("TARGET_NAME_TEMPLATE", "api-handler-{identifier}")
        self.stack_name_template: str = self._get("STACK_NAME_TEMPLATE", "api-handler-stack-{identifier}")
        self.storage_name_template: str = self._get("STORAGE_NAME_TEMPLATE", "api-responses-{identifier}")
        self.artifact_package_template: str = self._get("ARTIFACT_PACKAGE_TEMPLATE", "api-handler-{identifier}.zip")
        self.artifact_bucket: Optional[str] = self._get("ARTIFACT_BUCKET")
        self.identifier_hash_length: int = self._get_int_env("IDENTIFIER_HASH_LENGTH", 7)

        self.run_timeout_seconds: Optional[float] = self._get_optional_float_env("RUN_TIMEOUT_SECONDS")

        # Webhook receiver
        self.github_webhook_secret: Optional[str] = self._get("GITHUB_WEBHOOK_SECRET")
        self.run_history_limit: int = self._get_int_env("RUN_HISTORY_LIMIT", 500)

        self._validate_critical_configs()

    def _get(self, var_name: str, default: Optional[str] = None) -> Any:
        val = self._env.get(var_name)
        if val is None or val == "":
            return default
        return val

    def _get_bool_env(self, var_name: str, default: bool) -> bool:
        val = self._env.get(var_name)
        if val is None:
            return default
        return val.lower() in TRUE_VALUES

    def _get_int_env(self, var_name: str, default: int) -> int:
        val = self._env.get(var_name)
        if not val:
            return default
        try:
            return int(val)
        except ValueError:
            logger.warning(f"{var_name}='{val}' is not an integer. Using default {default}.")
            return default

    def _get_float_env(self, var_name: str, default: float) -> float:
        parsed = self._get_optional_float_env(var_name)
        return default if parsed is None else parsed

    def _get_optional_float_env(self, var_name: str) -> Optional[float]:
        val = self._env.get(var_name)
        if not val:
            return None
        try:
            return float(val)
        except ValueError:
            logger.warning(f"{var_name}='{val}' is not a number. Ignoring it.")
            return None

    def _validate_critical_configs(self):
        if not self.github_repository:
            logger.warning("GITHUB_REPOSITORY is not set. Proposal lookup will be skipped during identifier resolution.")
        if not self.jenkins_url:
            logger.warning("JENKINS_URL is not set. The infrastructure job cannot be triggered.")
        if self.poll_max_attempts < 1:
            logger.warning(f"POLL_MAX_ATTEMPTS={self.poll_max_attempts} is below 1. Using 1.")
            self.poll_max_attempts = 1
        if self.identifier_hash_length < 1:
            logger.warning(f"IDENTIFIER_HASH_LENGTH={self.identifier_hash_length} is below 1. Using 7.")
            self.identifier_hash_length = 7
        if self.run_history_limit < 1:
            logger.warning(f"RUN_HISTORY_LIMIT={self.run_history_limit} is below 1. Using 1.")
            self.run_history_limit = 1

    def get(self, key: str, default: Optional[Any] = None) -> Optional[Any]:
        """Generic getter for config values by attribute name."""
        return getattr(self, key, default)


# Singleton instance for easy access across the application
app_config = DeployConfig()
