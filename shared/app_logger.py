# ============================
# 📁 shared/app_logger.py
# ============================
import logging
import os
import sys
from typing import Dict, Optional

_loggers: Dict[str, logging.Logger] = {} # Cache for logger instances

DEFAULT_SERVICE_NAME = "branch-deploy"


def get_app_logger(name: str, service_name_override: Optional[str] = None) -> logging.Logger:
    """
    Retrieves or creates a standardized logger instance.
    The logger name will be 'service_name.name' unless name already is the service name.
    OpenTelemetry LoggingInstrumentor (if active) will enrich logs with trace context.
    """
    effective_service_name = service_name_override or os.getenv("SERVICE_NAME", DEFAULT_SERVICE_NAME)
    logger_full_name = f"{effective_service_name}.{name}" if name != effective_service_name else effective_service_name

    if logger_full_name in _loggers:
        return _loggers[logger_full_name]

    logger_instance = logging.getLogger(logger_full_name)

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    numeric_log_level = getattr(logging, log_level_str, logging.INFO)
    logger_instance.setLevel(numeric_log_level)

    # Only attach our handler once; basicConfig on the root logger would otherwise duplicate lines
    if not logger_instance.handlers:
        handler = logging.StreamHandler(sys.stderr)
        formatter = logging.Formatter(
            f'%(asctime)s - %(levelname)-8s - [{effective_service_name}] - %(name)s - %(message)s'
        )
        handler.setFormatter(formatter)
        logger_instance.addHandler(handler)
        logger_instance.propagate = False

    _loggers[logger_full_name] = logger_instance
    return logger_instance


def reset_app_loggers() -> None:
    """Drops cached loggers and their handlers so the next lookup rebuilds them. Used by tests."""
    for logger_instance in _loggers.values():
        for handler in list(logger_instance.handlers):
            logger_instance.removeHandler(handler)
    _loggers.clear()
