# ===================================
# 📁 interfaces/__init__.py
# ===================================
from .types.deployment import (
    BranchEvent,
    DerivationMethod,
    DeploymentIdentifier,
    InfrastructureStatus,
    InfraStackStatus,
    ResourceNames,
    ConfigRecord,
    RunContext,
)

__all__ = [
    "BranchEvent",
    "DerivationMethod",
    "DeploymentIdentifier",
    "InfrastructureStatus",
    "InfraStackStatus",
    "ResourceNames",
    "ConfigRecord",
    "RunContext",
]
