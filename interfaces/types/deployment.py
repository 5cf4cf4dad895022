# ==========================================
# 📁 interfaces/types/deployment.py
# ==========================================
import datetime
import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")

_BRANCH_PREFIXES = ("refs/heads/", "refs/remotes/origin/", "origin/")


def utc_now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec='milliseconds').replace("+00:00", "Z")


class DerivationMethod(str, Enum):
    PLATFORM_CHANGE_ID = "PlatformChangeId"
    API_LOOKUP = "ApiLookup"
    PATTERN_MATCH = "PatternMatch"
    TRAILING_NUMBER = "TrailingNumber"
    HASH_FALLBACK = "HashFallback"


class InfrastructureStatus(str, Enum):
    UNKNOWN = "Unknown"
    PROVISIONING = "Provisioning"
    READY = "Ready"
    FAILED = "Failed"


class InfraStackStatus(str, Enum):
    """Raw status reported by the provisioning backend."""
    IN_PROGRESS = "InProgress"
    COMPLETE = "Complete"
    FAILED = "Failed"
    NOT_FOUND = "NotFound"


class BranchEvent(BaseModel):
    """One triggering webhook/checkout. Created once, never mutated."""
    model_config = ConfigDict(frozen=True)

    ref: str
    change_id: Optional[str] = None
    commit_sha: Optional[str] = None
    repository: Optional[str] = None # "owner/repo"
    source: str = "cli" # cli | webhook | github

    @property
    def branch(self) -> str:
        return normalize_ref(self.ref)


def normalize_ref(ref: str) -> str:
    branch = (ref or "").strip()
    for prefix in _BRANCH_PREFIXES:
        if branch.startswith(prefix):
            branch = branch[len(prefix):]
            break
    return branch


class DeploymentIdentifier(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    method: DerivationMethod
    source_branch: str = ""

    @field_validator("value")
    @classmethod
    def _charset(cls, v: str) -> str:
        if not v or not IDENTIFIER_PATTERN.match(v):
            raise ValueError(f"Deployment identifier '{v}' must be non-empty and match [A-Za-z0-9-]+")
        return v

    def __str__(self) -> str:
        return self.value


class ResourceNames(BaseModel):
    """Names of every resource owned by one identifier."""
    model_config = ConfigDict(frozen=True)

    artifact_package_name: str
    target_name: str
    storage_target_name: str
    provisioning_name: str


class ConfigRecord(BaseModel):
    """Per-identifier record in the shared config store. Append-only."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    identifier: str
    artifact_package_name: str = Field(alias="artifactPackageName")
    target_name: str = Field(alias="targetName")
    storage_target_name: str = Field(alias="storageTargetName")
    provisioning_name: str = Field(alias="provisioningName")
    created_at: str = Field(default_factory=utc_now_iso, alias="createdAt")

    @classmethod
    def for_identifier(cls, identifier: DeploymentIdentifier, names: ResourceNames) -> "ConfigRecord":
        return cls(
            identifier=identifier.value,
            artifact_package_name=names.artifact_package_name,
            target_name=names.target_name,
            storage_target_name=names.storage_target_name,
            provisioning_name=names.provisioning_name,
        )

    def to_store_payload(self) -> dict:
        return self.model_dump(by_alias=True)

    def same_content(self, other: "ConfigRecord") -> bool:
        """Equality ignoring the creation timestamp."""
        return self.model_dump(exclude={"created_at"}) == other.model_dump(exclude={"created_at"})


class RunContext(BaseModel):
    """
    Immutable value threaded through every orchestration stage.
    Stages derive new contexts with model_copy(update=...) instead of mutating this one.
    """
    model_config = ConfigDict(frozen=True)

    run_id: str
    event: BranchEvent
    identifier: Optional[DeploymentIdentifier] = None
    names: Optional[ResourceNames] = None
    record: Optional[ConfigRecord] = None
    artifact_ref: Optional[str] = None

    def require_identifier(self) -> DeploymentIdentifier:
        if self.identifier is None:
            raise ValueError(f"Run {self.run_id}: identifier not resolved yet")
        return self.identifier

    def require_names(self) -> ResourceNames:
        if self.names is None:
            raise ValueError(f"Run {self.run_id}: resource names not derived yet")
        return self.names
