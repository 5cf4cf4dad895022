"""
naming.py
Per-identifier resource names rendered from `{identifier}` templates.
"""
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict

from interfaces.types.deployment import ResourceNames

_STORAGE_INVALID = re.compile(r"[^a-z0-9.-]+")


class NamingTemplates(BaseModel):
    model_config = ConfigDict(frozen=True)

    target: str = "api-handler-{identifier}"
    provisioning: str = "api-handler-stack-{identifier}"
    storage: str = "api-responses-{identifier}"
    artifact_package: str = "api-handler-{identifier}.zip"

    @classmethod
    def from_config(cls, config) -> "NamingTemplates":
        return cls(
            target=config.target_name_template,
            provisioning=config.stack_name_template,
            storage=config.storage_name_template,
            artifact_package=config.artifact_package_template,
        )

    def render(self, identifier: str) -> ResourceNames:
        return ResourceNames(
            artifact_package_name=self.artifact_package.format(identifier=identifier),
            target_name=self.target.format(identifier=identifier),
            # Bucket names only allow lowercase
            storage_target_name=_STORAGE_INVALID.sub("-", self.storage.format(identifier=identifier).lower()),
            provisioning_name=self.provisioning.format(identifier=identifier),
        )


def default_artifact_ref(bucket: Optional[str], package_name: str) -> Optional[str]:
    if not bucket:
        return None
    return f"s3://{bucket}/{package_name}"
