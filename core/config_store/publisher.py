# ============================================
# 📁 core/config_store/publisher.py
# ============================================
import logging
from typing import Any, Dict, Optional, Protocol

from pydantic import BaseModel, ConfigDict, ValidationError

from interfaces.types.deployment import ConfigRecord
from sdk.exceptions import BranchDeploySDKError, MalformedRecordError
from core.orchestrator.exceptions import PublishTransportError
from .file_store import FileSystemConfigStore
from .redis_store import RedisConfigStore

logger = logging.getLogger(__name__)


class ConfigStore(Protocol):
    async def put_if_absent(self, identifier: str, payload: Dict[str, Any]) -> bool:
        """Writes only if nothing is stored under `identifier`. True if this call wrote it."""
        ...

    async def get(self, identifier: str) -> Optional[Dict[str, Any]]:
        ...


class PublishAck(BaseModel):
    model_config = ConfigDict(frozen=True)

    identifier: str
    created: bool
    record: ConfigRecord # stored record, or ours when the stored one is unreadable


def store_from_url(url: str, redis_key_prefix: Optional[str] = None) -> ConfigStore:
    """`file:///abs/dir`, `file://./rel/dir` or `redis://host:port/db`."""
    if url.startswith("file://"):
        return FileSystemConfigStore(url[len("file://"):] or ".")
    if url.startswith(("redis://", "rediss://", "unix://")):
        return RedisConfigStore(redis_url=url, key_prefix=redis_key_prefix)
    raise ValueError(f"Unsupported CONFIG_STORE_URL scheme: '{url}'")


class ConfigPublisher:
    def __init__(self, store: ConfigStore):
        self.store = store

    async def publish(self, record: ConfigRecord) -> PublishAck:
        """
        Publishes the record for its identifier, at most once.

        An existing record is a conflict, reported as success with created=False. When the
        stored record differs from ours it wins and a warning is logged. A stored record
        that cannot be decoded is left in place and this run carries on with its own record.

        Raises:
            PublishTransportError: the store could not be reached or refused the write.
        """
        try:
            created = await self.store.put_if_absent(record.identifier, record.to_store_payload())
            if created:
                logger.info(f"Published config record for '{record.identifier}'.")
                return PublishAck(identifier=record.identifier, created=True, record=record)
            existing_payload = await self._read_existing(record.identifier)
        except BranchDeploySDKError as e:
            raise PublishTransportError(f"Config store unavailable for '{record.identifier}': {e}", stage="publish") from e

        existing = self._parse(existing_payload, record.identifier)
        if existing is None:
            logger.warning(
                f"Config for '{record.identifier}' already exists but could not be read back; "
                f"leaving it in place and continuing with this run's record."
            )
            return PublishAck(identifier=record.identifier, created=False, record=record)
        if not existing.same_content(record):
            logger.warning(
                f"Config for '{record.identifier}' already exists with different content; "
                f"first writer wins (stored targetName={existing.target_name}, ours={record.target_name})."
            )
        else:
            logger.info(f"Config for '{record.identifier}' already published; nothing to do.")
        return PublishAck(identifier=record.identifier, created=False, record=existing)

    async def _read_existing(self, identifier: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.store.get(identifier)
        except MalformedRecordError as e:
            logger.warning(f"Stored config for '{identifier}' is unreadable: {e}")
            return None

    @staticmethod
    def _parse(payload: Optional[Dict[str, Any]], identifier: str) -> Optional[ConfigRecord]:
        if payload is None:
            return None
        try:
            return ConfigRecord.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Stored config for '{identifier}' is malformed: {e}")
            return None
