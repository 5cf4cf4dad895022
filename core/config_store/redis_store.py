# ============================================
# 📁 core/config_store/redis_store.py
# ============================================
import asyncio
import json
import logging
from typing import Any, Dict, Optional

import redis # For Redis client and exceptions

from sdk.exceptions import MalformedRecordError, StoreError

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "branch_deploy:config:"


class RedisConfigStore:
    """Config records as JSON strings, written with SET NX so only the first writer lands."""

    def __init__(self, redis_url: Optional[str] = None, key_prefix: Optional[str] = None, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.key_prefix = key_prefix or DEFAULT_KEY_PREFIX
        if client is not None:
            self.redis_client = client
        elif redis_url:
            # decode_responses=False to handle bytes consistently
            self.redis_client = redis.from_url(redis_url, decode_responses=False)
            logger.info(f"RedisConfigStore using {redis_url} with prefix '{self.key_prefix}'")
        else:
            raise ValueError("RedisConfigStore needs a redis_url or a client")

    def _get_full_key(self, identifier: str) -> str:
        return f"{self.key_prefix}{identifier}"

    async def put_if_absent(self, identifier: str, payload: Dict[str, Any]) -> bool:
        full_key = self._get_full_key(identifier)
        serialized_value = json.dumps(payload).encode('utf-8')
        try:
            created = await asyncio.to_thread(self.redis_client.set, full_key, serialized_value, nx=True)
        except redis.exceptions.RedisError as e:
            raise StoreError(f"Redis error setting config for key '{full_key}': {e}") from e
        logger.debug(f"SET NX '{full_key}' -> {'created' if created else 'exists'}")
        return bool(created)

    async def get(self, identifier: str) -> Optional[Dict[str, Any]]:
        full_key = self._get_full_key(identifier)
        try:
            raw_value: Optional[bytes] = await asyncio.to_thread(self.redis_client.get, full_key)
        except redis.exceptions.RedisError as e:
            raise StoreError(f"Redis error getting config for key '{full_key}': {e}") from e
        if raw_value is None:
            logger.debug(f"No value found for key '{full_key}'")
            return None
        try:
            return json.loads(raw_value.decode('utf-8'))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedRecordError(f"Failed to decode JSON for key '{full_key}': {e}. Raw (first 100 bytes): {raw_value[:100]}") from e
