# ============================================
# 📁 core/config_store/file_store.py
# ============================================
import asyncio
import json
import logging
import os
import tempfile
from typing import Any, Dict, Optional

from sdk.exceptions import MalformedRecordError, StoreError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"


class FileSystemConfigStore:
    """
    One directory per identifier: <root>/<identifier>/config.json.
    The record is written to a temp file and hard-linked into place, so the first
    writer wins and a reader never sees a partial record.
    """

    def __init__(self, root_dir: str):
        self.root_dir = os.path.abspath(root_dir)

    def path_for(self, identifier: str) -> str:
        return os.path.join(self.root_dir, identifier, CONFIG_FILE_NAME)

    async def put_if_absent(self, identifier: str, payload: Dict[str, Any]) -> bool:
        return await asyncio.to_thread(self._put_if_absent_sync, identifier, payload)

    async def get(self, identifier: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._get_sync, identifier)

    def _put_if_absent_sync(self, identifier: str, payload: Dict[str, Any]) -> bool:
        path = self.path_for(identifier)
        directory = os.path.dirname(path)
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Could not create config directory for '{identifier}' under {self.root_dir}: {e}") from e

        # Readers never see a partial file: the record is written in full, then linked into place
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=".config-", suffix=".tmp", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.link(tmp_path, path)
        except FileExistsError:
            logger.debug(f"Config for '{identifier}' already exists at {path}")
            return False
        except OSError as e:
            raise StoreError(f"Could not write config for '{identifier}' to {path}: {e}") from e
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except FileNotFoundError:
                    pass
        logger.debug(f"Wrote config for '{identifier}' to {path}")
        return True

    def _get_sync(self, identifier: str) -> Optional[Dict[str, Any]]:
        path = self.path_for(identifier)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedRecordError(f"Config for '{identifier}' at {path} is not valid JSON: {e}") from e
        except OSError as e:
            raise StoreError(f"Could not read config for '{identifier}' from {path}: {e}") from e
