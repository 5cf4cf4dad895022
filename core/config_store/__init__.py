from .file_store import FileSystemConfigStore
from .redis_store import RedisConfigStore
from .publisher import ConfigPublisher, ConfigStore, PublishAck, store_from_url

__all__ = [
    "ConfigPublisher", "ConfigStore", "PublishAck", "store_from_url",
    "FileSystemConfigStore", "RedisConfigStore",
]
