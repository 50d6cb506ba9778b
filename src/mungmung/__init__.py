"""mungmung: file-backed pending alerts with desktop notifications."""

__version__ = "0.2.0"

from .exceptions import (
    ActionLaunchError,
    AlertNotFoundError,
    ConfigError,
    MungError,
    RecordCorruptError,
    StorageUnavailableError,
    StoreError,
)

__all__ = [
    "__version__",
    "MungError",
    "StoreError",
    "AlertNotFoundError",
    "StorageUnavailableError",
    "RecordCorruptError",
    "ActionLaunchError",
    "ConfigError",
]
