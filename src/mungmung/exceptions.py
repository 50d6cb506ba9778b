"""Custom exception hierarchy for mungmung.

All mungmung exceptions inherit from MungError, allowing callers
to catch broad or specific errors:

    try:
        alert = store.remove(alert_id)
    except AlertNotFoundError:
        print(f"alert not found: {alert_id}")
    except StoreError as e:
        print(f"state directory problem: {e}")
"""

from __future__ import annotations


class MungError(Exception):
    """Base exception for all mungmung errors."""


class StoreError(MungError):
    """Raised when an alert store operation fails."""


class AlertNotFoundError(StoreError):
    """Raised when no pending alert has the requested id."""

    def __init__(self, alert_id: str):
        super().__init__(f"alert not found: {alert_id}")
        self.alert_id = alert_id


class StorageUnavailableError(StoreError):
    """Raised when the state directory cannot be created or read."""


class RecordCorruptError(StoreError):
    """Raised when a single alert file cannot be read or parsed.

    The store absorbs it per record; it never reaches the caller of a
    bulk operation.
    """


class ActionLaunchError(MungError):
    """Raised when a detached subprocess (on_click, trigger) cannot be spawned."""


class ConfigError(MungError):
    """Raised when configuration is invalid."""
