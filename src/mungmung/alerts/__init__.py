"""Pending alerts: data models, metadata filters, and file storage."""

from .filters import matches, replacement_query
from .models import Alert, AlertQuery, generate_alert_id
from .store import AlertStore

__all__ = [
    "Alert",
    "AlertQuery",
    "AlertStore",
    "generate_alert_id",
    "matches",
    "replacement_query",
]
