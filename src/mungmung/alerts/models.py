"""Pydantic models for pending alerts and alert queries."""

from __future__ import annotations

import json
import secrets
import time
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator


def generate_alert_id() -> str:
    """Generate an alert id: ``<unix_seconds>_<8 hex chars>``.

    The timestamp prefix keeps ids sortable by creation time; the random
    suffix separates alerts created within the same second.
    """
    return f"{int(time.time())}_{secrets.token_hex(4)}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _clean_optional(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _clean_values(values: Any) -> list[str]:
    """Trim values, drop blanks and duplicates, keep first-seen order."""
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    cleaned: list[str] = []
    for value in values:
        text = _clean_optional(value)
        if text and text not in cleaned:
            cleaned.append(text)
    return cleaned


class Alert(BaseModel):
    """A single pending alert, persisted as ``alerts/<id>.json``.

    ``id`` and ``created_at`` stay unset on a candidate until the store
    inserts it.
    """

    id: str = ""
    title: str
    message: str
    on_click: str | None = None  # Shell command, run verbatim on click
    icon: str | None = None  # Emoji, SF Symbol name, or image path
    sound: str | None = None  # "default" or a named sound; None = silent
    tags: list[str] = Field(default_factory=list)
    source: str | None = None  # Producing adapter, e.g. "pi-agent"
    session: str | None = None  # Correlation/run id, narrows dedupe scope
    kind: str | None = None  # Alert class, e.g. "update" | "action"
    dedupe_key: str | None = None
    created_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_group(cls, data: Any) -> Any:
        # Records written before tags existed carry a single "group" string.
        if isinstance(data, dict) and data.get("tags") is None and "group" in data:
            data = dict(data)
            group = data.pop("group")
            data["tags"] = [group] if group else []
        return data

    @field_validator("source", "session", "kind", "dedupe_key", mode="before")
    @classmethod
    def _strip_metadata(cls, value: Any) -> str | None:
        return _clean_optional(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value: Any) -> list[str]:
        return _clean_values(value)

    @field_validator("created_at")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @field_serializer("created_at")
    def _serialize_created_at(self, value: datetime | None) -> str | None:
        if value is None:
            return None
        # Whole seconds: readers sharing the directory reject fractional seconds.
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")

    def age(self, now: datetime | None = None) -> str:
        """Human-readable age, e.g. ``"42s"``, ``"5m"``, ``"2h"``, ``"3d"``."""
        if self.created_at is None:
            return "-"
        seconds = max(0, int(((now or utc_now()) - self.created_at).total_seconds()))
        if seconds < 60:
            return f"{seconds}s"
        if seconds < 3600:
            return f"{seconds // 60}m"
        if seconds < 86400:
            return f"{seconds // 3600}h"
        return f"{seconds // 86400}d"

    def to_record(self) -> dict[str, Any]:
        """Wire form: JSON-safe dict with absent optional fields omitted."""
        return self.model_dump(mode="json", exclude_none=True)

    def to_json(self) -> str:
        return json.dumps(self.to_record(), indent=2, sort_keys=True, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str | bytes) -> Alert:
        return cls.model_validate_json(text)


class AlertQuery(BaseModel):
    """Metadata filter: one optional set of candidate values per dimension.

    Values within a dimension are OR-ed, constrained dimensions are AND-ed,
    and an empty query matches every alert.
    """

    tags: frozenset[str] = frozenset()
    sources: frozenset[str] = frozenset()
    sessions: frozenset[str] = frozenset()
    kinds: frozenset[str] = frozenset()
    dedupe_keys: frozenset[str] = frozenset()

    @field_validator("*", mode="before")
    @classmethod
    def _clean(cls, value: Any) -> frozenset[str]:
        return frozenset(_clean_values(value))

    @classmethod
    def build(
        cls,
        tags: Iterable[str] = (),
        sources: Iterable[str] = (),
        sessions: Iterable[str] = (),
        kinds: Iterable[str] = (),
        dedupe_keys: Iterable[str] = (),
    ) -> AlertQuery:
        return cls(
            tags=tags,
            sources=sources,
            sessions=sessions,
            kinds=kinds,
            dedupe_keys=dedupe_keys,
        )

    def is_empty(self) -> bool:
        return not (
            self.tags or self.sources or self.sessions or self.kinds or self.dedupe_keys
        )

    def describe(self) -> str:
        """Compact summary for lifecycle logs."""
        return (
            f"tags={len(self.tags)} sources={len(self.sources)} "
            f"sessions={len(self.sessions)} kinds={len(self.kinds)} "
            f"dedupe={len(self.dedupe_keys)}"
        )
