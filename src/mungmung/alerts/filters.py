"""Metadata filter engine: decides whether an alert satisfies a query."""

from __future__ import annotations

from .models import Alert, AlertQuery


def _member(value: str | None, candidates: frozenset[str]) -> bool:
    if not candidates:
        return True
    return value is not None and value in candidates


def matches(query: AlertQuery, alert: Alert) -> bool:
    """Return True if ``alert`` satisfies every constrained dimension of ``query``.

    Tags match when the alert shares at least one tag with the query.
    Absent alert fields fail any constrained dimension; never raises.
    """
    if query.tags and query.tags.isdisjoint(alert.tags):
        return False
    return (
        _member(alert.source, query.sources)
        and _member(alert.session, query.sessions)
        and _member(alert.kind, query.kinds)
        and _member(alert.dedupe_key, query.dedupe_keys)
    )


def replacement_query(candidate: Alert) -> AlertQuery | None:
    """Query selecting the records a deduping candidate replaces.

    With a session, only records in the same session are in scope;
    without one, every record sharing the dedupe key is.
    Returns None when the candidate has no dedupe key.
    """
    if not candidate.dedupe_key:
        return None
    return AlertQuery(
        dedupe_keys={candidate.dedupe_key},
        sessions={candidate.session} if candidate.session else (),
    )
