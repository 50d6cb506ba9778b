"""File-per-alert persistence for pending alerts."""

from __future__ import annotations

import contextlib
import logging
import os
import re
import tempfile
from collections.abc import Callable, Iterator
from pathlib import Path

from pydantic import ValidationError

from ..exceptions import (
    AlertNotFoundError,
    RecordCorruptError,
    StorageUnavailableError,
    StoreError,
)
from .filters import matches, replacement_query
from .models import Alert, AlertQuery, generate_alert_id, utc_now

logger = logging.getLogger("mung.store")

RECORD_SUFFIX = ".json"

# Ids double as file names: no separators, no leading dot.
_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def _sort_key(alert: Alert) -> tuple:
    return (alert.created_at, alert.id)


def _reason(error: OSError) -> str:
    return error.strerror or type(error).__name__


class AlertStore:
    """Pending alerts stored as ``<state_dir>/alerts/<id>.json``.

    Records are published via a hidden temp file and ``os.replace``, so
    readers see a record either complete or not at all. Nothing locks
    across records: two processes adding the same dedupe scope at the
    same moment may both insert.
    """

    def __init__(self, state_dir: str | Path) -> None:
        self._base_dir = Path(state_dir).expanduser()
        self._alerts_dir = self._base_dir / "alerts"

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    @property
    def alerts_dir(self) -> Path:
        return self._alerts_dir

    def ensure_directory(self) -> None:
        """Create the alerts directory (and parents) if missing."""
        try:
            self._alerts_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(
                f"cannot create state directory ({_reason(e)})"
            ) from e

    # ── Queries ────────────────────────────────────────────────

    def iter_matching(self, query: AlertQuery | None = None) -> Iterator[Alert]:
        """Lazily yield every readable alert matching ``query`` (unordered).

        Each call re-reads the directory; unreadable records are skipped.
        """
        query = query or AlertQuery()
        for alert in self._load_all():
            if matches(query, alert):
                yield alert

    def query(self, query: AlertQuery | None = None) -> list[Alert]:
        """Matching alerts, oldest first."""
        return sorted(self.iter_matching(query), key=_sort_key)

    def count(self, query: AlertQuery | None = None) -> int:
        return sum(1 for _ in self.iter_matching(query))

    def get(self, alert_id: str) -> Alert:
        """Load one alert. Raises AlertNotFoundError or RecordCorruptError."""
        path = self._record_path(alert_id)
        if path is None:
            raise AlertNotFoundError(alert_id)
        try:
            return self._read(path)
        except FileNotFoundError:
            raise AlertNotFoundError(alert_id) from None

    # ── Mutations ──────────────────────────────────────────────

    def insert(
        self,
        candidate: Alert,
        on_replaced: Callable[[Alert], None] | None = None,
    ) -> Alert:
        """Persist ``candidate``, replacing alerts in its dedupe scope first.

        Every replaced alert is deleted (and reported to ``on_replaced``)
        before the new record is written. Returns the stored alert with
        its final ``id`` and ``created_at``.
        """
        self.ensure_directory()

        # A rejected candidate must leave the store untouched.
        explicit_id = None
        if candidate.id:
            path = self._record_path(candidate.id)
            if path is None:
                raise StoreError(f"invalid alert id: {candidate.id!r}")
            if path.exists():
                raise StoreError(f"alert id already exists: {candidate.id}")
            explicit_id = candidate.id

        scope = replacement_query(candidate)
        if scope is not None:
            replaced = self.remove_matching(scope)
            for old in replaced:
                logger.debug(f"replaced id={old.id} dedupe={candidate.dedupe_key}")
                if on_replaced is not None:
                    on_replaced(old)

        alert_id = explicit_id or self._free_id()

        alert = candidate.model_copy(
            update={
                "id": alert_id,
                "created_at": (candidate.created_at or utc_now()).replace(microsecond=0),
            }
        )
        self._write(alert)
        return alert

    def remove(self, alert_id: str) -> Alert:
        """Delete one alert and return it (so the caller can run its on_click)."""
        path = self._record_path(alert_id)
        if path is None:
            raise AlertNotFoundError(alert_id)
        try:
            alert = self._read(path)
        except FileNotFoundError:
            raise AlertNotFoundError(alert_id) from None
        except RecordCorruptError as e:
            logger.debug(f"removing unreadable record: {e}")
            self._unlink(path)
            raise AlertNotFoundError(alert_id) from e
        if not self._unlink(path):
            # Another process removed it between read and unlink.
            raise AlertNotFoundError(alert_id)
        return alert

    def remove_matching(self, query: AlertQuery | None = None) -> list[Alert]:
        """Delete every matching alert; returns the removed ones, oldest first."""
        removed: list[Alert] = []
        for alert in self.query(query):
            path = self._record_path(alert.id)
            if path is not None and self._unlink(path):
                removed.append(alert)
        return removed

    # ── File handling ──────────────────────────────────────────

    def _record_path(self, alert_id: str) -> Path | None:
        if not alert_id or not _ID_PATTERN.match(alert_id):
            return None
        return self._alerts_dir / f"{alert_id}{RECORD_SUFFIX}"

    def _free_id(self) -> str:
        while True:
            alert_id = generate_alert_id()
            if not (self._alerts_dir / f"{alert_id}{RECORD_SUFFIX}").exists():
                return alert_id

    def _record_files(self) -> list[Path]:
        try:
            with os.scandir(self._alerts_dir) as entries:
                names = [
                    entry.name
                    for entry in entries
                    if entry.name.endswith(RECORD_SUFFIX)
                    and not entry.name.startswith(".")
                ]
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageUnavailableError(
                f"cannot read state directory ({_reason(e)})"
            ) from e
        return [self._alerts_dir / name for name in names]

    def _load_all(self) -> Iterator[Alert]:
        for path in self._record_files():
            try:
                yield self._read(path)
            except FileNotFoundError:
                continue  # removed by another process since listing
            except RecordCorruptError as e:
                logger.debug(f"skipping unreadable record: {e}")

    def _read(self, path: Path) -> Alert:
        try:
            alert = Alert.from_json(path.read_bytes())
        except FileNotFoundError:
            raise
        except (OSError, ValidationError, ValueError) as e:
            raise RecordCorruptError(f"{path.name}: {e}") from e
        if alert.id != path.name[: -len(RECORD_SUFFIX)] or alert.created_at is None:
            raise RecordCorruptError(f"{path.name}: id or created_at mismatch")
        return alert

    def _write(self, alert: Alert) -> None:
        path = self._alerts_dir / f"{alert.id}{RECORD_SUFFIX}"
        tmp_path: str | None = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{alert.id}.", suffix=".tmp", dir=self._alerts_dir
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(alert.to_json())
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_path)
            raise StorageUnavailableError(f"cannot write alert ({_reason(e)})") from e

    def _unlink(self, path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageUnavailableError(
                f"cannot remove alert ({_reason(e)})"
            ) from e
        return True
