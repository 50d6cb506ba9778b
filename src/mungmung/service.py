"""Command layer: composes the alert store with notifications, signals and actions.

Every state-changing operation mutates the store first and only then runs
its side effects. Side effects never fail the operation.
"""

from __future__ import annotations

import logging
import os
import shlex
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from pydantic import BaseModel

from . import __version__
from .actions import ShellRunner, resolve_action_context
from .alerts.models import Alert, AlertQuery, utc_now
from .alerts.store import AlertStore
from .config import MungConfig
from .exceptions import AlertNotFoundError, StorageUnavailableError, StoreError
from .notifications.desktop import DesktopNotifier
from .notifications.sketchybar import SketchybarSignal

lifecycle = logging.getLogger("mung.lifecycle")
logger = logging.getLogger("mung.notify")


class NotificationSender(Protocol):
    @property
    def available(self) -> bool: ...

    def deliver(self, alert: Alert) -> bool: ...

    def retract(self, alert_ids: Sequence[str]) -> int: ...


class ChangeSignal(Protocol):
    def signal_changed(self) -> bool: ...


class ActionRunner(Protocol):
    def execute(self, command: str) -> bool: ...


class DoctorReport(BaseModel):
    timestamp: datetime
    version: str
    executable: str
    python: str
    state_dir: str
    alerts_dir: str
    alerts_dir_exists: bool
    alert_count: int | None
    storage_error: str | None = None
    notifications_available: bool
    on_click_shell: str
    on_click_shell_args: list[str]
    on_click_cwd: str | None
    debug_actions: bool
    debug_lifecycle: bool
    signal_enabled: bool
    signal_event: str


def _dash(value: str | None) -> str:
    return value or "-"


@dataclass
class MungService:
    """The add/list/done/count/clear operations behind the CLI.

    ``done`` is also what a notification click runs, so the terminal and
    the notification center share one code path.
    """

    store: AlertStore
    notifier: NotificationSender
    signal: ChangeSignal
    runner: ActionRunner
    config: MungConfig = field(default_factory=MungConfig)

    def add(self, candidate: Alert) -> Alert:
        """Insert an alert, replacing its dedupe scope, then notify and signal."""
        lifecycle.debug(
            f"add source={_dash(candidate.source)} session={_dash(candidate.session)} "
            f"kind={_dash(candidate.kind)} dedupe={_dash(candidate.dedupe_key)} "
            f"tags={len(candidate.tags)}"
        )
        replaced: list[str] = []

        def on_replaced(old: Alert) -> None:
            replaced.append(old.id)
            self._retract([old.id])

        try:
            alert = self.store.insert(candidate, on_replaced=on_replaced)
        except StoreError:
            # The sweep may have removed records before the write failed.
            if replaced:
                self._signal()
            raise
        if replaced:
            lifecycle.debug(
                f"add dedupe_replaced count={len(replaced)} key={candidate.dedupe_key}"
            )

        self._deliver(alert)
        self._signal()
        lifecycle.debug(f"add saved id={alert.id}")
        return alert

    def done(self, alert_id: str, run: bool = False) -> Alert:
        """Dismiss one alert, optionally launching its on_click command.

        Raises AlertNotFoundError (with no side effects) if the id is unknown.
        """
        try:
            alert = self.store.remove(alert_id)
        except AlertNotFoundError:
            lifecycle.debug(f"done missing id={alert_id}")
            raise

        if run and alert.on_click:
            self.runner.execute(alert.on_click)
            lifecycle.debug(f"done run_action id={alert_id}")

        self._retract([alert.id])
        self._signal()
        lifecycle.debug(f"done removed id={alert_id}")
        return alert

    def list(self, query: AlertQuery | None = None) -> list[Alert]:
        return self.store.query(query)

    def count(self, query: AlertQuery | None = None) -> int:
        return self.store.count(query)

    def clear(self, query: AlertQuery | None = None) -> list[Alert]:
        """Dismiss every matching alert; signals once for the whole batch."""
        query = query or AlertQuery()
        removed = self.store.remove_matching(query)
        self._retract([alert.id for alert in removed])
        self._signal()
        lifecycle.debug(f"clear removed={len(removed)} {query.describe()}")
        return removed

    def doctor(self) -> DoctorReport:
        """Runtime diagnostics for troubleshooting integrations."""
        context = resolve_action_context(self.config)
        alert_count: int | None = None
        storage_error: str | None = None
        try:
            alert_count = self.store.count()
        except StorageUnavailableError as e:
            storage_error = str(e)
        try:
            alerts_dir_exists = self.store.alerts_dir.is_dir()
        except OSError as e:
            alerts_dir_exists = False
            storage_error = storage_error or f"cannot inspect state directory ({e.strerror})"

        executable = sys.argv[0] if sys.argv and sys.argv[0] else ""
        return DoctorReport(
            timestamp=utc_now(),
            version=__version__,
            executable=os.path.realpath(executable) if executable else "",
            python=sys.executable,
            state_dir=str(self.store.base_dir),
            alerts_dir=str(self.store.alerts_dir),
            alerts_dir_exists=alerts_dir_exists,
            alert_count=alert_count,
            storage_error=storage_error,
            notifications_available=self.notifier.available,
            on_click_shell=context.shell_path,
            on_click_shell_args=list(context.shell_args),
            on_click_cwd=context.working_directory,
            debug_actions=context.debug_actions,
            debug_lifecycle=context.debug_lifecycle,
            signal_enabled=self.config.signal.enabled,
            signal_event=self.config.signal.event,
        )

    # ── Side effects ───────────────────────────────────────────

    def _deliver(self, alert: Alert) -> None:
        try:
            self.notifier.deliver(alert)
        except Exception:
            logger.debug(f"notification delivery failed for {alert.id}", exc_info=True)

    def _retract(self, alert_ids: list[str]) -> None:
        if not alert_ids:
            return
        try:
            self.notifier.retract(alert_ids)
        except Exception:
            logger.debug(f"notification retraction failed for {alert_ids}", exc_info=True)

    def _signal(self) -> None:
        try:
            self.signal.signal_changed()
        except Exception:
            logger.debug("change signal failed", exc_info=True)


def click_command_factory(config: MungConfig) -> Callable[[str], str]:
    """Build the command a notification click runs for an alert id."""
    template = config.notifications.click_command.strip()
    state_dir = str(config.state_dir)

    def command(alert_id: str) -> str:
        if template:
            return template.replace("{id}", shlex.quote(alert_id))
        return shlex.join(
            [sys.executable, "-m", "mungmung", "--state-dir", state_dir, "done", alert_id, "--run"]
        )

    return command


def build_service(config: MungConfig) -> MungService:
    """Wire the store and side-effect collaborators from one config snapshot."""
    return MungService(
        store=AlertStore(config.state_dir),
        notifier=DesktopNotifier(
            app_name=config.notifications.app_name,
            click_command=click_command_factory(config),
            enabled=config.notifications.desktop_enabled,
        ),
        signal=SketchybarSignal(config.signal),
        runner=ShellRunner(config),
        config=config,
    )
