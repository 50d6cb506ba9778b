"""Tests for the command layer and its side-effect ordering."""

from __future__ import annotations

import logging
import shlex
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from mungmung.alerts.models import Alert, AlertQuery
from mungmung.alerts.store import AlertStore
from mungmung.config import MungConfig, NotificationsConfig, StorageConfig
from mungmung.exceptions import AlertNotFoundError, StorageUnavailableError, StoreError
from mungmung.service import MungService, build_service, click_command_factory


class FakeNotifier:
    def __init__(self, available: bool = True, fail: bool = False):
        self.available = available
        self.fail = fail
        self.delivered: list[str] = []
        self.retracted: list[list[str]] = []

    def deliver(self, alert: Alert) -> bool:
        if self.fail:
            raise RuntimeError("notification center unavailable")
        self.delivered.append(alert.id)
        return True

    def retract(self, alert_ids) -> int:
        if self.fail:
            raise RuntimeError("notification center unavailable")
        self.retracted.append(list(alert_ids))
        return len(alert_ids)


class FakeSignal:
    def __init__(self):
        self.calls = 0

    def signal_changed(self) -> bool:
        self.calls += 1
        return True


class FakeRunner:
    def __init__(self):
        self.commands: list[str] = []

    def execute(self, command: str) -> bool:
        self.commands.append(command)
        return True


@pytest.fixture
def service(tmp_path):
    config = MungConfig(storage=StorageConfig(state_dir=str(tmp_path)))
    return MungService(
        store=AlertStore(tmp_path),
        notifier=FakeNotifier(),
        signal=FakeSignal(),
        runner=FakeRunner(),
        config=config,
    )


def _candidate(**kwargs) -> Alert:
    kwargs.setdefault("title", "Pi task update")
    kwargs.setdefault("message", "step done")
    return Alert(**kwargs)


class TestAdd:
    def test_add_persists_notifies_and_signals(self, service):
        alert = service.add(_candidate())
        assert service.count() == 1
        assert service.notifier.delivered == [alert.id]
        assert service.signal.calls == 1

    def test_dedupe_replaces_and_retracts_old(self, service):
        first = service.add(
            _candidate(message="step 1", source="pi-agent", session="S1", kind="update",
                       dedupe_key="pi:update:S1")
        )
        second = service.add(
            _candidate(message="step 2", source="pi-agent", session="S1", kind="update",
                       dedupe_key="pi:update:S1")
        )
        alerts = service.list()
        assert [a.id for a in alerts] == [second.id]
        assert alerts[0].message == "step 2"
        assert service.notifier.retracted == [[first.id]]
        assert service.notifier.delivered == [first.id, second.id]
        assert service.signal.calls == 2

    def test_notification_failure_does_not_fail_add(self, service):
        service.notifier.fail = True
        alert = service.add(_candidate(dedupe_key="k"))
        service.add(_candidate(dedupe_key="k"))
        assert service.count() == 1
        assert alert.id
        assert service.signal.calls == 2

    def test_write_failure_after_sweep_still_signals(self, service):
        old = service.add(_candidate(dedupe_key="k"))
        service.signal.calls = 0
        with patch.object(
            service.store, "_write", side_effect=StorageUnavailableError("cannot write alert")
        ):
            with pytest.raises(StorageUnavailableError):
                service.add(_candidate(dedupe_key="k"))
        assert service.count() == 0
        assert service.notifier.retracted == [[old.id]]
        assert service.signal.calls == 1

    def test_rejected_insert_has_no_side_effects(self, service):
        service.add(_candidate(id="keep", dedupe_key="k"))
        service.signal.calls = 0
        with pytest.raises(StoreError):
            service.add(_candidate(id="../bad", dedupe_key="k"))
        assert [a.id for a in service.list()] == ["keep"]
        assert service.notifier.retracted == []
        assert service.signal.calls == 0

    def test_lifecycle_logging(self, service, caplog):
        with caplog.at_level(logging.DEBUG, logger="mung.lifecycle"):
            alert = service.add(_candidate(source="claude"))
        assert "add source=claude" in caplog.text
        assert f"add saved id={alert.id}" in caplog.text


class TestDone:
    def test_done_removes_retracts_and_signals(self, service):
        alert = service.add(_candidate())
        service.done(alert.id)
        assert service.count() == 0
        assert service.notifier.retracted == [[alert.id]]
        assert service.runner.commands == []
        assert service.signal.calls == 2

    def test_done_run_executes_on_click(self, service):
        alert = service.add(_candidate(on_click="aerospace workspace Terminal"))
        service.done(alert.id, run=True)
        assert service.runner.commands == ["aerospace workspace Terminal"]

    def test_done_run_without_on_click(self, service):
        alert = service.add(_candidate())
        service.done(alert.id, run=True)
        assert service.runner.commands == []

    def test_done_unknown_has_no_side_effects(self, service, caplog):
        service.add(_candidate())
        with caplog.at_level(logging.DEBUG, logger="mung.lifecycle"):
            with pytest.raises(AlertNotFoundError):
                service.done("missing", run=True)
        assert service.count() == 1
        assert service.notifier.retracted == []
        assert service.runner.commands == []
        assert service.signal.calls == 1
        assert "done missing id=missing" in caplog.text


class TestListCountClear:
    def test_list_and_count_have_no_side_effects(self, service):
        service.add(_candidate(tags=["claude"]))
        service.add(_candidate(tags=["work"]))
        calls = service.signal.calls
        assert len(service.list(AlertQuery.build(tags=["claude"]))) == 1
        assert service.count() == 2
        assert service.signal.calls == calls

    def test_clear_signals_once(self, service):
        ids = [service.add(_candidate()).id for _ in range(3)]
        service.signal.calls = 0
        removed = service.clear()
        assert sorted(a.id for a in removed) == sorted(ids)
        assert service.count() == 0
        assert service.signal.calls == 1
        assert sorted(service.notifier.retracted[-1]) == sorted(ids)

    def test_clear_with_filter(self, service):
        service.add(_candidate(source="pi-agent", session="S1"))
        kept = service.add(_candidate(source="pi-agent", session="S2"))
        service.clear(AlertQuery.build(sources=["pi-agent"], sessions=["S1"]))
        assert [a.id for a in service.list()] == [kept.id]

    def test_clear_nothing_still_signals(self, service):
        assert service.clear() == []
        assert service.signal.calls == 1
        assert service.notifier.retracted == []


class TestDoctor:
    def test_doctor_report(self, service, tmp_path):
        service.add(_candidate())
        report = service.doctor()
        assert report.state_dir == str(tmp_path)
        assert report.alerts_dir == str(tmp_path / "alerts")
        assert report.alerts_dir_exists is True
        assert report.alert_count == 1
        assert report.storage_error is None
        assert report.notifications_available is True
        assert report.on_click_shell == "/bin/sh"
        assert report.on_click_shell_args == ["-c"]
        assert report.signal_event == "mung_alert_change"

    def test_doctor_reports_storage_error(self, service, tmp_path):
        (tmp_path / "alerts").write_text("not a directory")
        report = service.doctor()
        assert report.alert_count is None
        assert report.storage_error

    def test_doctor_survives_unreadable_parent(self, service):
        with patch.object(
            Path, "is_dir", side_effect=PermissionError(13, "Permission denied")
        ):
            report = service.doctor()
        assert report.alerts_dir_exists is False
        assert report.storage_error == "cannot inspect state directory (Permission denied)"


class TestWiring:
    def test_default_click_command_reenters_done(self, tmp_path):
        config = MungConfig(storage=StorageConfig(state_dir=str(tmp_path)))
        command = click_command_factory(config)("1738000000_a1b2c3d4")
        assert shlex.split(command) == [
            sys.executable, "-m", "mungmung", "--state-dir", str(tmp_path),
            "done", "1738000000_a1b2c3d4", "--run",
        ]

    def test_click_command_template(self):
        config = MungConfig(notifications=NotificationsConfig(click_command="mung done {id} --run"))
        assert click_command_factory(config)("abc_1") == "mung done abc_1 --run"

    def test_build_service_uses_state_dir(self, tmp_path):
        service = build_service(MungConfig(storage=StorageConfig(state_dir=str(tmp_path))))
        assert service.store.alerts_dir == tmp_path / "alerts"
