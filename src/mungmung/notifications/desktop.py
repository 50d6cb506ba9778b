"""Desktop notifications via OS-native commands.

- macOS: terminal-notifier (brew install terminal-notifier), osascript fallback
- Linux: notify-send (libnotify)

Each notification is keyed by its alert id. Only terminal-notifier can
retract a delivered notification (``-remove <id>``); elsewhere retraction
is a logged no-op.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
from collections.abc import Callable, Sequence

from ..actions import spawn_detached
from ..alerts.models import Alert
from ..exceptions import ActionLaunchError

logger = logging.getLogger("mung.notify")


class DesktopNotifier:
    """Fire-and-forget desktop notifications for pending alerts.

    ``click_command`` maps an alert id to the shell command run when the
    notification is clicked (terminal-notifier only).
    """

    def __init__(
        self,
        app_name: str = "MungMung",
        click_command: Callable[[str], str] | None = None,
        enabled: bool = True,
    ):
        self._app_name = app_name
        self._click_command = click_command
        self._enabled = enabled
        self._platform = sys.platform
        # On macOS, prefer terminal-notifier (reliable banners, removable) over osascript
        self._has_terminal_notifier = (
            self._platform == "darwin"
            and shutil.which("terminal-notifier") is not None
        )

    @property
    def available(self) -> bool:
        if not self._enabled:
            return False
        if self._platform == "darwin":
            return True
        if self._platform == "linux":
            return shutil.which("notify-send") is not None
        return False

    def deliver(self, alert: Alert) -> bool:
        """Show a notification for ``alert``.  Non-blocking, fire-and-forget.

        Returns True if dispatched, False if disabled, unsupported or failed.
        """
        if not self._enabled:
            return False
        try:
            logger.debug(f"deliver id={alert.id} title={alert.title!r}")
            if self._platform == "darwin":
                self._deliver_macos(alert)
            elif self._platform == "linux":
                self._deliver_linux(alert)
            else:
                logger.debug(f"Desktop notifications unsupported on {self._platform}")
                return False
            return True
        except ActionLaunchError as e:
            logger.debug(f"Desktop notification error: {e}")
            return False

    def retract(self, alert_ids: Sequence[str]) -> int:
        """Remove delivered notifications. Returns how many removals were launched."""
        if not self._enabled or not alert_ids:
            return 0
        if not self._has_terminal_notifier:
            logger.debug(
                f"retraction unsupported on {self._platform}; skipping {len(alert_ids)} id(s)"
            )
            return 0
        launched = 0
        for alert_id in alert_ids:
            try:
                spawn_detached(["terminal-notifier", "-remove", alert_id])
                launched += 1
            except ActionLaunchError as e:
                logger.debug(f"failed to retract notification {alert_id}: {e}")
        return launched

    # ── Platform backends ──────────────────────────────────────

    def _deliver_macos(self, alert: Alert) -> None:
        if self._has_terminal_notifier:
            spawn_detached(self._terminal_notifier_args(alert))
        else:
            # Fallback to osascript (no click handling, cannot be retracted)
            script = (
                f'display notification "{_escape(alert.message)}" '
                f'with title "{_escape(alert.title)}"'
            )
            if alert.sound:
                script += f' sound name "{_escape(_macos_sound(alert.sound))}"'
            spawn_detached(["osascript", "-e", script])

    def _terminal_notifier_args(self, alert: Alert) -> list[str]:
        args = [
            "terminal-notifier",
            "-title", alert.title,
            "-message", alert.message,
            "-group", alert.id,
        ]
        if alert.tags:
            args += ["-subtitle", ", ".join(alert.tags)]
        if alert.sound:
            args += ["-sound", alert.sound]
        if alert.icon and os.path.isfile(os.path.expanduser(alert.icon)):
            args += ["-contentImage", os.path.expanduser(alert.icon)]
        if self._click_command is not None:
            args += ["-execute", self._click_command(alert.id)]
        return args

    def _deliver_linux(self, alert: Alert) -> None:
        args = ["notify-send", f"--app-name={self._app_name}"]
        if alert.icon:
            args.append(f"--icon={alert.icon}")
        if alert.sound:
            sound = "message-new-instant" if alert.sound == "default" else alert.sound
            args.append(f"--hint=string:sound-name:{sound}")
        args += [alert.title, alert.message]
        spawn_detached(args)


def _macos_sound(sound: str) -> str:
    return "Glass" if sound == "default" else sound


def _escape(text: str) -> str:
    """Escape quotes and backslashes for AppleScript string literals."""
    return (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
    )
