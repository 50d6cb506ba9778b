"""Change signal for status-bar integrations.

Runs ``sketchybar --trigger mung_alert_change`` after every state-changing
command so a bar plugin can re-read the alerts directory.
"""

from __future__ import annotations

import logging

from ..actions import spawn_detached
from ..config import SignalConfig
from ..exceptions import ActionLaunchError

logger = logging.getLogger("mung.action")


class SketchybarSignal:
    """Fire-and-forget trigger of a sketchybar custom event."""

    def __init__(self, config: SignalConfig):
        self._config = config

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    def argv(self) -> list[str]:
        return [self._config.command, "--trigger", self._config.event]

    def signal_changed(self) -> bool:
        """Trigger the event. Returns False if disabled or the launch failed."""
        if not self._config.enabled:
            return False
        try:
            spawn_detached(self.argv())
        except ActionLaunchError as e:
            logger.debug(f"failed to trigger {self._config.command}: {e}")
            return False
        return True
