"""On-click action execution: shell resolution and detached launches.

The resolver is a pure function of the configuration snapshot, so the
same alert runs identically whether ``done --run`` comes from a terminal
or from a notification click.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from .config import MungConfig
from .exceptions import ActionLaunchError

logger = logging.getLogger("mung.action")

# Shells that accept -l; login mode loads PATH and the user's init files.
_LOGIN_SHELLS = frozenset({"bash", "zsh", "ksh", "fish"})


@dataclass(frozen=True)
class ActionContext:
    """Where and how an on_click command runs."""

    shell_path: str
    shell_args: tuple[str, ...]
    working_directory: str | None
    debug_actions: bool = False
    debug_lifecycle: bool = False

    def argv(self, command: str) -> list[str]:
        return [self.shell_path, *self.shell_args, command]


def _is_executable(path: str) -> bool:
    return bool(path) and os.path.isfile(path) and os.access(path, os.X_OK)


def shell_args_for(shell_path: str) -> tuple[str, ...]:
    if Path(shell_path).name.lower() in _LOGIN_SHELLS:
        return ("-lc",)
    return ("-c",)


def _resolve_working_directory(raw: str) -> str | None:
    raw = raw.strip()
    if not raw:
        return None
    path = os.path.expanduser(raw)
    if os.path.isdir(path):
        return path
    logger.debug(f"ignoring on_click cwd {raw!r}: not an existing directory")
    return None


def resolve_action_context(config: MungConfig) -> ActionContext:
    """Resolve the shell, arguments, and cwd for on_click commands.

    Shell order (first executable wins): the on_click shell override,
    then the login shell, then the fallback shell, which is always used
    as-is with ``-c``.
    """
    actions = config.actions
    cwd = _resolve_working_directory(actions.working_directory)

    shell_path = actions.fallback_shell
    shell_args: tuple[str, ...] = ("-c",)
    for candidate in (actions.shell_override.strip(), actions.login_shell.strip()):
        if _is_executable(candidate):
            shell_path = candidate
            shell_args = shell_args_for(candidate)
            break
        if candidate:
            logger.debug(f"skipping shell {candidate!r}: not executable")

    return ActionContext(
        shell_path=shell_path,
        shell_args=shell_args,
        working_directory=cwd,
        debug_actions=config.debug.actions,
        debug_lifecycle=config.debug.lifecycle,
    )


def spawn_detached(argv: Sequence[str], cwd: str | None = None) -> subprocess.Popen:
    """Start ``argv`` in its own session without waiting for it.

    Raises ActionLaunchError if the process cannot be spawned.
    """
    try:
        return subprocess.Popen(
            list(argv),
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except (OSError, ValueError) as e:
        raise ActionLaunchError(f"failed to launch {argv[0] if argv else '?'}: {e}") from e


class ShellRunner:
    """Fire-and-forget on_click execution in the resolved shell context."""

    def __init__(self, config: MungConfig):
        self._config = config

    def context(self) -> ActionContext:
        return resolve_action_context(self._config)

    def execute(self, command: str) -> bool:
        """Launch ``command``; returns False (and logs) if it could not start."""
        context = self.context()
        try:
            spawn_detached(context.argv(command), cwd=context.working_directory)
        except ActionLaunchError as e:
            logger.debug(f"failed to execute on_click command: {e}")
            return False
        return True
