"""Side effects mirrored from alert state.

- desktop: native notification per alert (deliver on add, retract on
  done/clear/replacement)
- sketchybar: change signal fired once per state-changing command
"""

from __future__ import annotations

__all__ = ["DesktopNotifier", "SketchybarSignal"]

from .desktop import DesktopNotifier
from .sketchybar import SketchybarSignal
