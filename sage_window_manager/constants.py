"""Centralized paths and constants for sage-wm.

Single source of truth for file paths, action names and the fixed geometry
used by the focus border.
"""

from pathlib import Path
from typing import Final, FrozenSet


class ConfigPaths:
    """Centralized configuration paths.

    All paths are computed once at import time based on user's home directory.
    """

    HOME: Final[Path] = Path.home()
    CONFIG_DIR: Final[Path] = HOME / ".config" / "sage-wm"
    SETTINGS_FILE: Final[Path] = CONFIG_DIR / "settings.json"


# Bound actions exposed to the host
ACTION_CYCLE_FORWARD: Final[str] = "cycle-windows-forward"
ACTION_CYCLE_BACKWARD: Final[str] = "cycle-windows-backward"
ACTIONS: Final[FrozenSet[str]] = frozenset({ACTION_CYCLE_FORWARD, ACTION_CYCLE_BACKWARD})

# Border overlay sits this many units outside the window frame on every side
BORDER_MARGIN: Final[int] = 3

# Delay before drawing the border on a window that just left fullscreen
DEFAULT_UNMAXIMIZE_DELAY_MS: Final[int] = 250

# Sway/i3 specifics
BINDING_COMMAND_PREFIX: Final[str] = "nop sage:"
FOCUS_MARK: Final[str] = "_sage_focus"
SCRATCHPAD_WORKSPACE: Final[str] = "__i3_scratch"
