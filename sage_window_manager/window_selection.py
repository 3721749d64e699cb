"""Eligible-window selection for focus cycling.

Picks the windows a user would consider "real" application windows on a
given workspace and monitor, ordered most recent first.
"""

import logging
from typing import Any, FrozenSet, Iterable, List, Optional

from .models import WindowType
from .shell import Shell, ShellWindow

logger = logging.getLogger(__name__)

# Chrome and transient windows that are never cycled to
EXCLUDED_WINDOW_TYPES: FrozenSet[WindowType] = frozenset({
    WindowType.DESKTOP,
    WindowType.DOCK,
    WindowType.TOOLBAR,
    WindowType.MENU,
    WindowType.UTILITY,
    WindowType.SPLASHSCREEN,
    WindowType.DROPDOWN_MENU,
    WindowType.POPUP_MENU,
    WindowType.TOOLTIP,
    WindowType.NOTIFICATION,
    WindowType.COMBO,
    WindowType.DND,
    WindowType.OVERRIDE_OTHER,
})


def should_manage_window(window: Optional[ShellWindow]) -> bool:
    """Check whether a window is an application window worth managing.

    Args:
        window: Window to check (None is never managed)

    Returns:
        True if the window type is not excluded, it is shown in the taskbar,
        it has a title and it is not hidden
    """
    if window is None:
        return False

    return (
        window.window_type not in EXCLUDED_WINDOW_TYPES
        and not window.skip_taskbar
        and window.title != ""
        and not window.hidden
    )


def get_eligible_windows(windows: Iterable[ShellWindow], monitor: Optional[Any]) -> List[ShellWindow]:
    """Filter windows down to the cycling candidates on a monitor.

    A missing monitor selects nothing.

    Args:
        windows: Windows of one workspace
        monitor: Monitor id the windows must be on

    Returns:
        Eligible windows sorted by stable sequence, highest (most recent) first
    """
    if monitor is None:
        return []

    eligible = [
        window for window in windows
        if window.monitor == monitor
        and should_manage_window(window)
        and window.showing_on_its_workspace()
        and not window.minimized
    ]
    eligible.sort(key=lambda window: window.stable_sequence, reverse=True)
    return eligible


def get_workspace_windows(shell: Shell, workspace: Any, monitor: Optional[Any]) -> List[ShellWindow]:
    """Eligible windows of a workspace as reported by the shell."""
    if workspace is None:
        logger.debug("No active workspace, nothing eligible")
        return []
    return get_eligible_windows(shell.list_windows(workspace), monitor)
