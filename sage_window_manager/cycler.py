"""Focus cycling among the eligible windows of the active workspace.

The cycler only moves focus. Drawing the border is left to the host's
focus notification, which the highlighter observes: every successful
cycle ends in ``ShellWindow.focus()`` and therefore in a FOCUS_WINDOW
notification that re-targets the border.
"""

import logging
from typing import Optional

from .models import CycleDirection
from .shell import Shell, ShellWindow
from .window_selection import get_workspace_windows

logger = logging.getLogger(__name__)


class WindowCycler:
    """Moves focus to the next or previous eligible window."""

    def __init__(self, shell: Shell):
        """Initialize cycler.

        Args:
            shell: Host shell used for queries and window commands
        """
        self.shell = shell

    def cycle_forward(self) -> Optional[ShellWindow]:
        return self.cycle(CycleDirection.FORWARD)

    def cycle_backward(self) -> Optional[ShellWindow]:
        return self.cycle(CycleDirection.BACKWARD)

    def cycle(self, direction: CycleDirection) -> Optional[ShellWindow]:
        """Focus the neighbour of the focused window in the eligible list.

        Windows are ordered most recent first. If the focused window is not
        eligible (or nothing is focused) cycling starts from the first one.

        Args:
            direction: FORWARD or BACKWARD

        Returns:
            The window that was activated, or None if nothing was eligible
        """
        monitor = self.shell.get_current_monitor()
        workspace = self.shell.get_active_workspace()

        windows = get_workspace_windows(self.shell, workspace, monitor)
        if not windows:
            logger.info("Not enough windows to cycle")
            return None

        focused = self.shell.get_focus_window()
        current_index = next(
            (index for index, window in enumerate(windows) if window is focused),
            0,
        )

        count = len(windows)
        if direction == CycleDirection.FORWARD:
            next_index = (current_index + 1) % count
        else:
            next_index = (current_index - 1 + count) % count

        next_window = windows[next_index]
        self.activate(next_window, workspace)

        logger.info(f"Cycled {direction.value}: {next_window.title}")
        return next_window

    def activate(self, window: ShellWindow, workspace) -> None:
        """Bring a window to the active workspace, restore, raise and focus it."""
        timestamp = self.shell.get_current_time()

        if window.workspace != workspace:
            window.change_workspace(workspace)

        if window.minimized:
            window.unminimize()

        window.raise_()
        window.focus(timestamp)
