"""Sway / i3 implementation of the shell interface over i3ipc.

The core is synchronous and expects run-to-completion notification
handlers, while i3ipc.aio is asynchronous. ``SwayShell`` bridges the two:

- every IPC event is handled under one asyncio.Lock;
- the tree is refreshed once per event into a snapshot of persistent
  ``SwayWindow`` objects (keyed by con id, so identity survives refreshes);
- core handlers run synchronously against the snapshot;
- window commands issued by the core are queued and flushed afterwards.

Sway never reports resizes, so size/position notifications are derived by
diffing each window's rect between snapshots.
"""

import asyncio
import logging
import time
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from i3ipc import Event
from i3ipc.aio import Con, Connection

from .constants import BINDING_COMMAND_PREFIX, FOCUS_MARK, SCRATCHPAD_WORKSPACE
from .errors import ShellConnectionError
from .models import ActionMode, BorderStyle, FrameRect, ShellSignal, WindowType
from .shell import BorderOverlay, Shell, ShellWindow, TimerHandle
from .timers import LoopTimer

logger = logging.getLogger(__name__)

WINDOW_CON_TYPES = ("con", "floating_con")


async def connect_with_retry(max_attempts: int = 10, initial_delay: float = 0.1) -> Connection:
    """Connect to Sway/i3 with exponential backoff retry.

    Args:
        max_attempts: Maximum connection attempts
        initial_delay: Delay before the second attempt, doubled up to 5s

    Returns:
        Connected i3ipc.aio.Connection

    Raises:
        ShellConnectionError: If connection fails after max attempts
    """
    attempt = 0
    delay = initial_delay
    last_error: Optional[Exception] = None

    while attempt < max_attempts:
        try:
            logger.info(f"Attempting to connect to Sway (attempt {attempt + 1}/{max_attempts})")
            conn = await Connection(auto_reconnect=True).connect()
            version = await conn.get_version()
            logger.info(f"Connected to {version.human_readable}")
            return conn

        except Exception as e:
            last_error = e
            logger.warning(f"Connection attempt {attempt + 1} failed: {e}")
            attempt += 1

            if attempt < max_attempts:
                logger.debug(f"Waiting {delay:.1f}s before retry...")
                await asyncio.sleep(delay)
                delay = min(delay * 2, 5.0)

    raise ShellConnectionError(str(last_error), attempts=max_attempts)


def _quote(value: str) -> str:
    return '"' + value.replace('\\', '\\\\').replace('"', '\\"') + '"'


def _iter_workspaces(node: Con) -> Iterator[Con]:
    # i3 nests workspaces under a "content" con, Sway puts them directly under the output
    for child in node.nodes:
        if child.type == "workspace":
            yield child
        else:
            yield from _iter_workspaces(child)


def _iter_windows(node: Con) -> Iterator[Con]:
    for child in list(node.nodes) + list(node.floating_nodes):
        is_leaf = not child.nodes and not child.floating_nodes
        has_client = child.window is not None or getattr(child, "app_id", None)
        if is_leaf and child.type in WINDOW_CON_TYPES and has_client:
            yield child
        else:
            yield from _iter_windows(child)


class SwayWindow(ShellWindow):
    """A Sway container holding a client window."""

    def __init__(self, shell: "SwayShell", con_id: int):
        self._shell = shell
        self.id = con_id
        self.con: Optional[Con] = None
        self.output: Optional[str] = None
        self.workspace_name: Optional[str] = None
        self._alive = True

    def update(self, con: Con, output: str, workspace_name: str) -> None:
        self.con = con
        self.output = output
        self.workspace_name = workspace_name

    def mark_unmanaged(self) -> None:
        self._alive = False

    def __repr__(self) -> str:
        return f"SwayWindow(id={self.id}, title={self.title!r})"

    @property
    def window_type(self) -> WindowType:
        return WindowType.from_ipc(self.con.ipc_data.get("window_type"))

    @property
    def title(self) -> str:
        return self.con.name or ""

    @property
    def skip_taskbar(self) -> bool:
        # Not exposed over IPC
        return False

    @property
    def hidden(self) -> bool:
        return self.workspace_name == SCRATCHPAD_WORKSPACE

    @property
    def minimized(self) -> bool:
        return self.workspace_name == SCRATCHPAD_WORKSPACE

    @property
    def maximized(self) -> bool:
        return (self.con.fullscreen_mode or 0) != 0

    @property
    def monitor(self) -> Optional[str]:
        return self.output

    @property
    def workspace(self) -> Optional[str]:
        return self.workspace_name

    @property
    def frame_rect(self) -> FrameRect:
        rect = self.con.rect
        return FrameRect(x=rect.x, y=rect.y, width=rect.width, height=rect.height)

    @property
    def stable_sequence(self) -> int:
        return self.id

    @property
    def alive(self) -> bool:
        return self._alive

    def showing_on_its_workspace(self) -> bool:
        return not self.hidden

    def change_workspace(self, workspace: str) -> None:
        self._shell.queue_command(f"[con_id={self.id}] move container to workspace {_quote(workspace)}")

    def unminimize(self) -> None:
        self._shell.queue_command(f"[con_id={self.id}] scratchpad show")

    def raise_(self) -> None:
        # Focusing raises floating windows; tiled windows have no stacking order
        logger.debug(f"raise {self.id}: handled by focus")

    def focus(self, timestamp: int) -> None:
        self._shell.queue_command(f"[con_id={self.id}] focus")


class SwayBorderOverlay(BorderOverlay):
    """Focus border drawn by Sway itself.

    Sway has no client-side overlay surface, so the border is realized as a
    pixel border of ``style.width`` on the target container, tagged with
    the ``_sage_focus`` mark. Sway keeps it aligned with the window, so
    position and size are only tracked in ``bounds``. Removing the overlay
    restores the container's previous border.
    """

    def __init__(self, shell: "SwayShell", style: BorderStyle):
        super().__init__(style)
        self._shell = shell
        self._position: Optional[Tuple[int, int]] = None
        self._size: Optional[Tuple[int, int]] = None
        self._window: Optional[SwayWindow] = None
        self._saved_border: Optional[Tuple[str, int]] = None
        self.in_window_group = False

    @property
    def window(self) -> Optional[SwayWindow]:
        return self._window

    def set_position(self, x: int, y: int) -> None:
        self._position = (x, y)
        self._update_bounds()

    def set_size(self, width: int, height: int) -> None:
        self._size = (width, height)
        self._update_bounds()

    def _update_bounds(self) -> None:
        if self._position is None or self._size is None:
            return
        self.bounds = FrameRect(
            x=self._position[0], y=self._position[1],
            width=self._size[0], height=self._size[1],
        )

    def add_to_window_group(self) -> None:
        if self.destroyed:
            return
        self.in_window_group = True

    def place_above(self, window: ShellWindow) -> None:
        if not self.in_window_group or self.destroyed:
            return
        if window is self._window:
            if window.con.border != "pixel" or window.con.current_border_width != self.style.width:
                self._shell.queue_command(f"[con_id={window.id}] border pixel {self.style.width}")
            return

        self._restore_border()
        self._window = window
        self._saved_border = (window.con.border or "normal", window.con.current_border_width or 0)
        self._shell.queue_command(
            f"[con_id={window.id}] border pixel {self.style.width}, mark --add {FOCUS_MARK}"
        )

    def remove_from_window_group(self) -> None:
        self._restore_border()
        self.in_window_group = False

    def destroy(self) -> None:
        if self.destroyed:
            return
        self.remove_from_window_group()
        self.destroyed = True

    def _restore_border(self) -> None:
        window, saved = self._window, self._saved_border
        self._window = None
        self._saved_border = None
        if window is None or not window.alive:
            return

        style, width = saved
        if style in ("normal", "pixel") and width > 0:
            border = f"border {style} {width}"
        else:
            border = f"border {style}"
        self._shell.queue_command(f"[con_id={window.id}] {border}, unmark {FOCUS_MARK}")


class SwayShell(Shell):
    """Shell backed by a Sway/i3 IPC connection."""

    def __init__(self, conn: Connection):
        """Initialize Sway shell.

        Args:
            conn: Connected i3ipc.aio.Connection
        """
        super().__init__()
        self.conn = conn
        self._windows: Dict[int, SwayWindow] = {}
        self._rects: Dict[int, FrameRect] = {}
        self._focused_id: Optional[int] = None
        self._active_workspace: Optional[str] = None
        self._current_output: Optional[str] = None
        self._pending_commands: List[str] = []
        self._keybindings: Dict[str, Tuple[List[str], Callable[[], object]]] = {}
        self._lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()
        self._attached = False

    # Snapshot

    async def refresh(self) -> List[Tuple[ShellSignal, SwayWindow]]:
        """Rebuild the window snapshot from the current tree.

        Returns:
            Notifications implied by the difference to the previous
            snapshot: WINDOW_UNMANAGED for vanished windows, then
            POSITION_CHANGED / SIZE_CHANGED for moved or resized ones
        """
        tree = await self.conn.get_tree()

        previous = self._windows
        windows: Dict[int, SwayWindow] = {}
        workspace_outputs: Dict[str, str] = {}

        for output in tree.nodes:
            if output.type != "output":
                continue
            for workspace in _iter_workspaces(output):
                workspace_outputs[workspace.name] = output.name
                for con in _iter_windows(workspace):
                    window = previous.get(con.id) or SwayWindow(self, con.id)
                    window.update(con, output.name, workspace.name)
                    windows[con.id] = window

        notifications: List[Tuple[ShellSignal, SwayWindow]] = []
        for con_id, window in previous.items():
            if con_id not in windows:
                window.mark_unmanaged()
                notifications.append((ShellSignal.WINDOW_UNMANAGED, window))

        rects: Dict[int, FrameRect] = {}
        for con_id, window in windows.items():
            rect = window.frame_rect
            rects[con_id] = rect
            old = self._rects.get(con_id)
            if old is None:
                continue
            if (old.x, old.y) != (rect.x, rect.y):
                notifications.append((ShellSignal.POSITION_CHANGED, window))
            if (old.width, old.height) != (rect.width, rect.height):
                notifications.append((ShellSignal.SIZE_CHANGED, window))

        self._windows = windows
        self._rects = rects

        focused = tree.find_focused()
        if focused is None:
            self._focused_id = None
            self._active_workspace = None
        else:
            self._focused_id = focused.id if focused.id in windows else None
            if focused.type == "workspace":
                self._active_workspace = focused.name
            else:
                workspace = focused.workspace()
                self._active_workspace = workspace.name if workspace else None
        self._current_output = workspace_outputs.get(self._active_workspace)

        return notifications

    def window_by_id(self, con_id: int) -> Optional[SwayWindow]:
        return self._windows.get(con_id)

    # Shell interface

    def get_focus_window(self) -> Optional[SwayWindow]:
        if self._focused_id is None:
            return None
        return self._windows.get(self._focused_id)

    def get_active_workspace(self) -> Optional[str]:
        return self._active_workspace

    def get_current_monitor(self) -> Optional[str]:
        return self._current_output

    def list_windows(self, workspace: str) -> List[SwayWindow]:
        return [window for window in self._windows.values() if window.workspace == workspace]

    def list_all_windows(self) -> List[SwayWindow]:
        return list(self._windows.values())

    def get_current_time(self) -> int:
        return int(time.monotonic() * 1000)

    def create_overlay(self, style: BorderStyle) -> SwayBorderOverlay:
        return SwayBorderOverlay(self, style)

    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        loop = asyncio.get_running_loop()
        return LoopTimer(loop, delay_ms, lambda: self._spawn(self._run_deferred(callback)))

    def add_keybinding(
        self,
        name: str,
        accelerators: List[str],
        modes: ActionMode,
        handler: Callable[[], object],
    ) -> bool:
        if not modes & ActionMode.NORMAL:
            logger.warning(f"Keybinding {name}: Sway only supports normal-mode bindings")
            return False
        if modes & ActionMode.OVERVIEW:
            logger.debug(f"Keybinding {name}: no overview mode on Sway, binding normal mode only")

        if name in self._keybindings:
            self.remove_keybinding(name)

        for combo in accelerators:
            self.queue_command(f"bindsym {combo} {BINDING_COMMAND_PREFIX}{name}")
        self._keybindings[name] = (list(accelerators), handler)
        logger.debug(f"Bound {name} to {', '.join(accelerators)}")
        return True

    def remove_keybinding(self, name: str) -> None:
        entry = self._keybindings.pop(name, None)
        if entry is None:
            return
        for combo in entry[0]:
            self.queue_command(f"unbindsym {combo}")

    # Command queue

    def queue_command(self, command: str) -> None:
        self._pending_commands.append(command)

    @property
    def pending_commands(self) -> List[str]:
        return list(self._pending_commands)

    async def flush(self) -> None:
        """Send queued commands to Sway in order."""
        if not self._pending_commands:
            return

        commands, self._pending_commands = self._pending_commands, []
        for command in commands:
            try:
                replies = await self.conn.command(command)
            except Exception as e:
                logger.error(f"Sway command failed: {command}: {e}")
                continue

            for reply in replies or []:
                if not reply.success:
                    logger.warning(f"Sway rejected '{command}': {reply.error}")

    # Event wiring

    def attach(self) -> None:
        """Start translating IPC events into shell notifications."""
        if self._attached:
            return
        self.conn.on(Event.WINDOW, self._on_window_event)
        self.conn.on(Event.WORKSPACE_FOCUS, self._on_workspace_focus)
        self.conn.on(Event.BINDING, self._on_binding)
        self._attached = True
        logger.info("Subscribed to Sway events (window, workspace::focus, binding)")

    def detach(self) -> None:
        if not self._attached:
            return
        self.conn.off(self._on_window_event)
        self.conn.off(self._on_workspace_focus)
        self.conn.off(self._on_binding)
        self._attached = False

    async def _on_window_event(self, conn: Connection, event) -> None:
        change = event.change
        con_id = event.container.id if event.container is not None else None

        async with self._lock:
            try:
                notifications = await self.refresh()
                self._emit_all(notifications)

                window = self._windows.get(con_id)
                if window is not None:
                    if change == "new":
                        self.signals.emit(ShellSignal.WINDOW_CREATED, window)
                    elif change == "focus":
                        self.signals.emit(ShellSignal.FOCUS_WINDOW)
                    elif change == "fullscreen_mode":
                        self.signals.emit(ShellSignal.MAXIMIZED_HORIZONTALLY, window)
                        self.signals.emit(ShellSignal.MAXIMIZED_VERTICALLY, window)
                    elif change == "urgent" and window.con.urgent:
                        self.signals.emit(ShellSignal.WINDOW_DEMANDS_ATTENTION, window)
                    elif change in ("floating", "move"):
                        self.signals.emit(ShellSignal.RESTACKED)

            except Exception as e:
                logger.error(f"Error handling window::{change} event: {e}", exc_info=True)

            await self.flush()

    async def _on_workspace_focus(self, conn: Connection, event) -> None:
        async with self._lock:
            try:
                notifications = await self.refresh()
                self._emit_all(notifications)
                self.signals.emit(ShellSignal.ACTIVE_WORKSPACE_CHANGED)
            except Exception as e:
                logger.error(f"Error handling workspace::focus event: {e}", exc_info=True)

            await self.flush()

    async def _on_binding(self, conn: Connection, event) -> None:
        command = event.binding.command if hasattr(event, "binding") else ""

        async with self._lock:
            try:
                notifications = await self.refresh()
                self._emit_all(notifications)

                if command.startswith(BINDING_COMMAND_PREFIX):
                    action = command[len(BINDING_COMMAND_PREFIX):].strip()
                    entry = self._keybindings.get(action)
                    if entry is None:
                        logger.debug(f"No handler bound for {action}")
                    else:
                        entry[1]()

            except Exception as e:
                logger.error(f"Error handling binding '{command}': {e}", exc_info=True)

            await self.flush()

    async def _run_deferred(self, callback: Callable[[], None]) -> None:
        async with self._lock:
            try:
                notifications = await self.refresh()
                self._emit_all(notifications)
                callback()
            except Exception as e:
                logger.error(f"Deferred callback failed: {e}", exc_info=True)

            await self.flush()

    def _emit_all(self, notifications: List[Tuple[ShellSignal, SwayWindow]]) -> None:
        for signal, window in notifications:
            self.signals.emit(signal, window)

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
