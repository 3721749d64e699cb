"""Focus border highlighter.

Keeps a border overlay around the focused window as long as that window is
not maximized. The highlighter is a small state machine:

    IDLE ──focus──────────────────▶ HIGHLIGHTING
    IDLE ──left fullscreen───▶ PENDING ──delay──▶ HIGHLIGHTING
    any  ──maximize / unfocus / disable──▶ IDLE

Host notifications are translated into ``HighlightEvent`` values and fed to
``dispatch()``, which looks up the transition in a table. At most one
overlay exists at any time and it is always torn down together with the
restack and geometry subscriptions that keep it in sync.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from .constants import BORDER_MARGIN, DEFAULT_UNMAXIMIZE_DELAY_MS
from .models import BorderStyle, HighlightEvent, HighlightEventKind, HighlightPhase, ShellSignal
from .shell import BorderOverlay, Shell, ShellWindow, TimerHandle

logger = logging.getLogger(__name__)


class WindowHighlighter:
    """Draws and maintains the focus border for the focused window."""

    def __init__(
        self,
        shell: Shell,
        style: Optional[BorderStyle] = None,
        unmaximize_delay_ms: int = DEFAULT_UNMAXIMIZE_DELAY_MS,
        margin: int = BORDER_MARGIN,
    ):
        """Initialize highlighter.

        Args:
            shell: Host shell providing windows, notifications and overlays
            style: Border appearance (defaults to BorderStyle())
            unmaximize_delay_ms: Delay before drawing a border on a window
                that just left the maximized state
            margin: Distance between window frame and overlay edge
        """
        self.shell = shell
        self.style = style or BorderStyle()
        self.unmaximize_delay_ms = unmaximize_delay_ms
        self.margin = margin
        self.enabled = False

        # Current highlight
        self._target: Optional[ShellWindow] = None
        self._overlay: Optional[BorderOverlay] = None
        self._window_handlers: List[int] = []
        self._restack_handler: Optional[int] = None

        # Deferred highlight
        self._pending_window: Optional[ShellWindow] = None
        self._pending_timer: Optional[TimerHandle] = None
        self._generation = 0

        # Held from enable() to disable()
        self._global_handlers: List[int] = []
        self._maximize_handlers: Dict[int, Tuple[ShellWindow, List[int]]] = {}

        self._transitions: Dict[HighlightEventKind, Callable[[HighlightEvent], None]] = {
            HighlightEventKind.FOCUS_CHANGED: self._on_focus_changed,
            HighlightEventKind.WORKSPACE_CHANGED: self._on_focus_changed,
            HighlightEventKind.WINDOW_STATE_CHANGED: self._on_window_state_changed,
            HighlightEventKind.GEOMETRY_CHANGED: self._on_geometry_changed,
            HighlightEventKind.RESTACKED: self._on_restacked,
            HighlightEventKind.WINDOW_UNMANAGED: self._on_window_unmanaged,
            HighlightEventKind.DISABLE: self._on_disable,
        }

    @property
    def phase(self) -> HighlightPhase:
        if self._overlay is not None:
            return HighlightPhase.HIGHLIGHTING
        if self._pending_timer is not None:
            return HighlightPhase.PENDING
        return HighlightPhase.IDLE

    @property
    def highlighted_window(self) -> Optional[ShellWindow]:
        return self._target

    @property
    def pending_window(self) -> Optional[ShellWindow]:
        return self._pending_window

    @property
    def overlay(self) -> Optional[BorderOverlay]:
        return self._overlay

    def enable(self) -> None:
        """Subscribe to host notifications and highlight the current focus."""
        if self.enabled:
            logger.warning("Highlighter already enabled")
            return

        self._global_handlers = [
            self.shell.connect(ShellSignal.FOCUS_WINDOW, self._emit(HighlightEventKind.FOCUS_CHANGED)),
            self.shell.connect(ShellSignal.ACTIVE_WORKSPACE_CHANGED, self._emit(HighlightEventKind.WORKSPACE_CHANGED)),
            self.shell.connect(ShellSignal.WINDOW_DEMANDS_ATTENTION, self._emit(HighlightEventKind.WINDOW_STATE_CHANGED)),
            self.shell.connect(ShellSignal.WINDOW_UNMANAGED, self._emit(HighlightEventKind.WINDOW_UNMANAGED)),
            self.shell.connect(ShellSignal.WINDOW_CREATED, self._watch_maximize),
        ]
        for window in self.shell.list_all_windows():
            self._watch_maximize(window)

        self.enabled = True
        logger.debug(f"Highlighter enabled, watching {len(self._maximize_handlers)} window(s)")

        self.dispatch(HighlightEvent(HighlightEventKind.FOCUS_CHANGED))

    def disable(self) -> None:
        self.dispatch(HighlightEvent(HighlightEventKind.DISABLE))

    def configure(self, unmaximize_delay_ms: Optional[int] = None, style: Optional[BorderStyle] = None) -> None:
        """Update delay and style. A new style is applied to the next overlay."""
        if unmaximize_delay_ms is not None:
            self.unmaximize_delay_ms = unmaximize_delay_ms
        if style is not None:
            self.style = style

    def dispatch(self, event: HighlightEvent) -> None:
        """Run the transition for a single event."""
        if not self.enabled and event.kind != HighlightEventKind.DISABLE:
            logger.debug(f"Ignoring {event.kind.value} while disabled")
            return
        self._transitions[event.kind](event)

    # Transitions

    def _on_focus_changed(self, event: HighlightEvent) -> None:
        focus = self.shell.get_focus_window()

        if focus is not None and focus is self._target and not focus.maximized:
            self._update_border_layout()
            return

        self._clear_highlight()
        if focus is not None:
            self._highlight_window(focus, deferred=False)

    def _on_window_state_changed(self, event: HighlightEvent) -> None:
        focus = self.shell.get_focus_window()

        if focus is None or not focus.alive or focus.maximized:
            self._clear_highlight()
        elif focus is self._target:
            pass
        else:
            self._highlight_window(focus, deferred=True)

    def _on_geometry_changed(self, event: HighlightEvent) -> None:
        window = event.window
        if window is None or window is not self._target:
            return
        if not window.alive:
            self._clear_highlight()
            return
        self._update_border_layout()

    def _on_restacked(self, event: HighlightEvent) -> None:
        if self._overlay is None or self._target is None:
            return
        if not self._target.alive:
            self._clear_highlight()
            return
        self._overlay.place_above(self._target)

    def _on_window_unmanaged(self, event: HighlightEvent) -> None:
        window = event.window
        if window is None:
            return
        self._unwatch_maximize(window)
        if window is self._target or window is self._pending_window:
            logger.debug("Highlighted window went away")
            self._clear_highlight()

    def _on_disable(self, event: HighlightEvent) -> None:
        self._clear_highlight()

        for handler_id in self._global_handlers:
            self.shell.disconnect(handler_id)
        self._global_handlers = []

        for window, handler_ids in self._maximize_handlers.values():
            for handler_id in handler_ids:
                self.shell.disconnect(handler_id)
        self._maximize_handlers = {}

        self.enabled = False
        logger.debug("Highlighter disabled")

    # Highlight lifecycle

    def _highlight_window(self, window: ShellWindow, deferred: bool) -> None:
        self._clear_highlight()

        if not window.alive or window.maximized:
            return

        if deferred:
            # Let the host finish its unmaximize animation before measuring
            self._generation += 1
            generation = self._generation
            self._pending_window = window
            self._pending_timer = self.shell.schedule(
                self.unmaximize_delay_ms,
                lambda: self._on_pending_timeout(window, generation),
            )
            logger.debug(f"Border for '{window.title}' deferred by {self.unmaximize_delay_ms}ms")
        else:
            self._create_border(window)

    def _on_pending_timeout(self, window: ShellWindow, generation: int) -> None:
        if generation != self._generation or window is not self._pending_window:
            logger.debug("Discarding superseded deferred border")
            return

        self._pending_timer = None
        self._pending_window = None

        if not window.alive or window.maximized:
            logger.debug("Deferred border target is gone or maximized again")
            return

        self._create_border(window)

    def _create_border(self, window: ShellWindow) -> None:
        self._target = window
        self._overlay = self.shell.create_overlay(self.style)
        self._update_border_layout()

        self._overlay.add_to_window_group()
        self._overlay.place_above(window)

        self._restack_handler = self.shell.connect(
            ShellSignal.RESTACKED, self._emit(HighlightEventKind.RESTACKED)
        )
        on_geometry = self._emit(HighlightEventKind.GEOMETRY_CHANGED)
        self._window_handlers = [
            self.shell.connect(ShellSignal.SIZE_CHANGED, on_geometry, source=window),
            self.shell.connect(ShellSignal.POSITION_CHANGED, on_geometry, source=window),
        ]
        logger.debug(f"Highlighting '{window.title}'")

    def _update_border_layout(self) -> None:
        if self._overlay is None or self._target is None:
            return

        rect = self._target.frame_rect.expanded(self.margin)
        self._overlay.set_position(rect.x, rect.y)
        self._overlay.set_size(rect.width, rect.height)

    def _clear_highlight(self) -> None:
        if self._pending_timer is not None:
            self._pending_timer.cancel()
            self._pending_timer = None
        self._pending_window = None
        self._generation += 1

        if self._restack_handler is not None:
            self.shell.disconnect(self._restack_handler)
            self._restack_handler = None

        for handler_id in self._window_handlers:
            self.shell.disconnect(handler_id)
        self._window_handlers = []

        if self._overlay is not None:
            self._overlay.remove_from_window_group()
            self._overlay.destroy()
            self._overlay = None

        self._target = None

    # Subscription helpers

    def _emit(self, kind: HighlightEventKind) -> Callable[[Optional[ShellWindow]], None]:
        def handler(window: Optional[ShellWindow]) -> None:
            self.dispatch(HighlightEvent(kind, window))
        return handler

    def _watch_maximize(self, window: Optional[ShellWindow]) -> None:
        if window is None or id(window) in self._maximize_handlers:
            return

        on_state = self._emit(HighlightEventKind.WINDOW_STATE_CHANGED)
        self._maximize_handlers[id(window)] = (window, [
            self.shell.connect(ShellSignal.MAXIMIZED_HORIZONTALLY, on_state, source=window),
            self.shell.connect(ShellSignal.MAXIMIZED_VERTICALLY, on_state, source=window),
        ])

    def _unwatch_maximize(self, window: ShellWindow) -> None:
        entry = self._maximize_handlers.pop(id(window), None)
        if entry is None:
            return
        for handler_id in entry[1]:
            self.shell.disconnect(handler_id)
