"""Abstract shell interface consumed by the highlighter and cycler.

The core never talks to a window manager directly. Everything it needs
(window queries, notifications, window commands, the border overlay
primitive, timers and keybindings) goes through the classes defined here.
``SwayShell`` implements them over i3ipc; tests use an in-memory fake.
"""

import abc
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from .models import ActionMode, BorderStyle, FrameRect, ShellSignal, WindowType

logger = logging.getLogger(__name__)

SignalCallback = Callable[[Optional["ShellWindow"]], None]


class ShellWindow(abc.ABC):
    """Handle to a host-owned window. Referenced, never owned."""

    @property
    @abc.abstractmethod
    def window_type(self) -> WindowType:
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def title(self) -> str:
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def skip_taskbar(self) -> bool:
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def hidden(self) -> bool:
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def minimized(self) -> bool:
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def maximized(self) -> bool:
        """True if maximized (or fullscreen) on either axis."""
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def monitor(self) -> Optional[Any]:
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def workspace(self) -> Optional[Any]:
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def frame_rect(self) -> FrameRect:
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def stable_sequence(self) -> int:
        """Monotonically increasing creation sequence, unique per window."""
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def alive(self) -> bool:
        """False once the host has unmanaged (destroyed) the window."""
        raise NotImplementedError

    @abc.abstractmethod
    def showing_on_its_workspace(self) -> bool:
        raise NotImplementedError

    @abc.abstractmethod
    def change_workspace(self, workspace: Any) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def unminimize(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def raise_(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def focus(self, timestamp: int) -> None:
        raise NotImplementedError


class BorderOverlay(abc.ABC):
    """Visual rectangle drawn around the highlighted window."""

    def __init__(self, style: BorderStyle):
        self.style = style
        self.bounds: Optional[FrameRect] = None
        self.destroyed = False

    @abc.abstractmethod
    def set_position(self, x: int, y: int) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def set_size(self, width: int, height: int) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def add_to_window_group(self) -> None:
        """Insert the overlay into the compositor-managed window group."""
        raise NotImplementedError

    @abc.abstractmethod
    def place_above(self, window: ShellWindow) -> None:
        """Restack the overlay directly above the window's visual layer."""
        raise NotImplementedError

    @abc.abstractmethod
    def remove_from_window_group(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def destroy(self) -> None:
        raise NotImplementedError


class TimerHandle(abc.ABC):
    """One-shot deferred callback. cancel() is idempotent."""

    @property
    @abc.abstractmethod
    def active(self) -> bool:
        """True while the callback is scheduled and has not run."""
        raise NotImplementedError

    @abc.abstractmethod
    def cancel(self) -> None:
        raise NotImplementedError


@dataclass
class _Subscription:
    signal: ShellSignal
    callback: SignalCallback
    source: Optional[ShellWindow]


class SignalRegistry:
    """Handler bookkeeping for shell notifications.

    Handlers subscribed with a ``source`` only receive emissions for that
    window; handlers without a source receive every emission of the signal.
    """

    def __init__(self) -> None:
        self._handlers: Dict[int, _Subscription] = {}
        self._next_id = 1

    def connect(
        self,
        signal: ShellSignal,
        callback: SignalCallback,
        source: Optional[ShellWindow] = None,
    ) -> int:
        handler_id = self._next_id
        self._next_id += 1
        self._handlers[handler_id] = _Subscription(signal, callback, source)
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        if self._handlers.pop(handler_id, None) is None:
            logger.debug(f"Ignoring disconnect of unknown handler {handler_id}")

    def emit(self, signal: ShellSignal, window: Optional[ShellWindow] = None) -> int:
        """Invoke matching handlers in subscription order.

        Handlers connected or disconnected during emission take effect for
        the next emission, except that a disconnected handler is never
        called afterwards.

        Returns:
            Number of handlers invoked
        """
        matching = [
            (handler_id, sub) for handler_id, sub in self._handlers.items()
            if sub.signal == signal and (sub.source is None or sub.source is window)
        ]
        invoked = 0
        for handler_id, sub in matching:
            if handler_id not in self._handlers:
                continue
            invoked += 1
            try:
                sub.callback(window)
            except Exception as e:
                logger.error(f"Handler {handler_id} for {signal.value} failed: {e}", exc_info=True)
        return invoked

    def handlers_for(self, source: ShellWindow) -> List[int]:
        """Handler ids bound to a specific window."""
        return [handler_id for handler_id, sub in self._handlers.items() if sub.source is source]

    def __len__(self) -> int:
        return len(self._handlers)


class Shell(abc.ABC):
    """The host environment: window registry, notifications and primitives."""

    def __init__(self) -> None:
        self.signals = SignalRegistry()

    # Notifications

    def connect(
        self,
        signal: ShellSignal,
        callback: SignalCallback,
        source: Optional[ShellWindow] = None,
    ) -> int:
        """Subscribe to a notification.

        Args:
            signal: Notification to subscribe to
            callback: Called with the window the notification concerns (or None)
            source: Restrict to notifications about this window

        Returns:
            Handler id for disconnect()
        """
        return self.signals.connect(signal, callback, source)

    def disconnect(self, handler_id: int) -> None:
        self.signals.disconnect(handler_id)

    @property
    def live_subscriptions(self) -> int:
        return len(self.signals)

    # Window registry

    @abc.abstractmethod
    def get_focus_window(self) -> Optional[ShellWindow]:
        raise NotImplementedError

    @abc.abstractmethod
    def get_active_workspace(self) -> Optional[Any]:
        raise NotImplementedError

    @abc.abstractmethod
    def get_current_monitor(self) -> Optional[Any]:
        raise NotImplementedError

    @abc.abstractmethod
    def list_windows(self, workspace: Any) -> List[ShellWindow]:
        raise NotImplementedError

    @abc.abstractmethod
    def list_all_windows(self) -> Iterable[ShellWindow]:
        raise NotImplementedError

    @abc.abstractmethod
    def get_current_time(self) -> int:
        """Host timestamp (milliseconds) for focus requests."""
        raise NotImplementedError

    # Primitives

    @abc.abstractmethod
    def create_overlay(self, style: BorderStyle) -> BorderOverlay:
        raise NotImplementedError

    @abc.abstractmethod
    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        raise NotImplementedError

    @abc.abstractmethod
    def add_keybinding(
        self,
        name: str,
        accelerators: List[str],
        modes: ActionMode,
        handler: Callable[[], None],
    ) -> bool:
        """Bind a named action. Returns False if nothing could be bound."""
        raise NotImplementedError

    @abc.abstractmethod
    def remove_keybinding(self, name: str) -> None:
        raise NotImplementedError

    @property
    def workspace_switcher_popup(self) -> Optional[Any]:
        """Collaborator shown on workspace switches, if the shell has one."""
        return None
