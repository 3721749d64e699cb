"""Lifecycle object tying the highlighter, the cycler and keybindings together.

One ``SageWindowManager`` is constructed per activation. ``start()``
acquires every subscription, keybinding and popup override; ``stop()``
releases all of them. Nothing is kept in module globals.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from .constants import ACTION_CYCLE_BACKWARD, ACTION_CYCLE_FORWARD
from .cycler import WindowCycler
from .highlighter import WindowHighlighter
from .models import SageSettings
from .shell import Shell, ShellWindow

logger = logging.getLogger(__name__)

_UNSET = object()


class PopupSuppressor:
    """Silences a collaborator's display method and restores it later.

    The no-op is installed on the target object itself (instance or class),
    shadowing whatever it inherited; restore() puts back exactly what was
    there before.
    """

    def __init__(self, target: Any, method_name: str = "display"):
        self.target = target
        self.method_name = method_name
        self._saved: Any = _UNSET
        self.active = False

    def suppress(self) -> None:
        if self.active:
            return
        self._saved = vars(self.target).get(self.method_name, _UNSET)
        setattr(self.target, self.method_name, self._noop)
        self.active = True

    def restore(self) -> None:
        if not self.active:
            return
        if self._saved is _UNSET:
            delattr(self.target, self.method_name)
        else:
            setattr(self.target, self.method_name, self._saved)
        self._saved = _UNSET
        self.active = False

    @staticmethod
    def _noop(*args, **kwargs) -> None:
        return None


class SageWindowManager:
    """Focus cycling and focus border for one shell session."""

    def __init__(self, shell: Shell, settings: Optional[SageSettings] = None):
        """Initialize the window manager extension.

        Args:
            shell: Host shell
            settings: User settings (defaults to SageSettings())
        """
        self.shell = shell
        self.settings = settings or SageSettings()
        self.highlighter: Optional[WindowHighlighter] = None
        self.cycler: Optional[WindowCycler] = None
        self._popup_suppressor: Optional[PopupSuppressor] = None
        self._bound_actions: List[str] = []

    @property
    def running(self) -> bool:
        return self.highlighter is not None

    @property
    def bound_actions(self) -> List[str]:
        return list(self._bound_actions)

    def start(self) -> None:
        """Enable highlighting, keybindings and popup suppression."""
        if self.running:
            logger.warning("Sage Window Manager already enabled")
            return

        logger.info("Sage Window Manager: enabled")
        self.highlighter = WindowHighlighter(
            self.shell,
            style=self.settings.border,
            unmaximize_delay_ms=self.settings.unmaximize_delay_ms,
        )
        self.cycler = WindowCycler(self.shell)
        self.highlighter.enable()
        self._add_keybindings()

        if self.settings.suppress_workspace_popup:
            self._disable_workspace_switcher_popup()

    def stop(self) -> None:
        """Release everything acquired by start()."""
        logger.info("Sage Window Manager: disabled")
        if self.highlighter is not None:
            self.highlighter.disable()
            self.highlighter = None
        self.cycler = None

        self._remove_keybindings()
        self._restore_workspace_switcher_popup()

    # Exposed for external binding

    def cycle_windows_forward(self) -> Optional[ShellWindow]:
        if self.cycler is None:
            return None
        return self.cycler.cycle_forward()

    def cycle_windows_backward(self) -> Optional[ShellWindow]:
        if self.cycler is None:
            return None
        return self.cycler.cycle_backward()

    def apply_settings(self, settings: SageSettings) -> None:
        """Apply reloaded settings to a running instance.

        Keybindings are re-registered; the border style and delay take
        effect on the next highlight.
        """
        self.settings = settings
        if not self.running:
            return

        self.highlighter.configure(
            unmaximize_delay_ms=settings.unmaximize_delay_ms,
            style=settings.border,
        )

        self._remove_keybindings()
        self._add_keybindings()

        if settings.suppress_workspace_popup:
            self._disable_workspace_switcher_popup()
        else:
            self._restore_workspace_switcher_popup()

        logger.info("Settings applied")

    # Keybindings

    def _action_handlers(self) -> Dict[str, Callable[[], Any]]:
        return {
            ACTION_CYCLE_FORWARD: self.cycle_windows_forward,
            ACTION_CYCLE_BACKWARD: self.cycle_windows_backward,
        }

    def _add_keybindings(self) -> None:
        for action, handler in self._action_handlers().items():
            accelerators = self.settings.keybindings.get(action, [])
            if not accelerators:
                logger.info(f"No key combo configured for {action}")
                continue

            if self.shell.add_keybinding(action, accelerators, self.settings.action_mode_mask, handler):
                self._bound_actions.append(action)
            else:
                logger.warning(f"Could not bind {action} to {', '.join(accelerators)}")

        logger.info("Keybindings added")

    def _remove_keybindings(self) -> None:
        if not self._bound_actions:
            return
        for action in self._bound_actions:
            self.shell.remove_keybinding(action)
        self._bound_actions = []
        logger.info("Keybindings removed")

    # Workspace switcher popup

    def _disable_workspace_switcher_popup(self) -> None:
        if self._popup_suppressor is not None:
            return

        popup = self.shell.workspace_switcher_popup
        if popup is None:
            logger.debug("Shell has no workspace switcher popup to suppress")
            return

        self._popup_suppressor = PopupSuppressor(popup)
        self._popup_suppressor.suppress()
        logger.info("Workspace switcher popup disabled")

    def _restore_workspace_switcher_popup(self) -> None:
        if self._popup_suppressor is None:
            return

        self._popup_suppressor.restore()
        self._popup_suppressor = None
        logger.info("Workspace switcher popup restored")
