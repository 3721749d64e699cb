"""
Data models for sage-wm.

Enumerations shared by the core and the shell adapters, plus the pydantic
models for geometry, border styling and user settings.
"""

from dataclasses import dataclass
from enum import Enum, IntFlag
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import (
    ACTION_CYCLE_BACKWARD,
    ACTION_CYCLE_FORWARD,
    ACTIONS,
    DEFAULT_UNMAXIMIZE_DELAY_MS,
)


# Enumerations

class WindowType(str, Enum):
    """Window type classification (_NET_WM_WINDOW_TYPE as reported by i3/Sway)."""
    NORMAL = "normal"
    DESKTOP = "desktop"
    DOCK = "dock"
    DIALOG = "dialog"
    MODAL_DIALOG = "modal_dialog"
    TOOLBAR = "toolbar"
    MENU = "menu"
    UTILITY = "utility"
    SPLASHSCREEN = "splash"
    DROPDOWN_MENU = "dropdown_menu"
    POPUP_MENU = "popup_menu"
    TOOLTIP = "tooltip"
    NOTIFICATION = "notification"
    COMBO = "combo"
    DND = "dnd"
    OVERRIDE_OTHER = "override_other"

    @classmethod
    def from_ipc(cls, value: Optional[str]) -> "WindowType":
        """Map an IPC window_type string to a WindowType.

        Native Wayland windows carry no type and are treated as normal.
        """
        if not value:
            return cls.NORMAL
        try:
            return cls(value)
        except ValueError:
            return cls.NORMAL


class ShellSignal(str, Enum):
    """Notifications the shell can deliver to subscribers."""
    FOCUS_WINDOW = "focus-window"
    ACTIVE_WORKSPACE_CHANGED = "active-workspace-changed"
    WINDOW_CREATED = "window-created"
    WINDOW_DEMANDS_ATTENTION = "window-demands-attention"
    WINDOW_UNMANAGED = "window-unmanaged"
    RESTACKED = "restacked"
    MAXIMIZED_HORIZONTALLY = "maximized-horizontally"
    MAXIMIZED_VERTICALLY = "maximized-vertically"
    SIZE_CHANGED = "size-changed"
    POSITION_CHANGED = "position-changed"


class ActionMode(IntFlag):
    """Shell modes in which a keybinding is active."""
    NONE = 0
    NORMAL = 1
    OVERVIEW = 2


class CycleDirection(str, Enum):
    """Direction for focus cycling."""
    FORWARD = "forward"
    BACKWARD = "backward"


class HighlightPhase(Enum):
    """Lifecycle phase of the window highlighter."""
    IDLE = "idle"
    PENDING = "pending"  # Border creation deferred until fullscreen exit settles
    HIGHLIGHTING = "highlighting"


class HighlightEventKind(Enum):
    """Events fed into the highlighter's transition table."""
    FOCUS_CHANGED = "focus_changed"
    WORKSPACE_CHANGED = "workspace_changed"
    WINDOW_STATE_CHANGED = "window_state_changed"
    GEOMETRY_CHANGED = "geometry_changed"
    RESTACKED = "restacked"
    WINDOW_UNMANAGED = "window_unmanaged"
    DISABLE = "disable"


@dataclass(frozen=True)
class HighlightEvent:
    """A single host notification translated for the highlighter."""
    kind: HighlightEventKind
    window: Optional[Any] = None  # ShellWindow for window-scoped events


# Geometry and styling

class FrameRect(BaseModel):
    """Window frame rectangle in layout coordinates."""

    model_config = ConfigDict(frozen=True)

    x: int = Field(..., description="Left edge")
    y: int = Field(..., description="Top edge")
    width: int = Field(..., ge=0, description="Width")
    height: int = Field(..., ge=0, description="Height")

    def expanded(self, margin: int) -> "FrameRect":
        """Return this rect grown by margin on every side."""
        return FrameRect(
            x=self.x - margin,
            y=self.y - margin,
            width=self.width + 2 * margin,
            height=self.height + 2 * margin,
        )


class BorderStyle(BaseModel):
    """Appearance of the focus border overlay.

    Sway draws the border itself, so only the line width is configurable.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    width: int = Field(3, ge=1, le=20, description="Border line width in pixels")


# Settings

def _default_keybindings() -> Dict[str, List[str]]:
    return {
        ACTION_CYCLE_FORWARD: ["Mod4+Tab"],
        ACTION_CYCLE_BACKWARD: ["Mod4+Shift+Tab"],
    }


class SageSettings(BaseModel):
    """User settings for sage-wm (~/.config/sage-wm/settings.json)."""

    keybindings: Dict[str, List[str]] = Field(
        default_factory=_default_keybindings,
        description="Action name -> key combos (e.g. Mod4+Tab)",
    )
    action_modes: List[str] = Field(
        default_factory=lambda: ["normal", "overview"],
        description="Shell modes in which the keybindings are active",
    )
    border: BorderStyle = Field(default_factory=BorderStyle)
    unmaximize_delay_ms: int = Field(
        DEFAULT_UNMAXIMIZE_DELAY_MS,
        ge=0,
        le=5000,
        description="Delay before drawing a border after leaving fullscreen",
    )
    suppress_workspace_popup: bool = Field(
        True,
        description="Hide the shell's workspace switcher popup while running",
    )

    @field_validator('keybindings')
    @classmethod
    def validate_keybindings(cls, v: Dict[str, List[str]]) -> Dict[str, List[str]]:
        """Only known actions may be bound, and combos must not be blank."""
        unknown = set(v) - ACTIONS
        if unknown:
            raise ValueError(f"Unknown action(s): {', '.join(sorted(unknown))}")
        for action, combos in v.items():
            if any(not combo.strip() for combo in combos):
                raise ValueError(f"Empty key combo for action {action}")
        return {action: [combo.strip() for combo in combos] for action, combos in v.items()}

    @field_validator('action_modes')
    @classmethod
    def validate_action_modes(cls, v: List[str]) -> List[str]:
        """Validate mode names against ActionMode."""
        names = [mode.lower() for mode in v]
        for name in names:
            if name.upper() not in ActionMode.__members__ or name == "none":
                raise ValueError(f"Unknown action mode: {name}")
        return names

    @property
    def action_mode_mask(self) -> ActionMode:
        """Combined ActionMode flags for keybinding registration."""
        mask = ActionMode.NONE
        for name in self.action_modes:
            mask |= ActionMode[name.upper()]
        return mask
