"""
Error types for sage-wm.

Notification handlers never raise; these cover startup concerns only:
reading settings and reaching the window manager.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """
    Error codes for sage-wm.

    - 1100-1199: Settings errors
    - 1400-1499: Sway IPC errors
    """

    SETTINGS_LOAD_FAILED = 1100
    SETTINGS_INVALID = 1101

    SWAY_NOT_RUNNING = 1400


class SageError(Exception):
    """Base exception for sage-wm errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize error.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            suggestion: Suggested recovery action
            context: Additional context for debugging
        """
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to a dictionary for structured logging."""
        result = {
            "code": self.code.value,
            "message": self.message
        }

        if self.suggestion:
            result["suggestion"] = self.suggestion

        if self.context:
            result["context"] = self.context

        return result


class SettingsError(SageError):
    """Settings file could not be read or failed validation."""

    def __init__(self, file_path: str, reason: str, invalid: bool = False):
        """
        Initialize settings error.

        Args:
            file_path: Path to the settings file
            reason: Reason for the failure
            invalid: True if the file parsed but failed validation
        """
        super().__init__(
            code=ErrorCode.SETTINGS_INVALID if invalid else ErrorCode.SETTINGS_LOAD_FAILED,
            message=f"Failed to load settings from {file_path}: {reason}",
            suggestion="Check file syntax and field values",
            context={"file_path": file_path, "reason": reason}
        )
        self.file_path = file_path


class ShellConnectionError(SageError):
    """The window manager IPC socket is unreachable."""

    def __init__(self, reason: str, attempts: int = 0):
        """
        Initialize connection error.

        Args:
            reason: Reason for the failure
            attempts: Number of connection attempts made
        """
        super().__init__(
            code=ErrorCode.SWAY_NOT_RUNNING,
            message=f"Cannot reach Sway/i3 IPC: {reason}",
            suggestion="Ensure Sway or i3 is running and SWAYSOCK/I3SOCK is set",
            context={"attempts": attempts}
        )
