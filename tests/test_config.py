"""
Unit tests for settings loading and reloading.

Tests cover defaults for missing files, strict vs lenient error handling,
file event filtering and debounced reload delivery.
"""

import asyncio
import json
from unittest.mock import AsyncMock, Mock

import pytest
from watchdog.events import DirModifiedEvent, FileCreatedEvent, FileModifiedEvent, FileMovedEvent

from sage_window_manager.config import DebouncedSettingsHandler, SettingsWatcher, load_settings
from sage_window_manager.constants import ACTION_CYCLE_FORWARD
from sage_window_manager.errors import ErrorCode, SettingsError, ShellConnectionError
from sage_window_manager.models import SageSettings


@pytest.fixture
def settings_file(tmp_path):
    return tmp_path / "settings.json"


def write_settings(path, data):
    path.write_text(json.dumps(data))


class TestLoadSettings:
    """Test load_settings()."""

    def test_missing_file_uses_defaults(self, settings_file):
        settings = load_settings(settings_file)

        assert settings == SageSettings()

    def test_valid_file(self, settings_file):
        write_settings(settings_file, {
            "keybindings": {ACTION_CYCLE_FORWARD: ["Mod1+Tab"]},
            "unmaximize_delay_ms": 400,
            "border": {"width": 4},
        })

        settings = load_settings(settings_file)

        assert settings.keybindings == {ACTION_CYCLE_FORWARD: ["Mod1+Tab"]}
        assert settings.unmaximize_delay_ms == 400
        assert settings.border.width == 4

    def test_malformed_json_lenient(self, settings_file, caplog):
        """Test unreadable JSON falls back to defaults and logs the error."""
        settings_file.write_text("{not json")

        settings = load_settings(settings_file)

        assert settings == SageSettings()
        assert "Failed to load settings" in caplog.text
        assert "Using default settings" in caplog.text

    def test_malformed_json_strict(self, settings_file):
        settings_file.write_text("{not json")

        with pytest.raises(SettingsError) as exc_info:
            load_settings(settings_file, strict=True)

        assert exc_info.value.code == ErrorCode.SETTINGS_LOAD_FAILED
        assert exc_info.value.file_path == str(settings_file)

    def test_invalid_values_strict(self, settings_file):
        """Test validation failures are reported as SETTINGS_INVALID."""
        write_settings(settings_file, {"unmaximize_delay_ms": -5})

        with pytest.raises(SettingsError) as exc_info:
            load_settings(settings_file, strict=True)

        assert exc_info.value.code == ErrorCode.SETTINGS_INVALID
        assert "validation error" in exc_info.value.message

    def test_unsupported_border_option_strict(self, settings_file):
        """Test a border color Sway cannot apply is reported instead of ignored."""
        write_settings(settings_file, {"border": {"width": 2, "color": "#ff0000"}})

        with pytest.raises(SettingsError) as exc_info:
            load_settings(settings_file, strict=True)

        assert exc_info.value.code == ErrorCode.SETTINGS_INVALID
        assert "color" in exc_info.value.message

    def test_non_object_strict(self, settings_file):
        write_settings(settings_file, ["Mod4+j"])

        with pytest.raises(SettingsError) as exc_info:
            load_settings(settings_file, strict=True)

        assert exc_info.value.code == ErrorCode.SETTINGS_INVALID

    def test_error_to_dict(self, settings_file):
        settings_file.write_text("")

        with pytest.raises(SettingsError) as exc_info:
            load_settings(settings_file, strict=True)

        data = exc_info.value.to_dict()
        assert data["code"] == ErrorCode.SETTINGS_LOAD_FAILED.value
        assert data["context"]["file_path"] == str(settings_file)
        assert "suggestion" in data

    def test_every_error_code_is_raised_somewhere(self):
        """Test each ErrorCode is produced by one of the error classes."""
        raised = {
            SettingsError("x", "bad").code,
            SettingsError("x", "bad", invalid=True).code,
            ShellConnectionError("no socket").code,
        }

        assert raised == set(ErrorCode)


class TestDebouncedSettingsHandler:
    """Test file event filtering and reload."""

    def test_should_trigger_on_settings_file(self, settings_file):
        handler = DebouncedSettingsHandler(settings_file, Mock(), Mock())

        assert handler._should_trigger(FileModifiedEvent(str(settings_file)))
        assert handler._should_trigger(FileCreatedEvent(str(settings_file)))

    def test_ignores_other_files_and_directories(self, settings_file, tmp_path):
        handler = DebouncedSettingsHandler(settings_file, Mock(), Mock())

        assert not handler._should_trigger(FileModifiedEvent(str(tmp_path / "other.json")))
        assert not handler._should_trigger(DirModifiedEvent(str(tmp_path)))

    def test_atomic_save_triggers(self, settings_file, tmp_path):
        """Test a temp file renamed onto settings.json triggers a reload."""
        handler = DebouncedSettingsHandler(settings_file, Mock(), Mock())
        event = FileMovedEvent(str(tmp_path / ".settings.json.tmp"), str(settings_file))

        assert handler._should_trigger(event)

    def test_events_are_handed_to_loop(self, settings_file):
        loop = Mock()
        handler = DebouncedSettingsHandler(settings_file, Mock(), loop)

        handler.on_modified(FileModifiedEvent(str(settings_file)))

        loop.call_soon_threadsafe.assert_called_once_with(handler._schedule_reload)

    @pytest.mark.asyncio
    async def test_reload_calls_async_callback(self, settings_file):
        write_settings(settings_file, {"unmaximize_delay_ms": 100})
        callback = AsyncMock()
        handler = DebouncedSettingsHandler(settings_file, callback, asyncio.get_running_loop())

        await handler.reload()

        callback.assert_awaited_once()
        assert callback.await_args.args[0].unmaximize_delay_ms == 100

    @pytest.mark.asyncio
    async def test_reload_calls_sync_callback(self, settings_file):
        write_settings(settings_file, {})
        callback = Mock(return_value=None)
        handler = DebouncedSettingsHandler(settings_file, callback, asyncio.get_running_loop())

        await handler.reload()

        callback.assert_called_once_with(SageSettings())

    @pytest.mark.asyncio
    async def test_invalid_reload_keeps_running_settings(self, settings_file, caplog):
        """Test an invalid edit is skipped instead of reverting to defaults."""
        write_settings(settings_file, {"keybindings": {"bogus": ["x"]}})
        callback = Mock()
        handler = DebouncedSettingsHandler(settings_file, callback, asyncio.get_running_loop())

        await handler.reload()

        callback.assert_not_called()
        assert "Settings reload skipped" in caplog.text

    @pytest.mark.asyncio
    async def test_callback_failure_is_logged(self, settings_file, caplog):
        write_settings(settings_file, {})
        callback = Mock(side_effect=RuntimeError("apply failed"))
        handler = DebouncedSettingsHandler(settings_file, callback, asyncio.get_running_loop())

        await handler.reload()

        assert "apply failed" in caplog.text

    @pytest.mark.asyncio
    async def test_burst_of_changes_reloads_once(self, settings_file):
        """Test several changes within the debounce window cause one reload."""
        write_settings(settings_file, {})
        callback = Mock()
        handler = DebouncedSettingsHandler(
            settings_file, callback, asyncio.get_running_loop(), debounce_ms=20
        )

        for _ in range(5):
            handler._schedule_reload()
        await asyncio.sleep(0.1)

        callback.assert_called_once()


class TestSettingsWatcher:
    """Test watcher start/stop."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, tmp_path):
        config_file = tmp_path / "sage-wm" / "settings.json"
        watcher = SettingsWatcher(config_file, Mock())

        watcher.start()
        try:
            assert watcher.running is True
            assert config_file.parent.is_dir()
        finally:
            watcher.stop()

        assert watcher.running is False

    @pytest.mark.asyncio
    async def test_stop_without_start(self, settings_file):
        watcher = SettingsWatcher(settings_file, Mock())

        watcher.stop()

        assert watcher.running is False
