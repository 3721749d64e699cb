"""Settings loader and watcher for sage-wm.

Settings live in a single JSON file (~/.config/sage-wm/settings.json) and
are validated with pydantic. A watchdog observer reloads them when the file
changes so keybindings follow edits without a restart.
"""

import asyncio
import inspect
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import ValidationError
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .constants import ConfigPaths
from .errors import SettingsError
from .models import SageSettings

logger = logging.getLogger(__name__)

SettingsCallback = Callable[[SageSettings], Union[None, Awaitable[None]]]


def load_settings(config_file: Optional[Path] = None, strict: bool = False) -> SageSettings:
    """Load settings from JSON.

    Args:
        config_file: Path to settings.json (defaults to ConfigPaths.SETTINGS_FILE)
        strict: Raise SettingsError on unreadable or invalid files instead of
            falling back to defaults

    Returns:
        Validated SageSettings (defaults if the file does not exist)

    Raises:
        SettingsError: If strict and the file cannot be read or is invalid
    """
    config_file = config_file or ConfigPaths.SETTINGS_FILE

    if not config_file.exists():
        logger.info(f"Settings file does not exist: {config_file}, using defaults")
        return SageSettings()

    try:
        with open(config_file) as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise SettingsError(str(config_file), "top-level value must be an object", invalid=True)
        settings = SageSettings(**data)

    except (OSError, json.JSONDecodeError) as e:
        error = SettingsError(str(config_file), str(e))
    except ValidationError as e:
        error = SettingsError(str(config_file), f"{e.error_count()} validation error(s): {e}", invalid=True)
    except SettingsError as e:
        error = e
    else:
        logger.info(
            f"Loaded settings from {config_file}: "
            f"{sum(len(combos) for combos in settings.keybindings.values())} key combo(s), "
            f"delay {settings.unmaximize_delay_ms}ms"
        )
        return settings

    if strict:
        raise error
    logger.error(error.message)
    logger.warning("Using default settings")
    return SageSettings()


class DebouncedSettingsHandler(FileSystemEventHandler):
    """File system event handler that reloads settings after a quiet period.

    Watchdog delivers events on its observer thread; they are handed to the
    asyncio loop with call_soon_threadsafe and debounced there.
    """

    def __init__(
        self,
        config_file: Path,
        callback: SettingsCallback,
        loop: asyncio.AbstractEventLoop,
        debounce_ms: int = 500,
    ):
        """Initialize handler.

        Args:
            config_file: Settings file to react to
            callback: Called with the reloaded settings (may be async)
            loop: Event loop running the daemon
            debounce_ms: Quiet period before reloading
        """
        super().__init__()
        self.config_file = config_file
        self.callback = callback
        self.loop = loop
        self.debounce_seconds = debounce_ms / 1000
        self._debounce_task: Optional[asyncio.Task] = None

    def _should_trigger(self, event: FileSystemEvent) -> bool:
        if event.is_directory:
            return False
        # Atomic saves arrive as a move onto the target name
        event_path = getattr(event, 'dest_path', None) or event.src_path
        return Path(event_path).name == self.config_file.name

    def on_modified(self, event: FileSystemEvent) -> None:
        if self._should_trigger(event):
            self.loop.call_soon_threadsafe(self._schedule_reload)

    def on_created(self, event: FileSystemEvent) -> None:
        if self._should_trigger(event):
            self.loop.call_soon_threadsafe(self._schedule_reload)

    def on_moved(self, event: FileSystemEvent) -> None:
        if self._should_trigger(event):
            self.loop.call_soon_threadsafe(self._schedule_reload)

    def _schedule_reload(self) -> None:
        if self._debounce_task and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = self.loop.create_task(self._debounced_reload())

    async def _debounced_reload(self) -> None:
        try:
            await asyncio.sleep(self.debounce_seconds)
            await self.reload()
        except asyncio.CancelledError:
            # Superseded by a newer change
            pass

    async def reload(self) -> None:
        """Reload settings and hand them to the callback.

        Invalid settings are logged and the running configuration is kept.
        """
        try:
            settings = load_settings(self.config_file, strict=True)
        except SettingsError as e:
            logger.error(f"Settings reload skipped: {e.message}")
            return

        logger.info(f"Settings changed: {self.config_file}")
        try:
            result = self.callback(settings)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Error applying reloaded settings: {e}", exc_info=True)


class SettingsWatcher:
    """Watches the settings file and applies changes to a running daemon."""

    def __init__(
        self,
        config_file: Path,
        callback: SettingsCallback,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        debounce_ms: int = 500,
    ):
        """Initialize settings watcher.

        Args:
            config_file: Path to settings.json
            callback: Called with reloaded settings (may be async)
            loop: Event loop to deliver reloads on (defaults to the running loop)
            debounce_ms: Debounce timeout in milliseconds
        """
        self.config_file = config_file
        self.handler = DebouncedSettingsHandler(
            config_file,
            callback,
            loop or asyncio.get_running_loop(),
            debounce_ms,
        )
        self.observer: Optional[Any] = None
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    def start(self) -> None:
        """Start watching.

        Watches the parent directory since editors that save atomically
        (temp file + rename) never modify the file itself.
        """
        if self._started:
            logger.warning("Settings watcher already started")
            return

        watch_dir = self.config_file.parent
        watch_dir.mkdir(parents=True, exist_ok=True)

        self.observer = Observer()
        self.observer.schedule(self.handler, str(watch_dir), recursive=False)
        self.observer.start()
        self._started = True

        logger.info(f"Started watching {self.config_file} for modifications")

    def stop(self) -> None:
        if not self._started:
            return

        self.observer.stop()
        self.observer.join(timeout=5.0)
        self.observer = None
        self._started = False

        logger.info(f"Stopped watching {self.config_file}")
