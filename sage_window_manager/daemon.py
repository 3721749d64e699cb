"""Main daemon entry point.

Connects to Sway/i3, starts the window manager extension and runs until
SIGINT/SIGTERM, then releases every binding, subscription and border.
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import SettingsWatcher, load_settings
from .constants import ConfigPaths
from .errors import SageError
from .extension import SageWindowManager
from .models import SageSettings
from .sway_shell import SwayShell, connect_with_retry

logger = logging.getLogger(__name__)


class SageDaemon:
    """Owns the IPC connection, the shell adapter and the extension."""

    def __init__(self, config_file: Path, watch_settings: bool = True) -> None:
        """Initialize daemon.

        Args:
            config_file: Path to settings.json
            watch_settings: Reload settings when the file changes
        """
        self.config_file = config_file
        self.watch_settings = watch_settings
        self.shell: Optional[SwayShell] = None
        self.extension: Optional[SageWindowManager] = None
        self.watcher: Optional[SettingsWatcher] = None
        self.shutdown_event = asyncio.Event()

    async def initialize(self) -> None:
        """Connect, take the first snapshot and enable the extension."""
        settings = load_settings(self.config_file)

        conn = await connect_with_retry()
        self.shell = SwayShell(conn)
        await self.shell.refresh()

        self.extension = SageWindowManager(self.shell, settings)
        self.extension.start()
        self.shell.attach()
        await self.shell.flush()

        if self.watch_settings:
            self.watcher = SettingsWatcher(self.config_file, self._on_settings_changed)
            self.watcher.start()

    async def _on_settings_changed(self, settings: SageSettings) -> None:
        if self.extension is None or self.shell is None:
            return
        self.extension.apply_settings(settings)
        await self.shell.flush()

    def setup_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._request_shutdown, sig)

    def _request_shutdown(self, sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}, shutting down")
        self.shutdown_event.set()

    async def run(self) -> None:
        """Process IPC events until the connection closes."""
        await self.shell.conn.main()

    async def shutdown(self) -> None:
        """Disable the extension and close the connection."""
        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None

        if self.extension is not None:
            self.extension.stop()
            self.extension = None

        if self.shell is not None:
            self.shell.detach()
            try:
                await self.shell.flush()
            except Exception as e:
                logger.warning(f"Could not send cleanup commands: {e}")
            self.shell.conn.main_quit()

        logger.info("Daemon stopped")


def setup_logging(level: Optional[str] = None) -> None:
    """Setup logging to stderr.

    Args:
        level: Log level name (defaults to $LOG_LEVEL or INFO)
    """
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s [%(name)s] %(message)s"))
    root_logger.addHandler(handler)

    logger.info(f"Logging configured: level={log_level}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sage-wm",
        description="Focus cycling and focus border for Sway / i3",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=ConfigPaths.SETTINGS_FILE,
        help=f"Settings file (default: {ConfigPaths.SETTINGS_FILE})",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level (default: $LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--no-watch",
        action="store_true",
        help="Do not reload settings when the file changes",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


async def main_async(args: argparse.Namespace) -> int:
    """Async main function.

    Returns:
        Exit code (0 = success, non-zero = error)
    """
    daemon = SageDaemon(args.config, watch_settings=not args.no_watch)

    try:
        daemon.setup_signal_handlers()
        await daemon.initialize()

        run_task = asyncio.create_task(daemon.run())
        shutdown_task = asyncio.create_task(daemon.shutdown_event.wait())

        done, pending = await asyncio.wait(
            [run_task, shutdown_task], return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()

        await daemon.shutdown()
        return 0

    except SageError as e:
        logger.error(e.message)
        if e.suggestion:
            logger.error(e.suggestion)
        return 1

    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        await daemon.shutdown()
        return 1


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    logger.info(f"sage-wm {__version__} starting (PID {os.getpid()})")
    logger.info(f"Settings file: {args.config}")

    try:
        sys.exit(asyncio.run(main_async(args)))

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
