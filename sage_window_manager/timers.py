"""One-shot timers on the asyncio event loop."""

import asyncio
import logging
from typing import Callable, Optional

from .shell import TimerHandle

logger = logging.getLogger(__name__)


class LoopTimer(TimerHandle):
    """Deferred callback scheduled with loop.call_later.

    The callback runs on the loop thread like any other notification
    handler. Cancelling a timer that already fired or was already
    cancelled does nothing.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        delay_ms: int,
        callback: Callable[[], None],
    ):
        self._callback = callback
        self._fired = False
        self._cancelled = False
        self._handle: Optional[asyncio.TimerHandle] = loop.call_later(delay_ms / 1000, self._fire)

    @property
    def active(self) -> bool:
        return not self._fired and not self._cancelled

    def cancel(self) -> None:
        if not self.active:
            return
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        if self._cancelled:
            return
        self._fired = True
        self._handle = None
        try:
            self._callback()
        except Exception as e:
            logger.error(f"Timer callback failed: {e}", exc_info=True)
