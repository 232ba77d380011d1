"""One-shot stop token and OS signal handling."""
from __future__ import annotations

import asyncio
import logging
import signal
from enum import Enum
from typing import Any, Iterable

logger = logging.getLogger(__name__)

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class StopSignal:
    """Single-use stop notification shared by the coordinator and capture loop.

    ``notify`` succeeds at most once and ``consume`` hands the notification
    to at most one reader. The notifier can wait for the hand-off with
    ``wait_consumed``.
    """

    def __init__(self) -> None:
        self._requested = asyncio.Event()
        self._consumed = asyncio.Event()
        self._notified = False

    @property
    def notified(self) -> bool:
        return self._notified

    @property
    def consumed(self) -> bool:
        return self._consumed.is_set()

    def notify(self) -> bool:
        if self._notified:
            return False
        self._notified = True
        self._requested.set()
        return True

    def consume(self) -> bool:
        """Non-blocking check; True exactly once after ``notify``."""
        if not self._requested.is_set() or self._consumed.is_set():
            return False
        self._consumed.set()
        return True

    async def wait_consumed(self) -> None:
        await self._consumed.wait()


class ShutdownState(str, Enum):
    IDLE = "idle"
    SIGNALED = "signaled"
    TERMINATING = "terminating"


class ShutdownCoordinator:
    """Turn the first SIGINT/SIGTERM into a stop notification.

    Handlers are removed as soon as one signal arrives, so a second interrupt
    gets the interpreter's default behaviour.
    """

    def __init__(
        self,
        stop: StopSignal,
        *,
        grace_seconds: float = 5.0,
        signals: Iterable[signal.Signals] = DEFAULT_SIGNALS,
    ) -> None:
        self._stop = stop
        self._grace_seconds = grace_seconds
        self._signals = tuple(signals)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._received: asyncio.Future[signal.Signals] | None = None
        self._installed: dict[signal.Signals, Any] = {}
        self.state = ShutdownState.IDLE

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._received = self._loop.create_future()
        for sig in self._signals:
            try:
                self._loop.add_signal_handler(sig, self.handle, sig)
                self._installed[sig] = None
            except NotImplementedError:
                # No loop signal support (Windows); route through signal.signal.
                self._installed[sig] = signal.signal(sig, self._threadsafe_handler)
        logger.debug("Installed handlers for %s", ", ".join(s.name for s in self._signals))

    def uninstall(self) -> None:
        if self._loop is None:
            return
        for sig, previous in self._installed.items():
            if previous is None:
                self._loop.remove_signal_handler(sig)
            else:
                signal.signal(sig, previous)
        self._installed.clear()

    def _threadsafe_handler(self, signum: int, _frame: Any) -> None:
        if self._loop is None:
            raise RuntimeError("ShutdownCoordinator.install() must be called first.")
        self._loop.call_soon_threadsafe(self.handle, signal.Signals(signum))

    def handle(self, sig: signal.Signals) -> None:
        """Record a received signal; only the first one counts."""
        if self._received is None or self._received.done():
            return
        self._received.set_result(sig)
        self.uninstall()

    async def wait(self) -> signal.Signals:
        """Wait for a signal, deliver the stop notification, and return the signal."""
        if self._received is None:
            raise RuntimeError("ShutdownCoordinator.install() must be called first.")

        sig = await self._received
        self.state = ShutdownState.SIGNALED
        logger.warning("Received signal %s, shutting down", sig.name)

        self._stop.notify()
        try:
            await asyncio.wait_for(self._stop.wait_consumed(), timeout=self._grace_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "Capture loop did not take the stop notification within %.1fs",
                self._grace_seconds,
            )
        self.state = ShutdownState.TERMINATING
        return sig


__all__ = ["DEFAULT_SIGNALS", "ShutdownCoordinator", "ShutdownState", "StopSignal"]
