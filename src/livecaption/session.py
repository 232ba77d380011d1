"""Session orchestration: connect, configure, capture and print results."""
from __future__ import annotations

import asyncio
import logging
import signal
import sys
from functools import partial
from typing import Awaitable, Callable, Iterable, TextIO

from .audio import AudioSource, MicrophoneSource
from .capture import CaptureLoop
from .config import Settings
from .errors import ConfigureError, RecognitionError, SessionDeadlineExceeded, StreamSendError
from .messages import AudioEncoding, StreamingConfig, render_result
from .shutdown import DEFAULT_SIGNALS, ShutdownCoordinator, StopSignal
from .speech import RecognitionStream, connect

logger = logging.getLogger(__name__)

Connector = Callable[[Settings], Awaitable[RecognitionStream]]


class SessionController:
    """Owns the recognition stream for the lifetime of one session.

    All network work happens under a single deadline; when it expires the
    pending operation is cancelled and :class:`SessionDeadlineExceeded` is
    raised.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        capture: CaptureLoop,
        connector: Connector = connect,
        deadline: float | None = None,
        out: TextIO | None = None,
    ) -> None:
        self._settings = settings
        self._capture = capture
        self._connector = connector
        self._deadline = deadline
        self._out = out
        self.results_printed = 0

    @property
    def out(self) -> TextIO:
        return self._out or sys.stdout

    def streaming_config(self) -> StreamingConfig:
        return StreamingConfig(
            encoding=AudioEncoding.LINEAR16,
            sample_rate_hertz=self._settings.sample_rate_hertz,
            language_code=self._settings.language_code,
        )

    async def run(self, stop: StopSignal) -> None:
        deadline = self._deadline
        if deadline is None:
            deadline = asyncio.get_running_loop().time() + self._settings.session_seconds
        try:
            async with asyncio.timeout_at(deadline):
                stream = await self._connector(self._settings)
                try:
                    await self.configure(stream)
                    await self._pump(stream, stop)
                finally:
                    await stream.close()
        except TimeoutError as exc:
            raise SessionDeadlineExceeded(
                f"Session deadline of {self._settings.session_seconds:g}s reached"
            ) from exc

    async def configure(self, stream: RecognitionStream) -> None:
        config = self.streaming_config()
        try:
            await stream.send(config)
        except StreamSendError as exc:
            raise ConfigureError(f"Could not send the streaming config: {exc}") from exc
        logger.info(
            "Streaming %s audio at %d Hz (%s)",
            config.encoding.value,
            config.sample_rate_hertz,
            config.language_code,
        )

    async def _pump(self, stream: RecognitionStream, stop: StopSignal) -> None:
        results = asyncio.create_task(self.read_results(stream), name="livecaption-results")
        capture = asyncio.create_task(self._capture.run(stream, stop), name="livecaption-capture")
        pending = {results, capture}
        try:
            while results in pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    task.result()
        finally:
            for task in (capture, results):
                task.cancel()
            await asyncio.gather(capture, results, return_exceptions=True)

    async def read_results(self, stream: RecognitionStream) -> int:
        """Print every result until the service closes the stream."""
        async for response in stream.responses():
            if response.error:
                raise RecognitionError(f"Could not recognize: {response.error}")
            for result in response.results:
                self.out.write(f"Result: {render_result(result)}\n")
                self.out.flush()
                self.results_printed += 1
        logger.info("Recognition stream closed after %d result(s)", self.results_printed)
        return self.results_printed


async def run_session(
    settings: Settings,
    *,
    connector: Connector = connect,
    source_factory: Callable[[], AudioSource] | None = None,
    signals: Iterable[signal.Signals] = DEFAULT_SIGNALS,
    out: TextIO | None = None,
) -> int:
    """Run one capture session and return the process exit status.

    Fatal errors propagate as :class:`~livecaption.errors.CaptionError`.
    """

    loop = asyncio.get_running_loop()
    deadline = loop.time() + settings.session_seconds

    stop = StopSignal()
    coordinator = ShutdownCoordinator(
        stop, grace_seconds=settings.stop_grace_seconds, signals=signals
    )
    coordinator.install(loop)

    if source_factory is None:
        source_factory = partial(MicrophoneSource.from_settings, settings)
    capture = CaptureLoop(source_factory, heartbeat=settings.heartbeat, out=out)
    controller = SessionController(
        settings, capture=capture, connector=connector, deadline=deadline, out=out
    )

    session = asyncio.create_task(controller.run(stop), name="livecaption-session")
    shutdown = asyncio.create_task(coordinator.wait(), name="livecaption-shutdown")
    try:
        done, _ = await asyncio.wait({session, shutdown}, return_when=asyncio.FIRST_COMPLETED)
        if session in done:
            session.result()
        else:
            shutdown.result()
        return 0
    finally:
        coordinator.uninstall()
        for task in (session, shutdown):
            task.cancel()
        await asyncio.gather(session, shutdown, return_exceptions=True)


__all__ = ["Connector", "SessionController", "run_session"]
