"""Microphone → recognition stream producer."""
from __future__ import annotations

import asyncio
import logging
import sys
from typing import Callable, TextIO

import numpy as np

from .audio import AudioSource
from .errors import StreamSendError
from .messages import AudioContent, encode_frame
from .shutdown import StopSignal
from .speech import RecognitionStream

logger = logging.getLogger(__name__)


class CaptureLoop:
    """Read frames from the microphone and forward them over the stream.

    The loop owns the audio source from open to close. A failed send drops
    that frame and carries on; the loop only ends when the stop notification
    is consumed (or when a device error or cancellation unwinds it).
    """

    def __init__(
        self,
        source_factory: Callable[[], AudioSource],
        *,
        heartbeat: bool = True,
        out: TextIO | None = None,
    ) -> None:
        self._source_factory = source_factory
        self._heartbeat = heartbeat
        self._out = out
        self.frames_sent = 0
        self.frames_dropped = 0

    @property
    def out(self) -> TextIO:
        return self._out or sys.stdout

    async def run(self, stream: RecognitionStream, stop: StopSignal) -> None:
        source = self._source_factory()
        read: asyncio.Future[np.ndarray] | None = None
        try:
            source.start()
            logger.info("Microphone started")
            while True:
                read = asyncio.ensure_future(asyncio.to_thread(source.read_frame))
                samples = await asyncio.shield(read)
                request = AudioContent(encode_frame(samples))
                try:
                    await stream.send(request)
                except StreamSendError as exc:
                    self.frames_dropped += 1
                    logger.warning("Could not send audio: %s", exc)
                else:
                    self.frames_sent += 1

                if stop.consume():
                    logger.info("Turning off the mic")
                    self._stop_source(source)
                    return

                if self._heartbeat:
                    self.out.write(".")
                    self.out.flush()
        finally:
            if read is not None and not read.done():
                await self._finish_read(read)
            source.close()
            logger.debug(
                "Capture finished: %d frame(s) sent, %d dropped",
                self.frames_sent,
                self.frames_dropped,
            )

    @staticmethod
    async def _finish_read(read: asyncio.Future[np.ndarray]) -> None:
        """Wait for an in-flight read; the worker thread cannot be interrupted."""
        while not read.done():
            try:
                await asyncio.shield(read)
            except asyncio.CancelledError:
                continue
            except Exception as exc:
                logger.debug("Read in flight at shutdown failed: %s", exc)

    @staticmethod
    def _stop_source(source: AudioSource) -> None:
        try:
            source.stop()
        except Exception as exc:
            logger.error("Failed to stop the input stream: %s", exc)


__all__ = ["CaptureLoop"]
