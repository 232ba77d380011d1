"""Microphone capture via sounddevice (PortAudio)."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Protocol

import numpy as np
import sounddevice as sd

from .config import Settings
from .errors import AudioDeviceError

logger = logging.getLogger(__name__)


class AudioSource(Protocol):
    """What the capture loop needs from an input device."""

    def start(self) -> None: ...

    def read_frame(self) -> np.ndarray: ...

    def stop(self) -> None: ...

    def close(self) -> None: ...


class MicrophoneSource:
    """Blocking reader over a single-channel ``int16`` input stream.

    Every :meth:`read_frame` returns exactly ``frame_samples`` samples.
    """

    def __init__(
        self,
        *,
        sample_rate: int,
        frame_samples: int,
        channels: int = 1,
        device: int | str | None = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.frame_samples = frame_samples
        self.channels = channels
        self.device = device
        self.overflows = 0
        try:
            self._stream = sd.InputStream(
                samplerate=sample_rate,
                channels=channels,
                dtype="int16",
                blocksize=frame_samples,
                device=device,
            )
        except (sd.PortAudioError, ValueError) as exc:
            raise AudioDeviceError(f"Failed to open the input device: {exc}") from exc
        logger.debug(
            "Opened input device %s: %d Hz, %d channel(s), %d samples/frame",
            device if device is not None else "(default)",
            sample_rate,
            channels,
            frame_samples,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "MicrophoneSource":
        return cls(
            sample_rate=settings.sample_rate_hertz,
            frame_samples=settings.frame_samples,
            channels=settings.channels,
            device=settings.input_device,
        )

    def start(self) -> None:
        try:
            self._stream.start()
        except sd.PortAudioError as exc:
            raise AudioDeviceError(f"Failed to start the input stream: {exc}") from exc

    def read_frame(self) -> np.ndarray:
        try:
            frames, overflowed = self._stream.read(self.frame_samples)
        except sd.PortAudioError as exc:
            raise AudioDeviceError(f"Failed to read from the input stream: {exc}") from exc
        if overflowed:
            self.overflows += 1
            logger.warning("Input overflow; samples were lost before this frame")
        return frames

    def stop(self) -> None:
        self._stream.stop()

    def close(self) -> None:
        self._stream.close()


def list_input_devices() -> List[Dict[str, Any]]:
    """Return ``{"index", "name", "channels", "default_samplerate"}`` per input device."""

    try:
        devices = sd.query_devices()
    except sd.PortAudioError as exc:
        raise AudioDeviceError(f"Could not query audio devices: {exc}") from exc
    found: List[Dict[str, Any]] = []
    for idx, info in enumerate(devices):
        if info["max_input_channels"] <= 0:
            continue
        found.append(
            {
                "index": idx,
                "name": info["name"],
                "channels": info["max_input_channels"],
                "default_samplerate": info["default_samplerate"],
            }
        )
    return found


__all__ = ["AudioSource", "MicrophoneSource", "list_input_devices"]
