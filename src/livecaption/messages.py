"""Request/response types exchanged with the recognition service."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

import numpy as np

FRAME_SAMPLES = 8196
SAMPLE_RATE_HERTZ = 16000
LANGUAGE_CODE = "en-US"


class AudioEncoding(str, Enum):
    # Uncompressed 16-bit signed little-endian samples.
    LINEAR16 = "LINEAR16"


@dataclass(frozen=True, slots=True)
class StreamingConfig:
    """First request of every stream: how the audio that follows is encoded."""

    encoding: AudioEncoding = AudioEncoding.LINEAR16
    sample_rate_hertz: int = SAMPLE_RATE_HERTZ
    language_code: str = LANGUAGE_CODE


@dataclass(frozen=True, slots=True)
class AudioContent:
    """One serialized audio frame."""

    audio: bytes

    def __repr__(self) -> str:
        return f"AudioContent(<{len(self.audio)} bytes>)"


RecognitionRequest = Union[StreamingConfig, AudioContent]


@dataclass(slots=True)
class RecognitionResponse:
    """A response read from the stream.

    ``results`` holds whatever result objects the backend produced; they are
    rendered for display and never inspected. ``error`` is set when the
    service reported a failure in-band.
    """

    results: list[Any] = field(default_factory=list)
    error: str | None = None


def encode_frame(samples: np.ndarray) -> bytes:
    """Serialize a block of samples as little-endian signed 16-bit PCM."""

    flat = np.asarray(samples).reshape(-1)
    return flat.astype("<i2", copy=False).tobytes()


def render_result(result: Any) -> str:
    text = str(result).strip()
    # Protobuf text format spans several lines; keep one result per line.
    return " ".join(text.split())


__all__ = [
    "AudioContent",
    "AudioEncoding",
    "FRAME_SAMPLES",
    "LANGUAGE_CODE",
    "RecognitionRequest",
    "RecognitionResponse",
    "SAMPLE_RATE_HERTZ",
    "StreamingConfig",
    "encode_frame",
    "render_result",
]
