"""Exception hierarchy for the live caption pipeline."""
from __future__ import annotations


class CaptionError(RuntimeError):
    """Base class for every error raised by the pipeline."""


class ConfigError(CaptionError):
    """Settings could not be loaded or failed validation."""


class ConnectError(CaptionError):
    """The recognition client or stream could not be opened."""


class ConfigureError(CaptionError):
    """The initial streaming configuration could not be sent."""


class AudioDeviceError(CaptionError):
    """The microphone could not be opened, started or read."""


class RecognitionError(CaptionError):
    """The stream failed while receiving, or the service reported an error."""


class SessionDeadlineExceeded(CaptionError):
    """The session ran past its deadline."""


class StreamSendError(CaptionError):
    """A single request could not be written to the stream.

    The capture loop treats this as a dropped frame rather than a fatal error.
    """


__all__ = [
    "AudioDeviceError",
    "CaptionError",
    "ConfigError",
    "ConfigureError",
    "ConnectError",
    "RecognitionError",
    "SessionDeadlineExceeded",
    "StreamSendError",
]
