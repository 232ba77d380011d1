"""Live microphone captioning over a streaming speech-recognition service."""
from __future__ import annotations

from .config import Settings
from .errors import CaptionError
from .session import SessionController, run_session

__version__ = "0.1.0"

__all__ = ["CaptionError", "SessionController", "Settings", "__version__", "run_session"]
