"""Configuration helpers for the live caption client."""
from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import ConfigError
from .messages import FRAME_SAMPLES, LANGUAGE_CODE, SAMPLE_RATE_HERTZ

CONFIG_FILENAME = "livecaption.yaml"
ENV_PREFIX = "LIVECAPTION_"
BACKENDS = ("google", "transcribe")

GOOGLE_SPEECH_ENDPOINT = "speech.googleapis.com:443"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off"})


def _load_mapping(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must define a mapping of settings.")
    return data


def find_config_file(filename: str = CONFIG_FILENAME) -> Path | None:
    """Locate a config file by walking up from this module's directory."""

    here = Path(__file__).resolve()
    for parent in [here.parent] + list(here.parents):
        candidate = parent / "config" / filename
        if candidate.exists():
            return candidate
    return None


def _coerce(name: str, raw: Any, default: Any) -> Any:
    """Convert a YAML or environment value to the type of the field default."""

    if raw is None:
        if default is None:
            return None
        raise ConfigError(f"{name} cannot be empty")
    try:
        if isinstance(default, bool):
            if isinstance(raw, str):
                flag = raw.strip().lower()
                if flag in _TRUE_STRINGS:
                    return True
                if flag in _FALSE_STRINGS:
                    return False
                raise ValueError(flag)
            return bool(raw)
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
        if isinstance(default, tuple):
            if isinstance(raw, str):
                return tuple(part.strip() for part in raw.split(",") if part.strip())
            return tuple(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value for {name}: {raw!r}") from exc
    # Optional fields: device indices arrive as strings from the environment.
    if default is None and isinstance(raw, str) and raw.strip().isdigit():
        return int(raw)
    return raw


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime settings for one capture session."""

    backend: str = "google"
    language_code: str = LANGUAGE_CODE
    sample_rate_hertz: int = SAMPLE_RATE_HERTZ
    frame_samples: int = FRAME_SAMPLES
    channels: int = 1
    input_device: int | str | None = None
    # Caps how long (and how expensively) a single run talks to the service.
    session_seconds: float = 240.0
    stop_grace_seconds: float = 5.0
    send_queue_frames: int = 32
    endpoint: str = GOOGLE_SPEECH_ENDPOINT
    scopes: tuple[str, ...] = (CLOUD_PLATFORM_SCOPE,)
    aws_region: str | None = None
    heartbeat: bool = True

    def validate(self) -> "Settings":
        if self.backend not in BACKENDS:
            raise ConfigError(
                f"Unknown backend {self.backend!r}; expected one of {', '.join(BACKENDS)}."
            )
        for name in ("sample_rate_hertz", "frame_samples", "channels", "send_queue_frames"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive.")
        if self.session_seconds <= 0:
            raise ConfigError("session_seconds must be positive.")
        if self.stop_grace_seconds < 0:
            raise ConfigError("stop_grace_seconds cannot be negative.")
        return self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Settings":
        defaults = {f.name: f.default for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - set(defaults))
        if unknown:
            raise ConfigError(f"Unknown setting(s): {', '.join(unknown)}")
        values = {name: _coerce(name, raw, defaults[name]) for name, raw in data.items()}
        return cls(**values).validate()

    @classmethod
    def load(
        cls,
        path: str | os.PathLike[str] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "Settings":
        """Build settings from defaults, an optional YAML file and the environment.

        The file is ``path`` if given, else ``$LIVECAPTION_CONFIG``, else
        ``config/livecaption.yaml`` found above the package. Environment
        variables named ``LIVECAPTION_<FIELD>`` win over the file.
        """

        env = os.environ if environ is None else environ
        data: dict[str, Any] = {}

        explicit = path or env.get(f"{ENV_PREFIX}CONFIG")
        if explicit:
            config_path = Path(explicit)
            if not config_path.exists():
                raise ConfigError(f"Config file not found: {config_path}")
        else:
            config_path = find_config_file()
        if config_path is not None:
            data.update(_load_mapping(config_path))

        for f in dataclasses.fields(cls):
            raw = env.get(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is not None:
                data[f.name] = raw

        return cls.from_mapping(data)


__all__ = [
    "BACKENDS",
    "CLOUD_PLATFORM_SCOPE",
    "GOOGLE_SPEECH_ENDPOINT",
    "Settings",
    "find_config_file",
]
