"""Configuration loading for the science camera publisher."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Union

import yaml

from .types import ColorMode, PublishConfig

CameraSource = Union[int, str]


class ConfigError(ValueError):
    """Raised when a configuration file contains invalid values."""


@dataclass
class CaptureConfig:
    """Camera capture settings used by the node's capture loop."""

    source: CameraSource = 0
    fps: float = 1.0
    continuous: bool = True
    jpeg_quality: int = 95


@dataclass
class SciCamConfig:
    """Complete configuration for ``sci_cam_node``."""

    publish: PublishConfig = field(default_factory=PublishConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)


def default_config_path() -> Path:
    """Return the packaged default configuration file."""

    return Path(__file__).resolve().parents[1] / "config" / "sci_cam.yaml"


def load_file(path: Path) -> Dict[str, Any]:
    """Load a YAML (or JSON, which is valid YAML) configuration file."""

    text = Path(path).read_text(encoding="utf8")
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Unable to parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}")
    return data


def parse_publish_config(data: Mapping[str, Any]) -> PublishConfig:
    defaults = PublishConfig()
    width = _positive_int(data.get("width", defaults.width), "publish.width")
    height = _positive_int(data.get("height", defaults.height), "publish.height")
    mode = ColorMode.parse(data.get("color_mode", defaults.color_mode.value))
    if mode is None:
        raise ConfigError(
            f"publish.color_mode must be 'color' or 'grayscale', got "
            f"{data.get('color_mode')!r}"
        )
    return PublishConfig(
        enabled=_as_bool(data.get("enabled", defaults.enabled), "publish.enabled"),
        width=width,
        height=height,
        color_mode=mode,
    )


def parse_capture_config(data: Mapping[str, Any]) -> CaptureConfig:
    defaults = CaptureConfig()
    source = data.get("source", defaults.source)
    if isinstance(source, str) and source.isdigit():
        source = int(source)
    try:
        fps = float(data.get("fps", defaults.fps))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"capture.fps must be a number: {exc}") from exc
    if fps <= 0:
        raise ConfigError("capture.fps must be positive")
    quality = _positive_int(
        data.get("jpeg_quality", defaults.jpeg_quality), "capture.jpeg_quality"
    )
    return CaptureConfig(
        source=source,
        fps=fps,
        continuous=_as_bool(
            data.get("continuous", defaults.continuous), "capture.continuous"
        ),
        jpeg_quality=min(quality, 100),
    )


def load_config(path: Path) -> SciCamConfig:
    """Load a :class:`SciCamConfig` from ``path``."""

    data = load_file(path)
    return SciCamConfig(
        publish=parse_publish_config(_section(data, "publish")),
        capture=parse_capture_config(_section(data, "capture")),
    )


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, Mapping):
        raise ConfigError(f"Section '{name}' must be a mapping")
    return section


def _positive_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer: {exc}") from exc
    if number <= 0:
        raise ConfigError(f"{key} must be positive, got {number}")
    return number


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in {"true", "false"}:
        return value.lower() == "true"
    raise ConfigError(f"{key} must be a boolean")


__all__ = [
    "CaptureConfig",
    "ConfigError",
    "SciCamConfig",
    "default_config_path",
    "load_config",
    "load_file",
    "parse_capture_config",
    "parse_publish_config",
]
