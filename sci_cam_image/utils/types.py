"""Typed data structures shared by the science camera publisher."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

FRAME_ID = "sci_camera"
IMAGE_FORMAT = "jpeg"


class ColorMode(str, Enum):
    """Colour treatment applied to published images."""

    COLOR = "color"
    GRAYSCALE = "grayscale"

    @classmethod
    def parse(cls, value: object) -> Optional["ColorMode"]:
        """Return the matching mode or ``None`` when ``value`` is not exact."""

        if isinstance(value, cls):
            return value
        for mode in cls:
            if value == mode.value:
                return mode
        return None


@dataclass(frozen=True)
class PublishConfig:
    """Publishing settings guarded by :class:`ImagePublishingService`.

    Attributes:
        enabled: Whether incoming samples are published at all.
        width: Target image width in pixels, always positive.
        height: Target image height in pixels, always positive.
        color_mode: Colour treatment applied before encoding.
    """

    enabled: bool = True
    width: int = 640
    height: int = 480
    color_mode: ColorMode = ColorMode.COLOR

    @property
    def size(self) -> Tuple[int, int]:
        """Target size as ``(width, height)``."""

        return self.width, self.height


@dataclass(frozen=True)
class ImageSample:
    """A single encoded frame handed to the publisher.

    Attributes:
        encoded_bytes: Compressed image as produced by the camera.
        source_size: Dimensions of the encoded image as ``(width, height)``.
        capture_time_ms: Capture time in milliseconds since the epoch.
    """

    encoded_bytes: bytes
    source_size: Tuple[int, int]
    capture_time_ms: int


@dataclass(frozen=True)
class Stamp:
    """Split timestamp matching ``builtin_interfaces/Time``."""

    sec: int
    nanosec: int


@dataclass(frozen=True)
class OutboundImageMessage:
    """Compressed image ready for the bus."""

    stamp: Stamp
    data: bytes
    frame_id: str = FRAME_ID
    format: str = IMAGE_FORMAT


@dataclass(frozen=True)
class OutboundInfoMessage:
    """Camera info paired with an :class:`OutboundImageMessage`."""

    stamp: Stamp
    width: int
    height: int
    frame_id: str = FRAME_ID


class PublishStatus(str, Enum):
    """Outcome of a single publish call."""

    PUBLISHED = "published"
    DISABLED = "disabled"
    NOT_CONNECTED = "not_connected"
    FAILED = "failed"


@dataclass(frozen=True)
class PublishResult:
    """Result returned by :meth:`ImagePublishingService.publish`."""

    status: PublishStatus
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status is PublishStatus.PUBLISHED


def split_timestamp(millis: int) -> Stamp:
    """Split a millisecond timestamp into whole seconds and nanoseconds.

    Floor division keeps ``nanosec`` within ``[0, 1e9)`` for any input.
    """

    sec, remainder = divmod(int(millis), 1000)
    return Stamp(sec=sec, nanosec=remainder * 1_000_000)


__all__ = [
    "FRAME_ID",
    "IMAGE_FORMAT",
    "ColorMode",
    "PublishConfig",
    "ImageSample",
    "Stamp",
    "OutboundImageMessage",
    "OutboundInfoMessage",
    "PublishStatus",
    "PublishResult",
    "split_timestamp",
]
