"""Thread-safe publishing of science camera images."""

from __future__ import annotations

import numbers
import threading
from dataclasses import replace
from typing import Any, Optional, Union

from ..utils.bus import IMAGE_TOPIC, INFO_TOPIC, BusClient, resolve_topic
from ..utils.image_codec import MAX_JPEG_QUALITY, ImageCodec, OpenCvImageCodec
from ..utils.logger import get_logger
from ..utils.types import (
    ColorMode,
    ImageSample,
    OutboundImageMessage,
    OutboundInfoMessage,
    PublishConfig,
    PublishResult,
    PublishStatus,
    split_timestamp,
)

LOGGER = get_logger(__name__)


class ImagePublishingService:
    """Transform camera samples and publish them as image and camera info.

    A single lock guards the publishing configuration and every publish call,
    so a frame is always processed and reported against one consistent
    configuration. Publishing is expected at camera frame rate, so decoding
    and network I/O happen while the lock is held.

    Construct one instance at startup and hand it to both the capture side
    and the control side.
    """

    def __init__(
        self,
        codec: Optional[ImageCodec] = None,
        config: Optional[PublishConfig] = None,
        bus: Optional[BusClient] = None,
    ) -> None:
        self.codec = codec if codec is not None else OpenCvImageCodec()
        self._config = config or PublishConfig()
        self._lock = threading.Lock()
        self._bus: Optional[BusClient] = None
        self._image_handle: Any = None
        self._info_handle: Any = None
        if bus is not None:
            self.connect(bus)

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------
    def connect(self, bus: BusClient) -> None:
        """Register the image and camera info publishers on ``bus``.

        Publishers from a previous connection are destroyed once the new ones
        are in place.
        """

        image_handle = bus.register_image_publisher(resolve_topic(IMAGE_TOPIC))
        info_handle = bus.register_info_publisher(resolve_topic(INFO_TOPIC))
        with self._lock:
            previous = self._swap_connection(bus, image_handle, info_handle)
        self._release(*previous)
        LOGGER.info("Science camera publisher connected to the bus")

    def disconnect(self) -> None:
        with self._lock:
            previous = self._swap_connection(None, None, None)
        self._release(*previous)

    def _swap_connection(self, bus, image_handle, info_handle):
        previous = (self._bus, self._image_handle, self._info_handle)
        self._bus = bus
        self._image_handle = image_handle
        self._info_handle = info_handle
        return previous

    @staticmethod
    def _release(bus: Optional[BusClient], *handles: Any) -> None:
        if bus is None:
            return
        for handle in handles:
            if handle is not None:
                bus.destroy_publisher(handle)

    @property
    def connected(self) -> bool:
        with self._lock:
            return self._bus is not None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    @property
    def config(self) -> PublishConfig:
        """Snapshot of the current publishing configuration."""

        with self._lock:
            return self._config

    def set_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._config = replace(self._config, enabled=bool(enabled))

    def set_target_size(self, width: int, height: int) -> bool:
        """Set the published resolution.

        Only positive integers are accepted. Floats, strings and bools are
        rejected rather than coerced.
        """

        if not (_is_int(width) and _is_int(height)):
            return False
        width, height = int(width), int(height)
        if width <= 0 or height <= 0:
            return False
        with self._lock:
            self._config = replace(self._config, width=width, height=height)
        return True

    def set_color_mode(self, mode: Union[str, ColorMode]) -> bool:
        """Set the colour mode; only ``"color"`` and ``"grayscale"`` apply."""

        parsed = ColorMode.parse(mode)
        if parsed is None:
            return False
        with self._lock:
            self._config = replace(self._config, color_mode=parsed)
        return True

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------
    def publish(self, sample: ImageSample) -> PublishResult:
        """Process ``sample`` and publish the image with its camera info.

        Failures never propagate: the returned :class:`PublishResult` tells
        the caller whether the frame went out, and dropped frames are not
        retried.
        """

        with self._lock:
            LOGGER.debug("Attempting to publish image")
            config = self._config
            if not config.enabled:
                LOGGER.debug("Received image but publishing is disabled")
                return PublishResult(PublishStatus.DISABLED)
            if self._bus is None:
                LOGGER.error(
                    "Science camera publisher is not connected. Is the ROS graph up?"
                )
                return PublishResult(PublishStatus.NOT_CONNECTED)
            try:
                payload = self._process(sample, config)
                stamp = split_timestamp(sample.capture_time_ms)
                self._bus.publish(
                    self._image_handle, OutboundImageMessage(stamp=stamp, data=payload)
                )
                self._bus.publish(
                    self._info_handle,
                    OutboundInfoMessage(
                        stamp=stamp, width=config.width, height=config.height
                    ),
                )
            except Exception as exc:
                LOGGER.exception("Failed to publish science camera image")
                return PublishResult(PublishStatus.FAILED, error=exc)
        return PublishResult(PublishStatus.PUBLISHED)

    def _process(self, sample: ImageSample, config: PublishConfig) -> bytes:
        image = self.codec.decode(sample.encoded_bytes)
        if tuple(sample.source_size) != config.size:
            image = self.codec.resize(image, config.width, config.height)
        if config.color_mode is ColorMode.GRAYSCALE:
            image = self.codec.to_grayscale(image)
        return self.codec.encode_jpeg(image, MAX_JPEG_QUALITY)


def _is_int(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


__all__ = ["ImagePublishingService"]
