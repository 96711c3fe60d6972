"""Camera capture producing encoded samples for the publisher."""

from __future__ import annotations

import time
from typing import Callable, Optional, Union

import numpy as np

try:  # pragma: no cover - optional dependency in tests
    import cv2
except ImportError:  # pragma: no cover - executed when OpenCV missing
    cv2 = None

from .types import ImageSample


class CameraStream:
    """Science camera opened through ``cv2.VideoCapture``.

    The device is asked to run at ``fps``; drivers that cannot honour the
    request keep their own rate and the capture timer drops the surplus.
    """

    def __init__(self, source: Union[str, int], fps: Optional[float] = None) -> None:
        if cv2 is None:
            raise RuntimeError("OpenCV is required to use CameraStream")
        self.source = source
        self._device = cv2.VideoCapture(source)
        if not self._device.isOpened():
            raise RuntimeError(f"Unable to open camera source {source}")
        if fps:
            self._device.set(cv2.CAP_PROP_FPS, float(fps))

    @property
    def fps(self) -> float:
        """Frame rate the device reports after configuration."""

        return float(self._device.get(cv2.CAP_PROP_FPS))

    def read(self) -> np.ndarray:
        grabbed, frame = self._device.read()
        if not grabbed or frame is None:
            raise RuntimeError(f"No frame available from camera source {self.source}")
        return frame

    def release(self) -> None:
        self._device.release()


def current_time_ms() -> int:
    return time.time_ns() // 1_000_000


def frame_to_sample(
    frame: np.ndarray,
    quality: int = 95,
    clock: Callable[[], int] = current_time_ms,
    capture_time_ms: Optional[int] = None,
) -> ImageSample:
    """Encode ``frame`` as JPEG and wrap it in an :class:`ImageSample`."""

    if cv2 is None:
        raise RuntimeError("OpenCV is required to encode camera frames")
    stamp = clock() if capture_time_ms is None else int(capture_time_ms)
    success, encoded = cv2.imencode(
        ".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)]
    )
    if not success:
        raise RuntimeError("Failed to encode camera frame")
    height, width = frame.shape[:2]
    return ImageSample(
        encoded_bytes=encoded.tobytes(),
        source_size=(int(width), int(height)),
        capture_time_ms=stamp,
    )


def capture_sample(
    stream: CameraStream, quality: int = 95, clock: Callable[[], int] = current_time_ms
) -> ImageSample:
    """Grab one frame from ``stream`` stamped with the capture time."""

    frame = stream.read()
    return frame_to_sample(frame, quality=quality, clock=clock)


__all__ = ["CameraStream", "capture_sample", "current_time_ms", "frame_to_sample"]
