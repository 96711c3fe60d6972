"""Image codec used to transform camera JPEGs before publishing."""

from __future__ import annotations

from typing import Optional

import numpy as np

try:  # pragma: no cover - optional dependency in tests
    import cv2
except ImportError:  # pragma: no cover - executed when OpenCV missing
    cv2 = None

MAX_JPEG_QUALITY = 100


class CodecError(RuntimeError):
    """Raised when an image cannot be decoded or encoded."""


class ImageCodec:
    """Abstract codec for decoding, scaling and re-encoding frames."""

    def decode(self, data: bytes) -> np.ndarray:  # pragma: no cover - interface
        raise NotImplementedError

    def resize(
        self, image: np.ndarray, width: int, height: int
    ) -> np.ndarray:  # pragma: no cover - interface
        raise NotImplementedError

    def to_grayscale(self, image: np.ndarray) -> np.ndarray:  # pragma: no cover
        raise NotImplementedError

    def encode_jpeg(
        self, image: np.ndarray, quality: int = MAX_JPEG_QUALITY
    ) -> bytes:  # pragma: no cover - interface
        raise NotImplementedError


class OpenCvImageCodec(ImageCodec):
    """:class:`ImageCodec` backed by OpenCV."""

    def __init__(self) -> None:
        if cv2 is None:
            raise RuntimeError("OpenCV is required to use OpenCvImageCodec")

    def decode(self, data: bytes) -> np.ndarray:
        buffer = np.frombuffer(bytes(data), dtype=np.uint8)
        image: Optional[np.ndarray] = None
        if buffer.size:
            # Pixel layout must match the size the camera reported, so EXIF
            # orientation is not applied.
            image = cv2.imdecode(
                buffer, cv2.IMREAD_COLOR | cv2.IMREAD_IGNORE_ORIENTATION
            )
        if image is None:
            raise CodecError(f"Unable to decode image of {buffer.size} bytes")
        return image

    def resize(self, image: np.ndarray, width: int, height: int) -> np.ndarray:
        # Nearest neighbour keeps the pixel format untouched.
        return cv2.resize(
            image, (int(width), int(height)), interpolation=cv2.INTER_NEAREST
        )

    def to_grayscale(self, image: np.ndarray) -> np.ndarray:
        """Zero the saturation while keeping the channel layout."""

        if image.ndim == 2:
            return image.copy()
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)

    def encode_jpeg(self, image: np.ndarray, quality: int = MAX_JPEG_QUALITY) -> bytes:
        quality = max(0, min(int(quality), MAX_JPEG_QUALITY))
        success, encoded = cv2.imencode(
            ".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), quality]
        )
        if not success:
            raise CodecError("JPEG encoding failed")
        return encoded.tobytes()


__all__ = ["CodecError", "ImageCodec", "OpenCvImageCodec", "MAX_JPEG_QUALITY"]
