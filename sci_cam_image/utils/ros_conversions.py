"""Helpers for converting outbound dataclasses into ROS messages."""

from __future__ import annotations

from typing import Optional

from .types import OutboundImageMessage, OutboundInfoMessage, Stamp

_ROS_IMPORT_ERROR: Optional[Exception] = None
try:  # pragma: no cover - optional at test time
    from builtin_interfaces.msg import Time
    from sensor_msgs.msg import CameraInfo, CompressedImage
    from std_msgs.msg import Header
except ImportError as exc:  # pragma: no cover - executed when ROS not available
    _ROS_IMPORT_ERROR = exc
    Time = CameraInfo = CompressedImage = Header = None


def _require_messages() -> None:
    if CompressedImage is None:
        message = "ROS messages are not available in this environment"
        if _ROS_IMPORT_ERROR is not None:
            message += f": {_ROS_IMPORT_ERROR}"
        raise RuntimeError(message) from _ROS_IMPORT_ERROR


def stamp_to_header(stamp: Stamp, frame_id: str) -> Header:
    _require_messages()
    header = Header()
    header.stamp = Time(sec=int(stamp.sec), nanosec=int(stamp.nanosec))
    header.frame_id = frame_id
    return header


def image_to_msg(image: OutboundImageMessage) -> CompressedImage:
    """Convert an outbound image to ``sensor_msgs/CompressedImage``."""

    _require_messages()
    msg = CompressedImage()
    msg.header = stamp_to_header(image.stamp, image.frame_id)
    msg.format = image.format
    msg.data = bytes(image.data)
    return msg


def info_to_msg(info: OutboundInfoMessage) -> CameraInfo:
    """Convert outbound camera info to ``sensor_msgs/CameraInfo``."""

    _require_messages()
    msg = CameraInfo()
    msg.header = stamp_to_header(info.stamp, info.frame_id)
    msg.width = int(info.width)
    msg.height = int(info.height)
    return msg


__all__ = ["stamp_to_header", "image_to_msg", "info_to_msg"]
