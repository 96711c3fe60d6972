"""Publish/subscribe bus clients used by the image publisher."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

_ROS_IMPORT_ERROR: Optional[Exception] = None
try:  # pragma: no cover - optional at test time
    from sensor_msgs.msg import CameraInfo, CompressedImage
except ImportError as exc:  # pragma: no cover - executed when ROS not available
    _ROS_IMPORT_ERROR = exc
    CameraInfo = CompressedImage = None

from .ros_conversions import image_to_msg, info_to_msg

IMAGE_NAMESPACE = "hw"
# rviz and rqt only treat the topic as compressed when the last segment is
# literally ``compressed``.
IMAGE_TOPIC = "cam_sci/compressed"
INFO_TOPIC = "cam_sci_info"
COMMAND_TOPIC = "cam_sci/command"


def resolve_topic(name: str, namespace: str = IMAGE_NAMESPACE) -> str:
    """Join ``name`` under ``namespace`` keeping it relative to the node."""

    namespace = namespace.strip("/")
    name = name.strip("/")
    return f"{namespace}/{name}" if namespace else name


class BusClient:
    """Abstract publisher registry over a pub/sub bus."""

    def register_image_publisher(self, topic: str) -> Any:  # pragma: no cover
        raise NotImplementedError

    def register_info_publisher(self, topic: str) -> Any:  # pragma: no cover
        raise NotImplementedError

    def publish(self, handle: Any, message: Any) -> None:  # pragma: no cover
        raise NotImplementedError

    def destroy_publisher(self, handle: Any) -> None:  # pragma: no cover
        raise NotImplementedError


class RosBusClient(BusClient):
    """:class:`BusClient` that publishes ``sensor_msgs`` through an rclpy node.

    Outbound dataclasses are converted to ROS messages on publish, so callers
    never touch ROS message types directly.
    """

    def __init__(self, node, qos_depth: int = 10) -> None:
        if CompressedImage is None:
            message = "ROS 2 message packages could not be imported"
            if _ROS_IMPORT_ERROR is not None:
                message += f": {_ROS_IMPORT_ERROR}"
            raise RuntimeError(message) from _ROS_IMPORT_ERROR
        self.node = node
        self.qos_depth = qos_depth
        self._converters: Dict[int, Callable[[Any], Any]] = {}

    def register_image_publisher(self, topic: str):
        publisher = self.node.create_publisher(CompressedImage, topic, self.qos_depth)
        self._converters[id(publisher)] = image_to_msg
        return publisher

    def register_info_publisher(self, topic: str):
        publisher = self.node.create_publisher(CameraInfo, topic, self.qos_depth)
        self._converters[id(publisher)] = info_to_msg
        return publisher

    def publish(self, handle, message) -> None:
        convert = self._converters.get(id(handle))
        if convert is None:
            raise KeyError("Publisher was not registered with this bus client")
        handle.publish(convert(message))

    def destroy_publisher(self, handle) -> None:
        self._converters.pop(id(handle), None)
        self.node.destroy_publisher(handle)


__all__ = [
    "IMAGE_NAMESPACE",
    "IMAGE_TOPIC",
    "INFO_TOPIC",
    "COMMAND_TOPIC",
    "resolve_topic",
    "BusClient",
    "RosBusClient",
]
