"""ROS 2 node publishing science camera frames on ``hw/cam_sci/compressed``."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

_ROS_IMPORT_ERROR: Optional[Exception] = None
try:  # pragma: no cover - ROS optional
    import rclpy
    from rclpy.node import Node
    from rclpy.callback_groups import ReentrantCallbackGroup
    from rclpy.executors import MultiThreadedExecutor
    from rcl_interfaces.msg import ParameterDescriptor, SetParametersResult
    from std_msgs.msg import String
except ImportError as exc:  # pragma: no cover - executed during tests
    _ROS_IMPORT_ERROR = exc
    rclpy = None
    Node = object  # type: ignore
    ReentrantCallbackGroup = MultiThreadedExecutor = None
    ParameterDescriptor = SetParametersResult = String = None

from ..services.commands import CommandError, CommandHandler
from ..services.publisher import ImagePublishingService
from ..utils.bus import COMMAND_TOPIC, RosBusClient, resolve_topic
from ..utils.capture import CameraStream, capture_sample
from ..utils.config import ConfigError, default_config_path, load_config
from ..utils.types import ColorMode, PublishResult, PublishStatus

NODE_NAME = "sci_cam_node"


def parse_source(value: Any) -> Union[int, str]:
    """Return a device index for numeric sources, the path or URL otherwise."""

    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = str(value).strip()
    return int(text) if text.isdigit() else text


class SciCamNode(Node):
    """Captures frames and feeds them to an :class:`ImagePublishingService`.

    The capture timer, the command subscription and parameter updates share a
    reentrant callback group, so they may run concurrently on a
    multi-threaded executor. The service lock keeps them consistent.
    """

    def __init__(self, service: Optional[ImagePublishingService] = None) -> None:
        super().__init__(NODE_NAME)
        self.declare_parameter("config", str(default_config_path()))
        config_path = Path(self.get_parameter("config").value)
        try:
            config = load_config(config_path)
        except (OSError, ConfigError) as exc:
            self.get_logger().error(
                f"Unable to load '{config_path}', using defaults: {exc}"
            )
            config = load_config(default_config_path())

        self.declare_parameter("publish_enabled", config.publish.enabled)
        self.declare_parameter("publish_width", config.publish.width)
        self.declare_parameter("publish_height", config.publish.height)
        self.declare_parameter("publish_type", config.publish.color_mode.value)
        # ``-p source:=0`` arrives as an integer, a device path as a string.
        self.declare_parameter(
            "source",
            str(config.capture.source),
            ParameterDescriptor(dynamic_typing=True),
        )
        self.declare_parameter("fps", float(config.capture.fps))
        self.declare_parameter("continuous", config.capture.continuous)
        self.declare_parameter("jpeg_quality", config.capture.jpeg_quality)

        self.service = service or ImagePublishingService(config=config.publish)
        self.service.set_enabled(bool(self.get_parameter("publish_enabled").value))
        if not self.service.set_target_size(
            self.get_parameter("publish_width").value,
            self.get_parameter("publish_height").value,
        ):
            self.get_logger().warning("Ignoring invalid publish size parameters")
            self.service.set_target_size(config.publish.width, config.publish.height)
        if not self.service.set_color_mode(self.get_parameter("publish_type").value):
            self.get_logger().warning("Ignoring invalid publish_type parameter")
            self.service.set_color_mode(config.publish.color_mode)

        self.callback_group = ReentrantCallbackGroup()
        self.service.connect(RosBusClient(self))

        self._fps = float(self.get_parameter("fps").value)
        if self._fps <= 0:
            self.get_logger().warning("Ignoring non-positive fps parameter")
            self._fps = config.capture.fps
        self._jpeg_quality = int(self.get_parameter("jpeg_quality").value)
        self._capture_lock = threading.Lock()
        self._stream = self._open_stream(
            parse_source(self.get_parameter("source").value), self._fps
        )

        self._continuous = bool(self.get_parameter("continuous").value)
        self.timer = self._create_capture_timer(self._fps)

        self.commands = CommandHandler(
            self.service,
            take_picture=self.take_single_picture,
            set_continuous=self.set_continuous,
        )
        self.command_sub = self.create_subscription(
            String,
            resolve_topic(COMMAND_TOPIC),
            self._on_command,
            10,
            callback_group=self.callback_group,
        )
        self.add_on_set_parameters_callback(self._on_parameters)
        self.get_logger().info("Science camera publisher started")

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------
    def _open_stream(self, source, fps: float) -> Optional[CameraStream]:
        try:
            return CameraStream(source, fps)
        except RuntimeError as exc:
            self.get_logger().error(f"Science camera unavailable: {exc}")
            return None

    def _create_capture_timer(self, fps: float):
        timer = self.create_timer(
            1.0 / fps, self._on_capture_timer, callback_group=self.callback_group
        )
        if not self._continuous:
            timer.cancel()
        return timer

    def take_single_picture(self) -> PublishResult:
        with self._capture_lock:
            if self._stream is None:
                return PublishResult(PublishStatus.FAILED, RuntimeError("No camera"))
            try:
                sample = capture_sample(self._stream, quality=self._jpeg_quality)
            except RuntimeError as exc:
                self.get_logger().warning(f"Dropping frame: {exc}")
                return PublishResult(PublishStatus.FAILED, exc)
        return self.service.publish(sample)

    def set_continuous(self, continuous: bool) -> None:
        self._continuous = bool(continuous)
        if self._continuous:
            self.timer.reset()
        else:
            self.timer.cancel()

    def _on_capture_timer(self) -> None:
        result = self.take_single_picture()
        if result.status is PublishStatus.FAILED:
            self.get_logger().debug(f"Frame dropped: {result.error}")

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------
    def _on_command(self, msg: String) -> None:
        try:
            result = self.commands.handle(msg.data)
        except CommandError as exc:
            self.get_logger().error(f"Rejected command: {exc}")
            return
        if result.success:
            self.get_logger().info(f"{result.name}: {result.message}")
        else:
            self.get_logger().warning(f"{result.name} failed: {result.message}")

    def _on_parameters(self, params: List) -> SetParametersResult:
        updates: Dict[str, Any] = {param.name: param.value for param in params}
        reason = self._validate_parameters(updates)
        if reason:
            return SetParametersResult(successful=False, reason=reason)

        stream = None
        if "source" in updates:
            fps = float(updates.get("fps", self._fps))
            stream = self._open_stream(parse_source(updates["source"]), fps)
            if stream is None:
                return SetParametersResult(
                    successful=False,
                    reason=f"Unable to open camera source {updates['source']}",
                )

        # Everything below is validated and cannot be rejected.
        size = self.service.config.size
        width = updates.get("publish_width", size[0])
        height = updates.get("publish_height", size[1])
        if "publish_enabled" in updates:
            self.service.set_enabled(bool(updates["publish_enabled"]))
        if "publish_type" in updates:
            self.service.set_color_mode(updates["publish_type"])
        if (width, height) != size:
            self.service.set_target_size(width, height)
        if "jpeg_quality" in updates:
            self._jpeg_quality = int(updates["jpeg_quality"])
        if stream is not None:
            with self._capture_lock:
                previous, self._stream = self._stream, stream
            if previous is not None:
                previous.release()
        if "continuous" in updates:
            self._continuous = bool(updates["continuous"])
        if "fps" in updates and float(updates["fps"]) != self._fps:
            self._fps = float(updates["fps"])
            self.destroy_timer(self.timer)
            self.timer = self._create_capture_timer(self._fps)
        elif "continuous" in updates:
            self.set_continuous(self._continuous)
        return SetParametersResult(successful=True)

    def _validate_parameters(self, updates: Dict[str, Any]) -> Optional[str]:
        size = self.service.config.size
        width = updates.get("publish_width", size[0])
        height = updates.get("publish_height", size[1])
        if not all(
            isinstance(value, int) and not isinstance(value, bool)
            for value in (width, height)
        ):
            return "publish size must be integers"
        if width <= 0 or height <= 0:
            return "publish size must be positive"
        if "publish_type" in updates and ColorMode.parse(updates["publish_type"]) is None:
            return "publish_type must be 'color' or 'grayscale'"
        if "fps" in updates and not float(updates["fps"]) > 0:
            return "fps must be positive"
        if "jpeg_quality" in updates and not 1 <= int(updates["jpeg_quality"]) <= 100:
            return "jpeg_quality must be between 1 and 100"
        if "config" in updates:
            return "config is only read at startup"
        return None

    def destroy_node(self):
        self.service.disconnect()
        with self._capture_lock:
            stream, self._stream = self._stream, None
        if stream is not None:
            stream.release()
        return super().destroy_node()


__all__ = ["SciCamNode", "NODE_NAME", "parse_source"]


def main(args=None):  # pragma: no cover - requires ROS runtime
    if rclpy is None:
        message = "ROS 2 dependencies could not be imported"
        if _ROS_IMPORT_ERROR is not None:
            message += f": {_ROS_IMPORT_ERROR}"
        raise RuntimeError(message) from _ROS_IMPORT_ERROR
    rclpy.init(args=args)
    service = ImagePublishingService()
    node = SciCamNode(service)
    executor = MultiThreadedExecutor()
    executor.add_node(node)
    try:
        executor.spin()
    except KeyboardInterrupt:  # pragma: no cover - runtime behaviour
        pass
    finally:
        node.destroy_node()
        rclpy.shutdown()
