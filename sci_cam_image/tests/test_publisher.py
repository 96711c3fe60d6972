"""Tests for the image publishing service."""

from __future__ import annotations

import logging
import threading
import time
from typing import List, Tuple

import pytest

from sci_cam_image.services.publisher import ImagePublishingService
from sci_cam_image.utils.types import (
    ColorMode,
    ImageSample,
    OutboundImageMessage,
    OutboundInfoMessage,
    PublishConfig,
    PublishStatus,
)


class FakeImage:
    def __init__(self, width: int, height: int, gray: bool = False) -> None:
        self.width = width
        self.height = height
        self.gray = gray


class RecordingCodec:
    """Codec that tracks the operations applied to each frame.

    Samples encode their size as ``b"<w>x<h>"`` and the encoded payload
    reports the dimensions it was produced at.
    """

    def __init__(self, encode_delay: float = 0.0) -> None:
        self.calls: List[Tuple] = []
        self.encode_delay = encode_delay

    def decode(self, data: bytes) -> FakeImage:
        self.calls.append(("decode",))
        width, height = data.decode().split("x")
        return FakeImage(int(width), int(height))

    def resize(self, image: FakeImage, width: int, height: int) -> FakeImage:
        self.calls.append(("resize", width, height))
        return FakeImage(width, height, image.gray)

    def to_grayscale(self, image: FakeImage) -> FakeImage:
        self.calls.append(("grayscale",))
        return FakeImage(image.width, image.height, gray=True)

    def encode_jpeg(self, image: FakeImage, quality: int = 100) -> bytes:
        self.calls.append(("encode", quality))
        if self.encode_delay:
            time.sleep(self.encode_delay)
        suffix = "-gray" if image.gray else ""
        return f"{image.width}x{image.height}{suffix}".encode()


class FailingCodec(RecordingCodec):
    def decode(self, data: bytes) -> FakeImage:
        raise RuntimeError("corrupt frame")


class FakeBus:
    def __init__(self) -> None:
        self.registered: List[Tuple[str, str]] = []
        self.published: List[Tuple[str, object]] = []
        self.destroyed: List[str] = []

    def register_image_publisher(self, topic: str) -> str:
        self.registered.append(("image", topic))
        return "image"

    def register_info_publisher(self, topic: str) -> str:
        self.registered.append(("info", topic))
        return "info"

    def publish(self, handle, message) -> None:
        self.published.append((handle, message))

    def destroy_publisher(self, handle) -> None:
        self.destroyed.append(handle)


def make_sample(width: int = 640, height: int = 480, millis: int = 1500) -> ImageSample:
    return ImageSample(
        encoded_bytes=f"{width}x{height}".encode(),
        source_size=(width, height),
        capture_time_ms=millis,
    )


@pytest.fixture
def bus() -> FakeBus:
    return FakeBus()


@pytest.fixture
def codec() -> RecordingCodec:
    return RecordingCodec()


@pytest.fixture
def service(codec: RecordingCodec, bus: FakeBus) -> ImagePublishingService:
    return ImagePublishingService(codec=codec, bus=bus)


def test_defaults_match_startup_configuration(codec) -> None:
    config = ImagePublishingService(codec=codec).config
    assert config == PublishConfig(
        enabled=True, width=640, height=480, color_mode=ColorMode.COLOR
    )


def test_connect_registers_hw_topics(service, bus) -> None:
    assert bus.registered == [
        ("image", "hw/cam_sci/compressed"),
        ("info", "hw/cam_sci_info"),
    ]
    assert service.connected


def test_publish_emits_image_then_info(service, bus) -> None:
    result = service.publish(make_sample())

    assert result.status is PublishStatus.PUBLISHED
    assert result.ok
    assert [handle for handle, _ in bus.published] == ["image", "info"]
    image = bus.published[0][1]
    info = bus.published[1][1]
    assert isinstance(image, OutboundImageMessage)
    assert isinstance(info, OutboundInfoMessage)
    assert image.format == "jpeg"
    assert image.frame_id == info.frame_id == "sci_camera"
    assert image.data == b"640x480"


def test_timestamp_split_shared_by_both_messages(service, bus) -> None:
    service.publish(make_sample(millis=1500))

    image, info = (message for _, message in bus.published)
    assert (image.stamp.sec, image.stamp.nanosec) == (1, 500_000_000)
    assert info.stamp == image.stamp


def test_resize_to_target_before_encode(service, bus, codec) -> None:
    service.publish(make_sample(800, 600))

    assert codec.calls == [("decode",), ("resize", 640, 480), ("encode", 100)]
    info = bus.published[1][1]
    assert (info.width, info.height) == (640, 480)


def test_matching_source_size_skips_resize(service, codec) -> None:
    service.publish(make_sample(640, 480))
    assert ("resize", 640, 480) not in codec.calls


def test_grayscale_applied_after_resize(service, bus, codec) -> None:
    assert service.set_color_mode("grayscale")
    service.publish(make_sample(1280, 960))

    assert codec.calls == [
        ("decode",),
        ("resize", 640, 480),
        ("grayscale",),
        ("encode", 100),
    ]
    assert bus.published[0][1].data == b"640x480-gray"


def test_info_reports_configured_size(service, bus) -> None:
    assert service.set_target_size(1024, 768)
    service.publish(make_sample(320, 240))

    info = bus.published[1][1]
    assert (info.width, info.height) == (1024, 768)


@pytest.mark.parametrize(
    "width,height",
    [
        (0, 480),
        (640, 0),
        (-1, 480),
        (640, -20),
        (0, 0),
        (640.9, 480),
        (640, "480"),
        (True, 480),
        (640.0, 480.0),
    ],
)
def test_invalid_target_size_rejected(service, width, height) -> None:
    before = service.config
    assert service.set_target_size(width, height) is False
    assert service.config == before


@pytest.mark.parametrize("mode", ["color", "grayscale", ColorMode.GRAYSCALE])
def test_valid_color_modes_accepted(service, mode) -> None:
    assert service.set_color_mode(mode) is True
    assert service.config.color_mode == ColorMode(mode)


@pytest.mark.parametrize("mode", ["Color", "GRAYSCALE", "grey", "", " color", None])
def test_invalid_color_modes_rejected(service, mode) -> None:
    assert service.set_color_mode(mode) is False
    assert service.config.color_mode is ColorMode.COLOR


def test_disabled_service_publishes_nothing(service, bus, codec) -> None:
    service.set_enabled(False)
    result = service.publish(make_sample())

    assert result.status is PublishStatus.DISABLED
    assert bus.published == []
    assert codec.calls == []


def test_reenabling_resumes_publishing(service, bus) -> None:
    service.set_enabled(False)
    service.publish(make_sample())
    service.set_enabled(True)
    service.publish(make_sample())
    assert len(bus.published) == 2


def test_not_connected_drops_frame(codec, caplog) -> None:
    service = ImagePublishingService(codec=codec)
    with caplog.at_level(logging.ERROR):
        result = service.publish(make_sample())

    assert result.status is PublishStatus.NOT_CONNECTED
    assert codec.calls == []
    assert "not connected" in caplog.text


def test_disconnect_returns_to_not_connected(service, bus) -> None:
    service.disconnect()
    assert not service.connected
    assert service.publish(make_sample()).status is PublishStatus.NOT_CONNECTED
    assert bus.published == []


def test_codec_failure_is_logged_and_returned(bus, caplog) -> None:
    service = ImagePublishingService(codec=FailingCodec(), bus=bus)
    with caplog.at_level(logging.ERROR):
        result = service.publish(make_sample())

    assert result.status is PublishStatus.FAILED
    assert isinstance(result.error, RuntimeError)
    assert bus.published == []
    assert "corrupt frame" in caplog.text


def test_codec_failure_releases_lock(bus) -> None:
    service = ImagePublishingService(codec=FailingCodec(), bus=bus)
    service.publish(make_sample())

    worker = threading.Thread(target=service.set_enabled, args=(False,))
    worker.start()
    worker.join(timeout=1.0)
    assert not worker.is_alive()
    assert service.config.enabled is False


def test_bus_failure_is_not_propagated(codec) -> None:
    class BrokenBus(FakeBus):
        def publish(self, handle, message) -> None:
            raise ConnectionError("publisher gone")

    service = ImagePublishingService(codec=codec, bus=BrokenBus())
    result = service.publish(make_sample())
    assert result.status is PublishStatus.FAILED
    # Still usable after the failure.
    assert service.set_target_size(320, 240)


def test_concurrent_publishes_never_tear(bus) -> None:
    service = ImagePublishingService(codec=RecordingCodec(encode_delay=0.001), bus=bus)
    sizes = [(640, 480), (320, 240), (1024, 768)]
    stop = threading.Event()

    def control() -> None:
        index = 0
        while not stop.is_set():
            assert service.set_target_size(*sizes[index % len(sizes)])
            index += 1

    def capture() -> None:
        for millis in range(20):
            service.publish(make_sample(800, 600, millis=millis))

    controller = threading.Thread(target=control)
    producers = [threading.Thread(target=capture) for _ in range(4)]
    controller.start()
    for producer in producers:
        producer.start()
    for producer in producers:
        producer.join()
    stop.set()
    controller.join()

    assert len(bus.published) == 4 * 20 * 2
    for (image_handle, image), (info_handle, info) in zip(
        bus.published[::2], bus.published[1::2]
    ):
        assert (image_handle, info_handle) == ("image", "info")
        assert image.stamp == info.stamp
        assert image.data == f"{info.width}x{info.height}".encode()


def test_reconnect_destroys_previous_publishers(service, bus, codec) -> None:
    replacement = FakeBus()
    service.connect(replacement)

    assert bus.destroyed == ["image", "info"]
    assert replacement.destroyed == []
    service.publish(make_sample())
    assert bus.published == []
    assert len(replacement.published) == 2


def test_disconnect_destroys_publishers(service, bus) -> None:
    service.disconnect()
    service.disconnect()
    assert bus.destroyed == ["image", "info"]
