"""JSON control commands for the science camera.

Commands arrive as JSON objects with a ``name`` field, e.g.::

    {"name": "setPublishSize", "width": 1024, "height": 768}

Publishing settings are applied through :class:`ImagePublishingService`;
picture-taking commands are forwarded to callbacks supplied by the node.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Union

from ..utils.types import PublishResult

from .publisher import ImagePublishingService

SET_PUBLISH_IMAGE = "setPublishImage"
SET_PUBLISH_SIZE = "setPublishSize"
SET_PUBLISH_TYPE = "setPublishType"
TAKE_SINGLE_PICTURE = "takeSinglePicture"
SET_CONTINUOUS = "setContinuousPictureTaking"


class CommandError(ValueError):
    """Raised when a command is malformed or unknown."""


@dataclass(frozen=True)
class CommandResult:
    name: str
    success: bool
    message: str = ""


class CommandHandler:
    """Dispatch decoded commands onto the publishing service."""

    def __init__(
        self,
        service: ImagePublishingService,
        take_picture: Optional[Callable[[], PublishResult]] = None,
        set_continuous: Optional[Callable[[bool], Any]] = None,
    ) -> None:
        self.service = service
        self.take_picture = take_picture
        self.set_continuous = set_continuous
        self._handlers: Dict[str, Callable[[Mapping[str, Any]], CommandResult]] = {
            SET_PUBLISH_IMAGE: self._set_publish_image,
            SET_PUBLISH_SIZE: self._set_publish_size,
            SET_PUBLISH_TYPE: self._set_publish_type,
            TAKE_SINGLE_PICTURE: self._take_single_picture,
            SET_CONTINUOUS: self._set_continuous,
        }

    def handle(self, command: Union[str, bytes, Mapping[str, Any]]) -> CommandResult:
        """Decode ``command`` if needed and run it."""

        payload = parse_command(command)
        name = payload["name"]
        handler = self._handlers.get(name)
        if handler is None:
            raise CommandError(f"Unknown command '{name}'")
        return handler(payload)

    def _set_publish_image(self, payload: Mapping[str, Any]) -> CommandResult:
        publish = _require(payload, "publish")
        if not isinstance(publish, bool):
            raise CommandError("'publish' must be a boolean")
        self.service.set_enabled(publish)
        state = "enabled" if publish else "disabled"
        return CommandResult(SET_PUBLISH_IMAGE, True, f"Image publishing {state}")

    def _set_publish_size(self, payload: Mapping[str, Any]) -> CommandResult:
        width = _require(payload, "width")
        height = _require(payload, "height")
        if self.service.set_target_size(width, height):
            return CommandResult(
                SET_PUBLISH_SIZE, True, f"Publish size set to {width}x{height}"
            )
        return CommandResult(
            SET_PUBLISH_SIZE, False, f"Invalid publish size {width}x{height}"
        )

    def _set_publish_type(self, payload: Mapping[str, Any]) -> CommandResult:
        mode = _require(payload, "type")
        if self.service.set_color_mode(mode):
            return CommandResult(SET_PUBLISH_TYPE, True, f"Publish type set to {mode}")
        return CommandResult(
            SET_PUBLISH_TYPE,
            False,
            f"Invalid publish type {mode!r}; expected 'color' or 'grayscale'",
        )

    def _take_single_picture(self, payload: Mapping[str, Any]) -> CommandResult:
        if self.take_picture is None:
            return CommandResult(TAKE_SINGLE_PICTURE, False, "No camera attached")
        result: PublishResult = self.take_picture()
        return CommandResult(TAKE_SINGLE_PICTURE, result.ok, result.status.value)

    def _set_continuous(self, payload: Mapping[str, Any]) -> CommandResult:
        continuous = _require(payload, "continuous")
        if not isinstance(continuous, bool):
            raise CommandError("'continuous' must be a boolean")
        if self.set_continuous is None:
            return CommandResult(SET_CONTINUOUS, False, "No camera attached")
        self.set_continuous(continuous)
        state = "started" if continuous else "stopped"
        return CommandResult(SET_CONTINUOUS, True, f"Continuous picture taking {state}")


def parse_command(command: Union[str, bytes, Mapping[str, Any]]) -> Dict[str, Any]:
    """Return ``command`` as a dictionary with a string ``name``."""

    if isinstance(command, (str, bytes)):
        try:
            command = json.loads(command)
        except json.JSONDecodeError as exc:
            raise CommandError(f"Command is not valid JSON: {exc}") from exc
    if not isinstance(command, Mapping):
        raise CommandError("Command must be a JSON object")
    name = command.get("name")
    if not isinstance(name, str) or not name:
        raise CommandError("Command is missing a 'name'")
    return dict(command)


def _require(payload: Mapping[str, Any], key: str) -> Any:
    if key not in payload:
        raise CommandError(f"Command '{payload.get('name')}' requires '{key}'")
    return payload[key]


__all__ = [
    "CommandError",
    "CommandHandler",
    "CommandResult",
    "parse_command",
    "SET_CONTINUOUS",
    "SET_PUBLISH_IMAGE",
    "SET_PUBLISH_SIZE",
    "SET_PUBLISH_TYPE",
    "TAKE_SINGLE_PICTURE",
]
