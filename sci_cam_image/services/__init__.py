"""Service layer for the science camera publisher."""

from .commands import CommandError, CommandHandler, CommandResult
from .publisher import ImagePublishingService

__all__ = [
    "CommandError",
    "CommandHandler",
    "CommandResult",
    "ImagePublishingService",
]
