"""Event channel for upload lifecycle notifications."""

import asyncio
import logging
from typing import Any

from pyee.asyncio import AsyncIOEventEmitter

from multipart_uploader.config_manager.uploader_config import UploaderConfig
from multipart_uploader.models import UploadRecord

logger = logging.getLogger(__name__)


class UploadEmitter(AsyncIOEventEmitter):
    """Publish/subscribe channel for upload lifecycle notifications.

    Subscribers attach with ``on`` and detach with ``remove_listener`` at any
    time; coroutine handlers are scheduled on the running loop.
    """

    # After the uploader has started
    INIT = "init"
    # (config: UploaderConfig)

    # Fresh upload begins, before any control-plane call
    UPLOAD_STARTED = "upload_started"
    # ()

    # Resuming from a persisted record, before any control-plane call
    UPLOAD_RESUMED = "upload_resumed"
    # (starting_percentage: int, record: UploadRecord)

    # Control plane allocated the upload
    UPLOAD_CREATED = "upload_created"
    # (upload_id: str, target_key: str)

    UPLOAD_PART_STARTED = "upload_part_started"
    # (part_number: int)

    UPLOAD_PART_SIGNED_URL = "upload_part_signed_url"
    # (part_number: int, signed_url: str)

    UPLOAD_PART_SUCCESS = "upload_part_success"
    # (part_number: int)

    # Overall percentage, strictly increasing within one upload
    TOTAL_PROGRESS = "total_progress"
    # (percentage: int)

    UPLOAD_COMPLETE = "upload_complete"
    # (target_key: str)

    UPLOAD_FAILED = "upload_failed"
    # (error: Exception, record: UploadRecord | None)

    # Not "error": pyee raises when that event has no listeners
    ERROR = "uploader_error"
    # (error: Exception)

    def __init__(self, *, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Initialize the event emitter.

        Args:
            loop: Event loop for coroutine handlers. Defaults to the running loop.
        """
        super().__init__(loop=loop)

    def emit(self, event: str, *args: Any, **kwargs: Any) -> bool:
        """Emit an event with logging.

        Args:
            event: The event name to emit.
            *args: Positional arguments to pass to handlers.
            **kwargs: Keyword arguments to pass to handlers.

        Returns:
            True if the event had listeners, False otherwise.
        """
        args_str = ", ".join(_describe(arg) for arg in args)
        logger.debug("EVENT %s: %s", event, args_str)
        return super().emit(event, *args, **kwargs)


def _describe(arg: Any) -> str:
    """Short log form of an event argument.

    Signed URLs lose their query string, records and configs are summarised,
    and anything else is cut to 100 characters.
    """
    if isinstance(arg, UploadRecord):
        return (
            f"<UploadRecord {arg.original_identity} upload_id={arg.upload_id} "
            f"parts={len(arg.finished_parts)}/{arg.total_parts}>"
        )
    if isinstance(arg, UploaderConfig):
        return (
            f"<UploaderConfig endpoint={arg.server.endpoint} "
            f"concurrency={arg.concurrency_limit}>"
        )
    if isinstance(arg, BaseException):
        text = f"{type(arg).__name__}: {arg}"
    elif isinstance(arg, str) and "?" in arg and "://" in arg:
        text = f"{arg.split('?', 1)[0]}?..."
    elif isinstance(arg, str):
        text = arg
    else:
        text = repr(arg)
    if len(text) > 100:
        return f"{text[:100]}..."
    return text
