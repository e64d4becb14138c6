"""Byte transport that PUTs a single part to its signed URL."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol, Union

import aiohttp

from multipart_uploader.const import TRANSPORT_CHUNK_SIZE
from multipart_uploader.exceptions import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PartProgress:
    """Bytes of a part handed to the network so far."""

    bytes_sent: int
    bytes_total: int


@dataclass(frozen=True)
class PartUploaded:
    """Final update of a successful part transfer."""

    part_number: int
    tag: str | None


TransferUpdate = Union[PartProgress, PartUploaded]


class PartTransport(Protocol):
    """Performs the byte transfer of one part."""

    def put(
        self,
        signed_url: str,
        body: bytes,
        *,
        part_number: int,
        content_type: str | None = None,
    ) -> AsyncIterator[TransferUpdate]:
        """Transfer ``body`` to ``signed_url``.

        Returns a lazy, single-use stream of ``PartProgress`` updates that ends
        with exactly one ``PartUploaded``. Failures raise ``TransportError``
        from the stream.
        """
        ...


class HttpPartTransport(PartTransport):
    """Upload parts with an HTTP PUT, reporting progress per chunk written."""

    SUCCESS_STATUS_CODES = range(200, 300)

    def __init__(
        self,
        client_session: aiohttp.ClientSession,
        chunk_size: int = TRANSPORT_CHUNK_SIZE,
        timeout_seconds: float | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            client_session: aiohttp ClientSession for HTTP requests
            chunk_size: Bytes written per progress update
            timeout_seconds: Total timeout per part, None to wait indefinitely
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._session = client_session
        self._chunk_size = chunk_size
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def put(
        self,
        signed_url: str,
        body: bytes,
        *,
        part_number: int,
        content_type: str | None = None,
    ) -> AsyncIterator[TransferUpdate]:
        """Transfer ``body`` to ``signed_url``, yielding progress as it goes."""
        updates: asyncio.Queue[PartProgress | None] = asyncio.Queue()
        headers = {"Content-Length": str(len(body))}
        if content_type:
            headers["Content-Type"] = content_type

        sender = asyncio.ensure_future(
            self._send(
                signed_url,
                self._stream_body(body, updates),
                headers,
                part_number,
            )
        )
        sender.add_done_callback(lambda _: updates.put_nowait(None))

        while (update := await updates.get()) is not None:
            yield update

        tag = sender.result()
        logger.debug("Part %d uploaded (%d bytes)", part_number, len(body))
        yield PartUploaded(part_number=part_number, tag=tag)

    async def _stream_body(
        self, body: bytes, updates: asyncio.Queue[PartProgress | None]
    ) -> AsyncIterator[bytes]:
        total = len(body)
        view = memoryview(body)
        for offset in range(0, total, self._chunk_size):
            chunk = view[offset : offset + self._chunk_size]
            yield bytes(chunk)
            updates.put_nowait(PartProgress(offset + len(chunk), total))

    async def _send(
        self,
        signed_url: str,
        data: AsyncIterator[bytes],
        headers: dict[str, str],
        part_number: int,
    ) -> str | None:
        """PUT the streamed body and return the raw ETag header.

        Raises:
            TransportError: On a non-2xx response, network error or timeout.
        """
        try:
            async with self._session.put(
                signed_url,
                data=data,
                headers=headers,
                timeout=self._timeout,
            ) as response:
                if response.status not in self.SUCCESS_STATUS_CODES:
                    error_text = await response.text()
                    raise TransportError(
                        f"Failed to upload part {part_number}: "
                        f"HTTP {response.status} {error_text}",
                        part_number=part_number,
                    )
                return response.headers.get("ETag")
        except aiohttp.ClientError as exc:
            raise TransportError(
                f"Failed to upload part {part_number}: {exc}",
                part_number=part_number,
            ) from exc
        except asyncio.TimeoutError as exc:
            raise TransportError(
                f"Timed out uploading part {part_number}",
                part_number=part_number,
            ) from exc
