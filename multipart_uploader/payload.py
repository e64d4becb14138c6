"""Payload sources that hand out byte ranges of the data being uploaded."""

from __future__ import annotations

import asyncio
import mimetypes
from pathlib import Path
from typing import Protocol

from multipart_uploader.const import DEFAULT_CONTENT_TYPE


class Payload(Protocol):
    """Data to upload, addressed by byte range."""

    identity: str
    size: int
    content_type: str

    async def read(self, start: int, end: int) -> bytes:
        """Return bytes ``[start, end)``."""
        ...


class BytesPayload(Payload):
    """In-memory payload."""

    def __init__(
        self,
        data: bytes,
        identity: str,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> None:
        """Wrap ``data`` under the caller-chosen ``identity``."""
        self._data = bytes(data)
        self.identity = identity
        self.size = len(self._data)
        self.content_type = content_type

    async def read(self, start: int, end: int) -> bytes:
        """Return bytes ``[start, end)``."""
        return self._data[start:end]


class FilePayload(Payload):
    """Payload read from a local file.

    The identity defaults to the file name, so two files with the same name in
    different directories share a resume record unless an identity is given.
    """

    def __init__(
        self,
        path: Path | str,
        identity: str | None = None,
        content_type: str | None = None,
    ) -> None:
        """Open a payload backed by ``path``.

        Raises:
            FileNotFoundError: If ``path`` is not an existing file.
        """
        self.path = Path(path)
        if not self.path.is_file():
            raise FileNotFoundError(f"File not found: {self.path}")
        self.identity = identity or self.path.name
        self.size = self.path.stat().st_size
        self.content_type = (
            content_type
            or mimetypes.guess_type(self.path.name)[0]
            or DEFAULT_CONTENT_TYPE
        )

    def _read_range(self, start: int, end: int) -> bytes:
        with open(self.path, "rb") as f:
            f.seek(start)
            return f.read(max(0, end - start))

    async def read(self, start: int, end: int) -> bytes:
        """Return bytes ``[start, end)`` without blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read_range, start, end)


def as_payload(
    source: Payload | Path | str | bytes,
    identity: str | None = None,
    content_type: str | None = None,
) -> Payload:
    """Coerce an upload source into a ``Payload``.

    Raises:
        ValueError: If ``source`` is raw bytes and no identity is given.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        if not identity:
            raise ValueError("An identity is required to upload raw bytes")
        return BytesPayload(
            bytes(source), identity, content_type or DEFAULT_CONTENT_TYPE
        )
    if isinstance(source, (str, Path)):
        return FilePayload(source, identity=identity, content_type=content_type)
    return source
