"""Shared fakes and fixtures for the multipart uploader unit tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from typing import Any

import pytest

from multipart_uploader.clients.part_transport import (
    PartProgress,
    PartUploaded,
    TransferUpdate,
)
from multipart_uploader.config_manager.uploader_config import (
    ServerConfig,
    UploaderConfig,
)
from multipart_uploader.event_emitter import UploadEmitter
from multipart_uploader.exceptions import ControlPlaneError
from multipart_uploader.models import (
    CompleteUploadResponse,
    CreateUploadResponse,
    PartResult,
    SignPartResponse,
)
from multipart_uploader.state_management.kv_store import MemoryKeyValueStore
from multipart_uploader.state_management.resume_store import ResumeStore

TEST_ENDPOINT = "https://control-plane.test"
TEST_UPLOAD_ID = "upload-1"
TEST_TARGET_KEY = "objects/payload.bin"

ALL_EVENTS = (
    UploadEmitter.INIT,
    UploadEmitter.UPLOAD_STARTED,
    UploadEmitter.UPLOAD_RESUMED,
    UploadEmitter.UPLOAD_CREATED,
    UploadEmitter.UPLOAD_PART_STARTED,
    UploadEmitter.UPLOAD_PART_SIGNED_URL,
    UploadEmitter.UPLOAD_PART_SUCCESS,
    UploadEmitter.TOTAL_PROGRESS,
    UploadEmitter.UPLOAD_COMPLETE,
    UploadEmitter.UPLOAD_FAILED,
    UploadEmitter.ERROR,
)


class FakeControlPlane:
    """In-memory control plane recording every call."""

    def __init__(
        self, upload_id: str = TEST_UPLOAD_ID, target_key: str = TEST_TARGET_KEY
    ) -> None:
        self.upload_id = upload_id
        self.target_key = target_key
        self.calls: list[tuple[Any, ...]] = []
        self.create_error: Exception | None = None
        self.sign_errors: dict[int, Exception] = {}
        self.complete_error: Exception | None = None
        self.completed_parts: list[PartResult] | None = None

    @property
    def signed_parts(self) -> list[int]:
        return [call[1] for call in self.calls if call[0] == "part"]

    @property
    def create_calls(self) -> int:
        return sum(1 for call in self.calls if call[0] == "create")

    async def create(
        self,
        metadata: dict[str, Any] | None = None,
        content_type: str | None = None,
    ) -> CreateUploadResponse:
        self.calls.append(("create", metadata, content_type))
        if self.create_error is not None:
            raise self.create_error
        return CreateUploadResponse(
            upload_id=self.upload_id, target_key=self.target_key
        )

    async def sign_part(
        self, part_number: int, upload_id: str, target_key: str
    ) -> SignPartResponse:
        self.calls.append(("part", part_number, upload_id, target_key))
        if part_number in self.sign_errors:
            raise self.sign_errors[part_number]
        return SignPartResponse(
            signed_url=f"https://storage.test/{target_key}?partNumber={part_number}",
            part_number=part_number,
        )

    async def complete(
        self, upload_id: str, target_key: str, parts: Sequence[PartResult]
    ) -> CompleteUploadResponse:
        self.calls.append(("complete", upload_id, target_key))
        if self.complete_error is not None:
            raise self.complete_error
        self.completed_parts = list(parts)
        return CompleteUploadResponse(target_key=target_key)


class FakePartTransport:
    """Transport that reports two progress steps and a quoted tag per part."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.bodies: dict[int, bytes] = {}
        self.failures: dict[int, Exception] = {}
        self.tags: dict[int, str | None] = {}
        self.started: list[int] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def put(
        self,
        signed_url: str,
        body: bytes,
        *,
        part_number: int,
        content_type: str | None = None,
    ) -> AsyncIterator[TransferUpdate]:
        self.started.append(part_number)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if part_number in self.failures:
                raise self.failures[part_number]
            yield PartProgress(len(body) // 2, len(body))
            yield PartProgress(len(body), len(body))
            self.bodies[part_number] = body
        finally:
            self.in_flight -= 1
        tag = self.tags.get(part_number, f'"etag-{part_number}"')
        yield PartUploaded(part_number=part_number, tag=tag)


class EventRecorder:
    """Record every uploader event in emission order."""

    def __init__(self, emitter: UploadEmitter) -> None:
        self.events: list[tuple[str, tuple[Any, ...]]] = []
        for event in ALL_EVENTS:
            emitter.on(event, self._handler_for(event))

    def _handler_for(self, event: str):
        def handler(*args: Any) -> None:
            self.events.append((event, args))

        return handler

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def args_of(self, event: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.events if name == event]


@pytest.fixture
def control_plane() -> FakeControlPlane:
    return FakeControlPlane()


@pytest.fixture
def transport() -> FakePartTransport:
    return FakePartTransport()


@pytest.fixture
def kv_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def resume_store(kv_store: MemoryKeyValueStore) -> ResumeStore:
    return ResumeStore(kv_store)


@pytest.fixture
def emitter() -> UploadEmitter:
    return UploadEmitter()


@pytest.fixture
def recorder(emitter: UploadEmitter) -> EventRecorder:
    return EventRecorder(emitter)


@pytest.fixture
def small_config() -> UploaderConfig:
    """100-byte payloads split into 3 parts of 35 bytes, 2 at a time."""
    return UploaderConfig(
        server=ServerConfig(endpoint=TEST_ENDPOINT),
        concurrency_limit=2,
        part_min_size_bytes=10,
        max_num_parts=4,
    )


@pytest.fixture
def control_plane_failure() -> ControlPlaneError:
    return ControlPlaneError("create failed with HTTP 500", operation="create")
