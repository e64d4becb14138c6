import logging
from unittest.mock import AsyncMock

import pytest

from multipart_uploader.models import PartResult, UploadRecord
from multipart_uploader.state_management.kv_store import MemoryKeyValueStore
from multipart_uploader.state_management.resume_store import ResumeStore


def make_record() -> UploadRecord:
    return UploadRecord(
        original_identity="payload.bin",
        total_size_bytes=100,
        total_parts=3,
        part_size_bytes=35,
        finished_parts=[PartResult(part_number=1, tag="etag-1")],
        upload_id="upload-1",
        target_key="objects/payload.bin",
    )


def test_keys_are_namespaced() -> None:
    store = ResumeStore(MemoryKeyValueStore(), namespace="videos")

    assert store.key_for("payload.bin") == "videos|payload.bin"


@pytest.mark.asyncio
async def test_set_get_remove(
    resume_store: ResumeStore, kv_store: MemoryKeyValueStore
) -> None:
    record = make_record()

    await resume_store.set("payload.bin", record)

    assert kv_store.keys() == ["upload|payload.bin"]
    assert await resume_store.get("payload.bin") == record

    await resume_store.remove("payload.bin")

    assert await resume_store.get("payload.bin") is None
    assert kv_store.keys() == []


@pytest.mark.asyncio
async def test_remove_missing_identity_is_a_no_op(resume_store: ResumeStore) -> None:
    await resume_store.remove("never-uploaded.bin")

    assert await resume_store.get("never-uploaded.bin") is None


@pytest.mark.asyncio
async def test_unreadable_record_is_treated_as_absent(
    caplog: pytest.LogCaptureFixture,
) -> None:
    kv_store = MemoryKeyValueStore({"upload|payload.bin": "{not json"})
    store = ResumeStore(kv_store)

    with caplog.at_level(logging.WARNING):
        assert await store.get("payload.bin") is None

    assert "Ignoring unreadable resume record upload|payload.bin" in caplog.text


@pytest.mark.asyncio
async def test_append_part_read_modify_writes(resume_store: ResumeStore) -> None:
    await resume_store.set("payload.bin", make_record())

    updated = await resume_store.append_part(
        "payload.bin", PartResult(part_number=3, tag="etag-3")
    )

    stored = await resume_store.get("payload.bin")
    assert updated == stored
    assert [p.part_number for p in stored.finished_parts] == [1, 3]


@pytest.mark.asyncio
async def test_append_part_without_record_does_nothing(
    resume_store: ResumeStore, kv_store: MemoryKeyValueStore
) -> None:
    result = await resume_store.append_part(
        "payload.bin", PartResult(part_number=1, tag="etag-1")
    )

    assert result is None
    assert kv_store.keys() == []


@pytest.mark.asyncio
async def test_set_writes_json_under_namespaced_key() -> None:
    kv_store = AsyncMock()
    store = ResumeStore(kv_store, namespace="videos")
    record = make_record()

    await store.set("payload.bin", record)

    kv_store.set.assert_awaited_once_with(
        "videos|payload.bin", record.model_dump_json()
    )


@pytest.mark.asyncio
async def test_append_part_does_not_write_without_record() -> None:
    kv_store = AsyncMock()
    kv_store.get.return_value = None
    store = ResumeStore(kv_store)

    await store.append_part("payload.bin", PartResult(part_number=1, tag="a"))

    kv_store.get.assert_awaited_once_with("upload|payload.bin")
    kv_store.set.assert_not_awaited()
