import pytest

from multipart_uploader.models import (
    CompleteUploadRequest,
    CompleteUploadResponse,
    CreateUploadRequest,
    CreateUploadResponse,
    PartResult,
    SignPartRequest,
    SignPartResponse,
    UploadRecord,
    clean_up_tags,
    sanitize_tag,
)


def make_record(**overrides) -> UploadRecord:
    values = dict(
        original_identity="payload.bin",
        total_size_bytes=100,
        total_parts=3,
        part_size_bytes=35,
        finished_parts=[PartResult(part_number=1, tag="etag-1")],
        upload_id="upload-1",
        target_key="objects/payload.bin",
    )
    values.update(overrides)
    return UploadRecord(**values)


def test_clean_up_tags_drops_untagged_and_keeps_order() -> None:
    parts = [
        PartResult(part_number=3, tag="c"),
        PartResult(part_number=1, tag=None),
        PartResult(part_number=2, tag=""),
        PartResult(part_number=4, tag="d"),
    ]

    assert [p.part_number for p in clean_up_tags(parts)] == [3, 4]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('"abc123"', "abc123"),
        ("abc123", "abc123"),
        ('"abc', "abc"),
        ('""x""', '"x"'),
        ('""', None),
        ("", None),
        (None, None),
    ],
)
def test_sanitize_tag_strips_one_quote_each_side(raw, expected) -> None:
    assert sanitize_tag(raw) == expected


def test_record_is_complete_eligible() -> None:
    assert make_record().is_complete_eligible()


@pytest.mark.parametrize(
    "overrides",
    [
        {"upload_id": None},
        {"target_key": ""},
        {"total_parts": 0},
        {"part_size_bytes": 0},
        {"finished_parts": []},
        {"finished_parts": [PartResult(part_number=1, tag=None)]},
    ],
)
def test_record_is_not_complete_eligible(overrides) -> None:
    assert not make_record(**overrides).is_complete_eligible()


@pytest.mark.parametrize(
    ("overrides", "expected"),
    [
        ({}, True),
        ({"total_size_bytes": 71}, True),
        ({"total_size_bytes": 105}, True),
        ({"total_size_bytes": 70}, False),
        ({"total_size_bytes": 106}, False),
        ({"part_size_bytes": 10}, False),
        ({"total_size_bytes": 0, "total_parts": 1}, True),
        ({"total_size_bytes": 0}, False),
    ],
)
def test_record_layout_must_cover_total_size(overrides, expected) -> None:
    assert make_record(**overrides).has_consistent_layout() is expected


def test_with_part_replaces_same_numbered_part() -> None:
    record = make_record()

    updated = record.with_part(PartResult(part_number=1, tag="new"))
    updated = updated.with_part(PartResult(part_number=2, tag="etag-2"))

    assert updated.finished_lookup() == {
        1: PartResult(part_number=1, tag="new"),
        2: PartResult(part_number=2, tag="etag-2"),
    }
    assert record.finished_parts == [PartResult(part_number=1, tag="etag-1")]


def test_partial_record_still_parses() -> None:
    record = UploadRecord.model_validate_json('{"original_identity": "a.bin"}')

    assert record.upload_id is None
    assert not record.is_complete_eligible()


def test_create_request_stringifies_metadata() -> None:
    request = CreateUploadRequest(
        metadata={"size": 3, "public": True}, content_type="video/mp4"
    )

    assert request.to_wire() == {
        "metadata": {"size": "3", "public": "True"},
        "contentType": "video/mp4",
    }


def test_create_request_omits_empty_metadata() -> None:
    assert CreateUploadRequest(metadata={}).to_wire() == {}


def test_create_response_reads_wire_names() -> None:
    response = CreateUploadResponse.model_validate(
        {"uploadId": "u-1", "s3Filename": "objects/a.bin"}
    )

    assert response.upload_id == "u-1"
    assert response.target_key == "objects/a.bin"


def test_sign_part_wire_format() -> None:
    request = SignPartRequest(part_number=2, upload_id="u-1", target_key="k")
    response = SignPartResponse.model_validate({"signedUrl": "https://s/2"})

    assert request.to_wire() == {"partNumber": 2, "uploadId": "u-1", "s3Filename": "k"}
    assert response.signed_url == "https://s/2"


def test_complete_request_skips_untagged_parts() -> None:
    request = CompleteUploadRequest.from_results(
        "u-1",
        "k",
        [
            PartResult(part_number=1, tag="a"),
            PartResult(part_number=2, tag=None),
            PartResult(part_number=3, tag="c"),
        ],
    )

    assert request.to_wire() == {
        "uploadId": "u-1",
        "s3Filename": "k",
        "parts": [{"ETag": "a", "PartNumber": 1}, {"ETag": "c", "PartNumber": 3}],
    }


def test_complete_response_target_key_is_optional() -> None:
    assert CompleteUploadResponse.model_validate({}).target_key is None
