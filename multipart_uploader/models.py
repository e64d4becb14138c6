"""Models used by the multipart uploader."""

from collections.abc import Iterable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class TransferState(str, Enum):
    """Lifecycle states for a single upload.

    State transitions:
    - IDLE -> RESUME_CHECK
    - RESUME_CHECK -> CREATED (no usable record)
    - RESUME_CHECK -> RESUMING (eligible record)
    - CREATED | RESUMING -> PARTS_IN_FLIGHT -> COMPLETING -> COMPLETED
    - Any non-terminal state -> FAILED
    """

    IDLE = "idle"
    RESUME_CHECK = "resume_check"
    CREATED = "created"
    RESUMING = "resuming"
    PARTS_IN_FLIGHT = "parts_in_flight"
    COMPLETING = "completing"
    COMPLETED = "completed"
    FAILED = "failed"


class PartResult(BaseModel):
    """Outcome of a successful part transfer."""

    part_number: int = Field(ge=1)
    tag: str | None = None


class UploadRecord(BaseModel):
    """Persisted progress of one in-flight upload.

    Identifiers and sizes default to empty values so an incomplete record
    still parses and can be recognised as stale by ``is_complete_eligible``.
    """

    original_identity: str
    total_size_bytes: int = Field(default=0, ge=0)
    total_parts: int = 0
    part_size_bytes: int = 0
    finished_parts: list[PartResult] = Field(default_factory=list)
    upload_id: str | None = None
    target_key: str | None = None

    def is_complete_eligible(self) -> bool:
        """Return True if the record carries everything needed to resume."""
        return bool(
            self.upload_id
            and self.target_key
            and self.total_parts > 0
            and self.part_size_bytes > 0
            and clean_up_tags(self.finished_parts)
        )

    def has_consistent_layout(self) -> bool:
        """Return True if the part size and count cover exactly the total size.

        Every part but the last is ``part_size_bytes`` long and the last one
        holds at least one byte. An empty payload is a single empty part.
        """
        if self.total_size_bytes == 0:
            return self.total_parts == 1
        return (
            self.part_size_bytes * (self.total_parts - 1)
            < self.total_size_bytes
            <= self.part_size_bytes * self.total_parts
        )

    def finished_lookup(self) -> dict[int, PartResult]:
        """Map 1-based part numbers to their finished results."""
        return {part.part_number: part for part in self.finished_parts}

    def with_part(self, part: PartResult) -> "UploadRecord":
        """Return a copy with ``part`` added, replacing any same-numbered result."""
        parts = [p for p in self.finished_parts if p.part_number != part.part_number]
        parts.append(part)
        return self.model_copy(update={"finished_parts": parts})


def clean_up_tags(parts: Iterable[PartResult]) -> list[PartResult]:
    """Drop results without a tag, keeping the order of the others."""
    return [part for part in parts if part.tag]


def sanitize_tag(raw_tag: str | None) -> str | None:
    """Strip one leading and one trailing quote from a transport tag."""
    if raw_tag is None:
        return None
    tag = raw_tag
    if tag.startswith('"'):
        tag = tag[1:]
    if tag.endswith('"'):
        tag = tag[:-1]
    return tag or None


class _WireModel(BaseModel):
    """Base for control-plane payloads exchanged as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump the model using its wire aliases."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CreateUploadRequest(_WireModel):
    """Body of the control-plane create call."""

    metadata: dict[str, str] | None = None
    content_type: str | None = None

    @field_validator("metadata", mode="before")
    @classmethod
    def _stringify_metadata(cls, value: Any) -> Any:
        if not value:
            return None
        return {str(key): str(item) for key, item in dict(value).items()}


class CreateUploadResponse(_WireModel):
    """Identifiers allocated by the control plane for a new upload."""

    upload_id: str | None = None
    target_key: str | None = Field(default=None, alias="s3Filename")


class SignPartRequest(_WireModel):
    """Body of the control-plane per-part signing call."""

    part_number: int
    upload_id: str
    target_key: str = Field(alias="s3Filename")


class SignPartResponse(_WireModel):
    """Signed URL for a single part."""

    signed_url: str
    part_number: int | None = None


class CompletedPart(BaseModel):
    """Part entry in the complete call, in the storage service's casing."""

    model_config = ConfigDict(populate_by_name=True)

    tag: str = Field(alias="ETag")
    part_number: int = Field(alias="PartNumber")


class CompleteUploadRequest(_WireModel):
    """Body of the control-plane complete call."""

    upload_id: str
    target_key: str = Field(alias="s3Filename")
    parts: list[CompletedPart]

    @classmethod
    def from_results(
        cls, upload_id: str, target_key: str, parts: Iterable[PartResult]
    ) -> "CompleteUploadRequest":
        """Build a request from tagged part results."""
        return cls(
            upload_id=upload_id,
            target_key=target_key,
            parts=[
                CompletedPart(tag=part.tag, part_number=part.part_number)
                for part in parts
                if part.tag
            ],
        )


class CompleteUploadResponse(_WireModel):
    """Final object identifier returned once the upload is assembled."""

    target_key: str | None = Field(default=None, alias="s3Filename")
