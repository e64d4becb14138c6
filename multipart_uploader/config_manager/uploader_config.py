"""Pydantic models for multipart uploader configuration."""

from pydantic import BaseModel, Field

from multipart_uploader.const import (
    CONTROL_PLANE_TIMEOUT_SECONDS,
    DEFAULT_CONCURRENCY_LIMIT,
    DEFAULT_MAX_NUM_PARTS,
    DEFAULT_NAMESPACE,
    DEFAULT_PART_MIN_SIZE_BYTES,
    DEFAULT_RESUME_NAMESPACE,
)


class ServerConfig(BaseModel):
    """Where the control plane lives.

    Attributes:
        endpoint: base URL of the control plane, without a trailing slash.
            Required unless a control-plane client is injected.
        namespace: route prefix on the endpoint; defaults to ``multipart``.
        headers: extra headers sent with every control-plane request, e.g. an
            ``Authorization`` bearer token.
    """

    endpoint: str = ""
    namespace: str = DEFAULT_NAMESPACE
    headers: dict[str, str] = Field(default_factory=dict)


class UploaderConfig(BaseModel):
    """Configuration options for a multipart uploader.

    Attributes:
        server: control-plane location and headers.
        concurrency_limit: maximum concurrent part transfers; defaults to 6.
        part_min_size_bytes: minimum part size; defaults to 10 MiB.
        max_num_parts: maximum number of parts per upload; defaults to 96.
        resume_namespace: prefix of persisted resume record keys.
        state_db_path: SQLite file holding resume records; defaults to
            ``~/.multipart_uploader/state.db``.
        request_timeout_seconds: total timeout of each control-plane request,
            None to disable.
        part_timeout_seconds: total timeout of each part transfer, None to
            wait indefinitely.
        debug_mode: log at DEBUG level from the CLI.
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    concurrency_limit: int = Field(default=DEFAULT_CONCURRENCY_LIMIT, ge=1)
    part_min_size_bytes: int = Field(default=DEFAULT_PART_MIN_SIZE_BYTES, ge=1)
    max_num_parts: int = Field(default=DEFAULT_MAX_NUM_PARTS, ge=1)
    resume_namespace: str = DEFAULT_RESUME_NAMESPACE
    state_db_path: str | None = None
    request_timeout_seconds: float | None = Field(
        default=CONTROL_PLANE_TIMEOUT_SECONDS, gt=0
    )
    part_timeout_seconds: float | None = Field(default=None, gt=0)
    debug_mode: bool = False
