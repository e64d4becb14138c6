"""Constants for the multipart uploader."""

import os
from pathlib import Path

BYTES_PER_MIB = 1024 * 1024

DEFAULT_NAMESPACE = "multipart"
DEFAULT_CONCURRENCY_LIMIT = 6
DEFAULT_PART_MIN_SIZE_BYTES = 10 * BYTES_PER_MIB
DEFAULT_MAX_NUM_PARTS = 96

# Resume records live under "<namespace>|<identity>"
RESUME_KEY_SEPARATOR = "|"
DEFAULT_RESUME_NAMESPACE = "upload"

STATE_DIR = Path(os.getenv("MPU_STATE_DIR", str(Path.home() / ".multipart_uploader")))
DEFAULT_STATE_DB_PATH = STATE_DIR / "state.db"

DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTROL_PLANE_TIMEOUT_SECONDS = 30.0
TRANSPORT_CHUNK_SIZE = 256 * 1024

CREATE_ROUTE = "create"
SIGN_PART_ROUTE = "part"
COMPLETE_ROUTE = "complete"
