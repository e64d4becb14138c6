"""Persisted upload records keyed by payload identity."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from multipart_uploader.const import DEFAULT_RESUME_NAMESPACE, RESUME_KEY_SEPARATOR
from multipart_uploader.models import PartResult, UploadRecord

from .kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class ResumeStore:
    """Read and write ``UploadRecord`` values through a key-value store.

    Keys are ``"<namespace>|<identity>"``. Two payloads sharing an identity
    share a record. Writes are not locked, so only one writer per identity
    should be active at a time.
    """

    def __init__(
        self,
        kv_store: KeyValueStore,
        namespace: str = DEFAULT_RESUME_NAMESPACE,
    ) -> None:
        """Initialise the store.

        Args:
            kv_store: Underlying persisted medium.
            namespace: Prefix scoping this uploader's records.
        """
        self._kv_store = kv_store
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        """Prefix used for every key."""
        return self._namespace

    def key_for(self, identity: str) -> str:
        """Return the storage key for a payload identity."""
        return f"{self._namespace}{RESUME_KEY_SEPARATOR}{identity}"

    async def get(self, identity: str) -> UploadRecord | None:
        """Load the record for ``identity``.

        Missing or unparseable values are treated as "no resumable upload".
        """
        key = self.key_for(identity)
        raw = await self._kv_store.get(key)
        if not raw:
            return None
        try:
            return UploadRecord.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "Ignoring unreadable resume record %s: %d validation error(s)",
                key,
                exc.error_count(),
            )
            return None

    async def set(self, identity: str, record: UploadRecord) -> None:
        """Persist ``record`` for ``identity``."""
        await self._kv_store.set(self.key_for(identity), record.model_dump_json())

    async def remove(self, identity: str) -> None:
        """Delete any record for ``identity``."""
        await self._kv_store.delete(self.key_for(identity))

    async def append_part(self, identity: str, part: PartResult) -> UploadRecord | None:
        """Add a finished part to the persisted record.

        Reads the current record and writes it back with ``part`` added. Does
        nothing if no record exists (for example once the upload completed).

        Returns:
            The updated record, or None if there was nothing to update.
        """
        record = await self.get(identity)
        if record is None:
            logger.debug(
                "No resume record for %s; part %d not persisted",
                identity,
                part.part_number,
            )
            return None
        updated = record.with_part(part)
        await self.set(identity, updated)
        return updated
