"""Public entry point for resumable multipart uploads."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from types import TracebackType
from typing import Any

import aiohttp

from multipart_uploader.clients.control_plane import (
    ControlPlaneClient,
    HttpControlPlaneClient,
)
from multipart_uploader.clients.part_transport import HttpPartTransport, PartTransport
from multipart_uploader.config_manager.uploader_config import UploaderConfig
from multipart_uploader.const import DEFAULT_STATE_DB_PATH
from multipart_uploader.event_emitter import UploadEmitter
from multipart_uploader.exceptions import ConfigurationError
from multipart_uploader.models import UploadRecord
from multipart_uploader.payload import Payload, as_payload
from multipart_uploader.state_management.kv_store import KeyValueStore
from multipart_uploader.state_management.kv_store_sqlite import SqliteKeyValueStore
from multipart_uploader.state_management.resume_store import ResumeStore
from multipart_uploader.upload_management.orchestrator import TransferOrchestrator

logger = logging.getLogger(__name__)


class MultipartUploader:
    """Upload payloads in parts, resuming interrupted uploads.

    Collaborators that are not injected are created on ``start``: an aiohttp
    session backing the HTTP control-plane client and part transport, and a
    SQLite store for resume records.
    """

    def __init__(
        self,
        config: UploaderConfig | None = None,
        *,
        control_plane: ControlPlaneClient | None = None,
        transport: PartTransport | None = None,
        kv_store: KeyValueStore | None = None,
        emitter: UploadEmitter | None = None,
    ) -> None:
        """Initialize the uploader.

        Args:
            config: Uploader configuration; defaults apply when omitted.
            control_plane: Control-plane client, instead of the HTTP one.
            transport: Part transport, instead of the HTTP one.
            kv_store: Persisted medium for resume records, instead of SQLite.
            emitter: Event channel; a new one is created when omitted.

        Raises:
            ConfigurationError: If no control-plane endpoint is configured and
                no control-plane client is given.
        """
        self.config = config or UploaderConfig()
        if control_plane is None and not self.config.server.endpoint:
            raise ConfigurationError(
                "endpoint required in the server config when no control-plane "
                "client is given"
            )
        self.id = str(uuid.uuid4())
        self.emitter = emitter or UploadEmitter()

        self._control_plane = control_plane
        self._transport = transport
        self._kv_store = kv_store
        self._resume_store: ResumeStore | None = None

        self._client_session: aiohttp.ClientSession | None = None
        self._owned_kv_store: SqliteKeyValueStore | None = None
        self._owns_control_plane = False
        self._owns_transport = False
        self._active_uploads = 0
        self._started = False

        if self.config.debug_mode:
            logger.debug("MultipartUploader %s created with %s", self.id, self.config)

    async def __aenter__(self) -> MultipartUploader:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def start(self) -> None:
        """Open default collaborators and emit ``init``. Idempotent."""
        if self._started:
            return

        if self._control_plane is None or self._transport is None:
            self._client_session = aiohttp.ClientSession()
        if self._control_plane is None:
            self._control_plane = HttpControlPlaneClient(
                self._client_session,
                self.config.server,
                timeout_seconds=self.config.request_timeout_seconds,
            )
            self._owns_control_plane = True
        if self._transport is None:
            self._transport = HttpPartTransport(
                self._client_session,
                timeout_seconds=self.config.part_timeout_seconds,
            )
            self._owns_transport = True

        if self._kv_store is None:
            store = SqliteKeyValueStore(
                Path(self.config.state_db_path or DEFAULT_STATE_DB_PATH)
            )
            await store.init_async_store()
            self._owned_kv_store = store
            self._kv_store = store

        self._resume_store = ResumeStore(self._kv_store, self.config.resume_namespace)
        self._started = True
        self.emitter.emit(UploadEmitter.INIT, self.config)

    async def close(self) -> None:
        """Release the session and store opened by ``start``."""
        if self._client_session is not None:
            await self._client_session.close()
            self._client_session = None
        if self._owns_control_plane:
            self._control_plane = None
            self._owns_control_plane = False
        if self._owns_transport:
            self._transport = None
            self._owns_transport = False
        if self._owned_kv_store is not None:
            await self._owned_kv_store.close()
            self._kv_store = None
            self._owned_kv_store = None
        self._resume_store = None
        self._started = False

    @property
    def resume_store(self) -> ResumeStore:
        """Store of resume records; available once started."""
        if self._resume_store is None:
            raise RuntimeError("MultipartUploader has not been started")
        return self._resume_store

    async def upload(
        self,
        source: Payload | Path | str | bytes,
        *,
        identity: str | None = None,
        metadata: dict[str, Any] | None = None,
        content_type: str | None = None,
    ) -> str:
        """Upload ``source``, resuming a previous attempt for the same identity.

        Args:
            source: A ``Payload``, a file path or raw bytes.
            identity: Resume key; defaults to the file name for paths and is
                required for raw bytes.
            metadata: Object metadata sent with the create call.
            content_type: Content type of the final object.

        Returns:
            The final target key of the uploaded object.

        Raises:
            ControlPlaneError: If a control-plane call fails.
            TransportError: If a part transfer fails.
        """
        await self.start()
        payload = as_payload(source, identity=identity, content_type=content_type)
        orchestrator = TransferOrchestrator(
            payload,
            config=self.config,
            control_plane=self._control_plane,
            transport=self._transport,
            resume_store=self.resume_store,
            emitter=self.emitter,
            metadata=metadata,
        )
        self._active_uploads += 1
        try:
            return await orchestrator.run()
        finally:
            self._active_uploads -= 1

    def is_upload_in_progress(self) -> bool:
        """Return True while any upload is running. For observability only."""
        return self._active_uploads > 0

    async def get_resume_record(self, identity: str) -> UploadRecord | None:
        """Return the persisted record for ``identity``, if any."""
        await self.start()
        return await self.resume_store.get(identity)

    async def forget(self, identity: str) -> None:
        """Delete persisted progress for ``identity`` so the next upload starts fresh."""
        await self.start()
        await self.resume_store.remove(identity)
