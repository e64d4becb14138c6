"""Resumable transfer orchestrator driving one multipart upload.

The orchestrator looks up a persisted record for the payload, decides between
a fresh upload and a resume, transfers the missing parts through a
``ConcurrencyThrottle`` and finalizes the object with the parts sorted by
part number.
"""

import asyncio
import functools
import logging
from collections.abc import Iterable, Sequence
from typing import Any

from multipart_uploader.clients.control_plane import ControlPlaneClient
from multipart_uploader.clients.part_transport import PartTransport, PartUploaded
from multipart_uploader.config_manager.uploader_config import UploaderConfig
from multipart_uploader.event_emitter import UploadEmitter
from multipart_uploader.exceptions import (
    ControlPlaneError,
    InvalidResumeRecord,
    TransportError,
)
from multipart_uploader.models import (
    PartResult,
    TransferState,
    UploadRecord,
    clean_up_tags,
    sanitize_tag,
)
from multipart_uploader.payload import Payload
from multipart_uploader.state_management.resume_store import ResumeStore

from .part_planner import PartPlan, plan_parts
from .progress_aggregator import ProgressAggregator
from .throttle import ConcurrencyThrottle

logger = logging.getLogger(__name__)

CREATE_OPERATION = "create"
SIGN_PART_OPERATION = "part"
COMPLETE_OPERATION = "complete"


class TransferOrchestrator:
    """Drive a single payload through create, part transfers and complete.

    One instance handles one run. Part tasks that are already launched when a
    sibling fails keep running and keep appending to the persisted record
    after ``run`` has raised.
    """

    def __init__(
        self,
        payload: Payload,
        *,
        config: UploaderConfig,
        control_plane: ControlPlaneClient,
        transport: PartTransport,
        resume_store: ResumeStore,
        emitter: UploadEmitter,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            payload: Data to upload.
            config: Part sizing and concurrency settings.
            control_plane: Client for the create, sign and complete calls.
            transport: Byte transport for individual parts.
            resume_store: Persisted records keyed by payload identity.
            emitter: Channel receiving lifecycle notifications.
            metadata: Object metadata passed to the create call.
        """
        self._payload = payload
        self._config = config
        self._control_plane = control_plane
        self._transport = transport
        self._resume_store = resume_store
        self._emitter = emitter
        self._metadata = metadata

        self._throttle = ConcurrencyThrottle(config.concurrency_limit)
        self._state = TransferState.IDLE
        self._record: UploadRecord | None = None
        self._aggregator: ProgressAggregator | None = None
        # Serializes read-modify-write appends from this run's part tasks
        self._append_lock = asyncio.Lock()

    @property
    def state(self) -> TransferState:
        """Current lifecycle state."""
        return self._state

    @property
    def record(self) -> UploadRecord | None:
        """Best-known record of this upload, None before it was created."""
        return self._record

    @property
    def identity(self) -> str:
        """Identity of the payload, used as the resume key."""
        return self._payload.identity

    @property
    def throttle(self) -> ConcurrencyThrottle:
        """Throttle launching this upload's part tasks."""
        return self._throttle

    async def run(self) -> str:
        """Upload the payload, resuming persisted progress when possible.

        Returns:
            The final target key reported by the control plane.

        Raises:
            ControlPlaneError: If a create, sign or complete call fails.
            TransportError: If a part transfer fails.
        """
        if self._state is not TransferState.IDLE:
            raise RuntimeError("TransferOrchestrator.run() may only be called once")

        try:
            self._transition(TransferState.RESUME_CHECK)
            record = await self._resume_store.get(self.identity)
            if record is not None:
                try:
                    resumable = self._reconcile(record)
                except InvalidResumeRecord as exc:
                    logger.info(
                        "Discarding resume record for %s: %s", self.identity, exc
                    )
                    await self._resume_store.remove(self.identity)
                else:
                    return await self._resume(resumable)
            return await self._upload_fresh()
        except Exception:
            self._state = TransferState.FAILED
            raise

    def _reconcile(self, record: UploadRecord) -> UploadRecord:
        """Filter untagged parts and check the record can be resumed.

        Raises:
            InvalidResumeRecord: If the record is incomplete or inconsistent.
        """
        filtered = record.model_copy(
            update={"finished_parts": clean_up_tags(record.finished_parts)}
        )
        if not filtered.is_complete_eligible():
            raise InvalidResumeRecord("record is incomplete or has no tagged parts")
        if not filtered.has_consistent_layout():
            raise InvalidResumeRecord(
                f"{filtered.total_parts} parts of {filtered.part_size_bytes} bytes "
                f"do not cover {filtered.total_size_bytes} bytes"
            )
        out_of_range = [
            part.part_number
            for part in filtered.finished_parts
            if part.part_number > filtered.total_parts
        ]
        if out_of_range:
            raise InvalidResumeRecord(
                f"parts {out_of_range} exceed total_parts={filtered.total_parts}"
            )
        if filtered.total_size_bytes != self._payload.size:
            logger.warning(
                "Resume record for %s was created for %d bytes, payload has %d",
                self.identity,
                filtered.total_size_bytes,
                self._payload.size,
            )
        return filtered

    async def _upload_fresh(self) -> str:
        self._transition(TransferState.CREATED)
        self._emitter.emit(UploadEmitter.UPLOAD_STARTED)

        try:
            created = await self._control_plane.create(
                metadata=self._metadata, content_type=self._payload.content_type
            )
            if not created.upload_id or not created.target_key:
                raise ControlPlaneError(
                    "create did not return both an upload id and a target key",
                    operation=CREATE_OPERATION,
                )
        except ControlPlaneError as exc:
            await self._fail_create(exc)
            raise
        except Exception as exc:
            error = ControlPlaneError(
                f"create failed: {exc}", operation=CREATE_OPERATION
            )
            await self._fail_create(error)
            raise error from exc

        upload_id, target_key = created.upload_id, created.target_key
        self._emitter.emit(UploadEmitter.UPLOAD_CREATED, upload_id, target_key)

        plan = plan_parts(
            self._payload.size,
            self._config.part_min_size_bytes,
            self._config.max_num_parts,
        )
        self._record = UploadRecord(
            original_identity=self.identity,
            total_size_bytes=plan.total_size_bytes,
            total_parts=plan.total_parts,
            part_size_bytes=plan.part_size_bytes,
            finished_parts=[],
            upload_id=upload_id,
            target_key=target_key,
        )
        await self._resume_store.set(self.identity, self._record)
        logger.info(
            "Created upload %s for %s: %d parts of %d bytes",
            upload_id,
            self.identity,
            plan.total_parts,
            plan.part_size_bytes,
        )

        self._aggregator = ProgressAggregator(plan.total_parts, self._emit_progress)
        new_parts = await self._transfer_parts(plan, list(plan.part_numbers()))
        return await self._complete(new_parts)

    async def _resume(self, record: UploadRecord) -> str:
        self._transition(TransferState.RESUMING)
        self._record = record
        await self._resume_store.set(self.identity, record)

        plan = PartPlan(
            record.total_size_bytes, record.part_size_bytes, record.total_parts
        )
        self._aggregator = ProgressAggregator(plan.total_parts, self._emit_progress)
        starting_percentage = self._aggregator.seed(
            part.part_number for part in record.finished_parts
        )
        self._emitter.emit(UploadEmitter.UPLOAD_RESUMED, starting_percentage, record)
        self._emitter.emit(UploadEmitter.TOTAL_PROGRESS, starting_percentage)

        finished = record.finished_lookup()
        pending = [n for n in plan.part_numbers() if n not in finished]
        logger.info(
            "Resuming upload %s for %s at %d%%: %d of %d parts remaining",
            record.upload_id,
            self.identity,
            starting_percentage,
            len(pending),
            plan.total_parts,
        )

        new_parts = await self._transfer_parts(plan, pending)
        return await self._complete([*record.finished_parts, *new_parts])

    async def _transfer_parts(
        self, plan: PartPlan, pending: Sequence[int]
    ) -> list[PartResult]:
        """Transfer ``pending`` parts in ascending order through the throttle."""
        self._transition(TransferState.PARTS_IN_FLIGHT)
        try:
            return await self._throttle.map(
                functools.partial(self._transfer_part, plan, part_number)
                for part_number in sorted(pending)
            )
        except Exception as exc:
            logger.error(
                "One or more parts failed to upload for %s: %s", self.identity, exc
            )
            self._fail(exc, self._record, report=False)
            raise

    async def _transfer_part(self, plan: PartPlan, part_number: int) -> PartResult:
        record = self._record
        assert record is not None and self._aggregator is not None
        self._emitter.emit(UploadEmitter.UPLOAD_PART_STARTED, part_number)

        try:
            signed = await self._control_plane.sign_part(
                part_number, record.upload_id, record.target_key
            )
        except ControlPlaneError as exc:
            self._report_part_error(exc, part_number)
            raise
        except Exception as exc:
            error = ControlPlaneError(
                f"failed to sign part {part_number}: {exc}",
                operation=SIGN_PART_OPERATION,
                part_number=part_number,
            )
            self._report_part_error(error, part_number)
            raise error from exc
        self._emitter.emit(
            UploadEmitter.UPLOAD_PART_SIGNED_URL, part_number, signed.signed_url
        )

        start, end = plan.byte_range(part_number)
        body = await self._payload.read(start, end)

        uploaded: PartUploaded | None = None
        try:
            async for update in self._transport.put(
                signed.signed_url,
                body,
                part_number=part_number,
                content_type=self._payload.content_type,
            ):
                if isinstance(update, PartUploaded):
                    uploaded = update
                else:
                    self._aggregator.update_from_bytes(
                        part_number, update.bytes_sent, update.bytes_total
                    )
            if uploaded is None:
                raise TransportError(
                    f"Transfer of part {part_number} ended without a result",
                    part_number=part_number,
                )
            tag = sanitize_tag(uploaded.tag)
            if tag is None:
                # The storage service cannot assemble a part it never tagged
                raise TransportError(
                    f"Part {part_number} was accepted without a tag",
                    part_number=part_number,
                )
        except TransportError as exc:
            self._report_part_error(exc, part_number)
            raise
        except Exception as exc:
            error = TransportError(
                f"Failed to upload part {part_number}: {exc}",
                part_number=part_number,
            )
            self._report_part_error(error, part_number)
            raise error from exc

        result = PartResult(part_number=part_number, tag=tag)
        self._aggregator.update(part_number, 100)
        self._record = self._record.with_part(result)
        self._emitter.emit(UploadEmitter.UPLOAD_PART_SUCCESS, part_number)
        async with self._append_lock:
            await self._resume_store.append_part(self.identity, result)
        return result

    async def _complete(self, parts: Iterable[PartResult]) -> str:
        self._transition(TransferState.COMPLETING)
        record = self._record
        assert record is not None

        by_number = {part.part_number: part for part in clean_up_tags(parts)}
        missing = [
            number
            for number in range(1, record.total_parts + 1)
            if number not in by_number
        ]
        if missing or len(by_number) != record.total_parts:
            error = TransportError(
                f"Cannot complete {self.identity}: tagged parts do not cover "
                f"1..{record.total_parts} (missing {missing})",
                part_number=missing[0] if missing else max(by_number),
            )
            self._fail(error, record)
            raise error
        ordered = [by_number[number] for number in sorted(by_number)]

        try:
            response = await self._control_plane.complete(
                record.upload_id, record.target_key, ordered
            )
        except ControlPlaneError as exc:
            self._fail(exc, self._record)
            raise
        except Exception as exc:
            error = ControlPlaneError(
                f"complete failed: {exc}", operation=COMPLETE_OPERATION
            )
            self._fail(error, self._record)
            raise error from exc

        target_key = response.target_key or record.target_key
        await self._resume_store.remove(self.identity)
        self._transition(TransferState.COMPLETED)
        logger.info("Upload of %s complete: %s", self.identity, target_key)
        self._emitter.emit(UploadEmitter.UPLOAD_COMPLETE, target_key)
        return target_key

    async def _fail_create(self, error: ControlPlaneError) -> None:
        await self._resume_store.remove(self.identity)
        self._fail(error, None)

    def _fail(
        self, error: Exception, record: UploadRecord | None, *, report: bool = True
    ) -> None:
        """Enter FAILED and notify subscribers.

        Args:
            error: The failure surfaced to the caller.
            record: Best-known record, None if the upload was never created.
            report: Also emit the generic error event; part failures have
                already emitted it.
        """
        self._state = TransferState.FAILED
        logger.error("Upload of %s failed: %s", self.identity, error)
        if report:
            self._emitter.emit(UploadEmitter.ERROR, error)
        self._emitter.emit(UploadEmitter.UPLOAD_FAILED, error, record)

    def _report_part_error(self, error: Exception, part_number: int) -> None:
        logger.warning("Part %d of %s failed: %s", part_number, self.identity, error)
        self._emitter.emit(UploadEmitter.ERROR, error)

    def _emit_progress(self, percentage: int) -> None:
        self._emitter.emit(UploadEmitter.TOTAL_PROGRESS, percentage)

    def _transition(self, state: TransferState) -> None:
        logger.debug(
            "Upload %s: %s -> %s", self.identity, self._state.value, state.value
        )
        self._state = state
