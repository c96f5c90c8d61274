"""Bounded-concurrency ingestion queue.

Requests wait in a FIFO queue keyed by document id; a fixed pool of
workers (``max_concurrent``, default 5) pulls from the front and hands
each job to :class:`DocumentProcessor`.  Failed jobs are not retried;
callers re-submit.

Consumers subscribe to job outcomes with :meth:`add_listener` instead of
polling.  Callbacks may be sync or async and receive
``(event, document)`` where *event* is one of ``document_processed``,
``document_failed`` or ``document_cancelled``.  A listener that raises is
logged and skipped.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from docvec.models.document import (
    DocumentStatus,
    IngestionRequest,
    ProcessedDocument,
    QueuedAcknowledgment,
    QueueStatus,
)
from docvec.services.ingestion.document_processor import DocumentProcessor
from docvec.utils.errors import ConfigurationError, DocVecError

logger = structlog.get_logger(logger_name=__name__)

EVENT_PROCESSED = "document_processed"
EVENT_FAILED = "document_failed"
EVENT_CANCELLED = "document_cancelled"

_EVENTS = {
    DocumentStatus.SUCCESS: EVENT_PROCESSED,
    DocumentStatus.PARTIAL: EVENT_PROCESSED,
    DocumentStatus.FAILED: EVENT_FAILED,
    DocumentStatus.CANCELLED: EVENT_CANCELLED,
}


class IngestionCoordinator:
    """FIFO ingestion queue drained by a fixed-size worker pool.

    Usable as an async context manager: entering starts the workers,
    leaving waits for queued work and stops them.
    """

    def __init__(self, processor: DocumentProcessor, max_concurrent: int = 5) -> None:
        if max_concurrent <= 0:
            raise ConfigurationError(message=f"max_concurrent must be positive, got {max_concurrent}")
        self._processor = processor
        self._max_concurrent = max_concurrent
        self._pending: OrderedDict[str, IngestionRequest] = OrderedDict()
        self._processing: dict[str, asyncio.Event] = {}
        self._results: dict[str, ProcessedDocument] = {}
        self._waiters: dict[str, list[asyncio.Future[ProcessedDocument]]] = {}
        self._listeners: list[Callable] = []
        self._condition = asyncio.Condition()
        self._idle = asyncio.Event()
        self._idle.set()
        self._workers: list[asyncio.Task[None]] = []
        self._closing = False

    async def __aenter__(self) -> IngestionCoordinator:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Spawn the worker pool (idempotent)."""
        if self._workers:
            return
        self._closing = False
        self._workers = [
            asyncio.create_task(self._worker(n), name=f"ingestion-worker-{n}")
            for n in range(self._max_concurrent)
        ]
        logger.info("ingestion_workers_started", workers=self._max_concurrent)

    async def join(self) -> None:
        """Wait until nothing is pending or processing."""
        await self._idle.wait()

    async def stop(self) -> None:
        """Finish queued work, then shut the workers down."""
        if not self._workers:
            return
        await self.join()
        async with self._condition:
            self._closing = True
            self._condition.notify_all()
        await asyncio.gather(*self._workers)
        self._workers = []
        logger.info("ingestion_workers_stopped")

    # ------------------------------------------------------------------
    # Queue operations
    # ------------------------------------------------------------------

    async def submit(self, request: IngestionRequest) -> QueuedAcknowledgment:
        """Queue *request* and return its position.

        Re-submitting an id that is still queued replaces the request but
        keeps its place.

        Raises
        ------
        docvec.utils.errors.ConfigurationError
            If the same id is currently being processed.
        """
        if request.id in self._processing:
            raise ConfigurationError(message=f"Document {request.id!r} is already being processed")
        self.start()
        async with self._condition:
            self._pending[request.id] = request
            self._results.pop(request.id, None)
            self._idle.clear()
            position = list(self._pending).index(request.id)
            self._condition.notify()
        logger.debug("document_queued", document_id=request.id, position=position)
        return QueuedAcknowledgment(document_id=request.id, position=position)

    async def process_now(self, request: IngestionRequest) -> ProcessedDocument:
        """Process *request* immediately, bypassing the queue and its limit.

        Vector-store errors are re-raised after listeners are notified.
        """
        outcome = await self._processor.execute(request)
        await self._finish(outcome.document)
        if outcome.error is not None:
            raise outcome.error
        return outcome.document

    async def cancel(self, document_id: str) -> bool:
        """Cancel a queued or running job.

        A queued job is removed and recorded as ``cancelled`` at once; a
        running job stops at its next stage boundary.  Returns ``False``
        when the id is neither queued nor running.
        """
        async with self._condition:
            request = self._pending.pop(document_id, None)
        if request is not None:
            document = await self._processor.record_cancelled(request)
            await self._finish(document)
            self._update_idle()
            return True

        event = self._processing.get(document_id)
        if event is not None:
            event.set()
            logger.info("document_cancel_requested", document_id=document_id)
            return True
        return False

    def queue_status(self) -> QueueStatus:
        return QueueStatus(
            pending=len(self._pending),
            processing=len(self._processing),
            max_concurrent=self._max_concurrent,
        )

    def get_result(self, document_id: str) -> ProcessedDocument | None:
        return self._results.get(document_id)

    async def wait_for(self, document_id: str) -> ProcessedDocument:
        """Wait for a queued or running job to reach a terminal status."""
        if document_id in self._results:
            return self._results[document_id]
        if document_id not in self._pending and document_id not in self._processing:
            raise ConfigurationError(message=f"Document {document_id!r} is not queued")
        future: asyncio.Future[ProcessedDocument] = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(document_id, []).append(future)
        return await future

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, callback: Callable) -> None:
        """Register ``callback(event, document)``; sync or async."""
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: Callable) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    async def _notify(self, event: str, document: ProcessedDocument) -> None:
        for callback in list(self._listeners):
            try:
                result = callback(event, document)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                logger.warning(
                    "listener_callback_error",
                    event=event,
                    document_id=document.id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    def _update_idle(self) -> None:
        if not self._pending and not self._processing:
            self._idle.set()

    async def _finish(self, document: ProcessedDocument) -> None:
        self._results[document.id] = document
        for future in self._waiters.pop(document.id, []):
            if not future.done():
                future.set_result(document)
        await self._notify(_EVENTS.get(document.status, EVENT_PROCESSED), document)

    async def _worker(self, number: int) -> None:
        while True:
            async with self._condition:
                while not self._pending and not self._closing:
                    await self._condition.wait()
                if not self._pending:
                    return
                document_id, request = self._pending.popitem(last=False)
                cancel_event = asyncio.Event()
                self._processing[document_id] = cancel_event

            try:
                document = await self._run_job(request, cancel_event, number)
                await self._finish(document)
            finally:
                self._processing.pop(document_id, None)
                self._update_idle()

    async def _run_job(
        self, request: IngestionRequest, cancel_event: asyncio.Event, number: int
    ) -> ProcessedDocument:
        logger.debug("ingestion_job_started", document_id=request.id, worker=number)
        try:
            outcome = await self._processor.execute(request, cancel_event)
        except DocVecError as exc:
            # Persistence failed, so this record lives only in memory.
            logger.error("ingestion_job_error", document_id=request.id, error=str(exc))
            return self._failure_record(request, str(exc))
        except Exception as exc:
            # The processor has already saved this failure.
            logger.exception("ingestion_job_crashed", document_id=request.id)
            return self._failure_record(request, f"Unexpected error: {type(exc).__name__}: {exc}")

        if outcome.error is not None:
            logger.error(
                "ingestion_vector_store_error",
                document_id=request.id,
                error=str(outcome.error),
                error_type=type(outcome.error).__name__,
            )
        return outcome.document

    @staticmethod
    def _failure_record(request: IngestionRequest, message: str) -> ProcessedDocument:
        now = datetime.now(timezone.utc)
        return ProcessedDocument(
            id=request.id,
            title=request.display_name,
            file_name=request.display_name,
            file_path=request.file_path,
            collection_id=request.collection_id,
            status=DocumentStatus.FAILED,
            errors=[message],
            created_at=now,
            updated_at=now,
        )
