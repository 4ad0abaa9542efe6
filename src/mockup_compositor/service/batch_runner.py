"""Bulk mockup generation with a bounded worker pool.

The ``BatchRunner`` fans one creative (or per-frame creative overrides)
out across many frames and yields progress as items resolve.

Design notes
------------
- Worker pool: a ``ThreadPoolExecutor`` with ``concurrency_limit``
  workers.  At most ``concurrency_limit`` items are submitted at a time,
  which caps how many decoded frames are held in memory and means a
  cancelled batch starts nothing new.
- Isolation: every exception is caught at the item boundary and turned
  into a failed :class:`BatchItemResult`; one bad frame never aborts
  the batch.
- Ordering: completion order is arbitrary.  ``processed_count`` on the
  emitted :class:`ProgressEvent` values increases by exactly one per
  resolved item.  ``BatchCompleted.results`` is in submission order.
- Timeouts: an item's deadline starts when a worker picks it up.  An
  expired item is recorded as failed with :class:`ItemTimeoutError` and
  its late result is discarded.  Python threads cannot be killed, so the
  stuck worker finishes in the background; the pool holding it is
  retired and later items go to a fresh pool of the same size.
- Cancellation: setting ``cancel_event`` or closing the generator stops
  new submissions.  In-flight items finish; items that never started
  are reported as failed in the terminal event, if the consumer is
  still listening.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Iterable, Iterator, Mapping
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass

from mockup_compositor.errors import AssetResolutionError, BatchItemError, ItemTimeoutError
from mockup_compositor.models import (
    BatchCompleted,
    BatchItem,
    BatchItemResult,
    BatchSummary,
    CompositeRequest,
    Frame,
    ProgressEvent,
)
from mockup_compositor.pipeline.placer.placement import fill_assignments
from mockup_compositor.service.single_job import SingleJobService

logger = logging.getLogger(__name__)

# How often to re-check deadlines of items still queued in the executor.
_POLL_INTERVAL_S = 0.25

BatchEvent = ProgressEvent | BatchCompleted

_NO_TIMEOUT = object()


@dataclass
class _Slot:
    """Bookkeeping for one submitted item."""

    index: int
    item: BatchItem
    started_at: float | None = None


class BatchRunner:
    """Run many single-mockup jobs with bounded concurrency.

    Parameters
    ----------
    service : SingleJobService
        Composes one frame; shared by all workers.
    frames : Mapping[str, Frame]
        Frame records by id, supplied by the caller.
    concurrency_limit : int | None
        Worker-pool size.  Defaults to ``service.config.concurrency_limit``.
    item_timeout_s : float | None
        Per-item deadline in seconds; ``None`` disables it.  Defaults to
        ``service.config.item_timeout_s``.
    """

    def __init__(
        self,
        service: SingleJobService,
        frames: Mapping[str, Frame],
        concurrency_limit: int | None = None,
        item_timeout_s: float | None | object = _NO_TIMEOUT,
    ) -> None:
        self._service = service
        self._frames = frames
        self.concurrency_limit = (
            concurrency_limit if concurrency_limit is not None else service.config.concurrency_limit
        )
        if self.concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be >= 1, got {self.concurrency_limit}")
        self.item_timeout_s: float | None = (
            service.config.item_timeout_s if item_timeout_s is _NO_TIMEOUT else item_timeout_s  # type: ignore[assignment]
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(
        self,
        items: Iterable[BatchItem],
        creative_id: str | None = None,
        opacity: float | None = None,
        output_format: str | None = None,
        cancel_event: threading.Event | None = None,
        report_starts: bool = False,
    ) -> Iterator[BatchEvent]:
        """Process *items*, yielding a :class:`ProgressEvent` per resolved item.

        The last value yielded is a :class:`BatchCompleted` holding one
        :class:`BatchItemResult` per item, in submission order.

        Parameters
        ----------
        items : Iterable[BatchItem]
            Frames to process.
        creative_id : str | None
            Shared creative for items that do not name their own.
        opacity : float | None
            Percentage in ``[0, 100]``; config default when ``None``.
        output_format : str | None
            ``"jpg"`` or ``"png"``; config default when ``None``.
        cancel_event : threading.Event | None
            When set, no further items are started.
        report_starts : bool
            Also yield a ``"processing"`` event when an item is handed to
            the pool.  Such events repeat the current ``processed_count``.
        """
        queued = deque(enumerate(items))
        total = len(queued)
        config = self._service.config
        opacity = config.opacity if opacity is None else opacity
        output_format = config.output_format if output_format is None else output_format

        results: list[BatchItemResult | None] = [None] * total
        in_flight: dict[Future[BatchItemResult], _Slot] = {}
        processed_count = 0
        succeeded = 0
        cancelled = False
        wall_clock_start = time.perf_counter()

        logger.info(
            "Batch started: %d item(s)  |  concurrency=%d  |  timeout=%s",
            total,
            self.concurrency_limit,
            f"{self.item_timeout_s:.1f}s" if self.item_timeout_s is not None else "none",
        )

        executor = self._new_executor()
        retired: list[ThreadPoolExecutor] = []
        try:
            while queued or in_flight:
                if cancel_event is not None and cancel_event.is_set() and not cancelled:
                    cancelled = True
                    logger.warning(
                        "Batch cancelled: %d in flight will finish, %d not started",
                        len(in_flight),
                        len(queued),
                    )

                # --- Top up the pool ---------------------------------------
                started: list[_Slot] = []
                while queued and not cancelled and len(in_flight) < self.concurrency_limit:
                    index, item = queued.popleft()
                    slot = _Slot(index=index, item=item)
                    future = executor.submit(
                        self._run_slot, slot, creative_id, opacity, output_format
                    )
                    in_flight[future] = slot
                    started.append(slot)

                if report_starts:
                    for slot in started:
                        yield ProgressEvent(
                            processed_count=processed_count,
                            total_count=total,
                            current_item_label=self._item_label(slot.item),
                            item_status="processing",
                        )

                if not in_flight:
                    break

                done, _ = wait(
                    list(in_flight),
                    timeout=self._next_wait_timeout(in_flight.values()),
                    return_when=FIRST_COMPLETED,
                )

                resolved: list[tuple[_Slot, BatchItemResult]] = []
                for future in done:
                    resolved.append((in_flight.pop(future), future.result()))
                expired = [
                    (future, slot) for future, slot in in_flight.items() if self._is_expired(slot)
                ]
                for future, slot in expired:
                    del in_flight[future]
                    resolved.append((slot, self._timeout_result(slot)))
                if expired:
                    # Abandoned threads keep their workers busy; later items
                    # go to a fresh pool so the batch keeps its concurrency.
                    retired.append(executor)
                    executor.shutdown(wait=False)
                    executor = self._new_executor()

                for slot, result in resolved:
                    results[slot.index] = result
                    processed_count += 1
                    succeeded += int(result.success)
                    yield ProgressEvent(
                        processed_count=processed_count,
                        total_count=total,
                        current_item_label=result.frame_name or result.frame_id,
                        item_status="done" if result.success else "error",
                        error=result.error,
                    )
        finally:
            for old_executor in retired:
                old_executor.shutdown(wait=False, cancel_futures=True)
            executor.shutdown(wait=False, cancel_futures=True)

        for index, item in queued:
            results[index] = BatchItemResult(
                frame_id=item.frame_id,
                success=False,
                error="Batch cancelled before this item started",
            )

        summary = BatchSummary(
            total=total,
            succeeded=succeeded,
            failed=total - succeeded,
            elapsed_s=time.perf_counter() - wall_clock_start,
            cancelled=cancelled,
        )
        logger.info("Batch finished -- %s", summary.to_log_string())
        yield BatchCompleted(results=tuple(results), summary=summary)  # type: ignore[arg-type]

    def run_to_completion(
        self,
        items: Iterable[BatchItem],
        creative_id: str | None = None,
        **kwargs,
    ) -> BatchCompleted:
        """Drain :meth:`run` and return its terminal event."""
        completed: BatchCompleted | None = None
        for event in self.run(items, creative_id=creative_id, **kwargs):
            if isinstance(event, BatchCompleted):
                completed = event
        if completed is None:
            raise RuntimeError("Batch ended without a BatchCompleted event")
        return completed

    def _new_executor(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(
            max_workers=self.concurrency_limit, thread_name_prefix="mockup-batch"
        )

    def _item_label(self, item: BatchItem) -> str:
        frame = self._frames.get(item.frame_id)
        return frame.display_name if frame is not None else item.frame_id

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    def _run_slot(
        self,
        slot: _Slot,
        creative_id: str | None,
        opacity: float,
        output_format: str,
    ) -> BatchItemResult:
        """Compose one item; never raises."""
        slot.started_at = time.monotonic()
        item = slot.item
        frame = self._frames.get(item.frame_id)
        frame_name = frame.display_name if frame is not None else None
        try:
            if frame is None:
                raise AssetResolutionError(f"Frame '{item.frame_id}' not found")
            assignments = fill_assignments(
                frame,
                item.creative_id if item.creative_id is not None else creative_id,
                item.overrides,
            )
            result = self._service.run(
                CompositeRequest(
                    frame=frame,
                    assignments=assignments,
                    opacity=opacity,
                    output_format=output_format,
                )
            )
        except Exception as exc:
            error = BatchItemError(item.frame_id, exc)
            logger.warning("Batch item '%s' failed: %s", item.frame_id, error.reason)
            return BatchItemResult(
                frame_id=item.frame_id,
                success=False,
                error=error.reason,
                frame_name=frame_name,
            )
        return BatchItemResult(
            frame_id=item.frame_id,
            success=True,
            image_bytes=result.image_bytes,
            frame_name=frame_name,
            warnings=tuple(str(warning) for warning in result.warnings),
        )

    # ------------------------------------------------------------------
    # Deadlines
    # ------------------------------------------------------------------

    def _is_expired(self, slot: _Slot) -> bool:
        if self.item_timeout_s is None or slot.started_at is None:
            return False
        return time.monotonic() - slot.started_at >= self.item_timeout_s

    def _next_wait_timeout(self, slots: Iterable[_Slot]) -> float | None:
        """Seconds until the earliest deadline among in-flight items."""
        if self.item_timeout_s is None:
            return None
        now = time.monotonic()
        remaining = [_POLL_INTERVAL_S]
        for slot in slots:
            if slot.started_at is not None:
                remaining.append(max(0.0, slot.started_at + self.item_timeout_s - now))
        return min(remaining)

    def _timeout_result(self, slot: _Slot) -> BatchItemResult:
        error = BatchItemError(
            slot.item.frame_id,
            ItemTimeoutError(f"Item exceeded {self.item_timeout_s:.1f}s timeout"),
        )
        logger.warning("Batch item '%s' timed out", slot.item.frame_id)
        frame = self._frames.get(slot.item.frame_id)
        return BatchItemResult(
            frame_id=slot.item.frame_id,
            success=False,
            error=error.reason,
            frame_name=frame.display_name if frame is not None else None,
        )


def run_batch(
    service: SingleJobService,
    frames: Mapping[str, Frame],
    items: Iterable[BatchItem],
    creative_id: str | None = None,
    concurrency_limit: int | None = None,
    **kwargs,
) -> Iterator[BatchEvent]:
    """Functional entry point: ``BatchRunner(...).run(...)`` in one call."""
    runner = BatchRunner(service, frames, concurrency_limit=concurrency_limit)
    return runner.run(items, creative_id=creative_id, **kwargs)
