"""Correlates batches of outbound commands with their asynchronous responses."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from uuid import uuid4

from mc_ai_bridge.request_ids import RequestIdGenerator

CommandDispatcher = Callable[[str, str], Awaitable[None]]


class BatchStatus(str, Enum):
    """Lifecycle states of a command batch."""

    PENDING = "pending"
    RESOLVED = "resolved"
    EXPIRED = "expired"
    FAILED = "failed"


class BatchTimeoutError(RuntimeError):
    """Raised through a batch handle when its results did not all arrive in time."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Command batch timed out after {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


@dataclass(slots=True)
class Batch:
    """Tracking record for one group of dispatched commands."""

    id: str
    request_ids: list[str]
    future: asyncio.Future[list[str]]
    deadline: float
    results: list[str] = field(default_factory=list)
    status: BatchStatus = BatchStatus.PENDING
    timer: asyncio.TimerHandle | None = None

    @property
    def expected_count(self) -> int:
        return len(self.request_ids)


class BatchTracker:
    """Owns every live batch and the request id index pointing into them.

    All state is touched only from the event loop thread and every mutation is
    synchronous, so concurrent turn chains never interleave inside one update.
    """

    def __init__(
        self,
        dispatch: CommandDispatcher,
        *,
        timeout_seconds: float = 60.0,
        request_ids: Callable[[], str] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._dispatch = dispatch
        self._timeout_seconds = timeout_seconds
        self._next_request_id = request_ids or RequestIdGenerator()
        self._logger = logger or logging.getLogger("mc_ai_bridge.batch_tracker")

        self._batches: dict[str, Batch] = {}
        self._request_to_batch: dict[str, str] = {}

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    @property
    def pending_batches(self) -> int:
        return len(self._batches)

    @property
    def pending_requests(self) -> int:
        return len(self._request_to_batch)

    async def create_batch(self, commands: Sequence[str]) -> asyncio.Future[list[str]]:
        """Dispatch ``commands`` and return a future resolved with their results.

        Results are collected in arrival order. An empty batch resolves at once
        and arms no timer.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[list[str]] = loop.create_future()
        if not commands:
            future.set_result([])
            return future

        request_ids: list[str] = []
        for _ in commands:
            request_ids.append(self._allocate_request_id(request_ids))
        batch = Batch(
            id=uuid4().hex,
            request_ids=request_ids,
            future=future,
            deadline=loop.time() + self._timeout_seconds,
        )
        self._batches[batch.id] = batch
        for request_id in request_ids:
            self._request_to_batch[request_id] = batch.id
        batch.timer = loop.call_at(batch.deadline, self._expire, batch.id)
        future.add_done_callback(lambda done: self._forget_cancelled(batch.id, done))

        self._logger.info(
            "batch_created",
            extra={"batch_id": batch.id, "command_count": len(commands), "timeout_seconds": self._timeout_seconds},
        )

        for command, request_id in zip(commands, request_ids):
            if batch.status is not BatchStatus.PENDING:
                break
            try:
                await self._dispatch(command, request_id)
            except asyncio.CancelledError:
                self._release(batch)
                batch.status = BatchStatus.FAILED
                future.cancel()
                self._logger.info("batch_cancelled", extra={"batch_id": batch.id, "request_id": request_id})
                raise
            except Exception as exc:  # noqa: BLE001 - surfaced through the batch future.
                self._finish_with_error(batch.id, exc, BatchStatus.FAILED)
                self._logger.exception(
                    "batch_dispatch_failed",
                    extra={"batch_id": batch.id, "request_id": request_id, "command": command},
                )
                break

        return future

    async def run_batch(self, commands: Sequence[str]) -> list[str]:
        """Create a batch and wait for all of its results."""
        return await (await self.create_batch(commands))

    def record_result(self, request_id: str, result: str) -> bool:
        """Attach ``result`` to the batch owning ``request_id``.

        Unknown ids, including late answers for expired batches, are ignored
        and reported as ``False``.
        """
        batch_id = self._request_to_batch.pop(request_id, None)
        batch = self._batches.get(batch_id) if batch_id else None
        if batch is None:
            self._logger.debug("result_discarded", extra={"request_id": request_id})
            return False

        batch.results.append(result)
        if len(batch.results) < batch.expected_count:
            return True

        self._release(batch)
        batch.status = BatchStatus.RESOLVED
        if not batch.future.done():
            batch.future.set_result(list(batch.results))
        self._logger.info("batch_resolved", extra={"batch_id": batch.id, "result_count": len(batch.results)})
        return True

    def fail_all(self, exc: BaseException) -> int:
        """Reject every pending batch with ``exc`` and return how many were failed."""
        batch_ids = list(self._batches)
        for batch_id in batch_ids:
            self._finish_with_error(batch_id, exc, BatchStatus.FAILED)
        if batch_ids:
            self._logger.warning("batches_failed", extra={"batch_count": len(batch_ids), "reason": str(exc)})
        return len(batch_ids)

    def _allocate_request_id(self, taken: Sequence[str] = ()) -> str:
        # Ids of the batch being built are not in the index yet.
        request_id = self._next_request_id()
        while request_id in self._request_to_batch or request_id in taken:
            request_id = self._next_request_id()
        return request_id

    def _expire(self, batch_id: str) -> None:
        batch = self._batches.get(batch_id)
        if batch is None:
            return
        self._logger.warning(
            "batch_timeout",
            extra={
                "batch_id": batch_id,
                "received": len(batch.results),
                "expected": batch.expected_count,
                "timeout_seconds": self._timeout_seconds,
            },
        )
        self._finish_with_error(batch_id, BatchTimeoutError(self._timeout_seconds), BatchStatus.EXPIRED)

    def _finish_with_error(self, batch_id: str, exc: BaseException, status: BatchStatus) -> None:
        batch = self._batches.get(batch_id)
        if batch is None:
            return
        self._release(batch)
        batch.status = status
        if not batch.future.done():
            batch.future.set_exception(exc)

    def _forget_cancelled(self, batch_id: str, future: asyncio.Future[list[str]]) -> None:
        if not future.cancelled():
            return
        batch = self._batches.get(batch_id)
        if batch is not None:
            self._release(batch)
            self._logger.info("batch_cancelled", extra={"batch_id": batch_id})

    def _release(self, batch: Batch) -> None:
        if batch.timer is not None:
            batch.timer.cancel()
            batch.timer = None
        for request_id in batch.request_ids:
            self._request_to_batch.pop(request_id, None)
        self._batches.pop(batch.id, None)
