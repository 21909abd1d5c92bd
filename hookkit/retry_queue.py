"""
Retry queue - durable FIFO of events whose dispatch failed.

One JSON record per line in ``error-queue.jsonl``. An empty (but
existing) file is the "queue empty" state.

drain() re-runs records from the head through a caller-supplied runner:
- success: record discarded
- failure with retry_count < max_retries: moved to the tail, count + 1
- failure at max_retries: dropped (logged; optionally dead-lettered)

The queue file lock is held only while reading the snapshot and while
writing the result back, never while handlers run. The write-back
removes drained records by id, so records other invocations appended in
the meantime survive.
"""
import uuid
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable

from filelock import Timeout as LockTimeout

from hookkit.config import DEFAULT_MAX_RETRIES, EXIT_SUCCESS, Timeouts
from hookkit.errors import QueueLockError
from hookkit.events import HookEvent
from hookkit.hook_utils.io import append_jsonl, file_lock, iter_jsonl, write_jsonl
from hookkit.hook_utils.logging import log_event
from hookkit.sdk import HandlerResult, resolve

Runner = Callable[[dict], Awaitable[HandlerResult]]


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class FailedEventRecord:
    """A queued event with its last failure reason and retry count."""
    event: dict
    error: str
    retry_count: int = 0
    timestamp: str = field(default_factory=_iso_now)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "FailedEventRecord | None":
        event = data.get("event") if isinstance(data, dict) else None
        if not isinstance(event, dict):
            return None
        try:
            retry_count = int(data.get("retry_count", 0))
        except (TypeError, ValueError):
            retry_count = 0
        return cls(
            event=event,
            error=str(data.get("error", "")),
            retry_count=retry_count,
            timestamp=str(data.get("timestamp") or _iso_now()),
            id=str(data.get("id") or uuid.uuid4().hex),
        )


@dataclass(frozen=True)
class DrainReport:
    processed: int = 0
    remaining: int = 0
    dropped: int = 0
    retried: int = 0
    dropped_records: tuple[FailedEventRecord, ...] = ()


@dataclass(frozen=True)
class QueueStatus:
    size: int = 0
    events: tuple[FailedEventRecord, ...] = ()


class RetryQueue:
    """File-backed FIFO of FailedEventRecords for one client."""

    def __init__(
        self,
        path: Path,
        max_retries: int = DEFAULT_MAX_RETRIES,
        on_not_empty: Callable[..., Any] | None = None,
        dead_letter_path: Path | None = None,
        lock_timeout: float = Timeouts.FILE_LOCK,
    ):
        self.path = Path(path)
        self.max_retries = max_retries
        self.on_not_empty = on_not_empty
        self.dead_letter_path = Path(dead_letter_path) if dead_letter_path else None
        self.lock_timeout = lock_timeout

    @contextmanager
    def _locked(self):
        try:
            with file_lock(self.path, self.lock_timeout):
                yield
        except LockTimeout as e:
            raise QueueLockError(self.path, self.lock_timeout) from e

    # -------------------------------------------------------------------------
    # Raw access (callers hold the lock)
    # -------------------------------------------------------------------------

    def read(self) -> list[FailedEventRecord]:
        records = []
        for data in iter_jsonl(self.path):
            record = FailedEventRecord.from_dict(data)
            if record is not None:
                records.append(record)
        return records

    def write(self, records: list[FailedEventRecord]) -> bool:
        return write_jsonl(self.path, [r.to_dict() for r in records])

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def enqueue(self, event: HookEvent | dict, reason: str, retry_count: int = 0) -> FailedEventRecord:
        """Append a failed event to the tail.

        The enrichment field is stripped so a replay is enriched afresh.

        Raises:
            QueueLockError: lock not acquired in time
        """
        data = event.without_context() if isinstance(event, HookEvent) else dict(event)
        data.pop("context", None)
        record = FailedEventRecord(event=data, error=reason, retry_count=retry_count)
        with self._locked():
            if not append_jsonl(self.path, record.to_dict()):
                log_event("retry_queue", "enqueue_failed", {
                    "event": data.get("hook_event_name"),
                    "reason": reason,
                }, "error")
                return record
            size = len(self.read())
        log_event("retry_queue", "enqueued", {
            "event": data.get("hook_event_name"),
            "reason": reason,
            "size": size,
        })
        return record

    def size(self) -> int:
        with self._locked():
            return len(self.read())

    def status(self) -> QueueStatus:
        with self._locked():
            records = self.read()
        return QueueStatus(size=len(records), events=tuple(records))

    async def _notify(self, records: list[FailedEventRecord]) -> None:
        if self.on_not_empty is None:
            return
        try:
            await resolve(self.on_not_empty(len(records), list(records)))
        except Exception as e:
            log_event("retry_queue", "observer_failed", {"error": f"{type(e).__name__}: {e}"}, "warning")

    async def drain(self, runner: Runner, limit: int | None = None) -> DrainReport:
        """Re-run up to ``limit`` records from the head (all when None).

        ``runner`` receives the stored event dict and must not drain again.
        """
        with self._locked():
            snapshot = self.read()
        if not snapshot:
            return DrainReport()

        await self._notify(snapshot)

        batch = snapshot[:limit] if limit and limit > 0 else snapshot
        log_event("retry_queue", "drain_started", {"batch": len(batch), "size": len(snapshot)})

        processed = 0
        requeued: list[FailedEventRecord] = []
        dropped: list[FailedEventRecord] = []

        for record in batch:
            try:
                result = await runner(record.event)
                failure = None if result.exit_code == EXIT_SUCCESS else result.failure_reason()
            except Exception as e:
                failure = str(e) or type(e).__name__

            if failure is None:
                processed += 1
                continue

            if record.retry_count < self.max_retries:
                requeued.append(replace(
                    record,
                    retry_count=record.retry_count + 1,
                    error=failure,
                    timestamp=_iso_now(),
                ))
                log_event("retry_queue", "retry_failed", {
                    "id": record.id,
                    "retry": record.retry_count + 1,
                    "max_retries": self.max_retries,
                })
            else:
                dropped.append(record)
                self._drop(record, failure)

        done = {r.id for r in batch}
        with self._locked():
            remaining = [r for r in self.read() if r.id not in done] + requeued
            self.write(remaining)

        report = DrainReport(
            processed=processed,
            remaining=len(remaining),
            dropped=len(dropped),
            retried=len(requeued),
            dropped_records=tuple(dropped),
        )
        log_event("retry_queue", "drain_finished", {
            "processed": report.processed,
            "remaining": report.remaining,
            "dropped": report.dropped,
            "retried": report.retried,
        })
        return report

    def _drop(self, record: FailedEventRecord, failure: str) -> None:
        log_event("retry_queue", "dropped", {
            "id": record.id,
            "event": record.event.get("hook_event_name"),
            "retries": record.retry_count,
            "error": failure,
        }, "warning")
        if self.dead_letter_path is not None:
            append_jsonl(self.dead_letter_path, {**record.to_dict(), "error": failure, "dropped_at": _iso_now()})
