"""
OpsReport Logging System — Structured JSON activity trail with async queue.

Implements:
- FileLogger: one JSONL file per channel per day (logs/{channel}/{activity|errors}/{YYYY-MM-DD}.jsonl)
- AsyncLogQueue: non-blocking push, background thread flushes in batches
- Entry builders for store round trips, notifications, sessions and dashboard actions
- LogRetentionManager: gzip then delete by age

Operational messages still go through the standard ``logging`` module; this
module only records the structured activity trail.
"""

from __future__ import annotations

import gzip
import json
import logging
import shutil
import threading
from collections import defaultdict
from datetime import date, datetime, timezone
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Any, Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger("opsreport.engine.logging")

LOG_CHANNELS = ("store", "notifications", "sessions", "dashboard", "system")
LOG_CATEGORIES = ("activity", "errors")

# days
DEFAULT_RETENTION = {
    "activity": 90,
    "errors": 365,
}


class LogEntry:
    """One JSON line bound for ``{channel}/{category}``."""

    __slots__ = ("channel", "category", "data")

    def __init__(self, channel: str, category: str, data: Dict[str, Any]):
        self.channel = channel
        self.category = category
        self.data = data

    @property
    def event(self) -> Optional[str]:
        return self.data.get("event")

    def to_json(self) -> str:
        return json.dumps(self.data, default=str, separators=(",", ":"))


class FileLogger:
    """
    Appends entries to daily JSONL files. Writers to the same file are
    serialised by a per-path lock, so the flush thread and direct callers
    can share one instance.
    """

    def __init__(self, log_dir: str = "logs"):
        self.log_dir = Path(log_dir)
        self._locks: Dict[Path, threading.Lock] = defaultdict(threading.Lock)
        for channel in LOG_CHANNELS:
            for category in LOG_CATEGORIES:
                (self.log_dir / channel / category).mkdir(parents=True, exist_ok=True)

    def path_for(self, channel: str, category: str, day: Optional[date] = None) -> Path:
        day = day or date.today()
        return self.log_dir / channel / category / f"{day.isoformat()}.jsonl"

    def write(self, entry: LogEntry) -> None:
        self.write_batch([entry])

    def write_batch(self, entries: List[LogEntry]) -> None:
        by_path: Dict[Path, List[str]] = defaultdict(list)
        for entry in entries:
            by_path[self.path_for(entry.channel, entry.category)].append(entry.to_json())

        for path, lines in by_path.items():
            with self._locks[path]:
                with open(path, "a", encoding="utf-8") as f:
                    f.write("\n".join(lines) + "\n")


class AsyncLogQueue:
    """
    Bounded in-memory buffer in front of a FileLogger.

    ``push`` never blocks the event loop: a full buffer drops the entry and
    counts it. A daemon thread writes whatever has accumulated every
    ``flush_interval_ms`` or as soon as ``flush_batch_size`` entries are waiting.
    """

    def __init__(
        self,
        file_logger: FileLogger,
        flush_interval_ms: int = 100,
        flush_batch_size: int = 50,
        max_queue_size: int = 10000,
    ):
        self.file_logger = file_logger
        self._interval = flush_interval_ms / 1000.0
        self._batch_size = flush_batch_size
        self._queue: Queue[LogEntry] = Queue(maxsize=max_queue_size)
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.dropped_count = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self.running:
            return
        self._stopping.clear()
        self._thread = threading.Thread(target=self._run, name="opsreport-log-flush", daemon=True)
        self._thread.start()
        logger.info("Async log queue started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the flush thread and write out everything still buffered."""
        self._stopping.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        self._flush(self._take(limit=None))
        logger.info("Async log queue stopped (dropped: %d)", self.dropped_count)

    def push(self, entry: LogEntry) -> bool:
        try:
            self._queue.put_nowait(entry)
        except Full:
            self.dropped_count += 1
            return False
        return True

    def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                first = self._queue.get(timeout=self._interval)
            except Empty:
                continue
            self._flush([first] + self._take(limit=self._batch_size - 1))

    def _take(self, limit: Optional[int]) -> List[LogEntry]:
        taken: List[LogEntry] = []
        while limit is None or len(taken) < limit:
            try:
                taken.append(self._queue.get_nowait())
            except Empty:
                break
        return taken

    def _flush(self, batch: List[LogEntry]) -> None:
        if not batch:
            return
        try:
            self.file_logger.write_batch(batch)
        except OSError as e:
            logger.error("Log flush failed, %d entries lost: %s", len(batch), e)


# ---------------------------------------------------------------------------
# Entry builders
# ---------------------------------------------------------------------------

def _entry(channel: str, failed: bool, event: str, level: str, /, **fields: Any) -> LogEntry:
    data: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "event": event,
    }
    data.update((k, v) for k, v in fields.items() if v is not None)
    return LogEntry(channel, "errors" if failed else "activity", data)


def log_store_operation(
    operation: str,
    backend: str,
    duration_ms: float,
    success: bool,
    record_id: Optional[str] = None,
    row_count: Optional[int] = None,
    error: Optional[Dict[str, Any]] = None,
) -> LogEntry:
    """Record store round trip (list/create/update/delete)."""
    return _entry(
        "store", not success, f"store_{operation}", "INFO" if success else "ERROR",
        operation=operation,
        backend=backend,
        duration_ms=round(duration_ms, 2),
        success=success,
        record_id=record_id,
        row_count=row_count,
        error=error,
    )


def log_notification(
    event: str,
    channel: str,
    record_id: Optional[str] = None,
    status_code: Optional[int] = None,
    duration_ms: Optional[float] = None,
    error: Optional[str] = None,
) -> LogEntry:
    """notification_sent / notification_skipped / notification_failed."""
    if event.endswith("failed"):
        level = "ERROR"
    elif event.endswith("skipped"):
        level = "WARNING"
    else:
        level = "INFO"
    return _entry(
        "notifications", level == "ERROR", event, level,
        channel=channel,
        record_id=record_id,
        status_code=status_code,
        duration_ms=round(duration_ms, 2) if duration_ms is not None else None,
        error=error,
    )


def log_session_event(
    event: str,
    backend: str,
    user_email: Optional[str] = None,
    error: Optional[str] = None,
) -> LogEntry:
    failed = error is not None
    return _entry(
        "sessions", failed, event, "WARNING" if failed else "INFO",
        backend=backend,
        user_email=user_email,
        error=error,
    )


def log_dashboard_action(
    action: str,
    success: bool = True,
    record_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> LogEntry:
    return _entry(
        "dashboard", not success, f"dashboard_{action}", "INFO" if success else "WARNING",
        action=action,
        success=success,
        record_id=record_id,
        details=details,
    )


def log_system_event(
    event: str,
    level: str = "INFO",
    details: Optional[Dict[str, Any]] = None,
) -> LogEntry:
    return _entry("system", level in ("ERROR", "CRITICAL"), event, level, details=details)


# ---------------------------------------------------------------------------
# Retention
# ---------------------------------------------------------------------------

class LogRetentionManager:
    """
    Applies per-category retention: files past ``retention_days[category]``
    are deleted, plain ``.jsonl`` files past ``compress_after_days`` are gzipped.
    """

    def __init__(
        self,
        log_dir: str = "logs",
        retention_days: Optional[Dict[str, int]] = None,
        compress_after_days: int = 7,
    ):
        self.log_dir = Path(log_dir)
        self.retention_days = {**DEFAULT_RETENTION, **(retention_days or {})}
        self.compress_after_days = compress_after_days

    def _dated_files(self) -> Iterator[Tuple[str, Path, date]]:
        for channel in LOG_CHANNELS:
            for category in LOG_CATEGORIES:
                folder = self.log_dir / channel / category
                if not folder.is_dir():
                    continue
                for path in sorted(folder.iterdir()):
                    try:
                        day = date.fromisoformat(path.name.split(".", 1)[0])
                    except ValueError:
                        continue
                    if path.is_file():
                        yield category, path, day

    def cleanup(self, today: Optional[date] = None) -> Dict[str, int]:
        """Returns ``{"deleted": N, "compressed": M}``."""
        today = today or date.today()
        counts = {"deleted": 0, "compressed": 0}

        for category, path, day in self._dated_files():
            age = (today - day).days
            if age > self.retention_days.get(category, DEFAULT_RETENTION["activity"]):
                path.unlink()
                counts["deleted"] += 1
            elif age > self.compress_after_days and path.suffix == ".jsonl":
                if self._gzip(path):
                    counts["compressed"] += 1

        logger.info("Log cleanup: %s", counts)
        return counts

    @staticmethod
    def _gzip(path: Path) -> bool:
        target = path.with_name(path.name + ".gz")
        try:
            with open(path, "rb") as src, gzip.open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)
        except OSError as e:
            logger.error("Failed to compress %s: %s", path, e)
            target.unlink(missing_ok=True)
            return False
        path.unlink()
        return True


# ---------------------------------------------------------------------------
# Process-wide queue
# ---------------------------------------------------------------------------

_global_queue: Optional[AsyncLogQueue] = None


def init_logging(
    log_dir: str = "logs",
    level: str = "INFO",
    flush_interval_ms: int = 100,
    flush_batch_size: int = 50,
    max_queue_size: int = 10000,
) -> AsyncLogQueue:
    """Set the ``opsreport`` logger level and start the shared queue (idempotent)."""
    global _global_queue
    logging.getLogger("opsreport").setLevel(level)
    if _global_queue is None:
        _global_queue = AsyncLogQueue(
            FileLogger(log_dir=log_dir),
            flush_interval_ms=flush_interval_ms,
            flush_batch_size=flush_batch_size,
            max_queue_size=max_queue_size,
        )
        _global_queue.start()
    return _global_queue


def get_log_queue() -> Optional[AsyncLogQueue]:
    return _global_queue


def log(entry: LogEntry) -> bool:
    """Queue an entry on the shared queue; False when logging is not initialised or full."""
    if _global_queue is None:
        logger.debug("Log queue not initialised, dropping %s", entry.event)
        return False
    return _global_queue.push(entry)


def shutdown_logging() -> None:
    global _global_queue
    if _global_queue is not None:
        _global_queue.stop()
        _global_queue = None
