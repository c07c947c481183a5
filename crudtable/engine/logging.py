"""
crudtable Logging — Structured JSON request and table-event logs.

Implements:
- FileLogger: one JSONL file per object type per day, plus a reader for `crudtable logs`
- AsyncLogQueue: entries pushed from the event loop, appended by one writer thread
- Log entry builders for table requests, controller events and system events

Layout: {log_dir}/{object_type}/{YYYY-MM-DD}.jsonl
"""

from __future__ import annotations

import json
import logging
import threading
from collections import defaultdict
from datetime import date, datetime, timezone
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Any, Dict, List, Optional

logger = logging.getLogger("crudtable.engine.logging")

# requests: one entry per HTTP call; tables: controller state changes; system: app lifecycle
OBJECT_TYPES = ("requests", "tables", "system")


class LogEntry:
    """A structured log entry destined for ``{object_type}/{day}.jsonl``."""

    __slots__ = ("object_type", "data")

    def __init__(self, object_type: str, data: Dict[str, Any]):
        self.object_type = object_type
        self.data = data

    def to_json(self) -> str:
        return json.dumps(self.data, default=str, separators=(",", ":"))


class FileLogger:
    """
    Appends entries to daily JSONL files and reads them back.

    Only the queue's writer thread appends, so there is no file locking.
    """

    def __init__(self, log_dir: str = "logs"):
        self._log_dir = Path(log_dir)

    def path_for(self, object_type: str, day: Optional[date] = None) -> Path:
        return self._log_dir / object_type / f"{(day or date.today()).isoformat()}.jsonl"

    def write_batch(self, entries: List[LogEntry]) -> None:
        """Append entries, one file open per object type."""
        lines: Dict[str, List[str]] = defaultdict(list)
        for entry in entries:
            lines[entry.object_type].append(entry.to_json())

        for object_type, batch in lines.items():
            path = self.path_for(object_type)
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write("\n".join(batch) + "\n")

    def read(
        self,
        object_type: str,
        day: Optional[date] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Entries of one day, oldest first. Lines that are not JSON are skipped.

        ``filters`` keeps only entries whose fields equal every given value.
        """
        path = self.path_for(object_type, day)
        if not path.exists():
            return []

        entries: List[Dict[str, Any]] = []
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if filters and any(data.get(k) != v for k, v in filters.items()):
                    continue
                entries.append(data)
        return entries


class AsyncLogQueue:
    """
    Bounded queue drained by a daemon writer thread.

    ``push`` never blocks; when the queue is full the entry is dropped. The
    writer takes whatever is queued, up to ``batch_size`` entries, per write.
    ``stop`` enqueues a sentinel, so everything pushed before it is written.
    """

    _STOP = object()

    def __init__(self, file_logger: FileLogger, batch_size: int = 50, max_queue_size: int = 10000):
        self._file_logger = file_logger
        self._batch_size = batch_size
        self._queue: Queue = Queue(maxsize=max_queue_size)
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="crudtable-log-writer", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Write everything pushed so far, then end the writer thread."""
        if self._thread is None:
            return
        try:
            self._queue.put(self._STOP, timeout=timeout)
        except Full:
            logger.warning("Log queue still full at shutdown; pending entries are lost")
            return
        self._thread.join(timeout=timeout)
        self._thread = None

    def push(self, entry: LogEntry) -> bool:
        """Queue an entry. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(entry)
        except Full:
            return False
        return True

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            stopping = item is self._STOP
            batch = [] if stopping else [item]
            while not stopping and len(batch) < self._batch_size:
                try:
                    item = self._queue.get_nowait()
                except Empty:
                    break
                if item is self._STOP:
                    stopping = True
                else:
                    batch.append(item)

            if batch:
                try:
                    self._file_logger.write_batch(batch)
                except OSError as e:
                    logger.error(f"Could not write {len(batch)} log entries: {e}")
            if stopping:
                return


# ---------------------------------------------------------------------------
# Log Entry Builders
# ---------------------------------------------------------------------------

def _base_entry(event: str, level: str, table: str, **extra: Any) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "event": event,
        "table": table,
    }
    entry.update(extra)
    return entry


def log_table_request(
    table: str,
    operation: str,
    method: str,
    url: str,
    status_code: Optional[int],
    duration_ms: float,
    success: bool,
    log_payload: bool = False,
    request_body: Optional[Any] = None,
    error: Optional[str] = None,
) -> LogEntry:
    """Build an entry for one fetch/delete/add/update request."""
    data = _base_entry(
        event="table_request",
        level="INFO" if success else "ERROR",
        table=table,
        operation=operation,
        method=method,
        url=url,
        status_code=status_code,
        duration_ms=round(duration_ms, 2),
        success=success,
    )
    if log_payload and request_body is not None:
        data["request_body"] = request_body
    if error:
        data["error"] = error
    return LogEntry("requests", data)


def log_table_event(
    table: str,
    event: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "INFO",
) -> LogEntry:
    """Build an entry for a controller state change (dialog opened, mirror replaced, ...)."""
    data = _base_entry(event=event, level=level, table=table)
    if details:
        data["details"] = details
    return LogEntry("tables", data)


def log_system_event(
    event: str,
    level: str = "INFO",
    details: Optional[Dict[str, Any]] = None,
) -> LogEntry:
    """Build a system event log entry (startup, shutdown)."""
    data = _base_entry(event=event, level=level, table="system")
    if details:
        data["details"] = details
    return LogEntry("system", data)


# ---------------------------------------------------------------------------
# Global queue
# ---------------------------------------------------------------------------

_global_queue: Optional[AsyncLogQueue] = None


def init_logging(
    log_dir: str = "logs",
    level: str = "INFO",
    batch_size: int = 50,
    max_queue_size: int = 10000,
) -> AsyncLogQueue:
    """Start the global log queue and set the crudtable stdlib logger level."""
    global _global_queue
    logging.getLogger("crudtable").setLevel(level)
    _global_queue = AsyncLogQueue(FileLogger(log_dir), batch_size=batch_size, max_queue_size=max_queue_size)
    _global_queue.start()
    return _global_queue


def log(entry: LogEntry) -> bool:
    """Push a log entry to the global queue. Non-blocking."""
    if _global_queue is None:
        logger.debug(f"Log queue not initialized, dropped {entry.object_type}/{entry.data.get('event')}")
        return False
    return _global_queue.push(entry)


def shutdown_logging() -> None:
    """Flush and stop the global log queue."""
    global _global_queue
    if _global_queue is not None:
        _global_queue.stop()
        _global_queue = None
