"""Thread-safe event collector for the chat server."""

from __future__ import annotations

import statistics
import threading
import time
from collections import deque
from datetime import datetime, timezone

from ..types import CompactionStatus, LoadStatus, PersistStatus, TurnResult


class ServerMetrics:
    """Collects structured events from the turn pipeline.

    Thread-safe: ``record()`` is called from the worker threads that run
    ``process_turn``. Only the newest ``max_events`` events are kept.
    """

    def __init__(self, max_events: int = 1000) -> None:
        self.start_time: float = time.time()
        self._events: deque[dict] = deque(maxlen=max_events)
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {}

    def record(self, event: dict) -> None:
        """Append an event (thread-safe). Adds ``ts`` when missing."""
        with self._lock:
            event = dict(event)  # shallow copy to avoid caller mutation
            if "ts" not in event:
                event["ts"] = datetime.now(timezone.utc).isoformat()
            self._events.append(event)
            key = event.get("type", "unknown")
            self._counters[key] = self._counters.get(key, 0) + 1

    def record_turn(self, thread_id: str, result: TurnResult, elapsed_ms: float) -> None:
        self.record({
            "type": "turn",
            "thread_id": thread_id,
            "elapsed_ms": round(elapsed_ms, 1),
            "state_chars": result.state.total_length,
            "load_status": result.load_status.value,
            "compaction": result.compaction.value,
            "persist_status": result.persist_status.value,
        })
        if result.compaction != CompactionStatus.NOT_NEEDED:
            self.record({
                "type": "compaction",
                "thread_id": thread_id,
                "status": result.compaction.value,
            })
        if result.load_status == LoadStatus.DEGRADED:
            self.record({"type": "load_degraded", "thread_id": thread_id})
        if result.persist_status == PersistStatus.FAILED:
            self.record({"type": "persist_failed", "thread_id": thread_id})

    def snapshot(self) -> dict:
        """Aggregate counters plus latency stats over retained turn events."""
        with self._lock:
            turns = [e for e in self._events if e.get("type") == "turn"]
            compactions = [e for e in self._events if e.get("type") == "compaction"]
            latencies = [t["elapsed_ms"] for t in turns]
            counters = dict(self._counters)

        return {
            "uptime_s": round(time.time() - self.start_time, 1),
            "counters": counters,
            "turns": counters.get("turn", 0),
            "reply_failures": counters.get("reply_failed", 0),
            "compactions_succeeded": sum(
                1 for c in compactions if c["status"] == CompactionStatus.COMPACTED.value
            ),
            "compactions_failed": sum(
                1 for c in compactions if c["status"] == CompactionStatus.FAILED.value
            ),
            "latency_ms": {
                "avg": round(statistics.mean(latencies), 1) if latencies else 0.0,
                "p50": round(statistics.median(latencies), 1) if latencies else 0.0,
                "max": max(latencies) if latencies else 0.0,
            },
        }
