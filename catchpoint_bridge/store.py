"""In-memory state of the checks reported through the bridge.

The store maps ``host -> service -> CheckRecord``. It is volatile: it starts
empty with the process and entries are never evicted, so a churning set of
upstream service names grows it without bound.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

import structlog


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckRecord:
    host: str
    service: str
    state: int
    output: str
    last_updated: int
    # Timestamp of the write that moved ``state`` to its current value.
    status_first_seen: int


class StateStore:
    """Thread-safe two-level mapping of check records.

    A single lock guards the whole mapping. Records are immutable and replaced
    on every write, so a reader never sees fields from two different writes.
    Nothing slow (normalization, forwarding) may run while the lock is held.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._checks: dict[str, dict[str, CheckRecord]] = {}

    def upsert(self, host: str, service: str, severity: int, message: str, timestamp: int) -> None:
        with self._lock:
            services = self._checks.setdefault(host, {})
            previous = services.get(service)
            changed = previous is None or previous.state != severity
            first_seen = timestamp if changed else previous.status_first_seen
            services[service] = CheckRecord(
                host=host,
                service=service,
                state=severity,
                output=message,
                last_updated=timestamp,
                status_first_seen=first_seen,
            )
        logger.debug(
            "Check record updated",
            host=host,
            service=service,
            state=severity,
            state_changed=changed,
        )

    def get(self, host: str, service: str) -> CheckRecord | None:
        with self._lock:
            return self._checks.get(host, {}).get(service)

    def snapshot_all(self) -> list[CheckRecord]:
        """Point-in-time copy of every record, in no particular order."""
        with self._lock:
            return [record for services in self._checks.values() for record in services.values()]

    def host_count(self) -> int:
        with self._lock:
            return len(self._checks)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(services) for services in self._checks.values())
