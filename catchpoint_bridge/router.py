from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Optional

import structlog

from catchpoint_bridge.errors import ForwardingError, MalformedRequestError
from catchpoint_bridge.forwarder import Forwarder
from catchpoint_bridge.normalizers import AlertNormalizer, get_normalizer
from catchpoint_bridge.settings import EndpointSettings
from catchpoint_bridge.store import StateStore


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class IngestResult:
    host: str
    service: str
    severity: int
    applied: int
    forwarded: int
    forward_failures: int


class IngestionRouter:
    """Routes write requests to the normalizer of their endpoint.

    A request is normalized completely before the store is touched, so a
    normalization error leaves no partial updates behind. Each failure
    message is then written to the store and, when a forwarder is set,
    relayed to it outside the store lock.
    """

    def __init__(
        self,
        endpoints: Iterable[EndpointSettings],
        store: StateStore,
        normalizers: Mapping[str, AlertNormalizer],
        *,
        forwarder: Optional[Forwarder] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.endpoints = tuple(endpoints)
        self.store = store
        self.normalizers = normalizers
        self.forwarder = forwarder
        self._clock = clock

    def match(self, path: str) -> Optional[EndpointSettings]:
        for endpoint in self.endpoints:
            if endpoint.uri_path == path:
                return endpoint
        return None

    def unsupported_endpoints(self) -> list[EndpointSettings]:
        return [e for e in self.endpoints if e.plugin_name not in self.normalizers]

    def ingest(self, endpoint: EndpointSettings, body: bytes, *, client: str = "") -> IngestResult:
        log = logger.bind(client=client, path=endpoint.uri_path, plugin=endpoint.plugin_name)

        if not body:
            log.info("Rejected empty write request")
            raise MalformedRequestError("empty_body")

        normalizer = get_normalizer(self.normalizers, endpoint.plugin_name)
        alert = normalizer.normalize(body)
        log.info(
            "Alert received",
            severity=alert.severity,
            service=alert.service,
            failures=len(alert.messages),
        )

        forwarded = 0
        forward_failures = 0
        for message in alert.messages:
            self.store.upsert(endpoint.host, alert.service, alert.severity, message, int(self._clock()))
            if self.forwarder is None:
                continue
            try:
                self.forwarder.forward(alert.severity, alert.service, message)
                forwarded += 1
            except ForwardingError as exc:
                forward_failures += 1
                log.warning("Passive check forwarding failed", service=alert.service, error=str(exc))
            except Exception:
                forward_failures += 1
                log.exception("Passive check forwarder crashed", service=alert.service)

        log.info("Items have been written to the cache", count=len(alert.messages), host=endpoint.host)
        return IngestResult(
            host=endpoint.host,
            service=alert.service,
            severity=alert.severity,
            applied=len(alert.messages),
            forwarded=forwarded,
            forward_failures=forward_failures,
        )
