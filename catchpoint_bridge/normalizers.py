from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Mapping, Protocol

import structlog

from catchpoint_bridge.errors import NormalizationError, UnsupportedPluginError


logger = structlog.get_logger(__name__)

STATE_OK = 0
STATE_WARNING = 1
STATE_CRITICAL = 2
STATE_UNKNOWN = 3

STATE_NAMES = {
    STATE_OK: "OK",
    STATE_WARNING: "WARNING",
    STATE_CRITICAL: "CRITICAL",
    STATE_UNKNOWN: "UNKNOWN",
}

_LEVEL_ALIASES = {
    "ok": STATE_OK,
    "improved": STATE_OK,
    "info": STATE_OK,
    "warning": STATE_WARNING,
    "critical": STATE_CRITICAL,
}


@dataclass(frozen=True)
class NormalizedAlert:
    severity: int
    service: str
    messages: tuple[str, ...] = field(default_factory=tuple)


class AlertNormalizer(Protocol):
    def normalize(self, raw: bytes) -> NormalizedAlert: ...


def severity_from_level(level: str) -> int:
    s = str(level or "").strip().lower()
    if not s:
        return STATE_UNKNOWN
    try:
        code = int(s)
    except ValueError:
        return _LEVEL_ALIASES.get(s, STATE_UNKNOWN)
    return min(max(code, STATE_OK), STATE_UNKNOWN)


def _named_value(root: ET.Element, element: str, fallback: str) -> str:
    # Catchpoint templates put names either in a Name attribute or in a
    # dedicated child element; accept both.
    node = root.find(f".//{element}")
    if node is not None:
        name = node.get("Name") or node.get("name") or (node.text or "")
        if name.strip():
            return name.strip()
    node = root.find(f".//{fallback}")
    if node is not None and (node.text or "").strip():
        return (node.text or "").strip()
    return ""


def _level_text(root: ET.Element) -> str:
    for tag in ("NotificationLevel", "Level"):
        node = root.find(f".//{tag}")
        if node is not None:
            return node.get("Name") or node.text or ""
    return ""


class CatchpointAlertNormalizer:
    """Normalizes Catchpoint Alerts API XML pushes.

    The service name is built as ``<product>-<test>``; every ``<Failure>``
    element becomes one failure message.
    """

    plugin_name = "catchpoint_alerts"

    def normalize(self, raw: bytes) -> NormalizedAlert:
        if not raw or not raw.strip():
            raise NormalizationError("empty_alert_body")
        try:
            root = ET.fromstring(raw)
        except (ET.ParseError, ValueError, LookupError) as exc:
            # expat rejects multi-byte and unknown declared encodings with
            # ValueError and LookupError rather than ParseError.
            raise NormalizationError(f"invalid_alert_xml: {exc}") from exc
        if root.tag != "Alert":
            raise NormalizationError(f"unexpected_root_element: {root.tag}")

        test_name = _named_value(root, "TestDetail", "TestName")
        if not test_name:
            raise NormalizationError("missing_test_name")
        product_name = _named_value(root, "Product", "ProductName")
        service = f"{product_name}-{test_name}" if product_name else test_name

        severity = severity_from_level(_level_text(root))

        messages: list[str] = []
        for failure in root.iter("Failure"):
            text = " ".join((failure.text or "").split())
            node = (failure.get("Node") or "").strip()
            if node:
                text = f"{node}: {text}" if text else node
            if text:
                messages.append(text)
        if not messages:
            messages.append(f"{service} is {STATE_NAMES[severity]}")

        logger.debug("Alert normalized", service=service, severity=severity, failures=len(messages))
        return NormalizedAlert(severity=severity, service=service, messages=tuple(messages))


def default_normalizers() -> dict[str, AlertNormalizer]:
    return {CatchpointAlertNormalizer.plugin_name: CatchpointAlertNormalizer()}


def get_normalizer(normalizers: Mapping[str, AlertNormalizer], plugin_name: str) -> AlertNormalizer:
    normalizer = normalizers.get(str(plugin_name or "").strip())
    if normalizer is None:
        raise UnsupportedPluginError(plugin_name)
    return normalizer
