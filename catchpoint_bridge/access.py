from __future__ import annotations

import structlog


logger = structlog.get_logger(__name__)


def parse_allow_list(raw: str) -> tuple[str, ...]:
    out: list[str] = []
    for part in str(raw or "").split(","):
        item = part.strip()
        if item:
            out.append(item)
    return tuple(out)


def strip_port(client_address: str) -> str:
    """Return the address part of ``ip``, ``ip:port`` or ``[ipv6]:port``."""
    s = str(client_address or "").strip()
    if s.startswith("["):
        end = s.find("]")
        return s[1:end] if end > 0 else s[1:]
    if s.count(":") == 1:
        return s.split(":", 1)[0]
    # Bare IPv6 addresses carry several colons and no port.
    return s


class AccessFilter:
    """Admits clients whose address is in the allow-list.

    An empty allow-list admits everyone. Matching is an exact string
    comparison, no wildcards or CIDR ranges.
    """

    def __init__(self, authorized_ips: str = "") -> None:
        self.allowed = parse_allow_list(authorized_ips)

    @property
    def enabled(self) -> bool:
        return bool(self.allowed)

    def allows(self, client_address: str) -> bool:
        if not self.allowed:
            return True
        client_ip = strip_port(client_address)
        if client_ip in self.allowed:
            logger.info("Accepted IP", client_ip=client_ip)
            return True
        logger.info("Refused IP", client_address=client_address)
        return False
