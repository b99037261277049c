"""Relay of check results to Nagios as NSCA passive checks."""

from __future__ import annotations

import subprocess
from typing import Callable, Optional, Protocol

import structlog

from catchpoint_bridge.errors import ForwardingError
from catchpoint_bridge.settings import NscaSettings


logger = structlog.get_logger(__name__)


class Forwarder(Protocol):
    def forward(self, severity: int, service: str, message: str) -> None: ...


def format_nsca_line(client_host: str, service: str, severity: int, message: str) -> str:
    """One send_nsca service-check line: host, service, return code, output."""
    # Tabs and newlines are the send_nsca field and record separators.
    clean = " ".join(str(message or "").replace("\t", " ").splitlines())
    return f"{client_host}\t{service}\t{int(severity)}\t{clean}\n"


class NscaForwarder:
    """Sends passive checks by piping them to the send_nsca command.

    The NSCA-ng cipher suites are not available natively, so the command line
    tool does the transport.
    """

    def __init__(
        self,
        settings: NscaSettings,
        *,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.settings = settings
        self._run = runner

    def command(self) -> list[str]:
        s = self.settings
        return [s.os_command_path, "-H", s.server, "-c", s.config_file]

    def forward(self, severity: int, service: str, message: str) -> None:
        line = format_nsca_line(self.settings.client_host, service, severity, message)
        try:
            result = self._run(
                self.command(),
                input=line,
                capture_output=True,
                text=True,
                timeout=self.settings.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise ForwardingError(f"send_nsca timed out after {exc.timeout}s") from exc
        except OSError as exc:
            raise ForwardingError(f"send_nsca could not be started: {exc}") from exc

        logger.debug(
            "NSCA command output",
            service=service,
            returncode=result.returncode,
            stdout=(result.stdout or "").strip(),
            stderr=(result.stderr or "").strip(),
        )
        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            raise ForwardingError(f"send_nsca exited with {result.returncode}: {detail[:500]}")


def build_forwarder(settings: NscaSettings) -> Optional[Forwarder]:
    if not settings.enabled:
        return None
    if not settings.server:
        logger.warning("NSCA forwarding enabled without a server", command=settings.os_command_path)
    return NscaForwarder(settings)
