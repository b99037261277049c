from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Optional

import structlog


logger = structlog.get_logger(__name__)


def dump_request_body(directory: str, body: bytes) -> Optional[Path]:
    """Write one request body to ``<directory>/<time_ns>_<pid>.txt``.

    Debug aid only: failures are logged and swallowed.
    """
    if not directory:
        return None
    path = Path(directory) / f"{time.time_ns()}_{os.getpid()}.txt"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(body or b"")
    except OSError as exc:
        logger.error("Unable to dump request body", path=str(path), error=str(exc))
        return None
    return path
