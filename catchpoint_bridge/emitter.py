"""Snapshot of the cached checks in the tm-health-check JSON format.

Output is a JSON array of ``{"check": {...}}`` objects. ``status`` is a
number while ``timestamp`` and ``statusFirstSeen`` are strings of unix
seconds, as the health-check tooling expects.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import jinja2
import structlog

from catchpoint_bridge.store import CheckRecord, StateStore


logger = structlog.get_logger(__name__)


def check_document(record: CheckRecord) -> dict[str, dict[str, Any]]:
    return {
        "check": {
            "host": record.host,
            "name": record.service,
            "status": int(record.state),
            "message": record.output,
            "timestamp": str(record.last_updated),
            "statusFirstSeen": str(record.status_first_seen),
        }
    }


def load_template(template_path: str) -> jinja2.Template:
    path = Path(template_path)
    env = jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(path.parent)),
        undefined=jinja2.StrictUndefined,
        autoescape=False,
    )
    return env.get_template(path.name)


class SnapshotEmitter:
    """Serializes the state store, optionally through a per-record template.

    Records are sorted by host then service. A record that fails to render,
    or renders to something that is not JSON, is skipped with a warning so
    the document as a whole stays valid.
    """

    def __init__(self, store: StateStore, *, template: Optional[jinja2.Template] = None) -> None:
        self.store = store
        self.template = template

    def _render_record(self, record: CheckRecord) -> str:
        doc = check_document(record)
        if self.template is None:
            return json.dumps(doc, ensure_ascii=False)
        fragment = self.template.render(check=doc).strip()
        json.loads(fragment)
        return fragment

    def render(self) -> str:
        records = sorted(self.store.snapshot_all(), key=lambda r: (r.host, r.service))
        fragments: list[str] = []
        for record in records:
            try:
                fragments.append(self._render_record(record))
            except (jinja2.TemplateError, ValueError, TypeError) as exc:
                logger.warning(
                    "Skipping check that failed to render",
                    host=record.host,
                    service=record.service,
                    error=f"{type(exc).__name__}: {exc}",
                )
        logger.info(
            "Items were read from the cache",
            count=len(fragments),
            hosts=self.store.host_count(),
            skipped=len(records) - len(fragments),
        )
        return "[" + ",".join(fragments) + "]"
