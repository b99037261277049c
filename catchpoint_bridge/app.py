from __future__ import annotations

import asyncio
import time
from http import HTTPStatus
from typing import Any, Callable, Mapping, Optional

import jinja2
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from catchpoint_bridge import __version__
from catchpoint_bridge.access import AccessFilter
from catchpoint_bridge.dumps import dump_request_body
from catchpoint_bridge.emitter import SnapshotEmitter, load_template
from catchpoint_bridge.errors import AdmissionError, ConfigurationError, NormalizationError, RoutingError
from catchpoint_bridge.forwarder import Forwarder, build_forwarder
from catchpoint_bridge.normalizers import AlertNormalizer, default_normalizers
from catchpoint_bridge.router import IngestionRouter
from catchpoint_bridge.settings import BridgeSettings, EmitterSettings
from catchpoint_bridge.store import StateStore


logger = structlog.get_logger(__name__)

_ANY_METHOD = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _client_address(req: Request) -> str:
    if req.client is None:
        return ""
    return f"{req.client.host}:{req.client.port}"


def _error_response(status: HTTPStatus) -> PlainTextResponse:
    # Reason phrase only, never internals.
    return PlainTextResponse(status.phrase, status_code=int(status))


def _silent_drop() -> Response:
    return Response(status_code=200)


def _build_emitter(store: StateStore, cfg: EmitterSettings) -> SnapshotEmitter:
    if not cfg.template:
        return SnapshotEmitter(store)
    try:
        template = load_template(cfg.template)
    except jinja2.TemplateError as exc:
        raise ConfigurationError(f"Unable to load emitter template {cfg.template}: {exc}") from exc
    return SnapshotEmitter(store, template=template)


def create_app(
    settings: BridgeSettings | None = None,
    *,
    store: StateStore | None = None,
    forwarder: Optional[Forwarder] = None,
    normalizers: Mapping[str, AlertNormalizer] | None = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    settings = settings or BridgeSettings()
    store = store if store is not None else StateStore()
    if forwarder is None:
        forwarder = build_forwarder(settings.nsca)

    access = AccessFilter(settings.authorized_ips)
    router = IngestionRouter(
        settings.endpoints,
        store,
        normalizers if normalizers is not None else default_normalizers(),
        forwarder=forwarder,
        clock=clock,
    )

    app = FastAPI(title="Catchpoint Bridge", version=__version__)
    app.state.settings = settings
    app.state.store = store
    app.state.access = access
    app.state.router = router

    if access.enabled:
        logger.info("IP filtering enabled", authorized_ips=list(access.allowed))
    else:
        logger.info("IP filtering disabled, serving every client")
    for endpoint in router.unsupported_endpoints():
        logger.warning("Endpoint declares an unsupported plugin", path=endpoint.uri_path, plugin=endpoint.plugin_name)

    def _make_snapshot_handler(emitter: SnapshotEmitter) -> Callable[[Request], Any]:
        async def snapshot(req: Request) -> Response:
            client = _client_address(req)
            if not access.allows(client):
                return _silent_drop()
            if req.method != "GET":
                logger.info("Rejected non-GET snapshot request", client=client, path=req.url.path, method=req.method)
                return _error_response(HTTPStatus.BAD_REQUEST)
            document = await asyncio.to_thread(emitter.render)
            return Response(content=document, media_type="application/json")

        return snapshot

    for cfg in settings.emitter:
        app.add_api_route(
            cfg.uri_path,
            _make_snapshot_handler(_build_emitter(store, cfg)),
            methods=_ANY_METHOD,
            include_in_schema=False,
        )

    @app.api_route("/{full_path:path}", methods=_ANY_METHOD, include_in_schema=False)
    async def ingest(req: Request, full_path: str) -> Response:
        client = _client_address(req)
        path = req.url.path
        logger.info("Receiving a new query", client=client, path=path, method=req.method)

        if not access.allows(client):
            return _silent_drop()

        body = await req.body()
        if body and settings.dump_requests_dir:
            await asyncio.to_thread(dump_request_body, settings.dump_requests_dir, body)

        endpoint = router.match(path)
        if endpoint is None:
            logger.info("No endpoint configured for path", client=client, path=path)
            return _silent_drop()
        if req.method != "POST":
            logger.info("Rejected non-POST write request", client=client, path=path, method=req.method)
            return _error_response(HTTPStatus.BAD_REQUEST)

        try:
            await asyncio.to_thread(router.ingest, endpoint, body, client=client)
        except AdmissionError:
            return _error_response(HTTPStatus.BAD_REQUEST)
        except RoutingError as exc:
            logger.error("Request aborted", client=client, path=path, plugin=endpoint.plugin_name, error=str(exc))
            return _error_response(HTTPStatus.INTERNAL_SERVER_ERROR)
        except NormalizationError as exc:
            logger.error("Unable to normalize alert", client=client, path=path, plugin=endpoint.plugin_name, error=str(exc))
            return _error_response(HTTPStatus.INTERNAL_SERVER_ERROR)
        return Response(status_code=200)

    return app
