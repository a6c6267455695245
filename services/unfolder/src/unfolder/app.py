from __future__ import annotations

import httpx
from fastapi import FastAPI, Request, Response

from core_config import Settings, get_settings
from core_http.client import close_http_client, get_http_client
from core_http.headers import TRANSACTION_ID_HEADER
from core_logging import current_request_id, get_logger, log_once_process, log_stage
from core_utils.fastapi_bootstrap import setup_service
from core_utils.health import attach_health_routes, attach_status_routes
from core_utils.ids import generate_transaction_id
from . import __version__
from .content import ContentExpander
from .health import CHECK_DETAILS, build_checks, build_info, service_info
from .producer import NotificationProducer
from .queue import EventPublisher
from .relations import RelationsGateway
from .unfolder import Unfolder, UnfolderConfig
from .writer import WriteGateway

SERVICE = "unfolder"

logger = get_logger(SERVICE)


def build_unfolder(settings: Settings, *, client: httpx.AsyncClient | None = None) -> tuple[Unfolder, EventPublisher]:
    publisher = EventPublisher(
        settings.kafka_addr,
        settings.write_topic,
        hostname=settings.kafka_hostname,
        authorization=settings.kafka_auth,
        client=client,
    )
    unfolder = Unfolder(
        UnfolderConfig.of(settings.unfolding_whitelist),
        relations=RelationsGateway(settings.relations_resolver_uri, client=client),
        writer=WriteGateway(settings.writer_uri, client=client),
        content=ContentExpander(settings.content_resolver_uri, client=client),
        producer=NotificationProducer(publisher, content_uri_base=settings.content_uri_base),
    )
    return unfolder, publisher


def create_app(settings: Settings | None = None, *, client: httpx.AsyncClient | None = None) -> FastAPI:
    """
    Build the service. When *client* is omitted the process-wide shared
    client is used and closed on shutdown; a caller-supplied client stays
    owned by the caller.
    """
    settings = settings or get_settings()
    logger.setLevel(settings.service_log_level.upper())
    owns_client = client is None
    http_client = client or get_http_client()

    app = FastAPI(title=settings.app_name, version=__version__)
    setup_service(app, SERVICE)

    unfolder, publisher = build_unfolder(settings, client=http_client)
    app.state.settings = settings
    app.state.unfolder = unfolder
    attach_health_routes(
        app,
        checks=build_checks(settings, publisher, client=http_client),
        service=service_info(settings),
        details=CHECK_DETAILS,
    )
    attach_status_routes(app, build_info=build_info(settings))

    @app.put("/content-collection/{collection_type}/{uuid}")
    async def put_collection(collection_type: str, uuid: str, request: Request) -> Response:
        tid = (
            getattr(request.state, "transaction_id", None)
            or current_request_id()
            or request.headers.get(TRANSACTION_ID_HEADER)
            or generate_transaction_id()
        )
        body = await request.body()
        result = await app.state.unfolder.handle(uuid, collection_type, body, tid)
        return Response(
            content=result.body,
            status_code=result.status,
            media_type=result.content_type,
            headers={TRANSACTION_ID_HEADER: tid},
        )

    @app.on_event("startup")
    async def _log_config() -> None:  # pragma: no cover - startup hook
        log_once_process(logger, f"{SERVICE}.config", event="service_config",
                         request_id="startup", config=settings.to_map())

    @app.on_event("shutdown")
    async def _close_client() -> None:
        if owns_client:
            await close_http_client()
        log_stage(logger, "lifecycle", "shutdown", request_id="shutdown", closed_client=owns_client)

    return app


app = create_app()

__all__ = ["app", "create_app", "build_unfolder", "SERVICE"]
