from __future__ import annotations

from typing import Dict, Tuple

import httpx

from core_config import Settings
from core_http.client import send
from core_utils.health import CheckInfo, HealthCheck, ServiceInfo
from . import __version__
from .queue import EventPublisher

_NO_NOTIFICATIONS = "No notifications will be created for the content in unfolded collections"

CHECK_DETAILS: Dict[str, CheckInfo] = {
    "content-collection-writer": CheckInfo(
        name="Content collection writer health check",
        business_impact="Content relationships to packages will not be written / updated",
        technical_summary="Checks if the service responsible for writing content collections is healthy",
        panic_guide="https://runbooks.in.ft.com/upp-content-collection-rw-neo4j",
    ),
    "document-store-api": CheckInfo(
        name="Document store API health check",
        business_impact=_NO_NOTIFICATIONS,
        technical_summary="Checks if the service responsible for saving and retrieving content is healthy",
        panic_guide="https://runbooks.in.ft.com/document-store-api",
    ),
    "relations-api": CheckInfo(
        name="Relations API health check",
        business_impact=_NO_NOTIFICATIONS,
        technical_summary="Checks if the service responsible for collection relations is healthy",
        panic_guide="https://runbooks.in.ft.com/upp-relations-api",
    ),
    "kafka-proxy": CheckInfo(
        name="Message producer health check",
        business_impact=_NO_NOTIFICATIONS,
        technical_summary="Checks if Kafka can be accessed through http proxy",
        panic_guide="https://runbooks.in.ft.com/kafka-proxy",
    ),
}


def http_availability_check(url: str, *, client: httpx.AsyncClient | None = None) -> HealthCheck:
    """Dependency is healthy when ``GET url`` answers 200."""

    async def _check() -> Tuple[bool, str]:
        try:
            resp = await send("GET", url, stage="health", client=client)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            return False, f"Error contacting the service: {exc.__class__.__name__}: {exc}"
        if resp.status_code != 200:
            return False, f"Service did not respond with OK. Status was {resp.status_code}"
        return True, "OK"

    return _check


def build_checks(
    settings: Settings,
    publisher: EventPublisher,
    *,
    client: httpx.AsyncClient | None = None,
) -> Dict[str, HealthCheck]:
    return {
        "content-collection-writer": http_availability_check(settings.writer_health_uri, client=client),
        "document-store-api": http_availability_check(settings.content_resolver_health_uri, client=client),
        "relations-api": http_availability_check(settings.relations_resolver_health_uri, client=client),
        "kafka-proxy": publisher.connectivity_check,
    }


def service_info(settings: Settings) -> ServiceInfo:
    return ServiceInfo(
        system_code=settings.app_system_code,
        name=settings.app_name,
        description=settings.app_description,
    )


def build_info(settings: Settings) -> Dict[str, str]:
    return {
        "version": __version__,
        "repository": settings.build_repository,
        "revision": settings.build_revision,
        "builder": settings.build_builder,
        "dateTime": settings.build_datetime,
    }


__all__ = ["CHECK_DETAILS", "build_checks", "build_info", "http_availability_check", "service_info"]
