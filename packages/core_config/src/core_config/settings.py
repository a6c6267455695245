from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Any, Dict


class Settings(BaseSettings):
    # Frozen: configuration is read once at startup and shared read-only.
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True, populate_by_name=True)

    # Service identity
    app_system_code: str = Field(default="content-collection-unfolder", alias="APP_SYSTEM_CODE")
    app_name: str = Field(default="Content Collection Unfolder", alias="APP_NAME")
    app_description: str = Field(
        default=(
            "Forwards content collections to the content-collection writer and, when it answers 200, "
            "places notifications for the collection members on the post-publication topic."
        ),
        alias="APP_DESCRIPTION",
    )
    app_port: int = Field(default=8080, alias="APP_PORT")
    service_log_level: str = Field(default="INFO", alias="SERVICE_LOG_LEVEL")

    # Build metadata served on /__build-info; injected by the image build.
    build_repository: str = Field(default="", alias="BUILD_REPOSITORY")
    build_revision: str = Field(default="", alias="BUILD_REVISION")
    build_builder: str = Field(default="", alias="BUILD_BUILDER")
    build_datetime: str = Field(default="", alias="BUILD_DATETIME")

    # Collection types whose updates are unfolded into notifications.
    # Accepts a comma string via env.
    unfolding_whitelist_raw: str = Field(default="content-package", alias="UNFOLDING_WHITELIST")
    @property
    def unfolding_whitelist(self) -> frozenset[str]:  # noqa: D401
        """Allow-listed collection types."""
        return frozenset(x.strip() for x in (self.unfolding_whitelist_raw or "").split(",") if x.strip())

    # Content collection writer
    writer_uri: str = Field(
        default="http://localhost:8080/__content-collection-rw-neo4j/content-collection/",
        alias="WRITER_URI",
    )
    writer_health_uri: str = Field(
        default="http://localhost:8080/__content-collection-rw-neo4j/__health",
        alias="WRITER_HEALTH_URI",
    )

    # Document store (content expansion)
    content_resolver_uri: str = Field(
        default="http://localhost:8080/__document-store-api/content",
        alias="CONTENT_RESOLVER_URI",
    )
    content_resolver_health_uri: str = Field(
        default="http://localhost:8080/__document-store-api/__health",
        alias="CONTENT_RESOLVER_HEALTH_URI",
    )

    # Relations API; `{uuid}` is replaced with the collection uuid
    relations_resolver_uri: str = Field(
        default="http://localhost:8080/__relations-api/contentcollection/{uuid}/relations",
        alias="RELATIONS_RESOLVER_URI",
    )
    relations_resolver_health_uri: str = Field(
        default="http://localhost:8080/__relations-api/__health",
        alias="RELATIONS_RESOLVER_HEALTH_URI",
    )

    # Kafka REST proxy
    write_topic: str = Field(default="PostPublicationEvents", alias="Q_WRITE_TOPIC")
    kafka_addr: str = Field(default="http://localhost:8080", alias="Q_ADDR")
    kafka_hostname: str = Field(default="kafka", alias="Q_HOSTNAME")
    kafka_auth: str = Field(default="", alias="Q_AUTHORIZATION")

    # Prefix for the `contentUri` of outbound notifications
    content_uri_base: str = Field(
        default="http://content-collection-unfolder.svc.ft.com/content/",
        alias="CONTENT_URI_BASE",
    )

    def to_map(self) -> Dict[str, Any]:
        """Startup-log view of the configuration (credentials redacted)."""
        out = self.model_dump(by_alias=False)
        out.pop("unfolding_whitelist_raw", None)
        out["unfolding_whitelist"] = sorted(self.unfolding_whitelist)
        if out.get("kafka_auth"):
            out["kafka_auth"] = "***"
        return out

def get_settings() -> "Settings":
    return Settings()  # type: ignore
