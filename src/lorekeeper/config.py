"""Configuration via environment variables with Pydantic Settings."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Lorekeeper configuration loaded from environment variables."""

    model_config = {"env_prefix": "LOREKEEPER_"}

    # Server
    host: str = "0.0.0.0"
    port: int = 8100
    log_level: str = "info"
    runtime_mode: Literal["mcp", "rest", "combined"] = "combined"
    mcp_transport: Literal["streamable-http", "stdio"] = "streamable-http"

    # Authentication (empty = no auth, for local dev)
    api_key: str = ""

    # Base URL for OAuth metadata endpoints
    base_url: str = ""

    # OAuth 2.1 pre-registered client (empty = dynamic registration allowed)
    oauth_client_id: str = ""
    oauth_client_secret: str = ""
    # Comma-separated OAuth redirect URIs for pre-registered client mode
    oauth_redirect_uris: str = ""

    # Graph / thread service (empty key = plain chat, no context, no persistence)
    zep_api_key: str = ""
    zep_base_url: str = "https://api.getzep.com/api/v2"
    zep_timeout: float = 30.0
    default_user_id: str = "demo-user"
    default_graph_id: str = ""

    # Retrieval
    search_limit: int = 20
    min_fact_rating: float | None = None
    context_mode: Literal["basic", "summary"] = "basic"
    context_template_id: str = ""

    # Document ingestion
    chunk_size: int = 8000
    ingest_batch_size: int = 20

    # Chat model (empty key = chat endpoints unavailable)
    llm_api_key: str = ""
    llm_model: str = "claude-sonnet-4-20250514"
    llm_max_tokens: int = 4096
    llm_temperature: float = 0.7

    @property
    def graph_enabled(self) -> bool:
        """True when the graph service credential is configured."""
        return bool(self.zep_api_key)

    @property
    def model_enabled(self) -> bool:
        return bool(self.llm_api_key)

    @property
    def oauth_redirect_uri_list(self) -> list[str]:
        """Parsed list of pre-registered OAuth redirect URIs."""
        return [uri.strip() for uri in self.oauth_redirect_uris.split(",") if uri.strip()]


# Singleton
settings = Settings()
