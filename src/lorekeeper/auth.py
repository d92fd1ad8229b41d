"""Authentication provider setup for Lorekeeper MCP server."""

from __future__ import annotations

import logging
import time

from fastmcp.server.auth import AccessToken
from fastmcp.server.auth.providers.in_memory import InMemoryOAuthProvider
from mcp.server.auth.settings import ClientRegistrationOptions
from mcp.shared.auth import OAuthClientInformationFull

from lorekeeper.config import Settings

AUTH_SCOPE = "lorekeeper"


class LorekeeperAuthProvider(InMemoryOAuthProvider):
    """OAuth 2.1 provider that also accepts a static API key."""

    def __init__(
        self,
        api_key: str,
        oauth_client_id: str = "",
        oauth_client_secret: str = "",
        oauth_redirect_uris: list[str] | None = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self._api_key = api_key

        if oauth_client_id and oauth_client_secret and oauth_redirect_uris:
            self.clients[oauth_client_id] = OAuthClientInformationFull(
                client_id=oauth_client_id,
                client_secret=oauth_client_secret,
                client_id_issued_at=int(time.time()),
                client_secret_expires_at=0,
                scope=AUTH_SCOPE,
                token_endpoint_auth_method="client_secret_post",
                grant_types=["authorization_code", "refresh_token"],
                response_types=["code"],
                redirect_uris=oauth_redirect_uris,
                client_name="lorekeeper-oauth-client",
            )

    async def verify_token(self, token: str) -> AccessToken | None:
        # Check static API key first.
        if self._api_key and token == self._api_key:
            return AccessToken(token=token, client_id="static", scopes=[AUTH_SCOPE])
        # Fall back to OAuth-issued tokens.
        return await super().verify_token(token)


def build_auth_provider(
    settings: Settings,
    logger: logging.Logger | None = None,
) -> LorekeeperAuthProvider | None:
    """Build authentication provider from runtime settings."""
    if not settings.api_key:
        return None

    redirect_uris = settings.oauth_redirect_uri_list
    pre_registered = bool(settings.oauth_client_id and settings.oauth_client_secret)
    if pre_registered and not redirect_uris:
        if logger:
            logger.warning(
                "OAuth client id/secret set without redirect URIs; "
                "using open dynamic registration instead."
            )
        pre_registered = False

    if logger:
        mode = "pre-registered client" if pre_registered else "open dynamic registration"
        logger.info("API key + OAuth 2.1 authentication enabled (%s)", mode)

    return LorekeeperAuthProvider(
        api_key=settings.api_key,
        oauth_client_id=settings.oauth_client_id if pre_registered else "",
        oauth_client_secret=settings.oauth_client_secret if pre_registered else "",
        oauth_redirect_uris=redirect_uris if pre_registered else None,
        base_url=settings.base_url.strip() or "http://localhost",
        client_registration_options=ClientRegistrationOptions(
            enabled=not pre_registered,
            valid_scopes=[AUTH_SCOPE],
            default_scopes=[AUTH_SCOPE],
        ),
    )
