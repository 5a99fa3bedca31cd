"""Meta token introspection via the Graph API debug_token endpoint"""
import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from socialink.core.config import ProviderConfig, settings
from socialink.core.errors import OAuthError, OAuthErrorKind
from socialink.schemas.oauth import TokenIntrospection
from socialink.services.oauth.graph_errors import read_graph_error
from socialink.services.oauth.transport import read_json, send_request

logger = logging.getLogger(__name__)


async def fetch_token_info(
    client: httpx.AsyncClient,
    config: ProviderConfig,
    access_token: str,
    graph_url: Optional[str] = None,
) -> TokenIntrospection:
    """The debug_token data for a user token, whether or not it is valid.

    Raises:
        OAuthError: InvalidToken when debug_token fails or returns no data
    """
    provider = config.provider
    response = await send_request(
        client,
        "GET",
        f"{graph_url or settings.graph_api_url}/debug_token",
        provider,
        params={
            "input_token": access_token,
            "access_token": f"{config.client_id}|{config.client_secret}",
        },
    )
    if response.is_error:
        message = read_graph_error(response, f"Failed to validate {provider.display_name} access token.")
        logger.warning(f"{provider.display_name} debug_token failed ({response.status_code}): {message}")
        raise OAuthError(OAuthErrorKind.INVALID_TOKEN, message, provider)

    data = read_json(response, provider).get("data")
    if not isinstance(data, dict):
        raise OAuthError(OAuthErrorKind.INVALID_TOKEN, f"Invalid {provider.display_name} access token.", provider)
    try:
        return TokenIntrospection.model_validate({
            **data,
            "app_id": str(data["app_id"]) if data.get("app_id") is not None else None,
            "user_id": str(data["user_id"]) if data.get("user_id") is not None else None,
        })
    except ValidationError as e:
        raise OAuthError(OAuthErrorKind.PARSE_ERROR, f"JSON parse error: {e}", provider)


async def introspect_token(
    client: httpx.AsyncClient,
    config: ProviderConfig,
    access_token: str,
    graph_url: Optional[str] = None,
) -> TokenIntrospection:
    """Check that a user token is live and was issued to our app.

    Raises:
        OAuthError: InvalidToken when debug_token fails or reports the token
            invalid, AppMismatch when it belongs to another app
    """
    provider = config.provider
    introspection = await fetch_token_info(client, config, access_token, graph_url)
    if not introspection.is_valid:
        raise OAuthError(OAuthErrorKind.INVALID_TOKEN, f"Invalid {provider.display_name} access token.", provider)
    if introspection.app_id and introspection.app_id != config.client_id:
        logger.warning(f"{provider.display_name} token issued to app {introspection.app_id}, expected {config.client_id}")
        raise OAuthError(
            OAuthErrorKind.APP_MISMATCH,
            f"{provider.display_name} token does not belong to this app.",
            provider,
        )
    return introspection
