"""Outbound request helpers shared by every provider flow

Transport failures become ``NetworkError`` and undecodable bodies become
``ParseError`` so that nothing from httpx leaks past a provider flow.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from socialink.core.config import settings
from socialink.core.errors import OAuthError, OAuthErrorKind
from socialink.core.providers import SocialProvider

logger = logging.getLogger(__name__)


async def send_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    provider: SocialProvider,
    params: Optional[Dict[str, Any]] = None,
    data: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> httpx.Response:
    """Send one hop; query and form values are percent-encoded by httpx"""
    try:
        return await client.request(
            method,
            url,
            params=params,
            data=data,
            headers=headers,
            timeout=timeout if timeout is not None else settings.OAUTH_HTTP_TIMEOUT,
        )
    except httpx.RequestError as e:
        logger.warning(f"{provider.display_name} request to {url} failed: {e!r}")
        raise OAuthError(OAuthErrorKind.NETWORK_ERROR, f"Network error: {e}", provider)


def read_json(response: httpx.Response, provider: SocialProvider) -> Dict[str, Any]:
    """Decode a JSON object body"""
    try:
        payload = response.json()
    except ValueError as e:
        raise OAuthError(OAuthErrorKind.PARSE_ERROR, f"JSON parse error: {e}", provider)
    if not isinstance(payload, dict):
        raise OAuthError(
            OAuthErrorKind.PARSE_ERROR,
            f"JSON parse error: expected an object, got {type(payload).__name__}",
            provider,
        )
    return payload
