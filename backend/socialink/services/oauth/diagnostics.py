"""Instagram connection diagnostics

Runs the first part of the Instagram connect flow for a fresh authorization
code and reports what it sees: the debug_token data, which required
permissions are missing, and the user's Facebook Pages with their linked
Instagram accounts. Token and page lookup failures are reported in the result
instead of raised. Nothing is persisted and no page token is returned.
"""
import logging
from typing import Any, Dict

from socialink.core.errors import OAuthError
from socialink.schemas.oauth import DiagnosticPage, DiagnosticPages, InstagramDiagnostics
from socialink.services.oauth.instagram_resolver import BusinessAccountResolver, reference_id
from socialink.services.oauth.introspection import fetch_token_info
from socialink.services.oauth.providers.instagram import InstagramFlow
from socialink.services.oauth.scopes import missing_permissions

instagram_logger = logging.getLogger("instagram")


def describe_page(page: Dict[str, Any]) -> DiagnosticPage:
    tasks = page.get("tasks") if isinstance(page.get("tasks"), list) else []
    return DiagnosticPage(
        id=str(page["id"]) if page.get("id") else None,
        name=page.get("name"),
        tasks=[str(task) for task in tasks],
        has_access_token=bool(page.get("access_token")),
        instagram_business_account_id=reference_id(page.get("instagram_business_account")),
        connected_instagram_account_id=reference_id(page.get("connected_instagram_account")),
    )


async def diagnose_instagram(flow: InstagramFlow, code: str) -> InstagramDiagnostics:
    """Exchange ``code`` and inspect the resulting token.

    Raises:
        OAuthError: whatever the code exchange raises (InvalidCode, NetworkError, ...)
    """
    token = await flow.exchange(code)
    result = InstagramDiagnostics()

    try:
        result.token = await fetch_token_info(flow.client, flow.config, token.access_token, flow.settings.graph_api_url)
    except OAuthError as e:
        result.token_error = e.message
    if result.token is not None:
        result.missing_permissions = missing_permissions(result.token.scopes, result.token.granular_scopes)

    resolver = BusinessAccountResolver(flow.client, flow.settings.graph_api_url)
    try:
        pages = [describe_page(page) for page in await resolver.fetch_pages(token.access_token)]
        result.pages = DiagnosticPages(count=len(pages), pages=pages)
    except OAuthError as e:
        result.pages = DiagnosticPages(error=e.message)

    instagram_logger.info(
        f"Instagram diagnostics: token_valid={result.token.is_valid if result.token else None} "
        f"missing={result.missing_permissions} pages={result.pages.count}"
    )
    return result
