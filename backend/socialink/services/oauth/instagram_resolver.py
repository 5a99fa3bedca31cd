"""Instagram business/creator account discovery

A Facebook login only gives us a user token. The Instagram account hangs off
one of the user's Facebook Pages, so we walk:

    pages -> page access token -> linked Instagram account -> Instagram profile

Pages are tried one at a time in listing order and the first page that
yields a full profile wins. A Graph error on any hop only skips that page; if
no page resolves, the most recent hop error is reported.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from socialink.core.config import settings
from socialink.core.errors import OAuthError, OAuthErrorKind
from socialink.core.providers import SocialProvider
from socialink.schemas.oauth import GranularScope, ResolvedProfile
from socialink.services.oauth.graph_errors import read_graph_error
from socialink.services.oauth.scopes import format_missing_permissions, missing_permissions
from socialink.services.oauth.transport import read_json, send_request

instagram_logger = logging.getLogger("instagram")

PAGE_FIELDS = "id,name,access_token,tasks,instagram_business_account,connected_instagram_account"
PAGE_ACCOUNT_FIELDS = "instagram_business_account,connected_instagram_account"
PROFILE_FIELDS = "id,username"


def reference_id(value: Any) -> Optional[str]:
    if isinstance(value, dict) and value.get("id"):
        return str(value["id"])
    return None


def _linked_account(payload: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """(account id, account type) from a page object, business account first"""
    business_id = reference_id(payload.get("instagram_business_account"))
    if business_id:
        return business_id, "business"
    creator_id = reference_id(payload.get("connected_instagram_account"))
    if creator_id:
        return creator_id, "creator"
    return None, None


class BusinessAccountResolver:
    """Finds the Instagram account reachable from a Facebook user token"""

    provider = SocialProvider.INSTAGRAM

    def __init__(self, client: httpx.AsyncClient, graph_url: Optional[str] = None):
        self.client = client
        self.graph_url = graph_url or settings.graph_api_url

    async def _graph_get(self, path: str, params: Dict[str, str]) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """One Graph hop: (payload, None) on success, (None, message) on a Graph error"""
        response = await send_request(self.client, "GET", f"{self.graph_url}/{path}", self.provider, params=params)
        if response.is_error:
            return None, read_graph_error(response)
        return read_json(response, self.provider), None

    async def fetch_pages(self, user_token: str) -> List[Dict[str, Any]]:
        payload, error = await self._graph_get("me/accounts", {"fields": PAGE_FIELDS, "access_token": user_token})
        if error:
            instagram_logger.warning(f"Failed to list Facebook Pages: {error}")
            raise OAuthError(OAuthErrorKind.GRAPH_API_ERROR, error, self.provider)
        pages = payload.get("data") or []
        return [page for page in pages if isinstance(page, dict)]

    async def resolve_page(self, page: Dict[str, Any], user_token: str) -> Tuple[Optional[ResolvedProfile], Optional[str]]:
        """Try to resolve one page. Returns (profile, None) or (None, last hop error or None)"""
        page_id = str(page.get("id") or "").strip()
        if not page_id:
            return None, None
        page_name = page.get("name")

        page_token = page.get("access_token")
        if not page_token:
            payload, error = await self._graph_get(page_id, {"fields": "access_token", "access_token": user_token})
            if error:
                instagram_logger.info(f"Page {page_id}: could not fetch page access token: {error}")
                return None, error
            page_token = payload.get("access_token")
        if not page_token:
            instagram_logger.info(f"Page {page_id}: no page access token available, skipping")
            return None, None

        account_id, account_type = _linked_account(page)
        if not account_id:
            payload, error = await self._graph_get(page_id, {"fields": PAGE_ACCOUNT_FIELDS, "access_token": page_token})
            if error:
                instagram_logger.info(f"Page {page_id}: could not read linked Instagram account: {error}")
                return None, error
            account_id, account_type = _linked_account(payload)
        if not account_id:
            instagram_logger.info(f"Page {page_id}: no Instagram account linked")
            return None, None

        profile, error = await self._graph_get(account_id, {"fields": PROFILE_FIELDS, "access_token": page_token})
        if error:
            instagram_logger.info(f"Page {page_id}: could not fetch Instagram profile {account_id}: {error}")
            return None, error
        if not profile.get("id"):
            return None, None

        return ResolvedProfile(
            account_id=str(profile["id"]),
            username=profile.get("username"),
            page_id=page_id,
            page_name=page_name,
            page_access_token=page_token,
            account_type=account_type,
        ), None

    async def resolve(
        self,
        user_token: str,
        granted_scopes: Optional[List[str]] = None,
        granular_scopes: Optional[List[GranularScope]] = None,
    ) -> ResolvedProfile:
        """Resolve the Instagram account behind ``user_token``.

        Raises:
            OAuthError: MissingPermissions or NoPages when the user has no pages,
                GraphApiError with the last hop error, or NoBusinessAccount
        """
        pages = await self.fetch_pages(user_token)
        if not pages:
            missing = missing_permissions(granted_scopes or [], granular_scopes or [])
            if missing:
                raise OAuthError(OAuthErrorKind.MISSING_PERMISSIONS, format_missing_permissions(missing), self.provider)
            raise OAuthError(
                OAuthErrorKind.NO_PAGES,
                "No Facebook Pages were returned for this Facebook user.",
                self.provider,
            )

        instagram_logger.info(f"Trying {len(pages)} Facebook Page(s) for an Instagram account")
        last_error: Optional[str] = None
        for page in pages:
            profile, error = await self.resolve_page(page, user_token)
            if profile:
                instagram_logger.info(
                    f"Resolved Instagram {profile.account_type} account {profile.account_id} via page {profile.page_id}"
                )
                return profile
            if error:
                last_error = error

        if last_error:
            raise OAuthError(OAuthErrorKind.GRAPH_API_ERROR, last_error, self.provider)
        raise OAuthError(
            OAuthErrorKind.NO_BUSINESS_ACCOUNT,
            "No Instagram business or creator account found for this Facebook user.",
            self.provider,
        )
