"""Threads connect flow"""
from typing import Any, Dict, Optional

import httpx

from socialink.core.errors import OAuthError, OAuthErrorKind
from socialink.core.providers import SocialProvider
from socialink.models.user import User
from socialink.schemas.connections import ThreadsMetadata
from socialink.schemas.oauth import TokenExchangeResult, TokenIntrospection
from socialink.services.oauth.graph_errors import read_graph_error
from socialink.services.oauth.providers.base import ProviderFlow, expires_at_from, parse_int
from socialink.services.oauth.transport import read_json, send_request

PROFILE_FIELDS = "id,username,name,threads_profile_picture_url,threads_biography"


class ThreadsFlow(ProviderFlow):
    provider = SocialProvider.THREADS
    supports_refresh = True

    @property
    def authorization_base_url(self) -> str:
        return self.settings.THREADS_AUTH_URL

    @property
    def graph_base(self) -> str:
        return self.settings.THREADS_GRAPH_BASE.rstrip("/")

    def _token_result(
        self, response: httpx.Response, kind: OAuthErrorKind, user_id: Optional[str] = None
    ) -> TokenExchangeResult:
        if response.is_error:
            message = read_graph_error(response, "Unknown Threads error")
            self.log.error(f"Token request failed ({response.status_code}): {message}")
            raise OAuthError(kind, message, self.provider)
        payload = read_json(response, self.provider)
        if not payload.get("access_token"):
            raise OAuthError(kind, "Failed to parse Threads token response", self.provider)
        account_id = payload.get("user_id") or user_id
        return TokenExchangeResult(
            access_token=payload["access_token"],
            expires_in=parse_int(payload.get("expires_in")),
            token_type=payload.get("token_type"),
            account_id=str(account_id) if account_id is not None else None,
        )

    async def exchange(self, code: str, code_verifier: Optional[str] = None) -> TokenExchangeResult:
        # Step 1: authorization code -> short-lived token
        response = await send_request(
            self.client,
            "POST",
            f"{self.graph_base}/oauth/access_token",
            self.provider,
            data={
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.config.redirect_uri,
            },
        )
        short_lived = self._token_result(response, OAuthErrorKind.INVALID_CODE)

        # Step 2: short-lived -> long-lived token
        response = await send_request(
            self.client,
            "GET",
            f"{self.graph_base}/access_token",
            self.provider,
            params={
                "grant_type": "th_exchange_token",
                "client_secret": self.config.client_secret,
                "access_token": short_lived.access_token,
            },
        )
        token = self._token_result(response, OAuthErrorKind.INVALID_CODE, short_lived.account_id)
        self.log.info(f"Token exchange successful for Threads user {token.account_id} (expires in {token.expires_in}s)")
        return token

    async def refresh(self, existing_token: str) -> TokenExchangeResult:
        response = await send_request(
            self.client,
            "GET",
            f"{self.graph_base}/refresh_access_token",
            self.provider,
            params={"grant_type": "th_refresh_token", "access_token": existing_token},
        )
        token = self._token_result(response, OAuthErrorKind.INVALID_TOKEN)
        self.log.info(f"Token refresh successful (expires in {token.expires_in}s)")
        return token

    async def fetch_profile(self, access_token: str) -> Dict[str, Any]:
        """Threads profile for display purposes. Failures are logged and yield {}"""
        try:
            response = await send_request(
                self.client,
                "GET",
                f"{self.graph_base}/me",
                self.provider,
                params={"fields": PROFILE_FIELDS, "access_token": access_token},
            )
            if response.is_error:
                self.log.warning(f"Failed to fetch Threads profile: {read_graph_error(response)}")
                return {}
            return read_json(response, self.provider)
        except OAuthError as e:
            self.log.warning(f"Failed to fetch Threads profile: {e.message}")
            return {}

    async def resolve_profile(
        self,
        token: TokenExchangeResult,
        introspection: Optional[TokenIntrospection],
        user: User,
    ) -> ThreadsMetadata:
        profile = await self.fetch_profile(token.access_token)
        user_id = token.account_id or profile.get("id")
        return ThreadsMetadata(
            user_id=str(user_id) if user_id is not None else None,
            access_token=token.access_token,
            expires_at=expires_at_from(token.expires_in),
            token_type=token.token_type,
            username=profile.get("username"),
            name=profile.get("name"),
            threads_profile_picture_url=profile.get("threads_profile_picture_url"),
            threads_biography=profile.get("threads_biography"),
        )

    def refresh_credential(self, current: ThreadsMetadata) -> Optional[str]:
        # Threads refreshes with the current long-lived access token
        return current.access_token

    def metadata_from_refresh(self, current: ThreadsMetadata, token: TokenExchangeResult) -> ThreadsMetadata:
        return current.model_copy(update={
            "access_token": token.access_token,
            "expires_at": expires_at_from(token.expires_in),
            "token_type": token.token_type or current.token_type,
        })
