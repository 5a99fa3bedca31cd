"""TikTok connect flow (Login Kit v2 with PKCE)"""
from typing import Any, Dict, Optional

from socialink.core.errors import OAuthError, OAuthErrorKind
from socialink.core.providers import SocialProvider
from socialink.models.user import User
from socialink.schemas.connections import TikTokMetadata
from socialink.schemas.oauth import TokenExchangeResult, TokenIntrospection
from socialink.services.oauth.providers.base import ProviderFlow, expires_at_from, parse_int
from socialink.services.oauth.transport import read_json, send_request

USER_INFO_FIELDS = "open_id,union_id,display_name,avatar_url,bio_description,follower_count,following_count"


class TikTokFlow(ProviderFlow):
    provider = SocialProvider.TIKTOK
    uses_pkce = True
    supports_refresh = True

    @property
    def authorization_base_url(self) -> str:
        return self.settings.TIKTOK_AUTH_URL

    def authorization_params(self, state: str, scopes: str, code_challenge: Optional[str] = None) -> Dict[str, str]:
        params = {
            "client_key": self.config.client_id,
            "scope": scopes,
            "response_type": "code",
            "redirect_uri": self.config.redirect_uri,
            "state": state,
        }
        if code_challenge:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = "S256"
        return params

    async def _token_request(self, form: Dict[str, str], kind: OAuthErrorKind, failure: str) -> TokenExchangeResult:
        response = await send_request(
            self.client,
            "POST",
            self.settings.TIKTOK_TOKEN_URL,
            self.provider,
            data={
                "client_key": self.config.client_id,
                "client_secret": self.config.client_secret,
                **form,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded", "Cache-Control": "no-cache"},
        )
        try:
            payload = read_json(response, self.provider)
        except OAuthError:
            if not response.is_error:
                raise
            payload = {}

        # TikTok reports some token errors with a 200 status
        if response.is_error or payload.get("error") or not payload.get("access_token"):
            message = payload.get("error_description") or payload.get("error") or failure
            self.log.error(f"Token request failed ({response.status_code}): {message}")
            raise OAuthError(kind, message, self.provider)

        if not payload.get("refresh_token"):
            self.log.warning(f"TikTok token response has no refresh_token. Keys: {list(payload.keys())}")

        return TokenExchangeResult(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_in=parse_int(payload.get("expires_in")),
            refresh_expires_in=parse_int(payload.get("refresh_expires_in")),
            token_type=payload.get("token_type"),
            scope=payload.get("scope"),
            account_id=payload.get("open_id"),
        )

    async def exchange(self, code: str, code_verifier: Optional[str] = None) -> TokenExchangeResult:
        form = {
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.config.redirect_uri,
        }
        if code_verifier:
            form["code_verifier"] = code_verifier
        token = await self._token_request(
            form, OAuthErrorKind.INVALID_CODE, "Failed to exchange TikTok code for access token."
        )
        self.log.info(f"Token exchange successful - Open ID: {token.account_id or 'N/A'}")
        return token

    async def refresh(self, existing_token: str) -> TokenExchangeResult:
        token = await self._token_request(
            {"grant_type": "refresh_token", "refresh_token": existing_token},
            OAuthErrorKind.INVALID_TOKEN,
            "Failed to refresh TikTok access token.",
        )
        self.log.info(f"Token refresh successful - Open ID: {token.account_id or 'N/A'}")
        return token

    async def fetch_user_info(self, access_token: str) -> Dict[str, Any]:
        """Basic profile for display purposes. Failures are logged and yield {}"""
        try:
            response = await send_request(
                self.client,
                "GET",
                f"{self.settings.TIKTOK_API_BASE}/user/info/",
                self.provider,
                params={"fields": USER_INFO_FIELDS},
                headers={"Authorization": f"Bearer {access_token}"},
            )
            if response.is_error:
                self.log.warning(f"Failed to fetch TikTok profile: {response.status_code}")
                return {}
            payload = read_json(response, self.provider)
        except OAuthError as e:
            self.log.warning(f"Failed to fetch TikTok profile: {e.message}")
            return {}

        error = payload.get("error") or {}
        if isinstance(error, dict) and error.get("code") not in (None, "ok"):
            self.log.warning(f"TikTok profile error: {error.get('message') or 'Unknown error'}")
            return {}
        user_info = (payload.get("data") or {}).get("user") or {}
        return user_info if isinstance(user_info, dict) else {}

    async def resolve_profile(
        self,
        token: TokenExchangeResult,
        introspection: Optional[TokenIntrospection],
        user: User,
    ) -> TikTokMetadata:
        user_info = await self.fetch_user_info(token.access_token)
        return TikTokMetadata(
            open_id=token.account_id or user_info.get("open_id"),
            union_id=user_info.get("union_id"),
            display_name=user_info.get("display_name"),
            avatar_url=user_info.get("avatar_url"),
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            expires_at=expires_at_from(token.expires_in),
            refresh_expires_at=expires_at_from(token.refresh_expires_in),
            scope=token.scope,
            token_type=token.token_type,
        )

    def refresh_credential(self, current: TikTokMetadata) -> Optional[str]:
        return current.refresh_token

    def metadata_from_refresh(self, current: TikTokMetadata, token: TokenExchangeResult) -> TikTokMetadata:
        # Always take the new refresh token; TikTok may rotate it
        return current.model_copy(update={
            "open_id": token.account_id or current.open_id,
            "access_token": token.access_token,
            "refresh_token": token.refresh_token or current.refresh_token,
            "expires_at": expires_at_from(token.expires_in),
            "refresh_expires_at": expires_at_from(token.refresh_expires_in) or current.refresh_expires_at,
            "scope": token.scope or current.scope,
            "token_type": token.token_type or current.token_type,
        })
