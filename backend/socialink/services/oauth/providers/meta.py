"""Shared Facebook Login steps for the Meta Graph providers"""
from typing import Dict, Optional

from socialink.core.errors import OAuthError, OAuthErrorKind
from socialink.core.logging import mask_token
from socialink.schemas.oauth import TokenExchangeResult, TokenIntrospection
from socialink.services.oauth.graph_errors import parse_graph_error
from socialink.services.oauth.introspection import introspect_token
from socialink.services.oauth.providers.base import ProviderFlow, parse_int
from socialink.services.oauth.transport import read_json, send_request


class MetaGraphFlow(ProviderFlow):
    """Facebook Login dialog, code exchange and debug_token introspection"""

    @property
    def authorization_base_url(self) -> str:
        return self.settings.facebook_dialog_url

    @property
    def token_url(self) -> str:
        return f"{self.settings.graph_api_url}/oauth/access_token"

    def authorization_params(self, state: str, scopes: str, code_challenge: Optional[str] = None) -> Dict[str, str]:
        params = super().authorization_params(state, scopes, code_challenge)
        if self.config.config_id:
            # Facebook Login for Business configuration
            params["config_id"] = self.config.config_id
        return params

    async def exchange(self, code: str, code_verifier: Optional[str] = None) -> TokenExchangeResult:
        failure = f"Failed to exchange {self.provider.display_name} code for access token."
        response = await send_request(
            self.client,
            "GET",
            self.token_url,
            self.provider,
            params={
                "client_id": self.config.client_id,
                "redirect_uri": self.config.redirect_uri,
                "client_secret": self.config.client_secret,
                "code": code,
            },
        )
        if response.is_error:
            try:
                message = parse_graph_error(response.json()) or failure
            except ValueError:
                message = failure
            self.log.error(f"Code exchange failed ({response.status_code}): {message}")
            raise OAuthError(OAuthErrorKind.INVALID_CODE, message, self.provider)

        payload = read_json(response, self.provider)
        access_token = payload.get("access_token")
        if not access_token:
            raise OAuthError(OAuthErrorKind.INVALID_CODE, failure, self.provider)

        token = TokenExchangeResult(
            access_token=access_token,
            token_type=payload.get("token_type"),
            expires_in=parse_int(payload.get("expires_in")),
        )
        self.log.info(f"Code exchange successful - token {mask_token(access_token)}")
        return await self.upgrade_to_long_lived(token)

    async def upgrade_to_long_lived(self, token: TokenExchangeResult) -> TokenExchangeResult:
        """Swap a short-lived user token for a long-lived one, keeping the short one on any failure"""
        try:
            response = await send_request(
                self.client,
                "GET",
                self.token_url,
                self.provider,
                params={
                    "grant_type": "fb_exchange_token",
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                    "fb_exchange_token": token.access_token,
                },
            )
            if response.is_error:
                self.log.warning(f"Long-lived token exchange failed ({response.status_code}), proceeding with short-lived token")
                return token
            payload = read_json(response, self.provider)
        except OAuthError as e:
            self.log.warning(f"Long-lived token exchange failed: {e.message}. Proceeding with short-lived token.")
            return token

        long_lived = payload.get("access_token")
        if not long_lived:
            self.log.warning("Long-lived token exchange returned no token, proceeding with short-lived token")
            return token
        expires_in = parse_int(payload.get("expires_in"))
        self.log.info(f"Exchanged for long-lived token (expires in {expires_in}s)")
        return TokenExchangeResult(
            access_token=long_lived,
            token_type=payload.get("token_type") or token.token_type,
            expires_in=expires_in,
        )

    async def introspect(self, access_token: str) -> Optional[TokenIntrospection]:
        return await introspect_token(self.client, self.config, access_token, self.settings.graph_api_url)
