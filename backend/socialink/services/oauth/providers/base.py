"""Provider flow interface

Each provider implements the steps of the connect flow that differ between
providers. ``OAuthOrchestrator`` drives them in a fixed order.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from socialink.core.config import DEFAULT_SCOPES, ProviderConfig, Settings, settings as default_settings
from socialink.core.errors import OAuthError, OAuthErrorKind
from socialink.core.providers import SocialProvider
from socialink.models.user import User
from socialink.schemas.connections import ConnectionMetadata
from socialink.schemas.oauth import TokenExchangeResult, TokenIntrospection
from socialink.services.oauth.scopes import normalize_scopes

logger = logging.getLogger(__name__)


def expires_at_from(expires_in: Optional[int], now: Optional[datetime] = None) -> Optional[datetime]:
    """Absolute expiry for a relative lifetime; None when the provider gave none"""
    if not expires_in or expires_in <= 0:
        return None
    return (now or datetime.now(timezone.utc)) + timedelta(seconds=int(expires_in))


def parse_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class ProviderFlow(ABC):
    """Capabilities a provider plugs into the generic connect flow"""

    provider: SocialProvider
    uses_pkce = False
    supports_refresh = False

    def __init__(self, config: ProviderConfig, client: httpx.AsyncClient, settings: Optional[Settings] = None):
        self.config = config
        self.client = client
        self.settings = settings or default_settings

    @property
    def log(self) -> logging.Logger:
        return logging.getLogger(self.provider.value)

    def resolve_scopes(self, requested=None) -> str:
        """Explicit request, then configured default, then the hardcoded fallback"""
        for candidate in (requested, self.config.scopes, DEFAULT_SCOPES[self.provider]):
            scopes = normalize_scopes(candidate)
            if scopes:
                return ",".join(scopes)
        return ""

    @property
    @abstractmethod
    def authorization_base_url(self) -> str:
        ...

    def authorization_params(self, state: str, scopes: str, code_challenge: Optional[str] = None) -> Dict[str, str]:
        return {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "state": state,
            "scope": scopes,
            "response_type": "code",
        }

    def build_authorization_url(self, state: str, scopes: str, code_challenge: Optional[str] = None) -> str:
        params = self.authorization_params(state, scopes, code_challenge)
        return f"{self.authorization_base_url}?{urlencode(params)}"

    @abstractmethod
    async def exchange(self, code: str, code_verifier: Optional[str] = None) -> TokenExchangeResult:
        """Trade an authorization code for a token. Raises OAuthError(InvalidCode) on failure"""

    async def introspect(self, access_token: str) -> Optional[TokenIntrospection]:
        """Validate the token with the provider; None where the provider has no introspection"""
        return None

    @abstractmethod
    async def resolve_profile(
        self,
        token: TokenExchangeResult,
        introspection: Optional[TokenIntrospection],
        user: User,
    ) -> ConnectionMetadata:
        """Build the connection metadata to store for this user"""

    def reconcile_user(self, user: User, metadata: ConnectionMetadata, users) -> bool:
        """Update the local user from provider data. Returns True if anything changed"""
        return False

    async def refresh(self, existing_token: str) -> TokenExchangeResult:
        raise OAuthError(
            OAuthErrorKind.REFRESH_NOT_SUPPORTED,
            f"{self.provider.display_name} tokens cannot be refreshed.",
            self.provider,
        )

    def metadata_from_refresh(self, current: ConnectionMetadata, token: TokenExchangeResult) -> ConnectionMetadata:
        """Metadata for a stored connection after its token was refreshed"""
        raise OAuthError(
            OAuthErrorKind.REFRESH_NOT_SUPPORTED,
            f"{self.provider.display_name} tokens cannot be refreshed.",
            self.provider,
        )

    def refresh_credential(self, current: ConnectionMetadata) -> Optional[str]:
        """The stored value a refresh is performed with"""
        return None

    @staticmethod
    def scope_list(introspection: Optional[TokenIntrospection]) -> List[str]:
        return list(introspection.scopes) if introspection else []
