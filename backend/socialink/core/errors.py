"""OAuth error taxonomy

Every failure that leaves an orchestrator is an ``OAuthError`` carrying a kind
and a human-readable message. The ``code`` property gives the stable
machine-readable identifier returned to API callers, e.g.
``Instagram.MissingPermissions``.
"""
from enum import Enum
from typing import Dict, Optional

from socialink.core.providers import SocialProvider


class OAuthErrorKind(str, Enum):
    NOT_CONFIGURED = "NotConfigured"
    MISSING_CODE = "MissingCode"
    AUTHORIZATION_DENIED = "AuthorizationDenied"
    INVALID_STATE = "InvalidState"
    INVALID_CODE = "InvalidCode"
    INVALID_TOKEN = "InvalidToken"
    APP_MISMATCH = "AppMismatch"
    MISSING_PERMISSIONS = "MissingPermissions"
    NO_PAGES = "NoPages"
    NO_BUSINESS_ACCOUNT = "NoBusinessAccount"
    GRAPH_API_ERROR = "GraphApiError"
    NETWORK_ERROR = "NetworkError"
    PARSE_ERROR = "ParseError"
    PROFILE_MISSING = "ProfileMissing"
    EMAIL_TAKEN = "EmailTaken"
    # Lifecycle kinds outside the completion skeleton
    USER_NOT_FOUND = "UserNotFound"
    CONNECTION_NOT_FOUND = "ConnectionNotFound"
    NO_REFRESH_TOKEN = "NoRefreshToken"
    MISSING_CODE_VERIFIER = "MissingCodeVerifier"
    REFRESH_NOT_SUPPORTED = "RefreshNotSupported"
    STORAGE_ERROR = "StorageError"


class OAuthError(Exception):
    """Failure raised by the OAuth subsystem"""

    def __init__(self, kind: OAuthErrorKind, message: str, provider: Optional[SocialProvider] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.provider = provider

    @property
    def code(self) -> str:
        if self.provider is None:
            return self.kind.value
        return f"{self.provider.display_name}.{self.kind.value}"

    def for_provider(self, provider: SocialProvider) -> "OAuthError":
        """Attach a provider to an error raised by a provider-agnostic component"""
        if self.provider is None:
            self.provider = provider
        return self

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code, "message": self.message}

    def __repr__(self) -> str:
        return f"OAuthError({self.code!r}, {self.message!r})"


# Kinds that mean a provider or our own storage misbehaved rather than the caller
UPSTREAM_ERROR_KINDS = frozenset({
    OAuthErrorKind.GRAPH_API_ERROR,
    OAuthErrorKind.NETWORK_ERROR,
    OAuthErrorKind.PARSE_ERROR,
    OAuthErrorKind.STORAGE_ERROR,
})
