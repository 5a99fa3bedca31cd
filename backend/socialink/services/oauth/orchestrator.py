"""OAuth orchestrator - the connect flow shared by every provider

    initiate  -> state -> authorization URL
    complete  -> state -> exchange -> [introspect] -> profile -> upsert -> summary

Provider differences live in ``ProviderFlow`` implementations. All awaits
happen before the upsert, so a cancelled ``complete`` never writes.
"""
import logging
from typing import Optional, Tuple
from uuid import UUID

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from socialink.core.config import Settings, get_provider_config, settings as default_settings
from socialink.core.errors import UPSTREAM_ERROR_KINDS, OAuthError, OAuthErrorKind
from socialink.core.metrics import oauth_completions_counter, oauth_initiations_counter, token_refreshes_counter
from socialink.core.providers import SocialProvider
from socialink.models.user import User
from socialink.schemas.connections import ConnectionSummary, parse_metadata
from socialink.schemas.oauth import AuthorizationResponse, InstagramDiagnostics, TokenExchangeResult
from socialink.services.connection_service import ConnectionStore, ConnectionUpserter, UserDirectory, to_summary
from socialink.services.oauth.diagnostics import diagnose_instagram
from socialink.services.oauth.providers import PROVIDER_FLOWS, ProviderFlow
from socialink.services.oauth.state import OAuthStateStore, decode_state, encode_state, generate_pkce_pair

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security")


class OAuthOrchestrator:
    """Connect flow for one provider.

    Configuration is resolved once at construction. A missing client id,
    secret or redirect URI does not raise here; it is kept and reported as
    NotConfigured by the first operation that needs it.
    """

    def __init__(
        self,
        provider: SocialProvider,
        client: httpx.AsyncClient,
        users: UserDirectory,
        connections: ConnectionStore,
        state_store: Optional[OAuthStateStore] = None,
        source_settings: Optional[Settings] = None,
    ):
        self.provider = SocialProvider(provider)
        self.settings = source_settings or default_settings
        self.users = users
        self.connections = connections
        self.upserter = ConnectionUpserter(connections)
        self.state_store = state_store or OAuthStateStore(
            ttl=self.settings.OAUTH_STATE_TTL, namespace=self.settings.ENVIRONMENT
        )

        self.flow: Optional[ProviderFlow] = None
        self.config_error: Optional[OAuthError] = None
        try:
            config = get_provider_config(self.provider, self.settings)
            self.flow = PROVIDER_FLOWS[self.provider](config, client, self.settings)
        except OAuthError as e:
            self.config_error = e

    def _error(self, kind: OAuthErrorKind, message: str) -> OAuthError:
        return OAuthError(kind, message, self.provider)

    def _require_flow(self) -> ProviderFlow:
        if self.flow is None:
            raise self.config_error
        return self.flow

    def _require_user(self, user_id: UUID) -> User:
        user = self.users.find_by_id(user_id)
        if user is None:
            raise self._error(OAuthErrorKind.USER_NOT_FOUND, "User not found")
        return user

    def validate_state(self, state: Optional[str]) -> Tuple[Optional[UUID], bool]:
        """Decode a state without consuming it"""
        return decode_state(state)

    def _save(self, user_id: UUID, metadata, user: Optional[User] = None):
        """Reconcile the user with the provider profile and upsert the connection in one commit"""
        try:
            if user is not None:
                self.flow.reconcile_user(user, metadata, self.users)
            return self.upserter.save(user_id, self.provider, metadata)
        except SQLAlchemyError as e:
            logger.error(f"Failed to store {self.provider.value} connection for user {user_id}: {e}")
            raise self._error(OAuthErrorKind.STORAGE_ERROR, "Failed to store the social connection")

    def initiate(self, user_id: UUID, scopes=None) -> AuthorizationResponse:
        """Build the provider authorization URL for a user"""
        try:
            return self._initiate(user_id, scopes)
        except OAuthError as e:
            e.for_provider(self.provider)
            raise

    def _initiate(self, user_id: UUID, scopes) -> AuthorizationResponse:
        flow = self._require_flow()
        self._require_user(user_id)

        state = encode_state(user_id)
        code_challenge = None
        if flow.uses_pkce:
            code_verifier, code_challenge = generate_pkce_pair()
            self.state_store.save_code_verifier(state, code_verifier)
        if self.settings.OAUTH_STATE_SINGLE_USE:
            self.state_store.issue(state, user_id)

        resolved_scopes = flow.resolve_scopes(scopes)
        url = flow.build_authorization_url(state, resolved_scopes, code_challenge)
        oauth_initiations_counter.labels(provider=self.provider.value).inc()
        flow.log.info(f"Initiating {self.provider.display_name} OAuth for user {user_id} - scopes: {resolved_scopes}")
        return AuthorizationResponse(authorization_url=url, state=state)

    async def complete(
        self,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
        error_description: Optional[str] = None,
    ) -> ConnectionSummary:
        """Finish the flow from the provider callback and store the connection"""
        try:
            summary = await self._complete(code, state, error, error_description)
        except OAuthError as e:
            e.for_provider(self.provider)
            oauth_completions_counter.labels(provider=self.provider.value, status=e.kind.value).inc()
            message = f"{self.provider.display_name} OAuth completion failed: {e.code}: {e.message}"
            if e.kind in UPSTREAM_ERROR_KINDS:
                logger.error(message)
            else:
                logger.warning(message)
            raise
        oauth_completions_counter.labels(provider=self.provider.value, status="success").inc()
        return summary

    async def _complete(self, code, state, error, error_description) -> ConnectionSummary:
        if error and error.strip():
            message = (error_description or "").strip() or error.strip()
            raise self._error(OAuthErrorKind.AUTHORIZATION_DENIED, message)

        if not code or not code.strip():
            raise self._error(OAuthErrorKind.MISSING_CODE, "Authorization code is missing")

        user_id, ok = decode_state(state)
        if not ok:
            security_logger.warning(f"Rejected {self.provider.value} callback with undecodable state")
            raise self._error(OAuthErrorKind.INVALID_STATE, "Invalid or expired state token")
        if self.settings.OAUTH_STATE_SINGLE_USE and not self.state_store.consume(state.strip(), user_id):
            raise self._error(OAuthErrorKind.INVALID_STATE, "Invalid or expired state token")

        flow = self._require_flow()
        user = self._require_user(user_id)

        code_verifier = None
        if flow.uses_pkce:
            code_verifier = self.state_store.pop_code_verifier(state.strip())
            if not code_verifier:
                raise self._error(
                    OAuthErrorKind.MISSING_CODE_VERIFIER,
                    "Code verifier not found or expired. Please start the authorization again.",
                )

        token = await flow.exchange(code.strip(), code_verifier)
        introspection = await flow.introspect(token.access_token)
        metadata = await flow.resolve_profile(token, introspection, user)

        connection = self._save(user.id, metadata, user)
        flow.log.info(f"Connected {self.provider.display_name} account for user {user.id} (connection {connection.id})")
        return to_summary(connection)

    async def refresh_token(self, existing_token: Optional[str]) -> TokenExchangeResult:
        """Exchange a refresh token (TikTok) or current access token (Threads) for a new token"""
        flow = self._require_flow()
        if not flow.supports_refresh:
            raise self._error(
                OAuthErrorKind.REFRESH_NOT_SUPPORTED,
                f"{self.provider.display_name} tokens cannot be refreshed.",
            )
        if not existing_token or not existing_token.strip():
            raise self._error(OAuthErrorKind.NO_REFRESH_TOKEN, "No token available to refresh")
        try:
            token = await flow.refresh(existing_token.strip())
        except OAuthError as e:
            token_refreshes_counter.labels(provider=self.provider.value, status=e.kind.value).inc()
            raise
        token_refreshes_counter.labels(provider=self.provider.value, status="success").inc()
        return token

    async def refresh_connection(self, connection_id: UUID, user_id: UUID) -> ConnectionSummary:
        """Refresh the token of a stored connection and save it in place"""
        flow = self._require_flow()
        if not flow.supports_refresh:
            raise self._error(
                OAuthErrorKind.REFRESH_NOT_SUPPORTED,
                f"{self.provider.display_name} tokens cannot be refreshed.",
            )

        connection = self.connections.find_by_id(connection_id, user_id, self.provider)
        if connection is None:
            raise self._error(OAuthErrorKind.CONNECTION_NOT_FOUND, "Social connection not found")

        current = parse_metadata(connection.connection_metadata)
        credential = flow.refresh_credential(current)
        if not credential:
            raise self._error(
                OAuthErrorKind.NO_REFRESH_TOKEN,
                f"No refresh token stored for this {self.provider.display_name} connection",
            )

        token = await self.refresh_token(credential)
        updated = flow.metadata_from_refresh(current, token)
        saved = self._save(user_id, updated)
        return to_summary(saved)

    async def diagnose(self, user_id: UUID, code: Optional[str]) -> InstagramDiagnostics:
        """Inspect what an Instagram authorization code grants without storing a connection"""
        if self.provider is not SocialProvider.INSTAGRAM:
            raise ValueError(f"Diagnostics are only available for Instagram, not {self.provider.value}")
        if not code or not code.strip():
            raise self._error(OAuthErrorKind.MISSING_CODE, "Authorization code is missing")
        flow = self._require_flow()
        self._require_user(user_id)
        return await diagnose_instagram(flow, code.strip())


def create_orchestrator(
    provider: SocialProvider,
    client: httpx.AsyncClient,
    db: Session,
    state_store: Optional[OAuthStateStore] = None,
    source_settings: Optional[Settings] = None,
) -> OAuthOrchestrator:
    """Orchestrator wired to SQLAlchemy-backed collaborators"""
    return OAuthOrchestrator(
        provider,
        client,
        users=UserDirectory(db),
        connections=ConnectionStore(db),
        state_store=state_store,
        source_settings=source_settings,
    )
