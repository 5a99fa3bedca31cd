"""OAuth API routes for connecting Facebook, Instagram, TikTok and Threads accounts"""
import logging
from typing import List, Optional
from uuid import UUID

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from socialink.core.errors import OAuthError, OAuthErrorKind
from socialink.core.providers import SocialProvider
from socialink.core.security import require_auth
from socialink.db.session import get_db
from socialink.schemas.connections import ConnectionSummary
from socialink.schemas.oauth import AuthorizationResponse, InstagramDiagnostics, StateValidationResponse
from socialink.services.connection_service import ConnectionStore, to_summary
from socialink.services.oauth import OAuthOrchestrator, create_orchestrator, decode_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/social", tags=["oauth"])

ERROR_STATUS_CODES = {
    OAuthErrorKind.NOT_CONFIGURED: 503,
    OAuthErrorKind.MISSING_CODE: 400,
    OAuthErrorKind.AUTHORIZATION_DENIED: 400,
    OAuthErrorKind.INVALID_STATE: 400,
    OAuthErrorKind.INVALID_CODE: 400,
    OAuthErrorKind.MISSING_CODE_VERIFIER: 400,
    OAuthErrorKind.INVALID_TOKEN: 401,
    OAuthErrorKind.APP_MISMATCH: 401,
    OAuthErrorKind.MISSING_PERMISSIONS: 403,
    OAuthErrorKind.NO_PAGES: 403,
    OAuthErrorKind.NO_BUSINESS_ACCOUNT: 403,
    OAuthErrorKind.USER_NOT_FOUND: 404,
    OAuthErrorKind.CONNECTION_NOT_FOUND: 404,
    OAuthErrorKind.PROFILE_MISSING: 502,
    OAuthErrorKind.EMAIL_TAKEN: 409,
    OAuthErrorKind.NO_REFRESH_TOKEN: 400,
    OAuthErrorKind.REFRESH_NOT_SUPPORTED: 400,
    OAuthErrorKind.GRAPH_API_ERROR: 502,
    OAuthErrorKind.NETWORK_ERROR: 502,
    OAuthErrorKind.PARSE_ERROR: 502,
    OAuthErrorKind.STORAGE_ERROR: 503,
}


def to_http_exception(error: OAuthError) -> HTTPException:
    return HTTPException(ERROR_STATUS_CODES.get(error.kind, 400), error.to_dict())


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Dependency: the pooled outbound client created in the app lifespan"""
    return request.app.state.http_client


def get_orchestrator(
    provider: SocialProvider,
    client: httpx.AsyncClient = Depends(get_http_client),
    db: Session = Depends(get_db),
) -> OAuthOrchestrator:
    """Dependency: orchestrator for the provider named in the path"""
    return create_orchestrator(provider, client, db)


def get_instagram_orchestrator(
    client: httpx.AsyncClient = Depends(get_http_client),
    db: Session = Depends(get_db),
) -> OAuthOrchestrator:
    return create_orchestrator(SocialProvider.INSTAGRAM, client, db)


@router.get("/connections", response_model=List[ConnectionSummary])
def list_connections(user_id: UUID = Depends(require_auth), db: Session = Depends(get_db)):
    """List the current user's live connections"""
    return [to_summary(connection) for connection in ConnectionStore(db).list_for_user(user_id)]


@router.get("/state/validate", response_model=StateValidationResponse)
def validate_state(state: Optional[str] = None):
    """Decode a state string without consuming it"""
    user_id, ok = decode_state(state)
    return StateValidationResponse(user_id=user_id, ok=ok)


@router.get("/instagram/diagnose", response_model=InstagramDiagnostics)
async def diagnose_instagram(
    code: Optional[str] = None,
    user_id: UUID = Depends(require_auth),
    orchestrator: OAuthOrchestrator = Depends(get_instagram_orchestrator),
):
    """Exchange an Instagram authorization code and report token, permissions and pages without connecting"""
    try:
        return await orchestrator.diagnose(user_id, code)
    except OAuthError as e:
        raise to_http_exception(e)


@router.get("/{provider}/authorize", response_model=AuthorizationResponse)
def authorize(
    provider: SocialProvider,
    scopes: Optional[str] = None,
    user_id: UUID = Depends(require_auth),
    orchestrator: OAuthOrchestrator = Depends(get_orchestrator),
):
    """Start the OAuth flow - returns the provider authorization URL"""
    try:
        return orchestrator.initiate(user_id, scopes)
    except OAuthError as e:
        raise to_http_exception(e)


@router.get("/{provider}/callback", response_model=ConnectionSummary)
async def callback(
    provider: SocialProvider,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    orchestrator: OAuthOrchestrator = Depends(get_orchestrator),
):
    """Provider redirect target - completes the flow and stores the connection"""
    try:
        return await orchestrator.complete(code, state, error, error_description)
    except OAuthError as e:
        raise to_http_exception(e)


@router.post("/{provider}/connections/{connection_id}/refresh", response_model=ConnectionSummary)
async def refresh_connection(
    provider: SocialProvider,
    connection_id: UUID,
    user_id: UUID = Depends(require_auth),
    orchestrator: OAuthOrchestrator = Depends(get_orchestrator),
):
    """Refresh a stored TikTok or Threads token"""
    try:
        return await orchestrator.refresh_connection(connection_id, user_id)
    except OAuthError as e:
        raise to_http_exception(e)
