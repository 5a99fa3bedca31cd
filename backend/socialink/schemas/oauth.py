"""Pydantic schemas for OAuth flows"""
from typing import Any, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AuthorizationResponse(BaseModel):
    authorization_url: str
    state: str


class StateValidationResponse(BaseModel):
    user_id: Optional[UUID] = None
    ok: bool


class TokenExchangeResult(BaseModel):
    """Provider token response normalized to a common shape"""
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    refresh_expires_in: Optional[int] = None
    token_type: Optional[str] = None
    scope: Optional[str] = None
    # open_id on TikTok, user_id on Threads
    account_id: Optional[str] = None


class GranularScope(BaseModel):
    scope: str
    target_ids: List[Any] = Field(default_factory=list)


class TokenIntrospection(BaseModel):
    """The ``data`` object of a Graph API debug_token response"""
    is_valid: bool = False
    app_id: Optional[str] = None
    user_id: Optional[str] = None
    expires_at: Optional[int] = None
    scopes: List[str] = Field(default_factory=list)
    granular_scopes: List[GranularScope] = Field(default_factory=list)


class ResolvedProfile(BaseModel):
    """Instagram account discovered through a Facebook Page"""
    account_id: str
    username: Optional[str] = None
    page_id: str
    page_name: Optional[str] = None
    page_access_token: str
    account_type: Literal["business", "creator"]


class DiagnosticPage(BaseModel):
    """A Facebook Page as seen by the Instagram diagnostics, without its token"""
    id: Optional[str] = None
    name: Optional[str] = None
    tasks: List[str] = Field(default_factory=list)
    has_access_token: bool = False
    instagram_business_account_id: Optional[str] = None
    connected_instagram_account_id: Optional[str] = None


class DiagnosticPages(BaseModel):
    count: int = 0
    pages: List[DiagnosticPage] = Field(default_factory=list)
    error: Optional[str] = None


class InstagramDiagnostics(BaseModel):
    """What a Facebook login grants for Instagram, collected without storing anything"""
    token: Optional[TokenIntrospection] = None
    token_error: Optional[str] = None
    missing_permissions: List[str] = Field(default_factory=list)
    pages: DiagnosticPages = Field(default_factory=DiagnosticPages)
