"""Pydantic schemas for stored social connections

Connection metadata is stored as a JSON object whose shape depends on the
provider. Internally it is always handled through the tagged union below;
plain dicts only exist at the persistence boundary.
"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, TypeAdapter


class FacebookMetadata(BaseModel):
    provider: Literal["facebook"] = "facebook"
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    access_token: str
    token_type: Optional[str] = None
    expires_at: Optional[datetime] = None
    scopes: List[str] = Field(default_factory=list)

    def profile(self) -> Dict[str, Any]:
        return {"account_id": self.id, "display_name": self.name}


class InstagramMetadata(BaseModel):
    provider: Literal["instagram"] = "instagram"
    id: str
    username: Optional[str] = None
    email: Optional[str] = None
    access_token: str  # page access token, used for publishing
    user_access_token: Optional[str] = None
    token_type: Optional[str] = None
    user_id: Optional[str] = None  # Instagram account id
    page_id: str
    page_name: Optional[str] = None
    instagram_business_account_id: str
    instagram_account_type: Literal["business", "creator"]
    expires_at: Optional[datetime] = None

    def profile(self) -> Dict[str, Any]:
        return {
            "account_id": self.id,
            "username": self.username,
            "page_name": self.page_name,
            "account_type": self.instagram_account_type,
        }


class TikTokMetadata(BaseModel):
    provider: Literal["tiktok"] = "tiktok"
    open_id: Optional[str] = None
    union_id: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    refresh_expires_at: Optional[datetime] = None
    scope: Optional[str] = None
    token_type: Optional[str] = None

    def profile(self) -> Dict[str, Any]:
        return {"account_id": self.open_id, "display_name": self.display_name, "avatar_url": self.avatar_url}


class ThreadsMetadata(BaseModel):
    provider: Literal["threads"] = "threads"
    user_id: Optional[str] = None
    access_token: str
    expires_at: Optional[datetime] = None
    token_type: Optional[str] = None
    username: Optional[str] = None
    name: Optional[str] = None
    threads_profile_picture_url: Optional[str] = None
    threads_biography: Optional[str] = None

    def profile(self) -> Dict[str, Any]:
        return {"account_id": self.user_id, "username": self.username, "display_name": self.name}


ConnectionMetadata = Annotated[
    Union[FacebookMetadata, InstagramMetadata, TikTokMetadata, ThreadsMetadata],
    Field(discriminator="provider"),
]

_metadata_adapter = TypeAdapter(ConnectionMetadata)


def parse_metadata(payload: Dict[str, Any]) -> ConnectionMetadata:
    """Read a stored metadata blob into its provider model"""
    return _metadata_adapter.validate_python(payload)


def dump_metadata(metadata: ConnectionMetadata) -> Dict[str, Any]:
    """Serialize provider metadata for the JSON column"""
    return metadata.model_dump(mode="json", exclude_none=True)


class ConnectionProfile(BaseModel):
    account_id: Optional[str] = None
    username: Optional[str] = None
    display_name: Optional[str] = None
    page_name: Optional[str] = None
    account_type: Optional[str] = None
    avatar_url: Optional[str] = None


class ConnectionSummary(BaseModel):
    """Public view of a connection; tokens are never included"""
    id: UUID
    provider: str
    profile: ConnectionProfile
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
