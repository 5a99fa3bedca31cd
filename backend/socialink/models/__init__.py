"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from socialink.models.base import Base
from socialink.models.user import User
from socialink.models.social_connection import SocialConnection

__all__ = [
    "Base",
    "User",
    "SocialConnection",
]
