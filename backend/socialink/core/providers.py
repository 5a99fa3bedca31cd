"""Supported social providers"""
from enum import Enum


class SocialProvider(str, Enum):
    """Closed set of providers a user can connect"""
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"
    THREADS = "threads"

    @property
    def display_name(self) -> str:
        if self is SocialProvider.TIKTOK:
            return "TikTok"
        return self.value.capitalize()
