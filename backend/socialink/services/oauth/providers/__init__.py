"""Per-provider connect flows"""
from socialink.core.providers import SocialProvider
from socialink.services.oauth.providers.base import ProviderFlow
from socialink.services.oauth.providers.facebook import FacebookFlow
from socialink.services.oauth.providers.instagram import InstagramFlow
from socialink.services.oauth.providers.threads import ThreadsFlow
from socialink.services.oauth.providers.tiktok import TikTokFlow

PROVIDER_FLOWS = {
    SocialProvider.FACEBOOK: FacebookFlow,
    SocialProvider.INSTAGRAM: InstagramFlow,
    SocialProvider.TIKTOK: TikTokFlow,
    SocialProvider.THREADS: ThreadsFlow,
}

__all__ = [
    "PROVIDER_FLOWS",
    "ProviderFlow",
    "FacebookFlow",
    "InstagramFlow",
    "ThreadsFlow",
    "TikTokFlow",
]
