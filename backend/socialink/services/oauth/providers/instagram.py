"""Instagram connect flow (Instagram Graph API through Facebook Login)"""
from typing import Optional

from socialink.core.providers import SocialProvider
from socialink.models.user import User
from socialink.schemas.connections import InstagramMetadata
from socialink.schemas.oauth import TokenExchangeResult, TokenIntrospection
from socialink.services.oauth.instagram_resolver import BusinessAccountResolver
from socialink.services.oauth.providers.base import expires_at_from
from socialink.services.oauth.providers.meta import MetaGraphFlow


class InstagramFlow(MetaGraphFlow):
    provider = SocialProvider.INSTAGRAM

    @property
    def resolver(self) -> BusinessAccountResolver:
        return BusinessAccountResolver(self.client, self.settings.graph_api_url)

    async def resolve_profile(
        self,
        token: TokenExchangeResult,
        introspection: Optional[TokenIntrospection],
        user: User,
    ) -> InstagramMetadata:
        profile = await self.resolver.resolve(
            token.access_token,
            granted_scopes=self.scope_list(introspection),
            granular_scopes=introspection.granular_scopes if introspection else [],
        )
        return InstagramMetadata(
            id=profile.account_id,
            username=profile.username or user.username,
            email=user.email,
            access_token=profile.page_access_token,
            user_access_token=token.access_token,
            token_type=token.token_type,
            user_id=profile.account_id,
            page_id=profile.page_id,
            page_name=profile.page_name,
            instagram_business_account_id=profile.account_id,
            instagram_account_type=profile.account_type,
            expires_at=expires_at_from(token.expires_in),
        )
