"""Facebook connect flow"""
from typing import Optional

from socialink.core.errors import OAuthError, OAuthErrorKind
from socialink.core.providers import SocialProvider
from socialink.models.user import User
from socialink.schemas.connections import FacebookMetadata
from socialink.schemas.oauth import TokenExchangeResult, TokenIntrospection
from socialink.services.oauth.graph_errors import read_graph_error
from socialink.services.oauth.providers.base import expires_at_from
from socialink.services.oauth.providers.meta import MetaGraphFlow
from socialink.services.oauth.transport import read_json, send_request


class FacebookFlow(MetaGraphFlow):
    provider = SocialProvider.FACEBOOK

    async def resolve_profile(
        self,
        token: TokenExchangeResult,
        introspection: Optional[TokenIntrospection],
        user: User,
    ) -> FacebookMetadata:
        response = await send_request(
            self.client,
            "GET",
            f"{self.settings.graph_api_url}/me",
            self.provider,
            params={"fields": "id,name,email", "access_token": token.access_token},
        )
        if response.is_error:
            message = read_graph_error(response, "Failed to fetch Facebook profile")
            self.log.error(f"Profile fetch failed ({response.status_code}): {message}")
            raise OAuthError(OAuthErrorKind.GRAPH_API_ERROR, message, self.provider)

        profile = read_json(response, self.provider)
        if not profile.get("id"):
            raise OAuthError(OAuthErrorKind.PROFILE_MISSING, "Facebook profile is missing", self.provider)

        return FacebookMetadata(
            id=str(profile["id"]),
            name=profile.get("name"),
            email=profile.get("email"),
            access_token=token.access_token,
            token_type=token.token_type,
            expires_at=expires_at_from(token.expires_in),
            scopes=self.scope_list(introspection),
        )

    def reconcile_user(self, user: User, metadata: FacebookMetadata, users) -> bool:
        """Copy a fresher name/email from Facebook onto the user.

        Raises:
            OAuthError: EmailTaken when the Facebook email belongs to another user
        """
        name = (metadata.name or "").strip()
        new_name = name if name and name != (user.full_name or "") else None

        email = (metadata.email or "").strip().lower()
        new_email = email if email and email != (user.email or "").lower() else None
        if new_email:
            owner = users.find_email_owner(new_email)
            if owner is not None and owner.id != user.id:
                self.log.warning(f"Facebook email for user {user.id} is already registered to another account")
                raise OAuthError(OAuthErrorKind.EMAIL_TAKEN, "Email is already registered", self.provider)

        # Nothing is touched until the email check passed
        if new_name:
            user.full_name = new_name
        if new_email:
            user.email = new_email
        changed = bool(new_name or new_email)

        if changed:
            users.update_profile(user)
            self.log.info(f"Updated profile of user {user.id} from Facebook")
        return changed
