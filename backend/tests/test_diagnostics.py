"""Instagram diagnostics tests"""
import pytest
from fastapi import status

from socialink.core.errors import OAuthError, OAuthErrorKind
from socialink.core.providers import SocialProvider
from socialink.models.social_connection import SocialConnection

from conftest import GRAPH, graph_error, stub_debug_token, stub_meta_token


def stub_pages(stub):
    stub.add("GET", f"{GRAPH}/me/accounts", json={"data": [
        {"id": "p1", "name": "Brand Page", "access_token": "page-secret", "tasks": ["MANAGE", "CREATE_CONTENT"],
         "instagram_business_account": {"id": "ig-1"}},
        {"id": "p2", "name": "Side Page", "connected_instagram_account": {"id": "ig-2"}},
    ]})


@pytest.mark.high
class TestInstagramDiagnostics:
    """Test OAuthOrchestrator.diagnose()"""

    @pytest.mark.asyncio
    async def test_reports_token_permissions_and_pages(self, make_orchestrator, test_user, provider_stub, db_session):
        stub_meta_token(provider_stub)
        stub_debug_token(provider_stub, scopes=["instagram_basic"])
        stub_pages(provider_stub)

        result = await make_orchestrator(SocialProvider.INSTAGRAM).diagnose(test_user.id, " abc ")

        assert result.token.is_valid is True
        assert result.token.scopes == ["instagram_basic"]
        assert result.token_error is None
        assert result.missing_permissions == ["pages_show_list"]
        assert result.pages.count == 2
        assert result.pages.error is None
        first, second = result.pages.pages
        assert first.id == "p1"
        assert first.tasks == ["MANAGE", "CREATE_CONTENT"]
        assert first.has_access_token is True
        assert first.instagram_business_account_id == "ig-1"
        assert second.has_access_token is False
        assert second.connected_instagram_account_id == "ig-2"
        assert "page-secret" not in result.model_dump_json()
        assert db_session.query(SocialConnection).count() == 0

    @pytest.mark.asyncio
    async def test_invalid_token_is_reported_not_raised(self, make_orchestrator, test_user, provider_stub):
        stub_meta_token(provider_stub)
        stub_debug_token(provider_stub, is_valid=False, app_id="999")
        stub_pages(provider_stub)

        result = await make_orchestrator(SocialProvider.INSTAGRAM).diagnose(test_user.id, "abc")

        assert result.token.is_valid is False
        assert result.token.app_id == "999"
        assert result.missing_permissions == ["pages_show_list", "instagram_basic"]

    @pytest.mark.asyncio
    async def test_lookup_failures_are_collected(self, make_orchestrator, test_user, provider_stub):
        stub_meta_token(provider_stub)
        provider_stub.add("GET", f"{GRAPH}/debug_token", status=400, json=graph_error("Bad debug request", code=100))
        provider_stub.add("GET", f"{GRAPH}/me/accounts", status=400, json=graph_error("Pages unavailable", code=200))

        result = await make_orchestrator(SocialProvider.INSTAGRAM).diagnose(test_user.id, "abc")

        assert result.token is None
        assert "Bad debug request" in result.token_error
        assert result.missing_permissions == []
        assert result.pages.count == 0
        assert "Pages unavailable" in result.pages.error

    @pytest.mark.asyncio
    async def test_failed_exchange_raises(self, make_orchestrator, test_user, provider_stub):
        provider_stub.add("GET", f"{GRAPH}/oauth/access_token", status=400,
                          json=graph_error("Invalid verification code format.", code=100))

        with pytest.raises(OAuthError) as exc_info:
            await make_orchestrator(SocialProvider.INSTAGRAM).diagnose(test_user.id, "abc")

        assert exc_info.value.kind == OAuthErrorKind.INVALID_CODE
        assert exc_info.value.code == "Instagram.InvalidCode"

    @pytest.mark.asyncio
    async def test_missing_code(self, make_orchestrator, test_user, provider_stub):
        with pytest.raises(OAuthError) as exc_info:
            await make_orchestrator(SocialProvider.INSTAGRAM).diagnose(test_user.id, "  ")
        assert exc_info.value.kind == OAuthErrorKind.MISSING_CODE
        assert provider_stub.requests == []

    @pytest.mark.asyncio
    async def test_only_for_instagram(self, make_orchestrator, test_user):
        with pytest.raises(ValueError):
            await make_orchestrator(SocialProvider.FACEBOOK).diagnose(test_user.id, "abc")


@pytest.mark.medium
class TestDiagnoseRoute:
    """Test GET /api/social/instagram/diagnose"""

    def test_requires_auth(self, client):
        response = client.get("/api/social/instagram/diagnose", params={"code": "abc"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_returns_report(self, authenticated_client, provider_stub):
        stub_meta_token(provider_stub)
        stub_debug_token(provider_stub, scopes=["instagram_basic", "pages_show_list"])
        stub_pages(provider_stub)

        response = authenticated_client.get("/api/social/instagram/diagnose", params={"code": "abc"})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["missing_permissions"] == []
        assert data["pages"]["count"] == 2
        assert "page-secret" not in response.text

    def test_missing_code(self, authenticated_client):
        response = authenticated_client.get("/api/social/instagram/diagnose")
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["code"] == "Instagram.MissingCode"
