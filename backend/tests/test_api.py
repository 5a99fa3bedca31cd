"""API route tests"""
import uuid

import pytest
from fastapi import status

from socialink.api import oauth as oauth_api
from socialink.core.providers import SocialProvider
from socialink.db.redis import delete_session
from socialink.schemas.connections import TikTokMetadata
from socialink.services.connection_service import ConnectionStore, ConnectionUpserter
from socialink.services.oauth import OAuthStateStore, create_orchestrator, encode_state

from conftest import GRAPH, TIKTOK_TOKEN_URL, stub_debug_token, stub_meta_token


@pytest.mark.critical
class TestAuthentication:
    """Test authentication and protected routes"""

    def test_protected_route_requires_auth(self, client):
        """Test that protected endpoints return 401 without authentication"""
        response = client.get("/api/social/facebook/authorize")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

        response = client.get("/api/social/connections")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_unknown_session(self, client):
        client.cookies.set("session_id", "no-such-session")
        response = client.get("/api/social/connections")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_protected_route_with_auth(self, authenticated_client):
        response = authenticated_client.get("/api/social/connections")
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == []

    def test_logged_out_session(self, authenticated_client):
        delete_session("test-session-id")
        response = authenticated_client.get("/api/social/connections")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.critical
class TestConnectFlow:
    """Test authorize and callback routes"""

    def test_authorize_returns_url(self, authenticated_client, test_user):
        response = authenticated_client.get("/api/social/instagram/authorize", params={"scopes": "instagram_basic"})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["authorization_url"].startswith("https://www.facebook.com/v24.0/dialog/oauth?")
        assert "scope=instagram_basic" in data["authorization_url"]
        assert data["state"]

    def test_unknown_provider(self, authenticated_client):
        response = authenticated_client.get("/api/social/myspace/authorize")
        assert response.status_code == 422

    def test_callback_denied(self, client):
        response = client.get("/api/social/facebook/callback", params={
            "error": "access_denied",
            "error_description": "User denied",
        })

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == {"code": "Facebook.AuthorizationDenied", "message": "User denied"}

    def test_callback_missing_code(self, client):
        response = client.get("/api/social/tiktok/callback", params={"state": "abc"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["code"] == "TikTok.MissingCode"

    def test_facebook_callback(self, authenticated_client, provider_stub, test_user):
        stub_meta_token(provider_stub)
        stub_debug_token(provider_stub, scopes=["email", "public_profile"])
        provider_stub.add("GET", f"{GRAPH}/me", json={"id": "10", "name": "Jane", "email": "jane@x.com"})
        state = authenticated_client.get("/api/social/facebook/authorize").json()["state"]

        response = authenticated_client.get("/api/social/facebook/callback", params={"code": "abc", "state": state})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["provider"] == "facebook"
        assert data["profile"]["account_id"] == "10"
        assert "access_token" not in response.text

        listed = authenticated_client.get("/api/social/connections").json()
        assert [c["id"] for c in listed] == [data["id"]]

    def test_callback_app_mismatch_is_unauthorized(self, authenticated_client, provider_stub):
        stub_meta_token(provider_stub)
        stub_debug_token(provider_stub, app_id="999")
        state = authenticated_client.get("/api/social/instagram/authorize").json()["state"]

        response = authenticated_client.get("/api/social/instagram/callback", params={"code": "abc", "state": state})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"]["code"] == "Instagram.AppMismatch"

    def test_not_configured(self, authenticated_client, http_client, db_session, state_store, oauth_settings):
        unconfigured = oauth_settings.model_copy(update={"TIKTOK_CLIENT_KEY": ""})

        def override_get_orchestrator(provider: SocialProvider):
            return create_orchestrator(provider, http_client, db_session, state_store=state_store,
                                       source_settings=unconfigured)

        authenticated_client.app.dependency_overrides[oauth_api.get_orchestrator] = override_get_orchestrator

        response = authenticated_client.get("/api/social/tiktok/authorize")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        detail = response.json()["detail"]
        assert detail["code"] == "TikTok.NotConfigured"
        assert "TIKTOK_CLIENT_KEY" in detail["message"]

    def test_state_store_outage_is_bad_gateway(self, authenticated_client, http_client, db_session, oauth_settings,
                                               unreachable_redis):
        down_store = OAuthStateStore(unreachable_redis, ttl=600, namespace="test")

        def override_get_orchestrator(provider: SocialProvider):
            return create_orchestrator(provider, http_client, db_session, state_store=down_store,
                                       source_settings=oauth_settings)

        authenticated_client.app.dependency_overrides[oauth_api.get_orchestrator] = override_get_orchestrator

        response = authenticated_client.get("/api/social/threads/authorize")

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.json()["detail"]["code"] == "Threads.NetworkError"


@pytest.mark.high
class TestStateValidation:
    """Test the state validation route"""

    def test_valid_state(self, client, test_user):
        response = client.get("/api/social/state/validate", params={"state": encode_state(test_user.id)})
        assert response.json() == {"user_id": str(test_user.id), "ok": True}

    def test_invalid_state(self, client):
        response = client.get("/api/social/state/validate", params={"state": "%%%"})
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"user_id": None, "ok": False}


@pytest.mark.high
class TestRefreshRoute:
    """Test the connection refresh route"""

    def test_refresh_tiktok_connection(self, authenticated_client, provider_stub, test_user, db_session):
        record = ConnectionUpserter(ConnectionStore(db_session)).save(
            test_user.id, SocialProvider.TIKTOK,
            TikTokMetadata(open_id="open-1", access_token="old", refresh_token="refresh-1"),
        )
        provider_stub.add("POST", TIKTOK_TOKEN_URL, json={
            "access_token": "new", "refresh_token": "refresh-2", "expires_in": 86400, "open_id": "open-1",
        })

        response = authenticated_client.post(f"/api/social/tiktok/connections/{record.id}/refresh")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["id"] == str(record.id)
        db_session.refresh(record)
        assert record.connection_metadata["refresh_token"] == "refresh-2"

    def test_refresh_facebook_is_rejected(self, authenticated_client, test_user):
        response = authenticated_client.post(f"/api/social/facebook/connections/{uuid.uuid4()}/refresh")
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["code"] == "Facebook.RefreshNotSupported"

    def test_refresh_unknown_connection(self, authenticated_client):
        response = authenticated_client.post(f"/api/social/threads/connections/{uuid.uuid4()}/refresh")
        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.medium
class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_metrics(self, client):
        response = client.get("/metrics")
        assert response.status_code == status.HTTP_200_OK
        assert "oauth_initiations_total" in response.text
