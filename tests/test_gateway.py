"""Test the token exchange gateway"""

from unittest.mock import Mock, patch

import pytest
import requests

from top_albums.core.config import GatewayCredentials
from top_albums.core.exceptions import MissingCredentials, UpstreamError
from top_albums.gateway import TokenExchange, create_app
from top_albums.gateway.exchange import SPOTIFY_TOKEN_URL


CREDENTIALS = GatewayCredentials(
    client_id="client-id",
    client_secret="client-secret",
    redirect_uri="http://127.0.0.1:8888/callback",
)


def spotify_response(status_code=200, payload=None):
    response = Mock(status_code=status_code, ok=status_code < 400)
    response.json.return_value = payload if payload is not None else {}
    return response


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def client(session):
    app = create_app(TokenExchange(CREDENTIALS, session=session))
    return app.test_client()


class TestTokenExchange:
    """Test the calls made to Spotify's token endpoint"""

    def test_authorization_code_request(self, session):
        session.post.return_value = spotify_response(payload={"access_token": "user-token", "expires_in": 3600})

        grant = TokenExchange(CREDENTIALS, session=session).exchange_authorization_code("the-code")

        assert grant.access_token == "user-token"
        session.post.assert_called_once_with(
            SPOTIFY_TOKEN_URL,
            data={
                "grant_type": "authorization_code",
                "code": "the-code",
                "redirect_uri": "http://127.0.0.1:8888/callback",
            },
            auth=("client-id", "client-secret"),
            timeout=10,
        )

    def test_client_credentials_default_lifetime(self, session):
        session.post.return_value = spotify_response(payload={"access_token": "app-token"})

        grant = TokenExchange(CREDENTIALS, session=session).issue_client_credentials_token()

        assert grant.expires_in == 3600
        assert session.post.call_args.kwargs["data"] == {"grant_type": "client_credentials"}

    def test_missing_credentials_never_call_spotify(self, session):
        exchange = TokenExchange(GatewayCredentials("client-id", None, None), session=session)

        with pytest.raises(MissingCredentials) as exc_info:
            exchange.exchange_authorization_code("code")

        assert exc_info.value.details["missing"] == ["client_secret", "redirect_uri"]
        session.post.assert_not_called()

    def test_client_credentials_do_not_need_redirect_uri(self, session):
        session.post.return_value = spotify_response(payload={"access_token": "app-token", "expires_in": 60})
        exchange = TokenExchange(GatewayCredentials("client-id", "client-secret", None), session=session)

        assert exchange.issue_client_credentials_token().expires_in == 60

    def test_upstream_rejection(self, session):
        session.post.return_value = spotify_response(400, {"error": "invalid_grant"})

        with pytest.raises(UpstreamError) as exc_info:
            TokenExchange(CREDENTIALS, session=session).exchange_authorization_code("reused")

        assert exc_info.value.description == "invalid_grant"


class TestGatewayRoutes:
    """Test the HTTP surface"""

    def test_authorization_code(self, client, session):
        session.post.return_value = spotify_response(payload={"access_token": "user-token"})

        response = client.post("/token-exchange/authorization-code", json={"code": "abc"})

        assert response.status_code == 200
        assert response.get_json() == {"accessToken": "user-token"}

    @pytest.mark.parametrize("body", [{}, {"code": ""}, {"code": 42}, None])
    def test_code_is_required(self, client, session, body):
        response = client.post("/token-exchange/authorization-code", json=body)

        assert response.status_code == 400
        assert response.get_json() == {"error": "Code is required"}
        session.post.assert_not_called()

    def test_rejected_code(self, client, session):
        session.post.return_value = spotify_response(
            400, {"error": "invalid_grant", "error_description": "Invalid authorization code"}
        )

        response = client.post("/token-exchange/authorization-code", json={"code": "stale"})

        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid authorization code"}

    def test_client_credentials(self, client, session):
        session.post.return_value = spotify_response(payload={"access_token": "app-token", "expires_in": 3600})

        response = client.post("/token-exchange/client-credentials")

        assert response.status_code == 200
        assert response.get_json() == {"accessToken": "app-token", "expiresInSeconds": 3600}

    def test_spotify_unreachable(self, client, session):
        session.post.side_effect = requests.exceptions.Timeout("slow")

        response = client.post("/token-exchange/client-credentials")

        assert response.status_code == 500
        assert response.get_json() == {"error": "Internal server error"}

    def test_unexpected_error_is_generic(self, client, session):
        session.post.side_effect = RuntimeError("client-secret leaked in a message")

        response = client.post("/token-exchange/client-credentials")

        assert response.status_code == 500
        assert response.get_json() == {"error": "Internal server error"}

    def test_unknown_route_stays_404(self, client):
        assert client.get("/nope").status_code == 404

    def test_wrong_method_stays_405(self, client):
        assert client.get("/token-exchange/client-credentials").status_code == 405

    def test_credentials_read_from_environment(self, monkeypatch):
        for name in ("SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET", "SPOTIFY_REDIRECT_URI"):
            monkeypatch.delenv(name, raising=False)

        with patch("top_albums.gateway.app.load_dotenv"):
            client = create_app().test_client()

        response = client.post("/token-exchange/client-credentials")

        assert response.status_code == 500
        assert response.get_json() == {"error": "Missing Spotify credentials"}
