"""Test the client token cache and the gateway token source"""

import threading
import time
from unittest.mock import Mock

import pytest
import requests

from top_albums.core.exceptions import SpotifyError
from top_albums.spotify.tokens import ClientTokenCache, GatewayTokenSource


def gateway_response(status_code=200, payload=None, reason="OK"):
    response = Mock(status_code=status_code, reason=reason)
    response.json.return_value = payload if payload is not None else {}
    return response


class TestClientTokenCache:
    """Test get-or-refresh-once behavior"""

    def test_token_is_reused_until_margin(self):
        now = Mock(return_value=0.0)
        fetch = Mock(side_effect=[("first", 3600), ("second", 3600)])
        cache = ClientTokenCache(fetch, clock=now)

        assert cache.get_access_token() == "first"
        now.return_value = 3539.0
        assert cache.get_access_token() == "first"
        assert fetch.call_count == 1

        now.return_value = 3540.0
        assert cache.get_access_token() == "second"
        assert fetch.call_count == 2

    def test_as_dict(self):
        cache = ClientTokenCache(Mock(return_value=("tok", 3600)), clock=Mock(return_value=100.0))

        token = cache.get_access_token(as_dict=True)

        assert token == {"access_token": "tok", "token_type": "Bearer", "expires_in": 3600}

    def test_invalidate(self):
        fetch = Mock(return_value=("tok", 3600))
        cache = ClientTokenCache(fetch, clock=Mock(return_value=0.0))

        cache.get_access_token()
        cache.invalidate()
        cache.get_access_token()

        assert fetch.call_count == 2

    def test_fetch_errors_propagate(self):
        cache = ClientTokenCache(Mock(side_effect=SpotifyError("gateway down", is_auth_error=True)))

        with pytest.raises(SpotifyError):
            cache.get_access_token()

    def test_concurrent_callers_share_one_refresh(self):
        def slow_fetch():
            time.sleep(0.05)
            return "tok", 3600

        fetch = Mock(side_effect=slow_fetch)
        cache = ClientTokenCache(fetch)
        results = []

        threads = [threading.Thread(target=lambda: results.append(cache.get_access_token())) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results == ["tok"] * 8
        assert fetch.call_count == 1


class TestGatewayTokenSource:
    """Test the HTTP client for the token exchange gateway"""

    def test_fetch_client_token(self):
        session = Mock()
        session.post.return_value = gateway_response(payload={"accessToken": "app", "expiresInSeconds": 1800})
        source = GatewayTokenSource("http://gateway/", timeout=5, session=session)

        assert source.fetch_client_token() == ("app", 1800.0)
        session.post.assert_called_once_with(
            "http://gateway/token-exchange/client-credentials", json={}, timeout=5
        )

    def test_exchange_code(self):
        session = Mock()
        session.post.return_value = gateway_response(payload={"accessToken": "user"})
        source = GatewayTokenSource("http://gateway", session=session)

        assert source.exchange_code("the-code") == "user"
        assert session.post.call_args.args[0] == "http://gateway/token-exchange/authorization-code"
        assert session.post.call_args.kwargs["json"] == {"code": "the-code"}

    def test_error_response(self):
        session = Mock()
        session.post.return_value = gateway_response(400, {"error": "Invalid authorization code"}, "Bad Request")
        source = GatewayTokenSource("http://gateway", session=session)

        with pytest.raises(SpotifyError) as exc_info:
            source.exchange_code("stale")

        assert exc_info.value.is_auth_error
        assert exc_info.value.http_status == 400
        assert "Invalid authorization code" in exc_info.value.message

    def test_unreachable(self):
        session = Mock()
        session.post.side_effect = requests.exceptions.ConnectionError("refused")
        source = GatewayTokenSource("http://gateway", session=session)

        with pytest.raises(SpotifyError) as exc_info:
            source.fetch_client_token()

        assert exc_info.value.is_auth_error

    def test_missing_token_in_response(self):
        session = Mock()
        session.post.return_value = gateway_response(payload={"expiresInSeconds": 3600})
        source = GatewayTokenSource("http://gateway", session=session)

        with pytest.raises(SpotifyError):
            source.fetch_client_token()
