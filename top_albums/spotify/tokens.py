"""
Access token plumbing for the catalog client.

Catalog calls (search, album lookup, album tracks) run on an app-level
client-credentials token. The token is obtained from the gateway, cached
in memory and refreshed shortly before it expires. Callers never see it.

Components:
    ClientTokenCache:   get-or-refresh-once cache around any fetch function;
                        usable directly as a spotipy auth manager
    GatewayTokenSource: HTTP client for the two gateway endpoints

Refresh Policy:
    A cached token is reused until `refresh_margin` seconds (60 by default)
    before its expiry. Concurrent callers that find it stale wait on the
    lock and then see the token fetched by the first caller, so only one
    refresh is ever in flight.
"""

import threading
import time
from typing import Any, Callable

import requests

from top_albums.core.exceptions import SpotifyError
from top_albums.core.logger import get_logger

logger = get_logger(__name__)


CLIENT_CREDENTIALS_PATH = "/token-exchange/client-credentials"
AUTHORIZATION_CODE_PATH = "/token-exchange/authorization-code"

DEFAULT_EXPIRES_IN = 3600


class ClientTokenCache:
    """
    In-memory client-credentials token with expiry tracking.

    Args:
        fetch: Callable returning (access_token, expires_in_seconds).
               Exceptions it raises propagate to the caller untouched.
        clock: Monotonic seconds source, injectable for tests.
        refresh_margin: Seconds before expiry at which the token is renewed.

    Example:
        cache = ClientTokenCache(GatewayTokenSource(url).fetch_client_token)
        client = SpotifyClient.for_catalog(cache)
    """

    def __init__(
        self,
        fetch: Callable[[], tuple[str, float]],
        clock: Callable[[], float] = time.monotonic,
        refresh_margin: float = 60
    ) -> None:
        self._fetch = fetch
        self._clock = clock
        self._refresh_margin = refresh_margin
        self._lock = threading.Lock()
        self._token: str | None = None
        self._expires_at = 0.0

    def _is_fresh(self) -> bool:
        return self._token is not None and self._clock() < self._expires_at - self._refresh_margin

    def get_access_token(self, as_dict: bool = False) -> str | dict[str, Any]:
        """
        Return a valid token, fetching a new one if needed.

        The signature matches spotipy's auth managers, so spotipy can call
        this before each request.
        """
        with self._lock:
            if not self._is_fresh():
                token, expires_in = self._fetch()
                self._token = token
                self._expires_at = self._clock() + expires_in
                logger.debug(f"Client token refreshed, valid for {int(expires_in)}s")
            token = self._token

        if as_dict:
            return {
                "access_token": token,
                "token_type": "Bearer",
                "expires_in": max(0, int(self._expires_at - self._clock())),
            }
        return token

    def invalidate(self) -> None:
        """Forget the cached token; the next call fetches a new one."""
        with self._lock:
            self._token = None
            self._expires_at = 0.0


class GatewayTokenSource:
    """
    Client for the token exchange gateway.

    The gateway holds the client secret; this class only ever sends an
    authorization code or an empty request.

    Args:
        base_url: Gateway root, e.g. "http://127.0.0.1:5000".
        timeout: Per-request timeout in seconds.
        session: Optional requests.Session (tests pass a mock).
    """

    def __init__(self, base_url: str, timeout: float = 10.0, session: requests.Session | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, path: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.post(url, json=payload or {}, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise SpotifyError(
                f"Token gateway unreachable: {e}",
                details={"url": url, "original_error": str(e)},
                is_auth_error=True
            ) from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.status_code != 200:
            raise SpotifyError(
                f"Token exchange failed: {data.get('error') or response.reason}",
                details={"url": url},
                is_auth_error=True,
                http_status=response.status_code
            )
        if not data.get("accessToken"):
            raise SpotifyError(
                "Token gateway returned no access token",
                details={"url": url},
                is_auth_error=True
            )
        return data

    def fetch_client_token(self) -> tuple[str, float]:
        """
        Get an app-level token.

        Returns:
            (access_token, expires_in_seconds)

        Raises:
            SpotifyError: is_auth_error=True on any failure.
        """
        data = self._post(CLIENT_CREDENTIALS_PATH)
        return data["accessToken"], float(data.get("expiresInSeconds") or DEFAULT_EXPIRES_IN)

    def exchange_code(self, code: str) -> str:
        """
        Trade an OAuth authorization code for a user access token.

        Raises:
            SpotifyError: is_auth_error=True on any failure, including an
                          expired or reused code.
        """
        return self._post(AUTHORIZATION_CODE_PATH, {"code": code})["accessToken"]
