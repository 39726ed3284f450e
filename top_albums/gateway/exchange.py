"""
Token exchange against Spotify's accounts service.

This is the only code that ever handles the client secret. It runs inside
the gateway process and answers two questions:

    exchange_authorization_code(code) -> user access token
    issue_client_credentials_token()  -> app access token + lifetime

Both authenticate to https://accounts.spotify.com/api/token with HTTP Basic
auth built from SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET.

Failure Modes:
    MissingCredentials  server credentials absent (HTTP 500, generic text)
    UpstreamError       Spotify rejected the request (HTTP 400, carries
                        error_description or error)
    GatewayError        Spotify unreachable or answered garbage (HTTP 500)
"""

from dataclasses import dataclass

import requests

from top_albums.core.config import GatewayCredentials
from top_albums.core.exceptions import GatewayError, MissingCredentials, UpstreamError
from top_albums.core.logger import get_logger

logger = get_logger(__name__)


SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
DEFAULT_TIMEOUT = 10


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    expires_in: int | None = None


class TokenExchange:
    """
    Performs the two grant types the app needs.

    Args:
        credentials: Server-side credentials (any field may be missing;
                     absence is reported on use).
        session: Optional requests.Session (tests pass a mock).
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        credentials: GatewayCredentials,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT
    ) -> None:
        self._credentials = credentials
        self._session = session or requests.Session()
        self._timeout = timeout

    def _require(self, *fields: str) -> None:
        missing = self._credentials.missing(*fields)
        if missing:
            # Names only, never values
            logger.error(f"Token exchange refused, missing server credentials: {', '.join(missing)}")
            raise MissingCredentials(details={"missing": missing})

    def _request_token(self, form: dict[str, str]) -> dict:
        try:
            response = self._session.post(
                SPOTIFY_TOKEN_URL,
                data=form,
                auth=(self._credentials.client_id, self._credentials.client_secret),
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Spotify token endpoint unreachable: {e}")
            raise GatewayError("Internal server error", details={"original_error": str(e)}) from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if not response.ok:
            description = data.get("error_description") or data.get("error") or f"HTTP {response.status_code}"
            logger.warning(f"Spotify rejected {form['grant_type']} exchange: {description}")
            raise UpstreamError(description, details={"http_status": response.status_code})

        if not data.get("access_token"):
            logger.error("Spotify token response carried no access_token")
            raise GatewayError("Internal server error")
        return data

    def exchange_authorization_code(self, code: str) -> TokenGrant:
        """
        Trade a user's authorization code for an access token.

        Raises:
            MissingCredentials: If id, secret or redirect URI is not set.
            UpstreamError: If Spotify rejects the code (expired, reused).
            GatewayError: If Spotify cannot be reached.
        """
        self._require("client_id", "client_secret", "redirect_uri")
        data = self._request_token({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._credentials.redirect_uri,
        })
        return TokenGrant(access_token=data["access_token"], expires_in=data.get("expires_in"))

    def issue_client_credentials_token(self) -> TokenGrant:
        """
        Get an app-level token for catalog calls.

        Raises:
            MissingCredentials: If id or secret is not set.
            UpstreamError: If Spotify rejects the credentials.
            GatewayError: If Spotify cannot be reached.
        """
        self._require("client_id", "client_secret")
        data = self._request_token({"grant_type": "client_credentials"})
        return TokenGrant(access_token=data["access_token"], expires_in=int(data.get("expires_in") or 3600))
