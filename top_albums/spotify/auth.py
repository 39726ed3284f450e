"""
Spotify user authentication state.

AuthState is an explicit store object: it is created once per process,
handed to whatever needs it, and reset on logout. Components that need
to react to login/logout subscribe to it instead of polling.

Login Flow (authorization code):
    1. authorize_url() -> user opens it and approves the app
    2. Spotify redirects to redirect_uri?code=...
    3. complete_login(code) trades the code through the gateway, loads
       the profile, persists both and notifies subscribers

The token and profile live in the key-value store under USER_TOKEN_KEY and
USER_PROFILE_KEY, so a login survives restarts until logout.
"""

import json
from typing import Any, Callable
from urllib.parse import urlencode

from top_albums.core.database import USER_PROFILE_KEY, USER_TOKEN_KEY, Database
from top_albums.core.exceptions import SpotifyError, StorageError
from top_albums.core.logger import get_logger
from top_albums.spotify.client import SpotifyClient
from top_albums.spotify.tokens import GatewayTokenSource

logger = get_logger(__name__)


AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
USER_SCOPES = "playlist-modify-public playlist-modify-private user-read-private"

Listener = Callable[["AuthState"], None]


class AuthState:
    """
    Holds the logged-in user's token, profile and counterpart playlist.

    Args:
        database: Key-value store used to persist the login.
        token_source: Gateway client used to exchange authorization codes.
        client_factory: Builds a user client from an access token.

    Example:
        auth = AuthState(database, GatewayTokenSource(config.gateway.url))
        unsubscribe = auth.subscribe(lambda state: print(state.is_authenticated))
        auth.complete_login(code)
        unsubscribe()
    """

    def __init__(
        self,
        database: Database,
        token_source: GatewayTokenSource,
        client_factory: Callable[[str], SpotifyClient] = SpotifyClient.for_user
    ) -> None:
        self._database = database
        self._token_source = token_source
        self._client_factory = client_factory
        self._listeners: list[Listener] = []
        self._user_token: str | None = None
        self._user_profile: dict[str, Any] | None = None
        self._load()

    def _load(self) -> None:
        try:
            self._user_token = self._database.get_item(USER_TOKEN_KEY)
            raw_profile = self._database.get_item(USER_PROFILE_KEY)
        except StorageError as e:
            logger.error(f"Could not read stored Spotify login: {e}")
            return

        if raw_profile:
            try:
                profile = json.loads(raw_profile)
                self._user_profile = profile if isinstance(profile, dict) else None
            except ValueError:
                logger.warning("Stored Spotify profile is corrupt, ignoring it")

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # =========================================================================
    # State
    # =========================================================================

    @property
    def is_authenticated(self) -> bool:
        return bool(self._user_token)

    @property
    def user_profile(self) -> dict[str, Any] | None:
        return self._user_profile

    @property
    def display_name(self) -> str | None:
        if not self._user_profile:
            return None
        return self._user_profile.get("display_name") or self._user_profile.get("id")

    def user_client(self) -> SpotifyClient | None:
        """A client acting as the user, or None when logged out."""
        if not self._user_token:
            return None
        return self._client_factory(self._user_token)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Call listener(self) after every login, logout or playlist change.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # =========================================================================
    # Transitions
    # =========================================================================

    @staticmethod
    def authorize_url(client_id: str, redirect_uri: str) -> str:
        params = {
            "client_id": client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "scope": USER_SCOPES,
            "show_dialog": "true",
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    def complete_login(self, code: str) -> dict[str, Any]:
        """
        Finish the login with the code Spotify redirected back with.

        Returns:
            The user's Spotify profile.

        Raises:
            SpotifyError: If the exchange or the profile call fails. Nothing
                          is stored in that case.
        """
        token = self._token_source.exchange_code(code)
        profile = self._client_factory(token).current_user()

        self._user_token = token
        self._user_profile = profile
        try:
            self._database.set_item(USER_TOKEN_KEY, token)
            self._database.set_item(USER_PROFILE_KEY, json.dumps(profile))
        except (StorageError, TypeError, ValueError) as e:
            logger.error(f"Could not persist Spotify login, it will not survive a restart: {e}")

        logger.info(f"Logged in to Spotify as {self.display_name}")
        self._notify()
        return profile

    def verify(self) -> bool:
        """
        Check the stored token against Spotify and refresh the profile.

        An expired or revoked token logs the user out.

        Returns:
            True if the user is still authenticated.

        Raises:
            SpotifyError: For failures other than an auth rejection.
        """
        client = self.user_client()
        if client is None:
            return False
        try:
            self._user_profile = client.current_user()
        except SpotifyError as e:
            if not e.is_auth_error:
                raise
            logger.warning("Spotify session expired, logging out")
            self.reset()
            return False
        return True

    def reset(self) -> None:
        """Log out: forget the token and profile, here and on disk."""
        self._user_token = None
        self._user_profile = None
        for key in (USER_TOKEN_KEY, USER_PROFILE_KEY):
            try:
                self._database.remove_item(key)
            except StorageError as e:
                logger.error(f"Could not clear stored Spotify login: {e}")
        self._notify()
