"""
Flask application exposing the token exchange endpoints.

Routes:
    POST /token-exchange/authorization-code
        body {"code": "..."}
        200 {"accessToken": "..."}
        400 {"error": "..."}   missing code, or Spotify rejected it
        500 {"error": "..."}   missing server credentials, or unexpected

    POST /token-exchange/client-credentials
        200 {"accessToken": "...", "expiresInSeconds": 3600}
        400 / 500 as above

Server credentials are re-read from the environment on every request
unless an exchange is injected, so a missing variable fails each request
with "Missing Spotify credentials" instead of preventing startup.

Usage:
    from top_albums.gateway import create_app

    app = create_app()
    app.run(host="127.0.0.1", port=5000)
"""

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from top_albums.core.config import GatewayCredentials
from top_albums.core.exceptions import GatewayError
from top_albums.core.logger import get_logger
from top_albums.gateway.exchange import TokenExchange

logger = get_logger(__name__)


def _exchange_from_env() -> TokenExchange:
    return TokenExchange(GatewayCredentials.from_env(load_env_file=False))


def create_app(exchange: TokenExchange | None = None) -> Flask:
    """
    Build the gateway application.

    Args:
        exchange: Fixed TokenExchange to use (tests). When None, one is
                  built per request from the environment, after loading
                  a .env file once.
    """
    app = Flask(__name__)

    if exchange is None:
        load_dotenv()
        get_exchange = _exchange_from_env
    else:
        def get_exchange() -> TokenExchange:
            return exchange

    @app.errorhandler(GatewayError)
    def _gateway_error(error: GatewayError):
        return jsonify({"error": error.message}), error.status_code

    @app.errorhandler(Exception)
    def _unexpected_error(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.exception(f"Unexpected gateway error: {error}")
        return jsonify({"error": "Internal server error"}), 500

    @app.post("/token-exchange/authorization-code")
    def authorization_code():
        payload = request.get_json(silent=True) or {}
        code = payload.get("code") if isinstance(payload, dict) else None
        if not code or not isinstance(code, str):
            return jsonify({"error": "Code is required"}), 400

        grant = get_exchange().exchange_authorization_code(code)
        return jsonify({"accessToken": grant.access_token})

    @app.post("/token-exchange/client-credentials")
    def client_credentials():
        grant = get_exchange().issue_client_credentials_token()
        return jsonify({"accessToken": grant.access_token, "expiresInSeconds": grant.expires_in})

    return app
