"""
OAuth 2.0 client for IDE Login.

Thin boundary around google-auth-oauthlib and google-auth: builds the
authorization URL, exchanges verification codes for tokens and refreshes
access tokens. Protocol details stay in those libraries.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

import google.auth.exceptions
import requests
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

from idelogin.auth.exceptions import NetworkError
from idelogin.auth.models import TokenResponse

# Configure logger
logger = logging.getLogger(__name__)

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"

# Redirect for the copy-and-paste flow where the browser displays the code
OOB_REDIRECT_URI = "urn:ietf:wg:oauth:2.0:oob"


class GoogleOAuthClient:
    """
    Authorization code and refresh token grants against Google's OAuth server.

    All methods block; callers decide which thread runs them.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        scopes: Iterable[str],
        auth_uri: str = AUTH_URI,
        token_uri: str = TOKEN_URI,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.scopes = sorted(scopes)
        self.auth_uri = auth_uri
        self.token_uri = token_uri

    def _client_config(self) -> Dict[str, Any]:
        return {
            "installed": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": self.auth_uri,
                "token_uri": self.token_uri,
            }
        }

    def _create_flow(self, redirect_uri: str) -> Flow:
        # The code may be exchanged by a different Flow than the one that
        # built the URL, so no PKCE verifier is generated.
        return Flow.from_client_config(
            self._client_config(),
            scopes=self.scopes,
            redirect_uri=redirect_uri,
            autogenerate_code_verifier=False,
        )

    def authorization_url(self, redirect_uri: str = OOB_REDIRECT_URI) -> str:
        """Build the URL the user opens to grant access."""
        url, _ = self._create_flow(redirect_uri).authorization_url(
            access_type="offline", prompt="consent"
        )
        return url

    def exchange_code(self, code: str, redirect_uri: str = OOB_REDIRECT_URI) -> TokenResponse:
        """
        Exchange a verification code for an access/refresh token pair.

        Raises:
            NetworkError: If the token request fails
        """
        flow = self._create_flow(redirect_uri)
        try:
            token = flow.fetch_token(code=code)
        # oauthlib raises a bare Warning when the granted scope differs
        except (OAuth2Error, requests.RequestException, ValueError, Warning) as e:
            logger.warning(f"Token exchange failed: {e}")
            raise NetworkError(f"Could not exchange verification code: {e}", e)

        logger.debug("Exchanged verification code for tokens")
        return TokenResponse(
            access_token=token["access_token"],
            refresh_token=token.get("refresh_token"),
            expires_in=token.get("expires_in"),
        )

    def refresh(self, refresh_token: Optional[str]) -> TokenResponse:
        """
        Get a new access token from a refresh token.

        Raises:
            NetworkError: If there is no refresh token or the refresh fails
        """
        if not refresh_token:
            raise NetworkError("No refresh token available")

        credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=self.token_uri,
            client_id=self.client_id,
            client_secret=self.client_secret,
        )
        try:
            credentials.refresh(Request())
        except google.auth.exceptions.GoogleAuthError as e:
            logger.warning(f"Token refresh failed: {e}")
            raise NetworkError(f"Could not refresh access token: {e}", e)

        expires_in = None
        if credentials.expiry:
            # google-auth keeps expiry as a naive UTC datetime
            now = datetime.now(timezone.utc).replace(tzinfo=None)
            expires_in = max(0, int((credentials.expiry - now).total_seconds()))

        return TokenResponse(
            access_token=credentials.token,
            refresh_token=credentials.refresh_token or refresh_token,
            expires_in=expires_in,
        )
