from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest
import requests
from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import InvalidGrantError

from idelogin.auth.exceptions import NetworkError
from idelogin.auth.oauth import OOB_REDIRECT_URI, GoogleOAuthClient


@pytest.fixture
def client():
    return GoogleOAuthClient("client-id", "client-secret", ["scope-b", "scope-a"])


def test_authorization_url(client):
    url = client.authorization_url(OOB_REDIRECT_URI)

    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == client.auth_uri
    assert query["client_id"] == ["client-id"]
    assert query["redirect_uri"] == [OOB_REDIRECT_URI]
    assert query["scope"] == ["scope-a scope-b"]
    assert query["access_type"] == ["offline"]
    assert query["prompt"] == ["consent"]
    assert "code_challenge" not in query


def test_exchange_code(client, mocker):
    fetch_token = mocker.patch.object(Flow, "fetch_token", return_value={
        "access_token": "new-access",
        "refresh_token": "new-refresh",
        "expires_in": 3599,
        "token_type": "Bearer",
    })

    response = client.exchange_code("verification-code", "http://localhost:8080/")

    fetch_token.assert_called_once_with(code="verification-code")
    assert response.access_token == "new-access"
    assert response.refresh_token == "new-refresh"
    assert response.expires_in == 3599


@pytest.mark.parametrize("error", [
    requests.ConnectionError("connection refused"),
    InvalidGrantError("Bad Request"),
])
def test_exchange_code_failure(client, mocker, error):
    mocker.patch.object(Flow, "fetch_token", side_effect=error)

    with pytest.raises(NetworkError) as exc_info:
        client.exchange_code("verification-code")

    assert exc_info.value.original_error is error


def test_refresh(client, mocker):
    def fake_refresh(credentials, request):
        credentials.token = "refreshed-access"
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        credentials.expiry = now + timedelta(seconds=3600)

    mocker.patch.object(Credentials, "refresh", autospec=True, side_effect=fake_refresh)

    response = client.refresh("refresh-token")

    assert response.access_token == "refreshed-access"
    assert response.refresh_token == "refresh-token"
    assert 3590 <= response.expires_in <= 3600


def test_refresh_failure(client, mocker):
    error = RefreshError("invalid_grant: Token has been expired or revoked.")
    mocker.patch.object(Credentials, "refresh", autospec=True, side_effect=error)

    with pytest.raises(NetworkError) as exc_info:
        client.refresh("refresh-token")

    assert exc_info.value.original_error is error


def test_refresh_without_refresh_token(client):
    with pytest.raises(NetworkError):
        client.refresh(None)
