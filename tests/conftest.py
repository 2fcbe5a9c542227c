"""
Shared fixtures for IDE Login tests.
"""
import json
import threading
from collections import deque
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest.mock import MagicMock

import pytest

from idelogin.auth.facades import LoggerFacade, UiFacade
from idelogin.auth.manager import LoginSessionManager
from idelogin.auth.models import TokenResponse, VerificationCodeHolder
from idelogin.auth.oauth import TOKEN_URI
from idelogin.auth.store import SQLiteOAuthDataStore
from idelogin.auth.userinfo import IdentityFormat

FAKE_OAUTH_SCOPES = frozenset({"oauth-scope-1", "oauth-scope-2"})

UNUSED_IDENTITY_URL = "http://127.0.0.1:9/unused"


class _IdentityHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        self.server.received_authorizations.append(self.headers.get("Authorization"))
        response = self.server.next_response()
        if response is None:
            # Drop the connection without answering
            self.close_connection = True
            return

        status, content_type, body = response
        data = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def log_message(self, format, *args):
        pass


class StubIdentityServer:
    """Local HTTP server answering identity queries from a queue of canned responses."""

    def __init__(self):
        self.httpd = ThreadingHTTPServer(("127.0.0.1", 0), _IdentityHandler)
        self.httpd.daemon_threads = True
        self.responses = deque()
        self.httpd.received_authorizations = []
        self.httpd.next_response = self._next_response
        self._thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)
        self._thread.start()

    @property
    def url(self) -> str:
        host, port = self.httpd.server_address[:2]
        return f"http://{host}:{port}/identity"

    @property
    def received_authorizations(self):
        return self.httpd.received_authorizations

    def _next_response(self):
        if not self.responses:
            return 500, "text/plain", "no response queued"
        return self.responses.popleft()

    def add_user_info(self, email, name=None, picture=None):
        payload = {"id": "1234", "email": email, "verified_email": True}
        if name is not None:
            payload["name"] = name
        if picture is not None:
            payload["picture"] = picture
        self.responses.append((200, "application/json", json.dumps(payload)))

    def add_email(self, email):
        self.responses.append((200, "text/plain", f"email={email}&isVerified=true"))

    def add_status(self, status):
        self.responses.append((status, "text/plain", "Server Error"))

    def add_body(self, body, content_type="text/plain"):
        self.responses.append((200, content_type, body))

    def add_connection_close(self):
        self.responses.append(None)

    def stop(self):
        self.httpd.shutdown()
        self.httpd.server_close()


class FakeOAuthClient:
    """Token exchange collaborator handing out numbered token pairs."""

    def __init__(self, logins=3):
        self.token_uri = TOKEN_URI
        self.responses = deque(
            TokenResponse(
                access_token=f"access-token-login-{i}",
                refresh_token=f"refresh-token-login-{i}",
                expires_in=3600,
            )
            for i in range(1, logins + 1)
        )
        self.exchanged = []
        self.refreshed = []
        self.exchange_error = None
        self.refresh_error = None
        self.refresh_response = TokenResponse(
            access_token="access-token-refreshed", expires_in=3600
        )

    def authorization_url(self, redirect_uri):
        return f"https://accounts.example.com/auth?redirect_uri={redirect_uri}"

    def exchange_code(self, code, redirect_uri):
        self.exchanged.append((code, redirect_uri))
        if self.exchange_error is not None:
            raise self.exchange_error
        return self.responses.popleft()

    def refresh(self, refresh_token):
        self.refreshed.append(refresh_token)
        if self.refresh_error is not None:
            raise self.refresh_error
        return self.refresh_response


@pytest.fixture
def identity_server():
    server = StubIdentityServer()
    yield server
    server.stop()


@pytest.fixture
def data_store(tmp_path):
    return SQLiteOAuthDataStore(tmp_path / "oauth.db", "test-node")


@pytest.fixture
def ui_facade():
    ui = MagicMock(spec=UiFacade)
    ui.obtain_verification_code_via_browser.return_value = "browser-code"
    ui.obtain_verification_code_via_local_server.return_value = VerificationCodeHolder(
        verification_code="local-code", redirect_url="http://localhost:8080/callback"
    )
    ui.ask_yes_or_no.return_value = True
    return ui


@pytest.fixture
def logger_facade():
    return MagicMock(spec=LoggerFacade)


@pytest.fixture
def oauth_client():
    return FakeOAuthClient()


@pytest.fixture
def make_manager(data_store, ui_facade, logger_facade, oauth_client):
    """Factory building managers that share one store and set of collaborators."""

    def _make(
        identity_url=UNUSED_IDENTITY_URL,
        identity_format=IdentityFormat.USER_INFO,
        store=None,
        scopes=FAKE_OAUTH_SCOPES,
    ):
        return LoginSessionManager(
            "client-id",
            "client-secret",
            scopes,
            store if store is not None else data_store,
            ui_facade,
            logger_facade,
            oauth_client=oauth_client,
            identity_url=identity_url,
            identity_format=identity_format,
        )

    return _make
