import io
import time

import pytest
from rich.console import Console
from typer.testing import CliRunner

from idelogin.auth.models import OAuthRecord
from idelogin.auth.store import SQLiteOAuthDataStore
from idelogin.cli import app
from idelogin.config import LoginSettings, Settings
from idelogin.console import ConsoleUiFacade

runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    for name in ("CLIENT_ID", "CLIENT_SECRET", "SCOPES", "IDE_LOGIN_LOGIN__CLIENT_ID"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "oauth.db"


@pytest.fixture
def config_file(tmp_path, store_path):
    settings = Settings(
        login=LoginSettings(
            client_id="cli-client-id",
            client_secret="cli-secret",
            scopes=["scope1"],
            store_path=store_path,
            store_namespace="cli-test",
        )
    )
    path = tmp_path / "settings.json"
    settings.save_to_json(path)
    return path


@pytest.fixture
def signed_in(store_path):
    store = SQLiteOAuthDataStore(store_path, "cli-test")
    for email in ("a@x.com", "b@x.com"):
        store.save(OAuthRecord(
            email=email,
            access_token=f"access-{email}",
            refresh_token=f"refresh-{email}",
            access_token_expiry_time=int(time.time()) + 3600,
            scopes=frozenset({"scope1"}),
        ))
    return store


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert "IDE Login" in result.stdout


def test_accounts_when_logged_out(config_file):
    result = runner.invoke(app, ["accounts", "--config", str(config_file)])

    assert result.exit_code == 0
    assert "Not signed in" in result.stdout


def test_accounts(config_file, signed_in):
    result = runner.invoke(app, ["accounts", "--config", str(config_file)])

    assert result.exit_code == 0
    assert "a@x.com" in result.stdout
    assert "b@x.com" in result.stdout


def test_switch(config_file, signed_in):
    result = runner.invoke(app, ["switch", "a@x.com", "--config", str(config_file)])

    assert result.exit_code == 0
    assert [r.email for r in signed_in.load_all()][-1] == "a@x.com"


def test_switch_unknown_account(config_file, signed_in):
    result = runner.invoke(app, ["switch", "nobody@x.com", "--config", str(config_file)])

    assert result.exit_code == 1


def test_token(config_file, signed_in):
    result = runner.invoke(app, ["token", "--config", str(config_file)])

    assert result.exit_code == 0
    assert "access-b@x.com" in result.stdout


def test_logout(config_file, signed_in):
    result = runner.invoke(app, ["logout", "--yes", "--config", str(config_file)])

    assert result.exit_code == 0
    assert signed_in.load_all() == []


def test_logout_account(config_file, signed_in):
    result = runner.invoke(
        app, ["logout-account", "b@x.com", "--yes", "--config", str(config_file)]
    )

    assert result.exit_code == 0
    assert [r.email for r in signed_in.load_all()] == ["a@x.com"]


def test_missing_client_id(tmp_path):
    path = tmp_path / "empty.json"
    Settings(login=LoginSettings(store_path=tmp_path / "oauth.db")).save_to_json(path)

    result = runner.invoke(app, ["login", "--config", str(path)])

    assert result.exit_code == 1


class TestConsoleUiFacade:
    """Test cases for the terminal UI."""

    @pytest.fixture
    def ui(self):
        return ConsoleUiFacade(Console(file=io.StringIO()), open_browser=False)

    def test_browser_code_is_stripped(self, ui, mocker):
        mocker.patch("idelogin.console.typer.prompt", return_value="  4/abc-code \n")

        assert ui.obtain_verification_code_via_browser("Title", "https://auth") == "4/abc-code"

    def test_empty_browser_code_cancels(self, ui, mocker):
        mocker.patch("idelogin.console.typer.prompt", return_value="")

        assert ui.obtain_verification_code_via_browser(None, "https://auth") is None

    def test_opens_browser(self, mocker):
        open_url = mocker.patch("idelogin.console.webbrowser.open")
        mocker.patch("idelogin.console.typer.prompt", return_value="code")
        ui = ConsoleUiFacade(Console(file=io.StringIO()))

        ui.obtain_verification_code_via_browser(None, "https://auth")

        open_url.assert_called_once_with("https://auth")

    def test_local_server_unavailable(self, ui):
        assert ui.obtain_verification_code_via_local_server("Title") is None

    def test_ask_yes_or_no(self, ui, mocker):
        confirm = mocker.patch("idelogin.console.typer.confirm", return_value=True)

        assert ui.ask_yes_or_no("Sign out?", "Are you sure?") is True
        confirm.assert_called_once_with("Are you sure?", default=False)
