from pathlib import Path

import httpx
import pytest

from drive_oauth.config import DEFAULT_DRIVE_SCOPE, OAuthConfig
from drive_oauth.error_handler import ConfigurationError
from drive_oauth.timeout_config import TimeoutConfig
from drive_oauth.utils.paths import get_credential_path

BASE_ENV = {"DRIVE_CLIENT_ID": "cid", "DRIVE_CLIENT_SECRET": "secret"}


def test_from_env_defaults():
    config = OAuthConfig.from_env(BASE_ENV)

    assert config.client_id == "cid"
    assert config.callback_port == 3000
    assert config.redirect_uri == "http://127.0.0.1:3000/"
    assert config.scopes == [DEFAULT_DRIVE_SCOPE]
    assert config.consent_timeout == 45.0
    assert config.open_browser is True


def test_from_env_reads_all_settings(tmp_path):
    env = dict(
        BASE_ENV,
        DRIVE_OAUTH_HOST="localhost",
        DRIVE_OAUTH_PORT="8085",
        DRIVE_OAUTH_SCOPES="scope-a  scope-b",
        DRIVE_OAUTH_CONSENT_TIMEOUT="120",
        DRIVE_OAUTH_EXPIRY_BUFFER="60",
        DRIVE_CREDENTIAL_PATH=str(tmp_path / "creds.json"),
        DRIVE_NO_BROWSER="true",
    )

    config = OAuthConfig.from_env(env)

    assert config.redirect_uri == "http://localhost:8085/"
    assert config.scopes == ["scope-a", "scope-b"]
    assert config.consent_timeout == 120.0
    assert config.expiry_buffer_seconds == 60.0
    assert config.credential_path == tmp_path / "creds.json"
    assert config.open_browser is False


def test_invalid_numbers_fall_back_to_defaults():
    config = OAuthConfig.from_env(dict(BASE_ENV, DRIVE_OAUTH_PORT="http", DRIVE_OAUTH_CONSENT_TIMEOUT="soon"))

    assert config.callback_port == 3000
    assert config.consent_timeout == 45.0


def test_overrides_win_and_none_is_ignored(tmp_path):
    config = OAuthConfig.from_env(
        dict(BASE_ENV, DRIVE_OAUTH_PORT="8085"),
        callback_port=9000,
        credential_path=None,
        open_browser=None,
    )

    assert config.callback_port == 9000
    assert config.open_browser is True


@pytest.mark.parametrize("missing", ["DRIVE_CLIENT_ID", "DRIVE_CLIENT_SECRET"])
def test_missing_client_credentials(missing):
    env = dict(BASE_ENV)
    del env[missing]

    with pytest.raises(ConfigurationError) as excinfo:
        OAuthConfig.from_env(env)

    assert missing in str(excinfo.value)


def test_callback_path_is_normalized():
    config = OAuthConfig("cid", "secret", callback_path="oauth2callback")

    assert config.redirect_uri == "http://127.0.0.1:3000/oauth2callback"


def test_secret_is_not_in_repr():
    assert "secret-value" not in repr(OAuthConfig("cid", "secret-value"))


def test_default_credential_path_follows_xdg(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

    assert get_credential_path() == tmp_path / "drive_oauth" / "credentials.json"
    assert OAuthConfig("cid", "secret").credential_path == tmp_path / "drive_oauth" / "credentials.json"


def test_credential_path_expands_user(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))

    config = OAuthConfig("cid", "secret", credential_path=Path("~/creds.json"))

    assert config.credential_path == tmp_path / "creds.json"


def test_timeouts_from_env(monkeypatch):
    monkeypatch.setenv("TIMEOUT_CONNECT", "5")
    monkeypatch.setenv("TIMEOUT_READ_TOKEN", "12.5")
    monkeypatch.setenv("TIMEOUT_POOL", "not-a-number")

    timeout = TimeoutConfig.token_endpoint()

    assert isinstance(timeout, httpx.Timeout)
    assert timeout.connect == 5.0
    assert timeout.read == 12.5
    assert timeout.pool == 30.0
