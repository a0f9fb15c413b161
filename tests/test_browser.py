import webbrowser

import pytest

from drive_oauth.browser import BrowserLauncher
from drive_oauth.error_handler import BrowserLaunchError
from drive_oauth.utils import headless_detection
from drive_oauth.utils.headless_detection import headless_indicators, is_headless_environment

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth?client_id=x"


def test_open_success(monkeypatch):
    opened = []
    monkeypatch.setattr(webbrowser, "open", lambda url: opened.append(url) or True)

    BrowserLauncher().open(AUTH_URL)

    assert opened == [AUTH_URL]


def test_no_browser_available(monkeypatch):
    monkeypatch.setattr(webbrowser, "open", lambda url: False)

    with pytest.raises(BrowserLaunchError) as excinfo:
        BrowserLauncher().open(AUTH_URL)

    assert excinfo.value.url == AUTH_URL
    assert AUTH_URL in str(excinfo.value)


def test_browser_error(monkeypatch):
    def broken(url):
        raise webbrowser.Error("could not locate runnable browser")

    monkeypatch.setattr(webbrowser, "open", broken)

    with pytest.raises(BrowserLaunchError):
        BrowserLauncher().open(AUTH_URL)


@pytest.fixture
def clean_env(monkeypatch):
    for var in ("SSH_CONNECTION", "SSH_CLIENT", "SSH_TTY", *headless_detection.CI_ENV_VARS):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("DISPLAY", ":0")
    monkeypatch.setattr(headless_detection, "CONTAINER_MARKERS", ())


def test_desktop_is_not_headless(clean_env):
    assert headless_indicators() == []
    assert is_headless_environment() is False


def test_ssh_session_is_headless(clean_env, monkeypatch):
    monkeypatch.setenv("SSH_CONNECTION", "10.0.0.1 50000 10.0.0.2 22")

    assert "SSH connection detected" in headless_indicators()
    assert is_headless_environment() is True


def test_ci_is_headless(clean_env, monkeypatch):
    monkeypatch.setenv("GITHUB_ACTIONS", "true")

    assert headless_indicators() == ["CI environment detected (GITHUB_ACTIONS)"]
