"""
Pytest configuration and fixtures for the test suite.
"""
import asyncio
import io
import os
import sys

import pytest
from rich.console import Console

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from drive_oauth.config import OAuthConfig
from drive_oauth.credential_store import CredentialRecord, CredentialStore
from drive_oauth.token_exchanger import TokenGrant

FIXED_NOW = 1_700_000_000.0


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an async test"
    )


@pytest.fixture
def credential_path(tmp_path):
    """Credential file location inside an isolated config dir."""
    return tmp_path / "config" / "drive_oauth" / "credentials.json"


@pytest.fixture
def oauth_config(credential_path):
    return OAuthConfig(
        client_id="test-client-id",
        client_secret="test-client-secret",
        credential_path=credential_path,
        consent_timeout=0.2,
    )


@pytest.fixture
def quiet_console():
    """A rich console that writes nowhere."""
    return Console(file=io.StringIO(), force_terminal=False)


class RecordingStore(CredentialStore):
    """CredentialStore that records every load/save and can start pre-seeded."""

    def __init__(self, path, events, initial=None):
        super().__init__(path)
        self.events = events
        self.saved = []
        if initial is not None:
            super().save(initial)

    def load(self):
        self.events.append("load")
        return super().load()

    def save(self, record):
        self.events.append("save")
        self.saved.append(record)
        super().save(record)


class FakeExchanger:
    """Token endpoint double; records calls in the shared event log."""

    def __init__(self, events, exchange_grant=None, refresh_grant=None,
                 exchange_error=None, refresh_error=None):
        self.events = events
        self.exchange_grant = exchange_grant or TokenGrant(
            access_token="access-1", refresh_token="refresh-1", expires_in=3600
        )
        self.refresh_grant = refresh_grant or TokenGrant(
            access_token="access-2", expires_in=3600
        )
        self.exchange_error = exchange_error
        self.refresh_error = refresh_error
        self.exchange_calls = []
        self.refresh_calls = []

    async def exchange_code(self, client_id, client_secret, code, redirect_uri):
        self.events.append("exchange")
        self.exchange_calls.append((client_id, client_secret, code, redirect_uri))
        if self.exchange_error:
            raise self.exchange_error
        return self.exchange_grant

    async def refresh(self, client_id, client_secret, refresh_token):
        self.events.append("refresh")
        self.refresh_calls.append((client_id, client_secret, refresh_token))
        if self.refresh_error:
            raise self.refresh_error
        return self.refresh_grant


class FakeListener:
    """
    Callback listener double.

    code/error are delivered immediately; with neither, the listener never
    delivers anything.
    """

    def __init__(self, events, code=None, error=None):
        self.events = events
        self.code = code
        self.error = error
        self.started = False
        self.stopped = False

    async def start(self):
        self.events.append("listen")
        self.started = True

    async def stop(self):
        self.stopped = True

    async def wait_for_callback(self):
        if self.error is not None:
            raise self.error
        if self.code is not None:
            self.events.append("callback")
            return self.code
        await asyncio.Event().wait()


class FakeLauncher:
    def __init__(self, events, error=None):
        self.events = events
        self.error = error
        self.urls = []

    def open(self, url):
        self.events.append("browser")
        self.urls.append(url)
        if self.error:
            raise self.error


@pytest.fixture
def events():
    """Shared, ordered log of collaborator calls."""
    return []


@pytest.fixture
def valid_record():
    return CredentialRecord(
        access_token="live-token",
        expires_at=FIXED_NOW + 1800,
        refresh_token="refresh-0",
        granted_scopes=["https://www.googleapis.com/auth/drive"],
    )
