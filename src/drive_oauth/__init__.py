# src/drive_oauth/__init__.py

from .config import OAuthConfig
from .credential_store import CredentialRecord, CredentialStore
from .error_handler import (
    BrowserLaunchError,
    CallbackListenerError,
    ConfigurationError,
    ConsentDenied,
    ConsentTimeout,
    DriveAuthError,
    RefreshError,
    StorageError,
    TokenEndpointError,
    TokenExchangeError,
)
from .token_manager import TokenManager
from .drive_client import DriveClient

__all__ = [
    "OAuthConfig",
    "CredentialRecord",
    "CredentialStore",
    "TokenManager",
    "DriveClient",
    "DriveAuthError",
    "ConfigurationError",
    "StorageError",
    "BrowserLaunchError",
    "CallbackListenerError",
    "ConsentTimeout",
    "ConsentDenied",
    "TokenEndpointError",
    "TokenExchangeError",
    "RefreshError",
]
