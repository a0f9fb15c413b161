# src/drive_oauth/config.py

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional, Union

from .error_handler import ConfigurationError
from .utils.paths import get_credential_path

lib_logger = logging.getLogger("drive_oauth")

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
DEFAULT_DRIVE_SCOPE = "https://www.googleapis.com/auth/drive"

# Must match the redirect URI registered with the provider, port included
DEFAULT_CALLBACK_HOST = "127.0.0.1"
DEFAULT_CALLBACK_PORT = 3000
DEFAULT_CALLBACK_PATH = "/"

DEFAULT_CONSENT_TIMEOUT_SECONDS = 45.0

ENV_PREFIX = "DRIVE"


@dataclass
class OAuthConfig:
    """
    Settings for the installed-application OAuth flow.

    Construct directly, or use OAuthConfig.from_env() to read
    DRIVE_* environment variables (typically loaded from .env by the CLI).
    """

    client_id: str
    client_secret: str = field(repr=False)
    auth_uri: str = GOOGLE_AUTH_URL
    token_uri: str = GOOGLE_TOKEN_URL
    callback_host: str = DEFAULT_CALLBACK_HOST
    callback_port: int = DEFAULT_CALLBACK_PORT
    callback_path: str = DEFAULT_CALLBACK_PATH
    scopes: List[str] = field(default_factory=lambda: [DEFAULT_DRIVE_SCOPE])
    consent_timeout: float = DEFAULT_CONSENT_TIMEOUT_SECONDS
    expiry_buffer_seconds: float = 0.0
    credential_path: Path = field(default_factory=get_credential_path)
    open_browser: bool = True

    def __post_init__(self):
        if not self.client_id:
            raise ConfigurationError(
                f"OAuth client id is missing. Set {ENV_PREFIX}_CLIENT_ID."
            )
        if not self.client_secret:
            raise ConfigurationError(
                f"OAuth client secret is missing. Set {ENV_PREFIX}_CLIENT_SECRET."
            )
        if not self.callback_path.startswith("/"):
            self.callback_path = "/" + self.callback_path
        self.credential_path = Path(self.credential_path).expanduser()

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.callback_host}:{self.callback_port}{self.callback_path}"

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        **overrides,
    ) -> "OAuthConfig":
        """
        Build a config from DRIVE_* environment variables.

        Recognized variables:
        - DRIVE_CLIENT_ID, DRIVE_CLIENT_SECRET (required)
        - DRIVE_OAUTH_HOST, DRIVE_OAUTH_PORT (callback listener address)
        - DRIVE_OAUTH_SCOPES (space-separated)
        - DRIVE_OAUTH_CONSENT_TIMEOUT (seconds to wait for the browser)
        - DRIVE_OAUTH_EXPIRY_BUFFER (seconds before expiry to refresh early)
        - DRIVE_CREDENTIAL_PATH (credential file location)
        - DRIVE_NO_BROWSER (any true-ish value disables browser auto-open)

        Args:
            env: Mapping to read from (defaults to os.environ)
            **overrides: Explicit values that win over the environment
                (None values are ignored)

        Raises:
            ConfigurationError: If the client id or secret is missing
        """
        env = os.environ if env is None else env

        values = {
            "client_id": env.get(f"{ENV_PREFIX}_CLIENT_ID", ""),
            "client_secret": env.get(f"{ENV_PREFIX}_CLIENT_SECRET", ""),
            "callback_host": env.get(
                f"{ENV_PREFIX}_OAUTH_HOST", DEFAULT_CALLBACK_HOST
            ),
            "callback_port": _env_int(
                env, f"{ENV_PREFIX}_OAUTH_PORT", DEFAULT_CALLBACK_PORT
            ),
            "consent_timeout": _env_float(
                env,
                f"{ENV_PREFIX}_OAUTH_CONSENT_TIMEOUT",
                DEFAULT_CONSENT_TIMEOUT_SECONDS,
            ),
            "expiry_buffer_seconds": _env_float(
                env, f"{ENV_PREFIX}_OAUTH_EXPIRY_BUFFER", 0.0
            ),
            "open_browser": not _env_flag(env, f"{ENV_PREFIX}_NO_BROWSER"),
        }

        scopes = env.get(f"{ENV_PREFIX}_OAUTH_SCOPES", "").split()
        if scopes:
            values["scopes"] = scopes

        credential_path = env.get(f"{ENV_PREFIX}_CREDENTIAL_PATH")
        if credential_path:
            values["credential_path"] = Path(credential_path)

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    value = env.get(key)
    if value:
        try:
            return int(value)
        except ValueError:
            lib_logger.warning(f"Invalid {key} value: {value}, using default {default}")
    return default


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    value = env.get(key)
    if value:
        try:
            return float(value)
        except ValueError:
            lib_logger.warning(f"Invalid {key} value: {value}, using default {default}")
    return default


def _env_flag(env: Mapping[str, str], key: str) -> bool:
    return env.get(key, "").strip().lower() in ("1", "true", "yes", "on")


def resolve_credential_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Expand a user-supplied credential path, or fall back to the default."""
    return Path(path).expanduser() if path else get_credential_path()
