# src/drive_oauth/error_handler.py

import json
from typing import Optional, Tuple

import httpx


class DriveAuthError(Exception):
    """
    Base class for every failure raised by the token lifecycle manager.

    Attributes:
        message: Human-readable message describing what failed and why
    """

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


class ConfigurationError(DriveAuthError):
    """Raised when required OAuth client settings are missing or unusable."""

    pass


class StorageError(DriveAuthError):
    """
    Raised when the credential file or its directory cannot be created,
    read or written.

    Attributes:
        path: Path of the credential file involved
        message: Human-readable message about the error
    """

    def __init__(self, path: str, message: str = ""):
        self.path = str(path)
        super().__init__(message or f"Credential storage failed for '{self.path}'")


class BrowserLaunchError(DriveAuthError):
    """
    Raised when the system browser cannot be opened for the consent page.

    Attributes:
        url: The authorization URL that could not be opened
        message: Human-readable message about the error
    """

    def __init__(self, url: str, message: str = ""):
        self.url = url
        super().__init__(
            message
            or "Failed to open the consent page in the browser. "
            f"Open this URL manually: {url}"
        )


class CallbackListenerError(DriveAuthError):
    """
    Raised when the local redirect listener cannot be started
    (e.g. the registered callback port is already in use).
    """

    pass


class ConsentTimeout(DriveAuthError):
    """
    Raised when no OAuth callback arrives within the consent window.

    Attributes:
        timeout: The bound (seconds) that expired
        message: Human-readable message about the error
    """

    def __init__(self, timeout: float, message: str = ""):
        self.timeout = timeout
        super().__init__(
            message
            or f"No response from the consent page within {timeout:g}s. "
            "Approve access in the browser faster, or run the command again."
        )


class ConsentDenied(DriveAuthError):
    """
    Raised when the OAuth callback carries an error instead of a code.

    Attributes:
        reason: The provider's `error` value (e.g. "access_denied")
        message: Human-readable message about the error
    """

    def __init__(self, reason: str, message: str = ""):
        self.reason = reason
        super().__init__(message or f"Consent was not granted: {reason}")


class TokenEndpointError(DriveAuthError):
    """
    Base class for failures talking to the provider's token endpoint.

    Attributes:
        status_code: HTTP status of the response, if one was received
        error: The provider's OAuth error code (e.g. "invalid_grant"), if any
        message: Human-readable message about the error
    """

    def __init__(
        self,
        message: str = "",
        status_code: Optional[int] = None,
        error: Optional[str] = None,
    ):
        self.status_code = status_code
        self.error = error
        super().__init__(message)


class TokenExchangeError(TokenEndpointError):
    """Raised when the authorization code cannot be exchanged for tokens."""

    pass


class RefreshError(TokenEndpointError):
    """Raised when the access token cannot be refreshed."""

    pass


def describe_token_error(
    response: httpx.Response,
) -> Tuple[Optional[str], Optional[str]]:
    """
    Pull the OAuth error code and description out of a token endpoint reply.

    Returns:
        (error, description), either of which may be None
    """
    try:
        body = response.json()
    except (json.JSONDecodeError, ValueError):
        text = response.text.strip()
        return None, text[:200] or None

    if not isinstance(body, dict):
        return None, None

    error = body.get("error")
    # Some endpoints nest the error object ({"error": {"message": ...}})
    if isinstance(error, dict):
        return error.get("status"), error.get("message")
    return error, body.get("error_description")
