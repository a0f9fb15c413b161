# src/drive_oauth/token_exchanger.py

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type

import httpx

from .config import GOOGLE_TOKEN_URL
from .error_handler import (
    RefreshError,
    TokenEndpointError,
    TokenExchangeError,
    describe_token_error,
)
from .timeout_config import TimeoutConfig

lib_logger = logging.getLogger("drive_oauth")

# Upper bound for expires_in (about 31 years); larger values are not a real lifetime
MAX_EXPIRES_IN = 10**9


@dataclass
class TokenGrant:
    """
    A successful token endpoint reply.

    refresh_token is None when the provider did not issue a new one
    (the usual case for the refresh_token grant).
    """

    access_token: str = field(repr=False)
    expires_in: int
    refresh_token: Optional[str] = field(default=None, repr=False)


class TokenExchanger:
    """
    Talks to the provider's token endpoint.

    Both operations POST form-encoded fields and parse a JSON reply. Neither
    retries: a failure is raised to the caller as TokenExchangeError or
    RefreshError.
    """

    def __init__(
        self,
        token_uri: str = GOOGLE_TOKEN_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[httpx.Timeout] = None,
    ):
        self.token_uri = token_uri
        self._client = client
        self._timeout = timeout or TimeoutConfig.token_endpoint()

    async def exchange_code(
        self, client_id: str, client_secret: str, code: str, redirect_uri: str
    ) -> TokenGrant:
        """
        Exchange an authorization code for access and refresh tokens.

        Raises:
            TokenExchangeError: On transport failure, non-2xx status, or a
                reply missing access_token, refresh_token or expires_in
        """
        lib_logger.info("Attempting to exchange authorization code for tokens...")
        data = await self._post(
            {
                "code": code.strip(),
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            },
            TokenExchangeError,
            "Code exchange",
        )
        return TokenGrant(
            access_token=_require_str(data, "access_token", TokenExchangeError),
            refresh_token=_require_str(data, "refresh_token", TokenExchangeError),
            expires_in=_require_int(data, "expires_in", TokenExchangeError),
        )

    async def refresh(
        self, client_id: str, client_secret: str, refresh_token: str
    ) -> TokenGrant:
        """
        Mint a new access token from a refresh token.

        Raises:
            RefreshError: On transport failure, non-2xx status, or a reply
                missing access_token or expires_in
        """
        lib_logger.debug("Refreshing OAuth access token...")
        data = await self._post(
            {
                "client_id": client_id,
                "client_secret": client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
            RefreshError,
            "Token refresh",
        )

        # Google rarely rotates refresh tokens, but keep a new one when it does
        new_refresh_token = data.get("refresh_token")
        if new_refresh_token is not None and (
            not isinstance(new_refresh_token, str) or not new_refresh_token
        ):
            raise RefreshError("Token refresh reply has an invalid 'refresh_token'")

        return TokenGrant(
            access_token=_require_str(data, "access_token", RefreshError),
            refresh_token=new_refresh_token,
            expires_in=_require_int(data, "expires_in", RefreshError),
        )

    async def _post(
        self,
        form: Dict[str, str],
        error_cls: Type[TokenEndpointError],
        operation: str,
    ) -> Dict[str, Any]:
        headers = {"Accept": "application/json"}
        try:
            if self._client is not None:
                response = await self._client.post(
                    self.token_uri, data=form, headers=headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(
                        self.token_uri, data=form, headers=headers
                    )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            error, description = describe_token_error(e.response)
            detail = ": ".join(part for part in (error, description) if part)
            lib_logger.error(
                f"{operation} failed: HTTP {status_code}" + (f" {detail}" if detail else "")
            )
            message = f"{operation} failed (HTTP {status_code})"
            if detail:
                message += f": {detail}"
            if error == "invalid_grant":
                message += ". The grant is no longer valid; delete the credential file to sign in again."
            raise error_cls(message, status_code=status_code, error=error) from e
        except httpx.RequestError as e:
            lib_logger.error(f"{operation} failed: network error: {e}")
            raise error_cls(
                f"{operation} failed: could not reach {self.token_uri} ({e.__class__.__name__}: {e})"
            ) from e

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise error_cls(
                f"{operation} failed: token endpoint returned invalid JSON",
                status_code=response.status_code,
            ) from e

        if not isinstance(data, dict):
            raise error_cls(
                f"{operation} failed: expected a JSON object from the token endpoint",
                status_code=response.status_code,
            )
        return data


def _require_str(
    data: Dict[str, Any], key: str, error_cls: Type[TokenEndpointError]
) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise error_cls(f"Token endpoint reply is missing '{key}'")
    return value


def _require_int(
    data: Dict[str, Any], key: str, error_cls: Type[TokenEndpointError]
) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise error_cls(f"Token endpoint reply is missing integer '{key}'")
    if value <= 0:
        raise error_cls(f"Token endpoint reply has non-positive '{key}': {value}")
    if value > MAX_EXPIRES_IN:
        raise error_cls(f"Token endpoint reply has out-of-range '{key}'")
    return value
