# src/drive_oauth/token_manager.py

import asyncio
import logging
import math
import time
from dataclasses import replace
from typing import Callable, Dict, Optional
from urllib.parse import urlencode

from rich.console import Console
from rich.markup import escape as rich_escape
from rich.panel import Panel
from rich.text import Text

from .browser import BrowserLauncher
from .callback_listener import OAuthCallbackServer
from .config import OAuthConfig
from .credential_store import CredentialRecord, CredentialStore
from .error_handler import (
    ConsentTimeout,
    RefreshError,
    TokenEndpointError,
    TokenExchangeError,
)
from .token_exchanger import TokenExchanger, TokenGrant
from .utils.headless_detection import is_headless_environment

lib_logger = logging.getLogger("drive_oauth")

console = Console()


class TokenManager:
    """
    Keeps the local user's OAuth credential valid.

    ensure_valid() walks the record through three corrective steps, in order,
    each only when its condition holds:

        1. no refresh token and no authorization code -> prompt for consent
        2. no refresh token                           -> exchange the code
        3. no access token, or it has expired         -> refresh it

    Every step builds a new record, persists it, and only then swaps it in,
    so a failed step leaves both the file and the in-memory record as they
    were. Any failure aborts the call; nothing is retried internally.

    The authorization code is single-use: it is dropped from the record in
    the same write that stores the exchanged tokens.
    """

    def __init__(
        self,
        config: OAuthConfig,
        store: Optional[CredentialStore] = None,
        exchanger: Optional[TokenExchanger] = None,
        launcher: Optional[BrowserLauncher] = None,
        listener_factory: Optional[Callable[[], OAuthCallbackServer]] = None,
        headless_check: Callable[[], bool] = is_headless_environment,
        clock: Callable[[], float] = time.time,
        console: Console = console,
    ):
        self.config = config
        self.store = store or CredentialStore(config.credential_path)
        self.exchanger = exchanger or TokenExchanger(config.token_uri)
        self.launcher = launcher or BrowserLauncher()
        self._listener_factory = listener_factory or (
            lambda: OAuthCallbackServer(
                config.callback_host, config.callback_port, config.callback_path
            )
        )
        self._headless_check = headless_check
        self._clock = clock
        self._console = console
        self._record: Optional[CredentialRecord] = None
        self._lock = asyncio.Lock()

    @property
    def record(self) -> Optional[CredentialRecord]:
        """The in-memory record, or None before the first ensure_valid()."""
        return self._record

    def build_authorization_url(self) -> str:
        return f"{self.config.auth_uri}?" + urlencode(
            {
                "client_id": self.config.client_id,
                "redirect_uri": self.config.redirect_uri,
                "response_type": "code",
                "scope": " ".join(self.config.scopes),
                # Needed for Google to issue a refresh token
                "access_type": "offline",
                "prompt": "consent",
            }
        )

    async def ensure_valid(self) -> CredentialRecord:
        """
        Bring the credential to a valid, unexpired state and return it.

        An already-valid record costs no network calls and no writes.

        Raises:
            StorageError, CallbackListenerError, BrowserLaunchError,
            ConsentTimeout, ConsentDenied, TokenExchangeError, RefreshError
        """
        async with self._lock:
            if self._record is None:
                self._record = self.store.load()

            if not self._record.refresh_token:
                if not self._record.authorization_code:
                    lib_logger.debug("No consent recorded, prompting user")
                    await self._prompt_user_consent()

                lib_logger.debug("No refresh token, exchanging authorization code")
                await self._exchange_code()

            if not self._record.is_valid(
                self._clock(), self.config.expiry_buffer_seconds
            ):
                lib_logger.debug("Access token expired, refreshing")
                await self._refresh_access_token()

            return self._record

    async def get_access_token(self) -> str:
        """Return a bearer token that has not expired."""
        record = await self.ensure_valid()
        return record.access_token

    async def get_auth_header(self) -> Dict[str, str]:
        token = await self.get_access_token()
        return {"Authorization": f"Bearer {token}"}

    async def _prompt_user_consent(self):
        """
        Run the interactive consent step.

        The listener is started before the browser opens so the redirect
        cannot arrive first, and it is always stopped before returning.
        """
        auth_url = self.build_authorization_url()
        manual = not self.config.open_browser or self._headless_check()

        listener = self._listener_factory()
        await listener.start()
        try:
            self._show_consent_instructions(auth_url, manual)
            if not manual:
                self.launcher.open(auth_url)

            timeout = self.config.consent_timeout
            with self._console.status(
                "[bold green]Waiting for you to complete authentication in the browser...[/bold green]",
                spinner="dots",
            ):
                try:
                    code = await asyncio.wait_for(
                        listener.wait_for_callback(), timeout=timeout
                    )
                except asyncio.TimeoutError:
                    lib_logger.error(
                        f"No OAuth callback within {timeout:g}s; giving up on consent"
                    )
                    raise ConsentTimeout(timeout) from None
        finally:
            await listener.stop()

        self._commit(
            replace(
                self._record,
                authorization_code=code,
                granted_scopes=list(self.config.scopes),
            )
        )
        lib_logger.info("User consent received.")

    async def _exchange_code(self):
        try:
            grant = await self.exchanger.exchange_code(
                self.config.client_id,
                self.config.client_secret,
                self._record.authorization_code,
                self.config.redirect_uri,
            )
        except TokenEndpointError as e:
            if e.error == "invalid_grant":
                # A rejected code can never succeed; forget it so the next run asks again
                self._commit(replace(self._record, authorization_code=""))
            raise

        self._commit(
            replace(
                self._record,
                access_token=grant.access_token,
                refresh_token=grant.refresh_token,
                expires_at=self._expires_at(grant, TokenExchangeError),
                authorization_code="",
            )
        )
        lib_logger.info("OAuth tokens acquired.")

    async def _refresh_access_token(self):
        try:
            grant = await self.exchanger.refresh(
                self.config.client_id,
                self.config.client_secret,
                self._record.refresh_token,
            )
        except TokenEndpointError as e:
            if e.error == "invalid_grant":
                # Revoked or expired refresh token; only a new consent can fix it
                lib_logger.warning(
                    "Refresh token rejected by provider; consent will be requested on next use."
                )
                self._commit(CredentialRecord())
            raise

        self._commit(
            replace(
                self._record,
                access_token=grant.access_token,
                refresh_token=grant.refresh_token or self._record.refresh_token,
                expires_at=self._expires_at(grant, RefreshError),
            )
        )
        lib_logger.info("Successfully refreshed OAuth access token.")

    def _expires_at(self, grant: TokenGrant, error_cls) -> float:
        try:
            expires_at = self._clock() + grant.expires_in
        except OverflowError:
            expires_at = math.inf
        if not math.isfinite(expires_at):
            raise error_cls("Token endpoint reply has out-of-range 'expires_in'")
        return expires_at

    def _commit(self, record: CredentialRecord):
        self.store.save(record)
        self._record = record

    def _show_consent_instructions(self, auth_url: str, manual: bool):
        if manual:
            text = Text.from_markup(
                "Browser auto-open is disabled or no GUI was detected.\n"
                "Open the URL below in a browser on this machine to authorize access."
            )
        else:
            text = Text.from_markup(
                "1. Your browser will now open to log in and authorize the application.\n"
                "2. If it doesn't open automatically, please open the URL below manually."
            )
        self._console.print(
            Panel(text, title="Google Drive OAuth Setup", style="bold blue")
        )
        # Escape the URL so rich doesn't treat [..] in it as markup
        self._console.print(
            f"[bold]URL:[/bold] [link={auth_url}]{rich_escape(auth_url)}[/link]\n"
        )
        lib_logger.info(
            f"Consent required; waiting up to {self.config.consent_timeout:g}s for the browser redirect"
        )
