# src/drive_oauth/callback_listener.py

import asyncio
import logging
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

from .error_handler import CallbackListenerError, ConsentDenied

lib_logger = logging.getLogger("drive_oauth")

CALLBACK_PAGE = (
    b"<html><body><h1>Authentication complete</h1>"
    b"<p>You can close this window and return to the terminal.</p></body></html>"
)

# Seconds a connected client gets to send its request line and headers
REQUEST_READ_TIMEOUT = 5.0


def parse_request_line(request_line: bytes) -> Tuple[str, Dict[str, List[str]]]:
    """
    Split an HTTP request line ("GET /?code=... HTTP/1.1") into its path and
    parsed query parameters.

    Raises:
        ValueError: If the line is not a well-formed request line
    """
    parts = request_line.decode("latin-1").strip().split(" ")
    if len(parts) != 3 or not parts[2].startswith("HTTP/"):
        raise ValueError(f"Malformed request line: {request_line[:80]!r}")

    target = urlsplit(parts[1])
    return target.path or "/", parse_qs(target.query)


def extract_authorization_code(query_params: Dict[str, List[str]]) -> str:
    """
    Pull the authorization code out of the redirect's query parameters.

    Raises:
        ConsentDenied: If the provider sent an `error` parameter, or the
            redirect carries no `code` at all
    """
    if "error" in query_params:
        reason = query_params["error"][0]
        description = query_params.get("error_description", [""])[0]
        message = f"Consent was not granted: {reason}"
        if description:
            message += f" ({description})"
        raise ConsentDenied(reason, message)

    code = query_params.get("code", [""])[0].strip()
    if not code:
        raise ConsentDenied(
            "missing_code",
            "The consent redirect did not include an authorization code.",
        )
    return code


class OAuthCallbackServer:
    """
    Minimal HTTP listener for the provider's redirect after consent.

    Binds the exact host/port of the registered redirect URI. The first
    request to the callback path is captured and answered with a static page;
    later requests are answered but ignored. Requests to other paths (a
    browser's favicon probe, for instance) get a 404 and are not captured.

    Usage:
        server = OAuthCallbackServer("127.0.0.1", 3000)
        await server.start()
        try:
            code = await asyncio.wait_for(server.wait_for_callback(), 45)
        finally:
            await server.stop()
    """

    def __init__(self, host: str, port: int, callback_path: str = "/"):
        self.host = host
        self.port = port
        self.callback_path = callback_path
        self._server: Optional[asyncio.AbstractServer] = None
        self._request_future: Optional[asyncio.Future] = None

    @property
    def bound_port(self) -> int:
        """The port actually bound (differs from `port` when it was 0)."""
        if self._server and self._server.sockets:
            return self._server.sockets[0].getsockname()[1]
        return self.port

    @property
    def is_serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    async def start(self):
        """
        Starts the callback listener.

        Raises:
            CallbackListenerError: If the address cannot be bound
        """
        self._request_future = asyncio.get_running_loop().create_future()
        try:
            self._server = await asyncio.start_server(
                self._handle_callback, self.host, self.port
            )
        except OSError as e:
            raise CallbackListenerError(
                f"Cannot listen for the OAuth redirect on {self.host}:{self.port}: {e}. "
                "Free the port or configure a different one (and register it as the redirect URI)."
            ) from e
        lib_logger.debug(
            f"OAuth callback listener started on {self.host}:{self.bound_port}"
        )

    async def stop(self):
        """Stops the listener and releases the socket. Safe to call twice."""
        if self._server is None:
            return
        server, self._server = self._server, None
        server.close()
        # Python 3.13+: drop clients that connected but never sent anything
        if hasattr(server, "close_clients"):
            server.close_clients()
        await server.wait_closed()
        if self._request_future and not self._request_future.done():
            self._request_future.cancel()
        lib_logger.debug("OAuth callback listener stopped")

    async def wait_for_callback(self) -> str:
        """
        Wait for the redirect and return its authorization code.

        The wait is unbounded; callers apply their own timeout.

        Raises:
            ConsentDenied: If the redirect carries an error or no code
        """
        if self._request_future is None:
            raise RuntimeError("Callback listener has not been started")
        request_line = await self._request_future
        _, query_params = parse_request_line(request_line)
        return extract_authorization_code(query_params)

    async def _handle_callback(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ):
        try:
            try:
                request_line = await _read_request_head(reader)
            except ValueError as e:
                # StreamReader.readline() raises ValueError for lines over its 64 KiB limit
                lib_logger.warning(f"Ignoring oversized OAuth callback request: {e}")
                writer.write(b"HTTP/1.1 400 Bad Request\r\nConnection: close\r\n\r\n")
                await writer.drain()
                return
            if not request_line:
                # Browsers open speculative connections that never send a request
                return

            try:
                path, _ = parse_request_line(request_line)
            except ValueError as e:
                lib_logger.warning(f"Ignoring malformed OAuth callback request: {e}")
                writer.write(b"HTTP/1.1 400 Bad Request\r\nConnection: close\r\n\r\n")
                await writer.drain()
                return

            if path != self.callback_path:
                lib_logger.warning(f"Ignoring request to '{path}' on callback listener")
                writer.write(b"HTTP/1.1 404 Not Found\r\nConnection: close\r\n\r\n")
                await writer.drain()
                return

            writer.write(
                b"HTTP/1.1 200 OK\r\n"
                b"Content-Type: text/html; charset=utf-8\r\n"
                + f"Content-Length: {len(CALLBACK_PAGE)}\r\n".encode()
                + b"Connection: close\r\n\r\n"
                + CALLBACK_PAGE
            )
            await writer.drain()

            if self._request_future is not None and not self._request_future.done():
                self._request_future.set_result(request_line)
            else:
                lib_logger.warning("Ignoring additional OAuth callback request")
        except asyncio.TimeoutError:
            lib_logger.debug("OAuth callback client sent no complete request in time")
        except (ConnectionError, OSError) as e:
            lib_logger.warning(f"Error in OAuth callback handler: {e}")
        finally:
            writer.close()


async def _read_request_head(reader: asyncio.StreamReader) -> bytes:
    """
    Read the request line and skip the headers; returns b"" for an empty connection.

    Raises:
        asyncio.TimeoutError: If the client stalls mid-request
        ValueError: If a line exceeds the reader's limit
    """
    request_line = await asyncio.wait_for(
        reader.readline(), timeout=REQUEST_READ_TIMEOUT
    )
    if not request_line:
        return request_line

    while True:
        header = await asyncio.wait_for(
            reader.readline(), timeout=REQUEST_READ_TIMEOUT
        )
        if header in (b"\r\n", b"\n", b""):
            return request_line
