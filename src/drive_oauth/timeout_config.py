# src/drive_oauth/timeout_config.py
"""
HTTP timeouts for the token endpoint and the Drive API.

Environment overrides (seconds):
    TIMEOUT_CONNECT - TCP/TLS connect (default: 10s)
    TIMEOUT_WRITE - sending the request body (default: 30s)
    TIMEOUT_POOL - waiting for a free pooled connection (default: 30s)
    TIMEOUT_READ_TOKEN - Read timeout for token endpoint replies (default: 30s)
    TIMEOUT_READ_API - Read timeout for Drive API replies (default: 300s / 5 min)
"""

import os
import logging
import httpx

lib_logger = logging.getLogger("drive_oauth")


class TimeoutConfig:
    """Timeout values, read from the environment on every call."""

    # Seconds
    _CONNECT = 10.0
    _WRITE = 30.0
    _POOL = 30.0
    _READ_TOKEN = 30.0
    _READ_API = 300.0  # downloads of large files

    @classmethod
    def _get_env_float(cls, key: str, default: float) -> float:
        """Read a float override; invalid values log a warning and use the default."""
        value = os.environ.get(key)
        if value is not None:
            try:
                return float(value)
            except ValueError:
                lib_logger.warning(
                    f"Ignoring {key}={value!r}: not a number, using {default}s"
                )
        return default

    @classmethod
    def connect(cls) -> float:
        """TCP/TLS connect timeout."""
        return cls._get_env_float("TIMEOUT_CONNECT", cls._CONNECT)

    @classmethod
    def write(cls) -> float:
        """Timeout for sending a request body (uploads)."""
        return cls._get_env_float("TIMEOUT_WRITE", cls._WRITE)

    @classmethod
    def pool(cls) -> float:
        """Timeout waiting for a pooled connection."""
        return cls._get_env_float("TIMEOUT_POOL", cls._POOL)

    @classmethod
    def read_token(cls) -> float:
        """Read timeout for token endpoint responses."""
        return cls._get_env_float("TIMEOUT_READ_TOKEN", cls._READ_TOKEN)

    @classmethod
    def read_api(cls) -> float:
        """Read timeout for Drive API responses."""
        return cls._get_env_float("TIMEOUT_READ_API", cls._READ_API)

    @classmethod
    def token_endpoint(cls) -> httpx.Timeout:
        """
        Timeout configuration for code exchange and refresh calls.

        The token endpoint answers quickly; a short read timeout keeps a
        stalled provider from hanging ensure_valid() indefinitely.
        """
        return httpx.Timeout(
            connect=cls.connect(),
            read=cls.read_token(),
            write=cls.write(),
            pool=cls.pool(),
        )

    @classmethod
    def api(cls) -> httpx.Timeout:
        """Timeout configuration for Drive API requests (uploads, downloads)."""
        return httpx.Timeout(
            connect=cls.connect(),
            read=cls.read_api(),
            write=cls.write(),
            pool=cls.pool(),
        )
