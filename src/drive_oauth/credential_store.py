# src/drive_oauth/credential_store.py

import json
import logging
import math
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .config import resolve_credential_path
from .error_handler import StorageError
from .utils.resilient_io import atomic_write_json, ensure_file

lib_logger = logging.getLogger("drive_oauth")


@dataclass
class CredentialRecord:
    """
    The persisted OAuth state for the local user.

    Empty strings mean "not acquired yet"; expires_at is a Unix timestamp
    (seconds) and 0.0 means "never valid".
    """

    access_token: str = ""
    expires_at: float = 0.0
    authorization_code: str = ""
    refresh_token: str = ""
    granted_scopes: List[str] = field(default_factory=list)

    def is_expired(self, now: Optional[float] = None, buffer_seconds: float = 0.0) -> bool:
        """Check if the access token is expired or will expire within buffer_seconds."""
        now = time.time() if now is None else now
        return self.expires_at <= now + buffer_seconds

    def is_valid(self, now: Optional[float] = None, buffer_seconds: float = 0.0) -> bool:
        """True when the access token can be used right now."""
        return bool(self.access_token) and not self.is_expired(now, buffer_seconds)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "access_token": self.access_token,
            "expires_at": self.expires_at,
            "authorization_code": self.authorization_code,
            "refresh_token": self.refresh_token,
            "granted_scopes": list(self.granted_scopes),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CredentialRecord":
        """
        Create from dictionary.

        Missing fields take their empty value; fields of the wrong type make
        the whole record unusable.

        Raises:
            ValueError: If data is not a mapping or a field has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

        record = cls()
        for name in ("access_token", "authorization_code", "refresh_token"):
            value = data.get(name, "")
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise ValueError(f"Field '{name}' must be a string")
            setattr(record, name, value)

        expires_at = data.get("expires_at", 0.0)
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
            raise ValueError("Field 'expires_at' must be a number")
        # json accepts NaN/Infinity, which never compare as expired
        if not math.isfinite(expires_at):
            raise ValueError(f"Field 'expires_at' must be finite, got {expires_at}")
        record.expires_at = float(expires_at)

        scopes = data.get("granted_scopes", [])
        if not isinstance(scopes, list) or not all(isinstance(s, str) for s in scopes):
            raise ValueError("Field 'granted_scopes' must be a list of strings")
        record.granted_scopes = list(scopes)

        return record


class CredentialStore:
    """
    Reads and writes the single CredentialRecord kept for the local user.

    The store is the only writer of the credential file. Writes are atomic
    (temp file + move) so a reader never observes a half-written record.
    Not safe for concurrent use by multiple processes.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = resolve_credential_path(path)

    def load(self) -> CredentialRecord:
        """
        Load the credential record, creating an empty file on first use.

        A file that exists but cannot be parsed yields an empty record: a
        corrupt credential file means "never authenticated", not a fatal error.

        Raises:
            StorageError: If the config directory/file cannot be created or read
        """
        try:
            if ensure_file(self.path):
                lib_logger.info(f"Created new credential file at '{self.path}'")
                return CredentialRecord()
        except OSError as e:
            raise StorageError(
                self.path, f"Failed to create credential file '{self.path}': {e}"
            ) from e

        try:
            raw = self.path.read_bytes()
        except OSError as e:
            raise StorageError(
                self.path, f"Failed to read credential file '{self.path}': {e}"
            ) from e

        if not raw.strip():
            lib_logger.debug(f"Credential file '{self.path.name}' is empty")
            return CredentialRecord()

        try:
            return CredentialRecord.from_dict(json.loads(raw.decode("utf-8")))
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors
            lib_logger.warning(
                f"Credential file '{self.path}' is unreadable ({e}); starting fresh."
            )
            return CredentialRecord()

    def save(self, record: CredentialRecord) -> None:
        """
        Persist a complete snapshot of the record.

        Raises:
            StorageError: If the file cannot be written
        """
        try:
            atomic_write_json(self.path, record.to_dict(), secure_permissions=True)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(
                self.path, f"Failed to write credential file '{self.path}': {e}"
            ) from e
        lib_logger.debug(f"Saved credential record to '{self.path}'.")
