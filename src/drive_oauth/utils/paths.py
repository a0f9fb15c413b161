# src/drive_oauth/utils/paths.py
"""
Centralized path management for the drive_oauth library.

Credential state lives in a per-user config directory:
1. $XDG_CONFIG_HOME/drive_oauth if XDG_CONFIG_HOME is set
2. ~/.config/drive_oauth otherwise

Library users can override the credential file by passing `path` to
CredentialStore (or DRIVE_CREDENTIAL_PATH through OAuthConfig.from_env).
Log files for the CLI go to a logs/ directory under the working directory.
"""

import os
from pathlib import Path
from typing import Optional, Union

APP_DIR_NAME = "drive_oauth"
CREDENTIAL_FILE_NAME = "credentials.json"


def get_config_dir() -> Path:
    """
    Get the per-user configuration directory (does not create it).

    Returns:
        Path to the drive_oauth config directory
    """
    xdg_config = os.getenv("XDG_CONFIG_HOME")
    base = Path(xdg_config) if xdg_config else Path.home() / ".config"
    return base / APP_DIR_NAME


def get_credential_path(root: Optional[Union[Path, str]] = None) -> Path:
    """
    Get the path to the persisted credential record.

    Args:
        root: Optional config directory. If None, uses get_config_dir().

    Returns:
        Path to the credential file (does not create the file)
    """
    base = Path(root) if root else get_config_dir()
    return base / CREDENTIAL_FILE_NAME


def get_logs_dir(root: Optional[Union[Path, str]] = None) -> Path:
    """
    Get the logs directory, creating it if needed.

    Args:
        root: Optional root directory. If None, uses the current working directory.

    Returns:
        Path to the logs directory
    """
    base = Path(root) if root else Path.cwd()
    logs_dir = base / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir
