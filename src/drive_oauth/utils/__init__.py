# src/drive_oauth/utils/__init__.py

from .headless_detection import is_headless_environment
from .paths import (
    get_config_dir,
    get_credential_path,
    get_logs_dir,
)
from .resilient_io import atomic_write_json, ensure_file

__all__ = [
    "is_headless_environment",
    "get_config_dir",
    "get_credential_path",
    "get_logs_dir",
    "atomic_write_json",
    "ensure_file",
]
