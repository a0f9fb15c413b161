# src/drive_oauth/drive_client.py

import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import parse_qs, urlsplit

import httpx

from .timeout_config import TimeoutConfig
from .token_manager import TokenManager

lib_logger = logging.getLogger("drive_oauth")

DRIVE_BASE_URL = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"
DRIVE_OPEN_URL = "https://drive.google.com/open"

_FILE_PATH_ID = re.compile(r"/d/([A-Za-z0-9_-]+)")


def file_id_from_url(url: str) -> str:
    """
    Extract the Drive file id from a share URL.

    Handles "https://drive.google.com/open?id=<id>" and
    "https://drive.google.com/file/d/<id>/view" forms.

    Raises:
        ValueError: If no file id can be found
    """
    parts = urlsplit(url)
    file_id = parse_qs(parts.query).get("id", [""])[0]
    if file_id:
        return file_id

    match = _FILE_PATH_ID.search(parts.path)
    if match:
        return match.group(1)
    raise ValueError(f"No Drive file id found in URL: {url}")


class DriveClient:
    """
    Async Google Drive v3 client authenticated through a TokenManager.

    A valid token is requested from the manager before every call, so an
    expired token is refreshed transparently. Non-2xx responses raise
    httpx.HTTPStatusError.

    Usage:
        async with DriveClient(manager) as drive:
            meta = await drive.file_metadata(url)
    """

    def __init__(
        self,
        token_manager: TokenManager,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.token_manager = token_manager
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=TimeoutConfig.api())

    async def __aenter__(self) -> "DriveClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, str]] = None,
        **kwargs,
    ) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        headers.update(await self.token_manager.get_auth_header())
        response = await self._client.request(
            method, url, params=params, headers=headers, **kwargs
        )
        response.raise_for_status()
        return response

    async def get(
        self, endpoint: str, params: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        return await self.request("GET", DRIVE_BASE_URL + endpoint, params=params)

    async def post(
        self,
        endpoint: str,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None,
    ) -> httpx.Response:
        return await self.request(
            "POST", DRIVE_BASE_URL + endpoint, params=params, json=json
        )

    async def patch(
        self,
        endpoint: str,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None,
    ) -> httpx.Response:
        return await self.request(
            "PATCH", DRIVE_BASE_URL + endpoint, params=params, json=json
        )

    async def delete(
        self, endpoint: str, params: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        return await self.request("DELETE", DRIVE_BASE_URL + endpoint, params=params)

    async def file_metadata(self, url: str) -> Dict[str, Any]:
        """Get all metadata fields of the file at the given Drive URL."""
        file_id = file_id_from_url(url)
        response = await self.get(f"/files/{file_id}", params={"fields": "*"})
        return response.json()

    async def download_file(self, url: str, path: Union[str, Path]) -> Path:
        """
        Download the file at `url` to `path` and return where it was written.

        If `path` is a directory, the file keeps its Drive name inside it.
        """
        file_id = file_id_from_url(url)
        path = Path(path)
        if path.is_dir():
            metadata = await self.file_metadata(url)
            path = path / metadata["name"]

        headers = await self.token_manager.get_auth_header()
        async with self._client.stream(
            "GET",
            f"{DRIVE_BASE_URL}/files/{file_id}",
            params={"alt": "media"},
            headers=headers,
        ) as response:
            response.raise_for_status()
            with open(path, "wb") as f:
                async for chunk in response.aiter_bytes():
                    f.write(chunk)

        lib_logger.info(f"Downloaded Drive file {file_id} to '{path}'")
        return path

    async def upload_file(self, path: Union[str, Path]) -> str:
        """
        Upload a local file and return its drive.google.com share URL.

        The content goes up as a media upload; a metadata patch then sets the
        file name from the local path.
        """
        path = Path(path)
        response = await self.request(
            "POST",
            f"{DRIVE_UPLOAD_URL}/files",
            params={"uploadType": "media"},
            content=path.read_bytes(),
            headers={"Content-Type": "application/octet-stream"},
        )
        file_id = response.json()["id"]
        await self.patch(f"/files/{file_id}", json={"name": path.name})

        lib_logger.info(f"Uploaded '{path.name}' as Drive file {file_id}")
        return f"{DRIVE_OPEN_URL}?id={file_id}"

    async def update_file(self, path: Union[str, Path], url: str) -> None:
        """Replace the content of the Drive file at `url` with a local file."""
        path = Path(path)
        file_id = file_id_from_url(url)
        await self.request(
            "PATCH",
            f"{DRIVE_UPLOAD_URL}/files/{file_id}",
            params={"uploadType": "media"},
            content=path.read_bytes(),
            headers={"Content-Type": "application/octet-stream"},
        )
        lib_logger.info(f"Updated Drive file {file_id} from '{path}'")

    async def delete_file(self, url: str) -> None:
        file_id = file_id_from_url(url)
        await self.delete(f"/files/{file_id}")
        lib_logger.info(f"Deleted Drive file {file_id}")
