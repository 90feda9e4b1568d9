"""HTTP upload archive."""

from typing import BinaryIO

import httpx
from loguru import logger

from pairgate.storage.base import ArchiveStorage, StorageError


class HttpArchive(ArchiveStorage):
    """
    Uploads files with a multipart POST.

    The endpoint answers with JSON carrying the stored file's URL under
    ``url`` (or ``link``), or with the URL as plain text.
    """

    def __init__(
        self,
        upload_url: str,
        api_key: str = "",
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ):
        if not upload_url:
            raise ValueError("storage.upload_url is not configured")
        self.upload_url = upload_url
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = client or httpx.AsyncClient(timeout=timeout, headers=headers)

    async def upload(self, stream: BinaryIO, filename: str) -> str:
        try:
            resp = await self._client.post(
                self.upload_url,
                files={"file": (filename, stream.read(), "application/json")},
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise StorageError(f"Upload of {filename} failed: {e}") from e

        locator = self._parse_locator(resp)
        if not locator:
            raise StorageError(f"Upload of {filename} returned no locator")
        logger.info(f"Uploaded {filename} -> {locator}")
        return locator

    @staticmethod
    def _parse_locator(resp: httpx.Response) -> str:
        if "application/json" in resp.headers.get("content-type", ""):
            try:
                data = resp.json()
            except ValueError:
                return ""
            if isinstance(data, dict):
                return str(data.get("url") or data.get("link") or "")
            return ""
        return resp.text.strip()

    async def aclose(self) -> None:
        await self._client.aclose()
