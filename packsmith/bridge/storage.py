"""Blob store client — archive upload and download.

The blob store is reachable at two addresses:

* the **proxy** address, ``<server_url>/proxy/storage``, which is how this
  process talks to it (uploads and downloads), and
* the **external** address, which is what recorded archive URLs are built
  from so they resolve for any later reader.

A stored URL is therefore always rewritten onto the proxy before download.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from packsmith.core.errors import RemoteStatusError, TransportError

logger = logging.getLogger(__name__)

_ARCHIVE_PATH = "/v1/archive"


@runtime_checkable
class StorageClient(Protocol):
    """Upload/download contract of the remote blob store."""

    def upload(self, path: Path) -> str:
        """Upload a local file and return the blob store's opaque id."""
        ...

    def url_for(self, archive_id: str) -> str:
        """Externally reachable URL for an uploaded archive."""
        ...

    def download(self, url: str) -> Iterator[bytes]:
        """Stream the bytes behind a recorded archive URL."""
        ...


class HttpStorageClient:
    """httpx-backed ``StorageClient``.

    Parameters
    ----------
    proxy_url:
        Blob store base routed through the controller.
    external_url:
        Externally reachable blob store base used in recorded URLs.
    resolve_external:
        Called once to discover the external base when ``external_url`` is
        empty; must return a full base URL.
    """

    def __init__(
        self,
        proxy_url: str,
        external_url: str = "",
        *,
        resolve_external: Callable[[], str] | None = None,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._proxy = proxy_url.rstrip("/")
        self._external = external_url.rstrip("/")
        self._resolve_external = resolve_external
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def upload(self, path: Path) -> str:
        url = f"{self._proxy}{_ARCHIVE_PATH}"
        size = os.path.getsize(path)
        try:
            with open(path, "rb") as fh:
                resp = self._client.post(
                    url,
                    files={"uploadfile": (Path(path).name, fh)},
                    headers={"X-File-Size": str(size)},
                )
        except httpx.HTTPError as exc:
            raise TransportError(f"upload file {path}: {exc}") from exc
        if not resp.is_success:
            raise RemoteStatusError(url, resp.status_code, f"upload file {path}")
        archive_id = resp.json()["id"]
        logger.info("Uploaded %s (%d bytes) as %s", path, size, archive_id)
        return archive_id

    def url_for(self, archive_id: str) -> str:
        return f"{self.external_url}{_ARCHIVE_PATH}?id={quote(archive_id, safe='')}"

    @property
    def external_url(self) -> str:
        if not self._external:
            if self._resolve_external is None:
                raise TransportError("no external blob store address configured")
            self._external = self._resolve_external().rstrip("/")
            logger.debug("Resolved external blob store address %s", self._external)
        return self._external

    def proxy_url_for(self, url: str) -> str:
        """Rewrite a recorded archive URL onto the proxy address."""
        target = httpx.URL(url)
        return f"{self._proxy}{target.raw_path.decode('ascii')}"

    def download(self, url: str) -> Iterator[bytes]:
        fetch_url = self.proxy_url_for(url)
        logger.debug("Downloading %s via %s", url, fetch_url)
        try:
            with self._client.stream("GET", fetch_url) as resp:
                if resp.status_code != httpx.codes.OK:
                    raise RemoteStatusError(url, resp.status_code, "download from storage service")
                yield from resp.iter_bytes()
        except httpx.HTTPError as exc:
            raise TransportError(f"download from storage service url {url}: {exc}") from exc
