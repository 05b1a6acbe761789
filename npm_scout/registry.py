"""Async HTTP client for the npm registry endpoints."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from . import config
from .errors import ArchiveFetchFailed, FeedUnavailable, MetadataFetchFailed

logger = logging.getLogger(__name__)


def package_path(name: str) -> str:
    """URL-encode a package name, including the ``/`` of scoped names."""
    return quote(name, safe="")


class RegistryClient:
    """Thin wrapper over ``httpx.AsyncClient`` that maps failures to scout errors.

    Usage::

        async with RegistryClient() as registry:
            doc = await registry.get_document("left-pad")
    """

    def __init__(
        self,
        registry_url: str | None = None,
        changes_url: str | None = None,
        timeout: float | None = None,
        max_connections: int = 20,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.registry_url = (registry_url or config.REGISTRY_URL).rstrip("/")
        self.changes_url = changes_url or config.CHANGES_URL
        self.timeout = timeout if timeout is not None else config.HTTP_TIMEOUT
        self.max_connections = max_connections
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "RegistryClient":
        self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers={"User-Agent": config.USER_AGENT, "Accept": "application/json"},
                limits=httpx.Limits(
                    max_connections=self.max_connections,
                    max_keepalive_connections=self.max_connections,
                ),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get_changes(self, limit: int, since: Optional[str] = None) -> Dict[str, Any]:
        """Read one slice of the change feed, newest first.

        Raises:
            FeedUnavailable: On transport errors, non-2xx status or bad JSON.
        """
        params: Dict[str, str] = {"descending": "true", "limit": str(limit)}
        if since:
            params["since"] = since

        try:
            response = await self._get_client().get(self.changes_url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise FeedUnavailable(
                f"_changes request failed: {exc.response.status_code} {exc.response.reason_phrase}"
            ) from exc
        except httpx.RequestError as exc:
            raise FeedUnavailable(f"_changes request failed: {exc}") from exc
        except ValueError as exc:
            raise FeedUnavailable(f"_changes returned invalid JSON: {exc}") from exc

    async def get_document(self, name: str) -> Dict[str, Any]:
        """Fetch the full registry document for a package.

        Raises:
            MetadataFetchFailed: On transport errors, non-2xx status or bad JSON.
        """
        url = f"{self.registry_url}/{package_path(name)}"
        try:
            response = await self._get_client().get(url)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise MetadataFetchFailed(
                name, f"{exc.response.status_code} {exc.response.reason_phrase}"
            ) from exc
        except httpx.RequestError as exc:
            raise MetadataFetchFailed(name, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise MetadataFetchFailed(name, f"invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise MetadataFetchFailed(name, "document is not a JSON object")
        return data

    async def download(self, url: str, dest: Path) -> int:
        """Stream ``url`` into ``dest`` and return the number of bytes written.

        Raises:
            ArchiveFetchFailed: On transport errors or non-2xx status.
        """
        written = 0
        try:
            async with self._get_client().stream("GET", url) as response:
                response.raise_for_status()
                with open(dest, "wb") as fh:
                    async for chunk in response.aiter_bytes():
                        fh.write(chunk)
                        written += len(chunk)
        except httpx.HTTPStatusError as exc:
            raise ArchiveFetchFailed(
                f"Failed to download {url}: {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise ArchiveFetchFailed(f"Failed to download {url}: {exc}") from exc
        logger.debug("Downloaded %s (%d bytes)", url, written)
        return written
