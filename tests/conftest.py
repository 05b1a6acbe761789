"""Pytest configuration and fixtures for npm-scout tests."""

import asyncio
import io
import json
import shutil
import tarfile
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Generator, List, Optional

import httpx
import pytest

from npm_scout.registry import RegistryClient

REGISTRY_URL = "https://registry.test"
CHANGES_URL = "https://replicate.test/registry/_changes"
NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    """Keep config and log files out of the real home directory."""
    home = tmp_path / "scout-home"
    monkeypatch.setattr("npm_scout.config.BASE_DIR", home)
    monkeypatch.setattr("npm_scout.config.CONFIG_FILE", home / "config.toml")
    monkeypatch.setattr("npm_scout.config.LOG_DIR", home / "logs")
    monkeypatch.delenv("MATTERMOST_WEBHOOK_URL", raising=False)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def now() -> datetime:
    return NOW


def iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def make_doc(
    name: str,
    created: Optional[datetime] = None,
    versions: int = 1,
    latest: Optional[str] = None,
    description: Optional[str] = "",
    bin_entry=None,
    with_tarball: bool = True,
) -> dict:
    """Build a registry package document shaped like registry.npmjs.org's."""
    version_names = [f"1.0.{i}" for i in range(versions)]
    version_map = {}
    for v in version_names:
        data = {"name": name, "version": v, "description": f"{name} v{v}"}
        if with_tarball:
            data["dist"] = {"tarball": f"{REGISTRY_URL}/tarballs/{name}-{v}.tgz"}
        version_map[v] = data
    if bin_entry is not None and version_names:
        version_map[version_names[-1]]["bin"] = bin_entry

    doc = {"name": name, "versions": version_map, "time": {}}
    if created is not None:
        doc["time"]["created"] = iso(created)
    if version_names:
        doc["dist-tags"] = {"latest": latest or version_names[-1]}
    if description is not None:
        doc["description"] = description
    return doc


def build_tarball(files: Dict[str, str]) -> bytes:
    """Build an npm-style ``.tgz`` with members under ``package/``."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for rel_path, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(name=rel_path)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


class FakeNpm:
    """In-memory registry: change-feed pages, package documents and tarballs."""

    def __init__(self):
        self.pages: List[dict] = []
        self.documents: Dict[str, dict] = {}
        self.tarballs: Dict[str, bytes] = {}
        self.feed_status = 200
        self.feed_requests: List[dict] = []
        self.document_requests: List[str] = []
        self.tarball_requests: List[str] = []

    def add_page(self, ids: List[str], last_seq) -> None:
        self.pages.append({"results": [{"id": i} for i in ids], "last_seq": last_seq})

    def add_package(self, doc: dict, files: Optional[Dict[str, str]] = None) -> None:
        self.documents[doc["name"]] = doc
        if files is not None:
            for v in doc["versions"]:
                self.tarballs[f"tarballs/{doc['name']}-{v}.tgz"] = build_tarball(files)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        # yield so concurrent workers interleave
        await asyncio.sleep(0)
        url = str(request.url)
        if url.startswith(CHANGES_URL):
            params = dict(request.url.params)
            self.feed_requests.append(params)
            if self.feed_status != 200:
                return httpx.Response(self.feed_status, text="unavailable")
            index = len(self.feed_requests) - 1
            if index < len(self.pages):
                return httpx.Response(200, json=self.pages[index])
            return httpx.Response(200, json={"results": [], "last_seq": params.get("since")})

        path = request.url.path.lstrip("/")
        if path.startswith("tarballs/"):
            self.tarball_requests.append(path)
            if path in self.tarballs:
                return httpx.Response(200, content=self.tarballs[path])
            return httpx.Response(404, text="not found")

        self.document_requests.append(path)
        if path in self.documents:
            return httpx.Response(200, content=json.dumps(self.documents[path]).encode("utf-8"))
        return httpx.Response(404, json={"error": "Not found"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> RegistryClient:
        return RegistryClient(
            registry_url=REGISTRY_URL,
            changes_url=CHANGES_URL,
            timeout=5,
            transport=self.transport(),
        )


@pytest.fixture
def fake_npm() -> FakeNpm:
    return FakeNpm()


@pytest.fixture
def recent(now) -> datetime:
    """A first-publish time two days before ``now``."""
    return now - timedelta(days=2)
