"""
Shared pytest fixtures for the installer tests.

Nothing here talks to Docker or the network: subprocess calls are patched
and HTTP goes through ``httpx.MockTransport``.
"""

from __future__ import annotations

import gzip
import os
import sys
from pathlib import Path

import httpx
import pytest
import structlog

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from oeinstall.deploy.config import InstallConfig  # noqa: E402

SAMPLE_SQL = b"CREATE TABLE `user` (id INT);\nINSERT INTO `user` VALUES (1),(2);\n"


@pytest.fixture(autouse=True)
def _reset_logging(monkeypatch):
    """Drop logging config and OE_INSTALL_* variables between tests."""
    for key in [k for k in os.environ if k.startswith("OE_INSTALL_")]:
        monkeypatch.delenv(key, raising=False)
    yield
    structlog.reset_defaults()


@pytest.fixture
def sample_sql() -> bytes:
    return SAMPLE_SQL


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A project directory holding only the compose descriptor."""
    (tmp_path / "docker-compose-oe-image.yml").write_text("services: {}\n")
    return tmp_path


@pytest.fixture
def config(project_dir: Path) -> InstallConfig:
    """Install config with short timeouts suitable for tests."""
    return InstallConfig(
        project_dir=project_dir,
        app_ready_timeout=0.05,
        asset_wait_timeout=0.05,
        poll_interval=0.01,
        http_timeout=1.0,
    )


@pytest.fixture
def gzip_archive(project_dir: Path) -> Path:
    """``sample_db.zip`` holding gzip content, as published upstream."""
    path = project_dir / "sample_db.zip"
    path.write_bytes(gzip.compress(SAMPLE_SQL))
    return path


def _mock_client(routes: dict[str, httpx.Response | Exception]) -> httpx.Client:
    """``httpx.Client`` answering from *routes*; unknown URLs get 200."""

    def handler(request: httpx.Request) -> httpx.Response:
        outcome = routes.get(str(request.url))
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            return httpx.Response(200, text="ok")
        # fresh response per request, routes are polled repeatedly
        return httpx.Response(outcome.status_code, headers=outcome.headers, content=outcome.content)

    return httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)


@pytest.fixture
def make_client():
    """Factory for mock-transport clients; closed after the test."""
    clients: list[httpx.Client] = []

    def factory(routes: dict[str, httpx.Response | Exception] | None = None) -> httpx.Client:
        client = _mock_client(routes or {})
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()


@pytest.fixture
def http_client(make_client) -> httpx.Client:
    """Client for which every URL answers 200."""
    return make_client()
