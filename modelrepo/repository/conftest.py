"""Repository module test fixtures."""

from __future__ import annotations

import io
import json
import tarfile
import zipfile
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

# =============================================================================
# Archive Builders
# =============================================================================

MODEL_FILES: dict[str, bytes] = {
    "model.bin": b"\x00weights\x01",
    "corresp.txt": b"3 cat\n5 dog\n",
    "config.json": json.dumps({"parameters": {"mllib": {"nclasses": 2}}}).encode(),
}


def _write_tar(path: Path, files: dict[str, bytes]) -> Path:
    with tarfile.open(path, "w:gz") as tar:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    return path


def _write_zip(path: Path, files: dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return path


@pytest.fixture
def model_tar(tmp_path: Path) -> Path:
    """Create a gzipped tar model archive outside any repository.

    Returns:
        Path to ``archives/model.tar.gz``.
    """
    archives = tmp_path / "archives"
    archives.mkdir(exist_ok=True)
    return _write_tar(archives / "model.tar.gz", MODEL_FILES)


@pytest.fixture
def model_zip(tmp_path: Path) -> Path:
    """Create a zip model archive outside any repository.

    Returns:
        Path to ``archives/model.zip``.
    """
    archives = tmp_path / "archives"
    archives.mkdir(exist_ok=True)
    return _write_zip(archives / "model.zip", MODEL_FILES)


# =============================================================================
# HTTP Mocking
# =============================================================================


class RecordingTransport(httpx.MockTransport):
    """Mock transport remembering every requested URL."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[str] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(str(request.url))
            return handler(request)

        super().__init__(record)


@pytest.fixture
def http_archive(model_tar: Path) -> tuple[httpx.Client, RecordingTransport]:
    """HTTP client serving the tar archive for any URL.

    Returns:
        Tuple of (client, transport) so tests can inspect requests.
    """
    payload = model_tar.read_bytes()
    transport = RecordingTransport(
        lambda request: httpx.Response(
            200, content=payload, headers={"Content-Length": str(len(payload))}
        )
    )
    client = httpx.Client(transport=transport)
    yield client, transport
    client.close()


@pytest.fixture
def http_status() -> Callable[[int], tuple[httpx.Client, RecordingTransport]]:
    """Factory for clients answering every request with a fixed status."""
    clients: list[httpx.Client] = []

    def make(status: int) -> tuple[httpx.Client, RecordingTransport]:
        transport = RecordingTransport(lambda request: httpx.Response(status))
        client = httpx.Client(transport=transport)
        clients.append(client)
        return client, transport

    yield make
    for client in clients:
        client.close()
