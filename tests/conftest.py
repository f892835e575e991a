"""Pytest configuration and shared fixtures for bootstrapper tests."""

import datetime
import gzip
import json
import tempfile
import zipfile
from collections.abc import Callable, Generator
from io import BytesIO
from pathlib import Path
from typing import Any

import httpx
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.x509.oid import NameOID

from bootstrapper.core.config import AppConfig
from bootstrapper.core.repository import Repository
from bootstrapper.core.transport import HttpTransport
from bootstrapper.core.utils import compute_sha256
from bootstrapper.formats.zbsdiff import (
    ZbsdiffControlEntry,
    ZbsdiffFile,
    ZbsdiffHeader,
    ZbsdiffParser,
)

BASE_URL = "https://static.example.net"


class FakeServer:
    """In-memory HTTP server mounted through ``httpx.MockTransport``.

    Routes map absolute URLs to a body, or to an int status code.
    """

    def __init__(self) -> None:
        self.routes: dict[str, bytes | int] = {}
        self.requests: list[str] = []
        self.user_agents: list[str] = []

    def add(self, path: str, content: bytes | int) -> str:
        url = f"{BASE_URL}/{path}"
        self.routes[url] = content
        return url

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        self.user_agents.append(request.headers.get("user-agent", ""))
        body = self.routes.get(url, 404)
        if isinstance(body, int):
            return httpx.Response(body)
        return httpx.Response(200, content=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def downloads_of(self, url: str) -> int:
        return self.requests.count(url)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def app_config(temp_dir: Path) -> AppConfig:
    """Configuration rooted in a temporary data directory."""
    return AppConfig(
        base_dir=temp_dir / "data",
        bootstrap_url=f"{BASE_URL}/bootstrap.json",
        bootstrap_signature_url=f"{BASE_URL}/bootstrap.json.sha256",
        launcher_version="2.6.0",
        runtime_version="11.0.21",
    )


@pytest.fixture
def repository(app_config: AppConfig) -> Repository:
    """Repository with its directories created."""
    repo = Repository(app_config)
    repo.ensure_directories()
    return repo


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def http_transport(app_config: AppConfig, server: FakeServer) -> Generator[HttpTransport, None, None]:
    """HttpTransport talking to the fake server."""
    transport = HttpTransport(app_config, transport=server.transport)
    yield transport
    transport.close()


@pytest.fixture(scope="session")
def signing_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def certificate(signing_key: rsa.RSAPrivateKey) -> x509.Certificate:
    """Self-signed certificate for the test signing key."""
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "bootstrapper-test")])
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(signing_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(signing_key, hashes.SHA256())
    )


@pytest.fixture
def certificate_file(temp_dir: Path, certificate: x509.Certificate) -> Path:
    path = temp_dir / "bootstrap.crt"
    path.write_bytes(certificate.public_bytes(serialization.Encoding.PEM))
    return path


@pytest.fixture
def sign(signing_key: rsa.RSAPrivateKey) -> Callable[[bytes], bytes]:
    """Sign content the way the release pipeline does."""

    def _sign(content: bytes) -> bytes:
        return signing_key.sign(content, padding.PKCS1v15(), hashes.SHA256())

    return _sign


@pytest.fixture
def artifact_entry(server: FakeServer) -> Callable[..., dict[str, Any]]:
    """Publish artifact content and return its manifest entry."""

    def _entry(name: str, content: bytes, diffs: list[dict[str, Any]] | None = None) -> dict[str, Any]:
        url = server.add(f"artifacts/{compute_sha256(content)}/{name}", content)
        entry: dict[str, Any] = {
            "name": name,
            "path": url,
            "hash": compute_sha256(content),
            "size": len(content),
        }
        if diffs is not None:
            entry["diffs"] = diffs
        return entry

    return _entry


@pytest.fixture
def diff_entry(server: FakeServer) -> Callable[..., dict[str, Any]]:
    """Publish a diff payload and return its manifest entry."""

    def _entry(name: str, base_name: str, base: bytes, payload: bytes) -> dict[str, Any]:
        url = server.add(f"diffs/{name}", payload)
        return {
            "name": name,
            "from": base_name,
            "fromHash": compute_sha256(base),
            "path": url,
            "hash": compute_sha256(payload),
            "size": len(payload),
        }

    return _entry


@pytest.fixture
def publish(
    server: FakeServer,
    app_config: AppConfig,
    sign: Callable[[bytes], bytes],
) -> Callable[..., bytes]:
    """Publish a signed manifest (and optionally an overlay) on the fake server."""

    def _publish(manifest: dict[str, Any], overlay: dict[str, Any] | None = None) -> bytes:
        content = json.dumps(manifest).encode()
        server.routes[app_config.bootstrap_url] = content
        server.routes[app_config.bootstrap_signature_url] = sign(content)
        if overlay is not None:
            app_config.overlay_url = server.add("overlay.json", json.dumps(overlay).encode())
        return content

    return _publish


@pytest.fixture
def make_jar() -> Callable[[dict[str, bytes]], bytes]:
    """Build a jar (zip) archive in memory."""

    def _make(entries: dict[str, bytes]) -> bytes:
        buffer = BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for name, data in entries.items():
                archive.writestr(name, data)
        return buffer.getvalue()

    return _make


@pytest.fixture
def make_patch() -> Callable[[bytes, bytes], bytes]:
    """Build a ZBSDIFF1 patch turning ``old`` into ``new``."""

    def _make(old: bytes, new: bytes) -> bytes:
        shared = min(len(old), len(new))
        diff = bytes((n - o) & 0xFF for o, n in zip(old[:shared], new[:shared]))
        patch = ZbsdiffFile(
            header=ZbsdiffHeader(control_length=0, diff_length=0, new_size=len(new)),
            control_entries=[
                ZbsdiffControlEntry(add_length=shared, copy_length=len(new) - shared, offset=0)
            ],
            diff_data=diff,
            extra_data=new[shared:],
        )
        return ZbsdiffParser().build(patch)

    return _make


@pytest.fixture
def make_delta(make_patch: Callable[[bytes, bytes], bytes]) -> Callable[[bytes, bytes], bytes]:
    """Build a diff payload as published: gzip-wrapped ZBSDIFF1."""

    def _make(old: bytes, new: bytes) -> bytes:
        return gzip.compress(make_patch(old, new))

    return _make


@pytest.fixture
def recording_reporter() -> "RecordingReporter":
    return RecordingReporter()


class RecordingReporter:
    """Progress reporter that keeps every update."""

    def __init__(self) -> None:
        self.updates: list[tuple[float, str | None, str | None]] = []

    def stage(self, fraction: float, primary: str | None = None, secondary: str | None = None) -> None:
        self.updates.append((fraction, primary, secondary))

    @property
    def fractions(self) -> list[float]:
        return [u[0] for u in self.updates]
