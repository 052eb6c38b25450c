"""Shared fixtures: a small SPA build directory and clients for it."""

from typing import Dict, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request

from pwa_server.config import Settings
from pwa_server.main import create_app
from pwa_server.pwa import PWAFiles

INDEX_HTML = "<!doctype html><html><body><div id=app>app shell</div></body></html>"
APP_JS = "console.log('hello from the bundle');\n" * 40
SW_JS = "self.addEventListener('fetch', () => {});\n"
ROBOTS = "User-agent: *\nDisallow:\n"
DOCS_HTML = "<html><body>docs</body></html>"


@pytest.fixture
def site(tmp_path):
    """Build directory plus a sibling directory sharing its name prefix."""
    root = tmp_path / "site"
    root.mkdir()
    (root / "index.html").write_text(INDEX_HTML)
    (root / "app.js").write_text(APP_JS)
    (root / "sw.js").write_text(SW_JS)
    (root / "robots").write_text(ROBOTS)
    (root / "assets").mkdir()
    (root / "assets" / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\nfake")
    (root / "docs").mkdir()
    (root / "docs" / "index.html").write_text(DOCS_HTML)

    secrets = tmp_path / "site-secrets"
    secrets.mkdir()
    (secrets / "secret.txt").write_text("top secret")
    return root.resolve()


@pytest.fixture
def settings(site):
    return Settings(root=site)


@pytest.fixture
def pwa(settings):
    return PWAFiles(settings)


@pytest.fixture
async def client(settings):
    transport = ASGITransport(app=create_app(settings))
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def make_request(path: str, headers: Optional[Dict[str, str]] = None, method: str = "GET") -> Request:
    """Build a bare Starlette request for calling ``PWAFiles.serve`` directly."""
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "root_path": "",
        "query_string": b"",
        "headers": [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in (headers or {}).items()
        ],
    }
    return Request(scope)
