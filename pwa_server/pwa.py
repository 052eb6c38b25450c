"""SPA / PWA request routing.

Decides, for every incoming URL, which file under the root directory is
sent and with which caching headers:

  - ``/`` and extensionless paths with no matching file → the entrypoint
    (``index.html``), so the client-side router can take over
  - paths that look like files (``/app.js``) → that file, or 404
  - requests carrying the ``Service-Worker`` header for a worker script
    that no longer exists → a script that unregisters the stale worker
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Dict, Mapping, Optional

import anyio.to_thread
from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import Receive, Scope, Send
from starlette.websockets import WebSocketClose

from pwa_server.config import Settings
from pwa_server.exceptions import BadRequestError, ForbiddenError, PWAError, TransmissionError
from pwa_server.transmission import send_file

logger = logging.getLogger(__name__)

# Matches "/foo/bar.png" but not "/foo.png/bar" or "/foo."
_HAS_FILE_EXTENSION = re.compile(r"\.[^/]+$")

NO_CACHE = "max-age=0"

SELF_DESTRUCTING_SW = str(Path(__file__).resolve().parent / "self-destructing-sw.js")

ErrorHook = Callable[[Request, Exception], Awaitable[Response]]


@dataclass(frozen=True)
class ResolvedTarget:
    path: str
    is_spa_fallback: bool = False
    is_service_worker: bool = False
    cache_control: str = NO_CACHE
    headers: Dict[str, str] = field(default_factory=dict)


# ── Path helpers ─────────────────────────────────────────────────────────────

def looks_like_file(url_path: str) -> bool:
    """True when the last path segment has a file extension."""
    return _HAS_FILE_EXTENSION.search(url_path) is not None


def build_candidate_path(root: str, url_path: str) -> str:
    """Join ``url_path`` onto ``root`` and normalize the result.

    A trailing slash on the URL is kept, so ``/`` maps to ``root + sep``
    while ``/foo/..`` maps to ``root`` itself.
    """
    candidate = os.path.normpath(root + os.sep + url_path)
    if url_path.endswith("/") and not candidate.endswith(os.sep):
        candidate += os.sep
    return candidate


def is_file_in_root_directory(root_path: str, file_path: str) -> bool:
    # The trailing separator keeps /srv/app from matching /srv/app-secrets
    trailed = root_path if root_path.endswith(os.sep) else root_path + os.sep
    return file_path.startswith(trailed)


async def file_exists(path: str) -> bool:
    """Report whether anything exists at ``path``; never raises."""
    try:
        await anyio.to_thread.run_sync(os.stat, path)
    except (OSError, ValueError):
        return False
    return True


def _route_path(scope: Scope) -> str:
    # Path relative to where this app is mounted
    path: str = scope["path"]
    root_path: str = scope.get("root_path", "")
    if root_path and path.startswith(root_path + "/"):
        path = path[len(root_path):]
    return path or "/"


def apply_cache_control(headers: MutableHeaders, value: str) -> None:
    """Set Cache-Control unless something upstream already did."""
    if "cache-control" not in headers:
        headers["Cache-Control"] = value


# ── ASGI app ─────────────────────────────────────────────────────────────────

class PWAFiles:
    """ASGI app serving an SPA / PWA build directory.

    Bound to immutable ``Settings`` at construction; each request goes
    through ``serve``. With ``forward_errors`` on, errors are raised so the
    enclosing Starlette app's exception handlers deal with them.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.root = str(settings.root)
        self.cache_control = settings.cache_control
        self.entrypoint_path = os.path.normpath(os.path.join(self.root, settings.entrypoint))

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "websocket":
            # Nothing here speaks websocket; refuse the handshake
            await WebSocketClose()(scope, receive, send)
            return
        assert scope["type"] == "http"
        request = Request(scope, receive)
        response = await self.serve(request, on_error=_reraise)
        await response(scope, receive, send)

    async def resolve(self, url_path: str, service_worker: bool = False) -> ResolvedTarget:
        """Pick the file to send for ``url_path``.

        Raises ``ForbiddenError`` for paths escaping the root, before any
        filesystem access.
        """
        if "\x00" in url_path:
            raise BadRequestError()

        abs_filepath = build_candidate_path(self.root, url_path)
        if not is_file_in_root_directory(self.root, abs_filepath):
            raise ForbiddenError()

        serve_entrypoint = url_path == "/" or (
            not looks_like_file(url_path)
            and not service_worker
            and not await file_exists(abs_filepath)
        )
        path = self.entrypoint_path if serve_entrypoint else abs_filepath
        headers: Dict[str, str] = {}

        if service_worker:
            # https://www.w3.org/TR/service-workers-1/#service-worker-allowed
            headers["Service-Worker-Allowed"] = "/"
            # Unregister dead service workers
            if not await file_exists(abs_filepath):
                path = SELF_DESTRUCTING_SW

        return ResolvedTarget(
            path=path,
            is_spa_fallback=serve_entrypoint,
            is_service_worker=service_worker,
            cache_control=NO_CACHE if serve_entrypoint or service_worker else self.cache_control,
            headers=headers,
        )

    async def serve(
        self,
        request: Request,
        headers: Optional[Mapping[str, str]] = None,
        on_error: Optional[ErrorHook] = None,
    ) -> Response:
        """Resolve and send the file for ``request``.

        ``headers`` are response headers already decided by the caller;
        they are never overridden. ``on_error`` receives the structured
        error when ``forward_errors`` is configured.
        """
        url_path = _route_path(request.scope)
        service_worker = bool(request.headers.get("service-worker"))

        try:
            target = await self.resolve(url_path, service_worker)
            response = await send_file(request.scope, target.path)
        except TransmissionError as e:
            # The original message may contain absolute filesystem paths
            logger.debug(f"Transmission of {url_path} failed: {e.detail}")
            return await self._handle_error(request, TransmissionError(e.status_code), on_error)
        except PWAError as e:
            return await self._handle_error(request, e, on_error)

        logger.debug(
            f"{url_path} -> {target.path} "
            f"(spa_fallback={target.is_spa_fallback}, service_worker={target.is_service_worker})"
        )

        for name, value in (headers or {}).items():
            response.headers[name] = value
        for name, value in target.headers.items():
            response.headers[name] = value
        apply_cache_control(response.headers, target.cache_control)
        return response

    async def _handle_error(
        self, request: Request, error: PWAError, on_error: Optional[ErrorHook]
    ) -> Response:
        logger.warning(f"{request.method} {request.scope['path']!r} -> {error.status_code} {error.detail}")
        if self.settings.forward_errors and on_error is not None:
            return await on_error(request, error)
        return PlainTextResponse(error.detail, status_code=error.status_code)


async def _reraise(request: Request, error: Exception) -> Response:
    raise error
