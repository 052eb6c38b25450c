"""Starlette application serving a PWA build directory."""

import logging
from typing import Any, Dict, Optional

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.routing import Mount

from pwa_server.config import Settings
from pwa_server.pwa import PWAFiles
from pwa_server.security import SecurityHeadersMiddleware

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    exception_handlers: Optional[Dict[Any, Any]] = None,
) -> Starlette:
    """Build the ASGI app: compression, security headers, then the PWA files.

    ``exception_handlers`` receive the request errors when
    ``settings.forward_errors`` is on.
    """
    if settings is None:
        settings = Settings()

    middleware = []
    if settings.compression:
        middleware.append(Middleware(GZipMiddleware))
    if settings.security_headers is not None:
        middleware.append(Middleware(SecurityHeadersMiddleware, headers=settings.security_headers))

    logger.info(f'Serving files from "{settings.root}".')

    app = Starlette(
        routes=[Mount("/", app=PWAFiles(settings), name="pwa")],
        middleware=middleware,
        exception_handlers=exception_handlers,
    )
    app.state.settings = settings
    return app
