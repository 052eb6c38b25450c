"""
Command-line entry point: serve a single-page app / PWA from a directory.

    pwa-server                                   # serve ./ on 127.0.0.1:8080
    pwa-server --root dist --port 0              # random port
    pwa-server --config pwa.json                 # JSON file merged over the flags

Every flag can also come from the environment (PWA_ROOT, PWA_PORT, ...).
"""

import argparse
import logging
import sys
from typing import List, Optional

import uvicorn

from pwa_server import __version__
from pwa_server.config import LOG_LEVELS, load_settings
from pwa_server.exceptions import ConfigError
from pwa_server.main import create_app


def build_parser() -> argparse.ArgumentParser:
    # Defaults live in Settings; unset flags stay None so the environment
    # and config file can supply them.
    parser = argparse.ArgumentParser(
        prog="pwa-server",
        description="Serve a single-page app / progressive web app from a directory.",
    )
    parser.add_argument(
        "-v", "--version", action="version", version=f"%(prog)s {__version__}",
        help="Print the installed version.",
    )
    parser.add_argument("--host", help="Listen on this hostname (default: 127.0.0.1).")
    parser.add_argument("--port", type=int, help="Listen on this port; 0 for random (default: 8080).")
    parser.add_argument("--root", help="Serve files relative to this directory (default: .).")
    parser.add_argument("--config", metavar="FILE", help="JSON configuration file.")
    parser.add_argument(
        "--cache-control", metavar="VALUE",
        help="The Cache-Control header to send for all requests except the entrypoint "
             "(default: max-age=60).",
    )
    parser.add_argument(
        "--entrypoint", metavar="FILE",
        help="The main entrypoint to your PWA for all routes (default: index.html).",
    )
    parser.add_argument(
        "--forward-errors", action="store_const", const=True, default=None,
        help="Hand errors to the app's exception handlers instead of writing them directly.",
    )
    parser.add_argument(
        "--no-compression", dest="compression", action="store_const", const=False, default=None,
        help="Disable gzip compression.",
    )
    parser.add_argument("--log-level", choices=LOG_LEVELS, help="Logging level (default: info).")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=(args.log_level or "info").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides = {
        key: value
        for key, value in vars(args).items()
        if key != "config" and value is not None
    }
    try:
        settings = load_settings(args.config, **overrides)
    except ConfigError as e:
        parser.exit(2, f"{parser.prog}: error: {e}\n")

    logging.getLogger().setLevel(settings.log_level.upper())

    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        # Behind a reverse proxy, trust X-Forwarded-* from anywhere
        proxy_headers=True,
        forwarded_allow_ips="*",
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
