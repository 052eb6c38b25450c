"""Send a resolved file to the client.

Conditional requests (ETag / If-None-Match / If-Modified-Since) and byte
ranges are handled by Starlette's ``StaticFiles.file_response`` and
``FileResponse``; this module only turns a filesystem path into one of
those responses, or into a ``TransmissionError`` carrying the status code.
"""

import errno
import os
import stat
from urllib.parse import quote

import anyio.to_thread
from starlette.responses import RedirectResponse, Response
from starlette.staticfiles import StaticFiles
from starlette.types import Scope

from pwa_server.exceptions import TransmissionError

INDEX_FILENAME = "index.html"

# Only used for file_response(); lookups never go through it.
_static_files = StaticFiles(directory=None, check_dir=False)


async def _stat(path: str) -> os.stat_result:
    try:
        return await anyio.to_thread.run_sync(os.stat, path)
    except (FileNotFoundError, NotADirectoryError) as e:
        raise TransmissionError(404, str(e)) from e
    except PermissionError as e:
        raise TransmissionError(403, str(e)) from e
    except ValueError as e:
        # Embedded NUL byte or similar: nothing by that name can exist
        raise TransmissionError(404, str(e)) from e
    except OSError as e:
        if e.errno == errno.ENAMETOOLONG:
            raise TransmissionError(404, str(e)) from e
        raise TransmissionError(500, str(e)) from e


def _directory_redirect(scope: Scope) -> Response:
    # Collapse leading slashes so "//host" can never become an absolute URL
    location = quote("/" + scope["path"].lstrip("/")) + "/"
    query = scope.get("query_string", b"").decode("latin-1")
    if query:
        location = f"{location}?{query}"
    return RedirectResponse(location, status_code=301)


async def send_file(scope: Scope, path: str) -> Response:
    """Build the response that streams ``path``.

    A directory is answered with a redirect to the slash-terminated URL, or,
    when the URL already ends in ``/``, with the ``index.html`` inside it.
    Raises ``TransmissionError`` when nothing sendable exists at ``path``.
    """
    stat_result = await _stat(path)

    if stat.S_ISDIR(stat_result.st_mode):
        if not scope["path"].endswith("/"):
            return _directory_redirect(scope)
        path = os.path.join(path, INDEX_FILENAME)
        stat_result = await _stat(path)

    if not stat.S_ISREG(stat_result.st_mode):
        raise TransmissionError(404, f"not a regular file: {path}")

    return _static_files.file_response(path, stat_result, scope)
