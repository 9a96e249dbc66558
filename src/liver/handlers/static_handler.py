"""
Static file responder with reload snippet injection.

Files are served from the source root as-is, except HTML documents, which
get the reload snippet appended.
"""

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from aiohttp import web

from liver.core.exceptions import NotFoundError
from liver.core.snippet import build_reload_snippet

logger = logging.getLogger(__name__)

INDEX_FILE = "index.html"
DEFAULT_CONTENT_TYPE = "text/plain"
HTML_CONTENT_TYPE = "text/html"


@dataclass(frozen=True)
class ResolvedFile:
    """A file ready to be sent: body bytes and their content type."""
    body: bytes
    content_type: str

    @property
    def is_html(self) -> bool:
        return self.content_type == HTML_CONTENT_TYPE


def guess_content_type(path: Path) -> str:
    """Content type from the file extension, case-insensitively; text/plain if unknown."""
    content_type, _ = mimetypes.guess_type("file" + path.suffix.lower(), strict=False)
    return content_type or DEFAULT_CONTENT_TYPE


def resolve(request_path: Optional[str], source_root: Path, ws_port: int) -> ResolvedFile:
    """Resolve ``request_path`` under ``source_root`` into a response body.

    Raises ``NotFoundError`` when the file cannot be read or the path
    escapes the source root.
    """
    root = Path(source_root)
    target = root / request_path if request_path else root / INDEX_FILE

    if target.is_dir():
        target = target / INDEX_FILE

    canonical_root = root.resolve()
    try:
        canonical_target = target.resolve()
    except (OSError, ValueError) as e:
        # Symlink loops and embedded NUL bytes
        logger.debug(f"Cannot resolve {target}: {e}")
        raise NotFoundError("File", request_path)
    if not canonical_target.is_relative_to(canonical_root):
        logger.warning(f"Refusing to serve path outside source root: {request_path}")
        raise NotFoundError("File", request_path)

    try:
        body = canonical_target.read_bytes()
    except OSError as e:
        logger.debug(f"Cannot read {canonical_target}: {e}")
        raise NotFoundError("File", request_path or INDEX_FILE)

    content_type = guess_content_type(target)
    if content_type == HTML_CONTENT_TYPE:
        body += build_reload_snippet(ws_port)

    return ResolvedFile(body=body, content_type=content_type)


class StaticFilesHandler:
    """aiohttp handlers serving the source root."""

    def __init__(self, source_root: Path, ws_port: int):
        self.source_root = Path(source_root)
        self.ws_port = ws_port

    def _respond(self, request_path: Optional[str]) -> web.Response:
        resolved = resolve(request_path, self.source_root, self.ws_port)
        return web.Response(
            body=resolved.body,
            content_type=resolved.content_type,
            headers={"Cache-Control": "no-cache"},
        )

    async def handle_index(self, request: web.Request) -> web.Response:
        return self._respond(None)

    async def handle(self, request: web.Request) -> web.Response:
        return self._respond(request.match_info.get("path"))
