"""Static asset provider — serves the browser console bundled with the relay."""

import logging
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)

CHARSET_SUFFIX = ";charset=UTF-8"
DEFAULT_CONTENT_TYPE = "text/plain"
INDEX_FILE = "index.html"

CONTENT_TYPES = {
    "js": "application/javascript",
    "css": "text/css",
    "html": "text/html",
    "json": "application/json",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
}


def get_content_type(path: str) -> str:
    """Content type for a path by extension, with the charset appended."""
    suffix = PurePosixPath(path).suffix.lstrip(".").lower()
    return CONTENT_TYPES.get(suffix, DEFAULT_CONTENT_TYPE) + CHARSET_SUFFIX


class StaticAssetProvider:
    """Maps request paths onto files below a root directory.

    ``/`` and ``/index.html`` both serve ``index.html``. Paths that resolve
    outside the root are treated as missing.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def resolve(self, path: str) -> Path | None:
        relative = path.lstrip("/") or INDEX_FILE
        candidate = (self.root / relative).resolve()
        if not candidate.is_relative_to(self.root):
            logger.warning("Rejected static path outside root: %s", path)
            return None
        return candidate

    def load(self, path: str) -> tuple[bytes, str] | None:
        """Read an asset.

        Returns:
            (body, content type), or None when the asset does not exist.
        """
        file_path = self.resolve(path)
        if file_path is None or not file_path.is_file():
            return None
        return file_path.read_bytes(), get_content_type(file_path.name)
