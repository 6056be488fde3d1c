"""Local storage for photographed DR forms.

Stores uploaded images under the media directory and maps them to
public ``/media/...`` paths that are served by the API.
"""

import re
import time
import uuid
from pathlib import Path

from src.utils.config import StorageConfig
from src.utils.logger import get_logger

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class UnsupportedImageError(ValueError):
    """Raised for content types that are not accepted images."""


class ImageTooLargeError(ValueError):
    """Raised when an upload exceeds the configured size limit."""


def safe_filename(filename: str) -> str:
    """Reduce a client-supplied filename to a safe basename."""
    name = _UNSAFE_CHARS.sub("-", Path(filename).name).strip(".-")
    return name or "image"


class ImageStore:
    """Filesystem-backed image bucket.

    Args:
        config: Storage configuration (directory, prefix, limits).
    """

    def __init__(self, config: StorageConfig) -> None:
        self.config = config
        self.root = Path(config.media_dir)
        self.prefix = "/" + config.public_prefix.strip("/")

    def save(self, content: bytes, filename: str, content_type: str | None) -> str:
        """Write an image and return its public path.

        Args:
            content: Raw image bytes.
            filename: Original client filename.
            content_type: Declared MIME type.

        Returns:
            Public path such as ``/media/uploads/1714130000000-3f2a9c1e-form.jpg``.
            Names never collide with an earlier upload.

        Raises:
            UnsupportedImageError: If the content type is not allowed.
            ImageTooLargeError: If the content exceeds the size limit.
        """
        if content_type not in self.config.allowed_content_types:
            raise UnsupportedImageError(f"Unsupported file type: {content_type}")
        if len(content) > self.config.max_upload_bytes:
            limit_mb = self.config.max_upload_bytes // (1024 * 1024)
            raise ImageTooLargeError(f"File size exceeds the limit of {limit_mb}MB.")

        folder = self.root / "uploads"
        folder.mkdir(parents=True, exist_ok=True)
        stamp = int(time.time() * 1000)
        while True:
            name = f"{stamp}-{uuid.uuid4().hex[:8]}-{safe_filename(filename)}"
            target = folder / name
            try:
                with open(target, "xb") as f:
                    f.write(content)
                break
            except FileExistsError:
                logger.warning("Stored image name %s already taken, retrying", name)
        logger.info("Stored image %s (%d bytes)", target, len(content))
        return f"{self.prefix}/uploads/{name}"

    def resolve(self, public_path: str) -> Path | None:
        """Map a public path back to a stored file.

        Returns:
            The file path, or ``None`` if the path is not under this store.
        """
        if not public_path.startswith(self.prefix + "/"):
            return None
        relative = public_path[len(self.prefix) + 1 :]
        candidate = (self.root / relative).resolve()
        if self.root.resolve() not in candidate.parents:
            return None
        return candidate
