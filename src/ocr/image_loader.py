"""Load DR form images from URLs, data URLs, stored paths or files."""

import base64
import binascii
import io
from pathlib import Path

import numpy as np
import requests
from PIL import Image, UnidentifiedImageError

from src.storage.images import ImageStore
from src.utils.logger import get_logger

logger = get_logger(__name__)


class ImageLoadError(Exception):
    """Raised when an image reference cannot be turned into pixels."""


def decode_image(content: bytes) -> np.ndarray:
    """Decode image bytes into an RGB numpy array.

    Raises:
        ImageLoadError: If the bytes are not a readable image.
    """
    try:
        with Image.open(io.BytesIO(content)) as img:
            return np.array(img.convert("RGB"))
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageLoadError(f"Unreadable image: {exc}") from exc


class ImageLoader:
    """Resolves an image reference to pixels.

    Args:
        store: Image store used to resolve ``/media/...`` paths.
        timeout: HTTP timeout in seconds.
        max_bytes: Largest image accepted from any source.
        allow_local_files: Whether references outside the store may be
            read from the local filesystem. Only the CLI enables this.
    """

    def __init__(
        self,
        store: ImageStore | None = None,
        timeout: float = 30.0,
        max_bytes: int = 10 * 1024 * 1024,
        allow_local_files: bool = False,
    ) -> None:
        self.store = store
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.allow_local_files = allow_local_files

    def load(self, ref: str) -> np.ndarray:
        """Load an image from an http(s) URL, data URL, stored path or file.

        Raises:
            ImageLoadError: If the image cannot be fetched or decoded.
        """
        logger.info("Loading image: %s", ref[:50] + ("..." if len(ref) > 50 else ""))
        if ref.startswith(("http://", "https://")):
            content = self._fetch(ref)
        elif ref.startswith("data:"):
            content = self._decode_data_url(ref)
        else:
            content = self._read_file(ref)

        if len(content) > self.max_bytes:
            raise ImageLoadError(f"Image exceeds {self.max_bytes} bytes")
        return decode_image(content)

    def _fetch(self, url: str) -> bytes:
        try:
            response = requests.get(url, timeout=self.timeout, stream=True)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ImageLoadError(f"Failed to fetch image: {exc}") from exc
        try:
            return self._read_limited(response)
        finally:
            response.close()

    def _read_limited(self, response: requests.Response) -> bytes:
        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > self.max_bytes:
            raise ImageLoadError(f"Image exceeds {self.max_bytes} bytes")

        content = bytearray()
        try:
            for chunk in response.iter_content(chunk_size=64 * 1024):
                content.extend(chunk)
                if len(content) > self.max_bytes:
                    raise ImageLoadError(f"Image exceeds {self.max_bytes} bytes")
        except requests.RequestException as exc:
            raise ImageLoadError(f"Failed to fetch image: {exc}") from exc
        return bytes(content)

    def _decode_data_url(self, ref: str) -> bytes:
        header, _, payload = ref.partition(",")
        if ";base64" not in header or not payload:
            raise ImageLoadError("Only base64 data URLs are supported")
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ImageLoadError(f"Invalid base64 image data: {exc}") from exc

    def _read_file(self, ref: str) -> bytes:
        path = self.store.resolve(ref) if self.store else None
        if path is None:
            if not self.allow_local_files:
                raise ImageLoadError(f"Image is not a stored upload: {ref}")
            path = Path(ref)
        if not path.is_file():
            raise ImageLoadError(f"Image not found: {ref}")
        return path.read_bytes()
