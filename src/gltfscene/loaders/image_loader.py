"""
Buffer and Image Resolver

Resolves glTF buffer and image references (GLB binary chunk, base64 data URI,
or external file next to the asset) into bytes and decoded RGBA pixels.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Dict, Optional, Tuple
from urllib.parse import unquote

import numpy as np
import pygltflib
from PIL import Image

from ..config.settings import IMAGE_PIXEL_MODE, SUPPORTED_IMAGE_FORMATS
from ..errors import DecodeError, ImageDecodeError, IoError, ParseError

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:"
BASE64_SUFFIX = ";base64"


@dataclass(frozen=True, eq=False)
class ImageData:
    """Decoded image: 8-bit RGBA pixels in row-major order, shape (height, width, 4)."""

    width: int
    height: int
    pixels: np.ndarray

    def sample(self, u: float, v: float) -> np.ndarray:
        """
        Fetch the texel under a texture coordinate.

        Nearest filtering with repeat wrapping; (0, 0) is the top-left corner
        as in glTF.

        Returns:
            uint8 array of 4 channels (RGBA)
        """
        x = int(np.floor(u * self.width)) % self.width
        y = int(np.floor(v * self.height)) % self.height
        return self.pixels[y, x]


def split_data_uri(uri: str) -> Tuple[Optional[str], bytes]:
    """
    Decode a ``data:`` URI.

    Args:
        uri: Full URI, e.g. ``data:image/png;base64,iVBOR...``

    Returns:
        (mime type or None, decoded payload)
    """
    header, sep, payload = uri.partition(",")
    if not sep:
        raise DecodeError("Data URI has no payload separator")
    if not header.endswith(BASE64_SUFFIX):
        raise DecodeError(f"Only base64 data URIs are supported: {header}")

    mime_type = header[len(DATA_URI_PREFIX):-len(BASE64_SUFFIX)].split(";")[0] or None
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Malformed base64 payload in data URI: {exc}") from exc
    return mime_type, data


def decode_image(data: bytes, mime_type: Optional[str] = None) -> ImageData:
    """
    Decode PNG/JPEG bytes into RGBA pixels.

    Args:
        data: Encoded image bytes
        mime_type: Declared MIME type; None lets Pillow detect among supported codecs

    Returns:
        ImageData with an (H, W, 4) uint8 array
    """
    if mime_type is None:
        formats = list(SUPPORTED_IMAGE_FORMATS.values())
    elif mime_type in SUPPORTED_IMAGE_FORMATS:
        formats = [SUPPORTED_IMAGE_FORMATS[mime_type]]
    else:
        raise ImageDecodeError(f"Unsupported image MIME type: {mime_type}")

    try:
        with Image.open(BytesIO(data), formats=formats) as img:
            img = img.convert(IMAGE_PIXEL_MODE)
    except (OSError, ValueError, SyntaxError) as exc:
        raise ImageDecodeError(f"Failed to decode image: {exc}") from exc

    pixels = np.asarray(img, dtype=np.uint8).copy()
    # Shared through the per-load cache
    pixels.flags.writeable = False
    height, width = pixels.shape[:2]
    return ImageData(width=width, height=height, pixels=pixels)


class ResourceResolver:
    """
    Resolves buffers and images of a single glTF document.

    Buffer bytes and decoded images are cached for the lifetime of the
    resolver, which is one load call.
    """

    def __init__(self, gltf: pygltflib.GLTF2, base_dir: Optional[Path]):
        """
        Initialize resolver.

        Args:
            gltf: Parsed document
            base_dir: Directory external URIs are relative to (None for in-memory loads)
        """
        self.gltf = gltf
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self._buffers: Dict[int, bytes] = {}
        self._images: Dict[int, ImageData] = {}

    def read_uri(self, uri: str) -> Tuple[Optional[str], bytes]:
        """Read a data URI or an external file relative to the asset."""
        if uri.startswith(DATA_URI_PREFIX):
            return split_data_uri(uri)

        if self.base_dir is None:
            raise IoError(f"Cannot resolve external URI without a base directory: {uri}")

        path = self.base_dir / unquote(uri)
        try:
            return None, path.read_bytes()
        except OSError as exc:
            raise IoError(f"Failed to read {path}: {exc}") from exc

    def buffer_data(self, buffer_idx: int) -> bytes:
        """
        Get the bytes of a buffer.

        Args:
            buffer_idx: Buffer index

        Returns:
            Buffer contents
        """
        if buffer_idx in self._buffers:
            return self._buffers[buffer_idx]

        buffer = _get(self.gltf.buffers, buffer_idx, "buffer")
        if buffer.uri:
            _, data = self.read_uri(buffer.uri)
        else:
            # GLB binary chunk
            data = self.gltf.binary_blob()
            if data is None:
                raise ParseError(f"Buffer {buffer_idx} has no URI and the asset has no binary chunk")

        self._buffers[buffer_idx] = data
        return data

    def buffer_view_data(self, view_idx: int) -> bytes:
        """Slice a buffer view's byte range out of its buffer."""
        view = _get(self.gltf.bufferViews, view_idx, "buffer view")
        data = self.buffer_data(view.buffer)
        offset = view.byteOffset or 0
        end = offset + view.byteLength
        if end > len(data):
            raise ParseError(f"Buffer view {view_idx} exceeds its buffer ({end} > {len(data)} bytes)")
        return data[offset:end]

    def load_image(self, image_idx: int) -> ImageData:
        """
        Decode an image of the document.

        Args:
            image_idx: Image index

        Returns:
            Decoded RGBA image
        """
        if image_idx in self._images:
            return self._images[image_idx]

        image = _get(self.gltf.images, image_idx, "image")
        mime_type = image.mimeType

        if image.uri:
            uri_mime, data = self.read_uri(image.uri)
            mime_type = mime_type or uri_mime
        elif image.bufferView is not None:
            data = self.buffer_view_data(image.bufferView)
        else:
            raise ParseError(f"Image {image_idx} has neither a URI nor a buffer view")

        decoded = decode_image(data, mime_type)
        logger.debug("    Image %d: %dx%d", image_idx, decoded.width, decoded.height)

        self._images[image_idx] = decoded
        return decoded

    def load_texture(self, texture_idx: int) -> ImageData:
        """Decode the image a texture points to."""
        texture = _get(self.gltf.textures, texture_idx, "texture")
        if texture.source is None:
            raise ParseError(f"Texture {texture_idx} has no image source")
        return self.load_image(texture.source)


def _get(items, index: int, kind: str):
    if items is None or index is None or not 0 <= index < len(items):
        raise ParseError(f"Invalid {kind} index: {index}")
    return items[index]
