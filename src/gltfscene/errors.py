"""Exceptions raised while loading glTF assets."""


class GltfLoadError(RuntimeError):
    """Base class for every failure surfaced by the loader."""


class ParseError(GltfLoadError):
    """Raised when the glTF container or its JSON cannot be parsed."""


class IoError(GltfLoadError):
    """Raised when an external buffer or image file cannot be read."""


class DecodeError(GltfLoadError):
    """Raised when a base64 data URI payload is malformed."""


class ImageDecodeError(GltfLoadError):
    """Raised when image bytes are corrupt or not PNG/JPEG."""


class MissingAttributeError(GltfLoadError):
    """Raised when a mesh primitive has no POSITION attribute."""


class BadModeError(GltfLoadError):
    """Raised when a model is viewed with a mode it was not built with."""

    def __init__(self, mode):
        super().__init__(f"Operation not supported for primitive mode {mode.name}")
        self.mode = mode
