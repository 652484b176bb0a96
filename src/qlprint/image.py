"""
Bitmap source for the QL driver.

The driver consumes 8-bit grayscale bitmaps (0 = black, 255 = white), one
byte per pixel, row-major. This module provides that type and a default
loader built on Pillow; any other decoder can produce a Bitmap directly.
"""

import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Callable, Union

from PIL import Image, UnidentifiedImageError

from .errors import ImageLoadFailed

log = logging.getLogger(__name__)

# Image size limits to prevent memory exhaustion from malicious/malformed images
MAX_IMAGE_DIMENSION = 10000  # Maximum width or height in pixels
MAX_IMAGE_PIXELS = 10_000_000  # Maximum total pixels (10 megapixels)

ImageSource = Union[str, Path, bytes, Image.Image]


@dataclass(frozen=True)
class Bitmap:
    """Grayscale pixel buffer, one luminance byte per pixel, row-major."""

    width: int
    height: int
    data: bytes

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Invalid bitmap size {self.width}x{self.height}")
        if len(self.data) != self.width * self.height:
            raise ValueError(
                f"Bitmap data is {len(self.data)} bytes, expected "
                f"{self.width * self.height} for {self.width}x{self.height}"
            )

    def pixel(self, x: int, y: int) -> int:
        """Luminance at column x, row y."""
        return self.data[y * self.width + x]

    @classmethod
    def from_image(cls, image: Image.Image) -> "Bitmap":
        """
        Build a bitmap from a PIL image.

        Alpha is dropped rather than composited and colour is reduced to
        luminance, matching what the printer firmware tools expect.
        """
        if image.mode != "L":
            if image.mode == "PA":
                image = image.convert("RGBA")
            image = image.convert("L")
        return cls(image.width, image.height, image.tobytes())


BitmapLoader = Callable[[ImageSource], Bitmap]


def describe_source(source: ImageSource) -> str:
    """Short label for an image source, used in messages."""
    if isinstance(source, (str, Path)):
        return str(source)
    if isinstance(source, bytes):
        return f"<{len(source)} bytes>"
    return repr(source)


def _checked_bitmap(img: Image.Image, item: str) -> Bitmap:
    # Validate image dimensions to prevent memory exhaustion
    if img.width > MAX_IMAGE_DIMENSION or img.height > MAX_IMAGE_DIMENSION:
        raise ImageLoadFailed(
            f"Image dimensions ({img.width}x{img.height}) exceed maximum "
            f"({MAX_IMAGE_DIMENSION}x{MAX_IMAGE_DIMENSION})",
            item=item,
        )
    if img.width * img.height > MAX_IMAGE_PIXELS:
        raise ImageLoadFailed(
            f"Image pixel count ({img.width * img.height:,}) exceeds "
            f"maximum ({MAX_IMAGE_PIXELS:,})",
            item=item,
        )
    return Bitmap.from_image(img)


def load_bitmap(source: ImageSource) -> Bitmap:
    """
    Load an image from a path, encoded bytes, or a PIL Image.

    Files opened here are closed before returning; a PIL Image passed in
    is left open.

    Args:
        source: Image source

    Returns:
        Bitmap ready for raster encoding

    Raises:
        ImageLoadFailed: If the image cannot be read, or is too large
    """
    item = describe_source(source)
    try:
        if isinstance(source, Image.Image):
            bitmap = _checked_bitmap(source, item)
        elif isinstance(source, (str, Path)):
            path = Path(source)
            if not path.exists():
                raise ImageLoadFailed(f"Image file not found: {path}", item=item)
            with Image.open(path) as img:
                bitmap = _checked_bitmap(img, item)
        elif isinstance(source, bytes):
            with Image.open(BytesIO(source)) as img:
                bitmap = _checked_bitmap(img, item)
        else:
            raise ImageLoadFailed(f"Unsupported image type: {type(source)}", item=item)
    except ImageLoadFailed:
        raise
    except (OSError, UnidentifiedImageError, ValueError) as e:
        raise ImageLoadFailed(f"Failed to load image: {e}", item=item) from e

    log.debug("Loaded %s: %dx%d", item, bitmap.width, bitmap.height)
    return bitmap
