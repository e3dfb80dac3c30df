"""
Face Module - Image State Bank
==============================
Builds the two avatar frames (idle and speaking) from a single piece of
source artwork.

Features:
- Decode PNG/JPG/etc. with OpenCV, alpha preserved
- Nearest-neighbour resize to the fixed texture size
- Idle frame derived once by a clamped brightness offset
- Read-only, tightly packed RGBA8 buffers
"""

import logging
from pathlib import Path
from typing import Union

import numpy as np

from .errors import ImageLoadError

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 512
DEFAULT_HEIGHT = 512

# Added to R, G and B of the speaking frame to get the idle frame
DEFAULT_IDLE_BRIGHTNESS = -50

BYTES_PER_PIXEL = 4


def to_rgba(image: np.ndarray, origin: str = "array") -> np.ndarray:
    """
    Convert an OpenCV-ordered image (gray, BGR or BGRA) to RGBA8.

    16-bit input is scaled down to 8 bits.

    Raises:
        ImageLoadError: Unsupported pixel depth or channel count
    """
    import cv2

    if image.dtype == np.uint16:
        image = (image // 257).astype(np.uint8)
    elif image.dtype != np.uint8:
        raise ImageLoadError(f"Unsupported pixel depth {image.dtype} in {origin}")

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
    if image.ndim == 3 and image.shape[2] == 1:
        return cv2.cvtColor(image[..., 0], cv2.COLOR_GRAY2RGBA)
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)

    raise ImageLoadError(f"Unsupported image shape {image.shape} in {origin}")


def decode_image(path: Union[str, Path]) -> np.ndarray:
    """
    Decode an image file to an RGBA8 array.

    Args:
        path: Image file readable by OpenCV

    Returns:
        uint8 array of shape (H, W, 4), RGBA order

    Raises:
        ImageLoadError: File missing or not decodable
    """
    import cv2

    path = Path(path)
    if not path.exists():
        raise ImageLoadError(f"Avatar image not found: {path}")

    image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ImageLoadError(f"Failed to decode avatar image: {path}")

    return to_rgba(image, origin=str(path))


def resize_nearest(rgba: np.ndarray, width: int, height: int) -> np.ndarray:
    """Resize to exactly width x height, no smoothing. Aspect ratio is not kept."""
    import cv2

    return cv2.resize(rgba, (width, height), interpolation=cv2.INTER_NEAREST)


def adjust_brightness(rgba: np.ndarray, offset: int) -> np.ndarray:
    """Add ``offset`` to the colour channels, clamped to 0..255. Alpha is untouched."""
    out = rgba.astype(np.int16)
    out[..., :3] += offset
    return np.clip(out, 0, 255).astype(np.uint8)


def _freeze(pixels: np.ndarray) -> np.ndarray:
    frozen = np.ascontiguousarray(pixels, dtype=np.uint8).copy()
    frozen.flags.writeable = False
    return frozen


class ImageStateBank:
    """
    The two precomputed frames of an avatar.

    Both buffers share one size, are RGBA8 with a row stride of
    ``width * 4`` and are never modified after construction.
    """

    def __init__(self, idle_buffer: np.ndarray, speaking_buffer: np.ndarray):
        if idle_buffer.shape != speaking_buffer.shape:
            raise ValueError(
                f"Idle and speaking frames differ in size: "
                f"{idle_buffer.shape} vs {speaking_buffer.shape}"
            )
        if idle_buffer.ndim != 3 or idle_buffer.shape[2] != BYTES_PER_PIXEL:
            raise ValueError(f"Expected RGBA frames of shape (H, W, 4), got {idle_buffer.shape}")

        self.idle_buffer = _freeze(idle_buffer)
        self.speaking_buffer = _freeze(speaking_buffer)

    @classmethod
    def from_rgba(
        cls,
        rgba: np.ndarray,
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        brightness: int = DEFAULT_IDLE_BRIGHTNESS,
    ) -> "ImageStateBank":
        """Derive both frames from an already decoded RGBA image."""
        speaking = resize_nearest(rgba, width, height)
        idle = adjust_brightness(speaking, brightness)
        return cls(idle, speaking)

    @classmethod
    def from_array(
        cls,
        image: np.ndarray,
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        brightness: int = DEFAULT_IDLE_BRIGHTNESS,
    ) -> "ImageStateBank":
        """
        Derive both frames from an in-memory image in OpenCV channel order.

        Args:
            image: Gray, BGR or BGRA array, as returned by cv2.imread
            width: Target width in pixels
            height: Target height in pixels
            brightness: Offset applied to build the idle frame

        Raises:
            ImageLoadError: Unsupported pixel depth or channel count
        """
        rgba = to_rgba(np.asarray(image))
        return cls.from_rgba(rgba, width=width, height=height, brightness=brightness)

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        brightness: int = DEFAULT_IDLE_BRIGHTNESS,
    ) -> "ImageStateBank":
        """
        Decode the artwork and derive both frames.

        Raises:
            ImageLoadError: The artwork could not be decoded
        """
        rgba = decode_image(path)
        bank = cls.from_rgba(rgba, width=width, height=height, brightness=brightness)
        logger.info(
            f"Avatar frames built from {Path(path).name}: "
            f"{rgba.shape[1]}x{rgba.shape[0]} -> {width}x{height}"
        )
        return bank

    @property
    def width(self) -> int:
        return self.speaking_buffer.shape[1]

    @property
    def height(self) -> int:
        return self.speaking_buffer.shape[0]

    @property
    def row_stride(self) -> int:
        return self.width * BYTES_PER_PIXEL
