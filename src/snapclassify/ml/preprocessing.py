"""Image decoding and model input preprocessing.

Decoding turns raw file bytes into an HxWx3 RGB uint8 array. Preprocessing
resizes that array to the model's square input with bilinear interpolation
and scales pixel values into [0, 1].
"""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from snapclassify.errors import ImageDecodeError

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

INPUT_SIZE: int = 224

# ImageNet statistics, RGB order, for inputs already scaled to [0, 1].
IMAGENET_MEAN = np.array([0.485, 0.456, 0.406], dtype=np.float32)
IMAGENET_STD = np.array([0.229, 0.224, 0.225], dtype=np.float32)


def decode_image(data: bytes, *, max_pixels: int | None = None) -> NDArray[np.uint8]:
    """Decode raw image bytes into an RGB uint8 numpy array.

    Args:
        data: Raw file bytes (any format Pillow understands).
        max_pixels: Reject images with more pixels than this.

    Returns:
        HxWx3 RGB uint8 numpy array.

    Raises:
        ImageDecodeError: If the image cannot be decoded or exceeds size limits.
    """
    if not data:
        raise ImageDecodeError("Image data is empty")

    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
            if max_pixels is not None and width * height > max_pixels:
                raise ImageDecodeError(f"Image too large: {width}x{height} exceeds {max_pixels} pixels")
            oriented = ImageOps.exif_transpose(img)
            rgb = oriented.convert("RGB")
            array = np.asarray(rgb, dtype=np.uint8)
    except ImageDecodeError:
        raise
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError, EOFError, Image.DecompressionBombError) as exc:
        raise ImageDecodeError(f"Could not decode image: {exc}") from exc

    logger.debug("Decoded image %dx%d", array.shape[1], array.shape[0])
    return array


def preprocess(
    image: NDArray[np.uint8],
    *,
    size: int = INPUT_SIZE,
    normalize: bool = False,
) -> NDArray[np.float32]:
    """Resize and scale an image into a model input tensor.

    Args:
        image: HxWx3 RGB uint8 array of any dimensions.
        size: Edge length of the square output.
        normalize: Apply ImageNet mean/std after scaling. Off by default,
            in which case every value lies in [0, 1].

    Returns:
        float32 array of shape (size, size, 3).
    """
    if image.ndim != 3 or image.shape[2] != 3 or image.shape[0] < 1 or image.shape[1] < 1:
        raise ValueError(f"Expected an HxWx3 image, got shape {image.shape}")
    if image.dtype != np.uint8:
        raise ValueError(f"Expected a uint8 image, got {image.dtype}")

    resized = Image.fromarray(image).resize((size, size), Image.Resampling.BILINEAR)
    tensor = np.asarray(resized, dtype=np.float32) / 255.0

    if normalize:
        tensor = (tensor - IMAGENET_MEAN) / IMAGENET_STD

    return tensor.astype(np.float32, copy=False)


def encode_preview(image: NDArray[np.uint8]) -> bytes:
    """Encode a decoded image as PNG for display."""
    buffer = io.BytesIO()
    Image.fromarray(image).save(buffer, format="PNG")
    return buffer.getvalue()
