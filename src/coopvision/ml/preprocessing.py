"""Image decoding and the classifier input transform.

Decoding turns file bytes into an HxWx3 RGB uint8 array. ``preprocess`` turns
that array into the NCHW float32 tensor the frozen model was exported for:
bilinear resize to a square, scale to [0, 1], then ImageNet mean/std
normalization per channel.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import TYPE_CHECKING, Final

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

if TYPE_CHECKING:
    from numpy.typing import NDArray

DEFAULT_INPUT_SIZE: Final[int] = 224

IMAGENET_MEAN: Final = np.array([0.485, 0.456, 0.406], dtype=np.float32)
IMAGENET_STD: Final = np.array([0.229, 0.224, 0.225], dtype=np.float32)

_PIXEL_SCALE: Final = np.float32(255.0)


def decode_image(image_bytes: bytes, max_pixels: int | None = None) -> NDArray[np.uint8]:
    """Decode raw image bytes into an RGB uint8 numpy array.

    Args:
        image_bytes: Raw file bytes (any format Pillow can read).
        max_pixels: Reject images with more pixels than this, if set.

    Returns:
        HxWx3 RGB uint8 numpy array.

    Raises:
        ValueError: If the image cannot be decoded or exceeds size limits.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            width, height = img.size
            if max_pixels is not None and width * height > max_pixels:
                raise ValueError(f"Image has {width * height} pixels, limit is {max_pixels}")
            oriented = ImageOps.exif_transpose(img)
            rgb = oriented.convert("RGB")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as exc:
        raise ValueError(f"Cannot decode image: {exc}") from exc

    return np.asarray(rgb, dtype=np.uint8)


def load_image(path: str | Path, max_pixels: int | None = None) -> NDArray[np.uint8]:
    """Read an image file from disk and decode it (see ``decode_image``)."""
    data = Path(path).read_bytes()
    return decode_image(data, max_pixels=max_pixels)


def _check_image(image: NDArray[np.uint8]) -> None:
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an HxWx3 RGB image, got shape {image.shape}")
    if image.shape[0] == 0 or image.shape[1] == 0:
        raise ValueError(f"Image has zero size: {image.shape}")
    if image.dtype != np.uint8:
        raise ValueError(f"Expected uint8 pixels, got {image.dtype}")


def resize_image(image: NDArray[np.uint8], target_size: int) -> NDArray[np.uint8]:
    """Resize an RGB image to ``target_size`` x ``target_size`` with bilinear resampling."""
    _check_image(image)
    if target_size < 1:
        raise ValueError(f"target_size must be positive, got {target_size}")

    resized = Image.fromarray(np.ascontiguousarray(image)).resize(
        (target_size, target_size),
        resample=Image.Resampling.BILINEAR,
    )
    return np.asarray(resized, dtype=np.uint8)


def preprocess(image: NDArray[np.uint8], target_size: int = DEFAULT_INPUT_SIZE) -> NDArray[np.float32]:
    """Convert an RGB image into a normalized model input tensor.

    Args:
        image: HxWx3 RGB uint8 array.
        target_size: Side length of the square model input.

    Returns:
        C-contiguous float32 tensor of shape (1, 3, target_size, target_size).

    Raises:
        ValueError: If the image is not a non-empty HxWx3 uint8 array.
    """
    resized = resize_image(image, target_size)

    scaled = resized.astype(np.float32) / _PIXEL_SCALE
    normalized = (scaled - IMAGENET_MEAN) / IMAGENET_STD

    # HWC -> CHW, then add the batch axis
    tensor = normalized.transpose(2, 0, 1)[np.newaxis, ...]
    return np.ascontiguousarray(tensor, dtype=np.float32)
