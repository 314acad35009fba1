import math
from typing import Optional, Tuple

import cv2
import numpy as np
from skimage.util import img_as_ubyte

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])


def _round_half_up(values: np.ndarray) -> np.ndarray:
    # intensities are non-negative, so this is round-half-away-from-zero
    return np.floor(values + 0.5)


def rgba_to_gray(buffer, width: int, height: int) -> np.ndarray:
    """
    Convert an RGBA byte buffer to one byte per pixel

    Args:
        buffer: Flat RGBA buffer (4 bytes per pixel)
        width, height: Image dimensions

    Returns:
        Flat uint8 array of length width * height
    """
    if isinstance(buffer, (bytes, bytearray)):
        rgba = np.frombuffer(buffer, dtype=np.uint8)
    else:
        rgba = np.asarray(buffer, dtype=np.uint8).ravel()
    if rgba.size != width * height * 4:
        raise ValueError(f"RGBA buffer of length {rgba.size} does not match {width}x{height}")

    rgb = rgba.reshape(-1, 4)[:, :3].astype(np.float64)
    gray = _round_half_up(rgb @ LUMA_WEIGHTS)
    return np.clip(gray, 0, 255).astype(np.uint8)


def calculate_resize_dimensions(width: int, height: int, target_long_edge: int) -> Tuple[int, int]:
    """New size with the long edge scaled down to target_long_edge"""
    max_dimension = max(width, height)
    if max_dimension <= target_long_edge:
        return width, height

    scale = target_long_edge / max_dimension
    new_width = int(math.floor(width * scale + 0.5))
    new_height = int(math.floor(height * scale + 0.5))
    return new_width, new_height


def bilinear_resize(buffer, src_width: int, src_height: int,
                    dst_width: int, dst_height: int) -> np.ndarray:
    """
    Bilinear resampling of a single-channel byte buffer

    Destination pixel (x, y) samples the source at (x * w_ratio, y * h_ratio)
    from its four neighbours, clamped at the right and bottom edges.

    Returns:
        Flat uint8 array of length dst_width * dst_height
    """
    if dst_width == 0 or dst_height == 0:
        return np.zeros(0, dtype=np.uint8)

    src = np.asarray(buffer, dtype=np.uint8).reshape(src_height, src_width).astype(np.float64)

    x_ratio = src_width / dst_width
    y_ratio = src_height / dst_height

    src_x = np.arange(dst_width) * x_ratio
    src_y = np.arange(dst_height) * y_ratio

    x1 = np.floor(src_x).astype(int)
    y1 = np.floor(src_y).astype(int)
    x2 = np.minimum(x1 + 1, src_width - 1)
    y2 = np.minimum(y1 + 1, src_height - 1)

    dx = (src_x - x1)[np.newaxis, :]
    dy = (src_y - y1)[:, np.newaxis]

    p11 = src[np.ix_(y1, x1)]
    p12 = src[np.ix_(y1, x2)]
    p21 = src[np.ix_(y2, x1)]
    p22 = src[np.ix_(y2, x2)]

    interpolated = (p11 * (1 - dx) * (1 - dy) +
                    p12 * dx * (1 - dy) +
                    p21 * (1 - dx) * dy +
                    p22 * dx * dy)

    return np.clip(_round_half_up(interpolated), 0, 255).astype(np.uint8).ravel()


def resize_image(buffer, width: int, height: int,
                 target_long_edge: int) -> Tuple[np.ndarray, int, int]:
    """
    Resize a grayscale buffer so that its long edge is at most target_long_edge

    Returns:
        data: Flat uint8 buffer
        width, height: New dimensions
    """
    new_width, new_height = calculate_resize_dimensions(width, height, target_long_edge)
    data = bilinear_resize(buffer, width, height, new_width, new_height)
    return data, new_width, new_height


def to_byte_image(image: np.ndarray) -> np.ndarray:
    """
    Bring a single-channel image to uint8

    uint8 input is returned unchanged; float input in [0, 1] and other integer
    types are rescaled to 0-255.
    """
    image = np.asarray(image)
    if image.dtype == np.uint8:
        return image
    return img_as_ubyte(image)


def load_grayscale(path: str, target_long_edge: Optional[int] = None) -> np.ndarray:
    """
    Load an image file as a 2D uint8 grayscale array

    Args:
        path: Image file path
        target_long_edge: Optional long-edge size to shrink to

    Returns:
        Grayscale image [H, W]
    """
    image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ValueError(f"Could not load image: {path}")

    image = to_byte_image(image)
    if image.ndim == 2:
        rgba = cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
    elif image.shape[2] == 4:
        rgba = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    else:
        rgba = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)

    height, width = rgba.shape[:2]
    gray = rgba_to_gray(rgba, width, height)

    if target_long_edge is not None:
        gray, width, height = resize_image(gray, width, height, target_long_edge)

    return gray.reshape(height, width)
