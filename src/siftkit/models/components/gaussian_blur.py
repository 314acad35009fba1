import math

import numpy as np

from .grid import Grid

EPSILON = float(np.finfo(np.float32).eps)


def kernel_size_for_sigma(sigma: float) -> int:
    """Smallest odd size >= ceil(6 * sigma), never below 3"""
    size = int(math.ceil(sigma * 6.0))
    if size % 2 == 0:
        size += 1
    return max(size, 3)


def gaussian_kernel(size: int, sigma: float) -> Grid:
    """
    Build a normalized isotropic Gaussian kernel

    Args:
        size: Odd kernel width and height
        sigma: Standard deviation in pixels

    Returns:
        Kernel grid whose weights sum to 1
    """
    if size % 2 != 1:
        raise ValueError(f"Kernel size must be odd (3, 5, 7, ...), got {size}")
    if sigma <= 0.0:
        raise ValueError(f"Sigma must be larger than 0, got {sigma}")

    r = size // 2
    dy, dx = np.mgrid[-r:r + 1, -r:r + 1].astype(np.float64)
    s2 = sigma * sigma
    weights = np.exp(-(dx * dx + dy * dy) / (2.0 * s2)) / (2.0 * np.pi * s2)

    # epsilon keeps the division defined for degenerate kernels
    weights /= weights.sum() + EPSILON

    return Grid.from_array(weights)


def gaussian_blur(image: Grid, kernel_size: int, sigma: float) -> Grid:
    kernel = gaussian_kernel(kernel_size, sigma)
    return image.convolve(kernel)
