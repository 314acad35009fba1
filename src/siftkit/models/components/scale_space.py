import logging
import math
from typing import List, Optional, Tuple

import numpy as np

from .gaussian_blur import EPSILON, gaussian_blur, kernel_size_for_sigma
from .grid import Grid

logger = logging.getLogger(__name__)

MIN_OCTAVE_SIZE = 16


def downsample_half(src: Grid) -> Grid:
    """Nearest-neighbour downsampling with stride 2 and clamped reads"""
    new_w = max(src.width // 2, 1)
    new_h = max(src.height // 2, 1)
    xs = np.minimum(np.arange(new_w) * 2, src.width - 1)
    ys = np.minimum(np.arange(new_h) * 2, src.height - 1)
    return Grid.from_array(src.data[np.ix_(ys, xs)])


class GaussianScaleSpace:
    """
    Gaussian / Difference-of-Gaussians pyramid construction

    Each octave holds scales + 3 progressively blurred images and
    scales + 2 DoG images. Octaves are chained by halving the Gaussian level
    whose absolute blur is twice sigma_0.
    """

    def __init__(self,
                 scales: int = 3,
                 sigma_0: float = 1.6,
                 sigma_n: float = 0.5,
                 max_octaves: Optional[int] = None,
                 k: Optional[float] = None):
        """
        Initialize scale space parameters

        Args:
            scales: Number of scale levels per octave used for detection
            sigma_0: Blur of the first level of every octave
            sigma_n: Blur assumed to be already present in the input image
            max_octaves: Optional cap on the number of octaves
            k: Scale growth factor between levels, defaults to 2^(1/scales)
        """
        if scales < 1:
            raise ValueError(f"scales must be >= 1, got {scales}")
        if k is None:
            k = 2.0 ** (1.0 / scales)
        if k <= 1.0:
            raise ValueError(f"k must be > 1.0, got {k}")

        self.scales = scales
        self.sigma_0 = sigma_0
        self.sigma_n = sigma_n
        self.max_octaves = max_octaves
        self.k = k

    def sigma_for_level(self, level: int) -> float:
        """Absolute blur of a level, relative to its octave's resolution"""
        return self.sigma_0 * self.k ** level

    def build_octave(self, image: Grid, sigma_n: float) -> Tuple[List[Grid], List[Grid]]:
        """
        Build the Gaussian and DoG stacks of one octave

        Args:
            image: Octave base image
            sigma_n: Blur already present in the base image

        Returns:
            dogs: scales + 2 DoG images
            gaussians: scales + 3 Gaussian images
        """
        sigma_base = math.sqrt(max(0.0, self.sigma_0 ** 2 - sigma_n ** 2))

        if sigma_base > EPSILON:
            g0 = gaussian_blur(image, kernel_size_for_sigma(sigma_base), sigma_base)
        else:
            g0 = image.copy()

        gaussians = [g0]

        # Blur the previous level by the incremental sigma; blurs add in quadrature
        for i in range(1, self.scales + 3):
            sigma_prev = self.sigma_for_level(i - 1)
            sigma_curr = self.sigma_for_level(i)
            sigma_inc = math.sqrt(max(0.0, sigma_curr ** 2 - sigma_prev ** 2))

            gaussians.append(
                gaussian_blur(gaussians[-1], kernel_size_for_sigma(sigma_inc), sigma_inc)
            )

        # Later level minus earlier level
        dogs = [gaussians[i + 1].difference(gaussians[i]) for i in range(self.scales + 2)]

        return dogs, gaussians

    def build(self, image: Grid) -> Tuple[List[List[Grid]], List[List[Grid]]]:
        """
        Build the full pyramid

        Args:
            image: Full-resolution grayscale grid

        Returns:
            dogs: Per-octave DoG stacks
            gaussians: Per-octave Gaussian stacks
        """
        dog_pyramid = []
        gaussian_pyramid = []

        current = image
        current_sigma_n = self.sigma_n

        while True:
            if self.max_octaves is not None and len(dog_pyramid) >= self.max_octaves:
                break
            if min(current.width, current.height) < MIN_OCTAVE_SIZE:
                break

            dogs, gaussians = self.build_octave(current, current_sigma_n)
            dog_pyramid.append(dogs)
            gaussian_pyramid.append(gaussians)
            logger.debug("Octave %d built at %dx%d", len(dog_pyramid) - 1,
                         current.width, current.height)

            # Level `scales` carries 2 * sigma_0, matching the halved resolution
            current = downsample_half(gaussians[self.scales])
            current_sigma_n = self.sigma_0

        return dog_pyramid, gaussian_pyramid
