import logging
import math
from typing import List, NamedTuple, Tuple

import numpy as np

from .grid import Grid

logger = logging.getLogger(__name__)

TWO_PI = 2.0 * np.pi
NUM_ORIENTATION_BINS = 36

# Finite-difference second derivatives, not normalized
DXX_KERNEL = Grid([0.0, 0.0, 0.0, 1.0, -2.0, 1.0, 0.0, 0.0, 0.0], 3, 3)
DYY_KERNEL = Grid([0.0, 1.0, 0.0, 0.0, -2.0, 0.0, 0.0, 1.0, 0.0], 3, 3)
DXY_KERNEL = Grid([0.25, 0.0, -0.25, 0.0, 0.0, 0.0, -0.25, 0.0, 0.25], 3, 3)


class Keypoint(NamedTuple):
    """Scale-space extremum in octave-local pixel coordinates"""
    x: float
    y: float
    octave: int
    level: int
    sigma: float
    angle: float

    def image_coordinates(self) -> Tuple[float, float]:
        """(x, y) rescaled to the full-resolution input frame"""
        scale = 2 ** self.octave
        return self.x * scale, self.y * scale


def hessian_terms(dog: Grid) -> Tuple[Grid, Grid, Grid]:
    """Second-derivative images Dxx, Dyy, Dxy of a DoG level"""
    return dog.convolve(DXX_KERNEL), dog.convolve(DYY_KERNEL), dog.convolve(DXY_KERNEL)


def edge_response_mask(dxx: Grid, dyy: Grid, dxy: Grid, r: float) -> np.ndarray:
    """
    Ratio-of-principal-curvatures test over a whole level

    A pixel passes when det > 0 and tr^2 / det < (r + 1)^2 / r. A
    non-positive determinant counts as failing.
    """
    tr = dxx.data + dyy.data
    det = dxx.data * dyy.data - dxy.data * dxy.data
    positive = det > 0.0

    edge_ratio = np.full(det.shape, np.inf, dtype=np.float32)
    np.divide(tr * tr, det, out=edge_ratio, where=positive)

    r_cond = (r + 1.0) * (r + 1.0) / r
    return positive & (edge_ratio < r_cond)


def extremum_mask(dogs_octave: List[Grid], s: int, contrast_threshold: float) -> np.ndarray:
    """
    Scale-space extremum test for every interior pixel of DoG level s

    A pixel qualifies when |D| >= contrast_threshold and it is strictly
    greater than, or strictly less than, all 26 neighbours spanning levels
    s - 1, s and s + 1. Image borders are never reported.
    """
    center = dogs_octave[s].data
    h, w = center.shape

    mask = np.abs(center) >= contrast_threshold
    greater = mask.copy()
    less = mask.copy()

    for ds in (-1, 0, 1):
        # edge padding reproduces clamped neighbour reads
        padded = np.pad(dogs_octave[s + ds].data, 1, mode="edge")
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                if ds == 0 and dy == 0 and dx == 0:
                    continue
                neighbour = padded[1 + dy:1 + dy + h, 1 + dx:1 + dx + w]
                greater &= center > neighbour
                less &= center < neighbour

    extrema = greater | less
    interior = np.zeros_like(extrema)
    interior[1:h - 1, 1:w - 1] = True
    return extrema & interior


def assign_orientation(gaussian: Grid, x: int, y: int, sigma: float) -> float:
    """
    Dominant gradient orientation around (x, y)

    Args:
        gaussian: Gaussian image of the keypoint's octave and level
        x, y: Keypoint position in octave-local pixels
        sigma: Keypoint scale

    Returns:
        Center angle of the strongest 10-degree bin, in [0, 2*pi)
    """
    radius = int(math.floor(3.0 * sigma + 0.5))
    sigma_ori = 1.5 * sigma

    dy, dx = np.mgrid[-radius:radius + 1, -radius:radius + 1]
    xx = x + dx
    yy = y + dy

    inside = (xx >= 1) & (yy >= 1) & (xx < gaussian.width - 1) & (yy < gaussian.height - 1)
    dx, dy, xx, yy = dx[inside], dy[inside], xx[inside], yy[inside]

    gx = gaussian.get_clamped(xx + 1, yy) - gaussian.get_clamped(xx - 1, yy)
    gy = gaussian.get_clamped(xx, yy + 1) - gaussian.get_clamped(xx, yy - 1)

    magnitude = np.sqrt(gx * gx + gy * gy)
    angle = np.mod(np.arctan2(gy, gx), TWO_PI)
    weight = np.exp(-(dx * dx + dy * dy) / (2.0 * sigma_ori * sigma_ori))

    bins = np.floor(angle * NUM_ORIENTATION_BINS / TWO_PI + 0.5).astype(int) % NUM_ORIENTATION_BINS
    hist = np.bincount(bins, weights=weight * magnitude, minlength=NUM_ORIENTATION_BINS)

    peak = int(np.argmax(hist))
    return (peak + 0.5) * (TWO_PI / NUM_ORIENTATION_BINS)


class FeatureDetector:
    """
    Scale-space keypoint detection on a DoG pyramid

    Scans every interior level of every octave for contrast-passing 3x3x3
    extrema, rejects edge-like responses with a Hessian test and assigns one
    dominant orientation per surviving point.
    """

    def __init__(self,
                 scales: int = 3,
                 sigma_0: float = 1.6,
                 k: float = None,
                 contrast_threshold: float = 0.03,
                 edge_r: float = 10.0):
        """
        Initialize detector

        Args:
            scales: Levels per octave, detection runs on levels 1..scales
            sigma_0: Base blur of each octave
            k: Scale growth factor, defaults to 2^(1/scales)
            contrast_threshold: Minimum |DoG| of a candidate
            edge_r: Maximum principal curvature ratio
        """
        self.scales = scales
        self.sigma_0 = sigma_0
        self.k = k if k is not None else 2.0 ** (1.0 / scales)
        self.contrast_threshold = contrast_threshold
        self.edge_r = edge_r

    def sigma_for_level(self, level: int) -> float:
        return self.sigma_0 * self.k ** level

    def detect(self, dog_pyramid: List[List[Grid]],
               gaussian_pyramid: List[List[Grid]]) -> List[Keypoint]:
        """
        Detect oriented keypoints

        Args:
            dog_pyramid: Per-octave DoG stacks
            gaussian_pyramid: Per-octave Gaussian stacks

        Returns:
            Keypoints ordered by octave, level, then row-major position
        """
        keypoints = []

        for octave, dogs_octave in enumerate(dog_pyramid):
            for level in range(1, self.scales + 1):
                dog = dogs_octave[level]
                if dog.width < 3 or dog.height < 3:
                    continue

                candidates = extremum_mask(dogs_octave, level, self.contrast_threshold)
                if not candidates.any():
                    continue

                # Hessian maps computed once per level
                dxx, dyy, dxy = hessian_terms(dog)
                accepted = candidates & edge_response_mask(dxx, dyy, dxy, self.edge_r)

                sigma = self.sigma_for_level(level)
                gaussian = gaussian_pyramid[octave][level]

                ys, xs = np.nonzero(accepted)
                for y, x in zip(ys.tolist(), xs.tolist()):
                    angle = assign_orientation(gaussian, x, y, sigma)
                    keypoints.append(Keypoint(float(x), float(y), octave, level, sigma, angle))

                logger.debug("Octave %d level %d: %d candidates, %d keypoints",
                             octave, level, int(candidates.sum()), len(xs))

        return keypoints
