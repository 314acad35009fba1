import logging
import math
from typing import List, Sequence, Tuple

import numpy as np

from .feature_detector import Keypoint, TWO_PI
from .grid import Grid

logger = logging.getLogger(__name__)


class SIFTDescriptor:
    """
    Gradient orientation histogram descriptor

    Samples a rotation- and scale-normalized window around each keypoint into
    a num_cells x num_cells grid of num_orientation_bins histograms
    (4 x 4 x 8 = 128 values by default) using trilinear interpolation,
    then normalizes the vector for illumination invariance.
    Reference: Lowe, D. G. (2004). Distinctive image features from
    scale-invariant keypoints.
    """

    def __init__(self,
                 num_cells: int = 4,
                 num_orientation_bins: int = 8,
                 bin_size: float = 4.0,
                 clip_threshold: float = 0.2):
        """
        Initialize descriptor parameters

        Args:
            num_cells: Spatial cells per side
            num_orientation_bins: Orientation bins per cell
            bin_size: Cell width in pixels at scale 1
            clip_threshold: Upper bound applied between the two normalizations
        """
        self.num_cells = num_cells
        self.num_orientation_bins = num_orientation_bins
        self.bin_size = bin_size
        self.clip_threshold = clip_threshold
        # Gaussian falloff in cell units
        self.sigma_descr = 0.5 * num_cells

    def get_descriptor_size(self) -> int:
        return self.num_cells * self.num_cells * self.num_orientation_bins

    def sample_radius(self, sigma: float) -> int:
        """Half-diagonal of the rotated cell grid, in pixels"""
        return int(math.ceil(sigma * self.bin_size * self.num_cells * 0.5 * math.sqrt(2.0)))

    def sample_gradients(self, gaussian: Grid, keypoint: Keypoint) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """
        Gradient samples of the keypoint window in descriptor coordinates

        Args:
            gaussian: Gaussian image at the keypoint's octave and level
            keypoint: Oriented keypoint

        Returns:
            cell_x, cell_y: Continuous cell coordinates
            orientation_bin: Continuous orientation bin relative to the keypoint angle
            weight: Gaussian-weighted gradient magnitude
        """
        n = self.num_cells
        cos_t = math.cos(keypoint.angle)
        sin_t = math.sin(keypoint.angle)
        radius = self.sample_radius(keypoint.sigma)

        kx, ky = int(keypoint.x), int(keypoint.y)
        dy, dx = np.mgrid[-radius:radius + 1, -radius:radius + 1]
        xx = kx + dx
        yy = ky + dy

        inside = (xx > 0) & (yy > 0) & (xx < gaussian.width - 1) & (yy < gaussian.height - 1)
        dx, dy, xx, yy = dx[inside], dy[inside], xx[inside], yy[inside]

        gx = (gaussian.get_clamped(xx + 1, yy) - gaussian.get_clamped(xx - 1, yy)).astype(np.float64)
        gy = (gaussian.get_clamped(xx, yy + 1) - gaussian.get_clamped(xx, yy - 1)).astype(np.float64)
        magnitude = np.sqrt(gx * gx + gy * gy)

        # Rotate by -angle and scale into cell units
        scale = self.bin_size * keypoint.sigma
        rx = (cos_t * dx + sin_t * dy) / scale
        ry = (-sin_t * dx + cos_t * dy) / scale

        cell_x = rx + n / 2.0 - 0.5
        cell_y = ry + n / 2.0 - 0.5

        keep = (magnitude > 0.0) & (cell_x > -1.0) & (cell_y > -1.0) & (cell_x < n) & (cell_y < n)
        gx, gy, magnitude = gx[keep], gy[keep], magnitude[keep]
        rx, ry, cell_x, cell_y = rx[keep], ry[keep], cell_x[keep], cell_y[keep]

        angle = np.mod(np.arctan2(gy, gx) - keypoint.angle, TWO_PI)
        orientation_bin = angle * self.num_orientation_bins / TWO_PI

        falloff = np.exp(-(rx * rx + ry * ry) / (2.0 * self.sigma_descr * self.sigma_descr))

        return cell_x, cell_y, orientation_bin, magnitude * falloff

    def accumulate_histogram(self, cell_x: np.ndarray, cell_y: np.ndarray,
                             orientation_bin: np.ndarray, weight: np.ndarray) -> np.ndarray:
        """
        Trilinear accumulation into the flat cell/orientation histogram

        Orientation indices wrap around; spatial indices outside the grid are
        dropped.
        """
        n = self.num_cells
        nb = self.num_orientation_bins
        size = self.get_descriptor_size()
        hist = np.zeros(size, dtype=np.float64)

        x0 = np.floor(cell_x).astype(int)
        y0 = np.floor(cell_y).astype(int)
        o0 = np.floor(orientation_bin).astype(int)
        fx = cell_x - x0
        fy = cell_y - y0
        fo = orientation_bin - o0

        for ix, wx in ((x0, 1.0 - fx), (x0 + 1, fx)):
            for iy, wy in ((y0, 1.0 - fy), (y0 + 1, fy)):
                valid = (ix >= 0) & (ix < n) & (iy >= 0) & (iy < n)
                for io, wo in ((o0, 1.0 - fo), (o0 + 1, fo)):
                    index = (iy * n + ix) * nb + np.mod(io, nb)
                    hist += np.bincount(index[valid], weights=(weight * wx * wy * wo)[valid],
                                        minlength=size)

        return hist

    def normalize(self, hist: np.ndarray) -> np.ndarray:
        """L2 normalize, clip large components, L2 normalize again"""
        descriptor = hist.copy()

        norm = np.linalg.norm(descriptor)
        if norm > 0:
            descriptor /= norm

        descriptor = np.minimum(descriptor, self.clip_threshold)

        norm = np.linalg.norm(descriptor)
        if norm > 0:
            descriptor /= norm

        return descriptor

    def compute_descriptor(self, gaussian: Grid, keypoint: Keypoint) -> np.ndarray:
        cell_x, cell_y, orientation_bin, weight = self.sample_gradients(gaussian, keypoint)
        hist = self.accumulate_histogram(cell_x, cell_y, orientation_bin, weight)
        return self.normalize(hist).astype(np.float32)

    def describe(self, gaussian_pyramid: List[List[Grid]],
                 keypoints: Sequence[Keypoint]) -> np.ndarray:
        """
        Compute descriptors for multiple keypoints

        Args:
            gaussian_pyramid: Per-octave Gaussian stacks
            keypoints: Keypoints from FeatureDetector.detect

        Returns:
            Array of descriptors [N, descriptor_dim], row i belongs to keypoint i
        """
        descriptors = np.zeros((len(keypoints), self.get_descriptor_size()), dtype=np.float32)

        for i, kp in enumerate(keypoints):
            descriptors[i] = self.compute_descriptor(gaussian_pyramid[kp.octave][kp.level], kp)

        logger.debug("Computed %d descriptors", len(keypoints))
        return descriptors
