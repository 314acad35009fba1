import logging
import numpy as np
from typing import Dict, List, Optional, Tuple

from .components.grid import Grid
from .components.scale_space import GaussianScaleSpace
from .components.feature_detector import FeatureDetector, Keypoint
from .components.sift_descriptor import SIFTDescriptor
from .components.matcher import DescriptorMatcher, match_topk, match_with_scores

logger = logging.getLogger(__name__)


def to_grid(image) -> Grid:
    """Widen a single-channel intensity image to a float grid"""
    if isinstance(image, Grid):
        return image
    image = np.asarray(image)
    if image.ndim != 2:
        raise ValueError(f"Expected a single-channel image, got shape {image.shape}")
    return Grid.from_array(image)


class SIFT:
    """
    Scale-Invariant Feature Transform

    Main class that orchestrates the complete pipeline:
    1. Gaussian / DoG pyramid construction
    2. Scale-space extremum detection with edge rejection and orientation
    3. 128-D gradient histogram descriptors
    4. Brute-force matching with ratio test and cross-check
    """

    def __init__(self,
                 scales: int = 3,
                 sigma_0: float = 1.6,
                 sigma_n: float = 0.5,
                 contrast_threshold: float = 0.03,
                 edge_r: float = 10.0,
                 max_octaves: Optional[int] = None,
                 ratio_threshold: float = 0.8,
                 cross_check: bool = True,
                 top_k: Optional[int] = None):
        """
        Initialize SIFT pipeline

        Args:
            scales: Scale levels per octave
            sigma_0: Base blur of each octave
            sigma_n: Blur assumed in the input image
            contrast_threshold: Minimum |DoG| response of a keypoint
            edge_r: Maximum ratio of principal curvatures
            max_octaves: Optional cap on the number of octaves
            ratio_threshold: Ratio test threshold used by match_features
            cross_check: Require mutual nearest neighbours when matching
            top_k: Keep only the k best matches (None keeps all)
        """
        self.scales = scales
        self.sigma_0 = sigma_0
        self.sigma_n = sigma_n
        self.contrast_threshold = contrast_threshold
        self.edge_r = edge_r
        self.max_octaves = max_octaves

        # Initialize components
        self.scale_space = GaussianScaleSpace(scales, sigma_0, sigma_n, max_octaves)
        self.detector = FeatureDetector(
            scales=scales,
            sigma_0=sigma_0,
            k=self.scale_space.k,
            contrast_threshold=contrast_threshold,
            edge_r=edge_r
        )
        self.descriptor = SIFTDescriptor()
        self.matcher = DescriptorMatcher(ratio_threshold, cross_check, top_k)

    def build_scale_space(self, image) -> Tuple[List[List[Grid]], List[List[Grid]]]:
        """
        Build DoG and Gaussian pyramids

        Args:
            image: Single-channel image with 0-255 intensities

        Returns:
            dogs, gaussians: Per-octave stacks
        """
        return self.scale_space.build(to_grid(image))

    def detect_and_compute(self, image) -> Tuple[List[Keypoint], np.ndarray]:
        """
        Detect keypoints and compute their descriptors

        Args:
            image: Single-channel image with 0-255 intensities

        Returns:
            keypoints: Oriented keypoints in octave-local coordinates
            descriptors: Array [N, 128] aligned with keypoints
        """
        dogs, gaussians = self.build_scale_space(image)
        logger.info("Built %d octaves", len(dogs))

        keypoints = self.detector.detect(dogs, gaussians)
        logger.info("Detected %d keypoints", len(keypoints))

        descriptors = self.descriptor.describe(gaussians, keypoints)
        return keypoints, descriptors

    def match_features(self, desc1: np.ndarray, desc2: np.ndarray) -> np.ndarray:
        """
        Match feature descriptors

        Args:
            desc1: Descriptors from first image [N, D]
            desc2: Descriptors from second image [M, D]

        Returns:
            matches: Array of matches [K, 2] where each row is [idx1, idx2]
        """
        return self.matcher.match(desc1, desc2)

    def match_images(self, image1, image2) -> Dict:
        """
        Complete detection and matching pipeline for two images

        Args:
            image1: First image
            image2: Second image

        Returns:
            Dictionary containing matching results
        """
        keypoints1, descriptors1 = self.detect_and_compute(image1)
        keypoints2, descriptors2 = self.detect_and_compute(image2)

        matches = self.match_features(descriptors1, descriptors2)
        logger.info("Matched %d of %d/%d keypoints", len(matches),
                    len(keypoints1), len(keypoints2))

        points1 = np.array([keypoints1[i].image_coordinates() for i in matches[:, 0]]).reshape(-1, 2)
        points2 = np.array([keypoints2[j].image_coordinates() for j in matches[:, 1]]).reshape(-1, 2)

        return {
            'keypoints1': keypoints1,
            'keypoints2': keypoints2,
            'descriptors1': descriptors1,
            'descriptors2': descriptors2,
            'matches': matches,
            'matched_points1': points1,
            'matched_points2': points2,
            'num_matches': len(matches)
        }


def detect(image, scales: int, sigma0: float = 1.6, sigma_n: float = 0.5,
           contrast_thresh: float = 0.03, edge_r: float = 10.0,
           max_octaves: Optional[int] = None) -> Tuple[List[Keypoint], np.ndarray]:
    """Detect keypoints and compute index-aligned descriptors"""
    sift = SIFT(scales=scales, sigma_0=sigma0, sigma_n=sigma_n,
                contrast_threshold=contrast_thresh, edge_r=edge_r,
                max_octaves=max_octaves)
    return sift.detect_and_compute(image)


def match(descriptors1, descriptors2, dimension: Optional[int], ratio: float,
          cross_check: bool, top_k: Optional[int]) -> List[Tuple[int, int]]:
    """
    Match two descriptor sets

    Returns (index1, index2) pairs. With top_k the pairs are the top_k closest
    matches by distance; with top_k=None all accepted matches in query order.
    """
    if top_k is None:
        scored = match_with_scores(descriptors1, descriptors2, ratio, cross_check, dimension)
    else:
        scored = match_topk(descriptors1, descriptors2, ratio, cross_check, top_k, dimension)
    return [(m.query_idx, m.train_idx) for m in scored]
