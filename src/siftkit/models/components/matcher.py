"""
Brute-force descriptor matching with Lowe's ratio test and cross-check.

Distances are squared L2 and the search is exhaustive (no index structure).
"""

import logging
from typing import List, NamedTuple, Optional, Tuple

import numpy as np
from scipy.spatial.distance import cdist

logger = logging.getLogger(__name__)


class Match(NamedTuple):
    query_idx: int
    train_idx: int
    distance: float


def squared_distance(a: np.ndarray, b: np.ndarray) -> float:
    """Squared L2 distance between two equal-length vectors"""
    diff = np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)
    return float(np.dot(diff, diff))


def as_descriptor_matrix(descriptors, dimension: Optional[int] = None) -> np.ndarray:
    """
    Reshape a descriptor set to [N, D]

    Args:
        descriptors: [N, D] array, or flat buffer when dimension is given
        dimension: Descriptor length for flat buffers

    Returns:
        2D float array
    """
    desc = np.asarray(descriptors, dtype=np.float64)

    if dimension is not None:
        if dimension <= 0:
            raise ValueError("descriptor dimension must be > 0")
        if desc.size % dimension != 0:
            raise ValueError(
                f"descriptor buffer of length {desc.size} is not a multiple of {dimension}"
            )
        return desc.reshape(-1, dimension)

    if desc.ndim == 1 and desc.size == 0:
        return desc.reshape(0, 0)
    if desc.ndim != 2:
        raise ValueError(f"Expected descriptors of shape [N, D], got {desc.shape}")
    return desc


def best_two(distances: np.ndarray) -> Tuple[int, float, float]:
    """Index of the nearest candidate plus the best and second-best distances"""
    best_idx = int(np.argmin(distances))
    if len(distances) < 2:
        return best_idx, float(distances[best_idx]), float("inf")
    best, second = np.partition(distances, 1)[:2]
    return best_idx, float(best), float(second)


def passes_ratio_test(best: float, second: float, ratio: float) -> bool:
    return np.isfinite(best) and np.isfinite(second) and second > 0.0 and best / second < ratio


def match_with_scores(desc1, desc2, ratio: float, cross_check: bool = False,
                      dimension: Optional[int] = None) -> List[Match]:
    """
    Ratio-test matching of every query descriptor against a reference set

    Args:
        desc1: Query descriptors
        desc2: Reference descriptors
        ratio: Accept only when best / second-best < ratio
        cross_check: Also require the reference descriptor's nearest query
            to be the original query
        dimension: Descriptor length when flat buffers are passed

    Returns:
        Accepted matches in ascending query order
    """
    d1 = as_descriptor_matrix(desc1, dimension)
    d2 = as_descriptor_matrix(desc2, dimension)

    if len(d1) == 0 or len(d2) == 0:
        return []
    if d1.shape[1] != d2.shape[1]:
        raise ValueError(f"Descriptor lengths differ: {d1.shape[1]} vs {d2.shape[1]}")

    distances = cdist(d1, d2, metric="sqeuclidean")

    matches = []
    for i in range(len(d1)):
        j, best, second = best_two(distances[i])
        if not passes_ratio_test(best, second, ratio):
            continue
        # reverse direction: plain nearest neighbour, no ratio test
        if cross_check and int(np.argmin(distances[:, j])) != i:
            continue
        matches.append(Match(i, j, best))

    logger.debug("%d of %d queries matched (ratio=%.2f, cross_check=%s)",
                 len(matches), len(d1), ratio, cross_check)
    return matches


def match_topk(desc1, desc2, ratio: float, cross_check: bool, top_k: int,
               dimension: Optional[int] = None) -> List[Match]:
    """Accepted matches sorted by ascending distance, at most top_k of them"""
    if top_k < 0:
        raise ValueError(f"top_k must be >= 0, got {top_k}")
    scored = match_with_scores(desc1, desc2, ratio, cross_check, dimension)
    ranked = sorted(scored, key=lambda m: m.distance)
    return ranked[:min(top_k, len(ranked))]


class DescriptorMatcher:
    """Brute-force matcher bundling ratio, cross-check and top-k settings"""

    def __init__(self, ratio_threshold: float = 0.8, cross_check: bool = True,
                 top_k: Optional[int] = None):
        """
        Initialize matcher

        Args:
            ratio_threshold: Lowe's ratio test threshold on squared distances
            cross_check: Keep only mutual nearest neighbours
            top_k: Keep only the k closest matches (None keeps all, in query order)
        """
        self.ratio_threshold = ratio_threshold
        self.cross_check = cross_check
        self.top_k = top_k

    def match_with_scores(self, desc1, desc2, dimension: Optional[int] = None) -> List[Match]:
        if self.top_k is None:
            return match_with_scores(desc1, desc2, self.ratio_threshold,
                                     self.cross_check, dimension)
        return match_topk(desc1, desc2, self.ratio_threshold, self.cross_check,
                          self.top_k, dimension)

    def match(self, desc1, desc2, dimension: Optional[int] = None) -> np.ndarray:
        """
        Match two descriptor sets

        Returns:
            matches: Array of matches [K, 2] where each row is [idx1, idx2]
        """
        scored = self.match_with_scores(desc1, desc2, dimension)
        if not scored:
            return np.empty((0, 2), dtype=int)
        return np.array([[m.query_idx, m.train_idx] for m in scored], dtype=int)
