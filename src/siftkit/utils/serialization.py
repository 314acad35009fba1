"""
Flat array contract for handing keypoints, descriptors and matches across a
process or language boundary.

Keypoints travel as 6 float32 values each, [x, y, octave, level, sigma, angle];
descriptors as 128 float32 values each; matches as uint32 pairs [index1, index2].
"""

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from ..models.components.feature_detector import Keypoint
from ..models.components.matcher import Match, match_topk
from ..models.sift import detect

KEYPOINT_FIELDS = 6

# Parameters used by the flat entry point
SIGMA_0 = 1.6
SIGMA_N = 0.5
CONTRAST_THRESHOLD = 0.03
EDGE_R = 10.0


@dataclass
class SiftResult:
    keypoints: np.ndarray    # float32, 6 per keypoint
    descriptors: np.ndarray  # float32, 128 per keypoint

    @property
    def num_keypoints(self) -> int:
        return len(self.keypoints) // KEYPOINT_FIELDS


def flatten_keypoints(keypoints: Sequence[Keypoint]) -> np.ndarray:
    if not keypoints:
        return np.empty(0, dtype=np.float32)
    return np.array([tuple(kp) for kp in keypoints], dtype=np.float32).ravel()


def keypoints_from_flat(flat) -> List[Keypoint]:
    values = np.asarray(flat, dtype=np.float32)
    if values.size % KEYPOINT_FIELDS != 0:
        raise ValueError(f"Keypoint buffer of length {values.size} is not a multiple of {KEYPOINT_FIELDS}")

    keypoints = []
    for x, y, octave, level, sigma, angle in values.reshape(-1, KEYPOINT_FIELDS).tolist():
        keypoints.append(Keypoint(x, y, int(octave), int(level), sigma, angle))
    return keypoints


def flatten_matches(matches: Sequence[Match]) -> np.ndarray:
    out = np.empty(2 * len(matches), dtype=np.uint32)
    out[0::2] = [m.query_idx for m in matches]
    out[1::2] = [m.train_idx for m in matches]
    return out


def sift(buffer, width: int, height: int, scales: int) -> SiftResult:
    """
    Run detection on a single-channel byte buffer

    Args:
        buffer: width * height bytes, row-major
        width, height: Image dimensions
        scales: Scale levels per octave

    Returns:
        Flat keypoints and index-aligned flat descriptors
    """
    if isinstance(buffer, (bytes, bytearray)):
        pixels = np.frombuffer(buffer, dtype=np.uint8)
    else:
        pixels = np.asarray(buffer, dtype=np.uint8).ravel()
    if pixels.size != width * height:
        raise ValueError(f"Buffer of length {pixels.size} does not match {width}x{height}")

    keypoints, descriptors = detect(pixels.reshape(height, width), scales,
                                    sigma0=SIGMA_0, sigma_n=SIGMA_N,
                                    contrast_thresh=CONTRAST_THRESHOLD, edge_r=EDGE_R)
    return SiftResult(flatten_keypoints(keypoints), descriptors.astype(np.float32).ravel())


def match_descriptors_topk(desc1, desc2, d: int, ratio: float, cross_check: bool,
                           top_k: int) -> np.ndarray:
    """Top-k matches of two flat descriptor buffers as flat uint32 index pairs"""
    return flatten_matches(match_topk(desc1, desc2, ratio, cross_check, top_k, dimension=d))
