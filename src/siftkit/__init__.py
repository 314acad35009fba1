"""siftkit - Scale-invariant keypoint detection, description and matching"""

__version__ = "1.0.0"
__author__ = "siftkit Team"

from .models.sift import SIFT, detect, match
from .models.components.feature_detector import Keypoint
from .models.components.matcher import DescriptorMatcher, Match
from .utils.visualization import SIFTVisualizer

__all__ = ['SIFT', 'detect', 'match', 'Keypoint', 'DescriptorMatcher', 'Match', 'SIFTVisualizer']
