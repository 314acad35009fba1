import os
import cv2
from typing import List, Tuple, Optional

from ..utils.image_ops import bilinear_resize, calculate_resize_dimensions, load_grayscale

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.tif', '.tiff', '.bmp')


class ImagePairDataset:
    """
    Image pairs for matching evaluation

    Pairs come from a text file with two file names per line, or are formed
    from consecutive images of the directory.
    """

    def __init__(self,
                 data_dir: str,
                 image_pairs_file: Optional[str] = None,
                 target_long_edge: Optional[int] = None,
                 transform=None):
        """
        Initialize image pair dataset

        Args:
            data_dir: Directory containing images
            image_pairs_file: Text file with image pairs for matching
            target_long_edge: Shrink images so their long edge fits (optional)
            transform: Optional callable applied to each sample
        """
        self.data_dir = data_dir
        self.target_long_edge = target_long_edge
        self.transform = transform

        # Load image pairs
        if image_pairs_file:
            self.image_pairs = self._load_image_pairs(image_pairs_file)
        else:
            self.image_pairs = self._discover_image_pairs()

    def _load_image_pairs(self, pairs_file: str) -> List[Tuple[str, str]]:
        """Load image pairs from file"""
        pairs = []
        with open(pairs_file, 'r') as f:
            for line in f:
                if not line.strip():
                    continue
                img1, img2 = line.strip().split()
                pairs.append((img1, img2))
        return pairs

    def _discover_image_pairs(self) -> List[Tuple[str, str]]:
        """Auto-discover image pairs in directory"""
        image_files = sorted([f for f in os.listdir(self.data_dir)
                              if f.lower().endswith(IMAGE_EXTENSIONS)])

        pairs = []
        for i in range(0, len(image_files) - 1, 2):
            pairs.append((image_files[i], image_files[i + 1]))

        return pairs

    def __len__(self):
        return len(self.image_pairs)

    def __getitem__(self, idx):
        img1_path = os.path.join(self.data_dir, self.image_pairs[idx][0])
        img2_path = os.path.join(self.data_dir, self.image_pairs[idx][1])

        sample = {
            'image1': load_grayscale(img1_path, self.target_long_edge),
            'image2': load_grayscale(img2_path, self.target_long_edge),
            'pair_id': idx,
            'image1_path': img1_path,
            'image2_path': img2_path
        }

        if self.transform:
            sample = self.transform(sample)

        return sample

    def __iter__(self):
        for idx in range(len(self)):
            yield self[idx]


class ImagePairTransforms:
    """Common transforms for image pair samples"""

    @staticmethod
    def resize(target_long_edge: int = 400):
        """Shrink both images so their long edge is at most target_long_edge"""
        def _resize(sample):
            for key in ('image1', 'image2'):
                image = sample[key]
                height, width = image.shape
                new_width, new_height = calculate_resize_dimensions(width, height, target_long_edge)
                sample[key] = bilinear_resize(image, width, height, new_width, new_height).reshape(new_height, new_width)
            return sample
        return _resize

    @staticmethod
    def enhance_contrast(alpha=1.2, beta=10):
        """Enhance contrast before detection, saturating at 0 and 255"""
        def _enhance(sample):
            sample['image1'] = cv2.convertScaleAbs(sample['image1'], alpha=alpha, beta=beta)
            sample['image2'] = cv2.convertScaleAbs(sample['image2'], alpha=alpha, beta=beta)
            return sample
        return _enhance
