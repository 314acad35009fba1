#!/usr/bin/env python3
"""
Complete SIFT demonstration script

This script demonstrates the complete keypoint pipeline: it creates a
synthetic textured image pair, detects and describes keypoints, matches them
and visualizes the results.

Usage:
    python demo_sift.py [--save]

Features demonstrated:
- Gaussian / Difference-of-Gaussians pyramid construction
- Scale-space extrema with edge rejection and orientation assignment
- 128-D gradient histogram descriptors
- Ratio-test matching with cross-check and top-k ranking
"""

import argparse
import logging
import sys
import os
import numpy as np
import cv2
import time

# Add src to path for development
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

try:
    from siftkit.models.sift import SIFT
    from siftkit.utils.visualization import SIFTVisualizer
except ImportError as e:
    print(f"Error importing siftkit modules: {e}")
    print("Please ensure siftkit is properly installed.")
    print("Run: pip install -e . from the project root directory")
    sys.exit(1)


def create_sample_images(size=(160, 200), angle=20.0, shift=(12, -6)):
    """
    Create a pair of synthetic images for demonstration

    The first image is smoothed noise with a few bright and dark blobs; the
    second is the same scene rotated about its center and translated.

    Returns:
        tuple: (image1, image2, M) - image pair and the 2x3 affine transform
    """
    print("  Creating base texture...")
    rng = np.random.default_rng(42)
    noise = rng.normal(0, 1, size).astype(np.float32)
    texture = cv2.GaussianBlur(noise, (0, 0), 3.0)

    print("  Adding blob structures...")
    y, x = np.mgrid[:size[0], :size[1]]
    for _ in range(8):
        cx, cy = rng.uniform(20, size[1] - 20), rng.uniform(20, size[0] - 20)
        sigma = rng.uniform(3, 8)
        amplitude = rng.choice([-1.0, 1.0]) * rng.uniform(0.5, 1.0)
        texture += amplitude * np.exp(-((x - cx) ** 2 + (y - cy) ** 2) / (2 * sigma ** 2))

    image1 = cv2.normalize(texture, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)

    print("  Applying geometric transformation...")
    center = (size[1] / 2, size[0] / 2)
    M = cv2.getRotationMatrix2D(center, angle, 1.0)
    M[0, 2] += shift[0]
    M[1, 2] += shift[1]
    image2 = cv2.warpAffine(image1, M, (size[1], size[0]), borderMode=cv2.BORDER_REFLECT)

    return image1, image2, M


def analyze_matches(results, M):
    """Report how many matches agree with the known transform"""
    print("\n" + "=" * 60)
    print("DETAILED MATCH ANALYSIS")
    print("=" * 60)

    print(f"Keypoints: image 1 = {len(results['keypoints1'])}, image 2 = {len(results['keypoints2'])}")
    print(f"Accepted matches: {results['num_matches']}")

    if results['num_matches'] == 0:
        return 0.0

    pts1 = results['matched_points1']
    pts2 = results['matched_points2']
    projected = pts1 @ M[:, :2].T + M[:, 2]
    errors = np.linalg.norm(projected - pts2, axis=1)
    correct = np.mean(errors <= 3.0)

    octaves = [results['keypoints1'][i].octave for i in results['matches'][:, 0]]
    print(f"  Median reprojection error: {np.median(errors):.2f} px")
    print(f"  Matches within 3 px of the true transform: {correct:.2%}")
    print(f"  Matches per octave: {np.bincount(octaves).tolist()}")

    return correct


def main():
    parser = argparse.ArgumentParser(description='SIFT pipeline demonstration')
    parser.add_argument('--save', action='store_true', help='Save plots instead of showing them')
    parser.add_argument('--output_dir', default='demo_results')
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format='%(name)s: %(message)s')

    if args.save:
        import matplotlib
        matplotlib.use('Agg')
        os.makedirs(args.output_dir, exist_ok=True)

    print("SIFT Complete Pipeline Demonstration")
    print("=" * 50)

    print("Step 1: Creating synthetic images...")
    image1, image2, M = create_sample_images()

    print("\nStep 2: Initializing SIFT...")
    sift = SIFT(scales=3, sigma_0=1.6, sigma_n=0.5,
                contrast_threshold=0.03, edge_r=10.0,
                ratio_threshold=0.8, cross_check=True)
    print(f"  ✓ {sift.scales} scales per octave, k = {sift.scale_space.k:.4f}")
    print(f"  ✓ Descriptor size: {sift.descriptor.get_descriptor_size()}")

    print("\nStep 3: Executing matching pipeline...")
    start_time = time.time()
    results = sift.match_images(image1, image2)
    matching_time = time.time() - start_time
    print(f"  ✓ Matching completed in {matching_time:.2f} seconds")

    correct = analyze_matches(results, M)

    print("\nStep 4: Visualizing results...")
    visualizer = SIFTVisualizer()
    save_path = os.path.join(args.output_dir, "matching_results.png") if args.save else None
    visualizer.plot_matching_results(results, image1, image2, save_path=save_path)

    dogs, _ = sift.build_scale_space(image1)
    save_path = os.path.join(args.output_dir, "dog_pyramid.png") if args.save else None
    visualizer.plot_pyramid(dogs, save_path=save_path)

    print("\n" + "=" * 60)
    print("DEMONSTRATION SUMMARY")
    print("=" * 60)
    print(f"Processing time: {matching_time:.2f} seconds")
    print(f"Matches found: {results['num_matches']} ({correct:.0%} geometrically correct)")

    return results['num_matches'] > 0


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
