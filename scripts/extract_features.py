#!/usr/bin/env python3
"""
Script to extract SIFT keypoints and descriptors from a directory of images
"""

import argparse
import logging
import os
import pickle
import numpy as np
from pathlib import Path
import sys

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from siftkit.utils.config import build_sift, load_config
from siftkit.utils.image_ops import load_grayscale
from siftkit.utils.serialization import flatten_keypoints
from siftkit.utils.visualization import SIFTVisualizer

def parse_args():
    parser = argparse.ArgumentParser(description='Extract SIFT features from images')
    parser.add_argument('input_dir', help='Directory containing input images')
    parser.add_argument('--output_dir', default='./features',
                       help='Directory to save extracted features')
    parser.add_argument('--config', default='configs/sift/default.py',
                       help='Configuration file')
    parser.add_argument('--scales', type=int, default=None,
                       help='Override the number of scale levels per octave')
    parser.add_argument('--visualize', action='store_true',
                       help='Save visualization of extracted keypoints')
    parser.add_argument('--verbose', action='store_true',
                       help='Log pipeline progress')
    parser.add_argument('--image_extensions', nargs='+',
                       default=['.png', '.jpg', '.jpeg', '.tif', '.tiff'],
                       help='Image file extensions to process')

    return parser.parse_args()

def extract_features_from_image(sift, image_path, output_dir, target_long_edge=None, visualize=False):
    """Extract features from a single image"""
    print(f"Processing {image_path}...")

    image = load_grayscale(image_path, target_long_edge)

    keypoints, descriptors = sift.detect_and_compute(image)

    features = {
        'image_path': str(image_path),
        'image_shape': image.shape,
        'keypoints': flatten_keypoints(keypoints),
        'descriptors': descriptors,
        'num_features': len(keypoints),
        'octaves': sorted({kp.octave for kp in keypoints})
    }

    feature_file = output_dir / f"{Path(image_path).stem}_features.pkl"
    with open(feature_file, 'wb') as f:
        pickle.dump(features, f)

    print(f"Extracted {features['num_features']} features "
          f"across octaves {features['octaves']}")

    if visualize:
        vis_file = output_dir / f"{Path(image_path).stem}_features.png"
        SIFTVisualizer.plot_keypoints(image, keypoints,
                                      title=f"Keypoints: {Path(image_path).name}",
                                      save_path=str(vis_file))

    return features

def main():
    args = parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    if args.visualize:
        import matplotlib
        matplotlib.use('Agg')

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    config = load_config(args.config)
    if args.scales is not None:
        config['model']['scales'] = args.scales

    sift = build_sift(config)
    target_long_edge = config['preprocessing'].get('target_long_edge')

    # Find all images
    input_dir = Path(args.input_dir)
    image_files = set()
    for ext in args.image_extensions:
        image_files.update(input_dir.glob(f"*{ext}"))
        image_files.update(input_dir.glob(f"*{ext.upper()}"))

    if not image_files:
        print(f"No images found in {input_dir} with extensions {args.image_extensions}")
        return

    print(f"Found {len(image_files)} images to process")

    all_features = []
    for image_path in sorted(image_files):
        try:
            features = extract_features_from_image(
                sift, image_path, output_dir, target_long_edge, args.visualize
            )
            all_features.append(features)
        except Exception as e:
            print(f"Error processing {image_path}: {e}")
            continue

    if not all_features:
        print("No features extracted")
        return

    summary = {
        'total_images': len(all_features),
        'total_features': sum(f['num_features'] for f in all_features),
        'average_features_per_image': np.mean([f['num_features'] for f in all_features]),
        'config': config,
        'feature_files': [f['image_path'] for f in all_features]
    }

    summary_file = output_dir / 'extraction_summary.pkl'
    with open(summary_file, 'wb') as f:
        pickle.dump(summary, f)

    print(f"\nFeature extraction completed!")
    print(f"Processed {summary['total_images']} images")
    print(f"Extracted {summary['total_features']} total features")
    print(f"Average {summary['average_features_per_image']:.1f} features per image")
    print(f"Results saved to {output_dir}")

if __name__ == "__main__":
    main()
