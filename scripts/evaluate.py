#!/usr/bin/env python3
"""
Script to evaluate SIFT matching performance on image pairs
"""

import argparse
import logging
import os
import pickle
import numpy as np
from pathlib import Path
import sys
import time

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from siftkit.utils.config import build_sift, load_config
from siftkit.utils.visualization import SIFTVisualizer
from siftkit.datasets.image_pairs import ImagePairDataset

def parse_args():
    parser = argparse.ArgumentParser(description='Evaluate SIFT matching performance')
    parser.add_argument('dataset_dir', help='Directory containing image pairs')
    parser.add_argument('--pairs_file', help='File listing image pairs to evaluate')
    parser.add_argument('--output_dir', default='./evaluation_results',
                       help='Directory to save evaluation results')
    parser.add_argument('--config', default='configs/sift/default.py',
                       help='Configuration file')
    parser.add_argument('--save_matches', action='store_true',
                       help='Save matching visualizations')
    parser.add_argument('--num_pairs', type=int, default=None,
                       help='Number of pairs to evaluate (for testing)')
    parser.add_argument('--verbose', action='store_true',
                       help='Log pipeline progress')

    return parser.parse_args()

def evaluate_image_pair(sift, image1, image2, pair_id):
    """Evaluate matching performance on a single image pair"""
    start_time = time.time()

    results = sift.match_images(image1, image2)

    matching_time = time.time() - start_time

    num_kp1 = len(results['keypoints1'])
    num_kp2 = len(results['keypoints2'])

    if results['num_matches'] > 0:
        offsets = results['matched_points2'] - results['matched_points1']
        median_offset = np.median(offsets, axis=0)
        # matches agreeing with the dominant translation within 3 pixels
        consistency = np.mean(np.linalg.norm(offsets - median_offset, axis=1) <= 3.0)
    else:
        median_offset = np.zeros(2)
        consistency = 0.0

    metrics = {
        'pair_id': pair_id,
        'matching_time': matching_time,
        'num_keypoints_1': num_kp1,
        'num_keypoints_2': num_kp2,
        'num_matches': results['num_matches'],
        'match_ratio': (results['num_matches'] / min(num_kp1, num_kp2)
                        if min(num_kp1, num_kp2) > 0 else 0),
        'median_offset': median_offset,
        'translation_consistency': consistency
    }

    return metrics, results

def compute_summary_statistics(all_metrics):
    """Compute summary statistics across all evaluated pairs"""
    if len(all_metrics) == 0:
        return {}

    metrics_array = np.array([[
        m['matching_time'],
        m['num_matches'],
        m['match_ratio'],
        m['translation_consistency']
    ] for m in all_metrics])

    summary = {
        'num_pairs_evaluated': len(all_metrics),
        'average_matching_time': np.mean(metrics_array[:, 0]),
        'std_matching_time': np.std(metrics_array[:, 0]),
        'average_matches': np.mean(metrics_array[:, 1]),
        'std_matches': np.std(metrics_array[:, 1]),
        'average_match_ratio': np.mean(metrics_array[:, 2]),
        'average_translation_consistency': np.mean(metrics_array[:, 3]),
        'success_rate': np.mean(metrics_array[:, 1] >= 10),  # At least 10 matches
        'detailed_metrics': all_metrics
    }

    return summary

def main():
    args = parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    if args.save_matches:
        import matplotlib
        matplotlib.use('Agg')

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    config = load_config(args.config)
    sift = build_sift(config)

    dataset = ImagePairDataset(args.dataset_dir, args.pairs_file,
                               target_long_edge=config['preprocessing'].get('target_long_edge'))

    if args.num_pairs:
        dataset.image_pairs = dataset.image_pairs[:args.num_pairs]

    print(f"Evaluating {len(dataset)} image pairs...")

    all_metrics = []

    for i in range(len(dataset)):
        try:
            sample = dataset[i]
            print(f"Evaluating pair {i+1}/{len(dataset)}: {sample['image1_path']} - {sample['image2_path']}")

            metrics, results = evaluate_image_pair(
                sift, sample['image1'], sample['image2'], i
            )
            all_metrics.append(metrics)

            print(f"  Matches: {metrics['num_matches']} "
                  f"(match ratio: {metrics['match_ratio']:.2f}, "
                  f"consistency: {metrics['translation_consistency']:.2f}, "
                  f"time: {metrics['matching_time']:.2f}s)")

            if args.save_matches:
                vis_file = output_dir / f"matches_pair_{i:03d}.png"
                SIFTVisualizer.plot_matching_results(results, sample['image1'], sample['image2'],
                                                     save_path=str(vis_file))

        except Exception as e:
            print(f"  Error: {e}")
            continue

    summary = compute_summary_statistics(all_metrics)

    results_file = output_dir / 'evaluation_results.pkl'
    with open(results_file, 'wb') as f:
        pickle.dump({
            'summary': summary,
            'config': config,
            'args': vars(args)
        }, f)

    if not summary:
        print("\nNo pairs could be evaluated.")
        return

    print(f"\nEvaluation Summary:")
    print(f"=" * 50)
    print(f"Pairs evaluated: {summary['num_pairs_evaluated']}")
    print(f"Average matching time: {summary['average_matching_time']:.2f} ± {summary['std_matching_time']:.2f} seconds")
    print(f"Average matches: {summary['average_matches']:.1f} ± {summary['std_matches']:.1f}")
    print(f"Average match ratio: {summary['average_match_ratio']:.2f}")
    print(f"Average translation consistency: {summary['average_translation_consistency']:.2f}")
    print(f"Success rate (≥10 matches): {summary['success_rate']:.2f}")
    print(f"\nResults saved to: {output_dir}")

if __name__ == "__main__":
    main()
