import matplotlib.pyplot as plt
import numpy as np
from matplotlib.patches import Circle
from typing import Dict, List, Optional, Sequence

from ..models.components.feature_detector import Keypoint
from ..models.components.grid import Grid


class SIFTVisualizer:
    """Visualization utilities for keypoints, matches and pyramids with saving capability"""

    @staticmethod
    def _finish(save_path: Optional[str], label: str):
        if save_path:
            plt.savefig(save_path, dpi=150, bbox_inches='tight')
            print(f"  {label} saved to: {save_path}")
        else:
            plt.show()

    @staticmethod
    def _draw_keypoints(ax, keypoints: Sequence[Keypoint], color: str = 'lime'):
        """Scale circles with an orientation tick, in full-resolution coordinates"""
        for kp in keypoints:
            x, y = kp.image_coordinates()
            radius = kp.sigma * 2 ** kp.octave
            ax.add_patch(Circle((x, y), radius, fill=False, color=color, linewidth=0.8, alpha=0.8))
            ax.plot([x, x + radius * np.cos(kp.angle)],
                    [y, y + radius * np.sin(kp.angle)],
                    color=color, linewidth=0.8, alpha=0.8)

    @staticmethod
    def plot_keypoints(image: np.ndarray, keypoints: Sequence[Keypoint],
                       title: str = "SIFT Keypoints", figsize: tuple = (12, 8),
                       save_path: Optional[str] = None):
        """
        Plot oriented keypoints on image

        Args:
            image: Grayscale input image
            keypoints: Detected keypoints
            title: Plot title
            figsize: Figure size
            save_path: Path to save the figure (optional)
        """
        fig, ax = plt.subplots(figsize=figsize)
        ax.imshow(image, cmap='gray')
        SIFTVisualizer._draw_keypoints(ax, keypoints)

        ax.set_title(f'{title} ({len(keypoints)} keypoints)', fontsize=14, fontweight='bold')
        ax.axis('off')
        plt.tight_layout()

        SIFTVisualizer._finish(save_path, "Keypoints plot")

    @staticmethod
    def _plot_match_lines(ax, image1: np.ndarray, image2: np.ndarray,
                          points1: np.ndarray, points2: np.ndarray, title: str):
        """Helper function to plot matches with connecting lines"""
        # Create side-by-side image
        h1, w1 = image1.shape[:2]
        h2, w2 = image2.shape[:2]
        combined = np.zeros((max(h1, h2), w1 + w2), dtype=image1.dtype)
        combined[:h1, :w1] = image1
        combined[:h2, w1:w1 + w2] = image2

        ax.imshow(combined, cmap='gray')

        if len(points1) > 0:
            ax.scatter(points1[:, 0], points1[:, 1], c='red', s=15, alpha=0.8,
                       edgecolors='white', linewidth=0.5)
            ax.scatter(points2[:, 0] + w1, points2[:, 1], c='red', s=15, alpha=0.8,
                       edgecolors='white', linewidth=0.5)

            for p1, p2 in zip(points1, points2):
                ax.plot([p1[0], p2[0] + w1], [p1[1], p2[1]], 'g-', alpha=0.6, linewidth=1)

        ax.set_title(f'{title} ({len(points1)} matches)', fontsize=12, fontweight='bold')
        ax.axis('off')

    @staticmethod
    def plot_matches(image1: np.ndarray, image2: np.ndarray,
                     points1: np.ndarray, points2: np.ndarray,
                     title: str = "SIFT Matches", figsize: tuple = (16, 8),
                     save_path: Optional[str] = None):
        """
        Plot matches between two images

        Args:
            image1, image2: Input images
            points1, points2: Matched (x, y) points in full-resolution coordinates
            title: Plot title
            figsize: Figure size
            save_path: Path to save the figure (optional)
        """
        fig, ax = plt.subplots(figsize=figsize)
        SIFTVisualizer._plot_match_lines(ax, image1, image2, points1, points2, title)
        plt.tight_layout()

        SIFTVisualizer._finish(save_path, "Matches plot")

    @staticmethod
    def plot_matching_results(results: Dict, image1: np.ndarray, image2: np.ndarray,
                              save_path: Optional[str] = None):
        """
        Plot keypoints of both images and the accepted matches

        Args:
            results: Results dictionary from SIFT.match_images()
            image1, image2: Input images
            save_path: Path to save the figure (optional)
        """
        fig = plt.figure(figsize=(18, 12))

        ax1 = fig.add_subplot(2, 2, 1)
        ax1.imshow(image1, cmap='gray')
        SIFTVisualizer._draw_keypoints(ax1, results['keypoints1'])
        ax1.set_title(f"Image 1 - {len(results['keypoints1'])} keypoints", fontsize=12, fontweight='bold')
        ax1.axis('off')

        ax2 = fig.add_subplot(2, 2, 2)
        ax2.imshow(image2, cmap='gray')
        SIFTVisualizer._draw_keypoints(ax2, results['keypoints2'])
        ax2.set_title(f"Image 2 - {len(results['keypoints2'])} keypoints", fontsize=12, fontweight='bold')
        ax2.axis('off')

        ax3 = fig.add_subplot(2, 1, 2)
        SIFTVisualizer._plot_match_lines(ax3, image1, image2,
                                         results['matched_points1'],
                                         results['matched_points2'],
                                         'Accepted Matches')

        plt.suptitle('SIFT Matching Results', fontsize=16, fontweight='bold')
        plt.tight_layout()

        SIFTVisualizer._finish(save_path, "Matching results")

    @staticmethod
    def plot_pyramid(dog_pyramid: List[List[Grid]], title: str = "Difference-of-Gaussians Pyramid",
                     save_path: Optional[str] = None):
        """
        Plot every DoG level, one row per octave

        Args:
            dog_pyramid: Per-octave DoG stacks
            title: Plot title
            save_path: Path to save the figure (optional)
        """
        if not dog_pyramid:
            print("  Empty pyramid, nothing to plot")
            return

        rows = len(dog_pyramid)
        cols = len(dog_pyramid[0])
        fig, axes = plt.subplots(rows, cols, figsize=(2.5 * cols, 2.5 * rows), squeeze=False)

        for octave, dogs in enumerate(dog_pyramid):
            for level, dog in enumerate(dogs):
                ax = axes[octave, level]
                limit = np.abs(dog.data).max() or 1.0
                ax.imshow(dog.data, cmap='coolwarm', vmin=-limit, vmax=limit)
                ax.set_title(f'o{octave} l{level}', fontsize=9)
                ax.axis('off')

        plt.suptitle(title, fontsize=14, fontweight='bold')
        plt.tight_layout()

        SIFTVisualizer._finish(save_path, "Pyramid plot")
