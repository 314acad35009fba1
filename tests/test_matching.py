import pytest
import numpy as np
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from siftkit.models.sift import match
from siftkit.models.components.matcher import (
    DescriptorMatcher, Match, as_descriptor_matrix, best_two, match_topk,
    match_with_scores, squared_distance
)


def brute_force_distances(desc1, desc2):
    return np.array([[squared_distance(a, b) for b in desc2] for a in desc1])


class TestMatcher:
    """Test cases for brute-force ratio-test matching"""

    @pytest.fixture
    def paired_descriptors(self):
        """Reference set holding noisy, shuffled copies of the queries plus distractors"""
        rng = np.random.default_rng(5)
        desc1 = rng.uniform(0, 1, (30, 16))
        perm = rng.permutation(30)
        desc2 = np.vstack([desc1[perm] + rng.normal(0, 0.01, (30, 16)),
                           rng.uniform(0, 1, (10, 16))])
        inverse = np.argsort(perm)
        return desc1, desc2, inverse

    @pytest.fixture
    def random_descriptors(self):
        rng = np.random.default_rng(11)
        return rng.uniform(0, 1, (40, 8)), rng.uniform(0, 1, (50, 8))

    def test_squared_distance(self):
        assert squared_distance([0.0, 0.0], [3.0, 4.0]) == 25.0

    def test_best_two(self):
        idx, best, second = best_two(np.array([4.0, 1.0, 3.0, 1.5]))
        assert (idx, best, second) == (1, 1.0, 1.5)

        idx, best, second = best_two(np.array([2.0]))
        assert (idx, best) == (0, 2.0)
        assert second == float('inf')

    def test_recovers_correspondences(self, paired_descriptors):
        desc1, desc2, inverse = paired_descriptors
        matches = match_with_scores(desc1, desc2, 0.8, cross_check=True)

        assert len(matches) == 30
        assert [m.query_idx for m in matches] == list(range(30))
        assert all(m.train_idx == inverse[m.query_idx] for m in matches)
        assert all(isinstance(m, Match) for m in matches)

    def test_ratio_bound(self, random_descriptors):
        desc1, desc2 = random_descriptors
        distances = brute_force_distances(desc1, desc2)

        matches = match_with_scores(desc1, desc2, 0.9)
        assert len(matches) > 0
        for m in matches:
            ordered = np.sort(distances[m.query_idx])
            assert m.train_idx == np.argmin(distances[m.query_idx])
            assert m.distance == pytest.approx(ordered[0])
            assert ordered[0] / ordered[1] < 0.9

    def test_cross_check(self, random_descriptors):
        desc1, desc2 = random_descriptors
        distances = brute_force_distances(desc1, desc2)

        one_way = match_with_scores(desc1, desc2, 0.9, cross_check=False)
        mutual = match_with_scores(desc1, desc2, 0.9, cross_check=True)

        assert set(mutual) <= set(one_way)
        for m in mutual:
            assert np.argmin(distances[:, m.train_idx]) == m.query_idx

    def test_top_k(self, random_descriptors):
        desc1, desc2 = random_descriptors
        accepted = match_with_scores(desc1, desc2, 0.9, cross_check=True)

        for top_k in (1, 3, 1000):
            ranked = match_topk(desc1, desc2, 0.9, True, top_k)
            assert len(ranked) == min(top_k, len(accepted))
            assert set(ranked) <= set(accepted)
            distances = [m.distance for m in ranked]
            assert distances == sorted(distances)

        assert match_topk(desc1, desc2, 0.9, True, 0) == []

    def test_negative_top_k(self, random_descriptors):
        desc1, desc2 = random_descriptors
        with pytest.raises(ValueError):
            match_topk(desc1, desc2, 0.9, True, -1)
        with pytest.raises(ValueError):
            DescriptorMatcher(top_k=-1).match(desc1, desc2)

    def test_flat_buffers(self, random_descriptors):
        desc1, desc2 = random_descriptors
        expected = match_with_scores(desc1, desc2, 0.9, cross_check=True)
        flat = match_with_scores(desc1.ravel(), desc2.ravel(), 0.9, cross_check=True, dimension=8)
        assert flat == expected

    def test_invalid_dimension(self, random_descriptors):
        desc1, desc2 = random_descriptors
        with pytest.raises(ValueError):
            match_with_scores(desc1.ravel(), desc2.ravel(), 0.8, dimension=0)
        with pytest.raises(ValueError):
            match_with_scores(desc1.ravel(), desc2.ravel(), 0.8, dimension=7)
        with pytest.raises(ValueError):
            match_with_scores(desc1, desc2[:, :4], 0.8)
        with pytest.raises(ValueError):
            as_descriptor_matrix(np.zeros(10))

    def test_empty_sets(self, random_descriptors):
        desc1, _ = random_descriptors
        assert match_with_scores(desc1, np.empty((0, 8)), 0.8) == []
        assert match_with_scores(np.empty((0, 8)), desc1, 0.8) == []
        assert match_with_scores([], [], 0.8, dimension=8) == []

    def test_single_reference_never_matches(self, random_descriptors):
        desc1, desc2 = random_descriptors
        assert match_with_scores(desc1, desc2[:1], 0.99) == []

    def test_ambiguous_duplicates_rejected(self):
        query = np.array([[1.0, 2.0, 3.0]])
        reference = np.array([[1.0, 2.0, 3.0], [1.0, 2.0, 3.0], [9.0, 9.0, 9.0]])
        assert match_with_scores(query, reference, 0.8) == []

    def test_identical_sets_match_themselves(self, random_descriptors):
        desc1, _ = random_descriptors
        matches = match_with_scores(desc1, desc1, 0.8, cross_check=True)
        assert [(m.query_idx, m.train_idx) for m in matches] == [(i, i) for i in range(len(desc1))]
        assert all(m.distance == 0.0 for m in matches)


class TestDescriptorMatcher:
    """Test cases for the matcher object and the functional entry point"""

    def test_match_array(self):
        rng = np.random.default_rng(2)
        desc = rng.uniform(0, 1, (12, 128)).astype(np.float32)

        matches = DescriptorMatcher(ratio_threshold=0.8, cross_check=True).match(desc, desc)
        assert matches.shape == (12, 2)
        np.testing.assert_array_equal(matches[:, 0], matches[:, 1])

    def test_no_matches(self):
        matches = DescriptorMatcher().match(np.ones((3, 4)), np.ones((1, 4)))
        assert matches.shape == (0, 2)

    def test_top_k_setting(self):
        rng = np.random.default_rng(3)
        desc = rng.uniform(0, 1, (20, 16))
        scored = DescriptorMatcher(top_k=5).match_with_scores(desc, desc + 0.001 * np.arange(20)[:, None])
        assert len(scored) == 5
        assert [m.query_idx for m in scored] == [0, 1, 2, 3, 4]

    def test_functional_match(self):
        rng = np.random.default_rng(4)
        desc = rng.uniform(0, 1, (10, 4))

        pairs = match(desc.ravel(), desc.ravel(), 4, 0.8, True, None)
        assert pairs == [(i, i) for i in range(10)]

        ranked = match(desc, desc[::-1], None, 0.8, False, 3)
        assert len(ranked) == 3
        assert all(j == 9 - i for i, j in ranked)
