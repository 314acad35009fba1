import pytest
import numpy as np
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from siftkit.models.components.grid import Grid
from siftkit.models.components.gaussian_blur import gaussian_blur, gaussian_kernel, kernel_size_for_sigma
from siftkit.models.components.scale_space import GaussianScaleSpace, downsample_half


class TestGrid:
    """Test cases for the float grid"""

    @pytest.fixture
    def small_grid(self):
        # 3 wide, 2 high: rows [0, 1, 2] and [3, 4, 5]
        return Grid(np.arange(6), 3, 2)

    def test_construction(self, small_grid):
        assert small_grid.shape == (2, 3)
        assert small_grid.data.dtype == np.float32
        assert small_grid.get_pixel(2, 1) == 5.0
        np.testing.assert_array_equal(small_grid.buffer, np.arange(6, dtype=np.float32))

    def test_construction_from_bytes(self):
        grid = Grid(bytes([0, 10, 20, 30]), 2, 2)
        assert grid.get_pixel(1, 1) == 30.0

    def test_buffer_size_mismatch(self):
        with pytest.raises(ValueError):
            Grid(np.zeros(5), 3, 2)

    def test_clamped_reads(self, small_grid):
        assert small_grid.get_clamped(-5, 100) == 3.0
        assert small_grid.get_clamped(10, -1) == 2.0
        values = small_grid.get_clamped(np.array([-1, 1, 7]), np.array([0, 1, 1]))
        np.testing.assert_array_equal(values, [0.0, 4.0, 5.0])

    def test_clamped_reads_fractional(self, small_grid):
        assert small_grid.get_clamped(1.5, 2) == 4.0
        assert small_grid.get_clamped(-0.5, 0.9) == 0.0
        values = small_grid.get_clamped(np.array([0.2, 2.7, 9.5]), np.array([1.0, 0.4, 1.9]))
        np.testing.assert_array_equal(values, [3.0, 2.0, 5.0])

    def test_set_pixel(self, small_grid):
        small_grid.set_pixel(0, 1, 42.0)
        assert small_grid.get_pixel(0, 1) == 42.0

    def test_difference(self, small_grid):
        diff = small_grid.difference(small_grid)
        assert diff.shape == small_grid.shape
        assert np.all(diff.data == 0.0)

        other = Grid.filled(3, 2, 1.0)
        np.testing.assert_array_equal(small_grid.difference(other).buffer, np.arange(6) - 1.0)

    def test_difference_dimension_mismatch(self, small_grid):
        with pytest.raises(ValueError):
            small_grid.difference(Grid.filled(2, 3))

    def test_even_kernel_rejected(self, small_grid):
        with pytest.raises(ValueError):
            small_grid.convolve(Grid.filled(2, 3, 1.0))
        with pytest.raises(ValueError):
            small_grid.convolve(Grid.filled(3, 4, 1.0))

    def test_convolution_matches_direct_sum(self):
        """Output pixel is the clamped, unflipped weighted sum of its window"""
        rng = np.random.default_rng(0)
        image = Grid.from_array(rng.uniform(0, 255, (5, 6)))
        kernel = Grid(np.arange(1, 10, dtype=np.float32) / 45.0, 3, 3)

        result = image.convolve(kernel)

        for y in range(image.height):
            for x in range(image.width):
                expected = 0.0
                for ky in range(3):
                    for kx in range(3):
                        expected += (image.get_clamped(x + kx - 1, y + ky - 1) *
                                     kernel.get_pixel(kx, ky))
                assert result.get_pixel(x, y) == pytest.approx(expected, rel=1e-4)

    def test_copy_is_independent(self, small_grid):
        clone = small_grid.copy()
        clone.set_pixel(0, 0, 99.0)
        assert small_grid.get_pixel(0, 0) == 0.0


class TestGaussianBlur:
    """Test cases for Gaussian kernels"""

    @pytest.mark.parametrize("sigma", [0.01, 0.5, 1.0, 1.226, 1.6, 2.3, 5.0])
    def test_kernel_size_is_odd(self, sigma):
        size = kernel_size_for_sigma(sigma)
        assert size % 2 == 1
        assert size >= 3
        assert size >= np.ceil(6 * sigma)

    def test_kernel_size_values(self):
        assert kernel_size_for_sigma(0.5) == 3
        assert kernel_size_for_sigma(1.0) == 7
        assert kernel_size_for_sigma(1.6) == 11

    def test_kernel_is_normalized(self):
        kernel = gaussian_kernel(7, 1.5)
        assert kernel.shape == (7, 7)
        assert kernel.data.sum() == pytest.approx(1.0, abs=1e-5)
        # symmetric with the peak at the center
        np.testing.assert_allclose(kernel.data, kernel.data.T, atol=1e-7)
        np.testing.assert_allclose(kernel.data, kernel.data[::-1, ::-1], atol=1e-7)
        assert np.argmax(kernel.data) == 24

    def test_invalid_kernel_parameters(self):
        with pytest.raises(ValueError):
            gaussian_kernel(4, 1.0)
        with pytest.raises(ValueError):
            gaussian_kernel(5, 0.0)

    def test_constant_image_preserved(self):
        image = Grid.filled(20, 15, 7.0)
        blurred = gaussian_blur(image, 7, 1.5)
        np.testing.assert_allclose(blurred.data, 7.0, rtol=1e-5)


class TestGaussianScaleSpace:
    """Test cases for pyramid construction"""

    @pytest.fixture
    def sample_grid(self):
        rng = np.random.default_rng(1)
        return Grid.from_array(rng.uniform(0, 255, (48, 64)))

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            GaussianScaleSpace(scales=0)
        with pytest.raises(ValueError):
            GaussianScaleSpace(scales=3, k=1.0)

    def test_default_growth_factor(self):
        scale_space = GaussianScaleSpace(scales=3)
        assert scale_space.k == pytest.approx(2 ** (1 / 3))
        assert scale_space.sigma_for_level(3) == pytest.approx(3.2)

    def test_pyramid_structure(self, sample_grid):
        dogs, gaussians = GaussianScaleSpace(scales=3).build(sample_grid)

        # 64x48 -> 32x24 -> 16x12 (below the minimum octave size)
        assert len(dogs) == 2
        assert len(gaussians) == 2

        for octave, (dog_stack, gaussian_stack) in enumerate(zip(dogs, gaussians)):
            assert len(gaussian_stack) == 6
            assert len(dog_stack) == 5
            expected_shape = (48 >> octave, 64 >> octave)
            assert all(g.shape == expected_shape for g in gaussian_stack)
            assert all(d.shape == expected_shape for d in dog_stack)

    def test_dog_is_later_minus_earlier(self, sample_grid):
        dogs, gaussians = GaussianScaleSpace(scales=2).build(sample_grid)
        for dog_stack, gaussian_stack in zip(dogs, gaussians):
            for i, dog in enumerate(dog_stack):
                np.testing.assert_array_equal(
                    dog.data, gaussian_stack[i + 1].data - gaussian_stack[i].data
                )

    def test_max_octaves(self, sample_grid):
        dogs, gaussians = GaussianScaleSpace(scales=3, max_octaves=1).build(sample_grid)
        assert len(dogs) == 1
        assert len(gaussians) == 1

    def test_small_image_has_no_octaves(self):
        dogs, gaussians = GaussianScaleSpace().build(Grid.filled(40, 15, 10.0))
        assert dogs == []
        assert gaussians == []

    def test_constant_image_has_flat_dogs(self):
        dogs, _ = GaussianScaleSpace().build(Grid.filled(32, 32, 100.0))
        for dog_stack in dogs:
            for dog in dog_stack:
                assert np.max(np.abs(dog.data)) < 1e-3

    def test_no_base_blur_when_input_is_sharp_enough(self, sample_grid):
        _, gaussians = GaussianScaleSpace(scales=3, sigma_0=1.6, sigma_n=1.6).build(sample_grid)
        np.testing.assert_array_equal(gaussians[0][0].data, sample_grid.data)

    def test_next_octave_starts_from_downsampled_level(self, sample_grid):
        _, gaussians = GaussianScaleSpace(scales=3, sigma_n=1.6).build(sample_grid)
        # sigma_n equals sigma_0 on every octave after the first, so level 0 is the copy
        np.testing.assert_array_equal(gaussians[1][0].data, gaussians[0][3].data[::2, ::2])

    def test_downsample_half(self):
        grid = Grid(np.arange(15), 5, 3)
        half = downsample_half(grid)
        assert half.shape == (1, 2)
        np.testing.assert_array_equal(half.buffer, [0.0, 2.0])

        tiny = downsample_half(Grid.filled(1, 1, 3.0))
        assert tiny.shape == (1, 1)
