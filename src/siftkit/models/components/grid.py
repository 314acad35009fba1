import numpy as np
from scipy.ndimage import correlate
from typing import Tuple, Union

ArrayLike = Union[np.ndarray, list, tuple, bytes, bytearray]


class Grid:
    """
    Dense 2D float buffer with replicate-border access and convolution

    Pixels are stored row-major in a (height, width) float32 array, so
    index(x, y) = y * width + x in the flattened buffer.
    """

    def __init__(self, buffer: ArrayLike, width: int, height: int):
        """
        Initialize grid from a flat row-major buffer

        Args:
            buffer: Flat pixel buffer of length width * height
            width: Number of columns
            height: Number of rows
        """
        if isinstance(buffer, (bytes, bytearray)):
            data = np.frombuffer(buffer, dtype=np.uint8)
        else:
            data = np.asarray(buffer)

        width, height = int(width), int(height)
        if data.size != width * height:
            raise ValueError(
                f"Buffer of length {data.size} does not match {width}x{height} grid"
            )

        self.width = width
        self.height = height
        self.data = data.astype(np.float32).reshape(height, width)

    @classmethod
    def from_array(cls, array: np.ndarray) -> "Grid":
        """Build a grid from a 2D (height, width) array"""
        array = np.asarray(array)
        if array.ndim != 2:
            raise ValueError(f"Expected a 2D array, got shape {array.shape}")
        return cls(array.ravel(), array.shape[1], array.shape[0])

    @classmethod
    def filled(cls, width: int, height: int, value: float = 0.0) -> "Grid":
        """Build a grid with every pixel set to value"""
        return cls(np.full(int(width) * int(height), value, dtype=np.float32), width, height)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.height, self.width

    @property
    def buffer(self) -> np.ndarray:
        """Flat row-major view of the pixels"""
        return self.data.ravel()

    def get_pixel(self, x: int, y: int) -> float:
        # caller guarantees 0 <= x < width, 0 <= y < height
        return self.data[y, x]

    def set_pixel(self, x: int, y: int, value: float):
        self.data[y, x] = value

    def get_clamped(self, x, y):
        """
        Read pixels with replicate-border policy

        Accepts scalar or array coordinates; out-of-range coordinates map to
        the nearest edge pixel and fractional ones are truncated.
        """
        xc = np.clip(x, 0, self.width - 1).astype(int)
        yc = np.clip(y, 0, self.height - 1).astype(int)
        return self.data[yc, xc]

    def difference(self, other: "Grid") -> "Grid":
        """Element-wise self - other"""
        if self.width != other.width or self.height != other.height:
            raise ValueError(
                f"Grid dimensions differ: {self.width}x{self.height} vs "
                f"{other.width}x{other.height}"
            )
        return Grid.from_array(self.data - other.data)

    def convolve(self, kernel: "Grid") -> "Grid":
        """
        Convolve with an odd-sized kernel using clamp-to-edge borders

        Each output pixel is sum(source(clamp(x+dx, y+dy)) * kernel(dx, dy))
        over the kernel window, i.e. a correlation without kernel flipping.

        Args:
            kernel: Kernel grid with odd width and height

        Returns:
            New grid with the same dimensions
        """
        if kernel.width % 2 != 1 or kernel.height % 2 != 1:
            raise ValueError(
                f"Kernel must have odd dimensions, got {kernel.width}x{kernel.height}"
            )
        out = correlate(self.data, kernel.data, mode="nearest")
        return Grid.from_array(out)

    def copy(self) -> "Grid":
        return Grid.from_array(self.data.copy())

    def __repr__(self):
        return f"Grid(width={self.width}, height={self.height})"
