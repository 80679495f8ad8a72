import numpy as np
from netcore.errors import ShapeMismatchError


class Matrix:
    """
    Dense 2D float64 array with shape-checked arithmetic.

    Every arithmetic operation returns a new Matrix. The only in-place
    operations are add_row_inplace (bias broadcast) and assign (parameter
    overwrite).
    """

    def __init__(self, rows, cols):
        if rows < 0 or cols < 0:
            raise ValueError(f"Matrix dimensions must be non-negative, got ({rows}, {cols})")
        self.data = np.zeros((rows, cols), dtype=np.float64)

    @classmethod
    def from_array(cls, values):
        """Builds a Matrix from any 2D array-like. The values are copied."""
        arr = np.array(values, dtype=np.float64)
        if arr.ndim != 2:
            raise ShapeMismatchError(f"Matrix needs a 2D array, got {arr.ndim}D")
        m = cls(*arr.shape)
        m.data[...] = arr
        return m

    @classmethod
    def random(cls, rows, cols, rng=None):
        """Matrix filled with uniform values in [-1, 1)."""
        rng = rng if rng is not None else np.random
        return cls.from_array(rng.uniform(-1.0, 1.0, (rows, cols)))

    @property
    def rows(self):
        return self.data.shape[0]

    @property
    def cols(self):
        return self.data.shape[1]

    @property
    def shape(self):
        return self.data.shape

    def _check_same_shape(self, other, op):
        if self.shape != other.shape:
            raise ShapeMismatchError(
                f"cannot {op} matrices of shape {self.shape} and {other.shape}")

    def multiply(self, other):
        if self.cols != other.rows:
            raise ShapeMismatchError(
                f"incompatible dimensions: {self.shape} and {other.shape}")
        return Matrix.from_array(self.data @ other.data)

    def add(self, other):
        self._check_same_shape(other, "add")
        return Matrix.from_array(self.data + other.data)

    def subtract(self, other):
        self._check_same_shape(other, "subtract")
        return Matrix.from_array(self.data - other.data)

    def hadamard(self, other):
        self._check_same_shape(other, "multiply element-wise")
        return Matrix.from_array(self.data * other.data)

    def scale(self, scalar):
        return Matrix.from_array(self.data * scalar)

    def transpose(self):
        return Matrix.from_array(self.data.T)

    def apply(self, fn):
        """Element-wise map. fn receives and returns a float."""
        out = Matrix(self.rows, self.cols)
        for i in range(self.rows):
            for j in range(self.cols):
                out.data[i, j] = fn(self.data[i, j])
        return out

    def slice_rows(self, start, end):
        return Matrix.from_array(self.data[start:end])

    def add_row_inplace(self, row):
        """Adds a (1, cols) matrix to every row, in place."""
        if row.shape != (1, self.cols):
            raise ShapeMismatchError(
                f"cannot broadcast row of shape {row.shape} onto {self.shape}")
        self.data += row.data
        return self

    def assign(self, other):
        """Overwrites the values of this matrix with those of other, in place."""
        self._check_same_shape(other, "assign")
        self.data[...] = other.data
        return self

    def copy(self):
        return Matrix.from_array(self.data)

    def to_numpy(self):
        return self.data.copy()

    def __getitem__(self, idx):
        return self.data[idx]

    def __repr__(self):
        return f"Matrix({self.rows}x{self.cols})"


class Tensor3D:
    """
    Dense 3D float64 array indexed [channel][row][col].
    Used by the convolutional layers.
    """

    def __init__(self, channels, height, width):
        if channels < 0 or height < 0 or width < 0:
            raise ValueError(
                f"Tensor3D dimensions must be non-negative, got ({channels}, {height}, {width})")
        self.data = np.zeros((channels, height, width), dtype=np.float64)

    @classmethod
    def from_array(cls, values):
        arr = np.array(values, dtype=np.float64)
        if arr.ndim != 3:
            raise ShapeMismatchError(f"Tensor3D needs a 3D array, got {arr.ndim}D")
        t = cls(*arr.shape)
        t.data[...] = arr
        return t

    @property
    def channels(self):
        return self.data.shape[0]

    @property
    def height(self):
        return self.data.shape[1]

    @property
    def width(self):
        return self.data.shape[2]

    @property
    def shape(self):
        return self.data.shape

    def copy(self):
        return Tensor3D.from_array(self.data)

    def to_numpy(self):
        return self.data.copy()

    def __getitem__(self, idx):
        return self.data[idx]

    def __repr__(self):
        return f"Tensor3D({self.channels}x{self.height}x{self.width})"
