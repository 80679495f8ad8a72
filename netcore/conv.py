import numpy as np
from netcore.base import Layer
from netcore.errors import ChannelMismatchError, OutputShapeMismatchError
from netcore.tensor import Matrix, Tensor3D


def _check_tensor(layer, x):
    if not isinstance(x, Tensor3D):
        raise TypeError(f"{layer.name} expects a Tensor3D, got {type(x).__name__}")


class Convolution(Layer):
    """
    2D convolution (cross-correlation) over a (C, H, W) tensor.

    The filter bank [num_filters][in_channels][k][k] is stored as a
    (num_filters, in_channels * k * k) parameter matrix named 'filters', and
    the biases as a (1, num_filters) matrix named 'bias', so optimizers can
    update them like any dense parameter. self.filters is a 4D view of it.

    Output size per axis: floor((size - k + 2 * padding) / stride) + 1.
    Positions that fall into the padding read as zero.
    """
    def __init__(self, num_filters, in_channels, filter_size, stride=1, padding=0, rng=None):
        super().__init__()
        if stride < 1:
            raise ValueError("stride must be >= 1")
        if padding < 0:
            raise ValueError("padding must be >= 0")
        self.num_filters = num_filters
        self.in_channels = in_channels
        self.filter_size = filter_size
        self.stride = stride
        self.padding = padding

        rng = rng if rng is not None else np.random
        fan = in_channels * filter_size * filter_size
        self.W = Matrix.from_array(rng.uniform(-0.1, 0.1, (num_filters, fan)))
        self.b = Matrix(1, num_filters)

        self.dW = Matrix(num_filters, fan)
        self.db = Matrix(1, num_filters)

        self.X_padded = None
        self.input_shape = None
        self.output_shape = None

    @property
    def filters(self):
        k = self.filter_size
        return self.W.data.reshape(self.num_filters, self.in_channels, k, k)

    def output_size(self, height, width):
        k, s, p = self.filter_size, self.stride, self.padding
        return (height - k + 2 * p) // s + 1, (width - k + 2 * p) // s + 1

    def forward(self, x):
        _check_tensor(self, x)
        if x.channels != self.in_channels:
            raise ChannelMismatchError(
                f"input channels mismatch: got {x.channels}, expected {self.in_channels}")

        out_h, out_w = self.output_size(x.height, x.width)
        if out_h < 1 or out_w < 1:
            raise ValueError(
                f"input {x.shape} is smaller than the {self.filter_size}x{self.filter_size} filter")

        p = self.padding
        self.X_padded = np.pad(x.data, ((0, 0), (p, p), (p, p)))
        self.input_shape = x.shape
        self.output_shape = (self.num_filters, out_h, out_w)

        k, s = self.filter_size, self.stride
        filters = self.filters
        out = Tensor3D(*self.output_shape)

        for i in range(out_h):
            for j in range(out_w):
                window = self.X_padded[:, i * s:i * s + k, j * s:j * s + k]
                # dot product of every filter with the window, over all channels
                out.data[:, i, j] = np.tensordot(filters, window, axes=3) + self.b.data[0]
        return out

    def backward(self, output_gradient):
        if self.X_padded is None:
            raise RuntimeError("Convolution.backward called before forward")
        _check_tensor(self, output_gradient)
        if output_gradient.shape != self.output_shape:
            raise OutputShapeMismatchError(
                f"gradient shape mismatch: got {output_gradient.shape}, expected {self.output_shape}")

        k, s, p = self.filter_size, self.stride, self.padding
        g = output_gradient.data
        filters = self.filters
        d_filters = np.zeros_like(filters)
        dx_padded = np.zeros_like(self.X_padded)

        _, out_h, out_w = self.output_shape
        for i in range(out_h):
            for j in range(out_w):
                window = self.X_padded[:, i * s:i * s + k, j * s:j * s + k]
                g_ij = g[:, i, j]
                # filter gradient: cross-correlation of the input with g
                d_filters += g_ij[:, None, None, None] * window[None, :, :, :]
                # input gradient: g scattered back through the filters
                dx_padded[:, i * s:i * s + k, j * s:j * s + k] += np.tensordot(g_ij, filters, axes=1)

        self.dW.data[...] = d_filters.reshape(self.num_filters, -1)
        self.db.data[0] = np.sum(g, axis=(1, 2))

        _, h, w = self.input_shape
        return Tensor3D.from_array(dx_padded[:, p:p + h, p:p + w])

    def get_params(self):
        return [self.W, self.b]

    def get_grads(self):
        return [self.dW, self.db]

    def get_param_names(self):
        return ['filters', 'bias']


class MaxPool(Layer):
    """
    Max pooling per channel, no padding.
    Output size per axis: floor((size - pool_size) / stride) + 1.

    The argmax of every window is cached on forward so backward can route
    each gradient cell to the input position that produced the maximum.
    """
    def __init__(self, pool_size, stride=None):
        super().__init__()
        self.pool_size = pool_size
        self.stride = stride if stride is not None else pool_size
        if self.stride < 1:
            raise ValueError("stride must be >= 1")
        self.argmax = None
        self.input_shape = None

    def output_size(self, height, width):
        return ((height - self.pool_size) // self.stride + 1,
                (width - self.pool_size) // self.stride + 1)

    def forward(self, x):
        _check_tensor(self, x)
        out_h, out_w = self.output_size(x.height, x.width)
        if out_h < 1 or out_w < 1:
            raise ValueError(f"input {x.shape} is smaller than the pooling window")

        k, s = self.pool_size, self.stride
        out = Tensor3D(x.channels, out_h, out_w)
        # (channel, out_row, out_col) -> flat index of the max inside the window
        self.argmax = np.zeros((x.channels, out_h, out_w), dtype=np.int64)
        self.input_shape = x.shape

        for c in range(x.channels):
            for i in range(out_h):
                for j in range(out_w):
                    window = x.data[c, i * s:i * s + k, j * s:j * s + k]
                    idx = np.argmax(window)
                    self.argmax[c, i, j] = idx
                    out.data[c, i, j] = window.flat[idx]
        return out

    def backward(self, output_gradient):
        if self.argmax is None:
            raise RuntimeError("MaxPool.backward called before forward")
        _check_tensor(self, output_gradient)
        if output_gradient.shape != self.argmax.shape:
            raise OutputShapeMismatchError(
                f"gradient shape mismatch: got {output_gradient.shape}, expected {self.argmax.shape}")

        k, s = self.pool_size, self.stride
        dx = Tensor3D(*self.input_shape)
        channels, out_h, out_w = self.argmax.shape
        for c in range(channels):
            for i in range(out_h):
                for j in range(out_w):
                    r, q = divmod(int(self.argmax[c, i, j]), k)
                    # overlapping windows accumulate
                    dx.data[c, i * s + r, j * s + q] += output_gradient.data[c, i, j]
        return dx
