import numpy as np
from netcore.base import Layer
from netcore.errors import InputShapeMismatchError, OutputShapeMismatchError
from netcore.tensor import Matrix, Tensor3D


class Dense(Layer):
    """
    Fully connected layer: output = input @ W + b.

    Shapes:
        W: (input_size, output_size), He initialised N(0, 1) * sqrt(2 / input_size)
        b: (1, output_size), zeros

    The gradient matrices are allocated once and overwritten on every
    backward call. Parameter gradients are averaged over the batch, the
    gradient returned to the previous layer is not.
    """
    def __init__(self, input_size, output_size, rng=None):
        super().__init__()
        self.input_size = input_size
        self.output_size = output_size

        rng = rng if rng is not None else np.random
        scale = np.sqrt(2.0 / input_size)
        self.W = Matrix.from_array(rng.normal(0.0, 1.0, (input_size, output_size)) * scale)
        self.b = Matrix(1, output_size)

        self.dW = Matrix(input_size, output_size)
        self.db = Matrix(1, output_size)

        self.X = None

    def forward(self, x):
        if x.cols != self.input_size:
            raise InputShapeMismatchError(
                f"input size mismatch: got {x.cols}, expected {self.input_size}")
        self.X = x.copy()
        return x.multiply(self.W).add_row_inplace(self.b)

    def backward(self, output_gradient):
        if self.X is None:
            raise RuntimeError("Dense.backward called before forward")
        if output_gradient.cols != self.output_size or output_gradient.rows != self.X.rows:
            raise OutputShapeMismatchError(
                f"gradient shape mismatch: got {output_gradient.shape}, "
                f"expected ({self.X.rows}, {self.output_size})")

        batch_size = output_gradient.rows
        g = output_gradient.data

        # dL/dW = X^T @ g / batch, dL/db = sum over batch / batch
        self.dW.data[...] = (self.X.data.T @ g) / batch_size
        self.db.data[...] = np.sum(g, axis=0, keepdims=True) / batch_size

        # dL/dX = g @ W^T
        return output_gradient.multiply(self.W.transpose())

    def get_params(self):
        return [self.W, self.b]

    def get_grads(self):
        return [self.dW, self.db]

    def get_param_names(self):
        return ['weights', 'bias']


class Flatten(Layer):
    """
    Flattens a Tensor3D (C, H, W) into a (1, C*H*W) Matrix.
    Connects convolutional layers to dense ones.
    """
    def __init__(self):
        super().__init__()
        self.input_shape = None

    def forward(self, x):
        if not isinstance(x, Tensor3D):
            raise TypeError(f"Flatten expects a Tensor3D, got {type(x).__name__}")
        self.input_shape = x.shape
        return Matrix.from_array(x.data.reshape(1, -1))

    def backward(self, output_gradient):
        if self.input_shape is None:
            raise RuntimeError("Flatten.backward called before forward")
        if output_gradient.data.size != int(np.prod(self.input_shape)):
            raise OutputShapeMismatchError(
                f"cannot reshape gradient of shape {output_gradient.shape} to {self.input_shape}")
        return Tensor3D.from_array(output_gradient.data.reshape(self.input_shape))
