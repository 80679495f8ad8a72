import numpy as np
from netcore.base import Layer
from netcore.errors import OutputShapeMismatchError
from netcore.tensor import Matrix


# (Activation Functions)

def relu(x):
    return max(0.0, x)


def relu_matrix(m):
    return Matrix.from_array(np.maximum(0.0, m.data))


def sigmoid(x):
    x = np.clip(x, -500, 500)
    return 1 / (1 + np.exp(-x))


def softmax(row):
    """
    Converts a vector of scores into a probability distribution.
    The row maximum is subtracted before exponentiating to avoid overflow.
    """
    row = np.asarray(row, dtype=np.float64)
    if row.size == 0:
        raise ValueError("softmax of an empty vector is undefined")
    exp_values = np.exp(row - np.max(row))
    return exp_values / np.sum(exp_values)


def softmax_rows(m):
    """Applies softmax to each row of a Matrix independently."""
    out = Matrix(m.rows, m.cols)
    for i in range(m.rows):
        out.data[i] = softmax(m.data[i])
    return out


# (Activation Layers)

def _check_gradient(layer, cached, output_gradient):
    if cached is None:
        raise RuntimeError(f"{layer.name}.backward called before forward")
    if output_gradient.shape != cached.shape:
        raise OutputShapeMismatchError(
            f"{layer.name} expected a gradient of shape {cached.shape}, got {output_gradient.shape}")


class ReLU(Layer):
    """
    Rectified Linear Unit.
    Formula: f(x) = max(0, x)
    Range: [0, inf)
    """
    def __init__(self):
        super().__init__()
        self.x = None

    def forward(self, x):
        self.x = x.copy()
        return type(x).from_array(np.maximum(0.0, x.data))

    def backward(self, output_gradient):
        _check_gradient(self, self.x, output_gradient)
        # Derivative: 1 if x > 0 else 0 (x == 0 does not pass)
        return type(output_gradient).from_array(output_gradient.data * (self.x.data > 0))


class Softmax(Layer):
    """
    Row-wise Softmax. Each row becomes an independent probability distribution.

    The backward pass is an identity pass-through. This is only correct when the
    layer is the last one of a model compiled with CategoricalCrossEntropy:
    that loss returns the raw gradient -y/p, and the combination is meant to
    realise the softmax + cross-entropy derivative. Do not pair this layer
    with any other loss.
    """
    def __init__(self):
        super().__init__()
        self.out = None

    def forward(self, x):
        self.out = softmax_rows(x)
        return self.out

    def backward(self, output_gradient):
        return output_gradient


class Sigmoid(Layer):
    """
    Standard Sigmoid Activation Function.
    Formula: f(x) = 1 / (1 + exp(-x))
    Range: (0, 1)
    """
    def __init__(self):
        super().__init__()
        self.out = None

    def forward(self, x):
        self.out = type(x).from_array(sigmoid(x.data))
        return self.out

    def backward(self, output_gradient):
        _check_gradient(self, self.out, output_gradient)
        # Derivative: f(x) * (1 - f(x))
        s = self.out.data
        return type(output_gradient).from_array(output_gradient.data * s * (1 - s))


class Tanh(Layer):
    """
    Hyperbolic Tangent Activation.
    Formula: f(x) = tanh(x)
    Range: (-1, 1)
    """
    def __init__(self):
        super().__init__()
        self.out = None

    def forward(self, x):
        self.out = type(x).from_array(np.tanh(x.data))
        return self.out

    def backward(self, output_gradient):
        _check_gradient(self, self.out, output_gradient)
        # Derivative: 1 - tanh^2(x)
        return type(output_gradient).from_array(output_gradient.data * (1 - self.out.data ** 2))
