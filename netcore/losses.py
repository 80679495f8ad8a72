import numpy as np
from netcore.base import Loss
from netcore.tensor import Matrix


class BinaryCrossEntropy(Loss):
    """
    Binary Cross-Entropy for binary classification.
    Formula: L = -1/N * sum(y*log(p) + (1-y)*log(1-p)), N = number of elements

    Predictions are clamped to [epsilon, 1 - epsilon] before taking logarithms,
    in both the loss and the gradient.
    """
    def __init__(self, epsilon=1e-7):
        self.epsilon = epsilon

    def _clip(self, predictions):
        return np.clip(predictions.data, self.epsilon, 1 - self.epsilon)

    def forward(self, predictions, targets):
        self._check_shapes(predictions, targets)
        p = self._clip(predictions)
        y = targets.data
        return float(np.mean(-(y * np.log(p) + (1 - y) * np.log(1 - p))))

    def backward(self, predictions, targets):
        """
        dL/dp = -(y/p - (1-y)/(1-p)) / N
        """
        self._check_shapes(predictions, targets)
        p = self._clip(predictions)
        y = targets.data
        n = predictions.data.size
        return Matrix.from_array(-(y / p - (1 - y) / (1 - p)) / n)


class CategoricalCrossEntropy(Loss):
    """
    Categorical Cross-Entropy for one-hot multi-class targets.
    Formula: L = -1/N * sum_rows sum_j y_j * log(p_j), N = number of rows

    Only the lower bound of the predictions is clamped. The gradient is the
    raw -y/p / N; combined with the pass-through backward of the Softmax
    layer it stands in for the softmax + cross-entropy derivative.
    """
    def __init__(self, epsilon=1e-7):
        self.epsilon = epsilon

    def forward(self, predictions, targets):
        self._check_shapes(predictions, targets)
        p = np.maximum(self.epsilon, predictions.data)
        return float(np.sum(-targets.data * np.log(p)) / predictions.rows)

    def backward(self, predictions, targets):
        self._check_shapes(predictions, targets)
        p = np.maximum(self.epsilon, predictions.data)
        return Matrix.from_array(-targets.data / p / predictions.rows)


class MSE(Loss):
    """
    Mean Squared Error (L2 Loss).
    Standard loss for regression problems.
    Formula: L = 1/(2N) * sum((y - p)^2), N = number of elements
    """
    def forward(self, predictions, targets):
        self._check_shapes(predictions, targets)
        diff = targets.data - predictions.data
        return float(np.sum(diff ** 2) / (2 * predictions.data.size))

    def backward(self, predictions, targets):
        # dL/dp = -(y - p) / N
        self._check_shapes(predictions, targets)
        return Matrix.from_array(-(targets.data - predictions.data) / predictions.data.size)
