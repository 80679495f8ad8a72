from abc import ABC, abstractmethod
from typing import NamedTuple

from netcore.errors import ShapeMismatchError


class ParamKey(NamedTuple):
    """
    Identifies one parameter of one layer inside a model.
    Optimizers key their accumulator state by it.
    """
    layer_index: int
    param_name: str

    def __str__(self):
        return f"layer_{self.layer_index}_{self.param_name}"


class Layer(ABC):
    """
    Abstract Base Class for all neural network layers.
    Establishes the contract for Forward, Backward, and Parameter handling.
    """

    def __init__(self):
        # Frozen layers (trainable = False) are skipped by the update stage
        self.trainable = True
        # Layer name can be useful for summaries and error messages
        self.name = self.__class__.__name__

    @abstractmethod
    def forward(self, x):
        """
        Computes the output of the layer.
        Args:
            x: Input Matrix (or Tensor3D for convolutional layers).
        Returns:
            Output of the layer.
        """
        pass

    @abstractmethod
    def backward(self, output_gradient):
        """
        Computes the gradient w.r.t the input and caches the parameter gradients.

        Parameters are NOT modified here. The model hands the cached
        gradients to its optimizer afterwards (see get_grads).

        Args:
            output_gradient: Gradient of the loss w.r.t the output of this layer.

        Returns:
            input_gradient: Gradient of the loss w.r.t the input of this layer.
        """
        pass

    def get_params(self):
        """
        Returns the live parameter matrices, in a stable order.
        Layers without parameters return an empty list.
        """
        return []

    def get_grads(self):
        """
        Returns the gradient matrices of the last backward call.
        get_grads()[i] always has the shape of get_params()[i].
        """
        return []

    def get_param_names(self):
        """Returns one name per parameter, e.g. ['weights', 'bias']."""
        return []

    def num_params(self):
        return sum(p.data.size for p in self.get_params())

    def __repr__(self):
        return f"<{self.name}>"


class Loss(ABC):
    """
    Abstract Base Class for loss functions.
    """

    @abstractmethod
    def forward(self, predictions, targets):
        """
        Computes the scalar loss value.
        """
        pass

    @abstractmethod
    def backward(self, predictions, targets):
        """
        Computes the gradient of the loss w.r.t the network output (predictions).
        This starts the Backpropagation process.
        """
        pass

    @staticmethod
    def _check_shapes(predictions, targets):
        if predictions.shape != targets.shape:
            raise ShapeMismatchError(
                f"shape mismatch: predictions {predictions.shape}, targets {targets.shape}")


class Optimizer(ABC):
    """
    Abstract Base Class for gradient-based optimizers.

    Optimizers keep per-parameter accumulator state keyed by a stable
    identifier (a ParamKey when driven by Sequential). The state belongs to
    one model; call reset() before reusing the optimizer on another one.
    """

    def __init__(self, learning_rate):
        self.lr = learning_rate

    def begin_step(self):
        """Called by the model once per training step, before any update."""
        pass

    @abstractmethod
    def update(self, key, param, grad):
        """
        Computes the new values of one parameter.
        Args:
            key: Stable identifier of the parameter.
            param: Current parameter Matrix (left untouched).
            grad: Gradient Matrix of the same shape.
        Returns:
            Matrix with the updated values. The caller copies them back.
        """
        pass

    @abstractmethod
    def reset(self):
        """Drops all accumulator state."""
        pass

    @staticmethod
    def _check_shapes(key, param, grad):
        if param.shape != grad.shape:
            raise ShapeMismatchError(
                f"parameter {key} has shape {param.shape} but its gradient has {grad.shape}")
