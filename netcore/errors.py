class NetworkError(Exception):
    """Base class for every error raised by the engine."""
    pass


class ShapeMismatchError(NetworkError, ValueError):
    """
    Operand dimensions are incompatible.
    Raised by matrix arithmetic, loss comparisons and the optimizers.
    """
    pass


class InputShapeMismatchError(ShapeMismatchError):
    """The input of a layer's forward pass does not match its configured size."""
    pass


class OutputShapeMismatchError(ShapeMismatchError):
    """The gradient given to a layer's backward pass does not match its output size."""
    pass


class ChannelMismatchError(ShapeMismatchError):
    """A convolution received a tensor with the wrong number of channels."""
    pass


class LayerError(NetworkError):
    """
    Wraps an exception raised inside a layer of a Sequential model.

    Attributes:
        layer_index: Position of the failing layer in the model.
        phase: "forward" or "backward".
    The original exception is available as __cause__.
    """

    def __init__(self, layer_index, phase, cause):
        self.layer_index = layer_index
        self.phase = phase
        super().__init__(f"error in {phase} pass at layer {layer_index}: {cause}")
