import numpy as np
import pytest

from netcore.activations import (ReLU, Sigmoid, Softmax, Tanh, relu, relu_matrix,
                                 sigmoid, softmax, softmax_rows)
from netcore.errors import OutputShapeMismatchError
from netcore.tensor import Matrix, Tensor3D


def test_softmax_is_a_distribution():
    rng = np.random.default_rng(0)
    for _ in range(20):
        row = rng.normal(0, 10, rng.integers(1, 8))
        p = softmax(row)
        assert np.all(p >= 0) and np.all(p <= 1)
        assert abs(np.sum(p) - 1.0) < 1e-9


def test_softmax_shift_invariant():
    row = np.array([1.0, 2.0, 3.0])
    assert np.allclose(softmax(row), softmax(row + 1000.0))


def test_softmax_large_inputs_do_not_overflow():
    p = softmax([1000.0, 1000.0])
    assert np.allclose(p, [0.5, 0.5])


def test_softmax_empty_rejected():
    with pytest.raises(ValueError):
        softmax([])


def test_softmax_rows_are_independent():
    m = Matrix.from_array([[1, 2, 3], [0, 0, 0]])
    out = softmax_rows(m)
    assert np.allclose(out.data.sum(axis=1), [1.0, 1.0])
    assert np.allclose(out.data[1], [1 / 3] * 3)
    assert np.allclose(out.data[0], softmax([1, 2, 3]))


def test_relu_functions():
    assert relu(-2.0) == 0.0
    assert relu(3.5) == 3.5
    m = Matrix.from_array([[-1, 0, 2]])
    assert np.allclose(relu_matrix(m).data, [[0, 0, 2]])


def test_sigmoid_function():
    assert sigmoid(0.0) == pytest.approx(0.5)
    assert np.isfinite(sigmoid(np.array([-1e4, 1e4]))).all()


def test_relu_layer_mask():
    rng = np.random.default_rng(1)
    x = Matrix.from_array(rng.normal(size=(6, 5)))
    x.data[0, 0] = 0.0
    g = Matrix.from_array(rng.normal(size=(6, 5)))

    layer = ReLU()
    layer.forward(x)
    grad_in = layer.backward(g)

    passed = x.data > 0
    assert np.array_equal(grad_in.data[passed], g.data[passed])
    assert np.all(grad_in.data[~passed] == 0.0)
    # x == 0 does not pass
    assert grad_in.data[0, 0] == 0.0


def test_relu_layer_copies_its_input():
    x = Matrix.from_array([[1.0, -1.0]])
    layer = ReLU()
    layer.forward(x)
    x.data[0, 0] = -5.0
    grad_in = layer.backward(Matrix.from_array([[1.0, 1.0]]))
    assert np.allclose(grad_in.data, [[1.0, 0.0]])


def test_relu_layer_on_tensor3d():
    t = Tensor3D.from_array([[[-1.0, 2.0]]])
    out = ReLU().forward(t)
    assert isinstance(out, Tensor3D)
    assert np.allclose(out.data, [[[0.0, 2.0]]])


def test_activation_backward_checks():
    layer = ReLU()
    with pytest.raises(RuntimeError):
        layer.backward(Matrix(1, 2))
    layer.forward(Matrix(1, 2))
    with pytest.raises(OutputShapeMismatchError):
        layer.backward(Matrix(1, 3))


def test_softmax_layer_passes_gradient_through():
    layer = Softmax()
    out = layer.forward(Matrix.from_array([[1, 2], [3, 3]]))
    assert np.allclose(out.data.sum(axis=1), 1.0)
    g = Matrix.from_array([[0.1, -0.2], [0.3, 0.4]])
    assert layer.backward(g) is g
    assert layer.get_params() == []


@pytest.mark.parametrize("layer_cls", [Sigmoid, Tanh])
def test_smooth_activation_gradients(layer_cls):
    x = Matrix.from_array([[-1.5, 0.0, 0.7]])
    layer = layer_cls()
    layer.forward(x)
    analytic = layer.backward(Matrix.from_array([[1.0, 1.0, 1.0]])).data

    h = 1e-6
    numeric = np.zeros_like(analytic)
    for j in range(3):
        plus, minus = x.copy(), x.copy()
        plus.data[0, j] += h
        minus.data[0, j] -= h
        numeric[0, j] = (layer_cls().forward(plus).data[0, j] -
                         layer_cls().forward(minus).data[0, j]) / (2 * h)
    assert np.allclose(analytic, numeric, atol=1e-6)
