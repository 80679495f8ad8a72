import numpy as np
import pytest

from netcore.activations import ReLU, Sigmoid, Softmax
from netcore.base import Loss, ParamKey
from netcore.conv import Convolution, MaxPool
from netcore.errors import InputShapeMismatchError, LayerError, ShapeMismatchError
from netcore.layers import Dense, Flatten
from netcore.losses import MSE, BinaryCrossEntropy, CategoricalCrossEntropy
from netcore.models import Sequential
from netcore.optimizers import SGD, Adam
from netcore.tensor import Matrix, Tensor3D
from netutils.data_utils import DataHandler


class BatchSizeLoss(Loss):
    """Loss equal to the batch row count, with a zero gradient."""

    def forward(self, predictions, targets):
        self._check_shapes(predictions, targets)
        return float(predictions.rows)

    def backward(self, predictions, targets):
        return Matrix(*predictions.shape)


def test_add_rejects_non_layers():
    model = Sequential()
    with pytest.raises(TypeError):
        model.add("dense")
    with pytest.raises(TypeError):
        Sequential([Dense(1, 1), object()])


def test_training_requires_compile():
    model = Sequential([Dense(1, 1)])
    X = Matrix(2, 1)
    with pytest.raises(RuntimeError):
        model.fit(X, X, epochs=1, verbose=False)
    with pytest.raises(RuntimeError):
        model.train_on_batch(X, X)
    with pytest.raises(RuntimeError):
        model.evaluate(X, X)


def test_forward_error_carries_layer_index():
    model = Sequential([Dense(2, 3), ReLU(), Dense(4, 1)])
    with pytest.raises(LayerError) as info:
        model.forward(Matrix(1, 2))
    assert info.value.layer_index == 2
    assert info.value.phase == "forward"
    assert isinstance(info.value.__cause__, InputShapeMismatchError)


def test_backward_error_carries_layer_index():
    model = Sequential([Dense(2, 3), ReLU(), Dense(3, 1)])
    model.forward(Matrix(1, 2))
    with pytest.raises(LayerError) as info:
        model.backward(Matrix(1, 2))
    assert info.value.layer_index == 2
    assert info.value.phase == "backward"


def test_failed_forward_leaves_parameters_untouched():
    model = Sequential([Dense(2, 2), Dense(3, 1)])
    model.compile(MSE(), SGD(learning_rate=0.1))
    before = [p.to_numpy() for layer in model.layers for p in layer.get_params()]
    with pytest.raises(LayerError):
        model.train_on_batch(Matrix(1, 2), Matrix(1, 1))
    after = [p.to_numpy() for layer in model.layers for p in layer.get_params()]
    assert all(np.array_equal(a, b) for a, b in zip(before, after))


def test_loss_shape_error_propagates():
    model = Sequential([Dense(2, 1)])
    model.compile(MSE(), SGD())
    with pytest.raises(ShapeMismatchError):
        model.train_on_batch(Matrix(3, 2), Matrix(3, 2))


def test_optimizer_state_keyed_by_layer_position():
    model = Sequential([Dense(2, 3), ReLU(), Dense(3, 1)])
    opt = SGD(learning_rate=0.1, momentum=0.9)
    model.compile(MSE(), opt)
    model.train_on_batch(Matrix.from_array([[1.0, 2.0]]), Matrix.from_array([[1.0]]))
    assert set(opt.velocity) == {ParamKey(0, 'weights'), ParamKey(0, 'bias'),
                                 ParamKey(2, 'weights'), ParamKey(2, 'bias')}
    assert {str(k) for k in opt.velocity} == {"layer_0_weights", "layer_0_bias",
                                              "layer_2_weights", "layer_2_bias"}


def test_train_on_batch_applies_gradient_descent():
    layer = Dense(1, 1)
    layer.W.assign(Matrix.from_array([[1.0]]))
    model = Sequential([layer])
    model.compile(MSE(), SGD(learning_rate=0.1))
    # prediction 2, target 0: loss 2, dL/dp = 2, dW = 2 * x = 4, db = 2
    loss = model.train_on_batch(Matrix.from_array([[2.0]]), Matrix.from_array([[0.0]]))
    assert loss == pytest.approx(2.0)
    assert layer.W[0, 0] == pytest.approx(1.0 - 0.1 * 4.0)
    assert layer.b[0, 0] == pytest.approx(-0.1 * 2.0)


def test_parameters_updated_in_place():
    layer = Dense(2, 2)
    W = layer.W
    model = Sequential([layer])
    model.compile(MSE(), Adam(learning_rate=0.01))
    model.train_on_batch(Matrix.from_array([[1.0, 1.0]]), Matrix.from_array([[0.0, 1.0]]))
    assert layer.W is W


def test_frozen_layers_are_not_updated():
    frozen = Dense(2, 2)
    frozen.trainable = False
    before = frozen.W.to_numpy()
    model = Sequential([frozen, Dense(2, 1)])
    model.compile(MSE(), SGD(learning_rate=0.5))
    model.train_on_batch(Matrix.from_array([[1.0, 2.0]]), Matrix.from_array([[3.0]]))
    assert np.array_equal(frozen.W.data, before)


def test_adam_counts_one_step_per_batch():
    model = Sequential([Dense(2, 3), ReLU(), Dense(3, 1)])
    opt = Adam(learning_rate=0.01)
    model.compile(MSE(), opt)
    X = Matrix.from_array(np.ones((6, 2)))
    y = Matrix(6, 1)
    model.fit(X, y, epochs=2, batch_size=4, verbose=False)
    assert opt.t == 4


def test_fit_epoch_loss_is_unweighted_batch_mean():
    model = Sequential([Dense(1, 1)])
    model.compile(BatchSizeLoss(), SGD())
    X = Matrix(5, 1)
    history = model.fit(X, Matrix(5, 1), epochs=3, batch_size=2, verbose=False)
    # batches of 2, 2 and 1 rows
    assert history['loss'] == [pytest.approx(5 / 3)] * 3


def test_fit_validates_arguments():
    model = Sequential([Dense(1, 1)])
    model.compile(MSE(), SGD())
    with pytest.raises(ShapeMismatchError):
        model.fit(Matrix(4, 1), Matrix(3, 1), verbose=False)
    with pytest.raises(ValueError):
        model.fit(Matrix(4, 1), Matrix(4, 1), batch_size=0, verbose=False)


def test_fit_records_validation_loss_and_logs(capsys):
    np.random.seed(1)
    model = Sequential([Dense(1, 4), ReLU(), Dense(4, 1)])
    model.compile(MSE(), Adam(learning_rate=0.01))
    X, y = DataHandler.generate_linear(num_samples=20)
    history = model.fit(X, y, epochs=3, batch_size=5, validation_data=(X, y), log_freq=2)
    assert len(history['loss']) == 3
    assert len(history['val_loss']) == 3
    out = capsys.readouterr().out
    assert "Epoch 1 finished" in out
    assert "Epoch 3 finished" in out
    assert "Training Complete" in out


def test_fit_is_silent_when_not_verbose(capsys):
    model = Sequential([Dense(1, 1)])
    model.compile(MSE(), SGD())
    model.fit(Matrix(4, 1), Matrix(4, 1), epochs=2, batch_size=2, verbose=False)
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == ""


def test_predict_and_evaluate():
    layer = Dense(1, 1)
    layer.W.assign(Matrix.from_array([[2.0]]))
    model = Sequential([layer])
    model.compile(MSE(), SGD())
    X = Matrix.from_array([[1.0], [2.0]])
    assert np.allclose(model.predict(X).data, [[2.0], [4.0]])
    assert model.evaluate(X, Matrix.from_array([[2.0], [2.0]])) == pytest.approx(1.0)


def test_summary_counts_parameters(capsys):
    model = Sequential([Dense(2, 8), ReLU(), Dense(8, 1)])
    assert model.summary() == (2 * 8 + 8) + (8 + 1)
    assert "Dense" in capsys.readouterr().out


def test_xor_end_to_end():
    np.random.seed(0)
    X, y = DataHandler.generate_xor()
    model = Sequential()
    model.add(Dense(2, 8))
    model.add(ReLU())
    model.add(Dense(8, 1))
    model.add(Sigmoid())
    model.compile(BinaryCrossEntropy(), Adam(learning_rate=0.01))

    history = model.fit(X, y, epochs=1000, batch_size=4, verbose=False)

    assert history['loss'][-1] < 0.1
    p = model.predict(X).data[:, 0]
    assert min(p[1], p[2]) > max(p[0], p[3])


def test_multiclass_softmax_training_reduces_loss():
    np.random.seed(3)
    X, y = DataHandler.generate_clusters(num_classes=3, samples_per_class=10)
    model = Sequential([Dense(2, 16), ReLU(), Dense(16, 3), Softmax()])
    model.compile(CategoricalCrossEntropy(), Adam(learning_rate=0.01))
    history = model.fit(X, y, epochs=200, batch_size=10, verbose=False)
    assert history['loss'][-1] < history['loss'][0]
    assert np.allclose(model.predict(X).data.sum(axis=1), 1.0)


def test_convolutional_model_trains_on_single_samples():
    rng = np.random.default_rng(5)
    model = Sequential([
        Convolution(2, 1, 2, rng=rng),
        ReLU(),
        MaxPool(2),
        Flatten(),
        Dense(8, 1, rng=rng),
        Sigmoid(),
    ])
    model.compile(BinaryCrossEntropy(), Adam(learning_rate=0.01))
    x = Tensor3D.from_array(rng.uniform(0, 1, (1, 5, 5)))
    y = Matrix.from_array([[1.0]])

    losses = [model.train_on_batch(x, y) for _ in range(50)]
    assert model.predict(x).shape == (1, 1)
    assert losses[-1] < losses[0]
    assert ParamKey(0, 'filters') in model.optimizer.m
