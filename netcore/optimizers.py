import numpy as np
from netcore.base import Optimizer
from netcore.tensor import Matrix


class SGD(Optimizer):
    """
    Stochastic Gradient Descent with momentum.

        velocity = momentum * velocity - lr * grad
        param    = param + velocity

    With momentum = 0 this is plain gradient descent.
    """
    def __init__(self, learning_rate=0.01, momentum=0.0):
        super().__init__(learning_rate)
        self.momentum = momentum
        self.velocity = {}

    def update(self, key, param, grad):
        self._check_shapes(key, param, grad)
        if key not in self.velocity:
            self.velocity[key] = np.zeros_like(param.data)

        v = self.velocity[key]
        v[...] = self.momentum * v - self.lr * grad.data
        return Matrix.from_array(param.data + v)

    def reset(self):
        self.velocity = {}


class Adam(Optimizer):
    """
    Adaptive Moment Estimation.

    Keeps a first moment m (mean of gradients) and a second moment v
    (uncentered variance) per parameter key, both bias-corrected with the
    step counter t:

        m_hat = m / (1 - beta1^t)
        v_hat = v / (1 - beta2^t)
        param = param - lr * m_hat / (sqrt(v_hat) + epsilon)

    Step counting:
        By default t advances once per training step (begin_step, called by
        Sequential), so every parameter of a step shares the same bias
        correction. With step_per_update=True, t advances on every update()
        call instead, which gives each parameter of a step a different
        correction factor.
    """
    def __init__(self, learning_rate=0.001, beta1=0.9, beta2=0.999, epsilon=1e-8,
                 step_per_update=False):
        super().__init__(learning_rate)
        self.beta1, self.beta2, self.epsilon = beta1, beta2, epsilon
        self.step_per_update = step_per_update
        self.m, self.v, self.t = {}, {}, 0  # m: 1st moment, v: 2nd moment, t: timestep

    def begin_step(self):
        if not self.step_per_update:
            self.t += 1

    def update(self, key, param, grad):
        self._check_shapes(key, param, grad)
        if self.step_per_update:
            self.t += 1

        if key not in self.m:
            self.m[key] = np.zeros_like(param.data)
            self.v[key] = np.zeros_like(param.data)

        g = grad.data
        m, v = self.m[key], self.v[key]
        m[...] = self.beta1 * m + (1 - self.beta1) * g
        v[...] = self.beta2 * v + (1 - self.beta2) * g ** 2

        # an update outside of any step counts as the first step
        t = max(self.t, 1)
        m_hat = m / (1 - self.beta1 ** t)
        v_hat = v / (1 - self.beta2 ** t)

        return Matrix.from_array(param.data - self.lr * m_hat / (np.sqrt(v_hat) + self.epsilon))

    def reset(self):
        self.m, self.v, self.t = {}, {}, 0
