import numpy as np
import pytest

from infinitrain.autograd.function import Tensor
from infinitrain.autograd.normalization import LayerNorm

RNG = np.random.default_rng(2)


def numeric_grad(f, x, eps=1e-6):
    grad = np.zeros_like(x)
    for idx in np.ndindex(x.shape):
        old = x[idx]
        x[idx] = old + eps
        plus = f()
        x[idx] = old - eps
        minus = f()
        x[idx] = old
        grad[idx] = (plus - minus) / (2 * eps)
    return grad


def run(x, w, b, eps=1e-5):
    (out,) = LayerNorm(eps).forward([Tensor(x), Tensor(w), Tensor(b)])
    return out.data


def test_unit_affine_gives_zero_mean_unit_variance():
    x = RNG.standard_normal((3, 4, 8)) * 5 + 2
    out = run(x, np.ones(8), np.zeros(8), eps=0.0)
    np.testing.assert_allclose(out.mean(axis=-1), 0, atol=1e-10)
    np.testing.assert_allclose(out.var(axis=-1), 1, atol=1e-10)


def test_weight_and_bias_scale_and_shift():
    x = RNG.standard_normal((2, 5))
    w = RNG.standard_normal(5)
    b = RNG.standard_normal(5)
    base = run(x, np.ones(5), np.zeros(5))
    np.testing.assert_allclose(run(x, w, b), base * w + b, atol=1e-12)


def test_mismatched_weight_raises():
    with pytest.raises(ValueError):
        run(np.ones((2, 4)), np.ones(3), np.zeros(4))


def test_context_holds_five_saved_tensors():
    x, w, b = Tensor(RNG.standard_normal((2, 3))), Tensor(np.ones(3)), Tensor(np.zeros(3))
    fn = LayerNorm()
    fn.apply([x, w, b])
    assert len(fn.saved_tensors) == 5
    assert fn.saved_tensors[0] is x
    assert fn.saved_tensors[3].shape == (2,)


def test_backward_without_forward_raises():
    with pytest.raises(RuntimeError):
        LayerNorm().backward([Tensor(np.ones((2, 3)))])


def test_gradients_match_finite_differences():
    x = RNG.standard_normal((2, 3, 4))
    w = RNG.standard_normal(4)
    b = RNG.standard_normal(4)
    g = RNG.standard_normal((2, 3, 4))
    fn = LayerNorm()
    fn.apply([Tensor(x), Tensor(w), Tensor(b)])
    grads = fn.backward([Tensor(g)])

    def objective():
        return float((run(x, w, b) * g).sum())

    for operand, grad in zip((x, w, b), grads):
        np.testing.assert_allclose(grad.data, numeric_grad(objective, operand), atol=1e-5)