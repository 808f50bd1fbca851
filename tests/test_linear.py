import numpy as np
import pytest

from infinitrain.autograd.function import Tensor
from infinitrain.autograd.linear import Linear

RNG = np.random.default_rng(2)


def linear(arrays):
    return Linear().forward([Tensor(a) for a in arrays])[0].data


def numeric_grad(arrays, which, weights, eps=1e-6):
    grad = np.zeros_like(arrays[which])
    for idx in np.ndindex(arrays[which].shape):
        plus = [a.copy() for a in arrays]
        minus = [a.copy() for a in arrays]
        plus[which][idx] += eps
        minus[which][idx] -= eps
        grad[idx] = (np.sum(weights * linear(plus)) - np.sum(weights * linear(minus))) / (2 * eps)
    return grad


def make_params(batch_shape=(4,), in_features=3, out_features=2):
    x = RNG.normal(size=(*batch_shape, in_features))
    w = RNG.normal(size=(out_features, in_features))
    b = RNG.normal(size=(out_features,))
    return x, w, b


def test_forward_shape_and_bias_only_when_input_zero():
    x, w, b = make_params()
    out = linear([x, w, b])
    assert out.shape == (4, 2)
    zero_out = linear([np.zeros_like(x), w, b])
    np.testing.assert_allclose(zero_out, np.broadcast_to(b, (4, 2)))


def test_three_dimensional_input_matches_flattened():
    x, w, b = make_params(batch_shape=(2, 3))
    out = linear([x, w, b])
    flat = linear([x.reshape(6, 3), w, b])
    np.testing.assert_allclose(out.reshape(6, 2), flat)


@pytest.mark.parametrize("batch_shape", [(4,), (2, 3)])
def test_gradients_match_finite_difference(batch_shape):
    arrays = list(make_params(batch_shape=batch_shape))
    w_out = RNG.normal(size=(*batch_shape, 2))
    leaves = [Tensor(a.copy(), requires_grad=True) for a in arrays]
    Linear().apply(leaves)[0].backward(Tensor(w_out))
    for which, leaf in enumerate(leaves):
        assert leaf.grad.data.shape == arrays[which].shape
        np.testing.assert_allclose(leaf.grad.data, numeric_grad(arrays, which, w_out), atol=1e-5)


def test_bias_gradient_sums_upstream_rows():
    x, w, b = make_params()
    leaves = [Tensor(a, requires_grad=True) for a in (x, w, b)]
    upstream = RNG.normal(size=(4, 2))
    Linear().apply(leaves)[0].backward(Tensor(upstream))
    np.testing.assert_allclose(leaves[2].grad.data, upstream.sum(axis=0))


def test_mismatched_weight_is_rejected():
    x, _, b = make_params()
    with pytest.raises(ValueError):
        Linear().forward([Tensor(x), Tensor(RNG.normal(size=(2, 5))), Tensor(b)])


def test_mismatched_bias_is_rejected():
    x, w, _ = make_params()
    with pytest.raises(ValueError):
        Linear().forward([Tensor(x), Tensor(w), Tensor(np.zeros(3))])


def test_missing_bias_is_rejected():
    x, w, _ = make_params()
    with pytest.raises(ValueError):
        Linear().forward([Tensor(x), Tensor(w)])