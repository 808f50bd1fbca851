import numpy as np
import pytest

from infinitrain.autograd.function import Tensor
from infinitrain.autograd.matmul import Matmul
from infinitrain.device import Device, DeviceType

RNG = np.random.default_rng(0)


def assert_directional_derivative(objective, array, analytic, eps=1e-6):
    """Compare a central difference along a random direction with the analytic gradient."""
    direction = RNG.standard_normal(array.shape)
    original = array.copy()
    array[...] = original + eps * direction
    upper = objective()
    array[...] = original - eps * direction
    lower = objective()
    array[...] = original
    expected = float((analytic * direction).sum())
    assert (upper - lower) / (2 * eps) == pytest.approx(expected, rel=1e-5, abs=1e-6)


def test_identity_leaves_input_unchanged():
    a = RNG.standard_normal((3, 4))
    (out,) = Matmul().forward([Tensor(a), Tensor(np.eye(4))])
    np.testing.assert_allclose(out.data, a)


def test_output_shape_broadcasts_batch():
    a = Tensor(RNG.standard_normal((2, 3, 4, 5)))
    b = Tensor(RNG.standard_normal((5, 6)))
    (out,) = Matmul().forward([a, b])
    assert out.shape == (2, 3, 4, 6)


@pytest.mark.parametrize(
    "a_shape, b_shape",
    [((2, 3), (4, 2)), ((3,), (3, 2))],
)
def test_bad_shapes_raise(a_shape, b_shape):
    with pytest.raises(ValueError):
        Matmul().forward([Tensor(np.ones(a_shape)), Tensor(np.ones(b_shape))])


def test_gradients_match_finite_differences():
    a = RNG.standard_normal((2, 3, 4))
    b = RNG.standard_normal((2, 4, 5))
    g = RNG.standard_normal((2, 3, 5))
    fn = Matmul()
    fn.apply([Tensor(a), Tensor(b)])
    grads = fn.backward([Tensor(g)])

    def objective():
        return float((np.matmul(a, b) * g).sum())

    for operand, grad in zip((a, b), grads):
        assert_directional_derivative(objective, operand, grad.data)


def test_broadcast_gradient_is_reduced_to_operand_shape():
    a = RNG.standard_normal((3, 2, 4))
    b = RNG.standard_normal((4, 5))
    fn = Matmul()
    fn.apply([Tensor(a), Tensor(b)])
    g = RNG.standard_normal((3, 2, 5))
    _, grad_b = fn.backward([Tensor(g)])
    assert grad_b.shape == b.shape
    np.testing.assert_allclose(grad_b.data, sum(a[i].T @ g[i] for i in range(3)), atol=1e-10)


def test_backward_through_graph_fills_leaf_grads():
    a = Tensor(RNG.standard_normal((2, 3)), requires_grad=True)
    b = Tensor(RNG.standard_normal((3, 4)), requires_grad=True)
    (out,) = Matmul().apply([a, b])
    out.backward()
    ones = np.ones((2, 4))
    np.testing.assert_allclose(a.grad.data, ones @ b.data.T)
    np.testing.assert_allclose(b.grad.data, a.data.T @ ones)


def test_setup_context_records_leading_output_dim():
    fn = Matmul()
    fn.apply([Tensor(np.ones((7, 2))), Tensor(np.ones((2, 3)))])
    assert fn.out_features == 7


def test_backward_without_forward_raises():
    with pytest.raises(RuntimeError):
        Matmul().backward([Tensor(np.ones((2, 2)))])


def test_non_cpu_device_rejected():
    cuda = Device(DeviceType.CUDA, 0)
    with pytest.raises(RuntimeError):
        Matmul().forward([Tensor(np.ones((2, 2)), device=cuda), Tensor(np.ones((2, 2)), device=cuda)])