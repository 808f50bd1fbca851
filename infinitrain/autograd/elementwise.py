"""Element-wise differentiable operations: tanh, power, comparisons, sums and products."""

from __future__ import annotations

from typing import Callable, Sequence

import numpy as np

from infinitrain.autograd.function import Function, Tensor, require_cpu


def _expect_count(items: Sequence, count: int, owner: str, what: str = "inputs") -> None:
    if len(items) != count:
        raise ValueError(f"{owner} expects {count} {what}, got {len(items)}")


def _arrays(items: Sequence[Tensor], count: int, owner: str, what: str = "inputs") -> list[np.ndarray]:
    """Check the number of tensors and return their CPU arrays."""
    _expect_count(items, count, owner, what)
    return [require_cpu(tensor) for tensor in items]


def _map_single(
    items: Sequence[Tensor],
    owner: str,
    fn: Callable[[np.ndarray], np.ndarray],
    what: str = "inputs",
) -> list[Tensor]:
    """Apply ``fn`` to the one tensor in ``items``, keeping its device."""
    _expect_count(items, 1, owner, what)
    (tensor,) = items
    return [Tensor(fn(require_cpu(tensor)), device=tensor.device)]


def _saved(function: Function, count: int, owner: str) -> list[Tensor]:
    """Return the saved tensors, failing if the forward context is missing."""
    if len(function.saved_tensors) != count:
        raise RuntimeError(f"{owner}.backward called before forward context was set up")
    return function.saved_tensors


def _unbroadcast(grad: np.ndarray, shape: tuple[int, ...]) -> np.ndarray:
    """Sum a broadcast gradient back down to the given shape."""
    grad = np.asarray(grad)
    while grad.ndim > len(shape):
        grad = grad.sum(axis=0)
    axes = tuple(axis for axis, (g, s) in enumerate(zip(grad.shape, shape)) if s == 1 and g != 1)
    if axes:
        grad = grad.sum(axis=axes, keepdims=True)
    return grad.reshape(shape)


class Tanh(Function):
    """Hyperbolic tangent."""

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        return _map_single(inputs, "Tanh", np.tanh)

    def setup_context(self, inputs: list[Tensor], outputs: list[Tensor]) -> None:
        self.saved_tensors = [outputs[0]]

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        _expect_count(grad_outputs, 1, "Tanh", "gradients")
        (output,) = self.saved_tensors
        y = require_cpu(output)
        return _map_single(grad_outputs, "Tanh", lambda grad: grad * (1 - y * y), "gradients")


class Pow(Function):
    """Raises every element to a fixed exponent."""

    def __init__(self, exponent: float) -> None:
        super().__init__()
        self.exponent = exponent

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        return _map_single(inputs, "Pow", lambda x: np.power(x, self.exponent))

    def setup_context(self, inputs: list[Tensor], outputs: list[Tensor]) -> None:
        self.saved_tensors = [inputs[0]]

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        _expect_count(grad_outputs, 1, "Pow", "gradients")
        (tensor,) = self.saved_tensors
        x = require_cpu(tensor)
        return _map_single(
            grad_outputs,
            "Pow",
            lambda grad: grad * self.exponent * np.power(x, self.exponent - 1),
            "gradients",
        )


class EqualsScalar(Function):
    """Marks elements equal to a scalar with 1 and all others with 0, in the input's dtype."""

    def __init__(self, scalar: float) -> None:
        super().__init__()
        self.scalar = scalar

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        return _map_single(inputs, "EqualsScalar", lambda x: (x == self.scalar).astype(x.dtype))

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        raise RuntimeError("EqualsScalar.backward shall not be called anytime")


class Add(Function):
    """Broadcasting sum of two tensors."""

    def __init__(self) -> None:
        super().__init__()
        self.a_dims: tuple[int, ...] = ()
        self.b_dims: tuple[int, ...] = ()

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        a, b = _arrays(inputs, 2, "Add")
        return [Tensor(a + b, device=inputs[0].device)]

    def setup_context(self, inputs: list[Tensor], outputs: list[Tensor]) -> None:
        self.a_dims = inputs[0].shape
        self.b_dims = inputs[1].shape

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        (grad,) = _arrays(grad_outputs, 1, "Add", "gradients")
        device = grad_outputs[0].device
        return [Tensor(_unbroadcast(grad, dims), device=device) for dims in (self.a_dims, self.b_dims)]


class AddScalar(Function):
    """Adds a scalar to every element."""

    def __init__(self, scalar: float) -> None:
        super().__init__()
        self.scalar = scalar

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        return _map_single(inputs, "AddScalar", lambda x: (x + self.scalar).astype(x.dtype, copy=False))

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        return _map_single(grad_outputs, "AddScalar", lambda grad: np.array(grad, copy=True), "gradients")


class Mul(Function):
    """Broadcasting element-wise product of two tensors."""

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        a, b = _arrays(inputs, 2, "Mul")
        return [Tensor(a * b, device=inputs[0].device)]

    def setup_context(self, inputs: list[Tensor], outputs: list[Tensor]) -> None:
        self.saved_tensors = [inputs[0], inputs[1]]

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        (grad,) = _arrays(grad_outputs, 1, "Mul", "gradients")
        a, b = self.saved_tensors
        device = grad_outputs[0].device
        return [
            Tensor(_unbroadcast(grad * require_cpu(other), target.shape), device=device)
            for other, target in ((b, a), (a, b))
        ]


class MulScalar(Function):
    """Multiplies every element by a scalar."""

    def __init__(self, scalar: float) -> None:
        super().__init__()
        self.scalar = scalar

    def _scaled(self, values: np.ndarray) -> np.ndarray:
        return (values * self.scalar).astype(values.dtype, copy=False)

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        return _map_single(inputs, "MulScalar", self._scaled)

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        return _map_single(grad_outputs, "MulScalar", self._scaled, "gradients")