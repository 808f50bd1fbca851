"""Batched matrix multiplication."""

from __future__ import annotations

import numpy as np

from infinitrain.autograd.elementwise import _arrays, _saved, _unbroadcast
from infinitrain.autograd.function import Function, Tensor, require_cpu


class Matmul(Function):
    """Matrix product over the last two dimensions, broadcasting the leading ones."""

    def __init__(self) -> None:
        super().__init__()
        self.out_features = 0

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        a, b = _arrays(inputs, 2, "Matmul")
        if a.ndim < 2 or b.ndim < 2:
            raise ValueError(f"Matmul needs at least 2-D inputs, got {a.shape} and {b.shape}")
        if a.shape[-1] != b.shape[-2]:
            raise ValueError(f"cannot multiply {a.shape} by {b.shape}")
        return [Tensor(np.matmul(a, b), device=inputs[0].device)]

    def setup_context(self, inputs: list[Tensor], outputs: list[Tensor]) -> None:
        self.saved_tensors = [inputs[0], inputs[1]]
        self.out_features = outputs[0].shape[0]

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        first, second = _saved(self, 2, "Matmul")
        (grad,) = _arrays(grad_outputs, 1, "Matmul", "gradients")
        a, b = require_cpu(first), require_cpu(second)
        grad_a = np.matmul(grad, np.swapaxes(b, -1, -2))
        grad_b = np.matmul(np.swapaxes(a, -1, -2), grad)
        return [
            Tensor(_unbroadcast(g, operand.shape), device=first.device)
            for g, operand in ((grad_a, a), (grad_b, b))
        ]