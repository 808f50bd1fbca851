"""Softmax along one dimension."""

from __future__ import annotations

import numpy as np

from infinitrain.autograd.function import Function, Tensor, require_cpu


class Softmax(Function):
    """Exponentiates and normalizes so values along ``dim`` sum to one."""

    def __init__(self, dim: int = -1) -> None:
        super().__init__()
        self.dim = dim

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        if len(inputs) != 1:
            raise ValueError(f"Softmax expects 1 input, got {len(inputs)}")
        (tensor,) = inputs
        x = require_cpu(tensor)
        shifted = x - x.max(axis=self.dim, keepdims=True)
        exp = np.exp(shifted)
        out = (exp / exp.sum(axis=self.dim, keepdims=True)).astype(x.dtype, copy=False)
        return [Tensor(out, device=tensor.device)]

    def setup_context(self, inputs: list[Tensor], outputs: list[Tensor]) -> None:
        self.saved_tensors = [outputs[0]]

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        if len(self.saved_tensors) != 1:
            raise RuntimeError("Softmax.backward called before forward context was set up")
        if len(grad_outputs) != 1:
            raise ValueError(f"Softmax expects 1 gradient, got {len(grad_outputs)}")
        (output,) = self.saved_tensors
        y = require_cpu(output)
        grad = require_cpu(grad_outputs[0])
        grad_input = y * (grad - (grad * y).sum(axis=self.dim, keepdims=True))
        return [Tensor(grad_input, device=output.device)]