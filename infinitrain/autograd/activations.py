"""Activation functions."""

from __future__ import annotations

import numpy as np

from infinitrain.autograd.elementwise import _expect_count, _map_single
from infinitrain.autograd.function import Function, Tensor, require_cpu


class Sigmoid(Function):
    """Logistic sigmoid, 1 / (1 + exp(-x))."""

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        return _map_single(inputs, "Sigmoid", lambda x: (1 / (1 + np.exp(-x))).astype(x.dtype, copy=False))

    def setup_context(self, inputs: list[Tensor], outputs: list[Tensor]) -> None:
        self.saved_tensors = [outputs[0]]

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        _expect_count(grad_outputs, 1, "Sigmoid", "gradients")
        (output,) = self.saved_tensors
        y = require_cpu(output)
        return _map_single(grad_outputs, "Sigmoid", lambda grad: grad * y * (1 - y), "gradients")