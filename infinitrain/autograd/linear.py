"""Fully connected layer: y = x @ weight.T + bias."""

from __future__ import annotations

from infinitrain.autograd.elementwise import _arrays
from infinitrain.autograd.function import Function, Tensor, require_cpu


class Linear(Function):
    """Affine map over the last dimension with weight of shape (out, in) and bias of shape (out,)."""

    def __init__(self) -> None:
        super().__init__()
        self.out_features = 0

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        x, w, b = _arrays(inputs, 3, "Linear")
        if w.ndim != 2 or x.shape[-1] != w.shape[1]:
            raise ValueError(f"input {x.shape} does not match weight {w.shape}")
        if b.shape != (w.shape[0],):
            raise ValueError(f"bias {b.shape} does not match weight {w.shape}")
        return [Tensor(x @ w.T + b, device=inputs[0].device)]

    def setup_context(self, inputs: list[Tensor], outputs: list[Tensor]) -> None:
        self.saved_tensors = [inputs[0], inputs[1]]
        self.out_features = inputs[2].shape[0]

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        (grad,) = _arrays(grad_outputs, 1, "Linear", "gradients")
        tensor, weight = self.saved_tensors
        x, w = require_cpu(tensor), require_cpu(weight)
        grad_flat = grad.reshape(-1, self.out_features)
        x_flat = x.reshape(-1, w.shape[1])
        grads = (grad @ w, grad_flat.T @ x_flat, grad_flat.sum(axis=0))
        return [Tensor(g, device=tensor.device) for g in grads]