"""Layer normalization over the last dimension."""

from __future__ import annotations

import numpy as np

from infinitrain.autograd.function import Function, Tensor, require_cpu


class LayerNorm(Function):
    """Normalizes the last dimension to zero mean and unit variance, then scales and shifts."""

    def __init__(self, eps: float = 1e-5) -> None:
        super().__init__()
        self.eps = eps

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        if len(inputs) != 3:
            raise ValueError(f"LayerNorm expects 3 inputs, got {len(inputs)}")
        tensor, weight, bias = inputs
        x, w, b = require_cpu(tensor), require_cpu(weight), require_cpu(bias)
        features = x.shape[-1]
        if w.shape != (features,) or b.shape != (features,):
            raise ValueError(f"weight {w.shape} and bias {b.shape} must both be ({features},)")
        mean = x.mean(axis=-1)
        var = ((x - mean[..., None]) ** 2).mean(axis=-1)
        rstd = 1.0 / np.sqrt(var + self.eps)
        out = ((x - mean[..., None]) * rstd[..., None] * w + b).astype(x.dtype, copy=False)
        self.saved_tensors = [
            Tensor(mean.astype(x.dtype, copy=False), device=tensor.device),
            Tensor(rstd.astype(x.dtype, copy=False), device=tensor.device),
        ]
        return [Tensor(out, device=tensor.device)]

    def setup_context(self, inputs: list[Tensor], outputs: list[Tensor]) -> None:
        self.saved_tensors = [inputs[0], inputs[1], inputs[2], *self.saved_tensors]

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        if len(self.saved_tensors) != 5:
            raise RuntimeError("LayerNorm.backward called before forward context was set up")
        if len(grad_outputs) != 1:
            raise ValueError(f"LayerNorm expects 1 gradient, got {len(grad_outputs)}")
        tensor, weight, _bias, mean_t, rstd_t = self.saved_tensors
        x, w = require_cpu(tensor), require_cpu(weight)
        mean, rstd = require_cpu(mean_t)[..., None], require_cpu(rstd_t)[..., None]
        grad = require_cpu(grad_outputs[0])

        xhat = (x - mean) * rstd
        dnorm = grad * w
        grad_input = rstd * (
            dnorm - dnorm.mean(axis=-1, keepdims=True) - xhat * (dnorm * xhat).mean(axis=-1, keepdims=True)
        )
        features = x.shape[-1]
        grad_weight = (grad * xhat).reshape(-1, features).sum(axis=0)
        grad_bias = grad.reshape(-1, features).sum(axis=0)
        device = tensor.device
        return [
            Tensor(grad_input.astype(x.dtype, copy=False), device=device),
            Tensor(grad_weight.astype(w.dtype, copy=False), device=device),
            Tensor(grad_bias.astype(w.dtype, copy=False), device=device),
        ]