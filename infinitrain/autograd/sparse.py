"""Embedding lookup."""

from __future__ import annotations

import numpy as np

from infinitrain.autograd.function import Function, Tensor, require_cpu


class Embedding(Function):
    """Gathers rows of a (num_embeddings, dim) weight table by integer index."""

    def __init__(self) -> None:
        super().__init__()
        self.weight_dims: tuple[int, ...] = ()

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        if len(inputs) != 2:
            raise ValueError(f"Embedding expects 2 inputs, got {len(inputs)}")
        tensor, weight = inputs
        idx, w = require_cpu(tensor), require_cpu(weight)
        if not np.issubdtype(idx.dtype, np.integer):
            raise ValueError(f"embedding indices must be integers, got {idx.dtype}")
        if w.ndim != 2:
            raise ValueError(f"embedding weight must be 2-D, got shape {w.shape}")
        if idx.size and (idx.min() < 0 or idx.max() >= w.shape[0]):
            raise ValueError(f"embedding index out of range [0, {w.shape[0]})")
        return [Tensor(w[idx], device=tensor.device)]

    def setup_context(self, inputs: list[Tensor], outputs: list[Tensor]) -> None:
        self.weight_dims = inputs[1].shape
        self.saved_tensors = [inputs[0]]

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        if len(grad_outputs) != 1:
            raise ValueError(f"Embedding expects 1 gradient, got {len(grad_outputs)}")
        if len(self.saved_tensors) != 1:
            raise RuntimeError("Embedding.backward called before forward context was set up")
        (tensor,) = self.saved_tensors
        idx = require_cpu(tensor)
        grad = require_cpu(grad_outputs[0])
        grad_weight = np.zeros(self.weight_dims, dtype=grad.dtype)
        np.add.at(grad_weight, idx.reshape(-1), grad.reshape(-1, self.weight_dims[1]))
        return [None, Tensor(grad_weight, device=tensor.device)]