"""Shape operations: splitting, reshaping and slicing."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from infinitrain.autograd.elementwise import _arrays, _map_single, _saved
from infinitrain.autograd.function import Function, Tensor, require_cpu


def _normalize_dim(dim: int, ndim: int) -> int:
    if not -ndim <= dim < ndim:
        raise ValueError(f"dimension {dim} out of range for {ndim}-D tensor")
    return dim % ndim


class Split(Function):
    """Splits a tensor into chunks of ``split_size`` along ``dim``; the last may be smaller."""

    def __init__(self, split_size: int, dim: int = 0) -> None:
        super().__init__()
        if split_size <= 0:
            raise ValueError("split_size must be positive")
        self.split_size = split_size
        self.dim = dim
        self.input_dims: tuple[int, ...] = ()

    def _boundaries(self, size: int) -> list[int]:
        return list(range(self.split_size, size, self.split_size))

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        (x,) = _arrays(inputs, 1, "Split")
        dim = _normalize_dim(self.dim, x.ndim)
        pieces = np.split(x, self._boundaries(x.shape[dim]), axis=dim)
        return [Tensor(np.ascontiguousarray(piece), device=inputs[0].device) for piece in pieces]

    def setup_context(self, inputs: list[Tensor], outputs: list[Tensor]) -> None:
        self.input_dims = inputs[0].shape

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        dims = self.input_dims
        dim = _normalize_dim(self.dim, len(dims))
        present = [g for g in grad_outputs if g is not None]
        if not present:
            raise ValueError("Split.backward needs at least one gradient")
        dtype = require_cpu(present[0]).dtype
        device = present[0].device

        starts = [0, *self._boundaries(dims[dim])]
        if len(grad_outputs) != len(starts):
            raise ValueError(f"Split expects {len(starts)} gradients, got {len(grad_outputs)}")
        pieces = []
        for start, grad in zip(starts, grad_outputs):
            if grad is None:
                shape = list(dims)
                shape[dim] = min(self.split_size, dims[dim] - start)
                pieces.append(np.zeros(shape, dtype=dtype))
            else:
                pieces.append(require_cpu(grad))
        return [Tensor(np.concatenate(pieces, axis=dim), device=device)]


class NoOp(Function):
    """Reinterprets a tensor with new dimensions holding the same elements."""

    def __init__(self, output_dims: Sequence[int]) -> None:
        super().__init__()
        self.output_dims = tuple(output_dims)
        self.input_dims: tuple[int, ...] = ()

    def _view(self, x: np.ndarray) -> np.ndarray:
        if int(np.prod(self.output_dims, dtype=np.int64)) != x.size:
            raise ValueError(f"cannot view {x.shape} as {self.output_dims}")
        return x.reshape(self.output_dims)

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        return _map_single(inputs, "NoOp", self._view)

    def setup_context(self, inputs: list[Tensor], outputs: list[Tensor]) -> None:
        self.input_dims = inputs[0].shape

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        return _map_single(grad_outputs, "NoOp", lambda grad: grad.reshape(self.input_dims), "gradients")


class Slice(Function):
    """Takes ``starts[i]:ends[i]:steps[i]`` along every dimension i."""

    def __init__(self, starts: Sequence[int], ends: Sequence[int], steps: Sequence[int]) -> None:
        super().__init__()
        if not len(starts) == len(ends) == len(steps):
            raise ValueError("starts, ends and steps must have the same length")
        if any(step <= 0 for step in steps):
            raise ValueError("slice steps must be positive")
        self.starts = tuple(starts)
        self.ends = tuple(ends)
        self.steps = tuple(steps)

    def _index(self, ndim: int) -> tuple[slice, ...]:
        if ndim != len(self.starts):
            raise ValueError(f"slice has {len(self.starts)} dimensions, tensor has {ndim}")
        return tuple(slice(s, e, st) for s, e, st in zip(self.starts, self.ends, self.steps))

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        return _map_single(inputs, "Slice", lambda x: np.array(x[self._index(x.ndim)], copy=True))

    def setup_context(self, inputs: list[Tensor], outputs: list[Tensor]) -> None:
        self.saved_tensors = [inputs[0]]

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        (tensor,) = _saved(self, 1, "Slice")
        grad = require_cpu(grad_outputs[0])
        grad_input = np.zeros(tensor.shape, dtype=grad.dtype)
        grad_input[self._index(len(tensor.shape))] = grad
        return [Tensor(grad_input, device=tensor.device)]