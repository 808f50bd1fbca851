"""Lower-triangular masking, dimension swaps and masked fills."""

from __future__ import annotations

import numpy as np

from infinitrain.autograd.function import Function, Tensor, require_cpu


def _single(inputs: list, owner: str) -> Tensor:
    if len(inputs) != 1:
        raise ValueError(f"{owner} expects 1 input, got {len(inputs)}")
    return inputs[0]


class Tril(Function):
    """Keeps the lower triangle of the last two dimensions, zeroing the rest."""

    def __init__(self, diagonal: int = 0) -> None:
        super().__init__()
        self.diagonal = diagonal

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        tensor = _single(inputs, "Tril")
        return [Tensor(np.tril(require_cpu(tensor), k=self.diagonal), device=tensor.device)]

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        grad_tensor = grad_outputs[0]
        return [Tensor(np.tril(require_cpu(grad_tensor), k=self.diagonal), device=grad_tensor.device)]


class Transpose(Function):
    """Swaps two dimensions."""

    def __init__(self, dim0: int, dim1: int) -> None:
        super().__init__()
        self.dim0 = dim0
        self.dim1 = dim1

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        tensor = _single(inputs, "Transpose")
        x = require_cpu(tensor)
        return [Tensor(np.ascontiguousarray(np.swapaxes(x, self.dim0, self.dim1)), device=tensor.device)]

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        grad_tensor = grad_outputs[0]
        grad = require_cpu(grad_tensor)
        return [Tensor(np.ascontiguousarray(np.swapaxes(grad, self.dim0, self.dim1)), device=grad_tensor.device)]


class Mask(Function):
    """Replaces elements with ``value`` wherever the broadcast mask is non-zero."""

    def __init__(self, mask: Tensor, value: float) -> None:
        super().__init__()
        self.mask = mask
        self.value = value

    def _where(self, shape: tuple[int, ...]) -> np.ndarray:
        mask = require_cpu(self.mask) != 0
        try:
            return np.broadcast_to(mask, shape)
        except ValueError as exc:
            raise ValueError(f"mask of shape {mask.shape} cannot broadcast to {shape}") from exc

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        tensor = _single(inputs, "Mask")
        x = require_cpu(tensor)
        out = np.where(self._where(x.shape), self.value, x).astype(x.dtype, copy=False)
        return [Tensor(out, device=tensor.device)]

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        grad_tensor = grad_outputs[0]
        grad = require_cpu(grad_tensor)
        grad_input = np.where(self._where(grad.shape), 0, grad).astype(grad.dtype, copy=False)
        return [Tensor(grad_input, device=grad_tensor.device)]