"""Tensors and the reverse-mode autograd graph built from functions."""

from __future__ import annotations

import abc
from typing import Any, Sequence

import numpy as np

from infinitrain.device import Device


def require_cpu(tensor: Tensor) -> np.ndarray:
    """Return the tensor's data, raising if it does not live on the CPU."""
    if not tensor.device.is_cpu():
        raise RuntimeError(f"Unsupported device type: {tensor.device.type.value}")
    return tensor.data


class Tensor:
    """An n-dimensional array that records how it was computed."""

    def __init__(self, data: Any, requires_grad: bool = False, device: Device | None = None) -> None:
        self.data = np.asarray(data)
        self.requires_grad = requires_grad
        self.device = device if device is not None else Device()
        self.grad: Tensor | None = None
        self.grad_fn: Function | None = None
        self.output_idx = 0
        self.is_leaf = True

    @property
    def shape(self) -> tuple[int, ...]:
        return self.data.shape

    @property
    def dtype(self) -> np.dtype:
        return self.data.dtype

    def backward(self, gradient: Tensor | None = None) -> None:
        """Propagate a gradient (ones by default) back through the graph."""
        if not self.requires_grad:
            raise RuntimeError("tensor does not require grad")
        if gradient is None:
            gradient = Tensor(np.ones_like(self.data), device=self.device)
        elif not isinstance(gradient, Tensor):
            gradient = Tensor(gradient, device=self.device)
        if self.grad_fn is not None:
            self.grad_fn.backward_partial(gradient, self.output_idx)
        else:
            _accumulate_into_leaf(self, gradient)

    def __repr__(self) -> str:
        return f"Tensor(shape={self.shape}, dtype={self.dtype}, device={self.device}, requires_grad={self.requires_grad})"


def _sum(existing: Tensor | None, grad: Tensor) -> Tensor:
    if existing is None:
        return Tensor(np.array(grad.data, copy=True), device=grad.device)
    return Tensor(existing.data + grad.data, device=existing.device)


def _accumulate_into_leaf(leaf: Tensor, grad: Tensor) -> None:
    require_cpu(leaf)
    leaf.grad = _sum(leaf.grad, grad)


class Function(abc.ABC):
    """A differentiable operation and its node in the backward graph."""

    def __init__(self) -> None:
        self.saved_tensors: list[Tensor | None] = []
        self.next_functions: list[tuple[Function | None, int]] = []
        self.grad_outputs: list[Tensor | None] = []
        self.grad_outputs_reached = 0
        self.dependencies_number = 0
        self.dependencies_reached = 0

    def apply(self, inputs: Sequence[Tensor]) -> list[Tensor]:
        """Run forward and link the outputs into the autograd graph."""
        inputs = list(inputs)
        outputs = list(self.forward(inputs))
        self.setup_context(inputs, outputs)

        output_requires_grad = False
        for tensor in inputs:
            if tensor.requires_grad and tensor.is_leaf:
                self.next_functions.append((_AccumulateGrad(tensor), 0))
            else:
                self.next_functions.append((tensor.grad_fn, tensor.output_idx))
                if tensor.grad_fn is not None:
                    tensor.grad_fn.increase_dependencies_number()
            output_requires_grad = output_requires_grad or tensor.requires_grad

        self.grad_outputs_reached = 0
        self.grad_outputs = [None] * len(outputs)
        for idx, output in enumerate(outputs):
            output.requires_grad = output_requires_grad
            output.is_leaf = False
            output.grad_fn = self
            output.output_idx = idx
        return outputs

    @abc.abstractmethod
    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        """Compute the outputs from the inputs."""

    def setup_context(self, inputs: list[Tensor], outputs: list[Tensor]) -> None:
        """Save whatever backward will need; nothing by default."""

    @abc.abstractmethod
    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        """Compute one gradient per input from the output gradients."""

    def backward_partial(self, grad_output: Tensor, grad_output_idx: int) -> None:
        """Receive one output gradient; run backward once all have arrived."""
        if self.grad_outputs[grad_output_idx] is None:
            self.grad_outputs[grad_output_idx] = grad_output
            self.grad_outputs_reached += 1
        else:
            self.grad_outputs[grad_output_idx] = _sum(self.grad_outputs[grad_output_idx], grad_output)
        self.dependencies_reached += 1

        if self.grad_outputs_reached == len(self.grad_outputs) and (
            self.dependencies_reached == self.dependencies_number or self.dependencies_number == 0
        ):
            grad_inputs = list(self.backward(self.grad_outputs))
            if len(grad_inputs) != len(self.next_functions):
                raise RuntimeError(
                    f"{type(self).__name__}.backward returned {len(grad_inputs)} gradients "
                    f"for {len(self.next_functions)} inputs"
                )
            for grad_input, (next_function, output_idx) in zip(grad_inputs, self.next_functions):
                if grad_input is not None and next_function is not None:
                    next_function.backward_partial(grad_input, output_idx)

    def increase_dependencies_number(self) -> None:
        self.dependencies_number += 1


class _AccumulateGrad(Function):
    """Graph sink that adds incoming gradients into a leaf tensor's grad."""

    def __init__(self, leaf: Tensor) -> None:
        super().__init__()
        self._leaf = leaf

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        raise RuntimeError("AccumulateGrad.forward shall not be called directly")

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        raise RuntimeError("AccumulateGrad.backward shall not be called directly")

    def backward_partial(self, grad_output: Tensor, grad_output_idx: int) -> None:
        if grad_output is not None:
            _accumulate_into_leaf(self._leaf, grad_output)