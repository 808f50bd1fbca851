"""Cross-entropy loss over class logits."""

from __future__ import annotations

import numpy as np

from infinitrain.autograd.elementwise import _arrays
from infinitrain.autograd.function import Function, Tensor, require_cpu


def _log_softmax(logits: np.ndarray) -> np.ndarray:
    shifted = logits - logits.max(axis=-1, keepdims=True)
    return shifted - np.log(np.exp(shifted).sum(axis=-1, keepdims=True))


def _flatten(logits: np.ndarray, target: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    if logits.ndim < 2:
        raise ValueError(f"logits need at least 2 dimensions, got shape {logits.shape}")
    if target.shape != logits.shape[:-1]:
        raise ValueError(f"target shape {target.shape} does not match logits {logits.shape}")
    if not np.issubdtype(target.dtype, np.integer):
        raise ValueError(f"target must hold integer class indices, got {target.dtype}")
    num_classes = logits.shape[-1]
    labels = target.reshape(-1).astype(np.int64)
    if labels.size and (labels.min() < 0 or labels.max() >= num_classes):
        raise ValueError(f"target class out of range [0, {num_classes})")
    return logits.reshape(-1, num_classes), labels


class CrossEntropy(Function):
    """Mean negative log-likelihood of the target classes under softmax of the logits."""

    def forward(self, inputs: list[Tensor]) -> list[Tensor]:
        logits, labels = _flatten(*_arrays(inputs, 2, "CrossEntropy"))
        log_probs = _log_softmax(logits)
        loss = -log_probs[np.arange(labels.size), labels].mean()
        return [Tensor(np.asarray(loss, dtype=logits.dtype), device=inputs[0].device)]

    def setup_context(self, inputs: list[Tensor], outputs: list[Tensor]) -> None:
        self.saved_tensors = [inputs[0], inputs[1]]

    def backward(self, grad_outputs: list[Tensor | None]) -> list[Tensor | None]:
        (grad,) = _arrays(grad_outputs, 1, "CrossEntropy", "gradients")
        tensor, target = self.saved_tensors
        logits, labels = _flatten(require_cpu(tensor), require_cpu(target))
        probs = np.exp(_log_softmax(logits))
        probs[np.arange(labels.size), labels] -= 1
        grad_input = (probs / labels.size * grad).astype(logits.dtype, copy=False)
        return [Tensor(grad_input.reshape(tensor.shape), device=tensor.device), None]