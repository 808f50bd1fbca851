"""Batching iteration over datasets of (data, label) pairs."""

from __future__ import annotations

import math
from typing import Any, Iterable, Sequence

import numpy as np

from infinitrain.autograd.function import Tensor


def stack(arrays: Iterable[Any]) -> Tensor:
    """Flatten each item and stack them into a (batch, elements) tensor."""
    items = [np.asarray(a.data if isinstance(a, Tensor) else a) for a in arrays]
    if not items:
        raise ValueError("cannot stack an empty sequence")
    first = items[0]
    for item in items:
        if item.dtype != first.dtype:
            raise ValueError(f"dtype mismatch in stack: {item.dtype} vs {first.dtype}")
        if item.size != first.size:
            raise ValueError(f"element count mismatch in stack: {item.size} vs {first.size}")
    flat = [item.reshape(-1) for item in items]
    return Tensor(np.stack(flat).reshape(len(items), first.size))


class DataLoaderIterator:
    """Iterator yielding stacked (data, label) batches from a dataset."""

    def __init__(self, dataset: Sequence, batch_size: int, batch_idx: int, max_batch_idx: int) -> None:
        self.dataset = dataset
        self.batch_size = batch_size
        self.batch_idx = batch_idx
        self.max_batch_idx = max_batch_idx

    def __iter__(self) -> DataLoaderIterator:
        return self

    def __next__(self) -> tuple[Tensor, Tensor]:
        if self.batch_idx >= self.max_batch_idx:
            raise StopIteration
        start = self.batch_idx * self.batch_size
        stop = min(start + self.batch_size, len(self.dataset))
        pairs = [self.dataset[idx] for idx in range(start, stop)]
        self.batch_idx = min(self.batch_idx + 1, self.max_batch_idx)
        if not pairs:
            raise StopIteration
        data, labels = zip(*pairs)
        return stack(data), stack(labels)


class DataLoader:
    """Splits a dataset into consecutive batches of a fixed size."""

    def __init__(self, dataset: Sequence, batch_size: int) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.dataset = dataset
        self.batch_size = batch_size
        self.max_batch_idx = math.ceil(len(dataset) / batch_size)

    def __iter__(self) -> DataLoaderIterator:
        return DataLoaderIterator(self.dataset, self.batch_size, 0, self.max_batch_idx)

    def __len__(self) -> int:
        return self.max_batch_idx