"""MNIST images and labels stored in the SN3 (idx) file format."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass

import numpy as np

from infinitrain.autograd.function import Tensor

IMAGE_SIDE = 28
_TRAIN_PREFIX = "train"
_TEST_PREFIX = "t10k"


class SN3Type(enum.Enum):
    """Element types an SN3 file can hold, keyed by their type code."""

    UINT8 = 8
    INT8 = 9
    INT16 = 11
    INT32 = 12
    FLOAT32 = 13
    FLOAT64 = 14

    @property
    def dtype(self) -> np.dtype:
        return _DTYPES[self]


_DTYPES = {
    SN3Type.UINT8: np.dtype(np.uint8),
    SN3Type.INT8: np.dtype(np.int8),
    SN3Type.INT16: np.dtype("<i2"),
    SN3Type.INT32: np.dtype("<i4"),
    SN3Type.FLOAT32: np.dtype("<f4"),
    SN3Type.FLOAT64: np.dtype("<f8"),
}


@dataclass
class SN3File:
    """Contents of one SN3 file: element type, dimensions and data."""

    type: SN3Type
    dims: tuple[int, ...]
    data: np.ndarray


def _read_exact(stream, count: int, path: str, what: str) -> bytes:
    chunk = stream.read(count)
    if len(chunk) != count:
        raise ValueError(f"{path}: truncated {what}: expected {count} bytes, got {len(chunk)}")
    return chunk


def read_sn3_file(path: str | os.PathLike) -> SN3File:
    """Read an SN3 file: a 4-byte magic, big-endian 4-byte dims, then raw elements."""
    path = os.fspath(path)
    with open(path, "rb") as stream:
        magic = _read_exact(stream, 4, path, "magic")
        type_code, num_dims = magic[2], magic[3]
        try:
            sn3_type = SN3Type(type_code)
        except ValueError:
            raise ValueError(f"{path}: unknown SN3 type code {type_code}") from None
        dims = tuple(
            int.from_bytes(_read_exact(stream, 4, path, "dimensions"), "big") for _ in range(num_dims)
        )
        dtype = sn3_type.dtype
        count = int(np.prod(dims, dtype=np.int64)) if dims else 1
        raw = _read_exact(stream, count * dtype.itemsize, path, "data")
    data = np.frombuffer(raw, dtype=dtype).astype(dtype.newbyteorder("="), copy=True).reshape(dims)
    return SN3File(type=sn3_type, dims=dims, data=data)


class MNISTDataset:
    """MNIST split whose images are scaled to float32 in [0, 1]."""

    def __init__(self, directory: str | os.PathLike, train: bool) -> None:
        prefix = _TRAIN_PREFIX if train else _TEST_PREFIX
        directory = os.fspath(directory)
        image_file = read_sn3_file(os.path.join(directory, f"{prefix}-images-idx3-ubyte"))
        label_file = read_sn3_file(os.path.join(directory, f"{prefix}-labels-idx1-ubyte"))

        if not image_file.dims or not label_file.dims:
            raise ValueError("image and label files must have at least one dimension")
        if image_file.dims[0] != label_file.dims[0]:
            raise ValueError(f"image count {image_file.dims[0]} does not match label count {label_file.dims[0]}")
        if image_file.type is not SN3Type.UINT8:
            raise ValueError(f"images must be uint8, got {image_file.type.name}")
        if len(image_file.dims) != 3 or image_file.dims[1:] != (IMAGE_SIDE, IMAGE_SIDE):
            raise ValueError(f"images must have shape (n, {IMAGE_SIDE}, {IMAGE_SIDE}), got {image_file.dims}")

        self.images = (image_file.data / np.float32(255.0)).astype(np.float32)
        self.labels = label_file.data
        self._size = image_file.dims[0]

    def __getitem__(self, idx: int) -> tuple[Tensor, Tensor]:
        if not 0 <= idx < self._size:
            raise IndexError(f"index {idx} out of range for dataset of size {self._size}")
        return Tensor(np.array(self.images[idx], copy=True)), Tensor(np.array(self.labels[idx], copy=True))

    def __len__(self) -> int:
        return self._size