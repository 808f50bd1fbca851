"""Tokenized text datasets stored as a 1024-byte header followed by token ids."""

from __future__ import annotations

import enum
import os
import struct
from dataclasses import dataclass

import numpy as np

from infinitrain.autograd.function import Tensor

HEADER_SIZE = 1024
MAX_SEQUENCE_LENGTH = 1024


class TokenType(enum.Enum):
    """Token width of a file, keyed by its header magic."""

    UINT16 = 20240520
    UINT32 = 20240801

    @property
    def dtype(self) -> np.dtype:
        return np.dtype("<u2") if self is TokenType.UINT16 else np.dtype("<i4")


@dataclass
class TokenFile:
    """Tokens of a file arranged as (num_sequences, sequence_length) int64."""

    type: TokenType
    dims: tuple[int, int]
    data: np.ndarray


def read_token_file(path: str | os.PathLike, sequence_length: int) -> TokenFile:
    """Read whole sequences of tokens; a trailing partial sequence is dropped."""
    if sequence_length <= 0:
        raise ValueError("sequence_length must be positive")
    path = os.fspath(path)
    with open(path, "rb") as stream:
        header = stream.read(HEADER_SIZE)
        if len(header) != HEADER_SIZE:
            raise ValueError(f"{path}: truncated header")
        magic, _version, num_tokens = struct.unpack_from("<3i", header)
        try:
            token_type = TokenType(magic)
        except ValueError:
            raise ValueError(f"{path}: unknown magic {magic}") from None
        num_sequences = num_tokens // sequence_length
        count = num_sequences * sequence_length
        dtype = token_type.dtype
        raw = stream.read(count * dtype.itemsize)
    if len(raw) != count * dtype.itemsize:
        raise ValueError(f"{path}: expected {count} tokens of data")
    tokens = np.frombuffer(raw, dtype=dtype).astype(np.int64)
    dims = (num_sequences, sequence_length)
    return TokenFile(type=token_type, dims=dims, data=tokens.reshape(dims))


class TinyShakespeareDataset:
    """Pairs of input tokens and the same tokens shifted one position ahead."""

    def __init__(self, filepath: str | os.PathLike, sequence_length: int) -> None:
        if sequence_length > MAX_SEQUENCE_LENGTH:
            raise ValueError(f"sequence_length {sequence_length} exceeds {MAX_SEQUENCE_LENGTH}")
        self.token_file = read_token_file(filepath, sequence_length)
        self.sequence_length = sequence_length
        self._flat = self.token_file.data.reshape(-1)
        self._num_samples = max(self.token_file.dims[0] - 1, 0)

    def __getitem__(self, idx: int) -> tuple[Tensor, Tensor]:
        if not 0 <= idx < self._num_samples:
            raise IndexError(f"index {idx} out of range for dataset of size {self._num_samples}")
        start = idx * self.sequence_length
        stop = start + self.sequence_length
        x = np.array(self._flat[start:stop], copy=True)
        y = np.array(self._flat[start + 1 : stop + 1], copy=True)
        return Tensor(x), Tensor(y)

    def __len__(self) -> int:
        return self._num_samples