import struct

import numpy as np
import pytest

from infinitrain.shakespeare import TinyShakespeareDataset, TokenType, read_token_file


def _write_tokens(path, magic, tokens, dtype, num_tokens=None):
    tokens = np.asarray(tokens, dtype=dtype)
    count = len(tokens) if num_tokens is None else num_tokens
    header = struct.pack("<3i", magic, 1, count).ljust(1024, b"\x00")
    path.write_bytes(header + tokens.tobytes())


def test_read_uint16_file(tmp_path):
    path = tmp_path / "gpt2.bin"
    _write_tokens(path, 20240520, range(10), "<u2")
    token_file = read_token_file(path, 4)
    assert token_file.type is TokenType.UINT16
    assert token_file.dims == (2, 4)
    assert token_file.data.dtype == np.int64
    np.testing.assert_array_equal(token_file.data.reshape(-1), np.arange(8))


def test_read_uint32_file(tmp_path):
    path = tmp_path / "llama.bin"
    tokens = [70000, 5, 128000, 1, 2, 3]
    _write_tokens(path, 20240801, tokens, "<i4")
    token_file = read_token_file(path, 3)
    assert token_file.type is TokenType.UINT32
    np.testing.assert_array_equal(token_file.data, np.array(tokens).reshape(2, 3))


def test_unknown_magic(tmp_path):
    path = tmp_path / "bad.bin"
    _write_tokens(path, 20240326, range(4), "<u2")
    with pytest.raises(ValueError):
        read_token_file(path, 2)


def test_truncated_data(tmp_path):
    path = tmp_path / "short.bin"
    _write_tokens(path, 20240520, range(3), "<u2", num_tokens=8)
    with pytest.raises(ValueError):
        read_token_file(path, 4)


def test_dataset_pairs_are_shifted(tmp_path):
    path = tmp_path / "train.bin"
    _write_tokens(path, 20240520, range(12), "<u2")
    dataset = TinyShakespeareDataset(path, 4)
    assert len(dataset) == 2
    x, y = dataset[1]
    np.testing.assert_array_equal(x.data, [4, 5, 6, 7])
    np.testing.assert_array_equal(y.data, [5, 6, 7, 8])
    for idx in range(len(dataset)):
        x, y = dataset[idx]
        np.testing.assert_array_equal(x.data[1:], y.data[:-1])


def test_dataset_index_out_of_range(tmp_path):
    path = tmp_path / "train.bin"
    _write_tokens(path, 20240520, range(8), "<u2")
    dataset = TinyShakespeareDataset(path, 4)
    assert len(dataset) == 1
    x, y = dataset[0]
    np.testing.assert_array_equal(x.data, [0, 1, 2, 3])
    np.testing.assert_array_equal(y.data, [1, 2, 3, 4])
    with pytest.raises(IndexError):
        dataset[1]
    with pytest.raises(IndexError):
        dataset[-1]


def test_dataset_sequence_too_long(tmp_path):
    path = tmp_path / "train.bin"
    _write_tokens(path, 20240520, range(8), "<u2")
    with pytest.raises(ValueError):
        TinyShakespeareDataset(path, 1025)


def test_dataset_nonpositive_sequence(tmp_path):
    path = tmp_path / "train.bin"
    _write_tokens(path, 20240520, range(8), "<u2")
    with pytest.raises(ValueError):
        TinyShakespeareDataset(path, 0)


def test_dataset_empty_when_one_sequence(tmp_path):
    path = tmp_path / "train.bin"
    _write_tokens(path, 20240520, range(5), "<u2")
    dataset = TinyShakespeareDataset(path, 4)
    assert len(dataset) == 0