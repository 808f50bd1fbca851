# infinitrain

A compact reverse-mode automatic differentiation engine built on NumPy. It
comes with a batching data loader and with readers for MNIST image files (IDX
format) and for pre-tokenised text files that have a 1024-byte header.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## What is inside

- `infinitrain.device`: `DeviceType` (`CPU`, `CUDA`) and the frozen dataclass
  `Device(type, index)`. Only index 0 is accepted. Any other index raises
  `ValueError`. `str(Device())` gives `"Device(CPU, 0)"`.
- `infinitrain.autograd.function`:
  - `Tensor(data, requires_grad=False, device=None)` wraps a NumPy array and
    records the `Function` that produced it. `Tensor.backward(gradient=None)`
    sends a gradient back through the graph. It uses ones when no gradient is
    given. The gradient is added into the `grad` of every leaf tensor that has
    `requires_grad` set.
  - `Function` is the base class for operations. `apply(inputs)` runs
    `forward`, calls `setup_context` to save what `backward` needs, and links
    the outputs into the graph.
  - `require_cpu(tensor)` returns a tensor's array. It raises `RuntimeError`
    for a tensor on a CUDA device, so every operation computes on the CPU only.
- Operations. Each one is a `Function` subclass and is used as `Op(...).apply([...])`:
  - `infinitrain.autograd.elementwise`: `Tanh`, `Pow(exponent)`,
    `EqualsScalar(scalar)` (forward only), `Add`, `AddScalar(scalar)`, `Mul`
    and `MulScalar(scalar)`. `Add` and `Mul` broadcast their operands. Their
    gradients are summed back to each operand's shape.
  - `infinitrain.autograd.activations`: `Sigmoid`.
  - `infinitrain.autograd.linear`: `Linear`, whose inputs are
    `[x, weight, bias]` and which computes `x @ weight.T + bias`.
  - `infinitrain.autograd.loss`: `CrossEntropy`, whose inputs are
    `[logits, target]`. It returns the mean negative log-likelihood of the
    integer targets.
  - `infinitrain.autograd.matmul`: `Matmul`, a batched matrix product.
  - `infinitrain.autograd.misc`: `Split(split_size, dim)`,
    `NoOp(output_dims)` (reshape) and `Slice(starts, ends, steps)`.
  - `infinitrain.autograd.normalization`: `LayerNorm(eps=1e-5)` over the last
    dimension, with inputs `[x, weight, bias]`.
  - `infinitrain.autograd.softmax`: `Softmax(dim=-1)`.
  - `infinitrain.autograd.sparse`: `Embedding`, whose inputs are
    `[indices, weight]`.
  - `infinitrain.autograd.transform`: `Tril(diagonal)`,
    `Transpose(dim0, dim1)` and `Mask(mask, value)`, which fills `value`
    wherever the mask is non-zero.
- `infinitrain.dataloader`:
  - `DataLoader(dataset, batch_size)` iterates over consecutive batches of any
    dataset that supports `len()` and indexing and returns `(data, label)`
    pairs. The last batch may be smaller.
  - `stack(arrays)` flattens each sample and stacks the samples into a tensor
    of shape `(batch, elements)`.
- `infinitrain.mnist`:
  - `read_sn3_file(path)` returns an `SN3File` with `type`, `dims` and `data`.
  - `MNISTDataset(directory, train)` reads `train-*` or `t10k-*` image and
    label files from a directory. It scales the pixels to float32 in the range
    [0, 1].
- `infinitrain.shakespeare`:
  - `read_token_file(path, sequence_length)` returns a `TokenFile` of int64
    sequences. It accepts uint16 and int32 token files and drops a trailing
    partial sequence.
  - `TinyShakespeareDataset(filepath, sequence_length)` returns
    `(input, target)` pairs, where each target is its input shifted one token
    ahead. The sequence length can be at most 1024.

Both datasets raise `IndexError` for an index that is out of range.

## Example

```python
import numpy as np

from infinitrain.autograd.function import Tensor
from infinitrain.autograd.linear import Linear
from infinitrain.autograd.loss import CrossEntropy

x = Tensor(np.random.rand(4, 3).astype(np.float32))
w = Tensor(np.random.rand(2, 3).astype(np.float32), requires_grad=True)
b = Tensor(np.zeros(2, dtype=np.float32), requires_grad=True)
target = Tensor(np.array([0, 1, 1, 0], dtype=np.int64))

(logits,) = Linear().apply([x, w, b])
(loss,) = CrossEntropy().apply([logits, target])
loss.backward()
print(w.grad.data, b.grad.data)
```

Loading MNIST in batches:

```python
from infinitrain.dataloader import DataLoader
from infinitrain.mnist import MNISTDataset

loader = DataLoader(MNISTDataset("path/to/mnist", train=True), 64)
for images, labels in loader:
    ...  # images: (batch, 784) float32, labels: (batch, 1) uint8
```

## What it does not do

- All computation runs on the CPU. A tensor placed on a CUDA device makes every
  operation raise `RuntimeError`.
- The package has no layer or module classes that own their parameters, no
  optimizers, no ready-made network definitions and no training command. Models
  are built by applying the operations to tensors directly, and parameters must
  be updated from their `grad` by the caller.
- Gradients accumulate in `grad` across calls to `backward`. Nothing resets
  them automatically.