"""A small NumPy autograd engine with a batching data loader and readers for MNIST and token datasets."""

__version__ = "0.3.0"