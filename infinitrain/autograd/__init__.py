"""Tensors, the Function base class and the differentiable operations built on it."""