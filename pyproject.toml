[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "infinitrain"
version = "0.3.0"
description = "A small NumPy reverse-mode autograd engine with batching data loaders for MNIST and token datasets"
requires-python = ">=3.10"
dependencies = ["numpy"]
keywords = ["autograd", "automatic-differentiation", "deep-learning", "mnist", "tokens", "numpy"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["infinitrain"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
