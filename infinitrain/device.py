"""Compute devices that tensors live on."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class DeviceType(enum.Enum):
    """Kinds of device a tensor can be placed on."""

    CPU = "CPU"
    CUDA = "CUDA"


@dataclass(frozen=True)
class Device:
    """A device identified by its type and index; only index 0 is supported."""

    type: DeviceType = DeviceType.CPU
    index: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.type, DeviceType):
            raise TypeError(f"device type must be a DeviceType, got {self.type!r}")
        if self.index != 0:
            raise ValueError(f"{self.type.value} device index should be 0")

    def is_cpu(self) -> bool:
        return self.type is DeviceType.CPU

    def is_cuda(self) -> bool:
        return self.type is DeviceType.CUDA

    def __str__(self) -> str:
        return f"Device({self.type.value}, {self.index})"