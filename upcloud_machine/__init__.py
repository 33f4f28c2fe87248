"""
UpCloud Machine Driver
======================

Provisions Docker hosts on UpCloud through the machine driver contract.
"""

from .config import CREATE_FLAGS, DriverConfig, DriverOptions, NetworkMode
from .driver import UpCloudDriver, MachineRecord
from .errors import (
    DriverError,
    ConfigError,
    KeyGenError,
    WaitTimeoutError,
    MachineNotFoundError,
)
from .providers.base import ProviderError
from .registry import DriverRegistry
from .state import MachineState, map_state

__version__ = "0.2.0"

__all__ = [
    "CREATE_FLAGS",
    "DriverConfig",
    "DriverOptions",
    "NetworkMode",
    "UpCloudDriver",
    "MachineRecord",
    "DriverError",
    "ConfigError",
    "KeyGenError",
    "WaitTimeoutError",
    "MachineNotFoundError",
    "ProviderError",
    "DriverRegistry",
    "MachineState",
    "map_state",
]
