"""
UpCloud Machine Driver Errors
=============================

Error kinds surfaced by the driver to its host.

Provider (RPC) errors live in providers.base and share the same root,
so a host can catch DriverError for everything the driver raises.
"""

from typing import Optional


class DriverError(Exception):
    """Base exception for every error raised by the driver."""
    pass


class ConfigError(DriverError):
    """Missing credentials or name, bad user-data file, or an unknown zone."""
    pass


class KeyGenError(DriverError):
    """Local SSH key pair generation or read-back failed."""
    pass


class WaitTimeoutError(DriverError):
    """A polling loop ran out of time before its condition held."""

    def __init__(self, description: str, attempts: int, elapsed: float, last_value: Optional[object] = None):
        self.description = description
        self.attempts = attempts
        self.elapsed = elapsed
        self.last_value = last_value
        super().__init__(
            f"Timed out waiting for {description} "
            f"after {attempts} attempts ({elapsed:.1f}s)"
        )


class MachineNotFoundError(DriverError):
    """No stored record exists for the requested machine."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Host does not exist: {name!r}")
