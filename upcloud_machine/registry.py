"""
Machine Driver Registry
=======================

Central registry of driver implementations the host can load by name.
"""

from typing import Dict, List, Optional, Type

from .errors import DriverError


class DriverRegistry:
    """
    Registry of available machine drivers.

    Drivers register their class under their DRIVER_NAME; the host looks
    one up by the name stored with each machine.
    """

    _drivers: Dict[str, Type] = {}

    @classmethod
    def register(cls, driver_class: Type) -> None:
        """
        Register a driver class.

        Args:
            driver_class: Class exposing DRIVER_NAME and the driver contract
        """
        cls._drivers[driver_class.DRIVER_NAME] = driver_class

    @classmethod
    def get_driver_class(cls, name: str) -> Optional[Type]:
        """
        Get a registered driver class by name.

        Args:
            name: Driver name (e.g., 'upcloud')

        Returns:
            Driver class or None if not found
        """
        return cls._drivers.get(name)

    @classmethod
    def list_drivers(cls) -> List[str]:
        """List the names of all registered drivers."""
        return sorted(cls._drivers)

    @classmethod
    def instantiate(cls, name: str, machine_name: str, store_path: str, **kwargs):
        """
        Create a driver for a machine.

        Args:
            name: Driver name
            machine_name: Host-side machine name
            store_path: Host storage root
            **kwargs: Driver-specific arguments

        Returns:
            A new driver instance

        Raises:
            DriverError: If no driver is registered under that name
        """
        driver_class = cls.get_driver_class(name)
        if not driver_class:
            raise DriverError(
                f"Driver not found: {name}. Available: {cls.list_drivers()}"
            )
        return driver_class(machine_name, store_path, **kwargs)


def register_driver(driver_class: Type):
    """
    Decorator to register a driver class.

    Usage:
        @register_driver
        class UpCloudDriver:
            DRIVER_NAME = "upcloud"
    """
    DriverRegistry.register(driver_class)
    return driver_class
