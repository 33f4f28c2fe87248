"""
UpCloud Provider Access Layer
=============================

Capability interface over the provider API and its HTTP implementation.
"""

from .base import (
    ProviderClient,
    Zone,
    IPAddress,
    StorageDevice,
    ServerDetails,
    LoginUser,
    CreateServerRequest,
    CreateServerStorageDevice,
    CreateServerIPAddress,
    ProviderError,
    ProviderAuthError,
    ProviderResourceError,
    ProviderTimeoutError,
)
from .upcloud import UpCloudClient

__all__ = [
    "ProviderClient",
    "Zone",
    "IPAddress",
    "StorageDevice",
    "ServerDetails",
    "LoginUser",
    "CreateServerRequest",
    "CreateServerStorageDevice",
    "CreateServerIPAddress",
    "ProviderError",
    "ProviderAuthError",
    "ProviderResourceError",
    "ProviderTimeoutError",
    "UpCloudClient",
]
