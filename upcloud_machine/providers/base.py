"""
UpCloud Provider Base Classes and Interfaces
============================================

Defines the narrow capability interface the driver needs from the
provider API, plus the value types exchanged across it.

The driver never talks HTTP directly: it is handed something that
implements ProviderClient, which keeps the lifecycle logic testable
against a fake client with no network dependency.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any

from ..errors import DriverError


# IP address access scopes
IP_ACCESS_PUBLIC = "public"
IP_ACCESS_PRIVATE = "private"

# IP address families
IP_FAMILY_IPV4 = "IPv4"
IP_FAMILY_IPV6 = "IPv6"

# Server states reported by the API ("new" is seen before first boot)
SERVER_STATE_NEW = "new"
SERVER_STATE_STARTED = "started"
SERVER_STATE_STOPPED = "stopped"
SERVER_STATE_MAINTENANCE = "maintenance"
SERVER_STATE_ERROR = "error"

# Stop types
STOP_TYPE_SOFT = "soft"
STOP_TYPE_HARD = "hard"

# Storage tiers
STORAGE_TIER_MAXIOPS = "maxiops"
STORAGE_TIER_HDD = "hdd"

STORAGE_ACTION_CLONE = "clone"


class ProviderError(DriverError):
    """Base exception for provider (RPC) errors."""
    def __init__(self, provider: str, message: str, details: Optional[Dict] = None):
        self.provider = provider
        self.message = message
        self.details = details or {}
        super().__init__(f"[{provider}] {message}")


class ProviderAuthError(ProviderError):
    """Authentication/authorization error."""
    pass


class ProviderResourceError(ProviderError):
    """Resource not found error."""
    pass


class ProviderTimeoutError(ProviderError):
    """A single API call exceeded the transport timeout."""
    pass


@dataclass
class Zone:
    """Represents a provider zone."""
    id: str
    description: str = ""
    public: bool = True

    def __str__(self) -> str:
        return f"{self.id} ({self.description})" if self.description else self.id


@dataclass
class IPAddress:
    """An address assigned to a server."""
    access: str
    family: str
    address: str = ""


@dataclass
class StorageDevice:
    """A storage device attached to a server."""
    uuid: str
    title: str = ""
    size: int = 0
    tier: str = ""


@dataclass
class ServerDetails:
    """Point-in-time snapshot of a server as reported by the provider."""
    uuid: str
    state: str
    hostname: str = ""
    title: str = ""
    zone: str = ""
    plan: str = ""
    ip_addresses: List[IPAddress] = field(default_factory=list)
    storage_devices: List[StorageDevice] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ServerDetails":
        """
        Parse a server object from the API.

        Accepts either the bare server dict or the {"server": {...}} envelope.
        """
        server = payload.get("server", payload)

        ip_addresses = [
            IPAddress(
                access=ip.get("access", ""),
                family=ip.get("family", ""),
                address=ip.get("address", ""),
            )
            for ip in (server.get("ip_addresses") or {}).get("ip_address", [])
        ]

        storage_devices = [
            StorageDevice(
                uuid=disk.get("storage", ""),
                title=disk.get("storage_title", ""),
                size=int(disk.get("storage_size", 0) or 0),
                tier=disk.get("storage_tier", ""),
            )
            for disk in (server.get("storage_devices") or {}).get("storage_device", [])
        ]

        return cls(
            uuid=server.get("uuid", ""),
            state=server.get("state", ""),
            hostname=server.get("hostname", ""),
            title=server.get("title", ""),
            zone=server.get("zone", ""),
            plan=server.get("plan", ""),
            ip_addresses=ip_addresses,
            storage_devices=storage_devices,
        )

    def __str__(self) -> str:
        return f"{self.hostname or self.uuid} [{self.state}]"


@dataclass
class LoginUser:
    """Login user created on the server, with authorized SSH keys."""
    username: str
    ssh_keys: List[str] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "create_password": "no",
            "ssh_keys": {"ssh_key": list(self.ssh_keys)},
        }


@dataclass
class CreateServerStorageDevice:
    """A storage device to create alongside the server."""
    storage: str
    title: str
    size: int
    tier: str = STORAGE_TIER_MAXIOPS
    action: str = STORAGE_ACTION_CLONE

    def to_payload(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "storage": self.storage,
            "title": self.title,
            "size": self.size,
            "tier": self.tier,
        }


@dataclass
class CreateServerIPAddress:
    """An address the provider should assign on create."""
    access: str
    family: str = IP_FAMILY_IPV4

    def to_payload(self) -> Dict[str, str]:
        return {"access": self.access, "family": self.family}


@dataclass
class CreateServerRequest:
    """Everything the provider needs to create a server."""
    hostname: str
    title: str
    plan: str
    zone: str
    login_user: LoginUser
    storage_devices: List[CreateServerStorageDevice] = field(default_factory=list)
    ip_addresses: List[CreateServerIPAddress] = field(default_factory=list)
    user_data: str = ""

    def to_payload(self) -> Dict[str, Any]:
        server: Dict[str, Any] = {
            "hostname": self.hostname,
            "title": self.title,
            "plan": self.plan,
            "zone": self.zone,
            "login_user": self.login_user.to_payload(),
            "storage_devices": {
                "storage_device": [d.to_payload() for d in self.storage_devices]
            },
            "ip_addresses": {
                "ip_address": [ip.to_payload() for ip in self.ip_addresses]
            },
        }
        if self.user_data:
            server["user_data"] = self.user_data
        return {"server": server}


class ProviderClient(ABC):
    """
    Capability interface over the provider API.

    Implementations are cheap to build and stateless per call; the
    driver creates one per operation and closes it afterwards.
    """

    PROVIDER_ID: str = "base"

    @abstractmethod
    def list_zones(self) -> List[Zone]:
        """
        List zones available to the account.

        Returns:
            List of Zone objects
        """
        pass

    @abstractmethod
    def create_server(self, request: CreateServerRequest) -> ServerDetails:
        """
        Create a server.

        Args:
            request: Create request

        Returns:
            Details of the newly created server (addresses may be missing)

        Raises:
            ProviderError: If the create call fails
        """
        pass

    @abstractmethod
    def get_server_details(self, uuid: str) -> ServerDetails:
        """
        Fetch the current details of a server.

        Raises:
            ProviderResourceError: If the server does not exist
        """
        pass

    @abstractmethod
    def start_server(self, uuid: str) -> None:
        pass

    @abstractmethod
    def stop_server(self, uuid: str, stop_type: str = STOP_TYPE_SOFT) -> None:
        pass

    @abstractmethod
    def restart_server(self, uuid: str) -> None:
        pass

    @abstractmethod
    def delete_server(self, uuid: str) -> None:
        pass

    @abstractmethod
    def delete_storage(self, uuid: str) -> None:
        pass

    def close(self) -> None:
        """Release any resources held by the client."""
        pass

    def __enter__(self) -> "ProviderClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} ({self.PROVIDER_ID})>"
