"""
UpCloud Machine Driver
======================

Implements the host driver contract on top of the UpCloud API:

    set_config_from_flags -> pre_create_check -> create
    get_state / get_url / get_ssh_hostname
    start / stop / restart / kill / remove

Every operation is a bounded, synchronous call. The only waits are the
address-assignment wait after create and the stopped-state wait during
remove, both of which have a deadline and back off between fetches.

The provider is the source of truth; the driver only remembers what the
host persists for it (see MachineRecord).
"""

import logging
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from .config import (
    CREATE_FLAGS,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_USER,
    DOCKER_PORT,
    DriverConfig,
    DriverFlag,
    DriverOptions,
    NetworkMode,
)
from .errors import ConfigError, DriverError
from .polling import wait_until
from .providers.base import (
    ProviderClient,
    ProviderError,
    ServerDetails,
    IPAddress,
    LoginUser,
    CreateServerRequest,
    CreateServerStorageDevice,
    CreateServerIPAddress,
    IP_ACCESS_PUBLIC,
    IP_ACCESS_PRIVATE,
    IP_FAMILY_IPV4,
    SERVER_STATE_STOPPED,
    STOP_TYPE_SOFT,
    STOP_TYPE_HARD,
)
from .providers.upcloud import UpCloudClient
from .registry import register_driver
from .sshkeys import generate_ssh_key
from .state import MachineState, map_state

logger = logging.getLogger(__name__)


ClientFactory = Callable[[DriverConfig], ProviderClient]

SYSTEM_DISK_TITLE = "disk1"

# Backoff bounds for both polling loops, in seconds
POLL_INITIAL_INTERVAL = 1.0
POLL_MAX_INTERVAL = 10.0


def default_client_factory(config: DriverConfig) -> ProviderClient:
    return UpCloudClient(config.user, config.password)


def build_create_request(config: DriverConfig, public_key: str, user_data: str = "") -> CreateServerRequest:
    """
    Shape the create request for a configuration.

    A private IPv4 address is always requested; a public one is added
    unless the server lives on the private network only.
    """
    ip_addresses = [CreateServerIPAddress(access=IP_ACCESS_PRIVATE, family=IP_FAMILY_IPV4)]
    if config.network_mode is not NetworkMode.PRIVATE_ONLY:
        ip_addresses.append(CreateServerIPAddress(access=IP_ACCESS_PUBLIC, family=IP_FAMILY_IPV4))

    return CreateServerRequest(
        hostname=config.server_name,
        title=config.title,
        plan=config.plan,
        zone=config.zone,
        user_data=user_data,
        login_user=LoginUser(username=config.ssh_user, ssh_keys=[public_key]),
        storage_devices=[
            CreateServerStorageDevice(
                storage=config.template,
                title=SYSTEM_DISK_TITLE,
                size=config.storage_size,
                tier=config.storage_tier,
            )
        ],
        ip_addresses=ip_addresses,
    )


def select_address(server: ServerDetails, network_mode: NetworkMode) -> Optional[IPAddress]:
    """First IPv4 address in the scope the host should connect through, if assigned yet."""
    access = IP_ACCESS_PRIVATE if network_mode.uses_private else IP_ACCESS_PUBLIC
    for address in server.ip_addresses:
        if address.access == access and address.family == IP_FAMILY_IPV4 and address.address:
            return address
    return None


def join_host_port(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


@dataclass
class MachineRecord:
    """What the host persists for a machine between invocations."""
    machine_name: str
    store_path: str
    ssh_user: str = DEFAULT_SSH_USER
    ssh_port: int = DEFAULT_SSH_PORT
    server_uuid: str = ""
    ip_address: str = ""
    config: Optional[DriverConfig] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "machine_name": self.machine_name,
            "store_path": self.store_path,
            "ssh_user": self.ssh_user,
            "ssh_port": self.ssh_port,
            "server_uuid": self.server_uuid,
            "ip_address": self.ip_address,
            "config": self.config.to_dict() if self.config else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MachineRecord":
        config = data.get("config")
        return cls(
            machine_name=data["machine_name"],
            store_path=data.get("store_path", ""),
            ssh_user=data.get("ssh_user", DEFAULT_SSH_USER),
            ssh_port=int(data.get("ssh_port", DEFAULT_SSH_PORT)),
            server_uuid=data.get("server_uuid", ""),
            ip_address=data.get("ip_address", ""),
            config=DriverConfig.from_dict(config) if config else None,
        )


@register_driver
class UpCloudDriver:
    """
    Machine driver for UpCloud servers.

    Usage:
        driver = UpCloudDriver("web1", "/home/me/.docker/machine")
        driver.set_config_from_flags(DriverOptions.resolve(CREATE_FLAGS))
        driver.pre_create_check()
        driver.create()
        print(driver.get_url())
    """

    DRIVER_NAME = "upcloud"

    def __init__(
        self,
        machine_name: str,
        store_path: str,
        client_factory: Optional[ClientFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
        max_poll_attempts: Optional[int] = None,
        record: Optional[MachineRecord] = None,
    ):
        self.record = record or MachineRecord(machine_name=machine_name, store_path=store_path)
        self._client_factory = client_factory or default_client_factory
        self._sleep = sleep
        self._max_poll_attempts = max_poll_attempts

    # =========================================
    # HOST CONTRACT: METADATA
    # =========================================

    def driver_name(self) -> str:
        return self.DRIVER_NAME

    def get_create_flags(self) -> List[DriverFlag]:
        return list(CREATE_FLAGS)

    @property
    def machine_name(self) -> str:
        return self.record.machine_name

    @property
    def config(self) -> Optional[DriverConfig]:
        return self.record.config

    def ssh_key_path(self) -> str:
        return os.path.join(self.record.store_path, "machines", self.record.machine_name, "id_rsa")

    def _log_extra(self) -> Dict[str, str]:
        extra = {"machine": self.record.machine_name}
        if self.record.server_uuid:
            extra["server_uuid"] = self.record.server_uuid
        if self.record.config:
            extra["zone"] = self.record.config.zone
        return extra

    # =========================================
    # HOST CONTRACT: CONFIGURATION
    # =========================================

    def set_config_from_flags(self, opts: DriverOptions) -> None:
        """
        Validate flags and store the resulting configuration.

        Raises:
            ConfigError: If credentials are missing or a value is invalid
        """
        config = DriverConfig.from_options(opts, machine_name=self.record.machine_name)
        self.record.config = config
        self.record.ssh_user = config.ssh_user

    def pre_create_check(self) -> None:
        """
        Check that create has a chance of succeeding.

        Raises:
            ConfigError: If the user-data file is missing or the zone is unknown
            ProviderError: If the zone listing fails
        """
        config = self._require_config()

        if config.user_data_file and not os.path.exists(config.user_data_file):
            raise ConfigError(f"user-data file {config.user_data_file} could not be found")

        with self._client() as client:
            zones = client.list_zones()

        if not any(zone.id == config.zone for zone in zones):
            known = ", ".join(sorted(zone.id for zone in zones))
            raise ConfigError(f"you should use a valid upcloud zone: {config.zone!r} is not one of [{known}]")

    # =========================================
    # HOST CONTRACT: LIFECYCLE
    # =========================================

    def create(self) -> None:
        """
        Create the server and wait for its address.

        Raises:
            ConfigError: If the user-data file cannot be read
            KeyGenError: If the SSH key pair cannot be generated
            ProviderError: If any API call fails
            WaitTimeoutError: If no address is assigned in time
        """
        config = self._require_config()
        user_data = self._read_user_data(config)

        logger.info("Creating SSH key...", extra=self._log_extra())
        public_key = generate_ssh_key(self.ssh_key_path())

        request = build_create_request(config, public_key, user_data)

        logger.info("Creating UpCloud server...", extra=self._log_extra())
        with self._client() as client:
            server = client.create_server(request)
            if not server.uuid:
                raise ProviderError("upcloud", "create server response did not include a UUID")

            # Remembered before waiting so a timed-out create can still be removed
            self.record.server_uuid = server.uuid

            logger.info("Waiting for IP address to be assigned to the server...", extra=self._log_extra())
            address = wait_until(
                fetch=lambda: client.get_server_details(server.uuid),
                accept=lambda details: select_address(details, config.network_mode),
                description=f"{config.network_mode.value} IPv4 address on server {server.uuid}",
                timeout=config.wait_timeout,
                max_attempts=self._max_poll_attempts,
                initial_interval=POLL_INITIAL_INTERVAL,
                max_interval=POLL_MAX_INTERVAL,
                sleep=self._sleep,
            )

        self.record.ip_address = address.address
        logger.debug(
            f"Created server with UUID {self.record.server_uuid} and IP address {self.record.ip_address}",
            extra=self._log_extra(),
        )

    def get_state(self) -> MachineState:
        """
        Fetch the server and map its state.

        Raises:
            ProviderError: If the server cannot be fetched
        """
        uuid = self._require_server()
        with self._client() as client:
            server = client.get_server_details(uuid)
        return map_state(server.state)

    def get_ip(self) -> str:
        if not self.record.ip_address:
            raise DriverError("IP address is not set")
        return self.record.ip_address

    def get_ssh_hostname(self) -> str:
        return self.get_ip()

    def get_url(self) -> str:
        """
        Docker endpoint of the machine.

        Raises:
            DriverError: If the machine is not running or has no address
        """
        state = self.get_state()
        if state is not MachineState.RUNNING:
            raise DriverError(f"Host is not running (state: {state})")
        return f"tcp://{join_host_port(self.get_ip(), DOCKER_PORT)}"

    def start(self) -> None:
        uuid = self._require_server()
        with self._client() as client:
            client.start_server(uuid)

    def stop(self) -> None:
        """Soft stop; returns without waiting for the server to go down."""
        uuid = self._require_server()
        with self._client() as client:
            client.stop_server(uuid, STOP_TYPE_SOFT)

    def restart(self) -> None:
        uuid = self._require_server()
        with self._client() as client:
            client.restart_server(uuid)

    def kill(self) -> None:
        """Hard stop; returns without waiting."""
        uuid = self._require_server()
        with self._client() as client:
            client.stop_server(uuid, STOP_TYPE_HARD)

    def remove(self) -> None:
        """
        Tear the server down: stop, wait for stopped, delete the server,
        then delete every storage device that was attached to it.

        The first failure aborts and is raised; nothing is rolled back, so
        storage devices after a failed delete stay on the account.

        Raises:
            ProviderError: If any API call fails
            WaitTimeoutError: If the server does not stop in time
        """
        config = self._require_config()
        uuid = self._require_server()

        with self._client() as client:
            details = client.get_server_details(uuid)

            if details.state != SERVER_STATE_STOPPED:
                logger.info("Stopping server...", extra=self._log_extra())
                client.stop_server(uuid, STOP_TYPE_HARD)

            logger.info("Waiting for server to stop...", extra=self._log_extra())
            wait_until(
                fetch=lambda: client.get_server_details(uuid),
                accept=lambda current: current.state == SERVER_STATE_STOPPED,
                description=f"server {uuid} to stop",
                timeout=config.stop_timeout,
                max_attempts=self._max_poll_attempts,
                initial_interval=POLL_INITIAL_INTERVAL,
                max_interval=POLL_MAX_INTERVAL,
                sleep=self._sleep,
            )

            logger.info("Deleting server...", extra=self._log_extra())
            client.delete_server(uuid)

            for disk in details.storage_devices:
                logger.info(f"Deleting storage {disk.uuid} ({disk.title})", extra=self._log_extra())
                client.delete_storage(disk.uuid)

        self.record.server_uuid = ""
        self.record.ip_address = ""

    # =========================================
    # PERSISTENCE
    # =========================================

    def to_dict(self) -> Dict[str, Any]:
        data = self.record.to_dict()
        data["driver"] = self.DRIVER_NAME
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], **kwargs) -> "UpCloudDriver":
        record = MachineRecord.from_dict(data)
        return cls(record.machine_name, record.store_path, record=record, **kwargs)

    # =========================================
    # HELPERS
    # =========================================

    def _require_config(self) -> DriverConfig:
        if self.record.config is None:
            raise ConfigError("driver is not configured, call set_config_from_flags first")
        return self.record.config

    def _require_server(self) -> str:
        if not self.record.server_uuid:
            raise DriverError(f"Machine {self.record.machine_name!r} has no server")
        return self.record.server_uuid

    @contextmanager
    def _client(self) -> Iterator[ProviderClient]:
        client = self._client_factory(self._require_config())
        try:
            yield client
        finally:
            client.close()

    @staticmethod
    def _read_user_data(config: DriverConfig) -> str:
        if not config.user_data_file:
            return ""
        try:
            with open(config.user_data_file, "r", encoding="utf-8") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"cannot read user-data file {config.user_data_file}: {e}") from e

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} ({self.record.machine_name})>"
