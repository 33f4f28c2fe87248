"""
UpCloud Machine Driver Configuration
====================================

Create flags, option resolution and the validated driver configuration.

Every flag can also come from an environment variable; an explicit
value always wins over the environment, which wins over the default.
"""

import os
import re
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .errors import ConfigError
from .providers.base import STORAGE_TIER_MAXIOPS, STORAGE_TIER_HDD


DEFAULT_SSH_USER = "root"
DEFAULT_SSH_PORT = 22
DEFAULT_TEMPLATE = "01000000-0000-4000-8000-000030030200"
DEFAULT_ZONE = "uk-lon1"
DEFAULT_PLAN = "1xCPU-1GB"
DEFAULT_STORAGE_SIZE = 30  # GiB
DEFAULT_STORAGE_TIER = STORAGE_TIER_MAXIOPS
DEFAULT_WAIT_TIMEOUT = 600  # seconds to wait for an address
DEFAULT_STOP_TIMEOUT = 300  # seconds to wait for "stopped" on remove
DOCKER_PORT = 2376

STORAGE_TIERS = (STORAGE_TIER_MAXIOPS, STORAGE_TIER_HDD)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"", "0", "false", "no", "off"}

# Machine names double as directory names and server hostnames
_MACHINE_NAME_RE = re.compile(r"[a-zA-Z0-9][a-zA-Z0-9.-]*")


class NetworkMode(Enum):
    """Which networks the server is attached to."""
    PUBLIC = "public"                     # private + public, connect over public
    PRIVATE_ENABLED = "private-enabled"   # private + public, connect over private
    PRIVATE_ONLY = "private-only"         # private only

    @classmethod
    def from_flags(cls, use_private: bool, private_only: bool) -> "NetworkMode":
        if private_only:
            return cls.PRIVATE_ONLY
        if use_private:
            return cls.PRIVATE_ENABLED
        return cls.PUBLIC

    @property
    def uses_private(self) -> bool:
        return self is not NetworkMode.PUBLIC


@dataclass(frozen=True)
class DriverFlag:
    """A create flag, with its environment variable and default."""
    name: str
    env_var: str
    usage: str
    default: Any = ""
    kind: str = "string"  # string, bool, int


CREATE_FLAGS: List[DriverFlag] = [
    DriverFlag("upcloud-user", "UPCLOUD_USER", "upcloud api access user"),
    DriverFlag("upcloud-passwd", "UPCLOUD_PASSWD", "upcloud api access user's password"),
    DriverFlag("upcloud-ssh-user", "UPCLOUD_SSH_USER", "SSH username", DEFAULT_SSH_USER),
    DriverFlag("upcloud-template", "UPCLOUD_TEMPLATE", "upcloud template", DEFAULT_TEMPLATE),
    DriverFlag("upcloud-zone", "UPCLOUD_ZONE", "upcloud zone", DEFAULT_ZONE),
    DriverFlag("upcloud-plan", "UPCLOUD_PLAN", "upcloud plan", DEFAULT_PLAN),
    DriverFlag("upcloud-name", "UPCLOUD_NAME", "server name (defaults to the machine name)"),
    DriverFlag("upcloud-userdata", "UPCLOUD_USERDATA", "path to file with cloud-init user-data"),
    DriverFlag(
        "upcloud-use-private-network", "UPCLOUD_USE_PRIVATE_NETWORK",
        "connect to the server over its private address", False, "bool",
    ),
    DriverFlag(
        "upcloud-use-private-network-only", "UPCLOUD_USE_PRIVATE_NETWORK_ONLY",
        "attach the server to the private network only", False, "bool",
    ),
    DriverFlag(
        "upcloud-storage-size", "UPCLOUD_STORAGE_SIZE",
        "size of the system disk in GiB", DEFAULT_STORAGE_SIZE, "int",
    ),
    DriverFlag(
        "upcloud-storage-tier", "UPCLOUD_STORAGE_TIER",
        "storage tier of the system disk (maxiops or hdd)", DEFAULT_STORAGE_TIER,
    ),
    DriverFlag(
        "upcloud-wait-timeout", "UPCLOUD_WAIT_TIMEOUT",
        "seconds to wait for the server to get an address", DEFAULT_WAIT_TIMEOUT, "int",
    ),
]


def parse_bool(value: Any) -> bool:
    """Coerce a flag or environment value to bool."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigError(f"Invalid boolean value: {value!r}")


def validate_machine_name(name: str) -> str:
    """
    Check a machine name before it is used as a path component or hostname.

    Raises:
        ConfigError: If the name is empty or contains anything but letters,
            digits, dots and dashes, or starts with a dot or dash
    """
    if not _MACHINE_NAME_RE.fullmatch(name or ""):
        raise ConfigError(
            f"Invalid machine name {name!r}: use letters, digits, '.' and '-', starting with a letter or digit"
        )
    return name


class DriverOptions:
    """Resolved flag values with typed accessors."""

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self.values: Dict[str, Any] = dict(values or {})

    @classmethod
    def resolve(
        cls,
        flags: List[DriverFlag],
        explicit: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "DriverOptions":
        """
        Resolve flag values.

        Args:
            flags: Flag definitions
            explicit: Values given on the command line (None means unset)
            environ: Environment to read fallbacks from (os.environ if None)

        Returns:
            DriverOptions holding one value per flag
        """
        explicit = explicit or {}
        environ = os.environ if environ is None else environ

        values = {}
        for flag in flags:
            value = explicit.get(flag.name)
            if value is None and flag.env_var in environ:
                value = environ[flag.env_var]
            if value is None:
                value = flag.default
            values[flag.name] = value
        return cls(values)

    def string(self, name: str) -> str:
        value = self.values.get(name)
        return "" if value is None else str(value)

    def bool(self, name: str) -> bool:
        return parse_bool(self.values.get(name, False))

    def int(self, name: str) -> int:
        value = self.values.get(name, 0)
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid integer for --{name}: {value!r}")


@dataclass(frozen=True)
class DriverConfig:
    """Validated driver configuration. Immutable once built."""
    user: str
    password: str
    server_name: str
    ssh_user: str = DEFAULT_SSH_USER
    template: str = DEFAULT_TEMPLATE
    plan: str = DEFAULT_PLAN
    zone: str = DEFAULT_ZONE
    network_mode: NetworkMode = NetworkMode.PUBLIC
    user_data_file: str = ""
    storage_size: int = DEFAULT_STORAGE_SIZE
    storage_tier: str = DEFAULT_STORAGE_TIER
    wait_timeout: int = DEFAULT_WAIT_TIMEOUT
    stop_timeout: int = DEFAULT_STOP_TIMEOUT

    def __post_init__(self):
        if not self.user or not self.password:
            raise ConfigError(
                "upcloud driver requires the --upcloud-user and --upcloud-passwd options"
            )
        if not self.server_name:
            raise ConfigError("upcloud driver requires the --upcloud-name option")
        if self.storage_size <= 0:
            raise ConfigError(f"Storage size must be positive, got {self.storage_size}")
        if self.storage_tier not in STORAGE_TIERS:
            raise ConfigError(
                f"Unknown storage tier {self.storage_tier!r}, use one of {', '.join(STORAGE_TIERS)}"
            )
        if self.wait_timeout <= 0:
            raise ConfigError(f"Wait timeout must be positive, got {self.wait_timeout}")

    @classmethod
    def from_options(cls, opts: DriverOptions, machine_name: str = "") -> "DriverConfig":
        """Build a config from resolved flags; the server name defaults to the machine name."""
        return cls(
            user=opts.string("upcloud-user"),
            password=opts.string("upcloud-passwd"),
            server_name=opts.string("upcloud-name") or machine_name,
            ssh_user=opts.string("upcloud-ssh-user") or DEFAULT_SSH_USER,
            template=opts.string("upcloud-template"),
            plan=opts.string("upcloud-plan"),
            zone=opts.string("upcloud-zone"),
            network_mode=NetworkMode.from_flags(
                opts.bool("upcloud-use-private-network"),
                opts.bool("upcloud-use-private-network-only"),
            ),
            user_data_file=opts.string("upcloud-userdata"),
            storage_size=opts.int("upcloud-storage-size"),
            storage_tier=opts.string("upcloud-storage-tier"),
            wait_timeout=opts.int("upcloud-wait-timeout"),
        )

    @property
    def title(self) -> str:
        return f"docker-machine - {self.server_name}"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["network_mode"] = self.network_mode.value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DriverConfig":
        data = dict(data)
        data["network_mode"] = NetworkMode(data.get("network_mode", NetworkMode.PUBLIC.value))
        return cls(**data)

    def __repr__(self) -> str:
        return (
            f"DriverConfig(user={self.user!r}, server_name={self.server_name!r}, "
            f"zone={self.zone!r}, plan={self.plan!r}, network_mode={self.network_mode.value})"
        )


@dataclass
class CLIConfig:
    """Settings for the command-line host."""
    storage_path: str = field(default_factory=lambda: os.path.expanduser("~/.docker/machine"))
    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> "CLIConfig":
        """Load configuration from environment variables."""
        return cls(
            storage_path=os.environ.get(
                "MACHINE_STORAGE_PATH", os.path.expanduser("~/.docker/machine")
            ),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            log_format=os.environ.get("LOG_FORMAT", "text"),
        )
