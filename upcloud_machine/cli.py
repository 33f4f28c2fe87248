#!/usr/bin/env python3
"""
UpCloud Machine CLI
===================

A small host for the driver: creates, inspects and removes machines and
keeps their records in the machine store between invocations.

Usage:
    upcloud-machine create web1 --upcloud-user me --upcloud-passwd secret
    upcloud-machine state web1
    upcloud-machine url web1
    upcloud-machine rm web1

Environment:
    MACHINE_STORAGE_PATH  Store root (default ~/.docker/machine)
    LOG_LEVEL             DEBUG, INFO, WARNING, ERROR
    LOG_FORMAT            text or json
    UPCLOUD_*             Fallbacks for every --upcloud-* create flag
"""

import argparse
import logging
import sys
from typing import Any, Callable, Dict, List, Mapping, Optional

from .config import CLIConfig, CREATE_FLAGS, DriverOptions, validate_machine_name
from .driver import UpCloudDriver
from .errors import DriverError
from .logging_config import configure_logging
from .providers.base import ProviderError
from .registry import DriverRegistry
from .state import MachineState
from .store import MachineStore

logger = logging.getLogger(__name__)


def _flag_dest(flag_name: str) -> str:
    return flag_name.replace("-", "_")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="upcloud-machine",
        description="Create and manage Docker hosts on UpCloud",
    )
    parser.add_argument("--storage-path", help="Machine store root (overrides MACHINE_STORAGE_PATH)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create a machine")
    create.add_argument("name", help="Machine name")
    for flag in CREATE_FLAGS:
        help_text = f"{flag.usage} [${flag.env_var}]"
        if flag.kind == "bool":
            create.add_argument(f"--{flag.name}", dest=_flag_dest(flag.name),
                                action=argparse.BooleanOptionalAction, default=None, help=help_text)
        else:
            create.add_argument(f"--{flag.name}", dest=_flag_dest(flag.name),
                                default=None, help=help_text)

    for command, help_text in (
        ("state", "Print the state of a machine"),
        ("url", "Print the Docker URL of a machine"),
        ("ip", "Print the IP address of a machine"),
        ("start", "Start a machine"),
        ("stop", "Gracefully stop a machine"),
        ("restart", "Restart a machine"),
        ("kill", "Forcibly stop a machine"),
    ):
        p = sub.add_parser(command, help=help_text)
        p.add_argument("name", help="Machine name")

    rm = sub.add_parser("rm", help="Remove a machine and its server")
    rm.add_argument("name", help="Machine name")
    rm.add_argument("--force", "-f", action="store_true",
                    help="Remove the local record even if provider teardown fails")

    sub.add_parser("ls", help="List machines")
    sub.add_parser("flags", help="List create flags")

    return parser


class MachineCLI:
    """Dispatches parsed commands against the store and driver."""

    def __init__(self, store: MachineStore, driver_kwargs: Optional[Dict[str, Any]] = None,
                 environ: Optional[Mapping[str, str]] = None, out: Callable[[str], None] = print):
        self.store = store
        self.driver_kwargs = driver_kwargs or {}
        self.environ = environ
        self.out = out

    def run(self, args: argparse.Namespace) -> int:
        handler = getattr(self, f"cmd_{args.command}")
        try:
            return handler(args) or 0
        except DriverError as e:
            logger.error(str(e))
            return 1

    def _load(self, name: str) -> UpCloudDriver:
        return self.store.load(name, **self.driver_kwargs)

    def cmd_create(self, args: argparse.Namespace) -> int:
        validate_machine_name(args.name)
        if self.store.exists(args.name):
            raise DriverError(f"Host already exists: {args.name!r}")

        driver = DriverRegistry.instantiate(
            UpCloudDriver.DRIVER_NAME, args.name, str(self.store.storage_path), **self.driver_kwargs
        )
        explicit = {flag.name: getattr(args, _flag_dest(flag.name)) for flag in CREATE_FLAGS}
        driver.set_config_from_flags(DriverOptions.resolve(CREATE_FLAGS, explicit, self.environ))

        logger.info("Running pre-create checks...")
        driver.pre_create_check()

        try:
            driver.create()
        finally:
            # A server that exists provider-side must stay reachable for rm
            if driver.record.server_uuid:
                self.store.save(driver)

        logger.info(f"Machine {args.name} is up at {driver.get_ip()}")
        self.out(driver.get_ip())
        return 0

    def cmd_state(self, args: argparse.Namespace) -> int:
        driver = self._load(args.name)
        try:
            state = driver.get_state()
        except ProviderError as e:
            self.out(str(MachineState.ERROR))
            logger.error(str(e))
            return 1
        self.out(str(state))
        return 0

    def cmd_url(self, args: argparse.Namespace) -> int:
        self.out(self._load(args.name).get_url())
        return 0

    def cmd_ip(self, args: argparse.Namespace) -> int:
        self.out(self._load(args.name).get_ip())
        return 0

    def cmd_start(self, args: argparse.Namespace) -> int:
        self._load(args.name).start()
        logger.info(f"Starting {args.name}")
        return 0

    def cmd_stop(self, args: argparse.Namespace) -> int:
        self._load(args.name).stop()
        logger.info(f"Stopping {args.name}")
        return 0

    def cmd_restart(self, args: argparse.Namespace) -> int:
        self._load(args.name).restart()
        logger.info(f"Restarting {args.name}")
        return 0

    def cmd_kill(self, args: argparse.Namespace) -> int:
        self._load(args.name).kill()
        logger.info(f"Killing {args.name}")
        return 0

    def cmd_rm(self, args: argparse.Namespace) -> int:
        driver = self._load(args.name)
        try:
            driver.remove()
        except DriverError as e:
            if not args.force:
                raise
            logger.warning(f"Provider teardown failed, removing local record anyway: {e}")

        self.store.remove(args.name)
        logger.info(f"Successfully removed {args.name}")
        return 0

    def cmd_ls(self, args: argparse.Namespace) -> int:
        self.out(f"{'NAME':<20} {'DRIVER':<10} {'IP':<16} SERVER")
        for name in self.store.list():
            data = self.store.load_raw(name)
            self.out(
                f"{name:<20} {data.get('driver', ''):<10} "
                f"{data.get('ip_address', ''):<16} {data.get('server_uuid', '')}"
            )
        return 0

    def cmd_flags(self, args: argparse.Namespace) -> int:
        for flag in CREATE_FLAGS:
            default = f" (default: {flag.default})" if flag.default not in ("", None) else ""
            self.out(f"--{flag.name:<36} ${flag.env_var:<34} {flag.usage}{default}")
        return 0


def main(
    argv: Optional[List[str]] = None,
    driver_kwargs: Optional[Dict[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> int:
    args = build_parser().parse_args(argv)

    config = CLIConfig.from_env()
    configure_logging("DEBUG" if args.debug else config.log_level, config.log_format)

    store = MachineStore(args.storage_path or config.storage_path)
    return MachineCLI(store, driver_kwargs=driver_kwargs, environ=environ).run(args)


if __name__ == "__main__":
    sys.exit(main())
