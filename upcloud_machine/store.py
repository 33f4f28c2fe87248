"""
Machine Store
=============

Host-side persistence of driver records: one JSON file per machine at
<storage_path>/machines/<name>/config.json, next to its SSH key.
"""

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List

from .config import validate_machine_name
from .errors import DriverError, MachineNotFoundError
from .registry import DriverRegistry

logger = logging.getLogger(__name__)

CONFIG_FILE = "config.json"


class MachineStore:
    """
    Filesystem store of machine records.

    Usage:
        store = MachineStore("~/.docker/machine")
        store.save(driver)
        driver = store.load("web1")
    """

    def __init__(self, storage_path: str):
        self.storage_path = Path(storage_path).expanduser()
        self.machines_dir = self.storage_path / "machines"

    def _machine_dir(self, name: str) -> Path:
        return self.machines_dir / validate_machine_name(name)

    def _config_path(self, name: str) -> Path:
        return self._machine_dir(name) / CONFIG_FILE

    def exists(self, name: str) -> bool:
        return self._config_path(name).is_file()

    def save(self, driver) -> Path:
        """Atomically write a driver's record to disk."""
        path = self._config_path(driver.machine_name)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=".config-", suffix=".json")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(driver.to_dict(), f, indent=2, sort_keys=True)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.debug(f"Saved machine {driver.machine_name} to {path}")
        return path

    def load_raw(self, name: str) -> Dict[str, Any]:
        path = self._config_path(name)
        if not path.is_file():
            raise MachineNotFoundError(name)
        try:
            return json.loads(path.read_text())
        except (OSError, ValueError) as e:
            raise DriverError(f"Cannot read machine record {path}: {e}") from e

    def load(self, name: str, **driver_kwargs):
        """
        Load a machine and rebuild its driver.

        Args:
            name: Machine name
            **driver_kwargs: Passed to the driver's from_dict()

        Raises:
            MachineNotFoundError: If no record exists
        """
        data = self.load_raw(name)
        driver_name = data.get("driver", "")
        driver_class = DriverRegistry.get_driver_class(driver_name)
        if driver_class is None:
            raise DriverError(f"Machine {name!r} uses unknown driver {driver_name!r}")
        return driver_class.from_dict(data, **driver_kwargs)

    def remove(self, name: str) -> None:
        """Delete a machine's directory, SSH key included."""
        machine_dir = self._machine_dir(name)
        if not machine_dir.exists():
            raise MachineNotFoundError(name)
        shutil.rmtree(machine_dir)
        logger.debug(f"Removed machine directory {machine_dir}")

    def list(self) -> List[str]:
        if not self.machines_dir.is_dir():
            return []
        return sorted(
            entry.name for entry in self.machines_dir.iterdir()
            if (entry / CONFIG_FILE).is_file()
        )
