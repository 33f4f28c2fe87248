"""
Machine State Mapping
=====================

Translates provider server states into the host's small, stable
machine-state vocabulary.
"""

from enum import Enum

from .providers.base import (
    SERVER_STATE_NEW,
    SERVER_STATE_STARTED,
    SERVER_STATE_STOPPED,
    SERVER_STATE_ERROR,
)


class MachineState(Enum):
    """Host-facing machine states."""
    NONE = ""
    STARTING = "Starting"
    RUNNING = "Running"
    STOPPED = "Stopped"
    ERROR = "Error"
    UNKNOWN = "Unknown"

    def __str__(self) -> str:
        return self.value


# Mapping of UpCloud server states to machine states
UPCLOUD_STATE_MAP = {
    SERVER_STATE_NEW: MachineState.STARTING,
    SERVER_STATE_STARTED: MachineState.RUNNING,
    SERVER_STATE_STOPPED: MachineState.STOPPED,
    SERVER_STATE_ERROR: MachineState.ERROR,
}


def map_state(provider_state: str) -> MachineState:
    """Map a provider state string; unrecognized states are UNKNOWN."""
    return UPCLOUD_STATE_MAP.get(provider_state, MachineState.UNKNOWN)
