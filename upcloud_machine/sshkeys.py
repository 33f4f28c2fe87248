"""SSH key pair generation using ssh-keygen."""

import logging
import subprocess
from pathlib import Path

from .errors import KeyGenError

logger = logging.getLogger(__name__)


def generate_ssh_key(key_path: str, comment: str = "docker-machine") -> str:
    """Generate an RSA keypair at key_path and return the public key text.

    The private key lands at key_path, the public key at key_path.pub.
    """
    path = Path(key_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise KeyGenError(f"Cannot create key directory {path.parent}: {e}") from e

    cmd = [
        "ssh-keygen",
        "-t", "rsa",
        "-b", "2048",
        "-N", "",
        "-q",
        "-C", comment,
        "-f", str(path),
    ]

    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, input="y\n")
    except OSError as e:
        raise KeyGenError(f"Failed to run ssh-keygen: {e}") from e

    if proc.returncode != 0:
        logger.error("ssh-keygen failed: %s", proc.stderr.strip())
        raise KeyGenError(f"SSH key generation failed: {proc.stderr.strip()}")

    return read_public_key(key_path)


def read_public_key(key_path: str) -> str:
    """Read back the public half of a generated keypair."""
    pub_path = Path(f"{key_path}.pub")
    try:
        return pub_path.read_text().strip()
    except OSError as e:
        raise KeyGenError(f"Cannot read public key {pub_path}: {e}") from e
