"""
Make the chain CA trusted system-wide (Debian-style trust store).

This is a privileged, OS-specific post-step and is never run by the
generator itself.
"""
from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path

from certfixtures.exceptions import TrustInstallError

logger = logging.getLogger(__name__)

TRUST_DIR = "/usr/local/share/ca-certificates"
TRUST_NAME = "snakeoil.crt"
UPDATE_COMMAND = "update-ca-certificates"


def _run(cmd: list[str]) -> None:
    logger.debug(f"Running {' '.join(cmd)}")
    try:
        subprocess.check_call(cmd)
    except (OSError, subprocess.CalledProcessError) as e:
        raise TrustInstallError(f"{cmd[0]} failed: {e}") from e


def install_ca(
    cert_pem: bytes,
    trust_dir: Path | str = TRUST_DIR,
    name: str = TRUST_NAME,
    sudo: bool = True,
) -> Path:
    """
    Copy cert_pem into trust_dir as name and refresh the system trust store.
    Returns the installed path.
    """
    if b"BEGIN CERTIFICATE" not in cert_pem:
        raise TrustInstallError("Not a PEM certificate")
    if sudo and shutil.which("sudo") is None:
        raise TrustInstallError("sudo is not available")

    prefix = ["sudo"] if sudo else []
    target = Path(trust_dir) / name
    with tempfile.TemporaryDirectory() as tmp:
        staged = Path(tmp) / name
        staged.write_bytes(cert_pem)
        _run([*prefix, "cp", str(staged), str(target)])
    _run([*prefix, UPDATE_COMMAND])
    logger.info(f"Installed CA certificate as {target}")
    return target
