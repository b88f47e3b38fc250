import os
import platform
import subprocess
import sys

import cryptography
from OpenSSL import SSL

VERSION = "1.0.0"


def get_dev_version() -> str:
    """
    Return a detailed version string, sourced either from VERSION or obtained dynamically using git.
    """

    certfixtures_version = VERSION

    here = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    try:
        git_describe = subprocess.check_output(
            ["git", "describe", "--tags", "--long"],
            stderr=subprocess.STDOUT,
            cwd=here,
        )
        last_tag, tag_dist_str, commit = git_describe.decode().strip().rsplit("-", 2)
        commit = commit.lstrip("g")[:7]
        tag_dist = int(tag_dist_str)
    except (OSError, ValueError, subprocess.CalledProcessError):
        pass
    else:
        # Add commit info for non-tagged releases
        if tag_dist > 0:
            certfixtures_version += f" (+{tag_dist}, commit {commit})"

    if getattr(sys, "frozen", False):
        certfixtures_version += " binary"

    return certfixtures_version


def dump_system_info() -> str:
    openssl_version: str | bytes = SSL.SSLeay_version(SSL.SSLEAY_VERSION)
    if isinstance(openssl_version, bytes):
        openssl_version = openssl_version.decode()

    data = [
        f"certfixtures: {get_dev_version()}",
        f"Python:       {platform.python_version()}",
        f"cryptography: {cryptography.__version__}",
        f"OpenSSL:      {openssl_version}",
        f"Platform:     {platform.platform()}",
    ]
    return "\n".join(data)


if __name__ == "__main__":  # pragma: no cover
    print(VERSION)
