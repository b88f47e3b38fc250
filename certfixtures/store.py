from __future__ import annotations

import contextlib
import logging
import os
from collections.abc import Iterable
from collections.abc import Mapping
from pathlib import Path

from certfixtures.exceptions import FixtureWriteError
from certfixtures.fixtures import FixtureSpec
from certfixtures.fixtures import GeneratedFixture

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def umask_secret():
    """
    Context to temporarily set umask to its original value bitor 0o77.
    Useful when writing private keys to disk so that only the owner
    will be able to read them.
    """
    original_umask = os.umask(0)
    os.umask(original_umask | 0o77)
    try:
        yield
    finally:
        os.umask(original_umask)


def prepare_output_dir(path: Path | str, clean: bool = True) -> Path:
    """
    Create the output directory if needed. With clean, PEM files left over
    from a previous run are removed first.
    """
    path = Path(path)
    try:
        path.mkdir(parents=True, exist_ok=True)
        if clean:
            for stale in path.glob("*.pem"):
                stale.unlink()
    except OSError as e:
        raise FixtureWriteError(f"Cannot prepare output directory {path}: {e}") from e
    return path


def _write_temp(target: Path, data: bytes) -> Path:
    tmp = target.with_name(f".{target.name}.tmp")
    tmp.unlink(missing_ok=True)
    with open(tmp, "wb") as f:
        f.write(data)
    return tmp


def write_fixture(spec: FixtureSpec, fixture: GeneratedFixture, directory: Path) -> list[Path]:
    """
    Write one fixture's key and certificate. Both are staged as temporary
    files and only renamed into place once both writes have succeeded.
    """
    if not spec.written:
        return []
    assert spec.key_file is not None and spec.cert_file is not None
    if spec.name != fixture.name:
        raise ValueError(f"Spec {spec.name!r} does not match fixture {fixture.name!r}")

    key_path = directory / spec.key_file
    cert_path = directory / spec.cert_file
    staged: list[Path] = []
    try:
        with umask_secret():
            staged.append(_write_temp(key_path, fixture.private_key_pem))
        staged.append(_write_temp(cert_path, fixture.certificate_pem))
        os.replace(staged[0], key_path)
        os.replace(staged[1], cert_path)
    except OSError as e:
        for p in staged:
            with contextlib.suppress(OSError):
                p.unlink()
        raise FixtureWriteError(f"Cannot write {spec.key_file}/{spec.cert_file}: {e}", spec.name) from e

    logger.info(f"Wrote {key_path} and {cert_path}")
    return [key_path, cert_path]


def write_fixtures(
    fixtures: Mapping[str, GeneratedFixture],
    specs: Iterable[FixtureSpec],
    output_dir: Path | str,
    clean: bool = False,
) -> list[Path]:
    """
    Write every generated fixture whose spec names output files.
    Returns the written paths in table order.
    """
    directory = prepare_output_dir(output_dir, clean=clean)
    written = []
    for spec in specs:
        if spec.name not in fixtures:
            continue
        written.extend(write_fixture(spec, fixtures[spec.name], directory))
    return written
