from __future__ import annotations

import logging

import pytest

from certfixtures import fixtures
from certfixtures import log


@pytest.fixture(scope="session")
def default_batch() -> dict[str, fixtures.GeneratedFixture]:
    # RSA key generation is slow; share one batch across the session.
    return fixtures.generate_all(fixtures.DEFAULT_FIXTURES)


@pytest.fixture(scope="session")
def default_specs() -> dict[str, fixtures.FixtureSpec]:
    return {s.name: s for s in fixtures.DEFAULT_FIXTURES}


@pytest.fixture()
def ec_spec() -> fixtures.FixtureSpec:
    return fixtures.FixtureSpec(
        name="ec_test",
        key_algorithm=fixtures.KeyAlgorithm.ECDSA,
        key_params="P-256",
        signature_hash=fixtures.SignatureHash.SHA256,
        organization="test-org",
        subject_alt_names=("one.example", "two.example"),
        validity_days=30,
        key_file="ec_key.pem",
        cert_file="ec_cert.pem",
    )


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    root = logging.getLogger()
    for h in list(root.handlers):
        if isinstance(h, log.FixtureLogHandler):
            h.uninstall()
    root.setLevel(logging.WARNING)
