"""
Every error raised while building a fixture batch is a subclass of
FixtureError and names the fixture it happened on, so a failing batch can be
traced back to a single row of the fixture table.

Errors are never retried: a fixture's shape is fixed, so the same parameters
would fail the same way again.
"""
from __future__ import annotations


class FixtureError(Exception):
    """
    Base class for all exceptions thrown by certfixtures.
    """

    def __init__(self, message: str, fixture: str | None = None):
        self.fixture = fixture
        self.message = message
        if fixture is not None:
            message = f"{fixture}: {message}"
        super().__init__(message)


class KeyGenerationError(FixtureError):
    """
    The requested key algorithm/parameter combination is not supported.
    """


class CertificateBuildError(FixtureError):
    """
    The certificate could not be assembled or signed.
    """


class FixtureWriteError(FixtureError):
    """
    A fixture could not be written to the output directory.
    The underlying OSError is available as __cause__.
    """


class TrustInstallError(FixtureError):
    pass


class OptionsError(FixtureError):
    pass
