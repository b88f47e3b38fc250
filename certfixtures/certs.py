from __future__ import annotations

import datetime

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import dsa
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509 import NameOID


class Cert:
    """Representation of a (TLS) certificate."""

    _cert: x509.Certificate

    def __init__(self, cert: x509.Certificate):
        assert isinstance(cert, x509.Certificate)
        self._cert = cert

    def __eq__(self, other):
        return self.fingerprint() == other.fingerprint()

    def __repr__(self):
        return f"<Cert(organization={self.organization!r}, altnames={self.altnames!r})>"

    def __hash__(self):
        return self._cert.__hash__()

    @classmethod
    def from_pem(cls, data: bytes) -> Cert:
        """Load the first certificate of a PEM blob."""
        cert = x509.load_pem_x509_certificate(data)  # type: ignore
        return cls(cert)

    def to_pem(self) -> bytes:
        return self._cert.public_bytes(serialization.Encoding.PEM)

    def to_cryptography(self) -> x509.Certificate:
        return self._cert

    def public_key(self):
        return self._cert.public_key()

    def fingerprint(self) -> bytes:
        return self._cert.fingerprint(hashes.SHA256())

    @property
    def issuer(self) -> list[tuple[str, str]]:
        return _name_to_keyval(self._cert.issuer)

    @property
    def subject(self) -> list[tuple[str, str]]:
        return _name_to_keyval(self._cert.subject)

    @property
    def notbefore(self) -> datetime.datetime:
        return self._cert.not_valid_before_utc

    @property
    def notafter(self) -> datetime.datetime:
        return self._cert.not_valid_after_utc

    @property
    def validity(self) -> datetime.timedelta:
        return self.notafter - self.notbefore

    def has_expired(self) -> bool:
        return datetime.datetime.now(datetime.timezone.utc) > self.notafter

    @property
    def serial(self) -> int:
        return self._cert.serial_number

    @property
    def keyinfo(self) -> tuple[str, int]:
        public_key = self._cert.public_key()
        if isinstance(public_key, rsa.RSAPublicKey):
            return "RSA", public_key.key_size
        if isinstance(public_key, dsa.DSAPublicKey):
            return "DSA", public_key.key_size
        if isinstance(public_key, ec.EllipticCurvePublicKey):
            return f"EC ({public_key.curve.name})", public_key.key_size
        return (
            public_key.__class__.__name__.replace("PublicKey", "").replace("_", ""),
            getattr(public_key, "key_size", -1),
        )  # pragma: no cover

    @property
    def signature_hash(self) -> str | None:
        algorithm = self._cert.signature_hash_algorithm
        if algorithm is None:  # pragma: no cover
            return None
        return algorithm.name

    @property
    def cn(self) -> str | None:
        attrs = self._cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        if attrs:
            return attrs[0].value  # type: ignore
        return None

    @property
    def organization(self) -> str | None:
        attrs = self._cert.subject.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)
        if attrs:
            return attrs[0].value  # type: ignore
        return None

    @property
    def altnames(self) -> list[str]:
        """
        Get all SubjectAlternativeName DNS altnames, in certificate order.
        """
        try:
            ext = self._cert.extensions.get_extension_for_class(
                x509.SubjectAlternativeName
            ).value
        except x509.ExtensionNotFound:
            return []
        return ext.get_values_for_type(x509.DNSName)

    @property
    def is_ca(self) -> bool:
        try:
            return self._cert.extensions.get_extension_for_class(
                x509.BasicConstraints
            ).value.ca
        except x509.ExtensionNotFound:
            return False


def _name_to_keyval(name: x509.Name) -> list[tuple[str, str]]:
    parts = []
    for attr in name:
        k = attr.rfc4514_string().partition("=")[0]
        v = attr.value
        parts.append((k, v))
    return parts


def split_pem_chain(data: bytes) -> list[Cert]:
    """
    Return every certificate of a PEM bundle, leaf first.
    """
    return [Cert(c) for c in x509.load_pem_x509_certificates(data)]
