"""
Declarative table of test certificates and the routine that turns each row
into a PEM key/certificate pair.

Only the *shape* of a fixture is reproducible: subject, SANs, validity span
and algorithms are fixed by its FixtureSpec, while key material and serial
numbers are fresh on every run.
"""
from __future__ import annotations

import datetime
import enum
import logging
from collections.abc import Iterable
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
from typing import Any

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509 import NameOID

import OpenSSL

from certfixtures import certs
from certfixtures.exceptions import CertificateBuildError
from certfixtures.exceptions import KeyGenerationError
from certfixtures.exceptions import OptionsError

logger = logging.getLogger(__name__)

DEFAULT_VALIDITY_DAYS = 3650

PrivateKey = rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey


class KeyAlgorithm(enum.Enum):
    RSA = "rsa"
    ECDSA = "ecdsa"


class SignatureHash(enum.Enum):
    SHA1 = "sha1"
    SHA256 = "sha256"

    @property
    def legacy(self) -> bool:
        """Hashes cryptography no longer signs certificates with."""
        return self is SignatureHash.SHA1

    def hash_algorithm(self) -> hashes.HashAlgorithm:
        if self is SignatureHash.SHA1:
            return hashes.SHA1()
        return hashes.SHA256()


# openssl, NIST and SEC names all resolve to the same curve.
CURVES: dict[str, type[ec.EllipticCurve]] = {
    "P-256": ec.SECP256R1,
    "prime256v1": ec.SECP256R1,
    "secp256r1": ec.SECP256R1,
    "P-384": ec.SECP384R1,
    "secp384r1": ec.SECP384R1,
    "P-521": ec.SECP521R1,
    "secp521r1": ec.SECP521R1,
}


@dataclass(frozen=True)
class FixtureSpec:
    """
    One row of the fixture table.

    key_params is the RSA modulus size in bits for RSA, or a curve name
    (see CURVES) for ECDSA. A spec with an issuer is signed by that
    fixture's key; all others are self-signed. Specs without key_file and
    cert_file are generated but never written, which is how the chain CA is
    kept out of the output directory.
    """

    name: str
    key_algorithm: KeyAlgorithm
    key_params: int | str
    signature_hash: SignatureHash
    organization: str
    subject_alt_names: tuple[str, ...] = ()
    validity_days: int = DEFAULT_VALIDITY_DAYS
    issuer: str | None = None
    is_ca: bool = False
    key_file: str | None = None
    cert_file: str | None = None

    @property
    def written(self) -> bool:
        return self.key_file is not None and self.cert_file is not None

    @property
    def subject(self) -> x509.Name:
        return x509.Name([x509.NameAttribute(NameOID.ORGANIZATION_NAME, self.organization)])

    def get_state(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "key_algorithm": self.key_algorithm.value,
            "key_params": self.key_params,
            "signature_hash": self.signature_hash.value,
            "organization": self.organization,
            "subject_alt_names": list(self.subject_alt_names),
            "validity_days": self.validity_days,
            "issuer": self.issuer,
            "is_ca": self.is_ca,
            "key_file": self.key_file,
            "cert_file": self.cert_file,
        }

    @classmethod
    def from_state(cls, state: dict[str, Any]) -> FixtureSpec:
        """
        Build a spec from a plain mapping, e.g. one entry of the `fixtures`
        list in a config file. Raises OptionsError on malformed input.
        """
        if not isinstance(state, dict):
            raise OptionsError(f"Fixture entry must be a mapping, not {state!r}.")
        state = dict(state)
        name = state.pop("name", None)
        if not isinstance(name, str) or not name:
            raise OptionsError("Fixture entry is missing a name.")
        try:
            key_algorithm = KeyAlgorithm(str(state.pop("key_algorithm")).lower())
            signature_hash = SignatureHash(str(state.pop("signature_hash")).lower())
            key_params = state.pop("key_params")
            organization = str(state.pop("organization"))
        except KeyError as e:
            raise OptionsError(f"Missing field {e}.", name) from e
        except ValueError as e:
            raise OptionsError(str(e), name) from e

        sans = state.pop("subject_alt_names", [])
        if isinstance(sans, str):
            sans = [sans]
        validity_days = state.pop("validity_days", DEFAULT_VALIDITY_DAYS)
        if not isinstance(validity_days, int) or isinstance(validity_days, bool):
            raise OptionsError(f"Not an integer: {validity_days!r}", name)

        for f in ("issuer", "key_file", "cert_file"):
            v = state.get(f)
            if v is not None and not isinstance(v, str):
                raise OptionsError(f"{f} must be a string, not {v!r}.", name)

        spec = cls(
            name=name,
            key_algorithm=key_algorithm,
            key_params=key_params,
            signature_hash=signature_hash,
            organization=organization,
            subject_alt_names=tuple(str(s) for s in sans),
            validity_days=validity_days,
            issuer=state.pop("issuer", None),
            is_ca=bool(state.pop("is_ca", False)),
            key_file=state.pop("key_file", None),
            cert_file=state.pop("cert_file", None),
        )
        if state:
            raise OptionsError(f"Unknown fields: {', '.join(sorted(state))}", name)
        if (spec.key_file is None) != (spec.cert_file is None):
            raise OptionsError("key_file and cert_file must be given together.", name)
        return spec


@dataclass(frozen=True)
class GeneratedFixture:
    name: str
    private_key_pem: bytes
    certificate_pem: bytes
    private_key: PrivateKey = field(repr=False, compare=False)

    @property
    def cert(self) -> certs.Cert:
        """The leaf certificate."""
        return certs.Cert.from_pem(self.certificate_pem)


DEFAULT_FIXTURES: tuple[FixtureSpec, ...] = (
    FixtureSpec(
        name="rsa_2048",
        key_algorithm=KeyAlgorithm.RSA,
        key_params=2048,
        signature_hash=SignatureHash.SHA256,
        organization="bogo",
        subject_alt_names=("test", "example.com"),
        key_file="key.pem",
        cert_file="cert.pem",
    ),
    FixtureSpec(
        name="rsa_1024",
        key_algorithm=KeyAlgorithm.RSA,
        key_params=1024,
        signature_hash=SignatureHash.SHA1,
        organization="bogo-rsa1024",
        subject_alt_names=("test",),
        key_file="rsa_1024_key.pem",
        cert_file="rsa_1024_cert.pem",
    ),
    FixtureSpec(
        name="rsa_chain_ca",
        key_algorithm=KeyAlgorithm.RSA,
        key_params=2048,
        signature_hash=SignatureHash.SHA256,
        organization="bogo-ca",
        is_ca=True,
    ),
    # nb. the chain is structural only and is not validated.
    FixtureSpec(
        name="rsa_chain",
        key_algorithm=KeyAlgorithm.RSA,
        key_params=2048,
        signature_hash=SignatureHash.SHA256,
        organization="bogo-chain",
        subject_alt_names=("test",),
        issuer="rsa_chain_ca",
        key_file="rsa_chain_key.pem",
        cert_file="rsa_chain_cert.pem",
    ),
    FixtureSpec(
        name="ecdsa_p256",
        key_algorithm=KeyAlgorithm.ECDSA,
        key_params="P-256",
        signature_hash=SignatureHash.SHA1,
        organization="bogo-p256",
        subject_alt_names=("test",),
        key_file="ecdsa_p256_key.pem",
        cert_file="ecdsa_p256_cert.pem",
    ),
    FixtureSpec(
        name="ecdsa_p384",
        key_algorithm=KeyAlgorithm.ECDSA,
        key_params="P-384",
        signature_hash=SignatureHash.SHA1,
        organization="bogo-p384",
        subject_alt_names=("test",),
        key_file="ecdsa_p384_key.pem",
        cert_file="ecdsa_p384_cert.pem",
    ),
)

CHAIN_CA = "rsa_chain_ca"


def generate_private_key(spec: FixtureSpec) -> PrivateKey:
    if spec.key_algorithm is KeyAlgorithm.RSA:
        if not isinstance(spec.key_params, int) or isinstance(spec.key_params, bool):
            raise KeyGenerationError(
                f"RSA key size must be an integer, not {spec.key_params!r}", spec.name
            )
        try:
            return rsa.generate_private_key(
                public_exponent=65537,
                key_size=spec.key_params,
            )
        except (ValueError, TypeError) as e:
            raise KeyGenerationError(
                f"Cannot generate a {spec.key_params}-bit RSA key: {e}", spec.name
            ) from e

    elif spec.key_algorithm is KeyAlgorithm.ECDSA:
        curve = CURVES.get(str(spec.key_params))
        if curve is None:
            raise KeyGenerationError(f"Unsupported curve: {spec.key_params!r}", spec.name)
        try:
            return ec.generate_private_key(curve())
        except (ValueError, UnsupportedAlgorithm) as e:
            raise KeyGenerationError(
                f"Cannot generate a {spec.key_params} key: {e}", spec.name
            ) from e

    raise KeyGenerationError(f"Unsupported key algorithm: {spec.key_algorithm!r}", spec.name)


def _private_key_pem(key: PrivateKey) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _issuer_cert(spec: FixtureSpec, issuer: GeneratedFixture) -> x509.Certificate:
    if issuer.name != spec.issuer:
        raise CertificateBuildError(
            f"Expected issuer {spec.issuer!r}, got {issuer.name!r}", spec.name
        )
    return issuer.cert.to_cryptography()


def build_certificate(
    spec: FixtureSpec,
    key: PrivateKey,
    issuer: GeneratedFixture | None = None,
    now: datetime.datetime | None = None,
) -> x509.Certificate:
    """
    Build and sign the certificate for key. Self-signed unless issuer is
    given, in which case issuer's subject and private key are used.
    """
    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    now = now.replace(microsecond=0)

    if spec.issuer is not None and issuer is None:
        raise CertificateBuildError(
            f"Issuer {spec.issuer!r} has not been generated", spec.name
        )
    if issuer is not None and spec.issuer is None:
        raise CertificateBuildError("Self-signed fixture was given an issuer", spec.name)

    if issuer is not None:
        issuer_name = _issuer_cert(spec, issuer).subject
        signing_key = issuer.private_key
    else:
        issuer_name = spec.subject
        signing_key = key

    try:
        builder = x509.CertificateBuilder()
        builder = builder.serial_number(x509.random_serial_number())
        builder = builder.subject_name(spec.subject)
        builder = builder.issuer_name(issuer_name)
        builder = builder.public_key(key.public_key())
        builder = builder.not_valid_before(now)
        builder = builder.not_valid_after(now + datetime.timedelta(days=spec.validity_days))
        if spec.subject_alt_names:
            builder = builder.add_extension(
                x509.SubjectAlternativeName(
                    [x509.DNSName(n) for n in spec.subject_alt_names]
                ),
                critical=False,
            )
        if spec.is_ca:
            builder = builder.add_extension(
                x509.BasicConstraints(ca=True, path_length=None), critical=True
            )
            builder = builder.add_extension(
                x509.KeyUsage(
                    digital_signature=False,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=True,
                    crl_sign=True,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            builder = builder.add_extension(
                x509.SubjectKeyIdentifier.from_public_key(key.public_key()),
                critical=False,
            )
        if spec.signature_hash.legacy:
            # Sign with a supported hash first, then let OpenSSL re-sign the
            # TBS with the legacy digest.
            cert = builder.sign(private_key=signing_key, algorithm=hashes.SHA256())
            return _resign(cert, signing_key, spec.signature_hash.hash_algorithm().name)
        return builder.sign(
            private_key=signing_key,
            algorithm=spec.signature_hash.hash_algorithm(),
        )
    except (ValueError, TypeError, UnsupportedAlgorithm, OpenSSL.crypto.Error) as e:
        raise CertificateBuildError(f"Cannot build certificate: {e}", spec.name) from e


def _resign(cert: x509.Certificate, key: PrivateKey, digest: str) -> x509.Certificate:
    x = OpenSSL.crypto.X509.from_cryptography(cert)
    x.sign(OpenSSL.crypto.PKey.from_cryptography_key(key), digest)
    return x.to_cryptography()


def generate(spec: FixtureSpec, issuer: GeneratedFixture | None = None) -> GeneratedFixture:
    """
    Generate a fresh key and certificate for spec.

    For a chained spec, the returned certificate_pem is the leaf followed by
    the issuer's certificate PEM.

    Raises KeyGenerationError or CertificateBuildError.
    """
    key = generate_private_key(spec)
    logger.debug(f"{spec.name}: generated {spec.key_algorithm.value} key ({spec.key_params})")
    cert = build_certificate(spec, key, issuer)
    certificate_pem = cert.public_bytes(serialization.Encoding.PEM)
    if issuer is not None:
        certificate_pem += issuer.certificate_pem
    logger.debug(f"{spec.name}: signed certificate with {spec.signature_hash.value}")
    return GeneratedFixture(
        name=spec.name,
        private_key_pem=_private_key_pem(key),
        certificate_pem=certificate_pem,
        private_key=key,
    )


def generate_all(specs: Iterable[FixtureSpec]) -> dict[str, GeneratedFixture]:
    """
    Generate specs in order. An issuer must appear before the specs it
    signs. Stops at the first error.
    """
    generated: dict[str, GeneratedFixture] = {}
    for spec in specs:
        if spec.name in generated:
            raise CertificateBuildError("Duplicate fixture name", spec.name)
        issuer = None
        if spec.issuer is not None:
            issuer = generated.get(spec.issuer)
            if issuer is None:
                raise CertificateBuildError(
                    f"Issuer {spec.issuer!r} must be generated first", spec.name
                )
        generated[spec.name] = generate(spec, issuer)
    return generated


def select(specs: Sequence[FixtureSpec], names: Iterable[str]) -> list[FixtureSpec]:
    """
    Restrict specs to the given names plus the issuers they depend on,
    keeping the table order.
    """
    by_name = {s.name: s for s in specs}
    wanted: set[str] = set()
    for name in names:
        if name not in by_name:
            raise OptionsError(f"Unknown fixture: {name}")
        while name is not None and name not in wanted:
            wanted.add(name)
            spec = by_name.get(name)
            if spec is None:
                raise CertificateBuildError(f"Unknown issuer {name!r}")
            name = spec.issuer
    return [s for s in specs if s.name in wanted]
