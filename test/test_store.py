import os
from pathlib import Path

import pytest

from certfixtures import fixtures
from certfixtures import store
from certfixtures.exceptions import FixtureWriteError
from certfixtures.exceptions import KeyGenerationError

skip_windows = pytest.mark.skipif(os.name == "nt", reason="Skipping due to Windows")

EXPECTED_FILES = {
    "key.pem",
    "cert.pem",
    "rsa_1024_key.pem",
    "rsa_1024_cert.pem",
    "rsa_chain_key.pem",
    "rsa_chain_cert.pem",
    "ecdsa_p256_key.pem",
    "ecdsa_p256_cert.pem",
    "ecdsa_p384_key.pem",
    "ecdsa_p384_cert.pem",
}


def test_write_fixtures(tmp_path, default_batch, default_specs):
    out = tmp_path / "keys"
    written = store.write_fixtures(default_batch, fixtures.DEFAULT_FIXTURES, out)
    assert {p.name for p in written} == EXPECTED_FILES
    assert {p.name for p in out.iterdir()} == EXPECTED_FILES

    for name, spec in default_specs.items():
        if not spec.written:
            continue
        assert (out / spec.key_file).read_bytes() == default_batch[name].private_key_pem
        assert (out / spec.cert_file).read_bytes() == default_batch[name].certificate_pem

    chain = (out / "rsa_chain_cert.pem").read_bytes()
    assert chain.count(b"-----BEGIN CERTIFICATE-----") == 2


@skip_windows
def test_key_permissions(tmp_path, default_batch):
    store.write_fixtures(default_batch, fixtures.DEFAULT_FIXTURES, tmp_path)
    assert os.stat(tmp_path / "key.pem").st_mode & 0o77 == 0


@skip_windows
def test_umask_secret(tmpdir):
    filename = str(tmpdir.join("secret"))
    with store.umask_secret(), open(filename, "wb"):
        pass
    assert os.stat(filename).st_mode & 0o77 == 0


def test_clean(tmp_path, default_batch):
    (tmp_path / "stale.pem").write_bytes(b"old")
    (tmp_path / "notes.txt").write_text("keep")

    store.write_fixtures(default_batch, fixtures.DEFAULT_FIXTURES, tmp_path, clean=False)
    assert (tmp_path / "stale.pem").exists()

    store.write_fixtures(default_batch, fixtures.DEFAULT_FIXTURES, tmp_path, clean=True)
    assert not (tmp_path / "stale.pem").exists()
    assert (tmp_path / "notes.txt").exists()


def test_unsupported_fixture_writes_nothing(tmp_path, ec_spec):
    bad = fixtures.FixtureSpec(
        name="rsa_0",
        key_algorithm=fixtures.KeyAlgorithm.RSA,
        key_params=0,
        signature_hash=fixtures.SignatureHash.SHA256,
        organization="bogo-rsa0",
        key_file="rsa_0_key.pem",
        cert_file="rsa_0_cert.pem",
    )
    specs = [ec_spec, bad]
    with pytest.raises(KeyGenerationError):
        store.write_fixtures(fixtures.generate_all(specs), specs, tmp_path)
    assert list(tmp_path.iterdir()) == []


def test_output_dir_is_a_file(tmp_path, default_batch):
    blocker = tmp_path / "keys"
    blocker.write_text("")
    with pytest.raises(FixtureWriteError) as e:
        store.write_fixtures(default_batch, fixtures.DEFAULT_FIXTURES, blocker)
    assert isinstance(e.value.__cause__, OSError)


def test_failed_write_keeps_old_files(tmp_path, ec_spec, monkeypatch):
    old = fixtures.generate(ec_spec)
    store.write_fixtures({"ec_test": old}, [ec_spec], tmp_path)

    real_write_temp = store._write_temp

    def fail_on_cert(target: Path, data: bytes) -> Path:
        if target.name == ec_spec.cert_file:
            raise OSError("disk full")
        return real_write_temp(target, data)

    monkeypatch.setattr(store, "_write_temp", fail_on_cert)
    new = fixtures.generate(ec_spec)
    with pytest.raises(FixtureWriteError, match="ec_test: .*disk full"):
        store.write_fixtures({"ec_test": new}, [ec_spec], tmp_path)

    assert (tmp_path / "ec_key.pem").read_bytes() == old.private_key_pem
    assert (tmp_path / "ec_cert.pem").read_bytes() == old.certificate_pem
    assert sorted(p.name for p in tmp_path.iterdir()) == ["ec_cert.pem", "ec_key.pem"]


def test_write_fixture_mismatch(tmp_path, default_batch, default_specs):
    with pytest.raises(ValueError):
        store.write_fixture(default_specs["rsa_2048"], default_batch["rsa_1024"], tmp_path)
    assert store.write_fixture(default_specs["rsa_chain_ca"], default_batch["rsa_chain_ca"], tmp_path) == []
