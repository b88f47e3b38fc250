import io
import textwrap

import pytest

from certfixtures import fixtures
from certfixtures import options
from certfixtures.exceptions import OptionsError


def test_defaults():
    o = options.Options()
    assert o.output_dir == "keys"
    assert o.clean is True
    assert o.install_ca is False
    assert o.trust_dir == "/usr/local/share/ca-certificates"
    assert o.trust_name == "snakeoil.crt"
    assert o.trust_ca == "rsa_chain_ca"
    assert o.fixture_specs() == fixtures.DEFAULT_FIXTURES
    assert not o.has_changed("output_dir")


def test_update():
    o = options.Options(output_dir="out")
    assert o.output_dir == "out"
    assert o.has_changed("output_dir")

    o.clean = False
    assert o.clean is False

    with pytest.raises(OptionsError, match="Unknown options: nope"):
        o.update(nope=1)
    with pytest.raises(AttributeError):
        o.nope  # noqa: B018


def test_update_rollback():
    o = options.Options()
    with pytest.raises(OptionsError, match="Expected"):
        o.update(output_dir="elsewhere", clean="yes")
    assert o.output_dir == "keys"
    assert o.clean is True

    with pytest.raises(OptionsError):
        o.update(only="rsa_2048")
    assert o.only == []
    assert o.fixture_specs() == fixtures.DEFAULT_FIXTURES

    o.install_ca = True
    with pytest.raises(OptionsError):
        o.update(trust_name=3)
    assert o.install_ca is True
    assert o.has_changed("install_ca")
    assert not o.has_changed("trust_name")
    o.reset()
    assert o.install_ca is False


def test_copies():
    o = options.Options()
    o.only = ["a"]
    o.only.append("b")
    assert o.only == ["a"]


def test_reset():
    o = options.Options(install_ca=True)
    o.reset()
    assert o.install_ca is False


def test_parse():
    assert options.parse("") == {}
    assert options.parse("# just a comment\n") == {}
    assert options.parse("clean: false") == {"clean": False}
    with pytest.raises(OptionsError, match="no keys found"):
        options.parse("foo")
    with pytest.raises(OptionsError, match="expected a mapping"):
        options.parse("- a\n- b\n")
    with pytest.raises(OptionsError, match="Config error at line"):
        options.parse("clean: true\nfoo: [\n")


def test_load_relative_output_dir(tmp_path):
    o = options.Options()
    options.load(o, "output_dir: out/keys\n", cwd=tmp_path)
    assert o.output_dir == str(tmp_path / "out" / "keys")

    options.load(o, "output_dir: /abs/keys\n", cwd=tmp_path)
    assert o.output_dir == "/abs/keys"


def test_load_paths(tmp_path):
    first = tmp_path / "first.yaml"
    second = tmp_path / "second.yaml"
    first.write_text("install_ca: true\ntrust_name: one.crt\n")
    second.write_text("trust_name: two.crt\n")

    o = options.Options()
    options.load_paths(o, first, tmp_path / "missing.yaml", second)
    assert o.install_ca is True
    assert o.trust_name == "two.crt"

    second.write_text("clean: 3\n")
    with pytest.raises(OptionsError, match="Error reading .*second.yaml"):
        options.load_paths(o, second)

    second.write_bytes(b"\xff\xfe")
    with pytest.raises(OptionsError, match="Error reading"):
        options.load_paths(o, second)


def test_fixture_table_from_yaml(tmp_path):
    cfg = tmp_path / "certfixtures.yaml"
    cfg.write_text(
        textwrap.dedent(
            """
            fixtures:
              - name: ca
                key_algorithm: ecdsa
                key_params: P-384
                signature_hash: sha256
                organization: my-ca
                is_ca: true
              - name: leaf
                key_algorithm: rsa
                key_params: 2048
                signature_hash: sha256
                organization: my-leaf
                subject_alt_names: [a.test, b.test]
                validity_days: 7
                issuer: ca
                key_file: leaf_key.pem
                cert_file: leaf_cert.pem
            """
        )
    )
    o = options.Options()
    options.load_paths(o, cfg)
    ca, leaf = o.fixture_specs()
    assert ca.is_ca and not ca.written
    assert leaf.issuer == "ca"
    assert leaf.key_params == 2048
    assert leaf.subject_alt_names == ("a.test", "b.test")
    assert leaf.validity_days == 7

    o.update(fixtures=[{"name": "broken"}])
    with pytest.raises(OptionsError, match="broken: Missing field"):
        o.fixture_specs()


def test_dump_fixtures():
    buf = io.StringIO()
    options.dump_fixtures(fixtures.DEFAULT_FIXTURES, buf)
    o = options.Options()
    options.load(o, buf.getvalue())
    assert o.fixture_specs() == fixtures.DEFAULT_FIXTURES
