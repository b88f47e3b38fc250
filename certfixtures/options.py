from __future__ import annotations

import copy
import textwrap
from pathlib import Path
from typing import Any

import ruamel.yaml

from certfixtures import fixtures
from certfixtures import trust
from certfixtures.exceptions import OptionsError

CONF_BASENAME = "certfixtures"
CONF_FILE = f"{CONF_BASENAME}.yaml"

unset = object()


class _Option:
    __slots__ = ("name", "typespec", "value", "_default", "help")

    def __init__(
        self,
        name: str,
        typespec: type | tuple[type, ...],
        default: Any,
        help: str,
    ) -> None:
        _check_type(name, default, typespec)
        self.name = name
        self.typespec = typespec
        self._default = default
        self.value = unset
        self.help = textwrap.dedent(help).strip().replace("\n", " ")

    def __repr__(self):
        return f"{self.current()} [{self.typespec}]"

    @property
    def default(self):
        return copy.deepcopy(self._default)

    def current(self) -> Any:
        if self.value is unset:
            v = self.default
        else:
            v = self.value
        return copy.deepcopy(v)

    def set(self, value: Any) -> None:
        _check_type(self.name, value, self.typespec)
        self.value = value

    def reset(self) -> None:
        self.value = unset

    def has_changed(self) -> bool:
        return self.current() != self.default

    def __deepcopy__(self, _):
        o = _Option(self.name, self.typespec, self.default, self.help)
        if self.has_changed():
            o.value = self.current()
        return o


def _check_type(name: str, value: Any, typespec: type | tuple[type, ...]) -> None:
    # bool is an int subclass, but an int option must not accept True.
    if isinstance(value, bool) and typespec is int:
        raise OptionsError(f"Expected int for {name}, got {value!r}.")
    if not isinstance(value, typespec):
        raise OptionsError(f"Expected {typespec} for {name}, got {value!r}.")


class OptManager:
    """
    Typed option store. Reading an option returns a deep copy, so mutating
    the result does not change the stored value.
    """

    def __init__(self) -> None:
        # Options must be the last attribute here - after that, we raise an
        # error for attribute assignment to unknown options.
        self._options: dict[str, _Option] = {}

    def add_option(
        self,
        name: str,
        typespec: type | tuple[type, ...],
        default: Any,
        help: str,
    ) -> None:
        self._options[name] = _Option(name, typespec, default, help)

    def __getattr__(self, attr):
        if attr in self._options:
            return self._options[attr].current()
        else:
            raise AttributeError("No such option: %s" % attr)

    def __setattr__(self, attr, value):
        opts = self.__dict__.get("_options")
        if not opts:
            super().__setattr__(attr, value)
        else:
            self.update(**{attr: value})

    def __contains__(self, k):
        return k in self._options

    def keys(self):
        return set(self._options.keys())

    def items(self):
        return self._options.items()

    def has_changed(self, option: str) -> bool:
        return self._options[option].has_changed()

    def reset(self):
        for o in self._options.values():
            o.reset()

    def update(self, **kwargs):
        """
        Set several options at once. Nothing is changed if any value is
        rejected.
        """
        unknown = [k for k in kwargs if k not in self._options]
        if unknown:
            raise OptionsError("Unknown options: %s" % ", ".join(sorted(unknown)))
        old = copy.deepcopy(self._options)
        try:
            for k, v in kwargs.items():
                self._options[k].set(v)
        except OptionsError:
            self.__dict__["_options"] = old
            raise


class Options(OptManager):
    def __init__(self, **kwargs) -> None:
        super().__init__()
        self.add_option(
            "output_dir", str, "keys",
            "Directory the fixture keys and certificates are written to."
        )
        self.add_option(
            "clean", bool, True,
            "Remove existing PEM files from the output directory before writing."
        )
        self.add_option(
            "only", list, [],
            "Only write these fixtures. Their issuers are still generated."
        )
        self.add_option(
            "install_ca", bool, False,
            "Install the chain CA into the system trust store after generation."
        )
        self.add_option(
            "trust_dir", str, trust.TRUST_DIR,
            "System trust store directory the CA certificate is copied to."
        )
        self.add_option(
            "trust_name", str, trust.TRUST_NAME,
            "File name of the installed CA certificate."
        )
        self.add_option(
            "trust_ca", str, fixtures.CHAIN_CA,
            "Name of the fixture whose certificate is installed as CA."
        )
        self.add_option(
            "fixtures", (list, type(None)), None,
            """
            Fixture table, as a list of mappings. The built-in table is used
            when unset.
            """
        )
        self.update(**kwargs)

    def fixture_specs(self) -> tuple[fixtures.FixtureSpec, ...]:
        if self.fixtures is None:
            return fixtures.DEFAULT_FIXTURES
        return tuple(fixtures.FixtureSpec.from_state(s) for s in self.fixtures)


def parse(text):
    if not text:
        return {}
    try:
        yaml = ruamel.yaml.YAML(typ="safe", pure=True)
        data = yaml.load(text)
    except ruamel.yaml.error.YAMLError as v:
        if hasattr(v, "problem_mark"):
            snip = v.problem_mark.get_snippet()
            raise OptionsError(
                "Config error at line %s:\n%s\n%s"
                % (v.problem_mark.line + 1, snip, getattr(v, "problem", ""))
            )
        else:
            raise OptionsError("Could not parse options.")
    if isinstance(data, str):
        raise OptionsError("Config error - no keys found.")
    elif data is None:
        return {}
    elif not isinstance(data, dict):
        raise OptionsError("Config error - expected a mapping.")
    return data


def load(opts: OptManager, text: str, cwd: Path | str | None = None) -> None:
    """
    Load configuration from text, over-writing options already set in
    this object. A relative output_dir is resolved against cwd.
    May raise OptionsError if the config file is invalid.
    """
    data = parse(text)

    output_dir = data.get("output_dir")
    if isinstance(output_dir, str) and cwd is not None:
        data["output_dir"] = str(Path(cwd) / Path(output_dir).expanduser())

    opts.update(**data)


def load_paths(opts: OptManager, *paths: Path | str) -> None:
    """
    Load paths in order. Each path takes precedence over the previous
    path. Paths that don't exist are ignored, errors raise an
    OptionsError.
    """
    for p in paths:
        p = Path(p).expanduser()
        if p.exists() and p.is_file():
            with p.open(encoding="utf8") as f:
                try:
                    txt = f.read()
                except UnicodeDecodeError as e:
                    raise OptionsError(f"Error reading {p}: {e}")
            try:
                load(opts, txt, cwd=p.absolute().parent)
            except OptionsError as e:
                raise OptionsError(f"Error reading {p}: {e}")


def dump_fixtures(specs, file) -> None:
    """
    Write a fixture table as YAML, in the form accepted by the `fixtures`
    option.
    """
    ruamel.yaml.YAML().dump({"fixtures": [s.get_state() for s in specs]}, file)
