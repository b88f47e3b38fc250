from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from certfixtures import certs
from certfixtures import exceptions
from certfixtures import fixtures
from certfixtures import log
from certfixtures import options
from certfixtures import store
from certfixtures import trust
from certfixtures import version

logger = logging.getLogger(__name__)


def _load_options(config: tuple[str, ...], **overrides) -> options.Options:
    opts = options.Options()
    options.load_paths(opts, options.CONF_FILE, *config)
    opts.update(**{k: v for k, v in overrides.items() if v is not None})
    return opts


def run(opts: options.Options) -> dict[str, fixtures.GeneratedFixture]:
    """
    Generate the configured fixtures, write them and, if requested, install
    the chain CA. Returns the generated batch.
    """
    specs = opts.fixture_specs()
    if opts.only:
        specs = tuple(fixtures.select(specs, opts.only))
    if opts.install_ca and opts.trust_ca not in {s.name for s in specs}:
        raise exceptions.OptionsError(f"Unknown CA fixture: {opts.trust_ca}")

    logger.info(f"Generating {len(specs)} fixtures...")
    generated = fixtures.generate_all(specs)
    store.write_fixtures(generated, specs, opts.output_dir, clean=opts.clean)

    if opts.install_ca:
        logger.info("Making CA cert trusted system-wide...")
        ca = generated[opts.trust_ca]
        trust.install_ca(
            ca.cert.to_pem(),
            trust_dir=opts.trust_dir,
            name=opts.trust_name,
        )
    return generated


def _print_version(ctx, param, value):
    if not value or ctx.resilient_parsing:
        return
    click.echo(version.dump_system_info())
    ctx.exit()


@click.group()
@click.option(
    "--version",
    is_flag=True,
    expose_value=False,
    is_eager=True,
    callback=_print_version,
    help="Show version information and exit.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log every key and certificate generated.")
@click.option("-q", "--quiet", is_flag=True, help="Only log errors.")
def cli(verbose, quiet):
    """Generate TLS test certificates and keys."""
    if quiet:
        level = "error"
    elif verbose:
        level = "debug"
    else:
        level = "info"
    log.FixtureLogHandler().install(level)


@cli.command()
@click.option("-o", "--output-dir", type=click.Path(file_okay=False), help="Output directory.")
@click.option("-c", "--config", multiple=True, type=click.Path(dir_okay=False), help="YAML config file.")
@click.option("--only", multiple=True, help="Only write this fixture (repeatable).")
@click.option("--no-clean", is_flag=True, help="Keep existing PEM files in the output directory.")
@click.option("--install-ca", is_flag=True, help="Install the chain CA system-wide.")
@click.option("--trust-dir", type=click.Path(file_okay=False), help="System trust store directory.")
@click.option("--trust-name", help="File name of the installed CA certificate.")
def generate(output_dir, config, only, no_clean, install_ca, trust_dir, trust_name):
    """Generate and write all fixtures."""
    try:
        opts = _load_options(
            config,
            output_dir=output_dir,
            only=list(only) or None,
            clean=False if no_clean else None,
            install_ca=install_ca or None,
            trust_dir=trust_dir,
            trust_name=trust_name,
        )
        run(opts)
    except exceptions.FixtureError as e:
        logger.error(str(e))
        sys.exit(1)


@cli.command("list")
@click.option("-c", "--config", multiple=True, type=click.Path(dir_okay=False), help="YAML config file.")
@click.option("--yaml", "as_yaml", is_flag=True, help="Print the table as a YAML config.")
def list_fixtures(config, as_yaml):
    """Print the fixture table."""
    try:
        specs = _load_options(config).fixture_specs()
    except exceptions.FixtureError as e:
        logger.error(str(e))
        sys.exit(1)

    if as_yaml:
        options.dump_fixtures(specs, sys.stdout)
        return
    for s in specs:
        files = f"{s.key_file} / {s.cert_file}" if s.written else "(not written)"
        signer = f"signed by {s.issuer}" if s.issuer else "self-signed"
        click.echo(
            f"{s.name:<14} {s.key_algorithm.value}:{s.key_params:<6} {s.signature_hash.value:<7}"
            f"O={s.organization:<14} {signer:<24} {files}"
        )


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def show(path):
    """Describe each certificate in a PEM file."""
    try:
        chain = certs.split_pem_chain(Path(path).read_bytes())
    except ValueError as e:
        logger.error(f"{path}: {e}")
        sys.exit(1)
    for i, c in enumerate(chain):
        key_name, key_size = c.keyinfo
        click.echo(f"[{i}] subject:   {', '.join(f'{k}={v}' for k, v in c.subject)}")
        click.echo(f"    issuer:    {', '.join(f'{k}={v}' for k, v in c.issuer)}")
        click.echo(f"    altnames:  {', '.join(c.altnames) or '-'}")
        click.echo(f"    key:       {key_name} {key_size}")
        click.echo(f"    signature: {c.signature_hash}")
        click.echo(f"    validity:  {c.notbefore.isoformat()} .. {c.notafter.isoformat()}")


def main() -> None:  # pragma: no cover
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
