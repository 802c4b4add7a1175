"""dotted-tree CLI entry point."""

import asyncio
import json
import logging
from pathlib import Path

import click

from dotted_tree.document import Document
from dotted_tree.exceptions import DottedError
from dotted_tree.loaders.file import read_tree
from dotted_tree.variants import normalize_context, resolve_variant_path

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _parse_vars(ctx, param, values):
    """Turn repeated ``--var key=value`` options into a dict."""
    variants = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected key=value, got '{item}'")
        variants[key.strip()] = value.strip()
    return variants


_var_option = click.option(
    "--var",
    "variants",
    multiple=True,
    callback=_parse_vars,
    help="Variant dimension as key=value (repeatable), e.g. --var lang=es.",
)


def _fail(message: str):
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    raise SystemExit(1)


def _load(file: Path) -> dict:
    try:
        return read_tree(file)
    except DottedError as e:
        _fail(str(e))


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging level for dotted_tree loggers.",
)
def cli(log_level: str):
    """dotted-tree: evaluate expression properties in JSON/YAML documents."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("path")
@_var_option
@click.option("--fresh", is_flag=True, default=False, help="Bypass the read cache.")
def get(file: Path, path: str, variants: dict, fresh: bool):
    """Print the evaluated value at PATH as JSON."""
    document = Document(_load(file), variants=variants)
    try:
        value = asyncio.run(document.get(path, fresh=fresh))
    except DottedError as e:
        _fail(str(e))

    click.echo(json.dumps(value, indent=2, ensure_ascii=False, default=str))


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("path", required=False)
def keys(file: Path, path: str | None):
    """List the keys of the container at PATH (the root when omitted)."""
    document = Document(_load(file))
    for key in document.all_keys(path):
        click.echo(key)


@cli.command()
@click.argument("base")
@click.argument("names", nargs=-1, required=True)
@_var_option
def variant(base: str, names: tuple[str, ...], variants: dict):
    """Print which of NAMES best matches BASE under the given variants."""
    click.echo(resolve_variant_path(base, normalize_context(variants), names))
