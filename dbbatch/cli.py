#!/usr/bin/env python3
"""
dbbatch – run SQL batches from the shell.

    dbbatch run -e dev -f fixups.sql --flavor affected
    dbbatch run -q "SELECT * FROM users WHERE id = :id" --bind id=7 --flavor row
    dbbatch split fixups.sql

Bindings are parsed as YAML scalars/lists (``--bind ids=[1,2,3]``); a type
hint can be attached with ``--hint ids=in_int``.
"""
from __future__ import annotations

import decimal
import logging
import pathlib
import sys
import typing as t

import click
import yaml

from dbbatch import __version__
from dbbatch.binder import HINTS
from dbbatch.config import ConfigError, Environment, load
from dbbatch.driver import connection
from dbbatch.engine import Engine
from dbbatch.errors import DbBatchError
from dbbatch.flavors import FLAVORS
from dbbatch.utils import split_statements


def _load_env(ctx, _param, value) -> Environment:
    try:
        return load(ctx.obj["config_path"], value)
    except ConfigError as exc:
        click.echo(f"Config error: {exc}", err=True)
        sys.exit(1)


def _parse_pairs(items: t.Iterable[str], what: str) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for item in items:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"{item!r} is not NAME=VALUE", param_hint=what)
        pairs[name.strip()] = value
    return pairs


def _bindings(binds: t.Iterable[str], hints: t.Iterable[str]) -> dict[str, t.Any]:
    values = {k: yaml.safe_load(v) for k, v in _parse_pairs(binds, "--bind").items()}
    for name, hint in _parse_pairs(hints, "--hint").items():
        if name not in values:
            raise click.BadParameter(f"no --bind for {name!r}", param_hint="--hint")
        if hint not in HINTS:
            raise click.BadParameter(f"unknown type {hint!r}", param_hint="--hint")
        values[name] = (values[name], hint)
    return values


def _plain(value: t.Any) -> t.Any:
    """Make driver values printable by yaml.safe_dump."""
    if isinstance(value, dict):
        return {_plain(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, decimal.Decimal):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", "replace")
    return value


def _echo_result(result: t.Any) -> None:
    if isinstance(result, (dict, list, tuple)):
        click.echo(yaml.safe_dump(_plain(result), sort_keys=False, allow_unicode=True).rstrip())
    else:
        click.echo(result)


@click.group()
@click.option(
    "-c", "--config", "config_path", type=click.Path(), help="env config YAML/TOML"
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
@click.pass_context
def main(ctx, config_path, log_level):
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"config_path": pathlib.Path(config_path) if config_path else None}


@main.command()
def version():
    click.echo(__version__)


@main.command("split")
@click.argument("sql_file", type=click.File("r", encoding="utf-8"))
def split_cmd(sql_file):
    """Print the statements a file would be split into."""
    for i, stmt in enumerate(split_statements(sql_file.read()), 1):
        click.echo(f"-- [{i}]\n{stmt}")


@main.command()
@click.option("-e", "--env", callback=_load_env, expose_value=True)
@click.option("-q", "--query", "sql", help="SQL text to run")
@click.option(
    "-f", "--file", "sql_file", type=click.Path(exists=True, dir_okay=False),
    help="file holding the SQL to run",
)
@click.option("--flavor", type=click.Choice(sorted(FLAVORS)), default="bool", show_default=True)
@click.option("--bind", "binds", multiple=True, metavar="NAME=VALUE")
@click.option("--hint", "hints", multiple=True, metavar="NAME=TYPE")
@click.option("--max-run-time", type=int)
@click.option("--max-tries", type=int)
@click.option("--sleep", type=int)
@click.option("--no-transaction", is_flag=True)
@click.option("--stats", "show_stats", is_flag=True, help="print per-statement timings")
@click.option("--debug", is_flag=True, help="dump every executed statement")
def run(env, sql, sql_file, flavor, binds, hints, max_run_time, max_tries, sleep,
        no_transaction, show_stats, debug):
    if bool(sql) == bool(sql_file):
        raise click.UsageError("Pass exactly one of --query / --file.")
    if sql_file:
        sql = pathlib.Path(sql_file).read_text(encoding="utf-8")
    bindings = _bindings(binds, hints)
    if debug:
        logging.getLogger("dbbatch").setLevel(logging.DEBUG)

    with connection(env) as handle:
        engine = Engine(
            handle,
            settings=env.settings(),
            max_run_time=max_run_time,
            max_tries=max_tries,
            sleep=sleep,
        )
        try:
            result = engine.query(
                sql, bindings, flavor, transaction=not no_transaction, debug=debug
            )
        except DbBatchError as exc:
            click.echo(f"Error: {exc}", err=True)
            if exc.__cause__ is not None:
                click.echo(f"Caused by: {exc.__cause__}", err=True)
            sys.exit(1)

    _echo_result(result)
    if show_stats:
        snap = engine.stats.snapshot()
        click.echo(f"-- {snap['queries']} statement(s) executed")
        for stmt, times in snap["timings"].items():
            total_ms = sum(times) * 1000
            click.echo(f"-- {total_ms:8.2f} ms  x{len(times)}  {stmt}")
