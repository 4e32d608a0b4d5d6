"""``cf-provisioner`` command line entry point."""

from __future__ import annotations

import logging
import os
import sys

import typer

from cf_provisioner import __version__

LOG_ENV_VAR = "CF_PROVISIONER_LOG"

_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
_LOG_DATEFMT = "%H:%M:%S"
_VERBOSITY = (logging.WARNING, logging.INFO, logging.DEBUG)

app = typer.Typer(
    name="cf-provisioner",
    help="Provision and deploy a Cloudflare Pages site with D1, R2, DNS and Access.",
    no_args_is_help=True,
    add_completion=False,
)


def _log_level(verbose: int) -> int | None:
    """Level for the ``cf_provisioner`` logger, or None to leave logging alone.

    ``CF_PROVISIONER_LOG`` wins over ``-v``; an unknown name falls back to INFO.
    """
    name = os.environ.get(LOG_ENV_VAR, "").strip().upper()
    if name:
        level = logging.getLevelNamesMapping().get(name)
        if level is None:
            print(
                f"WARNING: invalid {LOG_ENV_VAR} level '{name}'; using INFO",
                file=sys.stderr,
            )
            return logging.INFO
        return level
    if verbose <= 0:
        return None
    return _VERBOSITY[min(verbose, len(_VERBOSITY) - 1)]


def _configure_logging(verbose: int) -> None:
    level = _log_level(verbose)
    if level is None:
        return
    # Root stays at WARNING so requests/urllib3 chatter is hidden at -vv.
    logging.basicConfig(
        level=logging.WARNING,
        format=_LOG_FORMAT,
        datefmt=_LOG_DATEFMT,
        stream=sys.stderr,
        force=True,
    )
    logging.getLogger("cf_provisioner").setLevel(level)


def _print_version(value: bool) -> None:
    if not value:
        return
    typer.echo(f"cf-provisioner {__version__}")
    raise typer.Exit


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Print the version and exit.",
        callback=_print_version,
        is_eager=True,
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="More log output: -v for progress detail, -vv for API and command traces.",
    ),
) -> None:
    _ = version
    _configure_logging(verbose)


# Commands register themselves on ``app``.
from cf_provisioner.cli import commands as _commands  # noqa: E402, F401
