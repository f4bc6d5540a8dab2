"""
paystream.cli
=============

Command-line entrypoint for the payment-streaming ledger.

    python -m paystream.cli --help
    python -m paystream.cli config --json
    python -m paystream.cli quote 1000 --rate-bps 30
    python -m paystream.cli simulate --amount 1000 --duration 3600 --step 900

Each sub-module exposes `register(app: typer.Typer) -> None` that attaches its
commands to the root application.
"""

from __future__ import annotations

import logging

import typer

from ..version import __version__
from . import info, simulate

log = logging.getLogger(__name__)


def get_app() -> typer.Typer:
    app = typer.Typer(
        add_completion=False,
        no_args_is_help=True,
        help="Paystream CLI — inspect configuration, quote fees and simulate streams.",
    )

    @app.callback(invoke_without_command=True)
    def _root_callback(
        version: bool = typer.Option(False, "--version", help="Print version and exit."),
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Log ledger activity to stderr."),
    ) -> None:
        if version:
            typer.echo(__version__)
            raise typer.Exit(0)
        if verbose:
            logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    for mod in (info, simulate):
        mod.register(app)
        log.debug("paystream.cli: registered from %s", mod.__name__)
    return app


app = get_app()


def main() -> None:
    """Console entrypoint. Allows `python -m paystream.cli`."""
    app()


__all__ = ["app", "get_app", "main"]
