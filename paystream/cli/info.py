from __future__ import annotations

"""
paystream.cli.info
------------------

- `config`: print the effective configuration (defaults ← file ← env).
- `quote`:  fee and net principal for a gross deposit.

Examples
--------
python -m paystream.cli config --json
python -m paystream.cli quote 1000
python -m paystream.cli quote 1000 --rate-bps 250
"""

import json
from typing import Optional

import typer

from .. import accrual
from .. import config as _config
from ..errors import PaystreamError


def register(app: typer.Typer) -> None:
    @app.command("config")
    def config_cmd(
        as_json: bool = typer.Option(False, "--json", help="Emit compact JSON."),
    ) -> None:
        """Print the effective configuration."""
        try:
            cfg = _config.load()
        except (ValueError, FileNotFoundError, RuntimeError) as e:
            typer.secho(f"config error: {e}", fg=typer.colors.RED, err=True)
            raise typer.Exit(2)
        if as_json:
            typer.echo(json.dumps(cfg.to_dict(), sort_keys=True, separators=(",", ":")))
        else:
            typer.echo(_config.pretty(cfg))

    @app.command("quote")
    def quote_cmd(
        amount: int = typer.Argument(..., help="Gross deposit in base units."),
        rate_bps: Optional[int] = typer.Option(None, "--rate-bps", help="Fee rate; defaults to the configured rate."),
    ) -> None:
        """Show the ingress fee and the streamed principal for AMOUNT."""
        try:
            rate = rate_bps if rate_bps is not None else _config.load().fee.default_rate_bps
            f = accrual.fee(amount, rate)
        except (PaystreamError, ValueError, FileNotFoundError) as e:
            typer.secho(str(e), fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        typer.echo(json.dumps({"gross": amount, "rate_bps": rate, "fee": f, "net": amount - f}))
