from __future__ import annotations

"""
paystream.cli.simulate
----------------------

Run one stream end-to-end on a manual clock and print what each party gets.

Output is JSON lines: one `withdraw` record per step, optional `pause`,
`resume` and `cancel` records, then a final `summary`.

Examples
--------
# 1000 units over 3600 time units, payee withdraws every 900
python -m paystream.cli simulate --amount 1000 --duration 3600 --step 900

# pause between 1000 and 2000, cancel at 3000
python -m paystream.cli simulate --amount 1000 --duration 3600 --step 600 \
    --pause-at 1000 --resume-at 2000 --cancel-at 3000
"""

import json
from typing import Any, Dict, List, Optional

import typer

from ..clock import ManualClock
from ..config import PaystreamConfig
from ..custody import Balance
from ..errors import PaystreamError
from ..events import MemoryEventSink
from ..registry import Registry
from ..service import StreamService

RECIPIENT = "payee"


def _emit(rec: Dict[str, Any]) -> None:
    typer.echo(json.dumps(rec, sort_keys=True, separators=(",", ":")))


def run_simulation(
    *,
    amount: int,
    duration: int,
    step: int,
    rate_bps: int,
    asset: str = "NATIVE",
    pause_at: Optional[int] = None,
    resume_at: Optional[int] = None,
    cancel_at: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Drive a single stream and return the records that `simulate` prints."""
    if step <= 0:
        raise typer.BadParameter("--step must be positive")
    if resume_at is not None and (pause_at is None or resume_at <= pause_at):
        raise typer.BadParameter("--resume-at requires an earlier --pause-at")

    cfg = PaystreamConfig()
    cfg.fee.default_rate_bps = rate_bps
    cfg.assets.native_asset = asset
    registry, admin = Registry.genesis(cfg, sink=MemoryEventSink())
    clock = ManualClock(0)
    svc = StreamService(registry, clock=clock)

    stream = svc.create_payment(Balance(asset, amount), duration)
    fee = registry.fee_reserve(asset)
    payer = svc.start_payment(stream, recipient=RECIPIENT)
    (payee,) = svc.inbox.claim_tokens(RECIPIENT)

    paused_for = 0
    if pause_at is not None:
        paused_for = (resume_at - pause_at) if resume_at is not None else 0
    end = cancel_at if cancel_at is not None else duration + paused_for

    points = set(range(step, end + 1, step))
    points.add(end)
    for t in (pause_at, resume_at, cancel_at):
        if t is not None and 0 < t <= end:
            points.add(t)

    out: List[Dict[str, Any]] = []
    withdrawn = refund = settled = 0
    for t in sorted(points):
        clock.set(t)
        if t == pause_at:
            svc.pause_payment(payer)
            out.append({"event": "pause", "time": t})
        if t == resume_at:
            svc.resume_payment(payer)
            out.append({"event": "resume", "time": t})
        if t == cancel_at:
            # a fully paid-out stream has nothing left to cancel against
            if stream.balance.value > 0:
                refund = svc.cancel_payment(payer).value
                settled = svc.inbox.pending_funds(RECIPIENT, asset)
            out.append({"event": "cancel", "time": t, "refund": refund, "payee_settlement": settled})
            break
        if t % step == 0 or t == end:
            paid = svc.withdraw_payment(payee).value
            withdrawn += paid
            out.append({"event": "withdraw", "time": t, "amount": paid, "total": withdrawn})

    out.append({
        "event": "summary",
        "gross": amount,
        "fee": fee,
        "net": stream.initial_amount,
        "withdrawn": withdrawn,
        "payee_settlement": settled,
        "refund": refund,
        "events": len(registry.sink.events),
    })
    return out


def register(app: typer.Typer) -> None:
    @app.command("simulate")
    def simulate_cmd(
        amount: int = typer.Option(..., "--amount", help="Gross deposit in base units."),
        duration: int = typer.Option(..., "--duration", help="Stream duration in time units."),
        step: int = typer.Option(0, "--step", help="Withdraw interval; defaults to duration/4."),
        rate_bps: int = typer.Option(30, "--rate-bps", help="Ingress fee rate in bps."),
        asset: str = typer.Option("NATIVE", "--asset", help="Asset type name."),
        pause_at: Optional[int] = typer.Option(None, "--pause-at"),
        resume_at: Optional[int] = typer.Option(None, "--resume-at"),
        cancel_at: Optional[int] = typer.Option(None, "--cancel-at"),
    ) -> None:
        """Simulate a stream and print the payout schedule as JSON lines."""
        try:
            records = run_simulation(
                amount=amount,
                duration=duration,
                step=step or max(1, duration // 4),
                rate_bps=rate_bps,
                asset=asset,
                pause_at=pause_at,
                resume_at=resume_at,
                cancel_at=cancel_at,
            )
        except (PaystreamError, ValueError) as e:
            typer.secho(str(e), fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        for rec in records:
            _emit(rec)
