# -*- coding: utf-8 -*-
"""
paystream.accrual
=================

Integer-only accrual arithmetic shared by every settlement path.

Three pure functions:

- ``fee(gross, rate_bps)``: gross-up ingress fee, i.e. the fee is ``rate_bps``
  of the *net* principal, not of the gross deposit::

      fee = ceil(gross * rate_bps / (FEE_BASE + rate_bps))

- ``elapsed_active_time(now, start, paused, pause_start)``: wall time since
  activation minus every paused interval, including an open one.

- ``vested_amount(elapsed, duration, initial)``: linear vesting,
  ``min(initial, floor(elapsed * initial / duration))``.

Conventions
-----------
- No floats. Products are formed on Python's unbounded ints and only then
  divided, so there is no truncating cast before the divide.
- Amount inputs and results must fit the asset width (``U64_MAX`` unless the
  caller passes ``limit``); anything outside raises ``ArithmeticOverflow``.
- Payer refunds and payee withdrawals both call ``vested_amount``; nothing else
  in the package computes vesting.
"""

from __future__ import annotations

from typing import Final, Optional

from .errors import ArithmeticOverflow, FeeRateInvalid, InvalidDuration

FEE_BASE: Final[int] = 10_000  # basis points denominator
U64_MAX: Final[int] = (1 << 64) - 1


def width_limit(bits: int) -> int:
    """Largest unsigned value representable in ``bits`` bits."""
    if bits <= 0:
        raise ValueError(f"bits must be positive (got {bits})")
    return (1 << bits) - 1


def _require_width(op: str, limit: int, **values: int) -> None:
    for v in values.values():
        if v < 0 or v > limit:
            raise ArithmeticOverflow(op, limit=limit, values=values)


def _ceil_div(n: int, d: int) -> int:
    return -((-n) // d)


# ---------------------------------------------------------------------------
# Fee
# ---------------------------------------------------------------------------


def fee(gross_amount: int, rate_bps: int, *, limit: int = U64_MAX) -> int:
    """
    Ingress fee for a gross deposit.

    ``fee / (gross - fee)`` approximates ``rate_bps / FEE_BASE``; rounding is UP
    so the protocol never under-collects. ``rate_bps == 0`` yields 0.

    Raises FeeRateInvalid if ``rate_bps`` is negative or above FEE_BASE and
    ArithmeticOverflow if ``gross_amount`` is outside ``[0, limit]``.
    """
    if not isinstance(rate_bps, int) or rate_bps < 0 or rate_bps > FEE_BASE:
        raise FeeRateInvalid(rate_bps, lo=0, hi=FEE_BASE)
    _require_width("fee", limit, gross_amount=gross_amount)
    if rate_bps == 0 or gross_amount == 0:
        return 0
    # widened product first, then divide
    product = gross_amount * rate_bps
    out = _ceil_div(product, FEE_BASE + rate_bps)
    _require_width("fee", limit, fee=out)
    return out


def net_of_fee(gross_amount: int, rate_bps: int, *, limit: int = U64_MAX) -> int:
    """Principal left after the ingress fee is skimmed."""
    return gross_amount - fee(gross_amount, rate_bps, limit=limit)


# ---------------------------------------------------------------------------
# Time & vesting
# ---------------------------------------------------------------------------


def elapsed_active_time(
    now: int,
    start_time: int,
    accumulated_pause_duration: int,
    current_pause_start: Optional[int] = None,
) -> int:
    """
    Active (non-paused) time since ``start_time`` as seen at ``now``.

    An open pause (``current_pause_start`` set) is subtracted without being
    persisted anywhere. Clamped at 0.
    """
    open_pause = 0
    if current_pause_start is not None and now > current_pause_start:
        open_pause = now - current_pause_start
    elapsed = now - start_time - accumulated_pause_duration - open_pause
    return elapsed if elapsed > 0 else 0


def vested_amount(elapsed: int, duration: int, initial_amount: int, *, limit: int = U64_MAX) -> int:
    """
    Linear vesting: ``min(initial, floor(elapsed * initial / duration))``.

    Multiply before divide; the product lives in an unbounded int.
    """
    if not isinstance(duration, int) or duration <= 0:
        raise InvalidDuration(duration)
    _require_width("vested_amount", limit, initial_amount=initial_amount)
    if elapsed <= 0 or initial_amount == 0:
        return 0
    if elapsed >= duration:
        return initial_amount
    return (elapsed * initial_amount) // duration


__all__ = [
    "FEE_BASE",
    "U64_MAX",
    "width_limit",
    "fee",
    "net_of_fee",
    "elapsed_active_time",
    "vested_amount",
]
