# -*- coding: utf-8 -*-
"""
paystream.stream
================

The per-payment entity and its lifecycle state machine.

Statuses
--------
CREATED → ACTIVE            start: stamps ``start_time``
ACTIVE  → PAUSED            pause: stamps ``current_pause_start``
PAUSED  → ACTIVE            resume: folds the open pause into ``accumulated_pause_duration``
{ACTIVE, PAUSED} → CANCELLED   cancel: folds an open pause first; terminal

Withdrawals are not transitions. They are legal while ACTIVE or PAUSED; accrual
simply stops advancing during a pause.

Invariants
----------
- ``balance.value + withdrawn + refunded == initial_amount`` (conservation)
- ``withdrawn`` is non-decreasing and never exceeds ``initial_amount``
- ``current_pause_start is not None`` iff status is PAUSED
- once CANCELLED the stream accepts no further mutation

Every mutating method checks its preconditions before touching any field, so a
raised error leaves the stream exactly as it was.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from . import accrual
from .custody import AssetType, Balance
from .errors import (AlreadyCancelled, CustodyError, InvalidDuration,
                     NotActive, NotCreated, NotPaused)


class StreamStatus(Enum):
    CREATED = "created"
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Settlement:
    """Point-in-time split of a stream's escrow between payee and payer."""
    elapsed: int
    vested: int
    withdrawn: int
    accrued_unwithdrawn: int
    refund: int


@dataclass
class Stream:
    id: str
    asset_type: AssetType
    duration: int
    initial_amount: int
    balance: Balance
    status: StreamStatus = StreamStatus.CREATED
    start_time: Optional[int] = None
    accumulated_pause_duration: int = 0
    current_pause_start: Optional[int] = None
    recipient: Optional[str] = None
    payer_token_id: Optional[str] = None
    payee_token_id: Optional[str] = None
    withdrawn: int = 0
    refunded: int = 0
    limit: int = field(default=accrual.U64_MAX, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.duration, int) or self.duration <= 0:
            raise InvalidDuration(self.duration)
        if self.balance.asset_type != self.asset_type:
            raise CustodyError(
                "stream balance asset does not match stream asset",
                details={"stream": self.asset_type, "balance": self.balance.asset_type},
            )
        if self.balance.value != self.initial_amount:
            raise CustodyError(
                "stream must be funded with exactly its initial amount",
                details={"initial_amount": self.initial_amount, "balance": self.balance.value},
            )

    # ------------------------------------------------------------------
    # status helpers
    # ------------------------------------------------------------------

    @property
    def is_live(self) -> bool:
        return self.status in (StreamStatus.ACTIVE, StreamStatus.PAUSED)

    def _require_not_cancelled(self) -> None:
        if self.status is StreamStatus.CANCELLED:
            raise AlreadyCancelled("stream is cancelled", stream_id=self.id, status=self.status.value)

    def _fold_pause(self, now: int) -> None:
        if self.current_pause_start is not None:
            if now > self.current_pause_start:
                self.accumulated_pause_duration += now - self.current_pause_start
            self.current_pause_start = None

    # ------------------------------------------------------------------
    # transitions
    # ------------------------------------------------------------------

    def activate(self, now: int) -> None:
        self._require_not_cancelled()
        if self.status is not StreamStatus.CREATED:
            raise NotCreated("stream was already started", stream_id=self.id, status=self.status.value)
        self.start_time = now
        self.status = StreamStatus.ACTIVE

    def pause(self, now: int) -> None:
        if self.status is not StreamStatus.ACTIVE:
            raise NotActive("stream is not active", stream_id=self.id, status=self.status.value)
        self.current_pause_start = now
        self.status = StreamStatus.PAUSED

    def resume(self, now: int) -> None:
        if self.status is not StreamStatus.PAUSED:
            raise NotPaused("stream is not paused", stream_id=self.id, status=self.status.value)
        self._fold_pause(now)
        self.status = StreamStatus.ACTIVE

    def cancel(self, now: int, refund: int) -> Balance:
        """
        Move to CANCELLED and take ``refund`` out of the escrow for the payer.

        The caller computes ``refund`` from ``settlement(now)`` under the same
        lock; it is re-checked here against the balance.
        """
        self._require_not_cancelled()
        if refund < 0 or refund > self.balance.value:
            raise CustodyError(
                "refund exceeds stream balance",
                details={"refund": refund, "balance": self.balance.value},
            )
        self._fold_pause(now)
        self.status = StreamStatus.CANCELLED
        self.refunded += refund
        return self.balance.split(refund)

    # ------------------------------------------------------------------
    # accrual
    # ------------------------------------------------------------------

    def elapsed(self, now: int) -> int:
        if self.start_time is None:
            return 0
        return accrual.elapsed_active_time(
            now, self.start_time, self.accumulated_pause_duration, self.current_pause_start
        )

    def vested(self, now: int) -> int:
        return accrual.vested_amount(self.elapsed(now), self.duration, self.initial_amount, limit=self.limit)

    def withdrawable(self, now: int) -> int:
        if not self.is_live:
            return 0
        avail = self.vested(now) - self.withdrawn
        return avail if avail > 0 else 0

    def settlement(self, now: int) -> Settlement:
        elapsed = self.elapsed(now)
        vested = accrual.vested_amount(elapsed, self.duration, self.initial_amount, limit=self.limit)
        owed = vested - self.withdrawn
        if owed < 0:
            owed = 0
        refund = self.balance.value - owed
        return Settlement(
            elapsed=elapsed,
            vested=vested,
            withdrawn=self.withdrawn,
            accrued_unwithdrawn=owed,
            refund=refund if refund > 0 else 0,
        )

    def pay_out(self, amount: int) -> Balance:
        """Debit ``amount`` from the escrow towards the payee."""
        self._require_not_cancelled()
        if self.withdrawn + amount > self.initial_amount:
            raise CustodyError(
                "payout would exceed the stream principal",
                details={"withdrawn": self.withdrawn, "amount": amount, "initial_amount": self.initial_amount},
            )
        taken = self.balance.split(amount)
        self.withdrawn += amount
        return taken

    # ------------------------------------------------------------------
    # views
    # ------------------------------------------------------------------

    def to_dict(self, now: Optional[int] = None) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "asset_type": self.asset_type,
            "status": self.status.value,
            "duration": self.duration,
            "initial_amount": self.initial_amount,
            "balance": self.balance.value,
            "start_time": self.start_time,
            "accumulated_pause_duration": self.accumulated_pause_duration,
            "current_pause_start": self.current_pause_start,
            "recipient": self.recipient,
            "withdrawn": self.withdrawn,
            "refunded": self.refunded,
        }
        if now is not None:
            d["elapsed"] = self.elapsed(now)
            d["vested"] = self.vested(now)
            d["withdrawable"] = self.withdrawable(now)
        return d


__all__ = ["StreamStatus", "Settlement", "Stream"]
