from __future__ import annotations

"""
StreamService — create / start / pause / resume / cancel / withdraw.

Orchestrates Stream + Registry + accrual under capability checks. Every
operation is a single synchronous transaction against one stream:

  1) authorize the token (kind + issuing registry), without locks
  2) borrow the stream exclusively from the registry
  3) verify the token is the one issued for that stream
  4) compute everything that can fail
  5) apply the mutation, emit the notification

A raised PaystreamError therefore leaves registry, stream, token and funds
untouched.

Typical use
~~~~~~~~~~~
>>> registry, admin = Registry.genesis()
>>> svc = StreamService(registry, clock=ManualClock())
>>> stream = svc.create_payment(Balance("NATIVE", 1000), duration=3600)
>>> payer = svc.start_payment(stream, recipient="0xbob")
>>> payee, = svc.inbox.claim_tokens("0xbob")
>>> paid = svc.withdraw_payment(payee)
"""

import functools
import logging
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

from . import accrual, metrics
from .clock import Clock, make_clock
from .custody import Balance
from .errors import (AlreadyCancelled, InvalidAmount, InvalidDuration,
                     NotCreated, NothingToRefund, PaystreamError,
                     ValidationError)
from .events import (PaymentWithdrawn, StreamActivated, StreamCancelled,
                     StreamCreated, StreamPaused, StreamResumed)
from .inbox import Inbox
from .registry import Registry
from .stream import Stream, StreamStatus
from .tokens import PayeeToken, PayerToken

log = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _tracked(op: str) -> Callable[[F], F]:
    """Count and log rejected operations; the error itself propagates unchanged."""

    def deco(fn: F) -> F:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return fn(*args, **kwargs)
            except PaystreamError as e:
                metrics.OPERATION_FAILURES.labels(op=op, code=e.code).inc()
                log.info("service: %s rejected: %s", op, e)
                raise

        return wrapper  # type: ignore[return-value]

    return deco


class StreamService:
    def __init__(
        self,
        registry: Registry,
        *,
        clock: Optional[Clock] = None,
        inbox: Optional[Inbox] = None,
    ) -> None:
        self.registry = registry
        self.clock: Clock = clock or make_clock(registry.config.clock.unit)
        self.inbox = inbox or Inbox()

    @property
    def sink(self):
        return self.registry.sink

    # ------------------------------------------------------------------
    # create / start
    # ------------------------------------------------------------------

    def quote_fee(self, amount: int) -> Tuple[int, int]:
        """(fee, net principal) a deposit of `amount` would yield at the current rate."""
        f = accrual.fee(amount, self.registry.fee_rate_bps, limit=self.registry.limit)
        return f, amount - f

    @_tracked("create")
    def create_payment(self, deposit: Balance, duration: int) -> Stream:
        """
        Skim the ingress fee from `deposit` into the registry's reserve and wrap
        the remainder in a new, unattached CREATED stream. The deposit balance
        is consumed.
        """
        self.registry.require_whitelisted(deposit.asset_type)
        if not isinstance(duration, int) or isinstance(duration, bool) or duration <= 0:
            raise InvalidDuration(duration)
        if deposit.value <= 0:
            raise InvalidAmount(deposit.value)
        fee_amt, net = self.quote_fee(deposit.value)
        if net <= 0:
            raise InvalidAmount(deposit.value, message="deposit does not cover the ingress fee")

        self.registry.deposit_fee(deposit.split(fee_amt))
        principal = deposit.withdraw_all()
        stream = Stream(
            id=self.registry.new_stream_id(),
            asset_type=principal.asset_type,
            duration=duration,
            initial_amount=net,
            balance=principal,
            limit=self.registry.limit,
        )
        metrics.STREAMS_CREATED.labels(asset=stream.asset_type).inc()
        log.info(
            "service: created stream=%s asset=%s gross=%d fee=%d net=%d duration=%d",
            stream.id, stream.asset_type, net + fee_amt, fee_amt, net, duration,
        )
        self.sink.emit(StreamCreated(id=stream.id))
        return stream

    @_tracked("start")
    def start_payment(self, stream: Stream, recipient: str) -> PayerToken:
        """
        CREATED → ACTIVE: attach the stream, deliver its PayeeToken to
        `recipient` and return the PayerToken to the caller.
        """
        if not isinstance(recipient, str) or not recipient:
            raise ValidationError("recipient must be a non-empty address", details={"recipient": repr(recipient)})
        self.registry.require_whitelisted(stream.asset_type)

        # reserve first: nothing below may run twice for one stream
        with self.registry.reserve(stream.id):
            now = self.clock.now()
            stream.activate(now)
            stream.recipient = recipient
            payer, payee = self.registry.mint_stream_tokens(stream)
            self.registry.attach(stream)
        self.inbox.send_token(recipient, payee)

        metrics.STREAMS_ACTIVATED.labels(asset=stream.asset_type).inc()
        log.info("service: started stream=%s recipient=%s at=%d", stream.id, recipient, now)
        self.sink.emit(StreamActivated(id=stream.id, recipient=recipient, time=now))
        return payer

    @_tracked("discard")
    def discard_payment(self, stream: Stream) -> Balance:
        """
        Destroy a stream that was never started and hand its principal back.
        The ingress fee is not returned.
        """
        with self.registry.reserve(stream.id):
            if stream.status is StreamStatus.CANCELLED:
                raise AlreadyCancelled("stream is cancelled", stream_id=stream.id, status=stream.status.value)
            if stream.status is not StreamStatus.CREATED:
                raise NotCreated("only unstarted streams can be discarded", stream_id=stream.id, status=stream.status.value)
            now = self.clock.now()
            refund = stream.cancel(now, stream.balance.value)
            stream.balance.destroy_zero()
        log.info("service: discarded stream=%s refund=%d", stream.id, refund.value)
        self.sink.emit(StreamCancelled(id=stream.id, refund=refund.value, payee_settlement=0, time=now))
        return refund

    # ------------------------------------------------------------------
    # payer side
    # ------------------------------------------------------------------

    @_tracked("pause")
    def pause_payment(self, payer_token: PayerToken) -> None:
        sid = self.registry.stream_id_for(payer_token, PayerToken)
        with self.registry.borrow(sid) as stream:
            self.registry.require_bound(stream, payer_token)
            now = self.clock.now()
            stream.pause(now)
            asset = stream.asset_type
        metrics.STREAMS_PAUSED.labels(asset=asset).inc()
        log.info("service: paused stream=%s at=%d", sid, now)
        self.sink.emit(StreamPaused(id=sid, time=now))

    @_tracked("resume")
    def resume_payment(self, payer_token: PayerToken) -> None:
        sid = self.registry.stream_id_for(payer_token, PayerToken)
        with self.registry.borrow(sid) as stream:
            self.registry.require_bound(stream, payer_token)
            now = self.clock.now()
            stream.resume(now)
            asset = stream.asset_type
        metrics.STREAMS_RESUMED.labels(asset=asset).inc()
        log.info("service: resumed stream=%s at=%d", sid, now)
        self.sink.emit(StreamResumed(id=sid, time=now))

    @_tracked("cancel")
    def cancel_payment(self, payer_token: PayerToken) -> Balance:
        """
        Stop the stream for good. The payer gets back
        ``balance - (vested - withdrawn)``; the vested-but-unwithdrawn part is
        delivered to the recipient's inbox. The stream is detached and
        destroyed.
        """
        sid = self.registry.stream_id_for(payer_token, PayerToken)
        with self.registry.borrow(sid) as stream:
            self.registry.require_bound(stream, payer_token)
            if stream.balance.value == 0:
                raise NothingToRefund("stream balance is empty", stream_id=sid, status=stream.status.value)

            now = self.clock.now()
            settlement = stream.settlement(now)
            log.debug(
                "service: cancel stream=%s elapsed=%d vested=%d withdrawn=%d owed=%d refund=%d",
                sid, settlement.elapsed, settlement.vested, settlement.withdrawn,
                settlement.accrued_unwithdrawn, settlement.refund,
            )
            to_payee = stream.pay_out(settlement.accrued_unwithdrawn)
            refund = stream.cancel(now, settlement.refund)
            stream.balance.destroy_zero()
            self.registry.detach(sid)
            recipient = stream.recipient or ""
            asset = stream.asset_type

        self.inbox.send_funds(recipient, to_payee)
        metrics.STREAMS_CANCELLED.labels(asset=asset).inc()
        metrics.REFUNDED_AMOUNT.labels(asset=asset).inc(refund.value)
        metrics.WITHDRAWN_AMOUNT.labels(asset=asset).inc(settlement.accrued_unwithdrawn)
        log.info(
            "service: cancelled stream=%s refund=%d payee_settlement=%d at=%d",
            sid, refund.value, settlement.accrued_unwithdrawn, now,
        )
        self.sink.emit(
            StreamCancelled(
                id=sid,
                refund=refund.value,
                payee_settlement=settlement.accrued_unwithdrawn,
                time=now,
            )
        )
        return refund

    # ------------------------------------------------------------------
    # payee side
    # ------------------------------------------------------------------

    @_tracked("withdraw")
    def withdraw_payment(self, payee_token: PayeeToken) -> Balance:
        """
        Pay out everything vested and not yet withdrawn through this token.
        Zero is a valid result (e.g. twice in the same instant, or while paused
        after a prior withdrawal).
        """
        sid = self.registry.stream_id_for(payee_token, PayeeToken)
        with self.registry.borrow(sid) as stream:
            self.registry.require_bound(stream, payee_token)
            now = self.clock.now()
            vested = stream.vested(now)
            available = vested - payee_token.withdrawn_amount
            if available < 0:
                available = 0
            paid = stream.pay_out(available)
            payee_token._credit(available)
            asset = stream.asset_type

        metrics.WITHDRAWALS.labels(asset=asset).inc()
        metrics.WITHDRAWN_AMOUNT.labels(asset=asset).inc(available)
        log.info("service: withdraw stream=%s amount=%d vested=%d at=%d", sid, available, vested, now)
        self.sink.emit(PaymentWithdrawn(id=sid, amount=available, time=now))
        return paid

    # ------------------------------------------------------------------
    # views
    # ------------------------------------------------------------------

    def withdrawable(self, payee_token: PayeeToken) -> int:
        sid = self.registry.stream_id_for(payee_token, PayeeToken)
        with self.registry.borrow(sid) as stream:
            self.registry.require_bound(stream, payee_token)
            avail = stream.vested(self.clock.now()) - payee_token.withdrawn_amount
        return avail if avail > 0 else 0

    def stream_info(self, stream_id: str) -> Dict[str, Any]:
        with self.registry.borrow(stream_id) as stream:
            return stream.to_dict(now=self.clock.now())


__all__ = ["StreamService"]
