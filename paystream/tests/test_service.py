from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from paystream import config, metrics
from paystream.clock import ManualClock, SystemClock
from paystream.config import ClockConfig, PaystreamConfig
from paystream.custody import Balance
from paystream.errors import (AlreadyCancelled, ArithmeticOverflow,
                              AssetNotWhitelisted, AuthorizationError,
                              InvalidAmount, InvalidDuration, NotActive,
                              NotCreated, NothingToRefund, NotPaused,
                              StreamNotFound, ValidationError)
from paystream.events import (PaymentWithdrawn, StreamActivated,
                              StreamCancelled, StreamCreated)
from paystream.registry import Registry
from paystream.service import StreamService
from paystream.stream import StreamStatus

from .conftest import NATIVE, RECIPIENT

# --------------------------- create / start ---------------------------


def test_create_skims_fee_and_wraps_net(service, registry, deposit, sink):
    dep = deposit(1000)
    stream = service.create_payment(dep, 3600)
    assert stream.status is StreamStatus.CREATED
    assert stream.initial_amount == 997
    assert stream.balance.value == 997
    assert dep.value == 0
    assert registry.fee_reserve(NATIVE) == 3
    # not attached until started
    assert not registry.contains(stream.id)
    assert sink.of_type(StreamCreated)[-1].id == stream.id


def test_create_rejects_unsupported_asset_before_moving_funds(service, registry, deposit):
    dep = deposit(1000, "DOGE")
    with pytest.raises(AssetNotWhitelisted) as ei:
        service.create_payment(dep, 3600)
    assert isinstance(ei.value, ValidationError)
    assert dep.value == 1000
    assert registry.fee_reserve("DOGE") == 0
    assert len(registry) == 0


@pytest.mark.parametrize("bad", [0, -1, True, 1.5])
def test_create_rejects_bad_duration(service, registry, deposit, bad):
    dep = deposit(1000)
    with pytest.raises(InvalidDuration):
        service.create_payment(dep, bad)
    assert dep.value == 1000
    assert registry.fee_reserve(NATIVE) == 0


def test_create_rejects_empty_and_fee_only_deposits(service, deposit):
    with pytest.raises(InvalidAmount):
        service.create_payment(deposit(0), 3600)
    # ceil(1 * 30 / 10030) == 1 leaves nothing to stream
    dep = deposit(1)
    with pytest.raises(InvalidAmount):
        service.create_payment(dep, 3600)
    assert dep.value == 1


def test_create_rejects_amount_outside_width(service, deposit):
    dep = deposit(1 << 64)
    with pytest.raises(ArithmeticOverflow):
        service.create_payment(dep, 3600)
    assert dep.value == 1 << 64


def test_start_attaches_and_delivers_payee_token(service, registry, deposit, clock, sink):
    clock.set(50)
    stream = service.create_payment(deposit(1000), 3600)
    payer = service.start_payment(stream, recipient=RECIPIENT)
    assert stream.status is StreamStatus.ACTIVE
    assert stream.start_time == 50
    assert registry.contains(stream.id)
    assert payer.stream_id == stream.id
    (payee,) = service.inbox.claim_tokens(RECIPIENT)
    assert payee.stream_id == stream.id
    assert payee.withdrawn_amount == 0
    ev = sink.of_type(StreamActivated)[-1]
    assert (ev.id, ev.recipient, ev.time) == (stream.id, RECIPIENT, 50)


def test_start_twice_is_rejected(service, deposit):
    stream = service.create_payment(deposit(1000), 3600)
    service.start_payment(stream, recipient=RECIPIENT)
    with pytest.raises(NotCreated):
        service.start_payment(stream, recipient="0xcarol")


def test_start_requires_recipient(service, deposit):
    stream = service.create_payment(deposit(1000), 3600)
    with pytest.raises(ValidationError):
        service.start_payment(stream, recipient="")
    assert stream.status is StreamStatus.CREATED


def test_discard_returns_principal_but_not_fee(service, registry, deposit):
    stream = service.create_payment(deposit(1000), 3600)
    back = service.discard_payment(stream)
    assert back.value == 997
    assert stream.status is StreamStatus.CANCELLED
    assert registry.fee_reserve(NATIVE) == 3
    with pytest.raises(AlreadyCancelled):
        service.discard_payment(stream)


def test_discard_refuses_started_stream(service, started):
    stream, _, _ = started()
    with pytest.raises(NotCreated):
        service.discard_payment(stream)


# --------------------------- reference scenario ---------------------------


def test_reference_scenario_withdraw_then_cancel(service, registry, started, clock, sink):
    stream, payer, payee = started(amount=1000, duration=3600)
    assert registry.fee_reserve(NATIVE) == 3

    clock.set(1800)
    paid = service.withdraw_payment(payee)
    assert paid.value == 498
    assert payee.withdrawn_amount == 498
    assert stream.balance.value == 499

    refund = service.cancel_payment(payer)
    assert refund.value == 499
    assert stream.balance.value == 0
    assert stream.status is StreamStatus.CANCELLED
    assert not registry.contains(stream.id)
    # nothing was owed to the payee at cancel time
    assert service.inbox.pending_funds(RECIPIENT, NATIVE) == 0

    assert sink.names()[-4:] == ["StreamCreated", "StreamActivated", "PaymentWithdrawn", "StreamCancelled"]
    ev = sink.of_type(StreamCancelled)[-1]
    assert (ev.refund, ev.payee_settlement, ev.time) == (499, 0, 1800)


def test_withdraw_is_idempotent_within_one_instant(service, started, clock, sink):
    _, _, payee = started()
    clock.set(900)
    first = service.withdraw_payment(payee).value
    second = service.withdraw_payment(payee).value
    assert first > 0
    assert second == 0
    assert [e.amount for e in sink.of_type(PaymentWithdrawn)] == [first, 0]


def test_withdraw_before_any_time_passes_is_zero(service, started):
    stream, _, payee = started()
    assert service.withdraw_payment(payee).value == 0
    assert stream.balance.value == 997


def test_full_duration_pays_everything(service, started, clock):
    stream, _, payee = started()
    clock.set(10_000)
    assert service.withdraw_payment(payee).value == 997
    assert stream.balance.value == 0
    assert service.withdrawable(payee) == 0


# --------------------------- pause / resume ---------------------------


def test_paused_stream_stops_accruing(service, started, clock):
    _, payer, payee = started()
    clock.set(1800)
    service.pause_payment(payer)
    assert service.withdraw_payment(payee).value == 498
    clock.set(3000)
    assert service.withdrawable(payee) == 0
    assert service.withdraw_payment(payee).value == 0


def test_resume_continues_from_where_it_paused(service, started, clock):
    stream, payer, payee = started()
    clock.set(1000)
    service.pause_payment(payer)
    clock.set(2000)
    service.resume_payment(payer)
    assert stream.accumulated_pause_duration == 1000
    clock.set(2800)
    # 1800 active units of 3600
    assert service.withdraw_payment(payee).value == 498


def test_pause_and_resume_preconditions(service, started):
    _, payer, _ = started()
    with pytest.raises(NotPaused):
        service.resume_payment(payer)
    service.pause_payment(payer)
    with pytest.raises(NotActive):
        service.pause_payment(payer)


def test_cancel_while_paused(service, registry, started, clock):
    stream, payer, payee = started()
    clock.set(1800)
    service.pause_payment(payer)
    clock.set(5000)
    refund = service.cancel_payment(payer)
    assert refund.value == 997 - 498
    assert service.inbox.pending_funds(RECIPIENT, NATIVE) == 498
    assert stream.accumulated_pause_duration == 5000 - 1800
    assert not registry.contains(stream.id)


# --------------------------- cancel settlement ---------------------------


def test_cancel_sends_accrued_remainder_to_recipient(service, started, clock, sink):
    stream, payer, payee = started()
    clock.set(900)
    service.withdraw_payment(payee)  # 249
    clock.set(1800)
    refund = service.cancel_payment(payer)
    assert refund.value == 499
    assert service.inbox.pending_funds(RECIPIENT, NATIVE) == 498 - 249
    owed = service.inbox.claim_funds(RECIPIENT, NATIVE)
    assert owed.value == 249
    assert service.inbox.pending_funds(RECIPIENT, NATIVE) == 0
    assert stream.withdrawn + stream.refunded == stream.initial_amount
    assert sink.of_type(StreamCancelled)[-1].payee_settlement == 249


def test_cancel_twice_reports_missing_stream(service, started):
    _, payer, _ = started()
    service.cancel_payment(payer)
    with pytest.raises(StreamNotFound):
        service.cancel_payment(payer)


def test_withdraw_after_cancel_reports_missing_stream(service, started, clock):
    _, payer, payee = started()
    clock.set(100)
    service.cancel_payment(payer)
    with pytest.raises(StreamNotFound):
        service.withdraw_payment(payee)


def test_cancel_with_empty_balance_has_nothing_to_refund(service, registry, started, clock):
    stream, payer, payee = started()
    clock.set(3600)
    service.withdraw_payment(payee)
    assert stream.balance.value == 0
    with pytest.raises(NothingToRefund):
        service.cancel_payment(payer)
    assert registry.contains(stream.id)
    assert stream.status is StreamStatus.ACTIVE


# --------------------------- authorization ---------------------------


def test_tokens_are_not_interchangeable(service, started):
    _, payer, payee = started()
    with pytest.raises(AuthorizationError):
        service.pause_payment(payee)  # type: ignore[arg-type]
    with pytest.raises(AuthorizationError):
        service.cancel_payment(payee)  # type: ignore[arg-type]
    with pytest.raises(AuthorizationError):
        service.withdraw_payment(payer)  # type: ignore[arg-type]


def test_tokens_from_another_registry_are_rejected(service, started, deposit):
    other_reg, _ = Registry.genesis()
    other = StreamService(other_reg, clock=ManualClock(0))
    s = other.create_payment(deposit(1000), 3600)
    foreign_payer = other.start_payment(s, recipient=RECIPIENT)
    (foreign_payee,) = other.inbox.claim_tokens(RECIPIENT)

    started()
    with pytest.raises(AuthorizationError):
        service.pause_payment(foreign_payer)
    with pytest.raises(AuthorizationError):
        service.withdraw_payment(foreign_payee)


def test_payer_token_of_one_stream_cannot_touch_another(service, started):
    a, payer_a, _ = started()
    b, payer_b, _ = started()
    service.pause_payment(payer_a)
    assert a.status is StreamStatus.PAUSED
    assert b.status is StreamStatus.ACTIVE
    service.cancel_payment(payer_b)
    assert a.status is StreamStatus.PAUSED


def test_tokens_cannot_be_forged():
    from paystream.tokens import PayerToken

    with pytest.raises(TypeError):
        PayerToken(object(), "0xt", "0xr", "0xs")


def test_tokens_are_checked_against_ids_bound_on_the_stream(service, registry, started):
    stream, payer, payee = started()
    # rebinding the stream to fresh tokens revokes the old pair
    new_payer, new_payee = registry.mint_stream_tokens(stream)
    with pytest.raises(AuthorizationError):
        service.pause_payment(payer)
    with pytest.raises(AuthorizationError):
        service.withdraw_payment(payee)
    service.pause_payment(new_payer)
    assert service.withdraw_payment(new_payee).value == 0


# --------------------------- start reservation ---------------------------


def test_start_while_another_start_is_in_flight_leaves_stream_untouched(service, registry, deposit):
    stream = service.create_payment(deposit(1000), 3600)
    with registry.reserve(stream.id):
        with pytest.raises(NotCreated):
            service.start_payment(stream, recipient="0xcarol")
        with pytest.raises(NotCreated):
            service.discard_payment(stream)
    assert stream.status is StreamStatus.CREATED
    assert stream.start_time is None
    assert stream.recipient is None
    assert (stream.payer_token_id, stream.payee_token_id) == (None, None)
    assert service.inbox.claim_tokens("0xcarol") == []
    # the reservation is released afterwards
    service.start_payment(stream, recipient=RECIPIENT)
    assert registry.contains(stream.id)


def test_second_start_keeps_first_tokens_bound(service, deposit, clock):
    stream = service.create_payment(deposit(1000), 3600)
    payer = service.start_payment(stream, recipient=RECIPIENT)
    bound = (stream.payer_token_id, stream.payee_token_id)
    with pytest.raises(NotCreated):
        service.start_payment(stream, recipient="0xcarol")
    assert (stream.payer_token_id, stream.payee_token_id) == bound
    assert stream.recipient == RECIPIENT
    assert service.inbox.claim_tokens("0xcarol") == []
    (payee,) = service.inbox.claim_tokens(RECIPIENT)
    clock.set(1800)
    assert service.withdraw_payment(payee).value == 498
    assert service.cancel_payment(payer).value == 499


def test_start_releases_reservation_on_failure(service, registry, deposit):
    stream = service.create_payment(deposit(1000), 3600)
    service.discard_payment(stream)
    with pytest.raises(AlreadyCancelled):
        service.start_payment(stream, recipient=RECIPIENT)
    with registry.reserve(stream.id):
        pass


# --------------------------- clock configuration ---------------------------


def test_service_clock_follows_configured_unit(monkeypatch):
    monkeypatch.setenv("PAYSTREAM_CLOCK_UNIT", "s")
    reg, _ = Registry.genesis(config.load())
    svc = StreamService(reg)
    assert isinstance(svc.clock, SystemClock)
    assert svc.clock.unit == "s"


def test_service_clock_defaults_to_milliseconds():
    reg, _ = Registry.genesis(PaystreamConfig(clock=ClockConfig(unit="ms")))
    assert StreamService(reg).clock.unit == "ms"
    plain = Registry(fee_rate_bps=30)
    assert StreamService(plain).clock.unit == "ms"
    # an injected clock always wins
    manual = ManualClock(5)
    assert StreamService(reg, clock=manual).clock is manual


# --------------------------- views & metrics ---------------------------


def test_stream_info_and_withdrawable(service, started, clock):
    stream, _, payee = started()
    clock.set(1800)
    info = service.stream_info(stream.id)
    assert info["status"] == "active"
    assert info["vested"] == 498
    assert info["withdrawable"] == 498
    assert service.withdrawable(payee) == 498
    with pytest.raises(StreamNotFound):
        service.stream_info("0xmissing")


def test_quote_fee_uses_current_rate(service, registry, admin):
    assert service.quote_fee(1000) == (3, 997)
    registry.set_fee_rate(admin, 100)
    assert service.quote_fee(1000) == (10, 990)


def test_rejected_operations_are_counted(service, deposit):
    labels = {"op": "create", "code": "PAYSTREAM_ASSET_NOT_WHITELISTED"}
    before = metrics.REGISTRY.get_sample_value("paystream_operation_failures_total", labels) or 0.0
    with pytest.raises(AssetNotWhitelisted):
        service.create_payment(deposit(10, "DOGE"), 60)
    after = metrics.REGISTRY.get_sample_value("paystream_operation_failures_total", labels)
    assert after == before + 1


# --------------------------- property: conservation ---------------------------

_ops = st.lists(
    st.tuples(
        st.sampled_from(["advance", "withdraw", "pause", "resume"]),
        st.integers(min_value=0, max_value=2000),
    ),
    max_size=25,
)


@settings(max_examples=60, deadline=None)
@given(amount=st.integers(min_value=2, max_value=10**12), duration=st.integers(min_value=1, max_value=5000), ops=_ops)
def test_value_is_conserved_under_any_schedule(amount, duration, ops):
    reg, _ = Registry.genesis()
    clock = ManualClock(0)
    svc = StreamService(reg, clock=clock)
    gross = amount
    stream = svc.create_payment(Balance(NATIVE, gross), duration)
    payer = svc.start_payment(stream, recipient=RECIPIENT)
    (payee,) = svc.inbox.claim_tokens(RECIPIENT)

    paid_total = 0
    last_vested = 0
    for op, n in ops:
        if op == "advance":
            clock.advance(n)
        elif op == "withdraw":
            paid_total += svc.withdraw_payment(payee).value
        elif op == "pause" and stream.status is StreamStatus.ACTIVE:
            svc.pause_payment(payer)
        elif op == "resume" and stream.status is StreamStatus.PAUSED:
            svc.resume_payment(payer)
        vested = stream.vested(clock.now())
        assert vested >= last_vested
        last_vested = vested
        assert stream.withdrawn == paid_total <= stream.initial_amount
        assert stream.balance.value + paid_total == stream.initial_amount

    fee_taken = reg.fee_reserve(NATIVE)
    if stream.balance.value > 0:
        refund = svc.cancel_payment(payer).value
        settled = svc.inbox.claim_funds(RECIPIENT, NATIVE).value
    else:
        refund = settled = 0
    assert fee_taken + paid_total + settled + refund == gross
