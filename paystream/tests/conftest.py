# -*- coding: utf-8 -*-
"""
paystream.tests.conftest
========================

Fixtures shared by the ledger tests:

- `clock`:     ManualClock starting at t=0
- `sink`:      MemoryEventSink capturing every notification
- `registry`:  genesis registry (fee 30 bps, NATIVE + USDC whitelisted)
- `admin`:     the registry's AdminToken
- `service`:   StreamService bound to the above
- `deposit`:   factory for funded balances
- `started`:   factory that creates + starts a stream and returns
               (stream, payer_token, payee_token)
"""
from __future__ import annotations

from typing import Callable, Tuple

import pytest

from paystream.clock import ManualClock
from paystream.config import AssetConfig, FeeConfig, PaystreamConfig
from paystream.custody import Balance
from paystream.events import MemoryEventSink
from paystream.registry import Registry
from paystream.service import StreamService
from paystream.stream import Stream
from paystream.tokens import AdminToken, PayeeToken, PayerToken

RECIPIENT = "0xb0b"
NATIVE = "NATIVE"


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(0)


@pytest.fixture
def sink() -> MemoryEventSink:
    return MemoryEventSink()


@pytest.fixture
def genesis(sink: MemoryEventSink) -> Tuple[Registry, AdminToken]:
    cfg = PaystreamConfig(
        fee=FeeConfig(default_rate_bps=30),
        assets=AssetConfig(native_asset=NATIVE, extra_assets=("USDC",)),
    )
    return Registry.genesis(cfg, sink=sink)


@pytest.fixture
def registry(genesis) -> Registry:
    return genesis[0]


@pytest.fixture
def admin(genesis) -> AdminToken:
    return genesis[1]


@pytest.fixture
def service(registry: Registry, clock: ManualClock) -> StreamService:
    return StreamService(registry, clock=clock)


@pytest.fixture
def deposit() -> Callable[..., Balance]:
    def _mk(amount: int, asset: str = NATIVE) -> Balance:
        return Balance(asset, amount)

    return _mk


@pytest.fixture
def started(service: StreamService, deposit) -> Callable[..., Tuple[Stream, PayerToken, PayeeToken]]:
    def _mk(amount: int = 1000, duration: int = 3600, recipient: str = RECIPIENT, asset: str = NATIVE):
        stream = service.create_payment(deposit(amount, asset), duration)
        payer = service.start_payment(stream, recipient=recipient)
        (payee,) = service.inbox.claim_tokens(recipient, stream_id=stream.id)
        return stream, payer, payee

    return _mk
