from __future__ import annotations

"""
Registry — the shared arena of attached streams plus global configuration
------------------------------------------------------------------------

Holds:
  • every started stream, keyed by its opaque id (a single map for all assets)
  • the asset whitelist
  • the ingress fee rate (bps) and a per-asset fee reserve
  • the configuration it was created from (`config`) and the id of its AdminToken

Created once via `Registry.genesis(config)`, which whitelists the configured
assets, applies the default fee rate and returns the one AdminToken. Never
destroyed.

Concurrency
~~~~~~~~~~~
A coarse `threading.RLock` guards the maps. Each attached stream also has its
own `threading.Lock`; `borrow(stream_id)` holds it for the duration of one
operation so payer and payee calls on the same stream are serialized, while
different streams proceed independently. After acquiring the stream lock the
registry re-checks that the stream is still attached, so a call that queued
behind a cancel sees `StreamNotFound`. `reserve(stream_id)` makes starting a
stream a check-and-claim step, so one stream is never activated or bound to
tokens twice.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Set, Tuple

from . import metrics
from .accrual import FEE_BASE, width_limit
from .config import PaystreamConfig
from .custody import AssetType, Balance
from .errors import (AssetNotWhitelisted, AuthorizationError, CustodyError,
                     FeeRateInvalid, NotCreated, StateError, StreamNotFound)
from .events import (AssetWhitelisted, EventSink, FeeRateChanged,
                     FeesCollected, MemoryEventSink)
from .ids import IdGenerator
from .stream import Stream
from .tokens import (AdminToken, PayeeToken, PayerToken, _mint_admin,
                     _mint_payee, _mint_payer)

log = logging.getLogger(__name__)


class Registry:
    def __init__(
        self,
        *,
        fee_rate_bps: int,
        sink: Optional[EventSink] = None,
        ids: Optional[IdGenerator] = None,
        amount_bits: int = 64,
    ) -> None:
        if not isinstance(fee_rate_bps, int) or not (0 < fee_rate_bps <= FEE_BASE):
            raise FeeRateInvalid(fee_rate_bps, lo=1, hi=FEE_BASE)
        self.ids = ids or IdGenerator()
        self.id = self.ids.registry_id()
        self.sink: EventSink = sink if sink is not None else MemoryEventSink()
        self.limit = width_limit(amount_bits)
        self.config = PaystreamConfig()
        self._fee_rate_bps = fee_rate_bps
        self._whitelist: Set[AssetType] = set()
        self._fee_reserve: Dict[AssetType, Balance] = {}
        self._streams: Dict[str, Stream] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._starting: Set[str] = set()
        self._admin_token_id: Optional[str] = None
        self._lock = threading.RLock()
        metrics.FEE_RATE_BPS.labels(registry=self.id).set(fee_rate_bps)
        metrics.ACTIVE_STREAMS.labels(registry=self.id).set(0)

    @classmethod
    def genesis(
        cls,
        config: Optional[PaystreamConfig] = None,
        *,
        sink: Optional[EventSink] = None,
        ids: Optional[IdGenerator] = None,
    ) -> Tuple["Registry", AdminToken]:
        """Create the registry and its single AdminToken from `config`."""
        cfg = config or PaystreamConfig()
        cfg.validate()
        reg = cls(
            fee_rate_bps=cfg.fee.default_rate_bps,
            sink=sink,
            ids=ids,
            amount_bits=cfg.assets.amount_bits,
        )
        reg.config = cfg
        admin = _mint_admin(reg.ids.token_id(), reg.id)
        reg._admin_token_id = admin.token_id
        for asset in cfg.assets.all_assets():
            reg._whitelist_asset(asset)
        log.info(
            "registry: genesis id=%s fee_rate_bps=%d assets=%s",
            reg.id, reg._fee_rate_bps, sorted(reg._whitelist),
        )
        return reg, admin

    # ------------------------------------------------------------------
    # capability checks
    # ------------------------------------------------------------------

    def require_admin(self, token: AdminToken) -> None:
        if not isinstance(token, AdminToken):
            raise AuthorizationError("admin capability required", details={"got": type(token).__name__})
        if token.registry_id != self.id or token.token_id != self._admin_token_id:
            raise AuthorizationError("admin token was not issued by this registry")

    def stream_id_for(self, token: PayerToken | PayeeToken, kind: type) -> str:
        """Type/registry check that does not need the stream lock."""
        if not isinstance(token, kind):
            raise AuthorizationError(
                f"{kind.__name__} required",
                details={"got": type(token).__name__},
            )
        if token.registry_id != self.id:
            raise AuthorizationError("token belongs to another registry", stream_id=token.stream_id)
        return token.stream_id

    @staticmethod
    def require_bound(stream: Stream, token: PayerToken | PayeeToken) -> None:
        """Token must be the one issued for `stream` (checked under the stream lock)."""
        expected = stream.payer_token_id if isinstance(token, PayerToken) else stream.payee_token_id
        if token.stream_id != stream.id or token.token_id != expected:
            raise AuthorizationError("token does not reference this stream", stream_id=stream.id)

    # ------------------------------------------------------------------
    # streams
    # ------------------------------------------------------------------

    def new_stream_id(self) -> str:
        return self.ids.stream_id()

    def mint_stream_tokens(self, stream: Stream) -> Tuple[PayerToken, PayeeToken]:
        payer = _mint_payer(self.ids.token_id(), self.id, stream.id)
        payee = _mint_payee(self.ids.token_id(), self.id, stream.id)
        stream.payer_token_id = payer.token_id
        stream.payee_token_id = payee.token_id
        return payer, payee

    @contextmanager
    def reserve(self, stream_id: str) -> Iterator[None]:
        """
        Claim `stream_id` for one start in progress. A second start of the same
        stream, concurrent or later, fails with NotCreated before it can touch
        the stream.
        """
        with self._lock:
            if stream_id in self._streams or stream_id in self._starting:
                raise NotCreated("stream was already started", stream_id=stream_id)
            self._starting.add(stream_id)
        try:
            yield
        finally:
            with self._lock:
                self._starting.discard(stream_id)

    def attach(self, stream: Stream) -> None:
        with self._lock:
            if stream.id in self._streams:
                raise StateError("stream id already attached", stream_id=stream.id)
            self._streams[stream.id] = stream
            self._locks[stream.id] = threading.Lock()
            metrics.ACTIVE_STREAMS.labels(registry=self.id).set(len(self._streams))
        log.debug("registry: attach stream=%s", stream.id)

    @contextmanager
    def borrow(self, stream_id: str) -> Iterator[Stream]:
        """Exclusive handle on an attached stream for the duration of the block."""
        with self._lock:
            lock = self._locks.get(stream_id)
        if lock is None:
            raise StreamNotFound(stream_id)
        with lock:
            with self._lock:
                stream = self._streams.get(stream_id)
            if stream is None:
                raise StreamNotFound(stream_id)
            yield stream

    def detach(self, stream_id: str) -> Stream:
        """Remove and return ownership of a stream. Caller must hold `borrow(stream_id)`."""
        with self._lock:
            stream = self._streams.pop(stream_id, None)
            if stream is None:
                raise StreamNotFound(stream_id)
            self._locks.pop(stream_id, None)
            metrics.ACTIVE_STREAMS.labels(registry=self.id).set(len(self._streams))
        log.debug("registry: detach stream=%s", stream_id)
        return stream

    def contains(self, stream_id: str) -> bool:
        with self._lock:
            return stream_id in self._streams

    def stream_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._streams)

    def __len__(self) -> int:
        with self._lock:
            return len(self._streams)

    # ------------------------------------------------------------------
    # whitelist
    # ------------------------------------------------------------------

    def _whitelist_asset(self, asset: AssetType) -> bool:
        if not isinstance(asset, str) or not asset:
            raise CustodyError("asset type must be a non-empty string")
        with self._lock:
            if asset in self._whitelist:
                return False
            self._whitelist.add(asset)
            self._fee_reserve[asset] = Balance.zero(asset)
        self.sink.emit(AssetWhitelisted(asset=asset))
        return True

    def add_asset(self, admin: AdminToken, asset: AssetType) -> bool:
        """Whitelist `asset`. Idempotent; returns False if it was already present."""
        self.require_admin(admin)
        added = self._whitelist_asset(asset)
        if added:
            log.info("registry: whitelisted asset=%s", asset)
        return added

    def is_whitelisted(self, asset: AssetType) -> bool:
        with self._lock:
            return asset in self._whitelist

    def require_whitelisted(self, asset: AssetType) -> None:
        if not self.is_whitelisted(asset):
            raise AssetNotWhitelisted(asset)

    @property
    def assets(self) -> List[AssetType]:
        with self._lock:
            return sorted(self._whitelist)

    # ------------------------------------------------------------------
    # fees
    # ------------------------------------------------------------------

    @property
    def fee_rate_bps(self) -> int:
        return self._fee_rate_bps

    def set_fee_rate(self, admin: AdminToken, new_rate_bps: int) -> int:
        """Replace the fee rate; returns the previous rate."""
        self.require_admin(admin)
        if not isinstance(new_rate_bps, int) or isinstance(new_rate_bps, bool) or not (0 < new_rate_bps <= FEE_BASE):
            raise FeeRateInvalid(new_rate_bps, lo=1, hi=FEE_BASE)
        with self._lock:
            old = self._fee_rate_bps
            self._fee_rate_bps = new_rate_bps
        metrics.FEE_RATE_CHANGES.inc()
        metrics.FEE_RATE_BPS.labels(registry=self.id).set(new_rate_bps)
        log.info("registry: fee rate %d -> %d bps", old, new_rate_bps)
        self.sink.emit(FeeRateChanged(old=old, new=new_rate_bps))
        return old

    def deposit_fee(self, fee: Balance) -> None:
        with self._lock:
            reserve = self._fee_reserve.get(fee.asset_type)
            if reserve is None:
                raise AssetNotWhitelisted(fee.asset_type)
            amount = fee.value
            reserve.join(fee)
        metrics.FEES_SKIMMED.labels(asset=fee.asset_type).inc(amount)

    def fee_reserve(self, asset: AssetType) -> int:
        with self._lock:
            reserve = self._fee_reserve.get(asset)
            return reserve.value if reserve is not None else 0

    def collect_fees(self, admin: AdminToken, asset: AssetType) -> Balance:
        """Drain the fee reserve of `asset` to the admin holder."""
        self.require_admin(admin)
        with self._lock:
            reserve = self._fee_reserve.get(asset)
            if reserve is None:
                raise AssetNotWhitelisted(asset)
            out = reserve.withdraw_all()
        metrics.FEES_COLLECTED.labels(asset=asset).inc(out.value)
        log.info("registry: collected fees asset=%s amount=%d", asset, out.value)
        self.sink.emit(FeesCollected(asset=asset, amount=out.value))
        return out


__all__ = ["Registry"]
