"""
paystream.events — notification records and the sink they are emitted into.

Emission is fire-and-forget: the ledger calls ``sink.emit(event)`` after a
state change has been applied and never waits on, or reacts to, the sink.
Ordering is the causal order of the triggering calls.

Records
-------
StreamCreated{id}                      StreamActivated{id, recipient, time}
StreamPaused{id, time}                 StreamResumed{id, time}
StreamCancelled{id, refund, payee_settlement, time}
PaymentWithdrawn{id, amount, time}     FeeRateChanged{old, new}
AssetWhitelisted{asset}                FeesCollected{asset, amount}
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Protocol, Type, TypeVar

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    name = "Event"

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "args": asdict(self)}


@dataclass(frozen=True)
class StreamCreated(Event):
    name = "StreamCreated"
    id: str


@dataclass(frozen=True)
class StreamActivated(Event):
    name = "StreamActivated"
    id: str
    recipient: str
    time: int


@dataclass(frozen=True)
class StreamPaused(Event):
    name = "StreamPaused"
    id: str
    time: int


@dataclass(frozen=True)
class StreamResumed(Event):
    name = "StreamResumed"
    id: str
    time: int


@dataclass(frozen=True)
class StreamCancelled(Event):
    name = "StreamCancelled"
    id: str
    refund: int
    payee_settlement: int
    time: int


@dataclass(frozen=True)
class PaymentWithdrawn(Event):
    name = "PaymentWithdrawn"
    id: str
    amount: int
    time: int


@dataclass(frozen=True)
class FeeRateChanged(Event):
    name = "FeeRateChanged"
    old: int
    new: int


@dataclass(frozen=True)
class AssetWhitelisted(Event):
    name = "AssetWhitelisted"
    asset: str


@dataclass(frozen=True)
class FeesCollected(Event):
    name = "FeesCollected"
    asset: str
    amount: int


E = TypeVar("E", bound=Event)


class EventSink(Protocol):
    def emit(self, event: Event) -> None: ...


class MemoryEventSink:
    """
    In-process sink that keeps every event and fans out to listeners.

    Listener failures are logged and do not propagate into the ledger.
    """

    def __init__(self) -> None:
        self._events: List[Event] = []
        self._listeners: List[Callable[[Event], None]] = []
        self._lock = threading.RLock()

    def emit(self, event: Event) -> None:
        with self._lock:
            self._events.append(event)
            listeners = list(self._listeners)
        log.debug("events: emit %s %r", event.name, event)
        for fn in listeners:
            try:
                fn(event)
            except Exception:
                log.exception("events: listener failed on %s", event.name)

    def subscribe(self, fn: Callable[[Event], None]) -> None:
        with self._lock:
            self._listeners.append(fn)

    @property
    def events(self) -> List[Event]:
        with self._lock:
            return list(self._events)

    def names(self) -> List[str]:
        return [e.name for e in self.events]

    def of_type(self, kind: Type[E]) -> List[E]:
        return [e for e in self.events if isinstance(e, kind)]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


__all__ = [
    "Event",
    "StreamCreated",
    "StreamActivated",
    "StreamPaused",
    "StreamResumed",
    "StreamCancelled",
    "PaymentWithdrawn",
    "FeeRateChanged",
    "AssetWhitelisted",
    "FeesCollected",
    "EventSink",
    "MemoryEventSink",
]
