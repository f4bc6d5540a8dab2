"""
paystream — time-based value streaming ledger.

A payer deposits a fixed amount of an asset; the ledger skims a one-time
gross-up fee and releases the remainder to a payee linearly over a configured
duration, with pause/resume, early cancellation and partial withdrawal.

Quick start:

    from paystream import Balance, ManualClock, Registry, StreamService

    registry, admin = Registry.genesis()
    svc = StreamService(registry, clock=ManualClock())
    stream = svc.create_payment(Balance("NATIVE", 1000), duration=3600)
    payer = svc.start_payment(stream, recipient="0xbob")
"""

from .accrual import FEE_BASE, U64_MAX, elapsed_active_time, fee, vested_amount
from .clock import ManualClock, SystemClock
from .config import PaystreamConfig
from .custody import Balance
from .errors import (AuthorizationError, NotFoundError, PaystreamError,
                     StateError, ValidationError)
from .events import MemoryEventSink
from .inbox import Inbox
from .registry import Registry
from .service import StreamService
from .stream import Stream, StreamStatus
from .tokens import AdminToken, PayeeToken, PayerToken
from .version import __version__

__all__ = [
    "__version__",
    "FEE_BASE",
    "U64_MAX",
    "fee",
    "elapsed_active_time",
    "vested_amount",
    "Balance",
    "ManualClock",
    "SystemClock",
    "PaystreamConfig",
    "MemoryEventSink",
    "Inbox",
    "Registry",
    "StreamService",
    "Stream",
    "StreamStatus",
    "PayerToken",
    "PayeeToken",
    "AdminToken",
    "PaystreamError",
    "ValidationError",
    "AuthorizationError",
    "StateError",
    "NotFoundError",
]
