from __future__ import annotations
# paystream/errors.py
"""
Error types for the payment-streaming ledger. Every error carries a stable,
upper-snake `code` plus structured `details` that are safe to surface over
RPC/logs.

Taxonomy:
- PaystreamError (base)
  - ValidationError: AssetNotWhitelisted, InvalidDuration, FeeRateInvalid, InvalidAmount
  - AuthorizationError
  - StateError: NotActive, NotPaused, NotCreated, AlreadyCancelled, NothingToRefund
  - NotFoundError: StreamNotFound
  - ArithmeticOverflow
  - CustodyError

All errors abort the single operation that raised them; no state is mutated
before the raise.
"""


from typing import Any, Dict, Mapping, Optional
import json


class PaystreamError(Exception):
    """Base class for ledger errors."""

    code: str = "PAYSTREAM_ERROR"

    def __init__(self, message: str = "", *, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = dict(details or {})
        super().__init__(self.__str__())

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.details:
            try:
                packed = json.dumps(self.details, sort_keys=True, separators=(",", ":"))
            except (TypeError, ValueError):
                packed = str(self.details)
            return f"{self.code}: {self.message} [{packed}]"
        return f"{self.code}: {self.message}"


# --------------------------- validation ---------------------------


class ValidationError(PaystreamError):
    """Bad caller input: duration, fee rate, amount or asset type."""
    code = "PAYSTREAM_VALIDATION"


class AssetNotWhitelisted(ValidationError):
    code = "PAYSTREAM_ASSET_NOT_WHITELISTED"

    def __init__(self, asset: str, *, message: str = "asset type is not whitelisted") -> None:
        super().__init__(message, details={"asset": asset})


class InvalidDuration(ValidationError):
    code = "PAYSTREAM_INVALID_DURATION"

    def __init__(self, duration: Any, *, message: str = "duration must be a positive integer") -> None:
        super().__init__(message, details={"duration": repr(duration)})


class FeeRateInvalid(ValidationError):
    code = "PAYSTREAM_FEE_RATE_INVALID"

    def __init__(self, rate_bps: Any, *, lo: int, hi: int) -> None:
        super().__init__(
            f"fee rate must be within [{lo}, {hi}] bps",
            details={"rate_bps": repr(rate_bps), "min": lo, "max": hi},
        )


class InvalidAmount(ValidationError):
    code = "PAYSTREAM_INVALID_AMOUNT"

    def __init__(self, amount: Any, *, message: str = "amount must be a positive integer") -> None:
        super().__init__(message, details={"amount": repr(amount)})


# --------------------------- authorization ---------------------------


class AuthorizationError(PaystreamError):
    """
    A capability token does not authorize the requested operation: it is the
    wrong kind, references another stream or registry, or was never issued.
    """
    code = "PAYSTREAM_UNAUTHORIZED"

    def __init__(
        self,
        message: str = "capability does not authorize this operation",
        *,
        stream_id: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if stream_id is not None:
            d.setdefault("stream_id", stream_id)
        super().__init__(message, details=d)


# --------------------------- state ---------------------------


class StateError(PaystreamError):
    """Operation is not valid for the stream's current status."""
    code = "PAYSTREAM_BAD_STATE"

    def __init__(
        self,
        message: str = "",
        *,
        stream_id: Optional[str] = None,
        status: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if stream_id is not None:
            d["stream_id"] = stream_id
        if status is not None:
            d["status"] = status
        super().__init__(message, details=d)


class NotActive(StateError):
    code = "PAYSTREAM_NOT_ACTIVE"


class NotPaused(StateError):
    code = "PAYSTREAM_NOT_PAUSED"


class NotCreated(StateError):
    code = "PAYSTREAM_NOT_CREATED"


class AlreadyCancelled(StateError):
    code = "PAYSTREAM_ALREADY_CANCELLED"


class NothingToRefund(StateError):
    code = "PAYSTREAM_NOTHING_TO_REFUND"


# --------------------------- lookup ---------------------------


class NotFoundError(PaystreamError):
    code = "PAYSTREAM_NOT_FOUND"


class StreamNotFound(NotFoundError):
    code = "PAYSTREAM_STREAM_NOT_FOUND"

    def __init__(self, stream_id: str, *, message: str = "stream is not attached to the registry") -> None:
        super().__init__(message, details={"stream_id": stream_id})


# --------------------------- arithmetic & custody ---------------------------


class ArithmeticOverflow(PaystreamError):
    """An input or result falls outside the supported unsigned amount width."""
    code = "PAYSTREAM_ARITHMETIC_OVERFLOW"

    def __init__(self, op: str, *, limit: int, values: Optional[Mapping[str, int]] = None) -> None:
        d: Dict[str, Any] = {"op": op, "limit": int(limit)}
        if values:
            d.update({k: int(v) for k, v in values.items()})
        super().__init__(f"{op}: value outside the supported width", details=d)


class CustodyError(PaystreamError):
    """Misuse of the asset custody primitive (mismatched asset, overdraw, etc.)."""
    code = "PAYSTREAM_CUSTODY"


__all__ = [
    "PaystreamError",
    "ValidationError",
    "AssetNotWhitelisted",
    "InvalidDuration",
    "FeeRateInvalid",
    "InvalidAmount",
    "AuthorizationError",
    "StateError",
    "NotActive",
    "NotPaused",
    "NotCreated",
    "AlreadyCancelled",
    "NothingToRefund",
    "NotFoundError",
    "StreamNotFound",
    "ArithmeticOverflow",
    "CustodyError",
]
