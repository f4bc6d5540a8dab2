from __future__ import annotations

"""
Prometheus metrics for the payment-streaming ledger.

We expose counters covering:
- lifecycle: streams created / activated / paused / resumed / cancelled by asset
- payouts: withdrawals and withdrawn amount by asset, refunds by asset
- fees: fees skimmed and fees collected by asset, fee-rate changes
- failures: rejected operations by operation and error code

A dedicated registry keeps these separate from whatever the embedding process
exports; `render()` returns the text exposition format.
"""

from typing import Tuple

from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               Gauge, generate_latest)

REGISTRY = CollectorRegistry()

# ────────────────────────────────────────────────────────────────────────────────
# Label conventions
#   asset: asset type name, e.g. "NATIVE"
#   op: "create" | "start" | "discard" | "pause" | "resume" | "cancel" | "withdraw"
#   code: PaystreamError.code
#   registry: Registry.id of the ledger registry that owns the gauge
# ────────────────────────────────────────────────────────────────────────────────

STREAMS_CREATED = Counter(
    "paystream_streams_created_total",
    "Streams created (funded, not yet started) by asset.",
    labelnames=("asset",),
    registry=REGISTRY,
)

STREAMS_ACTIVATED = Counter(
    "paystream_streams_activated_total",
    "Streams started and attached to the registry by asset.",
    labelnames=("asset",),
    registry=REGISTRY,
)

STREAMS_PAUSED = Counter(
    "paystream_streams_paused_total",
    "Pause transitions by asset.",
    labelnames=("asset",),
    registry=REGISTRY,
)

STREAMS_RESUMED = Counter(
    "paystream_streams_resumed_total",
    "Resume transitions by asset.",
    labelnames=("asset",),
    registry=REGISTRY,
)

STREAMS_CANCELLED = Counter(
    "paystream_streams_cancelled_total",
    "Streams cancelled and destroyed by asset.",
    labelnames=("asset",),
    registry=REGISTRY,
)

WITHDRAWALS = Counter(
    "paystream_withdrawals_total",
    "Payee withdrawals by asset (zero-value withdrawals included).",
    labelnames=("asset",),
    registry=REGISTRY,
)

WITHDRAWN_AMOUNT = Counter(
    "paystream_withdrawn_amount_total",
    "Base units paid to payees by asset.",
    labelnames=("asset",),
    registry=REGISTRY,
)

REFUNDED_AMOUNT = Counter(
    "paystream_refunded_amount_total",
    "Base units refunded to payers on cancel by asset.",
    labelnames=("asset",),
    registry=REGISTRY,
)

FEES_SKIMMED = Counter(
    "paystream_fees_skimmed_total",
    "Base units skimmed into the fee reserve by asset.",
    labelnames=("asset",),
    registry=REGISTRY,
)

FEES_COLLECTED = Counter(
    "paystream_fees_collected_total",
    "Base units drained from the fee reserve by the admin, by asset.",
    labelnames=("asset",),
    registry=REGISTRY,
)

FEE_RATE_CHANGES = Counter(
    "paystream_fee_rate_changes_total",
    "Fee-rate updates applied by the admin.",
    registry=REGISTRY,
)

FEE_RATE_BPS = Gauge(
    "paystream_fee_rate_bps",
    "Current ingress fee rate in basis points, per ledger registry.",
    labelnames=("registry",),
    registry=REGISTRY,
)

ACTIVE_STREAMS = Gauge(
    "paystream_attached_streams",
    "Streams currently attached, per ledger registry.",
    labelnames=("registry",),
    registry=REGISTRY,
)

OPERATION_FAILURES = Counter(
    "paystream_operation_failures_total",
    "Rejected operations by operation and error code.",
    labelnames=("op", "code"),
    registry=REGISTRY,
)


def render() -> Tuple[bytes, str]:
    """Return (payload, content_type) for an HTTP metrics endpoint."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST


__all__ = [
    "REGISTRY",
    "STREAMS_CREATED",
    "STREAMS_ACTIVATED",
    "STREAMS_PAUSED",
    "STREAMS_RESUMED",
    "STREAMS_CANCELLED",
    "WITHDRAWALS",
    "WITHDRAWN_AMOUNT",
    "REFUNDED_AMOUNT",
    "FEES_SKIMMED",
    "FEES_COLLECTED",
    "FEE_RATE_CHANGES",
    "FEE_RATE_BPS",
    "ACTIVE_STREAMS",
    "OPERATION_FAILURES",
    "render",
]
