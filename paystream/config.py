from __future__ import annotations
"""
paystream.config — configuration for the payment-streaming ledger

Covers:
- Default ingress fee rate (basis points, 10_000 = 100%)
- Native asset and any additional assets whitelisted at genesis
- Amount width in bits (u64 by default)
- Clock unit for the system time source ("ms" or "s")

Environment overrides (all optional; sensible defaults provided):

  PAYSTREAM_FEE_RATE_BPS=30
  PAYSTREAM_NATIVE_ASSET=NATIVE
  PAYSTREAM_EXTRA_ASSETS=USDC,EURC
  PAYSTREAM_AMOUNT_BITS=64
  PAYSTREAM_CLOCK_UNIT=ms

You can also load from a JSON or YAML file via `PAYSTREAM_CONFIG_FILE=/path/to/config.(json|yaml|yml)`.
File values override defaults; environment overrides the file.
"""


from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Optional, Tuple
import json
import os
from pathlib import Path

try:
    import yaml  # type: ignore
except ImportError:  # pragma: no cover - yaml is optional
    yaml = None  # type: ignore

from .accrual import FEE_BASE


# -------------------------- Data classes --------------------------


@dataclass
class FeeConfig:
    """Ingress fee, as a gross-up rate in basis points. Must be in [1, 10000]."""
    default_rate_bps: int = 30  # 0.3%

    def validate(self) -> None:
        if not (1 <= self.default_rate_bps <= FEE_BASE):
            raise ValueError(f"default_rate_bps must be between 1 and {FEE_BASE} (got {self.default_rate_bps}).")


@dataclass
class AssetConfig:
    """Assets whitelisted when the registry is created."""
    native_asset: str = "NATIVE"
    extra_assets: Tuple[str, ...] = ()
    amount_bits: int = 64

    def all_assets(self) -> Tuple[str, ...]:
        out = [self.native_asset]
        for a in self.extra_assets:
            if a not in out:
                out.append(a)
        return tuple(out)

    def validate(self) -> None:
        if not self.native_asset:
            raise ValueError("native_asset must be non-empty.")
        if any(not a for a in self.extra_assets):
            raise ValueError("extra_assets must not contain empty names.")
        if not (8 <= self.amount_bits <= 256):
            raise ValueError(f"amount_bits must be between 8 and 256 (got {self.amount_bits}).")


@dataclass
class ClockConfig:
    unit: str = "ms"

    def validate(self) -> None:
        if self.unit not in ("ms", "s"):
            raise ValueError(f"clock unit must be 'ms' or 's' (got {self.unit!r}).")


@dataclass
class PaystreamConfig:
    """Top-level configuration container."""
    fee: FeeConfig = field(default_factory=FeeConfig)
    assets: AssetConfig = field(default_factory=AssetConfig)
    clock: ClockConfig = field(default_factory=ClockConfig)

    def validate(self) -> None:
        self.fee.validate()
        self.assets.validate()
        self.clock.validate()

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["assets"]["extra_assets"] = list(self.assets.extra_assets)
        return d


# -------------------------- Loaders --------------------------


def _getenv_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(str(v).replace("_", ""))
    except ValueError as e:
        raise ValueError(f"Invalid int for {name}: {v!r}") from e


def _getenv_str(name: str, default: str) -> str:
    v = os.getenv(name)
    return default if v is None or v == "" else v.strip()


def _getenv_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    v = os.getenv(name)
    if v is None:
        return default
    return tuple(s.strip() for s in v.split(",") if s.strip())


def from_env(base: Optional[PaystreamConfig] = None, prefix: str = "PAYSTREAM_") -> PaystreamConfig:
    """
    Build a PaystreamConfig from environment variables, optionally layering on top of `base`.
    """
    cfg = base or PaystreamConfig()

    new_cfg = PaystreamConfig(
        fee=FeeConfig(
            default_rate_bps=_getenv_int(f"{prefix}FEE_RATE_BPS", cfg.fee.default_rate_bps),
        ),
        assets=AssetConfig(
            native_asset=_getenv_str(f"{prefix}NATIVE_ASSET", cfg.assets.native_asset),
            extra_assets=_getenv_list(f"{prefix}EXTRA_ASSETS", cfg.assets.extra_assets),
            amount_bits=_getenv_int(f"{prefix}AMOUNT_BITS", cfg.assets.amount_bits),
        ),
        clock=ClockConfig(unit=_getenv_str(f"{prefix}CLOCK_UNIT", cfg.clock.unit)),
    )
    new_cfg.validate()
    return new_cfg


def from_file(path: str | os.PathLike[str]) -> PaystreamConfig:
    """
    Load configuration from a JSON or YAML file.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)

    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in (".yaml", ".yml"):
        if yaml is None:
            raise RuntimeError("YAML config requested but PyYAML is not installed.")
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text or "{}")

    fee = data.get("fee", {})
    assets = data.get("assets", {})
    clock = data.get("clock", {})

    cfg = PaystreamConfig(
        fee=FeeConfig(
            default_rate_bps=int(fee.get("default_rate_bps", FeeConfig().default_rate_bps)),
        ),
        assets=AssetConfig(
            native_asset=assets.get("native_asset", AssetConfig().native_asset),
            extra_assets=tuple(assets.get("extra_assets", AssetConfig().extra_assets)),
            amount_bits=int(assets.get("amount_bits", AssetConfig().amount_bits)),
        ),
        clock=ClockConfig(unit=clock.get("unit", ClockConfig().unit)),
    )
    cfg.validate()
    return cfg


def load() -> PaystreamConfig:
    """
    Load configuration using the following precedence:
      1) File at $PAYSTREAM_CONFIG_FILE (JSON/YAML)
      2) Environment variables (PAYSTREAM_*), applied on top of defaults or file values
    """
    file_path = os.getenv("PAYSTREAM_CONFIG_FILE")
    base = from_file(file_path) if file_path else PaystreamConfig()
    return from_env(base=base)


def pretty(cfg: Optional[PaystreamConfig] = None) -> str:
    """Return a human-readable JSON string of the current config."""
    obj = (cfg or load()).to_dict()
    return json.dumps(obj, indent=2, sort_keys=True)


__all__ = [
    "FeeConfig",
    "AssetConfig",
    "ClockConfig",
    "PaystreamConfig",
    "from_env",
    "from_file",
    "load",
    "pretty",
]
