from __future__ import annotations

"""
Custody primitive — fungible balances tagged with an asset type
--------------------------------------------------------------

The ledger never mints or burns value; it only moves it between `Balance`
objects. This module is the narrow in-process stand-in for the host's custody
layer and exposes exactly the surface the ledger consumes:

  • `Balance(asset_type, value)`    a deposit of one asset
  • `Balance.zero(asset_type)`      empty balance of an asset
  • `bal.split(amount)`             move `amount` out into a new Balance
  • `bal.join(other)`               absorb another Balance of the same asset
  • `bal.withdraw_all()`            move everything out
  • `bal.destroy_zero()`            consume an empty balance

A Balance handed to `join` is drained to zero, so value is never duplicated.
Amounts are integer base units; the asset width is enforced by callers.
"""

from typing import Dict

from .errors import CustodyError

AssetType = str


class Balance:
    __slots__ = ("asset_type", "_value")

    def __init__(self, asset_type: AssetType, value: int = 0) -> None:
        if not isinstance(asset_type, str) or not asset_type:
            raise CustodyError("asset_type must be a non-empty string")
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise CustodyError(f"balance value must be a non-negative int, got {value!r}")
        self.asset_type = asset_type
        self._value = value

    @classmethod
    def zero(cls, asset_type: AssetType) -> "Balance":
        return cls(asset_type, 0)

    @property
    def value(self) -> int:
        return self._value

    # --- movement ---

    def split(self, amount: int) -> "Balance":
        """Take `amount` out of this balance; returns the taken part."""
        if not isinstance(amount, int) or amount < 0:
            raise CustodyError(f"split amount must be a non-negative int, got {amount!r}")
        if amount > self._value:
            raise CustodyError(
                f"insufficient balance: have {self._value}, need {amount}",
                details={"asset": self.asset_type, "have": self._value, "need": amount},
            )
        self._value -= amount
        return Balance(self.asset_type, amount)

    def join(self, other: "Balance") -> int:
        """Merge `other` into this balance, leaving `other` empty. Returns the new value."""
        if other is self:
            raise CustodyError("cannot join a balance into itself")
        if other.asset_type != self.asset_type:
            raise CustodyError(
                "asset type mismatch",
                details={"into": self.asset_type, "from": other.asset_type},
            )
        self._value += other._value
        other._value = 0
        return self._value

    def withdraw_all(self) -> "Balance":
        return self.split(self._value)

    def destroy_zero(self) -> None:
        if self._value != 0:
            raise CustodyError(
                "cannot destroy a non-zero balance",
                details={"asset": self.asset_type, "value": self._value},
            )

    # --- views ---

    def to_dict(self) -> Dict:
        return {"asset_type": self.asset_type, "value": self._value}

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"Balance({self.asset_type!r}, {self._value})"


__all__ = ["AssetType", "Balance"]
