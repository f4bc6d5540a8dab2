from __future__ import annotations

"""
Capability tokens.

- PayerToken: pause / resume / cancel rights over one stream.
- PayeeToken: withdraw rights over one stream; caches the cumulative amount
  withdrawn through it.
- AdminToken: registry configuration rights (fee rate, whitelist, fee reserve).

Tokens are opaque handles: they carry a back-reference (ids only, never the
stream object) and are minted only by the registry through `_mint_*`, which
requires the module-private mint key. On every call the registry checks the
token's registry id, and compares its token id with the payer/payee token id
stored on the stream (or, for AdminToken, the id it minted at genesis).
"""

from typing import Any, Dict

_MINT_KEY = object()


class _Token:
    __slots__ = ("token_id", "registry_id")
    kind = "token"

    def __init__(self, key: object, token_id: str, registry_id: str) -> None:
        if key is not _MINT_KEY:
            raise TypeError(f"{type(self).__name__} can only be minted by a Registry")
        self.token_id = token_id
        self.registry_id = registry_id

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "token_id": self.token_id, "registry_id": self.registry_id}

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"{type(self).__name__}({self.token_id[:10]}…)"


class PayerToken(_Token):
    __slots__ = ("stream_id",)
    kind = "payer"

    def __init__(self, key: object, token_id: str, registry_id: str, stream_id: str) -> None:
        super().__init__(key, token_id, registry_id)
        self.stream_id = stream_id

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["stream_id"] = self.stream_id
        return d


class PayeeToken(_Token):
    __slots__ = ("stream_id", "_withdrawn")
    kind = "payee"

    def __init__(self, key: object, token_id: str, registry_id: str, stream_id: str) -> None:
        super().__init__(key, token_id, registry_id)
        self.stream_id = stream_id
        self._withdrawn = 0

    @property
    def withdrawn_amount(self) -> int:
        return self._withdrawn

    def _credit(self, amount: int) -> None:
        if amount < 0:
            raise ValueError("withdrawn amount can only grow")
        self._withdrawn += amount

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["stream_id"] = self.stream_id
        d["withdrawn_amount"] = self._withdrawn
        return d


class AdminToken(_Token):
    __slots__ = ()
    kind = "admin"


def _mint_payer(token_id: str, registry_id: str, stream_id: str) -> PayerToken:
    return PayerToken(_MINT_KEY, token_id, registry_id, stream_id)


def _mint_payee(token_id: str, registry_id: str, stream_id: str) -> PayeeToken:
    return PayeeToken(_MINT_KEY, token_id, registry_id, stream_id)


def _mint_admin(token_id: str, registry_id: str) -> AdminToken:
    return AdminToken(_MINT_KEY, token_id, registry_id)


__all__ = ["PayerToken", "PayeeToken", "AdminToken"]
