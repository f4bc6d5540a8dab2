from __future__ import annotations

"""
Identity generation for streams and capability tokens.

Definition
----------
id = SHA3-256(
    len(domain)||domain ||
    u64_be(namespace)   ||
    u64_be(counter)
)

Notes
-----
- One generator per registry; the counter is strictly monotonic and shared by
  every domain, so two ids minted by the same generator never collide.
- `namespace` separates registries that share a process (tests, simulations).
- Returns lowercase hex with 0x prefix.
"""

import hashlib
import itertools
import struct
import threading
from typing import Final

STREAM_DOMAIN: Final[bytes] = b"paystream/stream-id/v1"
TOKEN_DOMAIN: Final[bytes] = b"paystream/token-id/v1"
REGISTRY_DOMAIN: Final[bytes] = b"paystream/registry-id/v1"

_U64_MAX = (1 << 64) - 1
_namespaces = itertools.count(1)


def derive_id(domain: bytes, namespace: int, counter: int) -> str:
    if not (0 <= namespace <= _U64_MAX and 0 <= counter <= _U64_MAX):
        raise ValueError("namespace and counter must fit in u64")
    h = hashlib.sha3_256()
    h.update(struct.pack(">I", len(domain)))
    h.update(domain)
    h.update(struct.pack(">Q", namespace))
    h.update(struct.pack(">Q", counter))
    return "0x" + h.hexdigest()


class IdGenerator:
    """Centralized, thread-safe, monotonic id source."""

    __slots__ = ("namespace", "_counter", "_lock")

    def __init__(self, namespace: int | None = None) -> None:
        self.namespace = next(_namespaces) if namespace is None else int(namespace)
        self._counter = 0
        self._lock = threading.Lock()

    def _next(self, domain: bytes) -> str:
        with self._lock:
            self._counter += 1
            n = self._counter
        return derive_id(domain, self.namespace, n)

    def registry_id(self) -> str:
        return derive_id(REGISTRY_DOMAIN, self.namespace, 0)

    def stream_id(self) -> str:
        return self._next(STREAM_DOMAIN)

    def token_id(self) -> str:
        return self._next(TOKEN_DOMAIN)

    @property
    def issued(self) -> int:
        return self._counter


__all__ = [
    "STREAM_DOMAIN",
    "TOKEN_DOMAIN",
    "REGISTRY_DOMAIN",
    "derive_id",
    "IdGenerator",
]
