from __future__ import annotations

"""
Delivery of capability tokens and funds to addresses.

When a stream starts, its PayeeToken is sent to the designated recipient rather
than returned to the payer; when a cancel leaves vested-but-unwithdrawn funds
behind, those are sent to the recipient too. Recipients pick both up here.
"""

import logging
import threading
from typing import Dict, List, Optional

from .custody import Balance
from .tokens import PayeeToken

log = logging.getLogger(__name__)


class Inbox:
    def __init__(self) -> None:
        self._tokens: Dict[str, List[PayeeToken]] = {}
        self._funds: Dict[str, Dict[str, Balance]] = {}
        self._lock = threading.RLock()

    def send_token(self, recipient: str, token: PayeeToken) -> None:
        with self._lock:
            self._tokens.setdefault(recipient, []).append(token)
        log.debug("inbox: token %s -> %s", token.token_id, recipient)

    def send_funds(self, recipient: str, funds: Balance) -> None:
        if funds.value == 0:
            funds.destroy_zero()
            return
        with self._lock:
            per_asset = self._funds.setdefault(recipient, {})
            held = per_asset.get(funds.asset_type)
            if held is None:
                per_asset[funds.asset_type] = held = Balance.zero(funds.asset_type)
            held.join(funds)
        log.debug("inbox: funds %s -> %s", funds.asset_type, recipient)

    def claim_tokens(self, recipient: str, stream_id: Optional[str] = None) -> List[PayeeToken]:
        """Hand over (and forget) tokens waiting for `recipient`, optionally for one stream."""
        with self._lock:
            waiting = self._tokens.get(recipient, [])
            taken = [t for t in waiting if stream_id is None or t.stream_id == stream_id]
            kept = [t for t in waiting if t not in taken]
            if kept:
                self._tokens[recipient] = kept
            else:
                self._tokens.pop(recipient, None)
            return taken

    def claim_funds(self, recipient: str, asset_type: str) -> Balance:
        with self._lock:
            held = self._funds.get(recipient, {}).pop(asset_type, None)
        return held if held is not None else Balance.zero(asset_type)

    def pending_funds(self, recipient: str, asset_type: str) -> int:
        with self._lock:
            held = self._funds.get(recipient, {}).get(asset_type)
            return held.value if held is not None else 0


__all__ = ["Inbox"]
