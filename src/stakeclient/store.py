"""In-memory view of everything read from the token and staking contracts.

The orchestrator is the only writer. Every write swaps in a new immutable
StoreSnapshot, so a reader never observes a half-applied refresh. All writes
happen on the event loop thread between awaits, so no lock is needed.
"""

from __future__ import annotations

import dataclasses
from decimal import Decimal
from typing import Any

from stakeclient.eligibility import is_withdrawable
from stakeclient.logging import get_logger
from stakeclient.models import StakeRecord, StoreSnapshot, TokenInfo

logger = get_logger(__name__)


class ViewStateStore:
    """Holds the current StoreSnapshot and derives read-only views from it."""

    def __init__(self) -> None:
        self._snapshot = StoreSnapshot()
        self._version = 0

    @property
    def snapshot(self) -> StoreSnapshot:
        """The current snapshot. Treat as read-only."""
        return self._snapshot

    @property
    def version(self) -> int:
        """Number of commits so far."""
        return self._version

    def replace(self, snapshot: StoreSnapshot) -> None:
        """Swap in a complete new snapshot."""
        self._snapshot = snapshot
        self._version += 1
        logger.debug("store_replaced", version=self._version)

    def update(self, **changes: Any) -> None:
        """Replace the named fields in one commit, keeping the others."""
        self._snapshot = dataclasses.replace(self._snapshot, **changes)
        self._version += 1
        logger.debug("store_updated", version=self._version, fields=sorted(changes))

    # Derived views

    @property
    def token_info(self) -> TokenInfo | None:
        return self._snapshot.token_info

    @property
    def balance(self) -> Decimal:
        return self._snapshot.balance

    @property
    def allowance(self) -> Decimal:
        return self._snapshot.allowance

    @property
    def is_approved(self) -> bool:
        return self._snapshot.allowance > 0

    def get_stake(self, index: int) -> StakeRecord | None:
        """Return the record with the given contract index, or None."""
        for record in self._snapshot.stakes:
            if record.index == index:
                return record
        return None

    def active_stakes(self) -> list[StakeRecord]:
        """Records not yet claimed, locked or not."""
        return [r for r in self._snapshot.stakes if not r.claimed]

    def withdrawable_stakes(self, now: float) -> list[StakeRecord]:
        """Records that may be withdrawn at time now."""
        return [r for r in self._snapshot.stakes if is_withdrawable(r, now)]
