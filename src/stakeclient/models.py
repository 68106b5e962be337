"""Shared data models for the staking client.

CRITICAL: All token quantities use Decimal once scaled by the token's decimals.
Raw integers only cross the gateway boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum, IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stakeclient.wallet import Signer


class LockTerm(IntEnum):
    """Commitment period of a stake. Values are the contract's uint8 encoding."""

    FLEXIBLE = 0
    ONE_MONTH = 1
    ONE_YEAR = 2

    @property
    def label(self) -> str:
        return _LOCK_TERM_LABELS[self]


_LOCK_TERM_LABELS = {
    LockTerm.FLEXIBLE: "Flexible",
    LockTerm.ONE_MONTH: "1 Month",
    LockTerm.ONE_YEAR: "1 Year",
}


class OperationState(str, Enum):
    """Lifecycle of a single orchestrator operation."""

    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class TokenInfo:
    """Token metadata, fetched once per session."""

    name: str
    symbol: str
    decimals: int


@dataclass(frozen=True)
class RawStake:
    """A getStake() tuple as returned by the pool, before scaling."""

    amount: int
    start_time: int
    lock_type: int
    claimed: bool
    reward: int
    unlock_time: int


@dataclass(frozen=True)
class StakeRecord:
    """One deposit of the session address, tracked by its contract index.

    unlock_time is derived client-side from start_time and the lock term;
    it carries no meaning for FLEXIBLE stakes.
    """

    index: int
    principal: Decimal
    start_time: int  # Unix seconds
    lock_term: LockTerm
    claimed: bool
    current_reward: Decimal  # as computed by the contract
    unlock_time: int  # Unix seconds


@dataclass(frozen=True)
class Session:
    """Authenticated identity for one login."""

    address: str
    signer: Signer
    is_admin: bool


@dataclass(frozen=True)
class StoreSnapshot:
    """Everything read from the two contracts, replaced as a whole on commit."""

    token_info: TokenInfo | None = None
    balance: Decimal = Decimal("0")
    allowance: Decimal = Decimal("0")
    reward_rates: dict[LockTerm, int] = field(default_factory=dict)
    stakes: tuple[StakeRecord, ...] = ()


@dataclass(frozen=True)
class OperationOutcome:
    """Result notice of the last finished operation."""

    operation: str
    state: OperationState
    message: str
    tx_hash: str | None = None
