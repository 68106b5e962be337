"""Client for a fixed-rate token staking pool.

Reads token and pool state into an in-memory store and runs the
approve / stake / withdraw / deposit-reward operations against it.
"""

from stakeclient.exceptions import (
    ConfigurationError,
    PartialRefreshError,
    RemoteCallError,
    StakingClientError,
    ValidationError,
)
from stakeclient.models import LockTerm, StakeRecord, TokenInfo
from stakeclient.orchestrator import StakingOrchestrator
from stakeclient.store import ViewStateStore

__all__ = [
    "ConfigurationError",
    "LockTerm",
    "PartialRefreshError",
    "RemoteCallError",
    "StakeRecord",
    "StakingClientError",
    "StakingOrchestrator",
    "TokenInfo",
    "ValidationError",
    "ViewStateStore",
]
