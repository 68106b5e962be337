"""Abstract contract gateway interface.

Defines the contract for all gateway implementations.
The orchestrator depends only on this interface, keeping web3-specific
details isolated in the concrete implementation.

Every method either returns a parsed value or raises RemoteCallError.
Quantities are raw integers; scaling is the caller's concern.
"""

from abc import ABC, abstractmethod

from stakeclient.gateway.types import PendingTransaction
from stakeclient.models import RawStake


class ContractGateway(ABC):
    """Typed wrappers around the token and staking pool contracts."""

    @property
    @abstractmethod
    def token_address(self) -> str:
        """Checksum address of the token contract."""
        ...

    @property
    @abstractmethod
    def staking_address(self) -> str:
        """Checksum address of the staking pool contract."""
        ...

    # Token

    @abstractmethod
    async def token_name(self) -> str:
        ...

    @abstractmethod
    async def token_symbol(self) -> str:
        ...

    @abstractmethod
    async def token_decimals(self) -> int:
        ...

    @abstractmethod
    async def balance_of(self, address: str) -> int:
        """Raw token balance of an address."""
        ...

    @abstractmethod
    async def allowance(self, owner: str, spender: str) -> int:
        """Raw amount spender may move on owner's behalf."""
        ...

    @abstractmethod
    async def approve(self, spender: str, amount: int) -> PendingTransaction:
        """Submit an approval of spender for a raw amount."""
        ...

    # Staking pool

    @abstractmethod
    async def staking_token(self) -> str:
        """Address of the token the pool accepts."""
        ...

    @abstractmethod
    async def owner(self) -> str:
        """Address of the pool owner (the admin account)."""
        ...

    @abstractmethod
    async def reward_rate(self, lock_type: int) -> int:
        """Raw reward percentage for a lock type."""
        ...

    @abstractmethod
    async def stake(self, amount: int, lock_type: int) -> PendingTransaction:
        """Submit a stake of a raw amount under a lock type."""
        ...

    @abstractmethod
    async def withdraw(self, index: int) -> PendingTransaction:
        """Submit withdrawal of the stake at index."""
        ...

    @abstractmethod
    async def deposit_reward(self, amount: int) -> PendingTransaction:
        """Submit a top-up of the reward pool (owner only on-chain)."""
        ...

    @abstractmethod
    async def get_stake_count(self, address: str) -> int:
        ...

    @abstractmethod
    async def get_stake(self, address: str, index: int) -> RawStake:
        ...
