"""Shared test fixtures for the staking client.

FakeGateway is an in-memory token + staking pool. Mutations take effect
when their PendingTransaction is awaited, like a real receipt wait.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from stakeclient.config import StakingSettings
from stakeclient.eligibility import lock_duration
from stakeclient.exceptions import RemoteCallError
from stakeclient.gateway.client import ContractGateway
from stakeclient.gateway.types import PendingTransaction, TransactionReceipt
from stakeclient.models import LockTerm, RawStake, Session
from stakeclient.orchestrator import StakingOrchestrator
from stakeclient.store import ViewStateStore
from stakeclient.wallet import Signer

USER = "0x1111111111111111111111111111111111111111"
ADMIN = "0x2222222222222222222222222222222222222222"
TOKEN = "0xaAaAaAaaAaAaAaaAaAAAAAAAAaaaAaAaAaaAaaAa"
POOL = "0xbBbBBBBbbBBBbbbBbbBbbbbBBbBbbbbBbBbbBBbB"

DECIMALS = 18
ONE = 10**DECIMALS
START_TIME = 1_700_000_000


class FakeClock:
    """Settable replacement for time.time."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePendingTransaction(PendingTransaction):
    def __init__(self, gateway: FakeGateway, tx_hash: str, effect) -> None:
        self._gateway = gateway
        self._tx_hash = tx_hash
        self._effect = effect

    @property
    def tx_hash(self) -> str:
        return self._tx_hash

    async def wait(self) -> TransactionReceipt:
        if self._gateway.hold_confirmations is not None:
            await self._gateway.hold_confirmations.wait()
        if self._gateway.fail_confirmation:
            raise RemoteCallError(f"transaction {self._tx_hash} reverted")
        self._effect()
        self._gateway.block_number += 1
        return TransactionReceipt(
            tx_hash=self._tx_hash, block_number=self._gateway.block_number, status=1
        )


class FakeGateway(ContractGateway):
    """In-memory token and staking pool acting for one signer address."""

    def __init__(
        self,
        account: str = USER,
        pool_owner: str = ADMIN,
        clock: FakeClock | None = None,
    ) -> None:
        self.account = account
        self.pool_owner = pool_owner
        self.clock = clock or FakeClock()
        self.balances: dict[str, int] = {USER: 1000 * ONE, ADMIN: 100_000 * ONE}
        self.allowances: dict[tuple[str, str], int] = {}
        self.rates = {0: 5, 1: 8, 2: 15}
        self.stakes: dict[str, list[RawStake]] = {}
        self.reward_pool = 0
        self.pool_token = TOKEN
        self.calls: list[str] = []
        self.failures: dict[str, Exception] = {}
        self.fail_confirmation = False
        self.hold_confirmations: asyncio.Event | None = None
        self.block_number = 0
        self._tx_counter = 0

    # helpers

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]

    def _pending(self, effect) -> FakePendingTransaction:
        self._tx_counter += 1
        return FakePendingTransaction(self, f"0x{self._tx_counter:064x}", effect)

    def add_stake(
        self,
        amount: int,
        lock_term: LockTerm,
        start_time: int = START_TIME,
        claimed: bool = False,
        reward: int = 0,
        address: str = USER,
    ) -> None:
        self.stakes.setdefault(address, []).append(
            RawStake(
                amount=amount,
                start_time=start_time,
                lock_type=int(lock_term),
                claimed=claimed,
                reward=reward,
                unlock_time=start_time + lock_duration(lock_term),
            )
        )

    # ContractGateway

    @property
    def token_address(self) -> str:
        return TOKEN

    @property
    def staking_address(self) -> str:
        return POOL

    async def token_name(self) -> str:
        self._record("name")
        return "Mock Token"

    async def token_symbol(self) -> str:
        self._record("symbol")
        return "MKT"

    async def token_decimals(self) -> int:
        self._record("decimals")
        return DECIMALS

    async def balance_of(self, address: str) -> int:
        self._record("balanceOf")
        return self.balances.get(address, 0)

    async def allowance(self, owner: str, spender: str) -> int:
        self._record("allowance")
        return self.allowances.get((owner, spender), 0)

    async def approve(self, spender: str, amount: int) -> PendingTransaction:
        self._record("approve")

        def effect() -> None:
            self.allowances[(self.account, spender)] = amount

        return self._pending(effect)

    async def staking_token(self) -> str:
        self._record("token")
        return self.pool_token

    async def owner(self) -> str:
        self._record("owner")
        return self.pool_owner

    async def reward_rate(self, lock_type: int) -> int:
        self._record("rewardRates")
        return self.rates[lock_type]

    async def stake(self, amount: int, lock_type: int) -> PendingTransaction:
        self._record("stake")

        def effect() -> None:
            self.balances[self.account] -= amount
            self.allowances[(self.account, POOL)] -= amount
            self.add_stake(
                amount, LockTerm(lock_type), start_time=int(self.clock()),
                address=self.account,
            )

        return self._pending(effect)

    async def withdraw(self, index: int) -> PendingTransaction:
        self._record("withdraw")

        def effect() -> None:
            records = self.stakes[self.account]
            record = records[index]
            records[index] = replace(record, claimed=True)
            self.balances[self.account] += record.amount + record.reward
            self.reward_pool -= record.reward

        return self._pending(effect)

    async def deposit_reward(self, amount: int) -> PendingTransaction:
        self._record("depositReward")

        def effect() -> None:
            self.balances[self.account] -= amount
            self.allowances[(self.account, POOL)] -= amount
            self.reward_pool += amount

        return self._pending(effect)

    async def get_stake_count(self, address: str) -> int:
        self._record("getStakeCount")
        return len(self.stakes.get(address, []))

    async def get_stake(self, address: str, index: int) -> RawStake:
        self._record("getStake")
        return self.stakes[address][index]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway(clock: FakeClock) -> FakeGateway:
    return FakeGateway(clock=clock)


@pytest.fixture
def staking_settings() -> StakingSettings:
    return StakingSettings(confirmation_timeout=5.0)


def make_session(address: str = USER, is_admin: bool = False) -> Session:
    signer = MagicMock(spec=Signer)
    signer.address = address
    return Session(address=address, signer=signer, is_admin=is_admin)


@pytest.fixture
def session() -> Session:
    return make_session()


@pytest.fixture
def store() -> ViewStateStore:
    return ViewStateStore()


@pytest.fixture
def orchestrator(
    gateway: FakeGateway,
    session: Session,
    store: ViewStateStore,
    staking_settings: StakingSettings,
    clock: FakeClock,
) -> StakingOrchestrator:
    """Orchestrator for a regular user over the in-memory gateway."""
    return StakingOrchestrator(
        gateway=gateway,
        session=session,
        store=store,
        settings=staking_settings,
        clock=clock,
    )


def approve_in_fake(gateway: FakeGateway, amount: int = 1_000_000 * ONE) -> None:
    """Grant the pool an allowance directly in the fake contract."""
    gateway.allowances[(gateway.account, POOL)] = amount


def to_decimal(raw: int) -> Decimal:
    return Decimal(raw) / Decimal(ONE)
