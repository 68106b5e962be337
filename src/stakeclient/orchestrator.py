"""Staking client orchestrator -- gates, sequences and re-syncs every operation.

Owns the session's contract gateway and is the only writer of the
ViewStateStore. Each user-facing operation follows the same shape:

  1. GUARD: reject if another operation is in flight
  2. VALIDATE: local preconditions, raising ValidationError before any
     remote call
  3. SUBMIT: send the mutating call through the gateway
  4. CONFIRM: await the receipt; a failed wait fails the operation
  5. RE-SYNC: re-read only the fields the call could have changed and
     commit them to the store in one update

Reads within a step run concurrently via asyncio.gather; a refresh either
commits everything it read or nothing.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import NoReturn, TypeVar

from stakeclient.config import StakingSettings
from stakeclient.eligibility import is_withdrawable, lock_duration, remaining_time_text
from stakeclient.exceptions import (
    ConfigurationError,
    OperationInProgressError,
    PartialRefreshError,
    RemoteCallError,
    ValidationError,
)
from stakeclient.gateway.client import ContractGateway
from stakeclient.gateway.types import (
    PendingTransaction,
    TransactionReceipt,
    from_raw,
    to_raw,
)
from stakeclient.logging import get_logger
from stakeclient.models import (
    LockTerm,
    OperationOutcome,
    OperationState,
    RawStake,
    Session,
    StakeRecord,
    StoreSnapshot,
    TokenInfo,
)
from stakeclient.session import check_is_admin
from stakeclient.store import ViewStateStore

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class _OperationContext:
    """Mutable bookkeeping for the operation currently in flight."""

    name: str
    message: str = ""
    tx_hash: str | None = None
    confirmed: bool = False


class StakingOrchestrator:
    """User-facing staking operations over one logged-in session.

    Args:
        gateway: Contract gateway bound to the session's signer.
        session: Authenticated identity (address, signer, admin flag).
        store: View-state store this orchestrator writes.
        settings: Client-side staking parameters.
        clock: Returns the current Unix time; injectable for tests.
    """

    def __init__(
        self,
        gateway: ContractGateway,
        session: Session,
        store: ViewStateStore,
        settings: StakingSettings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._gateway = gateway
        self._session = session
        self._store = store
        self._settings = settings or StakingSettings()
        self._clock = clock
        self._op_lock = asyncio.Lock()
        self._in_flight: str | None = None
        self._states: dict[str, OperationState] = {}
        self._last_outcome: OperationOutcome | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def store(self) -> ViewStateStore:
        return self._store

    @property
    def session(self) -> Session:
        return self._session

    @property
    def busy(self) -> bool:
        """Whether an operation is in flight."""
        return self._op_lock.locked()

    @property
    def last_outcome(self) -> OperationOutcome | None:
        """Success or error notice of the most recent operation."""
        return self._last_outcome

    def now(self) -> float:
        """Current Unix time as seen by the withdraw guard."""
        return self._clock()

    def operation_state(self, name: str) -> OperationState:
        return self._states.get(name, OperationState.IDLE)

    def get_status(self) -> dict:
        """Return current orchestrator status.

        Returns:
            Dict with: address, is_admin, busy, in_flight, last_outcome.
        """
        outcome = self._last_outcome
        return {
            "address": self._session.address,
            "is_admin": self._session.is_admin,
            "busy": self.busy,
            "in_flight": self._in_flight,
            "last_outcome": (
                {
                    "operation": outcome.operation,
                    "state": outcome.state.value,
                    "message": outcome.message,
                    "tx_hash": outcome.tx_hash,
                }
                if outcome is not None
                else None
            ),
        }

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh_all(self) -> StoreSnapshot:
        """Re-read everything and replace the store snapshot atomically.

        TokenInfo and reward rates are fetched once and reused afterwards.

        Raises:
            OperationInProgressError: If another operation is in flight.
            PartialRefreshError: If any read fails; the store is unchanged.
        """
        self._ensure_idle("refresh")
        async with self._operation("refresh") as op:
            snapshot = await self._fetch_snapshot()
            self._store.replace(snapshot)
            op.message = "Data refreshed"
        logger.info(
            "refresh_complete",
            stakes=len(snapshot.stakes),
            balance=str(snapshot.balance),
            allowance=str(snapshot.allowance),
        )
        return snapshot

    async def load_stakes(self) -> tuple[StakeRecord, ...]:
        """Re-read only the stake records of the session address.

        Raises:
            ValidationError: If token metadata has not been loaded yet.
            OperationInProgressError: If another operation is in flight.
            PartialRefreshError: If any read fails; the store is unchanged.
        """
        self._ensure_idle("load_stakes")
        token_info = self._require_token_info("load_stakes")
        async with self._operation("load_stakes") as op:
            stakes = await self._step(
                "stakes", self._fetch_stakes(token_info.decimals)
            )
            self._store.update(stakes=stakes)
            op.message = f"Loaded {len(stakes)} staking records"
        return stakes

    async def _fetch_snapshot(self) -> StoreSnapshot:
        """Read a complete snapshot in dependency order without committing it."""
        current = self._store.snapshot
        address = self._session.address

        token_info = current.token_info
        if token_info is None:
            token_info = await self._step("token_info", self._fetch_token_info())
        decimals = token_info.decimals

        reward_rates = current.reward_rates
        if not reward_rates:
            reward_rates = await self._step("reward_rates", self._fetch_reward_rates())

        balance_raw, allowance_raw = await self._step(
            "balances",
            asyncio.gather(
                self._gateway.balance_of(address),
                self._gateway.allowance(address, self._gateway.staking_address),
            ),
        )

        stakes = await self._step("stakes", self._fetch_stakes(decimals))

        return StoreSnapshot(
            token_info=token_info,
            balance=from_raw(balance_raw, decimals),
            allowance=from_raw(allowance_raw, decimals),
            reward_rates=dict(reward_rates),
            stakes=stakes,
        )

    async def _fetch_token_info(self) -> TokenInfo:
        name, symbol, decimals = await asyncio.gather(
            self._gateway.token_name(),
            self._gateway.token_symbol(),
            self._gateway.token_decimals(),
        )
        logger.info("token_info_loaded", name=name, symbol=symbol, decimals=decimals)
        return TokenInfo(name=name, symbol=symbol, decimals=decimals)

    async def _fetch_reward_rates(self) -> dict[LockTerm, int]:
        terms = list(LockTerm)
        rates = await asyncio.gather(
            *(self._gateway.reward_rate(int(term)) for term in terms)
        )
        return dict(zip(terms, rates))

    async def _fetch_stakes(self, decimals: int) -> tuple[StakeRecord, ...]:
        address = self._session.address
        count = await self._gateway.get_stake_count(address)
        if count == 0:
            return ()
        raws = await asyncio.gather(
            *(self._gateway.get_stake(address, index) for index in range(count))
        )
        return tuple(
            self._decorate(index, raw, decimals) for index, raw in enumerate(raws)
        )

    def _decorate(self, index: int, raw: RawStake, decimals: int) -> StakeRecord:
        """Scale a raw stake and derive its unlock time from the lock term."""
        try:
            lock_term = LockTerm(raw.lock_type)
        except ValueError as e:
            raise RemoteCallError(
                f"stake {index} has unknown lock type {raw.lock_type}"
            ) from e

        unlock_time = raw.start_time + lock_duration(
            lock_term,
            one_month_seconds=self._settings.one_month_seconds,
            one_year_seconds=self._settings.one_year_seconds,
        )
        if (
            lock_term != LockTerm.FLEXIBLE
            and raw.unlock_time
            and raw.unlock_time != unlock_time
        ):
            logger.warning(
                "unlock_time_mismatch",
                index=index,
                derived=unlock_time,
                reported=raw.unlock_time,
            )

        return StakeRecord(
            index=index,
            principal=from_raw(raw.amount, decimals),
            start_time=raw.start_time,
            lock_term=lock_term,
            claimed=raw.claimed,
            current_reward=from_raw(raw.reward, decimals),
            unlock_time=unlock_time,
        )

    async def _step(self, step: str, reads: Awaitable[T]) -> T:
        """Await one refresh step, turning a remote failure into PartialRefreshError."""
        try:
            return await reads
        except RemoteCallError as e:
            logger.error("refresh_failed", step=step, error=str(e))
            raise PartialRefreshError(step, e) from e

    async def _resync(
        self,
        *,
        decimals: int | None = None,
        stakes: bool = False,
        balance: bool = False,
        allowance: bool = False,
    ) -> None:
        """Re-read the named fields concurrently and commit them together."""
        if decimals is None:
            decimals = self._require_token_info("resync").decimals
        address = self._session.address

        reads: dict[str, Awaitable] = {}
        if stakes:
            reads["stakes"] = self._fetch_stakes(decimals)
        if balance:
            reads["balance"] = self._gateway.balance_of(address)
        if allowance:
            reads["allowance"] = self._gateway.allowance(
                address, self._gateway.staking_address
            )

        values = await self._step("resync", asyncio.gather(*reads.values()))
        changes = dict(zip(reads, values))
        for field in ("balance", "allowance"):
            if field in changes:
                changes[field] = from_raw(changes[field], decimals)
        self._store.update(**changes)

    # ------------------------------------------------------------------
    # Mutating operations
    # ------------------------------------------------------------------

    async def approve(self) -> TransactionReceipt:
        """Approve the staking pool for the configured ceiling.

        Has no precondition: when token metadata is not loaded yet (for
        example after a failed initial refresh), decimals() is read directly.
        Re-approving is allowed and resets the ceiling. Only Allowance is
        re-read afterwards.
        """
        self._ensure_idle("approve")

        async with self._operation("approve") as op:
            token_info = self._store.token_info
            if token_info is not None:
                decimals = token_info.decimals
            else:
                decimals = await self._gateway.token_decimals()
            ceiling = to_raw(self._settings.approval_ceiling, decimals)
            pending = await self._gateway.approve(self._gateway.staking_address, ceiling)
            receipt = await self._confirm(op, pending)
            await self._resync(decimals=decimals, allowance=True)
            op.message = "Token approval successful"
        return receipt

    async def stake(self, amount: str, lock_term: LockTerm | int | str) -> TransactionReceipt:
        """Stake amount under lock_term, then re-read stakes and Balance.

        Raises:
            ValidationError: Bad amount, unknown lock term or no allowance.
        """
        self._ensure_idle("stake")
        token_info = self._require_token_info("stake")
        term = self._parse_lock_term("stake", lock_term)
        raw_amount = self._parse_amount("stake", amount, token_info.decimals)
        self._require_allowance("stake")

        async with self._operation("stake") as op:
            logger.info("stake_requested", amount=str(amount), lock_term=term.name)
            pending = await self._gateway.stake(raw_amount, int(term))
            receipt = await self._confirm(op, pending)
            await self._resync(stakes=True, balance=True)
            op.message = f"Staked {amount} {token_info.symbol} ({term.label})"
        return receipt

    async def withdraw(self, index: int) -> TransactionReceipt:
        """Withdraw principal plus reward of the stake at index.

        The unlock check is a client-side guard; the contract has the final say.

        Raises:
            ValidationError: Unknown index, already claimed, or still locked.
        """
        self._ensure_idle("withdraw")
        record = self._store.get_stake(index)
        if record is None:
            self._reject("withdraw", f"No staking record at index {index}")
        if record.claimed:
            self._reject("withdraw", f"Stake {index} has already been withdrawn")
        now = self.now()
        if not is_withdrawable(record, now):
            remaining = remaining_time_text(record, now)
            self._reject("withdraw", f"Stake {index} is locked ({remaining})")

        async with self._operation("withdraw") as op:
            logger.info("withdraw_requested", index=index, principal=str(record.principal))
            pending = await self._gateway.withdraw(index)
            receipt = await self._confirm(op, pending)
            await self._resync(stakes=True, balance=True)
            op.message = f"Withdrawal of stake {index} successful"
        return receipt

    async def deposit_reward(self, amount: str) -> TransactionReceipt:
        """Top up the reward pool (admin only), then re-read Balance.

        Raises:
            ValidationError: Not the admin, bad amount, or no allowance.
            RemoteCallError: If admin re-verification is enabled and owner()
                cannot be read.
        """
        self._ensure_idle("deposit_reward")
        is_admin = self._session.is_admin
        if self._settings.reverify_admin:
            is_admin = await check_is_admin(self._session.address, self._gateway)
        if not is_admin:
            self._reject("deposit_reward", "Only the pool owner can deposit rewards")
        token_info = self._require_token_info("deposit_reward")
        raw_amount = self._parse_amount("deposit_reward", amount, token_info.decimals)
        self._require_allowance("deposit_reward")

        async with self._operation("deposit_reward") as op:
            logger.info("deposit_reward_requested", amount=str(amount))
            pending = await self._gateway.deposit_reward(raw_amount)
            receipt = await self._confirm(op, pending)
            await self._resync(balance=True)
            op.message = f"Deposited {amount} {token_info.symbol} to the reward pool"
        return receipt

    async def verify_token_binding(self) -> None:
        """Check that the pool's token() is the configured token contract.

        Raises:
            ConfigurationError: If the two disagree.
            RemoteCallError: If token() cannot be read.
        """
        pool_token = await self._gateway.staking_token()
        if pool_token.lower() != self._gateway.token_address.lower():
            logger.error(
                "token_binding_mismatch",
                pool_token=pool_token,
                configured=self._gateway.token_address,
            )
            raise ConfigurationError(
                "token_contract",
                f"staking pool uses token {pool_token}, "
                f"but the token contract is configured as {self._gateway.token_address}",
            )

    # ------------------------------------------------------------------
    # Guards and bookkeeping
    # ------------------------------------------------------------------

    def _ensure_idle(self, name: str) -> None:
        if self._op_lock.locked():
            logger.warning(
                "operation_rejected_in_flight",
                operation=name,
                in_flight=self._in_flight,
            )
            raise OperationInProgressError(
                f"{name} rejected: {self._in_flight} is still in progress"
            )

    def _reject(self, name: str, message: str) -> NoReturn:
        """Record a failed precondition and raise ValidationError."""
        logger.info("operation_rejected", operation=name, reason=message)
        self._last_outcome = OperationOutcome(
            operation=name, state=OperationState.IDLE, message=message
        )
        raise ValidationError(message)

    def _require_token_info(self, name: str) -> TokenInfo:
        token_info = self._store.token_info
        if token_info is None:
            self._reject(name, "Token information not loaded yet, refresh first")
        return token_info

    def _require_allowance(self, name: str) -> None:
        if not self._store.is_approved:
            self._reject(name, "Please approve tokens first")

    def _parse_amount(self, name: str, amount: str | Decimal, decimals: int) -> int:
        if not isinstance(amount, (str, Decimal)):
            self._reject(name, "Please enter a valid amount")
        try:
            raw = to_raw(amount, decimals)
        except ValueError as e:
            self._reject(name, f"Please enter a valid amount: {e}")
        if raw <= 0:
            self._reject(name, "Amount must be greater than zero")
        return raw

    def _parse_lock_term(self, name: str, value: LockTerm | int | str) -> LockTerm:
        if isinstance(value, LockTerm):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            if value in LockTerm._value2member_map_:
                return LockTerm(value)
        elif isinstance(value, str) and value.upper() in LockTerm.__members__:
            return LockTerm[value.upper()]
        self._reject(name, f"Please select a valid lock type, got {value!r}")

    async def _confirm(
        self, op: _OperationContext, pending: PendingTransaction
    ) -> TransactionReceipt:
        op.tx_hash = pending.tx_hash
        logger.info("awaiting_confirmation", operation=op.name, tx_hash=op.tx_hash)
        receipt = await pending.wait()
        op.confirmed = True
        logger.info(
            "operation_confirmed",
            operation=op.name,
            tx_hash=op.tx_hash,
            block_number=receipt.block_number,
        )
        return receipt

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[_OperationContext]:
        """Run the body as the single in-flight operation.

        Moves the operation Idle -> InFlight -> Confirmed|Failed -> Idle and
        records the outcome. Exceptions are logged and re-raised.
        """
        self._ensure_idle(name)
        async with self._op_lock:
            op = _OperationContext(name=name)
            self._in_flight = name
            self._states[name] = OperationState.IN_FLIGHT
            try:
                yield op
            except PartialRefreshError as e:
                # A confirmed transaction stays confirmed even if the re-read broke
                state = OperationState.CONFIRMED if op.confirmed else OperationState.FAILED
                self._finish(op, state, f"{name} refresh failed: {e}")
                raise
            except Exception as e:
                self._finish(op, OperationState.FAILED, f"{name} failed: {e}")
                raise
            else:
                self._finish(op, OperationState.CONFIRMED, op.message or f"{name} done")
            finally:
                self._states[name] = OperationState.IDLE
                self._in_flight = None

    def _finish(
        self, op: _OperationContext, state: OperationState, message: str
    ) -> None:
        self._states[op.name] = state
        self._last_outcome = OperationOutcome(
            operation=op.name, state=state, message=message, tx_hash=op.tx_hash
        )
        if state is OperationState.FAILED:
            logger.error(
                "operation_failed", operation=op.name, tx_hash=op.tx_hash, error=message
            )
        else:
            logger.info("operation_finished", operation=op.name, tx_hash=op.tx_hash)
