"""Contract gateway implementation via web3.py async.

Wraps AsyncWeb3 contract handles for the token and the staking pool.
Every library failure is converted to RemoteCallError so callers only
deal with the client's own exception hierarchy.
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any, TypeVar

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import TimeExhausted

from stakeclient.exceptions import ConfirmationTimeoutError, RemoteCallError
from stakeclient.gateway.abis import STAKING_ABI, TOKEN_ABI
from stakeclient.gateway.client import ContractGateway
from stakeclient.gateway.types import PendingTransaction, TransactionReceipt
from stakeclient.logging import get_logger
from stakeclient.models import RawStake
from stakeclient.wallet import Signer

logger = get_logger(__name__)

T = TypeVar("T")


def create_web3(rpc_url: str) -> AsyncWeb3:
    """Build an AsyncWeb3 instance over HTTP JSON-RPC."""
    return AsyncWeb3(AsyncHTTPProvider(rpc_url))


class Web3PendingTransaction(PendingTransaction):
    """Submitted transaction whose receipt is polled on wait()."""

    def __init__(
        self,
        w3: AsyncWeb3,
        tx_hash: str,
        timeout: float,
        poll_latency: float,
    ) -> None:
        self._w3 = w3
        self._tx_hash = tx_hash
        self._timeout = timeout
        self._poll_latency = poll_latency

    @property
    def tx_hash(self) -> str:
        return self._tx_hash

    async def wait(self) -> TransactionReceipt:
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                self._tx_hash,
                timeout=self._timeout,
                poll_latency=self._poll_latency,
            )
        except TimeExhausted as e:
            logger.warning(
                "transaction_still_pending",
                tx_hash=self._tx_hash,
                timeout=self._timeout,
            )
            raise ConfirmationTimeoutError(self._tx_hash, self._timeout) from e
        except Exception as e:
            raise RemoteCallError(
                f"could not confirm transaction {self._tx_hash}: {e}"
            ) from e

        if receipt["status"] != 1:
            logger.warning("transaction_reverted", tx_hash=self._tx_hash)
            raise RemoteCallError(f"transaction {self._tx_hash} reverted")

        logger.debug(
            "transaction_confirmed",
            tx_hash=self._tx_hash,
            block_number=receipt["blockNumber"],
        )
        return TransactionReceipt(
            tx_hash=self._tx_hash,
            block_number=int(receipt["blockNumber"]),
            status=int(receipt["status"]),
            gas_used=int(receipt.get("gasUsed", 0)),
        )


class Web3Gateway(ContractGateway):
    """Concrete gateway over web3.py, bound to one signer for mutating calls."""

    def __init__(
        self,
        w3: AsyncWeb3,
        token_address: str,
        staking_address: str,
        signer: Signer,
        confirmation_timeout: float = 120.0,
        poll_latency: float = 0.5,
    ) -> None:
        self._w3 = w3
        self._signer = signer
        self._confirmation_timeout = confirmation_timeout
        self._poll_latency = poll_latency
        self._token_address = Web3.to_checksum_address(token_address)
        self._staking_address = Web3.to_checksum_address(staking_address)
        self._token = w3.eth.contract(address=self._token_address, abi=TOKEN_ABI)
        self._staking = w3.eth.contract(
            address=self._staking_address, abi=STAKING_ABI
        )

    @property
    def token_address(self) -> str:
        return self._token_address

    @property
    def staking_address(self) -> str:
        return self._staking_address

    async def _read(self, label: str, call: Awaitable[T]) -> T:
        """Await a view call, converting any failure to RemoteCallError."""
        try:
            return await call
        except Exception as e:
            logger.warning("contract_read_failed", call=label, error=str(e))
            raise RemoteCallError(f"{label} failed: {e}") from e

    async def _submit(self, label: str, function: Any) -> PendingTransaction:
        """Build, sign and broadcast a mutating call.

        Gas estimation runs inside build_transaction, so a call the
        contract would revert fails here before anything is broadcast.
        """
        try:
            tx = await function.build_transaction({"from": self._signer.address})
            tx_hash = await self._signer.send_transaction(tx)
        except Exception as e:
            logger.warning("transaction_submit_failed", call=label, error=str(e))
            raise RemoteCallError(f"{label} failed: {e}") from e

        logger.info("transaction_submitted", call=label, tx_hash=tx_hash)
        return Web3PendingTransaction(
            self._w3,
            tx_hash,
            timeout=self._confirmation_timeout,
            poll_latency=self._poll_latency,
        )

    # Token

    async def token_name(self) -> str:
        return str(await self._read("name", self._token.functions.name().call()))

    async def token_symbol(self) -> str:
        return str(await self._read("symbol", self._token.functions.symbol().call()))

    async def token_decimals(self) -> int:
        return int(
            await self._read("decimals", self._token.functions.decimals().call())
        )

    async def balance_of(self, address: str) -> int:
        call = self._token.functions.balanceOf(Web3.to_checksum_address(address))
        return int(await self._read("balanceOf", call.call()))

    async def allowance(self, owner: str, spender: str) -> int:
        call = self._token.functions.allowance(
            Web3.to_checksum_address(owner), Web3.to_checksum_address(spender)
        )
        return int(await self._read("allowance", call.call()))

    async def approve(self, spender: str, amount: int) -> PendingTransaction:
        return await self._submit(
            "approve",
            self._token.functions.approve(Web3.to_checksum_address(spender), amount),
        )

    # Staking pool

    async def staking_token(self) -> str:
        address = await self._read("token", self._staking.functions.token().call())
        return Web3.to_checksum_address(address)

    async def owner(self) -> str:
        address = await self._read("owner", self._staking.functions.owner().call())
        return Web3.to_checksum_address(address)

    async def reward_rate(self, lock_type: int) -> int:
        call = self._staking.functions.rewardRates(lock_type)
        return int(await self._read("rewardRates", call.call()))

    async def stake(self, amount: int, lock_type: int) -> PendingTransaction:
        return await self._submit(
            "stake", self._staking.functions.stake(amount, lock_type)
        )

    async def withdraw(self, index: int) -> PendingTransaction:
        return await self._submit("withdraw", self._staking.functions.withdraw(index))

    async def deposit_reward(self, amount: int) -> PendingTransaction:
        return await self._submit(
            "depositReward", self._staking.functions.depositReward(amount)
        )

    async def get_stake_count(self, address: str) -> int:
        call = self._staking.functions.getStakeCount(Web3.to_checksum_address(address))
        return int(await self._read("getStakeCount", call.call()))

    async def get_stake(self, address: str, index: int) -> RawStake:
        call = self._staking.functions.getStake(
            Web3.to_checksum_address(address), index
        )
        amount, start_time, lock_type, claimed, reward, unlock_time = await self._read(
            f"getStake({index})", call.call()
        )
        return RawStake(
            amount=int(amount),
            start_time=int(start_time),
            lock_type=int(lock_type),
            claimed=bool(claimed),
            reward=int(reward),
            unlock_time=int(unlock_time),
        )
