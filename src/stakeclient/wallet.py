"""Wallet and signing providers.

A WalletProvider hands out the address of the connected account and a
Signer bound to it. The gateway only needs "something that can submit a
transaction for this address", so two providers are offered:

- PrivateKeyWallet: a local key, transactions signed with eth_account
  and sent raw.
- NodeWallet: an account unlocked on the JSON-RPC node (e.g. a development
  node), transactions sent with eth_sendTransaction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, Web3
from web3.types import TxParams

from stakeclient.exceptions import ConfigurationError, RemoteCallError
from stakeclient.logging import get_logger

logger = get_logger(__name__)


class Signer(ABC):
    """Signing capability bound to one address."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Checksum address transactions are sent from."""
        ...

    @abstractmethod
    async def send_transaction(self, tx: TxParams) -> str:
        """Sign (if needed) and broadcast a transaction.

        Returns:
            The 0x-prefixed transaction hash.
        """
        ...


class LocalAccountSigner(Signer):
    """Signs locally with an eth_account key and sends the raw transaction."""

    def __init__(self, w3: AsyncWeb3, account: LocalAccount) -> None:
        self._w3 = w3
        self._account = account

    @property
    def address(self) -> str:
        return self._account.address

    async def send_transaction(self, tx: TxParams) -> str:
        tx = dict(tx)  # type: ignore[assignment]
        if "nonce" not in tx:
            tx["nonce"] = await self._w3.eth.get_transaction_count(
                self._account.address, "pending"
            )
        if "chainId" not in tx:
            tx["chainId"] = await self._w3.eth.chain_id
        signed = self._account.sign_transaction(tx)
        tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)


class NodeAccountSigner(Signer):
    """Delegates signing to an account unlocked on the node."""

    def __init__(self, w3: AsyncWeb3, address: str) -> None:
        self._w3 = w3
        self._address = Web3.to_checksum_address(address)

    @property
    def address(self) -> str:
        return self._address

    async def send_transaction(self, tx: TxParams) -> str:
        tx_hash = await self._w3.eth.send_transaction(tx)
        return Web3.to_hex(tx_hash)


class WalletProvider(ABC):
    """Source of the connected account and its signer."""

    @abstractmethod
    async def request_accounts(self) -> list[str]:
        """Ask the wallet for access and return the available accounts."""
        ...

    @abstractmethod
    async def get_signer(self) -> Signer:
        """Return a signer bound to the connected account."""
        ...

    async def get_address(self) -> str:
        """Return the address of the connected account."""
        signer = await self.get_signer()
        return signer.address


class PrivateKeyWallet(WalletProvider):
    """Wallet backed by a raw private key (hex, with or without 0x)."""

    def __init__(self, w3: AsyncWeb3, private_key: str) -> None:
        key = private_key.strip()
        if not key:
            raise ConfigurationError("private_key", "private key is missing")
        if not key.startswith("0x"):
            key = f"0x{key}"
        try:
            self._account: LocalAccount = Account.from_key(key)
        except (ValueError, TypeError) as e:
            raise ConfigurationError("private_key", "private key is invalid") from e
        self._signer = LocalAccountSigner(w3, self._account)

    async def request_accounts(self) -> list[str]:
        return [self._account.address]

    async def get_signer(self) -> Signer:
        return self._signer


class NodeWallet(WalletProvider):
    """Wallet backed by the node's unlocked accounts, selected by index."""

    def __init__(self, w3: AsyncWeb3, account_index: int = 0) -> None:
        self._w3 = w3
        self._account_index = account_index
        self._signer: NodeAccountSigner | None = None

    async def request_accounts(self) -> list[str]:
        try:
            accounts = list(await self._w3.eth.accounts)
        except Exception as e:
            raise RemoteCallError(f"eth_accounts failed: {e}") from e
        logger.debug("node_accounts_listed", count=len(accounts))
        return [Web3.to_checksum_address(a) for a in accounts]

    async def get_signer(self) -> Signer:
        if self._signer is None:
            accounts = await self.request_accounts()
            if not accounts:
                raise RemoteCallError("node exposes no unlocked accounts")
            if not 0 <= self._account_index < len(accounts):
                raise ConfigurationError(
                    "account_index",
                    f"account index {self._account_index} out of range "
                    f"({len(accounts)} accounts available)",
                )
            self._signer = NodeAccountSigner(
                self._w3, accounts[self._account_index]
            )
        return self._signer
