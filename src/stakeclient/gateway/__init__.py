"""Contract gateway layer -- token and staking pool access via web3.py."""

from stakeclient.gateway.client import ContractGateway
from stakeclient.gateway.types import (
    PendingTransaction,
    TransactionReceipt,
    from_raw,
    to_raw,
)
from stakeclient.gateway.web3_gateway import Web3Gateway, create_web3

__all__ = [
    "ContractGateway",
    "PendingTransaction",
    "TransactionReceipt",
    "Web3Gateway",
    "create_web3",
    "from_raw",
    "to_raw",
]
