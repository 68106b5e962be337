"""Gateway-level type definitions and unit conversion functions.

Contracts speak raw integers; the rest of the client speaks Decimal.
Conversions go through strings so no float or context rounding is involved.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

_AMOUNT_PATTERN = re.compile(r"^(\d*)(?:\.(\d*))?$")


@dataclass(frozen=True)
class TransactionReceipt:
    """Final on-chain record of a mined transaction."""

    tx_hash: str
    block_number: int
    status: int
    gas_used: int = 0


class PendingTransaction(ABC):
    """Handle for a submitted, not yet final, mutating call."""

    @property
    @abstractmethod
    def tx_hash(self) -> str:
        """Hex hash of the submitted transaction."""
        ...

    @abstractmethod
    async def wait(self) -> TransactionReceipt:
        """Block until the transaction is final.

        Raises:
            RemoteCallError: If the transaction reverted or the receipt
                could not be obtained.
            ConfirmationTimeoutError: If it is still pending after the bound.
        """
        ...


def from_raw(raw: int, decimals: int) -> Decimal:
    """Scale a raw integer amount down by the token's decimals.

    Built from a string so the result is exact regardless of context precision.
    """
    return Decimal(f"{int(raw)}e-{int(decimals)}")


def to_raw(amount: str | Decimal, decimals: int) -> int:
    """Scale a decimal amount up to the raw integer the contract expects.

    Args:
        amount: Non-negative decimal string (or Decimal) such as "12.5".
        decimals: Token decimal places.

    Returns:
        amount * 10**decimals as an exact integer.

    Raises:
        ValueError: If the amount is not a plain decimal number or has more
            fractional digits than the token supports.
    """
    text = format(amount, "f") if isinstance(amount, Decimal) else amount.strip()
    match = _AMOUNT_PATTERN.match(text)
    # ".5" and "1." are accepted, a lone "." is not
    if match is None or not (match.group(1) or match.group(2)):
        raise ValueError(f"{amount!r} is not a decimal number")

    whole, fraction = match.group(1) or "0", match.group(2) or ""
    fraction = fraction.rstrip("0") if len(fraction) > decimals else fraction
    if len(fraction) > decimals:
        raise ValueError(
            f"{amount!r} has more than {decimals} fractional digits"
        )
    return int(whole) * 10**decimals + int(fraction.ljust(decimals, "0") or "0")
