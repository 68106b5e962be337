"""Custom exceptions for the staking client.

All gateway, wallet and orchestrator exceptions live here
to avoid circular imports between modules.
"""


class StakingClientError(Exception):
    """Base exception for all staking client errors."""


class ConfigurationError(StakingClientError):
    """Raised when contract addresses are missing or malformed.

    Fatal at startup: the user must fix the configuration and restart.
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class ValidationError(StakingClientError):
    """Raised when a client-side precondition fails before any remote call."""


class OperationInProgressError(ValidationError):
    """Raised when an operation is invoked while another one is in flight."""


class RemoteCallError(StakingClientError):
    """Raised when a read or write against the contracts fails."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ConfirmationTimeoutError(RemoteCallError):
    """Raised when a submitted transaction is still pending after the wait bound."""

    def __init__(self, tx_hash: str, timeout: float) -> None:
        super().__init__(
            f"transaction {tx_hash} still pending after {timeout:g}s"
        )
        self.tx_hash = tx_hash
        self.timeout = timeout


class PartialRefreshError(StakingClientError):
    """Raised when a refresh chain breaks partway; the previous snapshot is kept."""

    def __init__(self, step: str, cause: Exception) -> None:
        super().__init__(f"refresh failed at {step}: {cause}")
        self.step = step
        self.cause = cause
