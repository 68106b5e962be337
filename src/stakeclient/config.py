"""Configuration system using pydantic-settings with environment variable loading."""

import json
import re
from decimal import Decimal
from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from stakeclient.exceptions import ConfigurationError

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")

_SECONDS_PER_DAY = 24 * 60 * 60


class ContractSettings(BaseSettings):
    """Addresses of the two remote contracts."""

    model_config = SettingsConfigDict(env_prefix="CONTRACTS_")

    token_contract: str = ""
    staking_contract: str = ""


class NetworkSettings(BaseSettings):
    """JSON-RPC endpoint and signing account.

    With an empty private key the client signs through an account
    unlocked on the node, selected by account_index.
    """

    model_config = SettingsConfigDict(env_prefix="NETWORK_")

    rpc_url: str = "http://localhost:8545"
    private_key: SecretStr = SecretStr("")
    account_index: int = 0


class StakingSettings(BaseSettings):
    """Client-side staking parameters."""

    model_config = SettingsConfigDict(env_prefix="STAKING_")

    approval_ceiling: Decimal = Decimal("1000000")  # whole tokens
    confirmation_timeout: float = 120.0  # seconds before "still pending"
    confirmation_poll_latency: float = 0.5
    one_month_seconds: int = 30 * _SECONDS_PER_DAY
    one_year_seconds: int = 365 * _SECONDS_PER_DAY
    reverify_admin: bool = False  # re-read owner() before each deposit_reward


class ApiSettings(BaseSettings):
    """HTTP surface for the presentation layer."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "127.0.0.1"
    port: int = 8080


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str = "console"  # "json" or "console"
    addresses_file: str = ""  # deployment output, overrides contracts when set
    contracts: ContractSettings = ContractSettings()
    network: NetworkSettings = NetworkSettings()
    staking: StakingSettings = StakingSettings()
    api: ApiSettings = ApiSettings()


def load_addresses_file(path: str | Path) -> ContractSettings:
    """Read contract addresses from a deployment addresses.json.

    Accepts the keys written by the deploy script (tokenContract,
    stakingContract) and the older "staking" alias for the pool.

    Raises:
        ConfigurationError: If the file is missing or is not a JSON object.
    """
    file_path = Path(path)
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(
            "addresses_file", f"addresses file {file_path} not found"
        ) from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            "addresses_file", f"addresses file {file_path} is not valid JSON: {e}"
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            "addresses_file", f"addresses file {file_path} must hold a JSON object"
        )

    return ContractSettings(
        token_contract=str(data.get("tokenContract") or ""),
        staking_contract=str(data.get("stakingContract") or data.get("staking") or ""),
    )


def validate_contract_addresses(contracts: ContractSettings) -> None:
    """Refuse to start unless both addresses are 0x followed by 40 hex characters.

    Raises:
        ConfigurationError: Naming the first missing or malformed address.
    """
    for field, label in (
        ("token_contract", "token contract"),
        ("staking_contract", "staking contract"),
    ):
        value = getattr(contracts, field).strip()
        if not value:
            raise ConfigurationError(field, f"{label} address is missing")
        if not ADDRESS_PATTERN.match(value):
            raise ConfigurationError(
                field, f"{label} address {value!r} is invalid"
            )


def resolve_contracts(settings: AppSettings) -> ContractSettings:
    """Return validated contract addresses, preferring the addresses file when set."""
    contracts = (
        load_addresses_file(settings.addresses_file)
        if settings.addresses_file
        else settings.contracts
    )
    validate_contract_addresses(contracts)
    return contracts
