"""Entry point for the staking client.

Wires all components together and serves the JSON API under uvicorn.
Login and the initial refresh happen in FastAPI's lifespan so the client
and the API share a single asyncio event loop.

Component wiring order:
1. AppSettings (configuration)
2. Logging setup
3. Contract addresses (validated before any remote call)
4. AsyncWeb3 + WalletProvider (private key or node account)
5. Web3Gateway (bound to the wallet's signer)
6. Session (login, admin flag)
7. ViewStateStore + StakingOrchestrator
8. Token binding check and initial refresh_all
"""

import asyncio
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from stakeclient.api import create_app
from stakeclient.config import AppSettings, ContractSettings, resolve_contracts
from stakeclient.exceptions import ConfigurationError, StakingClientError
from stakeclient.gateway.web3_gateway import Web3Gateway, create_web3
from stakeclient.logging import get_logger, setup_logging
from stakeclient.orchestrator import StakingOrchestrator
from stakeclient.session import login
from stakeclient.store import ViewStateStore
from stakeclient.wallet import NodeWallet, PrivateKeyWallet, WalletProvider


async def build_orchestrator(
    settings: AppSettings, contracts: ContractSettings
) -> StakingOrchestrator:
    """Connect the wallet, log in and return a ready orchestrator.

    Args:
        settings: Application-wide settings.
        contracts: Validated contract addresses.

    Returns:
        Orchestrator with its store populated by an initial refresh.
    """
    logger = get_logger("stakeclient.main")

    w3 = create_web3(settings.network.rpc_url)

    private_key = settings.network.private_key.get_secret_value()
    wallet: WalletProvider
    if private_key:
        wallet = PrivateKeyWallet(w3, private_key)
    else:
        logger.info(
            "using_node_account",
            account_index=settings.network.account_index,
            note="No private key configured; signing through the node.",
        )
        wallet = NodeWallet(w3, settings.network.account_index)

    signer = await wallet.get_signer()
    gateway = Web3Gateway(
        w3,
        token_address=contracts.token_contract,
        staking_address=contracts.staking_contract,
        signer=signer,
        confirmation_timeout=settings.staking.confirmation_timeout,
        poll_latency=settings.staking.confirmation_poll_latency,
    )
    session = await login(wallet, gateway)

    orchestrator = StakingOrchestrator(
        gateway=gateway,
        session=session,
        store=ViewStateStore(),
        settings=settings.staking,
    )
    await orchestrator.verify_token_binding()

    try:
        await orchestrator.refresh_all()
    except StakingClientError as e:
        # Recoverable: the user may retry through /actions/refresh
        logger.warning("initial_refresh_failed", error=str(e))

    return orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log in and load state on startup; nothing to release on shutdown."""
    logger = get_logger("stakeclient.main")
    app.state.orchestrator = await build_orchestrator(
        app.state.settings, app.state.contracts
    )
    logger.info("lifespan_started", address=app.state.orchestrator.session.address)
    yield
    logger.info("staking_client_stopped")


async def run() -> None:
    """Run the staking client API.

    Configuration errors are reported before anything touches the network.
    """
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("stakeclient.main")

    # 3. Validate contract addresses
    try:
        contracts = resolve_contracts(settings)
    except ConfigurationError as e:
        logger.error("configuration_error", field=e.field, error=str(e))
        raise

    app = create_app(lifespan=lifespan)
    app.state.settings = settings
    app.state.contracts = contracts

    logger.info(
        "starting_staking_client",
        host=settings.api.host,
        port=settings.api.port,
        rpc_url=settings.network.rpc_url,
        token_contract=contracts.token_contract,
        staking_contract=contracts.staking_contract,
    )

    config = uvicorn.Config(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level="warning",  # Suppress uvicorn access logs
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    try:
        asyncio.run(run())
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
