"""Session identity: who is logged in, how they sign, and whether they own the pool."""

import structlog

from stakeclient.gateway.client import ContractGateway
from stakeclient.logging import get_logger
from stakeclient.models import Session
from stakeclient.wallet import WalletProvider

logger = get_logger(__name__)


async def check_is_admin(address: str, gateway: ContractGateway) -> bool:
    """True when address is the staking pool's recorded owner."""
    owner = await gateway.owner()
    return address.lower() == owner.lower()


async def login(wallet: WalletProvider, gateway: ContractGateway) -> Session:
    """Connect the wallet and derive the session's admin flag.

    The flag is computed once here and cached on the Session.

    Raises:
        RemoteCallError: If the wallet or the owner() read fails.
    """
    await wallet.request_accounts()
    signer = await wallet.get_signer()
    is_admin = await check_is_admin(signer.address, gateway)

    structlog.contextvars.bind_contextvars(address=signer.address)
    logger.info("session_started", is_admin=is_admin)

    return Session(address=signer.address, signer=signer, is_admin=is_admin)
