"""Tests for login and the admin flag."""

from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog

from stakeclient.exceptions import RemoteCallError
from stakeclient.gateway.client import ContractGateway
from stakeclient.session import check_is_admin, login
from stakeclient.wallet import Signer, WalletProvider

OWNER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
OTHER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


@pytest.fixture(autouse=True)
def _clear_log_context():
    yield
    structlog.contextvars.clear_contextvars()


def _wallet(address: str) -> AsyncMock:
    signer = MagicMock(spec=Signer)
    signer.address = address
    wallet = AsyncMock(spec=WalletProvider)
    wallet.request_accounts.return_value = [address]
    wallet.get_signer.return_value = signer
    return wallet


def _gateway(owner: str) -> AsyncMock:
    gateway = AsyncMock(spec=ContractGateway)
    gateway.owner.return_value = owner
    return gateway


class TestCheckIsAdmin:
    @pytest.mark.asyncio
    async def test_owner_is_admin(self):
        assert await check_is_admin(OWNER, _gateway(OWNER)) is True

    @pytest.mark.asyncio
    async def test_comparison_ignores_case(self):
        assert await check_is_admin(OWNER.lower(), _gateway(OWNER)) is True

    @pytest.mark.asyncio
    async def test_other_address_is_not_admin(self):
        assert await check_is_admin(OTHER, _gateway(OWNER)) is False


class TestLogin:
    @pytest.mark.asyncio
    async def test_owner_session(self):
        wallet = _wallet(OWNER)

        session = await login(wallet, _gateway(OWNER))

        assert session.address == OWNER
        assert session.is_admin is True
        assert session.signer is wallet.get_signer.return_value
        wallet.request_accounts.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_regular_session(self):
        session = await login(_wallet(OTHER), _gateway(OWNER))
        assert session.is_admin is False

    @pytest.mark.asyncio
    async def test_owner_read_failure_propagates(self):
        gateway = _gateway(OWNER)
        gateway.owner.side_effect = RemoteCallError("owner failed")

        with pytest.raises(RemoteCallError):
            await login(_wallet(OTHER), gateway)
