"""FastAPI application factory exposing the store and orchestrator operations.

JSON only: the presentation layer reads /api/state and posts to /actions/*.
Exceptions from the orchestrator map to status codes:

- ValidationError -> 400 (OperationInProgressError -> 409)
- RemoteCallError -> 502
- PartialRefreshError -> 503
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import structlog
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from stakeclient.eligibility import is_withdrawable, remaining_time_text
from stakeclient.exceptions import (
    OperationInProgressError,
    PartialRefreshError,
    RemoteCallError,
    StakingClientError,
    ValidationError,
)
from stakeclient.gateway.types import TransactionReceipt
from stakeclient.models import StakeRecord
from stakeclient.orchestrator import StakingOrchestrator

log = structlog.get_logger(__name__)

api_router = APIRouter()
actions_router = APIRouter()


class StakeRequest(BaseModel):
    amount: str
    lock_term: int | str


class DepositRewardRequest(BaseModel):
    amount: str


def _decimal_to_str(obj: Any) -> Any:
    """Recursively convert Decimal values to plain strings for JSON serialization.

    Trailing zeros left over from scaling are dropped ("1000", not "1000.000...").
    """
    if isinstance(obj, Decimal):
        return format(obj.normalize(), "f")
    if isinstance(obj, dict):
        return {k: _decimal_to_str(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_decimal_to_str(item) for item in obj]
    return obj


def _stake_to_dict(record: StakeRecord, now: float) -> dict:
    return {
        "index": record.index,
        "principal": record.principal,
        "lock_term": record.lock_term.name,
        "lock_label": record.lock_term.label,
        "start_time": record.start_time,
        "unlock_time": record.unlock_time,
        "claimed": record.claimed,
        "current_reward": record.current_reward,
        "withdrawable": is_withdrawable(record, now),
        "remaining": remaining_time_text(record, now),
    }


def _receipt_response(receipt: TransactionReceipt, orchestrator: StakingOrchestrator) -> JSONResponse:
    outcome = orchestrator.last_outcome
    return JSONResponse(content={
        "tx_hash": receipt.tx_hash,
        "block_number": receipt.block_number,
        "message": outcome.message if outcome is not None else "",
    })


def _orchestrator(request: Request) -> StakingOrchestrator:
    return request.app.state.orchestrator


@api_router.get("/state")
async def get_state(request: Request) -> JSONResponse:
    """Current snapshot plus derived eligibility and session status."""
    orchestrator = _orchestrator(request)
    snapshot = orchestrator.store.snapshot
    now = orchestrator.now()
    token = snapshot.token_info

    content = {
        "status": orchestrator.get_status(),
        "token": (
            {"name": token.name, "symbol": token.symbol, "decimals": token.decimals}
            if token is not None
            else None
        ),
        "balance": snapshot.balance,
        "allowance": snapshot.allowance,
        "approved": snapshot.allowance > 0,
        "reward_rates": {
            term.name: rate for term, rate in snapshot.reward_rates.items()
        },
        "stakes": [_stake_to_dict(r, now) for r in snapshot.stakes],
    }
    return JSONResponse(content=_decimal_to_str(content))


@actions_router.post("/refresh")
async def refresh(request: Request) -> JSONResponse:
    orchestrator = _orchestrator(request)
    snapshot = await orchestrator.refresh_all()
    return JSONResponse(content={"stakes": len(snapshot.stakes)})


@actions_router.post("/approve")
async def approve(request: Request) -> JSONResponse:
    orchestrator = _orchestrator(request)
    receipt = await orchestrator.approve()
    return _receipt_response(receipt, orchestrator)


@actions_router.post("/stake")
async def stake(request: Request, body: StakeRequest) -> JSONResponse:
    orchestrator = _orchestrator(request)
    receipt = await orchestrator.stake(body.amount, body.lock_term)
    return _receipt_response(receipt, orchestrator)


@actions_router.post("/withdraw/{index}")
async def withdraw(request: Request, index: int) -> JSONResponse:
    orchestrator = _orchestrator(request)
    receipt = await orchestrator.withdraw(index)
    return _receipt_response(receipt, orchestrator)


@actions_router.post("/deposit-reward")
async def deposit_reward(request: Request, body: DepositRewardRequest) -> JSONResponse:
    orchestrator = _orchestrator(request)
    receipt = await orchestrator.deposit_reward(body.amount)
    return _receipt_response(receipt, orchestrator)


def _status_for(exc: StakingClientError) -> int:
    if isinstance(exc, OperationInProgressError):
        return 409
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, RemoteCallError):
        return 502
    if isinstance(exc, PartialRefreshError):
        return 503
    return 500


async def _handle_client_error(request: Request, exc: StakingClientError) -> JSONResponse:
    status = _status_for(exc)
    log.warning(
        "api_request_failed",
        path=request.url.path,
        kind=type(exc).__name__,
        status=status,
        error=str(exc),
    )
    return JSONResponse(
        status_code=status,
        content={"error": str(exc), "kind": type(exc).__name__},
    )


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to log in and load state on startup.

    Returns:
        Configured FastAPI application. The lifespan (or a test) must set
        app.state.orchestrator before requests are served.
    """
    app = FastAPI(title="Staking Client", lifespan=lifespan)
    app.add_exception_handler(StakingClientError, _handle_client_error)
    app.include_router(api_router, prefix="/api")
    app.include_router(actions_router, prefix="/actions")
    return app
