"""Account, ledger and referral endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from dulp.actions.service import RewardsEngine
from dulp.auth.dependencies import get_current_user_id
from dulp.auth.jwt import create_access_token
from dulp.dependencies import get_engine, get_idempotency_key
from dulp.ledger.schemas import (
    CreateAccountRequest,
    CreateAccountResponse,
    EarningsLeaderboardResponse,
    LoginResponse,
    ProfileResponse,
    ReferralRequest,
    ReferralResponse,
    TransactionListResponse,
    WithdrawRequest,
    WithdrawResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Ledger"])


@router.post("/accounts", response_model=CreateAccountResponse, status_code=201)
async def create_account(
    body: CreateAccountRequest,
    engine: RewardsEngine = Depends(get_engine),
):
    """Sign up: creates the account and credits the signup bonus."""
    result = await engine.create_account(body.display_name)
    return {**result, "access_token": create_access_token(result["account"]["id"])}


@router.get("/users/me", response_model=ProfileResponse)
async def get_profile(
    user_id: int = Depends(get_current_user_id),
    engine: RewardsEngine = Depends(get_engine),
):
    return await engine.get_profile(user_id)


@router.post("/users/me/login", response_model=LoginResponse)
async def record_login(
    user_id: int = Depends(get_current_user_id),
    engine: RewardsEngine = Depends(get_engine),
    key: str | None = Depends(get_idempotency_key),
):
    """Daily login; advances the streak once per day."""
    return await engine.record_login(user_id, key=key)


@router.get("/users/me/transactions", response_model=TransactionListResponse)
async def list_transactions(
    limit: int | None = Query(None, ge=1, le=200),
    user_id: int = Depends(get_current_user_id),
    engine: RewardsEngine = Depends(get_engine),
):
    """Most recent transactions first."""
    limit = limit or engine.settings.transactions_page_limit
    transactions = await engine.list_transactions(user_id, limit)
    return {"transactions": transactions, "limit": limit}


@router.post("/withdrawals", response_model=WithdrawResponse, status_code=201)
async def withdraw(
    body: WithdrawRequest,
    user_id: int = Depends(get_current_user_id),
    engine: RewardsEngine = Depends(get_engine),
    key: str | None = Depends(get_idempotency_key),
):
    """Reserve a withdrawal. The transaction stays pending until settled."""
    return await engine.withdraw(user_id, body.amount, key=key)


@router.post("/referrals", response_model=ReferralResponse)
async def apply_referral(
    body: ReferralRequest,
    user_id: int = Depends(get_current_user_id),
    engine: RewardsEngine = Depends(get_engine),
    key: str | None = Depends(get_idempotency_key),
):
    """Apply another user's referral code; the referrer earns the bonus."""
    return await engine.apply_referral(user_id, body.code, key=key)


@router.get("/leaderboard/earnings", response_model=EarningsLeaderboardResponse)
async def earnings_leaderboard(
    limit: int = Query(10, ge=1, le=100),
    engine: RewardsEngine = Depends(get_engine),
):
    return {"entries": await engine.earnings_leaderboard(limit)}
