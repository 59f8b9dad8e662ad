"""Shared FastAPI dependencies."""

from fastapi import Header, Request

from dulp.actions.service import RewardsEngine


def get_engine(request: Request) -> RewardsEngine:
    """The process-wide RewardsEngine built in the app lifespan."""
    engine: RewardsEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        msg = "Rewards engine not initialized"
        raise RuntimeError(msg)
    return engine


def get_idempotency_key(
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key", max_length=128),
) -> str | None:
    """Optional caller-supplied key that makes a mutating request replay-safe."""
    return idempotency_key or None
