"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends

from dulp.actions.service import RewardsEngine
from dulp.config import get_settings
from dulp.dependencies import get_engine

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: 200 while the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    engine: RewardsEngine = Depends(get_engine),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe: store connectivity, plus Redis when it is configured."""
    checks: dict[str, object] = {}

    try:
        await engine.store.ping()
        checks["store"] = "ok"
    except Exception as exc:  # noqa: BLE001
        checks["store"] = f"error: {exc}"

    if engine.redis is None:
        checks["redis"] = "disabled"
    else:
        try:
            await engine.redis.ping()  # type: ignore[attr-defined]
            checks["redis"] = "ok"
        except Exception as exc:  # noqa: BLE001
            checks["redis"] = f"error: {exc}"

    all_ok = all(v in ("ok", "disabled") for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    """API version and environment."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
