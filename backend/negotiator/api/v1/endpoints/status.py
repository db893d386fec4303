"""
Status and health check endpoints.

WHAT: Health monitoring for the LLM provider and the session database
WHY: Quick diagnostics before starting negotiations
HOW: FastAPI endpoints calling provider ping and DB ping from app.state
"""

from dataclasses import asdict

from fastapi import APIRouter, Request

from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


async def _llm_status(request: Request) -> dict:
    provider = getattr(request.app.state, "provider", None)
    if provider is None:
        return {"available": False, "base_url": "unknown", "models": None, "error": "No LLM provider configured"}
    try:
        return asdict(await provider.ping())
    except Exception as e:
        logger.error(f"Failed to get LLM status: {e}")
        return {"available": False, "base_url": "unknown", "models": None, "error": str(e)}


def _database_status(request: Request) -> dict:
    database = getattr(request.app.state, "database", None)
    if database is None:
        return {"available": True, "enabled": False}
    return {**database.ping_database(), "enabled": True}


@router.get("/llm/status")
async def llm_status(request: Request):
    """
    Check LLM provider status.

    Returns:
        JSON with provider status and database status
    """
    return {
        "llm": await _llm_status(request),
        "database": _database_status(request)
    }


@router.get("/health")
async def health_check(request: Request):
    """
    Overall application health check.

    The engine keeps answering with policy fallbacks when the LLM is down,
    so an unreachable provider reports "degraded" rather than "unhealthy".
    """
    settings = request.app.state.settings
    llm = await _llm_status(request)
    db = _database_status(request)

    if not db["available"]:
        overall = "unhealthy"
    elif not llm["available"]:
        overall = "degraded"
    else:
        overall = "healthy"

    return {
        "status": overall,
        "version": settings.APP_VERSION,
        "app_name": settings.APP_NAME,
        "components": {
            "llm": {
                "available": llm["available"],
                "provider": settings.LLM_PROVIDER
            },
            "database": db
        }
    }
