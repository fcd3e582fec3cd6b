"""Health endpoints."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
@router.get("/_health")
async def health(request: Request):
    """Liveness probe; also reports whether the provider key is loaded."""
    return {
        "status": "ok",
        "provider_configured": request.app.state.provider.is_configured,
    }
