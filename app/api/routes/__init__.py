from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.routes.health import router as health_router
from app.api.routes.messages import router as messages_router
from app.api.routes.sessions import router as sessions_router
from app.core.rate_limit import enforce_rate_limit

api_router = APIRouter(prefix="/api", dependencies=[Depends(enforce_rate_limit)])
api_router.include_router(health_router)
api_router.include_router(sessions_router)
api_router.include_router(messages_router)

__all__ = ["api_router", "health_router", "messages_router", "sessions_router"]
