from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Scheme Master
    schemes,
    # Scheme Engine (calculation, sessions, overrides)
    scheme_engine,
    # Override Audit Trail
    scheme_overrides,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Schemes ====================
api_router.include_router(
    schemes.router,
    prefix="/schemes",
    tags=["Schemes"]
)

# ==================== Scheme Engine ====================
api_router.include_router(
    scheme_engine.router,
    prefix="/scheme-engine",
    tags=["Scheme Engine"]
)

# ==================== Scheme Overrides (Audit) ====================
api_router.include_router(
    scheme_overrides.router,
    prefix="/scheme-overrides",
    tags=["Scheme Overrides"]
)
