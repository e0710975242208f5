"""API endpoints for the scheme override audit trail."""
from typing import Optional

from fastapi import APIRouter, Query

from app.schemas.scheme_engine import SchemeOverrideLogResponse, SchemeOverrideLogListResponse
from app.api.deps import DB
from app.services.scheme_override_service import SchemeOverrideService

router = APIRouter()


@router.get("", response_model=SchemeOverrideLogListResponse)
async def list_scheme_overrides(
    db: DB,
    order_id: Optional[str] = None,
    pre_order_id: Optional[str] = None,
    scheme_id: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    """List override audit records, newest first."""
    service = SchemeOverrideService(db)
    entries, total = await service.list_overrides(
        order_id=order_id,
        pre_order_id=pre_order_id,
        scheme_id=scheme_id,
        skip=skip,
        limit=limit,
    )

    return SchemeOverrideLogListResponse(
        items=[SchemeOverrideLogResponse.model_validate(e) for e in entries],
        total=total,
    )
