"""API endpoints for the trade scheme master."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, status, Query

from app.models.scheme import SchemeType, SchemeStatus
from app.schemas.scheme import (
    SchemeCreate, SchemeUpdate, SchemeResponse, SchemeListResponse,
    ProductOffer, ProductOffersResponse,
)
from app.api.deps import DB, ActingUser
from app.services.scheme_service import SchemeService, SchemeNotFoundError
from app.services.scheme_selector import schemes_for_product, scheme_label

router = APIRouter()


# ==================== Schemes ====================

@router.get("", response_model=SchemeListResponse)
async def list_schemes(
    db: DB,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    scheme_type: Optional[SchemeType] = None,
    status: Optional[SchemeStatus] = None,
    active_only: bool = False,
):
    """List schemes."""
    service = SchemeService(db)
    schemes, total = await service.list_schemes(
        skip=skip,
        limit=limit,
        scheme_type=scheme_type,
        status=status,
        active_only=active_only,
    )

    return SchemeListResponse(
        items=[SchemeResponse.model_validate(s) for s in schemes],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=SchemeResponse, status_code=status.HTTP_201_CREATED)
async def create_scheme(
    scheme_in: SchemeCreate,
    db: DB,
    user_id: ActingUser,
):
    """Create a new scheme. A SCH-YYYY-NNNN code is generated when none is given."""
    service = SchemeService(db)
    scheme = await service.create_scheme(scheme_in, created_by=user_id)
    await db.commit()

    return SchemeResponse.model_validate(scheme)


@router.get("/products/{product_id}/offers", response_model=ProductOffersResponse)
async def get_product_offers(
    product_id: str,
    db: DB,
):
    """Active schemes offered on a product, with short labels for the order screen."""
    service = SchemeService(db)
    active = await service.list_active_schemes()
    offers = [
        ProductOffer(
            scheme_id=s.id,
            scheme_name=s.name,
            scheme_type=s.type.value,
            benefit_type=s.benefit_type.value,
            label=scheme_label(s),
        )
        for s in schemes_for_product(active, product_id)
    ]

    return ProductOffersResponse(
        product_id=product_id,
        offers=offers,
        total=len(offers),
    )


@router.get("/{scheme_id}", response_model=SchemeResponse)
async def get_scheme(
    scheme_id: UUID,
    db: DB,
):
    """Get scheme by ID."""
    service = SchemeService(db)
    try:
        scheme = await service.get_scheme(scheme_id)
    except SchemeNotFoundError:
        raise HTTPException(status_code=404, detail="Scheme not found")

    return SchemeResponse.model_validate(scheme)


@router.patch("/{scheme_id}", response_model=SchemeResponse)
async def update_scheme(
    scheme_id: UUID,
    scheme_in: SchemeUpdate,
    db: DB,
):
    """Update a scheme."""
    service = SchemeService(db)
    try:
        scheme = await service.update_scheme(scheme_id, scheme_in)
    except SchemeNotFoundError:
        raise HTTPException(status_code=404, detail="Scheme not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await db.commit()

    return SchemeResponse.model_validate(scheme)


@router.delete("/{scheme_id}", response_model=SchemeResponse)
async def deactivate_scheme(
    scheme_id: UUID,
    db: DB,
):
    """Deactivate a scheme. Schemes are kept for the override audit trail."""
    service = SchemeService(db)
    try:
        scheme = await service.deactivate_scheme(scheme_id)
    except SchemeNotFoundError:
        raise HTTPException(status_code=404, detail="Scheme not found")
    await db.commit()

    return SchemeResponse.model_validate(scheme)
