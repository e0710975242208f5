"""API endpoints for scheme benefit calculation, order-building sessions and overrides."""
from typing import List, Optional, Sequence
from uuid import UUID
import logging

from fastapi import APIRouter, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.schemas.scheme import AppliedScheme, Scheme, SchemeCalculationResult
from app.schemas.scheme_engine import (
    # Calculation
    SchemeCalculationRequest, SchemeCalculationResponse,
    # Sessions
    SchemeSessionCreate, SchemeSessionCartUpdate, SchemeSessionResponse,
    SchemeOverrideCreate, SchemeSessionCommit, SchemeCommitResponse,
    SchemeOverrideLogResponse,
)
from app.api.deps import DB, RequiredUser, Sessions
from app.services.override_ledger import OverrideLedger, OverrideValidationError
from app.services.scheme_calculator import calculate
from app.services.scheme_override_service import SchemeOverrideService, OverrideAuditError
from app.services.scheme_selector import select_applicable
from app.services.scheme_service import SchemeService
from app.services.scheme_session import SchemeCalculationSession, SchemeSessionNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()


def _find_applied(result: SchemeCalculationResult, scheme_id: str) -> Optional[AppliedScheme]:
    for applied in result.applied_schemes:
        if applied.scheme_id == scheme_id:
            return applied
    return None


def _get_session(sessions: Sessions, session_id: UUID) -> SchemeCalculationSession:
    try:
        return sessions.get(session_id)
    except SchemeSessionNotFoundError:
        raise HTTPException(status_code=404, detail="Scheme session not found")


def _session_response(
    session: SchemeCalculationSession,
    schemes: Sequence[Scheme],
) -> SchemeSessionResponse:
    return SchemeSessionResponse(
        session_id=session.id,
        order_id=session.order_id,
        pre_order_id=session.pre_order_id,
        customer_type=session.customer_type,
        customer_category=session.customer_category,
        cart_lines=session.cart_lines,
        result=session.evaluate(schemes),
        overrides=list(session.ledger.overrides.values()),
        created_at=session.created_at,
        updated_at=session.updated_at,
    )


# ==================== Calculation ====================

@router.post("/calculate", response_model=SchemeCalculationResponse)
async def calculate_schemes(
    request: SchemeCalculationRequest,
    db: DB,
):
    """
    Evaluate a cart against the active schemes.

    Overrides sent with the request replace the computed benefit of the
    scheme they name. Overriding a scheme that produced no benefit for this
    cart returns 404.
    """
    schemes = await SchemeService(db).list_active_schemes()
    candidates = select_applicable(
        schemes,
        request.cart_lines,
        request.customer_type,
        request.customer_category,
    )

    ledger = OverrideLedger(require_reason=settings.SCHEME_OVERRIDE_REQUIRE_REASON)
    if request.overrides:
        natural = calculate(candidates, request.cart_lines)
        for override_in in request.overrides:
            original = _find_applied(natural, override_in.scheme_id)
            if original is None:
                raise HTTPException(
                    status_code=404,
                    detail=f"Scheme {override_in.scheme_id} produced no benefit for this cart",
                )
            try:
                ledger.add_override(
                    override_in.scheme_id,
                    original,
                    {
                        "discount_amount": override_in.discount_amount,
                        "free_quantity": override_in.free_quantity,
                    },
                    override_in.reason,
                )
            except OverrideValidationError as e:
                raise HTTPException(status_code=422, detail=str(e))

    result = calculate(candidates, request.cart_lines, ledger.overrides)

    return SchemeCalculationResponse(
        **result.model_dump(),
        applicable_scheme_ids=[s.id for s in candidates],
    )


# ==================== Sessions ====================

@router.post("/sessions", response_model=SchemeSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    session_in: SchemeSessionCreate,
    db: DB,
    sessions: Sessions,
):
    """Start an order-building session."""
    session = sessions.create(
        cart_lines=session_in.cart_lines,
        customer_type=session_in.customer_type,
        customer_category=session_in.customer_category,
        order_id=session_in.order_id,
        pre_order_id=session_in.pre_order_id,
        ledger=OverrideLedger(require_reason=settings.SCHEME_OVERRIDE_REQUIRE_REASON),
    )
    logger.info(f"Started scheme session {session.id}")

    schemes = await SchemeService(db).list_active_schemes()
    return _session_response(session, schemes)


@router.get("/sessions/{session_id}", response_model=SchemeSessionResponse)
async def get_session(
    session_id: UUID,
    db: DB,
    sessions: Sessions,
):
    """Recalculate the session's cart and return it with its live overrides."""
    session = _get_session(sessions, session_id)
    schemes = await SchemeService(db).list_active_schemes()
    return _session_response(session, schemes)


@router.put("/sessions/{session_id}/cart", response_model=SchemeSessionResponse)
async def update_session_cart(
    session_id: UUID,
    cart_in: SchemeSessionCartUpdate,
    db: DB,
    sessions: Sessions,
):
    """
    Replace the session's cart. Existing overrides are kept.

    Sending customerCategory as null clears the segment; omitting it keeps it.
    """
    session = _get_session(sessions, session_id)
    context = {"customer_type": cart_in.customer_type}
    if "customer_category" in cart_in.model_fields_set:
        context["customer_category"] = cart_in.customer_category
    session.update_cart(cart_in.cart_lines, **context)

    schemes = await SchemeService(db).list_active_schemes()
    return _session_response(session, schemes)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def discard_session(
    session_id: UUID,
    sessions: Sessions,
):
    """Discard a session and its uncommitted overrides."""
    try:
        sessions.discard(session_id)
    except SchemeSessionNotFoundError:
        raise HTTPException(status_code=404, detail="Scheme session not found")


# ==================== Overrides ====================

@router.post("/sessions/{session_id}/overrides", response_model=SchemeSessionResponse)
async def add_session_override(
    session_id: UUID,
    override_in: SchemeOverrideCreate,
    db: DB,
    sessions: Sessions,
):
    """Add or replace the manual override of one scheme's benefit."""
    session = _get_session(sessions, session_id)
    schemes = await SchemeService(db).list_active_schemes()

    original = session.original_benefit(schemes, override_in.scheme_id)
    if original is None:
        raise HTTPException(
            status_code=404,
            detail=f"Scheme {override_in.scheme_id} produced no benefit in this session",
        )

    try:
        session.ledger.add_override(
            override_in.scheme_id,
            original,
            override_in.to_benefit(),
            override_in.reason,
        )
    except OverrideValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return _session_response(session, schemes)


@router.delete("/sessions/{session_id}/overrides/{scheme_id}", response_model=SchemeSessionResponse)
async def remove_session_override(
    session_id: UUID,
    scheme_id: str,
    db: DB,
    sessions: Sessions,
):
    """Remove one override; the scheme's computed benefit applies again."""
    session = _get_session(sessions, session_id)
    session.ledger.remove_override(scheme_id)

    schemes = await SchemeService(db).list_active_schemes()
    return _session_response(session, schemes)


@router.delete("/sessions/{session_id}/overrides", response_model=SchemeSessionResponse)
async def clear_session_overrides(
    session_id: UUID,
    db: DB,
    sessions: Sessions,
):
    """Remove every override of the session."""
    session = _get_session(sessions, session_id)
    session.ledger.clear_overrides()

    schemes = await SchemeService(db).list_active_schemes()
    return _session_response(session, schemes)


@router.post("/sessions/{session_id}/commit", response_model=SchemeCommitResponse)
async def commit_session_overrides(
    session_id: UUID,
    commit_in: SchemeSessionCommit,
    db: DB,
    sessions: Sessions,
    user_id: RequiredUser,
):
    """Write the session's overrides to the audit log against an order."""
    session = _get_session(sessions, session_id)
    order_id = commit_in.order_id or session.order_id
    pre_order_id = commit_in.pre_order_id or session.pre_order_id

    service = SchemeOverrideService(db)
    try:
        entries = await service.commit_ledger(
            session.ledger,
            acting_user_id=user_id,
            order_id=order_id,
            pre_order_id=pre_order_id,
        )
        await db.commit()
    except OverrideAuditError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except SQLAlchemyError as e:
        logger.error(f"Failed to commit scheme overrides for session {session.id}: {e}")
        raise HTTPException(status_code=503, detail=f"Failed to log override: {e}")

    items: List[SchemeOverrideLogResponse] = [
        SchemeOverrideLogResponse.model_validate(entry) for entry in entries
    ]
    return SchemeCommitResponse(
        session_id=session.id,
        logged=len(items),
        items=items,
    )
