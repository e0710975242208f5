"""Pydantic schemas for the scheme engine API (calculation, sessions, overrides)."""
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from pydantic import Field, field_validator

from app.models.scheme import CustomerType
from app.schemas.base import BaseCreateSchema, BaseResponseSchema
from app.schemas.scheme import (
    CartLine, OverrideBenefit, SchemeCalculationResult, SchemeOverride,
)


def _require_reason(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("A reason is required to override a scheme")
    return value.strip()


# ==================== Calculation ====================

class OverrideInput(BaseCreateSchema):
    """Manual override supplied with a stateless calculation."""
    scheme_id: str
    discount_amount: Optional[float] = Field(None, ge=0)
    free_quantity: Optional[int] = Field(None, ge=0)
    reason: str

    @field_validator("reason")
    @classmethod
    def check_reason(cls, v: str) -> str:
        return _require_reason(v)


class SchemeCalculationRequest(BaseCreateSchema):
    """Cart + customer context to evaluate against the active schemes."""
    cart_lines: List[CartLine]
    customer_type: CustomerType
    customer_category: Optional[str] = None
    overrides: List[OverrideInput] = []


class SchemeCalculationResponse(SchemeCalculationResult):
    """Calculation result plus the schemes that were considered."""
    applicable_scheme_ids: List[str] = []


# ==================== Sessions ====================

class SchemeSessionCreate(BaseCreateSchema):
    """Start an order-building session."""
    cart_lines: List[CartLine] = []
    customer_type: CustomerType
    customer_category: Optional[str] = None
    order_id: Optional[str] = None
    pre_order_id: Optional[str] = None


class SchemeSessionCartUpdate(BaseCreateSchema):
    """Replace the session's cart and, optionally, its customer context."""
    cart_lines: List[CartLine]
    customer_type: Optional[CustomerType] = None
    customer_category: Optional[str] = None


class SchemeOverrideCreate(BaseCreateSchema):
    """Operator override of one scheme's benefit. The reason is mandatory."""
    scheme_id: str
    discount_amount: Optional[float] = Field(None, ge=0)
    free_quantity: Optional[int] = Field(None, ge=0)
    reason: str

    @field_validator("reason")
    @classmethod
    def check_reason(cls, v: str) -> str:
        return _require_reason(v)

    def to_benefit(self) -> OverrideBenefit:
        return OverrideBenefit(
            discount_amount=self.discount_amount,
            free_quantity=self.free_quantity,
        )


class SchemeSessionCommit(BaseCreateSchema):
    """Order reference to commit overrides against."""
    order_id: Optional[str] = None
    pre_order_id: Optional[str] = None


class SchemeSessionResponse(BaseResponseSchema):
    """Session state with a fresh calculation."""
    session_id: UUID
    order_id: Optional[str] = None
    pre_order_id: Optional[str] = None
    customer_type: CustomerType
    customer_category: Optional[str] = None
    cart_lines: List[CartLine]
    result: SchemeCalculationResult
    overrides: List[SchemeOverride]
    created_at: datetime
    updated_at: datetime


# ==================== Override Audit Log ====================

class SchemeOverrideLogResponse(BaseResponseSchema):
    """Response schema for an override audit record."""
    id: UUID
    order_id: Optional[str] = None
    pre_order_id: Optional[str] = None
    scheme_id: str
    original_benefit: dict
    override_benefit: dict
    override_reason: str
    overridden_by: str
    created_at: datetime


class SchemeOverrideLogListResponse(BaseResponseSchema):
    """Response for listing override audit records."""
    items: List[SchemeOverrideLogResponse]
    total: int


class SchemeCommitResponse(BaseResponseSchema):
    """Result of committing a session's overrides."""
    session_id: UUID
    logged: int
    items: List[SchemeOverrideLogResponse]
