"""Pydantic schemas for the trade scheme master and the scheme engine."""
from datetime import datetime, date
from typing import Optional, List, Any
from uuid import UUID

from pydantic import AliasChoices, Field, model_validator

from app.schemas.base import (
    BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, EngineSchema,
)
from app.models.scheme import (
    SchemeType, BenefitType, Applicability, SchemeStatus, CustomerType,
)


# ==================== Scheme Master Schemas ====================

class SlabConfig(EngineSchema):
    """One quantity band of a slab scheme."""
    min_qty: Optional[float] = None
    max_qty: Optional[float] = None
    benefit_value: Optional[float] = None


class SchemeBase(BaseCreateSchema):
    """Base schema for Scheme."""
    code: Optional[str] = Field(None, min_length=3, max_length=30)
    name: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = None

    type: SchemeType = SchemeType.PRODUCT
    benefit_type: BenefitType = BenefitType.DISCOUNT
    applicability: Applicability = Applicability.ALL_OUTLETS

    status: SchemeStatus = SchemeStatus.ACTIVE
    start_date: date
    end_date: date

    eligible_skus: List[str] = []
    applicable_products: List[str] = []
    slab_config: List[SlabConfig] = []

    min_quantity: Optional[int] = Field(None, ge=0)
    free_quantity: Optional[int] = Field(None, ge=0)
    discount_percent: Optional[float] = Field(None, ge=0, le=100)
    min_order_value: Optional[float] = Field(None, ge=0)
    max_benefit: Optional[float] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_validity_window(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class SchemeCreate(SchemeBase):
    """Schema for creating Scheme. Code is generated when omitted."""
    pass


class SchemeUpdate(BaseUpdateSchema):
    """Schema for updating Scheme."""
    name: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = None
    benefit_type: Optional[BenefitType] = None
    applicability: Optional[Applicability] = None
    status: Optional[SchemeStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    eligible_skus: Optional[List[str]] = None
    applicable_products: Optional[List[str]] = None
    slab_config: Optional[List[SlabConfig]] = None
    min_quantity: Optional[int] = Field(None, ge=0)
    free_quantity: Optional[int] = Field(None, ge=0)
    discount_percent: Optional[float] = Field(None, ge=0, le=100)
    min_order_value: Optional[float] = Field(None, ge=0)
    max_benefit: Optional[float] = Field(None, ge=0)


class SchemeResponse(BaseResponseSchema):
    """Response schema for Scheme."""
    id: UUID
    code: Optional[str] = None
    name: str
    description: Optional[str] = None
    type: str
    benefit_type: str
    applicability: Optional[str] = None
    status: str
    start_date: date
    end_date: date
    eligible_skus: Optional[List[str]] = None
    applicable_products: Optional[list] = None
    slab_config: Optional[list] = None
    min_quantity: Optional[int] = None
    free_quantity: Optional[int] = None
    discount_percent: Optional[float] = None
    min_order_value: Optional[float] = None
    max_benefit: Optional[float] = None
    is_valid: bool
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SchemeListResponse(BaseResponseSchema):
    """Response for listing schemes."""
    items: List[SchemeResponse]
    total: int
    skip: int = 0
    limit: int = 50


class ProductOffer(BaseResponseSchema):
    """A scheme offered on one product, with its short label."""
    scheme_id: str
    scheme_name: str
    scheme_type: str
    benefit_type: str
    label: str


class ProductOffersResponse(BaseResponseSchema):
    """Offers shown against a product in the order screen."""
    product_id: str
    offers: List[ProductOffer]
    total: int


# ==================== Scheme Engine Schemas ====================

class Scheme(EngineSchema):
    """
    Engine view of a scheme record.

    Scalars are optional: a record missing the parameter its type needs
    simply produces no benefit.
    """
    id: str
    code: Optional[str] = None
    name: str
    description: Optional[str] = None
    type: SchemeType
    benefit_type: BenefitType = BenefitType.DISCOUNT
    applicability: Optional[Applicability] = None
    status: SchemeStatus = SchemeStatus.ACTIVE
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    eligible_skus: List[str] = []
    slab_config: List[SlabConfig] = []
    min_quantity: Optional[float] = None
    free_quantity: Optional[float] = None
    discount_percent: Optional[float] = None
    min_order_value: Optional[float] = None
    max_benefit: Optional[float] = None
    applicable_products: List[Any] = []

    @model_validator(mode="before")
    @classmethod
    def drop_null_lists(cls, data: Any) -> Any:
        # Stored JSON columns come back as null for "no restriction"
        if isinstance(data, dict):
            data = dict(data)
            for key in ("eligible_skus", "eligibleSkus", "slab_config", "slabConfig",
                        "applicable_products", "applicableProducts"):
                if key in data and data[key] is None:
                    data.pop(key)
        return data


class CartLine(EngineSchema):
    """One line of the cart being evaluated."""
    product_id: str
    product_name: str = ""
    quantity: int = Field(..., gt=0)
    unit_price: float = 0
    line_total: float = Field(
        ...,
        validation_alias=AliasChoices("line_total", "lineTotal", "total"),
    )
    sku: str = ""
    category: Optional[str] = None


class CustomerContext(EngineSchema):
    """Who the order is being built for."""
    customer_type: CustomerType
    customer_category: Optional[str] = None


class FreeProduct(EngineSchema):
    """Free goods granted by a scheme."""
    product_id: str
    product_name: str
    quantity: int


class AppliedScheme(EngineSchema):
    """Benefit produced by one scheme for the current cart."""
    scheme_id: str
    scheme_name: str
    scheme_code: Optional[str] = None
    scheme_type: SchemeType
    benefit_type: BenefitType
    discount_amount: float = Field(0, ge=0)
    free_quantity: int = Field(0, ge=0)
    free_products: List[FreeProduct] = []
    applied_to_products: List[str] = []
    description: str = ""


class SchemeCalculationResult(EngineSchema):
    """Aggregate result of evaluating all candidate schemes against a cart."""
    applied_schemes: List[AppliedScheme] = []
    total_discount: float = 0
    total_free_goods: List[FreeProduct] = []
    original_total: float = 0
    discounted_total: float = 0


class OverrideBenefit(EngineSchema):
    """Partial replacement of a computed benefit."""
    discount_amount: Optional[float] = Field(None, ge=0)
    free_quantity: Optional[int] = Field(None, ge=0)


class SchemeOverride(EngineSchema):
    """A manual override held in a calculation session."""
    scheme_id: str
    original_benefit: AppliedScheme
    override_benefit: OverrideBenefit
    reason: str
