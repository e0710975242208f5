"""Trade scheme (promotion) master.

Schemes are operator-authored business configuration: slabs, buy-x-get-y,
bill-wise thresholds, volume discounts, combos, display and opening offers.
Only active, date-valid rows are handed to the scheme engine.
"""
import uuid
from datetime import datetime, date, timezone
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, DateTime, Date, Integer, Float, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.core.enum_utils import enum_comment
from app.database import Base
from app.db_types import JSONType, UUIDType


class SchemeType(str, Enum):
    """Scheme rule type."""
    SLAB = "slab"                    # Quantity bands, first matching band wins
    BUY_X_GET_Y = "buy_x_get_y"      # Free goods per completed set
    COMBO = "combo"                  # All listed products must be in cart
    BILL_WISE = "bill_wise"          # Order value threshold, optional cap
    DISPLAY = "display"              # Shelf display incentive
    VOLUME = "volume"                # Minimum quantity discount
    PRODUCT = "product"              # Flat product discount
    OPENING = "opening"              # New outlet opening offer


class BenefitType(str, Enum):
    """What the scheme grants."""
    DISCOUNT = "discount"
    FREE_QTY = "free_qty"
    CASHBACK = "cashback"
    POINTS = "points"
    COUPON = "coupon"


class Applicability(str, Enum):
    """Which outlets a scheme targets."""
    ALL_OUTLETS = "all_outlets"
    DISTRIBUTOR = "distributor"
    RETAILER = "retailer"
    SEGMENT = "segment"
    AREA = "area"
    ZONE = "zone"


class SchemeStatus(str, Enum):
    """Scheme lifecycle status."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    DRAFT = "draft"
    EXPIRED = "expired"


class CustomerType(str, Enum):
    """Type of outlet an order is being built for."""
    DISTRIBUTOR = "distributor"
    RETAILER = "retailer"


class Scheme(Base):
    """
    Promotional scheme definition.
    Type-specific parameters live in scalar columns; slab bands in JSON.
    """
    __tablename__ = "schemes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Identification
    code: Mapped[Optional[str]] = mapped_column(
        String(30),
        unique=True,
        nullable=True,
        index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Classification
    type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="product",
        comment=enum_comment(SchemeType)
    )
    benefit_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="discount",
        comment=enum_comment(BenefitType)
    )
    applicability: Mapped[Optional[str]] = mapped_column(
        String(30),
        nullable=True,
        default="all_outlets",
        comment=enum_comment(Applicability)
    )

    # Validity
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Eligibility
    eligible_skus: Mapped[Optional[List[str]]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Product IDs the scheme is restricted to (empty = whole cart)"
    )
    applicable_products: Mapped[Optional[list]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Products that must all be in the cart (combo)"
    )

    # Rules
    slab_config: Mapped[Optional[list]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Quantity bands: [{min_qty, max_qty, benefit_value}]"
    )
    # Example slab_config:
    # [{"min_qty": 1, "max_qty": 10, "benefit_value": 5}, {"min_qty": 11, "max_qty": 20, "benefit_value": 10}]
    min_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    free_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    discount_percent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    min_order_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_benefit: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment="Cap on monetary benefit; 0 or null means uncapped"
    )

    # Audit
    created_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    __table_args__ = (
        Index("ix_schemes_status_validity", "status", "start_date", "end_date"),
    )

    @property
    def is_valid(self) -> bool:
        """Check if scheme is currently valid."""
        today = date.today()
        return self.status == "active" and self.start_date <= today <= self.end_date

    def __repr__(self) -> str:
        return f"<Scheme(code='{self.code}', type='{self.type}')>"
