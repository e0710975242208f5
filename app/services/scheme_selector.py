"""Scheme selection: which active schemes apply to a cart and customer.

Filtering rules (all must pass):
1. Status is active and today lies within [start_date, end_date].
2. Applicability matches the customer (distributor / retailer / segment).
3. At least one cart line is eligible when the scheme restricts SKUs.

KNOWN LIMITATION: segment schemes match by substring of the free-text
scheme description, not a structured segment id.
"""
from datetime import date
from typing import Iterable, List, Optional, Sequence

from app.core.formatting import format_number
from app.models.scheme import Applicability, CustomerType, SchemeStatus, SchemeType
from app.schemas.scheme import CartLine, Scheme


def is_date_valid(scheme: Scheme, today: Optional[date] = None) -> bool:
    """Check status and validity window (inclusive on both ends)."""
    today = today or date.today()
    if scheme.status != SchemeStatus.ACTIVE:
        return False
    if scheme.start_date and scheme.start_date > today:
        return False
    if scheme.end_date and scheme.end_date < today:
        return False
    return True


def matches_applicability(
    scheme: Scheme,
    customer_type: CustomerType,
    customer_category: Optional[str] = None,
) -> bool:
    """Check the scheme's outlet targeting against the customer."""
    applicability = scheme.applicability or Applicability.ALL_OUTLETS

    if applicability == Applicability.DISTRIBUTOR:
        return customer_type == CustomerType.DISTRIBUTOR
    if applicability == Applicability.RETAILER:
        return customer_type == CustomerType.RETAILER
    if applicability == Applicability.SEGMENT:
        if not customer_category:
            return False
        return customer_category in (scheme.description or "")

    # all_outlets; area/zone are resolved before schemes reach the engine
    return True


def relevant_items(scheme: Scheme, cart_lines: Sequence[CartLine]) -> List[CartLine]:
    """Cart lines the scheme's SKU restriction admits (all lines if unrestricted)."""
    if not scheme.eligible_skus:
        return list(cart_lines)
    eligible = set(scheme.eligible_skus)
    return [line for line in cart_lines if line.product_id in eligible]


def select_applicable(
    all_schemes: Iterable[Scheme],
    cart_lines: Sequence[CartLine],
    customer_type: CustomerType,
    customer_category: Optional[str] = None,
    today: Optional[date] = None,
) -> List[Scheme]:
    """
    Filter schemes down to the candidates for this cart and customer.

    Source order is preserved; every candidate goes on to calculation.
    """
    today = today or date.today()
    candidates = []
    for scheme in all_schemes:
        if not is_date_valid(scheme, today):
            continue
        if not matches_applicability(scheme, customer_type, customer_category):
            continue
        if scheme.eligible_skus and not relevant_items(scheme, cart_lines):
            continue
        candidates.append(scheme)
    return candidates


def schemes_for_product(schemes: Iterable[Scheme], product_id: str) -> List[Scheme]:
    """Schemes whose SKU restriction admits a single product."""
    return [
        scheme for scheme in schemes
        if not scheme.eligible_skus or product_id in scheme.eligible_skus
    ]


def scheme_label(scheme: Scheme) -> str:
    """Short offer label shown next to a product."""
    if scheme.type == SchemeType.BUY_X_GET_Y:
        return f"Buy {format_number(scheme.min_quantity)} Get {format_number(scheme.free_quantity)} Free"
    if scheme.type == SchemeType.SLAB:
        if scheme.slab_config:
            first = scheme.slab_config[0]
            return f"{format_number(first.benefit_value)}% off on {format_number(first.min_qty)}+ units"
        return scheme.name
    if scheme.type == SchemeType.BILL_WISE:
        return f"{format_number(scheme.discount_percent)}% off on ₹{format_number(scheme.min_order_value)}+"
    if scheme.type == SchemeType.VOLUME:
        return f"{format_number(scheme.discount_percent)}% off on {format_number(scheme.min_quantity)}+ qty"
    if scheme.type == SchemeType.PRODUCT:
        return f"{format_number(scheme.discount_percent)}% off"
    if scheme.type == SchemeType.COMBO:
        return f"Combo: {format_number(scheme.discount_percent)}% off"
    return scheme.name
