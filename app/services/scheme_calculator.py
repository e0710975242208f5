"""
Scheme Benefit Calculator.

Evaluates candidate schemes against a cart and aggregates the result:
1. Relevant items (SKU restriction), their value and quantity
2. Manual override, if the session holds one for the scheme
3. Type-specific rule (slab, buy-x-get-y, bill-wise, volume, product,
   combo, display, opening)
4. Aggregate totals

Pure and synchronous: no I/O, no mutation of its inputs, so it can be
re-run every time the cart or the override set changes.

Amounts are plain floats with no rounding; currency formatting belongs to
the presentation layer. A max_benefit of 0 or None means "no cap".
Scheme records are operator-authored data: a record missing the parameter
its type needs produces no benefit instead of raising.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from app.core.formatting import format_number
from app.models.scheme import BenefitType, SchemeType
from app.schemas.scheme import (
    AppliedScheme, CartLine, FreeProduct, Scheme, SchemeCalculationResult,
    SchemeOverride,
)
from app.services.scheme_selector import relevant_items

logger = logging.getLogger(__name__)


OVERRIDE_PREFIX = "[Overridden]"


@dataclass
class SchemeContext:
    """Inputs a benefit rule sees for one scheme."""
    scheme: Scheme
    items: List[CartLine]
    items_total: float
    items_quantity: int
    cart_lines: Sequence[CartLine]


@dataclass
class Benefit:
    """Benefit produced by one rule, before it becomes an AppliedScheme."""
    discount_amount: float = 0.0
    free_quantity: int = 0
    free_products: List[FreeProduct] = field(default_factory=list)
    description: str = ""

    @property
    def has_benefit(self) -> bool:
        return self.discount_amount > 0 or self.free_quantity > 0 or len(self.free_products) > 0


def _positive(value) -> Optional[float]:
    """Numeric value if usable as a rule parameter, else None."""
    if value is None or isinstance(value, bool):
        return None
    number = float(value)
    if math.isnan(number) or number <= 0:
        return None
    return number


def _percent_of(amount: float, percent: float) -> float:
    return (amount * percent) / 100


# ============================================
# BENEFIT RULES
# ============================================

def _slab_benefit(ctx: SchemeContext) -> Benefit:
    scheme = ctx.scheme
    qty = ctx.items_quantity
    band = next(
        (
            slab for slab in scheme.slab_config
            if slab.min_qty is not None and slab.max_qty is not None
            and slab.min_qty <= qty <= slab.max_qty
        ),
        None,
    )
    if band is None:
        return Benefit()

    value = _positive(band.benefit_value)
    if value is None:
        return Benefit()

    if scheme.benefit_type == BenefitType.DISCOUNT:
        return Benefit(
            discount_amount=_percent_of(ctx.items_total, value),
            description=f"{format_number(band.benefit_value)}% off on {qty} units",
        )
    if scheme.benefit_type == BenefitType.FREE_QTY:
        free_qty = int(value)
        return Benefit(
            free_quantity=free_qty,
            description=f"Get {free_qty} free on {qty} units",
        )
    return Benefit()


def _buy_x_get_y_benefit(ctx: SchemeContext) -> Benefit:
    scheme = ctx.scheme
    min_qty = scheme.min_quantity or 1
    free_qty = scheme.free_quantity or 0
    if min_qty < 0 or free_qty < 0:
        return Benefit()
    if ctx.items_quantity < min_qty:
        return Benefit()

    sets = math.floor(ctx.items_quantity / min_qty)
    free_quantity = int(sets * free_qty)

    # Free goods always go to the first relevant line
    first = ctx.items[0]
    return Benefit(
        free_quantity=free_quantity,
        free_products=[
            FreeProduct(
                product_id=first.product_id,
                product_name=first.product_name,
                quantity=free_quantity,
            )
        ],
        description=(
            f"Buy {format_number(min_qty)} Get {format_number(free_qty)} Free "
            f"({sets} sets applied)"
        ),
    )


def _bill_wise_benefit(ctx: SchemeContext) -> Benefit:
    scheme = ctx.scheme
    min_value = scheme.min_order_value or 0
    if ctx.items_total < min_value:
        return Benefit()

    percent = _positive(scheme.discount_percent)
    max_benefit = _positive(scheme.max_benefit)

    if scheme.benefit_type == BenefitType.DISCOUNT and percent is not None:
        discount = _percent_of(ctx.items_total, percent)
        if max_benefit is not None and discount > max_benefit:
            discount = max_benefit
        return Benefit(
            discount_amount=discount,
            description=(
                f"{format_number(scheme.discount_percent)}% off on orders "
                f"≥ ₹{format_number(min_value)}"
            ),
        )
    if scheme.benefit_type == BenefitType.CASHBACK:
        cashback = max_benefit or 0
        return Benefit(
            discount_amount=cashback,
            description=(
                f"₹{format_number(cashback)} cashback on orders "
                f"≥ ₹{format_number(min_value)}"
            ),
        )
    return Benefit()


def _volume_benefit(ctx: SchemeContext) -> Benefit:
    scheme = ctx.scheme
    min_qty = scheme.min_quantity or 0
    percent = _positive(scheme.discount_percent)
    if ctx.items_quantity < min_qty or percent is None:
        return Benefit()
    return Benefit(
        discount_amount=_percent_of(ctx.items_total, percent),
        description=(
            f"{format_number(scheme.discount_percent)}% off on "
            f"{ctx.items_quantity}+ units"
        ),
    )


def _product_benefit(ctx: SchemeContext) -> Benefit:
    percent = _positive(ctx.scheme.discount_percent)
    if percent is None:
        return Benefit()
    return Benefit(
        discount_amount=_percent_of(ctx.items_total, percent),
        description=f"{format_number(ctx.scheme.discount_percent)}% off on selected products",
    )


def _required_product_id(entry) -> Optional[str]:
    # Combo entries are stored either as bare ids or as {"id": ...} objects
    if isinstance(entry, dict):
        entry = entry.get("id")
    return str(entry) if entry is not None else None


def _combo_benefit(ctx: SchemeContext) -> Benefit:
    scheme = ctx.scheme
    in_cart = {line.product_id for line in ctx.cart_lines}
    required = [_required_product_id(entry) for entry in scheme.applicable_products]
    if not all(product_id in in_cart for product_id in required):
        return Benefit()

    percent = _positive(scheme.discount_percent)
    if percent is None:
        return Benefit()
    return Benefit(
        discount_amount=_percent_of(ctx.items_total, percent),
        description=f"Combo deal: {format_number(scheme.discount_percent)}% off",
    )


def _flat_percent_benefit(label: str) -> Callable[[SchemeContext], Benefit]:
    def _benefit(ctx: SchemeContext) -> Benefit:
        percent = _positive(ctx.scheme.discount_percent)
        if percent is None:
            return Benefit()
        return Benefit(
            discount_amount=_percent_of(ctx.items_total, percent),
            description=f"{label} scheme: {format_number(ctx.scheme.discount_percent)}% off",
        )
    return _benefit


BENEFIT_RULES: Dict[SchemeType, Callable[[SchemeContext], Benefit]] = {
    SchemeType.SLAB: _slab_benefit,
    SchemeType.BUY_X_GET_Y: _buy_x_get_y_benefit,
    SchemeType.BILL_WISE: _bill_wise_benefit,
    SchemeType.VOLUME: _volume_benefit,
    SchemeType.PRODUCT: _product_benefit,
    SchemeType.COMBO: _combo_benefit,
    SchemeType.DISPLAY: _flat_percent_benefit("Display"),
    SchemeType.OPENING: _flat_percent_benefit("Opening"),
}

# Every scheme type must have a rule; fail at import rather than fall through
_unhandled = set(SchemeType) - set(BENEFIT_RULES)
if _unhandled:
    raise RuntimeError(
        f"No benefit rule for scheme types: {sorted(t.value for t in _unhandled)}"
    )


# ============================================
# CALCULATION
# ============================================

def _override_benefit(override: SchemeOverride) -> Benefit:
    return Benefit(
        discount_amount=override.override_benefit.discount_amount or 0,
        free_quantity=override.override_benefit.free_quantity or 0,
        description=f"{OVERRIDE_PREFIX} {override.reason}",
    )


def compute_benefit(ctx: SchemeContext) -> Benefit:
    """Run the type-specific rule; malformed scheme data yields no benefit."""
    rule = BENEFIT_RULES[ctx.scheme.type]
    try:
        return rule(ctx)
    except (TypeError, ValueError, ZeroDivisionError, OverflowError) as e:
        logger.debug(f"Scheme {ctx.scheme.id} ({ctx.scheme.type.value}) skipped: {e}")
        return Benefit()


def calculate(
    candidate_schemes: Sequence[Scheme],
    cart_lines: Sequence[CartLine],
    overrides: Optional[Mapping[str, SchemeOverride]] = None,
) -> SchemeCalculationResult:
    """
    Evaluate candidate schemes in order and aggregate their benefits.

    Args:
        candidate_schemes: Output of select_applicable
        cart_lines: Cart being evaluated
        overrides: Read-only snapshot of session overrides keyed by scheme id

    Returns:
        SchemeCalculationResult with applied schemes and totals
    """
    overrides = overrides or {}
    applied_schemes: List[AppliedScheme] = []
    total_discount = 0.0
    total_free_goods: List[FreeProduct] = []
    original_total = sum(line.line_total for line in cart_lines)

    for scheme in candidate_schemes:
        items = relevant_items(scheme, cart_lines)
        if not items:
            continue

        ctx = SchemeContext(
            scheme=scheme,
            items=items,
            items_total=sum(line.line_total for line in items),
            items_quantity=sum(line.quantity for line in items),
            cart_lines=cart_lines,
        )

        override = overrides.get(scheme.id)
        benefit = _override_benefit(override) if override else compute_benefit(ctx)

        if not benefit.has_benefit:
            continue

        applied_schemes.append(
            AppliedScheme(
                scheme_id=scheme.id,
                scheme_name=scheme.name,
                scheme_code=scheme.code,
                scheme_type=scheme.type,
                benefit_type=scheme.benefit_type,
                discount_amount=benefit.discount_amount,
                free_quantity=benefit.free_quantity,
                free_products=benefit.free_products,
                applied_to_products=[line.product_id for line in items],
                description=benefit.description,
            )
        )
        total_discount += benefit.discount_amount
        total_free_goods.extend(benefit.free_products)

    return SchemeCalculationResult(
        applied_schemes=applied_schemes,
        total_discount=total_discount,
        total_free_goods=total_free_goods,
        original_total=original_total,
        discounted_total=original_total - total_discount,
    )
