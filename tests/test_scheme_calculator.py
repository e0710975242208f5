"""Benefit calculation per scheme type, overrides and aggregate totals."""
import math

import pytest

from app.models.scheme import BenefitType, SchemeType
from app.schemas.scheme import (
    AppliedScheme, CartLine, OverrideBenefit, Scheme, SchemeOverride, SlabConfig,
)
from app.services.scheme_calculator import BENEFIT_RULES, OVERRIDE_PREFIX, calculate


def _make_scheme(**overrides) -> Scheme:
    data = dict(
        id="sch-1",
        code="SCH-2026-0001",
        name="Test Scheme",
        type=SchemeType.PRODUCT,
        benefit_type=BenefitType.DISCOUNT,
    )
    data.update(overrides)
    return Scheme(**data)


def _line(product_id="A", quantity=1, line_total=100.0, name=None) -> CartLine:
    return CartLine(
        product_id=product_id,
        product_name=name or f"Product {product_id}",
        quantity=quantity,
        unit_price=line_total / quantity,
        line_total=line_total,
    )


def _override(scheme_id, discount=None, free_qty=None, reason="manager approval") -> SchemeOverride:
    return SchemeOverride(
        scheme_id=scheme_id,
        original_benefit=AppliedScheme(
            scheme_id=scheme_id,
            scheme_name="Test Scheme",
            scheme_type=SchemeType.PRODUCT,
            benefit_type=BenefitType.DISCOUNT,
        ),
        override_benefit=OverrideBenefit(discount_amount=discount, free_quantity=free_qty),
        reason=reason,
    )


SLABS = [
    SlabConfig(min_qty=1, max_qty=10, benefit_value=5),
    SlabConfig(min_qty=11, max_qty=20, benefit_value=10),
    SlabConfig(min_qty=21, max_qty=999, benefit_value=15),
]


# ══════════════════════════════════════════════════════════════
# DISPATCH
# ══════════════════════════════════════════════════════════════

class TestDispatch:
    def test_every_scheme_type_has_a_rule(self):
        assert set(BENEFIT_RULES) == set(SchemeType)


# ══════════════════════════════════════════════════════════════
# SLAB
# ══════════════════════════════════════════════════════════════

class TestSlab:
    def test_middle_band_selected(self):
        scheme = _make_scheme(type=SchemeType.SLAB, slab_config=SLABS)
        result = calculate([scheme], [_line(quantity=15, line_total=10000)])

        assert len(result.applied_schemes) == 1
        applied = result.applied_schemes[0]
        assert applied.discount_amount == 1000
        assert applied.description == "10% off on 15 units"

    def test_band_bounds_inclusive(self):
        scheme = _make_scheme(type=SchemeType.SLAB, slab_config=SLABS)
        assert calculate([scheme], [_line(quantity=11, line_total=1000)]).total_discount == 100
        assert calculate([scheme], [_line(quantity=10, line_total=1000)]).total_discount == 50

    def test_first_matching_band_wins(self):
        overlapping = [
            SlabConfig(min_qty=1, max_qty=50, benefit_value=2),
            SlabConfig(min_qty=10, max_qty=50, benefit_value=20),
        ]
        scheme = _make_scheme(type=SchemeType.SLAB, slab_config=overlapping)
        result = calculate([scheme], [_line(quantity=15, line_total=1000)])
        assert result.total_discount == 20

    def test_no_band_matches(self):
        scheme = _make_scheme(type=SchemeType.SLAB, slab_config=SLABS[1:])
        result = calculate([scheme], [_line(quantity=5, line_total=500)])
        assert result.applied_schemes == []

    def test_free_qty_slab(self):
        scheme = _make_scheme(
            type=SchemeType.SLAB,
            benefit_type=BenefitType.FREE_QTY,
            slab_config=[SlabConfig(min_qty=10, max_qty=100, benefit_value=3)],
        )
        result = calculate([scheme], [_line(quantity=12, line_total=1200)])
        applied = result.applied_schemes[0]
        assert applied.free_quantity == 3
        assert applied.discount_amount == 0
        assert applied.description == "Get 3 free on 12 units"

    def test_quantity_summed_over_relevant_items(self):
        scheme = _make_scheme(type=SchemeType.SLAB, slab_config=SLABS, eligible_skus=["A", "B"])
        cart = [
            _line("A", quantity=8, line_total=800),
            _line("B", quantity=7, line_total=700),
            _line("C", quantity=50, line_total=5000),
        ]
        result = calculate([scheme], cart)
        assert result.applied_schemes[0].discount_amount == 150
        assert result.applied_schemes[0].applied_to_products == ["A", "B"]


# ══════════════════════════════════════════════════════════════
# BUY X GET Y
# ══════════════════════════════════════════════════════════════

class TestBuyXGetY:
    def test_sets_computed_by_floor(self):
        scheme = _make_scheme(
            type=SchemeType.BUY_X_GET_Y,
            benefit_type=BenefitType.FREE_QTY,
            min_quantity=5,
            free_quantity=2,
        )
        cart = [_line("A", quantity=13, line_total=1300, name="Detergent 1kg")]
        applied = calculate([scheme], cart).applied_schemes[0]

        assert applied.free_quantity == 4
        assert len(applied.free_products) == 1
        assert applied.free_products[0].product_id == "A"
        assert applied.free_products[0].product_name == "Detergent 1kg"
        assert applied.free_products[0].quantity == 4
        assert applied.description == "Buy 5 Get 2 Free (2 sets applied)"

    def test_free_goods_go_to_first_relevant_line(self):
        scheme = _make_scheme(
            type=SchemeType.BUY_X_GET_Y,
            min_quantity=3,
            free_quantity=1,
            eligible_skus=["B", "C"],
        )
        cart = [
            _line("A", quantity=10, line_total=1000),
            _line("B", quantity=2, line_total=200),
            _line("C", quantity=4, line_total=400),
        ]
        result = calculate([scheme], cart)
        assert result.total_free_goods[0].product_id == "B"
        assert result.total_free_goods[0].quantity == 2

    def test_below_threshold(self):
        scheme = _make_scheme(type=SchemeType.BUY_X_GET_Y, min_quantity=5, free_quantity=2)
        assert calculate([scheme], [_line(quantity=4, line_total=400)]).applied_schemes == []

    def test_missing_min_quantity_defaults_to_one(self):
        scheme = _make_scheme(type=SchemeType.BUY_X_GET_Y, free_quantity=1)
        applied = calculate([scheme], [_line(quantity=3, line_total=300)]).applied_schemes[0]
        assert applied.free_quantity == 3

    def test_zero_free_quantity_still_lists_free_product(self):
        scheme = _make_scheme(type=SchemeType.BUY_X_GET_Y, min_quantity=2)
        result = calculate([scheme], [_line(quantity=4, line_total=400)])
        applied = result.applied_schemes[0]
        assert applied.free_quantity == 0
        assert applied.free_products[0].quantity == 0

    def test_negative_parameters_yield_nothing(self):
        scheme = _make_scheme(type=SchemeType.BUY_X_GET_Y, min_quantity=-5, free_quantity=2)
        assert calculate([scheme], [_line(quantity=10, line_total=1000)]).applied_schemes == []


# ══════════════════════════════════════════════════════════════
# BILL WISE
# ══════════════════════════════════════════════════════════════

class TestBillWise:
    def test_cap_enforced(self):
        scheme = _make_scheme(
            type=SchemeType.BILL_WISE,
            discount_percent=20,
            max_benefit=500,
            min_order_value=1000,
        )
        applied = calculate([scheme], [_line(quantity=5, line_total=5000)]).applied_schemes[0]
        assert applied.discount_amount == 500
        assert applied.description == "20% off on orders ≥ ₹1000"

    def test_zero_cap_means_uncapped(self):
        scheme = _make_scheme(type=SchemeType.BILL_WISE, discount_percent=20, max_benefit=0)
        assert calculate([scheme], [_line(line_total=5000)]).total_discount == 1000

    def test_below_cap(self):
        scheme = _make_scheme(type=SchemeType.BILL_WISE, discount_percent=5, max_benefit=500)
        assert calculate([scheme], [_line(line_total=5000)]).total_discount == 250

    def test_below_min_order_value(self):
        scheme = _make_scheme(type=SchemeType.BILL_WISE, discount_percent=20, min_order_value=10000)
        assert calculate([scheme], [_line(line_total=5000)]).applied_schemes == []

    def test_min_order_value_is_inclusive(self):
        scheme = _make_scheme(type=SchemeType.BILL_WISE, discount_percent=10, min_order_value=5000)
        assert calculate([scheme], [_line(line_total=5000)]).total_discount == 500

    def test_cashback_is_flat(self):
        scheme = _make_scheme(
            type=SchemeType.BILL_WISE,
            benefit_type=BenefitType.CASHBACK,
            max_benefit=250,
            min_order_value=2000,
        )
        applied = calculate([scheme], [_line(line_total=3000)]).applied_schemes[0]
        assert applied.discount_amount == 250
        assert applied.description == "₹250 cashback on orders ≥ ₹2000"

    def test_cashback_without_amount(self):
        scheme = _make_scheme(type=SchemeType.BILL_WISE, benefit_type=BenefitType.CASHBACK)
        assert calculate([scheme], [_line(line_total=3000)]).applied_schemes == []


# ══════════════════════════════════════════════════════════════
# VOLUME / PRODUCT / DISPLAY / OPENING
# ══════════════════════════════════════════════════════════════

class TestPercentSchemes:
    def test_volume_threshold(self):
        scheme = _make_scheme(type=SchemeType.VOLUME, min_quantity=50, discount_percent=4)
        assert calculate([scheme], [_line(quantity=49, line_total=4900)]).applied_schemes == []

        applied = calculate([scheme], [_line(quantity=50, line_total=5000)]).applied_schemes[0]
        assert applied.discount_amount == 200
        assert applied.description == "4% off on 50+ units"

    def test_product_discount(self):
        scheme = _make_scheme(discount_percent=12.5)
        applied = calculate([scheme], [_line(line_total=800)]).applied_schemes[0]
        assert applied.discount_amount == 100
        assert applied.description == "12.5% off on selected products"

    @pytest.mark.parametrize("scheme_type,label", [
        (SchemeType.DISPLAY, "Display"),
        (SchemeType.OPENING, "Opening"),
    ])
    def test_flat_percent_types(self, scheme_type, label):
        scheme = _make_scheme(type=scheme_type, discount_percent=3)
        applied = calculate([scheme], [_line(line_total=1000)]).applied_schemes[0]
        assert applied.discount_amount == 30
        assert applied.description == f"{label} scheme: 3% off"

    def test_no_rounding(self):
        scheme = _make_scheme(discount_percent=7)
        result = calculate([scheme], [_line(line_total=333.33)])
        assert result.total_discount == (333.33 * 7) / 100


# ══════════════════════════════════════════════════════════════
# COMBO
# ══════════════════════════════════════════════════════════════

class TestCombo:
    def test_partial_combo_gets_nothing(self):
        scheme = _make_scheme(type=SchemeType.COMBO, applicable_products=["A", "B"], discount_percent=10)
        assert calculate([scheme], [_line("A", line_total=1000)]).applied_schemes == []

    def test_full_combo(self):
        scheme = _make_scheme(type=SchemeType.COMBO, applicable_products=["A", "B"], discount_percent=10)
        cart = [_line("A", line_total=1000), _line("B", line_total=500)]
        applied = calculate([scheme], cart).applied_schemes[0]
        assert applied.discount_amount == 150
        assert applied.description == "Combo deal: 10% off"

    def test_presence_checked_on_full_cart(self):
        # Only A is relevant, but B must still be somewhere in the cart
        scheme = _make_scheme(
            type=SchemeType.COMBO,
            applicable_products=["A", "B"],
            eligible_skus=["A"],
            discount_percent=10,
        )
        cart = [_line("A", line_total=1000), _line("B", line_total=500)]
        applied = calculate([scheme], cart).applied_schemes[0]
        assert applied.discount_amount == 100
        assert applied.applied_to_products == ["A"]

    def test_product_objects_in_combo_list(self):
        scheme = _make_scheme(
            type=SchemeType.COMBO,
            applicable_products=[{"id": "A", "name": "Tea"}, {"id": "B", "name": "Sugar"}],
            discount_percent=10,
        )
        cart = [_line("A", line_total=100), _line("B", line_total=100)]
        assert calculate([scheme], cart).total_discount == 20


# ══════════════════════════════════════════════════════════════
# MALFORMED DATA
# ══════════════════════════════════════════════════════════════

class TestMalformedSchemes:
    @pytest.mark.parametrize("scheme_type", [
        SchemeType.PRODUCT, SchemeType.VOLUME, SchemeType.COMBO,
        SchemeType.DISPLAY, SchemeType.OPENING, SchemeType.BILL_WISE,
    ])
    def test_missing_percent_gives_no_benefit(self, scheme_type):
        scheme = _make_scheme(type=scheme_type)
        assert calculate([scheme], [_line(quantity=100, line_total=10000)]).applied_schemes == []

    def test_slab_without_bands(self):
        scheme = _make_scheme(type=SchemeType.SLAB)
        assert calculate([scheme], [_line(quantity=10, line_total=1000)]).applied_schemes == []

    def test_nan_percent(self):
        scheme = _make_scheme(discount_percent=math.nan)
        assert calculate([scheme], [_line(line_total=1000)]).applied_schemes == []

    def test_bad_scheme_does_not_block_others(self):
        schemes = [
            _make_scheme(id="broken", type=SchemeType.VOLUME),
            _make_scheme(id="good", discount_percent=10),
        ]
        result = calculate(schemes, [_line(line_total=1000)])
        assert [a.scheme_id for a in result.applied_schemes] == ["good"]
        assert result.total_discount == 100


# ══════════════════════════════════════════════════════════════
# OVERRIDES
# ══════════════════════════════════════════════════════════════

class TestOverrides:
    def test_override_takes_precedence(self):
        scheme = _make_scheme(discount_percent=8)
        cart = [_line(line_total=10000)]
        assert calculate([scheme], cart).total_discount == 800

        result = calculate([scheme], cart, {"sch-1": _override("sch-1", discount=300)})
        applied = result.applied_schemes[0]
        assert applied.discount_amount == 300
        assert applied.description.startswith(OVERRIDE_PREFIX)
        assert applied.description == "[Overridden] manager approval"

    def test_removing_override_restores_computed_benefit(self):
        scheme = _make_scheme(discount_percent=8)
        cart = [_line(line_total=10000)]
        calculate([scheme], cart, {"sch-1": _override("sch-1", discount=300)})
        assert calculate([scheme], cart, {}).total_discount == 800

    def test_override_skips_type_rule(self):
        # A scheme that would never compute a benefit can be granted one
        scheme = _make_scheme(type=SchemeType.BUY_X_GET_Y, min_quantity=100, free_quantity=1)
        result = calculate([scheme], [_line(quantity=5, line_total=500)], {
            "sch-1": _override("sch-1", free_qty=2),
        })
        applied = result.applied_schemes[0]
        assert applied.free_quantity == 2
        assert applied.free_products == []

    def test_zero_override_removes_entry(self):
        scheme = _make_scheme(discount_percent=8)
        result = calculate([scheme], [_line(line_total=10000)], {
            "sch-1": _override("sch-1", discount=0, free_qty=0),
        })
        assert result.applied_schemes == []
        assert result.total_discount == 0

    def test_override_for_other_scheme_ignored(self):
        scheme = _make_scheme(discount_percent=8)
        result = calculate([scheme], [_line(line_total=10000)], {
            "other": _override("other", discount=1),
        })
        assert result.total_discount == 800

    def test_override_still_needs_relevant_items(self):
        scheme = _make_scheme(discount_percent=8, eligible_skus=["X"])
        result = calculate([scheme], [_line("A", line_total=10000)], {
            "sch-1": _override("sch-1", discount=300),
        })
        assert result.applied_schemes == []


# ══════════════════════════════════════════════════════════════
# AGGREGATES
# ══════════════════════════════════════════════════════════════

class TestAggregates:
    def _schemes(self):
        return [
            _make_scheme(id="p", discount_percent=3.3),
            _make_scheme(id="b", type=SchemeType.BILL_WISE, discount_percent=7.7, max_benefit=55.5),
            _make_scheme(id="x", type=SchemeType.BUY_X_GET_Y, min_quantity=2, free_quantity=1,
                         eligible_skus=["B"]),
            _make_scheme(id="s", type=SchemeType.SLAB, slab_config=SLABS),
        ]

    def _cart(self):
        return [
            _line("A", quantity=3, line_total=299.97),
            _line("B", quantity=5, line_total=123.45),
        ]

    def test_totals_consistent(self):
        result = calculate(self._schemes(), self._cart())

        assert result.original_total == 299.97 + 123.45
        assert result.total_discount == sum(a.discount_amount for a in result.applied_schemes)
        assert result.discounted_total == result.original_total - result.total_discount
        assert result.total_free_goods[0].product_id == "B"

    def test_idempotent(self):
        schemes, cart = self._schemes(), self._cart()
        overrides = {"p": _override("p", discount=12.34)}
        first = calculate(schemes, cart, overrides)
        second = calculate(schemes, cart, overrides)
        assert first == second
        assert first.model_dump() == second.model_dump()

    def test_inputs_not_mutated(self):
        schemes, cart = self._schemes(), self._cart()
        before = [s.model_dump() for s in schemes], [c.model_dump() for c in cart]
        calculate(schemes, cart)
        assert ([s.model_dump() for s in schemes], [c.model_dump() for c in cart]) == before

    def test_empty_inputs(self):
        result = calculate([], [])
        assert result.applied_schemes == []
        assert result.original_total == 0
        assert result.discounted_total == 0

    def test_unrelated_sku_never_emitted(self):
        for scheme_type in SchemeType:
            scheme = _make_scheme(type=scheme_type, eligible_skus=["X"], discount_percent=50,
                                  min_quantity=1, free_quantity=1, slab_config=SLABS)
            assert calculate([scheme], [_line("A", quantity=5, line_total=500)]).applied_schemes == []
