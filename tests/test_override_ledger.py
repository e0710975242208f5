"""Override ledger: map semantics, snapshots and reason enforcement."""
import pytest

from app.models.scheme import BenefitType, SchemeType
from app.schemas.scheme import AppliedScheme, OverrideBenefit
from app.services.override_ledger import (
    InMemoryOverrideStore, OverrideLedger, OverrideValidationError,
)


def _original(scheme_id="sch-1", discount=800.0) -> AppliedScheme:
    return AppliedScheme(
        scheme_id=scheme_id,
        scheme_name="Festive Discount",
        scheme_type=SchemeType.PRODUCT,
        benefit_type=BenefitType.DISCOUNT,
        discount_amount=discount,
        description="8% off on selected products",
    )


class TestOverrideLedger:
    def test_add_and_read(self):
        ledger = OverrideLedger()
        ledger.add_override("sch-1", _original(), OverrideBenefit(discount_amount=300), "manager approval")

        assert ledger.has_override("sch-1")
        assert not ledger.has_override("sch-2")
        override = ledger.get_override("sch-1")
        assert override.override_benefit.discount_amount == 300
        assert override.original_benefit.discount_amount == 800
        assert override.reason == "manager approval"

    def test_dict_benefit_accepted(self):
        ledger = OverrideLedger()
        ledger.add_override("sch-1", _original(), {"freeQuantity": 2}, "stock clearance")
        assert ledger.get_override("sch-1").override_benefit.free_quantity == 2

    def test_re_adding_replaces(self):
        ledger = OverrideLedger()
        ledger.add_override("sch-1", _original(), {"discount_amount": 300}, "first")
        ledger.add_override("sch-1", _original(), {"discount_amount": 450}, "second")

        assert len(ledger) == 1
        assert ledger.get_override("sch-1").override_benefit.discount_amount == 450
        assert ledger.get_override("sch-1").reason == "second"

    def test_remove(self):
        ledger = OverrideLedger()
        ledger.add_override("sch-1", _original(), {"discount_amount": 300}, "r")
        ledger.remove_override("sch-1")
        assert not ledger.has_override("sch-1")

    def test_remove_unknown_is_noop(self):
        ledger = OverrideLedger()
        ledger.remove_override("missing")
        assert len(ledger) == 0

    def test_clear(self):
        ledger = OverrideLedger()
        ledger.add_override("sch-1", _original("sch-1"), {"discount_amount": 1}, "r")
        ledger.add_override("sch-2", _original("sch-2"), {"discount_amount": 2}, "r")
        ledger.clear_overrides()
        assert len(ledger) == 0
        assert dict(ledger.overrides) == {}

    def test_snapshot_is_read_only(self):
        ledger = OverrideLedger()
        ledger.add_override("sch-1", _original(), {"discount_amount": 300}, "r")
        snapshot = ledger.overrides
        with pytest.raises(TypeError):
            snapshot["sch-2"] = snapshot["sch-1"]

    def test_snapshot_does_not_follow_later_changes(self):
        ledger = OverrideLedger()
        ledger.add_override("sch-1", _original(), {"discount_amount": 300}, "r")
        snapshot = ledger.overrides
        ledger.clear_overrides()
        assert "sch-1" in snapshot

    def test_blank_reason_accepted_by_default(self):
        ledger = OverrideLedger()
        ledger.add_override("sch-1", _original(), {"discount_amount": 300}, "")
        assert ledger.has_override("sch-1")

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_blank_reason_rejected_when_required(self, reason):
        ledger = OverrideLedger(require_reason=True)
        with pytest.raises(OverrideValidationError):
            ledger.add_override("sch-1", _original(), {"discount_amount": 300}, reason)
        assert not ledger.has_override("sch-1")

    def test_custom_store(self):
        store = InMemoryOverrideStore()
        ledger = OverrideLedger(store=store)
        ledger.add_override("sch-1", _original(), {"discount_amount": 300}, "r")
        assert store.get("sch-1") is not None
