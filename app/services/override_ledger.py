"""Manual override bookkeeping for one calculation session.

An operator may replace the computed benefit of a scheme with a manually
entered one. Overrides are keyed by scheme id (at most one per scheme),
live only as long as the order-building session, and are persisted to the
audit log by SchemeOverrideService when the order is committed.
"""
import logging
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Protocol, Union

from app.schemas.scheme import AppliedScheme, OverrideBenefit, SchemeOverride

logger = logging.getLogger(__name__)


class OverrideValidationError(Exception):
    """Raised when an override is submitted without a justification."""
    pass


class OverrideStore(Protocol):
    """Storage for session overrides; swap for a persisted implementation."""

    def get(self, scheme_id: str) -> Optional[SchemeOverride]: ...

    def set(self, override: SchemeOverride) -> None: ...

    def remove(self, scheme_id: str) -> None: ...

    def clear(self) -> None: ...

    def snapshot(self) -> Mapping[str, SchemeOverride]: ...


class InMemoryOverrideStore:
    """Plain dict-backed store, owned by a single session."""

    def __init__(self):
        self._overrides: Dict[str, SchemeOverride] = {}

    def get(self, scheme_id: str) -> Optional[SchemeOverride]:
        return self._overrides.get(scheme_id)

    def set(self, override: SchemeOverride) -> None:
        self._overrides[override.scheme_id] = override

    def remove(self, scheme_id: str) -> None:
        self._overrides.pop(scheme_id, None)

    def clear(self) -> None:
        self._overrides.clear()

    def snapshot(self) -> Mapping[str, SchemeOverride]:
        return MappingProxyType(dict(self._overrides))


class OverrideLedger:
    """
    Add/remove/clear operations over a session's overrides.

    Re-adding an override for the same scheme replaces it (last write wins).
    The ledger does not reject blank reasons unless require_reason is set;
    the order screen is expected to block submission first.
    """

    def __init__(
        self,
        store: Optional[OverrideStore] = None,
        require_reason: bool = False,
    ):
        self._store = store if store is not None else InMemoryOverrideStore()
        self.require_reason = require_reason

    def add_override(
        self,
        scheme_id: str,
        original_benefit: AppliedScheme,
        override_benefit: Union[OverrideBenefit, dict],
        reason: str,
    ) -> SchemeOverride:
        """Record (or replace) the override for a scheme."""
        if self.require_reason and not (reason or "").strip():
            raise OverrideValidationError(
                f"A reason is required to override scheme {scheme_id}"
            )
        if isinstance(override_benefit, dict):
            override_benefit = OverrideBenefit.model_validate(override_benefit)

        override = SchemeOverride(
            scheme_id=scheme_id,
            original_benefit=original_benefit,
            override_benefit=override_benefit,
            reason=reason,
        )
        replaced = self._store.get(scheme_id) is not None
        self._store.set(override)
        logger.info(
            f"Override {'replaced' if replaced else 'added'} for scheme {scheme_id}: "
            f"discount={override_benefit.discount_amount}, free_qty={override_benefit.free_quantity}"
        )
        return override

    def remove_override(self, scheme_id: str) -> None:
        self._store.remove(scheme_id)

    def clear_overrides(self) -> None:
        self._store.clear()

    def has_override(self, scheme_id: str) -> bool:
        return self._store.get(scheme_id) is not None

    def get_override(self, scheme_id: str) -> Optional[SchemeOverride]:
        return self._store.get(scheme_id)

    @property
    def overrides(self) -> Mapping[str, SchemeOverride]:
        """Read-only snapshot handed to the calculator."""
        return self._store.snapshot()

    def __len__(self) -> int:
        return len(self._store.snapshot())
