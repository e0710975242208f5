"""Order-building sessions for the scheme engine.

A session holds the cart being built, the customer it is built for and the
session's OverrideLedger. Every evaluation re-runs selection and
calculation against the supplied active schemes; overrides are read from a
snapshot of the ledger.

Sessions are process-local and owned by a single operator. Concurrent edits
to the same session follow last-write-wins with no conflict detection.
"""
import logging
import uuid
from collections import OrderedDict
from datetime import date, datetime, timezone
from typing import Any, List, Optional, Sequence

from app.config import settings
from app.models.scheme import CustomerType
from app.schemas.scheme import (
    AppliedScheme, CartLine, CustomerContext, Scheme, SchemeCalculationResult,
)
from app.services.override_ledger import OverrideLedger
from app.services.scheme_calculator import calculate
from app.services.scheme_selector import select_applicable

logger = logging.getLogger(__name__)

_UNCHANGED = object()


class SchemeSessionNotFoundError(Exception):
    """Raised when a calculation session id is unknown or was discarded."""
    pass


class SchemeCalculationSession:
    """One order-building session: cart, customer and manual overrides."""

    def __init__(
        self,
        cart_lines: Sequence[CartLine],
        customer_type: CustomerType,
        customer_category: Optional[str] = None,
        ledger: Optional[OverrideLedger] = None,
        order_id: Optional[str] = None,
        pre_order_id: Optional[str] = None,
        session_id: Optional[uuid.UUID] = None,
    ):
        self.id = session_id or uuid.uuid4()
        self.cart_lines: List[CartLine] = list(cart_lines)
        self.customer_type = customer_type
        self.customer_category = customer_category
        self.ledger = ledger if ledger is not None else OverrideLedger()
        self.order_id = order_id
        self.pre_order_id = pre_order_id
        self.created_at = datetime.now(timezone.utc)
        self.updated_at = self.created_at

    def update_cart(
        self,
        cart_lines: Sequence[CartLine],
        customer_type: Optional[CustomerType] = None,
        customer_category: Any = _UNCHANGED,
    ) -> None:
        """
        Replace the cart (and optionally the customer context).

        An explicit customer_category of None clears the segment; leaving
        the argument out keeps the current one.
        """
        self.cart_lines = list(cart_lines)
        if customer_type is not None:
            self.customer_type = customer_type
        if customer_category is not _UNCHANGED:
            self.customer_category = customer_category
        self.updated_at = datetime.now(timezone.utc)

    @property
    def customer(self) -> CustomerContext:
        return CustomerContext(
            customer_type=self.customer_type,
            customer_category=self.customer_category,
        )

    def applicable_schemes(
        self,
        schemes: Sequence[Scheme],
        today: Optional[date] = None,
    ) -> List[Scheme]:
        customer = self.customer
        return select_applicable(
            schemes,
            self.cart_lines,
            customer.customer_type,
            customer.customer_category,
            today=today,
        )

    def evaluate(
        self,
        schemes: Sequence[Scheme],
        today: Optional[date] = None,
    ) -> SchemeCalculationResult:
        """Select candidates and calculate benefits with the current overrides."""
        candidates = self.applicable_schemes(schemes, today)
        return calculate(candidates, self.cart_lines, self.ledger.overrides)

    def original_benefit(
        self,
        schemes: Sequence[Scheme],
        scheme_id: str,
        today: Optional[date] = None,
    ) -> Optional[AppliedScheme]:
        """Naturally computed benefit of one scheme, ignoring overrides."""
        candidates = self.applicable_schemes(schemes, today)
        result = calculate(candidates, self.cart_lines, {})
        for applied in result.applied_schemes:
            if applied.scheme_id == scheme_id:
                return applied
        return None


class SchemeSessionRegistry:
    """
    In-process registry of live calculation sessions.

    The least recently used session is evicted once the limit is reached.
    """

    def __init__(self, limit: int = 500):
        self.limit = limit
        self._sessions: "OrderedDict[uuid.UUID, SchemeCalculationSession]" = OrderedDict()

    def create(self, **kwargs) -> SchemeCalculationSession:
        session = SchemeCalculationSession(**kwargs)
        self._sessions[session.id] = session
        while len(self._sessions) > self.limit:
            evicted_id, _ = self._sessions.popitem(last=False)
            logger.warning(f"Scheme session limit reached, evicted session {evicted_id}")
        return session

    def get(self, session_id: uuid.UUID) -> SchemeCalculationSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SchemeSessionNotFoundError(f"Scheme session not found: {session_id}")
        # Least recently used sessions are evicted first
        self._sessions.move_to_end(session_id)
        return session

    def discard(self, session_id: uuid.UUID) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise SchemeSessionNotFoundError(f"Scheme session not found: {session_id}")

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: uuid.UUID) -> bool:
        return session_id in self._sessions


_registry: Optional[SchemeSessionRegistry] = None


def get_session_registry() -> SchemeSessionRegistry:
    """Process-wide session registry (FastAPI dependency)."""
    global _registry
    if _registry is None:
        _registry = SchemeSessionRegistry(limit=settings.SCHEME_SESSION_LIMIT)
    return _registry
