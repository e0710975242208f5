from typing import Optional, List, Tuple
import logging

from sqlalchemy import select, func, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.scheme_override import SchemeOverrideLog
from app.schemas.scheme import AppliedScheme, OverrideBenefit
from app.services.override_ledger import OverrideLedger

logger = logging.getLogger(__name__)


class OverrideAuditError(Exception):
    """Raised when an override cannot be written to the audit log."""
    pass


class SchemeOverrideService:
    """
    Append-only audit log for manual scheme overrides.

    Writing never touches the in-memory ledger: a failed commit leaves the
    session's overrides exactly as they were so the operator can retry.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log_override(
        self,
        scheme_id: str,
        original_benefit: AppliedScheme,
        override_benefit: OverrideBenefit,
        reason: str,
        acting_user_id: str,
        order_id: Optional[str] = None,
        pre_order_id: Optional[str] = None,
    ) -> SchemeOverrideLog:
        """
        Create an override audit record.

        Args:
            scheme_id: Scheme whose benefit was overridden
            original_benefit: Full computed benefit before the override
            override_benefit: Operator-entered replacement (partial)
            reason: Mandatory justification
            acting_user_id: Operator performing the override
            order_id: Order the override belongs to
            pre_order_id: Pre-order the override belongs to

        Returns:
            The created SchemeOverrideLog entry
        """
        if not acting_user_id:
            raise OverrideAuditError("User not authenticated")

        entry = SchemeOverrideLog(
            order_id=order_id,
            pre_order_id=pre_order_id,
            scheme_id=scheme_id,
            original_benefit=original_benefit.model_dump(mode="json"),
            override_benefit=override_benefit.model_dump(mode="json", exclude_none=True),
            override_reason=reason,
            overridden_by=acting_user_id,
        )
        self.db.add(entry)
        return entry

    async def commit_ledger(
        self,
        ledger: OverrideLedger,
        acting_user_id: str,
        order_id: Optional[str] = None,
        pre_order_id: Optional[str] = None,
    ) -> List[SchemeOverrideLog]:
        """Persist every override currently held in a session ledger."""
        if not acting_user_id:
            raise OverrideAuditError("User not authenticated")

        entries = []
        try:
            for scheme_id, override in ledger.overrides.items():
                entry = await self.log_override(
                    scheme_id=scheme_id,
                    original_benefit=override.original_benefit,
                    override_benefit=override.override_benefit,
                    reason=override.reason,
                    acting_user_id=acting_user_id,
                    order_id=order_id,
                    pre_order_id=pre_order_id,
                )
                entries.append(entry)
            await self.db.flush()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to log scheme overrides for order {order_id or pre_order_id}: {e}")
            raise OverrideAuditError(f"Failed to log override: {e}") from e

        for entry in entries:
            await self.db.refresh(entry)

        logger.info(
            f"Logged {len(entries)} scheme override(s) for "
            f"{'order ' + order_id if order_id else 'pre-order ' + str(pre_order_id)} "
            f"by user {acting_user_id}"
        )
        return entries

    async def list_overrides(
        self,
        order_id: Optional[str] = None,
        pre_order_id: Optional[str] = None,
        scheme_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[SchemeOverrideLog], int]:
        """Override audit trail, newest first. Returns (items, total)."""
        query = select(SchemeOverrideLog)
        count_query = select(func.count()).select_from(SchemeOverrideLog)

        filters = []
        if order_id:
            filters.append(SchemeOverrideLog.order_id == order_id)
        if pre_order_id:
            filters.append(SchemeOverrideLog.pre_order_id == pre_order_id)
        if scheme_id:
            filters.append(SchemeOverrideLog.scheme_id == scheme_id)

        if filters:
            query = query.where(and_(*filters))
            count_query = count_query.where(and_(*filters))

        total = await self.db.scalar(count_query) or 0

        query = query.order_by(SchemeOverrideLog.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total
