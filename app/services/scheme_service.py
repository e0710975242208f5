"""Scheme store: scheme master CRUD and the active-scheme feed for the engine."""
from typing import Optional, List, Tuple, Dict, Any
from datetime import date
from enum import Enum
import uuid
import logging

from pydantic import ValidationError
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.enum_utils import get_enum_value
from app.models.scheme import Scheme as SchemeModel, SchemeStatus, SchemeType
from app.schemas.scheme import Scheme, SchemeCreate, SchemeUpdate

logger = logging.getLogger(__name__)


class SchemeNotFoundError(Exception):
    """Raised when a scheme id does not exist."""
    pass


def to_engine_scheme(row: SchemeModel) -> Optional[Scheme]:
    """
    Convert a stored scheme into the engine's view of it.

    Rows whose stored data cannot be read (unknown type, non-numeric
    parameters) are skipped with a warning instead of failing the cart.
    """
    try:
        return Scheme.model_validate({
            "id": str(row.id),
            "code": row.code,
            "name": row.name,
            "description": row.description,
            "type": row.type,
            "benefit_type": row.benefit_type,
            "applicability": row.applicability,
            "status": row.status,
            "start_date": row.start_date,
            "end_date": row.end_date,
            "eligible_skus": row.eligible_skus,
            "slab_config": row.slab_config,
            "min_quantity": row.min_quantity,
            "free_quantity": row.free_quantity,
            "discount_percent": row.discount_percent,
            "min_order_value": row.min_order_value,
            "max_benefit": row.max_benefit,
            "applicable_products": row.applicable_products,
        })
    except ValidationError as e:
        logger.warning(f"Scheme {row.code or row.id} has malformed data, skipped: {e.error_count()} errors")
        return None


class SchemeService:
    """
    Service for the scheme master.

    The engine only ever reads through list_active_schemes(); everything
    else backs the scheme maintenance endpoints.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_active_schemes(self, today: Optional[date] = None) -> List[Scheme]:
        """
        Active, date-valid schemes, newest first.

        Query: status = active AND start_date <= today <= end_date
        """
        today = today or date.today()
        stmt = (
            select(SchemeModel)
            .where(
                and_(
                    SchemeModel.status == SchemeStatus.ACTIVE.value,
                    SchemeModel.start_date <= today,
                    SchemeModel.end_date >= today,
                )
            )
            .order_by(SchemeModel.created_at.desc())
        )
        result = await self.db.execute(stmt)
        rows = result.scalars().all()

        schemes = [to_engine_scheme(row) for row in rows]
        return [scheme for scheme in schemes if scheme is not None]

    async def list_schemes(
        self,
        skip: int = 0,
        limit: int = 50,
        scheme_type: Optional[SchemeType] = None,
        status: Optional[SchemeStatus] = None,
        active_only: bool = False,
    ) -> Tuple[List[SchemeModel], int]:
        """List schemes with filters. Returns (items, total)."""
        query = select(SchemeModel)
        count_query = select(func.count(SchemeModel.id))

        filters = []
        if scheme_type:
            filters.append(SchemeModel.type == scheme_type.value)
        if status:
            filters.append(SchemeModel.status == status.value)
        if active_only:
            today = date.today()
            filters.append(SchemeModel.status == SchemeStatus.ACTIVE.value)
            filters.append(SchemeModel.start_date <= today)
            filters.append(SchemeModel.end_date >= today)

        if filters:
            query = query.where(and_(*filters))
            count_query = count_query.where(and_(*filters))

        total_result = await self.db.execute(count_query)
        total = total_result.scalar() or 0

        query = query.order_by(SchemeModel.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def get_scheme(self, scheme_id: uuid.UUID) -> SchemeModel:
        result = await self.db.execute(
            select(SchemeModel).where(SchemeModel.id == scheme_id)
        )
        scheme = result.scalar_one_or_none()
        if not scheme:
            raise SchemeNotFoundError(f"Scheme not found: {scheme_id}")
        return scheme

    async def _generate_code(self) -> str:
        count_result = await self.db.execute(select(func.count(SchemeModel.id)))
        count = count_result.scalar() or 0
        return f"{settings.SCHEME_CODE_PREFIX}-{date.today().strftime('%Y')}-{str(count + 1).zfill(4)}"

    async def create_scheme(
        self,
        scheme_in: SchemeCreate,
        created_by: Optional[str] = None,
    ) -> SchemeModel:
        """Create a scheme, generating SCH-YYYY-NNNN when no code is given."""
        data = self._column_values(scheme_in.model_dump())
        if not data.get("code"):
            data["code"] = await self._generate_code()

        scheme = SchemeModel(**data, created_by=created_by)
        self.db.add(scheme)
        await self.db.flush()
        await self.db.refresh(scheme)

        logger.info(f"Created scheme {scheme.code} ({scheme.type})")
        return scheme

    async def update_scheme(
        self,
        scheme_id: uuid.UUID,
        scheme_in: SchemeUpdate,
    ) -> SchemeModel:
        scheme = await self.get_scheme(scheme_id)

        update_data = self._column_values(scheme_in.model_dump(exclude_unset=True))
        for key in ("name", "benefit_type", "status", "start_date", "end_date"):
            if key in update_data and update_data[key] is None:
                update_data.pop(key)

        start_date = update_data.get("start_date", scheme.start_date)
        end_date = update_data.get("end_date", scheme.end_date)
        if end_date < start_date:
            raise ValueError("end_date must be on or after start_date")

        for field, value in update_data.items():
            setattr(scheme, field, value)

        await self.db.flush()
        await self.db.refresh(scheme)
        return scheme

    async def deactivate_scheme(self, scheme_id: uuid.UUID) -> SchemeModel:
        """Schemes are never hard-deleted; override logs reference them."""
        scheme = await self.get_scheme(scheme_id)
        scheme.status = SchemeStatus.INACTIVE.value
        await self.db.flush()
        await self.db.refresh(scheme)

        logger.info(f"Deactivated scheme {scheme.code}")
        return scheme

    @staticmethod
    def _column_values(data: Dict[str, Any]) -> Dict[str, Any]:
        # Enums are stored as plain strings
        return {
            key: get_enum_value(value) if isinstance(value, Enum) else value
            for key, value in data.items()
        }
