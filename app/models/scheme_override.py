import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import JSONType, UUIDType


class SchemeOverrideLog(Base):
    """
    Append-only audit trail of manual scheme benefit overrides.
    Records the computed benefit, the operator's replacement and the reason.
    """
    __tablename__ = "scheme_overrides"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Order the override was committed against (one of the two is set)
    order_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    pre_order_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    scheme_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Benefit snapshots
    original_benefit: Mapped[dict] = mapped_column(JSONType, nullable=False)
    override_benefit: Mapped[dict] = mapped_column(JSONType, nullable=False)

    override_reason: Mapped[str] = mapped_column(Text, nullable=False)

    # Who performed the override
    overridden_by: Mapped[str] = mapped_column(String(64), nullable=False)

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<SchemeOverrideLog(scheme='{self.scheme_id}', by='{self.overridden_by}')>"
