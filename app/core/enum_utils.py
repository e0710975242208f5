"""
Enum Utilities for VARCHAR-based Type/Status Fields

STORAGE STANDARD:
━━━━━━━━━━━━━━━━━
• Database: VARCHAR(30) - NOT PostgreSQL ENUM
• SQLAlchemy: String(30) with Mapped[str]
• Pydantic: Python Enum for API validation
• Case: scheme enum values are stored in lowercase (slab, bill_wise, ...)

DATA FLOW:
━━━━━━━━━━
INPUT (API Request):
    Pydantic Enum → .value → String → Database
    Example: SchemeType.BILL_WISE → "bill_wise" → VARCHAR

OUTPUT (API Response / engine):
    Database → String → Enum via the engine's Scheme schema
"""

from enum import Enum
from typing import Any, Optional, Type


def get_enum_value(value: Any) -> Optional[str]:
    """
    Safely get string value from an enum or string.

    Examples:
        >>> get_enum_value(SchemeType.SLAB)  # Pydantic input
        'slab'
        >>> get_enum_value("slab")  # Database value
        'slab'
        >>> get_enum_value(None)
        None
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)


def enum_comment(enum_class: Type[Enum]) -> str:
    """
    Generate a column comment listing the allowed values.

    Example:
        >>> enum_comment(BenefitType)
        'discount, free_qty, cashback, points, coupon'
    """
    return ", ".join(member.value for member in enum_class)
