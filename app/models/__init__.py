# Models module
from app.models.scheme import Scheme
from app.models.scheme_override import SchemeOverrideLog

__all__ = [
    "Scheme",
    "SchemeOverrideLog",
]
