# Services module
from app.services.scheme_service import SchemeService
from app.services.scheme_override_service import SchemeOverrideService
from app.services.override_ledger import OverrideLedger
from app.services.scheme_session import SchemeCalculationSession, SchemeSessionRegistry

__all__ = [
    "SchemeService",
    "SchemeOverrideService",
    "OverrideLedger",
    "SchemeCalculationSession",
    "SchemeSessionRegistry",
]
