"""
Data Models Package

This package contains all Pydantic models used by the Savings Pet engine.
All records flowing between the engine and storage conform to these schemas.
"""

from savings_pet.models.pet import (
    AvailablePet,
    HitResult,
    LevelProgress,
    PatResult,
    PetState,
    PetTranslation,
    PurchaseResult,
    StarterPet,
    UserPet,
    XPGrantResult,
    utcnow,
)
from savings_pet.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Pet models
    "AvailablePet",
    "HitResult",
    "LevelProgress",
    "PatResult",
    "PetState",
    "PetTranslation",
    "PurchaseResult",
    "StarterPet",
    "UserPet",
    "XPGrantResult",
    "utcnow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
