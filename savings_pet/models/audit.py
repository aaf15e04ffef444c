"""
Audit Models for Savings Pet

Every state transition of a pet is logged for audit purposes.
This provides:
1. Traceability of XP earned and spent
2. Debugging information when a level-up "went missing" (blocked by mood)
3. Ability to reconstruct a pet's history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from savings_pet.models.pet import utcnow


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every engine operation has its own event type.
    """
    # Lifecycle
    PET_INITIALIZED = "pet_initialized"
    STARTER_PET_CREATED = "starter_pet_created"

    # XP
    XP_GRANTED = "xp_granted"
    XP_CLAIMED = "xp_claimed"
    LEVEL_UP = "level_up"
    LEVEL_UP_BLOCKED = "level_up_blocked"
    LEVEL_DOWN = "level_down"

    # Interactions
    PET_PATTED = "pet_patted"
    PET_HIT = "pet_hit"
    PET_FED = "pet_fed"
    STATUS_DECAYED = "status_decayed"

    # Economy
    PET_PURCHASED = "pet_purchased"
    PURCHASE_REJECTED = "purchase_rejected"
    PURCHASE_ROLLED_BACK = "purchase_rolled_back"
    ACTIVE_PET_SWITCHED = "active_pet_switched"

    # System events
    CONCURRENCY_CONFLICT = "concurrency_conflict"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Whose pet is this about?
    user_id: Optional[str] = Field(
        default=None,
        description="Owner of the pet state the event relates to"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'pet_state', 'user_pet')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., debit and rollback of one purchase)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.xp_granted(user_id, amount, xp, level, correlation_id)
        event = AuditEventBuilder.pet_purchased(user_id, user_pet_id, template_id, cost, correlation_id)
    """

    @staticmethod
    def pet_initialized(
        user_id: str,
        mood: int,
        level: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PET_INITIALIZED,
            user_id=user_id,
            entity_type="pet_state",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="Pet state initialized",
            details={"mood": mood, "level": level},
        )

    @staticmethod
    def starter_pet_created(
        user_id: str,
        user_pet_id: UUID,
        breed: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STARTER_PET_CREATED,
            user_id=user_id,
            entity_type="user_pet",
            entity_id=str(user_pet_id),
            correlation_id=correlation_id,
            description=f"Starter pet created: {breed}",
            details={"breed": breed},
            is_user_action=True,
        )

    @staticmethod
    def xp_granted(
        user_id: str,
        amount: int,
        total_xp: int,
        level: int,
        correlation_id: Optional[UUID] = None,
        claimed: bool = False,
    ) -> AuditEvent:
        event_type = AuditEventType.XP_CLAIMED if claimed else AuditEventType.XP_GRANTED
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="pet_state",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"{amount} XP granted (total {total_xp})",
            details={"amount": amount, "total_xp": total_xp, "level": level},
            is_user_action=claimed,
        )

    @staticmethod
    def level_up(
        user_id: str,
        from_level: int,
        to_level: int,
        mood: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEVEL_UP,
            user_id=user_id,
            entity_type="pet_state",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Level up: {from_level} -> {to_level}",
            details={"from_level": from_level, "to_level": to_level, "mood": mood},
        )

    @staticmethod
    def level_up_blocked(
        user_id: str,
        level: int,
        pending_level: int,
        mood: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEVEL_UP_BLOCKED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="pet_state",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Level up to {pending_level} blocked by mood {mood}",
            details={"level": level, "pending_level": pending_level, "mood": mood},
        )

    @staticmethod
    def level_down(
        user_id: str,
        from_level: int,
        to_level: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEVEL_DOWN,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="pet_state",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Level down: {from_level} -> {to_level}",
            details={"from_level": from_level, "to_level": to_level},
        )

    @staticmethod
    def pet_patted(
        user_id: str,
        mood: int,
        xp_gained: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PET_PATTED,
            user_id=user_id,
            entity_type="pet_state",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Pet patted (mood {mood}, +{xp_gained} XP)",
            details={"mood": mood, "xp_gained": xp_gained},
            is_user_action=True,
        )

    @staticmethod
    def pet_hit(
        user_id: str,
        mood: int,
        xp_lost: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PET_HIT,
            user_id=user_id,
            entity_type="pet_state",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Pet hit (mood {mood}, -{xp_lost} XP)",
            details={"mood": mood, "xp_lost": xp_lost},
            is_user_action=True,
        )

    @staticmethod
    def pet_fed(
        user_id: str,
        mood: int,
        hunger: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PET_FED,
            user_id=user_id,
            entity_type="pet_state",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="Pet fed",
            details={"mood": mood, "hunger": hunger},
            is_user_action=True,
        )

    @staticmethod
    def status_decayed(
        user_id: str,
        mood: int,
        hunger: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATUS_DECAYED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            entity_type="pet_state",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="Mood and hunger decayed over time",
            details={"mood": mood, "hunger": hunger},
        )

    @staticmethod
    def pet_purchased(
        user_id: str,
        user_pet_id: UUID,
        template_id: str,
        xp_cost: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PET_PURCHASED,
            user_id=user_id,
            entity_type="user_pet",
            entity_id=str(user_pet_id),
            correlation_id=correlation_id,
            description=f"Purchased {template_id} for {xp_cost} XP",
            details={"template_id": template_id, "xp_cost": xp_cost},
            is_user_action=True,
        )

    @staticmethod
    def purchase_rejected(
        user_id: str,
        template_id: str,
        required: int,
        available: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PURCHASE_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="pet_state",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Purchase of {template_id} rejected: need {required}, have {available}",
            details={
                "template_id": template_id,
                "required": required,
                "available": available,
            },
            is_user_action=True,
        )

    @staticmethod
    def purchase_rolled_back(
        user_id: str,
        template_id: str,
        refunded_xp: int,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PURCHASE_ROLLED_BACK,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            entity_type="pet_state",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Purchase of {template_id} rolled back, {refunded_xp} XP refunded",
            details={"template_id": template_id, "refunded_xp": refunded_xp},
            error_message=error_message,
        )

    @staticmethod
    def active_pet_switched(
        user_id: str,
        user_pet_id: UUID,
        previous_pet_id: Optional[UUID],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTIVE_PET_SWITCHED,
            user_id=user_id,
            entity_type="user_pet",
            entity_id=str(user_pet_id),
            correlation_id=correlation_id,
            description="Active pet switched",
            details={
                "previous_pet_id": str(previous_pet_id) if previous_pet_id else None,
            },
            is_user_action=True,
        )

    @staticmethod
    def concurrency_conflict(
        user_id: str,
        operation: str,
        attempt: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONCURRENCY_CONFLICT,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="pet_state",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Conflicting write during {operation}, attempt {attempt}",
            details={"operation": operation, "attempt": attempt},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        user_id: Optional[str] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
