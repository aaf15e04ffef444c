"""
Audit Logger

DESIGN DECISION: Every pet state transition is logged.
This provides:
1. Traceability of XP earned, banked and spent
2. Debugging capability ("why didn't my pet level up?")
3. A history the user can be shown

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from savings_pet.models.audit import AuditEvent, AuditEventBuilder
from savings_pet.models.pet import (
    HitResult,
    PatResult,
    PetState,
    UserPet,
    XPGrantResult,
)
from savings_pet.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("savings_pet.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        severity = event.severity.value
        if severity in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif severity == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif severity == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_pet_initialized(
        self,
        state: PetState,
        correlation_id: UUID,
    ) -> None:
        """Log creation of a pet state."""
        await self.log(AuditEventBuilder.pet_initialized(
            user_id=state.user_id,
            mood=state.mood,
            level=state.level,
            correlation_id=correlation_id,
        ))

    async def log_starter_pet_created(
        self,
        pet: UserPet,
        correlation_id: UUID,
    ) -> None:
        """Log creation of the free starter pet."""
        await self.log(AuditEventBuilder.starter_pet_created(
            user_id=pet.user_id,
            user_pet_id=pet.id,
            breed=pet.pet_breed,
            correlation_id=correlation_id,
        ))

    async def log_xp_granted(
        self,
        result: XPGrantResult,
        previous_level: int,
        pending_level: int,
        correlation_id: UUID,
        claimed: bool = False,
    ) -> None:
        """Log an XP grant, plus the level-up or the mood block it caused."""
        pet = result.pet
        await self.log(AuditEventBuilder.xp_granted(
            user_id=pet.user_id,
            amount=result.xp_gained,
            total_xp=pet.xp,
            level=pet.level,
            correlation_id=correlation_id,
            claimed=claimed,
        ))
        if result.leveled_up:
            await self.log(AuditEventBuilder.level_up(
                user_id=pet.user_id,
                from_level=previous_level,
                to_level=pet.level,
                mood=pet.mood,
                correlation_id=correlation_id,
            ))
        elif result.blocked_by_mood:
            await self.log(AuditEventBuilder.level_up_blocked(
                user_id=pet.user_id,
                level=pet.level,
                pending_level=pending_level,
                mood=pet.mood,
                correlation_id=correlation_id,
            ))

    async def log_pet_patted(
        self,
        result: PatResult,
        previous_level: int,
        correlation_id: UUID,
    ) -> None:
        """Log a pat, plus the level-up it released."""
        pet = result.pet
        await self.log(AuditEventBuilder.pet_patted(
            user_id=pet.user_id,
            mood=pet.mood,
            xp_gained=result.xp_gained,
            correlation_id=correlation_id,
        ))
        if result.leveled_up:
            await self.log(AuditEventBuilder.level_up(
                user_id=pet.user_id,
                from_level=previous_level,
                to_level=pet.level,
                mood=pet.mood,
                correlation_id=correlation_id,
            ))

    async def log_pet_hit(
        self,
        result: HitResult,
        previous_level: int,
        correlation_id: UUID,
    ) -> None:
        """Log a hit, plus the level-down it caused."""
        pet = result.pet
        await self.log(AuditEventBuilder.pet_hit(
            user_id=pet.user_id,
            mood=pet.mood,
            xp_lost=result.xp_lost,
            correlation_id=correlation_id,
        ))
        if result.leveled_down:
            await self.log(AuditEventBuilder.level_down(
                user_id=pet.user_id,
                from_level=previous_level,
                to_level=pet.level,
                correlation_id=correlation_id,
            ))

    async def log_pet_fed(
        self,
        state: PetState,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.pet_fed(
            user_id=state.user_id,
            mood=state.mood,
            hunger=state.hunger,
            correlation_id=correlation_id,
        ))

    async def log_status_decayed(
        self,
        state: PetState,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.status_decayed(
            user_id=state.user_id,
            mood=state.mood,
            hunger=state.hunger,
            correlation_id=correlation_id,
        ))

    async def log_pet_purchased(
        self,
        pet: UserPet,
        template_id: str,
        xp_cost: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.pet_purchased(
            user_id=pet.user_id,
            user_pet_id=pet.id,
            template_id=template_id,
            xp_cost=xp_cost,
            correlation_id=correlation_id,
        ))

    async def log_purchase_rejected(
        self,
        user_id: str,
        template_id: str,
        required: int,
        available: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.purchase_rejected(
            user_id=user_id,
            template_id=template_id,
            required=required,
            available=available,
            correlation_id=correlation_id,
        ))

    async def log_purchase_rolled_back(
        self,
        user_id: str,
        template_id: str,
        refunded_xp: int,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.purchase_rolled_back(
            user_id=user_id,
            template_id=template_id,
            refunded_xp=refunded_xp,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_active_pet_switched(
        self,
        pet: UserPet,
        previous_pet_id: Optional[UUID],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.active_pet_switched(
            user_id=pet.user_id,
            user_pet_id=pet.id,
            previous_pet_id=previous_pet_id,
            correlation_id=correlation_id,
        ))

    async def log_conflict(
        self,
        user_id: str,
        operation: str,
        attempt: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.concurrency_conflict(
            user_id=user_id,
            operation=operation,
            attempt=attempt,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        user_id: Optional[str] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            user_id=user_id,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., a purchase) and pass it
    through all subsequent operations.
    """
    return uuid4()
