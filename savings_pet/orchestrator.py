"""
Main Orchestrator for Savings Pet

This module ties together the pure progression rules, the catalog, the
storage port and the audit logger, and defines the end-to-end flows the
app shell calls:
1. Initialization (pet state + optional free starter pet)
2. XP grants, timed claims, pats, hits, feeding and decay
3. Purchases and active-pet switching

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every operation is load -> pure transition -> conditional write
- Operations for the same user are serialized by a per-user lock
- A write that loses against another process (ConflictError) is
  recomputed from a fresh snapshot, a bounded number of times
- Every transition is audited

Different users never share a lock, so they proceed in parallel.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Optional
from uuid import UUID

import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from savings_pet.audit import AuditLogger, create_correlation_id
from savings_pet.config import Settings, get_settings
from savings_pet.engine.catalog import PetCatalog, load_catalog
from savings_pet.engine.exceptions import (
    InsufficientFundsError,
    NotAuthenticatedError,
    PetNotFoundError,
)
from savings_pet.engine.progression import (
    ProgressionRules,
    calculate_level_from_xp,
    debit_purchase,
    decay_status,
    feed,
    grant_xp,
    negative_interaction,
    new_pet_state,
    positive_interaction,
    refund_purchase,
)
from savings_pet.engine.ratelimit import ClaimCooldown
from savings_pet.models.pet import (
    HitResult,
    LevelProgress,
    PatResult,
    PetState,
    PurchaseResult,
    StarterPet,
    UserPet,
    XPGrantResult,
    utcnow,
)
from savings_pet.services.storage import (
    AuditStorageInterface,
    ConflictError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsPetStateStorage,
    GoogleSheetsUserPetStorage,
    InMemoryAuditStorage,
    InMemoryPetStorage,
    NotFoundError,
    PetStateStorageInterface,
    StorageError,
    UserPetStorageInterface,
)


logger = structlog.get_logger(__name__)

# A transition takes the loaded snapshot and returns (next snapshot, payload)
Transition = Callable[[PetState], tuple[PetState, Any]]


class PetProgressionService:
    """
    Orchestrates every pet operation for every user.

    Flow of a state-changing operation:
    1. Check the user context
    2. Acquire the user's lock
    3. Load (or create) the PetState snapshot
    4. Run the pure transition
    5. Write it back conditionally on the snapshot's version
    6. On conflict, go back to 3
    7. Audit the outcome
    """

    def __init__(
        self,
        state_storage: PetStateStorageInterface,
        pet_storage: UserPetStorageInterface,
        catalog: Optional[PetCatalog] = None,
        rules: Optional[ProgressionRules] = None,
        audit_logger: Optional[AuditLogger] = None,
        claim_cooldown: Optional[ClaimCooldown] = None,
        conflict_retry_attempts: int = 3,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._state_storage = state_storage
        self._pet_storage = pet_storage
        self._catalog = catalog or load_catalog()
        self._rules = rules or ProgressionRules()
        self._audit_logger = audit_logger or AuditLogger()
        self._claim_cooldown = claim_cooldown or ClaimCooldown(
            self._rules.claim_cooldown_seconds
        )
        self._conflict_retry_attempts = conflict_retry_attempts
        self._clock = clock
        # Per-user locks, with the number of tasks holding or waiting for each
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @property
    def catalog(self) -> PetCatalog:
        return self._catalog

    @property
    def rules(self) -> ProgressionRules:
        return self._rules

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    @staticmethod
    def _require_user(user_id: Optional[str]) -> str:
        if not user_id or not user_id.strip():
            raise NotAuthenticatedError()
        return user_id

    @asynccontextmanager
    async def _user_lock(self, user_id: str) -> AsyncIterator[None]:
        """Serialize operations of one user. The lock is dropped once nobody needs it."""
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[user_id] -= 1
            if not self._lock_users[user_id]:
                del self._lock_users[user_id]
                del self._locks[user_id]

    @property
    def busy_user_count(self) -> int:
        """Users with an operation in flight or queued."""
        return len(self._locks)

    async def _load_or_create(self, user_id: str, correlation_id: UUID) -> PetState:
        """Load the user's state, creating the initial one if missing. Caller holds the lock."""
        state = await self._state_storage.get_pet_state(user_id)
        if state is not None:
            return state

        try:
            state = await self._state_storage.create_pet_state(
                new_pet_state(user_id, self._clock(), self._rules)
            )
        except DuplicateError:
            # Another process created it between our read and insert
            state = await self._state_storage.get_pet_state(user_id)
            if state is None:
                raise
            return state

        await self._audit_logger.log_pet_initialized(state, correlation_id)
        return state

    async def _apply(
        self,
        user_id: str,
        operation: str,
        transition: Transition,
        correlation_id: UUID,
    ) -> tuple[PetState, PetState, Any]:
        """
        Load, transform and conditionally write one user's state.

        Returns (previous snapshot, stored snapshot, payload). When the
        transition returns the snapshot itself, nothing is written.
        Caller holds the user's lock.
        """
        attempt_number = 0
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(ConflictError),
            stop=stop_after_attempt(self._conflict_retry_attempts),
            reraise=True,
        ):
            with attempt:
                attempt_number += 1
                current = await self._load_or_create(user_id, correlation_id)
                next_state, payload = transition(current)
                if next_state is current:
                    return current, current, payload
                try:
                    stored = await self._state_storage.save_pet_state(
                        next_state, expected_version=current.version
                    )
                except ConflictError:
                    await self._audit_logger.log_conflict(
                        user_id=user_id,
                        operation=operation,
                        attempt=attempt_number,
                        correlation_id=correlation_id,
                    )
                    raise
                return current, stored, payload

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize_pet(
        self,
        user_id: Optional[str],
        starter: Optional[StarterPet] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PetState:
        """
        Create the user's pet state if it doesn't exist yet (idempotent).

        If a starter pet is given and the user owns no pets, it is created
        active and linked from the pet state. A failure creating the starter
        is logged and does not fail initialization; it can be added later.
        """
        user_id = self._require_user(user_id)
        correlation_id = correlation_id or create_correlation_id()

        async with self._user_lock(user_id):
            state = await self._load_or_create(user_id, correlation_id)

            if starter is None or await self._pet_storage.list_user_pets(user_id):
                return state

            try:
                pet = await self._pet_storage.create_user_pet(UserPet(
                    user_id=user_id,
                    pet_type=starter.pet_type,
                    pet_breed=starter.pet_breed,
                    pet_name=starter.pet_name,
                    pet_emoji=starter.pet_emoji,
                    is_active=True,
                ))
            except StorageError as e:
                await self._audit_logger.log_error(
                    error_type="starter_pet_failed",
                    error_message=str(e),
                    user_id=user_id,
                    correlation_id=correlation_id,
                )
                return state

            await self._audit_logger.log_starter_pet_created(pet, correlation_id)

            _, state, _ = await self._apply(
                user_id,
                "initialize_pet",
                lambda s: (s.model_copy(update={"current_pet_id": pet.id}), None),
                correlation_id,
            )
            return state

    async def get_pet_state(self, user_id: Optional[str]) -> PetState:
        """The user's current pet state, created on first access."""
        user_id = self._require_user(user_id)
        async with self._user_lock(user_id):
            return await self._load_or_create(user_id, create_correlation_id())

    async def get_progress(self, user_id: Optional[str]) -> LevelProgress:
        """Level progress implied by the user's total XP."""
        state = await self.get_pet_state(user_id)
        return calculate_level_from_xp(state.xp)

    # -------------------------------------------------------------------------
    # XP and interactions
    # -------------------------------------------------------------------------

    async def _grant(
        self,
        user_id: str,
        amount: int,
        correlation_id: UUID,
        claimed: bool,
    ) -> XPGrantResult:
        def transition(state: PetState) -> tuple[PetState, XPGrantResult]:
            result = grant_xp(state, amount, self._rules)
            return result.pet, result

        previous, stored, result = await self._apply(
            user_id, "grant_xp", transition, correlation_id
        )
        result = result.model_copy(update={"pet": stored})

        await self._audit_logger.log_xp_granted(
            result,
            previous_level=previous.level,
            pending_level=calculate_level_from_xp(stored.xp).level,
            correlation_id=correlation_id,
            claimed=claimed,
        )
        return result

    async def grant_xp(
        self,
        user_id: Optional[str],
        amount: int,
        correlation_id: Optional[UUID] = None,
    ) -> XPGrantResult:
        """
        Add XP to the user's pet.

        Level-ups only happen at full mood; otherwise the XP is banked and
        `blocked_by_mood` is set. Raises ValueError for a negative amount.
        """
        user_id = self._require_user(user_id)
        if amount < 0:
            raise ValueError(f"XP amount must be >= 0, got {amount}")
        correlation_id = correlation_id or create_correlation_id()

        async with self._user_lock(user_id):
            return await self._grant(user_id, amount, correlation_id, claimed=False)

    async def claim_xp(
        self,
        user_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> XPGrantResult:
        """
        Timed XP claim (the "claim 100 XP" button).

        Raises:
            ClaimCooldownError: if the user claimed within the cooldown
        """
        user_id = self._require_user(user_id)
        correlation_id = correlation_id or create_correlation_id()

        async with self._user_lock(user_id):
            self._claim_cooldown.check(user_id)
            result = await self._grant(
                user_id, self._rules.claim_xp_amount, correlation_id, claimed=True
            )
            self._claim_cooldown.start(user_id)
            return result

    def claim_remaining_seconds(self, user_id: Optional[str]) -> int:
        """Seconds until the user may claim again (0 = ready)."""
        return self._claim_cooldown.remaining_seconds(self._require_user(user_id))

    async def positive_interaction(
        self,
        user_id: Optional[str],
        amount: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PatResult:
        """Pat the pet: raises mood, or grants XP when mood is already full."""
        user_id = self._require_user(user_id)
        correlation_id = correlation_id or create_correlation_id()

        def transition(state: PetState) -> tuple[PetState, PatResult]:
            result = positive_interaction(state, amount, self._rules)
            return result.pet, result

        async with self._user_lock(user_id):
            previous, stored, result = await self._apply(
                user_id, "positive_interaction", transition, correlation_id
            )

        result = result.model_copy(update={"pet": stored})
        await self._audit_logger.log_pet_patted(result, previous.level, correlation_id)
        return result

    async def negative_interaction(
        self,
        user_id: Optional[str],
        amount: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> HitResult:
        """Hit the pet: lowers mood, or costs XP when mood is already zero."""
        user_id = self._require_user(user_id)
        correlation_id = correlation_id or create_correlation_id()

        def transition(state: PetState) -> tuple[PetState, HitResult]:
            result = negative_interaction(state, amount, self._rules)
            return result.pet, result

        async with self._user_lock(user_id):
            previous, stored, result = await self._apply(
                user_id, "negative_interaction", transition, correlation_id
            )

        result = result.model_copy(update={"pet": stored})
        await self._audit_logger.log_pet_hit(result, previous.level, correlation_id)
        return result

    async def feed(
        self,
        user_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> PetState:
        """Feed the pet and restart the decay clock."""
        user_id = self._require_user(user_id)
        correlation_id = correlation_id or create_correlation_id()
        now = self._clock()

        async with self._user_lock(user_id):
            _, stored, _ = await self._apply(
                user_id,
                "feed",
                lambda s: (feed(s, now, self._rules), None),
                correlation_id,
            )

        await self._audit_logger.log_pet_fed(stored, correlation_id)
        return stored

    async def refresh_status(
        self,
        user_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> PetState:
        """
        Apply time-based mood and hunger decay.

        Call this when the user opens the app. Writes only when something
        actually decayed.
        """
        user_id = self._require_user(user_id)
        correlation_id = correlation_id or create_correlation_id()
        now = self._clock()

        async with self._user_lock(user_id):
            previous, stored, _ = await self._apply(
                user_id,
                "refresh_status",
                lambda s: (decay_status(s, now, self._rules), None),
                correlation_id,
            )

        if stored is not previous:
            await self._audit_logger.log_status_decayed(stored, correlation_id)
        return stored

    # -------------------------------------------------------------------------
    # Economy
    # -------------------------------------------------------------------------

    async def purchase(
        self,
        user_id: Optional[str],
        template_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> PurchaseResult:
        """
        Buy a pet from the catalog with XP.

        The XP debit and the new UserPet form one logical transaction: if
        creating the pet fails, the debit is refunded and the original
        error re-raised.

        Raises:
            CatalogEntryNotFoundError: unknown template id
            InsufficientFundsError: not enough XP (nothing changes)
        """
        user_id = self._require_user(user_id)
        correlation_id = correlation_id or create_correlation_id()
        template = self._catalog.require(template_id)

        async with self._user_lock(user_id):
            try:
                previous, debited, levels_lost = await self._apply(
                    user_id,
                    "purchase",
                    lambda s: debit_purchase(s, template),
                    correlation_id,
                )
            except InsufficientFundsError as e:
                await self._audit_logger.log_purchase_rejected(
                    user_id=user_id,
                    template_id=template.id,
                    required=e.required,
                    available=e.available,
                    correlation_id=correlation_id,
                )
                raise

            try:
                user_pet = await self._pet_storage.create_user_pet(UserPet(
                    user_id=user_id,
                    pet_type=template.type,
                    pet_breed=template.breed,
                    pet_name=template.breed,
                    pet_emoji=template.emoji,
                    is_active=False,
                ))
            except Exception as e:
                await self._rollback_purchase(
                    user_id, template.id, template.xp_cost, previous.level, e, correlation_id
                )
                raise

        await self._audit_logger.log_pet_purchased(
            user_pet, template.id, template.xp_cost, correlation_id
        )
        return PurchaseResult(
            pet=debited,
            user_pet=user_pet,
            xp_spent=template.xp_cost,
            levels_lost=levels_lost,
        )

    async def _rollback_purchase(
        self,
        user_id: str,
        template_id: str,
        xp_cost: int,
        previous_level: int,
        error: Exception,
        correlation_id: UUID,
    ) -> None:
        """Refund a debit whose pet could not be created. Caller holds the lock."""
        try:
            await self._apply(
                user_id,
                "purchase_rollback",
                lambda s: (refund_purchase(s, xp_cost, previous_level), None),
                correlation_id,
            )
        except Exception as refund_error:
            await self._audit_logger.log_error(
                error_type="purchase_refund_failed",
                error_message=str(refund_error),
                user_id=user_id,
                details={"template_id": template_id, "xp_cost": xp_cost},
                correlation_id=correlation_id,
            )
            return

        await self._audit_logger.log_purchase_rolled_back(
            user_id=user_id,
            template_id=template_id,
            refunded_xp=xp_cost,
            error_message=str(error),
            correlation_id=correlation_id,
        )

    async def switch_active_pet(
        self,
        user_id: Optional[str],
        pet_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> UserPet:
        """
        Make `pet_id` the user's only active pet.

        `current_pet_id` is written first and the active flags flipped
        second. If the flip fails, `current_pet_id` is pointed back and the
        error re-raised, so the two never disagree.

        Raises:
            PetNotFoundError: the user does not own `pet_id`
        """
        user_id = self._require_user(user_id)
        correlation_id = correlation_id or create_correlation_id()

        async with self._user_lock(user_id):
            if await self._pet_storage.get_user_pet(user_id, pet_id) is None:
                raise PetNotFoundError(f"Pet {pet_id} not owned by {user_id}")
            previous = await self._find_active_pet(user_id)

            before, _, _ = await self._apply(
                user_id,
                "switch_active_pet",
                lambda s: (s.model_copy(update={"current_pet_id": pet_id}), None),
                correlation_id,
            )

            try:
                activated = await self._pet_storage.set_active_pet(user_id, pet_id)
            except Exception as e:
                await self._rollback_switch(
                    user_id, pet_id, before.current_pet_id, e, correlation_id
                )
                if isinstance(e, NotFoundError):
                    raise PetNotFoundError(str(e)) from e
                raise

        await self._audit_logger.log_active_pet_switched(
            activated,
            previous_pet_id=previous.id if previous else None,
            correlation_id=correlation_id,
        )
        return activated

    async def _rollback_switch(
        self,
        user_id: str,
        pet_id: UUID,
        previous_pet_id: Optional[UUID],
        error: Exception,
        correlation_id: UUID,
    ) -> None:
        """Point current_pet_id back after a failed flag flip. Caller holds the lock."""
        def transition(state: PetState) -> tuple[PetState, None]:
            if state.current_pet_id != pet_id:
                return state, None
            return state.model_copy(update={"current_pet_id": previous_pet_id}), None

        try:
            await self._apply(user_id, "switch_active_pet_rollback", transition, correlation_id)
        except Exception as revert_error:
            await self._audit_logger.log_error(
                error_type="active_pet_revert_failed",
                error_message=str(revert_error),
                user_id=user_id,
                details={"pet_id": str(pet_id)},
                correlation_id=correlation_id,
            )
            return

        await self._audit_logger.log_error(
            error_type="active_pet_switch_failed",
            error_message=str(error),
            user_id=user_id,
            details={"pet_id": str(pet_id)},
            correlation_id=correlation_id,
        )

    async def list_user_pets(self, user_id: Optional[str]) -> list[UserPet]:
        """All pets the user owns, oldest first."""
        return await self._pet_storage.list_user_pets(self._require_user(user_id))

    async def get_active_pet(self, user_id: Optional[str]) -> Optional[UserPet]:
        return await self._find_active_pet(self._require_user(user_id))

    async def owned_template_ids(self, user_id: Optional[str]) -> set[str]:
        """Catalog ids the user already owns a pet of (for "owned" badges in the shop)."""
        owned = set()
        for pet in await self.list_user_pets(user_id):
            template = self._catalog.get_by_breed(pet.pet_breed)
            if template is not None:
                owned.add(template.id)
        return owned

    async def _find_active_pet(self, user_id: str) -> Optional[UserPet]:
        pets = await self._pet_storage.list_user_pets(user_id)
        return next((p for p in pets if p.is_active), None)


def create_pet_service(
    settings: Optional[Settings] = None,
) -> tuple[PetProgressionService, Optional[GoogleSheetsClient]]:
    """
    Factory function to create the service from configuration.

    Falls back to in-memory storage when Google Sheets is selected but not
    configured.

    Returns:
        (service, sheets_client)
    """
    settings = settings or get_settings()
    storage_settings = settings.storage

    sheets_client = None
    state_storage: PetStateStorageInterface
    pet_storage: UserPetStorageInterface
    audit_storage: AuditStorageInterface

    if storage_settings.backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient(settings.google_sheets)
            state_storage = GoogleSheetsPetStateStorage(sheets_client)
            pet_storage = GoogleSheetsUserPetStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            logger.warning("storage_not_configured", backend="google_sheets", error=str(e))
            sheets_client = None

    if sheets_client is None:
        memory = InMemoryPetStorage()
        state_storage = memory
        pet_storage = memory
        audit_storage = InMemoryAuditStorage()

    rules = ProgressionRules.from_settings(settings.progression)

    service = PetProgressionService(
        state_storage=state_storage,
        pet_storage=pet_storage,
        catalog=load_catalog(settings.catalog.path),
        rules=rules,
        audit_logger=AuditLogger(audit_storage),
        conflict_retry_attempts=storage_settings.conflict_retry_attempts,
    )
    return service, sheets_client
