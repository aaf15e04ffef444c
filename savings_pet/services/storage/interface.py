"""
Abstract Storage Interface

DESIGN DECISION: The engine talks to persistence only through these
interfaces. This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the progression rules decoupled from any storage technology

CONCURRENCY: PetState writes are conditional. Every stored state carries a
`version`; save_pet_state only succeeds when the caller's expected version
matches the stored one, and bumps it. A mismatch raises ConflictError and
the caller recomputes from a fresh snapshot.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from savings_pet.models.audit import AuditEvent
from savings_pet.models.pet import PetState, UserPet


class PetStateStorageInterface(ABC):
    """
    Abstract interface for the per-user PetState record.
    """

    @abstractmethod
    async def get_pet_state(self, user_id: str) -> Optional[PetState]:
        """
        Retrieve a user's pet state.

        Returns:
            The stored state if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_pet_state(self, state: PetState) -> PetState:
        """
        Insert a new pet state.

        Returns:
            The stored state (version 1)

        Raises:
            DuplicateError: If the user already has a pet state
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def save_pet_state(self, state: PetState, expected_version: int) -> PetState:
        """
        Conditionally overwrite a pet state.

        Args:
            state: The next snapshot
            expected_version: Version the caller read before computing `state`

        Returns:
            The stored state with its version bumped and updated_at refreshed

        Raises:
            NotFoundError: If the user has no pet state
            ConflictError: If the stored version differs from expected_version
            StorageError: If the write fails
        """
        pass


class UserPetStorageInterface(ABC):
    """
    Abstract interface for owned pets.

    Implementations must keep at most one active pet per user.
    """

    @abstractmethod
    async def list_user_pets(self, user_id: str) -> list[UserPet]:
        """
        List a user's pets, oldest first.
        """
        pass

    @abstractmethod
    async def get_user_pet(self, user_id: str, pet_id: UUID) -> Optional[UserPet]:
        """
        Retrieve one pet, scoped to its owner.

        Returns:
            The pet if `user_id` owns `pet_id`, None otherwise
        """
        pass

    @abstractmethod
    async def create_user_pet(self, pet: UserPet) -> UserPet:
        """
        Insert a new pet.

        If the pet is flagged active, every other pet of the user is
        deactivated in the same step.

        Raises:
            DuplicateError: If the id already exists
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def delete_user_pet(self, user_id: str, pet_id: UUID) -> bool:
        """
        Delete a pet.

        Returns:
            True if a pet was deleted
        """
        pass

    @abstractmethod
    async def set_active_pet(self, user_id: str, pet_id: UUID) -> UserPet:
        """
        Atomically make `pet_id` the only active pet of `user_id`.

        Returns:
            The activated pet

        Raises:
            NotFoundError: If `user_id` does not own `pet_id` (nothing changes)
            StorageError: If the update fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_user(
        self,
        user_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get a user's events in chronological order (at most `limit`, newest kept).
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConflictError(StorageError):
    """Conditional write lost against a concurrent writer."""

    def __init__(self, user_id: str, expected_version: int, actual_version: int):
        self.user_id = user_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Pet state of {user_id} changed concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
