"""
In-Memory Storage Implementation

Keeps everything in dictionaries behind a single asyncio lock. Used as the
default backend for local runs and by the test suite.

Records are copied on the way in and on the way out, so callers can never
mutate stored state without going through the interface.
"""

import asyncio
from typing import Optional
from uuid import UUID

from savings_pet.models.audit import AuditEvent
from savings_pet.models.pet import PetState, UserPet, utcnow
from savings_pet.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    DuplicateError,
    NotFoundError,
    PetStateStorageInterface,
    UserPetStorageInterface,
)


class InMemoryPetStorage(PetStateStorageInterface, UserPetStorageInterface):
    """PetState and UserPet storage in process memory."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._states: dict[str, PetState] = {}
        self._pets: dict[UUID, UserPet] = {}

    async def get_pet_state(self, user_id: str) -> Optional[PetState]:
        async with self._lock:
            state = self._states.get(user_id)
            return state.model_copy(deep=True) if state else None

    async def create_pet_state(self, state: PetState) -> PetState:
        async with self._lock:
            if state.user_id in self._states:
                raise DuplicateError(f"Pet state already exists: {state.user_id}")
            stored = state.model_copy(deep=True, update={"version": 1, "updated_at": utcnow()})
            self._states[state.user_id] = stored
            return stored.model_copy(deep=True)

    async def save_pet_state(self, state: PetState, expected_version: int) -> PetState:
        async with self._lock:
            current = self._states.get(state.user_id)
            if current is None:
                raise NotFoundError(f"Pet state not found: {state.user_id}")
            if current.version != expected_version:
                raise ConflictError(state.user_id, expected_version, current.version)
            stored = state.model_copy(
                deep=True,
                update={"version": current.version + 1, "updated_at": utcnow()},
            )
            self._states[state.user_id] = stored
            return stored.model_copy(deep=True)

    async def list_user_pets(self, user_id: str) -> list[UserPet]:
        async with self._lock:
            pets = [p.model_copy() for p in self._pets.values() if p.user_id == user_id]
        pets.sort(key=lambda p: p.created_at)
        return pets

    async def get_user_pet(self, user_id: str, pet_id: UUID) -> Optional[UserPet]:
        async with self._lock:
            pet = self._pets.get(pet_id)
            if pet is None or pet.user_id != user_id:
                return None
            return pet.model_copy()

    async def create_user_pet(self, pet: UserPet) -> UserPet:
        async with self._lock:
            if pet.id in self._pets:
                raise DuplicateError(f"User pet already exists: {pet.id}")
            if pet.is_active:
                self._deactivate_all(pet.user_id)
            self._pets[pet.id] = pet.model_copy()
            return pet.model_copy()

    async def delete_user_pet(self, user_id: str, pet_id: UUID) -> bool:
        async with self._lock:
            pet = self._pets.get(pet_id)
            if pet is None or pet.user_id != user_id:
                return False
            del self._pets[pet_id]
            return True

    async def set_active_pet(self, user_id: str, pet_id: UUID) -> UserPet:
        async with self._lock:
            target = self._pets.get(pet_id)
            if target is None or target.user_id != user_id:
                raise NotFoundError(f"Pet {pet_id} not owned by {user_id}")
            self._deactivate_all(user_id)
            activated = target.model_copy(update={"is_active": True})
            self._pets[pet_id] = activated
            return activated.model_copy()

    def _deactivate_all(self, user_id: str) -> None:
        """Caller must hold the lock."""
        for pet_id, pet in self._pets.items():
            if pet.user_id == user_id and pet.is_active:
                self._pets[pet_id] = pet.model_copy(update={"is_active": False})


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log in process memory."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_user(
        self,
        user_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.user_id == user_id]
        events.sort(key=lambda e: e.timestamp)
        return events[-limit:] if limit else []

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
