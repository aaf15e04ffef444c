"""Services package."""

from savings_pet.services.storage import (
    AuditStorageInterface,
    ConflictError,
    ConnectionError,
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

__all__ = [
    "AuditStorageInterface",
    "ConflictError",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsPetStateStorage",
    "GoogleSheetsUserPetStorage",
    "InMemoryAuditStorage",
    "InMemoryPetStorage",
    "NotFoundError",
    "PetStateStorageInterface",
    "StorageError",
    "UserPetStorageInterface",
]
