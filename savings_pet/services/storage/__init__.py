"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
In-memory storage is the default; Google Sheets is available when configured.
"""

from savings_pet.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    PetStateStorageInterface,
    StorageError,
    UserPetStorageInterface,
)
from savings_pet.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryPetStorage,
)
from savings_pet.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsPetStateStorage,
    GoogleSheetsUserPetStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "PetStateStorageInterface",
    "UserPetStorageInterface",
    # Exceptions
    "ConflictError",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryPetStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsPetStateStorage",
    "GoogleSheetsUserPetStorage",
]
