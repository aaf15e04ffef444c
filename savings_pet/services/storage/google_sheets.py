"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is an optional backend because:
1. The household can look at the pet's XP ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No transactions. Conditional writes re-read the version column right
  before writing, which closes the window but does not eliminate it;
  the service's per-user lock makes this safe for a single process.
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interfaces, so the engine never
knows which backend it is talking to.
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from savings_pet.config import GoogleSheetsSettings, get_settings
from savings_pet.models.audit import AuditEvent, AuditEventType, AuditSeverity
from savings_pet.models.pet import PetState, UserPet, utcnow
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


logger = structlog.get_logger(__name__)


# Column mappings for PetState sheet
PET_STATE_COLUMNS = [
    "user_id",
    "mood",
    "hunger",
    "xp",
    "level",
    "last_feed_at",
    "hunger_decay_at",
    "mood_decay_at",
    "updated_at",
    "current_pet_id",
    "version",
]

# Column mappings for UserPets sheet
USER_PET_COLUMNS = [
    "id",
    "user_id",
    "pet_type",
    "pet_breed",
    "pet_name",
    "pet_emoji",
    "is_active",
    "purchased_at",
    "created_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

VERSION_INDEX = PET_STATE_COLUMNS.index("version")
IS_ACTIVE_COLUMN = USER_PET_COLUMNS.index("is_active") + 1


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Handle missing columns gracefully."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _optional_datetime(value: str) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_pet_state_sheet(self) -> gspread.Worksheet:
        """Get or create the PetState worksheet."""
        return self._get_or_create_sheet(
            self._settings.pet_state_sheet_name, PET_STATE_COLUMNS, rows=1000
        )

    def get_user_pets_sheet(self) -> gspread.Worksheet:
        """Get or create the UserPets worksheet."""
        return self._get_or_create_sheet(
            self._settings.user_pets_sheet_name, USER_PET_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsPetStateStorage(PetStateStorageInterface):
    """
    Google Sheets implementation of PetState storage.

    One row per user, keyed by user_id in column A.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _state_to_row(state: PetState) -> list:
        return [
            state.user_id,
            str(state.mood),
            str(state.hunger),
            str(state.xp),
            str(state.level),
            state.last_feed_at.isoformat(),
            state.hunger_decay_at.isoformat() if state.hunger_decay_at else "",
            state.mood_decay_at.isoformat() if state.mood_decay_at else "",
            state.updated_at.isoformat(),
            str(state.current_pet_id) if state.current_pet_id else "",
            str(state.version),
        ]

    @staticmethod
    def _row_to_state(row: list) -> PetState:
        current_pet_id = _safe_get(row, 9)
        return PetState(
            user_id=_safe_get(row, 0),
            mood=int(_safe_get(row, 1, "0")),
            hunger=int(_safe_get(row, 2, "0")),
            xp=int(_safe_get(row, 3, "0")),
            level=int(_safe_get(row, 4, "1")),
            last_feed_at=datetime.fromisoformat(_safe_get(row, 5)),
            hunger_decay_at=_optional_datetime(_safe_get(row, 6)),
            mood_decay_at=_optional_datetime(_safe_get(row, 7)),
            updated_at=datetime.fromisoformat(_safe_get(row, 8)),
            current_pet_id=UUID(current_pet_id) if current_pet_id else None,
            version=int(_safe_get(row, VERSION_INDEX, "0")),
        )

    def _find_row(self, sheet: gspread.Worksheet, user_id: str) -> tuple[Optional[int], Optional[list]]:
        """Return (sheet row number, row values) for `user_id`."""
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
            if row and row[0] == user_id:
                return idx, row
        return None, None

    async def get_pet_state(self, user_id: str) -> Optional[PetState]:
        try:
            sheet = self._client.get_pet_state_sheet()
            _, row = self._find_row(sheet, user_id)
            return self._row_to_state(row) if row else None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get pet state: {e}")

    @retry(
        retry=retry_if_exception_type(ConnectionError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def create_pet_state(self, state: PetState) -> PetState:
        try:
            sheet = self._client.get_pet_state_sheet()
            idx, _ = self._find_row(sheet, state.user_id)
            if idx is not None:
                raise DuplicateError(f"Pet state already exists: {state.user_id}")
            stored = state.model_copy(update={"version": 1, "updated_at": utcnow()})
            sheet.append_row(self._state_to_row(stored), value_input_option="RAW")
            return stored
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to create pet state: {e}")

    async def save_pet_state(self, state: PetState, expected_version: int) -> PetState:
        try:
            sheet = self._client.get_pet_state_sheet()
            idx, row = self._find_row(sheet, state.user_id)
            if idx is None:
                raise NotFoundError(f"Pet state not found: {state.user_id}")

            actual_version = int(_safe_get(row, VERSION_INDEX, "0"))
            if actual_version != expected_version:
                raise ConflictError(state.user_id, expected_version, actual_version)

            stored = state.model_copy(
                update={"version": actual_version + 1, "updated_at": utcnow()}
            )
            sheet.update(
                range_name=rowcol_to_a1(idx, 1),
                values=[self._state_to_row(stored)],
                value_input_option="RAW",
            )
            return stored
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save pet state: {e}")


class GoogleSheetsUserPetStorage(UserPetStorageInterface):
    """
    Google Sheets implementation of owned-pet storage.

    Pets are stored as rows with one pet per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _pet_to_row(pet: UserPet) -> list:
        return [
            str(pet.id),
            pet.user_id,
            pet.pet_type,
            pet.pet_breed,
            pet.pet_name,
            pet.pet_emoji,
            str(pet.is_active),
            pet.purchased_at.isoformat(),
            pet.created_at.isoformat(),
        ]

    @staticmethod
    def _row_to_pet(row: list) -> UserPet:
        return UserPet(
            id=UUID(_safe_get(row, 0)),
            user_id=_safe_get(row, 1),
            pet_type=_safe_get(row, 2),
            pet_breed=_safe_get(row, 3),
            pet_name=_safe_get(row, 4),
            pet_emoji=_safe_get(row, 5),
            is_active=_safe_get(row, 6).lower() == "true",
            purchased_at=datetime.fromisoformat(_safe_get(row, 7)),
            created_at=datetime.fromisoformat(_safe_get(row, 8)),
        )

    def _rows_for_user(self, sheet: gspread.Worksheet, user_id: str) -> list[tuple[int, list]]:
        all_rows = sheet.get_all_values()
        return [
            (idx, row)
            for idx, row in enumerate(all_rows[1:], start=2)
            if row and len(row) > 1 and row[1] == user_id
        ]

    def _deactivation_updates(self, rows: list[tuple[int, list]], keep: Optional[str]) -> list[dict]:
        return [
            {"range": rowcol_to_a1(idx, IS_ACTIVE_COLUMN), "values": [["False"]]}
            for idx, row in rows
            if row[0] != keep and _safe_get(row, 6).lower() == "true"
        ]

    async def list_user_pets(self, user_id: str) -> list[UserPet]:
        try:
            sheet = self._client.get_user_pets_sheet()
            pets = []
            for _, row in self._rows_for_user(sheet, user_id):
                try:
                    pets.append(self._row_to_pet(row))
                except Exception:
                    continue  # Skip malformed rows
            pets.sort(key=lambda p: p.created_at)
            return pets
        except Exception as e:
            raise StorageError(f"Failed to list user pets: {e}")

    async def get_user_pet(self, user_id: str, pet_id: UUID) -> Optional[UserPet]:
        try:
            sheet = self._client.get_user_pets_sheet()
            for _, row in self._rows_for_user(sheet, user_id):
                if row[0] == str(pet_id):
                    return self._row_to_pet(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get user pet: {e}")

    async def create_user_pet(self, pet: UserPet) -> UserPet:
        # Not retried: a repeat after a partial write could append the pet twice
        try:
            sheet = self._client.get_user_pets_sheet()
            rows = self._rows_for_user(sheet, pet.user_id)
            if any(row[0] == str(pet.id) for _, row in rows):
                raise DuplicateError(f"User pet already exists: {pet.id}")
            if pet.is_active:
                updates = self._deactivation_updates(rows, keep=None)
                if updates:
                    sheet.batch_update(updates, value_input_option="RAW")
            sheet.append_row(self._pet_to_row(pet), value_input_option="RAW")
            return pet
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to create user pet: {e}")

    async def delete_user_pet(self, user_id: str, pet_id: UUID) -> bool:
        try:
            sheet = self._client.get_user_pets_sheet()
            for idx, row in self._rows_for_user(sheet, user_id):
                if row[0] == str(pet_id):
                    sheet.delete_rows(idx)
                    return True
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete user pet: {e}")

    async def set_active_pet(self, user_id: str, pet_id: UUID) -> UserPet:
        try:
            sheet = self._client.get_user_pets_sheet()
            rows = self._rows_for_user(sheet, user_id)
            target = next((row for _, row in rows if row[0] == str(pet_id)), None)
            if target is None:
                raise NotFoundError(f"Pet {pet_id} not owned by {user_id}")

            # One batch request: deactivate the others and activate the target
            updates = self._deactivation_updates(rows, keep=str(pet_id))
            target_idx = next(idx for idx, row in rows if row[0] == str(pet_id))
            updates.append(
                {"range": rowcol_to_a1(target_idx, IS_ACTIVE_COLUMN), "values": [["True"]]}
            )
            sheet.batch_update(updates, value_input_option="RAW")

            return self._row_to_pet(target).model_copy(update={"is_active": True})
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to switch active pet: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _row_to_event(row: list) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            user_id=_safe_get(row, 4) or None,
            entity_type=_safe_get(row, 5) or None,
            entity_id=_safe_get(row, 6) or None,
            correlation_id=UUID(_safe_get(row, 7)) if _safe_get(row, 7) else None,
            description=_safe_get(row, 8),
            details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
            error_message=_safe_get(row, 10) or None,
            is_user_action=_safe_get(row, 11).lower() == "true",
        )

    def _load_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning(
                "audit_sheet_write_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    async def get_events_by_user(
        self,
        user_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._load_events() if e.user_id == user_id]
            events.sort(key=lambda e: e.timestamp)
            return events[-limit:] if limit else []
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._load_events()
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
