"""Domain errors raised by the pet engine."""


class PetEngineError(Exception):
    """Base exception for pet engine operations."""
    pass


class InsufficientFundsError(PetEngineError):
    """Purchase attempted with less XP than the price."""

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Not enough XP. You need {required} XP but only have {available} XP."
        )

    @property
    def shortfall(self) -> int:
        return max(0, self.required - self.available)


class PetNotFoundError(PetEngineError):
    """Referenced pet is not owned by the user."""
    pass


class CatalogEntryNotFoundError(PetNotFoundError):
    """Referenced template is not in the catalog."""

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Pet not found in catalog: {template_id}")


class NotAuthenticatedError(PetEngineError):
    """No valid user context for the operation."""

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


class ClaimCooldownError(PetEngineError):
    """Timed XP claim attempted before the cooldown elapsed."""

    def __init__(self, remaining_seconds: int):
        self.remaining_seconds = remaining_seconds
        super().__init__(
            f"XP already claimed, try again in {remaining_seconds} seconds."
        )
