"""Pet progression engine: pure rules, catalog and interaction policies."""

from savings_pet.engine.catalog import (
    DEFAULT_CATALOG,
    PetCatalog,
    load_catalog,
    localized_text,
)
from savings_pet.engine.exceptions import (
    CatalogEntryNotFoundError,
    ClaimCooldownError,
    InsufficientFundsError,
    NotAuthenticatedError,
    PetEngineError,
    PetNotFoundError,
)
from savings_pet.engine.progression import (
    DEFAULT_RULES,
    ProgressionRules,
    calculate_level_from_xp,
    decay_status,
    debit_purchase,
    feed,
    grant_xp,
    negative_interaction,
    new_pet_state,
    positive_interaction,
    refund_purchase,
    total_xp_for_level,
    xp_required_for_level,
)
from savings_pet.engine.ratelimit import ClaimCooldown, InteractionRateLimiter

__all__ = [
    # Catalog
    "DEFAULT_CATALOG",
    "PetCatalog",
    "load_catalog",
    "localized_text",
    # Errors
    "CatalogEntryNotFoundError",
    "ClaimCooldownError",
    "InsufficientFundsError",
    "NotAuthenticatedError",
    "PetEngineError",
    "PetNotFoundError",
    # Rules
    "DEFAULT_RULES",
    "ProgressionRules",
    "calculate_level_from_xp",
    "decay_status",
    "debit_purchase",
    "feed",
    "grant_xp",
    "negative_interaction",
    "new_pet_state",
    "positive_interaction",
    "refund_purchase",
    "total_xp_for_level",
    "xp_required_for_level",
    # Policies
    "ClaimCooldown",
    "InteractionRateLimiter",
]
