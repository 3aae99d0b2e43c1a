"""
ByteBasket Dietary Preferences

Restriction catalog and per-user preference storage. Feeds the
matching layer with each user's active restrictions.

Replacing preferences is all-or-nothing: deactivate every current
preference and upsert the new set in one transaction.
"""

from .models import (
    Restriction,
    RestrictionCreate,
    RestrictionUpdate,
    UserPreference,
    PreferenceInput,
)
from .store import (
    PreferenceStore,
    InMemoryPreferenceStore,
    PostgresPreferenceStore,
    PreferenceStoreError,
    RestrictionNotFoundError,
    DuplicateRestrictionError,
    RestrictionInUseError,
    get_preference_store,
)
from .admin import router as preferences_router, restrictions_router

__all__ = [
    # Models
    "Restriction",
    "RestrictionCreate",
    "RestrictionUpdate",
    "UserPreference",
    "PreferenceInput",
    # Stores
    "PreferenceStore",
    "InMemoryPreferenceStore",
    "PostgresPreferenceStore",
    "get_preference_store",
    # Errors
    "PreferenceStoreError",
    "RestrictionNotFoundError",
    "DuplicateRestrictionError",
    "RestrictionInUseError",
    # Routers
    "preferences_router",
    "restrictions_router",
]
