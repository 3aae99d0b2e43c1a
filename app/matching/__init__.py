"""
ByteBasket Dietary Matching Layer

Item -> User Compatibility

This module answers: "Can this user take this item home?"

Given a user's active dietary preferences and a batch of inventory
items, each item lands in one of three places:
- compatible (no conflict)
- compatible with warning (mild lifestyle/religious/medical conflict)
- incompatible (allergen conflict, or any strict conflict)

Excluded items are recorded in a bounded in-process mismatch log for
admin review.

PRINCIPLE: Allergens never degrade to warnings.

Version: dietary_matching_v1
"""

from .models import (
    Severity,
    RestrictionCategory,
    RestrictionRef,
    PreferenceRecord,
    ConflictingRestriction,
    MatchResult,
    BatchResult,
    MismatchLogEntry,
    MismatchLogFilters,
)
from .errors import DietaryMatchingError, InputError, UpstreamFetchError
from .patterns import (
    ConflictPattern,
    ConflictPatternTable,
    KnownRestriction,
    contains_keyword,
)
from .audit import MismatchLog
from .match import DietaryMatchingService

__all__ = [
    # Models
    "Severity",
    "RestrictionCategory",
    "RestrictionRef",
    "PreferenceRecord",
    "ConflictingRestriction",
    "MatchResult",
    "BatchResult",
    "MismatchLogEntry",
    "MismatchLogFilters",
    # Errors
    "DietaryMatchingError",
    "InputError",
    "UpstreamFetchError",
    # Patterns
    "ConflictPattern",
    "ConflictPatternTable",
    "KnownRestriction",
    "contains_keyword",
    # Engine
    "MismatchLog",
    "DietaryMatchingService",
]

__version__ = "dietary_matching_v1"
