"""
Dietary Matching Models

Pydantic models for the matching engine: what it reads (active
preferences with their resolved restriction), what it decides per item,
and what it hands back for a batch.

Inventory items themselves stay plain dicts. The engine only looks at
item_name and category; every other field passes through untouched.

Version: dietary_matching_v1
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Severity(str, Enum):
    MILD = "mild"
    STRICT = "strict"


class RestrictionCategory(str, Enum):
    ALLERGEN = "allergen"
    LIFESTYLE = "lifestyle"
    RELIGIOUS = "religious"
    MEDICAL = "medical"


class RestrictionRef(BaseModel):
    """
    The restriction fields the engine needs, as resolved from the catalog.
    """
    name: str
    category: RestrictionCategory
    is_allergen: bool = False
    severity_levels: List[Severity] = Field(
        default_factory=lambda: [Severity.MILD, Severity.STRICT],
        min_length=1,
    )

    class Config:
        extra = "ignore"


class PreferenceRecord(BaseModel):
    """
    One active user preference as loaded for matching.

    restriction is None when the referenced restriction was deleted or
    deactivated. The engine skips such records.
    """
    restriction_id: str
    severity: Severity
    notes: Optional[str] = None
    restriction: Optional[RestrictionRef] = None

    class Config:
        extra = "ignore"


class ConflictingRestriction(BaseModel):
    """A restriction that caused an exclusion."""
    name: str
    severity: Severity
    type: str = Field(
        description="'allergen' or the restriction category"
    )


class MatchResult(BaseModel):
    """Compatibility decision for a single item."""
    is_compatible: bool = True
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    warnings: List[str] = Field(default_factory=list)
    reason: Optional[str] = None
    severity: Optional[Severity] = Field(
        default=None,
        description="User's declared severity for the excluding restriction"
    )
    conflicting_restrictions: List[ConflictingRestriction] = Field(
        default_factory=list
    )


class BatchResult(BaseModel):
    """
    Output of one matching run.

    compatible_items carry match_confidence and warnings; incompatible_items
    carry exclusion_reason, severity and conflicting_restrictions. On the
    no-preference fast path compatible_items are the input items unchanged.
    """
    compatible_items: List[Dict[str, Any]] = Field(default_factory=list)
    incompatible_items: List[Dict[str, Any]] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    matching_time: float = Field(
        default=0.0,
        description="Elapsed matching time in milliseconds"
    )
    total_processed: int = 0
    strict_exclusions: int = 0
    mild_exclusions: int = 0
    classification_hash: str = Field(
        description="Deterministic hash of which items landed on which side"
    )
    version: str = "dietary_matching_v1"


class MismatchLogEntry(BaseModel):
    """One excluded item, kept for admin review."""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str
    item_id: Optional[str] = None
    item_name: Optional[str] = None
    reason: Optional[str] = None
    severity: Optional[Severity] = None
    conflicting_restrictions: List[ConflictingRestriction] = Field(
        default_factory=list
    )


class MismatchLogFilters(BaseModel):
    """Optional filters for mismatch log queries. Date bounds are inclusive."""
    user_id: Optional[str] = None
    severity: Optional[Severity] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


# Response models for API endpoints

class MatchingResponse(BaseModel):
    """API response wrapper for matching results."""
    success: bool = True
    data: BatchResult
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MismatchLogResponse(BaseModel):
    success: bool = True
    count: int
    capacity: int
    data: List[MismatchLogEntry]


class MatchingHealthResponse(BaseModel):
    """Health check response for the dietary matching module."""
    status: str = "ok"
    module: str = "dietary_matching"
    version: str = "dietary_matching_v1"
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
