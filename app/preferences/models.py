"""
Dietary Preference Models

Catalog restrictions and per-user preference records, plus the request
shapes used by the preference and restriction endpoints.
"""

from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, Field, field_validator

from app.matching.models import RestrictionCategory, RestrictionRef, Severity


class Restriction(BaseModel):
    """A dietary restriction in the catalog."""
    id: str
    name: str
    category: RestrictionCategory
    description: Optional[str] = None
    icon: Optional[str] = None
    is_allergen: bool = False
    severity_levels: List[Severity] = Field(
        default_factory=lambda: [Severity.MILD, Severity.STRICT]
    )
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_ref(self) -> RestrictionRef:
        return RestrictionRef(
            name=self.name,
            category=self.category,
            is_allergen=self.is_allergen,
            severity_levels=self.severity_levels,
        )


class RestrictionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    category: RestrictionCategory
    description: Optional[str] = Field(default=None, max_length=500)
    icon: Optional[str] = Field(default=None, max_length=255)
    is_allergen: bool = False
    severity_levels: List[Severity] = Field(
        default_factory=lambda: [Severity.MILD, Severity.STRICT],
        min_length=1,
    )
    is_active: bool = True

    class Config:
        extra = "forbid"

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class RestrictionUpdate(BaseModel):
    """Partial update. Only fields present in the request are applied."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    category: Optional[RestrictionCategory] = None
    description: Optional[str] = Field(default=None, max_length=500)
    icon: Optional[str] = Field(default=None, max_length=255)
    is_allergen: Optional[bool] = None
    severity_levels: Optional[List[Severity]] = Field(default=None, min_length=1)
    is_active: Optional[bool] = None

    class Config:
        extra = "forbid"

    @field_validator("name", "category", "is_allergen", "severity_levels", "is_active")
    @classmethod
    def reject_null(cls, v, info):
        # Omitted fields never reach here; an explicit null would clear a NOT NULL column
        if v is None:
            raise ValueError(f"{info.field_name} must not be null")
        if info.field_name == "name":
            v = v.strip()
            if not v:
                raise ValueError("name must not be blank")
        return v


class UserPreference(BaseModel):
    """A user's adoption of a restriction at a given severity."""
    id: str
    user_id: str
    restriction_id: str
    severity: Severity
    is_active: bool = True
    notes: Optional[str] = None
    restriction: Optional[Restriction] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PreferenceInput(BaseModel):
    """
    One entry of a full preference replacement.

    Entries lacking restriction_id or severity are skipped, not rejected.
    """
    restriction_id: Optional[str] = None
    severity: Optional[Severity] = None
    notes: Optional[str] = Field(default=None, max_length=500)

    class Config:
        extra = "ignore"

    @property
    def is_usable(self) -> bool:
        return bool(self.restriction_id) and self.severity is not None


class UpdatePreferencesRequest(BaseModel):
    # Left loose so a non-list gets a 400 with a clear message instead of a 422
    preferences: Optional[Any] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


# Response models

class RestrictionListResponse(BaseModel):
    success: bool = True
    data: List[Restriction]
    pagination: Optional[Pagination] = None


class RestrictionResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: Restriction


class PreferenceListResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: List[UserPreference]
