"""
Dietary Preference & Restriction Endpoints

User-facing:
GET  /api/v1/dietary-preferences               - Caller's active preferences
PUT  /api/v1/dietary-preferences               - Replace caller's preferences
GET  /api/v1/dietary-preferences/restrictions  - Active catalog entries

Admin (X-Admin-API-Key):
GET    /api/v1/dietary-restrictions       - Paginated catalog
POST   /api/v1/dietary-restrictions       - Create restriction
PUT    /api/v1/dietary-restrictions/{id}  - Update restriction
DELETE /api/v1/dietary-restrictions/{id}  - Delete unused restriction
"""

import math
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError

from app.matching.errors import UpstreamFetchError
from app.matching.models import RestrictionCategory
from app.shared.security import get_current_user_id, verify_admin_key

from .models import (
    Pagination,
    PreferenceInput,
    PreferenceListResponse,
    RestrictionCreate,
    RestrictionListResponse,
    RestrictionResponse,
    RestrictionUpdate,
    UpdatePreferencesRequest,
)
from .store import (
    DuplicateRestrictionError,
    PreferenceStore,
    RestrictionInUseError,
    RestrictionNotFoundError,
    get_preference_store,
)

logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/api/v1/dietary-preferences",
    tags=["dietary-preferences"],
)

restrictions_router = APIRouter(
    prefix="/api/v1/dietary-restrictions",
    tags=["dietary-restrictions"],
    dependencies=[Depends(verify_admin_key)],
)


def _store_unavailable(e: Exception, action: str) -> HTTPException:
    logger.error(f"Failed to {action}: {e}")
    return HTTPException(status_code=503, detail=f"Failed to {action}")


# ===== USER PREFERENCES =====

@router.get("", response_model=PreferenceListResponse)
def get_user_preferences(
    user_id: str = Depends(get_current_user_id),
    store: PreferenceStore = Depends(get_preference_store),
):
    """Get the caller's active dietary preferences, newest first."""
    try:
        preferences = store.get_user_preferences(user_id)
    except UpstreamFetchError as e:
        raise _store_unavailable(e, "fetch dietary preferences")

    return PreferenceListResponse(success=True, data=preferences)


@router.put("", response_model=PreferenceListResponse)
def update_user_preferences(
    request: UpdatePreferencesRequest,
    user_id: str = Depends(get_current_user_id),
    store: PreferenceStore = Depends(get_preference_store),
):
    """
    Replace the caller's whole preference set.

    Entries without restriction_id or severity are ignored. An empty list
    clears every preference.
    """
    if request.preferences is None or not isinstance(request.preferences, list):
        raise HTTPException(status_code=400, detail="Preferences must be an array")

    parsed: List[PreferenceInput] = []
    for index, raw in enumerate(request.preferences):
        if not isinstance(raw, dict):
            continue
        try:
            parsed.append(PreferenceInput.model_validate(raw))
        except ValidationError as e:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid preference at index {index}: {e.errors()[0]['msg']}",
            )

    try:
        preferences = store.replace_user_preferences(user_id, parsed)
    except RestrictionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamFetchError as e:
        raise _store_unavailable(e, "update dietary preferences")

    return PreferenceListResponse(
        success=True,
        message="Dietary preferences updated successfully",
        data=preferences,
    )


@router.get("/restrictions", response_model=RestrictionListResponse)
def get_available_restrictions(
    category: Optional[RestrictionCategory] = None,
    is_allergen: Optional[bool] = None,
    store: PreferenceStore = Depends(get_preference_store),
):
    """List active restrictions users can choose from."""
    try:
        restrictions, _ = store.list_restrictions(
            category=category,
            is_allergen=is_allergen,
            active_only=True,
        )
    except UpstreamFetchError as e:
        raise _store_unavailable(e, "fetch dietary restrictions")

    return RestrictionListResponse(success=True, data=restrictions)


# ===== ADMIN CATALOG =====

@restrictions_router.get("", response_model=RestrictionListResponse)
def list_restrictions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    category: Optional[RestrictionCategory] = None,
    is_allergen: Optional[bool] = None,
    store: PreferenceStore = Depends(get_preference_store),
):
    """All restrictions, active or not, sorted by category then name."""
    try:
        restrictions, total = store.list_restrictions(
            category=category,
            is_allergen=is_allergen,
            page=page,
            limit=limit,
        )
    except UpstreamFetchError as e:
        raise _store_unavailable(e, "fetch dietary restrictions")

    return RestrictionListResponse(
        success=True,
        data=restrictions,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
        ),
    )


@restrictions_router.post("", response_model=RestrictionResponse, status_code=201)
def create_restriction(
    request: RestrictionCreate,
    store: PreferenceStore = Depends(get_preference_store),
):
    try:
        restriction = store.create_restriction(request)
    except DuplicateRestrictionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamFetchError as e:
        raise _store_unavailable(e, "create dietary restriction")

    logger.info(f"Created dietary restriction '{restriction.name}' ({restriction.id})")
    return RestrictionResponse(
        success=True,
        message="Dietary restriction created successfully",
        data=restriction,
    )


@restrictions_router.put("/{restriction_id}", response_model=RestrictionResponse)
def update_restriction(
    restriction_id: str,
    request: RestrictionUpdate,
    store: PreferenceStore = Depends(get_preference_store),
):
    try:
        restriction = store.update_restriction(restriction_id, request)
    except RestrictionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DuplicateRestrictionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamFetchError as e:
        raise _store_unavailable(e, "update dietary restriction")

    return RestrictionResponse(
        success=True,
        message="Dietary restriction updated successfully",
        data=restriction,
    )


@restrictions_router.delete("/{restriction_id}")
def delete_restriction(
    restriction_id: str,
    store: PreferenceStore = Depends(get_preference_store),
):
    """Delete a restriction. Refused while an active preference uses it."""
    try:
        store.delete_restriction(restriction_id)
    except RestrictionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RestrictionInUseError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamFetchError as e:
        raise _store_unavailable(e, "delete dietary restriction")

    logger.info(f"Deleted dietary restriction {restriction_id}")
    return {
        "success": True,
        "message": "Dietary restriction deleted successfully",
    }
