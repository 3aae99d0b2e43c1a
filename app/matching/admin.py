"""
Dietary Matching Endpoints

GET  /api/v1/dietary-preferences/health          - Health check
POST /api/v1/dietary-preferences/test-matching   - Match items for the caller
GET  /api/v1/admin/dietary/mismatch-logs         - Recent exclusions (admin)

Version: dietary_matching_v1
"""

import os
import logging
from datetime import datetime
from functools import lru_cache
from typing import Any, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import AliasChoices, BaseModel, Field

from app.preferences.store import get_preference_store
from app.shared.security import get_current_user_id, verify_admin_key

from .audit import DEFAULT_CAPACITY, MismatchLog
from .errors import InputError, UpstreamFetchError
from .match import DietaryMatchingService
from .models import (
    MatchingHealthResponse,
    MatchingResponse,
    MismatchLogFilters,
    MismatchLogResponse,
    Severity,
)

logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/api/v1/dietary-preferences",
    tags=["dietary-matching"],
)

admin_router = APIRouter(
    prefix="/api/v1/admin/dietary",
    tags=["dietary-matching-admin"],
    dependencies=[Depends(verify_admin_key)],
)


@lru_cache(maxsize=1)
def get_matching_service() -> DietaryMatchingService:
    """
    Process-wide matching service. Owns the mismatch log for this process.

    Tests replace it through app.dependency_overrides.
    """
    return DietaryMatchingService(
        get_preference_store(),
        mismatch_log=MismatchLog(capacity=mismatch_log_capacity()),
    )


def mismatch_log_capacity() -> int:
    """MISMATCH_LOG_CAPACITY, or the default when unset or not a positive integer."""
    raw = os.getenv("MISMATCH_LOG_CAPACITY")
    if raw is None:
        return DEFAULT_CAPACITY
    try:
        capacity = int(raw)
    except ValueError:
        capacity = 0
    if capacity < 1:
        logger.warning(
            f"Invalid MISMATCH_LOG_CAPACITY={raw!r} - using default {DEFAULT_CAPACITY}"
        )
        return DEFAULT_CAPACITY
    return capacity


class MatchItemsRequest(BaseModel):
    """Items to classify for the calling user."""
    # Validated by the service so a bad payload maps to InputError -> 400
    inventory_items: Optional[Any] = Field(
        default=None,
        validation_alias=AliasChoices("inventory_items", "inventoryItems"),
        description="Inventory items with at least item_name and category"
    )


@router.get("/health", response_model=MatchingHealthResponse)
async def matching_health():
    """
    Health check for dietary matching module.

    Does not require authentication.
    """
    return MatchingHealthResponse()


@router.post("/test-matching", response_model=MatchingResponse)
def run_test_matching(
    request: MatchItemsRequest,
    user_id: str = Depends(get_current_user_id),
    service: DietaryMatchingService = Depends(get_matching_service),
):
    """
    Match a batch of inventory items against the caller's preferences.

    400 on a malformed batch, 503 when preferences cannot be loaded.
    A store failure never falls back to "no restrictions".
    """
    try:
        result = service.match_user_dietary_needs(user_id, request.inventory_items)
    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamFetchError as e:
        logger.error(f"Dietary matching failed for user {user_id}: {e}")
        raise HTTPException(status_code=503, detail="Failed to load dietary preferences")

    return MatchingResponse(success=True, data=result)


@admin_router.get("/mismatch-logs", response_model=MismatchLogResponse)
def get_mismatch_logs(
    user_id: Optional[str] = None,
    severity: Optional[Severity] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    service: DietaryMatchingService = Depends(get_matching_service),
):
    """Recent mismatches from this process, newest first."""
    logs = service.get_mismatch_logs(MismatchLogFilters(
        user_id=user_id,
        severity=severity,
        start_date=start_date,
        end_date=end_date,
    ))
    return MismatchLogResponse(
        success=True,
        count=len(logs),
        capacity=service.mismatch_log.capacity,
        data=logs,
    )
