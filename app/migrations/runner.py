# =============================================================================
# ByteBasket Migration Runner
# One-time endpoints to run migrations via API
# =============================================================================

import logging
from typing import Any, Dict
from fastapi import APIRouter, Depends, HTTPException

from app.matching.errors import UpstreamFetchError
from app.preferences.store import PreferenceStore, get_preference_store
from app.shared.security import verify_admin_key

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/migrations",
    tags=["Migrations"],
    dependencies=[Depends(verify_admin_key)],
)


# =============================================================================
# MIGRATION 001: Dietary restriction + preference tables
# =============================================================================

@router.post("/run/001-dietary-tables")
def run_migration_001(
    seed: bool = True,
    store: PreferenceStore = Depends(get_preference_store),
) -> Dict[str, Any]:
    """
    Run migration 001: create dietary_restrictions and user_dietary_preferences.

    With seed=true, also inserts the default restriction catalog. Existing
    names are left alone.
    Safe to run multiple times (idempotent).
    """
    try:
        schema_applied = store.ensure_schema()
        seeded = store.seed_restrictions() if seed else 0
    except UpstreamFetchError as e:
        logger.error(f"Migration 001 failed: {e}")
        raise HTTPException(status_code=500, detail=f"Migration failed: {e}")

    return {
        "migration": "001-dietary-tables",
        "status": "completed",
        "schema_applied": schema_applied,
        "restrictions_seeded": seeded,
    }
