"""
Request identity helpers shared by the routers.

Authentication proper lives in front of this service. By the time a
request reaches us the caller's id is in X-User-Id.
"""

import os
import logging
from typing import Optional
from fastapi import Header, HTTPException

logger = logging.getLogger(__name__)


def get_current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """Resolve the calling user's id from the X-User-Id header."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()


def verify_admin_key(x_admin_api_key: Optional[str] = Header(None, alias="X-Admin-API-Key")) -> str:
    """Verify admin API key from header."""
    expected_key = os.environ.get("ADMIN_API_KEY")

    if not expected_key:
        logger.warning("ADMIN_API_KEY not configured - admin endpoints open (dev mode)")
        return "dev_mode"

    if not x_admin_api_key:
        raise HTTPException(status_code=401, detail="Missing X-Admin-API-Key header")

    if x_admin_api_key != expected_key:
        raise HTTPException(status_code=401, detail="Invalid admin API key")

    return x_admin_api_key
