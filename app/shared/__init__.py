"""ByteBasket Shared Utilities"""

from .hashing import (
    canonicalize,
    canonicalize_and_hash,
    classification_hash,
)
from .security import get_current_user_id, verify_admin_key

__all__ = [
    "canonicalize",
    "canonicalize_and_hash",
    "classification_hash",
    "get_current_user_id",
    "verify_admin_key",
]
