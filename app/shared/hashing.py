"""
ByteBasket Canonical Hashing
Stable hashes for comparing matching runs without timing noise.
"""

import hashlib
import json
from typing import Any, Dict, Iterable, List

# Fields that change run to run and must not affect a hash
VOLATILE_FIELDS = frozenset([
    "timestamp",
    "matching_time",
    "generated_at",
    "created_at",
    "updated_at",
])


def canonicalize(obj: Any, exclude_volatile: bool = True) -> str:
    """
    Convert object to canonical JSON string.
    Same input always produces the same output.
    """
    def _clean(o: Any) -> Any:
        if isinstance(o, dict):
            return {
                str(k): _clean(v)
                for k, v in sorted(o.items(), key=lambda kv: str(kv[0]))
                if not (exclude_volatile and k in VOLATILE_FIELDS)
            }
        elif isinstance(o, (list, tuple)):
            return [_clean(i) for i in o]
        elif isinstance(o, float):
            return round(o, 10)
        return o

    cleaned = _clean(obj)
    return json.dumps(
        cleaned, sort_keys=True, separators=(',', ':'), ensure_ascii=True, default=str
    )


def canonicalize_and_hash(obj: Any, exclude_volatile: bool = True) -> str:
    """Returns "sha256:<64-char-hex>"."""
    canonical = canonicalize(obj, exclude_volatile)
    digest = hashlib.sha256(canonical.encode('utf-8')).hexdigest()
    return f"sha256:{digest}"


def _item_key(item: Dict[str, Any]) -> str:
    for key in ("id", "_id", "item_name"):
        if item.get(key) is not None:
            return str(item[key])
    return canonicalize(item)


def classification_hash(
    compatible: Iterable[Dict[str, Any]],
    incompatible: Iterable[Dict[str, Any]],
) -> str:
    """
    Hash which items were classified compatible vs incompatible.

    Order-insensitive within each side.
    """
    hash_input: Dict[str, List[str]] = {
        "compatible": sorted(_item_key(i) for i in compatible),
        "incompatible": sorted(_item_key(i) for i in incompatible),
    }
    return canonicalize_and_hash(hash_input)
