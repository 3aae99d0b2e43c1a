"""
Conflict Pattern Table

Keyword vocabularies used to decide whether an item collides with a
named dietary restriction. Matching is deterministic and runs against
the lowercased item name and category only.

Each restriction has two keyword sets:
- conflicts: presence in name or category means the item conflicts
- safe: documented compatibility markers

NOTE: safe keywords are evaluated but do not veto a conflict. The result
is the conflict test alone. Whether "gluten-free cookies" should pass a
Gluten-Free restriction is an open product question, so the safe list
stays inert until that is settled.

Known restrictions live in an enum-keyed table. Catalog restrictions
outside that set can be registered by name on a table instance.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Pattern, Tuple

logger = logging.getLogger(__name__)


class KnownRestriction(str, Enum):
    GLUTEN_FREE = "gluten-free"
    DAIRY_FREE = "dairy-free"
    NUT_FREE = "nut-free"
    EGG_FREE = "egg-free"
    SOY_FREE = "soy-free"
    SHELLFISH_FREE = "shellfish-free"
    VEGAN = "vegan"
    VEGETARIAN = "vegetarian"
    PESCATARIAN = "pescatarian"
    KOSHER = "kosher"
    HALAL = "halal"

    @classmethod
    def from_name(cls, name: str) -> Optional["KnownRestriction"]:
        try:
            return cls(normalize_name(name))
        except ValueError:
            return None


def normalize_name(name: str) -> str:
    return (name or "").strip().lower()


def _compile(keyword: str) -> Optional[Pattern]:
    # Multi-word phrases use plain substring containment
    if " " in keyword:
        return None
    return re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE)


def contains_keyword(text: str, keyword: str) -> bool:
    """
    Check whether text contains keyword.

    Phrases containing a space match as substrings. Single tokens match
    as whole words, so "nut" does not hit "nutmeg".
    """
    pattern = _compile(keyword)
    if pattern is None:
        return keyword in text
    return pattern.search(text) is not None


@dataclass(frozen=True)
class ConflictPattern:
    conflicts: Tuple[str, ...]
    safe: Tuple[str, ...] = ()
    _compiled: Dict[str, Optional[Pattern]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self):
        for keyword in self.conflicts + self.safe:
            self._compiled[keyword] = _compile(keyword)

    def _hit(self, keyword: str, texts: Iterable[str]) -> bool:
        pattern = self._compiled[keyword]
        for text in texts:
            if pattern is None:
                if keyword in text:
                    return True
            elif pattern.search(text):
                return True
        return False

    def find_conflict(self, *texts: str) -> Optional[str]:
        """Return the first conflict keyword found in any text."""
        for keyword in self.conflicts:
            if self._hit(keyword, texts):
                return keyword
        return None

    def find_safe(self, *texts: str) -> Optional[str]:
        for keyword in self.safe:
            if self._hit(keyword, texts):
                return keyword
        return None


DEFAULT_PATTERNS: Dict[KnownRestriction, ConflictPattern] = {
    KnownRestriction.GLUTEN_FREE: ConflictPattern(
        conflicts=(
            "wheat bread",
            "white bread",
            "whole wheat",
            "flour",
            "wheat cereal",
            "regular pasta",
            "cookies",
            "cake",
            "crackers",
        ),
        safe=("gluten-free", "gluten free", "gf-", "rice", "corn"),
    ),
    KnownRestriction.DAIRY_FREE: ConflictPattern(
        conflicts=("milk", "cheese", "butter", "yogurt", "cream", "dairy"),
        safe=(
            "dairy-free",
            "dairy free",
            "non-dairy",
            "plant-based",
            "almond milk",
            "soy milk",
        ),
    ),
    KnownRestriction.NUT_FREE: ConflictPattern(
        conflicts=(
            "nut",
            "nuts",
            "peanut",
            "almond",
            "walnut",
            "cashew",
            "pistachio",
            "hazelnut",
            "pecan",
            "tree nut",
        ),
        safe=("nut-free", "nut free"),
    ),
    KnownRestriction.EGG_FREE: ConflictPattern(
        conflicts=("egg", "eggs", "mayonnaise", "meringue", "egg noodles"),
        safe=("egg-free", "egg free", "eggless"),
    ),
    KnownRestriction.SOY_FREE: ConflictPattern(
        conflicts=("soy", "soya", "tofu", "edamame", "soy sauce", "tempeh"),
        safe=("soy-free", "soy free"),
    ),
    KnownRestriction.SHELLFISH_FREE: ConflictPattern(
        conflicts=("shellfish", "shrimp", "crab", "lobster", "prawn", "clam", "oyster", "mussel"),
        safe=("shellfish-free",),
    ),
    KnownRestriction.VEGAN: ConflictPattern(
        conflicts=("meat", "chicken", "beef", "pork", "fish", "dairy", "egg", "honey", "gelatin"),
        safe=("vegan", "plant-based", "vegetable", "fruit"),
    ),
    KnownRestriction.VEGETARIAN: ConflictPattern(
        conflicts=("meat", "chicken", "beef", "pork", "fish"),
        safe=("vegetarian", "veggie", "plant-based"),
    ),
    KnownRestriction.PESCATARIAN: ConflictPattern(
        conflicts=("meat", "chicken", "beef", "pork", "turkey", "lamb"),
        safe=("pescatarian", "fish", "seafood"),
    ),
    KnownRestriction.KOSHER: ConflictPattern(
        conflicts=("pork", "shellfish", "non-kosher"),
        safe=("kosher", "kosher-certified"),
    ),
    KnownRestriction.HALAL: ConflictPattern(
        conflicts=("pork", "alcohol", "non-halal"),
        safe=("halal", "halal-certified"),
    ),
}


def _restriction_name(restriction: Any) -> str:
    if isinstance(restriction, Mapping):
        return restriction.get("name") or ""
    return getattr(restriction, "name", "") or ""


def _item_text(item: Mapping[str, Any], key: str) -> str:
    value = item.get(key)
    if value is None:
        return ""
    return str(value).lower()


class ConflictPatternTable:
    """
    Lookup from restriction name to its ConflictPattern.

    Each instance owns its tables, so registering an extension on one
    instance does not leak into another.
    """

    def __init__(
        self,
        patterns: Optional[Mapping[KnownRestriction, ConflictPattern]] = None,
        extensions: Optional[Mapping[str, ConflictPattern]] = None,
    ):
        self._patterns: Dict[KnownRestriction, ConflictPattern] = dict(
            DEFAULT_PATTERNS if patterns is None else patterns
        )
        self._extensions: Dict[str, ConflictPattern] = {}
        for name, pattern in (extensions or {}).items():
            self.register(name, pattern)

    def register(self, name: str, pattern: ConflictPattern) -> None:
        """Add or replace the pattern for a restriction name."""
        known = KnownRestriction.from_name(name)
        if known is not None:
            self._patterns[known] = pattern
        else:
            self._extensions[normalize_name(name)] = pattern

    def lookup(self, restriction_name: str) -> Optional[ConflictPattern]:
        known = KnownRestriction.from_name(restriction_name)
        if known is not None:
            return self._patterns.get(known)
        return self._extensions.get(normalize_name(restriction_name))

    def known_names(self) -> Tuple[str, ...]:
        names = [k.value for k in self._patterns] + list(self._extensions)
        return tuple(sorted(names))

    def check_for_conflict(self, item: Mapping[str, Any], restriction: Any) -> bool:
        """
        True if the item's name or category hits a conflict keyword for
        this restriction. Unknown restriction names never conflict.
        """
        name = _restriction_name(restriction)
        pattern = self.lookup(name)
        if pattern is None:
            return False

        item_name = _item_text(item, "item_name")
        item_category = _item_text(item, "category")

        safe_keyword = pattern.find_safe(item_name, item_category)
        conflict_keyword = pattern.find_conflict(item_name, item_category)

        if conflict_keyword and safe_keyword:
            logger.debug(
                f"Safe keyword '{safe_keyword}' present alongside conflict "
                f"'{conflict_keyword}' for {name}; safe keywords are not applied"
            )

        return conflict_keyword is not None
