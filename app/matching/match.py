"""
Dietary Matching Core Logic

Classifies inventory items against one user's active dietary preferences.

Per item, each active preference is checked in load order:
1. Unresolved restriction (deleted / deactivated) -> skipped
2. No keyword conflict -> next preference
3. Allergen conflict -> excluded whatever the declared severity;
   a strict allergen ends evaluation for the item
4. Non-allergen conflict, strict -> excluded, evaluation continues
5. Non-allergen conflict, mild -> kept, warning added, confidence capped at 0.7

Nothing in the loop turns an excluded item back into a compatible one.

PRINCIPLE: Allergens never degrade to warnings.

Version: dietary_matching_v1
"""

import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from app.shared.hashing import classification_hash

from .audit import MismatchLog
from .errors import InputError
from .models import (
    BatchResult,
    ConflictingRestriction,
    MatchResult,
    MismatchLogEntry,
    MismatchLogFilters,
    PreferenceRecord,
    RestrictionRef,
    Severity,
)
from .patterns import ConflictPatternTable

logger = logging.getLogger(__name__)

MILD_CONFLICT_CONFIDENCE = 0.7


class PreferenceSource(Protocol):
    """Anything that can load a user's active dietary preferences."""

    def get_user_dietary_preferences(
        self, user_id: str
    ) -> Sequence[Union[PreferenceRecord, Mapping[str, Any]]]:
        ...


def _item_id(item: Mapping[str, Any]) -> Optional[str]:
    value = item.get("id", item.get("_id"))
    return None if value is None else str(value)


class DietaryMatchingService:
    """
    Matches item batches against a user's dietary preferences.

    Each instance owns its pattern table and mismatch log. Build one per
    process for the API, or one per test for isolation.
    """

    def __init__(
        self,
        preference_source: PreferenceSource,
        pattern_table: Optional[ConflictPatternTable] = None,
        mismatch_log: Optional[MismatchLog] = None,
    ):
        self._source = preference_source
        # MismatchLog defines __len__, so an empty log is falsy
        self.pattern_table = pattern_table if pattern_table is not None else ConflictPatternTable()
        self.mismatch_log = mismatch_log if mismatch_log is not None else MismatchLog()

    def get_user_dietary_preferences(self, user_id: str) -> List[PreferenceRecord]:
        """
        Load the user's active preferences.

        Store failures propagate. Falling back to "no restrictions" here
        would silently drop allergen protection.
        """
        records = self._source.get_user_dietary_preferences(user_id) or []
        return [
            r if isinstance(r, PreferenceRecord) else PreferenceRecord.model_validate(r)
            for r in records
        ]

    def match_user_dietary_needs(
        self,
        user_id: str,
        items: List[Dict[str, Any]],
    ) -> BatchResult:
        """
        Classify a batch of inventory items for one user.

        Args:
            user_id: Whose preferences to apply
            items: Item dicts with at least item_name and category

        Returns:
            BatchResult with compatible / incompatible items and statistics

        Raises:
            InputError: items missing or not a list of dicts
            UpstreamFetchError: preference store failed
        """
        if items is None or not isinstance(items, list):
            raise InputError("Invalid inventory items provided", user_id=user_id)
        for index, item in enumerate(items):
            if not isinstance(item, Mapping):
                raise InputError(
                    f"Inventory item at index {index} must be an object",
                    user_id=user_id,
                )

        start = time.perf_counter()

        preferences = self.get_user_dietary_preferences(user_id)

        if not preferences:
            return BatchResult(
                compatible_items=list(items),
                incompatible_items=[],
                warnings=[],
                matching_time=_elapsed_ms(start),
                total_processed=len(items),
                classification_hash=classification_hash(items, []),
            )

        compatible: List[Dict[str, Any]] = []
        incompatible: List[Dict[str, Any]] = []
        warnings: List[str] = []
        strict_exclusions = 0
        mild_exclusions = 0

        for item in items:
            result = self.check_item_compatibility(item, preferences)

            if result.is_compatible:
                compatible.append({
                    **item,
                    "match_confidence": result.confidence,
                    "warnings": list(result.warnings),
                })
            else:
                incompatible.append({
                    **item,
                    "exclusion_reason": result.reason,
                    "severity": result.severity.value if result.severity else None,
                    "conflicting_restrictions": [
                        c.model_dump(mode="json") for c in result.conflicting_restrictions
                    ],
                })

                if result.severity == Severity.STRICT:
                    strict_exclusions += 1
                else:
                    mild_exclusions += 1

                self.log_mismatch(user_id, item, result)

            warnings.extend(result.warnings)

        return BatchResult(
            compatible_items=compatible,
            incompatible_items=incompatible,
            warnings=warnings,
            matching_time=_elapsed_ms(start),
            total_processed=len(items),
            strict_exclusions=strict_exclusions,
            mild_exclusions=mild_exclusions,
            classification_hash=classification_hash(compatible, incompatible),
        )

    def check_item_compatibility(
        self,
        item: Mapping[str, Any],
        preferences: Sequence[PreferenceRecord],
    ) -> MatchResult:
        """Decide compatibility of one item against all active preferences."""
        result = MatchResult()

        for preference in preferences:
            restriction = preference.restriction
            if restriction is None:
                continue

            if not self.check_for_conflict(item, restriction):
                continue

            severity = preference.severity

            if restriction.is_allergen:
                result.is_compatible = False
                result.reason = f"Contains allergen: {restriction.name}"
                result.severity = severity
                result.conflicting_restrictions.append(ConflictingRestriction(
                    name=restriction.name,
                    severity=severity,
                    type="allergen",
                ))
                if severity == Severity.STRICT:
                    return result

            elif severity == Severity.STRICT:
                result.is_compatible = False
                result.reason = (
                    f"Violates {restriction.category.value} restriction: {restriction.name}"
                )
                result.severity = severity
                result.conflicting_restrictions.append(ConflictingRestriction(
                    name=restriction.name,
                    severity=severity,
                    type=restriction.category.value,
                ))

            else:
                result.warnings.append(f"May not align with {restriction.name} preference")
                result.confidence = min(result.confidence, MILD_CONFLICT_CONFIDENCE)

        return result

    def check_for_conflict(
        self,
        item: Mapping[str, Any],
        restriction: Union[RestrictionRef, Mapping[str, Any]],
    ) -> bool:
        return self.pattern_table.check_for_conflict(item, restriction)

    def log_mismatch(
        self,
        user_id: str,
        item: Mapping[str, Any],
        match_result: MatchResult,
    ) -> MismatchLogEntry:
        """Record an excluded item for admin review."""
        entry = MismatchLogEntry(
            user_id=str(user_id),
            item_id=_item_id(item),
            item_name=None if item.get("item_name") is None else str(item["item_name"]),
            reason=match_result.reason,
            severity=match_result.severity,
            conflicting_restrictions=list(match_result.conflicting_restrictions),
        )
        self.mismatch_log.append(entry)
        logger.info(
            f"Dietary mismatch: user={entry.user_id} item={entry.item_id} "
            f"'{entry.item_name}' - {entry.reason}"
        )
        return entry

    def get_mismatch_logs(
        self,
        filters: Optional[MismatchLogFilters] = None,
    ) -> List[MismatchLogEntry]:
        """Filtered mismatch entries, newest first."""
        filters = filters or MismatchLogFilters()
        return self.mismatch_log.query(
            user_id=filters.user_id,
            severity=filters.severity,
            start_date=filters.start_date,
            end_date=filters.end_date,
        )


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 3)
