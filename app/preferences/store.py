"""
Dietary Preference Store

Persistence for the restriction catalog and user dietary preferences.

Two implementations share one interface:
- PostgresPreferenceStore: psycopg2 against DATABASE_URL
- InMemoryPreferenceStore: process-local, for development and tests

Replacing a user's preferences is deactivate-all then upsert. The
Postgres store does both inside one transaction so readers never see
the empty intermediate state; the in-memory store does both under its
lock.

Environment Variables:
- DATABASE_URL: PostgreSQL DSN. Unset -> in-memory store with the
  default catalog (development only).
"""

import os
import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import lru_cache
from threading import RLock
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import psycopg2
import psycopg2.errors
from psycopg2.extras import RealDictCursor

from app.matching.errors import UpstreamFetchError
from app.matching.models import PreferenceRecord, RestrictionCategory, RestrictionRef, Severity

from .catalog_data import DEFAULT_RESTRICTIONS
from .migration import get_migration_sql
from .models import (
    PreferenceInput,
    Restriction,
    RestrictionCreate,
    RestrictionUpdate,
    UserPreference,
)

logger = logging.getLogger(__name__)


class PreferenceStoreError(UpstreamFetchError):
    """The backing store failed or could not be reached."""
    pass


class CatalogError(Exception):
    """Base exception for catalog-level rule violations."""

    def __init__(self, message: str, restriction_id: Optional[str] = None):
        super().__init__(message)
        self.restriction_id = restriction_id


class RestrictionNotFoundError(CatalogError):
    pass


class DuplicateRestrictionError(CatalogError):
    pass


class RestrictionInUseError(CatalogError):
    """Restriction still referenced by an active preference."""
    pass


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PreferenceStore(ABC):
    """Interface shared by every preference store."""

    # ===== PREFERENCES =====

    @abstractmethod
    def get_user_dietary_preferences(self, user_id: str) -> List[PreferenceRecord]:
        """
        Active preferences for matching, in storage order.

        restriction is None when the referenced restriction is inactive.
        """

    @abstractmethod
    def get_user_preferences(self, user_id: str) -> List[UserPreference]:
        """Active preferences for display, newest first."""

    def replace_user_preferences(
        self,
        user_id: str,
        preferences: Sequence[PreferenceInput],
    ) -> List[UserPreference]:
        """
        Replace the user's whole preference set.

        Entries without restriction_id or severity are skipped. Unknown
        restriction ids raise RestrictionNotFoundError and nothing changes.
        """
        usable = [p for p in preferences if p.is_usable]
        skipped = len(preferences) - len(usable)
        if skipped:
            logger.info(f"Skipping {skipped} incomplete preference entries for user {user_id}")

        self._replace_preferences(user_id, usable)
        return self.get_user_preferences(user_id)

    @abstractmethod
    def _replace_preferences(self, user_id: str, preferences: List[PreferenceInput]) -> None:
        ...

    # ===== CATALOG =====

    @abstractmethod
    def list_restrictions(
        self,
        category: Optional[RestrictionCategory] = None,
        is_allergen: Optional[bool] = None,
        active_only: bool = False,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Tuple[List[Restriction], int]:
        """Restrictions sorted by (category, name) and the unpaginated total."""

    @abstractmethod
    def get_restriction(self, restriction_id: str) -> Restriction:
        ...

    @abstractmethod
    def create_restriction(self, data: RestrictionCreate) -> Restriction:
        ...

    @abstractmethod
    def update_restriction(self, restriction_id: str, data: RestrictionUpdate) -> Restriction:
        ...

    @abstractmethod
    def delete_restriction(self, restriction_id: str) -> None:
        ...

    def seed_restrictions(self, restrictions: Sequence[Dict[str, Any]] = DEFAULT_RESTRICTIONS) -> int:
        """Insert catalog entries whose name is not taken yet. Returns count created."""
        created = 0
        for raw in restrictions:
            try:
                self.create_restriction(RestrictionCreate(**raw))
                created += 1
            except DuplicateRestrictionError:
                continue
        logger.info(f"Seeded {created} dietary restrictions ({len(restrictions) - created} already present)")
        return created

    def ensure_schema(self) -> bool:
        """Create backing tables if the store has any. Returns True if DDL ran."""
        return False


# =============================================================================
# IN-MEMORY STORE
# =============================================================================

class InMemoryPreferenceStore(PreferenceStore):
    """Process-local store. Everything is lost on restart."""

    def __init__(self):
        self._restrictions: Dict[str, Restriction] = {}
        self._preferences: List[UserPreference] = []
        self._lock = RLock()

    def get_user_dietary_preferences(self, user_id: str) -> List[PreferenceRecord]:
        with self._lock:
            records = []
            for pref in self._preferences:
                if pref.user_id != user_id or not pref.is_active:
                    continue
                restriction = self._restrictions.get(pref.restriction_id)
                ref: Optional[RestrictionRef] = None
                if restriction is not None and restriction.is_active:
                    ref = restriction.to_ref()
                records.append(PreferenceRecord(
                    restriction_id=pref.restriction_id,
                    severity=pref.severity,
                    notes=pref.notes,
                    restriction=ref,
                ))
            return records

    def get_user_preferences(self, user_id: str) -> List[UserPreference]:
        with self._lock:
            active = [
                p.model_copy(update={"restriction": self._restrictions.get(p.restriction_id)})
                for p in self._preferences
                if p.user_id == user_id and p.is_active
            ]
        return list(reversed(active))

    def _replace_preferences(self, user_id: str, preferences: List[PreferenceInput]) -> None:
        with self._lock:
            for pref in preferences:
                if pref.restriction_id not in self._restrictions:
                    raise RestrictionNotFoundError(
                        f"Dietary restriction not found: {pref.restriction_id}",
                        restriction_id=pref.restriction_id,
                    )

            now = _now()
            for index, existing in enumerate(self._preferences):
                if existing.user_id == user_id and existing.is_active:
                    self._preferences[index] = existing.model_copy(
                        update={"is_active": False, "updated_at": now}
                    )

            for pref in preferences:
                index = self._find_preference(user_id, pref.restriction_id)
                if index is None:
                    self._preferences.append(UserPreference(
                        id=str(uuid.uuid4()),
                        user_id=user_id,
                        restriction_id=pref.restriction_id,
                        severity=pref.severity,
                        notes=pref.notes or "",
                        is_active=True,
                        created_at=now,
                        updated_at=now,
                    ))
                else:
                    self._preferences[index] = self._preferences[index].model_copy(update={
                        "severity": pref.severity,
                        "notes": pref.notes or "",
                        "is_active": True,
                        "updated_at": now,
                    })

    def _find_preference(self, user_id: str, restriction_id: str) -> Optional[int]:
        for index, pref in enumerate(self._preferences):
            if pref.user_id == user_id and pref.restriction_id == restriction_id:
                return index
        return None

    def list_restrictions(
        self,
        category: Optional[RestrictionCategory] = None,
        is_allergen: Optional[bool] = None,
        active_only: bool = False,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Tuple[List[Restriction], int]:
        with self._lock:
            rows = list(self._restrictions.values())

        if active_only:
            rows = [r for r in rows if r.is_active]
        if category is not None:
            rows = [r for r in rows if r.category == category]
        if is_allergen is not None:
            rows = [r for r in rows if r.is_allergen == is_allergen]

        rows.sort(key=lambda r: (r.category.value, r.name))
        total = len(rows)

        if page is not None and limit is not None:
            offset = (page - 1) * limit
            rows = rows[offset:offset + limit]

        return [r.model_copy() for r in rows], total

    def get_restriction(self, restriction_id: str) -> Restriction:
        with self._lock:
            restriction = self._restrictions.get(restriction_id)
        if restriction is None:
            raise RestrictionNotFoundError(
                "Dietary restriction not found", restriction_id=restriction_id
            )
        return restriction.model_copy()

    def create_restriction(self, data: RestrictionCreate) -> Restriction:
        with self._lock:
            self._check_name_free(data.name)
            now = _now()
            restriction = Restriction(id=str(uuid.uuid4()), created_at=now, updated_at=now, **data.model_dump())
            self._restrictions[restriction.id] = restriction
            return restriction.model_copy()

    def update_restriction(self, restriction_id: str, data: RestrictionUpdate) -> Restriction:
        changes = data.model_dump(exclude_unset=True)
        with self._lock:
            current = self._restrictions.get(restriction_id)
            if current is None:
                raise RestrictionNotFoundError(
                    "Dietary restriction not found", restriction_id=restriction_id
                )
            if "name" in changes and changes["name"] != current.name:
                self._check_name_free(changes["name"], exclude_id=restriction_id)
            updated = Restriction.model_validate({
                **current.model_dump(), **changes, "updated_at": _now()
            })
            self._restrictions[restriction_id] = updated
            return updated.model_copy()

    def delete_restriction(self, restriction_id: str) -> None:
        with self._lock:
            if restriction_id not in self._restrictions:
                raise RestrictionNotFoundError(
                    "Dietary restriction not found", restriction_id=restriction_id
                )
            in_use = any(
                p.restriction_id == restriction_id and p.is_active
                for p in self._preferences
            )
            if in_use:
                raise RestrictionInUseError(
                    "Cannot delete dietary restriction that is currently in use",
                    restriction_id=restriction_id,
                )
            del self._restrictions[restriction_id]
            self._preferences = [
                p for p in self._preferences if p.restriction_id != restriction_id
            ]

    def _check_name_free(self, name: str, exclude_id: Optional[str] = None) -> None:
        for restriction in self._restrictions.values():
            if restriction.id != exclude_id and restriction.name == name:
                raise DuplicateRestrictionError(
                    "Dietary restriction with this name already exists",
                    restriction_id=restriction.id,
                )


# =============================================================================
# POSTGRES STORE
# =============================================================================

RESTRICTION_COLUMNS = (
    "id", "name", "category", "description", "icon",
    "is_allergen", "severity_levels", "is_active", "created_at", "updated_at",
)

UPDATABLE_COLUMNS = frozenset([
    "name", "category", "description", "icon",
    "is_allergen", "severity_levels", "is_active",
])


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
        return True
    except ValueError:
        return False


def _restriction_from_row(row: Dict[str, Any], prefix: str = "") -> Restriction:
    return Restriction(
        id=str(row[f"{prefix}id"]),
        name=row[f"{prefix}name"],
        category=row[f"{prefix}category"],
        description=row.get(f"{prefix}description"),
        icon=row.get(f"{prefix}icon"),
        is_allergen=bool(row.get(f"{prefix}is_allergen")),
        severity_levels=row.get(f"{prefix}severity_levels") or [Severity.MILD, Severity.STRICT],
        is_active=bool(row.get(f"{prefix}is_active", True)),
        created_at=row.get(f"{prefix}created_at"),
        updated_at=row.get(f"{prefix}updated_at"),
    )


def _db_value(column: str, value: Any) -> Any:
    if column == "severity_levels" and value is not None:
        return [getattr(v, "value", v) for v in value]
    return getattr(value, "value", value)


class PostgresPreferenceStore(PreferenceStore):
    """
    psycopg2-backed store. One connection per operation.

    Every psycopg2 failure surfaces as PreferenceStoreError.
    """

    def __init__(self, dsn: Optional[str] = None, connect: Optional[Callable[[], Any]] = None):
        self._dsn = dsn or os.getenv("DATABASE_URL")
        self._connect = connect or self._default_connect

    def _default_connect(self):
        return psycopg2.connect(self._dsn, cursor_factory=RealDictCursor)

    @contextmanager
    def _connection(self) -> Iterator[Any]:
        try:
            conn = self._connect()
        except psycopg2.Error as e:
            logger.error(f"Database connection error: {e}")
            raise PreferenceStoreError("Preference store unavailable") from e

        try:
            yield conn
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Preference store query failed: {e}")
            raise PreferenceStoreError(f"Preference store query failed: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ensure_schema(self) -> bool:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(get_migration_sql())
            cur.close()
        logger.info("Dietary tables ensured")
        return True

    # ===== PREFERENCES =====

    def get_user_dietary_preferences(self, user_id: str) -> List[PreferenceRecord]:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute("""
                SELECT p.restriction_id, p.severity, p.notes,
                       r.name, r.category, r.is_allergen, r.severity_levels
                FROM user_dietary_preferences p
                LEFT JOIN dietary_restrictions r
                    ON r.id = p.restriction_id AND r.is_active = TRUE
                WHERE p.user_id = %s AND p.is_active = TRUE
                ORDER BY p.created_at ASC, p.id ASC
            """, (user_id,))
            rows = cur.fetchall()
            cur.close()

        records = []
        for row in rows:
            restriction = None
            if row.get("name") is not None:
                restriction = RestrictionRef(
                    name=row["name"],
                    category=row["category"],
                    is_allergen=bool(row.get("is_allergen")),
                    severity_levels=row.get("severity_levels") or [Severity.MILD, Severity.STRICT],
                )
            records.append(PreferenceRecord(
                restriction_id=str(row["restriction_id"]),
                severity=row["severity"],
                notes=row.get("notes"),
                restriction=restriction,
            ))
        return records

    def get_user_preferences(self, user_id: str) -> List[UserPreference]:
        restriction_select = ", ".join(f"r.{c} AS r_{c}" for c in RESTRICTION_COLUMNS)
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(f"""
                SELECT p.id, p.user_id, p.restriction_id, p.severity, p.is_active,
                       p.notes, p.created_at, p.updated_at, {restriction_select}
                FROM user_dietary_preferences p
                LEFT JOIN dietary_restrictions r ON r.id = p.restriction_id
                WHERE p.user_id = %s AND p.is_active = TRUE
                ORDER BY p.created_at DESC
            """, (user_id,))
            rows = cur.fetchall()
            cur.close()

        return [
            UserPreference(
                id=str(row["id"]),
                user_id=row["user_id"],
                restriction_id=str(row["restriction_id"]),
                severity=row["severity"],
                is_active=row["is_active"],
                notes=row.get("notes"),
                created_at=row.get("created_at"),
                updated_at=row.get("updated_at"),
                restriction=_restriction_from_row(row, prefix="r_") if row.get("r_id") else None,
            )
            for row in rows
        ]

    def _replace_preferences(self, user_id: str, preferences: List[PreferenceInput]) -> None:
        wanted = [p.restriction_id for p in preferences]
        for restriction_id in wanted:
            if not _is_uuid(restriction_id):
                raise RestrictionNotFoundError(
                    f"Dietary restriction not found: {restriction_id}",
                    restriction_id=restriction_id,
                )

        with self._connection() as conn:
            cur = conn.cursor()

            if wanted:
                cur.execute(
                    "SELECT id FROM dietary_restrictions WHERE id = ANY(%s::uuid[])",
                    (wanted,),
                )
                found = {str(row["id"]) for row in cur.fetchall()}
                missing = [rid for rid in wanted if rid not in found]
                if missing:
                    cur.close()
                    raise RestrictionNotFoundError(
                        f"Dietary restriction not found: {missing[0]}",
                        restriction_id=missing[0],
                    )

            cur.execute("""
                UPDATE user_dietary_preferences
                SET is_active = FALSE, updated_at = NOW()
                WHERE user_id = %s AND is_active = TRUE
            """, (user_id,))

            for pref in preferences:
                cur.execute("""
                    INSERT INTO user_dietary_preferences
                        (user_id, restriction_id, severity, notes, is_active)
                    VALUES (%s, %s, %s, %s, TRUE)
                    ON CONFLICT (user_id, restriction_id) DO UPDATE SET
                        severity = EXCLUDED.severity,
                        notes = EXCLUDED.notes,
                        is_active = TRUE,
                        updated_at = NOW()
                """, (user_id, pref.restriction_id, pref.severity.value, pref.notes or ""))

            cur.close()

        logger.info(f"Replaced dietary preferences for user {user_id}: {len(preferences)} active")

    # ===== CATALOG =====

    def list_restrictions(
        self,
        category: Optional[RestrictionCategory] = None,
        is_allergen: Optional[bool] = None,
        active_only: bool = False,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Tuple[List[Restriction], int]:
        clauses = []
        params: List[Any] = []
        if active_only:
            clauses.append("is_active = TRUE")
        if category is not None:
            clauses.append("category = %s")
            params.append(_db_value("category", category))
        if is_allergen is not None:
            clauses.append("is_allergen = %s")
            params.append(is_allergen)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        query = f"SELECT * FROM dietary_restrictions {where} ORDER BY category ASC, name ASC"
        query_params = list(params)
        if page is not None and limit is not None:
            query += " LIMIT %s OFFSET %s"
            query_params.extend([limit, (page - 1) * limit])

        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(query, tuple(query_params))
            rows = cur.fetchall()
            cur.execute(f"SELECT COUNT(*) AS total FROM dietary_restrictions {where}", tuple(params))
            total = cur.fetchone()["total"]
            cur.close()

        return [_restriction_from_row(row) for row in rows], total

    def get_restriction(self, restriction_id: str) -> Restriction:
        if not _is_uuid(restriction_id):
            raise RestrictionNotFoundError("Dietary restriction not found", restriction_id=restriction_id)

        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT * FROM dietary_restrictions WHERE id = %s", (restriction_id,))
            row = cur.fetchone()
            cur.close()

        if row is None:
            raise RestrictionNotFoundError("Dietary restriction not found", restriction_id=restriction_id)
        return _restriction_from_row(row)

    def create_restriction(self, data: RestrictionCreate) -> Restriction:
        values = data.model_dump()
        columns = list(values)
        placeholders = ", ".join(["%s"] * len(columns))

        with self._connection() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    f"INSERT INTO dietary_restrictions ({', '.join(columns)}) "
                    f"VALUES ({placeholders}) RETURNING *",
                    tuple(_db_value(c, values[c]) for c in columns),
                )
            except psycopg2.errors.UniqueViolation as e:
                cur.close()
                raise DuplicateRestrictionError(
                    "Dietary restriction with this name already exists"
                ) from e
            row = cur.fetchone()
            cur.close()

        return _restriction_from_row(row)

    def update_restriction(self, restriction_id: str, data: RestrictionUpdate) -> Restriction:
        changes = {
            k: v for k, v in data.model_dump(exclude_unset=True).items()
            if k in UPDATABLE_COLUMNS
        }
        if not changes:
            return self.get_restriction(restriction_id)
        if not _is_uuid(restriction_id):
            raise RestrictionNotFoundError("Dietary restriction not found", restriction_id=restriction_id)

        assignments = ", ".join(f"{column} = %s" for column in changes)
        params = [_db_value(c, v) for c, v in changes.items()] + [restriction_id]

        with self._connection() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    f"UPDATE dietary_restrictions SET {assignments}, updated_at = NOW() "
                    f"WHERE id = %s RETURNING *",
                    tuple(params),
                )
            except psycopg2.errors.UniqueViolation as e:
                cur.close()
                raise DuplicateRestrictionError(
                    "Dietary restriction with this name already exists",
                    restriction_id=restriction_id,
                ) from e
            row = cur.fetchone()
            cur.close()

        if row is None:
            raise RestrictionNotFoundError("Dietary restriction not found", restriction_id=restriction_id)
        return _restriction_from_row(row)

    def delete_restriction(self, restriction_id: str) -> None:
        if not _is_uuid(restriction_id):
            raise RestrictionNotFoundError("Dietary restriction not found", restriction_id=restriction_id)

        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute("""
                SELECT EXISTS (
                    SELECT 1 FROM user_dietary_preferences
                    WHERE restriction_id = %s AND is_active = TRUE
                ) AS in_use
            """, (restriction_id,))
            if cur.fetchone()["in_use"]:
                cur.close()
                raise RestrictionInUseError(
                    "Cannot delete dietary restriction that is currently in use",
                    restriction_id=restriction_id,
                )

            cur.execute(
                "DELETE FROM dietary_restrictions WHERE id = %s RETURNING id",
                (restriction_id,),
            )
            deleted = cur.fetchone()
            cur.close()

        if deleted is None:
            raise RestrictionNotFoundError("Dietary restriction not found", restriction_id=restriction_id)


# =============================================================================
# FACTORY
# =============================================================================

@lru_cache(maxsize=1)
def get_preference_store() -> PreferenceStore:
    """
    Process-wide store used by the API routers.

    Tests replace it through app.dependency_overrides.
    """
    dsn = os.getenv("DATABASE_URL")
    if dsn:
        return PostgresPreferenceStore(dsn)

    logger.warning("DATABASE_URL not set - using in-memory preference store with default catalog")
    store = InMemoryPreferenceStore()
    store.seed_restrictions()
    return store
