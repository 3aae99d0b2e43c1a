"""
Dietary API Endpoint Tests

Routers exercised through FastAPI's TestClient with the store and the
matching service swapped for in-memory instances.
"""

import pytest
from fastapi.testclient import TestClient

from api_server import app
from app.matching.admin import get_matching_service, mismatch_log_capacity
from app.matching.audit import DEFAULT_CAPACITY, MismatchLog
from app.matching.errors import UpstreamFetchError
from app.matching.match import DietaryMatchingService
from app.preferences.store import InMemoryPreferenceStore, get_preference_store


ADMIN_KEY = "test-admin-key"
USER = {"X-User-Id": "user-1"}
ADMIN = {"X-Admin-API-Key": ADMIN_KEY}


class FailingSource:
    def get_user_dietary_preferences(self, user_id):
        raise UpstreamFetchError("database down", user_id=user_id)


@pytest.fixture
def store() -> InMemoryPreferenceStore:
    store = InMemoryPreferenceStore()
    store.seed_restrictions()
    return store


@pytest.fixture
def service(store) -> DietaryMatchingService:
    return DietaryMatchingService(store, mismatch_log=MismatchLog(capacity=50))


@pytest.fixture
def client(store, service, monkeypatch):
    monkeypatch.setenv("ADMIN_API_KEY", ADMIN_KEY)
    app.dependency_overrides[get_preference_store] = lambda: store
    app.dependency_overrides[get_matching_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def restriction_id(client, name: str) -> str:
    response = client.get("/api/v1/dietary-preferences/restrictions")
    return next(r["id"] for r in response.json()["data"] if r["name"] == name)


def set_preferences(client, *entries):
    return client.put(
        "/api/v1/dietary-preferences",
        json={"preferences": list(entries)},
        headers=USER,
    )


# ============================================================================
# Service Health
# ============================================================================

class TestHealth:

    def test_root_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_matching_health_needs_no_auth(self, client):
        body = client.get("/api/v1/dietary-preferences/health").json()
        assert body["status"] == "ok"
        assert body["version"] == "dietary_matching_v1"


# ============================================================================
# User Preferences
# ============================================================================

class TestPreferences:

    def test_user_header_required(self, client):
        assert client.get("/api/v1/dietary-preferences").status_code == 401

    def test_preferences_must_be_array(self, client):
        response = client.put(
            "/api/v1/dietary-preferences",
            json={"preferences": {"restriction_id": "x"}},
            headers=USER,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Preferences must be an array"

    def test_replace_then_read(self, client):
        vegan = restriction_id(client, "Vegan")

        response = set_preferences(
            client,
            {"restriction_id": vegan, "severity": "mild", "notes": "mostly"},
            {"restriction_id": vegan},
            "not-an-object",
        )

        assert response.status_code == 200
        data = client.get("/api/v1/dietary-preferences", headers=USER).json()["data"]
        assert len(data) == 1
        assert data[0]["severity"] == "mild"
        assert data[0]["restriction"]["name"] == "Vegan"

    def test_empty_list_clears(self, client):
        set_preferences(client, {"restriction_id": restriction_id(client, "Vegan"), "severity": "mild"})
        set_preferences(client)

        assert client.get("/api/v1/dietary-preferences", headers=USER).json()["data"] == []

    def test_unknown_restriction_is_404(self, client):
        response = set_preferences(client, {"restriction_id": "missing", "severity": "strict"})
        assert response.status_code == 404

    def test_invalid_severity_is_400(self, client):
        response = set_preferences(
            client, {"restriction_id": restriction_id(client, "Vegan"), "severity": "extreme"}
        )
        assert response.status_code == 400

    def test_available_restrictions_exclude_inactive(self, client):
        halal = restriction_id(client, "Halal")
        client.put(f"/api/v1/dietary-restrictions/{halal}", json={"is_active": False}, headers=ADMIN)

        names = [
            r["name"]
            for r in client.get("/api/v1/dietary-preferences/restrictions").json()["data"]
        ]
        assert "Halal" not in names
        assert "Kosher" in names

    def test_available_restrictions_filter(self, client):
        response = client.get(
            "/api/v1/dietary-preferences/restrictions",
            params={"category": "religious"},
        )
        assert [r["name"] for r in response.json()["data"]] == ["Halal", "Kosher"]


# ============================================================================
# Matching
# ============================================================================

class TestMatching:

    def test_no_preferences_returns_everything(self, client):
        items = [{"id": "1", "item_name": "Peanut Butter", "category": "Spreads"}]

        data = client.post(
            "/api/v1/dietary-preferences/test-matching",
            json={"inventory_items": items},
            headers=USER,
        ).json()["data"]

        assert data["compatible_items"] == items
        assert data["incompatible_items"] == []
        assert data["total_processed"] == 1

    def test_strict_allergen_excluded(self, client):
        set_preferences(client, {"restriction_id": restriction_id(client, "Nut-Free"), "severity": "strict"})

        data = client.post(
            "/api/v1/dietary-preferences/test-matching",
            json={"inventory_items": [
                {"id": "1", "item_name": "Peanut Butter", "category": "Spreads"},
                {"id": "2", "item_name": "Apples", "category": "Produce"},
            ]},
            headers=USER,
        ).json()["data"]

        excluded = data["incompatible_items"][0]
        assert excluded["id"] == "1"
        assert excluded["exclusion_reason"] == "Contains allergen: Nut-Free"
        assert excluded["severity"] == "strict"
        assert [i["id"] for i in data["compatible_items"]] == ["2"]
        assert data["strict_exclusions"] == 1
        assert data["classification_hash"].startswith("sha256:")

    @pytest.mark.parametrize("payload", [
        {"inventory_items": "apples"},
        {"inventory_items": [1, 2]},
        {},
    ])
    def test_invalid_items_rejected(self, client, payload):
        response = client.post(
            "/api/v1/dietary-preferences/test-matching", json=payload, headers=USER
        )
        assert response.status_code == 400

    def test_store_failure_is_503(self, client):
        app.dependency_overrides[get_matching_service] = lambda: DietaryMatchingService(FailingSource())

        response = client.post(
            "/api/v1/dietary-preferences/test-matching",
            json={"inventory_items": [{"item_name": "Bread", "category": "Bakery"}]},
            headers=USER,
        )

        assert response.status_code == 503

    def test_camel_case_items_key_accepted(self, client):
        set_preferences(client, {"restriction_id": restriction_id(client, "Nut-Free"), "severity": "strict"})

        response = client.post(
            "/api/v1/dietary-preferences/test-matching",
            json={"inventoryItems": [{"id": "1", "item_name": "Peanut Butter", "category": "Spreads"}]},
            headers=USER,
        )

        assert response.status_code == 200
        assert [i["id"] for i in response.json()["data"]["incompatible_items"]] == ["1"]


# ============================================================================
# Mismatch Logs (admin)
# ============================================================================

class TestMismatchLogs:

    def test_admin_key_required(self, client):
        assert client.get("/api/v1/admin/dietary/mismatch-logs").status_code == 401
        response = client.get(
            "/api/v1/admin/dietary/mismatch-logs", headers={"X-Admin-API-Key": "wrong"}
        )
        assert response.status_code == 401

    def test_exclusions_are_logged(self, client):
        set_preferences(client, {"restriction_id": restriction_id(client, "Halal"), "severity": "strict"})
        client.post(
            "/api/v1/dietary-preferences/test-matching",
            json={"inventory_items": [{"id": 7, "item_name": "Pork Sausage", "category": "Meat"}]},
            headers=USER,
        )

        body = client.get(
            "/api/v1/admin/dietary/mismatch-logs",
            params={"user_id": "user-1", "severity": "strict"},
            headers=ADMIN,
        ).json()

        assert body["count"] == 1
        assert body["capacity"] == 50
        assert body["data"][0]["item_id"] == "7"
        assert body["data"][0]["reason"] == "Violates religious restriction: Halal"

    def test_filter_excludes_other_users(self, client):
        body = client.get(
            "/api/v1/admin/dietary/mismatch-logs",
            params={"user_id": "nobody"},
            headers=ADMIN,
        ).json()
        assert body["count"] == 0


class TestMismatchLogCapacity:

    @pytest.fixture
    def fresh_factories(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        get_matching_service.cache_clear()
        get_preference_store.cache_clear()
        yield
        get_matching_service.cache_clear()
        get_preference_store.cache_clear()

    def test_env_capacity_applied(self, fresh_factories, monkeypatch):
        monkeypatch.setenv("MISMATCH_LOG_CAPACITY", "10")
        assert get_matching_service().mismatch_log.capacity == 10

    @pytest.mark.parametrize("raw", ["lots", "", "0", "-3"])
    def test_invalid_env_capacity_uses_default(self, fresh_factories, monkeypatch, raw):
        monkeypatch.setenv("MISMATCH_LOG_CAPACITY", raw)
        assert mismatch_log_capacity() == DEFAULT_CAPACITY
        assert get_matching_service().mismatch_log.capacity == DEFAULT_CAPACITY

    def test_unset_capacity_uses_default(self, monkeypatch):
        monkeypatch.delenv("MISMATCH_LOG_CAPACITY", raising=False)
        assert mismatch_log_capacity() == DEFAULT_CAPACITY


# ============================================================================
# Restriction Catalog (admin)
# ============================================================================

class TestRestrictionCatalog:

    def test_admin_key_required(self, client):
        assert client.get("/api/v1/dietary-restrictions").status_code == 401

    def test_pagination(self, client):
        body = client.get(
            "/api/v1/dietary-restrictions", params={"page": 2, "limit": 10}, headers=ADMIN
        ).json()

        assert len(body["data"]) == 5
        assert body["pagination"] == {"page": 2, "limit": 10, "total": 15, "pages": 2}

    def test_create_and_duplicate(self, client):
        payload = {"name": "Sesame-Free", "category": "allergen", "is_allergen": True}

        created = client.post("/api/v1/dietary-restrictions", json=payload, headers=ADMIN)
        duplicate = client.post("/api/v1/dietary-restrictions", json=payload, headers=ADMIN)

        assert created.status_code == 201
        assert created.json()["data"]["severity_levels"] == ["mild", "strict"]
        assert duplicate.status_code == 400

    def test_invalid_category_rejected(self, client):
        response = client.post(
            "/api/v1/dietary-restrictions",
            json={"name": "Paleo", "category": "fad"},
            headers=ADMIN,
        )
        assert response.status_code == 422

    def test_update_missing_is_404(self, client):
        response = client.put(
            "/api/v1/dietary-restrictions/missing", json={"name": "X"}, headers=ADMIN
        )
        assert response.status_code == 404

    @pytest.mark.parametrize("field", [
        "name", "category", "is_allergen", "severity_levels", "is_active",
    ])
    def test_update_rejects_null(self, client, field):
        halal = restriction_id(client, "Halal")

        response = client.put(
            f"/api/v1/dietary-restrictions/{halal}", json={field: None}, headers=ADMIN
        )

        assert response.status_code == 422
        assert "Halal" in [
            r["name"]
            for r in client.get("/api/v1/dietary-preferences/restrictions").json()["data"]
        ]

    def test_update_rejects_blank_name(self, client):
        halal = restriction_id(client, "Halal")

        response = client.put(
            f"/api/v1/dietary-restrictions/{halal}", json={"name": "   "}, headers=ADMIN
        )

        assert response.status_code == 422

    def test_update_strips_name(self, client):
        halal = restriction_id(client, "Halal")

        response = client.put(
            f"/api/v1/dietary-restrictions/{halal}", json={"name": "  Halal Only  "}, headers=ADMIN
        )

        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Halal Only"

    def test_delete_in_use_then_free(self, client):
        vegan = restriction_id(client, "Vegan")
        set_preferences(client, {"restriction_id": vegan, "severity": "mild"})

        in_use = client.delete(f"/api/v1/dietary-restrictions/{vegan}", headers=ADMIN)
        set_preferences(client)
        deleted = client.delete(f"/api/v1/dietary-restrictions/{vegan}", headers=ADMIN)
        again = client.delete(f"/api/v1/dietary-restrictions/{vegan}", headers=ADMIN)

        assert in_use.status_code == 400
        assert deleted.status_code == 200
        assert again.status_code == 404


# ============================================================================
# Migrations (admin)
# ============================================================================

def test_migration_seeds_only_missing(client, store):
    response = client.post("/api/v1/migrations/run/001-dietary-tables", headers=ADMIN)

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "completed"
    assert body["schema_applied"] is False
    assert body["restrictions_seeded"] == 0
