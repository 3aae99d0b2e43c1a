"""
Mismatch Audit Log Tests

- Bounded capacity with oldest-first eviction
- Filters by user, severity, and inclusive date range
- Newest-first ordering
- Concurrent appends
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from app.matching.audit import DEFAULT_CAPACITY, MismatchLog
from app.matching.match import DietaryMatchingService
from app.matching.models import MismatchLogEntry, MismatchLogFilters, Severity


BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_entry(
    item_id: str,
    user_id: str = "user-1",
    severity: str = "strict",
    minutes: int = 0,
) -> MismatchLogEntry:
    return MismatchLogEntry(
        timestamp=BASE_TIME + timedelta(minutes=minutes),
        user_id=user_id,
        item_id=item_id,
        item_name=f"Item {item_id}",
        reason="Contains allergen: Nut-Free",
        severity=severity,
    )


class TestCapacity:

    def test_default_capacity_is_1000(self):
        assert MismatchLog().capacity == DEFAULT_CAPACITY == 1000

    def test_oldest_dropped_after_1001_entries(self):
        log = MismatchLog()
        for i in range(1001):
            log.append(make_entry(str(i), minutes=i))

        assert len(log) == 1000
        ids = {entry.item_id for entry in log.query()}
        assert "0" not in ids
        assert "1" in ids
        assert "1000" in ids

    def test_small_capacity(self):
        log = MismatchLog(capacity=3)
        for i in range(5):
            log.append(make_entry(str(i), minutes=i))

        assert [e.item_id for e in log.query()] == ["4", "3", "2"]

    @pytest.mark.parametrize("capacity", [0, -5])
    def test_capacity_must_be_positive(self, capacity):
        with pytest.raises(ValueError):
            MismatchLog(capacity=capacity)

    def test_clear(self):
        log = MismatchLog()
        log.append(make_entry("1"))
        log.clear()
        assert len(log) == 0

    def test_concurrent_appends_stay_bounded(self):
        log = MismatchLog(capacity=500)

        def worker(prefix: str):
            for i in range(200):
                log.append(make_entry(f"{prefix}-{i}"))

        threads = [threading.Thread(target=worker, args=(str(t),)) for t in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(log) == 500


class TestQuery:

    @pytest.fixture
    def log(self) -> MismatchLog:
        log = MismatchLog()
        log.append(make_entry("a", user_id="user-1", severity="strict", minutes=0))
        log.append(make_entry("b", user_id="user-2", severity="mild", minutes=10))
        log.append(make_entry("c", user_id="user-1", severity="mild", minutes=20))
        log.append(make_entry("d", user_id="user-2", severity="strict", minutes=30))
        return log

    def test_newest_first(self, log):
        assert [e.item_id for e in log.query()] == ["d", "c", "b", "a"]

    def test_same_timestamp_newest_insert_first(self):
        log = MismatchLog()
        log.append(make_entry("first"))
        log.append(make_entry("second"))
        assert [e.item_id for e in log.query()] == ["second", "first"]

    def test_filter_by_user(self, log):
        assert [e.item_id for e in log.query(user_id="user-1")] == ["c", "a"]

    def test_filter_by_severity(self, log):
        assert [e.item_id for e in log.query(severity=Severity.MILD)] == ["c", "b"]
        assert [e.item_id for e in log.query(severity="strict")] == ["d", "a"]

    def test_date_bounds_inclusive(self, log):
        result = log.query(
            start_date=BASE_TIME + timedelta(minutes=10),
            end_date=BASE_TIME + timedelta(minutes=20),
        )
        assert [e.item_id for e in result] == ["c", "b"]

    def test_naive_dates_treated_as_utc(self, log):
        naive_start = (BASE_TIME + timedelta(minutes=25)).replace(tzinfo=None)
        assert [e.item_id for e in log.query(start_date=naive_start)] == ["d"]

    def test_combined_filters(self, log):
        result = log.query(user_id="user-2", severity="strict", end_date=BASE_TIME + timedelta(hours=1))
        assert [e.item_id for e in result] == ["d"]


class _NoPreferences:
    def get_user_dietary_preferences(self, user_id):
        return []


def test_service_filters_pass_through():
    log = MismatchLog()
    log.append(make_entry("a", user_id="user-1"))
    log.append(make_entry("b", user_id="user-2", minutes=5))
    service = DietaryMatchingService(_NoPreferences(), mismatch_log=log)

    result = service.get_mismatch_logs(MismatchLogFilters(user_id="user-2"))

    assert [e.item_id for e in result] == ["b"]
    assert len(service.get_mismatch_logs()) == 2
