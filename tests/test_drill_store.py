"""
test_drill_store.py — Tests for drill and response persistence.

Covers:
    • create_drill assigns id and server timestamp
    • record_response: referential integrity, deduplication
    • list_reports ordering (newest first, ties by id) and counts
    • get_current_drill for a class and the ALL sentinel
    • get_responses joined with the student directory
    • StorageError when the database is unusable

Run with:
    pytest tests/test_drill_store.py -v
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from drillalert.core.errors import NotFoundError, StorageError, ValidationError
from drillalert.directory.models import Student
from drillalert.drills import store as store_module
from drillalert.drills.store import DrillStore


@pytest.fixture
def store(session_factory) -> DrillStore:
    return DrillStore(session_factory)


async def _make_drill(store: DrillStore, class_name: str = "ClassA", type: str = "fire"):
    return await store.create_drill(type, class_name, f"{type} drill", "Mrs Rao")


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Writes
# ═══════════════════════════════════════════════════════════════════════════

class TestCreateDrill:
    """Test DrillStore.create_drill."""

    async def test_assigns_id_and_timestamp(self, store):
        drill = await _make_drill(store)
        assert drill.id >= 1
        assert drill.started_at is not None
        data = drill.to_dict()
        assert data["class"] == "ClassA"
        assert data["type"] == "fire"
        assert data["started_by"] == "Mrs Rao"

    async def test_ids_increase(self, store):
        first = await _make_drill(store)
        second = await _make_drill(store)
        assert second.id > first.id


class TestRecordResponse:
    """Test DrillStore.record_response."""

    async def test_first_response_is_created(self, store):
        drill = await _make_drill(store)
        response, created = await store.record_response(drill.id, 42)
        assert created is True
        assert response.drill_id == drill.id
        assert response.student_id == 42
        assert response.time is not None

    async def test_repeat_response_returns_existing(self, store):
        drill = await _make_drill(store)
        first, _ = await store.record_response(drill.id, 42)
        again, created = await store.record_response(drill.id, 42)
        assert created is False
        assert again.id == first.id
        assert len(await store.get_responses(drill.id)) == 1

    async def test_unknown_drill_is_rejected(self, store):
        with pytest.raises(ValidationError):
            await store.record_response(1, 42)
        assert await store.list_reports() == []


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Reads
# ═══════════════════════════════════════════════════════════════════════════

class TestListReports:
    """Test DrillStore.list_reports."""

    async def test_counts_responses(self, store):
        drill = await _make_drill(store)
        await store.record_response(drill.id, 1)
        await store.record_response(drill.id, 2)
        await store.record_response(drill.id, 2)

        [report] = await store.list_reports()
        assert report.drill_id == drill.id
        assert report.responses_count == 2

    async def test_new_drill_has_zero_responses(self, store):
        await _make_drill(store)
        [report] = await store.list_reports()
        assert report.responses_count == 0

    async def test_newest_first(self, store, monkeypatch):
        times = iter([
            datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc),
            datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc),
        ])
        monkeypatch.setattr(store_module, "utcnow", lambda: next(times))
        older = await _make_drill(store)
        newer = await _make_drill(store)

        assert [r.drill_id for r in await store.list_reports()] == [newer.id, older.id]

    async def test_ties_broken_by_id_desc(self, store, monkeypatch):
        fixed = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
        monkeypatch.setattr(store_module, "utcnow", lambda: fixed)
        ids = [(await _make_drill(store)).id for _ in range(3)]

        assert [r.drill_id for r in await store.list_reports()] == sorted(ids, reverse=True)


class TestGetDrill:
    """Test DrillStore.get_drill."""

    async def test_found(self, store):
        drill = await _make_drill(store)
        fetched = await store.get_drill(drill.id)
        assert fetched.to_dict() == drill.to_dict()

    async def test_missing(self, store):
        assert await store.get_drill(404) is None


class TestCurrentDrill:
    """Test DrillStore.get_current_drill."""

    async def test_latest_for_class(self, store):
        await _make_drill(store, "ClassA")
        latest = await _make_drill(store, "ClassA", type="earthquake")
        await _make_drill(store, "ClassB")

        current = await store.get_current_drill("ClassA")
        assert current.id == latest.id

    async def test_all_sentinel_applies_to_every_class(self, store):
        await _make_drill(store, "ClassA")
        school_wide = await _make_drill(store, "ALL")
        assert (await store.get_current_drill("ClassA")).id == school_wide.id
        assert (await store.get_current_drill("ClassZ")).id == school_wide.id

    async def test_none_when_no_drill(self, store):
        await _make_drill(store, "ClassB")
        assert await store.get_current_drill("ClassA") is None


class TestGetResponses:
    """Test DrillStore.get_responses."""

    async def test_joined_with_student(self, store, session_factory):
        async with session_factory() as session:
            student = Student(
                username="1RV21CS001", password="x", name="Asha", class_name="ClassA",
            )
            session.add(student)
            await session.commit()
            student_id = student.id

        drill = await _make_drill(store)
        await store.record_response(drill.id, student_id)

        [entry] = await store.get_responses(drill.id)
        data = entry.to_dict()
        assert data["student_id"] == student_id
        assert data["username"] == "1RV21CS001"
        assert data["name"] == "Asha"
        assert data["class"] == "ClassA"

    async def test_missing_student_still_listed(self, store):
        drill = await _make_drill(store)
        await store.record_response(drill.id, 999)
        [entry] = await store.get_responses(drill.id)
        assert entry.username is None
        assert entry.response.student_id == 999

    async def test_ordered_by_time(self, store):
        drill = await _make_drill(store)
        for student_id in (5, 3, 9):
            await store.record_response(drill.id, student_id)
        entries = await store.get_responses(drill.id)
        assert [e.response.student_id for e in entries] == [5, 3, 9]

    async def test_unknown_drill(self, store):
        with pytest.raises(NotFoundError):
            await store.get_responses(12345)


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Storage failures
# ═══════════════════════════════════════════════════════════════════════════

class TestStorageFailure:
    """Operations on a disposed, table-less database raise StorageError."""

    async def test_create_drill_without_tables(self, tmp_path):
        from sqlalchemy.pool import NullPool

        from drillalert.core.database import build_engine, build_session_factory

        engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}", poolclass=NullPool)
        try:
            store = DrillStore(build_session_factory(engine))
            with pytest.raises(StorageError) as exc_info:
                await store.create_drill("fire", "ClassA", "", None)
            assert exc_info.value.status_code == 503
            assert exc_info.value.details["operation"] == "create_drill"
        finally:
            await engine.dispose()
