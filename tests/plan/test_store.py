"""
Tests for the plan stores.

Both implementations share one behavioral contract, so every contract test
runs against the in-memory store and the SQL store on in-memory SQLite.
"""

import pytest
from sqlalchemy import create_engine, text

from day2ops.core.errors import StoreUnavailableError
from day2ops.plan.sql_store import SqlPlanStore
from day2ops.plan.store import InMemoryPlanStore, PlanStore, PlanTarget

TARGET = PlanTarget("default", "snapshot-s1", "m1")
OTHER = PlanTarget("default", "snapshot-s1", "m2")


@pytest.fixture(params=["memory", "sql"])
def any_store(request) -> PlanStore:
    if request.param == "memory":
        return InMemoryPlanStore()
    return SqlPlanStore.from_url("sqlite://")


class TestPlanTarget:
    def test_str(self):
        assert str(TARGET) == "default/snapshot-s1/m1"

    def test_hashable_and_equal(self):
        assert {TARGET, PlanTarget("default", "snapshot-s1", "m1")} == {TARGET}


class TestStoreContract:
    """Behavior every PlanStore implementation provides."""

    def test_satisfies_protocol(self, any_store):
        assert isinstance(any_store, PlanStore)

    def test_missing_record_reads_none(self, any_store):
        assert any_store.read(TARGET) is None

    def test_write_then_read(self, any_store):
        any_store.write(TARGET, b"plan-1")
        record = any_store.read(TARGET)
        assert record.plan == b"plan-1"
        assert record.applied_checksum is None
        assert record.failed_checksum is None

    def test_rewrite_keeps_reported_fields(self, any_store):
        """Writing a new plan never clears what the executor reported."""
        any_store.write(TARGET, b"plan-1")
        any_store.report_applied(TARGET, "abc", b"out")
        any_store.write(TARGET, b"plan-2")

        record = any_store.read(TARGET)
        assert record.plan == b"plan-2"
        assert record.applied_checksum == "abc"
        assert record.applied_output == b"out"

    def test_report_failed(self, any_store):
        any_store.write(TARGET, b"plan-1")
        any_store.report_failed(TARGET, "def", b"err")
        record = any_store.read(TARGET)
        assert record.failed_checksum == "def"
        assert record.failed_output == b"err"
        assert record.applied_checksum is None

    def test_records_are_per_machine(self, any_store):
        any_store.write(TARGET, b"a")
        any_store.write(OTHER, b"b")
        assert any_store.read(TARGET).plan == b"a"
        assert any_store.read(OTHER).plan == b"b"

    def test_grant_revoke(self, any_store):
        assert not any_store.is_granted(TARGET)
        any_store.grant(TARGET)
        assert any_store.is_granted(TARGET)
        assert not any_store.is_granted(OTHER)
        any_store.revoke(TARGET)
        assert not any_store.is_granted(TARGET)

    def test_grant_and_revoke_idempotent(self, any_store):
        any_store.grant(TARGET)
        any_store.grant(TARGET)
        assert any_store.is_granted(TARGET)
        any_store.revoke(TARGET)
        any_store.revoke(TARGET)
        assert not any_store.is_granted(TARGET)

    def test_revoke_plan_covers_every_machine(self, any_store):
        """Revoking by plan name needs no machine list."""
        elsewhere = PlanTarget("ops", "snapshot-s1", "m1")
        other_plan = PlanTarget("default", "restore-r1", "m1")
        for target in (TARGET, OTHER, elsewhere, other_plan):
            any_store.grant(target)

        assert any_store.revoke_plan("default", "snapshot-s1") == 2

        assert not any_store.is_granted(TARGET)
        assert not any_store.is_granted(OTHER)
        assert any_store.is_granted(elsewhere)
        assert any_store.is_granted(other_plan)

    def test_revoke_plan_without_grants(self, any_store):
        assert any_store.revoke_plan("default", "snapshot-s1") == 0


class TestInMemoryPlanStore:
    def test_read_returns_copy(self):
        store = InMemoryPlanStore()
        store.write(TARGET, b"plan")
        store.read(TARGET).plan = b"changed"
        assert store.read(TARGET).plan == b"plan"

    def test_write_count(self):
        store = InMemoryPlanStore()
        store.write(TARGET, b"plan")
        store.write(TARGET, b"plan")
        assert store.write_count == 2

    def test_grants_snapshot(self):
        store = InMemoryPlanStore()
        store.grant(TARGET)
        assert store.grants() == {TARGET}


class TestSqlPlanStore:
    def test_list_targets(self):
        store = SqlPlanStore.from_url("sqlite://")
        store.write(OTHER, b"b")
        store.write(TARGET, b"a")
        store.write(PlanTarget("ops", "restore-r1", "m0"), b"c")

        assert store.list_targets() == [
            TARGET,
            OTHER,
            PlanTarget("ops", "restore-r1", "m0"),
        ]
        assert store.list_targets("ops") == [PlanTarget("ops", "restore-r1", "m0")]

    def test_persists_across_instances(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'plans.db'}"
        SqlPlanStore.from_url(url).write(TARGET, b"plan")
        assert SqlPlanStore.from_url(url).read(TARGET).plan == b"plan"

    def test_database_failure_is_store_unavailable(self):
        engine = create_engine("sqlite://")
        store = SqlPlanStore(engine, create_tables=False)

        with pytest.raises(StoreUnavailableError) as exc_info:
            store.read(TARGET)

        assert exc_info.value.retryable is True
        assert exc_info.value.cause is not None

    def test_tables_created(self):
        store = SqlPlanStore.from_url("sqlite://")
        with store.engine.connect() as conn:
            names = {
                row[0]
                for row in conn.execute(text("SELECT name FROM sqlite_master WHERE type='table'"))
            }
        assert {"plan_records", "plan_grants"} <= names
