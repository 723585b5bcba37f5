import json

import pytest

from core.errors import ConfigValidationError
from engine.runner import run_simulation
from engine.snapshot import InMemorySnapshotStore, Snapshot, create_snapshot, validate_snapshot


@pytest.fixture
def run(small_config):
    return run_simulation(small_config)


class TestSnapshot:

    def test_create_snapshot_is_valid(self, run):
        snap = create_snapshot(run, tenant_id="t-acme", timestamp=1_700_000_000_000)
        assert snap.run_id == run.run_id
        assert snap.decision_id == "dec-2"
        result = validate_snapshot(snap.to_dict())
        assert result.is_valid, result.summary()

    def test_round_trip_through_json(self, run):
        snap = create_snapshot(run, tenant_id="t-acme", timestamp=1)
        restored = Snapshot.from_dict(json.loads(json.dumps(snap.to_dict())))
        assert restored.run_id == snap.run_id
        assert restored.results == snap.results
        assert restored.config == snap.config

    @pytest.mark.parametrize("field_name,value,error_field", [
        ("runId", "run-xyz", "runId"),
        ("tenantId", "acme", "tenantId"),
        ("runs", 50, "runs"),
        ("achievedSpearman", 1.5, "achievedSpearman"),
        ("bayes", {"varKey": "d", "muN": 1.0, "sigmaN": -1.0, "applied": True}, "bayes.sigmaN"),
        ("copula", {"k": 2, "targetSet": True, "froErr": -0.1}, "copula.froErr"),
        ("metricsByOption", {}, "metricsByOption"),
    ])
    def test_schema_violations(self, run, field_name, value, error_field):
        data = create_snapshot(run, tenant_id="t-acme", timestamp=1).to_dict()
        data[field_name] = value
        result = validate_snapshot(data)
        assert error_field in [e.field for e in result.errors]

    def test_missing_metric_field(self, run):
        data = create_snapshot(run, tenant_id="t-acme", timestamp=1).to_dict()
        del data["metricsByOption"]["opt-a"]["var95"]
        result = validate_snapshot(data)
        assert [e.field for e in result.errors] == ["metricsByOption[opt-a].var95"]


class TestInMemorySnapshotStore:

    def test_duplicate_run_id_returns_existing(self, run):
        store = InMemorySnapshotStore()
        first = store.create(create_snapshot(run, tenant_id="t-acme", timestamp=1))
        second = store.create(create_snapshot(run, tenant_id="t-acme", timestamp=2))
        assert second is first
        assert len(store) == 1

    def test_same_run_from_two_tenants_kept_apart(self, run):
        store = InMemorySnapshotStore()
        acme = store.create(create_snapshot(run, tenant_id="t-acme", timestamp=1))
        globex = store.create(create_snapshot(run, tenant_id="t-globex", timestamp=2))
        assert globex is not acme
        assert globex.tenant_id == "t-globex"
        assert len(store) == 2

    def test_run_count_outside_snapshot_range_rejected(self, small_config):
        run = run_simulation(small_config.evolve(runs=50))
        assert any("snapshot" in w for w in run.diagnostics.warnings)
        with pytest.raises(ConfigValidationError, match="runs"):
            InMemorySnapshotStore().create(create_snapshot(run, tenant_id="t-acme", timestamp=1))

    def test_list_and_latest_by_decision(self, small_config):
        store = InMemorySnapshotStore()
        older = create_snapshot(run_simulation(small_config), tenant_id="t-acme", timestamp=10)
        newer = create_snapshot(
            run_simulation(small_config.evolve(seed=8)), tenant_id="t-acme", timestamp=20
        )
        store.create(older)
        store.create(newer)
        assert [s.timestamp for s in store.list_by_decision("t-acme", "dec-2")] == [20, 10]
        assert store.get_latest_by_decision("t-acme", "dec-2") is newer
        assert store.get_latest_by_decision("t-acme", "missing") is None
        assert store.get_latest_by_decision("t-other", "dec-2") is None

    def test_get_and_delete(self, run):
        store = InMemorySnapshotStore()
        snap = store.create(create_snapshot(run, tenant_id="t-acme", timestamp=1))
        assert store.get("t-acme", snap.run_id) is snap
        assert store.get("t-other", snap.run_id) is None
        assert store.delete("t-acme", snap.run_id)
        assert store.get("t-acme", snap.run_id) is None
        assert not store.delete("t-acme", snap.run_id)

    def test_invalid_snapshot_rejected(self, run):
        store = InMemorySnapshotStore()
        with pytest.raises(ConfigValidationError, match="tenantId"):
            store.create(create_snapshot(run, tenant_id="acme", timestamp=1))
