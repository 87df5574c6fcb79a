"""Tests for the JSON workflow store."""

import json
import threading

import pytest

from browser_missions.errors import StoreError, WorkflowImportError
from browser_missions.workflow import Schedule, Workflow, WorkflowStep, WorkflowStore
from browser_missions.workflow.scheduler import calculate_next_run


def _write_raw(store, name, text):
    (store.workflows_dir / name).write_text(text, encoding="utf-8")


# =============================================================================
# Test CRUD
# =============================================================================


class TestCrud:
    """Tests for create/load/save/delete."""

    def test_default_dir_comes_from_settings(self, tmp_path):
        store = WorkflowStore()
        assert store.workflows_dir == tmp_path / "data" / "workflows"
        assert store.workflows_dir.is_dir()

    def test_create_is_not_persisted(self, store):
        workflow = store.create("Daily check", "Looks at prices")
        assert workflow.name == "Daily check"
        assert workflow.description == "Looks at prices"
        assert workflow.enabled is True
        assert workflow.steps == []
        assert workflow.created_at == workflow.updated_at
        assert store.load(workflow.id) is None

    def test_save_and_load(self, store):
        workflow = store.create("Daily check")
        workflow.mission = "Open the shop"
        store.save(workflow)

        loaded = store.load(workflow.id)
        assert loaded is not None
        assert loaded.mission == "Open the shop"
        assert loaded.to_record() == workflow.to_record()

    def test_record_is_camel_case_json(self, store):
        workflow = store.create("x")
        store.save(workflow)
        data = json.loads((store.workflows_dir / f"{workflow.id}.json").read_text())
        assert data["id"] == workflow.id
        assert "createdAt" in data and "updatedAt" in data

    def test_save_stamps_updated_at(self, store):
        workflow = store.create("x")
        workflow.updated_at = 1
        store.save(workflow)
        assert workflow.updated_at > 1
        assert store.load(workflow.id).updated_at == workflow.updated_at

    def test_save_replaces(self, store):
        workflow = store.create("x")
        store.save(workflow)
        workflow.name = "renamed"
        store.save(workflow)
        assert store.load(workflow.id).name == "renamed"
        assert [w.id for w in store.load_all()] == [workflow.id]

    def test_load_missing(self, store):
        assert store.load("wf-missing") is None

    def test_load_corrupt_returns_none(self, store):
        _write_raw(store, "wf-bad.json", "{not json")
        assert store.load("wf-bad") is None

    def test_delete(self, store):
        workflow = store.save(store.create("x"))
        assert store.delete(workflow.id)
        assert store.load(workflow.id) is None
        assert not store.delete(workflow.id)

    @pytest.mark.parametrize("bad_id", ["", "../escape", "a/b", ".hidden"])
    def test_invalid_ids_rejected(self, store, bad_id):
        with pytest.raises(StoreError):
            store.load(bad_id)


# =============================================================================
# Test load_all
# =============================================================================


class TestLoadAll:
    """Tests for listing workflows."""

    def test_empty(self, store):
        assert store.load_all() == []

    def test_sorted_newest_first(self, store):
        for name, stamp in (("old", 1000), ("new", 3000), ("mid", 2000)):
            workflow = Workflow(name=name, updated_at=stamp)
            _write_raw(store, f"{workflow.id}.json", json.dumps(workflow.to_record()))

        assert [w.name for w in store.load_all()] == ["new", "mid", "old"]

    def test_skips_corrupt_records(self, store, caplog):
        store.save(store.create("good"))
        _write_raw(store, "wf-bad.json", "[]")
        _write_raw(store, ".tmp-partial.json", "{")

        workflows = store.load_all()
        assert [w.name for w in workflows] == ["good"]
        assert "wf-bad.json" in caplog.text

    def test_keeps_records_with_default_numbers(self, store):
        workflow = Workflow(name="Hourly", mission="Check", schedule=Schedule(enabled=True))
        record = workflow.to_record()
        record["schedule"]["intervalMinutes"] = 0
        record["steps"] = [{"id": "s1", "prompt": "p", "maxTurns": 0, "retryCount": -2}]
        _write_raw(store, f"{workflow.id}.json", json.dumps(record))

        [loaded] = store.load_all()
        assert loaded.schedule.interval_minutes is None
        assert calculate_next_run(loaded) == 60 * 60 * 1000
        assert loaded.steps[0].effective_max_turns == 20
        assert loaded.steps[0].retry_count == 0


# =============================================================================
# Test update
# =============================================================================


class TestUpdate:
    """Tests for read-modify-write updates."""

    def test_mutates_freshest_copy(self, store):
        workflow = store.save(store.create("x"))
        stale = store.load(workflow.id)

        workflow.name = "renamed elsewhere"
        store.save(workflow)

        def apply(record):
            record.schedule = Schedule(enabled=True, next_run=123)

        updated = store.update(stale.id, apply)
        assert updated.name == "renamed elsewhere"
        assert updated.schedule.next_run == 123
        assert store.load(workflow.id).name == "renamed elsewhere"

    def test_missing_record(self, store):
        assert store.update("wf-gone", lambda w: None) is None

    def test_concurrent_updates_are_serialized(self, store):
        workflow = store.save(Workflow(name="counter", max_turns=1))

        def bump(record):
            record.max_turns += 1

        threads = [
            threading.Thread(target=store.update, args=(workflow.id, bump)) for _ in range(10)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert store.load(workflow.id).max_turns == 11


# =============================================================================
# Test duplicate / export / import
# =============================================================================


class TestCopyAndTransfer:
    """Tests for duplicating and moving workflows as JSON."""

    def test_duplicate(self, store):
        original = store.create("Check")
        original.steps = [WorkflowStep(id="a", prompt="p")]
        store.save(original)

        copy = store.duplicate(original)
        assert copy.id != original.id
        assert copy.name == "Check (copy)"
        assert copy.steps == original.steps
        assert copy.steps[0] is not original.steps[0]
        assert copy.created_at >= original.created_at
        assert store.load(copy.id) is None

    def test_export_is_json(self, store):
        workflow = store.create("Check")
        data = json.loads(store.export_workflow(workflow))
        assert data["name"] == "Check"
        assert data["id"] == workflow.id

    def test_import_assigns_fresh_identity(self, store):
        original = store.create("Check")
        original.created_at = original.updated_at = 5
        imported = store.import_workflow(store.export_workflow(original))

        assert imported is not None
        assert imported.id != original.id
        assert imported.name == "Check"
        assert imported.created_at > 5
        assert imported.created_at == imported.updated_at
        assert store.load(imported.id) is None

    @pytest.mark.parametrize(
        "text",
        [
            "not json",
            "[]",
            json.dumps({"steps": []}),
            json.dumps({"name": "  ", "steps": []}),
            json.dumps({"name": "x"}),
            json.dumps({"name": "x", "steps": "nope"}),
            json.dumps({"name": "x", "steps": [{"prompt": "missing id"}]}),
        ],
    )
    def test_import_rejects_malformed(self, store, text):
        assert store.import_workflow(text) is None
        with pytest.raises(WorkflowImportError):
            store.parse_import(text)

    def test_import_zero_max_turns_uses_default(self, store):
        text = json.dumps({"name": "Shop", "mission": "Open the shop", "maxTurns": 0, "steps": []})
        imported = store.import_workflow(text)

        assert imported is not None
        assert imported.max_turns is None
        assert imported.effective_max_turns == 30

    def test_import_keeps_unreadable_time(self, store):
        record = {
            "name": "Morning",
            "mission": "Check mail",
            "steps": [],
            "schedule": {"enabled": True, "type": "daily", "time": "9:00 AM"},
        }
        imported = store.import_workflow(json.dumps(record))

        assert imported is not None
        assert imported.schedule.time == "9:00 AM"
        assert imported.schedule.parsed_time() == (9, 0)
