"""Workflow store - one JSON record per workflow on disk."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable
from pathlib import Path

from pydantic import ValidationError

from browser_missions.errors import StoreError, WorkflowImportError

from .models import Workflow, generate_workflow_id, now_ms

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (copy)"


class WorkflowStore:
    """CRUD persistence for workflow definitions.

    Each workflow lives in ``<workflows_dir>/<id>.json``. Writes to the same
    workflow id are serialized; there are no cross-record transactions.

    Usage:
        store = WorkflowStore()
        workflow = store.create("Daily price check")
        workflow.mission = "Open the shop and report today's price"
        store.save(workflow)
    """

    def __init__(self, workflows_dir: str | Path | None = None):
        """Initialize the store.

        Args:
            workflows_dir: Directory holding workflow records
                (default: ``Settings.workflows_dir``)
        """
        if workflows_dir is None:
            from browser_missions.config import get_settings

            workflows_dir = get_settings().workflows_dir

        self.workflows_dir = Path(workflows_dir)
        self.workflows_dir.mkdir(parents=True, exist_ok=True)

        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _path(self, workflow_id: str) -> Path:
        if not workflow_id or workflow_id.startswith(".") or any(c in workflow_id for c in "/\\"):
            raise StoreError(f"Invalid workflow id: {workflow_id!r}")
        return self.workflows_dir / f"{workflow_id}.json"

    def _lock(self, workflow_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(workflow_id)
            if lock is None:
                lock = self._locks[workflow_id] = threading.Lock()
            return lock

    def _read(self, path: Path) -> Workflow:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return Workflow.from_record(data)

    def _write(self, workflow: Workflow) -> None:
        path = self._path(workflow.id)
        fd, tmp_path = tempfile.mkstemp(dir=self.workflows_dir, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(workflow.to_record(), f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def create(self, name: str, description: str | None = None) -> Workflow:
        """Create a new, unsaved workflow with default values."""
        now = now_ms()
        return Workflow(
            id=generate_workflow_id(),
            name=name,
            description=description,
            enabled=True,
            steps=[],
            created_at=now,
            updated_at=now,
        )

    def load(self, workflow_id: str) -> Workflow | None:
        """Load a single workflow by ID.

        Returns:
            The workflow, or None if it does not exist or cannot be parsed
        """
        path = self._path(workflow_id)
        if not path.exists():
            return None

        try:
            return self._read(path)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Failed to load workflow {workflow_id}: {e}")
            return None

    def load_all(self) -> list[Workflow]:
        """Load all workflows, newest ``updated_at`` first.

        Corrupt records are skipped with a warning.
        """
        workflows = []
        for path in self.workflows_dir.glob("*.json"):
            if path.name.startswith("."):
                continue
            try:
                workflows.append(self._read(path))
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                logger.warning(f"Skipping unreadable workflow record {path.name}: {e}")

        workflows.sort(key=lambda w: w.updated_at, reverse=True)
        return workflows

    def save(self, workflow: Workflow) -> Workflow:
        """Insert or replace a workflow, stamping ``updated_at``."""
        with self._lock(workflow.id):
            workflow.updated_at = now_ms()
            self._write(workflow)
        logger.debug(f"Saved workflow {workflow.id}")
        return workflow

    def update(
        self, workflow_id: str, mutator: Callable[[Workflow], None]
    ) -> Workflow | None:
        """Read-modify-write the freshest copy of a record.

        Args:
            workflow_id: Workflow to update
            mutator: Function that mutates the loaded workflow in place

        Returns:
            The saved workflow, or None if the record no longer exists
        """
        with self._lock(workflow_id):
            workflow = self.load(workflow_id)
            if workflow is None:
                return None
            mutator(workflow)
            workflow.updated_at = now_ms()
            self._write(workflow)
        return workflow

    def delete(self, workflow_id: str) -> bool:
        """Delete a workflow. Returns False if it did not exist."""
        with self._lock(workflow_id):
            path = self._path(workflow_id)
            if not path.exists():
                return False
            try:
                path.unlink()
            except OSError as e:
                logger.error(f"Failed to delete workflow {workflow_id}: {e}")
                return False

        with self._locks_guard:
            self._locks.pop(workflow_id, None)
        logger.info(f"Deleted workflow {workflow_id}")
        return True

    def duplicate(self, workflow: Workflow) -> Workflow:
        """Deep copy a workflow under a new id. The copy is not saved."""
        now = now_ms()
        return workflow.model_copy(
            deep=True,
            update={
                "id": generate_workflow_id(),
                "name": f"{workflow.name}{COPY_SUFFIX}",
                "created_at": now,
                "updated_at": now,
            },
        )

    def export_workflow(self, workflow: Workflow) -> str:
        """Export a workflow as JSON text."""
        return json.dumps(workflow.to_record(), indent=2, ensure_ascii=False)

    def import_workflow(self, text: str) -> Workflow | None:
        """Import a workflow from JSON text.

        The imported workflow always gets a new id and fresh timestamps.
        The result is not saved.

        Returns:
            The workflow, or None if the JSON is rejected
        """
        try:
            return self.parse_import(text)
        except WorkflowImportError as e:
            logger.warning(f"Rejected workflow import: {e}")
            return None

    def parse_import(self, text: str) -> Workflow:
        """Like :meth:`import_workflow` but raises on rejection.

        Raises:
            WorkflowImportError: If ``name`` or ``steps`` is missing or malformed
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise WorkflowImportError(f"Invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise WorkflowImportError("Workflow JSON must be an object")
        if not isinstance(data.get("name"), str) or not data["name"].strip():
            raise WorkflowImportError("Missing required field: name")
        if not isinstance(data.get("steps"), list):
            raise WorkflowImportError("Missing required field: steps (must be a list)")

        now = now_ms()
        data = {**data, "id": generate_workflow_id(), "createdAt": now, "updatedAt": now}
        for key in ("created_at", "updated_at"):
            data.pop(key, None)

        try:
            return Workflow.from_record(data)
        except ValidationError as e:
            raise WorkflowImportError(f"Malformed workflow: {e}") from e
