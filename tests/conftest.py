"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from browser_missions.config.settings import get_settings  # noqa: E402
from browser_missions.workflow import AgentRunResult, WorkflowStore  # noqa: E402


class ScriptedRunner:
    """Agent runner returning canned outcomes keyed by prompt.

    An outcome may be a bool, an AgentRunResult, an exception instance, or a
    list of those consumed one call at a time. Unknown prompts succeed.
    """

    def __init__(self, outcomes=None):
        self.outcomes = dict(outcomes or {})
        self.calls: list[tuple[str, int]] = []

    async def run(self, prompt, max_turns, on_progress):
        self.calls.append((prompt, max_turns))
        outcome = self.outcomes.get(prompt, True)
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if len(outcome) > 1 else outcome[0]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, AgentRunResult):
            return outcome
        return AgentRunResult(success=outcome, result="ok" if outcome else "nope")

    @property
    def prompts(self) -> list[str]:
        return [prompt for prompt, _ in self.calls]


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point settings at a temp data dir and reset the settings cache."""
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("WORKFLOWS_DIR", raising=False)
    monkeypatch.delenv("AGENT_RUNNER", raising=False)
    monkeypatch.delenv("DRY_RUN", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store(tmp_path):
    """Workflow store on a temp directory."""
    return WorkflowStore(tmp_path / "workflows")


@pytest.fixture
def runner():
    return ScriptedRunner()
