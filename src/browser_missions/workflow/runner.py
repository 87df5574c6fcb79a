"""Agent runner protocol - the seam between workflows and the browser agent."""

from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from browser_missions.errors import AgentRunnerError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


@dataclass
class AgentRunResult:
    """Verdict of one agent run."""

    success: bool
    result: str = ""

    @classmethod
    def coerce(cls, value: Any) -> AgentRunResult:
        """Accept an AgentRunResult or a ``{"success", "result"}`` mapping."""
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            return cls(success=bool(value.get("success")), result=str(value.get("result") or ""))
        raise TypeError(f"Agent runner returned unsupported value: {value!r}")


@runtime_checkable
class AgentRunner(Protocol):
    """Executes one natural-language instruction against a live browser.

    Implementations own their turn loop, their AI provider and any deadline
    enforcement. ``on_progress`` receives free-text progress lines while the
    agent works. Raising is allowed and is treated as a failed run.
    """

    async def run(
        self, prompt: str, max_turns: int, on_progress: ProgressCallback
    ) -> AgentRunResult:
        """Run ``prompt`` for at most ``max_turns`` agent iterations."""


class DryRunAgentRunner:
    """Runner that pretends every instruction succeeds.

    Used to rehearse a workflow's branch graph without a browser.
    """

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.prompts: list[str] = []

    async def run(
        self, prompt: str, max_turns: int, on_progress: ProgressCallback
    ) -> AgentRunResult:
        self.prompts.append(prompt)
        on_progress(f"[dry run] {prompt} (max {max_turns} turns)")
        if self.delay:
            await asyncio.sleep(self.delay)
        return AgentRunResult(success=True, result=f"[dry run] {prompt}")


def load_agent_runner(path: str, **kwargs) -> AgentRunner:
    """Import an agent runner from ``'package.module:attribute'``.

    The attribute may be a runner instance, a class, or a zero-argument
    factory. Classes and factories are called with ``kwargs``.

    Raises:
        AgentRunnerError: If the path cannot be imported or does not yield
            an object with an async ``run`` method.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise AgentRunnerError(
            f"Invalid agent runner path '{path}', expected 'module:attribute'",
            {"path": path},
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise AgentRunnerError(f"Failed to import {module_name}: {e}", {"path": path}) from e

    target = getattr(module, attr, None)
    if target is None:
        raise AgentRunnerError(f"{module_name} has no attribute '{attr}'", {"path": path})

    runner = target(**kwargs) if callable(target) and not hasattr(target, "run") else target
    if inspect.isclass(runner):
        runner = runner(**kwargs)

    if not isinstance(runner, AgentRunner) or not inspect.iscoroutinefunction(runner.run):
        raise AgentRunnerError(
            f"{path} does not provide an async run(prompt, max_turns, on_progress)",
            {"path": path},
        )

    logger.info(f"Loaded agent runner: {path}")
    return runner
