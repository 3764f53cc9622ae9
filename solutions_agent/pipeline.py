from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Union

logger = logging.getLogger("solutions_hub.pipeline")

StepFn = Callable[[Any], Union[None, Awaitable[None]]]


@dataclass
class PipelineStep:
    """Named step of the per-message pipeline."""
    name: str
    fn: StepFn


class Pipeline:
    """Run named steps strictly in order over one mutable request context."""

    def __init__(self, steps: List[PipelineStep]) -> None:
        """Purpose: Initialize the runner with an ordered list of steps.
        Inputs/Outputs: Input is a list of PipelineStep; no return value.
        Side Effects / State: Stores the step list for later execution.
        Failure Modes: None; assumes valid callables in steps.
        If Removed: The agent has no ordered execution of its steps.
        Testing Notes: Provide a minimal step list and ensure order is preserved.
        """
        self._steps = steps

    async def run(self, context: Any) -> None:
        """Purpose: Execute steps in order, awaiting coroutine steps.
        Inputs/Outputs: Input is a mutable context object; no return value.
        Side Effects / State: Invokes step functions that may mutate context.
        Failure Modes: Exceptions in a step stop the run and propagate; later
            steps never execute.
        If Removed: Failed provider calls could no longer stop the history append.
        Testing Notes: Verify that a raising step halts the run.
        """
        # Steps may be sync or async; await only what returns an awaitable.
        session_id = getattr(context, "session_id", "")
        for step in self._steps:
            result = step.fn(context)
            if result is not None:
                await result
            logger.debug("session=%s step=%s status=success", session_id, step.name)
