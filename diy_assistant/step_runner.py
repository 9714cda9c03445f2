from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger("diyassist.steps")

ContextT = TypeVar("ContextT")


@dataclass
class PipelineStep(Generic[ContextT]):
    """Named step; skip_if is consulted unless always_run is set."""
    name: str
    fn: Callable[[ContextT], None]
    skip_if: Optional[Callable[[ContextT], bool]] = None
    always_run: bool = False


class StepRunner(Generic[ContextT]):
    """Runs pipeline steps in order against one mutable context."""

    def __init__(self, steps: List[PipelineStep[ContextT]]) -> None:
        self._steps = steps

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self._steps]

    def run(self, context: ContextT) -> None:
        """Purpose: Execute steps in order with optional skip/always-run rules.
        Inputs/Outputs: Input is a mutable context object; no return value.
        Side Effects / State: Invokes step functions that mutate the context.
        Dependencies: Depends on PipelineStep.fn and PipelineStep.skip_if semantics.
        Failure Modes: Exceptions raised by a step propagate to the caller; steps that
            must not abort the run catch their own errors and record them on the context.
        Testing Notes: Verify skip_if and always_run ordering with recording steps.
        """
        for step in self._steps:
            if not step.always_run and step.skip_if and step.skip_if(context):
                logger.debug("step=%s status=skipped", step.name)
                continue
            logger.debug("step=%s status=running", step.name)
            step.fn(context)
