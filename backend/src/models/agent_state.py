"""Turn state for the library agent's bounded loop."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..services.config import AgentConfig
from .agent import TerminationReason


class LoopPhase(str, Enum):
    """States of one user turn."""
    PLANNING = "planning"
    TOOL_EXECUTING = "tool_executing"
    RESPONDING = "responding"
    BUDGET_EXHAUSTED = "budget_exhausted"
    DONE = "done"


@dataclass(frozen=True, kw_only=True)
class TurnState:
    """Immutable state of a single user turn.

    ``steps_used`` counts completed planning -> tool-execution rounds; it is
    the quantity bounded by ``config.max_steps``.
    """
    user_id: str
    config: AgentConfig

    phase: LoopPhase = LoopPhase.PLANNING
    steps_used: int = 0
    planning_calls: int = 0
    start_time: float = field(default_factory=time.time)
    termination_reason: Optional[TerminationReason] = None

    @property
    def is_terminal(self) -> bool:
        """Return True once the turn has ended."""
        return self.phase == LoopPhase.DONE

    @property
    def elapsed_seconds(self) -> float:
        """Return seconds elapsed since the turn started."""
        return time.time() - self.start_time

    @property
    def step_percent(self) -> float:
        """Return percentage of the step budget used."""
        return (self.steps_used / self.config.max_steps) * 100

    @property
    def is_near_step_limit(self) -> bool:
        """Return True if approaching the step budget (warning threshold)."""
        return self.step_percent >= self.config.step_warning_percent

    @property
    def is_budget_exhausted(self) -> bool:
        """Return True if no further tool-execution round is allowed."""
        return self.steps_used >= self.config.max_steps

    @property
    def steps_remaining(self) -> int:
        return max(0, self.config.max_steps - self.steps_used)
