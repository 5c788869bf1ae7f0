"""Unit tests for TurnState dataclass."""

import time
from dataclasses import FrozenInstanceError, replace

import pytest

from backend.src.models.agent import TerminationReason
from backend.src.models.agent_state import LoopPhase, TurnState
from backend.src.services.config import AgentConfig


class TestTurnStateImmutability:
    """Test that TurnState is immutable."""

    def test_frozen_prevents_attribute_change(self):
        """Verify frozen=True prevents attribute modification."""
        state = TurnState(user_id="test", config=AgentConfig())

        with pytest.raises(FrozenInstanceError):
            state.steps_used = 5

    def test_replace_returns_new_state(self):
        """replace() leaves the original untouched."""
        state = TurnState(user_id="test", config=AgentConfig())
        advanced = replace(state, steps_used=3, phase=LoopPhase.TOOL_EXECUTING)

        assert state.steps_used == 0
        assert state.phase == LoopPhase.PLANNING
        assert advanced.steps_used == 3
        assert advanced.phase == LoopPhase.TOOL_EXECUTING

    def test_fields_are_keyword_only(self):
        """Positional construction is rejected."""
        with pytest.raises(TypeError):
            TurnState("test", AgentConfig())


class TestTurnStateDerivedProperties:
    """Test derived properties of TurnState."""

    def test_is_terminal_only_when_done(self):
        state = TurnState(user_id="test", config=AgentConfig())
        assert state.is_terminal is False

        done = replace(state, phase=LoopPhase.DONE, termination_reason=TerminationReason.ANSWERED)
        assert done.is_terminal is True

    def test_elapsed_seconds(self):
        """Test elapsed_seconds calculation."""
        start = time.time() - 5.0  # 5 seconds ago
        state = TurnState(user_id="test", config=AgentConfig(), start_time=start)
        assert 4.9 <= state.elapsed_seconds <= 5.5

    def test_step_percent(self):
        state = TurnState(user_id="test", config=AgentConfig(max_steps=10), steps_used=7)
        assert state.step_percent == 70.0

    def test_near_step_limit_at_warning_threshold(self):
        config = AgentConfig(max_steps=10, step_warning_percent=80)

        assert not TurnState(user_id="t", config=config, steps_used=7).is_near_step_limit
        assert TurnState(user_id="t", config=config, steps_used=8).is_near_step_limit

    def test_budget_exhausted_at_max_steps(self):
        config = AgentConfig(max_steps=10)

        assert not TurnState(user_id="t", config=config, steps_used=9).is_budget_exhausted
        assert TurnState(user_id="t", config=config, steps_used=10).is_budget_exhausted

    def test_steps_remaining_never_negative(self):
        config = AgentConfig(max_steps=3)

        assert TurnState(user_id="t", config=config, steps_used=1).steps_remaining == 2
        assert TurnState(user_id="t", config=config, steps_used=5).steps_remaining == 0
