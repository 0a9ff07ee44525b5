"""
Unit Tests for the Lifecycle Machine

Test coverage for:
- Unguarded and guarded transitions
- Guard evaluation order and unconditional fallback
- can_fire / permitted_triggers agreement with fire
- Entry/exit action ordering around guidance
- Guidance suppression
- Action failure semantics
- Fallback state for inconsistent bookkeeping
- A custom workflow built on the generic engine
"""

import io
import logging
from enum import Enum

import pytest

from phaseflow.builder import MachineBuilder
from phaseflow.errors import (
    GuardRejectedError,
    GuidanceError,
    InvalidTransitionError,
    TransitionActionError,
    TransitionError,
)
from phaseflow.guards import artifacts_approved
from phaseflow.machine import TransitionRecord


class Door(str, Enum):
    CLOSED = "Closed"
    OPEN = "Open"
    LOCKED = "Locked"
    JAMMED = "Jammed"


class Action(str, Enum):
    OPEN = "open"
    CLOSE = "close"
    LOCK = "lock"
    KICK = "kick"


def door_machine(**kwargs):
    has_key = kwargs.pop("has_key", lambda: True)
    return (
        MachineBuilder(Door.CLOSED, **kwargs)
        .add_transition(Door.CLOSED, Door.OPEN, Action.OPEN)
        .add_transition(Door.OPEN, Door.CLOSED, Action.CLOSE)
        .add_transition(Door.CLOSED, Door.LOCKED, Action.LOCK, guard=has_key, description="holding the key")
        .build()
    )


# -----------------------------------------------------------------------------
# Firing
# -----------------------------------------------------------------------------
class TestFire:

    def test_unguarded_transition(self):
        machine = door_machine()
        record = machine.fire(Action.OPEN)
        assert machine.state == Door.OPEN
        assert record == TransitionRecord(Door.CLOSED, Door.OPEN, Action.OPEN)

    def test_unguarded_from_every_source(self):
        machine = door_machine()
        for _ in range(3):
            machine.fire(Action.OPEN)
            assert machine.current_state() == Door.OPEN
            machine.fire(Action.CLOSE)
            assert machine.current_state() == Door.CLOSED

    def test_unregistered_event(self):
        machine = door_machine()
        with pytest.raises(InvalidTransitionError) as exc_info:
            machine.fire(Action.CLOSE)
        assert exc_info.value.code == "INVALID_TRANSITION"
        assert exc_info.value.details == {"state": "Closed", "event": "close"}
        assert machine.state == Door.CLOSED

    def test_false_guard_rejected(self):
        machine = door_machine(has_key=lambda: False)
        with pytest.raises(GuardRejectedError) as exc_info:
            machine.fire(Action.LOCK)
        assert machine.state == Door.CLOSED
        assert exc_info.value.unmet_guards == ["holding the key"]
        assert "holding the key" in str(exc_info.value)

    def test_guard_reevaluated_each_fire(self):
        key = {"held": False}
        machine = door_machine(has_key=lambda: key["held"])
        with pytest.raises(GuardRejectedError):
            machine.fire(Action.LOCK)
        key["held"] = True
        machine.fire(Action.LOCK)
        assert machine.state == Door.LOCKED


class TestGuardOrdering:

    def build(self, first, second, fallback=False):
        builder = (
            MachineBuilder(Door.CLOSED)
            .add_transition(Door.CLOSED, Door.OPEN, Action.KICK, guard=first, description="first")
            .add_transition(Door.CLOSED, Door.JAMMED, Action.KICK, guard=second, description="second")
        )
        if fallback:
            builder.add_transition(Door.CLOSED, Door.LOCKED, Action.KICK)
        return builder.build()

    def test_first_passing_guard_wins(self):
        machine = self.build(lambda: True, lambda: True)
        assert machine.fire(Action.KICK).to_state == Door.OPEN

    def test_later_guard_when_earlier_fails(self):
        machine = self.build(lambda: False, lambda: True)
        assert machine.fire(Action.KICK).to_state == Door.JAMMED

    def test_unconditional_fallback(self):
        machine = self.build(lambda: False, lambda: False, fallback=True)
        assert machine.fire(Action.KICK).to_state == Door.LOCKED

    def test_guarded_preferred_over_unconditional(self):
        builder = (
            MachineBuilder(Door.CLOSED)
            .add_transition(Door.CLOSED, Door.LOCKED, Action.KICK)
            .add_transition(Door.CLOSED, Door.JAMMED, Action.KICK, guard=lambda: True)
        )
        assert builder.build().fire(Action.KICK).to_state == Door.JAMMED

    def test_all_unmet_guards_reported(self):
        machine = self.build(lambda: False, lambda: False)
        with pytest.raises(GuardRejectedError) as exc_info:
            machine.fire(Action.KICK)
        assert exc_info.value.unmet_guards == ["first", "second"]

    def test_default_guard_description(self):
        machine = (
            MachineBuilder(Door.CLOSED)
            .add_transition(Door.CLOSED, Door.OPEN, Action.OPEN, guard=lambda: False)
            .build()
        )
        with pytest.raises(GuardRejectedError) as exc_info:
            machine.fire(Action.OPEN)
        assert exc_info.value.unmet_guards == ["guard for Closed -> Open"]


# -----------------------------------------------------------------------------
# Introspection
# -----------------------------------------------------------------------------
class TestIntrospection:

    def test_permitted_matches_can_fire(self):
        machine = door_machine(has_key=lambda: False)
        permitted = machine.permitted_triggers()
        assert permitted == [e for e in Action if machine.can_fire(e)]
        assert permitted == [Action.OPEN]

    def test_non_permitted_fire_fails(self):
        machine = door_machine(has_key=lambda: False)
        for event in Action:
            if event not in machine.permitted_triggers():
                with pytest.raises(TransitionError):
                    machine.fire(event)
        assert machine.state == Door.CLOSED

    def test_registration_order(self):
        machine = door_machine()
        assert machine.permitted_triggers() == [Action.OPEN, Action.LOCK]

    def test_registered_triggers_ignore_guards(self):
        machine = door_machine(has_key=lambda: False)
        assert machine.registered_triggers() == [Action.OPEN, Action.LOCK]

    def test_can_fire_has_no_side_effects(self):
        calls = []
        machine = (
            MachineBuilder(Door.CLOSED)
            .add_transition(Door.CLOSED, Door.OPEN, Action.OPEN, on_exit=[calls.append], on_entry=[calls.append])
            .build()
        )
        assert machine.can_fire(Action.OPEN)
        assert not machine.can_fire(Action.CLOSE)
        assert calls == []
        assert machine.state == Door.CLOSED

    def test_state_accepts_plain_string_events(self):
        machine = door_machine()
        assert machine.can_fire("open")
        machine.fire("open")
        assert machine.state == Door.OPEN


# -----------------------------------------------------------------------------
# Actions and Guidance
# -----------------------------------------------------------------------------
class TestActionOrdering:

    def build(self, calls, **kwargs):
        def guidance(state, project):
            calls.append("guidance")
            return ""

        builder = MachineBuilder(Door.CLOSED, None, guidance, **kwargs)
        builder.configure_state(Door.CLOSED).on_exit(lambda r: calls.append("state_exit"))
        builder.configure_state(Door.OPEN).on_entry(lambda r: calls.append("state_entry"))
        builder.add_transition(
            Door.CLOSED, Door.OPEN, Action.OPEN,
            on_exit=[lambda r: calls.append("transition_exit")],
            on_entry=[lambda r: calls.append("transition_entry")],
        )
        return builder.build()

    def test_order(self):
        calls = []
        self.build(calls).fire(Action.OPEN)
        assert calls == [
            "state_exit",
            "transition_exit",
            "guidance",
            "state_entry",
            "transition_entry",
        ]

    def test_suppression_skips_guidance_only(self):
        calls = []
        machine = self.build(calls, suppress_guidance=True)
        machine.fire(Action.OPEN)
        assert calls == ["state_exit", "transition_exit", "state_entry", "transition_entry"]
        assert machine.state == Door.OPEN

    def test_actions_receive_record(self):
        seen = []
        machine = (
            MachineBuilder(Door.CLOSED)
            .add_transition(Door.CLOSED, Door.OPEN, Action.OPEN, on_entry=[seen.append])
            .build()
        )
        machine.fire(Action.OPEN)
        assert seen == [TransitionRecord(Door.CLOSED, Door.OPEN, Action.OPEN)]

    def test_guidance_written_to_output(self):
        out = io.StringIO()
        machine = door_machine(guidance=lambda state, project: f"Door is {state.value}", output=out)
        machine.fire(Action.OPEN)
        assert out.getvalue() == "Door is Open\n"

    def test_guidance_receives_project_state(self, project):
        seen = []
        machine = (
            MachineBuilder(Door.CLOSED, project, lambda state, p: seen.append(p) or "")
            .add_transition(Door.CLOSED, Door.OPEN, Action.OPEN)
            .build()
        )
        machine.fire(Action.OPEN)
        assert seen == [project]


class TestActionFailures:

    def test_exit_failure_keeps_state(self):
        def boom(record):
            raise RuntimeError("disk full")

        machine = (
            MachineBuilder(Door.CLOSED)
            .add_transition(Door.CLOSED, Door.OPEN, Action.OPEN, on_exit=[boom])
            .build()
        )
        with pytest.raises(TransitionActionError) as exc_info:
            machine.fire(Action.OPEN)
        assert machine.state == Door.CLOSED
        assert exc_info.value.stage == "exit"
        assert exc_info.value.state_changed is False
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_entry_failure_advances_state(self):
        later = []

        def boom(record):
            raise ValueError("bad data")

        machine = (
            MachineBuilder(Door.CLOSED)
            .add_transition(Door.CLOSED, Door.OPEN, Action.OPEN, on_entry=[boom, later.append])
            .build()
        )
        with pytest.raises(TransitionActionError) as exc_info:
            machine.fire(Action.OPEN)
        assert machine.state == Door.OPEN
        assert exc_info.value.state_changed is True
        assert exc_info.value.to_state == Door.OPEN
        assert exc_info.value.code == "ACTION_FAILED"
        assert later == []

    def test_guidance_failure(self):
        entered = []

        def guidance(state, project):
            raise KeyError("template")

        machine = (
            MachineBuilder(Door.CLOSED, None, guidance)
            .add_transition(Door.CLOSED, Door.OPEN, Action.OPEN, on_entry=[entered.append])
            .build()
        )
        with pytest.raises(TransitionActionError) as exc_info:
            machine.fire(Action.OPEN)

        cause = exc_info.value.__cause__
        assert isinstance(cause, GuidanceError)
        assert cause.state == Door.OPEN
        assert isinstance(cause.__cause__, KeyError)
        assert entered == []

    def test_guidance_error_passed_through(self):
        def guidance(state, project):
            raise GuidanceError(state, "no template")

        machine = door_machine(guidance=guidance)
        with pytest.raises(TransitionActionError) as exc_info:
            machine.fire(Action.OPEN)
        assert "no template" in str(exc_info.value.__cause__)


class TestFallbackState:

    def test_unknown_current_state_reports_fallback(self, caplog):
        machine = door_machine(fallback_state=Door.CLOSED)
        machine.fire(Action.OPEN)
        machine._state = "Demolished"

        with caplog.at_level(logging.ERROR, logger="machine"):
            assert machine.state == Door.CLOSED

        assert "Demolished" in caplog.text


# -----------------------------------------------------------------------------
# Custom Workflow
# -----------------------------------------------------------------------------
class PlanState(str, Enum):
    NO_PROJECT = "NoProject"
    PLANNING_DECISION = "PlanningDecision"
    IMPLEMENTING = "Implementing"


class PlanEvent(str, Enum):
    PROJECT_INIT = "project_init"
    COMPLETE_PLANNING = "complete_planning"


class TestCustomWorkflow:
    """The engine only compares tokens, so any enum works as a vocabulary."""

    def build(self, project):
        plan = project.phases.design
        return (
            MachineBuilder(PlanState.NO_PROJECT, project)
            .add_transition(PlanState.NO_PROJECT, PlanState.PLANNING_DECISION, PlanEvent.PROJECT_INIT)
            .add_transition(
                PlanState.PLANNING_DECISION,
                PlanState.IMPLEMENTING,
                PlanEvent.COMPLETE_PLANNING,
                guard=lambda: artifacts_approved(plan, when_empty=False),
                description="planning artifacts approved",
            )
            .build()
        )

    def test_planning_requires_approved_artifacts(self, project):
        machine = self.build(project)
        machine.fire(PlanEvent.PROJECT_INIT)
        assert machine.state == PlanState.PLANNING_DECISION

        with pytest.raises(GuardRejectedError):
            machine.fire(PlanEvent.COMPLETE_PLANNING)

        project.add_artifact("design", "plan/tasks.md")
        with pytest.raises(GuardRejectedError):
            machine.fire(PlanEvent.COMPLETE_PLANNING)
        assert machine.state == PlanState.PLANNING_DECISION

        project.approve_artifact("design", "plan/tasks.md")
        machine.fire(PlanEvent.COMPLETE_PLANNING)
        assert machine.state == PlanState.IMPLEMENTING
