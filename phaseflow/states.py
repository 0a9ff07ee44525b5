"""
Lifecycle Vocabulary

Closed sets of states and events for the standard project lifecycle.

States:
    NoProject → DiscoveryDecision → (DiscoveryActive) → DesignDecision →
    (DesignActive) → ImplementationPlanning → ImplementationExecuting →
    ReviewActive → FinalizeDocumentation → FinalizeChecks → FinalizeDelete →
    NoProject
    (ReviewActive loops back to ImplementationPlanning on a failed review)

The values are persisted verbatim in the state file. Do not rename them.
"""

from enum import Enum
from typing import Any, Dict, Optional, Set


# -----------------------------------------------------------------------------
# States
# -----------------------------------------------------------------------------

class State(str, Enum):
    """
    Lifecycle states.

    The engine never inspects these beyond equality; the classification
    helpers below exist for callers.
    """
    NO_PROJECT = "NoProject"
    DISCOVERY_DECISION = "DiscoveryDecision"
    DISCOVERY_ACTIVE = "DiscoveryActive"
    DESIGN_DECISION = "DesignDecision"
    DESIGN_ACTIVE = "DesignActive"
    IMPLEMENTATION_PLANNING = "ImplementationPlanning"
    IMPLEMENTATION_EXECUTING = "ImplementationExecuting"
    REVIEW_ACTIVE = "ReviewActive"
    FINALIZE_DOCUMENTATION = "FinalizeDocumentation"
    FINALIZE_CHECKS = "FinalizeChecks"
    FINALIZE_DELETE = "FinalizeDelete"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def human_led_states(cls) -> Set["State"]:
        """States where a human leads and the orchestrator facilitates."""
        return {
            cls.DISCOVERY_DECISION,
            cls.DISCOVERY_ACTIVE,
            cls.DESIGN_DECISION,
            cls.DESIGN_ACTIVE,
        }

    @classmethod
    def autonomous_states(cls) -> Set["State"]:
        """States that execute without waiting on human direction."""
        return {
            cls.IMPLEMENTATION_PLANNING,
            cls.IMPLEMENTATION_EXECUTING,
            cls.REVIEW_ACTIVE,
            cls.FINALIZE_DOCUMENTATION,
            cls.FINALIZE_CHECKS,
            cls.FINALIZE_DELETE,
        }

    def requires_human_leadership(self) -> bool:
        return self in State.human_led_states()

    def is_autonomous(self) -> bool:
        return self in State.autonomous_states()


# -----------------------------------------------------------------------------
# Events
# -----------------------------------------------------------------------------

class Event(str, Enum):
    """
    Triggers that may cause a transition.

    An event does nothing unless a (state, event) pair was registered.
    """
    PROJECT_INIT = "project_init"
    ENABLE_DISCOVERY = "enable_discovery"
    SKIP_DISCOVERY = "skip_discovery"
    COMPLETE_DISCOVERY = "complete_discovery"
    ENABLE_DESIGN = "enable_design"
    SKIP_DESIGN = "skip_design"
    COMPLETE_DESIGN = "complete_design"
    TASKS_APPROVED = "tasks_approved"
    ALL_TASKS_COMPLETE = "all_tasks_complete"
    REVIEW_PASS = "review_pass"
    REVIEW_FAIL = "review_fail"
    DOCUMENTATION_DONE = "documentation_done"
    CHECKS_DONE = "checks_done"
    PROJECT_DELETE = "project_delete"

    def __str__(self) -> str:
        return self.value


# -----------------------------------------------------------------------------
# Phase Mapping
# -----------------------------------------------------------------------------

PHASE_NAMES = ("discovery", "design", "implementation", "review", "finalize")

STATE_PHASES: Dict[State, str] = {
    State.DISCOVERY_DECISION: "discovery",
    State.DISCOVERY_ACTIVE: "discovery",
    State.DESIGN_DECISION: "design",
    State.DESIGN_ACTIVE: "design",
    State.IMPLEMENTATION_PLANNING: "implementation",
    State.IMPLEMENTATION_EXECUTING: "implementation",
    State.REVIEW_ACTIVE: "review",
    State.FINALIZE_DOCUMENTATION: "finalize",
    State.FINALIZE_CHECKS: "finalize",
    State.FINALIZE_DELETE: "finalize",
}


def phase_for_state(state: State) -> Optional[str]:
    """Return the phase a state belongs to, or None for NoProject."""
    return STATE_PHASES.get(state)


def label(token: Any) -> str:
    """String form of a state or event token, enum member or plain value."""
    if isinstance(token, Enum):
        return str(token.value)
    return str(token)
