"""
Lifecycle Machine

Runtime wrapper around a sealed transition table.

Key responsibilities:
- Track the current state
- Fire events: look up candidates, evaluate guards, run exit/entry actions
- Answer can_fire / permitted_triggers without side effects
- Run the guidance hook on every state entry (unless suppressed)
- Persist itself through the persistence layer

Machines are produced by MachineBuilder.build(); do not construct one
directly unless you are writing a builder.

Failure semantics for actions: exit actions run before the state changes, so
an exit failure leaves the machine where it was. Entry actions run after the
state changes and a failure there is NOT rolled back. TransitionActionError
carries state_changed so callers never have to guess.
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, FrozenSet, List, Mapping, Optional, TextIO, Tuple

from .errors import (
    GuardRejectedError,
    GuidanceError,
    InvalidTransitionError,
    TransitionActionError,
    TransitionError,
)
from .filesystem import FileSystem
from .models import ProjectState
from .persistence import write_state
from .states import label

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
logger = logging.getLogger("machine")

# -----------------------------------------------------------------------------
# Types
# -----------------------------------------------------------------------------
Guard = Callable[[], bool]
GuidanceFunc = Callable[[Any, Optional[ProjectState]], str]


@dataclass(frozen=True)
class TransitionRecord:
    """The transition in progress, handed to every entry and exit action."""
    from_state: Any
    to_state: Any
    event: Any


Action = Callable[[TransitionRecord], None]


@dataclass(frozen=True)
class Transition:
    """One registered (from_state, event) -> to_state edge."""
    from_state: Any
    to_state: Any
    event: Any
    guard: Optional[Guard] = None
    description: Optional[str] = None
    entry_actions: Tuple[Action, ...] = ()
    exit_actions: Tuple[Action, ...] = ()

    @property
    def is_conditional(self) -> bool:
        return self.guard is not None

    def guard_description(self) -> str:
        if self.description:
            return self.description
        return f"guard for {label(self.from_state)} -> {label(self.to_state)}"


# -----------------------------------------------------------------------------
# Machine
# -----------------------------------------------------------------------------

class Machine:
    """
    A built lifecycle state machine bound to one project's data.
    """

    def __init__(
        self,
        initial_state: Any,
        transitions: Mapping[Tuple[Any, Any], Tuple[Transition, ...]],
        triggers: Mapping[Any, Tuple[Any, ...]],
        state_entry_actions: Mapping[Any, Tuple[Action, ...]],
        state_exit_actions: Mapping[Any, Tuple[Action, ...]],
        known_states: FrozenSet[Any],
        project_state: Optional[ProjectState] = None,
        guidance: Optional[GuidanceFunc] = None,
        suppress_guidance: bool = False,
        fallback_state: Any = None,
        filesystem: Optional[FileSystem] = None,
        base_dir: Optional[Path] = None,
        output: Optional[TextIO] = None,
    ):
        self._state = initial_state
        self._transitions = MappingProxyType(dict(transitions))
        self._triggers = MappingProxyType(dict(triggers))
        self._state_entry_actions = MappingProxyType(dict(state_entry_actions))
        self._state_exit_actions = MappingProxyType(dict(state_exit_actions))
        self._known_states = known_states
        self._project_state = project_state
        self._guidance = guidance
        self._suppress_guidance = suppress_guidance
        self._fallback_state = initial_state if fallback_state is None else fallback_state
        self._filesystem = filesystem
        self._base_dir = base_dir
        self._output = output

    def __repr__(self) -> str:
        return f"<Machine state={label(self.state)}>"

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def state(self) -> Any:
        """
        The current state.

        Never returns a token outside the registered vocabulary; if that
        ever happens it is a bug, logged, and the fallback state is reported.
        """
        if self._state not in self._known_states:
            logger.error(
                f"Current state {self._state!r} is not a registered state, "
                f"reporting fallback {label(self._fallback_state)}"
            )
            return self._fallback_state
        return self._state

    def current_state(self) -> Any:
        return self.state

    @property
    def project_state(self) -> Optional[ProjectState]:
        return self._project_state

    def bind_project(self, project_state: Optional[ProjectState]) -> None:
        """
        Replace the project data the machine works on.

        Binding None detaches the data once a project has ended; guards that
        read project data then see no project.
        """
        self._project_state = project_state

    @property
    def filesystem(self) -> Optional[FileSystem]:
        return self._filesystem

    @property
    def base_dir(self) -> Optional[Path]:
        return self._base_dir

    @property
    def suppress_guidance(self) -> bool:
        return self._suppress_guidance

    # -------------------------------------------------------------------------
    # Transition Lookup
    # -------------------------------------------------------------------------

    def _select(self, event: Any) -> Transition:
        """
        Pick the transition fire() would apply, or raise why none applies.

        Guarded candidates are tried in registration order; the
        unconditional candidate (at most one) is the fallback.
        """
        current = self.state
        candidates = self._transitions.get((current, event))
        if not candidates:
            raise InvalidTransitionError(current, event)

        fallback = None
        unmet: List[str] = []
        for transition in candidates:
            if not transition.is_conditional:
                fallback = transition
                continue
            if transition.guard():
                return transition
            unmet.append(transition.guard_description())

        if fallback is not None:
            return fallback
        raise GuardRejectedError(current, event, unmet)

    def can_fire(self, event: Any) -> bool:
        """Whether fire(event) would currently apply a transition. No side effects."""
        try:
            self._select(event)
        except TransitionError:
            return False
        return True

    def permitted_triggers(self) -> List[Any]:
        """Events that can fire right now, in registration order."""
        return [event for event in self._triggers.get(self.state, ()) if self.can_fire(event)]

    def registered_triggers(self) -> List[Any]:
        """Every event registered from the current state, guards ignored."""
        return list(self._triggers.get(self.state, ()))

    # -------------------------------------------------------------------------
    # Firing
    # -------------------------------------------------------------------------

    def fire(self, event: Any) -> TransitionRecord:
        """
        Fire an event.

        Returns the applied TransitionRecord. Raises InvalidTransitionError,
        GuardRejectedError or TransitionActionError.
        """
        transition = self._select(event)
        record = TransitionRecord(
            from_state=transition.from_state,
            to_state=transition.to_state,
            event=transition.event,
        )

        exit_actions = self._state_exit_actions.get(record.from_state, ()) + transition.exit_actions
        try:
            for action in exit_actions:
                action(record)
        except Exception as e:
            raise TransitionActionError(
                record.from_state, record.to_state, record.event,
                stage="exit", state_changed=False, cause=e,
            ) from e

        self._state = record.to_state
        logger.info(
            f"Transition: {label(record.from_state)} -> {label(record.to_state)} "
            f"(event: {label(record.event)})"
        )

        entry_actions = self._state_entry_actions.get(record.to_state, ()) + transition.entry_actions
        try:
            self._emit_guidance(record.to_state)
            for action in entry_actions:
                action(record)
        except Exception as e:
            raise TransitionActionError(
                record.from_state, record.to_state, record.event,
                stage="entry", state_changed=True, cause=e,
            ) from e

        return record

    def _emit_guidance(self, state: Any) -> None:
        """Built-in first entry action: print contextual guidance for the new state."""
        if self._suppress_guidance or self._guidance is None:
            return
        try:
            text = self._guidance(state, self._project_state)
        except GuidanceError:
            raise
        except Exception as e:
            raise GuidanceError(state, str(e)) from e

        if text:
            print(text, file=self._output or sys.stdout)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def save(self) -> None:
        """Atomically write the current state and project data. No-op without a project."""
        write_state(
            self._project_state,
            self.state,
            fs=self._filesystem,
            base_dir=self._base_dir,
        )
