"""
Machine Builder

Fluent, chainable registration of transitions and per-state actions.

    machine = (
        MachineBuilder(State.NO_PROJECT, project, guidance)
        .add_transition(State.NO_PROJECT, State.DISCOVERY_DECISION, Event.PROJECT_INIT)
        .add_transition(
            State.DISCOVERY_ACTIVE,
            State.DESIGN_DECISION,
            Event.COMPLETE_DISCOVERY,
            guard=lambda: discovery_complete(project),
            description="all discovery artifacts approved",
        )
        .build()
    )

Rules:
- At most one unconditional transition per (from_state, event), checked at build()
- Any number of guarded transitions per (from_state, event), evaluated in order
- A builder is single use: after build() every method raises ConfigurationError
"""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, TextIO, Tuple

from .errors import ConfigurationError
from .filesystem import FileSystem
from .machine import Action, Guard, Machine, Transition
from .models import ProjectState
from .states import label

logger = logging.getLogger("builder")


def _as_guidance_func(guidance: Any) -> Optional[Callable]:
    """Accept either a plain callable or an object with a generate() method."""
    if guidance is None:
        return None
    generate = getattr(guidance, "generate", None)
    if callable(generate):
        return generate
    if callable(guidance):
        return guidance
    raise ConfigurationError(
        "Guidance must be callable or provide a generate(state, project) method",
        details={"type": type(guidance).__name__},
    )


class StateConfiguration:
    """
    Per-state actions that run on every entry to / exit from a state,
    whichever transition caused it.
    """

    def __init__(self, builder: "MachineBuilder", state: Any):
        self._builder = builder
        self.state = state

    def on_entry(self, action: Action) -> "StateConfiguration":
        self._builder._check_open()
        self._builder._state_entry_actions.setdefault(self.state, []).append(action)
        return self

    def on_exit(self, action: Action) -> "StateConfiguration":
        self._builder._check_open()
        self._builder._state_exit_actions.setdefault(self.state, []).append(action)
        return self


class MachineBuilder:
    """Collects transitions, then seals them into a Machine."""

    def __init__(
        self,
        initial_state: Any,
        project_state: Optional[ProjectState] = None,
        guidance: Any = None,
        *,
        suppress_guidance: bool = False,
        fallback_state: Any = None,
        filesystem: Optional[FileSystem] = None,
        base_dir: Optional[Path] = None,
        output: Optional[TextIO] = None,
    ):
        self._initial_state = initial_state
        self._project_state = project_state
        self._guidance = _as_guidance_func(guidance)
        self._suppress_guidance = suppress_guidance
        self._fallback_state = fallback_state
        self._filesystem = filesystem
        self._base_dir = base_dir
        self._output = output

        self._transitions: List[Transition] = []
        self._state_entry_actions: Dict[Any, List[Action]] = {}
        self._state_exit_actions: Dict[Any, List[Action]] = {}
        self._built = False

    def _check_open(self) -> None:
        if self._built:
            raise ConfigurationError("Builder has already been built; create a new one")

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def add_transition(
        self,
        from_state: Any,
        to_state: Any,
        event: Any,
        *,
        guard: Optional[Guard] = None,
        description: Optional[str] = None,
        on_entry: Iterable[Action] = (),
        on_exit: Iterable[Action] = (),
    ) -> "MachineBuilder":
        """
        Register a transition.

        on_entry actions run after the state changes (after guidance),
        on_exit actions run before it changes.
        """
        self._check_open()
        if guard is not None and not callable(guard):
            raise ConfigurationError(
                f"Guard for {label(from_state)} -> {label(to_state)} on '{label(event)}' is not callable",
                details={"from_state": label(from_state), "event": label(event)},
            )
        self._transitions.append(Transition(
            from_state=from_state,
            to_state=to_state,
            event=event,
            guard=guard,
            description=description,
            entry_actions=tuple(on_entry),
            exit_actions=tuple(on_exit),
        ))
        return self

    def configure_state(self, state: Any) -> StateConfiguration:
        self._check_open()
        return StateConfiguration(self, state)

    def suppress_guidance(self, suppress: bool = True) -> "MachineBuilder":
        """Turn off the guidance entry action (used when restoring a saved state)."""
        self._check_open()
        self._suppress_guidance = suppress
        return self

    # -------------------------------------------------------------------------
    # Build
    # -------------------------------------------------------------------------

    def build(self) -> Machine:
        self._check_open()

        table: Dict[Tuple[Any, Any], List[Transition]] = {}
        triggers: Dict[Any, List[Any]] = {}
        known_states = {self._initial_state}
        if self._fallback_state is not None:
            known_states.add(self._fallback_state)
        known_states.update(self._state_entry_actions)
        known_states.update(self._state_exit_actions)

        for transition in self._transitions:
            key = (transition.from_state, transition.event)
            candidates = table.setdefault(key, [])
            if not transition.is_conditional and any(not c.is_conditional for c in candidates):
                raise ConfigurationError(
                    f"Duplicate unconditional transition from {label(transition.from_state)} "
                    f"on '{label(transition.event)}'",
                    details={
                        "from_state": label(transition.from_state),
                        "event": label(transition.event),
                    },
                )
            candidates.append(transition)

            state_triggers = triggers.setdefault(transition.from_state, [])
            if transition.event not in state_triggers:
                state_triggers.append(transition.event)
            known_states.add(transition.from_state)
            known_states.add(transition.to_state)

        self._built = True
        logger.debug(
            f"Built machine: {len(self._transitions)} transitions, "
            f"{len(known_states)} states, initial {label(self._initial_state)}"
        )

        return Machine(
            initial_state=self._initial_state,
            transitions={key: tuple(value) for key, value in table.items()},
            triggers={state: tuple(events) for state, events in triggers.items()},
            state_entry_actions={s: tuple(a) for s, a in self._state_entry_actions.items()},
            state_exit_actions={s: tuple(a) for s, a in self._state_exit_actions.items()},
            known_states=frozenset(known_states),
            project_state=self._project_state,
            guidance=self._guidance,
            suppress_guidance=self._suppress_guidance,
            fallback_state=self._fallback_state,
            filesystem=self._filesystem,
            base_dir=self._base_dir,
            output=self._output,
        )
