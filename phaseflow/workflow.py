"""
Standard Project Workflow

Wires the standard lifecycle onto the generic machine:

    NoProject -> DiscoveryDecision -> [DiscoveryActive] -> DesignDecision ->
    [DesignActive] -> ImplementationPlanning -> ImplementationExecuting ->
    ReviewActive -> FinalizeDocumentation -> FinalizeChecks -> FinalizeDelete ->
    NoProject

A failed review loops back to ImplementationPlanning. project_delete from
any state before FinalizeDelete abandons the project.

Entry actions keep the phase bookkeeping in the project data in step with
the machine state.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Optional, TextIO

from . import config
from .builder import MachineBuilder
from .errors import ProjectDataError, ProjectExistsError, StateFileError
from .filesystem import FileSystem
from .guards import (
    all_tasks_complete,
    checks_assessed,
    design_complete,
    discovery_complete,
    documentation_assessed,
    latest_review_approved,
    project_deleted,
    project_fresh,
    tasks_approved,
)
from .guidance import TemplateGuidanceGenerator
from .machine import Machine, TransitionRecord
from .models import Assessment, ProjectState, new_project_state
from .persistence import delete_state, read_state, state_exists
from .states import Event, State, label

logger = logging.getLogger("workflow")


def _resolve_suppress(suppress_guidance: Optional[bool]) -> bool:
    return config.SUPPRESS_GUIDANCE if suppress_guidance is None else suppress_guidance


# -----------------------------------------------------------------------------
# Phase Actions
# -----------------------------------------------------------------------------

def _phase_action(
    project: Callable[[], Optional[ProjectState]],
    *steps: Callable[[ProjectState], Any],
) -> Callable[[TransitionRecord], None]:
    def action(record: TransitionRecord) -> None:
        data = project()
        for step in steps:
            step(data)
    return action


def _start(name):
    return lambda p: p.start_phase(name)


def _complete(name):
    return lambda p: p.complete_phase(name)


def _skip(name):
    return lambda p: p.skip_phase(name)


def _loop_back_to_planning(project: ProjectState) -> None:
    project.increment_review_iteration()
    project.reopen_phase("implementation")
    project.phases.implementation.tasks_approved = None
    logger.info(f"Review failed, starting iteration {project.review_iteration}")


# -----------------------------------------------------------------------------
# Machine Construction
# -----------------------------------------------------------------------------

def build_standard_machine(
    project_state: Optional[ProjectState],
    initial_state: Optional[State] = None,
    guidance: Any = None,
    *,
    suppress_guidance: Optional[bool] = None,
    filesystem: Optional[FileSystem] = None,
    base_dir: Optional[Path] = None,
    output: Optional[TextIO] = None,
) -> Machine:
    """
    Build the standard lifecycle machine bound to project_state.

    guidance defaults to the built-in TemplateGuidanceGenerator.
    """
    builder = MachineBuilder(
        initial_state or State.NO_PROJECT,
        project_state,
        guidance if guidance is not None else TemplateGuidanceGenerator(),
        suppress_guidance=_resolve_suppress(suppress_guidance),
        fallback_state=State.NO_PROJECT,
        filesystem=filesystem,
        base_dir=base_dir,
        output=output,
    )

    # Guards and actions read the project bound to the machine at call time.
    def p() -> Optional[ProjectState]:
        return machine.project_state

    builder.add_transition(
        State.NO_PROJECT, State.DISCOVERY_DECISION, Event.PROJECT_INIT,
        guard=lambda: project_fresh(p()),
        description="fresh project data present",
    )

    # Discovery
    builder.add_transition(
        State.DISCOVERY_DECISION, State.DISCOVERY_ACTIVE, Event.ENABLE_DISCOVERY,
        on_entry=[_phase_action(p, _start("discovery"))],
    )
    builder.add_transition(
        State.DISCOVERY_DECISION, State.DESIGN_DECISION, Event.SKIP_DISCOVERY,
        on_entry=[_phase_action(p, _skip("discovery"))],
    )
    builder.add_transition(
        State.DISCOVERY_ACTIVE, State.DESIGN_DECISION, Event.COMPLETE_DISCOVERY,
        guard=lambda: discovery_complete(p()),
        description="all discovery artifacts approved",
        on_entry=[_phase_action(p, _complete("discovery"))],
    )

    # Design
    builder.add_transition(
        State.DESIGN_DECISION, State.DESIGN_ACTIVE, Event.ENABLE_DESIGN,
        on_entry=[_phase_action(p, _start("design"))],
    )
    builder.add_transition(
        State.DESIGN_DECISION, State.IMPLEMENTATION_PLANNING, Event.SKIP_DESIGN,
        on_entry=[_phase_action(p, _skip("design"), _start("implementation"))],
    )
    builder.add_transition(
        State.DESIGN_ACTIVE, State.IMPLEMENTATION_PLANNING, Event.COMPLETE_DESIGN,
        guard=lambda: design_complete(p()),
        description="all design artifacts approved",
        on_entry=[_phase_action(p, _complete("design"), _start("implementation"))],
    )

    # Implementation
    builder.add_transition(
        State.IMPLEMENTATION_PLANNING, State.IMPLEMENTATION_EXECUTING, Event.TASKS_APPROVED,
        guard=lambda: tasks_approved(p()),
        description="task plan approved and not empty",
    )
    builder.add_transition(
        State.IMPLEMENTATION_EXECUTING, State.REVIEW_ACTIVE, Event.ALL_TASKS_COMPLETE,
        guard=lambda: all_tasks_complete(p()),
        description="every task completed or abandoned",
        on_entry=[_phase_action(p, _complete("implementation"), _start("review"))],
    )

    # Review
    builder.add_transition(
        State.REVIEW_ACTIVE, State.FINALIZE_DOCUMENTATION, Event.REVIEW_PASS,
        guard=lambda: latest_review_approved(p(), Assessment.PASS.value),
        description="latest review report approved with a pass assessment",
        on_entry=[_phase_action(p, _complete("review"), _start("finalize"))],
    )
    builder.add_transition(
        State.REVIEW_ACTIVE, State.IMPLEMENTATION_PLANNING, Event.REVIEW_FAIL,
        guard=lambda: latest_review_approved(p(), Assessment.FAIL.value),
        description="latest review report approved with a fail assessment",
        on_entry=[_phase_action(p, _loop_back_to_planning)],
    )

    # Finalize
    builder.add_transition(
        State.FINALIZE_DOCUMENTATION, State.FINALIZE_CHECKS, Event.DOCUMENTATION_DONE,
        guard=lambda: documentation_assessed(p()),
        description="documentation assessed",
    )
    builder.add_transition(
        State.FINALIZE_CHECKS, State.FINALIZE_DELETE, Event.CHECKS_DONE,
        guard=lambda: checks_assessed(p()),
        description="checks assessed",
    )
    builder.add_transition(
        State.FINALIZE_DELETE, State.NO_PROJECT, Event.PROJECT_DELETE,
        guard=lambda: project_deleted(p()),
        description="project marked deleted",
        on_entry=[_phase_action(p, _complete("finalize"))],
    )

    # Abandon from anywhere else
    for state in State:
        if state in (State.NO_PROJECT, State.FINALIZE_DELETE):
            continue
        builder.add_transition(state, State.NO_PROJECT, Event.PROJECT_DELETE)

    machine = builder.build()
    return machine


# -----------------------------------------------------------------------------
# Lifecycle Entry Points
# -----------------------------------------------------------------------------

def load(
    fs: Optional[FileSystem] = None,
    *,
    base_dir: Optional[Path] = None,
    guidance: Any = None,
    suppress_guidance: Optional[bool] = None,
    output: Optional[TextIO] = None,
) -> Machine:
    """
    Restore the machine from the state file.

    No file means no project: the machine starts at NoProject with no
    project data.
    """
    project = read_state(fs, base_dir)
    initial = State.NO_PROJECT
    if project is not None:
        stored = project.statechart.current_state
        try:
            initial = State(stored)
        except ValueError:
            path = config.STATE_FILE_RELATIVE if fs is not None else str(config.state_file_path(base_dir))
            raise StateFileError(path, f"unknown state '{stored}'")
        logger.debug(f"Loaded project '{project.project.name}' at {initial}")

    return build_standard_machine(
        project,
        initial,
        guidance,
        suppress_guidance=suppress_guidance,
        filesystem=fs,
        base_dir=base_dir,
        output=output,
    )


def create_project(
    name: str,
    branch: str,
    description: str = "",
    *,
    fs: Optional[FileSystem] = None,
    base_dir: Optional[Path] = None,
    guidance: Any = None,
    suppress_guidance: Optional[bool] = None,
    output: Optional[TextIO] = None,
) -> Machine:
    """Create a project, fire project_init and save. Fails if one already exists."""
    if not name or not name.strip():
        raise ProjectDataError(code="INVALID_PROJECT", message="Project name is required")
    if not branch or not branch.strip():
        raise ProjectDataError(code="INVALID_PROJECT", message="Branch is required")
    if state_exists(fs, base_dir):
        raise ProjectExistsError()

    project = new_project_state(name.strip(), branch.strip(), description)
    machine = build_standard_machine(
        project,
        State.NO_PROJECT,
        guidance,
        suppress_guidance=suppress_guidance,
        filesystem=fs,
        base_dir=base_dir,
        output=output,
    )
    machine.fire(Event.PROJECT_INIT)
    machine.save()
    logger.info(f"Project created: {project.project.name} (branch: {project.project.branch})")
    return machine


def fire_and_save(machine: Machine, event: Any) -> TransitionRecord:
    """
    Fire an event and persist the outcome.

    Landing back in NoProject ends the project: the state file is removed
    instead of rewritten and the project data is unbound from the machine.
    A new project needs fresh data bound before project_init.
    """
    record = machine.fire(event)
    if machine.state == State.NO_PROJECT:
        delete_state(machine.filesystem, machine.base_dir)
        machine.bind_project(None)
        logger.info(f"Project ended via '{label(record.event)}' from {label(record.from_state)}")
    else:
        machine.save()
    return record
