"""
Guard Predicates

Pure boolean checks over project data. Guards never mutate the project and
never perform I/O; the engine may evaluate them any number of times per fire
attempt.

The engine sees guards as zero-argument callables, so workflow code closes
over the project data:

    builder.add_transition(
        State.IMPLEMENTATION_EXECUTING,
        State.REVIEW_ACTIVE,
        Event.ALL_TASKS_COMPLETE,
        guard=lambda: all_tasks_complete(project),
    )

Empty collections: every reusable check takes an explicit when_empty value.
An empty task list is never complete; an empty artifact list counts as
approved for the optional phases.
"""

from typing import Callable, Iterable, Optional, TypeVar

from .models import ArtifactPhase, PhaseStatus, ProjectState, TaskStatus
from .states import PHASE_NAMES

T = TypeVar("T")


# -----------------------------------------------------------------------------
# Generic Building Blocks
# -----------------------------------------------------------------------------

def all_match(items: Iterable[T], predicate: Callable[[T], bool], *, when_empty: bool) -> bool:
    """
    True if every item satisfies predicate.

    when_empty is required so each call site states what an empty
    collection means for it.
    """
    seen = False
    for item in items:
        seen = True
        if not predicate(item):
            return False
    return True if seen else when_empty


def is_done(status: TaskStatus) -> bool:
    return status in TaskStatus.terminal_states()


# -----------------------------------------------------------------------------
# Project Guards
# -----------------------------------------------------------------------------

def project_fresh(project: Optional[ProjectState]) -> bool:
    """Project data is present and no phase has been touched yet."""
    if project is None:
        return False
    return all_match(
        PHASE_NAMES,
        lambda name: project.phase(name).status == PhaseStatus.PENDING,
        when_empty=True,
    )


# -----------------------------------------------------------------------------
# Artifact Guards
# -----------------------------------------------------------------------------

def artifacts_approved(phase: ArtifactPhase, when_empty: bool = True) -> bool:
    """All artifacts of a phase approved (vacuously true by default)."""
    return all_match(phase.artifacts, lambda a: a.approved, when_empty=when_empty)


def discovery_complete(project: Optional[ProjectState]) -> bool:
    if project is None:
        return False
    return artifacts_approved(project.phases.discovery)


def design_complete(project: Optional[ProjectState]) -> bool:
    if project is None:
        return False
    return artifacts_approved(project.phases.design)


# -----------------------------------------------------------------------------
# Task Guards
# -----------------------------------------------------------------------------

def has_tasks(project: Optional[ProjectState]) -> bool:
    return project is not None and len(project.tasks) >= 1


def tasks_approved(project: Optional[ProjectState]) -> bool:
    """Human signed off on the task plan and the plan is not empty."""
    if project is None:
        return False
    return bool(project.phases.implementation.tasks_approved) and has_tasks(project)


def all_tasks_complete(project: Optional[ProjectState]) -> bool:
    """All tasks completed or abandoned. An empty task list is never complete."""
    if project is None:
        return False
    return all_match(project.tasks, lambda t: is_done(t.status), when_empty=False)


# -----------------------------------------------------------------------------
# Review Guards
# -----------------------------------------------------------------------------

def latest_review_approved(project: Optional[ProjectState], assessment: Optional[str] = None) -> bool:
    """
    The latest report of the current review iteration is approved.

    With assessment set, the report must also carry that assessment.
    """
    if project is None:
        return False
    report = project.current_review_report()
    if report is None or not report.approved:
        return False
    if assessment is not None and report.assessment.value != assessment:
        return False
    return True


# -----------------------------------------------------------------------------
# Finalize Guards
# -----------------------------------------------------------------------------

def documentation_assessed(project: Optional[ProjectState]) -> bool:
    return project is not None and bool(project.phases.finalize.documentation_assessed)


def checks_assessed(project: Optional[ProjectState]) -> bool:
    return project is not None and bool(project.phases.finalize.checks_assessed)


def project_deleted(project: Optional[ProjectState]) -> bool:
    return project is not None and bool(project.phases.finalize.project_deleted)
