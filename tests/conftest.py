"""
Pytest configuration for phaseflow tests.

This module provides:
1. Common fixtures (filesystems, project data, machines)
2. Helpers that drive the standard workflow to a given point
"""

import pytest

from phaseflow.filesystem import MemoryFileSystem
from phaseflow.models import ProjectState, new_project_state
from phaseflow.states import Event, State
from phaseflow.workflow import build_standard_machine


# -----------------------------------------------------------------------------
# Test Constants
# -----------------------------------------------------------------------------
TEST_PROJECT_NAME = "auth-rework"
TEST_BRANCH = "feat/auth-rework"
TEST_DESCRIPTION = "Replace session auth with tokens"

STATE_FILE = "project/state.yaml"


# -----------------------------------------------------------------------------
# Common Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def memory_fs() -> MemoryFileSystem:
    """Empty in-memory filesystem rooted at the state directory."""
    return MemoryFileSystem()


@pytest.fixture
def project() -> ProjectState:
    """Fresh project data."""
    return new_project_state(TEST_PROJECT_NAME, TEST_BRANCH, TEST_DESCRIPTION)


@pytest.fixture
def machine(project, memory_fs):
    """Standard workflow machine at DiscoveryDecision, guidance suppressed."""
    m = build_standard_machine(project, suppress_guidance=True, filesystem=memory_fs)
    m.fire(Event.PROJECT_INIT)
    return m


# -----------------------------------------------------------------------------
# Workflow Helpers
# -----------------------------------------------------------------------------
def drive_to_executing(machine, task_names=("Write migration", "Update handlers")):
    """Skip discovery and design, plan tasks and approve them."""
    project = machine.project_state
    machine.fire(Event.SKIP_DISCOVERY)
    machine.fire(Event.SKIP_DESIGN)
    for name in task_names:
        project.add_task(name)
    project.approve_tasks()
    machine.fire(Event.TASKS_APPROVED)
    assert machine.state == State.IMPLEMENTATION_EXECUTING


def drive_to_review(machine):
    drive_to_executing(machine)
    project = machine.project_state
    for task in project.tasks:
        project.set_task_status(task.id, "completed")
    machine.fire(Event.ALL_TASKS_COMPLETE)
    assert machine.state == State.REVIEW_ACTIVE


def file_review(project, assessment, approve=True):
    report = project.add_review_report(f"review/{project.review_iteration:02d}.md", assessment)
    if approve:
        project.approve_review_report(report.id)
    return report
