"""
Project Data Model

The structured project data the lifecycle engine carries around and persists.
The engine treats it as opaque; guards read it, entry/exit actions and the
outer surface mutate it between a load and the following save.

Invariants enforced here:
- Task IDs are three-digit, gap-numbered (010, 020, ...) and unique
- Completed and abandoned tasks are terminal
- Iteration counters only ever increase
- At most one phase is in progress, and every phase before it is
  completed or skipped
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from .errors import (
    ArtifactNotFoundError,
    InvalidTaskError,
    PhaseNotFoundError,
    PhaseNotSupportedError,
    PhaseOrderError,
    ProjectDataError,
    ReviewReportNotFoundError,
    TaskNotFoundError,
    TaskTerminalError,
)
from .states import PHASE_NAMES, State

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
logger = logging.getLogger("models")

# -----------------------------------------------------------------------------
# Constants
# -----------------------------------------------------------------------------
TASK_ID_GAP = 10
TASK_ID_MIN = 10
TASK_ID_MAX = 990

OPTIONAL_PHASES = ("discovery", "design")
ARTIFACT_PHASES = ("discovery", "design")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class TaskStatus(str, Enum):
    """Status of an implementation task."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    @classmethod
    def terminal_states(cls) -> Set["TaskStatus"]:
        """Statuses a task can never leave."""
        return {cls.COMPLETED, cls.ABANDONED}


class PhaseStatus(str, Enum):
    """Status of a lifecycle phase."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"

    @classmethod
    def finished_states(cls) -> Set["PhaseStatus"]:
        return {cls.COMPLETED, cls.SKIPPED}


class Assessment(str, Enum):
    """Outcome recorded in a review report."""
    PASS = "pass"
    FAIL = "fail"


# -----------------------------------------------------------------------------
# Collection Items
# -----------------------------------------------------------------------------

class Artifact(BaseModel):
    """A phase output that needs explicit human approval."""
    path: str
    approved: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    type: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Task(BaseModel):
    """An implementation task."""
    id: str
    name: str
    status: TaskStatus = TaskStatus.PENDING
    parallel: Optional[bool] = None
    iteration: int = 1
    assigned_agent: Optional[str] = None
    dependencies: Optional[List[str]] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TaskStatus.terminal_states()


class ReviewReport(BaseModel):
    """A review report with its pass/fail assessment."""
    id: str
    path: str
    assessment: Assessment
    iteration: int = 1
    approved: bool = False
    created_at: datetime = Field(default_factory=utcnow)


# -----------------------------------------------------------------------------
# Phases
# -----------------------------------------------------------------------------

class Phase(BaseModel):
    """Fields shared by every phase block."""
    enabled: bool = False
    status: PhaseStatus = PhaseStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class ArtifactPhase(Phase):
    """Discovery and design: human-led phases that produce artifacts."""
    artifacts: List[Artifact] = Field(default_factory=list)


class ImplementationPhase(Phase):
    tasks: List[Task] = Field(default_factory=list)
    tasks_approved: Optional[bool] = None


class ReviewPhase(Phase):
    iteration: Optional[int] = None
    reports: List[ReviewReport] = Field(default_factory=list)


class FinalizePhase(Phase):
    documentation_assessed: Optional[bool] = None
    checks_assessed: Optional[bool] = None
    project_deleted: Optional[bool] = None
    pr_url: Optional[str] = None


class Phases(BaseModel):
    discovery: ArtifactPhase = Field(default_factory=ArtifactPhase)
    design: ArtifactPhase = Field(default_factory=ArtifactPhase)
    implementation: ImplementationPhase = Field(default_factory=ImplementationPhase)
    review: ReviewPhase = Field(default_factory=ReviewPhase)
    finalize: FinalizePhase = Field(default_factory=FinalizePhase)


# -----------------------------------------------------------------------------
# Project State
# -----------------------------------------------------------------------------

class Statechart(BaseModel):
    """Mirror of the engine's current state, refreshed on every save."""
    current_state: str = State.NO_PROJECT.value


class ProjectInfo(BaseModel):
    name: str
    branch: str
    description: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    github_issue: Optional[int] = None


class ProjectState(BaseModel):
    """
    The complete persisted project document.

    Mutating methods raise ProjectDataError subclasses and leave the document
    untouched when a rule is broken.
    """
    statechart: Statechart = Field(default_factory=Statechart)
    project: ProjectInfo
    phases: Phases = Field(default_factory=Phases)

    def touch(self) -> None:
        self.project.updated_at = utcnow()

    # -------------------------------------------------------------------------
    # Phase Management
    # -------------------------------------------------------------------------

    def phase(self, name: str) -> Phase:
        if name not in PHASE_NAMES:
            raise PhaseNotFoundError(name)
        return getattr(self.phases, name)

    def active_phase(self) -> Optional[str]:
        """Name of the phase currently in progress, if any."""
        for name in PHASE_NAMES:
            if self.phase(name).status == PhaseStatus.IN_PROGRESS:
                return name
        return None

    def enable_phase(self, name: str) -> Phase:
        phase = self.phase(name)
        if phase.status in PhaseStatus.finished_states():
            raise PhaseOrderError(name, f"phase is already {phase.status.value}")
        phase.enabled = True
        self.touch()
        return phase

    def start_phase(self, name: str) -> Phase:
        """Mark a phase in progress. Idempotent for the active phase."""
        phase = self.phase(name)
        if phase.status == PhaseStatus.IN_PROGRESS:
            return phase
        if phase.status in PhaseStatus.finished_states():
            raise PhaseOrderError(name, f"phase is already {phase.status.value}")

        active = self.active_phase()
        if active is not None:
            raise PhaseOrderError(name, f"phase '{active}' is still in progress")

        for prior in PHASE_NAMES[:PHASE_NAMES.index(name)]:
            prior_status = self.phase(prior).status
            if prior_status not in PhaseStatus.finished_states():
                raise PhaseOrderError(name, f"preceding phase '{prior}' is {prior_status.value}")

        phase.enabled = True
        phase.status = PhaseStatus.IN_PROGRESS
        if phase.started_at is None:
            phase.started_at = utcnow()
        self.touch()
        logger.debug(f"Phase started: {name}")
        return phase

    def complete_phase(self, name: str) -> Phase:
        phase = self.phase(name)
        if phase.status != PhaseStatus.IN_PROGRESS:
            raise PhaseOrderError(name, f"phase is {phase.status.value}, not in_progress")
        phase.status = PhaseStatus.COMPLETED
        phase.completed_at = utcnow()
        self.touch()
        logger.debug(f"Phase completed: {name}")
        return phase

    def skip_phase(self, name: str) -> Phase:
        phase = self.phase(name)
        if name not in OPTIONAL_PHASES:
            raise PhaseNotSupportedError(name, "skip")
        if phase.status != PhaseStatus.PENDING:
            raise PhaseOrderError(name, f"phase is already {phase.status.value}")
        phase.enabled = False
        phase.status = PhaseStatus.SKIPPED
        self.touch()
        return phase

    def reopen_phase(self, name: str) -> Phase:
        """
        Put a finished phase back in progress.

        Every later phase is reset to pending so the phase ordering still
        holds. Used by the review loop-back.
        """
        phase = self.phase(name)
        if phase.status == PhaseStatus.PENDING:
            raise PhaseOrderError(name, f"phase is {phase.status.value}, nothing to reopen")

        for later in PHASE_NAMES[PHASE_NAMES.index(name) + 1:]:
            later_phase = self.phase(later)
            later_phase.status = PhaseStatus.PENDING
            later_phase.started_at = None
            later_phase.completed_at = None

        phase.status = PhaseStatus.IN_PROGRESS
        phase.completed_at = None
        self.touch()
        return phase

    # -------------------------------------------------------------------------
    # Artifacts
    # -------------------------------------------------------------------------

    def _artifact_phase(self, name: str) -> ArtifactPhase:
        phase = self.phase(name)
        if name not in ARTIFACT_PHASES:
            raise PhaseNotSupportedError(name, "artifacts")
        return phase

    def add_artifact(
        self,
        phase_name: str,
        path: str,
        artifact_type: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Artifact:
        phase = self._artifact_phase(phase_name)
        if any(a.path == path for a in phase.artifacts):
            raise ProjectDataError(
                code="ARTIFACT_EXISTS",
                message=f"Artifact '{path}' already exists in phase '{phase_name}'",
                details={"phase": phase_name, "path": path},
            )
        artifact = Artifact(path=path, type=artifact_type, metadata=metadata or {})
        phase.artifacts.append(artifact)
        self.touch()
        return artifact

    def approve_artifact(self, phase_name: str, path: str) -> Artifact:
        phase = self._artifact_phase(phase_name)
        for artifact in phase.artifacts:
            if artifact.path == path:
                artifact.approved = True
                self.touch()
                return artifact
        raise ArtifactNotFoundError(phase_name, path)

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    @property
    def tasks(self) -> List[Task]:
        return self.phases.implementation.tasks

    def next_task_id(self) -> str:
        """Next gap-numbered ID: the highest numeric ID plus the gap."""
        highest = 0
        for task in self.tasks:
            try:
                highest = max(highest, int(task.id))
            except ValueError:
                continue
        return f"{highest + TASK_ID_GAP:03d}"

    @staticmethod
    def validate_task_id(task_id: str) -> None:
        if len(task_id) != 3 or not task_id.isdigit():
            raise InvalidTaskError(
                f"Invalid task ID '{task_id}': must be 3 digits (e.g. '010', '020')",
                details={"task_id": task_id},
            )
        if not TASK_ID_MIN <= int(task_id) <= TASK_ID_MAX:
            raise InvalidTaskError(
                f"Invalid task ID '{task_id}': must be between 010 and 990",
                details={"task_id": task_id},
            )

    def add_task(
        self,
        name: str,
        task_id: Optional[str] = None,
        parallel: Optional[bool] = None,
        dependencies: Optional[List[str]] = None,
        assigned_agent: Optional[str] = None,
    ) -> Task:
        task_id = task_id or self.next_task_id()
        self.validate_task_id(task_id)

        existing = {t.id for t in self.tasks}
        if task_id in existing:
            raise InvalidTaskError(f"Task '{task_id}' already exists", details={"task_id": task_id})
        for dep in dependencies or []:
            if dep not in existing:
                raise InvalidTaskError(
                    f"Dependency task '{dep}' not found",
                    details={"task_id": task_id, "dependency": dep},
                )

        task = Task(
            id=task_id,
            name=name,
            parallel=parallel,
            dependencies=list(dependencies) if dependencies else None,
            assigned_agent=assigned_agent,
        )
        self.tasks.append(task)
        self.touch()
        logger.debug(f"Task added: {task_id} ({name})")
        return task

    def get_task(self, task_id: str) -> Task:
        for task in self.tasks:
            if task.id == task_id:
                return task
        raise TaskNotFoundError(task_id)

    def set_task_status(self, task_id: str, status: Any) -> Task:
        task = self.get_task(task_id)
        try:
            new_status = TaskStatus(status)
        except ValueError:
            raise InvalidTaskError(
                f"Invalid status '{status}': must be one of "
                + ", ".join(s.value for s in TaskStatus),
                details={"task_id": task_id, "status": str(status)},
            )
        if task.is_terminal:
            raise TaskTerminalError(task_id, task.status.value)

        now = utcnow()
        task.status = new_status
        if new_status == TaskStatus.IN_PROGRESS and task.started_at is None:
            task.started_at = now
        elif new_status in TaskStatus.terminal_states():
            task.completed_at = now
            if task.started_at is None:
                task.started_at = now
        self.touch()
        return task

    def increment_task_iteration(self, task_id: str) -> int:
        task = self.get_task(task_id)
        task.iteration += 1
        self.touch()
        return task.iteration

    def approve_tasks(self) -> None:
        if not self.tasks:
            raise InvalidTaskError("Cannot approve an empty task plan")
        self.phases.implementation.tasks_approved = True
        self.touch()

    def task_summary(self) -> Dict[str, int]:
        summary = {status.value: 0 for status in TaskStatus}
        for task in self.tasks:
            summary[task.status.value] += 1
        return summary

    # -------------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------------

    @property
    def review_iteration(self) -> int:
        return self.phases.review.iteration or 1

    def increment_review_iteration(self) -> int:
        self.phases.review.iteration = self.review_iteration + 1
        self.touch()
        return self.phases.review.iteration

    def add_review_report(self, path: str, assessment: Any) -> ReviewReport:
        try:
            value = Assessment(assessment)
        except ValueError:
            raise ProjectDataError(
                code="INVALID_ASSESSMENT",
                message=f"Invalid assessment '{assessment}': must be 'pass' or 'fail'",
                details={"assessment": str(assessment)},
            )
        reports = self.phases.review.reports
        report = ReviewReport(
            id=f"{len(reports) + 1:03d}",
            path=path,
            assessment=value,
            iteration=self.review_iteration,
        )
        reports.append(report)
        self.touch()
        return report

    def approve_review_report(self, report_id: str) -> ReviewReport:
        for report in self.phases.review.reports:
            if report.id == report_id:
                report.approved = True
                self.touch()
                return report
        raise ReviewReportNotFoundError(report_id)

    def latest_review_report(self) -> Optional[ReviewReport]:
        reports = self.phases.review.reports
        return reports[-1] if reports else None

    def current_review_report(self) -> Optional[ReviewReport]:
        """Latest report filed during the current review iteration."""
        report = self.latest_review_report()
        if report is None or report.iteration != self.review_iteration:
            return None
        return report


# -----------------------------------------------------------------------------
# Factory
# -----------------------------------------------------------------------------

def new_project_state(name: str, branch: str, description: str = "") -> ProjectState:
    """
    Fresh project data for a new project.

    Discovery and design start disabled and pending until the decision
    states enable or skip them; the remaining phases are required.
    """
    now = utcnow()
    return ProjectState(
        project=ProjectInfo(
            name=name,
            branch=branch,
            description=description,
            created_at=now,
            updated_at=now,
        ),
        phases=Phases(
            discovery=ArtifactPhase(created_at=now),
            design=ArtifactPhase(created_at=now),
            implementation=ImplementationPhase(enabled=True, created_at=now),
            review=ReviewPhase(enabled=True, created_at=now, iteration=1),
            finalize=FinalizePhase(enabled=True, created_at=now),
        ),
    )
