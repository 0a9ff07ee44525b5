"""
Lifecycle Errors

Every failure the engine, the persistence layer and the project data model
can raise. Each error carries a stable code plus structured details so an
outer surface can report it without parsing messages.
"""

from typing import Any, Dict, List, Optional

from .states import label


class LifecycleError(Exception):
    """Base lifecycle error with structured details."""
    def __init__(self, code: str, message: str, details: Dict[str, Any] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


# -----------------------------------------------------------------------------
# Transition Errors
# -----------------------------------------------------------------------------
class TransitionError(LifecycleError):
    """A fire attempt that did not apply a transition."""


class InvalidTransitionError(TransitionError):
    def __init__(self, state: Any, event: Any):
        self.state = state
        self.event = event
        super().__init__(
            code="INVALID_TRANSITION",
            message=f"Event '{label(event)}' is not valid from state '{label(state)}'",
            details={"state": label(state), "event": label(event)},
        )


class GuardRejectedError(TransitionError):
    def __init__(self, state: Any, event: Any, unmet_guards: List[str] = None):
        self.state = state
        self.event = event
        self.unmet_guards = unmet_guards or []
        message = f"Event '{label(event)}' is valid from state '{label(state)}' but guard condition is not met"
        if self.unmet_guards:
            message += ": " + "; ".join(self.unmet_guards)
        super().__init__(
            code="GUARD_REJECTED",
            message=message,
            details={
                "state": label(state),
                "event": label(event),
                "unmet_guards": self.unmet_guards,
            },
        )


class TransitionActionError(LifecycleError):
    """
    An entry or exit action raised.

    state_changed tells the caller whether the machine already moved:
    exit-action failures leave the state untouched, entry-action failures
    happen after the move and are not rolled back.
    """
    def __init__(
        self,
        from_state: Any,
        to_state: Any,
        event: Any,
        stage: str,
        state_changed: bool,
        cause: BaseException,
    ):
        self.from_state = from_state
        self.to_state = to_state
        self.event = event
        self.stage = stage
        self.state_changed = state_changed
        super().__init__(
            code="ACTION_FAILED",
            message=(
                f"{stage} action failed during '{label(event)}' "
                f"({label(from_state)} -> {label(to_state)}): {cause}"
            ),
            details={
                "from_state": label(from_state),
                "to_state": label(to_state),
                "event": label(event),
                "stage": stage,
                "state_changed": state_changed,
            },
        )


class GuidanceError(LifecycleError):
    def __init__(self, state: Any, reason: str):
        self.state = state
        super().__init__(
            code="GUIDANCE_FAILED",
            message=f"Failed to generate guidance for state {label(state)}: {reason}",
            details={"state": label(state)},
        )


class ConfigurationError(LifecycleError):
    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(code="CONFIGURATION_ERROR", message=message, details=details)


# -----------------------------------------------------------------------------
# Persistence Errors
# -----------------------------------------------------------------------------
class StateFileError(LifecycleError):
    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(
            code="STATE_FILE_INVALID",
            message=f"State file '{path}' could not be loaded: {reason}",
            details={"path": path, "reason": reason},
        )


class PersistenceError(LifecycleError):
    def __init__(self, operation: str, path: str, reason: str):
        self.operation = operation
        self.path = path
        super().__init__(
            code="SAVE_FAILED",
            message=f"Failed to {operation} '{path}': {reason}",
            details={"operation": operation, "path": path, "reason": reason},
        )


class ProjectExistsError(LifecycleError):
    def __init__(self, project_name: Optional[str] = None):
        super().__init__(
            code="PROJECT_EXISTS",
            message=f"A project already exists ({project_name})" if project_name else "A project already exists",
            details={"project_name": project_name},
        )


class NoProjectError(LifecycleError):
    def __init__(self):
        super().__init__(code="NO_PROJECT", message="No active project")


# -----------------------------------------------------------------------------
# Project Data Errors
# -----------------------------------------------------------------------------
class ProjectDataError(LifecycleError):
    """A project data operation violated a domain rule."""


class PhaseNotFoundError(ProjectDataError):
    def __init__(self, phase: str):
        super().__init__(
            code="PHASE_NOT_FOUND",
            message=f"Phase '{phase}' not found",
            details={"phase": phase},
        )


class PhaseOrderError(ProjectDataError):
    def __init__(self, phase: str, reason: str):
        super().__init__(
            code="PHASE_ORDER",
            message=f"Cannot change phase '{phase}': {reason}",
            details={"phase": phase, "reason": reason},
        )


class PhaseNotSupportedError(ProjectDataError):
    def __init__(self, phase: str, operation: str):
        super().__init__(
            code="NOT_SUPPORTED",
            message=f"Phase '{phase}' does not support {operation}",
            details={"phase": phase, "operation": operation},
        )


class TaskNotFoundError(ProjectDataError):
    def __init__(self, task_id: str):
        super().__init__(
            code="TASK_NOT_FOUND",
            message=f"Task '{task_id}' not found",
            details={"task_id": task_id},
        )


class TaskTerminalError(ProjectDataError):
    def __init__(self, task_id: str, status: str):
        super().__init__(
            code="TASK_TERMINAL",
            message=f"Task '{task_id}' is {status} and can no longer change status",
            details={"task_id": task_id, "status": status},
        )


class InvalidTaskError(ProjectDataError):
    def __init__(self, reason: str, details: Dict[str, Any] = None):
        super().__init__(code="INVALID_TASK", message=reason, details=details)


class ArtifactNotFoundError(ProjectDataError):
    def __init__(self, phase: str, path: str):
        super().__init__(
            code="ARTIFACT_NOT_FOUND",
            message=f"Artifact '{path}' not found in phase '{phase}'",
            details={"phase": phase, "path": path},
        )


class ReviewReportNotFoundError(ProjectDataError):
    def __init__(self, report_id: str):
        super().__init__(
            code="REPORT_NOT_FOUND",
            message=f"Review report '{report_id}' not found",
            details={"report_id": report_id},
        )
