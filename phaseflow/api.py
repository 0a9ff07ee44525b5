"""
HTTP API for the Project Lifecycle

FastAPI routes for:
- Project status and creation
- Firing lifecycle events
- Artifact, task, review report and finalize bookkeeping

Every request loads the state file, applies one change and saves. Errors
are returned with the lifecycle error's code and details as the HTTP detail.
"""

import logging
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from . import __version__, config
from .errors import (
    ArtifactNotFoundError,
    GuardRejectedError,
    InvalidTransitionError,
    LifecycleError,
    NoProjectError,
    PhaseNotFoundError,
    ProjectDataError,
    ProjectExistsError,
    ReviewReportNotFoundError,
    TaskNotFoundError,
)
from .filesystem import FileSystem, RootedFileSystem
from .machine import Machine
from .states import Event, phase_for_state
from .workflow import create_project, fire_and_save, load

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
logger = logging.getLogger("phaseflow_api")

router = APIRouter(prefix="/project", tags=["project"])


# -----------------------------------------------------------------------------
# Request Models
# -----------------------------------------------------------------------------

class InitProjectRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Project name")
    branch: str = Field(..., min_length=1, description="Git branch the project lives on")
    description: str = ""


class AddArtifactRequest(BaseModel):
    path: str = Field(..., min_length=1)
    type: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ApproveArtifactRequest(BaseModel):
    path: str = Field(..., min_length=1)


class AddTaskRequest(BaseModel):
    name: str = Field(..., min_length=1)
    id: Optional[str] = None
    parallel: Optional[bool] = None
    dependencies: Optional[List[str]] = None
    assigned_agent: Optional[str] = None


class UpdateTaskRequest(BaseModel):
    status: str


class AddReportRequest(BaseModel):
    path: str = Field(..., min_length=1)
    assessment: str = Field(..., description="pass or fail")


class FinalizeRequest(BaseModel):
    documentation_assessed: Optional[bool] = None
    checks_assessed: Optional[bool] = None
    project_deleted: Optional[bool] = None
    pr_url: Optional[str] = None


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def get_filesystem() -> FileSystem:
    """State filesystem dependency; tests override it with a MemoryFileSystem."""
    return RootedFileSystem(config.state_dir())


_NOT_FOUND = (
    PhaseNotFoundError,
    TaskNotFoundError,
    ArtifactNotFoundError,
    ReviewReportNotFoundError,
    NoProjectError,
)


def _http_error(e: LifecycleError) -> HTTPException:
    if isinstance(e, _NOT_FOUND):
        status_code = 404
    elif isinstance(e, (InvalidTransitionError, ProjectExistsError)):
        status_code = 409
    elif isinstance(e, GuardRejectedError):
        status_code = 412
    elif isinstance(e, ProjectDataError):
        status_code = 400
    else:
        status_code = 500
    if status_code == 500:
        logger.error(f"{e.code}: {e.message}")
    return HTTPException(status_code=status_code, detail=e.to_dict())


def _status(machine: Machine) -> Dict[str, Any]:
    project = machine.project_state
    state = machine.state
    return {
        "state": state.value,
        "phase": phase_for_state(state),
        "permitted_triggers": [e.value for e in machine.permitted_triggers()],
        "project": project.model_dump(mode="json", exclude_none=True) if project else None,
    }


def _load_project(fs: FileSystem) -> Machine:
    machine = load(fs, suppress_guidance=True)
    if machine.project_state is None:
        raise NoProjectError()
    return machine


def _mutate(fs: FileSystem, change) -> Dict[str, Any]:
    """Load, apply a project data change, save and return the new status."""
    try:
        machine = _load_project(fs)
        change(machine.project_state)
        machine.save()
    except LifecycleError as e:
        raise _http_error(e)
    return _status(machine)


# -----------------------------------------------------------------------------
# Status & Lifecycle
# -----------------------------------------------------------------------------

@router.get("")
def get_project(fs: FileSystem = Depends(get_filesystem)):
    try:
        machine = load(fs, suppress_guidance=True)
    except LifecycleError as e:
        raise _http_error(e)
    return _status(machine)


@router.post("/init", status_code=201)
def init_project(request: InitProjectRequest, fs: FileSystem = Depends(get_filesystem)):
    try:
        machine = create_project(
            request.name,
            request.branch,
            request.description,
            fs=fs,
            suppress_guidance=True,
        )
    except LifecycleError as e:
        raise _http_error(e)
    return _status(machine)


@router.post("/events/{event}")
def fire_event(event: str, fs: FileSystem = Depends(get_filesystem)):
    try:
        lifecycle_event = Event(event)
    except ValueError:
        raise HTTPException(status_code=404, detail={
            "error": True,
            "code": "UNKNOWN_EVENT",
            "message": f"Unknown event '{event}'",
            "details": {"event": event, "known_events": [e.value for e in Event]},
        })

    try:
        machine = _load_project(fs)
        record = fire_and_save(machine, lifecycle_event)
    except LifecycleError as e:
        raise _http_error(e)

    result = _status(machine)
    result["transition"] = {
        "from_state": record.from_state.value,
        "to_state": record.to_state.value,
        "event": record.event.value,
    }
    return result


# -----------------------------------------------------------------------------
# Artifacts
# -----------------------------------------------------------------------------

@router.post("/phases/{phase}/artifacts", status_code=201)
def add_artifact(phase: str, request: AddArtifactRequest, fs: FileSystem = Depends(get_filesystem)):
    return _mutate(fs, lambda p: p.add_artifact(phase, request.path, request.type, request.metadata))


@router.post("/phases/{phase}/artifacts/approve")
def approve_artifact(phase: str, request: ApproveArtifactRequest, fs: FileSystem = Depends(get_filesystem)):
    return _mutate(fs, lambda p: p.approve_artifact(phase, request.path))


# -----------------------------------------------------------------------------
# Tasks
# -----------------------------------------------------------------------------

@router.post("/tasks", status_code=201)
def add_task(request: AddTaskRequest, fs: FileSystem = Depends(get_filesystem)):
    return _mutate(fs, lambda p: p.add_task(
        request.name,
        task_id=request.id,
        parallel=request.parallel,
        dependencies=request.dependencies,
        assigned_agent=request.assigned_agent,
    ))


@router.post("/tasks/approve")
def approve_tasks(fs: FileSystem = Depends(get_filesystem)):
    return _mutate(fs, lambda p: p.approve_tasks())


@router.patch("/tasks/{task_id}")
def update_task(task_id: str, request: UpdateTaskRequest, fs: FileSystem = Depends(get_filesystem)):
    return _mutate(fs, lambda p: p.set_task_status(task_id, request.status))


# -----------------------------------------------------------------------------
# Review
# -----------------------------------------------------------------------------

@router.post("/review/reports", status_code=201)
def add_review_report(request: AddReportRequest, fs: FileSystem = Depends(get_filesystem)):
    return _mutate(fs, lambda p: p.add_review_report(request.path, request.assessment))


@router.post("/review/reports/{report_id}/approve")
def approve_review_report(report_id: str, fs: FileSystem = Depends(get_filesystem)):
    return _mutate(fs, lambda p: p.approve_review_report(report_id))


# -----------------------------------------------------------------------------
# Finalize
# -----------------------------------------------------------------------------

@router.patch("/finalize")
def update_finalize(request: FinalizeRequest, fs: FileSystem = Depends(get_filesystem)):
    def change(p):
        finalize = p.phases.finalize
        for field, value in request.model_dump(exclude_none=True).items():
            setattr(finalize, field, value)

    return _mutate(fs, change)


# -----------------------------------------------------------------------------
# Application
# -----------------------------------------------------------------------------

def create_app() -> FastAPI:
    app = FastAPI(
        title="phaseflow",
        description="Project lifecycle state engine",
        version=__version__,
    )
    app.include_router(router)

    @app.get("/health")
    def health():
        return {"status": "healthy", "version": __version__}

    return app


app = create_app()


if __name__ == "__main__":
    config.configure_logging()
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
