"""
phaseflow

Project lifecycle state engine. Drives a software project through
discovery, design, implementation, review and finalize phases, gating each
transition on the project's recorded data and persisting everything to a
single YAML state file.

Layers:
- states:      State and Event vocabulary, state to phase mapping
- guards:      pure predicates over project data
- builder:     fluent transition registration, sealed by build()
- machine:     fire / can_fire / permitted_triggers, entry and exit actions
- guidance:    per-state instructions printed on state entry
- persistence: atomic YAML save/load through a pluggable filesystem
- workflow:    the standard lifecycle wired onto the generic machine
- api:         FastAPI routes over the standard workflow

Typical use:

    from phaseflow import Event, create_project, load

    machine = create_project("auth-rework", "feat/auth-rework", "Replace session auth")
    machine.fire(Event.SKIP_DISCOVERY)
    machine.save()

    machine = load()
    machine.permitted_triggers()
"""

__version__ = "0.3.0"

from .builder import MachineBuilder, StateConfiguration
from .errors import (
    ConfigurationError,
    GuardRejectedError,
    GuidanceError,
    InvalidTransitionError,
    LifecycleError,
    PersistenceError,
    ProjectDataError,
    ProjectExistsError,
    StateFileError,
    TransitionActionError,
    TransitionError,
)
from .filesystem import FileSystem, MemoryFileSystem, RootedFileSystem
from .guidance import TemplateGuidanceGenerator
from .machine import Machine, TransitionRecord
from .models import ProjectState, new_project_state
from .persistence import delete_state, read_state, write_state
from .states import Event, State
from .workflow import build_standard_machine, create_project, fire_and_save, load
