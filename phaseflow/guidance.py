"""
State Guidance

Contextual instructions printed whenever the machine enters a state.

Features:
- One template per state, keyed by the state's string value
- Variable substitution with {{VARIABLE}} syntax
- Project header (name, branch, description) prepended when a project exists

Template variables:
    PROJECT_NAME, BRANCH, DESCRIPTION, STATE, PHASE,
    TASK_SUMMARY, ARTIFACT_SUMMARY, REVIEW_ITERATION
"""

import logging
import re
from typing import Any, Dict, Mapping, Optional

from .errors import GuidanceError
from .models import ProjectState
from .states import State, label, phase_for_state

logger = logging.getLogger("guidance")

RULE = "-" * 60

VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")


# -----------------------------------------------------------------------------
# Default Templates
# -----------------------------------------------------------------------------

DEFAULT_TEMPLATES: Dict[str, str] = {
    State.NO_PROJECT.value: """NO ACTIVE PROJECT

There is no active project in this repository.

NEXT ACTION:
  Create one with a name, branch and description (POST /project/init).""",

    State.DISCOVERY_DECISION.value: """DISCOVERY DECISION

Decide whether this work needs a discovery phase.
Consider how much context is missing, how clear the problem is and how
well the codebase is understood.

NEXT ACTION:
  enable_discovery to research first, or skip_discovery to move on.""",

    State.DISCOVERY_ACTIVE.value: """DISCOVERY

Human-led. Facilitate research and record findings as artifacts.
Never approve an artifact on the human's behalf.

STATUS:
  Artifacts: {{ARTIFACT_SUMMARY}}

NEXT ACTION:
  Register artifacts, request approval, then complete_discovery.""",

    State.DESIGN_DECISION.value: """DESIGN DECISION

Decide whether this work needs a design phase.
Large scope, architectural impact or tricky integrations call for one.

NEXT ACTION:
  enable_design to write design documents, or skip_design to plan tasks.""",

    State.DESIGN_ACTIVE.value: """DESIGN

Human-led. Draft design documents and register them as artifacts.

STATUS:
  Artifacts: {{ARTIFACT_SUMMARY}}

NEXT ACTION:
  Request approval for each document, then complete_design.""",

    State.IMPLEMENTATION_PLANNING.value: """IMPLEMENTATION PLANNING (review iteration {{REVIEW_ITERATION}})

Break the work into tasks with gap-numbered IDs (010, 020, 030).

STATUS:
  Tasks: {{TASK_SUMMARY}}

NEXT ACTION:
  Add tasks, get the plan approved, then fire tasks_approved.""",

    State.IMPLEMENTATION_EXECUTING.value: """IMPLEMENTATION

Work through the approved tasks. Mark each completed or abandoned.

STATUS:
  Tasks: {{TASK_SUMMARY}}

NEXT ACTION:
  When no task is pending or in progress, fire all_tasks_complete.""",

    State.REVIEW_ACTIVE.value: """REVIEW (iteration {{REVIEW_ITERATION}})

Review the implementation against the project goals and write a report
with a pass or fail assessment.

NEXT ACTION:
  Get the report approved, then fire review_pass or review_fail.""",

    State.FINALIZE_DOCUMENTATION.value: """FINALIZE: DOCUMENTATION

Update README and docs to match what was built.

NEXT ACTION:
  Mark documentation assessed, then fire documentation_done.""",

    State.FINALIZE_CHECKS.value: """FINALIZE: CHECKS

Run the test suite, linters and build. Fix anything that fails.

NEXT ACTION:
  Mark checks assessed, then fire checks_done.""",

    State.FINALIZE_DELETE.value: """FINALIZE: CLEANUP

Remove the project state directory and open the pull request.

NEXT ACTION:
  Mark the project deleted, then fire project_delete.""",
}


# -----------------------------------------------------------------------------
# Generator
# -----------------------------------------------------------------------------

class TemplateGuidanceGenerator:
    """
    Guidance from per-state templates.

    Pass templates to replace the defaults entirely (for custom workflows),
    or extra_templates to override individual states.
    """

    def __init__(
        self,
        templates: Optional[Mapping[str, str]] = None,
        extra_templates: Optional[Mapping[str, str]] = None,
    ):
        self.templates: Dict[str, str] = dict(DEFAULT_TEMPLATES if templates is None else templates)
        if extra_templates:
            self.templates.update(extra_templates)

    def build_variables(self, state: Any, project: Optional[ProjectState]) -> Dict[str, str]:
        phase = phase_for_state(state) if isinstance(state, State) else None
        variables = {
            "STATE": label(state),
            "PHASE": phase or "",
            "PROJECT_NAME": "",
            "BRANCH": "",
            "DESCRIPTION": "",
            "TASK_SUMMARY": "none",
            "ARTIFACT_SUMMARY": "none",
            "REVIEW_ITERATION": "1",
        }
        if project is None:
            return variables

        variables.update({
            "PROJECT_NAME": project.project.name,
            "BRANCH": project.project.branch,
            "DESCRIPTION": project.project.description,
            "REVIEW_ITERATION": str(project.review_iteration),
        })

        if project.tasks:
            summary = project.task_summary()
            variables["TASK_SUMMARY"] = ", ".join(
                f"{count} {status}" for status, count in summary.items() if count
            )

        if phase in ("discovery", "design"):
            artifacts = project.phase(phase).artifacts
            approved = sum(1 for a in artifacts if a.approved)
            variables["ARTIFACT_SUMMARY"] = f"{len(artifacts)} total, {approved} approved"

        return variables

    @staticmethod
    def substitute_variables(content: str, variables: Mapping[str, str]) -> str:
        def replace_var(match):
            var_name = match.group(1)
            if var_name in variables:
                return variables[var_name]
            logger.warning(f"Unknown template variable: {{{{{var_name}}}}}")
            return match.group(0)

        return VARIABLE_PATTERN.sub(replace_var, content)

    def render_header(self, project: ProjectState) -> str:
        lines = [
            f"Project: {project.project.name}",
            f"Branch: {project.project.branch}",
        ]
        if project.project.description:
            lines.append(f"Description: {project.project.description}")
        return "\n".join(lines)

    def generate(self, state: Any, project: Optional[ProjectState]) -> str:
        key = label(state)
        template = self.templates.get(key)
        if template is None:
            raise GuidanceError(state, "no guidance template registered")

        body = self.substitute_variables(template, self.build_variables(state, project))
        parts = [RULE]
        if project is not None:
            parts.extend([self.render_header(project), ""])
        parts.extend([body, RULE])
        return "\n".join(parts)

    __call__ = generate
