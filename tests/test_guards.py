"""
Unit Tests for Guard Predicates

Test coverage for:
- all_match empty-collection policy
- Artifact, task, review and finalize guards
- Guards never mutate project data
- Guards return False without a project
"""

import pytest

from phaseflow import guards
from phaseflow.guards import (
    all_match,
    all_tasks_complete,
    artifacts_approved,
    checks_assessed,
    design_complete,
    discovery_complete,
    documentation_assessed,
    has_tasks,
    latest_review_approved,
    project_deleted,
    project_fresh,
    tasks_approved,
)


class TestAllMatch:

    def test_empty_uses_when_empty(self):
        assert all_match([], bool, when_empty=True) is True
        assert all_match([], bool, when_empty=False) is False

    def test_all_true(self):
        assert all_match([1, 2, 3], lambda x: x > 0, when_empty=False)

    def test_one_false(self):
        assert not all_match([1, -2, 3], lambda x: x > 0, when_empty=True)

    def test_when_empty_is_keyword_only(self):
        with pytest.raises(TypeError):
            all_match([], bool, True)


class TestProjectGuards:

    def test_new_project_is_fresh(self, project):
        assert project_fresh(project)

    def test_touched_phase_is_not_fresh(self, project):
        project.skip_phase("discovery")
        assert not project_fresh(project)


class TestArtifactGuards:

    def test_no_artifacts_counts_as_approved(self, project):
        assert artifacts_approved(project.phases.discovery)
        assert discovery_complete(project)
        assert design_complete(project)

    def test_strict_empty_policy(self, project):
        assert not artifacts_approved(project.phases.design, when_empty=False)

    def test_unapproved_artifact_blocks(self, project):
        project.add_artifact("discovery", "notes/research.md")
        assert not discovery_complete(project)

    def test_all_approved(self, project):
        project.add_artifact("design", "docs/adr-001.md")
        project.add_artifact("design", "docs/arch.md")
        project.approve_artifact("design", "docs/adr-001.md")
        assert not design_complete(project)
        project.approve_artifact("design", "docs/arch.md")
        assert design_complete(project)


class TestTaskGuards:

    def test_empty_task_list_is_not_complete(self, project):
        assert not has_tasks(project)
        assert not all_tasks_complete(project)

    def test_in_progress_task_blocks(self, project):
        project.add_task("Write migration")
        project.add_task("Update handlers")
        project.set_task_status("010", "completed")
        project.set_task_status("020", "in_progress")
        assert not all_tasks_complete(project)

    def test_completed_and_abandoned_pass(self, project):
        project.add_task("Write migration")
        project.add_task("Update handlers")
        project.set_task_status("010", "completed")
        project.set_task_status("020", "abandoned")
        assert all_tasks_complete(project)

    def test_tasks_approved_requires_flag(self, project):
        project.add_task("Write migration")
        assert not tasks_approved(project)
        project.approve_tasks()
        assert tasks_approved(project)

    def test_tasks_approved_requires_tasks(self, project):
        project.phases.implementation.tasks_approved = True
        assert not tasks_approved(project)


class TestReviewGuards:

    def test_no_report(self, project):
        assert not latest_review_approved(project)

    def test_unapproved_report(self, project):
        project.add_review_report("review/01.md", "pass")
        assert not latest_review_approved(project)

    def test_assessment_must_match(self, project):
        report = project.add_review_report("review/01.md", "fail")
        project.approve_review_report(report.id)
        assert latest_review_approved(project)
        assert latest_review_approved(project, "fail")
        assert not latest_review_approved(project, "pass")

    def test_only_latest_report_counts(self, project):
        first = project.add_review_report("review/01.md", "pass")
        project.approve_review_report(first.id)
        project.add_review_report("review/02.md", "pass")
        assert not latest_review_approved(project, "pass")

    def test_report_from_previous_iteration_ignored(self, project):
        report = project.add_review_report("review/01.md", "fail")
        project.approve_review_report(report.id)
        project.increment_review_iteration()
        assert not latest_review_approved(project, "fail")


class TestFinalizeGuards:

    @pytest.mark.parametrize("guard,field", [
        (documentation_assessed, "documentation_assessed"),
        (checks_assessed, "checks_assessed"),
        (project_deleted, "project_deleted"),
    ])
    def test_flag_guard(self, project, guard, field):
        assert not guard(project)
        setattr(project.phases.finalize, field, True)
        assert guard(project)


class TestGuardPurity:

    @pytest.mark.parametrize("name", [
        "discovery_complete",
        "design_complete",
        "has_tasks",
        "tasks_approved",
        "all_tasks_complete",
        "latest_review_approved",
        "documentation_assessed",
        "checks_assessed",
        "project_deleted",
        "project_fresh",
    ])
    def test_no_project_is_false(self, name):
        assert getattr(guards, name)(None) is False

    def test_guards_do_not_mutate(self, project):
        project.add_task("Write migration")
        project.add_artifact("discovery", "notes/research.md")
        before = project.model_dump()
        for _ in range(3):
            all_tasks_complete(project)
            discovery_complete(project)
            latest_review_approved(project, "pass")
        assert project.model_dump() == before
