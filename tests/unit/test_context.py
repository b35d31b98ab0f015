"""Unit tests for context collection."""

import subprocess

from conftest import (
    FakeRunner,
    GIT_LOG,
    PR_VIEW_CURRENT,
    gh_comments_output,
    git_log_output,
    issue_comments_key,
    review_comments_key,
)
from phaseflow.context import ContextCollector, format_context_for_guidance
from phaseflow.models import CommitInfo, Notes, PRComment, Task, WorkflowContext
from phaseflow.store import WorkflowStore
from phaseflow.workflow import WorkflowManager


class TestRecentCommits:
    """Test cases for commit history."""

    def test_parses_git_log(self, project_dir):
        runner = FakeRunner({GIT_LOG: git_log_output(
            ("abc123", "Add schema", "alice", "2024-05-01"),
            ("def456", "Fix: handle a|b", "bob", "2024-05-02"),
        )})
        commits = ContextCollector(project_dir, runner=runner).get_recent_commits()
        assert commits[0] == CommitInfo("abc123", "Add schema", "alice", "2024-05-01")
        assert commits[1].message == "Fix: handle a|b"
        assert len(commits) == 2

    def test_passes_limit(self, project_dir):
        runner = FakeRunner({GIT_LOG: ""})
        ContextCollector(project_dir, commit_limit=5, runner=runner).get_recent_commits()
        assert "-5" in runner.calls[0]

    def test_git_failure_yields_empty(self, project_dir):
        runner = FakeRunner({GIT_LOG: subprocess.CalledProcessError(128, ["git", "log"])})
        assert ContextCollector(project_dir, runner=runner).get_recent_commits() == []

    def test_missing_git_binary_yields_empty(self, project_dir):
        runner = FakeRunner({GIT_LOG: FileNotFoundError("git")})
        assert ContextCollector(project_dir, runner=runner).get_recent_commits() == []


class TestPullRequests:
    """Test cases for pull request lookups."""

    def test_pr_for_current_branch(self, project_dir):
        runner = FakeRunner({PR_VIEW_CURRENT: '{"number": 42, "url": "https://example.test/pr/42"}'})
        pr = ContextCollector(project_dir, runner=runner).get_pr_for_current_branch()
        assert pr.number == 42
        assert pr.url == "https://example.test/pr/42"

    def test_no_pr(self, project_dir):
        assert ContextCollector(project_dir, runner=FakeRunner()).get_pr_for_current_branch() is None

    def test_malformed_json_is_no_pr(self, project_dir):
        runner = FakeRunner({PR_VIEW_CURRENT: "not json"})
        assert ContextCollector(project_dir, runner=runner).get_pr_for_current_branch() is None

    def test_pr_body_by_number(self, project_dir):
        runner = FakeRunner({("gh", "pr", "view", "7"): '{"body": "## Goal\\nShip it"}'})
        assert ContextCollector(project_dir, runner=runner).get_pr_body(7) == "## Goal\nShip it"

    def test_pr_body_null(self, project_dir):
        runner = FakeRunner({("gh", "pr", "view"): '{"body": null}'})
        assert ContextCollector(project_dir, runner=runner).get_pr_body() is None

    def test_comments_are_merged_and_sorted(self, project_dir):
        runner = FakeRunner({
            issue_comments_key(9): gh_comments_output(
                ("carol", "Looks good", "2024-05-03T10:00:00Z"),
                ("dave", "Please add tests", "2024-05-01T09:00:00Z"),
            ),
            review_comments_key(9): gh_comments_output(
                ("erin", "Rename this", "2024-05-02T12:00:00Z"),
            ),
        })
        comments = ContextCollector(project_dir, runner=runner).get_pr_comments(9)
        assert [comment.author for comment in comments] == ["dave", "erin", "carol"]
        assert [comment.is_review_comment for comment in comments] == [False, True, False]

    def test_review_failure_keeps_issue_comments(self, project_dir):
        runner = FakeRunner({
            issue_comments_key(9): gh_comments_output(("carol", "ok", "2024-05-03T10:00:00Z")),
        })
        comments = ContextCollector(project_dir, runner=runner).get_pr_comments(9)
        assert [comment.author for comment in comments] == ["carol"]

    def test_malformed_comment_entries_are_skipped(self, project_dir):
        runner = FakeRunner({
            issue_comments_key(3): '[{"user": null, "body": "x", "created_at": "2024-01-01T00:00:00Z"},'
                                   ' {"user": {"login": "zoe"}, "body": null, "created_at": "2024-01-02T00:00:00Z"}]',
        })
        comments = ContextCollector(project_dir, runner=runner).get_pr_comments(3)
        assert len(comments) == 1
        assert comments[0].author == "zoe"
        assert comments[0].body == ""

    def test_comments_with_wrong_field_types_are_skipped(self, project_dir):
        runner = FakeRunner({
            issue_comments_key(3): '[{"user": {"login": "amy"}, "body": "x", "created_at": null},'
                                   ' {"user": {"login": "ben"}, "body": 42, "created_at": "2024-01-01T00:00:00Z"},'
                                   ' {"user": {"login": "cat"}, "body": "ok", "created_at": "2024-01-02T00:00:00Z"}]',
        })
        comments = ContextCollector(project_dir, runner=runner).get_pr_comments(3)
        assert [comment.author for comment in comments] == ["cat"]

    def test_plan_survives_malformed_comments(self, project_dir, sample_requirements):
        runner = FakeRunner({
            PR_VIEW_CURRENT: '{"number": 3, "url": "u"}',
            issue_comments_key(3): '[{"user": {"login": "amy"}, "body": 42, "created_at": null}]',
        })
        manager = WorkflowManager(project_dir, runner=runner)
        manager.dispatch({"action": "requirements", "goal": "g", "requirements": sample_requirements})
        response = manager.dispatch({"action": "plan"})
        assert response["target_phase"] == "contract"
        assert "### PR feedback" not in response["message"]

    def test_unparseable_timestamps_sort_last(self, project_dir):
        runner = FakeRunner({
            issue_comments_key(4): gh_comments_output(
                ("late", "a", "yesterday"),
                ("early", "b", "2024-01-01T00:00:00Z"),
            ),
        })
        comments = ContextCollector(project_dir, runner=runner).get_pr_comments(4)
        assert [comment.author for comment in comments] == ["early", "late"]


class TestCollect:
    """Test cases for assembling the full context."""

    def test_no_pr_still_returns_commits(self, project_dir):
        runner = FakeRunner({GIT_LOG: git_log_output(("abc123", "Add schema", "alice", "2024-05-01"))})
        store = WorkflowStore()
        context = ContextCollector(project_dir, runner=runner).collect(store)
        assert len(context.commits) == 1
        assert context.pr_comments == []

    def test_no_git_still_returns_pr_comments(self, project_dir):
        runner = FakeRunner({
            PR_VIEW_CURRENT: '{"number": 5, "url": "u"}',
            issue_comments_key(5): gh_comments_output(("carol", "hi", "2024-05-03T10:00:00Z")),
        })
        context = ContextCollector(project_dir, runner=runner).collect(WorkflowStore())
        assert context.commits == []
        assert len(context.pr_comments) == 1

    def test_includes_store_state(self, project_dir):
        store = WorkflowStore()
        store.set_tasks([Task("a", "b", "c", done=True), Task("d", "e", "f")])
        store.add_design_decision("use S3")
        store.set_current_phase("policy")
        store.complete_phase("contract")

        context = ContextCollector(project_dir, runner=FakeRunner()).collect(store)

        assert [task.what for task in context.completed_tasks] == ["a"]
        assert context.notes.design_decisions == ["use S3"]
        assert context.current_phase == "policy"
        assert context.completed_phases == ["contract"]


class TestFormatContext:
    """Test cases for rendering context."""

    def test_empty_context_renders_nothing(self):
        assert format_context_for_guidance(WorkflowContext()) == ""

    def test_only_non_empty_sections(self):
        context = WorkflowContext(commits=[CommitInfo("abc", "Add schema", "alice", "2024-05-01")])
        text = format_context_for_guidance(context)
        assert "### Recent commits" in text
        assert "`abc`: Add schema" in text
        assert "PR feedback" not in text
        assert "Design decisions" not in text

    def test_sections_are_capped(self):
        commits = [CommitInfo(f"h{i}", f"commit {i}", "a", "d") for i in range(15)]
        comments = [PRComment("bob", f"comment {i}", f"2024-01-0{i + 1}T00:00:00Z") for i in range(7)]
        context = WorkflowContext(commits=commits, pr_comments=comments)
        text = format_context_for_guidance(context)
        assert "commit 9" in text
        assert "commit 10" not in text
        assert "comment 4" in text
        assert "comment 5" not in text

    def test_long_comment_is_trimmed(self):
        context = WorkflowContext(pr_comments=[PRComment("bob", "x" * 150, "2024-01-01T00:00:00Z", True)])
        text = format_context_for_guidance(context)
        assert f"[Review] @bob: {'x' * 100}..." in text

    def test_completed_tasks_show_most_recent(self):
        from phaseflow.models import TaskWithStatus

        tasks = [TaskWithStatus(index=i, what=f"task {i}", why="w", done_when="d", done=True) for i in range(12)]
        text = format_context_for_guidance(WorkflowContext(completed_tasks=tasks))
        assert "- [x] task 11" in text
        assert "- [x] task 2" in text
        assert "task 1\n" not in text

    def test_notes_and_phases(self):
        context = WorkflowContext(
            notes=Notes(design_decisions=["use S3"], breaking_changes=["id type"]),
            completed_phases=["contract", "policy"],
        )
        text = format_context_for_guidance(context)
        assert "Contract → Policy" in text
        assert "- use S3" in text
        assert "### Breaking changes" in text
        assert "Remaining work" not in text
