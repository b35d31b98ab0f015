"""Context collection for phase planning.

Gathers recent commits and pull-request feedback from the ``git`` and ``gh``
command-line tools, together with completed tasks, notes and phase progress
from the store. Every external query fails independently: a missing pull
request still yields commit history, and the reverse.
"""

from __future__ import annotations

import json
import logging
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional

from .models import CommitInfo, PRComment, PullRequestRef, WorkflowContext
from .phases import phase_label
from .store import WorkflowStore

logger = logging.getLogger("phaseflow.context")

CommandRunner = Callable[[List[str], Path], str]

COMMIT_FIELD_SEPARATOR = "\x1f"
COMMIT_FORMAT = "%h%x1f%s%x1f%an%x1f%ad"
MAX_COMMITS_SHOWN = 10
MAX_COMMENTS_SHOWN = 5
MAX_COMPLETED_TASKS_SHOWN = 10
COMMENT_PREVIEW_LENGTH = 100

_EXTERNAL_ERRORS = (OSError, subprocess.CalledProcessError, json.JSONDecodeError, ValueError, KeyError, TypeError)


def run_command(args: List[str], cwd: Path) -> str:
    """Run a command and return its stdout; raises on a non-zero exit."""
    completed = subprocess.run(args, cwd=cwd, check=True, capture_output=True, text=True)
    return completed.stdout


def _created_at_key(comment: PRComment) -> Any:
    try:
        return datetime.fromisoformat(comment.created_at.replace("Z", "+00:00")).timestamp()
    except (ValueError, AttributeError, TypeError):
        return float("inf")


class ContextCollector:
    """Read-only collector of version-control and pull-request history."""

    def __init__(self, project_root: Path | str, *, commit_limit: int = 20, runner: Optional[CommandRunner] = None):
        self.project_root = Path(project_root)
        self.commit_limit = commit_limit
        self._run = runner or run_command

    def get_recent_commits(self, limit: Optional[int] = None) -> List[CommitInfo]:
        limit = limit or self.commit_limit
        try:
            output = self._run(
                ["git", "log", f"-{limit}", f"--format={COMMIT_FORMAT}", "--date=short"],
                self.project_root,
            )
        except _EXTERNAL_ERRORS as e:
            logger.debug(f"Commit history unavailable: {e}")
            return []

        commits = []
        for line in output.strip().splitlines():
            if not line:
                continue
            parts = line.split(COMMIT_FIELD_SEPARATOR, 3)
            parts += [""] * (4 - len(parts))
            commits.append(CommitInfo(hash=parts[0], message=parts[1], author=parts[2], date=parts[3]))
        return commits

    def get_pr_for_current_branch(self) -> Optional[PullRequestRef]:
        """Pull request of the checked-out branch, or None when there is none yet."""
        try:
            output = self._run(["gh", "pr", "view", "--json", "number,url"], self.project_root)
            data = json.loads(output)
            return PullRequestRef(number=int(data["number"]), url=str(data.get("url", "")))
        except _EXTERNAL_ERRORS as e:
            logger.debug(f"No pull request for current branch: {e}")
            return None

    def get_pr_body(self, pr_number: Optional[int] = None) -> Optional[str]:
        args = ["gh", "pr", "view"]
        if pr_number is not None:
            args.append(str(pr_number))
        args += ["--json", "body"]
        try:
            data = json.loads(self._run(args, self.project_root))
            body = data.get("body")
            return body if isinstance(body, str) else None
        except _EXTERNAL_ERRORS as e:
            logger.debug(f"Pull request body unavailable: {e}")
            return None

    def _fetch_comments(self, endpoint: str, *, is_review: bool) -> List[PRComment]:
        raw = json.loads(self._run(["gh", "api", endpoint], self.project_root))
        comments = []
        for item in raw:
            try:
                author = item["user"]["login"]
                body = item.get("body") or ""
                created_at = item["created_at"]
            except (KeyError, TypeError, AttributeError):
                continue
            if not all(isinstance(value, str) for value in (author, body, created_at)):
                logger.debug(f"Skipping malformed comment from {endpoint}")
                continue
            comments.append(PRComment(author=author, body=body, created_at=created_at, is_review_comment=is_review))
        return comments

    def get_pr_comments(self, pr_number: int) -> List[PRComment]:
        """Issue and review comments of a pull request, oldest first."""
        try:
            comments = self._fetch_comments(f"repos/{{owner}}/{{repo}}/issues/{pr_number}/comments", is_review=False)
        except _EXTERNAL_ERRORS as e:
            logger.debug(f"Issue comments unavailable for PR #{pr_number}: {e}")
            comments = []

        try:
            review_comments = self._fetch_comments(
                f"repos/{{owner}}/{{repo}}/pulls/{pr_number}/comments", is_review=True
            )
        except _EXTERNAL_ERRORS as e:
            logger.debug(f"Review comments unavailable for PR #{pr_number}: {e}")
            review_comments = []

        return sorted(comments + review_comments, key=_created_at_key)

    def collect(self, store: WorkflowStore) -> WorkflowContext:
        """Assemble the planning briefing material."""
        commits = self.get_recent_commits()

        pr = self.get_pr_for_current_branch()
        pr_comments = self.get_pr_comments(pr.number) if pr is not None else []

        return WorkflowContext(
            commits=commits,
            pr_comments=pr_comments,
            completed_tasks=store.get_completed_tasks(),
            notes=store.get_notes(),
            current_phase=store.get_current_phase(),
            completed_phases=store.get_completed_phases(),
        )


def _preview(body: str) -> str:
    flattened = " ".join(str(body).split())
    if len(flattened) > COMMENT_PREVIEW_LENGTH:
        return f"{flattened[:COMMENT_PREVIEW_LENGTH]}..."
    return flattened


def format_context_for_guidance(context: WorkflowContext) -> str:
    """Render only the non-empty sections of a context, each capped."""
    lines: List[str] = []

    if context.completed_phases:
        lines.append("### Completed phases")
        lines.append("")
        lines.append(" → ".join(phase_label(phase) for phase in context.completed_phases))
        lines.append("")

    if context.commits:
        lines.append("### Recent commits")
        lines.append("")
        for commit in context.commits[:MAX_COMMITS_SHOWN]:
            lines.append(f"- `{commit.hash}`: {commit.message}")
        lines.append("")

    if context.pr_comments:
        lines.append("### PR feedback")
        lines.append("")
        for comment in context.pr_comments[:MAX_COMMENTS_SHOWN]:
            kind = "[Review]" if comment.is_review_comment else "[Comment]"
            lines.append(f"- {kind} @{comment.author}: {_preview(comment.body)}")
        lines.append("")

    notes = context.notes
    for title, entries in (
        ("Design decisions", notes.design_decisions),
        ("Remaining work", notes.remaining_work),
        ("Breaking changes", notes.breaking_changes),
    ):
        if entries:
            lines.append(f"### {title}")
            lines.append("")
            for entry in entries:
                lines.append(f"- {entry}")
            lines.append("")

    if context.completed_tasks:
        lines.append("### Completed tasks (most recent)")
        lines.append("")
        for task in context.completed_tasks[-MAX_COMPLETED_TASKS_SHOWN:]:
            lines.append(f"- [x] {task.what}")
        lines.append("")

    return "\n".join(lines)
