"""Data models for phaseflow workflow orchestration.

This module contains the core data structures used throughout the
orchestrator: requirements, tasks, notes, phase progress, and the
read-only context gathered from version control and pull requests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .phases import DEFAULT_SCOPE


def _copy_if_list(value: Any) -> Any:
    """Copy list input; anything else is kept as is so validation can report it."""
    return list(value) if isinstance(value, list) else value


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


@dataclass(frozen=True, slots=True)
class Requirement:
    """Captured actor / need / justification / acceptance tuple."""

    actor: str
    want: str
    because: str
    acceptance: str
    constraints: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "actor": self.actor,
            "want": self.want,
            "because": self.because,
            "acceptance": self.acceptance,
            "constraints": list(self.constraints),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Requirement":
        """Create from dictionary representation."""
        return cls(
            actor=data["actor"],
            want=data["want"],
            because=data["because"],
            acceptance=data["acceptance"],
            constraints=_copy_if_list(data.get("constraints") or []),
        )

    def validate(self) -> List[str]:
        """Validate the requirement and return any issues."""
        issues = []

        if not self.actor:
            issues.append("Requirement actor is required")
        if not self.want:
            issues.append("Requirement want is required")
        if not self.because:
            issues.append("Requirement because is required")
        if not self.acceptance:
            issues.append("Requirement acceptance is required")
        for name in ("actor", "want", "because", "acceptance"):
            value = getattr(self, name)
            if value and not isinstance(value, str):
                issues.append(f"Requirement {name} must be a string")
        if not _is_string_list(self.constraints):
            issues.append("Requirement constraints must be a list of strings")

        return issues


@dataclass(slots=True)
class Task:
    """A unit of planned work as supplied by the caller."""

    what: str
    why: str
    done_when: str
    refs: List[str] = field(default_factory=list)
    phase: Optional[str] = None
    done: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "what": self.what,
            "why": self.why,
            "doneWhen": self.done_when,
            "refs": list(self.refs),
            "phase": self.phase,
            "done": self.done,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Create from dictionary representation.

        Accepts both the wire spelling ``doneWhen`` and ``done_when``. A single
        ``ref`` string is folded into ``refs``.
        """
        refs = _copy_if_list(data.get("refs") or [])
        if data.get("ref") and isinstance(refs, list):
            refs.append(data["ref"])
        done_when = data.get("doneWhen", data.get("done_when"))
        if done_when is None:
            raise KeyError("doneWhen")
        return cls(
            what=data["what"],
            why=data["why"],
            done_when=done_when,
            refs=refs,
            phase=data.get("phase"),
            done=data.get("done"),
        )

    def validate(self) -> List[str]:
        """Validate the task and return any issues."""
        issues = []

        if not self.what:
            issues.append("Task 'what' is required")
        if not self.why:
            issues.append("Task 'why' is required")
        if not self.done_when:
            issues.append("Task 'doneWhen' is required")
        for name, value in (("what", self.what), ("why", self.why), ("doneWhen", self.done_when)):
            if value and not isinstance(value, str):
                issues.append(f"Task '{name}' must be a string")
        if not _is_string_list(self.refs):
            issues.append("Task 'refs' must be a list of strings")
        if self.phase is not None and not isinstance(self.phase, str):
            issues.append("Task 'phase' must be a string")
        if self.done is not None and not isinstance(self.done, bool):
            issues.append("Task 'done' must be true or false")

        return issues


@dataclass(slots=True)
class TaskWithStatus:
    """A stored task: its position in the current list and a definite status."""

    index: int
    what: str
    why: str
    done_when: str
    done: bool = False
    refs: List[str] = field(default_factory=list)
    phase: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "index": self.index,
            "what": self.what,
            "why": self.why,
            "doneWhen": self.done_when,
            "done": self.done,
            "refs": list(self.refs),
            "phase": self.phase,
        }

    @classmethod
    def from_task(cls, index: int, task: Task) -> "TaskWithStatus":
        return cls(
            index=index,
            what=task.what,
            why=task.why,
            done_when=task.done_when,
            done=bool(task.done),
            refs=list(task.refs),
            phase=task.phase,
        )

    def copy(self) -> "TaskWithStatus":
        return TaskWithStatus(
            index=self.index,
            what=self.what,
            why=self.why,
            done_when=self.done_when,
            done=self.done,
            refs=list(self.refs),
            phase=self.phase,
        )


@dataclass(slots=True)
class Notes:
    """Handover notes kept as three independent lists."""

    design_decisions: List[str] = field(default_factory=list)
    remaining_work: List[str] = field(default_factory=list)
    breaking_changes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        """Convert to dictionary representation."""
        return {
            "designDecisions": list(self.design_decisions),
            "remainingWork": list(self.remaining_work),
            "breakingChanges": list(self.breaking_changes),
        }

    def copy(self) -> "Notes":
        return Notes(
            design_decisions=list(self.design_decisions),
            remaining_work=list(self.remaining_work),
            breaking_changes=list(self.breaking_changes),
        )

    def is_empty(self) -> bool:
        return not (self.design_decisions or self.remaining_work or self.breaking_changes)


@dataclass(slots=True)
class NotesUpdate:
    """Partial notes update; a list left as None is not touched."""

    design_decisions: Optional[List[str]] = None
    remaining_work: Optional[List[str]] = None
    breaking_changes: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NotesUpdate":
        """Create from the wire representation."""

        def _list(camel: str, snake: str) -> Optional[List[str]]:
            value = data.get(camel, data.get(snake))
            return None if value is None else _copy_if_list(value)

        return cls(
            design_decisions=_list("designDecisions", "design_decisions"),
            remaining_work=_list("remainingWork", "remaining_work"),
            breaking_changes=_list("breakingChanges", "breaking_changes"),
        )

    def validate(self) -> List[str]:
        """Validate the update and return any issues."""
        issues = []
        for name, value in (
            ("designDecisions", self.design_decisions),
            ("remainingWork", self.remaining_work),
            ("breakingChanges", self.breaking_changes),
        ):
            if value is not None and not _is_string_list(value):
                issues.append(f"Notes {name} must be a list of strings")
        return issues


@dataclass(slots=True)
class PhaseState:
    """Phase progress of the active plan.

    ``current`` is None before requirements are registered and after the last
    phase of the scope has been completed.
    """

    current: Optional[str] = None
    completed: List[str] = field(default_factory=list)
    scope: str = DEFAULT_SCOPE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "current": self.current,
            "completed": list(self.completed),
            "scope": self.scope,
        }


@dataclass(frozen=True, slots=True)
class Progress:
    """Task completion counts."""

    total: int
    completed: int
    pending: int

    def to_dict(self) -> Dict[str, int]:
        """Convert to dictionary representation."""
        return {"total": self.total, "completed": self.completed, "pending": self.pending}


@dataclass(frozen=True, slots=True)
class CommitInfo:
    """One entry of recent version-control history."""

    hash: str
    message: str
    author: str
    date: str

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary representation."""
        return {"hash": self.hash, "message": self.message, "author": self.author, "date": self.date}


@dataclass(frozen=True, slots=True)
class PRComment:
    """A pull-request comment, either issue-style or review-style."""

    author: str
    body: str
    created_at: str
    is_review_comment: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "author": self.author,
            "body": self.body,
            "created_at": self.created_at,
            "is_review_comment": self.is_review_comment,
        }


@dataclass(frozen=True, slots=True)
class PullRequestRef:
    """Pull request associated with the current branch."""

    number: int
    url: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {"number": self.number, "url": self.url}


@dataclass(slots=True)
class WorkflowContext:
    """Read-only briefing material collected before planning a phase."""

    commits: List[CommitInfo] = field(default_factory=list)
    pr_comments: List[PRComment] = field(default_factory=list)
    completed_tasks: List[TaskWithStatus] = field(default_factory=list)
    notes: Notes = field(default_factory=Notes)
    current_phase: Optional[str] = None
    completed_phases: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "commits": [commit.to_dict() for commit in self.commits],
            "pr_comments": [comment.to_dict() for comment in self.pr_comments],
            "completed_tasks": [task.to_dict() for task in self.completed_tasks],
            "notes": self.notes.to_dict(),
            "current_phase": self.current_phase,
            "completed_phases": list(self.completed_phases),
        }


@dataclass(slots=True)
class PlannerResult:
    """Outcome of a planning request."""

    guidance: str
    target_phase: Optional[str] = None
    runbooks_dir: Optional[str] = None
    available_runbooks: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "guidance": self.guidance,
            "target_phase": self.target_phase,
            "runbooks_dir": self.runbooks_dir,
            "available_runbooks": list(self.available_runbooks),
        }


@dataclass(slots=True)
class RestorerResult:
    """Outcome of a restore request. ``success`` is False for guidance-only outcomes."""

    guidance: str
    success: bool
    pr_number: Optional[int] = None
    pr_body: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "guidance": self.guidance,
            "success": self.success,
            "pr_number": self.pr_number,
            "pr_body": self.pr_body,
            "error": self.error,
        }
