"""Action payloads accepted by the workflow dispatcher.

Each action has its own payload type. ``parse_action`` turns the loosely
typed tool input into one of them, validating every field the action needs
before anything reaches the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from .models import NotesUpdate, Requirement, Task
from .phases import DEFAULT_SCOPE, validate_phase, validate_scope

ACTIONS = ("requirements", "set", "done", "advance", "list", "plan", "restore", "clear")


class PreconditionError(ValueError):
    """An action was rejected before touching workflow state."""


@dataclass(frozen=True, slots=True)
class RegisterRequirements:
    goal: str
    requirements: List[Requirement]
    scope: str = DEFAULT_SCOPE
    action: str = field(default="requirements", init=False)


@dataclass(frozen=True, slots=True)
class SetTasks:
    tasks: List[Task]
    notes: Optional[NotesUpdate] = None
    action: str = field(default="set", init=False)


@dataclass(frozen=True, slots=True)
class MarkDone:
    index: int
    action: str = field(default="done", init=False)


@dataclass(frozen=True, slots=True)
class Advance:
    action: str = field(default="advance", init=False)


@dataclass(frozen=True, slots=True)
class ListState:
    action: str = field(default="list", init=False)


@dataclass(frozen=True, slots=True)
class Plan:
    phase: Optional[str] = None
    action: str = field(default="plan", init=False)


@dataclass(frozen=True, slots=True)
class Restore:
    pr_number: Optional[int] = None
    action: str = field(default="restore", init=False)


@dataclass(frozen=True, slots=True)
class Clear:
    action: str = field(default="clear", init=False)


WorkflowAction = Union[
    RegisterRequirements,
    SetTasks,
    MarkDone,
    Advance,
    ListState,
    Plan,
    Restore,
    Clear,
]


def _parse_requirements(raw: Any) -> List[Requirement]:
    if not raw:
        raise PreconditionError("requirements is required for 'requirements' action")

    requirements = []
    for position, item in enumerate(raw):
        if isinstance(item, Requirement):
            requirement = item
        else:
            try:
                requirement = Requirement.from_dict(item)
            except (KeyError, TypeError) as e:
                raise PreconditionError(f"requirements[{position}] is missing field {e}") from e
        issues = requirement.validate()
        if issues:
            raise PreconditionError(f"requirements[{position}]: {'; '.join(issues)}")
        requirements.append(requirement)
    return requirements


def _parse_tasks(raw: Any) -> List[Task]:
    # Emptiness is rejected by the dispatcher, after the requirements check.
    tasks = []
    if not raw:
        return tasks

    for position, item in enumerate(raw):
        if isinstance(item, Task):
            task = item
        else:
            try:
                task = Task.from_dict(item)
            except (KeyError, TypeError) as e:
                raise PreconditionError(f"tasks[{position}] is missing field {e}") from e
        issues = task.validate()
        if issues:
            raise PreconditionError(f"tasks[{position}]: {'; '.join(issues)}")
        if task.phase is not None:
            validate_phase(task.phase)
        tasks.append(task)
    return tasks


def parse_action(raw: Mapping[str, Any]) -> WorkflowAction:
    """Build a typed payload from raw tool input.

    Raises:
        PreconditionError: a field the action requires is missing or empty.
        ValueError: the action, phase or scope tag is unknown.
    """
    action = raw.get("action")

    if action == "requirements":
        goal = raw.get("goal")
        if goal is None or not str(goal).strip():
            raise PreconditionError("goal is required for 'requirements' action")
        requirements = _parse_requirements(raw.get("requirements"))
        scope = validate_scope(raw.get("scope") or DEFAULT_SCOPE)
        return RegisterRequirements(goal=str(goal), requirements=requirements, scope=scope)

    if action == "set":
        tasks = _parse_tasks(raw.get("tasks"))
        notes_raw = raw.get("notes")
        notes = None
        if notes_raw is not None:
            if isinstance(notes_raw, NotesUpdate):
                notes = notes_raw
            elif isinstance(notes_raw, dict):
                notes = NotesUpdate.from_dict(notes_raw)
            else:
                raise PreconditionError("notes must be an object")
            issues = notes.validate()
            if issues:
                raise PreconditionError(f"notes: {'; '.join(issues)}")
        return SetTasks(tasks=tasks, notes=notes)

    if action == "done":
        index = raw.get("index")
        if index is None:
            raise PreconditionError("index is required for 'done' action")
        return MarkDone(index=int(index))

    if action == "advance":
        return Advance()

    if action == "list":
        return ListState()

    if action == "plan":
        phase = raw.get("phase")
        return Plan(phase=validate_phase(phase) if phase is not None else None)

    if action == "restore":
        pr_number = raw.get("pr_number", raw.get("prNumber"))
        return Restore(pr_number=int(pr_number) if pr_number is not None else None)

    if action == "clear":
        return Clear()

    raise ValueError(f"Unknown action '{action}'. Expected one of: {', '.join(ACTIONS)}")


def action_input(
    action: str,
    *,
    goal: Optional[str] = None,
    scope: Optional[str] = None,
    requirements: Optional[List[Dict[str, Any]]] = None,
    tasks: Optional[List[Dict[str, Any]]] = None,
    notes: Optional[Dict[str, Any]] = None,
    index: Optional[int] = None,
    phase: Optional[str] = None,
    pr_number: Optional[int] = None,
) -> Dict[str, Any]:
    """Collect keyword arguments into the raw mapping ``parse_action`` expects."""
    raw: Dict[str, Any] = {"action": action}
    for key, value in (
        ("goal", goal),
        ("scope", scope),
        ("requirements", requirements),
        ("tasks", tasks),
        ("notes", notes),
        ("index", index),
        ("phase", phase),
        ("pr_number", pr_number),
    ):
        if value is not None:
            raw[key] = value
    return raw
