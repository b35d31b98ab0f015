"""In-memory state for one active workflow plan.

The store holds requirements, goal, tasks, handover notes and phase progress
for the lifetime of the process. It owns no persistence; a
``WorkflowManager`` owns exactly one store.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .models import Notes, NotesUpdate, PhaseState, Progress, Requirement, Task, TaskWithStatus
from .phases import DEFAULT_SCOPE, next_phase

logger = logging.getLogger("phaseflow.store")


class WorkflowStore:
    """Single mutable record for an active plan."""

    def __init__(self):
        self._goal: Optional[str] = None
        self._requirements: List[Requirement] = []
        self._tasks: List[TaskWithStatus] = []
        self._notes = Notes()
        self._phase = PhaseState()

    # ------------------------------------------------------------------
    # Requirements and goal
    # ------------------------------------------------------------------

    def set_requirements(self, requirements: List[Requirement]) -> None:
        """Replace the full requirement set."""
        self._requirements = list(requirements)

    def get_requirements(self) -> List[Requirement]:
        return list(self._requirements)

    def has_requirements(self) -> bool:
        return self._goal is not None and len(self._requirements) > 0

    def set_goal(self, goal: str) -> None:
        self._goal = goal

    def get_goal(self) -> Optional[str]:
        return self._goal

    def set_scope(self, scope: str) -> None:
        self._phase.scope = scope

    def get_scope(self) -> str:
        return self._phase.scope

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def set_tasks(self, tasks: List[Task], goal: Optional[str] = None) -> None:
        """Replace the task list and re-index it from zero.

        Completion is taken only from each supplied task's ``done`` flag, so a
        replan that omits ``done: True`` for previously completed work resets
        that work to pending.
        """
        dropped = sum(1 for task in self._tasks if task.done)
        self._tasks = [TaskWithStatus.from_task(index, task) for index, task in enumerate(tasks)]
        if goal is not None:
            self._goal = goal

        carried = sum(1 for task in self._tasks if task.done)
        if dropped > carried:
            logger.info(f"Task replacement carried {carried} of {dropped} previously completed tasks")

    def mark_done(self, index: int) -> bool:
        """Mark the task currently holding ``index`` as done.

        Returns False when no task has that index.
        """
        for task in self._tasks:
            if task.index == index:
                task.done = True
                return True
        logger.debug(f"No task with index {index}")
        return False

    def get_tasks(self) -> List[TaskWithStatus]:
        """Snapshot of the task list; changing it does not change the store."""
        return [task.copy() for task in self._tasks]

    def has_tasks(self) -> bool:
        return len(self._tasks) > 0

    def get_pending_tasks(self) -> List[TaskWithStatus]:
        return [task.copy() for task in self._tasks if not task.done]

    def get_completed_tasks(self) -> List[TaskWithStatus]:
        return [task.copy() for task in self._tasks if task.done]

    def get_tasks_for_phase(self, phase: str) -> List[TaskWithStatus]:
        """Tasks tagged with ``phase``. Untagged tasks belong to no phase."""
        return [task.copy() for task in self._tasks if task.phase == phase]

    def get_pending_tasks_for_phase(self, phase: str) -> List[TaskWithStatus]:
        return [task.copy() for task in self._tasks if task.phase == phase and not task.done]

    def get_progress(self) -> Progress:
        completed = sum(1 for task in self._tasks if task.done)
        return Progress(total=len(self._tasks), completed=completed, pending=len(self._tasks) - completed)

    # ------------------------------------------------------------------
    # Phase progress
    # ------------------------------------------------------------------

    def set_current_phase(self, phase: Optional[str]) -> None:
        self._phase.current = phase

    def get_current_phase(self) -> Optional[str]:
        return self._phase.current

    def complete_phase(self, phase: str) -> None:
        """Record ``phase`` as completed; already-completed phases are left as is."""
        if phase not in self._phase.completed:
            self._phase.completed.append(phase)

    def get_completed_phases(self) -> List[str]:
        return list(self._phase.completed)

    def get_next_phase(self) -> Optional[str]:
        return next_phase(self._phase.current, self._phase.scope)

    def get_phase_state(self) -> PhaseState:
        return PhaseState(
            current=self._phase.current,
            completed=list(self._phase.completed),
            scope=self._phase.scope,
        )

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def get_notes(self) -> Notes:
        return self._notes.copy()

    def update_notes(self, update: NotesUpdate) -> None:
        """Overwrite only the lists present in ``update``."""
        if update.design_decisions is not None:
            self._notes.design_decisions = list(update.design_decisions)
        if update.remaining_work is not None:
            self._notes.remaining_work = list(update.remaining_work)
        if update.breaking_changes is not None:
            self._notes.breaking_changes = list(update.breaking_changes)

    def add_design_decision(self, decision: str) -> None:
        self._notes.design_decisions.append(decision)

    def add_remaining_work(self, item: str) -> None:
        self._notes.remaining_work.append(item)

    def add_breaking_change(self, change: str) -> None:
        self._notes.breaking_changes.append(change)

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Return to the empty state."""
        self._goal = None
        self._requirements = []
        self._tasks = []
        self._notes = Notes()
        self._phase = PhaseState(scope=DEFAULT_SCOPE)
