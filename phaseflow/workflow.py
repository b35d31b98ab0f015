"""Workflow management for phaseflow.

This module provides the action dispatcher: it validates each action's
preconditions, mutates the workflow store, and chains phase completion,
phase transition and next-phase planning after a task is marked done.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from .actions import (
    Advance,
    Clear,
    ListState,
    MarkDone,
    Plan,
    PreconditionError,
    RegisterRequirements,
    Restore,
    SetTasks,
    WorkflowAction,
    parse_action,
)
from .config import Settings
from .context import CommandRunner, ContextCollector
from .formatter import (
    format_advance_blocked,
    format_clear_result,
    format_done_result,
    format_phase_transition,
    format_requirements_result,
    format_set_result,
    format_task_list,
    format_workflow_complete,
)
from .models import TaskWithStatus
from .phases import RUNBOOKS_RELATIVE_DIR, next_phase
from .planner import Planner
from .restorer import Restorer
from .store import WorkflowStore
from .workflow_logging import (
    log_error_with_context,
    log_operation,
    log_performance,
    log_phase_event,
    observability_hooks,
)

logger = logging.getLogger("phaseflow.workflow")


class WorkflowManager:
    """Dispatches workflow actions against a store it owns."""

    def __init__(
        self,
        project_root: Path | str,
        *,
        runbooks_dir: Optional[Path | str] = None,
        commit_limit: int = 20,
        runner: Optional[CommandRunner] = None,
        store: Optional[WorkflowStore] = None,
    ):
        self.project_root = Path(project_root).resolve()
        self.store = store or WorkflowStore()
        self.collector = ContextCollector(self.project_root, commit_limit=commit_limit, runner=runner)
        if runbooks_dir is None:
            runbooks_dir = self.project_root / "guardrails" / RUNBOOKS_RELATIVE_DIR
        self.planner = Planner(self.store, self.collector, runbooks_dir)
        self.restorer = Restorer(self.collector)

    @classmethod
    def from_settings(cls, settings: Settings, *, runner: Optional[CommandRunner] = None) -> "WorkflowManager":
        return cls(
            settings.project_root,
            runbooks_dir=settings.runbooks_dir,
            commit_limit=settings.commit_limit,
            runner=runner,
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def dispatch(self, raw: Mapping[str, Any]) -> Dict[str, Any]:
        """Parse raw tool input and execute it.

        Raises:
            PreconditionError: the action's preconditions are not met.
            ValueError: the action, phase or scope tag is unknown.
        """
        try:
            action = parse_action(raw)
        except ValueError as e:
            log_error_with_context(e, {"operation": "parse_action", "action": raw.get("action")})
            raise
        return self.execute(action)

    @log_performance("dispatch")
    def execute(self, action: WorkflowAction) -> Dict[str, Any]:
        handlers = {
            RegisterRequirements: self._register_requirements,
            SetTasks: self._set_tasks,
            MarkDone: self._done,
            Advance: self._advance,
            ListState: self._list,
            Plan: self._plan,
            Restore: self._restore,
            Clear: self._clear,
        }
        handler = handlers.get(type(action))
        if handler is None:
            raise ValueError(f"Unsupported action payload: {type(action).__name__}")

        try:
            with log_operation(action.action, current_phase=self.store.get_current_phase()):
                return handler(action)
        except PreconditionError as e:
            log_error_with_context(e, {"operation": action.action})
            raise

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def mark_done(self, index: int) -> Tuple[bool, Optional[TaskWithStatus]]:
        """Mark a task done; returns whether it existed and the task itself."""
        if not self.store.mark_done(index):
            return False, None
        task = next(item for item in self.store.get_tasks() if item.index == index)
        observability_hooks.log_workflow_event("task_done", phase=task.phase, index=index)
        return True, task

    def complete_phase_if_ready(self) -> Optional[str]:
        """Complete the current phase when it has tasks and none are pending.

        Returns the completed phase, or None when nothing changed.
        """
        current = self.store.get_current_phase()
        if current is None:
            return None
        if not self.store.get_tasks_for_phase(current):
            return None
        if self.store.get_pending_tasks_for_phase(current):
            return None

        self.store.complete_phase(current)
        log_phase_event("phase_completed", current)
        return current

    def advance_if_possible(self, completed_phase: str) -> Optional[str]:
        """Move ``current`` past ``completed_phase``; None means the scope is finished."""
        following = next_phase(completed_phase, self.store.get_scope())
        self.store.set_current_phase(following)
        if following is None:
            log_phase_event("workflow_complete", completed_phase, completed_phases=self.store.get_completed_phases())
        else:
            log_phase_event("phase_transition", following, previous_phase=completed_phase)
        return following

    def brief_next_phase(self, phase: str) -> str:
        return self.planner.execute(phase).guidance

    def _transition_text(self, completed_phase: str, following: Optional[str]) -> str:
        if following is None:
            return "\n\n" + format_workflow_complete(self.store.get_completed_phases())
        return format_phase_transition(completed_phase, following)

    # ------------------------------------------------------------------
    # Action handlers
    # ------------------------------------------------------------------

    def _response(self, action: str, message: str, *, success: bool = True, **extra: Any) -> Dict[str, Any]:
        state = self.store.get_phase_state()
        response = {
            "action": action,
            "success": success,
            "message": message,
            "current_phase": state.current,
            "completed_phases": state.completed,
            "scope": state.scope,
            "progress": self.store.get_progress().to_dict(),
        }
        response.update(extra)
        return response

    def _register_requirements(self, action: RegisterRequirements) -> Dict[str, Any]:
        self.store.set_goal(action.goal)
        self.store.set_requirements(action.requirements)
        self.store.set_scope(action.scope)
        first_phase = next_phase(None, action.scope)
        self.store.set_current_phase(first_phase)

        observability_hooks.log_workflow_event(
            "requirements_registered",
            phase=first_phase,
            scope=action.scope,
            requirement_count=len(action.requirements),
        )
        return self._response(
            action.action,
            format_requirements_result(action.goal, action.requirements, action.scope, first_phase),
            next_suggested_step="plan",
        )

    def _set_tasks(self, action: SetTasks) -> Dict[str, Any]:
        if not self.store.has_requirements():
            raise PreconditionError("requirements must be set before tasks. Use 'requirements' action first.")
        if not action.tasks:
            raise PreconditionError("tasks is required for 'set' action")

        self.store.set_tasks(action.tasks)
        if action.notes is not None:
            self.store.update_notes(action.notes)

        tasks = self.store.get_tasks()
        observability_hooks.log_workflow_event(
            "tasks_set",
            phase=self.store.get_current_phase(),
            task_count=len(tasks),
            carried_done=sum(1 for task in tasks if task.done),
        )
        return self._response(
            action.action,
            format_set_result(self.store.get_goal() or "", tasks),
            next_suggested_step="done",
        )

    def _done(self, action: MarkDone) -> Dict[str, Any]:
        success, task = self.mark_done(action.index)
        message = format_done_result(success, action.index, task, self.store.get_tasks())
        if not success:
            return self._response(action.action, message, success=False, next_suggested_step="list")

        auto_advanced = False
        completed_phase = self.complete_phase_if_ready()
        if completed_phase is not None:
            auto_advanced = True
            following = self.advance_if_possible(completed_phase)
            message += self._transition_text(completed_phase, following)
            if following is not None:
                message += "\n\n" + self.brief_next_phase(following)

        if not auto_advanced:
            next_step = "done"
        elif self.store.get_current_phase() is not None:
            next_step = "set"
        else:
            next_step = "clear"

        return self._response(action.action, message, auto_advanced=auto_advanced, next_suggested_step=next_step)

    def _advance(self, action: Advance) -> Dict[str, Any]:
        current = self.store.get_current_phase()
        if current is None:
            raise PreconditionError("No current phase. Register requirements with the 'requirements' action first.")

        pending = self.store.get_pending_tasks_for_phase(current)
        if pending:
            log_phase_event("advance_blocked", current, pending_count=len(pending))
            return self._response(
                action.action,
                format_advance_blocked(current, pending),
                blocked=True,
                pending_tasks=[task.to_dict() for task in pending],
                next_suggested_step="done",
            )

        self.store.complete_phase(current)
        log_phase_event("phase_completed", current)
        following = self.advance_if_possible(current)
        message = self._transition_text(current, following).lstrip("\n")
        if following is not None:
            message += f"\n\nRun `plan` to brief the {following} phase."
        return self._response(
            action.action,
            message,
            blocked=False,
            pending_tasks=[],
            next_suggested_step="plan" if following is not None else "clear",
        )

    def _list(self, action: ListState) -> Dict[str, Any]:
        pr = self.collector.get_pr_for_current_branch()
        message = format_task_list(
            self.store.get_goal(),
            self.store.get_requirements(),
            self.store.get_tasks(),
            notes=self.store.get_notes(),
            phase_state=self.store.get_phase_state(),
            pr=pr,
        )
        return self._response(
            action.action,
            message,
            pull_request=pr.to_dict() if pr is not None else None,
        )

    def _plan(self, action: Plan) -> Dict[str, Any]:
        result = self.planner.execute(action.phase)
        return self._response(
            action.action,
            result.guidance,
            target_phase=result.target_phase,
            available_runbooks=result.available_runbooks,
            next_suggested_step="set" if result.target_phase else None,
        )

    def _restore(self, action: Restore) -> Dict[str, Any]:
        result = self.restorer.execute(action.pr_number)
        return self._response(
            action.action,
            result.guidance,
            pr_number=result.pr_number,
            restorable=result.success,
            error=result.error,
            next_suggested_step="requirements" if result.success else None,
        )

    def _clear(self, action: Clear) -> Dict[str, Any]:
        self.store.clear()
        observability_hooks.log_workflow_event("workflow_cleared")
        return self._response(action.action, format_clear_result(), next_suggested_step="requirements")

    # ------------------------------------------------------------------
    # Read-only helpers
    # ------------------------------------------------------------------

    def render_state(self) -> str:
        """The ``list`` view without pull request lookup."""
        return format_task_list(
            self.store.get_goal(),
            self.store.get_requirements(),
            self.store.get_tasks(),
            notes=self.store.get_notes(),
            phase_state=self.store.get_phase_state(),
        )

