"""MCP server exposing the phase-based delivery workflow."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from phaseflow.actions import action_input
from phaseflow.config import Settings
from phaseflow.phases import PHASES, SCOPES, phase_label, phases_for_scope
from phaseflow.workflow import WorkflowManager
from phaseflow.workflow_logging import setup_logging

mcp = FastMCP("phaseflow")

logger = logging.getLogger("phaseflow.server")

_manager: Optional[WorkflowManager] = None


def _workflow() -> WorkflowManager:
    """Return the server's workflow manager, creating it from the environment on first use."""
    global _manager
    if _manager is None:
        settings = Settings.from_env()
        logger.info(f"Workflow bound to project root {settings.project_root}")
        _manager = WorkflowManager.from_settings(settings)
    return _manager


@mcp.tool()
def procedure_workflow(
    action: str,
    goal: Optional[str] = None,
    scope: Optional[str] = None,
    requirements: Optional[List[Dict[str, Any]]] = None,
    tasks: Optional[List[Dict[str, Any]]] = None,
    notes: Optional[Dict[str, List[str]]] = None,
    index: Optional[int] = None,
    phase: Optional[str] = None,
    pr_number: Optional[int] = None,
) -> Dict[str, Any]:
    """Phase-based workflow management for delivering a feature.

    Actions:
    - 'requirements': register goal, requirements and scope (default 'full'); starts at the scope's first phase
    - 'set': register or replace the task list, optionally with notes (requires requirements)
    - 'done': mark task `index` complete; completing a phase's last task advances to the next phase
    - 'advance': complete the current phase explicitly; blocked while its tasks are pending
    - 'list': show phases, requirements, tasks, notes and the linked pull request
    - 'plan': brief the current phase (or `phase`) with commits, PR feedback and notes
    - 'restore': prepare instructions to rebuild state from a pull request body (`pr_number` optional)
    - 'clear': reset all workflow state

    Requirement: {actor, want, because, acceptance, constraints?}
    Task: {what, why, doneWhen, refs?, phase?, done?}. `set` replaces the whole list;
    re-send completed tasks with done=true to keep their completion.
    Notes: {designDecisions?, remainingWork?, breakingChanges?}; each list present replaces the stored one.
    """

    return _workflow().dispatch(
        action_input(
            action,
            goal=goal,
            scope=scope,
            requirements=requirements,
            tasks=tasks,
            notes=notes,
            index=index,
            phase=phase,
            pr_number=pr_number,
        )
    )


@mcp.tool()
def get_phase_guide() -> Dict[str, Any]:
    """Get the phase catalogue and the phases each scope includes."""
    return {
        "phases": [definition.to_dict() for definition in PHASES],
        "scopes": {scope: phases_for_scope(scope) for scope in SCOPES},
        "steps": [
            "requirements: register goal, requirements and scope",
            "plan: brief the current phase",
            "set: register the phase's tasks tagged with their phase",
            "done: complete tasks; the phase advances when its last task is done",
            "advance: complete a phase explicitly once nothing is pending",
        ],
        "tips": [
            "Tag every task with its phase; untagged tasks never complete a phase",
            "Echo done=true for finished tasks when replacing the task list",
            "Call clear before starting an unrelated plan",
        ],
    }


@mcp.resource("phaseflow://workflow")
def resource_workflow() -> str:
    """Resource view of the current workflow state."""
    manager = _workflow()
    state = manager.render_state()
    current = manager.store.get_current_phase()
    if current is None:
        return state
    return f"Current phase: {phase_label(current)}\n\n{state}"


if __name__ == "__main__":
    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_file)
    mcp.run(transport="stdio")
