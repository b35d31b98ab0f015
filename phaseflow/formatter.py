"""Markdown rendering of workflow state.

Pure functions over store snapshots; nothing here reads or mutates a store.
"""

from __future__ import annotations

from typing import List, Optional

from .models import Notes, PhaseState, PullRequestRef, Requirement, TaskWithStatus
from .phases import definition_of, phase_label, phases_for_scope

TOOL_NAME = "procedure_workflow"
TASK_NAME_MAX_LENGTH = 40


def tool_call(action: str, **fields: object) -> str:
    """Render the call an agent should make, e.g. ``procedure_workflow(action: 'done', index: 2)``."""
    parts = [f"action: '{action}'"]
    for key, value in fields.items():
        parts.append(f"{key}: {value}")
    return f"{TOOL_NAME}({', '.join(parts)})"


def truncate_task_name(name: str, max_length: int = TASK_NAME_MAX_LENGTH) -> str:
    if len(name) <= max_length:
        return name
    return f"{name[:max_length - 3]}..."


def _requirement_lines(requirements: List[Requirement]) -> List[str]:
    lines = []
    for number, requirement in enumerate(requirements, start=1):
        lines.append(f"{number}. **{requirement.actor}** wants **{requirement.want}**")
        lines.append(f"   - Because: {requirement.because}")
        lines.append(f"   - Acceptance: {requirement.acceptance}")
        if requirement.constraints:
            lines.append(f"   - Constraints: {', '.join(requirement.constraints)}")
    return lines


def _task_detail_lines(task: TaskWithStatus) -> List[str]:
    lines = [
        f"- **Why**: {task.why}",
        f"- **Done when**: {task.done_when}",
    ]
    if task.phase is not None:
        lines.append(f"- **Phase**: {phase_label(task.phase)}")
    for ref in task.refs:
        lines.append(f"- **Ref**: `{ref}`")
    return lines


def format_progress_table(tasks: List[TaskWithStatus]) -> str:
    """Progress summary with the next pending task highlighted."""
    completed = sum(1 for task in tasks if task.done)
    pending = [task for task in tasks if not task.done]
    next_index = pending[0].index if pending else None

    lines = [
        "",
        f"## Progress: {completed}/{len(tasks)} done",
        "",
        "| # | Task | Phase | Status |",
        "|---|------|-------|--------|",
    ]
    for task in tasks:
        if task.done:
            status = "✅"
        elif task.index == next_index:
            status = "▶ next"
        else:
            status = "⬜"
        phase = phase_label(task.phase) if task.phase else "-"
        lines.append(f"| {task.index} | {truncate_task_name(task.what)} | {phase} | {status} |")

    lines.append("")
    lines.append(f"_Details: `{tool_call('list')}`_")
    return "\n".join(lines)


def format_next_task_detail(tasks: List[TaskWithStatus]) -> str:
    """Callout for the first pending task, or a completion line."""
    pending = [task for task in tasks if not task.done]
    if not pending:
        return "\n\n🎉 **All tasks done!**"

    task = pending[0]
    lines = [
        "",
        "---",
        "",
        "## ▶ Next task",
        "",
        f"### [{task.index}] {task.what}",
        "",
        *_task_detail_lines(task),
        "",
        f"When finished: `{tool_call('done', index=task.index)}`",
    ]
    return "\n".join(lines)


def format_progress_and_next_task(tasks: List[TaskWithStatus]) -> str:
    return format_progress_table(tasks) + format_next_task_detail(tasks)


def format_phase_progress(state: PhaseState, tasks: Optional[List[TaskWithStatus]] = None) -> str:
    """One line per phase of the scope: ✅ completed, ▶ current, ⬜ upcoming."""
    tasks = tasks or []
    lines = [f"### Phases (scope: `{state.scope}`)", ""]
    for phase in phases_for_scope(state.scope):
        if phase in state.completed:
            marker = "✅"
        elif phase == state.current:
            marker = "▶"
        else:
            marker = "⬜"
        phase_tasks = [task for task in tasks if task.phase == phase]
        counts = ""
        if phase_tasks:
            done = sum(1 for task in phase_tasks if task.done)
            counts = f" ({done}/{len(phase_tasks)} tasks)"
        lines.append(f"- {marker} {phase_label(phase)}{counts}")
    return "\n".join(lines)


def format_requirements_result(goal: str, requirements: List[Requirement], scope: str, current_phase: Optional[str]) -> str:
    lines = [
        f"**Goal**: {goal}",
        "",
        f"Registered {len(requirements)} requirement(s) with scope `{scope}`.",
        "",
        "### Requirements",
        "",
        *_requirement_lines(requirements),
        "",
        f"Phases: {' → '.join(phase_label(phase) for phase in phases_for_scope(scope))}",
    ]
    if current_phase is not None:
        lines.append(f"Current phase: **{phase_label(current_phase)}**")
    lines += [
        "",
        "Next steps:",
        f"1. `{tool_call('plan')}` to brief the current phase",
        f"2. `{tool_call('set', tasks='[...]')}` to register its tasks",
    ]
    return "\n".join(lines)


def format_set_result(goal: str, tasks: List[TaskWithStatus]) -> str:
    carried = sum(1 for task in tasks if task.done)
    base = f"**Goal**: {goal}\n\nRegistered {len(tasks)} task(s)."
    if carried:
        base += f" {carried} carried over as done."
    return base + format_progress_and_next_task(tasks)


def format_done_result(
    success: bool,
    index: int,
    task: Optional[TaskWithStatus],
    tasks: List[TaskWithStatus],
) -> str:
    if not success or task is None:
        return f"Error: no task found at index {index}."

    base = f"✅ Task [{index}] done: {task.what}"
    return base + format_progress_and_next_task(tasks)


def format_phase_transition(completed_phase: str, following_phase: str) -> str:
    return "\n".join([
        "",
        "---",
        "",
        f"🏁 **{phase_label(completed_phase)} phase complete** → moving to **{phase_label(following_phase)}**",
    ])


def format_workflow_complete(completed_phases: List[str]) -> str:
    lines = ["🎉 **All phases are complete**", "", "Completed phases:"]
    for phase in completed_phases:
        lines.append(f"- ✅ {phase_label(phase)}")
    lines.append("")
    lines.append(f"To start a new workflow, `{tool_call('clear')}` and then register `requirements` again.")
    return "\n".join(lines)


def format_advance_blocked(phase: str, pending: List[TaskWithStatus]) -> str:
    lines = [
        f"⛔ **Cannot leave the {phase_label(phase)} phase**: {len(pending)} task(s) still pending.",
        "",
    ]
    for task in pending:
        lines.append(f"- [ ] [{task.index}] {task.what}")
    lines.append("")
    lines.append(f"Finish them with `{tool_call('done', index='<n>')}` and advance again.")
    return "\n".join(lines)


def format_task_list(
    goal: Optional[str],
    requirements: List[Requirement],
    tasks: List[TaskWithStatus],
    notes: Optional[Notes] = None,
    phase_state: Optional[PhaseState] = None,
    pr: Optional[PullRequestRef] = None,
) -> str:
    """Full state view used by ``list``."""
    if goal is None and not requirements and not tasks:
        return "No workflow registered."

    lines = ["## Workflow", ""]

    if goal is not None:
        lines += [f"**Goal**: {goal}", ""]

    if pr is not None:
        lines += [f"**PR**: #{pr.number} {pr.url}".rstrip(), ""]

    if phase_state is not None and (phase_state.current is not None or phase_state.completed):
        lines += [format_phase_progress(phase_state, tasks), ""]

    if requirements:
        lines += ["### Requirements", "", *_requirement_lines(requirements), ""]

    if tasks:
        completed = sum(1 for task in tasks if task.done)
        lines += [f"### Tasks ({completed}/{len(tasks)} done)", ""]

        groups: List[Optional[str]] = []
        for task in tasks:
            if task.phase not in groups:
                groups.append(task.phase)
        for group in groups:
            group_tasks = [task for task in tasks if task.phase == group]
            if len(groups) > 1:
                heading = phase_label(group) if group is not None else "Unphased"
                done = sum(1 for task in group_tasks if task.done)
                lines += [f"#### {heading} ({done}/{len(group_tasks)})", ""]
            for task in group_tasks:
                checkbox = "[x]" if task.done else "[ ]"
                lines.append(f"- {checkbox} [{task.index}] {task.what}")
                lines += [f"  {line}" for line in _task_detail_lines(task)]
            lines.append("")

    if notes is not None and not notes.is_empty():
        lines += ["### Notes", ""]
        for title, entries in (
            ("Design decisions", notes.design_decisions),
            ("Remaining work", notes.remaining_work),
            ("Breaking changes", notes.breaking_changes),
        ):
            if entries:
                lines.append(f"**{title}**")
                lines += [f"- {entry}" for entry in entries]
                lines.append("")

    return "\n".join(lines)


def format_clear_result() -> str:
    return "Cleared all workflow state."


def format_phase_reference(phase: str) -> List[str]:
    """Runbook and mode lines for a phase, empty for unregistered identifiers."""
    definition = definition_of(phase)
    if definition is None:
        return []
    lines = [f"  Runbook: `{definition.runbook}`"]
    if definition.dev_mode is not None:
        lines.append(f"  Mode: `{definition.dev_mode}`")
    return lines
