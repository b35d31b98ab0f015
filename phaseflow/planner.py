"""Phase planning briefings.

The planner decides which phase is the planning target and renders the
briefing an external agent uses to register that phase's tasks. It never
mutates the store.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from .context import ContextCollector, format_context_for_guidance
from .formatter import format_phase_reference, format_workflow_complete, tool_call
from .models import PlannerResult, Requirement, WorkflowContext
from .phases import SCOPES, next_phase, phase_label, phases_for_scope
from .store import WorkflowStore
from .workflow_logging import log_performance

logger = logging.getLogger("phaseflow.planner")


def scan_runbooks(runbooks_dir: Path) -> List[str]:
    """Runbook identifiers (file names without ``.md``) found in ``runbooks_dir``."""
    try:
        return sorted(path.stem for path in runbooks_dir.iterdir() if path.suffix == ".md")
    except OSError as e:
        logger.debug(f"Runbook scan failed for {runbooks_dir}: {e}")
        return []


def build_requirements_required_message() -> str:
    lines = [
        "⚠️ **No requirements registered**",
        "",
        "Register the goal, scope and requirements with the `requirements` action before `plan`.",
        "",
        "```python",
        f"{tool_call('requirements')[:-1]},",
        '  goal="Overall goal",',
        f"  scope='full',  # {' | '.join(repr(scope) for scope in SCOPES)}",
        "  requirements=[",
        "    {",
        '      "actor": "who",',
        '      "want": "what they want",',
        '      "because": "why (the problem)",',
        '      "acceptance": "success criterion",',
        "    }",
        "  ]",
        ")",
        "```",
        "",
        "## Scopes",
        "",
        "| Scope | Phases |",
        "|-------|--------|",
    ]
    for scope in SCOPES:
        lines.append(f"| `{scope}` | {' → '.join(phase_label(phase) for phase in phases_for_scope(scope))} |")
    return "\n".join(lines)


def build_phase_guidance_message(
    target_phase: str,
    goal: str,
    requirements: List[Requirement],
    context: WorkflowContext,
    available_runbooks: List[str],
) -> str:
    lines = [
        f"## {phase_label(target_phase)} phase",
        "",
        f"**Goal**: {goal}",
        "",
        "### Requirements",
        "",
    ]
    for number, requirement in enumerate(requirements, start=1):
        lines.append(f"{number}. **{requirement.actor}** wants **{requirement.want}** ({requirement.acceptance})")
    lines.append("")

    context_text = format_context_for_guidance(context)
    if context_text:
        lines.append(context_text)

    lines.append("▶ **Plan the tasks for this phase**")
    lines.append("")
    lines.extend(format_phase_reference(target_phase))
    if available_runbooks:
        lines.append(f"  Available runbooks: {', '.join(available_runbooks)}")
    lines.append("")

    lines += [
        "Register them with:",
        "",
        "```python",
        f"{tool_call('set')[:-1]},",
        "  tasks=[",
        f'    {{"what": "...", "why": "...", "doneWhen": "...", "phase": "{target_phase}", "refs": ["..."]}},',
        "  ],",
        '  notes={"designDecisions": [...], "remainingWork": [...], "breakingChanges": [...]},  # optional',
        ")",
        "```",
        "",
        "`set` replaces the whole task list. Re-send tasks already completed with `\"done\": true`, "
        "otherwise their completion is reset.",
    ]
    return "\n".join(lines)


class Planner:
    """Chooses the planning target phase and renders its briefing."""

    def __init__(self, store: WorkflowStore, collector: ContextCollector, runbooks_dir: Path | str):
        self.store = store
        self.collector = collector
        self.runbooks_dir = Path(runbooks_dir)

    def _ensure_runbooks_dir(self) -> None:
        try:
            self.runbooks_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Could not create runbooks directory {self.runbooks_dir}: {e}")

    def resolve_target_phase(self, override: Optional[str] = None) -> Optional[str]:
        """Explicit override, else the stored current phase, else the computed next phase.

        The computed phase skips phases already completed, so a finished plan
        resolves to None rather than restarting at the first phase.
        """
        if override is not None:
            return override
        current = self.store.get_current_phase()
        if current is not None:
            return current

        completed = self.store.get_completed_phases()
        candidate = self.store.get_next_phase()
        while candidate is not None and candidate in completed:
            candidate = next_phase(candidate, self.store.get_scope())
        return candidate

    @log_performance("plan")
    def execute(self, target_phase_override: Optional[str] = None) -> PlannerResult:
        self._ensure_runbooks_dir()
        available_runbooks = scan_runbooks(self.runbooks_dir)
        runbooks_dir = str(self.runbooks_dir)

        goal = self.store.get_goal()
        requirements = self.store.get_requirements()

        if goal is None or not requirements:
            return PlannerResult(
                guidance=build_requirements_required_message(),
                runbooks_dir=runbooks_dir,
                available_runbooks=available_runbooks,
            )

        target_phase = self.resolve_target_phase(target_phase_override)
        if target_phase is None:
            return PlannerResult(
                guidance=format_workflow_complete(self.store.get_completed_phases()),
                runbooks_dir=runbooks_dir,
                available_runbooks=available_runbooks,
            )

        context = self.collector.collect(self.store)
        logger.info(
            f"Planning {target_phase} with {len(context.commits)} commits and {len(context.pr_comments)} PR comments"
        )

        return PlannerResult(
            guidance=build_phase_guidance_message(target_phase, goal, requirements, context, available_runbooks),
            target_phase=target_phase,
            runbooks_dir=runbooks_dir,
            available_runbooks=available_runbooks,
        )
