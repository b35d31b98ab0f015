"""Restore briefings built from a pull request description.

The restorer reads a pull request body and renders instructions for an
external agent to replay ``requirements`` and ``set`` calls. It does not
touch workflow state.
"""

from __future__ import annotations

import logging
from typing import Optional

from .context import ContextCollector
from .formatter import tool_call
from .models import RestorerResult

logger = logging.getLogger("phaseflow.restorer")


def build_no_pr_message() -> str:
    return "\n".join([
        "⚠️ **No pull request found**",
        "",
        "The current branch has no pull request, or the given PR number is invalid.",
        "",
        "Check that:",
        "- a pull request has been opened for the current branch",
        "- the `pr_number` argument names an existing pull request",
        "",
        "```bash",
        "# show the pull request of the current branch",
        "gh pr view",
        "```",
    ])


def build_empty_pr_body_message(pr_number: int) -> str:
    return "\n".join([
        "⚠️ **Pull request body is empty**",
        "",
        f"The body of PR #{pr_number} is empty or could not be read.",
        "",
        "Fill in the pull request description following the PR template, then restore again.",
    ])


def build_restore_guidance_message(pr_number: int, pr_body: str) -> str:
    return "\n".join([
        "# Restore workflow from pull request",
        "",
        "## ▶ Next action",
        "",
        "Parse the pull request body below and replay the workflow state from it.",
        "",
        "---",
        "",
        f"**PR**: #{pr_number}",
        "",
        "## PR body",
        "",
        "```markdown",
        pr_body,
        "```",
        "",
        "## Steps",
        "",
        "1. Extract the goal, requirements, scope and tasks from the body",
        f"2. Restore requirements with `{tool_call('requirements')}`",
        f"3. Restore tasks with `{tool_call('set')}`",
        "4. Report what was restored",
        "",
        "## Notes",
        "",
        "- Carry checkbox state over exactly: `[x]` becomes `\"done\": true`, `[ ]` stays pending",
        "- Tag each task with its phase (contract, policy, frontend, ...)",
        "- Infer the scope from the phases the tasks cover",
    ])


class Restorer:
    """Prepares restore guidance from pull request metadata."""

    def __init__(self, collector: ContextCollector):
        self.collector = collector

    def execute(self, pr_number_override: Optional[int] = None) -> RestorerResult:
        pr_number = pr_number_override
        if pr_number is None:
            pr = self.collector.get_pr_for_current_branch()
            if pr is None:
                return RestorerResult(
                    guidance=build_no_pr_message(),
                    success=False,
                    error="No PR found for current branch",
                )
            pr_number = pr.number

        pr_body = self.collector.get_pr_body(pr_number)
        if pr_body is None or not pr_body.strip():
            logger.info(f"PR #{pr_number} has no readable body")
            return RestorerResult(
                guidance=build_empty_pr_body_message(pr_number),
                success=False,
                pr_number=pr_number,
                error="PR body is empty or could not be read",
            )

        return RestorerResult(
            guidance=build_restore_guidance_message(pr_number, pr_body),
            success=True,
            pr_number=pr_number,
            pr_body=pr_body,
        )
