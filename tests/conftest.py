"""Shared fixtures for phaseflow tests."""

import json
import subprocess
import tempfile
from pathlib import Path

import pytest

from phaseflow.workflow import WorkflowManager


class FakeRunner:
    """Stands in for ``git``/``gh`` invocations.

    ``responses`` maps an argument prefix to stdout text or an exception.
    The first matching prefix wins; unmatched commands fail like a missing tool.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    def __call__(self, args, cwd):
        self.calls.append(list(args))
        for prefix, result in self.responses.items():
            if tuple(args[:len(prefix)]) == prefix:
                if isinstance(result, Exception):
                    raise result
                return result
        raise subprocess.CalledProcessError(1, args, stderr="not available")


def git_log_output(*commits):
    return "\n".join("\x1f".join(commit) for commit in commits) + "\n"


def gh_comments_output(*comments):
    return json.dumps([
        {"user": {"login": author}, "body": body, "created_at": created_at}
        for author, body, created_at in comments
    ])


GIT_LOG = ("git", "log")
PR_VIEW_CURRENT = ("gh", "pr", "view", "--json", "number,url")


def issue_comments_key(number):
    return ("gh", "api", f"repos/{{owner}}/{{repo}}/issues/{number}/comments")


def review_comments_key(number):
    return ("gh", "api", f"repos/{{owner}}/{{repo}}/pulls/{number}/comments")


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def project_dir():
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def manager(project_dir, runner):
    return WorkflowManager(project_dir, runner=runner)


@pytest.fixture
def sample_requirements():
    return [
        {
            "actor": "project member",
            "want": "attach files to a todo",
            "because": "context lives in documents",
            "acceptance": "uploaded file is downloadable from the todo",
            "constraints": ["max 10MB"],
        }
    ]


@pytest.fixture
def contract_tasks():
    return [
        {"what": "Define attachment schema", "why": "shared contract", "doneWhen": "schema merged", "phase": "contract"},
        {"what": "Define upload endpoint", "why": "API contract", "doneWhen": "OpenAPI updated", "phase": "contract"},
    ]
