"""Environment-driven configuration for the phaseflow server."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

from .phases import RUNBOOKS_RELATIVE_DIR

PROJECT_ROOT_ENV = "PHASEFLOW_PROJECT_ROOT"
GUARDRAILS_ROOT_ENV = "PHASEFLOW_GUARDRAILS_ROOT"
COMMIT_LIMIT_ENV = "PHASEFLOW_COMMIT_LIMIT"
LOG_LEVEL_ENV = "PHASEFLOW_LOG_LEVEL"
LOG_FILE_ENV = "PHASEFLOW_LOG_FILE"

PROJECT_MARKERS = (".git", "guardrails")
DEFAULT_COMMIT_LIMIT = 20


def _candidate_bases(start: Path) -> List[Path]:
    start = start.resolve()
    return [start, *start.parents]


def locate_project_root(start: Optional[Path] = None) -> Path:
    """Walk up from ``start`` to the first directory holding a project marker."""
    start = start or Path.cwd()
    for base in _candidate_bases(start):
        for marker in PROJECT_MARKERS:
            if (base / marker).exists():
                return base
    return start.resolve()


def _existing_path(value: str, variable: str) -> Path:
    resolved = Path(value).expanduser().resolve()
    if not resolved.exists():
        raise ValueError(f"Environment variable {variable} points to '{value}', which does not exist.")
    return resolved


def _positive_int(value: str, variable: str) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise ValueError(f"Environment variable {variable} must be an integer, got '{value}'.") from None
    if parsed <= 0:
        raise ValueError(f"Environment variable {variable} must be positive, got {parsed}.")
    return parsed


@dataclass(frozen=True, slots=True)
class Settings:
    """Resolved server settings."""

    project_root: Path
    guardrails_root: Path
    commit_limit: int = DEFAULT_COMMIT_LIMIT
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @property
    def runbooks_dir(self) -> Path:
        return self.guardrails_root / RUNBOOKS_RELATIVE_DIR

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, *, cwd: Optional[Path] = None) -> "Settings":
        """Build settings from environment variables.

        Raises:
            ValueError: a configured path does not exist or a number is malformed.
        """
        env = os.environ if environ is None else environ

        root_value = env.get(PROJECT_ROOT_ENV)
        if root_value:
            project_root = _existing_path(root_value, PROJECT_ROOT_ENV)
        else:
            project_root = locate_project_root(cwd)

        guardrails_value = env.get(GUARDRAILS_ROOT_ENV)
        if guardrails_value:
            guardrails_root = Path(guardrails_value).expanduser().resolve()
        else:
            guardrails_root = project_root / "guardrails"

        limit_value = env.get(COMMIT_LIMIT_ENV)
        commit_limit = _positive_int(limit_value, COMMIT_LIMIT_ENV) if limit_value else DEFAULT_COMMIT_LIMIT

        log_file_value = env.get(LOG_FILE_ENV)

        return cls(
            project_root=project_root,
            guardrails_root=guardrails_root,
            commit_limit=commit_limit,
            log_level=(env.get(LOG_LEVEL_ENV) or "INFO").upper(),
            log_file=Path(log_file_value).expanduser() if log_file_value else None,
        )
