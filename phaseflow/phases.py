"""Phase registry for the delivery workflow.

Phases form a fixed, totally ordered catalogue. A scope selects the ordered
subset of that catalogue a plan will execute; scopes are nested, so every
phase of a narrower scope also belongs to every wider one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple

Phase = Literal[
    "contract",
    "policy",
    "frontend",
    "server-core",
    "server-implement",
    "infra",
    "final-review",
    "e2e",
]

# policy: Contract + Policy
# frontend: + Frontend (mock mode)
# server-core: + Server domain model and ports
# full: + Server implementation, Infra, Final Review, E2E
Scope = Literal["policy", "frontend", "server-core", "full"]

DevMode = Literal["mock", "full"]

SCOPES: Tuple[str, ...] = ("policy", "frontend", "server-core", "full")
DEFAULT_SCOPE: Scope = "full"

RUNBOOKS_RELATIVE_DIR = "procedure/workflow/runbooks"


@dataclass(frozen=True, slots=True)
class PhaseDefinition:
    """Immutable catalogue entry for a single phase."""

    id: Phase
    name: str
    runbook: str
    required_for_scope: Tuple[str, ...] = field(default_factory=tuple)
    dev_mode: Optional[DevMode] = None

    def to_dict(self) -> Dict[str, object]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "runbook": self.runbook,
            "required_for_scope": list(self.required_for_scope),
            "dev_mode": self.dev_mode,
        }


# Execution order. Never mutated at runtime.
PHASES: Tuple[PhaseDefinition, ...] = (
    PhaseDefinition(
        id="contract",
        name="Contract",
        runbook=f"{RUNBOOKS_RELATIVE_DIR}/30-contract.md",
        required_for_scope=("policy", "frontend", "server-core", "full"),
    ),
    PhaseDefinition(
        id="policy",
        name="Policy",
        runbook=f"{RUNBOOKS_RELATIVE_DIR}/40-policy.md",
        required_for_scope=("policy", "frontend", "server-core", "full"),
    ),
    PhaseDefinition(
        id="frontend",
        name="Frontend",
        runbook=f"{RUNBOOKS_RELATIVE_DIR}/50-frontend.md",
        required_for_scope=("frontend", "server-core", "full"),
        dev_mode="mock",
    ),
    PhaseDefinition(
        id="server-core",
        name="Server/Core",
        runbook=f"{RUNBOOKS_RELATIVE_DIR}/60-server-core.md",
        required_for_scope=("server-core", "full"),
        dev_mode="full",
    ),
    PhaseDefinition(
        id="server-implement",
        name="Server/Implement",
        runbook=f"{RUNBOOKS_RELATIVE_DIR}/65-server-implement.md",
        required_for_scope=("full",),
        dev_mode="full",
    ),
    PhaseDefinition(
        id="infra",
        name="Infra",
        runbook=f"{RUNBOOKS_RELATIVE_DIR}/70-infra.md",
        required_for_scope=("full",),
    ),
    PhaseDefinition(
        id="final-review",
        name="Final Review",
        runbook=f"{RUNBOOKS_RELATIVE_DIR}/80-final-review.md",
        required_for_scope=("full",),
    ),
    PhaseDefinition(
        id="e2e",
        name="E2E",
        runbook=f"{RUNBOOKS_RELATIVE_DIR}/90-e2e.md",
        required_for_scope=("full",),
    ),
)

PHASE_ORDER: Tuple[str, ...] = tuple(definition.id for definition in PHASES)

_DEFINITIONS: Dict[str, PhaseDefinition] = {definition.id: definition for definition in PHASES}


def validate_phase(value: str) -> str:
    """Return ``value`` if it names a registered phase, else raise ValueError."""
    if value not in _DEFINITIONS:
        raise ValueError(f"Unknown phase '{value}'. Expected one of: {', '.join(PHASE_ORDER)}")
    return value


def validate_scope(value: str) -> str:
    """Return ``value`` if it names a known scope, else raise ValueError."""
    if value not in SCOPES:
        raise ValueError(f"Unknown scope '{value}'. Expected one of: {', '.join(SCOPES)}")
    return value


def phases_for_scope(scope: str) -> List[str]:
    """Return the phases a scope includes, in execution order."""
    return [definition.id for definition in PHASES if scope in definition.required_for_scope]


def is_in_scope(phase: str, scope: str) -> bool:
    return phase in phases_for_scope(scope)


def next_phase(current: Optional[str], scope: str) -> Optional[str]:
    """Return the phase following ``current`` within ``scope``.

    With no current phase this yields the first phase of the scope, which
    doubles as the initial phase of a freshly registered plan. A phase that is
    last in the scope, or not part of it at all, has no successor.
    """
    in_scope = phases_for_scope(scope)

    if current is None:
        return in_scope[0] if in_scope else None

    if current not in in_scope:
        return None

    position = in_scope.index(current)
    if position == len(in_scope) - 1:
        return None
    return in_scope[position + 1]


def definition_of(phase: str) -> Optional[PhaseDefinition]:
    """Look up a phase definition; unknown identifiers yield None."""
    return _DEFINITIONS.get(phase)


def phase_label(phase: str) -> str:
    """Display name for a phase, falling back to the raw identifier."""
    definition = definition_of(phase)
    return definition.name if definition else phase
