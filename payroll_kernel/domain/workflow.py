"""
Canonical workflow types (``payroll_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for lifecycle state machines: ``Guard``,
``Transition`` and ``Workflow``.  A ``Workflow`` is a closed declaration;
lookups answer "which transition does this action fire from this state"
without any I/O.  Guards are evaluated against facts the caller supplies.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* At most one transition per (from_state, action) pair.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Guard:
    """A precondition that must hold before a transition fires.

    ``predicate`` receives whatever facts the owning service gathered for
    the request; ``refusal`` builds the exception raised, given the entity id.
    """
    name: str
    description: str
    predicate: Callable[[Any], bool]
    refusal: Callable[[Any], Exception]

    def check(self, facts: Any, entity_id: Any) -> None:
        """Raise the refusal unless the predicate holds for ``facts``."""
        if not self.predicate(facts):
            raise self.refusal(entity_id)


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``locks_records`` / ``releases_records`` declare the effect the
    transition has on held work records.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    locks_records: bool = False
    releases_records: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    Guarantees: validated on construction (see module invariants).
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} "
                "is not a declared state"
            )
        seen: set[tuple[str, str]] = set()
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} references "
                    f"undeclared state ({t.from_state} -> {t.to_state})"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state} "
                    f"has outgoing transition {t.action}"
                )
            key = (t.from_state, t.action)
            if key in seen:
                raise ValueError(
                    f"Workflow {self.name}: duplicate transition {t.action} "
                    f"from {t.from_state}"
                )
            seen.add(key)

    def transition_for(self, state: str, action: str) -> Transition | None:
        """Return the transition ``action`` fires from ``state``, if any."""
        for t in self.transitions:
            if t.from_state == state and t.action == action:
                return t
        return None

    def allowed_actions(self, state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == state)

    def actions(self) -> frozenset[str]:
        return frozenset(t.action for t in self.transitions)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states
