"""
Canonical workflow types (``gst_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document state machines.  Invoice status
(generated -> sent -> acknowledged) and ledger entry status
(pending -> settled) are declared with these types and advanced through
``Workflow.next_state``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass

from gst_kernel.exceptions import InvalidStatusTransition


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    Guarantees: ``initial_state`` is a member of ``states``.
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
                f"Workflow {self.name}: initial state {self.initial_state!r} not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action!r} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state!r} has a transition"
                )

    def next_state(self, current: str, action: str) -> str:
        """Resolve ``action`` from ``current``.

        Raises:
            InvalidStatusTransition: no such transition is declared.
        """
        for t in self.transitions:
            if t.from_state == current and t.action == action:
                return t.to_state
        raise InvalidStatusTransition(self.name, current, action)

    def allowed_actions(self, current: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == current)
