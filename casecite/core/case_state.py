"""Per-case report state machine: idle → processing → idle | error."""

from enum import Enum
from typing import NamedTuple


class CaseState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    ERROR = "error"


# processing → processing is a second request arriving while one is in
# flight; requests on the same case are not serialized.
ALLOWED_TRANSITIONS: dict[CaseState, set[CaseState]] = {
    CaseState.IDLE: {CaseState.PROCESSING},
    CaseState.ERROR: {CaseState.PROCESSING},
    CaseState.PROCESSING: {CaseState.PROCESSING, CaseState.IDLE, CaseState.ERROR},
}


class Transition(NamedTuple):
    """Outcome of a transition function: the next state and whether it is legal."""

    state: CaseState
    ok: bool


def _step(current: CaseState, target: CaseState) -> Transition:
    current = CaseState(current)
    if target in ALLOWED_TRANSITIONS[current]:
        return Transition(target, True)
    return Transition(current, False)


def begin_processing(current: CaseState) -> Transition:
    """A report request was accepted; committed before any external call."""
    return _step(current, CaseState.PROCESSING)


def complete(current: CaseState) -> Transition:
    """The report was generated and persisted."""
    return _step(current, CaseState.IDLE)


def fail(current: CaseState) -> Transition:
    """Generation or persistence failed."""
    return _step(current, CaseState.ERROR)


# A request that already moved the case to processing settles it whatever a
# concurrent request left behind; the last writer wins.


def settle_complete(current: CaseState) -> Transition:
    """Completion for a request in flight; accepted from every state."""
    return Transition(CaseState.IDLE, True)


def settle_fail(current: CaseState) -> Transition:
    """Failure for a request in flight; accepted from every state."""
    return Transition(CaseState.ERROR, True)
