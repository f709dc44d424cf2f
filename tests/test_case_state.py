"""Tests for the case report state machine."""

import pytest

from casecite.core.case_state import (
    ALLOWED_TRANSITIONS,
    CaseState,
    Transition,
    begin_processing,
    complete,
    fail,
    settle_complete,
    settle_fail,
)


@pytest.mark.parametrize("start", [CaseState.IDLE, CaseState.ERROR])
def test_begin_processing_from_rest(start):
    assert begin_processing(start) == Transition(CaseState.PROCESSING, True)


def test_begin_processing_while_processing_is_allowed():
    assert begin_processing(CaseState.PROCESSING).ok


def test_complete_only_from_processing():
    assert complete(CaseState.PROCESSING) == Transition(CaseState.IDLE, True)
    assert complete(CaseState.IDLE) == Transition(CaseState.IDLE, False)
    assert complete(CaseState.ERROR) == Transition(CaseState.ERROR, False)


def test_fail_only_from_processing():
    assert fail(CaseState.PROCESSING) == Transition(CaseState.ERROR, True)
    assert not fail(CaseState.IDLE).ok


def test_accepts_plain_strings():
    assert begin_processing("idle").state == CaseState.PROCESSING


def test_every_state_has_transitions():
    assert set(ALLOWED_TRANSITIONS) == set(CaseState)


@pytest.mark.parametrize("start", list(CaseState))
def test_settle_accepted_from_every_state(start):
    assert settle_complete(start) == Transition(CaseState.IDLE, True)
    assert settle_fail(start) == Transition(CaseState.ERROR, True)
