"""Tests for child_resolver module."""

import pytest

from daycare_sync.child_resolver import resolve_child
from daycare_sync.exceptions import AmbiguousChildMatch, ChildNotFound
from daycare_sync.models import Child, ProcessingOutcome

EMMA = Child("c1", "Emma", "Smith")
EMMANUEL = Child("c2", "Emmanuel", "Smith")
OLIVER = Child("c3", "Oliver")


def test_exact_match_beats_partial():
    assert resolve_child("Emma", [EMMANUEL, EMMA]) == EMMA


def test_partial_match_is_case_insensitive():
    assert resolve_child("OLIVER", [EMMA, OLIVER]) == OLIVER
    assert resolve_child("oli", [EMMA, OLIVER]) == OLIVER


def test_partial_match_with_several_candidates_is_ambiguous():
    with pytest.raises(AmbiguousChildMatch) as exc_info:
        resolve_child("Em", [EMMA, EMMANUEL, OLIVER])
    assert exc_info.value.candidates == ["Emma Smith", "Emmanuel Smith"]
    assert exc_info.value.outcome == ProcessingOutcome.SKIPPED_AMBIGUOUS_CHILD_MATCH


def test_duplicate_exact_names_are_ambiguous():
    twin = Child("c4", "Emma", "Jones")
    with pytest.raises(AmbiguousChildMatch):
        resolve_child("Emma", [EMMA, twin])


def test_no_match_raises_not_found():
    with pytest.raises(ChildNotFound) as exc_info:
        resolve_child("Noah", [EMMA, OLIVER])
    assert exc_info.value.outcome == ProcessingOutcome.SKIPPED_CHILD_NOT_FOUND


@pytest.mark.parametrize("name", ["", "   "])
def test_empty_name_raises_not_found(name):
    with pytest.raises(ChildNotFound):
        resolve_child(name, [EMMA])


def test_empty_roster_raises_not_found():
    with pytest.raises(ChildNotFound):
        resolve_child("Emma", [])
