"""
test_references.py
------------------
CareGate — Consent-aware FHIR Access Gateway — Test Suite for references.py
----------------------------------------------------------------------------
Tests cover:
    - suffix match on bare ids and canonical paths
    - exact equality for organization references
    - missing / empty references never match

Run:
    pytest tests/test_references.py -v --tb=short
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from references import practitioner_path, reference_ends_with, references_equal


class TestReferenceEndsWith:

    def test_relative_reference_matches_id(self):
        assert reference_ends_with("Patient/P2", "P2") is True

    def test_absolute_reference_matches_canonical_path(self):
        assert reference_ends_with("https://host/fhir/Practitioner/42", "Practitioner/42") is True

    def test_different_id_does_not_match(self):
        assert reference_ends_with("Patient/P2", "P3") is False

    def test_suffix_match_is_not_segment_aware(self):
        # Bare-id suffix matching: "XP2" ends with "P2".
        assert reference_ends_with("Patient/XP2", "P2") is True

    def test_missing_reference_never_matches(self):
        assert reference_ends_with(None, "P2") is False
        assert reference_ends_with("", "P2") is False

    def test_empty_suffix_never_matches(self):
        assert reference_ends_with("Patient/P2", "") is False
        assert reference_ends_with("Patient/P2", None) is False


class TestReferencesEqual:

    def test_identical_references_are_equal(self):
        assert references_equal("Organization/Org1", "Organization/Org1") is True

    def test_suffix_is_not_equality(self):
        assert references_equal("https://host/Organization/Org1", "Organization/Org1") is False

    def test_two_missing_references_are_not_equal(self):
        assert references_equal(None, None) is False
        assert references_equal("", "") is False


def test_practitioner_path():
    assert practitioner_path("42") == "Practitioner/42"
    assert practitioner_path(None) is None
