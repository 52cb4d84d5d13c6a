#!/usr/bin/env python3
"""Tests for active branch selection."""

import logging

import pytest

from conversation_flow.models import BranchInfo, Message
from conversation_flow.transformation import BranchResolver


def _parent(active_branch_index=None) -> Message:
    metadata = (
        {"activeBranchIndex": active_branch_index}
        if active_branch_index is not None
        else None
    )
    return Message(id="parent", role="user", metadata=metadata)


CHILDREN = ["child-0", "child-1", "child-2"]


class TestGetActiveIndex:
    def test_defaults_to_zero(self):
        assert BranchResolver().get_active_index(_parent()) == 0
        assert BranchResolver().get_active_index(None) == 0

    @pytest.mark.parametrize("value", [-1, "1", 1.5, True])
    def test_invalid_values_become_zero(self, value):
        assert BranchResolver().get_active_index(_parent(value)) == 0


class TestSelect:
    def test_no_children(self):
        assert BranchResolver().select(_parent(), []) is None

    def test_single_child_without_index(self):
        assert BranchResolver().select(_parent(), ["only"]) == "only"

    def test_explicit_index(self):
        assert BranchResolver().select(_parent(2), CHILDREN) == "child-2"

    def test_default_first_child(self):
        assert BranchResolver().select(_parent(), CHILDREN) == "child-0"

    def test_optimistic_index_stops(self):
        """Index == number of children: a new branch is being created."""
        assert BranchResolver().select(_parent(3), CHILDREN) is None
        assert BranchResolver().select(_parent(1), ["only"]) is None

    def test_out_of_range_index_stops(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.DEBUG, logger="conversation_flow"):
            assert BranchResolver().select(_parent(7), CHILDREN) is None
        assert "out of range" in caplog.text

    def test_missing_parent_message(self):
        assert BranchResolver().select(None, CHILDREN) == "child-0"


class TestBranchInfo:
    def test_fork(self):
        assert BranchResolver().branch_info(_parent(1), CHILDREN) == BranchInfo(
            active_branch_index=1, count=3
        )

    def test_not_a_fork(self):
        assert BranchResolver().branch_info(_parent(), ["only"]) is None

    def test_optimistic_has_no_info(self):
        assert BranchResolver().branch_info(_parent(3), CHILDREN) is None


class TestResolveActiveChild:
    def test_from_raw_maps(self):
        parent = _parent(1)
        resolver = BranchResolver()
        assert (
            resolver.resolve_active_child(
                "parent", {"parent": CHILDREN}, {"parent": parent}
            )
            == "child-1"
        )
        assert resolver.resolve_active_child("leaf", {}, {}) is None
