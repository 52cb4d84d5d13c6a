#!/usr/bin/env python3
"""Tests for root detection and id tree construction."""

from conversation_flow.factories import create_message
from conversation_flow.indexing import build_helper_maps
from conversation_flow.structuring import (
    IdNode,
    build_id_tree,
    find_root_ids,
    index_id_tree,
)
from test.builders import assistant, linear_conversation, user


def _maps(*raw):
    return build_helper_maps([create_message(r) for r in raw])


class TestFindRootIds:
    def test_parentless_messages(self):
        maps = _maps(user("msg-1"), assistant("msg-2", "msg-1"), user("msg-3"))
        assert find_root_ids(maps) == ["msg-1", "msg-3"]

    def test_missing_parent_is_root(self):
        """Thread views: the source message is not part of the input."""
        maps = _maps(
            user("thread-1", "source-msg", threadId="t-1"),
            assistant("thread-2", "thread-1", threadId="t-1"),
        )
        assert find_root_ids(maps) == ["thread-1"]


class TestBuildIdTree:
    def test_empty(self):
        assert build_id_tree(_maps()) == []

    def test_nested_branches(self):
        maps = _maps(
            user("msg-1"),
            assistant("msg-2", "msg-1"),
            assistant("msg-3", "msg-1"),
            user("msg-4", "msg-3"),
        )
        assert build_id_tree(maps) == [
            IdNode(
                "msg-1",
                [IdNode("msg-2"), IdNode("msg-3", [IdNode("msg-4")])],
            )
        ]

    def test_thread_messages_not_in_tree(self):
        maps = _maps(
            user("msg-1"),
            user("thread-1", "msg-1", threadId="t-1"),
        )
        assert build_id_tree(maps) == [IdNode("msg-1")]

    def test_parent_cycle_terminates(self):
        maps = _maps(
            user("msg-1"),
            assistant("msg-2", "msg-1"),
            user("msg-3", "msg-4"),
            assistant("msg-4", "msg-3"),
        )
        # msg-3 and msg-4 only reference each other: neither is reachable
        assert build_id_tree(maps) == [IdNode("msg-1", [IdNode("msg-2")])]

    def test_long_chain_does_not_recurse(self):
        maps = build_helper_maps(
            [create_message(m) for m in linear_conversation(5000)]
        )
        tree = build_id_tree(maps)
        assert len(index_id_tree(tree)) == 5000
