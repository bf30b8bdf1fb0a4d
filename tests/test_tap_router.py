"""Tests for notification tap routing."""

import pytest

from dreampush.client.tap_router import DEFAULT_DESTINATION, resolve_destination, route_notification_tap


@pytest.mark.parametrize("data, expected", [
    ({"type": "message"}, "/messages"),
    ({"type": "comment", "dream_id": "abc"}, "/social?dream=abc"),
    ({"type": "like", "dream_id": "d-42"}, "/social?dream=d-42"),
    ({"type": "like"}, "/social"),
    ({"type": "follow", "actor_id": "u-9"}, "/profile/u-9"),
    ({"type": "follow_request", "requester_id": "u-7"}, "/profile/u-7"),
    ({"type": "follow"}, "/social"),
    ({"type": "dream_completed", "dream_id": "abc"}, "/library"),
    ({"type": "trial_expired"}, "/pricing"),
])
def test_known_types(data, expected):
    assert resolve_destination(data) == expected


@pytest.mark.parametrize("data", [
    {"type": "something_new"},
    {},
    None,
    "message",
    ["message"],
])
def test_unknown_payloads_go_home(data):
    assert resolve_destination(data) == DEFAULT_DESTINATION == "/"


def test_navigates_exactly_once():
    visited = []
    path = route_notification_tap({"type": "comment", "dream_id": "abc"}, visited.append)
    assert path == "/social?dream=abc"
    assert visited == ["/social?dream=abc"]
