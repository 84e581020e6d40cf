"""Tests covering message classification and routing in the signaling relay."""

import json

import pytest

from helpers import make_handle, sent


def send(relay, handle, message) -> None:
    relay.on_message(handle, json.dumps(message))


def join(relay, handle, room_id, participant_id) -> None:
    send(relay, handle, {"type": "join-room", "roomId": room_id, "participantId": participant_id})


def test_first_participant_gets_empty_confirmation(relay) -> None:
    a = make_handle()
    join(relay, a, "r1", "a")

    assert sent(a) == [{"type": "joined-room", "roomId": "r1", "participantId": "a", "participants": []}]
    assert (a.room_id, a.participant_id) == ("r1", "a")


def test_arrival_is_announced_only_to_existing_member(relay) -> None:
    a, b = make_handle(), make_handle()
    join(relay, a, "r1", "a")
    sent(a)

    join(relay, b, "r1", "b")

    assert sent(b) == [{"type": "joined-room", "roomId": "r1", "participantId": "b", "participants": ["a"]}]
    assert sent(a) == [{"type": "user-joined", "userId": "b"}]


def test_user_id_alias_is_accepted(relay) -> None:
    a = make_handle()
    send(relay, a, {"type": "join-room", "roomId": "r1", "userId": "a"})

    assert sent(a)[0]["participantId"] == "a"


def test_third_participant_is_told_room_is_full(relay, registry) -> None:
    a, b, c = make_handle(), make_handle(), make_handle()
    join(relay, a, "r1", "a")
    join(relay, b, "r1", "b")
    sent(a)

    join(relay, c, "r1", "c")

    assert sent(c) == [{"type": "error", "message": "Room is full"}]
    assert sent(a) == []
    assert registry.participants("r1") == ["a", "b"]
    assert not c.is_bound


@pytest.mark.parametrize("payload", [
    {"type": "join-room", "roomId": "r1"},
    {"type": "join-room", "participantId": "a"},
    {"type": "join-room", "roomId": "", "participantId": "a"},
])
def test_join_without_identifiers_is_rejected(relay, registry, payload) -> None:
    a = make_handle()
    send(relay, a, payload)

    assert sent(a) == [{"type": "error", "message": "Room ID and User ID required"}]
    assert registry.room_count == 0


def test_duplicate_participant_id_is_rejected(relay, registry) -> None:
    a, impostor = make_handle(), make_handle()
    join(relay, a, "r1", "a")

    join(relay, impostor, "r1", "a")

    assert sent(impostor) == [{"type": "error", "message": "Room ID and User ID required"}]
    assert registry.participants("r1") == ["a"]


def test_handle_joins_at_most_once(relay, registry) -> None:
    a = make_handle()
    join(relay, a, "r1", "a")
    send(relay, a, {"type": "leave-room", "roomId": "r1", "participantId": "a"})
    sent(a)

    join(relay, a, "r2", "a")

    assert sent(a) == [{"type": "error", "message": "Room ID and User ID required"}]
    assert not registry.has_room("r2")


def test_offer_is_forwarded_with_provenance(relay) -> None:
    a, b = make_handle(), make_handle()
    join(relay, a, "r1", "a")
    join(relay, b, "r1", "b")
    sent(a), sent(b)

    send(relay, a, {"type": "offer", "roomId": "r1", "targetUserId": "b", "sdp": "X"})

    assert sent(b) == [{"type": "offer", "fromUserId": "a", "sdp": "X", "roomId": "r1", "targetUserId": "b"}]
    assert sent(a) == []


def test_candidate_without_target_goes_to_the_other_member(relay) -> None:
    a, b = make_handle(), make_handle()
    join(relay, a, "r1", "a")
    join(relay, b, "r1", "b")
    sent(a), sent(b)

    candidate = {"type": "ice-candidate", "roomId": "r1", "candidate": "candidate:1 1 udp 1 10.0.0.1 9 typ host",
                 "sdpMLineIndex": 0, "sdpMid": "0"}
    send(relay, b, candidate)

    assert sent(a) == [dict(candidate, fromUserId="b")]


def test_negotiation_payload_is_not_interpreted(relay) -> None:
    a, b = make_handle(), make_handle()
    join(relay, a, "r1", "a")
    join(relay, b, "r1", "b")
    sent(a), sent(b)

    send(relay, b, {"type": "answer", "roomId": "r1", "targetUserId": "a", "sdp": {"weird": [1, 2]}, "extra": True})

    assert sent(a) == [{"type": "answer", "roomId": "r1", "targetUserId": "a",
                        "sdp": {"weird": [1, 2]}, "extra": True, "fromUserId": "b"}]


@pytest.mark.parametrize("room_id", [None, "", "r2"])
def test_negotiation_for_foreign_room_is_invalid(relay, room_id) -> None:
    a, b = make_handle(), make_handle()
    join(relay, a, "r1", "a")
    join(relay, b, "r1", "b")
    sent(a), sent(b)

    message = {"type": "offer", "targetUserId": "b", "sdp": "X"}
    if room_id is not None:
        message["roomId"] = room_id
    send(relay, a, message)

    assert sent(a) == [{"type": "error", "message": "Invalid room"}]
    assert sent(b) == []


def test_negotiation_before_join_is_invalid(relay) -> None:
    stranger = make_handle()
    send(relay, stranger, {"type": "offer", "roomId": "r1", "targetUserId": "b", "sdp": "X"})

    assert sent(stranger) == [{"type": "error", "message": "Invalid room"}]


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", "42", b"\xff\xfe"])
def test_malformed_payload_reports_error_and_changes_nothing(relay, registry, raw) -> None:
    a = make_handle()
    join(relay, a, "r1", "a")
    sent(a)

    relay.on_message(a, raw)

    assert sent(a) == [{"type": "error", "message": "Invalid message format"}]
    assert registry.participants("r1") == ["a"]
    assert not a.closed


@pytest.mark.parametrize("message", [{"type": "dance"}, {"roomId": "r1"}, {"type": 5}])
def test_unknown_kind_is_reported(relay, message) -> None:
    a = make_handle()
    send(relay, a, message)

    assert sent(a) == [{"type": "error", "message": "Unknown message type"}]


def test_leave_room_notifies_remaining_member_once(relay, registry) -> None:
    a, b = make_handle(), make_handle()
    join(relay, a, "r1", "a")
    join(relay, b, "r1", "b")
    sent(a), sent(b)

    send(relay, a, {"type": "leave-room", "roomId": "r1", "participantId": "a"})
    send(relay, a, {"type": "leave-room", "roomId": "r1", "participantId": "a"})

    assert sent(b) == [{"type": "user-left", "userId": "a"}]
    assert registry.participants("r1") == ["b"]
    assert sent(a) == []


def test_leave_room_uses_bound_identity_not_payload(relay, registry) -> None:
    a, b = make_handle(), make_handle()
    join(relay, a, "r1", "a")
    join(relay, b, "r1", "b")

    send(relay, a, {"type": "leave-room", "roomId": "r1", "participantId": "b"})

    assert registry.participants("r1") == ["b"]


def test_room_disappears_when_last_member_leaves(relay, registry) -> None:
    a = make_handle()
    join(relay, a, "r1", "a")

    send(relay, a, {"type": "leave-room", "roomId": "r1", "participantId": "a"})

    assert not registry.has_room("r1")


def test_deeply_nested_payload_is_malformed_not_fatal(relay, registry) -> None:
    a, b = make_handle(), make_handle()
    join(relay, a, "r1", "a")
    join(relay, b, "r1", "b")
    sent(a), sent(b)

    relay.on_message(a, "[" * 100000)

    assert sent(a) == [{"type": "error", "message": "Invalid message format"}]
    assert sent(b) == []
    assert registry.participants("r1") == ["a", "b"]
    assert a.is_bound and not a.closed
