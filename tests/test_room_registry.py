"""Tests covering room membership, capacity and payload forwarding."""

import random

import pytest

from pairlink.core.exceptions import InvalidRequest, InvalidRoom, RoomFull, RoomNotFound

from helpers import make_handle, sent


def test_first_join_creates_room(registry) -> None:
    others = registry.join("r1", "a", make_handle())

    assert others == []
    assert registry.has_room("r1")
    assert registry.participants("r1") == ["a"]


def test_second_join_returns_existing_participant(registry) -> None:
    registry.join("r1", "a", make_handle())

    assert registry.join("r1", "b", make_handle()) == ["a"]
    assert registry.participants("r1") == ["a", "b"]


def test_third_join_is_rejected_without_mutation(registry) -> None:
    registry.join("r1", "a", make_handle())
    registry.join("r1", "b", make_handle())

    with pytest.raises(RoomFull) as excinfo:
        registry.join("r1", "c", make_handle())

    assert excinfo.value.message == "Room is full"
    assert registry.participants("r1") == ["a", "b"]


@pytest.mark.parametrize("room_id,participant_id", [("", "a"), ("r1", ""), (None, "a"), ("r1", None)])
def test_join_requires_identifiers(registry, room_id, participant_id) -> None:
    with pytest.raises(InvalidRequest) as excinfo:
        registry.join(room_id, participant_id, make_handle())

    assert excinfo.value.message == "Room ID and User ID required"
    assert registry.room_count == 0


def test_duplicate_participant_does_not_shadow_live_handle(registry) -> None:
    live = make_handle()
    stale = make_handle()
    registry.join("r1", "a", live)

    with pytest.raises(InvalidRequest):
        registry.join("r1", "a", stale)

    registry.forward("r1", "a", None, {"type": "offer"})
    registry.join("r1", "b", make_handle())
    registry.forward("r1", "b", "a", {"type": "answer"})
    assert [m["type"] for m in sent(live)] == ["answer"]
    assert sent(stale) == []


def test_leave_destroys_empty_room(registry) -> None:
    registry.join("r1", "a", make_handle())
    registry.join("r1", "b", make_handle())

    assert registry.leave("r1", "a") == ["b"]
    assert registry.has_room("r1")
    assert registry.leave("r1", "b") == []
    assert not registry.has_room("r1")


def test_leave_unknown_is_noop(registry) -> None:
    assert registry.leave("missing", "a") is None
    registry.join("r1", "a", make_handle())
    assert registry.leave("r1", "zed") is None
    assert registry.leave("r1", "a") == []
    assert registry.leave("r1", "a") is None


def test_forward_to_target_only(registry) -> None:
    a, b = make_handle(), make_handle()
    registry.join("r1", "a", a)
    registry.join("r1", "b", b)

    delivered = registry.forward("r1", "a", "b", {"type": "offer", "sdp": "X"})

    assert delivered == 1
    assert sent(b) == [{"type": "offer", "sdp": "X"}]
    assert sent(a) == []


def test_forward_without_target_broadcasts_to_others(registry) -> None:
    a, b = make_handle(), make_handle()
    registry.join("r1", "a", a)
    registry.join("r1", "b", b)

    assert registry.forward("r1", "b", None, {"type": "ice-candidate"}) == 1
    assert sent(a) == [{"type": "ice-candidate"}]
    assert sent(b) == []


def test_forward_to_absent_target_delivers_nothing(registry) -> None:
    registry.join("r1", "a", make_handle())

    assert registry.forward("r1", "a", "ghost", {"type": "offer"}) == 0


def test_forward_requires_membership(registry) -> None:
    registry.join("r1", "a", make_handle())
    registry.join("r2", "b", make_handle())

    with pytest.raises(InvalidRoom):
        registry.forward("r1", "b", "a", {"type": "offer"})
    with pytest.raises(RoomNotFound):
        registry.forward("nowhere", "a", None, {"type": "offer"})


def test_forward_skips_unwritable_recipient(registry) -> None:
    a, b = make_handle(), make_handle(outbox_size=1)
    registry.join("r1", "a", a)
    registry.join("r1", "b", b)

    assert registry.forward("r1", "a", "b", {"type": "offer"}) == 1
    # Outbox is full now; the next frame is dropped without an error.
    assert registry.forward("r1", "a", "b", {"type": "ice-candidate"}) == 0
    assert [m["type"] for m in sent(b)] == ["offer"]


def test_capacity_holds_over_random_sequences(registry) -> None:
    rng = random.Random(7)
    members = {}
    for _ in range(500):
        room_id = rng.choice(["r1", "r2", "r3"])
        participant_id = rng.choice("abcde")
        if rng.random() < 0.6:
            try:
                registry.join(room_id, participant_id, make_handle())
                members.setdefault(room_id, set()).add(participant_id)
            except (RoomFull, InvalidRequest):
                pass
        else:
            registry.leave(room_id, participant_id)
            members.get(room_id, set()).discard(participant_id)

        for rid in ("r1", "r2", "r3"):
            assert len(registry.participants(rid)) <= 2
            assert registry.has_room(rid) == bool(members.get(rid))


def test_forward_to_self_is_delivered(registry) -> None:
    a, b = make_handle(), make_handle()
    registry.join("r1", "a", a)
    registry.join("r1", "b", b)

    assert registry.forward("r1", "a", "a", {"type": "offer"}) == 1
    assert sent(a) == [{"type": "offer"}]
    assert sent(b) == []
