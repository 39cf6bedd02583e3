import pytest

from voting.ballot import BallotState, VotedEvent
from voting.errors import (
    AlreadyVoted,
    BallotError,
    EmptyProposals,
    InvalidProposal,
    NotAuthorized,
    Unauthorized,
)

CHAIR = "0xChair"
PROPOSALS = ["Fireball", "Invisibility", "Teleportation"]


def _ballot() -> BallotState:
    return BallotState(CHAIR, PROPOSALS)


def test_construct_sets_chairperson_and_zero_counts():
    b = _ballot()
    assert b.chairperson == CHAIR
    assert b.get_num_proposals() == len(PROPOSALS)
    for i, name in enumerate(PROPOSALS):
        assert b.get_proposal(i) == (name, 0)
    assert b.events == ()


def test_construct_rejects_empty_proposals():
    with pytest.raises(EmptyProposals):
        BallotState(CHAIR, [])


def test_construct_rejects_non_string_names():
    with pytest.raises(TypeError):
        BallotState(CHAIR, ["ok", 3])


def test_construct_keeps_duplicate_names_by_index():
    b = BallotState(CHAIR, ["Same", "Same"])
    assert b.get_num_proposals() == 2


def test_get_proposal_out_of_range():
    b = _ballot()
    with pytest.raises(InvalidProposal, match="Invalid proposal index."):
        b.get_proposal(3)
    with pytest.raises(InvalidProposal):
        b.get_proposal(-1)


def test_only_chairperson_can_authorize():
    b = _ballot()
    with pytest.raises(Unauthorized, match="Only chairperson can authorize voters."):
        b.authorize("0xA", "0xB")
    assert b.is_authorized("0xB") is False

    b.authorize(CHAIR, "0xB")
    assert b.voters("0xB") is True


def test_authorize_is_idempotent():
    b = _ballot()
    b.authorize(CHAIR, "0xA")
    b.authorize(CHAIR, "0xA")
    assert b.is_authorized("0xA") is True
    assert b.authorized_voters() == ["0xA"]


def test_chairperson_is_not_implicitly_a_voter():
    b = _ballot()
    with pytest.raises(NotAuthorized):
        b.vote(CHAIR, 0)
    b.authorize(CHAIR, CHAIR)
    b.vote(CHAIR, 0)
    assert b.get_proposal(0) == ("Fireball", 1)


@pytest.mark.parametrize("index", [0, 2, 99])
def test_unauthorized_vote_fails_for_any_index(index):
    b = _ballot()
    with pytest.raises(NotAuthorized, match="Has no right to vote."):
        b.vote("0xNobody", index)
    assert b.proposals == tuple((n, 0) for n in PROPOSALS)


@pytest.mark.parametrize("index", [3, 99, -1, True, "1", 1.0])
def test_invalid_index_rejected(index):
    b = _ballot()
    b.authorize(CHAIR, "0xA")
    with pytest.raises(InvalidProposal):
        b.vote("0xA", index)
    assert not b.has_voted("0xA")
    assert b.events == ()


def test_vote_increments_only_target_and_returns_event():
    b = _ballot()
    b.authorize(CHAIR, "0xA")
    ev = b.vote("0xA", 1)

    assert ev == VotedEvent(voter="0xA", proposal_index=1)
    assert b.events == (ev,)
    assert b.proposals == (("Fireball", 0), ("Invisibility", 1), ("Teleportation", 0))
    assert b.has_voted("0xA")


def test_second_vote_rejected_without_changes():
    b = _ballot()
    b.authorize(CHAIR, "0xA")
    b.vote("0xA", 1)
    before = b.proposals

    for idx in (0, 1, 2):
        with pytest.raises(AlreadyVoted):
            b.vote("0xA", idx)
    assert b.proposals == before
    assert len(b.events) == 1


def test_reauthorizing_a_voter_does_not_grant_another_vote():
    b = _ballot()
    b.authorize(CHAIR, "0xA")
    b.vote("0xA", 0)
    b.authorize(CHAIR, "0xA")
    with pytest.raises(AlreadyVoted):
        b.vote("0xA", 0)


def test_check_order_not_authorized_before_invalid_index():
    b = _ballot()
    with pytest.raises(NotAuthorized):
        b.vote("0xB", 99)


def test_check_order_invalid_index_before_already_voted():
    b = _ballot()
    b.authorize(CHAIR, "0xA")
    b.vote("0xA", 0)
    with pytest.raises(InvalidProposal):
        b.vote("0xA", 99)


def test_errors_share_base_and_reason():
    err = AlreadyVoted()
    assert isinstance(err, BallotError)
    assert isinstance(err, ValueError)
    assert err.reason == str(err) == "Already voted."


def test_listeners_receive_each_vote():
    b = _ballot()
    seen = []
    b.subscribe(seen.append)
    b.authorize(CHAIR, "0xA")
    b.authorize(CHAIR, "0xB")
    b.vote("0xA", 2)
    b.vote("0xB", 2)
    assert seen == [VotedEvent("0xA", 2), VotedEvent("0xB", 2)]

    b.unsubscribe(seen.append)
    b.authorize(CHAIR, "0xC")
    b.vote("0xC", 0)
    assert len(seen) == 2


def test_listener_error_propagates_after_vote_applies():
    b = _ballot()

    def boom(ev):
        raise RuntimeError("listener failed")

    b.subscribe(boom)
    b.authorize(CHAIR, "0xA")
    with pytest.raises(RuntimeError):
        b.vote("0xA", 0)
    assert b.get_proposal(0) == ("Fireball", 1)
    assert b.has_voted("0xA")
    assert b.events == (VotedEvent("0xA", 0),)
    with pytest.raises(AlreadyVoted):
        b.vote("0xA", 0)


def test_winning_proposal_prefers_lowest_index_on_tie():
    b = _ballot()
    assert b.winning_proposal() == 0
    for v in ("0xA", "0xB", "0xC"):
        b.authorize(CHAIR, v)
    b.vote("0xA", 2)
    assert b.winning_proposal() == 2
    b.vote("0xB", 1)
    assert b.winning_proposal() == 1
    b.vote("0xC", 1)
    assert b.winning_proposal() == 1


def test_identities_are_opaque_hashables():
    chair = ("org", 1)
    b = BallotState(chair, ["x"])
    b.authorize(("org", 1), 42)
    b.vote(42, 0)
    assert b.get_proposal(0) == ("x", 1)


def test_tally_matches_voters_who_voted():
    b = BallotState(CHAIR, PROPOSALS)
    voters = [f"0x{i}" for i in range(10)]
    for v in voters:
        b.authorize(CHAIR, v)
    for i, v in enumerate(voters[:7]):
        b.vote(v, i % 3)
    assert sum(c for _, c in b.proposals) == 7
    assert sum(b.has_voted(v) for v in voters) == 7
