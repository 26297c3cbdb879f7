from __future__ import annotations

import pytest

from phasevote import (
    AuthorizationError,
    InvalidPhaseError,
    OutOfRangeError,
    VotingSession,
    WorkflowStatus,
)

ADMIN = "admin"


def tallied(clear_proposals_on_reset: bool = False) -> VotingSession:
    s = VotingSession(ADMIN, clear_proposals_on_reset=clear_proposals_on_reset)
    for v in ("A", "B", "C"):
        s.register_voter(ADMIN, v)
    s.start_proposals_registration(ADMIN)
    s.submit_proposal("A", "X")
    s.submit_proposal("B", "Y")
    s.end_proposals_registration(ADMIN)
    s.start_voting_session(ADMIN)
    s.cast_vote("A", 1)
    s.cast_vote("B", 1)
    s.cast_vote("C", 0)
    s.end_voting_session(ADMIN)
    s.tally(ADMIN)
    return s


def test_record_winner_point_increments_proposer():
    s = tallied()
    assert s.record_winner_point(ADMIN) == 1
    assert s.record_winner_point(ADMIN) == 2
    assert s.get_voter("B").win_count == 2
    assert s.get_voter("A").win_count == 0


def test_record_winner_point_before_tally():
    s = VotingSession(ADMIN)
    with pytest.raises(InvalidPhaseError):
        s.record_winner_point(ADMIN)


def test_record_winner_point_after_reset_fails_for_missing_entry():
    s = tallied()
    s.reset_session(ADMIN)
    # winner index survives reset, but B's voter entry is gone
    assert s.get_winner_identity() == "B"
    with pytest.raises(AuthorizationError):
        s.record_winner_point(ADMIN)


def test_append_winner_to_history_requires_tallied_phase():
    s = tallied()
    assert s.append_winner_to_history(ADMIN) == "B"
    assert s.winners_history == ("B",)

    s.reset_session(ADMIN)
    with pytest.raises(InvalidPhaseError):
        s.append_winner_to_history(ADMIN)
    assert s.winners_history == ("B",)


def test_append_winner_without_proposals():
    s = VotingSession(ADMIN)
    s.start_proposals_registration(ADMIN)
    s.end_proposals_registration(ADMIN)
    s.start_voting_session(ADMIN)
    s.end_voting_session(ADMIN)
    s.tally(ADMIN)
    with pytest.raises(OutOfRangeError):
        s.append_winner_to_history(ADMIN)
    assert s.winners_history == ()


def test_reset_clears_voters_and_keeps_proposals():
    s = tallied()
    s.append_winner_to_history(ADMIN)
    proposals_before = s.proposals

    assert s.reset_session(ADMIN) == 1
    assert s.session_number == 1
    assert s.status is WorkflowStatus.REGISTERING_VOTERS
    assert s.voter_roster == ()
    for v in ("A", "B", "C"):
        assert s.get_voter(v) is None
    assert s.proposals == proposals_before
    assert s.winners_history == ("B",)
    assert s.winning_proposal_index == 1


def test_reset_allows_reregistration_and_fresh_votes():
    s = tallied()
    s.reset_session(ADMIN)
    s.register_voter(ADMIN, "A")
    assert s.get_voter("A").has_voted is False
    s.start_proposals_registration(ADMIN)
    s.submit_proposal("A", "Z")
    s.end_proposals_registration(ADMIN)
    s.start_voting_session(ADMIN)
    # kept proposals remain votable, counts keep accumulating
    s.cast_vote("A", 0)
    assert s.get_proposal(0).vote_count == 2
    assert len(s.proposals) == 3


def test_reset_requires_tallied_phase():
    s = VotingSession(ADMIN)
    s.register_voter(ADMIN, "A")
    with pytest.raises(InvalidPhaseError):
        s.reset_session(ADMIN)
    assert s.session_number == 0
    assert s.voter_roster == ("A",)


def test_reset_can_clear_proposals_when_configured():
    s = tallied(clear_proposals_on_reset=True)
    s.append_winner_to_history(ADMIN)
    s.reset_session(ADMIN)
    assert s.proposals == ()
    assert s.winning_proposal_index is None
    assert s.winners_history == ("B",)
    with pytest.raises(InvalidPhaseError):
        s.get_winner()


def test_session_counter_increments_once_per_reset():
    s = tallied()
    s.reset_session(ADMIN)
    for _ in range(5):
        s.start_proposals_registration(ADMIN)
        s.end_proposals_registration(ADMIN)
        s.start_voting_session(ADMIN)
        s.end_voting_session(ADMIN)
        s.tally(ADMIN)
        s.reset_session(ADMIN)
    assert s.session_number == 6
