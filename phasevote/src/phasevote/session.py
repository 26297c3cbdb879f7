"""
Voting session: the single owner of all voting state.

One administrator walks the session through the phases in
``phasevote.workflow``. Registered voters submit proposals while proposal
registration is open and cast one vote each while voting is open. After the
administrator tallies, the winner can be read, credited and archived, and
the session can be reset to run again with a fresh electorate.

Every public method runs under ``self.lock`` and checks all of its
preconditions before touching state, so a rejected call has no effect and
emits no event.
"""
from __future__ import annotations

import functools
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from .errors import (
    AlreadyVotedError,
    AuthorizationError,
    DuplicateError,
    InvalidPhaseError,
    OutOfRangeError,
    VotingError,
)
from .events import (
    PHASE_CHANGED,
    PROPOSAL_REGISTERED,
    VOTE_CAST,
    VOTER_REGISTERED,
    EventLog,
    EventSink,
    VotingEvent,
    emit_to,
)
from .models import Proposal, Voter
from .tally import select_winner
from .workflow import INITIAL_STATUS, WorkflowStatus, advance, require_status

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _operation(fn: F) -> F:
    @functools.wraps(fn)
    def wrapper(self: "VotingSession", *args: Any, **kwargs: Any) -> Any:
        with self.lock:
            try:
                return fn(self, *args, **kwargs)
            except VotingError as e:
                logger.debug("%s rejected: %s", fn.__name__, e)
                raise
    return wrapper  # type: ignore[return-value]


class VotingSession:
    def __init__(
        self,
        admin: str,
        *,
        sinks: Optional[Iterable[EventSink]] = None,
        clear_proposals_on_reset: bool = False,
    ) -> None:
        if not isinstance(admin, str) or not admin:
            raise ValueError("admin identity must be a non-empty string")
        self._admin = admin
        self.clear_proposals_on_reset = bool(clear_proposals_on_reset)
        self.lock = threading.RLock()

        self.events = EventLog()
        self._sinks: List[EventSink] = [self.events, *(sinks or [])]

        self._status: WorkflowStatus = INITIAL_STATUS
        self._session_number = 0
        self._voters: Dict[str, Voter] = {}
        self._roster: List[str] = []
        self._proposals: List[Proposal] = []
        self._winning_index: Optional[int] = None
        self._winners_history: List[str] = []

    # ---------- guards ----------

    def _require_admin(self, caller: str, action: str) -> None:
        if caller != self._admin:
            raise AuthorizationError(f"{action} is restricted to the administrator")

    def _require_voter(self, caller: str, action: str) -> Voter:
        voter = self._voters.get(caller)
        if voter is None or not voter.is_registered:
            raise AuthorizationError(f"{action} requires a registered voter, {caller!r} is not registered")
        return voter

    def _check_index(self, index: object) -> None:
        if isinstance(index, bool) or not isinstance(index, int):
            raise OutOfRangeError(f"proposal index must be an integer, got {index!r}")
        if not 0 <= index < len(self._proposals):
            raise OutOfRangeError(f"proposal index {index} out of range ({len(self._proposals)} submitted)")

    def _emit(self, kind: str, data: Dict[str, Any]) -> None:
        emit_to(self._sinks, VotingEvent(kind=kind, data=data))

    def _set_status(self, new: WorkflowStatus) -> None:
        previous = self._status
        self._status = new
        logger.info("phase %s -> %s (session %d)", previous.value, new.value, self._session_number)
        self._emit(PHASE_CHANGED, {"previous": previous.value, "new": new.value})

    def _transition(self, caller: str, expected: WorkflowStatus, action: str) -> WorkflowStatus:
        self._require_admin(caller, action)
        self._set_status(advance(self._status, expected, action))
        return self._status

    def _winner_proposal(self) -> Proposal:
        if self._winning_index is None:
            raise InvalidPhaseError(
                "no winner yet: votes have not been tallied",
                expected=WorkflowStatus.VOTES_TALLIED,
                actual=self._status,
            )
        idx = self._winning_index
        if not 0 <= idx < len(self._proposals):
            raise OutOfRangeError(f"winning proposal index {idx} has no proposal ({len(self._proposals)} submitted)")
        return self._proposals[idx]

    # ---------- read surface ----------

    @property
    def admin(self) -> str:
        return self._admin

    @property
    def status(self) -> WorkflowStatus:
        return self._status

    @property
    def session_number(self) -> int:
        return self._session_number

    @property
    def winning_proposal_index(self) -> Optional[int]:
        return self._winning_index

    @property
    def proposals(self) -> Tuple[Proposal, ...]:
        with self.lock:
            return tuple(p.copy() for p in self._proposals)

    @property
    def voter_roster(self) -> Tuple[str, ...]:
        with self.lock:
            return tuple(self._roster)

    @property
    def winners_history(self) -> Tuple[str, ...]:
        with self.lock:
            return tuple(self._winners_history)

    def get_voter(self, identity: str) -> Optional[Voter]:
        """Returns a copy of the voter entry, or None if ``identity`` has none."""
        with self.lock:
            v = self._voters.get(identity)
            return v.copy() if v is not None else None

    @_operation
    def get_proposal(self, index: int) -> Proposal:
        self._check_index(index)
        return self._proposals[index].copy()

    def total_votes(self) -> int:
        with self.lock:
            return sum(p.vote_count for p in self._proposals)

    # ---------- registry ----------

    @_operation
    def register_voter(self, caller: str, identity: str) -> None:
        self._require_admin(caller, "register voter")
        require_status(self._status, WorkflowStatus.REGISTERING_VOTERS, "register voter")
        if identity in self._voters:
            raise DuplicateError(f"voter {identity!r} is already registered")

        self._voters[identity] = Voter(is_registered=True, has_voted=False, voted_proposal_id=0, win_count=0)
        self._roster.append(identity)
        logger.debug("registered voter %s", identity)
        self._emit(VOTER_REGISTERED, {"identity": identity})

    @_operation
    def start_proposals_registration(self, caller: str) -> WorkflowStatus:
        return self._transition(caller, WorkflowStatus.REGISTERING_VOTERS, "start proposals registration")

    @_operation
    def submit_proposal(self, caller: str, description: str) -> int:
        """Appends a proposal and returns its index. Empty descriptions are accepted."""
        require_status(self._status, WorkflowStatus.PROPOSALS_REGISTRATION_STARTED, "submit proposal")
        self._require_voter(caller, "submit proposal")

        self._proposals.append(Proposal(description=description, proposer=caller, vote_count=0))
        index = len(self._proposals) - 1
        logger.debug("proposal %d registered by %s", index, caller)
        self._emit(PROPOSAL_REGISTERED, {"index": index})
        return index

    @_operation
    def end_proposals_registration(self, caller: str) -> WorkflowStatus:
        return self._transition(caller, WorkflowStatus.PROPOSALS_REGISTRATION_STARTED, "end proposals registration")

    # ---------- ballots ----------

    @_operation
    def start_voting_session(self, caller: str) -> WorkflowStatus:
        return self._transition(caller, WorkflowStatus.PROPOSALS_REGISTRATION_ENDED, "start voting session")

    @_operation
    def cast_vote(self, caller: str, proposal_index: int) -> None:
        require_status(self._status, WorkflowStatus.VOTING_SESSION_STARTED, "cast vote")
        voter = self._require_voter(caller, "cast vote")
        if voter.has_voted:
            raise AlreadyVotedError(f"voter {caller!r} has already voted for proposal {voter.voted_proposal_id}")
        self._check_index(proposal_index)

        voter.voted_proposal_id = proposal_index
        voter.has_voted = True
        self._proposals[proposal_index].vote_count += 1
        logger.debug("vote cast by %s for proposal %d", caller, proposal_index)
        self._emit(VOTE_CAST, {"identity": caller, "proposal_index": proposal_index})

    @_operation
    def end_voting_session(self, caller: str) -> WorkflowStatus:
        return self._transition(caller, WorkflowStatus.VOTING_SESSION_STARTED, "end voting session")

    # ---------- tally ----------

    @_operation
    def tally(self, caller: str) -> int:
        """Closes the session for counting and returns the winning proposal index."""
        self._require_admin(caller, "tally votes")
        new = advance(self._status, WorkflowStatus.VOTING_SESSION_ENDED, "tally votes")

        winner = select_winner(self._proposals)
        self._winning_index = winner
        self._set_status(new)
        if not self._proposals:
            logger.warning("tallied session %d with no proposals; winner index defaults to 0", self._session_number)
        else:
            logger.info(
                "session %d winner: proposal %d with %d vote(s)",
                self._session_number,
                winner,
                self._proposals[winner].vote_count,
            )
        return winner

    @_operation
    def get_winner(self) -> Tuple[str, int]:
        """Returns ``(description, vote_count)`` of the current winner."""
        p = self._winner_proposal()
        return p.description, p.vote_count

    @_operation
    def get_winner_identity(self) -> str:
        return self._winner_proposal().proposer

    @_operation
    def record_winner_point(self, caller: str) -> int:
        """Credits the current winner's proposer with one win; returns the new count."""
        self._require_admin(caller, "record winner point")
        proposer = self._winner_proposal().proposer
        voter = self._voters.get(proposer)
        if voter is None:
            raise AuthorizationError(f"winner {proposer!r} has no voter entry in session {self._session_number}")

        voter.win_count += 1
        logger.info("win recorded for %s (total %d)", proposer, voter.win_count)
        return voter.win_count

    @_operation
    def append_winner_to_history(self, caller: str) -> str:
        self._require_admin(caller, "append winner to history")
        require_status(self._status, WorkflowStatus.VOTES_TALLIED, "append winner to history")
        proposer = self._winner_proposal().proposer

        self._winners_history.append(proposer)
        logger.info("winner %s archived (%d in history)", proposer, len(self._winners_history))
        return proposer

    # ---------- reset ----------

    @_operation
    def reset_session(self, caller: str) -> int:
        """Clears the electorate and reopens registration; returns the new session number."""
        self._require_admin(caller, "reset session")
        new = advance(self._status, WorkflowStatus.VOTES_TALLIED, "reset session")

        self._session_number += 1
        for identity in self._roster:
            del self._voters[identity]
        self._roster.clear()
        if self.clear_proposals_on_reset:
            self._proposals.clear()
            self._winning_index = None
        self._set_status(new)
        return self._session_number

    # ---------- snapshot support ----------

    @classmethod
    def _restore(
        cls,
        *,
        admin: str,
        status: WorkflowStatus,
        session_number: int,
        voters: Dict[str, Voter],
        roster: List[str],
        proposals: List[Proposal],
        winning_index: Optional[int],
        winners_history: List[str],
        clear_proposals_on_reset: bool = False,
        sinks: Optional[Iterable[EventSink]] = None,
    ) -> "VotingSession":
        s = cls(admin, sinks=sinks, clear_proposals_on_reset=clear_proposals_on_reset)
        s._status = status
        s._session_number = session_number
        s._voters = dict(voters)
        s._roster = list(roster)
        s._proposals = list(proposals)
        s._winning_index = winning_index
        s._winners_history = list(winners_history)
        return s

    def _state(self) -> Dict[str, Any]:
        with self.lock:
            return {
                "admin": self._admin,
                "status": self._status,
                "session_number": self._session_number,
                "voters": {k: v.copy() for k, v in self._voters.items()},
                "roster": list(self._roster),
                "proposals": [p.copy() for p in self._proposals],
                "winning_index": self._winning_index,
                "winners_history": list(self._winners_history),
                "clear_proposals_on_reset": self.clear_proposals_on_reset,
            }
