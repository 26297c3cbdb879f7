"""
Workflow phases of a voting session.

The phases form a fixed line, walked one step at a time by the administrator:

    RegisteringVoters
      -> ProposalsRegistrationStarted
      -> ProposalsRegistrationEnded
      -> VotingSessionStarted
      -> VotingSessionEnded
      -> VotesTallied
      -> (reset) RegisteringVoters

There is no way to skip a phase or step backwards; the only edge leaving
VotesTallied is the reset back to RegisteringVoters.
"""
from __future__ import annotations

from enum import Enum
from typing import Dict

from .errors import InvalidPhaseError


class WorkflowStatus(str, Enum):
    REGISTERING_VOTERS = "RegisteringVoters"
    PROPOSALS_REGISTRATION_STARTED = "ProposalsRegistrationStarted"
    PROPOSALS_REGISTRATION_ENDED = "ProposalsRegistrationEnded"
    VOTING_SESSION_STARTED = "VotingSessionStarted"
    VOTING_SESSION_ENDED = "VotingSessionEnded"
    VOTES_TALLIED = "VotesTallied"


INITIAL_STATUS = WorkflowStatus.REGISTERING_VOTERS

# predecessor -> successor; the last entry is the reset edge
TRANSITIONS: Dict[WorkflowStatus, WorkflowStatus] = {
    WorkflowStatus.REGISTERING_VOTERS: WorkflowStatus.PROPOSALS_REGISTRATION_STARTED,
    WorkflowStatus.PROPOSALS_REGISTRATION_STARTED: WorkflowStatus.PROPOSALS_REGISTRATION_ENDED,
    WorkflowStatus.PROPOSALS_REGISTRATION_ENDED: WorkflowStatus.VOTING_SESSION_STARTED,
    WorkflowStatus.VOTING_SESSION_STARTED: WorkflowStatus.VOTING_SESSION_ENDED,
    WorkflowStatus.VOTING_SESSION_ENDED: WorkflowStatus.VOTES_TALLIED,
    WorkflowStatus.VOTES_TALLIED: WorkflowStatus.REGISTERING_VOTERS,
}


def next_status(current: WorkflowStatus) -> WorkflowStatus:
    return TRANSITIONS[current]


def require_status(current: WorkflowStatus, expected: WorkflowStatus, action: str) -> None:
    """Raises InvalidPhaseError unless ``current`` is exactly ``expected``."""
    if current is not expected:
        raise InvalidPhaseError(
            f"{action} requires phase {expected.value}, current phase is {current.value}",
            expected=expected,
            actual=current,
        )


def advance(current: WorkflowStatus, expected: WorkflowStatus, action: str) -> WorkflowStatus:
    """Checks the predecessor phase and returns the successor phase."""
    require_status(current, expected, action)
    return next_status(current)


def parse_status(value: str) -> WorkflowStatus:
    try:
        return WorkflowStatus(value)
    except ValueError:
        raise ValueError(f"unknown workflow status: {value!r}") from None
