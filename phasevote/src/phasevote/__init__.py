from phasevote.errors import (
    AlreadyVotedError,
    AuthorizationError,
    ConfigError,
    DuplicateError,
    InvalidPhaseError,
    OutOfRangeError,
    SnapshotError,
    VotingError,
)
from phasevote.events import EventLog, EventSink, JsonlEventWriter, VotingEvent
from phasevote.models import Proposal, Voter
from phasevote.session import VotingSession
from phasevote.tally import build_tally_report, select_winner, write_tally_report
from phasevote.workflow import WorkflowStatus

__version__ = "0.1.0"

__all__ = [
    "AlreadyVotedError",
    "AuthorizationError",
    "ConfigError",
    "DuplicateError",
    "EventLog",
    "EventSink",
    "InvalidPhaseError",
    "JsonlEventWriter",
    "OutOfRangeError",
    "Proposal",
    "SnapshotError",
    "Voter",
    "VotingError",
    "VotingEvent",
    "VotingSession",
    "WorkflowStatus",
    "build_tally_report",
    "select_winner",
    "write_tally_report",
    "__version__",
]
