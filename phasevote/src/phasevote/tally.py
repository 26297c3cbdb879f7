from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Sequence
from uuid import uuid4

from .models import Proposal
from .workflow import WorkflowStatus, require_status

if TYPE_CHECKING:
    from .session import VotingSession


TALLY_REPORT_SCHEMA_ID = "phasevote.tally_report.v1"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def select_winner(proposals: Sequence[Proposal]) -> int:
    """
    Returns the index of the winning proposal.

    A later proposal only takes the lead with a strictly greater count, so a
    tie goes to the earliest submission. With no proposals, or no votes at
    all, the result is 0.
    """
    winner = 0
    best = 0
    for i, p in enumerate(proposals):
        if p.vote_count > best:
            best = p.vote_count
            winner = i
    return winner


def build_tally_report(session: "VotingSession") -> Dict[str, Any]:
    """
    Returns a report dict for a tallied session. Does NOT write to disk.
    """
    with session.lock:
        require_status(session.status, WorkflowStatus.VOTES_TALLIED, "tally report")
        proposals = session.proposals
        roster = session.voter_roster
        voted = 0
        for identity in roster:
            v = session.get_voter(identity)
            if v is not None and v.has_voted:
                voted += 1

        winner: Any = None
        idx = session.winning_proposal_index
        if idx is not None and 0 <= idx < len(proposals):
            w = proposals[idx]
            winner = {
                "index": idx,
                "description": w.description,
                "vote_count": w.vote_count,
                "proposer": w.proposer,
            }

        return {
            "version": 1,
            "schema_id": TALLY_REPORT_SCHEMA_ID,
            "report_id": str(uuid4()),
            "created_at": _utc_now_iso(),
            "session_number": session.session_number,
            "status": session.status.value,
            "counts": [
                {"index": i, "description": p.description, "vote_count": p.vote_count}
                for i, p in enumerate(proposals)
            ],
            "total_votes": sum(p.vote_count for p in proposals),
            "voters_registered": len(roster),
            "voters_voted": voted,
            "winner": winner,
            "winners_history": list(session.winners_history),
        }


def write_tally_report(outdir: Path, session: "VotingSession") -> Path:
    report = build_tally_report(session)
    outdir = Path(outdir).resolve()
    outdir.mkdir(parents=True, exist_ok=True)
    path = outdir / "tally.json"
    path.write_text(
        json.dumps(report, ensure_ascii=False, separators=(",", ":"), sort_keys=True),
        encoding="utf-8",
    )
    return path
