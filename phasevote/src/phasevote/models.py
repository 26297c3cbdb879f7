from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict


@dataclass
class Voter:
    is_registered: bool = True
    has_voted: bool = False
    voted_proposal_id: int = 0
    win_count: int = 0

    def copy(self) -> "Voter":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_registered": self.is_registered,
            "has_voted": self.has_voted,
            "voted_proposal_id": self.voted_proposal_id,
            "win_count": self.win_count,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Voter":
        return cls(
            is_registered=bool(d["is_registered"]),
            has_voted=bool(d["has_voted"]),
            voted_proposal_id=int(d["voted_proposal_id"]),
            win_count=int(d["win_count"]),
        )


@dataclass
class Proposal:
    description: str
    proposer: str
    vote_count: int = 0

    def copy(self) -> "Proposal":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "proposer": self.proposer,
            "vote_count": self.vote_count,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Proposal":
        return cls(
            description=str(d["description"]),
            proposer=str(d["proposer"]),
            vote_count=int(d["vote_count"]),
        )
