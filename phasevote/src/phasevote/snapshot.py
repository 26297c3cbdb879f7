"""
Session snapshots (v1)

A snapshot is a plain JSON document holding the whole persisted state of a
voting session: phase, session counter, electorate, proposals, winner index
and winners history. It is what the CLI keeps on disk between commands.

- Validated with JSON Schema (draft 2020-12) on both dump and restore.
- Restore also checks that the voter roster and the voter map agree.
- Canonical JSON on write; BOM-tolerant reads.
"""
from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from jsonschema import Draft202012Validator

from .errors import SnapshotError
from .events import EventSink
from .models import Proposal, Voter
from .session import VotingSession
from .workflow import WorkflowStatus, parse_status


SNAPSHOT_SCHEMA_ID = "phasevote.session_snapshot.v1"

_VOTER_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["is_registered", "has_voted", "voted_proposal_id", "win_count"],
    "additionalProperties": False,
    "properties": {
        "is_registered": {"type": "boolean"},
        "has_voted": {"type": "boolean"},
        "voted_proposal_id": {"type": "integer", "minimum": 0},
        "win_count": {"type": "integer", "minimum": 0},
    },
}

_PROPOSAL_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["description", "proposer", "vote_count"],
    "additionalProperties": False,
    "properties": {
        "description": {"type": "string"},
        "proposer": {"type": "string"},
        "vote_count": {"type": "integer", "minimum": 0},
    },
}

SNAPSHOT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": SNAPSHOT_SCHEMA_ID,
    "type": "object",
    "required": [
        "version",
        "schema_id",
        "admin",
        "status",
        "session_number",
        "voters",
        "voter_roster",
        "proposals",
        "winning_proposal_index",
        "winners_history",
    ],
    "properties": {
        "version": {"const": 1},
        "schema_id": {"const": SNAPSHOT_SCHEMA_ID},
        "admin": {"type": "string", "minLength": 1},
        "status": {"enum": [s.value for s in WorkflowStatus]},
        "session_number": {"type": "integer", "minimum": 0},
        "voters": {"type": "object", "additionalProperties": _VOTER_SCHEMA},
        "voter_roster": {"type": "array", "items": {"type": "string"}, "uniqueItems": True},
        "proposals": {"type": "array", "items": _PROPOSAL_SCHEMA},
        "winning_proposal_index": {"type": ["integer", "null"], "minimum": 0},
        "winners_history": {"type": "array", "items": {"type": "string"}},
        "options": {
            "type": "object",
            "properties": {"clear_proposals_on_reset": {"type": "boolean"}},
        },
    },
}

_validator: Optional[Draft202012Validator] = None


def _get_validator() -> Draft202012Validator:
    global _validator
    if _validator is None:
        Draft202012Validator.check_schema(SNAPSHOT_SCHEMA)
        _validator = Draft202012Validator(SNAPSHOT_SCHEMA)
    return _validator


def _canonical_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), sort_keys=True)


def _sha256_hex(b: bytes) -> str:
    return hashlib.sha256(b).hexdigest()


def validate_snapshot(doc: Dict[str, Any]) -> None:
    errs = sorted(_get_validator().iter_errors(doc), key=lambda e: list(e.path))
    if errs:
        msg = "\n".join(f"- {'.'.join(str(x) for x in e.path) or '<root>'}: {e.message}" for e in errs)
        raise SnapshotError("session snapshot schema validation failed:\n" + msg)

    roster = doc["voter_roster"]
    voters = doc["voters"]
    if set(roster) != set(voters):
        missing = sorted(set(roster) - set(voters))
        extra = sorted(set(voters) - set(roster))
        raise SnapshotError(f"voter roster and voter map disagree (missing entries: {missing}, unrostered: {extra})")

    unregistered = sorted(i for i in roster if not voters[i]["is_registered"])
    if unregistered:
        raise SnapshotError(f"rostered voters must be registered: {unregistered}")

    n = len(doc["proposals"])
    for identity, v in voters.items():
        if v["has_voted"] and not 0 <= v["voted_proposal_id"] < n:
            raise SnapshotError(f"voter {identity!r} voted for unknown proposal {v['voted_proposal_id']}")


def dump_session(session: VotingSession) -> Dict[str, Any]:
    st = session._state()
    doc: Dict[str, Any] = {
        "version": 1,
        "schema_id": SNAPSHOT_SCHEMA_ID,
        "admin": st["admin"],
        "status": st["status"].value,
        "session_number": st["session_number"],
        "voters": {k: v.to_dict() for k, v in st["voters"].items()},
        "voter_roster": st["roster"],
        "proposals": [p.to_dict() for p in st["proposals"]],
        "winning_proposal_index": st["winning_index"],
        "winners_history": st["winners_history"],
        "options": {"clear_proposals_on_reset": st["clear_proposals_on_reset"]},
    }
    validate_snapshot(doc)
    return doc


def restore_session(doc: Dict[str, Any], *, sinks: Optional[Iterable[EventSink]] = None) -> VotingSession:
    validate_snapshot(doc)
    options = doc.get("options") or {}
    return VotingSession._restore(
        admin=doc["admin"],
        status=parse_status(doc["status"]),
        session_number=int(doc["session_number"]),
        voters={k: Voter.from_dict(v) for k, v in doc["voters"].items()},
        roster=list(doc["voter_roster"]),
        proposals=[Proposal.from_dict(p) for p in doc["proposals"]],
        winning_index=doc["winning_proposal_index"],
        winners_history=list(doc["winners_history"]),
        clear_proposals_on_reset=bool(options.get("clear_proposals_on_reset", False)),
        sinks=sinks,
    )


def snapshot_sha256(doc: Dict[str, Any]) -> str:
    return _sha256_hex(_canonical_dumps(doc).encode("utf-8"))


def write_snapshot(path: Path, session: VotingSession) -> Path:
    doc = dump_session(session)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(_canonical_dumps(doc), encoding="utf-8")
    tmp.replace(path)
    return path


def read_snapshot(path: Path, *, sinks: Optional[Iterable[EventSink]] = None) -> VotingSession:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"session state not found: {path}")
    try:
        doc = json.loads(path.read_text(encoding="utf-8-sig"))
    except json.JSONDecodeError as e:
        raise SnapshotError(f"session state is not valid JSON: {path}: {e}") from e
    if not isinstance(doc, dict):
        raise SnapshotError(f"session state must be a JSON object: {path}")
    return restore_session(doc, sinks=sinks)
