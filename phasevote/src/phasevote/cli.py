from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import VotingConfig, load_config
from .errors import ConfigError, SnapshotError, VotingError
from .events import JsonlEventWriter, emit_to
from .session import VotingSession
from .snapshot import read_snapshot, write_snapshot
from .tally import write_tally_report

logger = logging.getLogger(__name__)

# command -> session method taking only the caller
_ADMIN_STEPS = {
    "start-proposals": "start_proposals_registration",
    "end-proposals": "end_proposals_registration",
    "start-voting": "start_voting_session",
    "end-voting": "end_voting_session",
}


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="phasevote", description="Phase-gated proposal voting.")
    ap.add_argument("--config", default="", help="Optional YAML config file")
    ap.add_argument("--state", default="", help="Session state JSON (default from config: phasevote_state.json)")
    ap.add_argument("--as", dest="caller", default="", help="Caller identity (defaults to the configured admin)")

    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init", help="Create a new session state file")
    p.add_argument("--admin", default="", help="Administrator identity")
    p.add_argument("--force", action="store_true", help="Overwrite an existing state file")

    p = sub.add_parser("register-voter", help="Register a voter (admin)")
    p.add_argument("identity")

    for name in _ADMIN_STEPS:
        sub.add_parser(name, help="Advance to the next phase (admin)")

    p = sub.add_parser("propose", help="Submit a proposal (registered voter)")
    p.add_argument("description")

    p = sub.add_parser("vote", help="Vote for a proposal index (registered voter)")
    p.add_argument("index", type=int)

    sub.add_parser("tally", help="Count votes and pick the winner (admin)")
    sub.add_parser("winner", help="Show the current winner")
    sub.add_parser("record-point", help="Credit the winner's proposer with a win (admin)")
    sub.add_parser("archive-winner", help="Append the winner to the winners history (admin)")
    sub.add_parser("reset", help="Clear voters and reopen registration (admin)")
    sub.add_parser("status", help="Show the session status")

    p = sub.add_parser("report", help="Write tally.json for a tallied session")
    p.add_argument("--outdir", required=True, help="Output directory")

    return ap


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2, sort_keys=True))


def _status_doc(session: VotingSession) -> Dict[str, Any]:
    return {
        "status": session.status.value,
        "session_number": session.session_number,
        "voters": list(session.voter_roster),
        "proposals": [p.to_dict() for p in session.proposals],
        "winning_proposal_index": session.winning_proposal_index,
        "winners_history": list(session.winners_history),
    }


def _flush_events(cfg: VotingConfig, session: VotingSession) -> None:
    # events are buffered in session.events and only published once the state is saved
    if cfg.events_out is None or not session.events.events:
        return
    sinks = [JsonlEventWriter(cfg.events_out, resume=True)]
    for event in session.events.events:
        emit_to(sinks, event)


def _init(args: argparse.Namespace, cfg: VotingConfig, state_path: Path) -> int:
    admin = args.admin or cfg.admin
    if not admin:
        raise ConfigError("init requires --admin (or admin in config / PHASEVOTE_ADMIN)")
    if state_path.exists() and not args.force:
        raise ConfigError(f"state file already exists: {state_path} (use --force to overwrite)")
    session = VotingSession(admin, clear_proposals_on_reset=cfg.clear_proposals_on_reset)
    write_snapshot(state_path, session)
    print(f"Wrote: {state_path.resolve()}")
    return 0


def _run(args: argparse.Namespace, cfg: VotingConfig, state_path: Path) -> int:
    session = read_snapshot(state_path)
    caller = args.caller or cfg.admin or ""
    cmd = args.command
    mutated = True

    if cmd == "register-voter":
        session.register_voter(caller, args.identity)
        print(f"registered {args.identity}")
    elif cmd in _ADMIN_STEPS:
        new = getattr(session, _ADMIN_STEPS[cmd])(caller)
        print(new.value)
    elif cmd == "propose":
        index = session.submit_proposal(caller, args.description)
        print(index)
    elif cmd == "vote":
        session.cast_vote(caller, args.index)
        print(f"vote recorded for proposal {args.index}")
    elif cmd == "tally":
        winner = session.tally(caller)
        print(winner)
    elif cmd == "record-point":
        print(session.record_winner_point(caller))
    elif cmd == "archive-winner":
        print(session.append_winner_to_history(caller))
    elif cmd == "reset":
        print(session.reset_session(caller))
    elif cmd == "winner":
        mutated = False
        description, vote_count = session.get_winner()
        _print_json({
            "index": session.winning_proposal_index,
            "description": description,
            "vote_count": vote_count,
            "proposer": session.get_winner_identity(),
        })
    elif cmd == "status":
        mutated = False
        _print_json(_status_doc(session))
    elif cmd == "report":
        mutated = False
        path = write_tally_report(Path(args.outdir), session)
        print(f"Wrote: {path}")
    else:
        raise ConfigError(f"unknown command: {cmd}")

    if mutated:
        write_snapshot(state_path, session)
        _flush_events(cfg, session)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = load_config(Path(args.config) if args.config else None)
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(level=getattr(logging, cfg.log_level, logging.WARNING))
    state_path = Path(args.state) if args.state else cfg.state_path

    try:
        if args.command == "init":
            return _init(args, cfg, state_path)
        return _run(args, cfg, state_path)
    except (VotingError, SnapshotError, ConfigError, FileNotFoundError) as e:
        logger.debug("command %s failed", args.command, exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
