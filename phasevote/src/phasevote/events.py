from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

VOTER_REGISTERED = "voter_registered"
PHASE_CHANGED = "phase_changed"
PROPOSAL_REGISTERED = "proposal_registered"
VOTE_CAST = "vote_cast"

EVENT_KINDS = (VOTER_REGISTERED, PHASE_CHANGED, PROPOSAL_REGISTERED, VOTE_CAST)


@dataclass(frozen=True)
class VotingEvent:
    kind: str
    data: Dict[str, Any]


class EventSink(Protocol):
    def emit(self, event: VotingEvent) -> None:
        ...


@dataclass
class EventLog:
    """In-memory sink; keeps every event in emission order."""
    events: List[VotingEvent] = field(default_factory=list)

    def emit(self, event: VotingEvent) -> None:
        self.events.append(event)

    def kinds(self) -> List[str]:
        return [e.kind for e in self.events]

    def of_kind(self, kind: str) -> List[VotingEvent]:
        return [e for e in self.events if e.kind == kind]

    def __len__(self) -> int:
        return len(self.events)


def _canonical_line(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":")) + "\n"


def events_out_path() -> Optional[Path]:
    v = os.environ.get("PHASEVOTE_EVENTS_OUT", "").strip()
    if not v:
        return None
    return Path(v)


class JsonlEventWriter:
    """
    Appends one canonical JSON object per event:

      {"data": {...}, "kind": "vote_cast", "seq": 3}

    Sequence numbers are per writer and start at 1, or continue after the
    last line already in the file when ``resume`` is set.
    """

    def __init__(self, path: Path, *, resume: bool = False) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._seq = 0
        if resume:
            prior = read_events(self.path)
            if prior:
                self._seq = int(prior[-1].get("seq", len(prior)))

    def reset_seq(self) -> None:
        with self._lock:
            self._seq = 0

    def _next_seq(self) -> int:
        with self._lock:
            self._seq += 1
            return self._seq

    def emit(self, event: VotingEvent) -> None:
        evt = {"seq": self._next_seq(), "kind": str(event.kind), "data": event.data}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8", newline="\n") as f:
                f.write(_canonical_line(evt))
        except OSError as e:
            logger.warning("could not append event to %s: %s", self.path, e)


def read_events(path: Path) -> List[Dict[str, Any]]:
    if not path.exists():
        return []
    out: List[Dict[str, Any]] = []
    for ln in path.read_text(encoding="utf-8-sig").splitlines():
        if ln.strip():
            out.append(json.loads(ln))
    return out


def emit_to(sinks: List[EventSink], event: VotingEvent) -> None:
    for sink in sinks:
        try:
            sink.emit(event)
        except Exception:
            logger.warning("event sink %r failed on %s; continuing", sink, event.kind, exc_info=True)
