import json

from phasevote import EventLog, JsonlEventWriter, VotingEvent, VotingSession
from phasevote.events import events_out_path, read_events

ADMIN = "admin"


def test_jsonl_writer_appends_canonical_lines(tmp_path):
    p = tmp_path / "events" / "phasevote_events.jsonl"
    w = JsonlEventWriter(p)
    w.emit(VotingEvent("voter_registered", {"identity": "a"}))
    w.emit(VotingEvent("phase_changed", {"previous": "RegisteringVoters", "new": "ProposalsRegistrationStarted"}))

    lines = [ln for ln in p.read_text(encoding="utf-8").splitlines() if ln.strip()]
    assert len(lines) == 2
    obj0 = json.loads(lines[0])
    assert obj0 == {"seq": 1, "kind": "voter_registered", "data": {"identity": "a"}}
    assert lines[0] == '{"data":{"identity":"a"},"kind":"voter_registered","seq":1}'
    assert json.loads(lines[1])["seq"] == 2


def test_jsonl_writer_resume_continues_sequence(tmp_path):
    p = tmp_path / "ev.jsonl"
    JsonlEventWriter(p).emit(VotingEvent("voter_registered", {"identity": "a"}))
    w = JsonlEventWriter(p, resume=True)
    w.emit(VotingEvent("voter_registered", {"identity": "b"}))
    assert [e["seq"] for e in read_events(p)] == [1, 2]

    w.reset_seq()
    w.emit(VotingEvent("voter_registered", {"identity": "c"}))
    assert read_events(p)[-1]["seq"] == 1


def test_session_fans_out_to_extra_sinks(tmp_path):
    extra = EventLog()
    p = tmp_path / "ev.jsonl"
    s = VotingSession(ADMIN, sinks=[extra, JsonlEventWriter(p)])
    s.register_voter(ADMIN, "a")
    s.start_proposals_registration(ADMIN)
    s.submit_proposal("a", "X")
    s.end_proposals_registration(ADMIN)
    s.start_voting_session(ADMIN)
    s.cast_vote("a", 0)

    expected = [
        "voter_registered",
        "phase_changed",
        "proposal_registered",
        "phase_changed",
        "phase_changed",
        "vote_cast",
    ]
    assert s.events.kinds() == expected
    assert extra.kinds() == expected
    assert [e["kind"] for e in read_events(p)] == expected


def test_rejected_operations_emit_nothing():
    s = VotingSession(ADMIN)
    s.register_voter(ADMIN, "a")
    try:
        s.register_voter(ADMIN, "a")
    except ValueError:
        pass
    assert s.events.kinds() == ["voter_registered"]


def test_events_out_path_env(monkeypatch, tmp_path):
    monkeypatch.delenv("PHASEVOTE_EVENTS_OUT", raising=False)
    assert events_out_path() is None
    monkeypatch.setenv("PHASEVOTE_EVENTS_OUT", str(tmp_path / "x.jsonl"))
    assert events_out_path() == tmp_path / "x.jsonl"


def test_read_events_missing_file(tmp_path):
    assert read_events(tmp_path / "nope.jsonl") == []


class _FailingSink:
    def emit(self, event):
        raise RuntimeError("sink down")


def test_failing_sink_does_not_fail_the_operation():
    extra = EventLog()
    s = VotingSession(ADMIN, sinks=[_FailingSink(), extra])
    s.register_voter(ADMIN, "a")
    s.start_proposals_registration(ADMIN)

    assert s.voter_roster == ("a",)
    assert s.events.kinds() == ["voter_registered", "phase_changed"]
    # sinks after the failing one still receive every event
    assert extra.kinds() == ["voter_registered", "phase_changed"]
