"""
Voted event log (JSONL)

Each successful vote appends one canonical line:

    {"data": {"proposal_index": 1, "voter": "0xA"}, "kind": "Voted", "seq": 3}

seq continues from the last line already in the file, so separate CLI
processes appending to the same log keep a single ascending sequence.
"""
from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from voting.ballot import BallotState, VotedEvent

VOTED_KIND = "Voted"

_append_lock = threading.Lock()


def _canonical_line(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":")) + "\n"


def events_out_path() -> Optional[Path]:
    v = os.environ.get("VOTING_EVENTS_OUT", "").strip()
    if not v:
        return None
    return Path(v)


def read_events(path: Path) -> List[Dict[str, Any]]:
    lines = path.read_text(encoding="utf-8-sig").splitlines()
    return [json.loads(ln) for ln in lines if ln.strip()]


def last_seq(path: Path) -> int:
    if not path.exists():
        return 0
    seqs = [e.get("seq", 0) for e in read_events(path)]
    return max(seqs, default=0)


def write_voted_event(event: VotedEvent, out: Optional[Path] = None) -> int:
    """
    Append one Voted event and return its seq.
    No-op (returns 0) when neither `out` nor VOTING_EVENTS_OUT is set.
    """
    out = out or events_out_path()
    if out is None:
        return 0

    with _append_lock:
        seq = last_seq(out) + 1
        evt = {"seq": seq, "kind": VOTED_KIND, "data": event.to_dict()}
        out.parent.mkdir(parents=True, exist_ok=True)
        with out.open("a", encoding="utf-8", newline="\n") as f:
            f.write(_canonical_line(evt))
    return seq


def attach_jsonl_sink(ballot: BallotState, out: Optional[Path] = None) -> None:
    ballot.subscribe(lambda ev: write_voted_event(ev, out))
