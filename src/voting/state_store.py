"""
Ballot state persistence (v1)

Snapshots are canonical JSON with a state_sha256 over the body (everything
except the digest itself). Loading re-checks the digest and the tally
invariants before rebuilding the ballot, since restore bypasses the
chairperson gate.

Identities must be strings to persist.
"""
from __future__ import annotations

import hashlib
import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List

from jsonschema import Draft202012Validator

from voting.ballot import BallotState, VotedEvent
from voting.errors import StateIntegrityError

log = logging.getLogger(__name__)

STATE_SCHEMA_ID = "voting.ballot_state.v1"


def _canonical_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), sort_keys=True)


def _sha256_hex(b: bytes) -> str:
    return hashlib.sha256(b).hexdigest()


def snapshot(ballot: BallotState) -> Dict[str, Any]:
    return {
        "version": 1,
        "schema_id": STATE_SCHEMA_ID,
        "chairperson": ballot.chairperson,
        "proposals": [{"name": n, "vote_count": c} for n, c in ballot.proposals],
        "voters": sorted(ballot.authorized_voters()),
        "voted": sorted(v for v in ballot.authorized_voters() if ballot.has_voted(v)),
        "events": [ev.to_dict() for ev in ballot.events],
    }


def state_sha256(body: Dict[str, Any]) -> str:
    b = dict(body)
    b.pop("state_sha256", None)
    return _sha256_hex(_canonical_dumps(b).encode("utf-8"))


STATE_SCHEMA_V1: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["version", "schema_id", "chairperson", "proposals", "voters", "voted", "events", "state_sha256"],
    "properties": {
        "chairperson": {"type": "string"},
        "proposals": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["name", "vote_count"],
                "properties": {
                    "name": {"type": "string"},
                    "vote_count": {"type": "integer", "minimum": 0},
                },
            },
        },
        "voters": {"type": "array", "items": {"type": "string"}},
        "voted": {"type": "array", "items": {"type": "string"}},
        "events": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["voter", "proposal_index"],
                "properties": {
                    "voter": {"type": "string"},
                    "proposal_index": {"type": "integer", "minimum": 0},
                },
            },
        },
        "state_sha256": {"type": "string"},
    },
}

_validator = Draft202012Validator(STATE_SCHEMA_V1)


def check_snapshot(doc: Any) -> None:
    """
    Raises StateIntegrityError if the snapshot is malformed, its digest is
    missing or wrong, or its tally invariants fail.
    """
    errs = sorted(_validator.iter_errors(doc), key=lambda e: [str(x) for x in e.path])
    if errs:
        e0 = errs[0]
        loc = ".".join(str(x) for x in e0.path) if e0.path else "<root>"
        raise StateIntegrityError(f"malformed state at {loc}: {e0.message}")

    if doc["schema_id"] != STATE_SCHEMA_ID:
        raise StateIntegrityError(f"unexpected schema_id: {doc['schema_id']!r}")
    if doc["state_sha256"] != state_sha256(doc):
        raise StateIntegrityError("state_sha256 mismatch (state file modified)")

    proposals = doc["proposals"]
    voters = set(doc["voters"])
    voted: List[str] = list(doc["voted"])
    events = doc["events"]

    counts = [p["vote_count"] for p in proposals]
    if len(set(voted)) != len(voted):
        raise StateIntegrityError("duplicate identity in voted list")
    if not set(voted) <= voters:
        raise StateIntegrityError("voted identity missing from authorized voters")
    if sum(counts) != len(voted):
        raise StateIntegrityError(f"vote counts ({sum(counts)}) do not match voters who voted ({len(voted)})")

    replay = [0] * len(proposals)
    for ev in events:
        idx = ev["proposal_index"]
        if idx >= len(proposals):
            raise StateIntegrityError(f"event references invalid proposal index: {idx!r}")
        replay[idx] += 1
    if replay != counts:
        raise StateIntegrityError("event log does not match vote counts")

    per_voter = Counter(ev["voter"] for ev in events)
    if per_voter != Counter(voted):
        raise StateIntegrityError("event log must hold exactly one event per voter who voted")


def save_state(path: Path, ballot: BallotState) -> Path:
    doc = snapshot(ballot)
    doc["state_sha256"] = state_sha256(doc)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_canonical_dumps(doc), encoding="utf-8")
    log.debug("ballot state saved: %s", path)
    return path


def load_state(path: Path) -> BallotState:
    doc = json.loads(path.read_text(encoding="utf-8-sig"))
    check_snapshot(doc)
    return BallotState.restore(
        chairperson=doc["chairperson"],
        proposals=[(p["name"], int(p["vote_count"])) for p in doc["proposals"]],
        voters=doc.get("voters") or [],
        voted=doc.get("voted") or [],
        events=[VotedEvent(voter=e["voter"], proposal_index=e["proposal_index"]) for e in doc.get("events") or []],
    )
