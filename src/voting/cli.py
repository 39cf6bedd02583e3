from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from voting.ballot import BallotState
from voting.deployment import deploy, deploy_from_file
from voting.events import attach_jsonl_sink
from voting.state_store import load_state, save_state


def _state_path(args: argparse.Namespace) -> Path:
    return Path(args.state or os.getenv("VOTING_STATE", "ballot_state.json"))


def _cmd_deploy(args: argparse.Namespace) -> int:
    if args.config:
        if args.proposal:
            args.parser.error("--proposal cannot be combined with --config")
        ballot = deploy_from_file(Path(args.config))
    else:
        if not args.proposal:
            args.parser.error("--chairperson needs at least one --proposal")
        ballot = deploy({"chairperson": args.chairperson, "proposals": args.proposal})

    path = save_state(_state_path(args), ballot)
    print(f"Wrote: {path}")
    return 0


def _cmd_authorize(args: argparse.Namespace) -> int:
    path = _state_path(args)
    ballot = load_state(path)
    ballot.authorize(args.sender, args.voter)
    save_state(path, ballot)
    return 0


def _cmd_vote(args: argparse.Namespace) -> int:
    path = _state_path(args)
    ballot = load_state(path)
    attach_jsonl_sink(ballot)
    ev = ballot.vote(args.sender, args.index)
    save_state(path, ballot)
    print(json.dumps(ev.to_dict(), sort_keys=True))
    return 0


def _cmd_proposal(args: argparse.Namespace) -> int:
    name, count = load_state(_state_path(args)).get_proposal(args.index)
    print(f"{name}\t{count}")
    return 0


def _cmd_count(args: argparse.Namespace) -> int:
    print(load_state(_state_path(args)).get_num_proposals())
    return 0


def _cmd_voters(args: argparse.Namespace) -> int:
    print("true" if load_state(_state_path(args)).voters(args.identity) else "false")
    return 0


def _cmd_chairperson(args: argparse.Namespace) -> int:
    print(load_state(_state_path(args)).chairperson)
    return 0


def results(ballot: BallotState) -> dict:
    return {
        "chairperson": ballot.chairperson,
        "proposals": [{"index": i, "name": n, "vote_count": c} for i, (n, c) in enumerate(ballot.proposals)],
        "votes_cast": len(ballot.events),
        "winning_proposal": ballot.winning_proposal(),
    }


def _cmd_results(args: argparse.Namespace) -> int:
    print(json.dumps(results(load_state(_state_path(args))), indent=2, sort_keys=True))
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="voting", description="Single-chairperson ballot")
    ap.add_argument("--state", default=None, help="Ballot state file (default: $VOTING_STATE or ballot_state.json)")
    ap.add_argument("--log-level", default=None, help="DEBUG | INFO | WARNING | ERROR (default: $VOTING_LOG_LEVEL or WARNING)")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("deploy", help="Create a ballot and write its state file")
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--config", default=None, help="Deployment config (.yaml/.yml/.json)")
    src.add_argument("--chairperson", default=None)
    p.add_argument("--proposal", action="append", default=None, help="Proposal name (repeatable, in order), with --chairperson")
    p.set_defaults(func=_cmd_deploy, parser=p)

    p = sub.add_parser("authorize", help="Give a voter the right to vote (chairperson only)")
    p.add_argument("--from", dest="sender", required=True, help="Caller identity")
    p.add_argument("voter")
    p.set_defaults(func=_cmd_authorize)

    p = sub.add_parser("vote", help="Cast a vote for a proposal index")
    p.add_argument("--from", dest="sender", required=True, help="Caller identity")
    p.add_argument("index", type=int)
    p.set_defaults(func=_cmd_vote)

    p = sub.add_parser("proposal", help="Print a proposal's name and vote count")
    p.add_argument("index", type=int)
    p.set_defaults(func=_cmd_proposal)

    p = sub.add_parser("count", help="Print the number of proposals")
    p.set_defaults(func=_cmd_count)

    p = sub.add_parser("voters", help="Print whether an identity is authorized")
    p.add_argument("identity")
    p.set_defaults(func=_cmd_voters)

    p = sub.add_parser("chairperson", help="Print the chairperson identity")
    p.set_defaults(func=_cmd_chairperson)

    p = sub.add_parser("results", help="Print counts and the leading proposal as JSON")
    p.set_defaults(func=_cmd_results)

    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level = (args.log_level or os.getenv("VOTING_LOG_LEVEL", "WARNING")).upper()
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        return args.func(args)
    except (ValueError, FileNotFoundError) as e:
        # BallotError, DeploymentConfigError and StateIntegrityError are ValueErrors
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
