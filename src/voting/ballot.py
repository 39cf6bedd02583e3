"""
Ballot state machine.

One chairperson seeds a fixed, ordered list of proposals at construction and
authorizes voters one identity at a time. Each authorized identity may vote
once, for one proposal:

    Unregistered -> Authorized -> Voted

Identities are opaque: any hashable, comparable value works (account
addresses, DIDs, user ids). Authentication is the host's job; the caller
identity is always passed in explicitly.

All checks run before any mutation, so a rejected call leaves the ballot
untouched. The ballot does no locking; a host running it concurrently must
serialize calls.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, List, Sequence, Set, Tuple

from voting.errors import AlreadyVoted, EmptyProposals, InvalidProposal, NotAuthorized, Unauthorized

log = logging.getLogger(__name__)


@dataclass
class Proposal:
    name: str
    vote_count: int = 0


@dataclass(frozen=True)
class VotedEvent:
    voter: Hashable
    proposal_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {"voter": self.voter, "proposal_index": self.proposal_index}


VoteListener = Callable[[VotedEvent], None]


class BallotState:
    def __init__(self, chairperson: Hashable, proposal_names: Iterable[str]) -> None:
        names = list(proposal_names)
        if not names:
            raise EmptyProposals()
        for n in names:
            if not isinstance(n, str):
                raise TypeError(f"proposal name must be str, got {type(n).__name__}")

        self._chairperson = chairperson
        self._proposals: Tuple[Proposal, ...] = tuple(Proposal(name=n) for n in names)
        self._voters: Dict[Hashable, bool] = {}
        self._voted: Set[Hashable] = set()
        self._events: List[VotedEvent] = []
        self._listeners: List[VoteListener] = []

        log.debug("ballot constructed: chairperson=%r proposals=%d", chairperson, len(names))

    # ---------- reads ----------

    @property
    def chairperson(self) -> Hashable:
        return self._chairperson

    @property
    def proposals(self) -> Tuple[Tuple[str, int], ...]:
        return tuple((p.name, p.vote_count) for p in self._proposals)

    @property
    def events(self) -> Tuple[VotedEvent, ...]:
        return tuple(self._events)

    def get_num_proposals(self) -> int:
        return len(self._proposals)

    def get_proposal(self, index: int) -> Tuple[str, int]:
        p = self._proposals[self._check_index(index)]
        return p.name, p.vote_count

    def is_authorized(self, identity: Hashable) -> bool:
        return self._voters.get(identity, False)

    # mirrors the public `voters` mapping getter
    voters = is_authorized

    def has_voted(self, identity: Hashable) -> bool:
        return identity in self._voted

    def authorized_voters(self) -> List[Hashable]:
        return [k for k, v in self._voters.items() if v]

    def winning_proposal(self) -> int:
        """
        Index of the proposal with the most votes so far.
        Ties resolve to the lowest index; with no votes cast this is 0.
        """
        best = 0
        for i, p in enumerate(self._proposals):
            if p.vote_count > self._proposals[best].vote_count:
                best = i
        return best

    # ---------- mutations ----------

    def authorize(self, caller: Hashable, target: Hashable) -> None:
        if caller != self._chairperson:
            log.warning("authorize rejected: caller=%r is not chairperson", caller)
            raise Unauthorized()
        self._voters[target] = True
        log.info("voter authorized: %r", target)

    def vote(self, caller: Hashable, proposal_index: int) -> VotedEvent:
        """
        Cast `caller`'s single vote for `proposal_index` and return the event.

        Checks run in order (NotAuthorized, InvalidProposal, AlreadyVoted) and
        nothing changes when one fails. Listeners run only after the vote is
        recorded: if a listener raises, the exception reaches the caller but
        the vote stands, and retrying gives AlreadyVoted. The recorded event
        is still available from `events`.
        """
        if not self.is_authorized(caller):
            log.warning("vote rejected: %r has no right to vote", caller)
            raise NotAuthorized()
        idx = self._check_index(proposal_index)
        if caller in self._voted:
            log.warning("vote rejected: %r already voted", caller)
            raise AlreadyVoted()

        self._proposals[idx].vote_count += 1
        self._voted.add(caller)
        event = VotedEvent(voter=caller, proposal_index=idx)
        self._events.append(event)
        log.info("vote cast: voter=%r proposal=%d (%s)", caller, idx, self._proposals[idx].name)

        for listener in list(self._listeners):
            listener(event)
        return event

    def subscribe(self, listener: VoteListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: VoteListener) -> None:
        self._listeners.remove(listener)

    # ---------- helpers ----------

    def _check_index(self, index: Any) -> int:
        # bool is an int subclass; a True/False index is a caller bug
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self._proposals):
            log.warning("invalid proposal index: %r", index)
            raise InvalidProposal()
        return index

    @classmethod
    def restore(
        cls,
        *,
        chairperson: Hashable,
        proposals: Sequence[Tuple[str, int]],
        voters: Iterable[Hashable],
        voted: Iterable[Hashable],
        events: Iterable[VotedEvent] = (),
    ) -> "BallotState":
        """
        Rebuild a ballot from a persisted snapshot.

        Bypasses the chairperson gate, so callers must have checked the
        snapshot's integrity first (see voting.state_store).
        """
        ballot = cls(chairperson, [name for name, _ in proposals])
        for p, (_, count) in zip(ballot._proposals, proposals):
            p.vote_count = int(count)
        for v in voters:
            ballot._voters[v] = True
        ballot._voted.update(voted)
        ballot._events.extend(events)
        return ballot
