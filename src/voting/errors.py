"""
Ballot error taxonomy.

Every rejected operation raises a BallotError subclass carrying a
human-readable reason. Nothing is applied before the checks pass, so a
raised error always means "no state change".
"""
from __future__ import annotations


class BallotError(ValueError):
    reason = "Ballot operation rejected."

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or self.reason
        super().__init__(self.reason)


class Unauthorized(BallotError):
    """Caller is not the chairperson."""

    reason = "Only chairperson can authorize voters."


class NotAuthorized(BallotError):
    """Caller was never authorized to vote."""

    reason = "Has no right to vote."


class InvalidProposal(BallotError):
    reason = "Invalid proposal index."


class AlreadyVoted(BallotError):
    reason = "Already voted."


class EmptyProposals(BallotError):
    reason = "At least one proposal is required."


class DeploymentConfigError(ValueError):
    pass


class StateIntegrityError(ValueError):
    pass
