"""Exception taxonomy for the fairness pipeline.

Two families are raised:

* :class:`ProtocolSequenceError` - an operation was invoked out of the
  commit -> close -> reveal -> select -> record order. These are integration
  errors and are always surfaced to the caller.
* :class:`DataIntegrityError` - the seed record or the entry list is not
  trustworthy. The pipeline for that giveaway must stop until an operator has
  fixed the underlying data.

Verification failures are not exceptions; see
:class:`fairdraw.draw.verifier.FailureReason`.
"""

from __future__ import annotations

from typing import Optional


class FairnessError(Exception):
    """Base class for every error raised by the fairness engine."""

    def __init__(self, message: str, *, giveaway_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.giveaway_id = giveaway_id


class ProtocolSequenceError(FairnessError):
    """An operation was called out of the defined state-machine order."""


class AlreadyCommitted(ProtocolSequenceError):
    pass


class EntriesAlreadyClosed(ProtocolSequenceError):
    """A seed commitment was attempted at or after the entry-close time."""


class SeedNotCommitted(ProtocolSequenceError):
    pass


class PrematureReveal(ProtocolSequenceError):
    pass


class AlreadyRevealed(ProtocolSequenceError):
    pass


class SeedNotRevealed(ProtocolSequenceError):
    pass


class ProofAlreadyExists(ProtocolSequenceError):
    pass


class ProofImmutable(ProtocolSequenceError):
    """A persisted fairness proof was modified."""


class DataIntegrityError(FairnessError, ValueError):
    """Upstream data is corrupt or improperly assembled."""


class SeedCommitmentMismatch(DataIntegrityError):
    pass


class OutcomeSeedMismatch(DataIntegrityError):
    """A selection outcome was not computed with the revealed seed."""


class NoEligibleEntries(DataIntegrityError):
    pass


class InvalidEntryInput(DataIntegrityError):
    pass


class DuplicateEntryInput(DataIntegrityError):
    def __init__(self, deterministic_input: str, entry_ids: tuple[str, str]) -> None:
        super().__init__(
            "Entries {0!r} and {1!r} share the deterministic input {2!r}".format(
                entry_ids[0], entry_ids[1], deterministic_input
            )
        )
        self.deterministic_input = deterministic_input
        self.entry_ids = entry_ids


class DuplicateEntryId(DataIntegrityError):
    def __init__(self, entry_id: str) -> None:
        super().__init__(f"Entry id {entry_id!r} appears more than once")
        self.entry_id = entry_id


class EntryCountMismatch(DataIntegrityError):
    pass


__all__ = [
    "AlreadyCommitted",
    "AlreadyRevealed",
    "DataIntegrityError",
    "DuplicateEntryId",
    "DuplicateEntryInput",
    "EntriesAlreadyClosed",
    "EntryCountMismatch",
    "FairnessError",
    "InvalidEntryInput",
    "NoEligibleEntries",
    "OutcomeSeedMismatch",
    "PrematureReveal",
    "ProofAlreadyExists",
    "ProofImmutable",
    "ProtocolSequenceError",
    "SeedCommitmentMismatch",
    "SeedNotCommitted",
    "SeedNotRevealed",
]
