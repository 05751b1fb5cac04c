"""Commit-reveal winner selection: commitment, selection, proofs and verification."""

from .commitment import PublicCommitment, SeedCommitmentManager
from .entries import Entry, load_entries
from .lifecycle import GiveawayFairnessState, lifecycle_state
from .recorder import GiveawayFinalizer, ProofRecorder
from .selector import SelectionOutcome, SelectionRecord, select_winner
from .verifier import (
    FailureReason,
    PublishedProof,
    VerificationMode,
    VerificationResult,
    verify,
)

__all__ = [
    "Entry",
    "FailureReason",
    "GiveawayFairnessState",
    "GiveawayFinalizer",
    "ProofRecorder",
    "PublicCommitment",
    "PublishedProof",
    "SeedCommitmentManager",
    "SelectionOutcome",
    "SelectionRecord",
    "VerificationMode",
    "VerificationResult",
    "lifecycle_state",
    "load_entries",
    "select_winner",
    "verify",
]
