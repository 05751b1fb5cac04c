"""Proof recorder: persists exactly one immutable fairness proof per giveaway."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db.utils import ensure_utc
from ..errors import (
    EntryCountMismatch,
    OutcomeSeedMismatch,
    ProofAlreadyExists,
    SeedCommitmentMismatch,
)
from ..hashing import (
    SELECTION_RULE,
    digests_equal,
    keyed_value,
    seed_commitment,
    seed_to_hex,
)
from ..models import FairnessProof, GiveawaySeed
from ..settings import DISCLOSURE_FULL, DISCLOSURE_MODES
from .selector import SelectionOutcome

logger = logging.getLogger(__name__)


@runtime_checkable
class GiveawayFinalizer(Protocol):
    """Collaborator that marks the external giveaway as having a winner."""

    def mark_winner(
        self,
        giveaway_id: str,
        winner_entry_id: str,
        winner_user_id: str,
        proof: FairnessProof,
    ) -> None:
        ...


class ProofRecorder:
    """Write side of the ``Selected -> Proven`` transition."""

    def __init__(
        self,
        session: Session,
        *,
        finalizer: Optional[GiveawayFinalizer] = None,
        disclosure: str = DISCLOSURE_FULL,
    ) -> None:
        """Create a recorder bound to a SQLAlchemy session.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session used for persistence.
        finalizer : Optional[GiveawayFinalizer], default: None
            Collaborator notified once the proof is written. It runs inside
            the same savepoint, so a failure there discards the proof too.
        disclosure : str, default: "full"
            ``"full"`` stores every per-entry calculation in the proof;
            ``"winner_only"`` stores only the winner's record and the count.
        """
        if disclosure not in DISCLOSURE_MODES:
            raise ValueError(
                f"disclosure must be one of {DISCLOSURE_MODES} (got {disclosure!r})"
            )
        self._session = session
        self._finalizer = finalizer
        self._disclosure = disclosure

    def record(
        self,
        giveaway_id: str,
        commitment: str,
        seed: bytes,
        outcome: SelectionOutcome,
        total_entries: int,
        *,
        committed_at: Optional[datetime] = None,
        entries_closed_at: Optional[datetime] = None,
        seed_record: Optional[GiveawaySeed] = None,
    ) -> FairnessProof:
        """Persist the fairness proof for ``giveaway_id``.

        Parameters
        ----------
        giveaway_id : str
            Giveaway the proof belongs to.
        commitment : str
            Commitment published before entries closed.
        seed : bytes
            Revealed seed the selection ran with.
        outcome : SelectionOutcome
            Result of :func:`~fairdraw.draw.selector.select_winner`.
        total_entries : int
            Size of the frozen entry list; must agree with ``outcome``.
        committed_at, entries_closed_at : Optional[datetime]
            Timestamps copied into the proof so it can be checked on its own.
        seed_record : Optional[GiveawaySeed]
            Seed row to link the proof to.

        Returns
        -------
        FairnessProof
            The newly written, immutable proof.

        Raises
        ------
        SeedCommitmentMismatch
            If ``SHA256(seed)`` differs from ``commitment``. Nothing is written.
        OutcomeSeedMismatch
            If the winner's keyed value was not computed with ``seed``.
        EntryCountMismatch
            If ``total_entries`` does not match the outcome.
        ProofAlreadyExists
            If a proof was already recorded for ``giveaway_id``.
        """
        if not digests_equal(seed_commitment(seed), commitment):
            logger.critical(
                "Seed does not match commitment %s for giveaway %s; halting",
                commitment,
                giveaway_id,
            )
            raise SeedCommitmentMismatch(
                f"Revealed seed does not hash to the commitment for giveaway {giveaway_id!r}",
                giveaway_id=giveaway_id,
            )
        winner_record = outcome.winner_record
        if winner_record.entry_id != outcome.winner.entry_id or not digests_equal(
            keyed_value(seed, outcome.winner.deterministic_input),
            winner_record.keyed_value,
        ):
            logger.critical(
                "Selection outcome for giveaway %s was not computed with the "
                "revealed seed; halting",
                giveaway_id,
            )
            raise OutcomeSeedMismatch(
                f"Winner keyed value for giveaway {giveaway_id!r} does not match "
                "the revealed seed",
                giveaway_id=giveaway_id,
            )
        if total_entries != outcome.total_entries:
            raise EntryCountMismatch(
                f"total_entries={total_entries} but the selection covered "
                f"{outcome.total_entries} entries",
                giveaway_id=giveaway_id,
            )

        if FairnessProof.get_by_giveaway_id(self._session, giveaway_id) is not None:
            raise ProofAlreadyExists(
                f"A fairness proof already exists for giveaway {giveaway_id!r}",
                giveaway_id=giveaway_id,
            )

        winner = outcome.winner
        calculations = None
        if self._disclosure == DISCLOSURE_FULL:
            calculations = [record.to_json() for record in outcome.records]

        proof = FairnessProof(
            giveaway_id=giveaway_id,
            winner_entry_id=winner.entry_id,
            winner_user_id=winner.user_id,
            seed_value=seed_to_hex(seed),
            seed_hash=commitment,
            winner_input=winner.deterministic_input,
            winner_hash=outcome.winner_record.keyed_value,
            total_entries=total_entries,
            selection_method=SELECTION_RULE,
            disclosure=self._disclosure,
            all_calculations=calculations,
            seed_id=seed_record.id if seed_record is not None else None,
            committed_at=ensure_utc(committed_at),
            entries_closed_at=ensure_utc(entries_closed_at),
        )

        try:
            with self._session.begin_nested():
                self._session.add(proof)
                self._session.flush()
                if self._finalizer is not None:
                    self._finalizer.mark_winner(
                        giveaway_id, winner.entry_id, winner.user_id, proof
                    )
        except IntegrityError as exc:
            raise ProofAlreadyExists(
                f"A fairness proof already exists for giveaway {giveaway_id!r}",
                giveaway_id=giveaway_id,
            ) from exc

        logger.info(
            "Recorded fairness proof for giveaway %s: winner entry %s of %d",
            giveaway_id,
            winner.entry_id,
            total_entries,
        )
        return proof

    def get_proof(self, giveaway_id: str) -> Optional[FairnessProof]:
        """Return the recorded proof for ``giveaway_id``, if any."""
        return FairnessProof.get_by_giveaway_id(self._session, giveaway_id)


__all__ = ["GiveawayFinalizer", "ProofRecorder"]
