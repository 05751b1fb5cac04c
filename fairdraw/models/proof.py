"""Immutable fairness proofs for completed giveaways."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, object_session, relationship

from .base import Base
from .id_type import ID_TYPE
from ..db.utils import dt_iso
from ..errors import ProofImmutable
from ..hashing import SELECTION_RULE

if TYPE_CHECKING:
    from .seed import GiveawaySeed


class FairnessProof(Base):
    """Audit record that lets anyone recompute a giveaway's winner.

    Exactly one proof exists per giveaway and it is never modified after it
    is written; an attempted UPDATE or DELETE raises
    :class:`~fairdraw.errors.ProofImmutable` at flush time.
    """

    __tablename__ = "fairness_proofs"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    giveaway_id: Mapped[str] = mapped_column(String(64), nullable=False)
    """Opaque identifier of the external giveaway."""

    seed_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE,
        ForeignKey("giveaway_seeds.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    """Seed commitment the proof was built from, when recorded through the manager."""

    winner_entry_id: Mapped[str] = mapped_column(String(64), nullable=False)
    """Winning entry."""

    winner_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    """Owner of the winning entry."""

    seed_value: Mapped[str] = mapped_column(String(256), nullable=False)
    """Revealed seed, lowercase hex."""

    seed_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    """Commitment published before entries closed."""

    winner_input: Mapped[str] = mapped_column(Text, nullable=False)
    """Deterministic input of the winning entry."""

    winner_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    """``HMAC-SHA256(seed, winner_input)`` as lowercase hex."""

    total_entries: Mapped[int] = mapped_column(Integer, nullable=False)
    """Number of entries the selection ran over."""

    selection_method: Mapped[str] = mapped_column(
        String(50), nullable=False, default=SELECTION_RULE
    )
    """Tag naming the comparison rule used."""

    disclosure: Mapped[str] = mapped_column(String(20), nullable=False, default="full")
    """``"full"`` when :attr:`all_calculations` is populated, else ``"winner_only"``."""

    all_calculations: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    """Per-entry calculation log in canonical order (full disclosure only)."""

    committed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """Copy of the commitment timestamp so the proof stands on its own."""

    entries_closed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """Entry-close time the reveal was gated on."""

    verified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Creation timestamp of the proof."""

    seed: Mapped[Optional["GiveawaySeed"]] = relationship(back_populates="proof")

    __table_args__ = (
        UniqueConstraint("giveaway_id", name="fairness_proofs_giveaway_id_key"),
        CheckConstraint("total_entries > 0", name="total_entries_positive"),
        CheckConstraint(
            "disclosure IN ('full','winner_only')", name="disclosure_enum"
        ),
    )

    def __init__(
        self,
        *,
        giveaway_id: str,
        winner_entry_id: str,
        winner_user_id: str,
        seed_value: str,
        seed_hash: str,
        winner_input: str,
        winner_hash: str,
        total_entries: int,
        selection_method: str = SELECTION_RULE,
        disclosure: str = "full",
        all_calculations: Optional[list[dict[str, Any]]] = None,
        seed: Optional["GiveawaySeed"] = None,
        seed_id: Optional[int] = None,
        committed_at: Optional[datetime] = None,
        entries_closed_at: Optional[datetime] = None,
        verified_at: Optional[datetime] = None,
    ) -> None:
        self.giveaway_id = giveaway_id
        self.winner_entry_id = winner_entry_id
        self.winner_user_id = winner_user_id
        self.seed_value = seed_value
        self.seed_hash = seed_hash
        self.winner_input = winner_input
        self.winner_hash = winner_hash
        self.total_entries = total_entries
        self.selection_method = selection_method
        self.disclosure = disclosure
        self.all_calculations = all_calculations
        if seed is not None:
            self.seed = seed
        if seed_id is not None:
            self.seed_id = seed_id
        self.committed_at = committed_at
        self.entries_closed_at = entries_closed_at
        if verified_at is not None:
            self.verified_at = verified_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<FairnessProof(id={id}, giveaway_id={gid}, winner_entry_id={winner}, total_entries={total})>".format(
            id=self.id,
            gid=self.giveaway_id,
            winner=self.winner_entry_id,
            total=self.total_entries,
        )

    def to_json(self) -> dict[str, Any]:
        """Return the published form of the proof.

        This is the document third parties verify; it round-trips through
        :meth:`fairdraw.draw.verifier.PublishedProof.from_mapping`.
        """
        return {
            "giveaway_id": self.giveaway_id,
            "winner_entry_id": self.winner_entry_id,
            "winner_user_id": self.winner_user_id,
            "seed_value": self.seed_value,
            "seed_hash": self.seed_hash,
            "winner_input": self.winner_input,
            "winner_hash": self.winner_hash,
            "total_entries": self.total_entries,
            "selection_method": self.selection_method,
            "disclosure": self.disclosure,
            "all_calculations": (
                [dict(item) for item in self.all_calculations]
                if self.all_calculations is not None
                else None
            ),
            "committed_at": dt_iso(self.committed_at),
            "entries_closed_at": dt_iso(self.entries_closed_at),
            "verified_at": dt_iso(self.verified_at),
        }

    def to_json_str(self) -> str:
        return json.dumps(self.to_json(), sort_keys=True)

    @classmethod
    def get_by_giveaway_id(
        cls, session: Session, giveaway_id: str
    ) -> Optional["FairnessProof"]:
        """Return the proof recorded for ``giveaway_id`` if it exists."""

        return session.scalar(select(cls).where(cls.giveaway_id == giveaway_id))


@event.listens_for(FairnessProof, "before_update")
def _refuse_proof_updates(mapper, connection, target: FairnessProof) -> None:
    session = object_session(target)
    if session is not None and not session.is_modified(
        target, include_collections=False
    ):
        return
    raise ProofImmutable(
        "Fairness proofs cannot be modified once recorded",
        giveaway_id=target.giveaway_id,
    )


@event.listens_for(FairnessProof, "before_delete")
def _refuse_proof_deletes(mapper, connection, target: FairnessProof) -> None:
    raise ProofImmutable(
        "Fairness proofs cannot be deleted once recorded",
        giveaway_id=target.giveaway_id,
    )


__all__ = ["FairnessProof"]
