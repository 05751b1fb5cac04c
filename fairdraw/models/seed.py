"""Seed commitment records for giveaways."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    String,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship, validates

from .base import Base
from .id_type import ID_TYPE
from ..db.utils import dt_iso
from ..errors import AlreadyRevealed, SeedCommitmentMismatch
from ..hashing import seed_commitment, seed_from_hex

if TYPE_CHECKING:
    from .proof import FairnessProof


class GiveawaySeed(Base):
    """Secret seed and its public commitment for a single giveaway.

    The row is written once at commit time and mutated exactly once, when the
    seed is revealed. ``seed_value`` must never leave the engine before
    ``revealed`` is ``True``; :meth:`to_public_json` enforces that for
    anything rendered to users.
    """

    __tablename__ = "giveaway_seeds"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    giveaway_id: Mapped[str] = mapped_column(String(64), nullable=False)
    """Opaque identifier of the external giveaway."""

    creator_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    """Creator who owns the giveaway, if the caller supplies one."""

    seed_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    """Public commitment: lowercase hex SHA-256 of the raw seed bytes."""

    seed_value: Mapped[str] = mapped_column(String(256), nullable=False)
    """Secret seed as lowercase hex. Private until reveal."""

    revealed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    """Whether the seed has been disclosed. Never reverts to ``False``."""

    committed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Timestamp of the commitment; precedes the entry-close time."""

    entries_close_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """Entry-close time known when the commitment was made, if any."""

    revealed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """Set exactly once, when the seed is revealed after entries close."""

    proof: Mapped[Optional["FairnessProof"]] = relationship(
        back_populates="seed", uselist=False
    )
    """Fairness proof produced from this seed, once recorded."""

    __table_args__ = (
        UniqueConstraint("giveaway_id", name="giveaway_seeds_giveaway_id_key"),
    )

    def __init__(
        self,
        *,
        giveaway_id: str,
        seed_value: str,
        seed_hash: str,
        creator_id: Optional[str] = None,
        committed_at: Optional[datetime] = None,
        entries_close_at: Optional[datetime] = None,
    ) -> None:
        if seed_commitment(seed_from_hex(seed_value)) != seed_hash:
            raise SeedCommitmentMismatch(
                "seed_hash does not match SHA-256 of seed_value",
                giveaway_id=giveaway_id,
            )
        self.giveaway_id = giveaway_id
        self.seed_value = seed_value
        self.seed_hash = seed_hash
        self.creator_id = creator_id
        self.revealed = False
        if committed_at is not None:
            self.committed_at = committed_at
        self.entries_close_at = entries_close_at

    @validates("revealed")
    def _revealed_is_one_way(self, _key: str, value: bool) -> bool:
        if self.revealed and not value:
            raise AlreadyRevealed(
                "A revealed seed cannot be un-revealed", giveaway_id=self.giveaway_id
            )
        return value

    @validates("seed_value", "seed_hash")
    def _commitment_is_write_once(self, key: str, value: str) -> str:
        current = getattr(self, key)
        if current is not None and current != value:
            raise SeedCommitmentMismatch(
                f"{key} is fixed once committed", giveaway_id=self.giveaway_id
            )
        return value

    @validates("revealed_at")
    def _revealed_at_is_write_once(
        self, _key: str, value: Optional[datetime]
    ) -> Optional[datetime]:
        if self.revealed_at is not None:
            raise AlreadyRevealed(
                "revealed_at is set once, when the seed is revealed",
                giveaway_id=self.giveaway_id,
            )
        return value

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<GiveawaySeed(id={id}, giveaway_id={gid}, seed_hash={hash}, revealed={revealed})>".format(
            id=self.id,
            gid=self.giveaway_id,
            hash=self.seed_hash,
            revealed=self.revealed,
        )

    @property
    def seed_bytes(self) -> bytes:
        """Raw seed bytes. Callers outside the commitment manager should use
        :meth:`SeedCommitmentManager.reveal` instead."""
        return seed_from_hex(self.seed_value)

    def to_public_json(self) -> dict[str, Any]:
        """Return the displayable view; the seed is included only after reveal."""
        data: dict[str, Any] = {
            "giveaway_id": self.giveaway_id,
            "seed_hash": self.seed_hash,
            "committed_at": dt_iso(self.committed_at),
            "entries_close_at": dt_iso(self.entries_close_at),
            "revealed": bool(self.revealed),
            "revealed_at": dt_iso(self.revealed_at),
        }
        if self.revealed:
            data["seed_value"] = self.seed_value
        return data

    def to_public_json_str(self) -> str:
        return json.dumps(self.to_public_json(), sort_keys=True)

    @classmethod
    def get_by_giveaway_id(
        cls, session: Session, giveaway_id: str
    ) -> Optional["GiveawaySeed"]:
        """Return the seed record for ``giveaway_id`` if it exists."""

        return session.scalar(select(cls).where(cls.giveaway_id == giveaway_id))


__all__ = ["GiveawaySeed"]
