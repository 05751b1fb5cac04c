"""Seed commitment manager: commit before entries close, reveal after."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db.utils import ensure_utc, utc_now
from ..errors import (
    AlreadyCommitted,
    AlreadyRevealed,
    EntriesAlreadyClosed,
    PrematureReveal,
    SeedNotCommitted,
    SeedNotRevealed,
)
from ..hashing import seed_commitment, seed_to_hex
from ..models import GiveawaySeed
from ..settings import MIN_SEED_BYTES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublicCommitment:
    """What may be shown publicly before the reveal."""

    giveaway_id: str
    commitment: str
    committed_at: datetime
    entries_close_at: Optional[datetime] = None


class SeedCommitmentManager:
    """Owns the ``Uncommitted -> Committed`` and ``Closed -> Revealed`` steps.

    The randomness source and the clock are injected so tests (and audits)
    can see every side effect the manager has.
    """

    def __init__(
        self,
        session: Session,
        *,
        random_source: Callable[[int], bytes] = secrets.token_bytes,
        seed_bytes: int = MIN_SEED_BYTES,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Create a manager bound to a SQLAlchemy session.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session used for lookups and persistence.
        random_source : Callable[[int], bytes], default: secrets.token_bytes
            CSPRNG returning the requested number of bytes.
        seed_bytes : int, default: 32
            Seed length; anything below 32 bytes (256 bits) is rejected.
        clock : Callable[[], datetime], default: utc_now
            Returns the current time; compared against entry-close times.
        """
        if seed_bytes < MIN_SEED_BYTES:
            raise ValueError(
                f"seed_bytes must be at least {MIN_SEED_BYTES} (got {seed_bytes})"
            )
        self._session = session
        self._random_source = random_source
        self._seed_bytes = seed_bytes
        self._clock = clock

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    def _get(self, giveaway_id: str) -> GiveawaySeed:
        record = GiveawaySeed.get_by_giveaway_id(self._session, giveaway_id)
        if record is None:
            raise SeedNotCommitted(
                f"No seed has been committed for giveaway {giveaway_id!r}",
                giveaway_id=giveaway_id,
            )
        return record

    def commit(
        self,
        giveaway_id: str,
        *,
        entries_close_at: Optional[datetime] = None,
        creator_id: Optional[str] = None,
    ) -> GiveawaySeed:
        """Generate, commit and persist a fresh seed for ``giveaway_id``.

        Parameters
        ----------
        giveaway_id : str
            Giveaway the seed belongs to.
        entries_close_at : Optional[datetime], default: None
            Entry-close time, when already known. Committing at or after it
            is refused.
        creator_id : Optional[str], default: None
            Creator recorded alongside the commitment.

        Returns
        -------
        GiveawaySeed
            The persisted record. Only ``seed_hash`` may be shown publicly.

        Raises
        ------
        AlreadyCommitted
            If a seed already exists for ``giveaway_id``.
        EntriesAlreadyClosed
            If ``entries_close_at`` has already passed.
        """
        if GiveawaySeed.get_by_giveaway_id(self._session, giveaway_id) is not None:
            raise AlreadyCommitted(
                f"A seed is already committed for giveaway {giveaway_id!r}",
                giveaway_id=giveaway_id,
            )

        now = self._now()
        close = ensure_utc(entries_close_at)
        if close is not None and now >= close:
            raise EntriesAlreadyClosed(
                f"Entries for giveaway {giveaway_id!r} closed at {close.isoformat()}; "
                "a seed must be committed before close",
                giveaway_id=giveaway_id,
            )

        seed = self._random_source(self._seed_bytes)
        if not isinstance(seed, bytes) or len(seed) != self._seed_bytes:
            raise ValueError(
                f"random_source must return exactly {self._seed_bytes} bytes"
            )

        record = GiveawaySeed(
            giveaway_id=giveaway_id,
            seed_value=seed_to_hex(seed),
            seed_hash=seed_commitment(seed),
            creator_id=creator_id,
            committed_at=now,
            entries_close_at=close,
        )
        try:
            with self._session.begin_nested():
                self._session.add(record)
                self._session.flush()
        except IntegrityError as exc:
            raise AlreadyCommitted(
                f"A seed is already committed for giveaway {giveaway_id!r}",
                giveaway_id=giveaway_id,
            ) from exc

        logger.info(
            "Committed seed for giveaway %s (commitment %s)", giveaway_id, record.seed_hash
        )
        return record

    def public_commitment(self, giveaway_id: str) -> PublicCommitment:
        """Return the commitment that may be displayed before the reveal."""
        record = self._get(giveaway_id)
        return PublicCommitment(
            giveaway_id=record.giveaway_id,
            commitment=record.seed_hash,
            committed_at=ensure_utc(record.committed_at),
            entries_close_at=ensure_utc(record.entries_close_at),
        )

    def reveal(self, giveaway_id: str, *, entries_close_at: datetime) -> bytes:
        """Reveal the seed once entries have closed.

        Parameters
        ----------
        giveaway_id : str
            Giveaway whose seed is revealed.
        entries_close_at : datetime
            Close time supplied by the giveaway collaborator. When the
            commitment also stored a close time, both must have passed.

        Returns
        -------
        bytes
            The raw seed, to be handed to the selector.

        Raises
        ------
        SeedNotCommitted
            If no seed exists for ``giveaway_id``.
        AlreadyRevealed
            If the seed has been revealed before.
        PrematureReveal
            If entries have not closed yet.
        EntriesAlreadyClosed
            If the commitment was made at or after the close time.
        """
        record = self._get(giveaway_id)
        if record.revealed:
            raise AlreadyRevealed(
                f"The seed for giveaway {giveaway_id!r} was already revealed",
                giveaway_id=giveaway_id,
            )

        now = self._now()
        close = ensure_utc(entries_close_at)
        if close is None:
            raise ValueError("entries_close_at is required to reveal a seed")
        stored_close = ensure_utc(record.entries_close_at)
        for deadline in (close, stored_close):
            if deadline is not None and now < deadline:
                raise PrematureReveal(
                    f"Entries for giveaway {giveaway_id!r} close at "
                    f"{deadline.isoformat()}; the seed cannot be revealed yet",
                    giveaway_id=giveaway_id,
                )
        if ensure_utc(record.committed_at) >= close:
            raise EntriesAlreadyClosed(
                f"The seed for giveaway {giveaway_id!r} was committed after entries closed",
                giveaway_id=giveaway_id,
            )

        record.revealed = True
        record.revealed_at = now
        self._session.flush()
        logger.info("Revealed seed for giveaway %s", giveaway_id)
        return record.seed_bytes

    def revealed_seed(self, giveaway_id: str) -> bytes:
        """Return a seed that has already been revealed.

        Used to re-run selection from scratch when a previous attempt failed
        before its proof was written.
        """
        record = self._get(giveaway_id)
        if not record.revealed:
            raise SeedNotRevealed(
                f"The seed for giveaway {giveaway_id!r} has not been revealed",
                giveaway_id=giveaway_id,
            )
        return record.seed_bytes


__all__ = ["PublicCommitment", "SeedCommitmentManager"]
