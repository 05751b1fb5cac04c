"""States of a giveaway's fairness lifecycle."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from ..db.utils import ensure_utc, utc_now
from ..errors import ProtocolSequenceError
from ..models import FairnessProof, GiveawaySeed


class GiveawayFairnessState(str, enum.Enum):
    UNCOMMITTED = "uncommitted"
    COMMITTED = "committed"
    CLOSED = "closed"
    REVEALED = "revealed"
    SELECTED = "selected"
    PROVEN = "proven"


NEXT_STATE: dict[GiveawayFairnessState, Optional[GiveawayFairnessState]] = {
    GiveawayFairnessState.UNCOMMITTED: GiveawayFairnessState.COMMITTED,
    GiveawayFairnessState.COMMITTED: GiveawayFairnessState.CLOSED,
    GiveawayFairnessState.CLOSED: GiveawayFairnessState.REVEALED,
    GiveawayFairnessState.REVEALED: GiveawayFairnessState.SELECTED,
    GiveawayFairnessState.SELECTED: GiveawayFairnessState.PROVEN,
    GiveawayFairnessState.PROVEN: None,
}
"""Each state has exactly one successor; no state may be skipped."""


def can_transition(
    current: GiveawayFairnessState, target: GiveawayFairnessState
) -> bool:
    return NEXT_STATE[current] is target


def advance(
    current: GiveawayFairnessState,
    target: GiveawayFairnessState,
    *,
    giveaway_id: Optional[str] = None,
) -> GiveawayFairnessState:
    """Return ``target`` if it directly follows ``current``, else raise
    :class:`~fairdraw.errors.ProtocolSequenceError`."""
    if not can_transition(current, target):
        raise ProtocolSequenceError(
            f"Giveaway {giveaway_id!r} cannot move from {current.value} to {target.value}",
            giveaway_id=giveaway_id,
        )
    return target


def lifecycle_state(
    seed: Optional[GiveawaySeed],
    proof: Optional[FairnessProof],
    *,
    entries_close_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> GiveawayFairnessState:
    """Derive the persisted lifecycle state of a giveaway.

    ``SELECTED`` only exists in memory between selection and the proof write,
    so it is never returned here; a revealed seed without a proof reports
    ``REVEALED``.
    """
    if proof is not None:
        return GiveawayFairnessState.PROVEN
    if seed is None:
        return GiveawayFairnessState.UNCOMMITTED
    if seed.revealed:
        return GiveawayFairnessState.REVEALED

    close = ensure_utc(entries_close_at) or ensure_utc(seed.entries_close_at)
    current = ensure_utc(now) or utc_now()
    if close is not None and current >= close:
        return GiveawayFairnessState.CLOSED
    return GiveawayFairnessState.COMMITTED


__all__ = [
    "GiveawayFairnessState",
    "NEXT_STATE",
    "advance",
    "can_transition",
    "lifecycle_state",
]
