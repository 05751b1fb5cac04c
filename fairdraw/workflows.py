from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, Optional, Union

from sqlalchemy.orm import Session

from .db.utils import utc_now
from .draw.commitment import PublicCommitment, SeedCommitmentManager
from .draw.entries import Entry
from .draw.lifecycle import GiveawayFairnessState, advance, lifecycle_state
from .draw.recorder import ProofRecorder
from .draw.selector import select_winner
from .draw.verifier import VerificationResult, verify
from .errors import ProofAlreadyExists
from .models import FairnessProof, GiveawaySeed
from .settings import FairnessSettings

if TYPE_CHECKING:
    from .draw.recorder import GiveawayFinalizer


def open_giveaway(
    session: Session,
    giveaway_id: str,
    *,
    entries_close_at: datetime,
    creator_id: Optional[str] = None,
    settings: Optional[FairnessSettings] = None,
    random_source: Optional[Callable[[int], bytes]] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> PublicCommitment:
    """Commit a fresh seed for a giveaway that is about to accept entries.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    giveaway_id : str
        Giveaway being opened.
    entries_close_at : datetime
        When entries close. The commitment must precede it.
    creator_id : Optional[str]
        Creator recorded with the commitment.
    settings : Optional[FairnessSettings]
        Engine settings. Read from the environment when omitted.
    random_source : Optional[Callable[[int], bytes]]
        CSPRNG override; ``secrets.token_bytes`` is used when omitted.
    clock : Optional[Callable[[], datetime]]
        Clock override, mainly for tests.

    Returns
    -------
    PublicCommitment
        The commitment to display on the giveaway page.
    """
    settings = settings or FairnessSettings.from_env()
    kwargs: dict[str, Any] = {"seed_bytes": settings.seed_bytes, "clock": clock or utc_now}
    if random_source is not None:
        kwargs["random_source"] = random_source
    manager = SeedCommitmentManager(session, **kwargs)

    manager.commit(
        giveaway_id, entries_close_at=entries_close_at, creator_id=creator_id
    )
    return manager.public_commitment(giveaway_id)


def finalize_giveaway(
    session: Session,
    giveaway_id: str,
    entries: Iterable[Entry],
    *,
    entries_close_at: datetime,
    finalizer: Optional["GiveawayFinalizer"] = None,
    settings: Optional[FairnessSettings] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FairnessProof:
    """Reveal the seed, select the winner and record the proof as one unit.

    The three steps run inside a single SAVEPOINT. If selection or the proof
    write fails, nothing from this attempt is kept and the whole call can be
    repeated once the cause has been fixed. When an earlier attempt already
    committed the reveal, the revealed seed is re-read instead of revealed
    again.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    giveaway_id : str
        Giveaway being finalized.
    entries : Iterable[Entry]
        Every paid entry as of close, frozen by the entry collaborator.
    entries_close_at : datetime
        Close time supplied by the giveaway collaborator; gates the reveal.
    finalizer : Optional[GiveawayFinalizer]
        Collaborator that marks the giveaway as having a winner.
    settings : Optional[FairnessSettings]
        Engine settings. Read from the environment when omitted.
    clock : Optional[Callable[[], datetime]]
        Clock override, mainly for tests.

    Returns
    -------
    FairnessProof
        The recorded proof.

    Raises
    ------
    ProofAlreadyExists
        If the giveaway already has a proof.
    ProtocolSequenceError
        If the seed was never committed or entries have not closed.
    DataIntegrityError
        If the entry list or the seed record is not trustworthy.
    """
    settings = settings or FairnessSettings.from_env()
    clock = clock or utc_now
    manager = SeedCommitmentManager(session, seed_bytes=settings.seed_bytes, clock=clock)
    recorder = ProofRecorder(
        session, finalizer=finalizer, disclosure=settings.disclosure
    )

    if recorder.get_proof(giveaway_id) is not None:
        raise ProofAlreadyExists(
            f"A fairness proof already exists for giveaway {giveaway_id!r}",
            giveaway_id=giveaway_id,
        )

    frozen_entries = list(entries)
    with session.begin_nested():
        commitment = manager.public_commitment(giveaway_id)
        seed_record = GiveawaySeed.get_by_giveaway_id(session, giveaway_id)
        state = lifecycle_state(
            seed_record, None, entries_close_at=entries_close_at, now=clock()
        )
        if state is GiveawayFairnessState.REVEALED:
            seed = manager.revealed_seed(giveaway_id)
        else:
            seed = manager.reveal(giveaway_id, entries_close_at=entries_close_at)
            state = advance(
                state, GiveawayFairnessState.REVEALED, giveaway_id=giveaway_id
            )

        outcome = select_winner(
            seed,
            frozen_entries,
            parallel_threshold=settings.parallel_threshold,
            max_workers=settings.max_workers,
        )
        state = advance(state, GiveawayFairnessState.SELECTED, giveaway_id=giveaway_id)
        proof = recorder.record(
            giveaway_id,
            commitment.commitment,
            seed,
            outcome,
            len(frozen_entries),
            committed_at=commitment.committed_at,
            entries_closed_at=entries_close_at,
            seed_record=seed_record,
        )
        advance(state, GiveawayFairnessState.PROVEN, giveaway_id=giveaway_id)

    session.flush()
    return proof


def get_fairness_proof(session: Session, giveaway_id: str) -> Optional[FairnessProof]:
    """Return the recorded proof for ``giveaway_id``, if any."""
    return FairnessProof.get_by_giveaway_id(session, giveaway_id)


def audit_giveaway(
    session: Session,
    giveaway_id: str,
    entries: Optional[Iterable[Union[Entry, Mapping[str, Any]]]] = None,
) -> VerificationResult:
    """Verify the stored proof for ``giveaway_id``.

    Without ``entries`` this is weak verification. Passing the entry list
    used at close switches to strong verification.
    """
    proof = get_fairness_proof(session, giveaway_id)
    if proof is None:
        raise ValueError(f"No fairness proof recorded for giveaway {giveaway_id!r}")
    return verify(proof, entries)


def giveaway_state(
    session: Session,
    giveaway_id: str,
    *,
    entries_close_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> GiveawayFairnessState:
    """Return where ``giveaway_id`` is in its fairness lifecycle."""
    return lifecycle_state(
        GiveawaySeed.get_by_giveaway_id(session, giveaway_id),
        FairnessProof.get_by_giveaway_id(session, giveaway_id),
        entries_close_at=entries_close_at,
        now=now,
    )
