"""Independent verification of published fairness proofs.

Anyone holding a published proof can run :func:`verify`. Nothing here reads
or writes the database, and a tampered proof yields ``valid=False`` with
itemized reasons instead of an exception.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Union

from ..db.utils import parse_dt_iso
from ..errors import DataIntegrityError
from ..hashing import (
    SELECTION_RULE,
    digests_equal,
    keyed_value,
    seed_commitment,
    seed_from_hex,
)
from ..models import FairnessProof
from ..settings import DEFAULT_PARALLEL_THRESHOLD
from .entries import Entry
from .selector import select_winner

logger = logging.getLogger(__name__)


class VerificationMode(str, enum.Enum):
    WEAK = "weak"
    """Only the winner's own keyed value was checked against the seed."""

    STRONG = "strong"
    """The whole selection was re-run over a supplied entry list."""


class FailureReason(str, enum.Enum):
    MALFORMED_PROOF = "malformed_proof"
    UNKNOWN_SELECTION_METHOD = "unknown_selection_method"
    COMMITMENT_MISMATCH = "commitment_mismatch"
    KEYED_VALUE_MISMATCH = "keyed_value_mismatch"
    COMMITTED_AFTER_CLOSE = "committed_after_close"
    CALCULATION_LOG_MISMATCH = "calculation_log_mismatch"
    ENTRY_COUNT_MISMATCH = "entry_count_mismatch"
    INVALID_ENTRY_LIST = "invalid_entry_list"
    WINNER_NOT_IN_ENTRIES = "winner_not_in_entries"
    WINNER_INPUT_MISMATCH = "winner_input_mismatch"
    WINNER_USER_MISMATCH = "winner_user_mismatch"
    NOT_MAXIMAL = "not_maximal"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of :func:`verify`.

    Attributes
    ----------
    valid : bool
        ``True`` when no failure reason was found.
    mode : VerificationMode
        ``WEAK`` results only show the winner's number is consistent with
        the seed, not that no other entry scored higher.
    reasons : frozenset[FailureReason]
        Every check that failed.
    computed_commitment : Optional[str]
        ``SHA256(seed)`` as recomputed, when the seed could be decoded.
    computed_keyed_value : Optional[str]
        ``HMAC-SHA256(seed, winner_input)`` as recomputed.
    expected_winner_entry_id : Optional[str]
        Winner found by re-running selection (strong mode only).
    """

    valid: bool
    mode: VerificationMode
    reasons: frozenset[FailureReason]
    computed_commitment: Optional[str] = None
    computed_keyed_value: Optional[str] = None
    expected_winner_entry_id: Optional[str] = None

    @property
    def proves_maximality(self) -> bool:
        return self.valid and self.mode is VerificationMode.STRONG

    def to_json(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "mode": self.mode.value,
            "proves_maximality": self.proves_maximality,
            "reasons": sorted(reason.value for reason in self.reasons),
            "computed_commitment": self.computed_commitment,
            "computed_keyed_value": self.computed_keyed_value,
            "expected_winner_entry_id": self.expected_winner_entry_id,
        }


_REQUIRED_FIELDS = (
    "giveaway_id",
    "winner_entry_id",
    "winner_user_id",
    "seed_value",
    "seed_hash",
    "winner_input",
    "winner_hash",
    "total_entries",
)


@dataclass(frozen=True)
class PublishedProof:
    """Plain-data view of a fairness proof, as published to third parties."""

    giveaway_id: str
    winner_entry_id: str
    winner_user_id: str
    seed_value: str
    seed_hash: str
    winner_input: str
    winner_hash: str
    total_entries: int
    selection_method: str = SELECTION_RULE
    all_calculations: Optional[tuple[Mapping[str, Any], ...]] = None
    committed_at: Optional[datetime] = None
    entries_closed_at: Optional[datetime] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PublishedProof":
        """Parse the JSON shape produced by :meth:`FairnessProof.to_json`.

        Raises ``ValueError`` when a required field is missing or mistyped.
        """
        missing = [name for name in _REQUIRED_FIELDS if data.get(name) is None]
        if missing:
            raise ValueError(f"proof is missing required fields: {', '.join(missing)}")
        for name in _REQUIRED_FIELDS[:-1]:
            if not isinstance(data[name], str):
                raise ValueError(f"proof field {name!r} must be a string")
        total = data["total_entries"]
        if isinstance(total, bool) or not isinstance(total, int):
            raise ValueError("proof field 'total_entries' must be an integer")

        calculations = data.get("all_calculations")
        if calculations is not None:
            if not isinstance(calculations, list):
                raise ValueError("proof field 'all_calculations' must be a list")
            calculations = tuple(calculations)

        return cls(
            giveaway_id=data["giveaway_id"],
            winner_entry_id=data["winner_entry_id"],
            winner_user_id=data["winner_user_id"],
            seed_value=data["seed_value"],
            seed_hash=data["seed_hash"],
            winner_input=data["winner_input"],
            winner_hash=data["winner_hash"],
            total_entries=total,
            selection_method=data.get("selection_method") or SELECTION_RULE,
            all_calculations=calculations,
            committed_at=parse_dt_iso(data.get("committed_at")),
            entries_closed_at=parse_dt_iso(data.get("entries_closed_at")),
        )

    @classmethod
    def coerce(
        cls, proof: Union["PublishedProof", FairnessProof, Mapping[str, Any]]
    ) -> "PublishedProof":
        if isinstance(proof, cls):
            return proof
        if isinstance(proof, FairnessProof):
            return cls.from_mapping(proof.to_json())
        if isinstance(proof, Mapping):
            return cls.from_mapping(proof)
        raise ValueError(f"Cannot verify object of type {type(proof).__name__}")


def _decode_seed(seed_value: str) -> Optional[bytes]:
    try:
        seed = seed_from_hex(seed_value)
    except ValueError:
        return None
    # Only the canonical lowercase encoding is accepted.
    if not seed or seed.hex() != seed_value:
        return None
    return seed


def _check_calculation_log(
    seed: bytes, proof: PublishedProof, parallel_threshold: int
) -> bool:
    """Return ``True`` when the disclosed log matches a recomputation."""
    log = proof.all_calculations or ()
    if len(log) != proof.total_entries:
        return False
    try:
        logged = {str(item["entry_id"]): str(item["keyed_value"]) for item in log}
        entries = [
            Entry(
                entry_id=str(item["entry_id"]),
                deterministic_input=str(item["deterministic_input"]),
                user_id="",
            )
            for item in log
        ]
        outcome = select_winner(seed, entries, parallel_threshold=parallel_threshold)
    except (KeyError, TypeError, DataIntegrityError):
        return False
    if outcome.winner.entry_id != proof.winner_entry_id:
        return False
    return all(
        digests_equal(logged.get(record.entry_id, ""), record.keyed_value)
        for record in outcome.records
    )


def _coerce_entries(entries: Iterable[Union[Entry, Mapping[str, Any]]]) -> list[Entry]:
    return [
        entry if isinstance(entry, Entry) else Entry.from_mapping(entry)
        for entry in entries
    ]


def verify(
    proof: Union[PublishedProof, FairnessProof, Mapping[str, Any]],
    entries: Optional[Iterable[Union[Entry, Mapping[str, Any]]]] = None,
    *,
    parallel_threshold: int = DEFAULT_PARALLEL_THRESHOLD,
) -> VerificationResult:
    """Verify a fairness proof.

    Parameters
    ----------
    proof : PublishedProof | FairnessProof | Mapping
        The proof to check: an ORM row, a parsed proof, or the published
        JSON mapping.
    entries : Optional[Iterable[Entry | Mapping]], default: None
        The entry list the operator used. When supplied, verification runs in
        strong mode and re-runs the whole selection.
    parallel_threshold : int, default: DEFAULT_PARALLEL_THRESHOLD
        Forwarded to the selector when re-running selection.

    Returns
    -------
    VerificationResult
        ``valid`` is ``True`` only when every applicable check passed.

    Notes
    -----
    Checks performed:

    1. ``SHA256(seed) == seed_hash``.
    2. ``HMAC-SHA256(seed, winner_input) == winner_hash``.
    3. The commitment predates entry close, when both times are published.
    4. A disclosed calculation log, when present, matches recomputation and
       names the same winner.
    5. Strong mode only: the supplied entries contain the winner with the
       same input and owner, have the published count, and re-running
       selection over them picks the same winner.
    """
    mode = VerificationMode.WEAK if entries is None else VerificationMode.STRONG
    reasons: set[FailureReason] = set()

    try:
        published = PublishedProof.coerce(proof)
    except (TypeError, ValueError) as exc:
        logger.debug("Rejecting malformed proof: %s", exc)
        return VerificationResult(
            valid=False,
            mode=mode,
            reasons=frozenset({FailureReason.MALFORMED_PROOF}),
        )

    if published.selection_method != SELECTION_RULE:
        reasons.add(FailureReason.UNKNOWN_SELECTION_METHOD)
    if published.total_entries < 1:
        reasons.add(FailureReason.MALFORMED_PROOF)

    computed_commitment: Optional[str] = None
    computed_keyed: Optional[str] = None
    seed = _decode_seed(published.seed_value)
    if seed is None:
        reasons.update(
            {
                FailureReason.MALFORMED_PROOF,
                FailureReason.COMMITMENT_MISMATCH,
                FailureReason.KEYED_VALUE_MISMATCH,
            }
        )
    else:
        computed_commitment = seed_commitment(seed)
        if not digests_equal(computed_commitment, published.seed_hash):
            reasons.add(FailureReason.COMMITMENT_MISMATCH)
        computed_keyed = keyed_value(seed, published.winner_input)
        if not digests_equal(computed_keyed, published.winner_hash):
            reasons.add(FailureReason.KEYED_VALUE_MISMATCH)

    if (
        published.committed_at is not None
        and published.entries_closed_at is not None
        and published.committed_at >= published.entries_closed_at
    ):
        reasons.add(FailureReason.COMMITTED_AFTER_CLOSE)

    if seed is not None and published.all_calculations is not None:
        if not _check_calculation_log(seed, published, parallel_threshold):
            reasons.add(FailureReason.CALCULATION_LOG_MISMATCH)

    expected_winner: Optional[str] = None
    if entries is not None:
        try:
            entry_list = _coerce_entries(entries)
        except (TypeError, ValueError):
            entry_list = None
            reasons.add(FailureReason.INVALID_ENTRY_LIST)

        if entry_list is not None:
            if len(entry_list) != published.total_entries:
                reasons.add(FailureReason.ENTRY_COUNT_MISMATCH)

            claimed = next(
                (e for e in entry_list if e.entry_id == published.winner_entry_id), None
            )
            if claimed is None:
                reasons.add(FailureReason.WINNER_NOT_IN_ENTRIES)
            else:
                if claimed.deterministic_input != published.winner_input:
                    reasons.add(FailureReason.WINNER_INPUT_MISMATCH)
                if claimed.user_id != published.winner_user_id:
                    reasons.add(FailureReason.WINNER_USER_MISMATCH)

            if seed is not None:
                try:
                    outcome = select_winner(
                        seed, entry_list, parallel_threshold=parallel_threshold
                    )
                except DataIntegrityError:
                    reasons.add(FailureReason.INVALID_ENTRY_LIST)
                else:
                    expected_winner = outcome.winner.entry_id
                    if expected_winner != published.winner_entry_id:
                        reasons.add(FailureReason.NOT_MAXIMAL)

    result = VerificationResult(
        valid=not reasons,
        mode=mode,
        reasons=frozenset(reasons),
        computed_commitment=computed_commitment,
        computed_keyed_value=computed_keyed,
        expected_winner_entry_id=expected_winner,
    )
    logger.debug(
        "Verified proof for giveaway %s (%s): valid=%s reasons=%s",
        published.giveaway_id,
        mode.value,
        result.valid,
        sorted(reason.value for reason in result.reasons),
    )
    return result


__all__ = [
    "FailureReason",
    "PublishedProof",
    "VerificationMode",
    "VerificationResult",
    "verify",
]
