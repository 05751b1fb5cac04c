"""Deterministic winner selection over a frozen entry list."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from ..errors import (
    DuplicateEntryId,
    DuplicateEntryInput,
    InvalidEntryInput,
    NoEligibleEntries,
)
from ..hashing import digest_to_int, encode_input, keyed_digest
from ..settings import DEFAULT_PARALLEL_THRESHOLD
from .entries import Entry

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 2048


@dataclass(frozen=True)
class SelectionRecord:
    """Per-entry calculation produced during a selection run.

    Attributes
    ----------
    entry_id : str
        Identifier of the entry.
    deterministic_input : str
        Message passed to HMAC.
    keyed_value : str
        Lowercase hex ``HMAC-SHA256(seed, deterministic_input)``.
    ordinal : int
        Position in the canonical ordering (ascending ``entry_id``).
    """

    entry_id: str
    deterministic_input: str
    keyed_value: str
    ordinal: int

    @property
    def score(self) -> int:
        """Full 256-bit unsigned integer value of :attr:`keyed_value`."""
        return digest_to_int(self.keyed_value)

    def to_json(self) -> dict:
        return {
            "ordinal": self.ordinal,
            "entry_id": self.entry_id,
            "deterministic_input": self.deterministic_input,
            "keyed_value": self.keyed_value,
        }


@dataclass(frozen=True)
class SelectionOutcome:
    """Winner plus every per-entry calculation, in canonical order."""

    winner: Entry
    winner_record: SelectionRecord
    records: tuple[SelectionRecord, ...]

    @property
    def all_keyed_values(self) -> tuple[tuple[str, str], ...]:
        return tuple((rec.entry_id, rec.keyed_value) for rec in self.records)

    @property
    def total_entries(self) -> int:
        return len(self.records)


def _validate_entries(entries: Sequence[Entry]) -> None:
    if not entries:
        raise NoEligibleEntries("Cannot select a winner from an empty entry list")

    ids_seen: set[str] = set()
    inputs_seen: dict[str, str] = {}
    for entry in entries:
        if not entry.deterministic_input:
            raise InvalidEntryInput(
                f"Entry {entry.entry_id!r} has an empty deterministic input"
            )
        if entry.entry_id in ids_seen:
            raise DuplicateEntryId(entry.entry_id)
        ids_seen.add(entry.entry_id)
        previous = inputs_seen.get(entry.deterministic_input)
        if previous is not None:
            raise DuplicateEntryInput(
                entry.deterministic_input, (previous, entry.entry_id)
            )
        inputs_seen[entry.deterministic_input] = entry.entry_id


def _digest_chunk(seed: bytes, chunk: Sequence[Entry]) -> list[bytes]:
    return [keyed_digest(seed, entry.deterministic_input) for entry in chunk]


def _compute_digests(
    seed: bytes,
    ordered: Sequence[Entry],
    *,
    parallel_threshold: int,
    max_workers: Optional[int],
) -> list[bytes]:
    if len(ordered) < parallel_threshold:
        return _digest_chunk(seed, ordered)

    chunks = [ordered[i : i + _CHUNK_SIZE] for i in range(0, len(ordered), _CHUNK_SIZE)]
    logger.debug(
        "Hashing %d entries across %d chunks in a thread pool", len(ordered), len(chunks)
    )
    digests: list[bytes] = []
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        # ``map`` yields in submission order regardless of completion order.
        for chunk_digests in pool.map(lambda c: _digest_chunk(seed, c), chunks):
            digests.extend(chunk_digests)
    return digests


def _outranks(
    digest: bytes, entry: Entry, best_digest: bytes, best_entry: Entry
) -> bool:
    """Return ``True`` when ``entry`` beats the current best.

    Equal-length big-endian digests compare as unsigned integers under plain
    byte comparison. Identical digests fall back to the smaller input bytes.
    """
    if digest != best_digest:
        return int.from_bytes(digest, "big") > int.from_bytes(best_digest, "big")
    return encode_input(entry.deterministic_input) < encode_input(
        best_entry.deterministic_input
    )


def select_winner(
    seed: bytes,
    entries: Iterable[Entry],
    *,
    parallel_threshold: int = DEFAULT_PARALLEL_THRESHOLD,
    max_workers: Optional[int] = None,
) -> SelectionOutcome:
    """Select the winning entry for a revealed ``seed``.

    Every entry is scored with ``HMAC-SHA256(seed, deterministic_input)``
    read as a 256-bit unsigned integer and the maximum wins. If two digests
    are byte-identical the entry with the lexicographically smallest
    deterministic input wins, which makes the result independent of the
    order ``entries`` arrive in.

    Parameters
    ----------
    seed : bytes
        The revealed seed. The selector cannot obtain it on its own, so it
        cannot run before the reveal.
    entries : Iterable[Entry]
        The frozen list of paid entries.
    parallel_threshold : int, default: DEFAULT_PARALLEL_THRESHOLD
        Entry count at which hashing is spread over a thread pool.
    max_workers : Optional[int], default: None
        Thread pool size when the pool is used.

    Returns
    -------
    SelectionOutcome
        Winner and the per-entry records in canonical ``entry_id`` order.

    Raises
    ------
    NoEligibleEntries
        If ``entries`` is empty.
    InvalidEntryInput
        If any entry has an empty deterministic input.
    DuplicateEntryId, DuplicateEntryInput
        If ids or inputs repeat within the list.
    """
    if not isinstance(seed, (bytes, bytearray)):
        raise TypeError("seed must be bytes")
    if not seed:
        raise ValueError("seed must not be empty")
    seed = bytes(seed)

    entry_list = list(entries)
    _validate_entries(entry_list)

    ordered = sorted(entry_list, key=lambda entry: entry.entry_id)
    digests = _compute_digests(
        seed,
        ordered,
        parallel_threshold=parallel_threshold,
        max_workers=max_workers,
    )

    records: list[SelectionRecord] = []
    best_index = 0
    for ordinal, (entry, digest) in enumerate(zip(ordered, digests)):
        records.append(
            SelectionRecord(
                entry_id=entry.entry_id,
                deterministic_input=entry.deterministic_input,
                keyed_value=digest.hex(),
                ordinal=ordinal,
            )
        )
        if ordinal and _outranks(digest, entry, digests[best_index], ordered[best_index]):
            best_index = ordinal

    winner = ordered[best_index]
    logger.debug(
        "Selected entry %s out of %d entries", winner.entry_id, len(ordered)
    )
    return SelectionOutcome(
        winner=winner,
        winner_record=records[best_index],
        records=tuple(records),
    )


__all__ = ["SelectionOutcome", "SelectionRecord", "select_winner"]
