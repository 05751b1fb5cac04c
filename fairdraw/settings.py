"""Runtime configuration for the fairness engine, read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

MIN_SEED_BYTES = 32
DISCLOSURE_FULL = "full"
DISCLOSURE_WINNER_ONLY = "winner_only"
DISCLOSURE_MODES = (DISCLOSURE_FULL, DISCLOSURE_WINNER_ONLY)
DEFAULT_PARALLEL_THRESHOLD = 20_000


def _int_setting(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable '{name}' must be an integer") from exc


@dataclass(frozen=True)
class FairnessSettings:
    """Deployment knobs for seed generation, selection and proof disclosure.

    Attributes
    ----------
    seed_bytes : int
        Length of generated seeds. Never below 32 bytes (256 bits).
    disclosure : str
        ``"full"`` embeds every per-entry calculation in the proof,
        ``"winner_only"`` keeps just the winner's record plus the entry count.
    parallel_threshold : int
        Entry count at which the selector fans hashing out to a thread pool.
    max_workers : Optional[int]
        Thread pool size; ``None`` lets the executor decide.
    """

    seed_bytes: int = MIN_SEED_BYTES
    disclosure: str = DISCLOSURE_FULL
    parallel_threshold: int = DEFAULT_PARALLEL_THRESHOLD
    max_workers: Optional[int] = None

    def __post_init__(self) -> None:
        if self.seed_bytes < MIN_SEED_BYTES:
            raise ValueError(
                f"seed_bytes must be at least {MIN_SEED_BYTES} (got {self.seed_bytes})"
            )
        if self.disclosure not in DISCLOSURE_MODES:
            raise ValueError(
                f"disclosure must be one of {DISCLOSURE_MODES} (got {self.disclosure!r})"
            )
        if self.parallel_threshold <= 0:
            raise ValueError("parallel_threshold must be a positive integer")
        if self.max_workers is not None and self.max_workers <= 0:
            raise ValueError("max_workers must be a positive integer when provided")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "FairnessSettings":
        """Build settings from ``env`` (defaults to ``os.environ`` after loading ``.env``)."""
        if env is None:
            load_dotenv()
            env = os.environ
        disclosure = (env.get("FAIRDRAW_DISCLOSURE") or DISCLOSURE_FULL).strip().lower()
        return cls(
            seed_bytes=_int_setting(env, "FAIRDRAW_SEED_BYTES", MIN_SEED_BYTES),
            disclosure=disclosure,
            parallel_threshold=_int_setting(
                env, "FAIRDRAW_PARALLEL_THRESHOLD", DEFAULT_PARALLEL_THRESHOLD
            ),
            max_workers=_int_setting(env, "FAIRDRAW_MAX_WORKERS", None),
        )


__all__ = [
    "DEFAULT_PARALLEL_THRESHOLD",
    "DISCLOSURE_FULL",
    "DISCLOSURE_MODES",
    "DISCLOSURE_WINNER_ONLY",
    "FairnessSettings",
    "MIN_SEED_BYTES",
]
