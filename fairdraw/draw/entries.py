"""Entry value objects supplied by the entry/payment collaborator."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union


@dataclass(frozen=True)
class Entry:
    """A paid entry frozen at giveaway close.

    Attributes
    ----------
    entry_id : str
        Unique identifier of the entry.
    deterministic_input : str
        Stable, content-derived value fed to HMAC. It must be the same every
        time the entry is fetched, so it is never a list position.
    user_id : str
        Owner of the entry; opaque to the engine.
    """

    entry_id: str
    deterministic_input: str
    user_id: str

    def __post_init__(self) -> None:
        for name in ("entry_id", "deterministic_input", "user_id"):
            if not isinstance(getattr(self, name), str):
                raise TypeError(f"{name} must be a string")

    @classmethod
    def from_payment_record(
        cls,
        *,
        entry_id: str,
        user_id: str,
        payment_id: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> "Entry":
        """Build an entry whose input is its payment intent id.

        Falls back to the order id, then to the entry id itself, so every
        entry has an immutable transaction-bound input.
        """
        deterministic_input = payment_id or order_id or entry_id
        return cls(
            entry_id=str(entry_id),
            deterministic_input=str(deterministic_input),
            user_id=str(user_id),
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Entry":
        """Parse the ``to_json`` shape; every field must be a JSON string."""
        if not isinstance(data, Mapping):
            raise ValueError("entry must be a JSON object")
        fields = ("entry_id", "deterministic_input", "user_id")
        for name in fields:
            if name not in data:
                raise ValueError(f"entry is missing field {name!r}")
            if not isinstance(data[name], str):
                raise ValueError(f"entry field {name!r} must be a string")
        return cls(**{name: data[name] for name in fields})

    def to_json(self) -> dict[str, str]:
        return {
            "entry_id": self.entry_id,
            "deterministic_input": self.deterministic_input,
            "user_id": self.user_id,
        }


def load_entries(source: Union[str, Path, Iterable[Mapping[str, Any]]]) -> list[Entry]:
    """Load entries from a JSON file path or an iterable of mappings.

    The JSON document is a list of ``{"entry_id", "deterministic_input",
    "user_id"}`` objects, the same shape :meth:`Entry.to_json` produces.
    """
    if isinstance(source, (str, Path)):
        with open(source, "r", encoding="utf-8") as fh:
            payload = json.load(fh)
        if not isinstance(payload, list):
            raise ValueError("entries file must contain a JSON list")
        source = payload
    return [Entry.from_mapping(item) for item in source]


__all__ = ["Entry", "load_entries"]
