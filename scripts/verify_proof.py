"""Verify a published fairness proof without any access to the platform.

Usage::

    python scripts/verify_proof.py proof.json
    python scripts/verify_proof.py proof.json --entries entries.json

Exit status is 0 for a valid proof, 1 for an invalid one and 2 when the
input files cannot be read.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from fairdraw.draw import VerificationMode, load_entries, verify

logger = logging.getLogger("fairdraw.verify_proof")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("proof", help="path to the published proof JSON")
    parser.add_argument(
        "--entries",
        help="path to the entry list JSON; enables strong verification",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s [%(name)s] %(message)s",
    )

    try:
        with open(args.proof, "r", encoding="utf-8") as fh:
            proof = json.load(fh)
        entries = load_entries(args.entries) if args.entries else None
    except (OSError, ValueError) as exc:
        logger.error("Could not read input: %s", exc)
        return 2

    result = verify(proof, entries)
    print(json.dumps(result.to_json(), indent=2, sort_keys=True))
    if result.valid and result.mode is VerificationMode.WEAK:
        print(
            "Weak verification: the winner's value matches the seed, but without "
            "the entry list it is not shown that no other entry scored higher.",
            file=sys.stderr,
        )
    return 0 if result.valid else 1


if __name__ == "__main__":
    raise SystemExit(main())
