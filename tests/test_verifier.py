import copy
import hashlib
import unittest
from datetime import datetime, timedelta, timezone

from fairdraw.draw import (
    Entry,
    FailureReason,
    PublishedProof,
    VerificationMode,
    select_winner,
    verify,
)
from fairdraw.hashing import SELECTION_RULE, keyed_value, seed_commitment
from fairdraw.models import FairnessProof

SEED = hashlib.sha256(b"verifier-seed").digest()
COMMITTED = datetime(2026, 5, 1, tzinfo=timezone.utc)
CLOSED = COMMITTED + timedelta(days=2)


def _entries() -> list[Entry]:
    return [
        Entry(entry_id=f"entry-{i:02d}", deterministic_input=f"pi_{i:02d}", user_id=f"user-{i}")
        for i in range(12)
    ]


def _flip(hex_string: str, index: int = 0) -> str:
    replacement = "0" if hex_string[index] != "0" else "1"
    return hex_string[:index] + replacement + hex_string[index + 1 :]


def honest_proof(*, full: bool = True) -> dict:
    outcome = select_winner(SEED, _entries())
    winner = outcome.winner
    return {
        "giveaway_id": "g1",
        "winner_entry_id": winner.entry_id,
        "winner_user_id": winner.user_id,
        "seed_value": SEED.hex(),
        "seed_hash": seed_commitment(SEED),
        "winner_input": winner.deterministic_input,
        "winner_hash": outcome.winner_record.keyed_value,
        "total_entries": outcome.total_entries,
        "selection_method": SELECTION_RULE,
        "disclosure": "full" if full else "winner_only",
        "all_calculations": (
            [record.to_json() for record in outcome.records] if full else None
        ),
        "committed_at": COMMITTED.isoformat(),
        "entries_closed_at": CLOSED.isoformat(),
        "verified_at": CLOSED.isoformat(),
    }


class WeakVerificationTestCase(unittest.TestCase):
    def test_honest_proof_is_valid(self):
        result = verify(honest_proof())
        self.assertTrue(result.valid)
        self.assertEqual(result.mode, VerificationMode.WEAK)
        self.assertFalse(result.proves_maximality)
        self.assertEqual(result.reasons, frozenset())
        self.assertEqual(result.computed_commitment, seed_commitment(SEED))

    def test_winner_only_proof_is_valid(self):
        self.assertTrue(verify(honest_proof(full=False)).valid)

    def test_orm_proof_is_accepted(self):
        proof = FairnessProof(**{
            key: value
            for key, value in honest_proof().items()
            if key not in ("committed_at", "entries_closed_at", "verified_at")
        })
        self.assertTrue(verify(proof).valid)

    def test_flipped_winner_hash_detected(self):
        proof = honest_proof(full=False)
        for index in (0, 31, 63):
            tampered = dict(proof, winner_hash=_flip(proof["winner_hash"], index))
            result = verify(tampered)
            self.assertFalse(result.valid)
            self.assertEqual(result.reasons, {FailureReason.KEYED_VALUE_MISMATCH})

    def test_flipped_seed_hash_detected(self):
        proof = honest_proof(full=False)
        proof["seed_hash"] = _flip(proof["seed_hash"], 10)
        result = verify(proof)
        self.assertEqual(result.reasons, {FailureReason.COMMITMENT_MISMATCH})

    def test_flipped_seed_value_detected(self):
        proof = honest_proof(full=False)
        proof["seed_value"] = _flip(proof["seed_value"], 5)
        result = verify(proof)
        self.assertFalse(result.valid)
        self.assertIn(FailureReason.COMMITMENT_MISMATCH, result.reasons)
        self.assertIn(FailureReason.KEYED_VALUE_MISMATCH, result.reasons)

    def test_non_canonical_seed_is_malformed(self):
        proof = honest_proof(full=False)
        proof["seed_value"] = proof["seed_value"].upper()
        result = verify(proof)
        self.assertIn(FailureReason.MALFORMED_PROOF, result.reasons)
        self.assertIsNone(result.computed_commitment)

    def test_missing_fields_are_malformed(self):
        proof = honest_proof()
        del proof["winner_hash"]
        result = verify(proof)
        self.assertFalse(result.valid)
        self.assertEqual(result.reasons, {FailureReason.MALFORMED_PROOF})

    def test_wrong_types_are_malformed(self):
        self.assertEqual(
            verify(dict(honest_proof(), total_entries="12")).reasons,
            {FailureReason.MALFORMED_PROOF},
        )
        self.assertEqual(
            verify(dict(honest_proof(), total_entries=True)).reasons,
            {FailureReason.MALFORMED_PROOF},
        )
        self.assertEqual(verify(42).reasons, {FailureReason.MALFORMED_PROOF})

    def test_unknown_selection_method(self):
        proof = dict(honest_proof(), selection_method="HMAC_SHA256_MAX")
        self.assertIn(FailureReason.UNKNOWN_SELECTION_METHOD, verify(proof).reasons)

    def test_commitment_after_close(self):
        proof = honest_proof()
        proof["committed_at"] = (CLOSED + timedelta(seconds=1)).isoformat()
        self.assertEqual(verify(proof).reasons, {FailureReason.COMMITTED_AFTER_CLOSE})

    def test_tampered_calculation_log(self):
        proof = honest_proof()
        log = copy.deepcopy(proof["all_calculations"])
        log[3]["keyed_value"] = _flip(log[3]["keyed_value"])
        proof["all_calculations"] = log
        self.assertEqual(verify(proof).reasons, {FailureReason.CALCULATION_LOG_MISMATCH})

        proof["all_calculations"] = log[:-1]
        self.assertIn(FailureReason.CALCULATION_LOG_MISMATCH, verify(proof).reasons)

    def test_result_serializes(self):
        payload = verify(honest_proof()).to_json()
        self.assertEqual(payload["mode"], "weak")
        self.assertEqual(payload["reasons"], [])
        self.assertTrue(payload["valid"])

    def test_published_proof_parses_timestamps(self):
        published = PublishedProof.from_mapping(honest_proof())
        self.assertEqual(published.committed_at, COMMITTED)
        self.assertEqual(published.entries_closed_at, CLOSED)
        self.assertEqual(len(published.all_calculations), 12)


class StrongVerificationTestCase(unittest.TestCase):
    def _cheating_proof(self) -> dict:
        """A self-consistent proof naming an entry that did not win."""
        outcome = select_winner(SEED, _entries())
        loser = next(e for e in _entries() if e.entry_id != outcome.winner.entry_id)
        proof = honest_proof(full=False)
        proof.update(
            winner_entry_id=loser.entry_id,
            winner_user_id=loser.user_id,
            winner_input=loser.deterministic_input,
            winner_hash=keyed_value(SEED, loser.deterministic_input),
        )
        return proof

    def test_honest_proof_with_entries(self):
        result = verify(honest_proof(), _entries())
        self.assertTrue(result.valid)
        self.assertEqual(result.mode, VerificationMode.STRONG)
        self.assertTrue(result.proves_maximality)
        self.assertEqual(
            result.expected_winner_entry_id, honest_proof()["winner_entry_id"]
        )

    def test_entries_may_be_mappings_in_any_order(self):
        entries = [entry.to_json() for entry in reversed(_entries())]
        self.assertTrue(verify(honest_proof(), entries).valid)

    def test_weak_mode_cannot_detect_non_maximal_winner(self):
        self.assertTrue(verify(self._cheating_proof()).valid)

    def test_strong_mode_detects_non_maximal_winner(self):
        result = verify(self._cheating_proof(), _entries())
        self.assertFalse(result.valid)
        self.assertEqual(result.reasons, {FailureReason.NOT_MAXIMAL})
        self.assertNotEqual(
            result.expected_winner_entry_id, self._cheating_proof()["winner_entry_id"]
        )

    def test_entry_count_mismatch(self):
        entries = _entries() + [
            Entry(entry_id="entry-99", deterministic_input="pi_99", user_id="late")
        ]
        result = verify(honest_proof(full=False), entries)
        self.assertIn(FailureReason.ENTRY_COUNT_MISMATCH, result.reasons)

    def test_winner_missing_from_entries(self):
        proof = honest_proof(full=False)
        entries = [e for e in _entries() if e.entry_id != proof["winner_entry_id"]]
        result = verify(proof, entries)
        self.assertIn(FailureReason.WINNER_NOT_IN_ENTRIES, result.reasons)
        self.assertIn(FailureReason.ENTRY_COUNT_MISMATCH, result.reasons)

    def test_winner_input_mismatch(self):
        proof = honest_proof(full=False)
        entries = [
            Entry(entry_id=e.entry_id, deterministic_input=e.deterministic_input + "x", user_id=e.user_id)
            if e.entry_id == proof["winner_entry_id"]
            else e
            for e in _entries()
        ]
        self.assertIn(FailureReason.WINNER_INPUT_MISMATCH, verify(proof, entries).reasons)

    def test_forged_winner_user_detected(self):
        proof = dict(honest_proof(), winner_user_id="attacker")
        self.assertTrue(verify(proof).valid)

        result = verify(proof, _entries())
        self.assertFalse(result.valid)
        self.assertEqual(result.reasons, {FailureReason.WINNER_USER_MISMATCH})

    def test_null_entry_fields_are_invalid(self):
        entries = [entry.to_json() for entry in _entries()]
        loser = next(
            e for e in entries if e["entry_id"] != honest_proof()["winner_entry_id"]
        )
        loser["deterministic_input"] = None
        result = verify(honest_proof(), entries)
        self.assertFalse(result.valid)
        self.assertEqual(result.reasons, {FailureReason.INVALID_ENTRY_LIST})

    def test_invalid_entry_list(self):
        entries = _entries()
        entries.append(Entry(entry_id="dupe", deterministic_input="pi_00", user_id="x"))
        self.assertIn(
            FailureReason.INVALID_ENTRY_LIST,
            verify(honest_proof(full=False), entries).reasons,
        )
        self.assertIn(
            FailureReason.INVALID_ENTRY_LIST,
            verify(honest_proof(full=False), [{"entry_id": "a"}]).reasons,
        )


if __name__ == "__main__":
    unittest.main()
