import hashlib
import unittest
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import sessionmaker

from fairdraw.db.engine import make_engine
from fairdraw.draw import Entry, GiveawayFinalizer, ProofRecorder, select_winner
from fairdraw.errors import (
    EntryCountMismatch,
    OutcomeSeedMismatch,
    ProofAlreadyExists,
    ProofImmutable,
    SeedCommitmentMismatch,
)
from fairdraw.hashing import SELECTION_RULE, seed_commitment
from fairdraw.models import Base, FairnessProof

SEED = hashlib.sha256(b"recorder-seed").digest()
COMMITTED = datetime(2026, 3, 1, tzinfo=timezone.utc)
CLOSED = COMMITTED + timedelta(days=3)


def _entries() -> list[Entry]:
    return [
        Entry(entry_id=f"entry-{i}", deterministic_input=f"pi_{i}", user_id=f"user-{i}")
        for i in range(8)
    ]


class RecordingFinalizer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[tuple[str, str, str]] = []

    def mark_winner(self, giveaway_id, winner_entry_id, winner_user_id, proof):
        self.calls.append((giveaway_id, winner_entry_id, winner_user_id))
        if self.fail:
            raise RuntimeError("giveaway service unavailable")


class ProofRecorderTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )
        self.outcome = select_winner(SEED, _entries())
        self.commitment = seed_commitment(SEED)

    def tearDown(self):
        self.engine.dispose()

    def _record(self, session, recorder=None, **kwargs):
        recorder = recorder or ProofRecorder(session)
        kwargs.setdefault("committed_at", COMMITTED)
        kwargs.setdefault("entries_closed_at", CLOSED)
        return recorder.record(
            "g1", self.commitment, SEED, self.outcome, len(_entries()), **kwargs
        )

    def test_record_full_disclosure(self):
        finalizer = RecordingFinalizer()
        self.assertIsInstance(finalizer, GiveawayFinalizer)

        with self.Session.begin() as session:
            proof = self._record(session, ProofRecorder(session, finalizer=finalizer))
            self.assertIsNotNone(proof.id)

        winner = self.outcome.winner
        self.assertEqual(
            finalizer.calls, [("g1", winner.entry_id, winner.user_id)]
        )

        with self.Session() as session:
            stored = FairnessProof.get_by_giveaway_id(session, "g1")
            self.assertEqual(stored.winner_entry_id, winner.entry_id)
            self.assertEqual(stored.winner_user_id, winner.user_id)
            self.assertEqual(stored.seed_value, SEED.hex())
            self.assertEqual(stored.seed_hash, self.commitment)
            self.assertEqual(stored.winner_hash, self.outcome.winner_record.keyed_value)
            self.assertEqual(stored.total_entries, 8)
            self.assertEqual(stored.selection_method, SELECTION_RULE)
            self.assertEqual(stored.disclosure, "full")
            self.assertEqual(len(stored.all_calculations), 8)
            self.assertEqual(
                [item["entry_id"] for item in stored.all_calculations],
                sorted(e.entry_id for e in _entries()),
            )

            payload = stored.to_json()
            self.assertEqual(payload["committed_at"], COMMITTED.isoformat())
            self.assertEqual(payload["entries_closed_at"], CLOSED.isoformat())
            self.assertIsNotNone(payload["verified_at"])

    def test_record_winner_only_disclosure(self):
        with self.Session.begin() as session:
            proof = self._record(session, ProofRecorder(session, disclosure="winner_only"))
            self.assertIsNone(proof.all_calculations)
            self.assertEqual(proof.disclosure, "winner_only")
            self.assertEqual(proof.total_entries, 8)

    def test_unknown_disclosure_rejected(self):
        with self.Session() as session:
            with self.assertRaises(ValueError):
                ProofRecorder(session, disclosure="partial")

    def test_mismatched_commitment_writes_nothing(self):
        with self.Session.begin() as session:
            recorder = ProofRecorder(session)
            with self.assertLogs("fairdraw.draw.recorder", level="CRITICAL"):
                with self.assertRaises(SeedCommitmentMismatch):
                    recorder.record(
                        "g1", "00" * 32, SEED, self.outcome, len(_entries())
                    )
            self.assertIsNone(recorder.get_proof("g1"))

    def test_outcome_from_another_seed_writes_nothing(self):
        other_outcome = select_winner(hashlib.sha256(b"other-seed").digest(), _entries())
        with self.Session.begin() as session:
            recorder = ProofRecorder(session)
            with self.assertLogs("fairdraw.draw.recorder", level="CRITICAL"):
                with self.assertRaises(OutcomeSeedMismatch):
                    recorder.record(
                        "g1", self.commitment, SEED, other_outcome, len(_entries())
                    )
            self.assertIsNone(recorder.get_proof("g1"))

        with self.Session.begin() as session:
            proof = self._record(session)
            self.assertEqual(proof.winner_hash, self.outcome.winner_record.keyed_value)

    def test_total_entries_must_match_outcome(self):
        with self.Session.begin() as session:
            recorder = ProofRecorder(session)
            with self.assertRaises(EntryCountMismatch):
                recorder.record("g1", self.commitment, SEED, self.outcome, 9)

    def test_second_record_raises(self):
        with self.Session.begin() as session:
            self._record(session)
        with self.Session.begin() as session:
            with self.assertRaises(ProofAlreadyExists):
                self._record(session)

    def test_finalizer_failure_discards_proof(self):
        finalizer = RecordingFinalizer(fail=True)
        with self.Session.begin() as session:
            recorder = ProofRecorder(session, finalizer=finalizer)
            with self.assertRaises(RuntimeError):
                self._record(session, recorder)
            self.assertIsNone(recorder.get_proof("g1"))
            self.assertEqual(len(finalizer.calls), 1)

        with self.Session.begin() as session:
            self._record(session)
            self.assertIsNotNone(FairnessProof.get_by_giveaway_id(session, "g1"))

    def test_persisted_proof_is_immutable(self):
        with self.Session.begin() as session:
            self._record(session)

        with self.Session() as session:
            proof = FairnessProof.get_by_giveaway_id(session, "g1")
            proof.winner_entry_id = "someone-else"
            with self.assertRaises(ProofImmutable):
                session.flush()
            session.rollback()

        with self.Session() as session:
            proof = FairnessProof.get_by_giveaway_id(session, "g1")
            self.assertEqual(proof.winner_entry_id, self.outcome.winner.entry_id)

    def test_persisted_proof_cannot_be_deleted_and_rerecorded(self):
        with self.Session.begin() as session:
            self._record(session)

        with self.Session() as session:
            session.delete(FairnessProof.get_by_giveaway_id(session, "g1"))
            with self.assertRaises(ProofImmutable):
                session.flush()
            session.rollback()

        smaller = select_winner(SEED, _entries()[:5])
        with self.Session.begin() as session:
            with self.assertRaises(ProofAlreadyExists):
                ProofRecorder(session).record("g1", self.commitment, SEED, smaller, 5)
            self.assertEqual(
                FairnessProof.get_by_giveaway_id(session, "g1").total_entries, 8
            )


if __name__ == "__main__":
    unittest.main()
