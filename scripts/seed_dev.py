from datetime import datetime, timedelta, timezone

from fairdraw.db.engine import get_sessionmaker, make_engine
from fairdraw.draw import Entry
from fairdraw.models import Base
from fairdraw.workflows import audit_giveaway, finalize_giveaway, open_giveaway


def main() -> None:
    """Reset the development database and run one giveaway end to end."""
    engine = make_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)

    opened_at = datetime.now(timezone.utc) - timedelta(days=7)
    closes_at = opened_at + timedelta(days=6)

    with Session.begin() as session:
        commitment = open_giveaway(
            session,
            "dev-giveaway-1",
            entries_close_at=closes_at,
            creator_id="creator_01",
            clock=lambda: opened_at,
        )
        print("Published commitment:", commitment.commitment)

    entries = [
        Entry.from_payment_record(
            entry_id=f"entry_{i:02d}",
            user_id=f"user_{i % 3:02d}",
            payment_id=f"pi_dev_{i:04d}" if i % 4 else None,
            order_id=f"order_{i:04d}",
        )
        for i in range(1, 13)
    ]

    with Session.begin() as session:
        proof = finalize_giveaway(
            session,
            "dev-giveaway-1",
            entries,
            entries_close_at=closes_at,
        )
        print(proof.to_json_str())

    with Session() as session:
        result = audit_giveaway(session, "dev-giveaway-1", entries)
        print("Strong verification:", result.to_json())


if __name__ == "__main__":
    main()
