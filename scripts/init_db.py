from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import func, inspect, select

from fairdraw.db.engine import get_sessionmaker, make_engine
from fairdraw.models import FairnessProof, GiveawaySeed

PROJECT_ROOT = Path(__file__).resolve().parents[1]
REQUIRED_TABLES = (GiveawaySeed.__tablename__, FairnessProof.__tablename__)


def upgrade_db(target_revision: str = "head") -> None:
    """Apply Alembic migrations up to the requested revision."""
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    command.upgrade(alembic_cfg, target_revision)


def report(database_url: Optional[str] = None) -> int:
    """Print the fairness tables and their row counts; non-zero if any is missing."""
    engine = make_engine(database_url)
    tables = set(inspect(engine).get_table_names())
    missing = [name for name in REQUIRED_TABLES if name not in tables]
    if missing:
        print("Missing tables:", ", ".join(missing))
        return 1

    Session = get_sessionmaker(engine)
    with Session() as session:
        seeds = session.scalar(select(func.count()).select_from(GiveawaySeed))
        revealed = session.scalar(
            select(func.count()).select_from(GiveawaySeed).where(GiveawaySeed.revealed.is_(True))
        )
        proofs = session.scalar(select(func.count()).select_from(FairnessProof))
    print(f"giveaway_seeds: {seeds} committed, {revealed} revealed")
    print(f"fairness_proofs: {proofs} recorded")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Migrate the fairness database.")
    parser.add_argument("--revision", default="head", help="target Alembic revision")
    args = parser.parse_args()
    upgrade_db(args.revision)
    return report()


if __name__ == "__main__":
    raise SystemExit(main())
