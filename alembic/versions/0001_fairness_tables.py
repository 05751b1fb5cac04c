"""giveaway seeds and fairness proofs

Revision ID: 0001_fairness_tables
Revises:
Create Date: 2026-10-17 09:00:00
"""
from alembic import op
import sqlalchemy as sa


revision = "0001_fairness_tables"
down_revision = None
branch_labels = None
depends_on = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "giveaway_seeds",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("giveaway_id", sa.String(length=64), nullable=False),
        sa.Column("creator_id", sa.String(length=64), nullable=True),
        sa.Column("seed_hash", sa.String(length=64), nullable=False),
        sa.Column("seed_value", sa.String(length=256), nullable=False),
        sa.Column("revealed", sa.Boolean(), nullable=False),
        sa.Column("committed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("entries_close_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revealed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_giveaway_seeds"),
        sa.UniqueConstraint("giveaway_id", name="giveaway_seeds_giveaway_id_key"),
    )

    op.create_table(
        "fairness_proofs",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("giveaway_id", sa.String(length=64), nullable=False),
        sa.Column("seed_id", ID_TYPE, nullable=True),
        sa.Column("winner_entry_id", sa.String(length=64), nullable=False),
        sa.Column("winner_user_id", sa.String(length=64), nullable=False),
        sa.Column("seed_value", sa.String(length=256), nullable=False),
        sa.Column("seed_hash", sa.String(length=64), nullable=False),
        sa.Column("winner_input", sa.Text(), nullable=False),
        sa.Column("winner_hash", sa.String(length=64), nullable=False),
        sa.Column("total_entries", sa.Integer(), nullable=False),
        sa.Column("selection_method", sa.String(length=50), nullable=False),
        sa.Column("disclosure", sa.String(length=20), nullable=False),
        sa.Column("all_calculations", sa.JSON(), nullable=True),
        sa.Column("committed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("entries_closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "total_entries > 0", name="ck_fairness_proofs_total_entries_positive"
        ),
        sa.CheckConstraint(
            "disclosure IN ('full','winner_only')",
            name="ck_fairness_proofs_disclosure_enum",
        ),
        sa.ForeignKeyConstraint(
            ["seed_id"],
            ["giveaway_seeds.id"],
            name="fk_fairness_proofs_seed_id_giveaway_seeds",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_fairness_proofs"),
        sa.UniqueConstraint("giveaway_id", name="fairness_proofs_giveaway_id_key"),
    )
    op.create_index(
        "ix_fairness_proofs_seed_id", "fairness_proofs", ["seed_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_fairness_proofs_seed_id", table_name="fairness_proofs")
    op.drop_table("fairness_proofs")
    op.drop_table("giveaway_seeds")
