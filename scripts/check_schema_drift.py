from __future__ import annotations

import argparse
import sys
from typing import Optional

from alembic.autogenerate import api as ag_api
from alembic.runtime.migration import MigrationContext

from fairdraw.db.engine import make_engine
from fairdraw.models import Base


def _describe(ops, depth: int = 0) -> list[str]:
    lines: list[str] = []
    for op in ops:
        lines.append(f"{'  ' * depth}- {op}")
        lines.extend(_describe(getattr(op, "ops", None) or [], depth + 1))
    return lines


def check(database_url: Optional[str] = None) -> int:
    """Compare the ORM models against the live schema.

    Returns 0 when they agree, 1 on drift and 2 when the comparison itself
    could not run.
    """
    engine = make_engine(database_url)
    url_display = engine.url.render_as_string(hide_password=True)
    try:
        with engine.connect() as connection:
            context = MigrationContext.configure(
                connection=connection,
                opts={
                    "compare_type": True,
                    "compare_server_default": True,
                    "render_as_batch": connection.dialect.name == "sqlite",
                },
            )
            upgrade_ops = ag_api.produce_migrations(context, Base.metadata).upgrade_ops
    except Exception as exc:
        print(f"Schema drift check: ERROR for {url_display}: {exc}", file=sys.stderr)
        return 2

    if upgrade_ops is None:
        print(f"Schema drift check: ERROR for {url_display}: missing upgrade ops.")
        return 2
    if upgrade_ops.is_empty():
        print(f"Schema drift check: OK for {url_display}.")
        return 0
    print(f"Schema drift check: FAILED for {url_display}:")
    print("\n".join(_describe(upgrade_ops.ops or [])))
    return 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Detect drift between models and database.")
    parser.add_argument("--url", default=None, help="database URL (defaults to DB_URL)")
    return check(parser.parse_args().url)


if __name__ == "__main__":
    raise SystemExit(main())
