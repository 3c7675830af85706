from __future__ import annotations

import argparse
import os
import sys
from datetime import date
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.append(str(REPO_ROOT))


def _load_database_url(cli_url: str | None) -> str:
    if cli_url:
        return cli_url
    env_url = os.getenv("DATABASE_URL") or os.getenv("SQLALCHEMY_DATABASE_URL")
    if env_url:
        return env_url
    raise RuntimeError("Pass --url or set DATABASE_URL.")


def _alembic_config(database_url: str) -> Config:
    config = Config(str(REPO_ROOT / "alembic.ini"))
    config.set_main_option("sqlalchemy.url", database_url)
    return config


def _reset_postgres_db(database_url: str) -> None:
    url = make_url(database_url)
    target_db = url.database
    if not target_db:
        raise RuntimeError("Postgres URL is missing a database name.")

    engine = create_engine(url.set(database="postgres"), future=True, isolation_level="AUTOCOMMIT")
    try:
        with engine.connect() as conn:
            conn.execute(
                text(
                    "SELECT pg_terminate_backend(pid) FROM pg_stat_activity "
                    "WHERE datname = :db_name AND pid <> pg_backend_pid()"
                ),
                {"db_name": target_db},
            )
            conn.execute(text(f'DROP DATABASE IF EXISTS "{target_db}"'))
            conn.execute(text(f'CREATE DATABASE "{target_db}"'))
    finally:
        engine.dispose()


def _reset_sqlite_db(database_url: str) -> None:
    url = make_url(database_url)
    if url.database and url.database != ":memory:":
        Path(url.database).unlink(missing_ok=True)


def seed_demo_user(database_url: str, email: str) -> dict:
    """Create a demo user with a year of imported transactions, a budget and a goal."""
    os.environ.setdefault("DATABASE_URL", database_url)
    from backend.app.services import budget_service, goal_service, transaction_service, user_service
    from tools.generate_demo_csv import generate, render_csv

    engine = create_engine(database_url, future=True)
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    session = Session()
    try:
        user = user_service.create_user(session, email, name="Demo User")
        budget_service.create_budget(session, user.id, {"name": "Dining", "budget_amount": "250"})
        budget_service.create_budget(session, user.id, {"name": "Groceries", "budget_amount": "500"})
        rows = generate(start=date(2025, 1, 1), end=date(2025, 3, 31), seed=42)
        imported = transaction_service.import_csv(session, user.id, render_csv(rows))
        goal_service.create_goal(
            session,
            user.id,
            {"name": "Emergency Fund", "target_amount": "5000", "current_amount": "750"},
        )
        return {"user_id": user.id, **imported.as_dict()}
    finally:
        session.close()
        engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Reset the development database.")
    parser.add_argument("--url", help="Override the database URL.")
    parser.add_argument("--yes", action="store_true", help="Confirm destructive reset.")
    parser.add_argument("--seed", action="store_true", help="Seed a demo user with sample data.")
    parser.add_argument("--email", default="demo@example.com", help="Email for the seeded demo user.")
    args = parser.parse_args()

    if not args.yes:
        print("Refusing to reset database without --yes.")
        return 1

    database_url = _load_database_url(args.url)
    backend = make_url(database_url).get_backend_name()

    if backend.startswith("postgres"):
        _reset_postgres_db(database_url)
    elif backend.startswith("sqlite"):
        _reset_sqlite_db(database_url)
    else:
        print(f"Unsupported database backend: {backend}")
        return 1

    command.upgrade(_alembic_config(database_url), "head")

    if args.seed:
        summary = seed_demo_user(database_url, args.email)
        print(f"Seeded {args.email}: {summary['success']} transactions, {len(summary['errors'])} errors")

    print("DONE")
    print(f"Database URL: {make_url(database_url).render_as_string(hide_password=True)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
