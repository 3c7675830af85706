from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect, text

from backend.app.db import Base


ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"

FINANCE_TABLES = {
    "users",
    "transactions",
    "budget_categories",
    "savings_goals",
    "score_records",
    "score_history",
    "nudges",
    "linked_accounts",
}


def _load_script() -> ScriptDirectory:
    config = Config(str(ALEMBIC_INI))
    return ScriptDirectory.from_config(config)


def test_alembic_single_head():
    script = _load_script()
    heads = script.get_heads()
    assert len(heads) == 1


def test_alembic_revision_graph_has_no_gaps():
    script = _load_script()
    head = script.get_heads()[0]
    assert script.get_revision(head) is not None
    assert [rev.revision for rev in script.walk_revisions()][-1] is not None


def test_upgrade_head_builds_the_model_tables(tmp_path):
    database_url = f"sqlite:///{tmp_path / 'alembic.db'}"
    config = Config(str(ALEMBIC_INI))
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")

    engine = create_engine(database_url, future=True)
    with engine.connect() as conn:
        revision = conn.execute(text("SELECT version_num FROM alembic_version")).scalar()
    tables = set(inspect(engine).get_table_names())
    engine.dispose()

    assert revision == _load_script().get_current_head()
    assert FINANCE_TABLES <= tables
    assert set(Base.metadata.tables) <= tables


def test_downgrade_base_drops_everything(tmp_path):
    database_url = f"sqlite:///{tmp_path / 'roundtrip.db'}"
    config = Config(str(ALEMBIC_INI))
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")
    command.downgrade(config, "base")

    engine = create_engine(database_url, future=True)
    tables = set(inspect(engine).get_table_names())
    engine.dispose()
    assert not (FINANCE_TABLES & tables)


def test_sqlite_bootstrap_creates_tables(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'bootstrap.db'}", future=True)
    Base.metadata.create_all(bind=engine)
    tables = set(inspect(engine).get_table_names())
    engine.dispose()
    assert FINANCE_TABLES <= tables
