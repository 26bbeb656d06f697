from pathlib import Path

from alembic import command
from alembic.config import Config
import hoa_admin.config as app_config
from hoa_admin.models.models import Due, LedgerEntry
import sqlalchemy as sa

ROOT = Path(__file__).resolve().parents[1]


def test_initial_migration_creates_dues_schema(tmp_path, monkeypatch):
    db_path = tmp_path / "migrations.db"
    db_url = f"sqlite:///{db_path}"
    monkeypatch.setattr(app_config.settings, "database_url", db_url, raising=False)

    config = Config(str(ROOT / "hoa_admin" / "alembic.ini"))
    config.set_main_option("script_location", str(ROOT / "hoa_admin" / "migrations"))
    command.upgrade(config, "head")

    engine = sa.create_engine(db_url)
    try:
        inspector = sa.inspect(engine)
        assert {"households", "residents", "dues", "payments", "ledger_entries", "audit_logs"} <= set(
            inspector.get_table_names()
        )
        constraints = {item["name"] for item in inspector.get_unique_constraints("dues")}
        assert "uq_due_household_type_period" in constraints

        with sa.orm.Session(engine) as session:
            session.query(Due).all()
            session.query(LedgerEntry).all()
    finally:
        engine.dispose()
