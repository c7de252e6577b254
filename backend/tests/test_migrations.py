"""
The Alembic migration chain must build the same tables the models declare.
"""

from pathlib import Path

from flask_migrate import upgrade
from sqlalchemy import inspect

from pharmapos import create_app
from pharmapos.extensions import db


MIGRATIONS_DIR = str(Path(__file__).resolve().parents[1] / "migrations")


def test_upgrade_creates_model_tables(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'migrated.sqlite3'}",
    })

    with app.app_context():
        upgrade(directory=MIGRATIONS_DIR)
        migrated = set(inspect(db.engine).get_table_names())
        declared = set(db.metadata.tables)
        db.engine.dispose()

    assert declared <= migrated
