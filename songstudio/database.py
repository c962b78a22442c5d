# songstudio/database.py
"""
Base de datos de SongStudio.
  - db: instancia global de Flask-SQLAlchemy (metadata con nombres fijos
    para que Flask-Migrate genere constraints estables, incluido el
    credits_non_negative de profiles)
  - init_db(app): registra db en la app; en SQLite activa foreign_keys
"""

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import MetaData, event

metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

db = SQLAlchemy(metadata=metadata)


def _sqlite_pragmas(dbapi_conn, _record):
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()


def init_db(app):
    db.init_app(app)

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite"):
        with app.app_context():
            event.listen(db.engine, "connect", _sqlite_pragmas)
