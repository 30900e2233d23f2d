from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine
from core.config import config


def enable_sqlite_foreign_keys(engine: Engine):
    # SQLite ignores REFERENCES clauses unless asked per connection
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


is_sqlite = config.DATABASE_URL.startswith("sqlite")
connect_args = {"check_same_thread": False} if is_sqlite else {}
engine = create_engine(config.DATABASE_URL, connect_args=connect_args)
if is_sqlite:
    enable_sqlite_foreign_keys(engine)


def create_db_and_tables():
    # Import models so their tables are registered on the metadata
    import models.user  # noqa: F401
    import models.complaints  # noqa: F401
    import models.audit_log  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session
