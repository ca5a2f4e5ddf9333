from sqlalchemy import create_engine, event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from coursehub.config import get_settings

settings = get_settings()


def enable_sqlite_write_locks(engine):
    """
    Make every SQLite transaction take the write lock when it begins.

    SQLite ignores ``SELECT ... FOR UPDATE``; ``BEGIN IMMEDIATE`` gives the
    same read-modify-write serialisation, one writer at a time.
    """
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, connect_args=connect_args)
if engine.dialect.name == "sqlite":
    enable_sqlite_write_locks(engine)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

_INSERT_BY_DIALECT = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _dialect_insert(db: Session, model):
    dialect = db.get_bind().dialect.name
    try:
        return _INSERT_BY_DIALECT[dialect](model)
    except KeyError:
        raise RuntimeError(f"Atomic upsert is not supported on the {dialect!r} dialect")


def upsert(db: Session, model, key: dict, values: dict = None, update: dict = None):
    """
    Insert-or-update a row in a single statement, keyed by a unique constraint.

    ``key`` holds the columns of the unique constraint, ``values`` the other
    columns of a new row and ``update`` what to overwrite when the row
    already exists (plain values or SQL expressions over the existing row).
    Returns the ORM instance, freshly loaded.
    """
    stmt = _dialect_insert(db, model).values(**key, **(values or {}))
    if update:
        stmt = stmt.on_conflict_do_update(index_elements=list(key), set_=update)
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=list(key))
    db.execute(stmt)

    return db.query(model).filter_by(**key).populate_existing().one()


def insert_ignore(db: Session, model, values: dict) -> None:
    """Insert a row unless it collides with a unique constraint."""
    db.execute(_dialect_insert(db, model).values(**values).on_conflict_do_nothing())
