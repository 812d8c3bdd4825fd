from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from inventory_api.config import settings


# Execution option read by the SQLite "begin" hook, e.g. "IMMEDIATE"
SQLITE_BEGIN_OPTION = "sqlite_begin"


class Base(DeclarativeBase):
    pass


def build_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = settings.SQLITE_BUSY_TIMEOUT

    engine = create_engine(url, connect_args=connect_args)

    if url.startswith("sqlite"):
        # pysqlite only emits BEGIN before DML, so SELECTs and SAVEPOINTs run
        # outside the transaction. Take over BEGIN so a session is one real
        # transaction; WAL keeps idle readers from blocking writers. Write units
        # ask for BEGIN IMMEDIATE and queue on the busy timeout for the lock.
        @event.listens_for(engine, "connect")
        def _sqlite_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _sqlite_begin(conn):
            mode = conn.get_execution_options().get(SQLITE_BEGIN_OPTION)
            conn.exec_driver_sql(f"BEGIN {mode}" if mode else "BEGIN")

    return engine


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None):
    # Import all models so Base.metadata knows about them
    import inventory_api.models.category  # noqa: F401
    import inventory_api.models.inventory_log  # noqa: F401
    import inventory_api.models.order  # noqa: F401
    import inventory_api.models.product  # noqa: F401
    import inventory_api.models.supplier  # noqa: F401
    import inventory_api.models.user  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
