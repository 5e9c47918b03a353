from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from core.settings import settings


def configure_sqlite(engine: Engine) -> Engine:
    """
    pysqlite defers BEGIN until the first write, so a count-then-insert would
    read outside the transaction. Take the write lock up front instead, which
    serializes writers the way row locks do on PostgreSQL.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        return configure_sqlite(
            create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
        )
    return create_engine(url, pool_pre_ping=True)


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)
