from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker


Base = declarative_base()

SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False)

_engine: Optional[Engine] = None

_POST_COMMIT_KEY = "post_commit_hooks"
_POST_ROLLBACK_KEY = "post_rollback_hooks"


def _setup_sqlite_listeners(engine: Engine) -> None:
    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT and lets two
    # writers race into "database is locked". Emit BEGIN IMMEDIATE ourselves
    # so concurrent writers serialize and unique violations surface cleanly.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _record):
        dbapi_connection.isolation_level = None
        cur = dbapi_connection.cursor()
        try:
            cur.execute("PRAGMA busy_timeout = 30000")
        finally:
            cur.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def init_engine(database_url: str) -> Engine:
    global _engine

    url = str(database_url or "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL is required")

    if _engine is not None:
        _engine.dispose()

    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
        _setup_sqlite_listeners(engine)
    else:
        engine = create_engine(url, pool_pre_ping=True, pool_size=10, max_overflow=20, pool_recycle=1800)

    SessionLocal.configure(bind=engine)
    _engine = engine
    logging.getLogger("db").info("engine_initialized dialect=%s", engine.dialect.name)
    return engine


def dispose_engine() -> None:
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None


def ping_db() -> bool:
    if _engine is None:
        return False
    try:
        with _engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logging.getLogger("db").warning("db_ping_failed", exc_info=True)
        return False


def get_pool_stats() -> dict[str, Any]:
    if _engine is None:
        return {"initialized": False}
    pool = _engine.pool
    stats: dict[str, Any] = {"initialized": True, "dialect": _engine.dialect.name, "pool": pool.__class__.__name__}
    for name in ("size", "checkedin", "checkedout", "overflow"):
        fn = getattr(pool, name, None)
        if callable(fn):
            stats[name] = fn()
    return stats


def add_post_commit_hook(db: Session, fn: Callable[[], Any]) -> None:
    """Run `fn` once the session's outer transaction commits; dropped on rollback."""
    db.info.setdefault(_POST_COMMIT_KEY, []).append(fn)


def add_post_rollback_hook(db: Session, fn: Callable[[], Any]) -> None:
    """Run `fn` if the session's outer transaction ends without committing."""
    db.info.setdefault(_POST_ROLLBACK_KEY, []).append(fn)


def _run_hooks(hooks: list, kind: str) -> None:
    for fn in hooks:
        try:
            fn()
        except Exception:
            logging.getLogger("db").exception("%s_hook_failed hook=%s", kind, getattr(fn, "__name__", repr(fn)))


@event.listens_for(SessionLocal, "after_commit")
def _run_post_commit_hooks(session: Session) -> None:
    # Also fires on SAVEPOINT release; only the outer commit runs hooks.
    if session.in_nested_transaction():
        return
    session.info.pop(_POST_ROLLBACK_KEY, None)
    _run_hooks(session.info.pop(_POST_COMMIT_KEY, []), "post_commit")


@event.listens_for(SessionLocal, "after_transaction_end")
def _end_of_transaction_hooks(session: Session, transaction) -> None:
    # Savepoint ends keep the hooks; a root end without commit discards the
    # commit hooks and runs the rollback ones.
    if transaction.parent is None:
        session.info.pop(_POST_COMMIT_KEY, None)
        _run_hooks(session.info.pop(_POST_ROLLBACK_KEY, []), "post_rollback")
