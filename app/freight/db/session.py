import time
from contextvars import ContextVar

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.freight.core.config import settings

# Accumulated statement time for the current request; None outside a request.
# A one-item list so threadpool and child-task copies of the context share it.
_db_time_ms: ContextVar[list[float] | None] = ContextVar("db_time_ms", default=None)


def start_db_timer() -> object:
    return _db_time_ms.set([0.0])


def stop_db_timer(token: object) -> None:
    _db_time_ms.reset(token)


def get_db_time_ms() -> float | None:
    holder = _db_time_ms.get()
    return holder[0] if holder is not None else None


connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(settings.DATABASE_URL, echo=False, future=True, connect_args=connect_args)


@event.listens_for(engine, "before_cursor_execute")
def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    if _db_time_ms.get() is None:
        return
    conn.info["query_start_time"] = time.perf_counter()


@event.listens_for(engine, "after_cursor_execute")
def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    holder = _db_time_ms.get()
    start = conn.info.pop("query_start_time", None)
    if holder is None or start is None:
        return
    holder[0] += (time.perf_counter() - start) * 1000


SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
