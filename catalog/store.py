"""
catalog/store.py -- SQLAlchemy-backed persistence for tasks and queued solutions.

Uses SQLAlchemy Core (not ORM) so the dataclasses in catalog/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. TaskStore is the repository; the _row_to_*
functions are the mappers. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = TaskStore()                               # SQLite default
    store = TaskStore("postgresql://user:pw@host/db") # PostgreSQL
    task_id = store.create_task(Task(name="fizzbuzz", description="..."))
    store.enqueue_solution(Solution(task_id=task_id, user_id=1, solution=b"print(1)"))
    store.close()
"""

from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, LargeBinary, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from catalog.models import Solution, Task

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'grader_catalog.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_tasks = Table(
    "tasks",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
)

_solutions = Table(
    "solutions",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("task_id", Integer, nullable=False),
    Column("user_id", Integer, nullable=False),
    Column("status", String(30), nullable=False, server_default="new"),
    Column("created_at", String(32), nullable=False),
    Column("solution", LargeBinary, nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TaskStore:
    def __init__(self, db_url: str = _DEFAULT_DB_URL, timeout: float = 1.0) -> None:
        connect_args: dict = {}
        engine_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            connect_args["timeout"] = timeout
        else:
            engine_args["pool_timeout"] = timeout
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(self, task: Task) -> int:
        """Insert a task and return its assigned ID."""
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.insert().values(name=task.name, description=task.description))
            conn.commit()
            return result.inserted_primary_key[0]

    def list_tasks(self) -> list[Task]:
        """Return every task ordered by ID."""
        with self.engine.connect() as conn:
            rows = conn.execute(_tasks.select().order_by(_tasks.c.id)).fetchall()
        return [_row_to_task(r) for r in rows]

    def get_task(self, task_id: int) -> Task | None:
        """Return the task with task_id, or None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_tasks.select().where(_tasks.c.id == task_id)).fetchone()
        return _row_to_task(row) if row is not None else None

    # ------------------------------------------------------------------
    # Solution queue
    # ------------------------------------------------------------------

    def enqueue_solution(self, solution: Solution) -> int:
        """Queue a solution for the grading worker and return its ID."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _solutions.insert().values(
                    task_id=solution.task_id,
                    user_id=solution.user_id,
                    status=solution.status,
                    created_at=_now_iso(),
                    solution=solution.solution,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_solution(self, solution_id: int) -> Solution | None:
        """Return a queued solution by ID, or None. Status reflects the grading worker's progress."""
        with self.engine.connect() as conn:
            row = conn.execute(_solutions.select().where(_solutions.c.id == solution_id)).fetchone()
        return _row_to_solution(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_task(row) -> Task:
    return Task(id=row.id, name=row.name, description=row.description or "")


def _row_to_solution(row) -> Solution:
    return Solution(
        id=row.id,
        task_id=row.task_id,
        user_id=row.user_id,
        status=row.status,
        created_at=row.created_at,
        solution=row.solution,
    )
