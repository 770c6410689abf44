"""
Persistence for tasks.

`TaskStore` owns the `tasks` table: schema bootstrap, the connection pool and
every query. All caller-supplied values go through bound parameters.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import CheckConstraint, case, delete, inspect, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.schema import AddConstraint
from sqlmodel import Session, SQLModel, create_engine, select

from .config import Settings
from .models import Task, TaskCreate, TaskUpdate, utcnow

logger = logging.getLogger(__name__)

# Columns added after the first release; tables created by older versions get
# them on startup.
_MIGRATED_COLUMNS = {
    "status": "VARCHAR(20) NOT NULL DEFAULT 'pending'",
    "priority": "INTEGER NOT NULL DEFAULT 1",
    "due_date": "DATE",
    "updated_at": "TIMESTAMP DEFAULT CURRENT_TIMESTAMP",
}


@dataclass(frozen=True)
class TaskFilter:
    """
    Conjunctive filter for `TaskStore.find_all`.

    Attributes:
        status: Only tasks with this status.
        priority: Only tasks with this priority.
        limit: Maximum number of tasks returned.
    """

    status: str | None = None
    priority: int | None = None
    limit: int | None = None


def missing_check_constraints(engine: Engine) -> list[CheckConstraint]:
    """Named CHECK constraints of the tasks model that the live table lacks."""
    present = {
        constraint["name"] for constraint in inspect(engine).get_check_constraints("tasks")
    }
    return [
        constraint
        for constraint in Task.__table__.constraints
        if isinstance(constraint, CheckConstraint) and constraint.name not in present
    ]


class TaskStore:
    """
    Task persistence on top of a pooled SQLAlchemy engine.

    The engine is injected so tests can run against an isolated database.
    Each operation uses its own session and commits a single unit of work.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_settings(cls, settings: Settings) -> "TaskStore":
        """
        Build a store with a connection pool sized from settings.

        Args:
            settings: Service settings.

        Returns:
            A store whose engine has not connected yet.
        """
        url = settings.database_url
        kwargs: dict = {"echo": False, "pool_pre_ping": True}
        if not str(url).startswith("sqlite"):
            kwargs["pool_size"] = settings.db_pool_size
            if settings.db_ssl:
                kwargs["connect_args"] = {"sslmode": "require"}
        return cls(create_engine(url, **kwargs))

    def session(self) -> Session:
        """Open a session; returned tasks stay readable after commit."""
        return Session(self.engine, expire_on_commit=False)

    def ping(self) -> None:
        """Run a trivial query. Raises SQLAlchemyError if the database is unreachable."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def ensure_schema(self) -> None:
        """
        Create the tasks table if absent and migrate tables from older versions.

        Missing columns are added. Missing CHECK constraints on status and
        priority are added too, except on SQLite, which cannot add constraints
        to an existing table; there only the application validates them.
        """
        SQLModel.metadata.create_all(self.engine, tables=[Task.__table__])

        existing = {column["name"] for column in inspect(self.engine).get_columns("tasks")}
        missing = [name for name in _MIGRATED_COLUMNS if name not in existing]
        if missing:
            with self.engine.begin() as conn:
                for name in missing:
                    conn.execute(text(f"ALTER TABLE tasks ADD COLUMN {name} {_MIGRATED_COLUMNS[name]}"))
            logger.info("Added missing task columns: %s", ", ".join(missing))

        if self.engine.dialect.name != "sqlite":
            constraints = missing_check_constraints(self.engine)
            if constraints:
                with self.engine.begin() as conn:
                    for constraint in constraints:
                        conn.execute(AddConstraint(constraint))
                logger.info(
                    "Added missing task constraints: %s",
                    ", ".join(constraint.name for constraint in constraints),
                )

        logger.info("Task schema ready")

    def close(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()

    def insert(self, data: TaskCreate) -> Task:
        """
        Insert a new task.

        Args:
            data: Validated create body.

        Returns:
            The stored task with id and timestamps.
        """
        now = utcnow()
        task = Task(
            title=data.title,
            description=data.description,
            status=data.status,
            priority=data.priority,
            due_date=data.due_date,
            created_at=now,
            updated_at=now,
        )
        with self.session() as session:
            session.add(task)
            session.commit()
            session.refresh(task)

        logger.info("Created task id=%s", task.id)
        return task

    def find_all(self, task_filter: TaskFilter | None = None) -> list[Task]:
        """
        List tasks by priority ascending, newest first within a priority.

        Args:
            task_filter: Optional status/priority/limit filter.

        Returns:
            Matching tasks.
        """
        task_filter = task_filter or TaskFilter()
        query = select(Task)

        if task_filter.status is not None:
            query = query.where(Task.status == task_filter.status)
        if task_filter.priority is not None:
            query = query.where(Task.priority == task_filter.priority)

        query = query.order_by(Task.priority.asc(), Task.created_at.desc(), Task.id.desc())
        if task_filter.limit is not None:
            query = query.limit(task_filter.limit)

        with self.session() as session:
            return list(session.exec(query).all())

    def find_by_id(self, task_id: int) -> Task | None:
        with self.session() as session:
            return session.get(Task, task_id)

    def update(self, task_id: int, data: TaskUpdate) -> Task | None:
        """
        Update a task with a single UPDATE ... RETURNING statement.

        Title, description and due date are overwritten; status and priority
        are kept when `data` leaves them as None. `updated_at` never moves
        backwards, even if the clock does.

        Args:
            task_id: Task to update.
            data: Validated update body.

        Returns:
            The updated task, or None if no task has this id.
        """
        now = utcnow()
        values = {
            "title": data.title,
            "description": data.description,
            "due_date": data.due_date,
            "updated_at": case((Task.updated_at < now, now), else_=Task.updated_at),
        }
        if data.status is not None:
            values["status"] = data.status
        if data.priority is not None:
            values["priority"] = data.priority

        statement = update(Task).where(Task.id == task_id).values(**values).returning(Task)
        with self.session() as session:
            task = session.exec(statement).scalars().first()
            session.commit()

        if task is not None:
            logger.info("Updated task id=%s", task_id)
        return task

    def delete(self, task_id: int) -> Task | None:
        """
        Delete a task with a single DELETE ... RETURNING statement.

        Of two concurrent deletes of the same row, only one gets the row back.

        Args:
            task_id: Task to delete.

        Returns:
            The task as it was before deletion, or None if it did not exist.
        """
        statement = delete(Task).where(Task.id == task_id).returning(Task)
        with self.session() as session:
            task = session.exec(statement).scalars().first()
            session.commit()

        if task is not None:
            logger.info("Deleted task id=%s", task_id)
        return task
