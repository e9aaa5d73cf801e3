"""Persistence operations for tasks, plus the ownership check every
per-task endpoint goes through."""

from typing import Optional

from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tasktracker.errors import HttpError
from tasktracker.models.task import Task
from tasktracker.models.user import User


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def list_tasks(db: Session, author_id: str, search: Optional[str] = None) -> list[Task]:
    query = db.query(Task).filter(Task.author_id == author_id)
    if search and search.strip():
        query = query.filter(Task.text.ilike(_like_pattern(search.strip()), escape="\\"))
    return query.order_by(Task.created_at.desc(), Task.id.desc()).all()


def get_task(db: Session, task_id: int) -> Optional[Task]:
    return db.get(Task, task_id)


def authorize_task(db: Session, task_id: int, user_id: str) -> Task:
    """Return the task if ``user_id`` authored it.

    Raises a not-found error when the id does not exist and a forbidden
    error when it belongs to someone else.
    """
    task = get_task(db, task_id)
    if task is None:
        raise HttpError.not_found("Task not found.")
    if task.author_id != user_id:
        raise HttpError.forbidden("Access denied.")
    return task


_INSERT_BY_DIALECT = {"sqlite": sqlite_insert, "postgresql": postgresql_insert}


def ensure_user(db: Session, user_id: str, email: Optional[str] = None) -> None:
    """Insert the user row unless it already exists; existing rows are left as they are."""
    values = {"id": user_id, "email": email or f"user-{user_id}@example.com"}
    insert = _INSERT_BY_DIALECT.get(db.get_bind().dialect.name)
    if insert is not None:
        db.execute(insert(User).values(**values).on_conflict_do_nothing(index_elements=[User.id]))
        return
    if db.get(User, user_id) is not None:
        return
    try:
        with db.begin_nested():
            db.add(User(**values))
    except IntegrityError:
        # a concurrent request created the same user first
        pass


def create_task(db: Session, author_id: str, text: str, email: Optional[str] = None) -> Task:
    ensure_user(db, author_id, email)
    task = Task(text=text, author_id=author_id)
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


def update_task(db: Session, task: Task, changes: dict) -> Task:
    for field in ("text", "completed"):
        if field in changes:
            setattr(task, field, changes[field])
    db.commit()
    db.refresh(task)
    return task


def delete_task(db: Session, task: Task) -> None:
    db.delete(task)
    db.commit()
