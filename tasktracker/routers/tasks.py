from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from tasktracker.crud import tasks as crud
from tasktracker.database import get_db
from tasktracker.deps import AuthContext, get_auth_context
from tasktracker.errors import HttpError
from tasktracker.schemas.task import TaskCreate, TaskOut, TaskUpdate

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


# ids are 64-bit signed integers in every supported database
MAX_TASK_ID = 2**63 - 1


def _parse_task_id(raw: str) -> int:
    if not raw.isdecimal():
        raise HttpError.validation("Invalid task ID.")
    task_id = int(raw)
    if not 1 <= task_id <= MAX_TASK_ID:
        raise HttpError.validation("Invalid task ID.")
    return task_id


@router.get("", response_model=list[TaskOut])
def list_tasks(
    auth: AuthContext = Depends(get_auth_context),
    search: Optional[str] = Query(None, description="Case-insensitive match on task text"),
    db: Session = Depends(get_db),
):
    return crud.list_tasks(db, auth.user_id, search)


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def create_task(
    task: TaskCreate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return crud.create_task(db, auth.user_id, task.text, email=auth.email)


@router.get("/{task_id}", response_model=TaskOut)
def get_task(task_id: str, auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return crud.authorize_task(db, _parse_task_id(task_id), auth.user_id)


@router.patch("/{task_id}", response_model=TaskOut)
def update_task(
    task_id: str,
    changes: TaskUpdate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    task = crud.authorize_task(db, _parse_task_id(task_id), auth.user_id)
    return crud.update_task(db, task, changes.model_dump(exclude_unset=True))


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(task_id: str, auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    task = crud.authorize_task(db, _parse_task_id(task_id), auth.user_id)
    crud.delete_task(db, task)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
