from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.responses import envelope
from app.models.user import User
from app.routers.deps import get_current_user
from app.schemas.tasks import TaskRecord, TaskCreate, TaskUpdate
from app.services.task_service import TaskService

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _record(task) -> dict:
    return TaskRecord.model_validate(task).model_dump(mode="json")


@router.get("")
async def list_tasks(
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    tasks = await TaskService(db, current_user.id).list_tasks(status)
    return envelope([_record(t) for t in tasks], count=len(tasks))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(data: TaskCreate, db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)):
    task = await TaskService(db, current_user.id).create_task(data)
    return envelope(_record(task))


@router.put("/{task_id}")
async def update_task(
    task_id: int,
    data: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    task = await TaskService(db, current_user.id).update_task(task_id, data)
    return envelope(_record(task))


@router.delete("/{task_id}")
async def delete_task(task_id: int, db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)):
    await TaskService(db, current_user.id).delete_task(task_id)
    return envelope({"message": "Task deleted successfully"})
