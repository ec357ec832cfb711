from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AppError
from app.models.task import Task
from app.schemas.tasks import TaskCreate, TaskUpdate


REQUIRED_FIELDS = {"title", "status", "priority", "progress"}


class TaskService:
    def __init__(self, db: AsyncSession, user_id: str):
        self.db = db
        self.user_id = user_id

    async def list_tasks(self, status: Optional[str] = None) -> List[Task]:
        query = select(Task).where(Task.user_id == self.user_id)
        if status and status != "all":
            query = query.where(Task.status == status)
        result = await self.db.execute(query.order_by(Task.created_at.desc(), Task.id.desc()))
        return list(result.scalars().all())

    async def get_task(self, task_id: int) -> Task:
        result = await self.db.execute(
            select(Task).where(Task.id == task_id, Task.user_id == self.user_id)
        )
        task = result.scalars().first()
        if not task:
            raise AppError(404, "TASK_NOT_FOUND", "Task not found")
        return task

    async def create_task(self, data: TaskCreate) -> Task:
        task = Task(user_id=self.user_id, progress=0, **data.model_dump())
        self.db.add(task)
        await self.db.commit()
        await self.db.refresh(task)
        return task

    async def update_task(self, task_id: int, data: TaskUpdate) -> Task:
        task = await self.get_task(task_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field in REQUIRED_FIELDS:
                continue
            setattr(task, field, value)
        await self.db.commit()
        await self.db.refresh(task)
        return task

    async def delete_task(self, task_id: int):
        result = await self.db.execute(
            delete(Task).where(Task.id == task_id, Task.user_id == self.user_id)
        )
        await self.db.commit()
        if not result.rowcount:
            raise AppError(404, "TASK_NOT_FOUND", "Task not found")
