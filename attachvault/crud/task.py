"""
Task CRUD operations.
AttachVault only asks whether a task exists; the task domain owns the rest.
"""
from __future__ import annotations

from attachvault.crud.base import CRUDBase
from attachvault.models.task import Task


class CRUDTask(CRUDBase[Task]):
    pass


crud_task = CRUDTask(Task)
