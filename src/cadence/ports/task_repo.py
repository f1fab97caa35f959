"""Task repository interface."""

from typing import Protocol

from cadence.core.tasks import Task


class TaskRepository(Protocol):
    """Interface for reading and writing tasks in any backend."""

    def list_active(self) -> list[Task]:
        """Fetch all active tasks."""
        ...

    def list_completed(self) -> list[Task]:
        """Fetch completed tasks."""
        ...

    def update(self, task_id: str, fields: dict) -> Task:
        """Apply a partial update and return the task as stored."""
        ...

    def create(self, draft: dict) -> Task:
        """Create a task and return it as stored."""
        ...

    def list_projects(self) -> dict[str, str]:
        """Project id to name."""
        ...
