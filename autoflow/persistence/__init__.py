"""Persistence layer for autoflow state.

Only in-memory backends ship with the package. A durable store implements the
protocols in :mod:`autoflow.persistence.repository` and is handed to the
managers at construction time.
"""

from __future__ import annotations

from .inmemory import (
    InMemoryTaskRepository,
    InMemoryTriggerRepository,
    InMemoryWorkflowRepository,
)
from .repository import TaskRepository, TriggerRepository, WorkflowRepository

__all__ = [
    "WorkflowRepository",
    "TaskRepository",
    "TriggerRepository",
    "InMemoryWorkflowRepository",
    "InMemoryTaskRepository",
    "InMemoryTriggerRepository",
]
