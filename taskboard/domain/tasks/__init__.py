"""Task domain. Public API: aggregator, service, models, recurrence."""

from taskboard.domain.tasks.aggregator import TaskAggregator, merge_views, sort_views
from taskboard.domain.tasks.display_names import DisplayNameCache
from taskboard.domain.tasks.models import NewTaskRequest, Recurrence, Subtask, TaskRecord, TaskView
from taskboard.domain.tasks.recurrence import compute_next_due
from taskboard.domain.tasks.service import TaskService

__all__ = [
    "TaskAggregator",
    "merge_views",
    "sort_views",
    "DisplayNameCache",
    "NewTaskRequest",
    "Recurrence",
    "Subtask",
    "TaskRecord",
    "TaskView",
    "compute_next_due",
    "TaskService",
]
