from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from taskboard.domain.common.errors import PermissionDeniedError, StoreError, ValidationError
from taskboard.domain.tasks import paths
from taskboard.domain.tasks.models import NewTaskRequest, Recurrence, Subtask, TaskRecord
from taskboard.domain.tasks.ports import Clock, IdGenerator, RecordStore
from taskboard.domain.tasks.recurrence import next_due_for
from taskboard.domain.tasks.rules import (
    require_actor,
    require_ids,
    require_owner,
    validate_description,
    validate_recurrence,
    validate_title,
)

logger = logging.getLogger(__name__)


class TaskService:
    """
    Task mutations. No aiogram. No sqlite.

    Input problems raise (ValidationError, NotAuthenticatedError, PermissionDeniedError)
    before anything touches the store. Store failures are logged and reported as
    False / None. Nothing is applied locally: the next subscription delivery shows
    the result.
    """

    def __init__(self, store: RecordStore, clock: Clock, ids: IdGenerator) -> None:
        self._store = store
        self._clock = clock
        self._ids = ids

    def _today(self) -> date:
        return self._clock.now().date()

    async def _load(self, owner_id: str, task_id: str) -> Optional[Any]:
        raw = await self._store.read(paths.task(owner_id, task_id))
        return raw if isinstance(raw, dict) else None

    # ---------- tasks ----------

    async def create_task(self, actor_id: Optional[str], req: NewTaskRequest) -> Optional[str]:
        actor = require_actor(actor_id)
        require_owner(actor, req.owner_id)
        title = validate_title(req.title)
        description = validate_description(req.description)
        validate_recurrence(req.recurrence.type, req.recurrence.interval)

        task_id = self._ids.new_id()
        record = TaskRecord(
            task_id=task_id,
            title=title,
            description=description,
            completed=False,
            target_date=req.target_date,
            recurrence=req.recurrence,
            next_due=next_due_for(req.recurrence, req.target_date, self._today()),
            created_at=self._clock.now(),
        )
        try:
            await self._store.write(paths.task(actor, task_id), record.to_value())
        except StoreError:
            logger.error("Failed to create task for %s", actor, exc_info=True)
            return None
        logger.info("Task created: %s/%s", actor, task_id)
        return task_id

    async def update_task(
        self,
        actor_id: Optional[str],
        owner_id: str,
        task_id: str,
        title: str,
        description: str = "",
    ) -> bool:
        """Owner edits title and description. Other fields are untouched."""
        actor = require_actor(actor_id)
        require_ids(owner_id, task_id)
        require_owner(actor, owner_id)
        cleaned_title = validate_title(title)
        cleaned_description = validate_description(description)
        try:
            if await self._load(owner_id, task_id) is None:
                logger.warning("Edit on missing task %s/%s", owner_id, task_id)
                return False
            await self._store.merge(
                paths.task(owner_id, task_id),
                {"title": cleaned_title, "description": cleaned_description},
            )
        except StoreError:
            logger.error("Failed to edit task %s/%s", owner_id, task_id, exc_info=True)
            return False
        return True

    async def toggle_task(self, actor_id: Optional[str], owner_id: str, task_id: str, completed: bool) -> bool:
        actor = require_actor(actor_id)
        require_ids(owner_id, task_id)
        try:
            raw = await self._load(owner_id, task_id)
            if raw is None:
                logger.warning("Toggle on missing task %s/%s", owner_id, task_id)
                return False
            self._require_access(actor, owner_id, raw)
            await self._store.merge(paths.task(owner_id, task_id), {"completed": bool(completed)})
        except StoreError:
            logger.error("Failed to toggle task %s/%s", owner_id, task_id, exc_info=True)
            return False
        return True

    async def delete_task(self, actor_id: Optional[str], owner_id: str, task_id: str) -> bool:
        actor = require_actor(actor_id)
        require_ids(owner_id, task_id)
        require_owner(actor, owner_id)
        try:
            raw = await self._load(owner_id, task_id)
            await self._store.delete(paths.task(owner_id, task_id))
        except StoreError:
            logger.error("Failed to delete task %s/%s", owner_id, task_id, exc_info=True)
            return False

        # mirrors left behind here get pruned by the collaborator's next reconciliation
        collaborators = TaskRecord.from_value(task_id, raw).collaborators if raw else frozenset()
        for cid in collaborators:
            try:
                await self._store.delete(paths.collaboration(cid, owner_id, task_id))
            except StoreError:
                logger.error("Failed to drop collaboration mirror for %s on %s/%s", cid, owner_id, task_id, exc_info=True)
        logger.info("Task deleted: %s/%s", owner_id, task_id)
        return True

    async def set_target_date(
        self,
        actor_id: Optional[str],
        owner_id: str,
        task_id: str,
        target_date: Optional[date],
    ) -> bool:
        actor = require_actor(actor_id)
        require_ids(owner_id, task_id)
        require_owner(actor, owner_id)
        try:
            raw = await self._load(owner_id, task_id)
            if raw is None:
                logger.warning("Target date on missing task %s/%s", owner_id, task_id)
                return False
            record = TaskRecord.from_value(task_id, raw)
            next_due = next_due_for(record.recurrence, target_date, self._today())
            await self._store.merge(
                paths.task(owner_id, task_id),
                {
                    "targetDate": target_date.isoformat() if target_date else None,
                    "nextDue": next_due.isoformat() if next_due else None,
                },
            )
        except StoreError:
            logger.error("Failed to set target date on %s/%s", owner_id, task_id, exc_info=True)
            return False
        return True

    async def set_recurrence(
        self,
        actor_id: Optional[str],
        owner_id: str,
        task_id: str,
        recurrence_type: str,
        interval: int = 1,
    ) -> bool:
        actor = require_actor(actor_id)
        require_ids(owner_id, task_id)
        require_owner(actor, owner_id)
        validate_recurrence(recurrence_type, interval)
        recurrence = Recurrence(type=recurrence_type, interval=interval)
        try:
            raw = await self._load(owner_id, task_id)
            if raw is None:
                logger.warning("Recurrence on missing task %s/%s", owner_id, task_id)
                return False
            record = TaskRecord.from_value(task_id, raw)
            next_due = next_due_for(recurrence, record.target_date, self._today())
            await self._store.merge(
                paths.task(owner_id, task_id),
                {
                    "recurrence": recurrence.to_value(),
                    "nextDue": next_due.isoformat() if next_due else None,
                },
            )
        except StoreError:
            logger.error("Failed to set recurrence on %s/%s", owner_id, task_id, exc_info=True)
            return False
        return True

    # ---------- subtasks ----------

    async def add_subtask(self, actor_id: Optional[str], owner_id: str, task_id: str, title: str) -> Optional[str]:
        actor = require_actor(actor_id)
        require_ids(owner_id, task_id)
        require_owner(actor, owner_id)
        cleaned = validate_title(title, what="Subtask title")

        subtask = Subtask(
            subtask_id=self._ids.new_id(),
            title=cleaned,
            completed=False,
            created_at=self._clock.now(),
        )
        try:
            if await self._load(owner_id, task_id) is None:
                logger.warning("Subtask on missing task %s/%s", owner_id, task_id)
                return None
            await self._store.write(paths.subtask(owner_id, task_id, subtask.subtask_id), subtask.to_value())
        except StoreError:
            logger.error("Failed to add subtask on %s/%s", owner_id, task_id, exc_info=True)
            return None
        return subtask.subtask_id

    async def toggle_subtask(
        self,
        actor_id: Optional[str],
        owner_id: str,
        task_id: str,
        subtask_id: str,
        completed: bool,
    ) -> bool:
        """Owner and collaborators may tick subtasks. Only `completed` of that subtask changes."""
        actor = require_actor(actor_id)
        require_ids(owner_id, task_id, subtask_id)
        try:
            raw = await self._load(owner_id, task_id)
            if raw is None or subtask_id not in (raw.get("subtasks") or {}):
                logger.warning("Toggle on missing subtask %s/%s/%s", owner_id, task_id, subtask_id)
                return False
            self._require_access(actor, owner_id, raw)
            subtask_path = paths.subtask(owner_id, task_id, subtask_id)
            await self._store.merge(subtask_path, {"completed": bool(completed)})
            # deleted between the read and the merge: drop the title-less leftover
            if not await self._store.read(f"{subtask_path}/title"):
                logger.warning("Subtask %s on %s/%s vanished during toggle", subtask_id, owner_id, task_id)
                await self._store.delete(subtask_path)
                return False
        except StoreError:
            logger.error("Failed to toggle subtask %s on %s/%s", subtask_id, owner_id, task_id, exc_info=True)
            return False
        return True

    async def delete_subtask(self, actor_id: Optional[str], owner_id: str, task_id: str, subtask_id: str) -> bool:
        actor = require_actor(actor_id)
        require_ids(owner_id, task_id, subtask_id)
        require_owner(actor, owner_id)
        try:
            await self._store.delete(paths.subtask(owner_id, task_id, subtask_id))
        except StoreError:
            logger.error("Failed to delete subtask %s on %s/%s", subtask_id, owner_id, task_id, exc_info=True)
            return False
        return True

    # ---------- collaborators ----------

    async def add_collaborator(
        self,
        actor_id: Optional[str],
        owner_id: str,
        task_id: str,
        collaborator_id: str,
    ) -> bool:
        """Writes both sides: the task's collaborators map and the collaborator's userTasks mirror."""
        actor = require_actor(actor_id)
        require_ids(owner_id, task_id, collaborator_id)
        require_owner(actor, owner_id)
        if collaborator_id == owner_id:
            raise ValidationError("The owner is already on this task.")
        access_path = paths.task_collaborator(owner_id, task_id, collaborator_id)
        try:
            if await self._load(owner_id, task_id) is None:
                logger.warning("Collaborator on missing task %s/%s", owner_id, task_id)
                return False
            await self._store.write(access_path, True)
        except StoreError:
            logger.error("Failed to add collaborator %s on %s/%s", collaborator_id, owner_id, task_id, exc_info=True)
            return False

        try:
            await self._store.write(paths.collaboration(collaborator_id, owner_id, task_id), True)
        except StoreError:
            logger.error("Failed to mirror %s/%s for %s, revoking access", owner_id, task_id, collaborator_id, exc_info=True)
            try:
                await self._store.delete(access_path)
            except StoreError:
                logger.error("Failed to revoke %s on %s/%s", collaborator_id, owner_id, task_id, exc_info=True)
            return False
        logger.info("Collaborator %s added to %s/%s", collaborator_id, owner_id, task_id)
        return True

    async def remove_collaborator(
        self,
        actor_id: Optional[str],
        owner_id: str,
        task_id: str,
        collaborator_id: str,
    ) -> bool:
        actor = require_actor(actor_id)
        require_ids(owner_id, task_id, collaborator_id)
        require_owner(actor, owner_id)
        try:
            # mirror first: a failure after it leaves access without visibility, never the reverse
            await self._store.delete(paths.collaboration(collaborator_id, owner_id, task_id))
            await self._store.delete(paths.task_collaborator(owner_id, task_id, collaborator_id))
        except StoreError:
            logger.error("Failed to remove collaborator %s on %s/%s", collaborator_id, owner_id, task_id, exc_info=True)
            return False
        logger.info("Collaborator %s removed from %s/%s", collaborator_id, owner_id, task_id)
        return True

    # ---------- helpers ----------

    @staticmethod
    def _require_access(actor: str, owner_id: str, raw: dict) -> None:
        if actor == owner_id:
            return
        if not (raw.get("collaborators") or {}).get(actor):
            raise PermissionDeniedError("This task is not shared with you.")
