"""Snapshot export and restore pipeline.

Restore runs in four stages, each taking an explicit ``ImportContext``:

1. ``validate_snapshot`` - structural validation of the uploaded document.
2. ``verify_snapshot_owner`` - refuses snapshots exported for another user.
3. ``EntityImporter`` - inserts records whose ids do not exist yet, rebinding
   ownership to the caller. Existing ids are skipped, never overwritten.
4. ``restore_snapshot`` - runs the importer over every collection inside one
   transaction, in dependency order.

``export_snapshot`` is the inverse, read-only path.
"""

import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from planner.common.config import get_settings
from planner.common.database import atomic
from planner.common.exceptions import (
    OwnershipError,
    PersistenceError,
    PlannerError,
    ValidationError,
    field_issues,
)
from planner.common.logging import get_logger, transfer_context
from planner.common.metrics import (
    RECORDS_IMPORTED,
    RECORDS_SKIPPED,
    RESTORE_DURATION,
    SNAPSHOT_EXPORTS,
    SNAPSHOT_RESTORES,
)
from planner.models import (
    Base,
    Block,
    Goal,
    Habit,
    Template,
    UsageAction,
    UsageRecord,
    Workspace,
    WorkspaceMember,
)
from planner.models.base import column_attributes, model_to_dict, utcnow
from planner.schemas.backup import (
    GoalRecord,
    HabitRecord,
    RestoredCounts,
    Snapshot,
    SnapshotCollections,
    SnapshotOwner,
    SnapshotRecord,
    TaskRecord,
    TemplateRecord,
    WorkspaceMemberRecord,
    WorkspaceRecord,
)
from planner.schemas.template import TemplateStructure

logger = get_logger(__name__)


class Collection(str, Enum):
    """Entity collections a snapshot restores, in declaration order."""

    WORKSPACES = "workspaces"
    TASKS = "tasks"
    GOALS = "goals"
    HABITS = "habits"
    TEMPLATES = "templates"


# Collections whose records hold foreign keys into other collections
COLLECTION_DEPENDENCIES: dict[Collection, tuple[Collection, ...]] = {
    Collection.WORKSPACES: (),
    Collection.TASKS: (Collection.WORKSPACES,),
    Collection.GOALS: (Collection.WORKSPACES,),
    Collection.HABITS: (Collection.WORKSPACES,),
    Collection.TEMPLATES: (),
}


def dependency_order(
    dependencies: Mapping[Collection, Sequence[Collection]],
) -> list[Collection]:
    """Topologically sort collections, keeping declaration order among peers.

    Raises:
        ValueError: If the dependencies are cyclic or reference an
            undeclared collection.
    """
    ordered: list[Collection] = []
    remaining = list(dependencies)
    while remaining:
        ready = next(
            (c for c in remaining if all(dep in ordered for dep in dependencies[c])),
            None,
        )
        if ready is None:
            names = ", ".join(c.value for c in remaining)
            raise ValueError(f"Unresolvable collection dependencies: {names}")
        ordered.append(ready)
        remaining.remove(ready)
    return ordered


RESTORE_ORDER: list[Collection] = dependency_order(COLLECTION_DEPENDENCIES)


@dataclass(frozen=True)
class CollectionSpec:
    """How a snapshot collection maps onto the store."""

    model: type[Base]
    owner_column: str
    response_key: str
    workspace_column: str | None = None


COLLECTION_SPECS: dict[Collection, CollectionSpec] = {
    Collection.WORKSPACES: CollectionSpec(Workspace, "owner_id", "workspaces"),
    Collection.TASKS: CollectionSpec(Block, "created_by", "blocks", "workspace_id"),
    Collection.GOALS: CollectionSpec(Goal, "created_by", "goals", "workspace_id"),
    Collection.HABITS: CollectionSpec(Habit, "user_id", "habits", "workspace_id"),
    Collection.TEMPLATES: CollectionSpec(Template, "creator_id", "templates"),
}


@dataclass
class ImportContext:
    """Caller identity and clock for one export, restore or install."""

    user_id: str
    email: str | None = None
    now: datetime = field(default_factory=utcnow)


def collection_records(
    collections: SnapshotCollections,
    collection: Collection,
) -> list[SnapshotRecord]:
    """Records of one collection from a validated snapshot."""
    return list(getattr(collections, collection.value))


def validate_snapshot(payload: Any) -> Snapshot:
    """Parse an uploaded document into a typed snapshot.

    Every offending field is reported, not just the first. Extra fields are
    tolerated, but template structures must hold installable content; the
    older per-kind structure format is converted to tagged entries.

    Raises:
        ValidationError: With one ``details`` entry per field issue.
    """
    try:
        snapshot = Snapshot.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(
            message="Invalid backup file format",
            details=field_issues(e.errors()),
        ) from e

    limit = get_settings().backup.max_records_per_collection
    oversized = [
        {
            "field": f"collections.{collection.value}",
            "message": f"At most {limit} records are accepted per collection",
            "type": "too_long",
        }
        for collection in RESTORE_ORDER
        if len(collection_records(snapshot.collections, collection)) > limit
    ]
    if oversized:
        raise ValidationError(message="Invalid backup file format", details=oversized)

    structure_issues = []
    for index, record in enumerate(snapshot.collections.templates):
        try:
            structure = TemplateStructure.model_validate(record.structure)
        except PydanticValidationError as e:
            structure_issues.extend(
                {**issue, "field": f"collections.templates.{index}.structure.{issue['field']}"}
                for issue in field_issues(e.errors())
            )
            continue
        # Stored in the current format so the template stays installable
        record.structure = structure.model_dump(mode="json", by_alias=True)
    if structure_issues:
        raise ValidationError(message="Invalid backup file format", details=structure_issues)

    return snapshot


def verify_snapshot_owner(snapshot: Snapshot, context: ImportContext) -> None:
    """Refuse a snapshot that was not exported for the calling user.

    Fails closed: a missing owner or caller identity is a refusal.

    Raises:
        OwnershipError: If the owners differ.
    """
    owner_id = snapshot.owner.id if snapshot.owner else None
    if not owner_id or not context.user_id or owner_id != context.user_id:
        logger.warning(
            "Snapshot restore refused: owner mismatch",
            snapshot_owner=owner_id,
            user_id=context.user_id,
        )
        raise OwnershipError()


class EntityImporter:
    """Insert-if-absent importer for snapshot collections.

    Runs on the caller's session and never commits; the caller owns the
    transaction boundary.
    """

    def __init__(self, db: AsyncSession, context: ImportContext) -> None:
        self.db = db
        self.context = context
        self.skipped: dict[Collection, int] = {}
        self._owned_workspaces: set[UUID] = set()

    async def import_collection(
        self,
        collection: Collection,
        records: Sequence[SnapshotRecord],
    ) -> int:
        """Import one collection in source order.

        Returns:
            Number of newly created records.

        Raises:
            OwnershipError: If a new record points into a workspace the
                caller does not own.
        """
        spec = COLLECTION_SPECS[collection]
        created = 0
        skipped = 0

        for record in records:
            if await self.db.get(spec.model, record.id) is not None:
                skipped += 1
                continue

            if spec.workspace_column is not None:
                await self._require_owned_workspace(
                    getattr(record, spec.workspace_column),
                    collection,
                )

            self.db.add(self._build(spec, record))
            # Flush per record so later lookups in this restore see it
            await self.db.flush()
            created += 1

            if collection is Collection.WORKSPACES:
                self._owned_workspaces.add(record.id)

        self.skipped[collection] = skipped
        logger.debug(
            "Collection imported",
            collection=collection.value,
            created=created,
            skipped=skipped,
        )
        return created

    def _build(self, spec: CollectionSpec, record: SnapshotRecord) -> Base:
        """Create a model instance from a record, rebinding ownership."""
        attributes = column_attributes(spec.model)
        columns = spec.model.__table__.columns

        values: dict[str, Any] = {}
        for column_name, value in record.column_values().items():
            key = attributes.get(column_name)
            if key is None:
                continue
            # Nulls for non-nullable columns fall back to the column default
            if value is None and not columns[column_name].nullable:
                continue
            values[key] = value

        values[attributes[spec.owner_column]] = self.context.user_id
        values["updated_at"] = self.context.now
        return spec.model(**values)

    async def _require_owned_workspace(
        self,
        workspace_id: UUID,
        collection: Collection,
    ) -> None:
        if workspace_id in self._owned_workspaces:
            return

        workspace = await self.db.get(Workspace, workspace_id)
        if workspace is None or workspace.owner_id != self.context.user_id:
            logger.warning(
                "Snapshot restore refused: record targets a foreign workspace",
                collection=collection.value,
                workspace_id=str(workspace_id),
                user_id=self.context.user_id,
            )
            raise OwnershipError(message="Backup references a workspace you do not own")

        self._owned_workspaces.add(workspace_id)


async def restore_snapshot(
    db: AsyncSession,
    payload: Any,
    context: ImportContext,
) -> RestoredCounts:
    """Validate, authorize and apply a snapshot as one atomic unit.

    Either every insertable record across every collection commits together
    with a ``snapshot_restore`` usage record, or nothing does. A restore that
    creates no records writes nothing at all.

    Raises:
        ValidationError: Snapshot is structurally invalid (nothing written).
        OwnershipError: Snapshot or a record belongs to another user
            (nothing written).
        PersistenceError: Store failure; the transaction was rolled back.
    """
    with transfer_context(UsageAction.SNAPSHOT_RESTORE.value, context.user_id):
        return await _apply_snapshot(db, payload, context)


async def _apply_snapshot(
    db: AsyncSession,
    payload: Any,
    context: ImportContext,
) -> RestoredCounts:
    start = time.perf_counter()

    try:
        snapshot = validate_snapshot(payload)
    except ValidationError:
        SNAPSHOT_RESTORES.labels(outcome="invalid").inc()
        raise

    try:
        verify_snapshot_owner(snapshot, context)
    except OwnershipError:
        SNAPSHOT_RESTORES.labels(outcome="refused").inc()
        raise

    importer = EntityImporter(db, context)
    created: dict[Collection, int] = {}

    try:
        async with atomic(db, PersistenceError):
            for collection in RESTORE_ORDER:
                created[collection] = await importer.import_collection(
                    collection,
                    collection_records(snapshot.collections, collection),
                )

            # A restore that creates nothing leaves the store untouched
            if any(created.values()):
                db.add(UsageRecord(
                    user_id=context.user_id,
                    action=UsageAction.SNAPSHOT_RESTORE.value,
                    counts={c.value: n for c, n in created.items()},
                    context={
                        "formatVersion": snapshot.format_version,
                        "exportedAt": (
                            snapshot.exported_at.isoformat() if snapshot.exported_at else None
                        ),
                        "skipped": {c.value: n for c, n in importer.skipped.items()},
                    },
                ))
    except OwnershipError:
        SNAPSHOT_RESTORES.labels(outcome="refused").inc()
        raise
    except PlannerError as e:
        SNAPSHOT_RESTORES.labels(outcome="failed").inc()
        logger.error(
            "Snapshot restore failed, transaction rolled back",
            user_id=context.user_id,
            error=str(e.cause or e),
            error_type=type(e.cause or e).__name__,
        )
        raise

    for collection, count in created.items():
        RECORDS_IMPORTED.labels(collection=collection.value).inc(count)
        RECORDS_SKIPPED.labels(collection=collection.value).inc(importer.skipped.get(collection, 0))
    SNAPSHOT_RESTORES.labels(outcome="success").inc()
    RESTORE_DURATION.observe(time.perf_counter() - start)

    logger.info(
        "Snapshot restored",
        user_id=context.user_id,
        created={c.value: n for c, n in created.items()},
        skipped={c.value: n for c, n in importer.skipped.items()},
    )

    return RestoredCounts(**{
        COLLECTION_SPECS[collection].response_key: count
        for collection, count in created.items()
    })


async def _fetch_all(db: AsyncSession, statement: Any) -> list[Any]:
    result = await db.execute(statement)
    return list(result.scalars().all())


async def export_snapshot(db: AsyncSession, context: ImportContext) -> Snapshot:
    """Assemble a snapshot of everything the caller owns.

    Includes owned workspaces with their memberships, tasks, goals and
    habits, plus templates the caller created. Workspaces the caller merely
    joined are not included, nor is anything inside them, even records the
    caller created there. Every exported record therefore passes the
    workspace ownership check on restore.
    """
    with transfer_context("snapshot_export", context.user_id):
        return await _assemble_snapshot(db, context)


async def _assemble_snapshot(db: AsyncSession, context: ImportContext) -> Snapshot:
    user_id = context.user_id

    workspaces = await _fetch_all(
        db,
        select(Workspace)
        .where(Workspace.owner_id == user_id)
        .order_by(Workspace.created_at, Workspace.id),
    )
    workspace_ids = [w.id for w in workspaces]

    members = await _fetch_all(
        db,
        select(WorkspaceMember)
        .where(WorkspaceMember.workspace_id.in_(workspace_ids))
        .order_by(WorkspaceMember.joined_at, WorkspaceMember.id),
    )
    # Parents before children keeps re-imports valid under the parent FK
    tasks = await _fetch_all(
        db,
        select(Block)
        .where(Block.workspace_id.in_(workspace_ids))
        .order_by(Block.parent_id.is_not(None), Block.created_at, Block.id),
    )
    goals = await _fetch_all(
        db,
        select(Goal)
        .where(Goal.workspace_id.in_(workspace_ids))
        .order_by(Goal.created_at, Goal.id),
    )
    habits = await _fetch_all(
        db,
        select(Habit)
        .where(Habit.workspace_id.in_(workspace_ids))
        .order_by(Habit.created_at, Habit.id),
    )
    templates = await _fetch_all(
        db,
        select(Template)
        .where(Template.creator_id == user_id)
        .order_by(Template.created_at, Template.id),
    )

    snapshot = Snapshot(
        format_version=get_settings().backup.format_version,
        exported_at=context.now,
        owner=SnapshotOwner(id=user_id, email=context.email),
        collections=SnapshotCollections(
            workspaces=[WorkspaceRecord.model_validate(model_to_dict(w)) for w in workspaces],
            workspace_members=[
                WorkspaceMemberRecord.model_validate(model_to_dict(m)) for m in members
            ],
            tasks=[TaskRecord.model_validate(model_to_dict(t)) for t in tasks],
            goals=[GoalRecord.model_validate(model_to_dict(g)) for g in goals],
            habits=[HabitRecord.model_validate(model_to_dict(h)) for h in habits],
            templates=[TemplateRecord.model_validate(model_to_dict(t)) for t in templates],
        ),
    )

    SNAPSHOT_EXPORTS.inc()
    logger.info(
        "Snapshot exported",
        user_id=user_id,
        workspaces=len(workspaces),
        tasks=len(tasks),
        goals=len(goals),
        habits=len(habits),
        templates=len(templates),
    )
    return snapshot
