"""Unit tests for snapshot restore and export."""

from uuid import uuid4

import pytest
from sqlalchemy import delete, func, select

from conftest import goal_record, habit_record, task_record, template_record, workspace_record
from planner.common.exceptions import OwnershipError, PersistenceError, ValidationError
from planner.models import Block, Goal, Habit, Template, UsageRecord, Workspace
from planner.services.backup import ImportContext, export_snapshot, restore_snapshot

pytestmark = pytest.mark.unit


async def count(db, model) -> int:
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar_one()


@pytest.fixture
def full_snapshot(make_snapshot):
    ws_id = uuid4()
    parent = task_record(ws_id, title="Parent")
    child = task_record(ws_id, title="Child", parentId=parent["id"])
    return make_snapshot(
        workspaces=[workspace_record(ws_id)],
        tasks=[parent, child],
        goals=[goal_record(ws_id)],
        habits=[habit_record(ws_id)],
        templates=[template_record()],
    )


class TestRestoreSnapshot:
    """Test cases for restore_snapshot."""

    @pytest.mark.asyncio
    async def test_restore_into_empty_store(self, test_db, full_snapshot, import_context):
        restored = await restore_snapshot(test_db, full_snapshot, import_context)

        assert restored.model_dump() == {
            "workspaces": 1,
            "blocks": 2,
            "goals": 1,
            "habits": 1,
            "templates": 1,
        }
        assert await count(test_db, Block) == 2

    @pytest.mark.asyncio
    async def test_ownership_rebound_to_caller(self, test_db, full_snapshot, import_context):
        await restore_snapshot(test_db, full_snapshot, import_context)

        workspace = (await test_db.execute(select(Workspace))).scalar_one()
        assert workspace.owner_id == "user_1"
        for block in (await test_db.execute(select(Block))).scalars():
            assert block.created_by == "user_1"
        assert (await test_db.execute(select(Habit))).scalar_one().user_id == "user_1"
        assert (await test_db.execute(select(Goal))).scalar_one().created_by == "user_1"
        assert (await test_db.execute(select(Template))).scalar_one().creator_id == "user_1"

    @pytest.mark.asyncio
    async def test_record_content_preserved(self, test_db, full_snapshot, import_context):
        await restore_snapshot(test_db, full_snapshot, import_context)

        parent_id = full_snapshot["collections"]["tasks"][0]["id"]
        child = (await test_db.execute(select(Block).where(Block.title == "Child"))).scalar_one()
        assert str(child.parent_id) == parent_id
        assert child.meta == {"origin": "backup"}
        assert child.tags == ["restored"]
        assert child.priority == "high"

        habit = (await test_db.execute(select(Habit))).scalar_one()
        assert habit.scheduled_days == [1, 3, 5]

    @pytest.mark.asyncio
    async def test_restore_is_idempotent(self, test_db, full_snapshot, import_context):
        await restore_snapshot(test_db, full_snapshot, import_context)
        again = await restore_snapshot(test_db, full_snapshot, import_context)

        assert again.model_dump() == {
            "workspaces": 0,
            "blocks": 0,
            "goals": 0,
            "habits": 0,
            "templates": 0,
        }
        assert await count(test_db, Workspace) == 1
        assert await count(test_db, Block) == 2

    @pytest.mark.asyncio
    async def test_existing_record_not_overwritten(
        self, test_db, make_workspace, make_snapshot, import_context
    ):
        existing = await make_workspace("user_1", name="Original")
        payload = make_snapshot(workspaces=[workspace_record(existing.id, name="Changed")])

        restored = await restore_snapshot(test_db, payload, import_context)

        assert restored.workspaces == 0
        await test_db.refresh(existing)
        assert existing.name == "Original"

    @pytest.mark.asyncio
    async def test_duplicate_id_within_snapshot_imported_once(
        self, test_db, make_snapshot, import_context
    ):
        record = workspace_record()
        payload = make_snapshot(workspaces=[record, dict(record)])

        restored = await restore_snapshot(test_db, payload, import_context)

        assert restored.workspaces == 1

    @pytest.mark.asyncio
    async def test_records_into_existing_owned_workspace(
        self, test_db, make_workspace, make_snapshot, import_context
    ):
        workspace = await make_workspace("user_1")
        payload = make_snapshot(tasks=[task_record(workspace.id)])

        restored = await restore_snapshot(test_db, payload, import_context)

        assert restored.blocks == 1

    @pytest.mark.asyncio
    async def test_foreign_workspace_refused(
        self, test_db, make_workspace, make_snapshot, import_context
    ):
        foreign = await make_workspace("user_2")
        payload = make_snapshot(
            workspaces=[workspace_record()],
            tasks=[task_record(foreign.id)],
        )

        with pytest.raises(OwnershipError):
            await restore_snapshot(test_db, payload, import_context)

        # The workspace restored before the refusal was rolled back too
        assert await count(test_db, Workspace) == 1
        assert await count(test_db, Block) == 0

    @pytest.mark.asyncio
    async def test_unknown_workspace_refused(self, test_db, make_snapshot, import_context):
        payload = make_snapshot(habits=[habit_record(uuid4())])

        with pytest.raises(OwnershipError):
            await restore_snapshot(test_db, payload, import_context)

        assert await count(test_db, Habit) == 0

    @pytest.mark.asyncio
    async def test_foreign_snapshot_refused(self, test_db, full_snapshot, import_context):
        full_snapshot["owner"]["id"] = "user_2"

        with pytest.raises(OwnershipError):
            await restore_snapshot(test_db, full_snapshot, import_context)

        assert await count(test_db, Workspace) == 0
        assert await count(test_db, UsageRecord) == 0

    @pytest.mark.asyncio
    async def test_invalid_snapshot_writes_nothing(self, test_db, import_context):
        with pytest.raises(ValidationError):
            await restore_snapshot(test_db, {"formatVersion": "1.0.0"}, import_context)

        assert await count(test_db, UsageRecord) == 0

    @pytest.mark.asyncio
    async def test_store_failure_rolls_back_everything(
        self, test_db, make_snapshot, import_context
    ):
        ws_id = uuid4()
        payload = make_snapshot(
            workspaces=[
                workspace_record(ws_id, slug="same-slug"),
                workspace_record(slug="same-slug"),
            ],
            tasks=[task_record(ws_id)],
        )

        with pytest.raises(PersistenceError) as exc_info:
            await restore_snapshot(test_db, payload, import_context)

        assert exc_info.value.status_code == 500
        assert exc_info.value.cause is not None
        assert await count(test_db, Workspace) == 0
        assert await count(test_db, Block) == 0
        assert await count(test_db, UsageRecord) == 0

    @pytest.mark.asyncio
    async def test_empty_snapshot_restores_nothing(self, test_db, make_snapshot, import_context):
        restored = await restore_snapshot(test_db, make_snapshot(), import_context)

        assert restored.model_dump() == {
            "workspaces": 0,
            "blocks": 0,
            "goals": 0,
            "habits": 0,
            "templates": 0,
        }
        assert await count(test_db, UsageRecord) == 0

    @pytest.mark.asyncio
    async def test_repeat_restore_adds_no_usage_record(
        self, test_db, full_snapshot, import_context
    ):
        await restore_snapshot(test_db, full_snapshot, import_context)
        await restore_snapshot(test_db, full_snapshot, import_context)

        assert await count(test_db, UsageRecord) == 1

    @pytest.mark.asyncio
    async def test_usage_record_written(self, test_db, full_snapshot, import_context):
        await restore_snapshot(test_db, full_snapshot, import_context)

        usage = (await test_db.execute(select(UsageRecord))).scalar_one()
        assert usage.action == "snapshot_restore"
        assert usage.user_id == "user_1"
        assert usage.counts["tasks"] == 2
        assert usage.context["formatVersion"] == "1.0.0"


class TestExportSnapshot:
    """Test cases for export_snapshot."""

    @pytest.mark.asyncio
    async def test_export_scoped_to_caller(self, test_db, make_workspace, import_context):
        mine = await make_workspace("user_1")
        theirs = await make_workspace("user_2")
        test_db.add_all([
            Block(title="Mine", workspace_id=mine.id, created_by="user_1"),
            Block(title="Theirs", workspace_id=theirs.id, created_by="user_2"),
            Template(name="Mine", creator_id="user_1", structure={"entries": []}),
            Template(name="Theirs", creator_id="user_2", structure={"entries": []}),
        ])
        await test_db.commit()

        snapshot = await export_snapshot(test_db, import_context)

        assert snapshot.owner.id == "user_1"
        assert snapshot.owner.email == "user_1@example.com"
        assert [w.id for w in snapshot.collections.workspaces] == [mine.id]
        assert [t.title for t in snapshot.collections.tasks] == ["Mine"]
        assert [t.name for t in snapshot.collections.templates] == ["Mine"]

    @pytest.mark.asyncio
    async def test_records_in_joined_workspace_not_exported(
        self, test_db, make_workspace, import_context
    ):
        mine = await make_workspace("user_1")
        joined = await make_workspace("user_2")
        test_db.add_all([
            Goal(title="Own goal", workspace_id=mine.id, created_by="user_1"),
            Goal(title="Goal in joined workspace", workspace_id=joined.id, created_by="user_1"),
            Habit(name="Habit in joined workspace", workspace_id=joined.id, user_id="user_1"),
        ])
        await test_db.commit()

        snapshot = await export_snapshot(test_db, import_context)

        assert [g.title for g in snapshot.collections.goals] == ["Own goal"]
        assert snapshot.collections.habits == []

    @pytest.mark.asyncio
    async def test_own_export_restores_after_deletion(
        self, test_db, make_workspace, import_context
    ):
        mine = await make_workspace("user_1")
        joined = await make_workspace("user_2")
        test_db.add_all([
            Goal(title="Own goal", workspace_id=mine.id, created_by="user_1"),
            Goal(title="Goal in joined workspace", workspace_id=joined.id, created_by="user_1"),
        ])
        await test_db.commit()

        document = (await export_snapshot(test_db, import_context)).model_dump(
            mode="json", by_alias=True
        )
        await test_db.execute(delete(Goal))
        await test_db.commit()

        restored = await restore_snapshot(test_db, document, import_context)

        assert restored.goals == 1
        titles = (await test_db.execute(select(Goal.title))).scalars().all()
        assert titles == ["Own goal"]

    @pytest.mark.asyncio
    async def test_export_wire_format(self, test_db, make_workspace, import_context):
        workspace = await make_workspace("user_1")
        test_db.add(Block(
            title="Task",
            workspace_id=workspace.id,
            created_by="user_1",
            meta={"source": "manual"},
        ))
        await test_db.commit()

        document = (await export_snapshot(test_db, import_context)).model_dump(
            mode="json", by_alias=True
        )

        assert document["formatVersion"] == "1.0.0"
        assert set(document["collections"]) >= {
            "workspaces", "workspaceMembers", "tasks", "goals", "habits", "templates",
        }
        task = document["collections"]["tasks"][0]
        assert task["workspaceId"] == str(workspace.id)
        assert task["metadata"] == {"source": "manual"}

    @pytest.mark.asyncio
    async def test_exported_snapshot_restores_for_same_user(
        self, test_db, make_workspace, import_context
    ):
        workspace = await make_workspace("user_1")
        test_db.add(Goal(title="Goal", workspace_id=workspace.id, created_by="user_1"))
        await test_db.commit()

        document = (await export_snapshot(test_db, import_context)).model_dump(
            mode="json", by_alias=True
        )
        restored = await restore_snapshot(
            test_db, document, ImportContext(user_id="user_1")
        )

        # Everything already exists
        assert restored.goals == 0
        assert restored.workspaces == 0
