"""Integration tests for Template API endpoints."""

from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient

from conftest import template_record
from planner.models import Template


@pytest.fixture
def template_payload() -> dict:
    return {
        "name": "Study plan",
        "description": "Two weeks of revision",
        "category": "education",
        "tags": ["study"],
        "isPublic": True,
        "structure": {
            "entries": [
                {"kind": "task", "title": "Collect notes", "dueInDays": 1},
                {"kind": "goal", "title": "Pass the exam", "targetInDays": 14},
                {"kind": "habit", "name": "Review flashcards", "scheduledTime": "20:00"},
            ]
        },
    }


@pytest.mark.integration
class TestTemplateCatalogAPI:
    """Test cases for listing, reading and creating templates."""

    @pytest.mark.asyncio
    async def test_list_builtins(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/templates")
        assert response.status_code == 200

        data = response.json()
        ids = [item["id"] for item in data["items"]]
        assert {"weekly-review", "morning-routine", "project-launch"} <= set(ids)
        assert data["total"] == len(data["items"])

    @pytest.mark.asyncio
    async def test_get_builtin(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/templates/morning-routine")
        assert response.status_code == 200

        data = response.json()
        assert data["source"] == "builtin"
        assert data["name"] == "Morning Routine"
        assert data["structure"]["entries"][0]["kind"] == "habit"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("template_id", ["does-not-exist", str(uuid4())])
    async def test_get_not_found(self, async_client: AsyncClient, template_id):
        response = await async_client.get(f"/api/v1/templates/{template_id}")
        assert response.status_code == 404
        assert response.json()["code"] == "TEMPLATE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_create(self, async_client: AsyncClient, template_payload):
        response = await async_client.post("/api/v1/templates", json=template_payload)
        assert response.status_code == 201

        data = response.json()
        assert data["source"] == "user"
        assert data["creatorId"] == "user_1"
        assert data["status"] == "published"
        assert data["useCount"] == 0
        assert len(data["structure"]["entries"]) == 3

        fetched = await async_client.get(f"/api/v1/templates/{data['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["name"] == "Study plan"

    @pytest.mark.asyncio
    async def test_create_invalid(self, async_client: AsyncClient, template_payload):
        del template_payload["name"]
        template_payload["structure"]["entries"].append({"kind": "meeting", "title": "x"})

        response = await async_client.post("/api/v1/templates", json=template_payload)
        assert response.status_code == 400

        data = response.json()
        assert data["code"] == "VALIDATION_ERROR"
        fields = [d["field"] for d in data["details"]]
        assert "name" in fields
        assert any(f.startswith("structure.entries.3") for f in fields)


@pytest.mark.integration
class TestTemplateInstallAPI:
    """Test cases for POST /api/v1/templates/{id}/install."""

    @pytest.mark.asyncio
    async def test_install_builtin(self, async_client: AsyncClient, make_workspace):
        workspace = await make_workspace("user_1")

        response = await async_client.post("/api/v1/templates/project-launch/install")
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        assert data["templateId"] == "project-launch"
        assert data["templateName"] == "Project Launch"
        assert data["workspaceId"] == str(workspace.id)
        assert data["installed"] == {"tasks": 4, "goals": 1, "habits": 0}
        assert data["totalItems"] == 5
        assert len(data["items"]["tasks"]) == 4

    @pytest.mark.asyncio
    async def test_install_twice_distinct(self, async_client: AsyncClient, make_workspace):
        await make_workspace("user_1")

        first = (await async_client.post("/api/v1/templates/weekly-review/install")).json()
        second = (await async_client.post("/api/v1/templates/weekly-review/install")).json()

        assert first["installationId"] != second["installationId"]
        first_ids = {i["id"] for i in first["items"]["tasks"]}
        second_ids = {i["id"] for i in second["items"]["tasks"]}
        assert first_ids.isdisjoint(second_ids)

    @pytest.mark.asyncio
    async def test_install_with_customizations(self, async_client: AsyncClient, make_workspace):
        await make_workspace("user_1")

        response = await async_client.post(
            "/api/v1/templates/weekly-review/install",
            json={"customizations": {"includeHabits": False}},
        )
        assert response.status_code == 200
        assert response.json()["installed"] == {"tasks": 3, "goals": 0, "habits": 0}

    @pytest.mark.asyncio
    async def test_install_without_workspace(self, async_client: AsyncClient):
        response = await async_client.post("/api/v1/templates/weekly-review/install")
        assert response.status_code == 400
        assert response.json()["code"] == "NO_WORKSPACE"

    @pytest.mark.asyncio
    async def test_install_unknown(self, async_client: AsyncClient, make_workspace):
        await make_workspace("user_1")

        response = await async_client.post("/api/v1/templates/nothing-here/install")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_install_private_template(
        self, async_client: AsyncClient, make_workspace, test_db
    ):
        await make_workspace("user_1")
        private = Template(
            name="Private",
            creator_id="user_2",
            status="draft",
            structure={"entries": [{"kind": "task", "title": "Secret"}]},
        )
        test_db.add(private)
        await test_db.commit()

        response = await async_client.post(f"/api/v1/templates/{private.id}/install")
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_install_user_template_counts_use(
        self, async_client: AsyncClient, make_workspace, template_payload
    ):
        await make_workspace("user_1")
        created = (await async_client.post("/api/v1/templates", json=template_payload)).json()

        response = await async_client.post(f"/api/v1/templates/{created['id']}/install")
        assert response.status_code == 200
        assert response.json()["totalItems"] == 3
        await async_client.post(f"/api/v1/templates/{created['id']}/install")

        fetched = (await async_client.get(f"/api/v1/templates/{created['id']}")).json()
        assert fetched["useCount"] == 1

    @pytest.mark.asyncio
    async def test_install_template_created_in_per_kind_format(
        self, async_client: AsyncClient, make_workspace
    ):
        await make_workspace("user_1")
        created = await async_client.post(
            "/api/v1/templates",
            json={"name": "Morning", "structure": {"tasks": [{"title": "Wake"}]}},
        )
        assert created.status_code == 201
        assert created.json()["structure"]["entries"][0]["title"] == "Wake"

        response = await async_client.post(f"/api/v1/templates/{created.json()['id']}/install")
        assert response.status_code == 200
        assert response.json()["installed"] == {"tasks": 1, "goals": 0, "habits": 0}

    @pytest.mark.asyncio
    async def test_create_with_unknown_structure_rejected(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/v1/templates",
            json={"name": "Morning", "structure": {"items": [{"title": "Wake"}]}},
        )

        assert response.status_code == 400
        fields = [d["field"] for d in response.json()["details"]]
        assert fields == ["structure.items"]

    @pytest.mark.asyncio
    async def test_install_restored_template_in_per_kind_format(
        self, async_client: AsyncClient, make_workspace, make_snapshot
    ):
        await make_workspace("user_1")
        record = template_record(structure={
            "blocks": [{"title": "Plan the week"}],
            "goals": [{"title": "Ship v1"}],
        })

        restored = await async_client.post("/api/v1/backup", json=make_snapshot(templates=[record]))
        assert restored.status_code == 200
        assert restored.json()["restored"]["templates"] == 1

        response = await async_client.post(f"/api/v1/templates/{record['id']}/install")
        assert response.status_code == 200
        assert response.json()["installed"] == {"tasks": 1, "goals": 1, "habits": 0}

    @pytest.mark.asyncio
    async def test_restore_template_without_content_rejected(
        self, async_client: AsyncClient, make_snapshot
    ):
        record = template_record(structure={"items": [{"title": "Wake"}]})

        response = await async_client.post("/api/v1/backup", json=make_snapshot(templates=[record]))

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "collections.templates.0.structure.items"


@pytest_asyncio.fixture
async def foreign_template(test_db) -> Template:
    template = Template(
        name="Someone else's",
        creator_id="user_2",
        status="published",
        is_public=True,
        structure={"entries": [{"kind": "task", "title": "Theirs"}]},
    )
    test_db.add(template)
    await test_db.commit()
    return template


@pytest.mark.integration
class TestTemplateEditAPI:
    """Test cases for PATCH and DELETE /api/v1/templates/{id}."""

    @pytest.mark.asyncio
    async def test_update_own_template(self, async_client: AsyncClient, template_payload):
        created = (await async_client.post("/api/v1/templates", json=template_payload)).json()

        response = await async_client.patch(
            f"/api/v1/templates/{created['id']}",
            json={
                "name": "Exam sprint",
                "isPublic": False,
                "structure": {"entries": [{"kind": "task", "title": "Book the room"}]},
            },
        )
        assert response.status_code == 200

        data = response.json()
        assert data["name"] == "Exam sprint"
        assert data["status"] == "draft"
        assert data["description"] == "Two weeks of revision"
        assert [e["title"] for e in data["structure"]["entries"]] == ["Book the room"]

    @pytest.mark.asyncio
    async def test_update_invalid_structure(self, async_client: AsyncClient, template_payload):
        created = (await async_client.post("/api/v1/templates", json=template_payload)).json()

        response = await async_client.patch(
            f"/api/v1/templates/{created['id']}",
            json={"structure": {"entries": [{"kind": "meeting"}]}},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_update_foreign_template_forbidden(
        self, async_client: AsyncClient, foreign_template
    ):
        response = await async_client.patch(
            f"/api/v1/templates/{foreign_template.id}",
            json={"name": "Mine now"},
        )

        assert response.status_code == 403
        assert response.json()["error"] == "Access denied - you can only update your own templates"

    @pytest.mark.asyncio
    async def test_update_builtin_forbidden(self, async_client: AsyncClient):
        response = await async_client.patch("/api/v1/templates/weekly-review", json={"name": "x"})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_update_unknown(self, async_client: AsyncClient):
        response = await async_client.patch(f"/api/v1/templates/{uuid4()}", json={"name": "x"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_own_template(
        self, async_client: AsyncClient, make_workspace, template_payload
    ):
        await make_workspace("user_1")
        created = (await async_client.post("/api/v1/templates", json=template_payload)).json()

        response = await async_client.delete(f"/api/v1/templates/{created['id']}")
        assert response.status_code == 204

        listed = (await async_client.get("/api/v1/templates")).json()
        assert created["id"] not in [item["id"] for item in listed["items"]]
        fetched = await async_client.get(f"/api/v1/templates/{created['id']}")
        assert fetched.status_code == 404
        installed = await async_client.post(f"/api/v1/templates/{created['id']}/install")
        assert installed.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_foreign_template_forbidden(
        self, async_client: AsyncClient, foreign_template
    ):
        response = await async_client.delete(f"/api/v1/templates/{foreign_template.id}")

        assert response.status_code == 403
        still_there = await async_client.get(f"/api/v1/templates/{foreign_template.id}")
        assert still_there.status_code == 200
