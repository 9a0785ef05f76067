"""Template catalog and installation.

Installing a template expands each of its entries into a new live task,
goal or habit in one of the caller's workspaces. Every installation creates
fresh identities; installing twice yields two independent copies. The
expansion runs in a single transaction, so a failure leaves no partial
install behind.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, assert_never
from uuid import UUID, uuid4

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from planner.common.database import atomic
from planner.common.exceptions import (
    AuthorizationError,
    NoWorkspaceError,
    PartialInstallFailure,
    PlannerError,
    TemplateNotFoundError,
    ValidationError,
    field_issues,
)
from planner.common.logging import get_logger, transfer_context
from planner.common.metrics import TEMPLATE_INSTALLS
from planner.models import (
    Block,
    Goal,
    Habit,
    Template,
    TemplateStatus,
    UsageAction,
    UsageRecord,
    Workspace,
)
from planner.schemas.template import (
    GoalTemplate,
    HabitTemplate,
    InstallCustomizations,
    InstalledCounts,
    InstalledItem,
    InstalledItems,
    InstallResponse,
    TaskTemplate,
    TemplateCreate,
    TemplateEntry,
    TemplateResponse,
    TemplateStructure,
    TemplateUpdate,
)
from planner.services.backup import ImportContext
from planner.templates.builtin import BUILTIN_TEMPLATES, BuiltinTemplate

logger = get_logger(__name__)


@dataclass
class ResolvedTemplate:
    """A template located in the builtin catalog or the templates table."""

    ref: str
    name: str
    structure: TemplateStructure
    row: Template | None = None

    @property
    def source(self) -> str:
        return "builtin" if self.row is None else "user"


def _builtin_response(template: BuiltinTemplate) -> TemplateResponse:
    return TemplateResponse(
        id=template.slug,
        source="builtin",
        name=template.name,
        description=template.description,
        type=template.type,
        category=template.category,
        tags=list(template.tags),
        status=TemplateStatus.PUBLISHED.value,
        structure=template.structure,
    )


def _parse_structure(row: Template) -> TemplateStructure:
    try:
        return TemplateStructure.model_validate(row.structure)
    except PydanticValidationError as e:
        raise ValidationError(
            message="Template structure is invalid",
            details=field_issues(e.errors()),
        ) from e


def _row_response(row: Template) -> TemplateResponse:
    return TemplateResponse(
        id=str(row.id),
        source="user",
        name=row.name,
        description=row.description,
        type=row.type,
        category=row.category,
        tags=list(row.tags or []),
        status=row.status,
        creator_id=row.creator_id,
        use_count=row.use_count,
        structure=_parse_structure(row),
        created_at=row.created_at,
    )


def _can_view(row: Template, user_id: str) -> bool:
    return row.status == TemplateStatus.PUBLISHED.value or row.creator_id == user_id


async def list_templates(db: AsyncSession, user_id: str) -> list[TemplateResponse]:
    """Builtin templates followed by published and own user templates."""
    result = await db.execute(
        select(Template)
        .where(
            or_(
                Template.status == TemplateStatus.PUBLISHED.value,
                Template.creator_id == user_id,
            ),
            Template.status != TemplateStatus.ARCHIVED.value,
        )
        .order_by(Template.use_count.desc(), Template.created_at.desc())
    )
    items = [_builtin_response(t) for t in BUILTIN_TEMPLATES.values()]
    for row in result.scalars().all():
        try:
            items.append(_row_response(row))
        except ValidationError:
            # Restored rows may carry structures from older formats
            logger.warning("Skipping template with invalid structure", template_id=str(row.id))
    return items


async def resolve_template(
    db: AsyncSession,
    template_id: str,
    user_id: str,
) -> ResolvedTemplate:
    """Locate a template by UUID (user template) or slug (builtin).

    Raises:
        TemplateNotFoundError: Unknown identifier or deleted template.
        AuthorizationError: Unpublished template of another user.
    """
    try:
        row_id = UUID(template_id)
    except ValueError:
        builtin = BUILTIN_TEMPLATES.get(template_id)
        if builtin is None:
            raise TemplateNotFoundError()
        return ResolvedTemplate(ref=builtin.slug, name=builtin.name, structure=builtin.structure)

    row = await db.get(Template, row_id)
    if row is None or row.status == TemplateStatus.ARCHIVED.value:
        raise TemplateNotFoundError()
    if not _can_view(row, user_id):
        raise AuthorizationError(message="Access denied - template is private")

    return ResolvedTemplate(ref=str(row.id), name=row.name, structure=_parse_structure(row), row=row)


async def get_template(db: AsyncSession, template_id: str, user_id: str) -> TemplateResponse:
    resolved = await resolve_template(db, template_id, user_id)
    if resolved.row is None:
        return _builtin_response(BUILTIN_TEMPLATES[resolved.ref])
    return _row_response(resolved.row)


async def create_template(
    db: AsyncSession,
    data: TemplateCreate,
    user_id: str,
) -> TemplateResponse:
    """Store a user-authored template. Public templates are published at once."""
    row = Template(
        name=data.name,
        description=data.description,
        type=data.type,
        category=data.category,
        creator_id=user_id,
        structure=data.structure.model_dump(mode="json", by_alias=True),
        tags=data.tags,
        status=(TemplateStatus.PUBLISHED if data.is_public else TemplateStatus.DRAFT).value,
        is_public=data.is_public,
    )
    db.add(row)
    await db.flush()

    logger.info("Template created", template_id=str(row.id), user_id=user_id)
    return _row_response(row)


async def _own_template(db: AsyncSession, template_id: str, user_id: str, action: str) -> Template:
    """Load a user template the caller may modify.

    Raises:
        TemplateNotFoundError: Unknown identifier or deleted template.
        AuthorizationError: Builtin template, or another user's template.
    """
    try:
        row_id = UUID(template_id)
    except ValueError:
        if template_id in BUILTIN_TEMPLATES:
            raise AuthorizationError(message=f"Built-in templates cannot be {action}d")
        raise TemplateNotFoundError()

    row = await db.get(Template, row_id)
    if row is None or row.status == TemplateStatus.ARCHIVED.value:
        raise TemplateNotFoundError()
    if row.creator_id != user_id:
        raise AuthorizationError(
            message=f"Access denied - you can only {action} your own templates"
        )
    return row


async def update_template(
    db: AsyncSession,
    template_id: str,
    data: TemplateUpdate,
    user_id: str,
) -> TemplateResponse:
    """Apply the given fields to the caller's template.

    Toggling ``is_public`` publishes or unpublishes the template.
    """
    row = await _own_template(db, template_id, user_id, "update")

    update_data = data.model_dump(exclude_unset=True, exclude={"structure"})
    if data.structure is not None:
        update_data["structure"] = data.structure.model_dump(mode="json", by_alias=True)
    if data.is_public is not None:
        update_data["status"] = (
            TemplateStatus.PUBLISHED if data.is_public else TemplateStatus.DRAFT
        ).value

    for field_name, value in update_data.items():
        # Explicit nulls only clear nullable columns
        if value is None and not Template.__table__.columns[field_name].nullable:
            continue
        setattr(row, field_name, value)
    await db.flush()

    logger.info(
        "Template updated",
        template_id=str(row.id),
        user_id=user_id,
        fields=sorted(update_data),
    )
    return _row_response(row)


async def delete_template(db: AsyncSession, template_id: str, user_id: str) -> None:
    """Archive the caller's template.

    The row is kept so usage records and earlier exports still refer to a
    real template; it disappears from the catalog and can no longer be
    installed.
    """
    row = await _own_template(db, template_id, user_id, "delete")
    row.status = TemplateStatus.ARCHIVED.value
    row.is_public = False
    await db.flush()

    logger.info("Template deleted", template_id=str(row.id), user_id=user_id)


class TemplateInstaller:
    """Expands templates into live entities for one caller."""

    def __init__(self, db: AsyncSession, context: ImportContext) -> None:
        self.db = db
        self.context = context

    async def install(
        self,
        template_id: str,
        customizations: InstallCustomizations | None = None,
    ) -> InstallResponse:
        """Install a template into the caller's workspace.

        Raises:
            TemplateNotFoundError: Unknown template.
            AuthorizationError: Private template of another user.
            NoWorkspaceError: Caller has no usable workspace.
            PartialInstallFailure: Entity creation failed; nothing was kept.
        """
        with transfer_context(
            UsageAction.TEMPLATE_INSTALL.value,
            self.context.user_id,
            template_id=template_id,
        ):
            return await self._install(template_id, customizations)

    async def _install(
        self,
        template_id: str,
        customizations: InstallCustomizations | None,
    ) -> InstallResponse:
        customizations = customizations or InstallCustomizations()
        template = await resolve_template(self.db, template_id, self.context.user_id)
        workspace = await self._target_workspace(customizations.workspace_id)

        installation_id = uuid4()
        tag = {
            "source": "template",
            "templateId": template.ref,
            "originalTemplate": template.name,
            "installationId": str(installation_id),
        }
        items = InstalledItems()

        try:
            async with atomic(self.db, PartialInstallFailure):
                first_use = await self._is_first_use(template.ref)

                for entry in template.structure.entries:
                    if not customizations.includes(entry.kind):
                        continue
                    entity = self._expand(entry, workspace.id, tag, customizations)
                    self.db.add(entity)
                    await self.db.flush()
                    self._collect(items, entity)

                counts = InstalledCounts(
                    tasks=len(items.tasks),
                    goals=len(items.goals),
                    habits=len(items.habits),
                )
                self.db.add(UsageRecord(
                    id=installation_id,
                    user_id=self.context.user_id,
                    action=UsageAction.TEMPLATE_INSTALL.value,
                    template_ref=template.ref,
                    workspace_id=workspace.id,
                    counts=counts.model_dump(),
                    context={
                        "customizations": customizations.model_dump(mode="json", by_alias=True),
                        "firstUse": first_use,
                    },
                ))

                if first_use and template.row is not None:
                    await self.db.execute(
                        update(Template)
                        .where(Template.id == template.row.id)
                        .values(use_count=Template.use_count + 1)
                    )
        except PlannerError as e:
            TEMPLATE_INSTALLS.labels(template_source=template.source, outcome="failed").inc()
            logger.error(
                "Template installation failed, changes rolled back",
                template_id=template.ref,
                user_id=self.context.user_id,
                error=str(e.cause or e),
            )
            raise

        TEMPLATE_INSTALLS.labels(template_source=template.source, outcome="success").inc()
        total = counts.tasks + counts.goals + counts.habits
        logger.info(
            "Template installed",
            template_id=template.ref,
            user_id=self.context.user_id,
            workspace_id=str(workspace.id),
            total_items=total,
        )

        return InstallResponse(
            message="Template installed successfully",
            template_id=template.ref,
            template_name=template.name,
            installation_id=installation_id,
            workspace_id=workspace.id,
            installed=counts,
            total_items=total,
            items=items,
        )

    async def _target_workspace(self, workspace_id: UUID | None) -> Workspace:
        """The requested workspace if owned, else the caller's default one."""
        if workspace_id is not None:
            workspace = await self.db.get(Workspace, workspace_id)
            if workspace is None or workspace.owner_id != self.context.user_id:
                raise NoWorkspaceError(message="Workspace not found")
            return workspace

        result = await self.db.execute(
            select(Workspace)
            .where(
                Workspace.owner_id == self.context.user_id,
                Workspace.is_archived.is_(False),
            )
            .order_by(Workspace.is_personal.desc(), Workspace.created_at, Workspace.id)
            .limit(1)
        )
        workspace = result.scalar_one_or_none()
        if workspace is None:
            raise NoWorkspaceError()
        return workspace

    async def _is_first_use(self, template_ref: str) -> bool:
        """Whether the caller has never installed this template before.

        Read inside the install transaction without locking. Two concurrent
        first installs by the same user can both see no earlier record and
        each increment ``use_count``; the usage ledger itself stays exact.
        """
        result = await self.db.execute(
            select(UsageRecord.id)
            .where(
                UsageRecord.user_id == self.context.user_id,
                UsageRecord.action == UsageAction.TEMPLATE_INSTALL.value,
                UsageRecord.template_ref == template_ref,
            )
            .limit(1)
        )
        return result.first() is None

    def _expand(
        self,
        entry: TemplateEntry,
        workspace_id: UUID,
        tag: dict[str, Any],
        customizations: InstallCustomizations,
    ) -> Block | Goal | Habit:
        now = self.context.now
        user_id = self.context.user_id

        if isinstance(entry, TaskTemplate):
            return Block(
                type="task",
                title=entry.title,
                description=entry.description,
                workspace_id=workspace_id,
                position=entry.position,
                status=entry.status,
                priority=entry.priority,
                estimated_duration=entry.estimated_duration,
                due_date=now + timedelta(days=entry.due_in_days) if entry.due_in_days is not None else None,
                tags=[*entry.tags, *customizations.tags],
                category=entry.category,
                created_by=user_id,
                meta=dict(tag),
            )
        if isinstance(entry, GoalTemplate):
            return Goal(
                title=entry.title,
                description=entry.description,
                type=entry.type,
                workspace_id=workspace_id,
                category=entry.category,
                priority=entry.priority,
                status="not_started",
                progress=0,
                target_value=entry.target_value,
                current_value=0.0,
                unit=entry.unit,
                start_date=now,
                target_date=now + timedelta(days=entry.target_in_days) if entry.target_in_days is not None else None,
                why=entry.why,
                milestones=[{"title": m, "completed": False} for m in entry.milestones],
                created_by=user_id,
                meta=dict(tag),
            )
        if isinstance(entry, HabitTemplate):
            return Habit(
                name=entry.name,
                description=entry.description,
                icon=entry.icon,
                color=entry.color,
                category=entry.category,
                type=entry.type,
                frequency=entry.frequency,
                target_value=entry.target_value,
                unit=entry.unit,
                scheduled_days=list(entry.scheduled_days),
                scheduled_time=entry.scheduled_time,
                duration=entry.duration,
                current_streak=0,
                longest_streak=0,
                total_completed=0,
                start_date=now.date(),
                status="active",
                user_id=user_id,
                workspace_id=workspace_id,
                meta=dict(tag),
            )
        assert_never(entry)

    @staticmethod
    def _collect(items: InstalledItems, entity: Block | Goal | Habit) -> None:
        if isinstance(entity, Habit):
            items.habits.append(InstalledItem(
                id=entity.id, kind="habit", title=entity.name, workspace_id=entity.workspace_id,
            ))
        elif isinstance(entity, Goal):
            items.goals.append(InstalledItem(
                id=entity.id, kind="goal", title=entity.title, workspace_id=entity.workspace_id,
            ))
        else:
            items.tasks.append(InstalledItem(
                id=entity.id, kind="task", title=entity.title, workspace_id=entity.workspace_id,
            ))
