"""Template catalog and installation endpoints."""

from fastapi import APIRouter, status

from planner.api.dependencies import CallerContext, DbSession
from planner.schemas.template import (
    InstallRequest,
    InstallResponse,
    TemplateCreate,
    TemplateListResponse,
    TemplateResponse,
    TemplateUpdate,
)
from planner.services.templates import (
    TemplateInstaller,
    create_template,
    delete_template,
    get_template,
    list_templates,
    update_template,
)

router = APIRouter(prefix="/templates", tags=["templates"])


@router.get("", response_model=TemplateListResponse)
async def list_all(
    db: DbSession,
    context: CallerContext,
) -> TemplateListResponse:
    """Builtin templates plus published and own user templates."""
    items = await list_templates(db, context.user_id)
    return TemplateListResponse(items=items, total=len(items))


@router.post("", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create(
    data: TemplateCreate,
    db: DbSession,
    context: CallerContext,
) -> TemplateResponse:
    return await create_template(db, data, context.user_id)


@router.get("/{template_id}", response_model=TemplateResponse)
async def get(
    template_id: str,
    db: DbSession,
    context: CallerContext,
) -> TemplateResponse:
    return await get_template(db, template_id, context.user_id)


@router.patch("/{template_id}", response_model=TemplateResponse)
async def update(
    template_id: str,
    data: TemplateUpdate,
    db: DbSession,
    context: CallerContext,
) -> TemplateResponse:
    """Update a template. Only its creator may do so."""
    return await update_template(db, template_id, data, context.user_id)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete(
    template_id: str,
    db: DbSession,
    context: CallerContext,
) -> None:
    """Remove a template from the catalog. Only its creator may do so."""
    await delete_template(db, template_id, context.user_id)


@router.post("/{template_id}/install", response_model=InstallResponse)
async def install(
    template_id: str,
    db: DbSession,
    context: CallerContext,
    request: InstallRequest | None = None,
) -> InstallResponse:
    """Expand a template into new tasks, goals and habits.

    Each call creates an independent copy with fresh ids.
    """
    installer = TemplateInstaller(db, context)
    customizations = request.customizations if request else None
    return await installer.install(template_id, customizations)
