"""Construction API router: project-scoped tasks and dependencies.

Mounted under /api/projects/{project_id}/tasks:
- Task CRUD with assignee details
- Dependency edges (list, idempotent create, remove)
- Publication gate (publish / unpublish all tasks)
- Bulk plan import and atomic draft conversion

Static paths are declared before ``/{task_id}`` so they are not captured
by the path parameter.
"""

from fastapi import APIRouter, Body, Depends, Response

from verticals.construction.config import config
from verticals.construction.importer import convert_drafts, import_plan
from verticals.construction.models.schemas import (
    DependencyCreate,
    DependencyRef,
    DraftConversionRequest,
    PlanItem,
    TaskCreate,
    TaskUpdate,
)
from verticals.construction.service import TaskService, get_task_service

router = APIRouter()


# ============================================================================
# Task collection
# ============================================================================

@router.get("")
async def list_tasks(
    project_id: int,
    service: TaskService = Depends(get_task_service),
):
    """All tasks of the project, with assignee details."""
    return await service.list_tasks(project_id)


@router.post("", status_code=201)
async def create_task(
    project_id: int,
    request: TaskCreate,
    service: TaskService = Depends(get_task_service),
):
    """Create a task in the project."""
    return await service.create_task(project_id, request)


@router.get("/published")
async def list_published_tasks(
    project_id: int,
    service: TaskService = Depends(get_task_service),
):
    """Client-facing view: only published tasks."""
    return await service.list_published_tasks(project_id)


# ============================================================================
# Dependency Endpoints
# ============================================================================

@router.get("/dependencies")
async def list_project_dependencies(
    project_id: int,
    service: TaskService = Depends(get_task_service),
):
    """Every edge whose endpoints both belong to the project."""
    return await service.list_dependencies_for_project(project_id)


@router.post("/dependencies", status_code=201)
async def create_dependency(
    project_id: int,
    request: DependencyCreate,
    service: TaskService = Depends(get_task_service),
):
    """Add ``predecessor -> successor``; an existing pair is returned as is."""
    return await service.add_dependency(project_id, request)


@router.delete("/dependencies", status_code=204)
async def delete_dependency(
    project_id: int,
    request: DependencyRef,
    service: TaskService = Depends(get_task_service),
):
    """Remove an edge identified by its two endpoints."""
    await service.remove_dependency(project_id, request)
    return Response(status_code=204)


# ============================================================================
# Publication Endpoints
# ============================================================================

@router.post("/publish")
async def publish_tasks(
    project_id: int,
    service: TaskService = Depends(get_task_service),
):
    return await service.set_published(project_id, True)


@router.post("/unpublish")
async def unpublish_tasks(
    project_id: int,
    service: TaskService = Depends(get_task_service),
):
    return await service.set_published(project_id, False)


# ============================================================================
# Bulk Endpoints
# ============================================================================

@router.post("/import", status_code=201)
async def import_tasks(
    project_id: int,
    items: list[PlanItem] = Body(...),
    service: TaskService = Depends(get_task_service),
):
    """Create tasks from an external plan; incomplete items are skipped."""
    return await import_plan(service, project_id, items, config.imports)


@router.post("/convert-drafts", status_code=201)
async def convert_task_drafts(
    project_id: int,
    request: DraftConversionRequest,
    service: TaskService = Depends(get_task_service),
):
    """Turn drafted tasks and their dependencies into real ones atomically."""
    return await convert_drafts(service, project_id, request.drafts, config.imports)


# ============================================================================
# Single Task Endpoints
# ============================================================================

@router.get("/{task_id}")
async def get_task(
    project_id: int,
    task_id: int,
    service: TaskService = Depends(get_task_service),
):
    return await service.get_task(project_id, task_id)


@router.put("/{task_id}")
async def update_task(
    project_id: int,
    task_id: int,
    request: TaskUpdate,
    service: TaskService = Depends(get_task_service),
):
    """Partial update; a status change refreshes project progress."""
    return await service.update_task(project_id, task_id, request)


@router.delete("/{task_id}", status_code=204)
async def delete_task(
    project_id: int,
    task_id: int,
    service: TaskService = Depends(get_task_service),
):
    """Delete the task and every dependency edge touching it."""
    await service.delete_task(project_id, task_id)
    return Response(status_code=204)


@router.get("/{task_id}/dependencies")
async def list_task_dependencies(
    project_id: int,
    task_id: int,
    service: TaskService = Depends(get_task_service),
):
    """Edges where the task is predecessor or successor."""
    return await service.list_dependencies_for_task(project_id, task_id)
