"""Test plan import and draft conversion."""
import pytest

from core.errors import CycleError, InternalError, NotFoundError, ValidationError
from patterns.domain_config import ImportConfig
from tests.conftest import project_progress
from verticals.construction.importer import (
    convert_drafts,
    draft_title,
    import_plan,
    plan_item_to_task,
    validate_drafts,
)
from verticals.construction.models.schemas import PlanItem, TaskDraft
from verticals.construction.repository import DependencyRepository, TaskRepository

SETTINGS = ImportConfig()


def _items(*rows):
    return [PlanItem.model_validate(row) for row in rows]


def _drafts(*rows):
    return [TaskDraft.model_validate(row) for row in rows]


# ---------------------------------------------------------------------------
# Plan import
# ---------------------------------------------------------------------------

def test_plan_item_mapping():
    task = plan_item_to_task(
        PlanItem(id="p1", name="Excavate", start="2024-04-01T08:00:00Z", end="2024-04-03", progress=100),
        "medium",
    )
    assert task.title == "Excavate"
    assert task.status == "done"
    assert task.progress == 100
    assert task.start_date.isoformat() == "2024-04-01"
    assert task.due_date.isoformat() == "2024-04-03"


def test_plan_item_progress_is_rounded():
    task = plan_item_to_task(PlanItem(name="x", start="2024-01-01", end="2024-01-02", progress=42.6), "low")
    assert task.progress == 43
    assert task.status == "in_progress"
    assert task.priority == "low"


@pytest.mark.asyncio
async def test_import_skips_incomplete_items(service, project_id):
    result = await import_plan(
        service,
        project_id,
        _items(
            {"id": "1", "name": "Demolition", "start": "2024-05-01", "end": "2024-05-02", "progress": 100},
            {"id": "2", "name": "Framing", "end": "2024-05-09", "progress": 20},
            {"id": 3, "name": "Electrical", "start": "2024-05-10", "end": "2024-05-14"},
        ),
        SETTINGS,
    )

    assert result["createdCount"] == 2
    assert [t["title"] for t in result["tasks"]] == ["Demolition", "Electrical"]
    assert [t["status"] for t in result["tasks"]] == ["done", "todo"]
    assert result["skipped"] == [{"index": 1, "id": "2", "reason": "Missing start"}]
    assert len(await service.list_tasks(project_id)) == 2


@pytest.mark.asyncio
async def test_import_does_not_touch_progress(service, session_factory, project_id):
    await import_plan(
        service,
        project_id,
        _items({"name": "Done already", "start": "2024-05-01", "end": "2024-05-02", "progress": 100}),
        SETTINGS,
    )
    assert await project_progress(session_factory, project_id) == 0


@pytest.mark.asyncio
async def test_import_keeps_items_before_a_bad_one(service, project_id):
    items = _items(
        {"name": "Good", "start": "2024-05-01", "end": "2024-05-02"},
        {"name": "Bad", "start": "someday", "end": "2024-05-02"},
    )
    with pytest.raises(ValidationError) as exc_info:
        await import_plan(service, project_id, items, SETTINGS)
    assert "index 1" in exc_info.value.message
    assert [t["title"] for t in await service.list_tasks(project_id)] == ["Good"]


@pytest.mark.asyncio
async def test_import_limit(service, project_id):
    items = _items(*({"name": f"T{i}", "start": "2024-01-01", "end": "2024-01-02"} for i in range(3)))
    with pytest.raises(ValidationError):
        await import_plan(service, project_id, items, ImportConfig(max_items=2))
    assert await service.list_tasks(project_id) == []


@pytest.mark.asyncio
async def test_import_into_missing_project(service):
    with pytest.raises(NotFoundError):
        await import_plan(service, 404, _items({"name": "x", "start": "2024-01-01", "end": "2024-01-02"}), SETTINGS)


# ---------------------------------------------------------------------------
# Draft conversion
# ---------------------------------------------------------------------------

def test_draft_title_skips_missing_parts():
    assert draft_title(TaskDraft(key="a", taskName="Pour", phase="Foundation", trade="Concrete")) == (
        "Foundation - Concrete - Pour"
    )
    assert draft_title(TaskDraft(key="a", taskName="Pour")) == "Pour"


def test_validate_drafts_unknown_and_duplicate_keys():
    drafts = _drafts(
        {"key": "a", "taskName": "One"},
        {"key": "a", "taskName": "Two"},
        {"key": "b", "taskName": "Three", "dependsOn": ["zzz", "b"]},
    )
    with pytest.raises(ValidationError) as exc_info:
        validate_drafts(drafts)
    fields = exc_info.value.details["fieldErrors"]
    assert "drafts.1.key" in fields
    assert len(fields["drafts.2.dependsOn"]) == 2


def test_validate_drafts_cycle():
    drafts = _drafts(
        {"key": "a", "taskName": "One", "dependsOn": ["b"]},
        {"key": "b", "taskName": "Two", "dependsOn": ["a"]},
        {"key": "c", "taskName": "Three"},
    )
    with pytest.raises(CycleError) as exc_info:
        validate_drafts(drafts)
    assert set(exc_info.value.details["keys"]) == {"a", "b"}


@pytest.mark.asyncio
async def test_convert_drafts_creates_tasks_and_edges(service, project_id):
    drafts = _drafts(
        {"key": "footing", "taskName": "Pour footings", "phase": "Foundation", "durationDays": 2},
        {"key": "frame", "taskName": "Frame walls", "trade": "Carpentry", "dependsOn": ["footing"]},
        {"key": "roof", "taskName": "Roof", "dependsOn": ["frame", "footing"]},
    )

    result = await convert_drafts(service, project_id, drafts, SETTINGS)

    assert result["createdCount"] == 3
    footing, frame, roof = result["tasks"]
    assert footing["title"] == "Foundation - Pour footings"
    assert footing["estimatedHours"] == 16.0
    assert footing["status"] == "todo"
    assert frame["title"] == "Carpentry - Frame walls"
    pairs = {(e["predecessorId"], e["successorId"]) for e in result["dependencies"]}
    assert pairs == {(footing["id"], frame["id"]), (frame["id"], roof["id"]), (footing["id"], roof["id"])}
    assert all(e["type"] == "FS" for e in result["dependencies"])


@pytest.mark.asyncio
async def test_convert_drafts_with_cycle_creates_nothing(service, project_id):
    drafts = _drafts(
        {"key": "a", "taskName": "One", "dependsOn": ["b"]},
        {"key": "b", "taskName": "Two", "dependsOn": ["a"]},
    )
    with pytest.raises(CycleError):
        await convert_drafts(service, project_id, drafts, SETTINGS)
    assert await service.list_tasks(project_id) == []


@pytest.mark.asyncio
async def test_convert_drafts_rolls_back_on_failure(service, session_factory, project_id, monkeypatch):
    async def broken(self, predecessor_id, successor_id, dependency_type="FS"):
        raise RuntimeError("constraint exploded")

    monkeypatch.setattr(DependencyRepository, "add", broken)
    drafts = _drafts(
        {"key": "a", "taskName": "One"},
        {"key": "b", "taskName": "Two", "dependsOn": ["a"]},
    )

    with pytest.raises(InternalError):
        await convert_drafts(service, project_id, drafts, SETTINGS)

    async with session_factory() as fresh:
        assert await TaskRepository(fresh).count({"project_id": project_id}) == 0


def test_plan_item_status_follows_rounded_progress():
    nearly = plan_item_to_task(PlanItem(name="x", start="2024-01-01", end="2024-01-02", progress=99.6), "medium")
    assert (nearly.progress, nearly.status) == (100, "done")

    barely = plan_item_to_task(PlanItem(name="x", start="2024-01-01", end="2024-01-02", progress=0.4), "medium")
    assert (barely.progress, barely.status) == (0, "todo")


@pytest.mark.asyncio
async def test_import_skips_blank_name(service, project_id):
    result = await import_plan(
        service,
        project_id,
        _items(
            {"name": "Demolition", "start": "2024-05-01", "end": "2024-05-02"},
            {"name": "   ", "start": "2024-05-03", "end": "2024-05-04"},
            {"name": "Electrical", "start": "2024-05-10", "end": "2024-05-14"},
        ),
        SETTINGS,
    )

    assert result["createdCount"] == 2
    assert [t["title"] for t in result["tasks"]] == ["Demolition", "Electrical"]
    assert result["skipped"] == [{"index": 1, "id": None, "reason": "Missing name"}]
