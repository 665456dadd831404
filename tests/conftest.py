"""Shared fixtures: a throwaway SQLite database per test, seeded rows, an API client."""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from api.main import app
from core.database import build_engine, build_session_factory, get_session, init_db
from verticals.construction.billing import BillingTrigger
from verticals.construction.models.db_models import Project, Task, User
from verticals.construction.service import TaskService, get_event_bus
from verticals.construction.subscribers import build_event_bus


class RecordingBillingTrigger(BillingTrigger):
    """Keeps every billing signal instead of sending it anywhere."""

    def __init__(self):
        self.calls = []

    async def notify_task_completed(self, task):
        self.calls.append(task)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'tracker.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def billing():
    return RecordingBillingTrigger()


@pytest.fixture
def events(billing):
    return build_event_bus(billing)


@pytest.fixture
def service(session, events):
    return TaskService(session, events)


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------

async def make_project(session, name="Kitchen remodel", progress=0):
    project = Project(name=name, progress=progress)
    session.add(project)
    await session.commit()
    return project.id


async def make_user(session, email="sam@example.com", first_name="Sam", last_name="Reyes"):
    user = User(email=email, first_name=first_name, last_name=last_name)
    session.add(user)
    await session.commit()
    return user.id


async def make_task(session, project_id, title="Frame walls", status="todo", **fields):
    task = Task(project_id=project_id, title=title, status=status, **fields)
    session.add(task)
    await session.commit()
    return task.id


async def project_progress(session_factory, project_id):
    async with session_factory() as s:
        project = await s.get(Project, project_id)
        return project.progress


@pytest_asyncio.fixture
async def project_id(session):
    return await make_project(session)


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def client(session_factory, events):
    async def override_session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_event_bus] = lambda: events
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
