from datetime import datetime, timedelta
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import app.models.base  # noqa: F401
from app.core import clock
from app.core.database import Base, get_db
from app.core.permissions import Actor
from app.core.security import create_access_token
from app.models.enums import UserRole
from app.models.group import Group, GroupMember
from app.models.user import User
from app.schemas.task import TaskCreate
from app.services.notification_service import notification_service
from app.services.task_service import task_service

FROZEN_NOW = datetime(2030, 1, 15, 12, 0, 0)


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def now(monkeypatch) -> FrozenClock:
    frozen = FrozenClock(FROZEN_NOW)
    monkeypatch.setattr(clock, "utcnow", frozen)
    return frozen


@pytest.fixture(autouse=True)
def delivered(monkeypatch) -> list:
    """Collects pushed notifications instead of emitting on socket.io."""
    sent = []

    async def record(notification):
        sent.append(notification)

    monkeypatch.setattr(notification_service, "delivery", record)
    return sent


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'classroom.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_group(db):
    counter = {"n": 0}

    async def _make(name: Optional[str] = None) -> Group:
        counter["n"] += 1
        group = Group(name=name or f"Group {counter['n']}")
        db.add(group)
        await db.commit()
        return group

    return _make


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make(role: UserRole = UserRole.STUDENT, groups=()) -> User:
        counter["n"] += 1
        user = User(
            role=role,
            email=f"{role.value}{counter['n']}@school.test",
            first_name=role.value.title(),
            last_name=str(counter["n"]),
        )
        db.add(user)
        await db.flush()
        for group in groups:
            db.add(GroupMember(group_id=group.id, user_id=user.id))
        await db.commit()
        return user

    return _make


def actor_for(user: User) -> Actor:
    return Actor(id=user.id, role=user.role)


@pytest.fixture
def make_task(db):
    async def _make(teacher: User, groups, **overrides):
        data = {
            "title": "Essay",
            "description": "Write an essay",
            "assigned_groups": [g.id for g in groups],
            "deadline": clock.utcnow() + timedelta(hours=1),
            "allow_late_submission": False,
            "max_points": 10,
        }
        data.update(overrides)
        return await task_service.create_task(db, actor_for(teacher), TaskCreate(**data))

    return _make


@pytest.fixture
async def classroom(make_group, make_user):
    """One teacher, group G1 with two students, and a student in no group."""
    g1 = await make_group("G1")
    teacher = await make_user(UserRole.TEACHER)
    s1 = await make_user(UserRole.STUDENT, groups=[g1])
    s2 = await make_user(UserRole.STUDENT, groups=[g1])
    loner = await make_user(UserRole.STUDENT)
    return {"g1": g1, "teacher": teacher, "s1": s1, "s2": s2, "loner": loner}


def auth_headers(user: User) -> dict:
    token = create_access_token(str(user.id), user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(session_factory):
    from app.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
