from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AI_PROVIDER", "local")
os.environ.setdefault("EMAIL_PROVIDER", "local")

import pytest
from httpx import ASGITransport, AsyncClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

from auratask.ai.providers import LocalDeterministicProvider
from auratask.collaborators import Collaborators
from auratask.config import settings
from auratask.db import SessionLocal, engine
from auratask.deps import reset_collaborators
from auratask.main import app
from auratask.models import Base, Organization, User, utcnow
from auratask.notifications.service import LocalEmailProvider
from auratask.permissions import Actor


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
async def db_schema() -> None:
  url = settings.database_url
  if not url.startswith("sqlite") and "test" not in url.rsplit("/", 1)[-1]:
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to sqlite or a *_test database (e.g. auratask_test)."
    )
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.create_all)
  yield
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.drop_all)
  await engine.dispose()


@pytest.fixture
async def collab() -> Collaborators:
  c = Collaborators(email=LocalEmailProvider(), ai=LocalDeterministicProvider())
  reset_collaborators(c)
  yield c
  await c.dispatcher.drain()
  reset_collaborators(None)


@pytest.fixture
async def client(db_schema: None, collab: Collaborators) -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


@dataclass
class Team:
  org_id: str
  owner: User
  admin: User
  alice: User  # MANAGER
  dave: User  # MANAGER
  bob: User  # EMPLOYEE
  carol: User  # EMPLOYEE


async def seed_team(name: str = "Acme") -> Team:
  async with SessionLocal() as db:
    now = utcnow()
    org = Organization(name=name, trial_start_date=now, trial_end_date=now)
    db.add(org)
    await db.flush()

    def member(n: str, role: str) -> User:
      u = User(organization_id=org.id, name=n, email=f"{n.lower()}@{name.lower()}.test", role=role, tasks_count=0)
      db.add(u)
      return u

    team = Team(
      org_id=org.id,
      owner=member("Olivia", "OWNER"),
      admin=member("Adam", "ADMIN"),
      alice=member("Alice", "MANAGER"),
      dave=member("Dave", "MANAGER"),
      bob=member("Bob", "EMPLOYEE"),
      carol=member("Carol", "EMPLOYEE"),
    )
    await db.commit()
    return team


@pytest.fixture
async def team(db_schema: None) -> Team:
  return await seed_team()


def headers(u: User) -> dict[str, str]:
  return {settings.identity_actor_header: u.id, settings.identity_org_header: u.organization_id}


def actor(u: User) -> Actor:
  return Actor(id=u.id, organization_id=u.organization_id, role=u.role, name=u.name, email=u.email)


async def fetch_user(user_id: str) -> User:
  async with SessionLocal() as db:
    u = await db.get(User, user_id)
    assert u is not None
    return u
