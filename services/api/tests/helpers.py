"""
Shared test plumbing: a fresh in-memory database per test, the FastAPI app
wired to it, and in-process stand-ins for Redis and MinIO.
"""
import unittest
from datetime import timedelta
from unittest.mock import patch

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fitfeed.clients import redis_client, storage_client
from fitfeed.database import Base, get_db, make_engine
from fitfeed.main import app
from fitfeed.models import Post, Routine, User, utcnow


class FakePipeline:
    def __init__(self, redis):
        self._redis = redis
        self._calls = []

    def __getattr__(self, name):
        def queue(*args):
            self._calls.append((name, args))
            return self
        return queue

    async def execute(self):
        results = []
        for name, args in self._calls:
            results.append(await getattr(self._redis, name)(*args))
        self._calls = []
        return results


class FakeRedis:
    """Just enough of redis.asyncio for the recent-searches list."""

    def __init__(self):
        self.lists: dict[str, list[str]] = {}
        self.ttls: dict[str, int] = {}

    def pipeline(self):
        return FakePipeline(self)

    async def lrange(self, key, start, stop):
        items = self.lists.get(key, [])
        return items[start:] if stop == -1 else items[start:stop + 1]

    async def lrem(self, key, count, value):
        items = self.lists.get(key, [])
        kept = [item for item in items if item != value]
        self.lists[key] = kept
        return len(items) - len(kept)

    async def lpush(self, key, value):
        self.lists.setdefault(key, []).insert(0, value)
        return len(self.lists[key])

    async def ltrim(self, key, start, stop):
        self.lists[key] = self.lists.get(key, [])[start:stop + 1]
        return True

    async def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    async def delete(self, key):
        self.ttls.pop(key, None)
        return 1 if self.lists.pop(key, None) is not None else 0


class FakeS3:
    def __init__(self):
        self.objects: dict[str, bytes] = {}

    def put_object(self, Bucket, Key, Body, ContentType):
        self.objects[Key] = Body.read()
        return {}

    def delete_object(self, Bucket, Key):
        self.objects.pop(Key, None)
        return {}


class ApiTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine = make_engine("sqlite+aiosqlite://")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.Session = async_sessionmaker(
            bind=self.engine, class_=AsyncSession, expire_on_commit=False
        )

        async def override_get_db():
            async with self.Session() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        app.dependency_overrides[get_db] = override_get_db

        self.redis = FakeRedis()
        self.s3 = FakeS3()
        for patcher in (
            patch.object(redis_client, "_redis", self.redis),
            patch.object(storage_client, "_s3", self.s3),
        ):
            patcher.start()
            self.addCleanup(patcher.stop)

        self.client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    async def asyncTearDown(self):
        await self.client.aclose()
        app.dependency_overrides.clear()
        await self.engine.dispose()

    # ── Fixtures ──────────────────────────────────────────────────────────

    async def create_user(self, username: str) -> dict:
        resp = await self.client.post("/users/", json={"username": username, "name": username.title()})
        assert resp.status_code == 201, resp.text
        return resp.json()

    async def create_post(self, user_id: str, description: str = "leg day", **extra) -> dict:
        resp = await self.client.post(
            "/posts/", json={"user_id": user_id, "description": description, **extra}
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    async def get_user(self, user_id: str) -> dict:
        resp = await self.client.get(f"/users/{user_id}")
        assert resp.status_code == 200, resp.text
        return resp.json()

    async def insert_post(self, user_id: str, hours_ago: float, likes: int = 0) -> str:
        """Write a post row directly with a backdated created_at."""
        async with self.Session() as session:
            post = Post(
                user_id=user_id,
                description=f"{hours_ago}h old",
                likes_count=likes,
                created_at=utcnow() - timedelta(hours=hours_ago),
            )
            session.add(post)
            await session.commit()
            return post.id

    async def insert_routine(self, user_id: str, days_ago: float = 0, **counters) -> str:
        async with self.Session() as session:
            routine = Routine(
                name=counters.pop("name", "Push day"),
                user_id=user_id,
                created_at=utcnow() - timedelta(days=days_ago),
                **counters,
            )
            session.add(routine)
            await session.commit()
            return routine.id

    async def load_user(self, user_id: str) -> User:
        async with self.Session() as session:
            return await session.get(User, user_id)
