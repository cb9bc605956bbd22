"""
Notification inbox endpoints and the notify() / edge-insert helpers.
"""
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from fitfeed import engagement, notifications
from fitfeed.models import Notification, Post, PostLike, User

from helpers import ApiTestCase


class TestInbox(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.ana = await self.create_user("ana")
        self.bob = await self.create_user("bob")
        self.cyd = await self.create_user("cyd")
        for follower in (self.bob, self.cyd):
            await self.client.post(
                "/users/follow", json={"follower_id": follower["id"], "following_id": self.ana["id"]}
            )

    async def _inbox(self):
        resp = await self.client.get("/notifications/", params={"user_id": self.ana["id"]})
        assert resp.status_code == 200
        return resp.json()

    async def test_mark_one_read(self):
        inbox = await self._inbox()
        assert inbox["unread_count"] == 2
        first = inbox["notifications"][0]["id"]

        resp = await self.client.post(f"/notifications/{first}/read", json={"user_id": self.ana["id"]})
        assert resp.status_code == 204
        assert (await self._inbox())["unread_count"] == 1

    async def test_mark_all_read(self):
        resp = await self.client.post("/notifications/read-all", json={"user_id": self.ana["id"]})
        assert resp.status_code == 204
        inbox = await self._inbox()
        assert inbox["unread_count"] == 0
        assert all(n["read"] for n in inbox["notifications"])

    async def test_delete_and_clear(self):
        first = (await self._inbox())["notifications"][0]["id"]
        resp = await self.client.delete(f"/notifications/{first}", params={"user_id": self.ana["id"]})
        assert resp.status_code == 204
        assert len((await self._inbox())["notifications"]) == 1

        resp = await self.client.delete("/notifications/", params={"user_id": self.ana["id"]})
        assert resp.status_code == 204
        assert (await self._inbox())["notifications"] == []

    async def test_unknown_notification(self):
        resp = await self.client.post("/notifications/missing/read", json={"user_id": self.ana["id"]})
        assert resp.status_code == 404

    async def test_only_recipient_can_manage(self):
        first = (await self._inbox())["notifications"][0]["id"]

        resp = await self.client.post(f"/notifications/{first}/read", json={"user_id": self.bob["id"]})
        assert resp.status_code == 403
        resp = await self.client.delete(f"/notifications/{first}", params={"user_id": self.bob["id"]})
        assert resp.status_code == 403

        inbox = await self._inbox()
        assert inbox["unread_count"] == 2
        assert len(inbox["notifications"]) == 2


class TestNotify(ApiTestCase):
    async def test_never_to_self(self):
        async with self.Session() as session:
            result = await notifications.notify(
                session, recipient_id="u1", actor_id="u1", type=notifications.FOLLOW
            )
            await session.commit()
            assert result is None
            assert await session.scalar(select(func.count()).select_from(Notification)) == 0

    async def test_unknown_type(self):
        async with self.Session() as session:
            with pytest.raises(ValueError):
                await notifications.notify(session, recipient_id="a", actor_id="b", type="poke")

    async def test_storage_failure_is_swallowed(self):
        class BrokenSession:
            def begin_nested(self):
                raise OperationalError("SAVEPOINT", {}, Exception("database is locked"))

        result = await notifications.notify(
            BrokenSession(), recipient_id="a", actor_id="b", type=notifications.POST_LIKE
        )
        assert result is None


class TestEdgeInsert(ApiTestCase):
    async def test_duplicate_edge_is_absorbed(self):
        ana = await self.create_user("ana")
        post = await self.create_post(ana["id"])

        async with self.Session() as session:
            session.add(PostLike(post_id=post["id"], user_id=ana["id"]))
            await session.commit()

        async with self.Session() as session:
            inserted = await engagement._insert_edge(
                session, PostLike(post_id=post["id"], user_id=ana["id"])
            )
            await session.commit()
            assert inserted is False
            count = await session.scalar(select(func.count()).select_from(PostLike))
            assert count == 1

    async def test_counter_never_negative(self):
        ana = await self.create_user("ana")
        async with self.Session() as session:
            value = await engagement.bump_counter(session, User, "followers_count", ana["id"], -1)
            await session.commit()
            assert value == 0

    async def test_delete_edge_reports_missing_row(self):
        ana = await self.create_user("ana")
        post = await self.create_post(ana["id"])
        async with self.Session() as session:
            session.add(PostLike(post_id=post["id"], user_id=ana["id"]))
            await session.commit()

        async with self.Session() as session:
            keys = {"post_id": post["id"], "user_id": ana["id"]}
            assert await engagement._delete_edge(session, PostLike, **keys) is True
            assert await engagement._delete_edge(session, PostLike, **keys) is False
            await session.commit()

    async def test_unlike_after_concurrent_unlike_counts_once(self):
        ana = await self.create_user("ana")
        fan = await self.create_user("fan")
        post_id = await self.insert_post(ana["id"], hours_ago=1, likes=1)
        original_get = AsyncSession.get

        async def stale_get(session, model, ident, **kw):
            # The like row was seen, then another request removed it
            if model is PostLike:
                return PostLike(post_id=ident[0], user_id=ident[1])
            return await original_get(session, model, ident, **kw)

        with patch.object(AsyncSession, "get", stale_get):
            async with self.Session() as session:
                liked, count = await engagement.toggle_post_like(session, post_id, fan["id"])
                await session.commit()

        assert (liked, count) == (False, 1)
        async with self.Session() as session:
            assert (await session.get(Post, post_id)).likes_count == 1
