"""
Profiles and the follow graph.
"""
from helpers import ApiTestCase


class TestProfiles(ApiTestCase):
    async def test_create_and_fetch(self):
        user = await self.create_user("lifter")
        assert user["followers_count"] == 0
        assert user["posts_count"] == 0

        fetched = await self.get_user(user["id"])
        assert fetched["username"] == "lifter"
        assert fetched["is_following"] is False

    async def test_duplicate_username(self):
        await self.create_user("lifter")
        resp = await self.client.post("/users/", json={"username": "lifter"})
        assert resp.status_code == 409

    async def test_unknown_user(self):
        resp = await self.client.get("/users/nope")
        assert resp.status_code == 404

    async def test_search(self):
        await self.create_user("runner_ana")
        await self.create_user("runner_bo")
        await self.create_user("swimmer")
        resp = await self.client.get("/users/search", params={"q": "runner"})
        assert resp.status_code == 200
        assert sorted(u["username"] for u in resp.json()) == ["runner_ana", "runner_bo"]


class TestFollows(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.ana = await self.create_user("ana")
        self.bob = await self.create_user("bob")

    async def _follow(self, follower, following, path="/users/follow"):
        return await self.client.post(
            path, json={"follower_id": follower["id"], "following_id": following["id"]}
        )

    async def test_follow_updates_both_counters(self):
        resp = await self._follow(self.ana, self.bob)
        assert resp.status_code == 204

        assert (await self.get_user(self.ana["id"]))["following_count"] == 1
        assert (await self.get_user(self.bob["id"]))["followers_count"] == 1

        viewed = await self.client.get(f"/users/{self.bob['id']}", params={"viewer_id": self.ana["id"]})
        assert viewed.json()["is_following"] is True

    async def test_follow_twice_is_idempotent(self):
        await self._follow(self.ana, self.bob)
        resp = await self._follow(self.ana, self.bob)
        assert resp.status_code == 204
        assert (await self.get_user(self.bob["id"]))["followers_count"] == 1

    async def test_cannot_follow_self(self):
        resp = await self._follow(self.ana, self.ana)
        assert resp.status_code == 400

    async def test_follow_unknown_user(self):
        resp = await self._follow(self.ana, {"id": "ghost"})
        assert resp.status_code == 404

    async def test_unfollow(self):
        await self._follow(self.ana, self.bob)
        resp = await self._follow(self.ana, self.bob, path="/users/unfollow")
        assert resp.status_code == 204
        assert (await self.get_user(self.bob["id"]))["followers_count"] == 0
        assert (await self.get_user(self.ana["id"]))["following_count"] == 0

    async def test_unfollow_without_edge_keeps_counts(self):
        resp = await self._follow(self.ana, self.bob, path="/users/unfollow")
        assert resp.status_code == 204
        assert (await self.get_user(self.bob["id"]))["followers_count"] == 0

    async def test_cannot_unfollow_self(self):
        resp = await self._follow(self.ana, self.ana, path="/users/unfollow")
        assert resp.status_code == 400

    async def test_unfollow_unknown_user(self):
        resp = await self._follow(self.ana, {"id": "ghost"}, path="/users/unfollow")
        assert resp.status_code == 404
        assert (await self.get_user(self.ana["id"]))["following_count"] == 0

    async def test_followers_and_following_lists(self):
        await self._follow(self.ana, self.bob)
        followers = await self.client.get(f"/users/{self.bob['id']}/followers")
        following = await self.client.get(f"/users/{self.ana['id']}/following")
        assert [u["id"] for u in followers.json()] == [self.ana["id"]]
        assert [u["id"] for u in following.json()] == [self.bob["id"]]

    async def test_follow_notifies_target(self):
        await self._follow(self.ana, self.bob)
        resp = await self.client.get("/notifications/", params={"user_id": self.bob["id"]})
        body = resp.json()
        assert body["unread_count"] == 1
        assert body["notifications"][0]["type"] == "follow"
        assert body["notifications"][0]["actor"]["username"] == "ana"

    async def test_suggestions_skip_self_and_followed(self):
        cyd = await self.create_user("cyd")
        await self._follow(self.ana, self.bob)
        await self._follow(cyd, self.bob)

        resp = await self.client.get(f"/users/{self.ana['id']}/suggestions")
        ids = [u["id"] for u in resp.json()]
        assert self.ana["id"] not in ids
        assert self.bob["id"] not in ids
        assert ids == [cyd["id"]]

        resp = await self.client.get(f"/users/{cyd['id']}/suggestions")
        suggestions = resp.json()
        # bob has two followers, ana none; cyd already follows bob
        assert [u["id"] for u in suggestions] == [self.ana["id"]]
        assert suggestions[0]["follower_count"] == 0
