"""
Batch scoring endpoints under /rank.
"""
import math

from helpers import ApiTestCase

NOW = "2024-06-01T12:00:00Z"


class TestRankApi(ApiTestCase):
    async def test_comments(self):
        resp = await self.client.post(
            "/rank/comments",
            json={
                "now": NOW,
                "candidates": [
                    {"id": "low", "likes_count": 2, "created_at": "2024-06-01T11:00:00Z"},
                    {"id": "pin", "pinned": True, "created_at": "2024-05-01T00:00:00Z"},
                    {"id": "high", "likes_count": 10, "created_at": "2024-06-01T11:00:00Z"},
                ],
            },
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["kind"] == "comments"
        assert [s["id"] for s in body["scores"]] == ["pin", "high", "low"]
        assert body["scores"][0] == {"id": "pin", "score": None, "pinned": True}
        assert body["scores"][1]["score"] == round(20 / 3 ** 1.5, 6)
        assert body["scores"][2]["score"] == round(4 / 3 ** 1.5, 6)

    async def test_posts(self):
        resp = await self.client.post(
            "/rank/posts",
            json={
                "now": NOW,
                "candidates": [
                    {"id": "none", "created_at": NOW},
                    {"id": "some", "likes": 2, "comments": 1, "created_at": "2024-06-01T10:00:00Z"},
                ],
            },
        )
        scores = resp.json()["scores"]
        assert [s["id"] for s in scores] == ["some", "none"]
        assert scores[0]["score"] == round(6 / 4 ** 1.4, 6)
        assert scores[1]["score"] == 0

    async def test_routines(self):
        resp = await self.client.post(
            "/rank/routines",
            json={
                "now": NOW,
                "candidates": [
                    {"id": "a", "save_count": 1, "created_at": "2024-05-22T12:00:00Z"},
                    {"id": "b", "usage_count": 1, "like_count": 1, "created_at": "2024-06-01T08:00:00Z"},
                ],
            },
        )
        scores = resp.json()["scores"]
        assert [s["id"] for s in scores] == ["b", "a"]
        assert scores[0]["score"] == round(3 / math.log(2), 6)
        assert scores[1]["score"] == round(3 / math.log(11), 6)

    async def test_negative_counts_rejected(self):
        resp = await self.client.post(
            "/rank/posts",
            json={"candidates": [{"id": "x", "likes": -1, "created_at": NOW}]},
        )
        assert resp.status_code == 422

    async def test_empty_batch(self):
        resp = await self.client.post("/rank/comments", json={"candidates": []})
        assert resp.json() == {"kind": "comments", "scores": []}

    async def test_health(self):
        resp = await self.client.get("/health")
        assert resp.json()["status"] == "ok"
