"""
Routines: creation, copies, likes/saves/usage counters and trending.
"""
from fitfeed.models import Exercise, RoutineExercise

from helpers import ApiTestCase


class TestRoutines(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.coach = await self.create_user("coach")
        self.ana = await self.create_user("ana")

    async def _create(self, user, name="Upper A", exercises=None, **extra):
        body = {"user_id": user["id"], "name": name, "exercises": exercises or [], **extra}
        resp = await self.client.post("/routines/", json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()

    async def test_create_keeps_exercise_order(self):
        routine = await self._create(
            self.coach,
            exercises=[{"name": "Bench", "total_sets": 4}, {"name": "Row"}, {"name": "Curl"}],
        )
        assert [e["name"] for e in routine["exercises"]] == ["Bench", "Row", "Curl"]
        assert [e["order_position"] for e in routine["exercises"]] == [0, 1, 2]
        assert routine["is_owner"] is True
        assert routine["is_original_creator"] is True

    async def test_list_by_user(self):
        await self._create(self.coach, "A")
        await self._create(self.coach, "B")
        await self._create(self.ana, "C")
        resp = await self.client.get("/routines/", params={"user_id": self.coach["id"]})
        assert sorted(r["name"] for r in resp.json()) == ["A", "B"]

    async def test_like_and_save_toggles(self):
        routine = await self._create(self.coach)
        like = await self.client.post(f"/routines/{routine['id']}/like", json={"user_id": self.ana["id"]})
        save = await self.client.post(f"/routines/{routine['id']}/save", json={"user_id": self.ana["id"]})
        assert like.json() == {"active": True, "count": 1}
        assert save.json() == {"active": True, "count": 1}

        stats = await self.client.get(f"/routines/{routine['id']}/stats", params={"viewer_id": self.ana["id"]})
        assert stats.json() == {
            "save_count": 1,
            "usage_count": 0,
            "like_count": 1,
            "is_liked": True,
            "is_saved": True,
        }

        unsave = await self.client.post(f"/routines/{routine['id']}/save", json={"user_id": self.ana["id"]})
        assert unsave.json() == {"active": False, "count": 0}

        inbox = (await self.client.get("/notifications/", params={"user_id": self.coach["id"]})).json()
        assert sorted(n["type"] for n in inbox["notifications"]) == ["routine_like", "routine_save"]

    async def test_use_counts_up(self):
        routine = await self._create(self.coach)
        await self.client.post(f"/routines/{routine['id']}/use")
        resp = await self.client.post(f"/routines/{routine['id']}/use")
        assert resp.json() == {"active": True, "count": 2}

        most_used = await self.client.get("/routines/most-used")
        assert most_used.json()[0]["id"] == routine["id"]

    async def test_copy(self):
        routine = await self._create(self.coach, "Legs", exercises=[{"name": "Squat"}, {"name": "Lunge"}])
        resp = await self.client.post(f"/routines/{routine['id']}/copy", json={"user_id": self.ana["id"]})
        assert resp.status_code == 201
        copy = resp.json()
        assert copy["name"] == "Legs (Copy)"
        assert copy["user_id"] == self.ana["id"]
        assert copy["original_creator_id"] == self.ana["id"]
        assert copy["save_count"] == 0
        assert [e["name"] for e in copy["exercises"]] == ["Squat", "Lunge"]

        viewed = await self.client.get(f"/routines/{routine['id']}", params={"viewer_id": self.ana["id"]})
        assert viewed.json()["is_owner"] is False
        assert viewed.json()["is_original_creator"] is False

    async def test_delete_owner_only(self):
        routine = await self._create(self.coach, exercises=[{"name": "Squat"}])
        resp = await self.client.delete(f"/routines/{routine['id']}", params={"user_id": self.ana["id"]})
        assert resp.status_code == 403
        resp = await self.client.delete(f"/routines/{routine['id']}", params={"user_id": self.coach["id"]})
        assert resp.status_code == 204
        assert (await self.client.get(f"/routines/{routine['id']}")).status_code == 404

    async def test_official(self):
        await self._create(self.coach, "House", is_official=True)
        await self._create(self.ana, "Mine")
        resp = await self.client.get("/routines/official")
        assert [r["name"] for r in resp.json()] == ["House"]

    async def test_trending(self):
        fresh = await self.insert_routine(self.coach["id"], days_ago=0, name="Fresh", save_count=2)
        old = await self.insert_routine(self.coach["id"], days_ago=30, name="Old", save_count=10)
        await self.insert_routine(self.coach["id"], name="Unsaved", usage_count=100)

        async with self.Session() as session:
            bench = Exercise(name="Bench", primary_muscle_group="chest", secondary_muscle_groups=["triceps"])
            dips = Exercise(name="Dips", primary_muscle_group="triceps")
            session.add_all([bench, dips])
            await session.flush()
            session.add_all([
                RoutineExercise(routine_id=fresh, exercise_id=bench.id, name="Bench", order_position=0),
                RoutineExercise(routine_id=fresh, exercise_id=dips.id, name="Dips", order_position=1),
                RoutineExercise(routine_id=fresh, name="Plank", order_position=2),
            ])
            await session.commit()

        resp = await self.client.get("/routines/trending")
        assert resp.status_code == 200
        trending = resp.json()
        # 2 saves today: 6/ln 2 ≈ 8.66; 10 saves a month ago: 30/ln 31 ≈ 8.74
        assert [r["id"] for r in trending] == [old, fresh]
        assert trending[1]["exercises"] == ["Bench", "Dips", "Plank"]
        assert trending[1]["exercise_count"] == 3
        assert trending[1]["muscle_groups"] == ["chest", "triceps"]
        assert trending[1]["creator"]["username"] == "coach"
        assert trending[0]["trending_score"] > trending[1]["trending_score"]
