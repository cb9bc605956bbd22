"""
Workout log: saving sessions with ordered exercises and sets, routine usage,
unit conversion and per-user history.
"""
from fitfeed.models import Exercise
from fitfeed.routers.workouts import to_kg

from helpers import ApiTestCase


class TestWorkouts(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.ana = await self.create_user("ana")
        async with self.Session() as session:
            bench = Exercise(name="Bench Press", primary_muscle_group="Chest")
            session.add(bench)
            await session.commit()
            self.bench_id = bench.id

    async def _save(self, name="Push", start="2026-01-05T07:00:00", **extra):
        body = {"user_id": self.ana["id"], "name": name, "start_time": start, **extra}
        return await self.client.post("/workouts/", json=body)

    async def test_save_keeps_order(self):
        resp = await self._save(
            duration=3600,
            exercises=[
                {
                    "name": "Bench Press",
                    "exercise_id": self.bench_id,
                    "sets": [
                        {"weight": 60, "reps": 8, "is_completed": True},
                        {"weight": 70, "reps": 6, "is_completed": True},
                    ],
                },
                {"name": "Dips", "sets": [{"reps": 12, "is_completed": True}]},
            ],
        )
        assert resp.status_code == 201, resp.text
        workout = resp.json()
        assert [e["name"] for e in workout["exercises"]] == ["Bench Press", "Dips"]
        assert [e["order_position"] for e in workout["exercises"]] == [0, 1]
        assert [s["weight"] for s in workout["exercises"][0]["sets"]] == [60, 70]
        assert [s["order_index"] for s in workout["exercises"][0]["sets"]] == [0, 1]

        fetched = (await self.client.get(f"/workouts/{workout['id']}")).json()
        assert fetched == workout

    async def test_routine_use_counted(self):
        routine_id = await self.insert_routine(self.ana["id"], usage_count=2)
        resp = await self._save(routine_id=routine_id)
        assert resp.status_code == 201, resp.text
        assert resp.json()["routine_id"] == routine_id

        stats = (await self.client.get(f"/routines/{routine_id}/stats")).json()
        assert stats["usage_count"] == 3

    async def test_unknown_references(self):
        assert (await self._save(routine_id="missing")).status_code == 404
        resp = await self._save(exercises=[{"name": "Ghost", "exercise_id": "missing"}])
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Exercise not found"
        # Nothing was written
        assert (await self.client.get("/workouts/", params={"user_id": self.ana["id"]})).json() == []

    async def test_pounds_stored_as_kg(self):
        resp = await self._save(
            weight_unit="lbs",
            exercises=[{"name": "Squat", "sets": [{"weight": 225, "reps": 5, "is_completed": True}]}],
        )
        assert resp.json()["exercises"][0]["sets"][0]["weight"] == to_kg(225, "lbs") == 102.058

    async def test_history_newest_first_with_volume(self):
        await self._save(name="Older", start="2026-01-01T07:00:00")
        await self._save(
            name="Newer",
            start="2026-01-03T07:00:00Z",
            exercises=[
                {
                    "name": "Bench Press",
                    "sets": [
                        {"weight": 100, "reps": 5, "is_completed": True},
                        {"weight": 100, "reps": 5, "is_completed": False},
                    ],
                },
                {"name": "Push-up", "sets": [{"reps": 20, "is_completed": True}]},
            ],
        )
        history = (await self.client.get("/workouts/", params={"user_id": self.ana["id"]})).json()
        assert [w["name"] for w in history] == ["Newer", "Older"]
        assert history[0]["exercise_count"] == 2
        assert history[0]["total_volume"] == 500.0
        assert history[1]["total_volume"] == 0.0

    async def test_routine_delete_keeps_workouts(self):
        routine_id = await self.insert_routine(self.ana["id"])
        workout = (await self._save(routine_id=routine_id)).json()
        resp = await self.client.delete(f"/routines/{routine_id}", params={"user_id": self.ana["id"]})
        assert resp.status_code == 204
        assert (await self.client.get(f"/workouts/{workout['id']}")).json()["routine_id"] is None

    async def test_post_shares_workout(self):
        workout = (await self._save()).json()
        post = await self.create_post(self.ana["id"], "done", workout_id=workout["id"])
        assert post["workout_id"] == workout["id"]

        resp = await self.client.post(
            "/posts/", json={"user_id": self.ana["id"], "description": "x", "workout_id": "missing"}
        )
        assert resp.status_code == 404


class TestWeightConversion:
    def test_kg_passes_through(self):
        assert to_kg(80, "kg") == 80
        assert to_kg(None, "lbs") is None

    def test_pounds(self):
        assert to_kg(100, "lbs") == 45.359
