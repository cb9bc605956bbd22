#!/usr/bin/env python3
"""
Seed script — fills a running fitfeed API with a small community.

Creates:
  • 8 athletes
  • A follow graph (each user follows 3 others)
  • 3 posts per user, with comments, replies and likes
  • A handful of routines, some liked, saved, used and copied
  • A custom exercise and one logged workout per user

Run against a local stack:
  python scripts/seed_data.py --api-url http://localhost:8000

All IDs are printed so you can use them in curl commands.
"""
import argparse
import json
import random
import time
import urllib.error
import urllib.request
from dataclasses import dataclass


BASE_USERS = [
    ("maya_lifts", "Maya Ortiz"),
    ("ben_runs", "Ben Adeyemi"),
    ("sara_squats", "Sara Novak"),
    ("tom_trains", "Tom Becker"),
    ("lena_legday", "Lena Park"),
    ("omar_oly", "Omar Haddad"),
    ("kim_kettle", "Kim Sato"),
    ("raj_rows", "Raj Mehta"),
]

SAMPLE_POSTS = [
    "New deadlift PR today. 180kg moved clean.",
    "Zone 2 run, 10km at conversational pace. Slow miles build fast legs.",
    "Tried pause squats for the first time. Humbling.",
    "Deload week. Sleeping nine hours and eating like it's my job.",
    "Kettlebell complex finisher: swings, cleans, presses. Lungs on fire.",
    "Snatch technique session. Finally staying over the bar.",
    "Rowing intervals 8x500m. Splits held under 1:50.",
    "Mobility work is the boring part that keeps everything else working.",
    "Back from a layoff. Starting light and building up again.",
    "Pull-up progression: first strict set of ten.",
]

SAMPLE_COMMENTS = [
    "Huge! What program are you running?",
    "Form looks solid.",
    "This is motivating, heading to the gym now.",
    "How long did it take you to get there?",
    "Respect the consistency.",
]

SAMPLE_ROUTINES = [
    ("Upper Power", "strength", ["Bench Press", "Barbell Row", "Overhead Press", "Pull-up"]),
    ("Lower Power", "strength", ["Back Squat", "Romanian Deadlift", "Walking Lunge"]),
    ("Engine Builder", "conditioning", ["Rowing Intervals", "Kettlebell Swing", "Burpee"]),
    ("Olympic Basics", "olympic", ["Snatch", "Clean and Jerk", "Front Squat"]),
    ("Mobility Flow", "mobility", ["World's Greatest Stretch", "Cossack Squat", "Thoracic Rotation"]),
]


@dataclass
class ApiClient:
    base_url: str

    def _send(self, method: str, path: str, data: dict = None) -> dict:
        url = f"{self.base_url}{path}"
        body = json.dumps(data).encode() if data is not None else None
        req = urllib.request.Request(
            url, data=body, headers={"Content-Type": "application/json"}, method=method
        )
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                raw = resp.read()
                return json.loads(raw) if raw else {}
        except urllib.error.HTTPError as e:
            print(f"  HTTP {e.code} on {method} {path}: {e.read().decode()}")
            return {}

    def post(self, path: str, data: dict = None) -> dict:
        return self._send("POST", path, data)

    def get(self, path: str) -> dict:
        return self._send("GET", path)


def wait_for_api(client: ApiClient, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for _ in range(retries):
        try:
            if client.get("/health").get("status") == "ok":
                print("  API is ready!\n")
                return
        except urllib.error.URLError:
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


def main(api_url: str) -> None:
    client = ApiClient(api_url)
    wait_for_api(client)

    # ── Users ─────────────────────────────────────────────────────────────
    print("Creating users...")
    user_ids: list[str] = []
    for username, name in BASE_USERS:
        uid = client.post("/users/", {"username": username, "name": name}).get("id", "")
        if uid:
            user_ids.append(uid)
            print(f"  ✓ {username} ({uid})")
        else:
            print(f"  ✗ Failed to create {username}")

    if len(user_ids) < 2:
        print("Not enough users created — aborting")
        return

    # ── Follow graph ──────────────────────────────────────────────────────
    print("\nCreating follow relationships...")
    for follower_id in user_ids:
        others = [u for u in user_ids if u != follower_id]
        for following_id in random.sample(others, k=min(3, len(others))):
            client.post("/users/follow", {"follower_id": follower_id, "following_id": following_id})
    print("  ✓ Follow graph created")

    # ── Posts ─────────────────────────────────────────────────────────────
    print("\nCreating posts...")
    post_ids: list[str] = []
    for i, user_id in enumerate(user_ids):
        for j in range(3):
            text = SAMPLE_POSTS[(i * 3 + j) % len(SAMPLE_POSTS)]
            pid = client.post("/posts/", {"user_id": user_id, "description": text}).get("id", "")
            if pid:
                post_ids.append(pid)
    print(f"  ✓ {len(post_ids)} posts created")

    # ── Comments, replies, likes ──────────────────────────────────────────
    print("\nAdding comments and likes...")
    comments = likes = 0
    for post_id in post_ids:
        for user_id in random.sample(user_ids, k=random.randint(0, 3)):
            result = client.post(
                f"/posts/{post_id}/comments",
                {"user_id": user_id, "text": random.choice(SAMPLE_COMMENTS)},
            )
            comment_id = result.get("id")
            if not comment_id:
                continue
            comments += 1
            if random.random() < 0.4:
                client.post(
                    f"/posts/{post_id}/comments",
                    {"user_id": random.choice(user_ids), "text": "Agreed!", "parent_id": comment_id},
                )
                comments += 1
            for liker in random.sample(user_ids, k=random.randint(0, 2)):
                client.post(f"/comments/{comment_id}/like", {"user_id": liker})
                likes += 1

        for user_id in random.sample(user_ids, k=random.randint(0, 5)):
            client.post(f"/posts/{post_id}/like", {"user_id": user_id})
            likes += 1
    print(f"  ✓ {comments} comments, {likes} likes added")

    # ── Routines ──────────────────────────────────────────────────────────
    print("\nCreating routines...")
    routine_ids: list[str] = []
    for name, category, exercises in SAMPLE_ROUTINES:
        result = client.post(
            "/routines/",
            {
                "user_id": random.choice(user_ids),
                "name": name,
                "category": category,
                "exercises": [{"name": e, "total_sets": 3, "default_reps": 8} for e in exercises],
            },
        )
        rid = result.get("id")
        if not rid:
            continue
        routine_ids.append(rid)
        for user_id in random.sample(user_ids, k=random.randint(0, 4)):
            client.post(f"/routines/{rid}/save", {"user_id": user_id})
        for user_id in random.sample(user_ids, k=random.randint(0, 4)):
            client.post(f"/routines/{rid}/like", {"user_id": user_id})
        for _ in range(random.randint(0, 6)):
            client.post(f"/routines/{rid}/use")
    if routine_ids:
        client.post(f"/routines/{routine_ids[0]}/copy", {"user_id": user_ids[-1]})
    print(f"  ✓ {len(routine_ids)} routines created")

    # ── Exercises & workouts ──────────────────────────────────────────────
    print("\nLogging workouts...")
    workouts = 0
    for i, user_id in enumerate(user_ids):
        client.post(
            "/exercises/",
            {"user_id": user_id, "name": "Tempo Squat", "primary_muscle_group": "Legs", "equipment": "Barbell"},
        )
        result = client.post(
            "/workouts/",
            {
                "user_id": user_id,
                "name": "Morning session",
                "start_time": f"2026-01-{i + 1:02d}T07:00:00Z",
                "duration": 3600,
                "routine_id": random.choice(routine_ids) if routine_ids else None,
                "weight_unit": random.choice(["kg", "lbs"]),
                "exercises": [
                    {
                        "name": "Tempo Squat",
                        "sets": [{"weight": 60 + 10 * s, "reps": 5, "is_completed": True} for s in range(3)],
                    }
                ],
            },
        )
        if result.get("id"):
            workouts += 1
    print(f"  ✓ {workouts} workouts logged")

    # ── Summary ───────────────────────────────────────────────────────────
    print("\n" + "=" * 60)
    print("Seed complete! Here are some commands to try:\n")
    u = user_ids[0]
    print(f"# Trending posts for '{BASE_USERS[0][0]}':")
    print(f"  curl -s '{api_url}/explore/trending-posts?user_id={u}' | python3 -m json.tool\n")
    if post_ids:
        print("# Ranked comments on a post:")
        print(f"  curl -s '{api_url}/posts/{post_ids[0]}/comments?viewer_id={u}' | python3 -m json.tool\n")
    print("# Trending routines:")
    print(f"  curl -s '{api_url}/routines/trending' | python3 -m json.tool\n")
    print("# Check Jaeger traces: http://localhost:16686")
    print("# Check Prometheus: http://localhost:9090")
    print("# Check MinIO: http://localhost:9001 (minioadmin/minioadmin)")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the fitfeed API")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL")
    args = parser.parse_args()
    main(args.api_url)
