"""
Batch scoring endpoints — the ranking formulas behind an HTTP interface.

Callers that already hold a page of records (a cached feed, a worker
preparing digests) post them here instead of re-implementing the formulas:

  POST /rank/comments   pinned first, then by comment hotness
  POST /rank/posts      by post hotness
  POST /rank/routines   by routine trending score

`now` is optional in every request; pass it to get reproducible scores.
"""
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter
from opentelemetry import trace

from fitfeed import ranking
from fitfeed.schemas import (
    CommentRankRequest,
    PostRankRequest,
    RankResponse,
    RoutineRankRequest,
    ScoredItem,
)
from fitfeed.telemetry import RANKING_LATENCY

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _now(requested):
    return requested or datetime.now(timezone.utc)


@router.post("/comments", response_model=RankResponse)
def rank_comments(request: CommentRankRequest):
    with tracer.start_as_current_span("rank_comments") as span:
        t0 = time.perf_counter()
        now = _now(request.now)

        ordered = ranking.sort_comments(request.candidates, now)
        scores = []
        for c in ordered:
            score = None
            if not c.pinned:
                score = ranking.comment_hotness(c.likes_count, c.reply_count, c.created_at, now)
            scores.append(
                ScoredItem(id=c.id, score=None if score is None else round(score, 6), pinned=c.pinned)
            )

        RANKING_LATENCY.labels(kind="comments").observe(time.perf_counter() - t0)
        span.set_attribute("batch.size", len(request.candidates))
        return RankResponse(kind="comments", scores=scores)


@router.post("/posts", response_model=RankResponse)
def rank_posts(request: PostRankRequest):
    with tracer.start_as_current_span("rank_posts") as span:
        t0 = time.perf_counter()
        ranked = ranking.rank_posts(
            request.candidates,
            _now(request.now),
            likes_field="likes",
            comments_field="comments",
        )
        RANKING_LATENCY.labels(kind="posts").observe(time.perf_counter() - t0)
        span.set_attribute("batch.size", len(request.candidates))
        return RankResponse(
            kind="posts",
            scores=[ScoredItem(id=p.id, score=round(s, 6)) for p, s in ranked],
        )


@router.post("/routines", response_model=RankResponse)
def rank_routines(request: RoutineRankRequest):
    with tracer.start_as_current_span("rank_routines") as span:
        t0 = time.perf_counter()
        ranked = ranking.rank_routines(request.candidates, _now(request.now))
        RANKING_LATENCY.labels(kind="routines").observe(time.perf_counter() - t0)
        span.set_attribute("batch.size", len(request.candidates))
        return RankResponse(
            kind="routines",
            scores=[ScoredItem(id=r.id, score=round(s, 6)) for r, s in ranked],
        )
