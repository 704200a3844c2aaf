"""Score submission and ranked leaderboard views."""
import pytest

from conftest import GAME, device
from services import rank_scores
from stores import ScoreNotFound, ValidationError


async def submit(stores, player, score, category="default"):
    return await stores.scores.submit_score(
        GAME, device(player), player.title(), score, category=category
    )


def test_rank_scores_breaks_ties_by_submission_time():
    scores = [
        {"id": "1", "score": 50, "created_at": "2026-01-01T00:00:01"},
        {"id": "2", "score": 80, "created_at": "2026-01-01T00:00:02"},
        {"id": "3", "score": 80, "created_at": "2026-01-01T00:00:03"},
        {"id": "4", "score": 30, "created_at": "2026-01-01T00:00:04"},
    ]

    ranked = rank_scores(scores)

    assert [(s["id"], s["rank"]) for s in ranked] == [("2", 1), ("3", 2), ("1", 3), ("4", 4)]
    assert [s["rank"] for s in rank_scores(scores[:2], offset=10)] == [11, 12]


@pytest.mark.asyncio
async def test_submit_reports_rank_and_personal_best(stores):
    first = await submit(stores, "alice", 50)
    assert (first["rank"], first["is_personal_best"]) == (1, True)

    better = await submit(stores, "bob", 80)
    assert better["rank"] == 1

    worse = await submit(stores, "alice", 30)
    assert worse["rank"] == 3
    assert worse["is_personal_best"] is False

    improved = await submit(stores, "alice", 90)
    assert (improved["rank"], improved["is_personal_best"]) == (1, True)


@pytest.mark.asyncio
async def test_top_list_groups_by_category(services, stores):
    for player, score in (("alice", 50), ("bob", 80), ("carol", 80), ("alice", 30)):
        await submit(stores, player, score)
    await submit(stores, "bob", 7, category="speedrun")

    groups = await services.leaderboard.list(GAME, 10)

    assert [g["category"] for g in groups] == ["default", "speedrun"]
    default = groups[0]["scores"]
    assert [(s["device_id"], s["score"], s["rank"]) for s in default] == [
        (device("bob"), 80, 1),
        (device("carol"), 80, 2),
        (device("alice"), 50, 3),
        (device("alice"), 30, 4),
    ]

    top_two = await services.leaderboard.list(GAME, 2, category="default")
    assert len(top_two) == 1
    assert [s["score"] for s in top_two[0]["scores"]] == [80, 80]

    with pytest.raises(ValidationError):
        await services.leaderboard.list(GAME, 0)
    with pytest.raises(ValidationError):
        await services.leaderboard.list(GAME, 10, period="decade")


@pytest.mark.asyncio
async def test_recent_period_includes_new_scores(services, stores):
    await submit(stores, "alice", 10)

    groups = await services.leaderboard.list(GAME, 10, period="day")
    assert [s["score"] for s in groups[0]["scores"]] == [10]


@pytest.mark.asyncio
async def test_page_ranks_continue_across_offsets(services, stores):
    for score in (10, 40, 20, 30):
        await submit(stores, "alice", score)

    page = await services.leaderboard.page(GAME, limit=2, offset=2)

    assert [(s["score"], s["rank"]) for s in page["scores"]] == [(20, 3), (10, 4)]
    assert page["categories"] == ["default"]
    assert page["pagination"] == {"total": 4, "limit": 2, "offset": 2, "has_more": False}

    first = await services.leaderboard.page(GAME, limit=2)
    assert first["pagination"]["has_more"] is True

    with pytest.raises(ValidationError):
        await services.leaderboard.page(GAME, limit=501)
    with pytest.raises(ValidationError):
        await services.leaderboard.page(GAME, offset=-1)


@pytest.mark.asyncio
async def test_get_score(stores):
    submitted = await stores.scores.submit_score(
        GAME, device("alice"), "Alice", 42, metadata={"level": 3, "$bad": 1}
    )

    score = await stores.scores.get_score(GAME, submitted["id"])
    assert score["score"] == 42
    assert score["metadata"] == {"level": 3}

    with pytest.raises(ScoreNotFound):
        await stores.scores.get_score(GAME, "999")
    with pytest.raises(ScoreNotFound):
        await stores.scores.get_score(GAME, "abc")
