# tests/test_selection.py
import asyncio
from datetime import timedelta

import pytest

from challenge_engine.errors import DataUnavailable, NoActiveCandidates
from challenge_engine.models.challenge import DailySelection
from challenge_engine.models.enums import ChallengeType, DifficultyLevel, Viewpoint
from challenge_engine.services.selection import FALLBACK_REASON, tie_break_hash
from fakes import NOW, make_attempt, make_candidate

USER = "learner-1"


@pytest.mark.selection
class TestDailySelection:
    async def test_same_day_returns_same_challenge(self, selection_engine, pool, store):
        pool.add(make_candidate("a"), make_candidate("b"), make_candidate("c"))

        first = await selection_engine.select_next(USER, NOW)
        later = await selection_engine.select_next(USER, NOW + timedelta(hours=8))

        assert first.id == later.id
        assert store.compute_calls == 1

    async def test_concurrent_requests_resolve_to_one_selection(self, selection_engine, pool, store):
        pool.add(*[make_candidate(f"c{i}") for i in range(6)])

        results = await asyncio.gather(*(selection_engine.select_next(USER, NOW) for _ in range(5)))

        assert len({c.id for c in results}) == 1
        assert store.compute_calls == 1
        assert len(store.selections) == 1

    async def test_new_day_gets_a_new_selection(self, selection_engine, pool, store):
        pool.add(make_candidate("a"), make_candidate("b"))
        await selection_engine.select_next(USER, NOW)
        await selection_engine.select_next(USER, NOW + timedelta(days=1))
        assert store.compute_calls == 2

    async def test_selection_is_persisted_with_reasons_and_breakdown(self, selection_engine, pool, store):
        pool.add(make_candidate("only"))
        await selection_engine.select_next(USER, NOW)

        selection = store.selections[(USER, NOW.date())]
        assert selection.challenge_id == "only"
        assert "Appropriate difficulty level" in selection.reasons
        assert selection.breakdown["total"] > 0

    async def test_existing_selection_for_missing_challenge(self, selection_engine, pool, store):
        pool.add(make_candidate("a"))
        store.selections[(USER, NOW.date())] = DailySelection(
            user_id=USER, selection_date=NOW.date(), challenge_id="retired", created_at=NOW,
        )
        with pytest.raises(NoActiveCandidates):
            await selection_engine.select_next(USER, NOW)

    async def test_new_user_gets_beginner(self, selection_engine, pool):
        pool.add(
            make_candidate("adv", difficulty=DifficultyLevel.ADVANCED),
            make_candidate("mid", ChallengeType.BIAS_SWAP, DifficultyLevel.INTERMEDIATE, viewpoints=[Viewpoint.CENTER]),
            make_candidate("easy", ChallengeType.SYNTHESIS, DifficultyLevel.BEGINNER),
        )
        chosen = await selection_engine.select_next(USER, NOW)
        assert chosen.difficulty == DifficultyLevel.BEGINNER

    async def test_strong_performer_moves_up(self, selection_engine, pool, history):
        """9 of 10 recent bias comparisons correct at intermediate targets advanced."""
        history.add(*[
            make_attempt(USER, f"done{i}", NOW - timedelta(days=i + 1), correct=i != 4,
                         challenge_type=ChallengeType.BIAS_SWAP, difficulty=DifficultyLevel.INTERMEDIATE,
                         viewpoints=[list(Viewpoint)[i % 7]])
            for i in range(10)
        ])
        pool.add(
            make_candidate("b", difficulty=DifficultyLevel.BEGINNER),
            make_candidate("i", difficulty=DifficultyLevel.INTERMEDIATE),
            make_candidate("a", difficulty=DifficultyLevel.ADVANCED),
        )

        chosen = await selection_engine.select_next(USER, NOW)
        assert chosen.id == "a"

    async def test_strong_performer_never_drops_a_level_between_days(self, selection_engine, pool, history):
        """An easier challenge completed in between does not lower the next day's level."""
        history.add(*[
            make_attempt(USER, f"done{i}", NOW - timedelta(days=i + 2), difficulty=DifficultyLevel.INTERMEDIATE)
            for i in range(10)
        ])
        pool.add(
            make_candidate("b", difficulty=DifficultyLevel.BEGINNER),
            make_candidate("i", difficulty=DifficultyLevel.INTERMEDIATE),
            make_candidate("a", difficulty=DifficultyLevel.ADVANCED),
        )

        day_one = await selection_engine.select_next(USER, NOW - timedelta(days=1))
        history.add(make_attempt(USER, "b", NOW - timedelta(hours=12), correct=True,
                                 difficulty=DifficultyLevel.BEGINNER))
        day_two = await selection_engine.select_next(USER, NOW)

        assert day_one.id == "a"
        assert day_two.difficulty.rank >= day_one.difficulty.rank

    async def test_untagged_bias_comparison_does_not_cost_new_users_their_beginner_pick(self, selection_engine, pool):
        pool.add(
            make_candidate("easy-untagged", ChallengeType.BIAS_SWAP, DifficultyLevel.BEGINNER),
            make_candidate("mid-tagged", ChallengeType.BIAS_SWAP, DifficultyLevel.INTERMEDIATE,
                           viewpoints=[Viewpoint.CENTER]),
        )

        for n in range(10):
            chosen = await selection_engine.select_next(f"newcomer-{n}", NOW)
            assert chosen.id == "easy-untagged"

    async def test_recently_completed_challenges_are_skipped(self, selection_engine, pool, history):
        pool.add(make_candidate("seen"), make_candidate("fresh"))
        history.add(make_attempt(USER, "seen", NOW - timedelta(days=2)))

        chosen = await selection_engine.select_next(USER, NOW)
        assert chosen.id == "fresh"

    async def test_fallback_picks_least_recently_seen(self, selection_engine, pool, history, store):
        pool.add(make_candidate("x"), make_candidate("y"))
        history.add(
            make_attempt(USER, "x", NOW - timedelta(days=1)),
            make_attempt(USER, "y", NOW - timedelta(days=5)),
        )

        chosen = await selection_engine.select_next(USER, NOW)

        assert chosen.id == "y"
        assert FALLBACK_REASON in store.selections[(USER, NOW.date())].reasons

    async def test_empty_pool(self, selection_engine, store):
        with pytest.raises(NoActiveCandidates):
            await selection_engine.select_next(USER, NOW)
        assert store.selections == {}

    async def test_only_inactive_or_expired_challenges(self, selection_engine, pool):
        pool.add(
            make_candidate("off", is_active=False),
            make_candidate("gone", expires_at=NOW - timedelta(hours=1)),
        )
        with pytest.raises(NoActiveCandidates):
            await selection_engine.select_next(USER, NOW)

    async def test_history_outage_persists_nothing(self, selection_engine, pool, history, store):
        pool.add(make_candidate("a"))
        history.unavailable = True
        with pytest.raises(DataUnavailable):
            await selection_engine.select_next(USER, NOW)
        assert store.selections == {}

    async def test_equal_scores_break_ties_deterministically(self, selection_engine, pool):
        ids = ["alpha", "bravo", "charlie", "delta"]
        pool.add(*[make_candidate(i) for i in ids])

        chosen = await selection_engine.select_next(USER, NOW)

        assert chosen.id == min(ids, key=lambda i: tie_break_hash(USER, NOW.date(), i))

    async def test_fewer_presentations_win_ties(self, selection_engine, pool, history):
        pool.add(make_candidate("repeat"), make_candidate("new"))
        # Outside the repeat-prevention window but inside the history window
        history.add(make_attempt(USER, "repeat", NOW - timedelta(days=12)))

        ranked = await selection_engine.rank(USER, NOW)

        assert [r.candidate.id for r in ranked] == ["new", "repeat"]
        assert ranked[0].score.total == pytest.approx(ranked[1].score.total)


@pytest.mark.selection
class TestRanking:
    async def test_underexposed_viewpoint_ranks_higher(self, selection_engine, pool, history):
        history.add(*[
            make_attempt(USER, f"left{i}", NOW - timedelta(days=8 + i), challenge_type=ChallengeType.BIAS_SWAP,
                         viewpoints=[Viewpoint.LEFT])
            for i in range(3)
        ])
        pool.add(
            make_candidate("more-left", ChallengeType.BIAS_SWAP, viewpoints=[Viewpoint.LEFT]),
            make_candidate("right", ChallengeType.BIAS_SWAP, viewpoints=[Viewpoint.RIGHT]),
        )

        ranked = await selection_engine.rank(USER, NOW)

        assert ranked[0].candidate.id == "right"
        assert ranked[0].score.total > ranked[1].score.total
        assert "Expands bias perspective" in ranked[0].score.reasons

    async def test_repeated_type_is_penalized(self, selection_engine, pool, history):
        history.add(*[
            make_attempt(USER, f"syn{i}", NOW - timedelta(days=i + 1), correct=i % 2 == 0,
                         challenge_type=ChallengeType.SYNTHESIS)
            for i in range(4)
        ], *[
            make_attempt(USER, f"logic{i}", NOW - timedelta(days=i + 10), correct=i % 2 == 0)
            for i in range(4)
        ])
        pool.add(
            make_candidate("another-synthesis", ChallengeType.SYNTHESIS),
            make_candidate("logic", ChallengeType.LOGIC_PUZZLE),
        )

        ranked = await selection_engine.rank(USER, NOW)

        assert ranked[0].candidate.id == "logic"
        assert ranked[1].score.type_diversity == pytest.approx(0.1)

    async def test_rank_is_sorted_descending(self, selection_engine, pool):
        pool.add(
            make_candidate("b1"),
            make_candidate("i1", difficulty=DifficultyLevel.INTERMEDIATE),
            make_candidate("a1", difficulty=DifficultyLevel.ADVANCED),
        )
        ranked = await selection_engine.rank(USER, NOW)
        totals = [r.score.total for r in ranked]
        assert totals == sorted(totals, reverse=True)
        assert [r.candidate.id for r in ranked] == ["b1", "i1", "a1"]


@pytest.mark.selection
class TestRecommendations:
    async def test_returns_distinct_top_candidates(self, selection_engine, pool, store):
        pool.add(*[make_candidate(f"c{i}") for i in range(5)])

        recommended = await selection_engine.recommend(USER, 3, NOW)

        assert len(recommended) == 3
        assert len({c.id for c in recommended}) == 3
        assert store.selections == {}

    async def test_first_recommendation_matches_daily_pick(self, selection_engine, pool):
        pool.add(*[make_candidate(f"c{i}", difficulty=level) for i, level in enumerate(DifficultyLevel)])

        recommended = await selection_engine.recommend(USER, 2, NOW)
        chosen = await selection_engine.select_next(USER, NOW)

        assert recommended[0].id == chosen.id

    async def test_count_larger_than_pool(self, selection_engine, pool):
        pool.add(make_candidate("one"), make_candidate("two"))
        recommended = await selection_engine.recommend(USER, 10, NOW)
        assert {c.id for c in recommended} == {"one", "two"}

    async def test_all_recent_falls_back_to_full_pool(self, selection_engine, pool, history):
        pool.add(make_candidate("x"), make_candidate("y"))
        history.add(make_attempt(USER, "x", NOW - timedelta(days=1)), make_attempt(USER, "y", NOW - timedelta(days=2)))
        recommended = await selection_engine.recommend(USER, 2, NOW)
        assert len(recommended) == 2

    @pytest.mark.parametrize("count", [0, -1])
    async def test_count_must_be_positive(self, selection_engine, pool, count):
        pool.add(make_candidate("a"))
        with pytest.raises(ValueError):
            await selection_engine.recommend(USER, count, NOW)

    async def test_empty_pool(self, selection_engine):
        with pytest.raises(NoActiveCandidates):
            await selection_engine.recommend(USER, 3, NOW)
