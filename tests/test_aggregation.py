"""
Unit tests for monthly aggregates and team statistics
"""

from datetime import date

import pytest

from settlement.aggregation import build_monthly_aggregate, team_statistics
from settlement.models import MatchCostContext, MatchRecord, MatchResult


def match(match_id, day, our=None, opp=None, result=None, field=0, water=0, final=0):
    return MatchRecord(
        match_id=match_id,
        match_date=day,
        our_score=our,
        opponent_score=opp,
        match_result=result,
        costs=MatchCostContext(match_id=match_id, field_fee_total=field, water_fee_total=water),
        total_calculated_fees=final,
        total_final_fees=final,
    )


@pytest.fixture
def season():
    return [
        match("a", date(2025, 3, 1), 3, 1, field=300, water=30, final=330),
        match("b", date(2025, 3, 8), 0, 2, field=300, final=300),
        match("c", date(2025, 3, 22), 1, 1, field=270, water=20, final=290),
        match("d", date(2025, 4, 5), 4, 0, field=300, final=300),
        match("e", date(2025, 3, 29)),
    ]


class TestMatchResult:

    def test_from_scores(self):
        assert MatchResult.from_scores(2, 1) == MatchResult.WIN
        assert MatchResult.from_scores(1, 1) == MatchResult.DRAW
        assert MatchResult.from_scores(0, 3) == MatchResult.LOSE


class TestMonthlyAggregate:
    """월별 집계"""

    def test_only_bucket_matches(self, season):
        aggregate = build_monthly_aggregate(2025, 3, season)

        assert aggregate.games_played == 4
        assert (aggregate.wins, aggregate.draws, aggregate.losses) == (1, 1, 1)
        assert aggregate.goals_for == 4
        assert aggregate.goals_against == 4
        assert aggregate.total_field_fees == 870
        assert aggregate.total_water_fees == 50
        assert aggregate.total_final_fees == 920

    def test_stored_result_preferred(self):
        games = [match("x", date(2025, 5, 1), 1, 0, result=MatchResult.LOSE)]
        assert build_monthly_aggregate(2025, 5, games).losses == 1

    def test_rebuild_is_deterministic(self, season):
        assert build_monthly_aggregate(2025, 3, season) == build_monthly_aggregate(2025, 3, reversed(season))

    def test_empty_bucket(self, season):
        aggregate = build_monthly_aggregate(2024, 12, season)
        assert aggregate.games_played == 0
        assert aggregate.total_final_fees == 0


class TestTeamStatistics:
    """팀 통계"""

    def test_statistics(self, season):
        stats = team_statistics(season)

        assert stats.total_matches == 5
        assert (stats.wins, stats.draws, stats.losses) == (2, 1, 1)
        assert stats.win_rate == 40
        assert stats.goals_for == 8
        assert stats.goal_difference == 4

    def test_win_rate_rounded(self):
        games = [
            match("a", date(2025, 3, 1), 1, 0),
            match("b", date(2025, 3, 2), 0, 1),
            match("c", date(2025, 3, 3), 0, 1),
        ]
        # 33.33% → 33
        assert team_statistics(games).win_rate == 33

    def test_two_thirds_rounds_up(self):
        games = [
            match("a", date(2025, 3, 1), 1, 0),
            match("b", date(2025, 3, 2), 1, 0),
            match("c", date(2025, 3, 3), 0, 1),
        ]
        assert team_statistics(games).win_rate == 67

    def test_no_matches(self):
        stats = team_statistics([])
        assert stats.total_matches == 0
        assert stats.win_rate == 0
