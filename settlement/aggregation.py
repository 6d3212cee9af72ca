"""
월별/기간별 집계

항상 해당 구간의 경기 전체를 다시 접어서 계산한다 (증분 갱신 없음).
"""
from typing import Iterable

from .models import MatchRecord, MatchResult, MonthlyAggregate, TeamStatistics
from .rounding import round_half_up


def _result_of(match: MatchRecord):
    if match.match_result is not None:
        return match.match_result
    if match.our_score is not None and match.opponent_score is not None:
        return MatchResult.from_scores(match.our_score, match.opponent_score)
    return None


def build_monthly_aggregate(year: int, month: int, matches: Iterable[MatchRecord]) -> MonthlyAggregate:
    """(연, 월) 구간에 속한 경기만 집계"""
    aggregate = MonthlyAggregate(year=year, month=month)

    for match in matches:
        if match.match_date.year != year or match.match_date.month != month:
            continue

        aggregate.games_played += 1
        result = _result_of(match)
        if result == MatchResult.WIN:
            aggregate.wins += 1
        elif result == MatchResult.DRAW:
            aggregate.draws += 1
        elif result == MatchResult.LOSE:
            aggregate.losses += 1

        aggregate.goals_for += match.our_score or 0
        aggregate.goals_against += match.opponent_score or 0
        aggregate.total_field_fees += match.costs.field_fee_total
        aggregate.total_water_fees += match.costs.water_fee_total
        aggregate.total_calculated_fees += match.total_calculated_fees
        aggregate.total_final_fees += match.total_final_fees

    return aggregate


def team_statistics(matches: Iterable[MatchRecord]) -> TeamStatistics:
    """기간 무관 팀 통계 (승률은 반올림한 백분율)"""
    stats = TeamStatistics()
    for match in matches:
        stats.total_matches += 1
        result = _result_of(match)
        if result == MatchResult.WIN:
            stats.wins += 1
        elif result == MatchResult.DRAW:
            stats.draws += 1
        elif result == MatchResult.LOSE:
            stats.losses += 1
        stats.goals_for += match.our_score or 0
        stats.goals_against += match.opponent_score or 0

    stats.goal_difference = stats.goals_for - stats.goals_against
    if stats.total_matches:
        stats.win_rate = round_half_up(stats.wins / stats.total_matches * 100)
    return stats
