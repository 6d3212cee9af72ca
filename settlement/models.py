"""
정산 엔진 데이터 모델

Pydantic 모델 정의
"""
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# =============================================
# Enums
# =============================================

class MatchResult(str, Enum):
    """경기 결과"""
    WIN = "WIN"
    DRAW = "DRAW"
    LOSE = "LOSE"

    @classmethod
    def from_scores(cls, our_score: int, opponent_score: int) -> "MatchResult":
        if our_score > opponent_score:
            return cls.WIN
        if our_score < opponent_score:
            return cls.LOSE
        return cls.DRAW


# =============================================
# 경기 비용
# =============================================

class MatchCostContext(BaseModel):
    """경기 단위 비용 입력"""
    match_id: str
    field_fee_total: float = 0
    water_fee_total: float = 0
    fee_coefficient: Optional[float] = None  # 파생값 (저장용)
    video_fee_rate: Optional[float] = None   # None이면 전역 설정값
    late_fee_rate: Optional[float] = None
    section_count: int = 3

    def cost_snapshot(self) -> Tuple[float, float, Optional[float], Optional[float]]:
        """재계산 커밋 시 비교할 비용 스냅샷"""
        return (self.field_fee_total, self.water_fee_total, self.video_fee_rate, self.late_fee_rate)


# =============================================
# 선수 정산 결과
# =============================================

class PlayerFeeResult(BaseModel):
    """선수 한 명의 경기 정산 (항상 통째로 교체)"""
    model_config = ConfigDict(frozen=True)

    total_time: float            # 전체 출석 셀 합
    billable_time: float         # 과금 대상 시간 (골키퍼 제외 정책 반영)
    sections_played: int = 0
    raw_field_fee: float         # 반올림 전
    raw_video_fee: float
    field_fee: int
    late_fee: int
    video_fee: int
    total_fee: int               # 반올림된 항목의 합


class FeeOverride(BaseModel):
    """수동 조정 (메모 필수)"""
    match_id: str
    player_id: str
    override_fee: Optional[float] = None       # 최종 금액 직접 지정
    field_fee_override: Optional[float] = None
    video_fee_override: Optional[float] = None
    late_fee_override: Optional[float] = None
    note: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def component_overrides(self) -> Dict[str, Optional[float]]:
        return {
            "field_fee_override": self.field_fee_override,
            "video_fee_override": self.video_fee_override,
            "late_fee_override": self.late_fee_override,
        }


class PlayerFeeBreakdown(BaseModel):
    """계산값 + 수동 조정 → 최종 금액"""
    player_id: str
    player_name: Optional[str] = None
    is_late_arrival: bool = False
    calculated: PlayerFeeResult
    override: Optional[FeeOverride] = None
    final_field_fee: float
    final_video_fee: float
    final_late_fee: float
    final_fee: float

    @property
    def has_override(self) -> bool:
        return self.override is not None


# =============================================
# 경기 / 참가자
# =============================================

class Participant(BaseModel):
    """경기 참가자 (저장된 출석 JSON 그대로)"""
    match_id: str
    player_id: str
    player_name: Optional[str] = None
    attendance_data: Dict[str, Any] = Field(default_factory=dict)
    is_late_arrival: bool = False
    fee_result: Optional[PlayerFeeResult] = None


class MatchRecord(BaseModel):
    """경기 기본 정보 + 비용 + 정산 집계"""
    match_id: str
    match_date: date
    opponent_team: Optional[str] = None
    our_score: Optional[int] = None
    opponent_score: Optional[int] = None
    match_result: Optional[MatchResult] = None
    notes: Optional[str] = None
    costs: MatchCostContext

    # 재계산 시 함께 저장
    total_participants: int = 0
    total_calculated_fees: float = 0
    total_final_fees: float = 0
    fees_recalculated_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=datetime.now)


class MatchInfoUpdate(BaseModel):
    """경기 정보 수정 요청 (None 필드는 변경하지 않음)"""
    match_date: Optional[date] = None
    opponent_team: Optional[str] = None
    our_score: Optional[int] = Field(None, ge=0)
    opponent_score: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    field_fee_total: Optional[float] = None
    water_fee_total: Optional[float] = None
    video_fee_rate: Optional[float] = None
    late_fee_rate: Optional[float] = None
    section_count: Optional[int] = Field(None, ge=1, le=3)


# =============================================
# 재계산 결과
# =============================================

CACHE_INVALIDATION_TAGS = ["matches", "games", "players", "leaderboard", "stats", "statistics"]


class RecalculationSummary(BaseModel):
    """경기 전체 재계산 결과"""
    match_id: str
    recalculated: bool = True
    total_participants: int
    fee_coefficient: float
    total_calculated_fees: float
    total_final_fees: float
    invalidate_tags: List[str] = Field(default_factory=lambda: list(CACHE_INVALIDATION_TAGS))
    recalculated_at: datetime = Field(default_factory=datetime.now)


class MatchFeeBreakdown(BaseModel):
    """경기 정산 현황 (저장된 결과 기준)"""
    match_id: str
    fee_coefficient: float
    total_participants: int
    total_calculated_fees: float
    total_final_fees: float
    players: List[PlayerFeeBreakdown] = Field(default_factory=list)


class MatchInfoUpdateResult(BaseModel):
    """경기 정보 수정과 재계산 결과를 각각 보고"""
    match: MatchRecord
    fee_recalculation: Optional[RecalculationSummary] = None
    recalculation_error: Optional[Dict[str, Any]] = None
    skipped_reason: Optional[str] = None


# =============================================
# 집계
# =============================================

class MonthlyAggregate(BaseModel):
    """월별 집계 (파생값, 직접 수정하지 않음)"""
    year: int
    month: int
    games_played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    total_field_fees: float = 0
    total_water_fees: float = 0
    total_calculated_fees: float = 0
    total_final_fees: float = 0


class TeamStatistics(BaseModel):
    """기간별 팀 통계"""
    total_matches: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    win_rate: int = 0
    goals_for: int = 0
    goals_against: int = 0
    goal_difference: int = 0
