"""
경기 정산 엔진

구장비/물값 계수 기반 선수별 정산 계산 + 수동 조정 + 경기 단위 일괄 재계산
"""
from .attendance import (
    AttendanceRecord,
    GoalkeeperConflict,
    billable_time,
    detect_goalkeeper_conflicts,
    from_legacy_participation,
    prune_to_sections,
    resolve_goalkeeper_conflicts,
    total_time,
)
from .calculator import FeeRates, PlayerFeeCalculator, calculate_player_fees
from .coefficient import FIXED_TOTAL_TIME_UNITS, calculate_coefficient
from .config import (
    ConcurrencyPolicy,
    GoalkeeperPolicy,
    NegativeCostPolicy,
    settlement_config,
)
from .errors import (
    InvalidRateError,
    NotFoundError,
    RecalculationError,
    RecalculationInProgressError,
    SettlementError,
    StaleCostError,
    ValidationError,
)
from .models import (
    FeeOverride,
    MatchCostContext,
    MatchInfoUpdate,
    MatchRecord,
    MatchResult,
    Participant,
    PlayerFeeBreakdown,
    PlayerFeeResult,
    RecalculationSummary,
)
from .overrides import OverrideReconciler, final_fee, validate_override
from .repository import FeeRepository, InMemoryFeeRepository
from .rounding import round_half_up, round_then_sum
from .service import MatchRecalculationService
from .settings import SettingsProvider

__all__ = [
    "AttendanceRecord",
    "GoalkeeperConflict",
    "billable_time",
    "detect_goalkeeper_conflicts",
    "from_legacy_participation",
    "prune_to_sections",
    "resolve_goalkeeper_conflicts",
    "total_time",
    "FeeRates",
    "PlayerFeeCalculator",
    "calculate_player_fees",
    "FIXED_TOTAL_TIME_UNITS",
    "calculate_coefficient",
    "ConcurrencyPolicy",
    "GoalkeeperPolicy",
    "NegativeCostPolicy",
    "settlement_config",
    "InvalidRateError",
    "NotFoundError",
    "RecalculationError",
    "RecalculationInProgressError",
    "SettlementError",
    "StaleCostError",
    "ValidationError",
    "FeeOverride",
    "MatchCostContext",
    "MatchInfoUpdate",
    "MatchRecord",
    "MatchResult",
    "Participant",
    "PlayerFeeBreakdown",
    "PlayerFeeResult",
    "RecalculationSummary",
    "OverrideReconciler",
    "final_fee",
    "validate_override",
    "FeeRepository",
    "InMemoryFeeRepository",
    "round_half_up",
    "round_then_sum",
    "MatchRecalculationService",
    "SettingsProvider",
]
