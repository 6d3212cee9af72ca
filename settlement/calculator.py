"""
선수 정산 계산

구장비 = round((구장비 총액 + 물값 총액) × 과금시간 / 90)
영상비 = round(과금시간 / 영상 분모 × 영상 요금)
지각비 = 지각 시 round(지각 요금), 아니면 0
합계   = 반올림된 세 항목의 합 (round-then-sum)
"""
import math
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from .attendance import AttendanceRecord, billable_time, sections_played, total_time
from .coefficient import FIXED_TOTAL_TIME_UNITS, calculate_coefficient
from .config import GoalkeeperPolicy, NegativeCostPolicy, settlement_config
from .errors import InvalidRateError
from .models import PlayerFeeResult
from .rounding import exact_ratio, round_half_up, round_then_sum


def _check_rate(name: str, value: float) -> float:
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidRateError(name, value)
    if not math.isfinite(value) or value < 0:
        raise InvalidRateError(name, value)
    return value


@dataclass(frozen=True)
class FeeRates:
    """
    한 경기에 적용되는 요금

    cost_total이 있으면 구장비는 (구장비+물값) × 과금시간 / 분모를 10진수로 계산한 뒤 반올림한다.
    fee_coefficient는 표시/저장용.
    """
    fee_coefficient: float
    video_fee_rate: float
    late_fee_rate: float
    cost_total: Optional[float] = None
    total_time_units: float = FIXED_TOTAL_TIME_UNITS

    @classmethod
    def from_costs(
        cls,
        field_fee_total: float,
        water_fee_total: float,
        video_fee_rate: float,
        late_fee_rate: float,
        policy: Optional[NegativeCostPolicy] = None,
        total_time_units: Optional[float] = None,
    ) -> "FeeRates":
        """경기 비용 총액 → 요금 (CLAMP로 계수가 0이 되면 비용 총액도 0)"""
        units = total_time_units or settlement_config.fixed_total_time_units or FIXED_TOTAL_TIME_UNITS
        coefficient = calculate_coefficient(field_fee_total, water_fee_total, policy, units)
        return cls(
            fee_coefficient=coefficient,
            video_fee_rate=video_fee_rate,
            late_fee_rate=late_fee_rate,
            cost_total=field_fee_total + water_fee_total if coefficient else 0,
            total_time_units=units,
        )

    def validate(self) -> "FeeRates":
        _check_rate("fee_coefficient", self.fee_coefficient)
        _check_rate("video_fee_rate", self.video_fee_rate)
        _check_rate("late_fee_rate", self.late_fee_rate)
        if self.cost_total is not None:
            _check_rate("cost_total", self.cost_total)
        if _check_rate("total_time_units", self.total_time_units) == 0:
            raise InvalidRateError("total_time_units", self.total_time_units)
        return self


class PlayerFeeCalculator:
    """선수 정산 계산기 (부작용 없음)"""

    def __init__(
        self,
        goalkeeper_policy: Optional[GoalkeeperPolicy] = None,
        video_time_units: Optional[float] = None,
    ):
        self.goalkeeper_policy = goalkeeper_policy or settlement_config.goalkeeper_policy
        self.video_time_units = video_time_units or settlement_config.video_time_units

    def calculate(
        self,
        record: AttendanceRecord,
        rates: FeeRates,
        is_late_arrival: Optional[bool] = None,
    ) -> PlayerFeeResult:
        """
        선수 한 명의 정산 계산

        Args:
            record: 출석 기록
            rates: 계수/영상 요금/지각 요금
            is_late_arrival: 지정하지 않으면 record.is_late_arrival 사용

        Raises:
            InvalidRateError: 유한하지 않거나 음수인 요금
        """
        rates.validate()
        if is_late_arrival is None:
            is_late_arrival = record.is_late_arrival

        played = total_time(record)
        billable = billable_time(record, self.goalkeeper_policy)

        if rates.cost_total is not None:
            exact_field_fee = exact_ratio(rates.cost_total, billable, rates.total_time_units)
        else:
            exact_field_fee = exact_ratio(rates.fee_coefficient, billable, 1)
        exact_video_fee = exact_ratio(billable, rates.video_fee_rate, self.video_time_units)
        raw_late_fee = rates.late_fee_rate if is_late_arrival else 0

        field_fee = round_half_up(exact_field_fee)
        video_fee = round_half_up(exact_video_fee)
        late_fee = round_half_up(raw_late_fee)
        raw_field_fee = float(exact_field_fee)
        raw_video_fee = float(exact_video_fee)

        result = PlayerFeeResult(
            total_time=played,
            billable_time=billable,
            sections_played=sections_played(record, self.goalkeeper_policy),
            raw_field_fee=raw_field_fee,
            raw_video_fee=raw_video_fee,
            field_fee=field_fee,
            late_fee=late_fee,
            video_fee=video_fee,
            total_fee=round_then_sum(field_fee, late_fee, video_fee),
        )
        logger.debug(
            f"정산 계산: time={played} billable={billable} "
            f"field={field_fee} late={late_fee} video={video_fee} total={result.total_fee}"
        )
        return result


def calculate_player_fees(
    record: AttendanceRecord,
    fee_coefficient: float,
    video_fee_rate: Optional[float] = None,
    late_fee_rate: Optional[float] = None,
    is_late_arrival: Optional[bool] = None,
    goalkeeper_policy: Optional[GoalkeeperPolicy] = None,
) -> PlayerFeeResult:
    """PlayerFeeCalculator 단축 함수 (요금 미지정 시 설정 기본값)"""
    rates = FeeRates(
        fee_coefficient=fee_coefficient,
        video_fee_rate=settlement_config.default_video_fee_rate if video_fee_rate is None else video_fee_rate,
        late_fee_rate=settlement_config.default_late_fee_rate if late_fee_rate is None else late_fee_rate,
    )
    return PlayerFeeCalculator(goalkeeper_policy=goalkeeper_policy).calculate(
        record, rates, is_late_arrival
    )
