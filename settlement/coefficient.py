"""
경기 계수 계산

계수 = (구장비 총액 + 물값 총액) / 고정 시간 단위(90)

분모는 실제 출석 합계가 아닌 고정값이므로 참가 인원이 바뀌어도
단위당 요금이 흔들리지 않는다.
"""
import math
from typing import Optional

from loguru import logger

from .config import NegativeCostPolicy, settlement_config
from .errors import ValidationError

FIXED_TOTAL_TIME_UNITS = 90


def validate_costs(field_fee_total: float, water_fee_total: float) -> None:
    """비용 총액 검증 (유한한 0 이상의 값)"""
    for name, value in (("field_fee_total", field_fee_total), ("water_fee_total", water_fee_total)):
        if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"{name}은(는) 숫자여야 합니다", field=name, value=value)
        if not math.isfinite(value):
            raise ValidationError(f"{name}이(가) 유한한 값이 아닙니다", field=name, value=value)
        if value < 0:
            raise ValidationError(f"{name}은(는) 음수일 수 없습니다", field=name, value=value)


def calculate_coefficient(
    field_fee_total: float,
    water_fee_total: float,
    policy: Optional[NegativeCostPolicy] = None,
    total_time_units: Optional[float] = None,
) -> float:
    """
    단위 시간당 비용 계수

    Args:
        field_fee_total: 구장비 총액
        water_fee_total: 물값 총액
        policy: 음수 비용 처리 (기본: 설정값, REJECT)
        total_time_units: 분모 (기본: 설정값 90)

    Raises:
        ValidationError: REJECT 정책에서 음수/비정상 비용
    """
    policy = policy or settlement_config.negative_cost_policy
    denominator = total_time_units or settlement_config.fixed_total_time_units or FIXED_TOTAL_TIME_UNITS

    if policy == NegativeCostPolicy.CLAMP and (field_fee_total < 0 or water_fee_total < 0):
        logger.warning(
            f"음수 비용 입력을 계수 0으로 처리: field={field_fee_total}, water={water_fee_total}"
        )
        return 0.0

    validate_costs(field_fee_total, water_fee_total)
    return (field_fee_total + water_fee_total) / denominator


def format_coefficient(coefficient: float) -> str:
    """표시용 (소수 둘째 자리)"""
    return f"{coefficient:.2f}"
