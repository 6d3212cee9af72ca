"""
반올림 정책

금액은 항목별로 먼저 반올림한 뒤 합산한다 (round-then-sum).
합산 후 반올림(sum-then-round)은 같은 입력에서도 경계값 근처에서 결과가 달라지므로
합계 계산은 반드시 round_then_sum()을 거친다.
"""
import math
from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal]

_WHOLE = Decimal("1")


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"유한하지 않은 값은 반올림할 수 없습니다: {value}")
    # repr 기준 변환: 15.45 → Decimal("15.45") (이진 오차 제거)
    return Decimal(repr(value)) if isinstance(value, float) else Decimal(value)


def round_half_up(value: Number) -> int:
    """가장 가까운 정수로 반올림, .5는 0에서 먼 쪽으로"""
    return int(_to_decimal(value).quantize(_WHOLE, rounding=ROUND_HALF_UP))


def exact_ratio(numerator: Number, factor: Number, denominator: Number) -> Decimal:
    """numerator × factor / denominator (입력의 10진 표기 그대로, 나눗셈은 마지막에 한 번)"""
    return _to_decimal(numerator) * _to_decimal(factor) / _to_decimal(denominator)


def round_then_sum(*components: Number) -> int:
    """각 항목을 반올림한 뒤 합산"""
    return sum(round_half_up(c) for c in components)


def sum_then_round(*components: Number) -> int:
    """비교용: 합산 후 반올림 (정산에는 사용하지 않음)"""
    total = sum((_to_decimal(c) for c in components), Decimal(0))
    return round_half_up(total)


def round_up_whole(value: Number) -> int:
    """올림 (경기 비용 총액 입력 정규화용)"""
    return int(_to_decimal(value).to_integral_value(rounding=ROUND_CEILING))
