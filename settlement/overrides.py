"""
수동 조정 반영

최종 금액 = 수동 조정 금액 (있으면) / 계산된 합계 (없으면)
계산값은 수정하지 않고 그대로 보관한다 (감사 추적).
"""
import math
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from .config import settlement_config
from .errors import ValidationError
from .models import FeeOverride, PlayerFeeBreakdown, PlayerFeeResult

OVERRIDE_FIELDS = ("override_fee", "field_fee_override", "video_fee_override", "late_fee_override")


def validate_override(
    override: FeeOverride,
    thresholds: Optional[Dict[str, float]] = None,
) -> List[str]:
    """
    수동 조정 검증

    Returns:
        경고 메시지 목록 (비정상적으로 큰 금액)

    Raises:
        ValidationError: 메모 누락, 값 없음, 음수/비정상 값
    """
    thresholds = settlement_config.override_warning_thresholds if thresholds is None else thresholds

    if not override.note or not override.note.strip():
        raise ValidationError("수동 조정에는 사유 메모가 필요합니다", field="note")

    values = {name: getattr(override, name) for name in OVERRIDE_FIELDS}
    if all(value is None for value in values.values()):
        raise ValidationError("조정 금액이 하나 이상 필요합니다", field="override_fee")

    warnings = []
    for name, value in values.items():
        if value is None:
            continue
        if not math.isfinite(value):
            raise ValidationError(f"{name} 값이 유한하지 않습니다", field=name, value=value)
        if value < 0:
            raise ValidationError(f"{name}은(는) 음수일 수 없습니다", field=name, value=value)
        limit = thresholds.get(name)
        if limit is not None and value > limit:
            warnings.append(f"{name} 금액이 비정상적으로 큽니다 (>{limit:g})")

    for message in warnings:
        logger.warning(f"수동 조정 경고 [{override.match_id}/{override.player_id}]: {message}")

    return warnings


class OverrideReconciler:
    """계산 결과 + 수동 조정 → 최종 금액"""

    def reconcile(
        self,
        player_id: str,
        computed: PlayerFeeResult,
        override: Optional[FeeOverride] = None,
        player_name: Optional[str] = None,
        is_late_arrival: bool = False,
    ) -> PlayerFeeBreakdown:
        if override is None:
            return PlayerFeeBreakdown(
                player_id=player_id,
                player_name=player_name,
                is_late_arrival=is_late_arrival,
                calculated=computed,
                final_field_fee=computed.field_fee,
                final_video_fee=computed.video_fee,
                final_late_fee=computed.late_fee,
                final_fee=computed.total_fee,
            )

        validate_override(override, thresholds={})

        final_field = _pick(override.field_fee_override, computed.field_fee)
        final_video = _pick(override.video_fee_override, computed.video_fee)
        final_late = _pick(override.late_fee_override, computed.late_fee)

        if override.override_fee is not None:
            final_fee = override.override_fee
        else:
            final_fee = final_field + final_video + final_late

        return PlayerFeeBreakdown(
            player_id=player_id,
            player_name=player_name,
            is_late_arrival=is_late_arrival,
            calculated=computed,
            override=override,
            final_field_fee=final_field,
            final_video_fee=final_video,
            final_late_fee=final_late,
            final_fee=final_fee,
        )


def _pick(override_value: Optional[float], computed_value: float) -> float:
    return computed_value if override_value is None else override_value


def final_fee(computed: PlayerFeeResult, override: Optional[FeeOverride] = None) -> float:
    """최종 납부 금액"""
    return OverrideReconciler().reconcile("", computed, override).final_fee


def override_statistics(players: Iterable[PlayerFeeBreakdown]) -> Dict[str, Any]:
    """경기 수동 조정 통계"""
    players = list(players)
    overridden = [p for p in players if p.override is not None]

    total_calculated = sum(p.calculated.total_fee for p in players)
    total_final = sum(p.final_fee for p in players)

    return {
        "total_players": len(players),
        "players_with_overrides": len(overridden),
        "override_percentage": (len(overridden) / len(players) * 100) if players else 0,
        "total_calculated_fees": total_calculated,
        "total_final_fees": total_final,
        "fee_difference": total_final - total_calculated,
        "override_types": {
            "total_overrides": sum(1 for p in overridden if p.override.override_fee is not None),
            "field_fee_overrides": sum(1 for p in overridden if p.override.field_fee_override is not None),
            "video_fee_overrides": sum(1 for p in overridden if p.override.video_fee_override is not None),
            "late_fee_overrides": sum(1 for p in overridden if p.override.late_fee_override is not None),
        },
    }
