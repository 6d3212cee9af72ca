"""
Match Fee API Router

경기 정산 API
- 경기 정보 수정 (비용 변경 시 자동 재계산)
- 출석 입력
- 전체 재계산 / 정산 현황
- 수동 조정 (단건, 일괄, 복사, 이력, 통계)
- 월별 통계
"""

from typing import Any, Optional
from fastapi import APIRouter, Depends, Path
from fastapi.encoders import jsonable_encoder

from settlement.aggregation import team_statistics
from settlement.models import MatchInfoUpdate
from settlement.service import MatchRecalculationService

from .dependencies import get_fee_service
from .models import (
    AttendanceUpdateRequest,
    BulkOverrideRequest,
    BulkRemoveRequest,
    CopyOverridesRequest,
    OverrideRequest,
)

router = APIRouter(prefix="/matches", tags=["Match Fees"])
stats_router = APIRouter(prefix="/stats", tags=["Statistics"])
players_router = APIRouter(prefix="/players", tags=["Players"])


def _ok(data: Any, message: Optional[str] = None) -> dict:
    body = {"success": True, "data": jsonable_encoder(data)}
    if message:
        body["message"] = message
    return body


# =============================================
# 경기 정보 / 출석
# =============================================

@router.put("/{match_id}/info")
def update_match_info(
    match_id: str,
    update: MatchInfoUpdate,
    service: MatchRecalculationService = Depends(get_fee_service)
):
    """
    경기 정보 수정

    구장비/물값/섹션 수가 바뀌면 참가자 전원 재계산.
    재계산이 실패해도 정보 수정은 유지되며 recalculation_error로 함께 반환.
    """
    result = service.update_match_info(match_id, update)
    if result.recalculation_error:
        return _ok(result, "경기 정보는 수정되었으나 정산 재계산에 실패했습니다")
    return _ok(result, "경기 정보가 수정되었습니다")


@router.put("/{match_id}/attendance")
def update_attendance(
    match_id: str,
    request: AttendanceUpdateRequest,
    service: MatchRecalculationService = Depends(get_fee_service)
):
    """출석 입력 저장 + 골키퍼 충돌 해소 + 전원 재계산"""
    result = service.update_attendance(
        match_id,
        request.attendance,
        late_arrivals=request.late_arrivals,
        auto_resolve_conflicts=request.auto_resolve_conflicts,
    )
    return _ok(result)


# =============================================
# 정산
# =============================================

@router.post("/{match_id}/fees/recalculate")
def recalculate_fees(
    match_id: str,
    service: MatchRecalculationService = Depends(get_fee_service)
):
    """참가자 전원 재계산 (전부 반영되거나 하나도 반영되지 않음)"""
    summary = service.recalculate_all_fees(match_id)
    return _ok(summary, f"{summary.total_participants}명의 정산이 재계산되었습니다")


@router.get("/{match_id}/fees")
def get_fee_breakdown(
    match_id: str,
    service: MatchRecalculationService = Depends(get_fee_service)
):
    """경기 정산 현황"""
    return _ok(service.get_fee_breakdown(match_id))


@router.get("/{match_id}/fees/{player_id}")
def get_player_fees(
    match_id: str,
    player_id: str,
    service: MatchRecalculationService = Depends(get_fee_service)
):
    """선수 한 명의 현재 정산 (저장하지 않음)"""
    return _ok(service.calculate_player_fees(match_id, player_id))


# =============================================
# 수동 조정
# =============================================

@router.get("/{match_id}/overrides")
def get_override_history(
    match_id: str,
    service: MatchRecalculationService = Depends(get_fee_service)
):
    return _ok(service.get_override_history(match_id))


@router.get("/{match_id}/overrides/stats")
def get_override_statistics(
    match_id: str,
    service: MatchRecalculationService = Depends(get_fee_service)
):
    return _ok(service.get_override_statistics(match_id))


@router.put("/{match_id}/overrides/{player_id}")
def apply_override(
    match_id: str,
    player_id: str,
    request: OverrideRequest,
    service: MatchRecalculationService = Depends(get_fee_service)
):
    """수동 조정 저장 (기존 조정 교체)"""
    breakdown = service.apply_override(request.to_override(match_id, player_id))
    return _ok(breakdown, "수동 조정이 저장되었습니다")


@router.delete("/{match_id}/overrides/{player_id}")
def remove_override(
    match_id: str,
    player_id: str,
    service: MatchRecalculationService = Depends(get_fee_service)
):
    """수동 조정 삭제 → 계산값으로 복귀"""
    return _ok(service.remove_override(match_id, player_id), "수동 조정이 삭제되었습니다")


@router.post("/{match_id}/overrides/bulk")
def apply_bulk_overrides(
    match_id: str,
    request: BulkOverrideRequest,
    service: MatchRecalculationService = Depends(get_fee_service)
):
    overrides = [
        item.to_override(match_id, item.player_id)
        for item in request.overrides
    ]
    return jsonable_encoder(service.apply_bulk_overrides(match_id, overrides))


@router.post("/{match_id}/overrides/bulk-remove")
def remove_bulk_overrides(
    match_id: str,
    request: BulkRemoveRequest,
    service: MatchRecalculationService = Depends(get_fee_service)
):
    return jsonable_encoder(service.remove_bulk_overrides(match_id, request.player_ids))


@router.post("/{match_id}/overrides/copy")
def copy_overrides(
    match_id: str,
    request: CopyOverridesRequest,
    service: MatchRecalculationService = Depends(get_fee_service)
):
    """다른 경기의 수동 조정 복사"""
    return jsonable_encoder(service.copy_overrides_from_match(
        request.source_match_id, match_id, request.player_mapping
    ))


@players_router.get("/{player_id}/overrides")
def get_player_override_history(
    player_id: str,
    service: MatchRecalculationService = Depends(get_fee_service)
):
    return _ok(service.get_player_override_history(player_id))


# =============================================
# 통계
# =============================================

@stats_router.get("/{year}/{month}")
def get_monthly_stats(
    year: int,
    month: int = Path(..., ge=1, le=12),
    service: MatchRecalculationService = Depends(get_fee_service)
):
    """월별 집계 + 팀 통계 (저장된 집계가 없으면 새로 집계)"""
    aggregate = service.repository.get_monthly_aggregate(year, month)
    if aggregate is None:
        aggregate = service.rebuild_monthly_aggregate(year, month)
    matches = service.repository.list_matches_in_month(year, month)
    return _ok({"aggregate": aggregate, "team": team_statistics(matches)})


@stats_router.post("/{year}/{month}/rebuild")
def rebuild_monthly_stats(
    year: int,
    month: int = Path(..., ge=1, le=12),
    service: MatchRecalculationService = Depends(get_fee_service)
):
    return _ok(service.rebuild_monthly_aggregate(year, month), "월별 집계가 갱신되었습니다")
