"""
정산 API 요청 모델
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from settlement.models import FeeOverride


# =============================================
# 출석
# =============================================

class AttendanceUpdateRequest(BaseModel):
    """출석 일괄 입력"""
    attendance: Dict[str, Dict[str, Any]] = Field(..., description="{선수ID: 출석 JSON}")
    late_arrivals: Optional[Dict[str, bool]] = Field(None, description="{선수ID: 지각 여부}")
    auto_resolve_conflicts: bool = True


# =============================================
# 수동 조정
# =============================================

class OverrideRequest(BaseModel):
    """선수 한 명의 수동 조정"""
    override_fee: Optional[float] = None
    field_fee_override: Optional[float] = None
    video_fee_override: Optional[float] = None
    late_fee_override: Optional[float] = None
    note: Optional[str] = Field(None, description="조정 사유 (필수, 비어 있으면 400)")

    def to_override(self, match_id: str, player_id: str) -> FeeOverride:
        return FeeOverride(match_id=match_id, player_id=player_id, **self.model_dump(exclude={"player_id"}))


class BulkOverrideItem(OverrideRequest):
    player_id: str


class BulkOverrideRequest(BaseModel):
    overrides: List[BulkOverrideItem]


class BulkRemoveRequest(BaseModel):
    player_ids: List[str]


class CopyOverridesRequest(BaseModel):
    """다른 경기의 수동 조정 복사"""
    source_match_id: str
    player_mapping: Optional[Dict[str, str]] = None
