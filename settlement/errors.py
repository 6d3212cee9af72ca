"""
정산 엔진 오류 체계

- ValidationError: 잘못된 출석 셀, 메모 없는 수동 조정, 음수 비용
- InvalidRateError: 유한하지 않거나 음수인 요금
- RecalculationError: 일괄 재계산 중단 (실패한 선수 식별)
- NotFoundError: 알 수 없는 경기/선수 (저장소 계층에서 발생)
"""
from typing import Any, Dict, Optional


class SettlementError(Exception):
    """정산 엔진 기본 오류"""

    code = "SETTLEMENT_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(SettlementError):
    """입력 검증 실패"""

    code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        section: Optional[str] = None,
        part: Optional[str] = None,
        value: Any = None,
    ):
        details: Dict[str, Any] = {}
        if field is not None:
            details["field"] = field
        if section is not None:
            details["section"] = section
        if part is not None:
            details["part"] = part
        if value is not None:
            details["value"] = value
        super().__init__(message, details)
        self.field = field
        self.section = section
        self.part = part
        self.value = value


class InvalidRateError(SettlementError):
    """요금/계수 입력 오류"""

    code = "INVALID_RATE"

    def __init__(self, rate_name: str, value: Any):
        super().__init__(
            f"{rate_name} 값이 올바르지 않습니다: {value!r}",
            {"rate": rate_name, "value": value},
        )
        self.rate_name = rate_name
        self.value = value


class NotFoundError(SettlementError):
    """경기/선수 없음"""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(
            f"{entity_type} {entity_id}을(를) 찾을 수 없습니다",
            {"entity_type": entity_type, "entity_id": entity_id},
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class RecalculationError(SettlementError):
    """경기 전체 재계산 실패 - 어떤 선수도 갱신되지 않음"""

    code = "RECALCULATION_FAILED"

    def __init__(
        self,
        match_id: str,
        message: str,
        player_id: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {"match_id": match_id}
        if player_id is not None:
            details["player_id"] = player_id
        if cause is not None:
            details["cause"] = cause.to_dict() if isinstance(cause, SettlementError) else str(cause)
        super().__init__(message, details)
        self.match_id = match_id
        self.player_id = player_id
        self.cause = cause


class RecalculationInProgressError(RecalculationError):
    """같은 경기의 재계산이 이미 진행 중"""

    code = "RECALCULATION_IN_PROGRESS"

    def __init__(self, match_id: str):
        super().__init__(match_id, f"경기 {match_id}의 재계산이 이미 진행 중입니다")


class StaleCostError(RecalculationError):
    """스냅샷 이후 경기 비용/참가자가 변경되어 커밋 불가"""

    code = "STALE_COST_INPUTS"

    def __init__(self, match_id: str):
        super().__init__(match_id, f"경기 {match_id}의 비용 또는 참가자 구성이 재계산 도중 변경되었습니다")
