"""
Supabase 정산 저장소

테이블: matches, match_participations, fee_overrides, monthly_stats, system_config
재계산 커밋(commit_match_fees)과 경기 정보/출석 수정(update_match_with_attendance)은
DB 함수 한 번 호출로 처리 (한 트랜잭션)
"""
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from supabase import Client

from settlement.errors import NotFoundError, StaleCostError
from settlement.models import (
    FeeOverride,
    MatchCostContext,
    MatchRecord,
    MonthlyAggregate,
    Participant,
    PlayerFeeResult,
)

STALE_MARKER = "STALE_COST_INPUTS"
_PARTICIPANT_NOT_FOUND = re.compile(r"PARTICIPANT_NOT_FOUND: ([^\s'\",}]+)")

_MATCH_INFO_COLUMNS = (
    "opponent_team", "our_score", "opponent_score", "notes",
    "total_participants", "total_calculated_fees", "total_final_fees",
)
_COST_COLUMNS = (
    "field_fee_total", "water_fee_total", "fee_coefficient",
    "video_fee_rate", "late_fee_rate", "section_count",
)


def _month_range(year: int, month: int) -> Tuple[str, str]:
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start.isoformat(), end.isoformat()


def match_from_row(row: Dict[str, Any]) -> MatchRecord:
    """matches 행 → MatchRecord"""
    costs = MatchCostContext(
        match_id=row["id"],
        **{column: row[column] for column in _COST_COLUMNS if row.get(column) is not None},
    )
    return MatchRecord(
        match_id=row["id"],
        match_date=row["match_date"],
        match_result=row.get("match_result"),
        fees_recalculated_at=row.get("fees_recalculated_at"),
        costs=costs,
        **{column: row[column] for column in _MATCH_INFO_COLUMNS if row.get(column) is not None},
    )


def match_to_row(match: MatchRecord) -> Dict[str, Any]:
    """MatchRecord → matches 행 (정산 결과 컬럼 포함)"""
    row: Dict[str, Any] = {
        "match_date": match.match_date.isoformat(),
        "match_result": match.match_result.value if match.match_result else None,
        "updated_at": datetime.now().isoformat(),
    }
    for column in _MATCH_INFO_COLUMNS:
        row[column] = getattr(match, column)
    for column in _COST_COLUMNS:
        row[column] = getattr(match.costs, column)
    return row


def participant_from_row(row: Dict[str, Any]) -> Participant:
    fee_result = row.get("fee_result")
    return Participant(
        match_id=row["match_id"],
        player_id=row["player_id"],
        player_name=row.get("player_name"),
        attendance_data=row.get("attendance_data") or {},
        is_late_arrival=bool(row.get("is_late_arrival")),
        fee_result=PlayerFeeResult(**fee_result) if fee_result else None,
    )


def override_from_row(row: Dict[str, Any]) -> FeeOverride:
    return FeeOverride(**{key: value for key, value in row.items() if value is not None})


class SupabaseFeeRepository:
    """Supabase 기반 FeeRepository 구현"""

    def __init__(self, client: Client):
        self.client = client

    # ==================== 조회 ====================

    def get_match(self, match_id: str) -> MatchRecord:
        result = self.client.table("matches").select("*").eq("id", match_id).execute()
        if not result.data:
            raise NotFoundError("match", match_id)
        return match_from_row(result.data[0])

    def list_participants(self, match_id: str) -> List[Participant]:
        self.get_match(match_id)
        result = self.client.table("match_participations").select("*").eq(
            "match_id", match_id
        ).order("player_id").execute()
        return [participant_from_row(row) for row in result.data or []]

    def list_overrides(self, match_id: str) -> Dict[str, FeeOverride]:
        result = self.client.table("fee_overrides").select("*").eq("match_id", match_id).execute()
        return {row["player_id"]: override_from_row(row) for row in result.data or []}

    def get_override(self, match_id: str, player_id: str) -> Optional[FeeOverride]:
        result = self.client.table("fee_overrides").select("*").eq(
            "match_id", match_id
        ).eq("player_id", player_id).execute()
        return override_from_row(result.data[0]) if result.data else None

    def list_player_overrides(self, player_id: str) -> List[FeeOverride]:
        result = self.client.table("fee_overrides").select("*").eq(
            "player_id", player_id
        ).order("updated_at", desc=True).execute()
        return [override_from_row(row) for row in result.data or []]

    def list_matches_in_month(self, year: int, month: int) -> List[MatchRecord]:
        start, end = _month_range(year, month)
        result = self.client.table("matches").select("*").gte(
            "match_date", start
        ).lt("match_date", end).order("match_date").execute()
        return [match_from_row(row) for row in result.data or []]

    def get_monthly_aggregate(self, year: int, month: int) -> Optional[MonthlyAggregate]:
        result = self.client.table("monthly_stats").select("*").eq(
            "year", year
        ).eq("month", month).execute()
        if not result.data:
            return None
        row = {key: value for key, value in result.data[0].items() if key != "updated_at"}
        return MonthlyAggregate(**row)

    # ==================== 저장 ====================

    def save_override(self, override: FeeOverride) -> FeeOverride:
        participation = self.client.table("match_participations").select("player_id").eq(
            "match_id", override.match_id
        ).eq("player_id", override.player_id).execute()
        if not participation.data:
            raise NotFoundError("participant", f"{override.match_id}:{override.player_id}")

        # created_at은 최초 저장 시각 유지
        data = override.model_dump(mode="json", exclude={"created_at"})
        data["updated_at"] = datetime.now().isoformat()
        existing = self.get_override(override.match_id, override.player_id)
        if existing is None:
            data["created_at"] = override.created_at.isoformat()

        result = self.client.table("fee_overrides").upsert(
            data,
            on_conflict="match_id,player_id"
        ).execute()
        return override_from_row(result.data[0])

    def delete_override(self, match_id: str, player_id: str) -> bool:
        result = self.client.table("fee_overrides").delete().eq(
            "match_id", match_id
        ).eq("player_id", player_id).execute()
        return bool(result.data)

    def _call_rpc(self, function: str, params: Dict[str, Any], match_id: str) -> MatchRecord:
        """DB 함수 호출 (함수 안의 RAISE → 정산 오류)"""
        try:
            result = self.client.rpc(function, params).execute()
        except Exception as e:
            message = str(e)
            if STALE_MARKER in message:
                raise StaleCostError(match_id) from e
            if "MATCH_NOT_FOUND" in message:
                raise NotFoundError("match", match_id) from e
            unknown = _PARTICIPANT_NOT_FOUND.search(message)
            if unknown:
                raise NotFoundError("participant", f"{match_id}:{unknown.group(1)}") from e
            logger.error(f"{function} 호출 오류 [{match_id}]: {e}")
            raise

        if not result.data:
            raise NotFoundError("match", match_id)
        return match_from_row(result.data[0])

    def commit_recalculation(
        self,
        match_id: str,
        expected_costs: Tuple,
        fee_coefficient: float,
        results: Dict[str, PlayerFeeResult],
        total_calculated_fees: float,
        total_final_fees: float,
    ) -> MatchRecord:
        field_fee_total, water_fee_total, video_fee_rate, late_fee_rate = expected_costs
        params = {
            "p_match_id": match_id,
            "p_field_fee_total": field_fee_total,
            "p_water_fee_total": water_fee_total,
            "p_video_fee_rate": video_fee_rate,
            "p_late_fee_rate": late_fee_rate,
            "p_fee_coefficient": fee_coefficient,
            "p_results": {player_id: r.model_dump() for player_id, r in results.items()},
            "p_total_calculated_fees": total_calculated_fees,
            "p_total_final_fees": total_final_fees,
        }
        return self._call_rpc("commit_match_fees", params, match_id)

    def update_match(
        self,
        match: MatchRecord,
        attendance_updates: Optional[Dict[str, dict]] = None,
        late_arrivals: Optional[Dict[str, bool]] = None,
    ) -> MatchRecord:
        """경기 행과 선수별 출석/지각을 한 트랜잭션으로 수정"""
        params = {
            "p_match_id": match.match_id,
            "p_match": match_to_row(match),
            "p_attendance": attendance_updates or {},
            "p_late_arrivals": late_arrivals or {},
        }
        return self._call_rpc("update_match_with_attendance", params, match.match_id)

    def save_monthly_aggregate(self, aggregate: MonthlyAggregate) -> MonthlyAggregate:
        data = aggregate.model_dump()
        data["updated_at"] = datetime.now().isoformat()
        self.client.table("monthly_stats").upsert(
            data,
            on_conflict="year,month"
        ).execute()
        return aggregate


def system_config_source(client: Client):
    """SettingsProvider용 설정 소스 (system_config 테이블 전체)"""

    def load() -> Dict[str, str]:
        result = client.table("system_config").select("key, value").execute()
        return {row["key"]: row["value"] for row in result.data or []}

    return load
