"""
정산 저장소

엔진이 필요로 하는 저장소 경계 정의 + 메모리 구현
- 재계산 커밋은 원자적: 비용 스냅샷 비교 후 전체 선수 결과를 한 번에 반영
- Supabase 구현은 database/fee_repository.py
"""
import threading
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Tuple

from .errors import NotFoundError, StaleCostError
from .models import (
    FeeOverride,
    MatchRecord,
    MonthlyAggregate,
    Participant,
    PlayerFeeResult,
)


class FeeRepository(Protocol):
    """정산 엔진 저장소 인터페이스"""

    def get_match(self, match_id: str) -> MatchRecord: ...

    def list_participants(self, match_id: str) -> List[Participant]: ...

    def list_overrides(self, match_id: str) -> Dict[str, FeeOverride]: ...

    def get_override(self, match_id: str, player_id: str) -> Optional[FeeOverride]: ...

    def list_player_overrides(self, player_id: str) -> List[FeeOverride]: ...

    def save_override(self, override: FeeOverride) -> FeeOverride: ...

    def delete_override(self, match_id: str, player_id: str) -> bool: ...

    def commit_recalculation(
        self,
        match_id: str,
        expected_costs: Tuple,
        fee_coefficient: float,
        results: Dict[str, PlayerFeeResult],
        total_calculated_fees: float,
        total_final_fees: float,
    ) -> MatchRecord: ...

    def update_match(
        self,
        match: MatchRecord,
        attendance_updates: Optional[Dict[str, dict]] = None,
        late_arrivals: Optional[Dict[str, bool]] = None,
    ) -> MatchRecord: ...

    def list_matches_in_month(self, year: int, month: int) -> List[MatchRecord]: ...

    def save_monthly_aggregate(self, aggregate: MonthlyAggregate) -> MonthlyAggregate: ...

    def get_monthly_aggregate(self, year: int, month: int) -> Optional[MonthlyAggregate]: ...


class InMemoryFeeRepository:
    """메모리 저장소 (테스트용, 스레드 안전)"""

    def __init__(self):
        self._lock = threading.RLock()
        self._matches: Dict[str, MatchRecord] = {}
        self._participants: Dict[str, Dict[str, Participant]] = {}
        self._overrides: Dict[Tuple[str, str], FeeOverride] = {}
        self._aggregates: Dict[Tuple[int, int], MonthlyAggregate] = {}

    # ==================== 데이터 준비 ====================

    def add_match(self, match: MatchRecord) -> MatchRecord:
        with self._lock:
            self._matches[match.match_id] = match.model_copy(deep=True)
            self._participants.setdefault(match.match_id, {})
        return match

    def add_participant(self, participant: Participant) -> Participant:
        with self._lock:
            if participant.match_id not in self._matches:
                raise NotFoundError("match", participant.match_id)
            self._participants[participant.match_id][participant.player_id] = participant.model_copy(deep=True)
        return participant

    def set_costs(self, match_id: str, field_fee_total: float, water_fee_total: float) -> None:
        """비용만 직접 변경 (재계산 없이) - 동시 수정 상황 재현용"""
        with self._lock:
            match = self._get_match_locked(match_id)
            match.costs.field_fee_total = field_fee_total
            match.costs.water_fee_total = water_fee_total

    def set_attendance(self, match_id: str, player_id: str, attendance_data: dict) -> None:
        with self._lock:
            participant = self._participants.get(match_id, {}).get(player_id)
            if participant is None:
                raise NotFoundError("participant", f"{match_id}:{player_id}")
            participant.attendance_data = attendance_data

    # ==================== 조회 ====================

    def _get_match_locked(self, match_id: str) -> MatchRecord:
        match = self._matches.get(match_id)
        if match is None:
            raise NotFoundError("match", match_id)
        return match

    def get_match(self, match_id: str) -> MatchRecord:
        with self._lock:
            return self._get_match_locked(match_id).model_copy(deep=True)

    def list_participants(self, match_id: str) -> List[Participant]:
        with self._lock:
            self._get_match_locked(match_id)
            return [p.model_copy(deep=True) for p in self._participants[match_id].values()]

    def list_overrides(self, match_id: str) -> Dict[str, FeeOverride]:
        with self._lock:
            return {
                player_id: override.model_copy()
                for (m_id, player_id), override in self._overrides.items()
                if m_id == match_id
            }

    def get_override(self, match_id: str, player_id: str) -> Optional[FeeOverride]:
        with self._lock:
            override = self._overrides.get((match_id, player_id))
            return override.model_copy() if override else None

    def list_player_overrides(self, player_id: str) -> List[FeeOverride]:
        with self._lock:
            overrides = [o.model_copy() for (_, p_id), o in self._overrides.items() if p_id == player_id]
        return sorted(overrides, key=lambda o: o.updated_at, reverse=True)

    def list_matches_in_month(self, year: int, month: int) -> List[MatchRecord]:
        with self._lock:
            return [
                m.model_copy(deep=True) for m in self._matches.values()
                if m.match_date.year == year and m.match_date.month == month
            ]

    def get_monthly_aggregate(self, year: int, month: int) -> Optional[MonthlyAggregate]:
        with self._lock:
            return self._aggregates.get((year, month))

    # ==================== 저장 ====================

    def save_override(self, override: FeeOverride) -> FeeOverride:
        with self._lock:
            if override.player_id not in self._participants.get(override.match_id, {}):
                raise NotFoundError("participant", f"{override.match_id}:{override.player_id}")
            key = (override.match_id, override.player_id)
            existing = self._overrides.get(key)
            stored = override.model_copy(update={
                "created_at": existing.created_at if existing else override.created_at,
                "updated_at": datetime.now(),
            })
            self._overrides[key] = stored
            return stored.model_copy()

    def delete_override(self, match_id: str, player_id: str) -> bool:
        with self._lock:
            return self._overrides.pop((match_id, player_id), None) is not None

    def commit_recalculation(
        self,
        match_id: str,
        expected_costs: Tuple,
        fee_coefficient: float,
        results: Dict[str, PlayerFeeResult],
        total_calculated_fees: float,
        total_final_fees: float,
    ) -> MatchRecord:
        with self._lock:
            match = self._get_match_locked(match_id)
            participants = self._participants[match_id]

            if match.costs.cost_snapshot() != tuple(expected_costs):
                raise StaleCostError(match_id)
            if set(participants) != set(results):
                raise StaleCostError(match_id)

            # 검증 통과 후 일괄 반영
            for player_id, result in results.items():
                participants[player_id].fee_result = result
            match.costs.fee_coefficient = fee_coefficient
            match.total_participants = len(results)
            match.total_calculated_fees = total_calculated_fees
            match.total_final_fees = total_final_fees
            match.fees_recalculated_at = datetime.now()
            return match.model_copy(deep=True)

    def update_match(
        self,
        match: MatchRecord,
        attendance_updates: Optional[Dict[str, dict]] = None,
        late_arrivals: Optional[Dict[str, bool]] = None,
    ) -> MatchRecord:
        with self._lock:
            self._get_match_locked(match.match_id)
            participants = self._participants[match.match_id]
            for player_id in {**(attendance_updates or {}), **(late_arrivals or {})}:
                if player_id not in participants:
                    raise NotFoundError("participant", f"{match.match_id}:{player_id}")

            stored = match.model_copy(deep=True, update={"updated_at": datetime.now()})
            self._matches[match.match_id] = stored
            for player_id, payload in (attendance_updates or {}).items():
                participants[player_id].attendance_data = payload
            for player_id, is_late in (late_arrivals or {}).items():
                participants[player_id].is_late_arrival = is_late
            return stored.model_copy(deep=True)

    def save_monthly_aggregate(self, aggregate: MonthlyAggregate) -> MonthlyAggregate:
        with self._lock:
            self._aggregates[(aggregate.year, aggregate.month)] = aggregate
        return aggregate
