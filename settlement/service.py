"""
경기 정산 재계산 서비스

경기 비용(구장비/물값)이 바뀌면 계수가 바뀌므로 참가자 전원의 정산을 다시 계산한다.

재계산은 단계적 커밋:
1. 비용 스냅샷으로 계수 1회 계산
2. 모든 참가자 결과를 메모리에 계산 (한 명이라도 실패하면 중단)
3. 저장소에 스냅샷 비교 후 일괄 반영 (비용이 바뀌었으면 처음부터 재시도)
"""
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from loguru import logger

from .aggregation import build_monthly_aggregate
from .attendance import (
    AttendanceRecord,
    detect_goalkeeper_conflicts,
    prune_to_sections,
    resolve_goalkeeper_conflicts,
)
from .calculator import FeeRates, PlayerFeeCalculator
from .config import ConcurrencyPolicy, NegativeCostPolicy, settlement_config
from .errors import (
    InvalidRateError,
    NotFoundError,
    RecalculationError,
    RecalculationInProgressError,
    SettlementError,
    StaleCostError,
    ValidationError,
)
from .events import EventPublisher, EventType, SettlementEvent
from .models import (
    CACHE_INVALIDATION_TAGS,
    FeeOverride,
    MatchFeeBreakdown,
    MatchInfoUpdate,
    MatchInfoUpdateResult,
    MatchRecord,
    MatchResult,
    MonthlyAggregate,
    Participant,
    PlayerFeeBreakdown,
    PlayerFeeResult,
    RecalculationSummary,
)
from .overrides import OverrideReconciler, override_statistics, validate_override
from .repository import FeeRepository
from .rounding import round_up_whole
from .settings import SettingsProvider

# 변경 시 전원 재계산이 필요한 필드
FEE_TRIGGER_FIELDS = ("field_fee_total", "water_fee_total", "video_fee_rate", "late_fee_rate", "section_count")


@dataclass
class StagedRecalculation:
    """커밋 전 계산 결과"""
    fee_coefficient: float
    results: Dict[str, PlayerFeeResult]
    players: List[PlayerFeeBreakdown]
    total_calculated_fees: float
    total_final_fees: float


class MatchRecalculationService:
    """경기 정산 서비스"""

    def __init__(
        self,
        repository: FeeRepository,
        settings: Optional[SettingsProvider] = None,
        publisher: Optional[EventPublisher] = None,
        calculator: Optional[PlayerFeeCalculator] = None,
        reconciler: Optional[OverrideReconciler] = None,
        concurrency_policy: Optional[ConcurrencyPolicy] = None,
        max_commit_attempts: Optional[int] = None,
    ):
        self.repository = repository
        self.settings = settings or SettingsProvider()
        self.publisher = publisher or EventPublisher()
        self.calculator = calculator or PlayerFeeCalculator()
        self.reconciler = reconciler or OverrideReconciler()
        self.concurrency_policy = concurrency_policy or settlement_config.concurrent_recalculation
        self.max_commit_attempts = max_commit_attempts or settlement_config.max_commit_attempts

        self._locks_guard = threading.Lock()
        self._match_locks: Dict[str, threading.Lock] = {}

    # ==================== 경기별 잠금 ====================

    @contextmanager
    def _match_lock(self, match_id: str) -> Iterator[None]:
        """같은 경기의 재계산/조정은 한 번에 하나만"""
        with self._locks_guard:
            lock = self._match_locks.setdefault(match_id, threading.Lock())

        if self.concurrency_policy == ConcurrencyPolicy.REJECT:
            if not lock.acquire(blocking=False):
                logger.warning(f"경기 {match_id} 재계산 중복 요청 거부")
                raise RecalculationInProgressError(match_id)
        else:
            lock.acquire()

        try:
            yield
        finally:
            lock.release()

    # ==================== 요금 ====================

    def resolve_rates(self, match: MatchRecord) -> FeeRates:
        """경기 비용 → 계수 + 요금 (경기별 요금이 없으면 전역 설정)"""
        costs = match.costs
        video_rate = costs.video_fee_rate
        late_rate = costs.late_fee_rate
        if video_rate is None or late_rate is None:
            base = self.settings.get_base_fee_rates()
            video_rate = base.video_fee_rate if video_rate is None else video_rate
            late_rate = base.late_fee_rate if late_rate is None else late_rate

        return FeeRates.from_costs(
            costs.field_fee_total,
            costs.water_fee_total,
            video_fee_rate=video_rate,
            late_fee_rate=late_rate,
        ).validate()

    def _compute_player(self, participant: Participant, rates: FeeRates) -> PlayerFeeResult:
        record = AttendanceRecord.from_payload(
            participant.attendance_data,
            is_late_arrival=participant.is_late_arrival,
        )
        return self.calculator.calculate(record, rates)

    # ==================== 재계산 ====================

    def _stage(
        self,
        match: MatchRecord,
        participants: List[Participant],
        overrides: Dict[str, FeeOverride],
    ) -> StagedRecalculation:
        """전원 계산 (저장하지 않음). 한 명이라도 실패하면 RecalculationError"""
        try:
            rates = self.resolve_rates(match)
        except (ValidationError, InvalidRateError) as e:
            raise RecalculationError(
                match.match_id,
                f"경기 {match.match_id} 요금 계산 실패: {e.message}",
                cause=e,
            ) from e

        results: Dict[str, PlayerFeeResult] = {}
        players: List[PlayerFeeBreakdown] = []
        for participant in participants:
            try:
                result = self._compute_player(participant, rates)
                breakdown = self.reconciler.reconcile(
                    participant.player_id,
                    result,
                    overrides.get(participant.player_id),
                    player_name=participant.player_name,
                    is_late_arrival=participant.is_late_arrival,
                )
            except (ValidationError, InvalidRateError) as e:
                raise RecalculationError(
                    match.match_id,
                    f"선수 {participant.player_id} 정산 실패: {e.message}",
                    player_id=participant.player_id,
                    cause=e,
                ) from e
            results[participant.player_id] = result
            players.append(breakdown)

        return StagedRecalculation(
            fee_coefficient=rates.fee_coefficient,
            results=results,
            players=players,
            total_calculated_fees=sum(r.total_fee for r in results.values()),
            total_final_fees=sum(p.final_fee for p in players),
        )

    def recalculate_all_fees(self, match_id: str) -> RecalculationSummary:
        """
        경기 참가자 전원 재계산 (전부 반영되거나 하나도 반영되지 않음)

        Raises:
            NotFoundError: 경기 없음
            RecalculationInProgressError: REJECT 정책에서 중복 요청
            RecalculationError: 선수 계산 실패 또는 비용 변경 재시도 초과
        """
        with self._match_lock(match_id):
            return self._recalculate_locked(match_id)

    def _recalculate_locked(self, match_id: str) -> RecalculationSummary:
        for attempt in range(1, self.max_commit_attempts + 1):
            match = self.repository.get_match(match_id)
            snapshot = match.costs.cost_snapshot()
            participants = self.repository.list_participants(match_id)
            overrides = self.repository.list_overrides(match_id)

            try:
                staged = self._stage(match, participants, overrides)
            except RecalculationError as e:
                logger.error(f"❌ 경기 {match_id} 재계산 중단: {e.message}")
                self.publisher.publish_recalculation_failed(match_id, e.to_dict())
                raise

            try:
                self.repository.commit_recalculation(
                    match_id,
                    snapshot,
                    staged.fee_coefficient,
                    staged.results,
                    staged.total_calculated_fees,
                    staged.total_final_fees,
                )
            except StaleCostError as e:
                logger.warning(f"경기 {match_id} 비용 변경 감지, 재시도 {attempt}/{self.max_commit_attempts}")
                if attempt == self.max_commit_attempts:
                    self.publisher.publish_recalculation_failed(match_id, e.to_dict())
                    raise
                continue

            summary = RecalculationSummary(
                match_id=match_id,
                total_participants=len(staged.results),
                fee_coefficient=staged.fee_coefficient,
                total_calculated_fees=staged.total_calculated_fees,
                total_final_fees=staged.total_final_fees,
            )
            logger.info(
                f"✅ 경기 {match_id} 재계산 완료: 참가자 {summary.total_participants}명, "
                f"계수 {summary.fee_coefficient:.4f}, 최종 합계 {summary.total_final_fees:g}"
            )
            self.publisher.publish_fees_recalculated(
                match_id,
                {
                    "total_participants": summary.total_participants,
                    "fee_coefficient": summary.fee_coefficient,
                    "total_final_fees": summary.total_final_fees,
                },
                summary.invalidate_tags,
            )
            return summary

        raise StaleCostError(match_id)

    # ==================== 조회 ====================

    def calculate_player_fees(self, match_id: str, player_id: str) -> PlayerFeeBreakdown:
        """선수 한 명의 현재 정산 계산 (저장하지 않음)"""
        match = self.repository.get_match(match_id)
        participant = self._get_participant(match_id, player_id)
        rates = self.resolve_rates(match)
        result = self._compute_player(participant, rates)
        return self.reconciler.reconcile(
            player_id,
            result,
            self.repository.get_override(match_id, player_id),
            player_name=participant.player_name,
            is_late_arrival=participant.is_late_arrival,
        )

    def get_fee_breakdown(self, match_id: str) -> MatchFeeBreakdown:
        """
        저장된 정산 결과 기준 현황

        아직 계산되지 않은 참가자는 현재 요금으로 계산해서 보여준다 (저장하지 않음).
        """
        match = self.repository.get_match(match_id)
        participants = self.repository.list_participants(match_id)
        overrides = self.repository.list_overrides(match_id)

        rates: Optional[FeeRates] = None
        players = []
        for participant in participants:
            result = participant.fee_result
            if result is None:
                rates = rates or self.resolve_rates(match)
                result = self._compute_player(participant, rates)
            players.append(self.reconciler.reconcile(
                participant.player_id,
                result,
                overrides.get(participant.player_id),
                player_name=participant.player_name,
                is_late_arrival=participant.is_late_arrival,
            ))

        coefficient = match.costs.fee_coefficient
        if coefficient is None:
            coefficient = rates.fee_coefficient if rates else self.resolve_rates(match).fee_coefficient

        return MatchFeeBreakdown(
            match_id=match_id,
            fee_coefficient=coefficient,
            total_participants=len(players),
            total_calculated_fees=sum(p.calculated.total_fee for p in players),
            total_final_fees=sum(p.final_fee for p in players),
            players=players,
        )

    def _get_participant(self, match_id: str, player_id: str) -> Participant:
        for participant in self.repository.list_participants(match_id):
            if participant.player_id == player_id:
                return participant
        raise NotFoundError("participant", f"{match_id}:{player_id}")

    # ==================== 수동 조정 ====================

    def apply_override(self, override: FeeOverride) -> PlayerFeeBreakdown:
        """
        수동 조정 저장 (경기당 선수 1건, 기존 조정은 교체)

        계산된 결과는 그대로 두고 최종 금액만 바뀐다.
        """
        validate_override(override)
        with self._match_lock(override.match_id):
            saved = self.repository.save_override(override)
            breakdown = self._refresh_final_totals(override.match_id, override.player_id)

        logger.info(f"수동 조정 저장: {override.match_id}/{override.player_id} → {breakdown.final_fee:g}")
        self.publisher.publish_override_changed(
            override.match_id, override.player_id, applied=True, tags=list(CACHE_INVALIDATION_TAGS)
        )
        return breakdown.model_copy(update={"override": saved})

    def remove_override(self, match_id: str, player_id: str) -> PlayerFeeBreakdown:
        """수동 조정 삭제 → 저장된 계산값으로 복귀 (재계산 없음)"""
        with self._match_lock(match_id):
            self._get_participant(match_id, player_id)
            removed = self.repository.delete_override(match_id, player_id)
            breakdown = self._refresh_final_totals(match_id, player_id)

        if removed:
            logger.info(f"수동 조정 삭제: {match_id}/{player_id}")
            self.publisher.publish_override_changed(
                match_id, player_id, applied=False, tags=list(CACHE_INVALIDATION_TAGS)
            )
        return breakdown

    def _refresh_final_totals(self, match_id: str, player_id: str) -> PlayerFeeBreakdown:
        """조정 변경 후 경기 최종 합계만 갱신하고 해당 선수 내역 반환"""
        breakdown = self.get_fee_breakdown(match_id)
        match = self.repository.get_match(match_id)
        match.total_final_fees = breakdown.total_final_fees
        self.repository.update_match(match)

        for player in breakdown.players:
            if player.player_id == player_id:
                return player
        raise NotFoundError("participant", f"{match_id}:{player_id}")

    def apply_bulk_overrides(self, match_id: str, overrides: List[FeeOverride]) -> Dict[str, Any]:
        """선수별로 독립 처리 (일부 실패 허용)"""
        results, errors = [], []
        for override in overrides:
            override = override.model_copy(update={"match_id": match_id})
            try:
                results.append(self.apply_override(override))
            except SettlementError as e:
                errors.append({"player_id": override.player_id, "error": e.message})

        return {"success": not errors, "results": results, "errors": errors}

    def remove_bulk_overrides(self, match_id: str, player_ids: List[str]) -> Dict[str, Any]:
        results, errors = [], []
        for player_id in player_ids:
            try:
                results.append(self.remove_override(match_id, player_id))
            except SettlementError as e:
                errors.append({"player_id": player_id, "error": e.message})

        return {"success": not errors, "results": results, "errors": errors}

    def get_override_history(self, match_id: str) -> List[FeeOverride]:
        self.repository.get_match(match_id)
        overrides = list(self.repository.list_overrides(match_id).values())
        return sorted(overrides, key=lambda o: o.updated_at, reverse=True)

    def get_player_override_history(self, player_id: str) -> List[FeeOverride]:
        return self.repository.list_player_overrides(player_id)

    def get_override_statistics(self, match_id: str) -> Dict[str, Any]:
        return override_statistics(self.get_fee_breakdown(match_id).players)

    def copy_overrides_from_match(
        self,
        source_match_id: str,
        target_match_id: str,
        player_mapping: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """다른 경기의 수동 조정 복사 (대상 경기에 없는 선수는 건너뜀)"""
        self.repository.get_match(target_match_id)
        source_overrides = self.repository.list_overrides(source_match_id)
        if not source_overrides:
            return {"success": True, "copied_count": 0, "skipped_count": 0,
                    "errors": ["원본 경기에 수동 조정이 없습니다"]}

        target_players = {p.player_id for p in self.repository.list_participants(target_match_id)}
        copied, skipped, errors = 0, 0, []
        for player_id, source in source_overrides.items():
            target_player_id = (player_mapping or {}).get(player_id, player_id)
            if target_player_id not in target_players:
                skipped += 1
                errors.append(f"선수 {target_player_id}이(가) 대상 경기에 없습니다")
                continue
            try:
                self.apply_override(source.model_copy(update={
                    "match_id": target_match_id,
                    "player_id": target_player_id,
                    "note": f"경기 {source_match_id}에서 복사: {source.note or ''}",
                    "created_at": datetime.now(),
                }))
                copied += 1
            except SettlementError as e:
                skipped += 1
                errors.append(f"선수 {target_player_id} 복사 실패: {e.message}")

        return {"success": not errors, "copied_count": copied, "skipped_count": skipped, "errors": errors}

    # ==================== 경기 정보 / 출석 ====================

    def update_match_info(self, match_id: str, update: MatchInfoUpdate) -> MatchInfoUpdateResult:
        """
        경기 정보 수정 후 필요하면 재계산

        정보 수정과 재계산은 별개 작업: 재계산이 실패해도 정보 수정은 유지되고
        결과의 recalculation_error로 함께 보고한다.
        """
        changes = update.model_dump(exclude_none=True)
        for name in ("field_fee_total", "water_fee_total"):
            if name in changes:
                changes[name] = round_up_whole(changes[name])
        checked = ["video_fee_rate", "late_fee_rate"]
        if settlement_config.negative_cost_policy == NegativeCostPolicy.REJECT:
            checked += ["field_fee_total", "water_fee_total"]
        for name in checked:
            if name in changes and changes[name] < 0:
                raise ValidationError(f"{name}은(는) 음수일 수 없습니다", field=name, value=changes[name])

        with self._match_lock(match_id):
            match = self.repository.get_match(match_id)
            previous_sections = match.costs.section_count

            needs_recalculation = any(
                name in changes and changes[name] != getattr(match.costs, name)
                for name in FEE_TRIGGER_FIELDS
            )

            for name in ("match_date", "opponent_team", "our_score", "opponent_score", "notes"):
                if name in changes:
                    setattr(match, name, changes[name])
            for name in FEE_TRIGGER_FIELDS:
                if name in changes:
                    setattr(match.costs, name, changes[name])
            if match.our_score is not None and match.opponent_score is not None:
                match.match_result = MatchResult.from_scores(match.our_score, match.opponent_score)

            attendance_updates = None
            if match.costs.section_count < previous_sections:
                attendance_updates = self._pruned_attendance(match_id, match.costs.section_count)

            updated = self.repository.update_match(match, attendance_updates)
            logger.info(f"경기 {match_id} 정보 수정: {sorted(changes)}")

            self.publisher.publish(SettlementEvent(
                event_type=EventType.MATCH_INFO_UPDATED,
                entity_type="match",
                entity_id=match_id,
                data={"changed_fields": sorted(changes)},
                invalidate_tags=list(CACHE_INVALIDATION_TAGS),
            ))

            if not needs_recalculation:
                return MatchInfoUpdateResult(match=updated, skipped_reason="정산 관련 항목 변경 없음")

            try:
                summary = self._recalculate_locked(match_id)
            except RecalculationError as e:
                logger.error(f"경기 {match_id} 정보는 저장됨, 재계산 실패: {e.message}")
                return MatchInfoUpdateResult(
                    match=self.repository.get_match(match_id),
                    recalculation_error=e.to_dict(),
                )

        return MatchInfoUpdateResult(match=self.repository.get_match(match_id), fee_recalculation=summary)

    def _pruned_attendance(self, match_id: str, section_count: int) -> Dict[str, dict]:
        pruned = {}
        for participant in self.repository.list_participants(match_id):
            record = AttendanceRecord.from_payload(participant.attendance_data)
            pruned[participant.player_id] = prune_to_sections(record, section_count).to_payload()
        return pruned

    def update_attendance(
        self,
        match_id: str,
        attendance: Dict[str, Dict[str, Any]],
        late_arrivals: Optional[Dict[str, bool]] = None,
        auto_resolve_conflicts: bool = True,
    ) -> Dict[str, Any]:
        """
        출석 입력 저장 후 전원 재계산

        Args:
            attendance: {선수ID: 출석 JSON}
            late_arrivals: {선수ID: 지각 여부}
            auto_resolve_conflicts: 골키퍼 중복 시 앞서 지정된 골키퍼 해제

        Raises:
            ValidationError: 출석값 오류 또는 (자동 해소 off 시) 골키퍼 충돌
        """
        incoming = {}
        for player_id, payload in attendance.items():
            try:
                incoming[player_id] = AttendanceRecord.from_payload(payload)
            except ValidationError as e:
                e.details["player_id"] = player_id
                raise

        with self._match_lock(match_id):
            match = self.repository.get_match(match_id)
            participants = {p.player_id: p for p in self.repository.list_participants(match_id)}
            unknown = set(incoming) - set(participants)
            if unknown:
                raise NotFoundError("participant", f"{match_id}:{sorted(unknown)[0]}")

            # 기존 기록을 먼저 두어 새 입력의 골키퍼 지정이 우선하도록
            records = {
                player_id: AttendanceRecord.from_payload(p.attendance_data)
                for player_id, p in participants.items()
                if player_id not in incoming
            }
            records.update(incoming)
            conflicts = detect_goalkeeper_conflicts(records)
            if conflicts and not auto_resolve_conflicts:
                first = conflicts[0]
                raise ValidationError(
                    f"골키퍼 중복 지정: 섹션 {first.section} 파트 {first.part}",
                    field="goalkeeper",
                    section=first.section,
                    part=first.part,
                )
            if conflicts:
                records = resolve_goalkeeper_conflicts(records, conflicts)
                touched = set(incoming) | {c.existing_goalkeeper_id for c in conflicts}
            else:
                touched = set(incoming)

            self.repository.update_match(
                match,
                {player_id: records[player_id].to_payload() for player_id in touched},
                late_arrivals,
            )
            summary = self._recalculate_locked(match_id)

        return {
            "participations_count": len(touched),
            "conflicts_resolved": len(conflicts),
            "fee_recalculation": summary,
        }

    # ==================== 집계 ====================

    def rebuild_monthly_aggregate(self, year: int, month: int) -> MonthlyAggregate:
        """(연, 월) 구간 전체를 다시 집계하여 저장"""
        matches = self.repository.list_matches_in_month(year, month)
        aggregate = build_monthly_aggregate(year, month, matches)
        self.repository.save_monthly_aggregate(aggregate)
        logger.info(f"📊 {year}-{month:02d} 월별 집계: {aggregate.games_played}경기")
        self.publisher.publish(SettlementEvent(
            event_type=EventType.AGGREGATE_REBUILT,
            entity_type="aggregate",
            entity_id=f"{year}-{month:02d}",
            data=aggregate.model_dump(),
            invalidate_tags=["stats", "statistics"],
        ))
        return aggregate
