"""
출석 모델

한 경기에서 선수 한 명의 출석을 섹션 × 파트 그리드로 표현
- 출석값: 0 (불참), 0.5 (부분), 1 (전체)
- 골키퍼 여부는 출석값과 별도로 셀마다 기록
- 저장/전송 형식: {"attendance": {섹션: {파트: 값}}, "goalkeeper": {섹션: {파트: bool}}}
"""
from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from loguru import logger
from pydantic import BaseModel, Field, StrictBool, StrictFloat, StrictInt
from pydantic import ValidationError as PydanticValidationError

from .config import GoalkeeperPolicy, settlement_config
from .errors import ValidationError

CellValue = Union[StrictInt, StrictFloat]

ALLOWED_PRESENCE_VALUES = (0, 0.5, 1)


class AttendanceRecord(BaseModel):
    """선수 한 명의 경기 출석 기록"""

    attendance: Dict[str, Dict[str, CellValue]] = Field(default_factory=dict)
    goalkeeper: Dict[str, Dict[str, StrictBool]] = Field(default_factory=dict)
    is_late_arrival: bool = Field(default=False, exclude=True)

    @classmethod
    def from_payload(
        cls,
        payload: Optional[Dict[str, Any]],
        is_late_arrival: bool = False,
    ) -> "AttendanceRecord":
        """
        저장된 출석 JSON을 검증하여 로드

        Raises:
            ValidationError: 형식 오류 또는 {0, 0.5, 1} 밖의 출석값
        """
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValidationError(
                "출석 데이터는 객체여야 합니다",
                field="attendance_data",
                value=type(payload).__name__,
            )

        try:
            record = cls(
                attendance=payload.get("attendance") or {},
                goalkeeper=payload.get("goalkeeper") or {},
                is_late_arrival=is_late_arrival,
            )
        except PydanticValidationError as e:
            error = e.errors()[0]
            loc = [str(item) for item in error["loc"]]
            raise ValidationError(
                f"출석 데이터 형식 오류: {error['msg']}",
                field=loc[0] if loc else None,
                section=loc[1] if len(loc) > 1 else None,
                part=loc[2] if len(loc) > 2 else None,
                value=error.get("input"),
            ) from e

        record.validate_cells()
        return record

    def validate_cells(self) -> None:
        """모든 셀 키와 출석값 검증"""
        for grid_name, grid in (("attendance", self.attendance), ("goalkeeper", self.goalkeeper)):
            for section, parts in grid.items():
                if not section.isdigit():
                    raise ValidationError(
                        f"섹션 키는 숫자 문자열이어야 합니다: {section!r}",
                        field=grid_name,
                        section=section,
                    )
                for part in parts:
                    if not part.isdigit():
                        raise ValidationError(
                            f"파트 키는 숫자 문자열이어야 합니다: {part!r}",
                            field=grid_name,
                            section=section,
                            part=part,
                        )

        for section, parts in self.attendance.items():
            for part, value in parts.items():
                if value not in ALLOWED_PRESENCE_VALUES:
                    raise ValidationError(
                        f"출석값은 0, 0.5, 1 중 하나여야 합니다 "
                        f"(섹션 {section}, 파트 {part}: {value})",
                        field="attendance",
                        section=section,
                        part=part,
                        value=value,
                    )

    def to_payload(self) -> Dict[str, Any]:
        """저장 형식으로 변환 (키와 값 그대로 유지)"""
        return {
            "attendance": deepcopy(self.attendance),
            "goalkeeper": deepcopy(self.goalkeeper),
        }


@dataclass(frozen=True)
class GoalkeeperConflict:
    """같은 셀에 골키퍼가 둘 이상 지정된 경우"""
    section: str
    part: str
    existing_goalkeeper_id: str
    new_goalkeeper_id: str


# =====================================================
# 조회 함수
# =====================================================

def _sort_key(key: str) -> Tuple[int, str]:
    return (int(key), key) if key.isdigit() else (10 ** 9, key)


def iter_cells(record: AttendanceRecord) -> Iterator[Tuple[str, str, float, bool]]:
    """(섹션, 파트, 출석값, 골키퍼 여부)를 섹션/파트 순으로 순회"""
    sections = set(record.attendance) | set(record.goalkeeper)
    for section in sorted(sections, key=_sort_key):
        values = record.attendance.get(section, {})
        flags = record.goalkeeper.get(section, {})
        for part in sorted(set(values) | set(flags), key=_sort_key):
            yield section, part, values.get(part, 0), flags.get(part, False)


def total_time(record: AttendanceRecord) -> float:
    """모든 출석 셀의 합"""
    return float(sum(value for _, _, value, _ in iter_cells(record)))


def is_goalkeeper_at(record: AttendanceRecord, section: Union[int, str], part: Union[int, str]) -> bool:
    return bool(record.goalkeeper.get(str(section), {}).get(str(part), False))


def cell_count(record: AttendanceRecord) -> int:
    return sum(1 for _ in iter_cells(record))


def billable_time(
    record: AttendanceRecord,
    policy: GoalkeeperPolicy = GoalkeeperPolicy.EXEMPT,
) -> float:
    """
    과금 대상 시간

    EXEMPT 정책에서는 골키퍼로 뛴 셀을 제외한다.
    """
    if policy == GoalkeeperPolicy.CHARGED:
        return total_time(record)
    return float(sum(
        value for _, _, value, is_gk in iter_cells(record)
        if value > 0 and not is_gk
    ))


def sections_played(
    record: AttendanceRecord,
    policy: GoalkeeperPolicy = GoalkeeperPolicy.EXEMPT,
) -> int:
    """과금 대상 출석이 있는 섹션 수"""
    sections = set()
    for section, _, value, is_gk in iter_cells(record):
        if value > 0 and (policy == GoalkeeperPolicy.CHARGED or not is_gk):
            sections.add(section)
    return len(sections)


# =====================================================
# 생성/변환
# =====================================================

def empty_record(
    section_count: Optional[int] = None,
    parts_per_section: Optional[int] = None,
) -> AttendanceRecord:
    """모든 셀이 0/False인 기록"""
    section_count = section_count or settlement_config.section_count
    parts_per_section = parts_per_section or settlement_config.parts_per_section

    sections = [str(s) for s in range(1, section_count + 1)]
    parts = [str(p) for p in range(1, parts_per_section + 1)]
    return AttendanceRecord(
        attendance={s: {p: 0 for p in parts} for s in sections},
        goalkeeper={s: {p: False for p in parts} for s in sections},
    )


def prune_to_sections(
    record: AttendanceRecord,
    section_count: int,
    parts_per_section: Optional[int] = None,
) -> AttendanceRecord:
    """
    섹션 수 축소 시 출석 데이터 정리

    1..section_count 섹션만 남기고, 없는 섹션은 0/False로 채운다.
    """
    parts_per_section = parts_per_section or settlement_config.parts_per_section
    parts = [str(p) for p in range(1, parts_per_section + 1)]

    attendance: Dict[str, Dict[str, Any]] = {}
    goalkeeper: Dict[str, Dict[str, bool]] = {}
    for section_no in range(1, section_count + 1):
        key = str(section_no)
        attendance[key] = dict(record.attendance.get(key) or {p: 0 for p in parts})
        goalkeeper[key] = dict(record.goalkeeper.get(key) or {p: False for p in parts})

    return AttendanceRecord(
        attendance=attendance,
        goalkeeper=goalkeeper,
        is_late_arrival=record.is_late_arrival,
    )


def from_legacy_participation(participation: Dict[str, Any]) -> AttendanceRecord:
    """
    레거시 형식 변환: section1Part1, section1Part2, ... 필드 → 3×3 그리드

    레거시 isGoalkeeper 플래그는 어느 셀인지 알 수 없어 반영하지 않는다.
    """
    record = empty_record(3, 3)
    for section in range(1, 4):
        for part in range(1, 4):
            field_name = f"section{section}Part{part}"
            if participation.get(field_name) is not None:
                record.attendance[str(section)][str(part)] = participation[field_name]

    if participation.get("isGoalkeeper"):
        logger.warning("레거시 isGoalkeeper 플래그 감지: 골키퍼 셀을 특정할 수 없어 무시합니다")

    record.validate_cells()
    return record


# =====================================================
# 골키퍼 충돌
# =====================================================

def detect_goalkeeper_conflicts(records: Dict[str, AttendanceRecord]) -> List[GoalkeeperConflict]:
    """같은 섹션/파트에 골키퍼로 지정된 선수가 둘 이상인 셀 탐지"""
    conflicts = []
    goalkeeper_map: Dict[Tuple[str, str], str] = {}

    for player_id, record in records.items():
        for section, part, _, is_gk in iter_cells(record):
            if not is_gk:
                continue
            key = (section, part)
            existing = goalkeeper_map.get(key)
            if existing and existing != player_id:
                conflicts.append(GoalkeeperConflict(
                    section=section,
                    part=part,
                    existing_goalkeeper_id=existing,
                    new_goalkeeper_id=player_id,
                ))
            else:
                goalkeeper_map[key] = player_id

    return conflicts


def resolve_goalkeeper_conflicts(
    records: Dict[str, AttendanceRecord],
    conflicts: List[GoalkeeperConflict],
) -> Dict[str, AttendanceRecord]:
    """
    충돌 자동 해소: 먼저 지정된 골키퍼의 해당 셀을 해제하고 출석값을 0으로

    원본은 변경하지 않고 복사본을 반환한다.
    """
    resolved = {player_id: record.model_copy(deep=True) for player_id, record in records.items()}

    for conflict in conflicts:
        record = resolved.get(conflict.existing_goalkeeper_id)
        if record is None:
            continue
        record.goalkeeper.setdefault(conflict.section, {})[conflict.part] = False
        record.attendance.setdefault(conflict.section, {})[conflict.part] = 0

    if conflicts:
        logger.info(f"골키퍼 충돌 {len(conflicts)}건 자동 해소")

    return resolved
