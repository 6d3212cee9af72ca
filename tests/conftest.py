"""
Pytest configuration and fixtures for match fee settlement tests
"""

import pytest
import sys
from datetime import date
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from settlement.events import EventPublisher
from settlement.models import MatchCostContext, MatchRecord, Participant
from settlement.repository import InMemoryFeeRepository
from settlement.service import MatchRecalculationService
from settlement.settings import SettingsProvider


class FakeClock:
    """수동으로 진행시키는 시계 (설정 캐시 TTL 테스트용)"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_attendance(rows, goalkeeper=()):
    """
    3×N 출석 JSON 생성

    Args:
        rows: 섹션별 파트 출석값 목록 (예: [[1, 1, 1], [1, 0.5, 0]])
        goalkeeper: 골키퍼로 뛴 (섹션, 파트) 목록 (1부터)
    """
    attendance, flags = {}, {}
    for s, parts in enumerate(rows, start=1):
        attendance[str(s)] = {str(p): value for p, value in enumerate(parts, start=1)}
        flags[str(s)] = {str(p): (s, p) in goalkeeper for p in range(1, len(parts) + 1)}
    return {"attendance": attendance, "goalkeeper": flags}


FULL = [[1, 1, 1], [1, 1, 1], [1, 1, 1]]
TWO_SECTIONS = [[1, 1, 1], [1, 1, 1], [0, 0, 0]]
ONE_SECTION = [[1, 1, 1], [0, 0, 0], [0, 0, 0]]


@pytest.fixture
def make_attendance():
    return build_attendance


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(clock):
    """system_config에 기본 요금이 저장된 설정 제공자"""
    return SettingsProvider(
        source=lambda: {"VIDEO_FEE_RATE": "2", "LATE_FEE_RATE": "10"},
        clock=clock,
    )


def seed_sample_match(repository):
    """
    경기 m1 (구장비 300, 물값 0 → 계수 300/90)

    - p1: 9파트 전부 출석 → 36 (구장 30 + 영상 6)
    - p2: 2섹션 출석 → 24 (구장 20 + 영상 4)
    - p3: 1섹션 출석, 1-1 골키퍼, 지각 → 18 (구장 7 + 영상 1 + 지각 10)
    """
    repository.add_match(MatchRecord(
        match_id="m1",
        match_date=date(2025, 3, 8),
        opponent_team="FC 서울",
        costs=MatchCostContext(match_id="m1", field_fee_total=300, water_fee_total=0),
    ))
    repository.add_participant(Participant(
        match_id="m1", player_id="p1", player_name="김철수",
        attendance_data=build_attendance(FULL),
    ))
    repository.add_participant(Participant(
        match_id="m1", player_id="p2", player_name="이영희",
        attendance_data=build_attendance(TWO_SECTIONS),
    ))
    repository.add_participant(Participant(
        match_id="m1", player_id="p3", player_name="박민수",
        attendance_data=build_attendance(ONE_SECTION, goalkeeper=[(1, 1)]),
        is_late_arrival=True,
    ))
    return repository


@pytest.fixture
def seed_match():
    return seed_sample_match


@pytest.fixture
def repo():
    return seed_sample_match(InMemoryFeeRepository())


@pytest.fixture
def publisher():
    return EventPublisher()


@pytest.fixture
def service(repo, settings, publisher):
    return MatchRecalculationService(repo, settings=settings, publisher=publisher)
