"""
정산 엔진 설정
"""
from typing import Dict
from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()


class NegativeCostPolicy(str, Enum):
    """음수 비용 입력 처리 방식"""
    REJECT = "reject"   # ValidationError
    CLAMP = "clamp"     # 계수 0 (기존 동작)


class GoalkeeperPolicy(str, Enum):
    """골키퍼 구간 과금 방식"""
    EXEMPT = "exempt"     # 골키퍼로 뛴 구간은 과금 제외
    CHARGED = "charged"   # 일반 선수와 동일하게 과금


class ConcurrencyPolicy(str, Enum):
    """같은 경기에 대한 동시 재계산 요청 처리"""
    QUEUE = "queue"     # 앞선 재계산이 끝날 때까지 대기
    REJECT = "reject"   # 즉시 RecalculationInProgressError


class SettlementConfig(BaseSettings):
    """정산 엔진 설정"""

    # 계수 분모 (경기당 명목 시간 단위)
    fixed_total_time_units: float = Field(default=90, description="계수 계산 고정 분모")

    # 출석 그리드
    section_count: int = Field(default=3, description="기본 섹션 수")
    parts_per_section: int = Field(default=3, description="섹션당 파트 수")
    video_time_units: float = Field(default=3, description="영상비 분모 (섹션당 파트 수)")

    # 정책
    negative_cost_policy: NegativeCostPolicy = NegativeCostPolicy.REJECT
    goalkeeper_policy: GoalkeeperPolicy = GoalkeeperPolicy.EXEMPT
    concurrent_recalculation: ConcurrencyPolicy = ConcurrencyPolicy.QUEUE
    max_commit_attempts: int = Field(default=3, description="비용 변경 감지 시 재시도 횟수")

    # 전역 요금 기본값
    default_video_fee_rate: float = 2
    default_late_fee_rate: float = 10
    settings_cache_ttl_seconds: float = Field(default=300, description="설정 캐시 TTL (초)")

    # 수동 조정 경고 기준
    override_warning_thresholds: Dict[str, float] = Field(
        default_factory=lambda: {
            "override_fee": 1000,
            "field_fee_override": 1000,
            "video_fee_override": 100,
            "late_fee_override": 50,
        }
    )

    class Config:
        env_prefix = "SETTLEMENT_"
        case_sensitive = False


class SupabaseConfig(BaseSettings):
    """Supabase 설정"""

    supabase_url: str = Field(default="", description="Supabase Project URL")
    supabase_key: str = Field(default="", description="Supabase anon key")

    class Config:
        env_prefix = ""
        case_sensitive = False


class SchedulerConfig(BaseSettings):
    """스케줄러 설정"""

    aggregate_rebuild_hour: int = Field(default=4, description="월별 집계 재계산 시간")
    aggregate_rebuild_enabled: bool = Field(default=True, description="월별 집계 재계산 활성화")

    class Config:
        env_prefix = ""
        case_sensitive = False


settlement_config = SettlementConfig()
supabase_config = SupabaseConfig()
scheduler_config = SchedulerConfig()
