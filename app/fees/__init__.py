"""
Match Fee Module

경기 정산 API
- 경기 비용 변경 시 참가자 전원 재계산
- 수동 조정, 월별 통계
"""

from .router import router as fees_router, stats_router, players_router
from .dependencies import get_fee_service

__all__ = [
    "fees_router",
    "stats_router",
    "players_router",
    "get_fee_service",
]
