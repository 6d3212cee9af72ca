"""
정산 API 의존성

서비스는 처음 요청 시 Supabase 저장소로 생성한다.
테스트에서는 app.dependency_overrides[get_fee_service]로 교체한다.
"""

from typing import Optional

from settlement.service import MatchRecalculationService
from settlement.settings import SettingsProvider

_fee_service: Optional[MatchRecalculationService] = None


def build_supabase_service() -> MatchRecalculationService:
    from database.fee_repository import SupabaseFeeRepository, system_config_source
    from database.supabase_client import get_supabase_client

    client = get_supabase_client()
    return MatchRecalculationService(
        repository=SupabaseFeeRepository(client),
        settings=SettingsProvider(source=system_config_source(client)),
    )


def get_fee_service() -> MatchRecalculationService:
    """정산 서비스 (싱글톤)"""
    global _fee_service
    if _fee_service is None:
        _fee_service = build_supabase_service()
    return _fee_service
