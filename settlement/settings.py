"""
전역 설정 제공자

VIDEO_FEE_RATE / LATE_FEE_RATE 등 시스템 설정을 TTL 캐시로 제공
- 설정 소스와 시계를 주입받아 테스트에서 캐시 만료를 제어
- invalidate()로 명시적 무효화
- 저장된 값이 없으면 기본값 (영상 2, 지각 10)
"""
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from loguru import logger

from .config import settlement_config
from .errors import InvalidRateError, NotFoundError

VIDEO_FEE_RATE = "VIDEO_FEE_RATE"
LATE_FEE_RATE = "LATE_FEE_RATE"

# 구 키 → 현재 키
KEY_ALIASES = {
    "base_video_fee_rate": VIDEO_FEE_RATE,
    "base_late_fee_rate": LATE_FEE_RATE,
}

SettingsSource = Callable[[], Dict[str, str]]


def default_values() -> Dict[str, str]:
    return {
        VIDEO_FEE_RATE: f"{settlement_config.default_video_fee_rate:g}",
        LATE_FEE_RATE: f"{settlement_config.default_late_fee_rate:g}",
    }


@dataclass(frozen=True)
class BaseFeeRates:
    video_fee_rate: float
    late_fee_rate: float


class SettingsProvider:
    """TTL 캐시 기반 설정 제공자"""

    def __init__(
        self,
        source: Optional[SettingsSource] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        defaults: Optional[Dict[str, str]] = None,
    ):
        """
        Args:
            source: 설정 전체를 {key: value}로 반환하는 함수 (None이면 기본값만)
            ttl_seconds: 캐시 유지 시간
            clock: 현재 시각 (초) 반환 함수
            defaults: 저장값이 없을 때 사용할 기본값
        """
        self._source = source
        self._ttl = settlement_config.settings_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._defaults = default_values() if defaults is None else defaults
        self._cache: Dict[str, str] = {}
        self._last_refresh: Optional[float] = None

    def invalidate(self) -> None:
        """캐시 무효화 (다음 조회 시 소스에서 다시 읽음)"""
        self._cache.clear()
        self._last_refresh = None

    def _refresh_if_needed(self) -> None:
        now = self._clock()
        if self._last_refresh is not None and now - self._last_refresh < self._ttl:
            return
        if self._source is None:
            self._last_refresh = now
            return

        try:
            settings = self._source()
        except Exception as e:
            # 이전 캐시 유지, 다음 조회 때 재시도
            logger.error(f"설정 캐시 갱신 실패: {e}")
            return

        self._cache = {key: str(value) for key, value in settings.items()}
        self._last_refresh = now

    def get_setting(self, key: str) -> str:
        self._refresh_if_needed()

        value = self._cache.get(key)
        canonical = KEY_ALIASES.get(key, key)
        if value is None:
            value = self._cache.get(canonical)
        if value is not None:
            return value

        if canonical in self._defaults:
            return self._defaults[canonical]

        raise NotFoundError("setting", key)

    def get_setting_as_number(self, key: str) -> float:
        value = self.get_setting(key)
        try:
            number = float(value)
        except ValueError:
            raise InvalidRateError(key, value)
        if not math.isfinite(number):
            raise InvalidRateError(key, value)
        return number

    def get_settings(self, keys: List[str]) -> Dict[str, str]:
        """여러 설정 조회 (없는 키는 건너뜀)"""
        result = {}
        for key in keys:
            try:
                result[key] = self.get_setting(key)
            except NotFoundError:
                logger.warning(f"설정 '{key}'을(를) 찾을 수 없습니다")
        return result

    def get_base_fee_rates(self) -> BaseFeeRates:
        return BaseFeeRates(
            video_fee_rate=self.get_setting_as_number(VIDEO_FEE_RATE),
            late_fee_rate=self.get_setting_as_number(LATE_FEE_RATE),
        )
