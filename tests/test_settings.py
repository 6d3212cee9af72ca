"""
Unit tests for the global settings provider
Tests: TTL cache, invalidation, aliases, defaults, source failures
"""

import pytest

from settlement.errors import InvalidRateError, NotFoundError
from settlement.settings import LATE_FEE_RATE, VIDEO_FEE_RATE, SettingsProvider


class CountingSource:
    """호출 횟수를 세는 설정 소스"""

    def __init__(self, values):
        self.values = dict(values)
        self.calls = 0
        self.fail = False

    def __call__(self):
        self.calls += 1
        if self.fail:
            raise ConnectionError("system_config 조회 실패")
        return dict(self.values)


class TestSettingsCache:
    """TTL 캐시"""

    def test_cached_within_ttl(self, clock):
        source = CountingSource({VIDEO_FEE_RATE: "3"})
        provider = SettingsProvider(source=source, ttl_seconds=300, clock=clock)

        assert provider.get_setting(VIDEO_FEE_RATE) == "3"
        clock.advance(299)
        assert provider.get_setting(VIDEO_FEE_RATE) == "3"
        assert source.calls == 1

    def test_refreshed_after_ttl(self, clock):
        source = CountingSource({VIDEO_FEE_RATE: "3"})
        provider = SettingsProvider(source=source, ttl_seconds=300, clock=clock)
        provider.get_setting(VIDEO_FEE_RATE)

        source.values[VIDEO_FEE_RATE] = "4"
        clock.advance(300)
        assert provider.get_setting(VIDEO_FEE_RATE) == "4"
        assert source.calls == 2

    def test_invalidate_forces_reload(self, clock):
        source = CountingSource({LATE_FEE_RATE: "10"})
        provider = SettingsProvider(source=source, clock=clock)
        provider.get_setting(LATE_FEE_RATE)

        source.values[LATE_FEE_RATE] = "15"
        provider.invalidate()
        assert provider.get_setting(LATE_FEE_RATE) == "15"

    def test_source_failure_keeps_previous_cache(self, clock):
        source = CountingSource({VIDEO_FEE_RATE: "3"})
        provider = SettingsProvider(source=source, ttl_seconds=10, clock=clock)
        provider.get_setting(VIDEO_FEE_RATE)

        source.fail = True
        clock.advance(60)
        assert provider.get_setting(VIDEO_FEE_RATE) == "3"

        # 소스 복구 후 다음 조회에서 갱신
        source.fail = False
        source.values[VIDEO_FEE_RATE] = "5"
        assert provider.get_setting(VIDEO_FEE_RATE) == "5"


class TestSettingLookup:
    """키 조회"""

    def test_defaults_without_source(self):
        provider = SettingsProvider()
        assert provider.get_setting(VIDEO_FEE_RATE) == "2"
        assert provider.get_setting(LATE_FEE_RATE) == "10"

    def test_alias_lookup(self, clock):
        provider = SettingsProvider(source=lambda: {VIDEO_FEE_RATE: "7"}, clock=clock)
        assert provider.get_setting("base_video_fee_rate") == "7"
        assert provider.get_setting("base_late_fee_rate") == "10"

    def test_legacy_key_stored(self, clock):
        provider = SettingsProvider(source=lambda: {"base_late_fee_rate": "20"}, clock=clock)
        assert provider.get_setting("base_late_fee_rate") == "20"

    def test_unknown_key(self):
        with pytest.raises(NotFoundError):
            SettingsProvider().get_setting("UNKNOWN_KEY")

    def test_get_settings_skips_missing(self):
        result = SettingsProvider().get_settings([VIDEO_FEE_RATE, "UNKNOWN_KEY"])
        assert result == {VIDEO_FEE_RATE: "2"}


class TestNumericSettings:

    def test_base_fee_rates(self, settings):
        rates = settings.get_base_fee_rates()
        assert rates.video_fee_rate == 2.0
        assert rates.late_fee_rate == 10.0

    def test_non_numeric_value(self, clock):
        provider = SettingsProvider(source=lambda: {VIDEO_FEE_RATE: "abc"}, clock=clock)
        with pytest.raises(InvalidRateError):
            provider.get_setting_as_number(VIDEO_FEE_RATE)

    def test_non_finite_value(self, clock):
        provider = SettingsProvider(source=lambda: {LATE_FEE_RATE: "inf"}, clock=clock)
        with pytest.raises(InvalidRateError):
            provider.get_base_fee_rates()
