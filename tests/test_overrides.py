"""
Unit tests for override validation and reconciliation
"""

import math

import pytest

from settlement.errors import ValidationError
from settlement.models import FeeOverride, PlayerFeeResult
from settlement.overrides import (
    OverrideReconciler,
    final_fee,
    override_statistics,
    validate_override,
)


@pytest.fixture
def computed():
    """구장 30 + 영상 6 + 지각 10 = 46"""
    return PlayerFeeResult(
        total_time=9,
        billable_time=9,
        sections_played=3,
        raw_field_fee=30.0,
        raw_video_fee=6.0,
        field_fee=30,
        late_fee=10,
        video_fee=6,
        total_fee=46,
    )


def make_override(**values):
    values.setdefault("note", "회비 조정")
    return FeeOverride(match_id="m1", player_id="p1", **values)


class TestValidateOverride:
    """수동 조정 검증"""

    def test_note_required(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_override(make_override(override_fee=10, note=None))
        assert exc_info.value.field == "note"

    def test_blank_note_rejected(self):
        with pytest.raises(ValidationError):
            validate_override(make_override(override_fee=10, note="   "))

    def test_at_least_one_value(self):
        with pytest.raises(ValidationError):
            validate_override(make_override())

    def test_negative_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_override(make_override(video_fee_override=-1))
        assert exc_info.value.field == "video_fee_override"

    def test_non_finite_rejected(self):
        with pytest.raises(ValidationError):
            validate_override(make_override(override_fee=math.inf))
        with pytest.raises(ValidationError):
            validate_override(make_override(late_fee_override=math.nan))

    def test_zero_is_valid(self):
        assert validate_override(make_override(override_fee=0)) == []

    def test_large_values_warn(self):
        warnings = validate_override(make_override(override_fee=1500, late_fee_override=60))
        assert len(warnings) == 2

    def test_custom_thresholds(self):
        assert validate_override(make_override(override_fee=1500), thresholds={}) == []
        assert len(validate_override(make_override(override_fee=20), thresholds={"override_fee": 10})) == 1


class TestOverrideReconciler:
    """계산값 + 수동 조정"""

    def test_no_override(self, computed):
        breakdown = OverrideReconciler().reconcile("p1", computed)
        assert breakdown.final_fee == 46
        assert not breakdown.has_override

    def test_total_override_wins(self, computed):
        breakdown = OverrideReconciler().reconcile(
            "p1", computed, make_override(override_fee=20, field_fee_override=100)
        )
        assert breakdown.final_fee == 20
        assert breakdown.final_field_fee == 100
        # 계산값은 보존
        assert breakdown.calculated.total_fee == 46

    def test_component_overrides_sum(self, computed):
        breakdown = OverrideReconciler().reconcile(
            "p1", computed, make_override(late_fee_override=0)
        )
        assert breakdown.final_late_fee == 0
        assert breakdown.final_fee == 36

    def test_multiple_components(self, computed):
        override = make_override(field_fee_override=25, video_fee_override=0)
        assert final_fee(computed, override) == 25 + 0 + 10

    def test_zero_total_override(self, computed):
        assert final_fee(computed, make_override(override_fee=0)) == 0

    def test_invalid_override_rejected(self, computed):
        with pytest.raises(ValidationError):
            OverrideReconciler().reconcile("p1", computed, make_override(override_fee=5, note=""))


class TestOverrideStatistics:

    def test_statistics(self, computed):
        reconciler = OverrideReconciler()
        players = [
            reconciler.reconcile("p1", computed, make_override(override_fee=0)),
            reconciler.reconcile("p2", computed, make_override(late_fee_override=0)),
            reconciler.reconcile("p3", computed),
            reconciler.reconcile("p4", computed),
        ]
        stats = override_statistics(players)

        assert stats["total_players"] == 4
        assert stats["players_with_overrides"] == 2
        assert stats["override_percentage"] == 50
        assert stats["total_calculated_fees"] == 46 * 4
        assert stats["total_final_fees"] == 0 + 36 + 46 + 46
        assert stats["fee_difference"] == -(46 + 10)
        assert stats["override_types"]["total_overrides"] == 1
        assert stats["override_types"]["late_fee_overrides"] == 1
        assert stats["override_types"]["field_fee_overrides"] == 0

    def test_empty(self):
        stats = override_statistics([])
        assert stats["total_players"] == 0
        assert stats["override_percentage"] == 0
