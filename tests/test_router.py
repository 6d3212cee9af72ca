"""
API tests for the match fee router
Uses FastAPI TestClient with an in-memory service
"""

import pytest
from fastapi.testclient import TestClient

from app.fees.dependencies import get_fee_service
from app.server import app, status_code_for
from settlement.errors import (
    InvalidRateError,
    NotFoundError,
    RecalculationError,
    RecalculationInProgressError,
    StaleCostError,
    ValidationError,
)


@pytest.fixture
def client(service):
    app.dependency_overrides[get_fee_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestErrorMapping:
    """정산 오류 → HTTP 상태"""

    def test_status_codes(self):
        assert status_code_for(ValidationError("x")) == 400
        assert status_code_for(InvalidRateError("video_fee_rate", -1)) == 400
        assert status_code_for(NotFoundError("match", "m1")) == 404
        assert status_code_for(RecalculationInProgressError("m1")) == 409
        assert status_code_for(StaleCostError("m1")) == 422
        assert status_code_for(RecalculationError("m1", "failed")) == 422


class TestFeeEndpoints:
    """정산 API"""

    def test_status(self, client):
        response = client.get("/api/status")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_recalculate(self, client):
        response = client.post("/api/matches/m1/fees/recalculate")
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["total_final_fees"] == 78
        assert body["data"]["recalculated"] is True
        assert "leaderboard" in body["data"]["invalidate_tags"]

    def test_breakdown(self, client):
        client.post("/api/matches/m1/fees/recalculate")
        response = client.get("/api/matches/m1/fees")
        data = response.json()["data"]
        assert data["total_participants"] == 3
        assert {p["player_id"]: p["final_fee"] for p in data["players"]} == {"p1": 36, "p2": 24, "p3": 18}

    def test_player_fees(self, client):
        response = client.get("/api/matches/m1/fees/p3")
        data = response.json()["data"]
        assert data["calculated"]["late_fee"] == 10
        assert data["final_fee"] == 18

    def test_unknown_match_is_404(self, client):
        response = client.post("/api/matches/nope/fees/recalculate")
        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "NOT_FOUND"

    def test_recalculation_failure_is_422(self, client, repo):
        repo.set_attendance("m1", "p1", {"attendance": {"1": {"1": 7}}})
        response = client.post("/api/matches/m1/fees/recalculate")
        assert response.status_code == 422
        assert response.json()["error"]["details"]["player_id"] == "p1"


class TestMatchInfoEndpoint:

    def test_update_info(self, client):
        response = client.put("/api/matches/m1/info", json={"field_fee_total": 449.5, "our_score": 2, "opponent_score": 2})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["match"]["costs"]["field_fee_total"] == 450
        assert data["match"]["match_result"] == "DRAW"
        assert data["fee_recalculation"]["fee_coefficient"] == pytest.approx(5.0)

    def test_invalid_section_count(self, client):
        response = client.put("/api/matches/m1/info", json={"section_count": 5})
        assert response.status_code == 422

    def test_negative_cost_is_400(self, client):
        response = client.put("/api/matches/m1/info", json={"field_fee_total": -1})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestAttendanceEndpoint:

    def test_update_attendance(self, client, make_attendance):
        response = client.put("/api/matches/m1/attendance", json={
            "attendance": {"p2": make_attendance([[1, 1, 1], [1, 1, 1], [1, 1, 1]])},
        })
        assert response.status_code == 200
        assert response.json()["data"]["fee_recalculation"]["total_final_fees"] == 36 + 36 + 18

    def test_invalid_value_is_400(self, client, make_attendance):
        response = client.put("/api/matches/m1/attendance", json={
            "attendance": {"p2": make_attendance([[1, 0.7, 1]])},
        })
        assert response.status_code == 400
        assert response.json()["error"]["details"]["part"] == "2"


class TestOverrideEndpoints:
    """수동 조정 API"""

    def test_apply_and_remove(self, client):
        client.post("/api/matches/m1/fees/recalculate")

        response = client.put("/api/matches/m1/overrides/p1", json={"override_fee": 0, "note": "주장 면제"})
        assert response.status_code == 200
        assert response.json()["data"]["final_fee"] == 0

        fees = client.get("/api/matches/m1/fees").json()["data"]
        assert fees["total_final_fees"] == 42

        response = client.delete("/api/matches/m1/overrides/p1")
        assert response.status_code == 200
        assert response.json()["data"]["final_fee"] == 36

    @pytest.mark.parametrize("body", [
        {"override_fee": 0},
        {"override_fee": 0, "note": None},
        {"override_fee": 0, "note": " "},
    ])
    def test_missing_or_blank_note_is_400(self, client, body):
        response = client.put("/api/matches/m1/overrides/p1", json=body)
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"]["field"] == "note"

    def test_bulk_item_without_note_reported(self, client):
        response = client.post("/api/matches/m1/overrides/bulk", json={"overrides": [
            {"player_id": "p1", "override_fee": 0, "note": "면제"},
            {"player_id": "p2", "override_fee": 0},
        ]})
        body = response.json()
        assert body["success"] is False
        assert [e["player_id"] for e in body["errors"]] == ["p2"]

    def test_non_participant_is_404(self, client):
        response = client.put("/api/matches/m1/overrides/ghost", json={"override_fee": 0, "note": "x"})
        assert response.status_code == 404

    def test_bulk_and_stats(self, client):
        response = client.post("/api/matches/m1/overrides/bulk", json={"overrides": [
            {"player_id": "p1", "override_fee": 0, "note": "면제"},
            {"player_id": "p2", "late_fee_override": 0, "note": "지각 면제"},
        ]})
        assert response.status_code == 200
        assert response.json()["success"] is True

        stats = client.get("/api/matches/m1/overrides/stats").json()["data"]
        assert stats["players_with_overrides"] == 2

        history = client.get("/api/matches/m1/overrides").json()["data"]
        assert {o["player_id"] for o in history} == {"p1", "p2"}

        player_history = client.get("/api/players/p1/overrides").json()["data"]
        assert player_history[0]["match_id"] == "m1"

        response = client.post("/api/matches/m1/overrides/bulk-remove", json={"player_ids": ["p1", "p2"]})
        assert response.json()["success"] is True


class TestStatsEndpoints:

    def test_monthly_stats(self, client):
        client.put("/api/matches/m1/info", json={"our_score": 3, "opponent_score": 0})
        client.post("/api/matches/m1/fees/recalculate")

        response = client.post("/api/stats/2025/3/rebuild")
        assert response.status_code == 200

        data = client.get("/api/stats/2025/3").json()["data"]
        assert data["aggregate"]["games_played"] == 1
        assert data["aggregate"]["total_final_fees"] == 78
        assert data["team"]["win_rate"] == 100

    def test_invalid_month(self, client):
        response = client.get("/api/stats/2025/13")
        assert response.status_code == 422
