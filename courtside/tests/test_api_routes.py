"""
API route tests.

Services are replaced with fakes so these exercise routing, auth
dependencies, request validation and the service-error to HTTP mapping.
"""

import pytest
from datetime import datetime
from types import SimpleNamespace
from fastapi.testclient import TestClient

from courtside.api.main import app
from courtside.database.db import get_db_session
from courtside.database.models import Booking, BookingStatus, ClubStatus
from courtside.services import (
    auth_service,
    availability_service,
    booking_service,
    correction_service,
    points_service,
    ranking_service,
    tournament_service,
    user_service,
)
from courtside.services.exceptions import (
    AlreadyVoidedError,
    DuplicateConfirmationError,
    LocalityExistsError,
    PlayerNotFoundError,
    SlotBlockedError,
    SlotTakenError,
)

from conftest import utc


class FakeSession:
    """Stands in for an AsyncSession in routes whose services are faked."""

    def __init__(self, fail=False):
        self.fail = fail

    async def execute(self, *args, **kwargs):
        if self.fail:
            raise ConnectionError("connection refused")
        return None

    async def commit(self):
        pass

    async def rollback(self):
        pass

    async def close(self):
        pass


def _fake_db(fail=False):
    async def override():
        yield FakeSession(fail=fail)

    return override


@pytest.fixture(autouse=True)
def fake_db():
    app.dependency_overrides[get_db_session] = _fake_db()
    yield
    app.dependency_overrides.clear()


def make_client_with_auth(monkeypatch, role="PLAYER", user_id=1, player_id=10, club_id=5,
                          club_status=ClubStatus.APPROVED):
    """Create a test client whose bearer token resolves to a user of ``role``."""
    def fake_verify_token(token):
        return {"user_id": user_id}

    async def fake_get_user_by_id(session, uid):
        return {
            "id": user_id,
            "email": "test@example.com",
            "role": role,
            "created_at": "2030-01-01T00:00:00+00:00",
        }

    async def fake_get_player_id_for_user(session, uid):
        return player_id if role == "PLAYER" else None

    async def fake_get_club_for_user(session, uid):
        if role != "CLUB":
            return None
        return SimpleNamespace(id=club_id, status=club_status)

    monkeypatch.setattr(auth_service, "verify_token", fake_verify_token, raising=True)
    monkeypatch.setattr(user_service, "get_user_by_id", fake_get_user_by_id, raising=True)
    monkeypatch.setattr(
        user_service, "get_player_id_for_user", fake_get_player_id_for_user, raising=True
    )
    monkeypatch.setattr(user_service, "get_club_for_user", fake_get_club_for_user, raising=True)

    return TestClient(app), {"Authorization": "Bearer dummy"}


def _booking(**overrides):
    fields = dict(
        id=7,
        court_id=3,
        club_id=5,
        created_by_id=1,
        start_at=utc(2030, 6, 3, 9),
        end_at=utc(2030, 6, 3, 10),
        total_price=1000,
        status=BookingStatus.PENDING,
        expires_at=utc(2030, 6, 1, 12, 10),
    )
    fields.update(overrides)
    return Booking(**fields)


def _patch_booking_flow(monkeypatch, create_booking):
    async def fake_get_court(session, court_id, club_id=None):
        return SimpleNamespace(id=court_id, club_id=5, is_active=True)

    async def fake_quote(session, court_id, start_at):
        return 1000

    monkeypatch.setattr(availability_service, "get_court", fake_get_court, raising=True)
    monkeypatch.setattr(availability_service, "quote_slot_price", fake_quote, raising=True)
    monkeypatch.setattr(booking_service, "create_booking", create_booking, raising=True)


BOOKING_PAYLOAD = {
    "court_id": 3,
    "start_at": "2030-06-03T09:00:00Z",
    "end_at": "2030-06-03T10:00:00Z",
}


# ============================================================================
# Health
# ============================================================================


def test_health_check():
    client = TestClient(app)
    response = client.get("/api/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "ok"
    assert data["sweeper"] == "stopped"


def test_health_check_database_down():
    app.dependency_overrides[get_db_session] = _fake_db(fail=True)
    client = TestClient(app)
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "unhealthy"


# ============================================================================
# Bookings
# ============================================================================


def test_create_booking(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)
    captured = {}

    async def fake_create_booking(session, **kwargs):
        captured.update(kwargs)
        return _booking()

    _patch_booking_flow(monkeypatch, fake_create_booking)

    response = client.post("/api/bookings", json=BOOKING_PAYLOAD, headers=headers)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "PENDING"
    assert data["total_price"] == 1000
    assert captured["created_by_id"] == 1
    assert captured["club_id"] == 5
    assert captured["total_price"] == 1000
    assert isinstance(captured["start_at"], datetime)


@pytest.mark.parametrize(
    "error,code",
    [(SlotTakenError(), "SLOT_TAKEN"), (SlotBlockedError(), "SLOT_BLOCKED")],
)
def test_create_booking_conflicts_are_409(monkeypatch, error, code):
    client, headers = make_client_with_auth(monkeypatch)

    async def fake_create_booking(session, **kwargs):
        raise error

    _patch_booking_flow(monkeypatch, fake_create_booking)

    response = client.post("/api/bookings", json=BOOKING_PAYLOAD, headers=headers)

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == code


def test_create_booking_unexpected_error_is_500(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)

    async def fake_create_booking(session, **kwargs):
        raise RuntimeError("boom")

    _patch_booking_flow(monkeypatch, fake_create_booking)

    response = client.post("/api/bookings", json=BOOKING_PAYLOAD, headers=headers)

    assert response.status_code == 500
    assert response.json()["detail"] == "Error creating booking"


def test_create_booking_requires_player(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, role="CLUB")

    response = client.post("/api/bookings", json=BOOKING_PAYLOAD, headers=headers)

    assert response.status_code == 403


def test_create_booking_requires_token():
    client = TestClient(app)
    response = client.post("/api/bookings", json=BOOKING_PAYLOAD)

    assert response.status_code in (401, 403)


def test_invalid_token_is_401(monkeypatch):
    monkeypatch.setattr(auth_service, "verify_token", lambda token: None, raising=True)
    client = TestClient(app)

    response = client.get("/api/bookings/mine", headers={"Authorization": "Bearer expired"})

    assert response.status_code == 401


def test_create_booking_validates_payload(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)

    response = client.post("/api/bookings", json={"court_id": 3}, headers=headers)

    assert response.status_code == 422


def test_cancel_booking_forbidden(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)

    async def fake_cancel(session, booking_id, **kwargs):
        raise PermissionError("Not allowed to cancel this booking")

    monkeypatch.setattr(booking_service, "cancel_booking", fake_cancel, raising=True)

    response = client.post("/api/bookings/7/cancel", json={"reason": "Rain"}, headers=headers)

    assert response.status_code == 403


def test_club_availability(monkeypatch):
    async def fake_availability(session, club_id, day, now=None):
        return [{"court_id": 3, "court_name": "Cancha 1", "slots": []}]

    monkeypatch.setattr(
        availability_service, "get_club_availability", fake_availability, raising=True
    )
    client = TestClient(app)

    response = client.get("/api/bookings/availability?club_id=5&date=2030-06-03")

    assert response.status_code == 200
    assert response.json()["date"] == "2030-06-03"
    assert response.json()["courts"][0]["court_name"] == "Cancha 1"


def test_court_availability_for_inactive_court(monkeypatch):
    async def fake_get_court(session, court_id, club_id=None):
        return SimpleNamespace(id=court_id, club_id=5, is_active=False)

    monkeypatch.setattr(availability_service, "get_court", fake_get_court, raising=True)
    client = TestClient(app)

    response = client.get("/api/courts/3/availability?date=2030-06-03")

    assert response.status_code == 200
    assert response.json()["slots"] == []


# ============================================================================
# Tournaments
# ============================================================================


def test_confirm_results_twice_is_409(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, role="CLUB")

    async def fake_confirm(session, tournament_id, category_id, confirmed_by_id, club_id=None):
        raise DuplicateConfirmationError("Results were already confirmed")

    monkeypatch.setattr(tournament_service, "confirm_tournament_results", fake_confirm, raising=True)

    response = client.post(
        "/api/tournaments/1/results/confirm", json={"category_id": 8}, headers=headers
    )

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "DUPLICATE_CONFIRMATION"


def test_confirm_results_requires_approved_club(monkeypatch):
    client, headers = make_client_with_auth(
        monkeypatch, role="CLUB", club_status=ClubStatus.PENDING
    )

    response = client.post(
        "/api/tournaments/1/results/confirm", json={"category_id": 8}, headers=headers
    )

    assert response.status_code == 403


def test_submit_results_rejects_unknown_position(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, role="CLUB")

    response = client.post(
        "/api/tournaments/1/results",
        json={"category_id": 8, "entries": [{"player_id": 1, "finish_position": "WINNER"}]},
        headers=headers,
    )

    assert response.status_code == 422


# ============================================================================
# Rankings
# ============================================================================


def test_get_rankings(monkeypatch):
    calls = {}

    async def fake_rankings(session, locality_id=None, category_id=None, gender=None, page=1, limit=20):
        calls.update(locality_id=locality_id, category_id=category_id)
        return {
            "data": [
                {
                    "rank": 1,
                    "player_id": 4,
                    "first_name": "Lucia",
                    "last_name": "Gomez",
                    "locality_name": "La Plata",
                    "category_name": "8va",
                    "total_points": 1605,
                }
            ],
            "total": 1,
            "page": page,
            "limit": limit,
        }

    monkeypatch.setattr(ranking_service, "get_rankings", fake_rankings, raising=True)
    client = TestClient(app)

    response = client.get("/api/rankings?locality_id=2&category_id=8&page=1&limit=10")

    assert response.status_code == 200
    assert response.json()["data"][0]["total_points"] == 1605
    assert response.json()["data"][0]["locality_name"] == "La Plata"
    assert response.json()["limit"] == 10
    assert calls == {"locality_id": 2, "category_id": 8}


def test_list_localities(monkeypatch):
    async def fake_localities(session):
        return [{"id": 1, "name": "CABA", "province": "Buenos Aires"}]

    monkeypatch.setattr(ranking_service, "list_localities", fake_localities, raising=True)
    client = TestClient(app)

    response = client.get("/api/rankings/localities")

    assert response.status_code == 200
    assert response.json() == [{"id": 1, "name": "CABA", "province": "Buenos Aires"}]


def test_points_table_is_public():
    client = TestClient(app)

    response = client.get("/api/rankings/points-table")

    assert response.status_code == 200
    table = response.json()
    assert table["OPEN_1000"]["CHAMPION"] == 1000
    assert table["LOCAL_250"]["PARTICIPANT"] == 5
    assert set(table) == {"LOCAL_250", "REGIONAL_500", "OPEN_1000"}


def test_get_rankings_rejects_bad_page():
    client = TestClient(app)
    assert client.get("/api/rankings?page=0").status_code == 422
    assert client.get("/api/rankings?limit=500").status_code == 422


def test_player_ranking_not_found(monkeypatch):
    async def fake_player_ranking(session, player_id):
        raise PlayerNotFoundError(f"Player {player_id} not found")

    monkeypatch.setattr(ranking_service, "get_player_ranking", fake_player_ranking, raising=True)
    client = TestClient(app)

    response = client.get("/api/players/99/ranking")

    assert response.status_code == 404


# ============================================================================
# Admin
# ============================================================================


def test_void_twice_is_409(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, role="ADMIN")

    async def fake_void(session, movement_id, reason, actor_id):
        raise AlreadyVoidedError(f"Point movement {movement_id} was already voided")

    monkeypatch.setattr(points_service, "void_point_movement", fake_void, raising=True)

    response = client.post(
        "/api/admin/point-movements/3/void", json={"reason": "Duplicate"}, headers=headers
    )

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "ALREADY_VOIDED"


def test_void_requires_admin(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, role="PLAYER")

    response = client.post(
        "/api/admin/point-movements/3/void", json={"reason": "Duplicate"}, headers=headers
    )

    assert response.status_code == 403


def test_create_correction_too_short_is_400(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)

    response = client.post("/api/corrections", json={"message": "short"}, headers=headers)

    assert response.status_code == 400


def test_list_admin_corrections(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, role="ADMIN")

    async def fake_list(session):
        return [{"id": 1, "status": "PENDING", "escalated_to_admin": True}]

    monkeypatch.setattr(correction_service, "list_admin_corrections", fake_list, raising=True)

    response = client.get("/api/admin/corrections", headers=headers)

    assert response.status_code == 200
    assert response.json()[0]["escalated_to_admin"] is True


def test_create_locality_duplicate_is_409(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, role="ADMIN")

    async def fake_create(session, name, province=None):
        raise LocalityExistsError(f"Locality '{name}' already exists")

    monkeypatch.setattr(ranking_service, "create_locality", fake_create, raising=True)

    response = client.post("/api/admin/localities", json={"name": "CABA"}, headers=headers)

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "LOCALITY_EXISTS"
