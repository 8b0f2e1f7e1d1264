from datetime import datetime, timezone

from fastapi.testclient import TestClient

import studiobook.main as main_module
from studiobook.db.models import Facility, Studio
from studiobook.main import app


client = TestClient(app)


class FakeQuery:
    def __init__(self, session, model):
        self.session = session
        self.model = model

    def all(self):
        return list(self.session.store.get(self.model, []))


class FakeSession:
    def __init__(self, studios=None):
        self.store = {
            Studio: list(studios or []),
            Facility: [],
        }
        self.next_id = {Studio: 1, Facility: 1}
        if self.store[Studio]:
            self.next_id[Studio] = max(item.id for item in self.store[Studio]) + 1

    def query(self, model):
        return FakeQuery(self, model)

    def add(self, row):
        model = type(row)
        if getattr(row, "id", None) is None and model in self.next_id:
            row.id = self.next_id[model]
            self.next_id[model] += 1
        if getattr(row, "created_at", None) is None:
            row.created_at = datetime.now(timezone.utc)
        if model in self.store and row not in self.store[model]:
            self.store[model].append(row)

    def commit(self):
        return None

    def rollback(self):
        return None

    def close(self):
        return None


def _existing_studio():
    studio = Studio(id=2, name="Patch Me", timezone="Asia/Jakarta", phone=None, operating_hours=None)
    studio.created_at = datetime.now(timezone.utc)
    return studio


def _use_session(monkeypatch, fake_session):
    monkeypatch.setenv("ENV", "prod")
    monkeypatch.setenv("ADMIN_API_KEY", "super-secret")
    monkeypatch.setattr(main_module, "SessionLocal", lambda: fake_session)


HEADERS = {"X-Admin-Key": "super-secret"}


def test_admin_auth_required(monkeypatch):
    monkeypatch.setenv("ENV", "prod")
    monkeypatch.setenv("ADMIN_API_KEY", "super-secret")

    response = client.get("/v1/admin/studios")
    assert response.status_code == 401
    detail = response.json()["detail"]
    assert detail["error_code"] == "INVALID_ADMIN_API_KEY"
    assert detail["human_message"] == "Studio staff key is missing or invalid."

    wrong = client.get("/v1/reservations/1/policy", headers={"X-Admin-Key": "super-secreT"})
    assert wrong.status_code == 401
    assert wrong.json()["detail"]["error_code"] == "INVALID_ADMIN_API_KEY"


def test_admin_auth_not_configured_in_prod(monkeypatch):
    monkeypatch.setenv("ENV", "prod")
    monkeypatch.delenv("ADMIN_API_KEY", raising=False)

    response = client.get("/v1/admin/studios")
    assert response.status_code == 401
    assert response.json()["detail"]["error_code"] == "ADMIN_AUTH_NOT_CONFIGURED"
    assert "staff" in response.json()["detail"]["human_message"]


def test_staff_routes_open_in_dev_without_key(monkeypatch):
    monkeypatch.setenv("ENV", "dev")
    monkeypatch.delenv("ADMIN_API_KEY", raising=False)
    monkeypatch.setattr(main_module, "SessionLocal", lambda: FakeSession())

    response = client.get("/v1/admin/studios")
    assert response.status_code == 200


def test_create_studio_success(monkeypatch):
    fake_session = FakeSession()
    _use_session(monkeypatch, fake_session)

    response = client.post(
        "/v1/admin/studios",
        json={
            "name": "Studio Baru",
            "phone": "+62215550000",
            "operating_hours": {"monday": {"open": "10:00", "close": "18:00", "isOpen": True}},
        },
        headers=HEADERS,
    )
    body = response.json()
    assert response.status_code == 200
    assert body["ok"] is True
    assert body["data"]["studio"]["id"] == 1
    assert body["data"]["studio"]["timezone"] == "Asia/Jakarta"
    assert body["data"]["studio"]["operating_hours"]["monday"]["open"] == "10:00"


def test_create_studio_rejects_unknown_timezone(monkeypatch):
    _use_session(monkeypatch, FakeSession())

    response = client.post(
        "/v1/admin/studios",
        json={"name": "Nowhere", "timezone": "Mars/Olympus"},
        headers=HEADERS,
    )
    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_TIMEZONE"


def test_create_studio_rejects_inverted_hours(monkeypatch):
    _use_session(monkeypatch, FakeSession())

    response = client.post(
        "/v1/admin/studios",
        json={"name": "Backwards", "operating_hours": {"friday": {"open": "20:00", "close": "08:00"}}},
        headers=HEADERS,
    )
    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_ARGS"


def test_patch_updates_operating_hours(monkeypatch):
    _use_session(monkeypatch, FakeSession(studios=[_existing_studio()]))

    response = client.patch(
        "/v1/admin/studios/2",
        json={"operating_hours": {"sunday": {"open": "09:00", "close": "12:00", "isOpen": False}}},
        headers=HEADERS,
    )
    body = response.json()
    assert response.status_code == 200
    assert body["data"]["studio"]["operating_hours"]["sunday"]["isOpen"] is False


def test_patch_rejects_unknown_fields(monkeypatch):
    _use_session(monkeypatch, FakeSession(studios=[_existing_studio()]))

    response = client.patch("/v1/admin/studios/2", json={"owner": "someone"}, headers=HEADERS)
    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_ARGS"


def test_patch_missing_studio_returns_404(monkeypatch):
    _use_session(monkeypatch, FakeSession())

    response = client.patch("/v1/admin/studios/5", json={"name": "Ghost"}, headers=HEADERS)
    assert response.status_code == 404
    assert response.json()["error_code"] == "STUDIO_NOT_FOUND"


def test_create_facility_and_list(monkeypatch):
    fake_session = FakeSession(studios=[_existing_studio()])
    _use_session(monkeypatch, fake_session)

    response = client.post(
        "/v1/admin/studios/2/facilities",
        json={"name": "Cyclorama", "capacity": 8},
        headers=HEADERS,
    )
    body = response.json()
    assert response.status_code == 200
    assert body["data"]["facility"]["studio_id"] == 2
    assert body["data"]["facility"]["is_available"] is True

    listing = client.get("/v1/admin/studios", headers=HEADERS).json()
    assert [item["name"] for item in listing["data"]["studios"]] == ["Patch Me"]
