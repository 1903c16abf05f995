"""
Test configuration.
Every test gets a fresh in-memory database and demo-mode authentication.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import pytest
from fastapi.testclient import TestClient

from foodrescue.app import create_app
from foodrescue.config import get_settings
from foodrescue.core.database import db_manager

PASSWORD = "secret123"


def bearer(uid: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer demo-token-{uid}"}


def iso_in(hours: float) -> str:
    """ISO timestamp `hours` from now"""
    return (datetime.now(timezone.utc) + timedelta(hours=hours)).isoformat()


@pytest.fixture(autouse=True)
def demo_settings(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "demo_mode", True)
    monkeypatch.setattr(settings, "jwt_secret_key", None)
    monkeypatch.setattr(settings, "cancellation_cutoff_hours", 24)
    monkeypatch.setattr(settings, "debug", False)
    monkeypatch.setattr(settings, "bcrypt_rounds", 4)
    return settings


@pytest.fixture(autouse=True)
def test_db():
    db_manager.configure(":memory:")
    yield db_manager
    db_manager.close()


@pytest.fixture
def client(test_db):
    with TestClient(create_app()) as test_client:
        yield test_client


class Platform:
    """Drives account provisioning through the API"""

    def __init__(self, client: TestClient):
        self.client = client
        self._master: Optional[Dict[str, Any]] = None
        self._counter = 0

    def _email(self, stem: str) -> str:
        self._counter += 1
        return f"{stem}{self._counter}@example.org"

    @property
    def master(self) -> Dict[str, Any]:
        if self._master is None:
            response = self.client.post("/auth/master-admin/register", json={
                "email": "master@example.org", "password": PASSWORD, "name": "Master",
            })
            assert response.status_code == 201, response.text
            uid = response.json()["admin"]["uid"]
            self._master = {"uid": uid, "headers": bearer(uid)}
        return self._master

    def onboard(self, uid: str, **answers) -> Dict[str, Any]:
        response = self.client.post("/auth/complete-onboarding", headers=bearer(uid), json=answers)
        assert response.status_code == 200, response.text
        return response.json()["user"]

    def org_admin(self, organization: str = "Helping Hands", onboard: bool = True) -> Dict[str, Any]:
        email = self._email("org")
        response = self.client.post("/auth/master-admin/create-org-admin", headers=self.master["headers"], json={
            "email": email, "password": PASSWORD, "name": "Olive", "organizationName": organization,
        })
        assert response.status_code == 201, response.text
        user = response.json()["user"]
        if onboard:
            user = self.onboard(user["uid"], location="12 Main St")
        return {**user, "email": email, "headers": bearer(user["uid"])}

    def restaurant(self, name: str = "Green Bistro", onboard: bool = True) -> Dict[str, Any]:
        email = self._email("restaurant")
        response = self.client.post("/auth/master-admin/create-restaurant", headers=self.master["headers"], json={
            "email": email, "password": PASSWORD, "name": name,
        })
        assert response.status_code == 201, response.text
        user = response.json()["user"]
        if onboard:
            user = self.onboard(
                user["uid"], location="1 Food Rd", foodTypes=["bakery"], wasteFrequency="daily"
            )
        return {**user, "email": email, "headers": bearer(user["uid"])}

    def volunteer(self, org_admin: Dict[str, Any], name: str = "Val", onboard: bool = True) -> Dict[str, Any]:
        email = self._email("volunteer")
        response = self.client.post("/auth/org-admin/create-volunteer", headers=org_admin["headers"], json={
            "email": email, "password": PASSWORD, "name": name,
        })
        assert response.status_code == 201, response.text
        user = response.json()["user"]
        if onboard:
            user = self.onboard(user["uid"], location="5 Side St")
        return {**user, "email": email, "headers": bearer(user["uid"])}

    def offer(self, restaurant: Dict[str, Any], expires_in_hours: Optional[float] = 48, **overrides) -> Dict[str, Any]:
        body = {
            "title": "Bread loaves",
            "description": "Day-old sourdough",
            "quantity": 12,
            "foodType": "bakery",
            "dietaryInfo": ["vegetarian"],
        }
        if expires_in_hours is not None:
            body["expirationTime"] = iso_in(expires_in_hours)
        body.update(overrides)
        response = self.client.post("/food_offers", headers=restaurant["headers"], json=body)
        assert response.status_code == 201, response.text
        return response.json()["offer"]


@pytest.fixture
def platform(client) -> Platform:
    return Platform(client)


@pytest.fixture
def actors(platform) -> Dict[str, Dict[str, Any]]:
    """An onboarded org admin, restaurant and volunteer"""
    org_admin = platform.org_admin()
    return {
        "master": platform.master,
        "org_admin": org_admin,
        "restaurant": platform.restaurant(),
        "volunteer": platform.volunteer(org_admin),
    }
