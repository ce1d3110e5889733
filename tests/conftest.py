"""Pytest configuration and fixtures."""

import os

os.environ["ROLEREADY_ENV"] = "test"
os.environ["DATABASE_URL"] = "mongodb://localhost:27017"
os.environ["DATABASE_NAME"] = "roleready_test"
os.environ["APP_URL"] = "https://app.roleready.test"

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from database import create_document, to_object_id
from schemas import User


@pytest.fixture(autouse=True)
def mongo(monkeypatch):
    """Fresh in-memory database, with the production indexes, for every test."""
    fake_db = mongomock.MongoClient(tz_aware=True)["roleready_test"]
    monkeypatch.setattr(database, "db", fake_db)
    database.ensure_indexes()
    return fake_db


@pytest.fixture
def client():
    from main import app

    return TestClient(app)


@pytest.fixture
def make_user(mongo):
    """Insert a user and return the stored document."""
    def factory(name="Asha", role="user", email=None, mentor=None, is_active=True):
        user = User(
            name=name,
            email=email or f"{name.lower().replace(' ', '.')}@example.com",
            role=role,
            is_active=is_active,
            mentor_id=str(mentor["_id"]) if mentor else None,
        )
        user_id = create_document("user", user)
        return mongo["user"].find_one({"_id": to_object_id(user_id)})
    return factory


@pytest.fixture
def make_claim(mongo):
    """Create a catalog skill and a user's claim on it."""
    def factory(user, skill_name="Python", level="intermediate", source="self", status="none", domain="languages"):
        skill_id = create_document("skill", {
            "name": skill_name, "normalizedName": skill_name.lower(), "domain": domain, "isActive": True,
        })
        claim_id = create_document("userskill", {
            "userId": str(user["_id"]),
            "skillId": skill_id,
            "level": level,
            "source": source,
            "validationStatus": status,
        })
        return mongo["userskill"].find_one({"_id": to_object_id(claim_id)})
    return factory
