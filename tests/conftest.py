import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from app.domains.auth.jwt_service import JWTService
from app.domains.transactions.models import Transaction
from app.domains.transactions.routes import get_transaction_service
from app.domains.transactions.services import TransactionService
from main import app


@pytest.fixture
def collection():
    return AsyncMongoMockClient()["finance_tracker_test"]["transactions"]


@pytest.fixture
def service(collection):
    return TransactionService(collection)


@pytest.fixture
def client(service):
    app.dependency_overrides[get_transaction_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    jwt_service = JWTService()

    def make(user_id: str) -> dict:
        return {"Authorization": f"Bearer {jwt_service.create_access_token(user_id)}"}

    return make


@pytest.fixture
def make_transaction():
    counter = {"n": 0}

    def make(type, amount, category, date, description="entry", owner_id="alice"):
        counter["n"] += 1
        return Transaction(
            id=f"tx{counter['n']}",
            owner_id=owner_id,
            type=type,
            amount=Decimal(amount),
            category=category,
            description=description,
            date=date,
            created_at=datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
            + datetime.timedelta(minutes=counter["n"]),
        )

    return make
