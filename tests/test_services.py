import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from bson.decimal128 import Decimal128
from pymongo.errors import PyMongoError

from app.domains.transactions.exceptions import (
    TransactionForbiddenError,
    TransactionNotFoundError,
    TransactionStoreError,
    TransactionValidationError,
)
from app.domains.transactions.models import TransactionCreate, TransactionUpdate
from app.domains.transactions.services import TransactionService


def lunch(**overrides):
    payload = {
        "type": "expense",
        "amount": "12.50",
        "category": "Food",
        "description": "Lunch",
        "date": "2024-05-02",
    }
    payload.update(overrides)
    return payload


class TestCreate:
    async def test_stamps_owner_and_created_at(self, service, collection):
        created = await service.create_transaction("alice", lunch())

        assert ObjectId.is_valid(created.id)
        assert created.owner_id == "alice"
        assert created.amount == Decimal("12.50")
        assert created.date == datetime.date(2024, 5, 2)
        assert created.created_at.tzinfo is not None

        stored = await collection.find_one({"_id": ObjectId(created.id)})
        assert stored["owner_id"] == "alice"
        assert stored["date"] == "2024-05-02"
        assert isinstance(stored["amount"], Decimal128)

    async def test_ignores_client_supplied_server_fields(self, service, collection):
        created = await service.create_transaction(
            "alice",
            lunch(owner_id="mallory", id="abc", created_at="1999-01-01T00:00:00"),
        )

        assert created.owner_id == "alice"
        assert created.id != "abc"
        assert created.created_at.year != 1999
        assert await collection.count_documents({"owner_id": "mallory"}) == 0

    async def test_accepts_pydantic_payload(self, service):
        payload = TransactionCreate(**lunch(type="income", category="Salary", description="May pay"))
        created = await service.create_transaction("alice", payload)
        assert created.type == "income"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"amount": -5},
            {"amount": 0},
            {"amount": "1.005"},
            {"description": "   "},
            {"description": "x" * 201},
            {"category": "Salary"},
            {"type": "transfer"},
            {"date": "2999-01-01"},
        ],
    )
    async def test_rejects_invalid_payload(self, service, collection, overrides):
        with pytest.raises(TransactionValidationError):
            await service.create_transaction("alice", lunch(**overrides))
        assert await collection.count_documents({}) == 0

    @pytest.mark.parametrize("missing", ["type", "amount", "category", "description", "date"])
    async def test_rejects_missing_field(self, service, missing):
        payload = lunch()
        del payload[missing]
        with pytest.raises(TransactionValidationError) as exc_info:
            await service.create_transaction("alice", payload)
        assert missing in str(exc_info.value)


class TestList:
    async def test_only_callers_transactions(self, service):
        await service.create_transaction("alice", lunch())
        await service.create_transaction("alice", lunch(description="Dinner"))
        await service.create_transaction("bob", lunch(description="Coffee"))

        alice = await service.list_transactions("alice")
        bob = await service.list_transactions("bob")

        assert sorted(t.description for t in alice) == ["Dinner", "Lunch"]
        assert [t.description for t in bob] == ["Coffee"]

    async def test_empty_for_new_user(self, service):
        assert await service.list_transactions("nobody") == []


class TestGet:
    async def test_owner_can_read(self, service):
        created = await service.create_transaction("alice", lunch())
        fetched = await service.get_transaction("alice", created.id)
        assert fetched == created.model_copy(update={"created_at": fetched.created_at})

    async def test_other_user_forbidden(self, service):
        created = await service.create_transaction("alice", lunch())
        with pytest.raises(TransactionForbiddenError):
            await service.get_transaction("bob", created.id)


class TestUpdate:
    async def test_owner_update_merges_fields(self, service):
        created = await service.create_transaction("alice", lunch())

        updated = await service.update_transaction("alice", created.id, {"amount": "15.75"})

        assert updated.amount == Decimal("15.75")
        assert updated.description == "Lunch"
        assert updated.category == "Food"
        assert updated.date == created.date
        assert updated.owner_id == "alice"

        reloaded = await service.get_transaction("alice", created.id)
        assert reloaded.amount == Decimal("15.75")

    async def test_accepts_pydantic_partial_payload(self, service):
        created = await service.create_transaction("alice", lunch())
        updated = await service.update_transaction("alice", created.id, TransactionUpdate(description="Brunch"))
        assert updated.description == "Brunch"
        assert updated.amount == Decimal("12.50")

    async def test_non_owner_forbidden_and_store_unchanged(self, service, collection):
        created = await service.create_transaction("alice", lunch())
        before = await collection.find_one({"_id": ObjectId(created.id)})

        with pytest.raises(TransactionForbiddenError):
            await service.update_transaction("bob", created.id, {"amount": "999.00"})

        after = await collection.find_one({"_id": ObjectId(created.id)})
        assert after == before

    async def test_cannot_change_owner(self, service):
        created = await service.create_transaction("alice", lunch())
        updated = await service.update_transaction("alice", created.id, {"owner_id": "bob"})
        assert updated.owner_id == "alice"

    async def test_type_change_requires_matching_category(self, service):
        created = await service.create_transaction("alice", lunch())

        with pytest.raises(TransactionValidationError):
            await service.update_transaction("alice", created.id, {"type": "income"})

        updated = await service.update_transaction("alice", created.id, {"type": "income", "category": "Gift"})
        assert updated.type == "income"
        assert updated.category == "Gift"

    async def test_explicit_null_rejected(self, service):
        created = await service.create_transaction("alice", lunch())
        with pytest.raises(TransactionValidationError):
            await service.update_transaction("alice", created.id, {"description": None})

    async def test_non_owner_forbidden_even_with_invalid_body(self, service, collection):
        created = await service.create_transaction("alice", lunch())
        before = await collection.find_one({"_id": ObjectId(created.id)})

        with pytest.raises(TransactionForbiddenError):
            await service.update_transaction("bob", created.id, {"amount": -1})

        assert await collection.find_one({"_id": ObjectId(created.id)}) == before

    @pytest.mark.parametrize("caller", ["alice", "bob"])
    async def test_missing_id_not_found_even_with_invalid_body(self, service, caller):
        await service.create_transaction("alice", lunch())
        with pytest.raises(TransactionNotFoundError):
            await service.update_transaction(caller, str(ObjectId()), {"amount": -1, "type": "transfer"})

    @pytest.mark.parametrize("caller", ["alice", "bob"])
    @pytest.mark.parametrize("transaction_id", [str(ObjectId()), "not-an-object-id"])
    async def test_missing_id_not_found(self, service, caller, transaction_id):
        await service.create_transaction("alice", lunch())
        with pytest.raises(TransactionNotFoundError):
            await service.update_transaction(caller, transaction_id, {"amount": "1.00"})


class TestDelete:
    async def test_owner_delete(self, service, collection):
        created = await service.create_transaction("alice", lunch())

        deleted_id = await service.delete_transaction("alice", created.id)

        assert deleted_id == created.id
        assert await collection.count_documents({}) == 0
        with pytest.raises(TransactionNotFoundError):
            await service.get_transaction("alice", created.id)

    async def test_non_owner_forbidden_and_store_unchanged(self, service, collection):
        created = await service.create_transaction("alice", lunch())

        with pytest.raises(TransactionForbiddenError):
            await service.delete_transaction("bob", created.id)

        assert await collection.count_documents({"_id": ObjectId(created.id)}) == 1

    @pytest.mark.parametrize("caller", ["alice", "bob"])
    @pytest.mark.parametrize("transaction_id", [str(ObjectId()), "12345"])
    async def test_missing_id_not_found(self, service, caller, transaction_id):
        with pytest.raises(TransactionNotFoundError):
            await service.delete_transaction(caller, transaction_id)

    async def test_second_delete_not_found(self, service):
        created = await service.create_transaction("alice", lunch())
        await service.delete_transaction("alice", created.id)
        with pytest.raises(TransactionNotFoundError):
            await service.delete_transaction("alice", created.id)


class TestStoreFailures:
    @pytest.fixture
    def broken_collection(self):
        collection = MagicMock()
        collection.insert_one = AsyncMock(side_effect=PyMongoError("connection refused"))
        collection.find_one = AsyncMock(side_effect=PyMongoError("connection refused"))
        collection.delete_one = AsyncMock(side_effect=PyMongoError("connection refused"))
        collection.find.side_effect = PyMongoError("connection refused")
        return collection

    async def test_create(self, broken_collection):
        service = TransactionService(broken_collection)
        with pytest.raises(TransactionStoreError, match="connection refused"):
            await service.create_transaction("alice", lunch())

    async def test_list(self, broken_collection):
        service = TransactionService(broken_collection)
        with pytest.raises(TransactionStoreError):
            await service.list_transactions("alice")

    async def test_update(self, broken_collection):
        service = TransactionService(broken_collection)
        with pytest.raises(TransactionStoreError):
            await service.update_transaction("alice", str(ObjectId()), {"amount": "1.00"})

    async def test_delete(self, broken_collection):
        service = TransactionService(broken_collection)
        with pytest.raises(TransactionStoreError):
            await service.delete_transaction("alice", str(ObjectId()))
