import logging
import datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from bson import ObjectId
from bson.decimal128 import Decimal128
from bson.errors import InvalidId
from pydantic import BaseModel, ValidationError
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from app.domains.transactions.exceptions import (
    TransactionForbiddenError,
    TransactionNotFoundError,
    TransactionStoreError,
    TransactionValidationError,
)
from app.domains.transactions.models import Transaction, TransactionCreate, TransactionUpdate

logger = logging.getLogger(__name__)

# Fields the client may write. Everything else is server-owned.
WRITABLE_FIELDS = ("type", "amount", "category", "description", "date")


def _parse_object_id(transaction_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(transaction_id)
    except (InvalidId, TypeError):
        return None


def _to_document(payload: TransactionCreate) -> dict:
    return {
        "type": payload.type.value,
        "amount": Decimal128(payload.amount),
        "category": payload.category,
        "description": payload.description,
        "date": payload.date.isoformat(),
    }


def _to_transaction(doc: Mapping[str, Any]) -> Transaction:
    amount = doc.get("amount")
    if isinstance(amount, Decimal128):
        amount = amount.to_decimal()
    elif amount is not None and not isinstance(amount, Decimal):
        amount = Decimal(str(amount))

    created_at = doc.get("created_at")
    if isinstance(created_at, datetime.datetime) and created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=datetime.timezone.utc)

    return Transaction(
        id=str(doc["_id"]),
        owner_id=doc["owner_id"],
        type=doc["type"],
        amount=amount,
        category=doc["category"],
        description=doc["description"],
        date=doc["date"],
        created_at=created_at,
    )


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "transaction"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def _validate(model: type, payload: Any) -> BaseModel:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_unset=True)
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise TransactionValidationError(
            _validation_message(e),
            errors=e.errors(include_url=False, include_context=False, include_input=False),
        ) from e


class TransactionService:
    """Reads and writes transactions on behalf of a single, already verified user.

    Every method takes the caller's ``owner_id`` explicitly. Documents that
    belong to someone else are never returned or modified.
    """

    def __init__(self, collection):
        self.collection = collection

    async def ensure_indexes(self):
        try:
            await self.collection.create_index("owner_id")
        except PyMongoError as e:
            logger.error(f"Failed to create transaction indexes: {str(e)}")
            raise TransactionStoreError(str(e)) from e

    async def list_transactions(self, owner_id: str) -> List[Transaction]:
        try:
            cursor = self.collection.find({"owner_id": owner_id})
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error(f"Error listing transactions for {owner_id}: {str(e)}")
            raise TransactionStoreError(str(e)) from e
        return [_to_transaction(doc) for doc in documents]

    async def get_transaction(self, owner_id: str, transaction_id: str) -> Transaction:
        document = await self._load_owned(owner_id, transaction_id)
        return _to_transaction(document)

    async def create_transaction(self, owner_id: str, payload: Any) -> Transaction:
        validated = _validate(TransactionCreate, payload)

        document = _to_document(validated)
        document["owner_id"] = owner_id
        document["created_at"] = datetime.datetime.now(datetime.timezone.utc)

        try:
            insert_result = await self.collection.insert_one(document)
        except PyMongoError as e:
            logger.error(f"Error inserting transaction for {owner_id}: {str(e)}")
            raise TransactionStoreError(str(e)) from e

        document["_id"] = insert_result.inserted_id
        logger.info(f"Inserted transaction with ID: {insert_result.inserted_id}")
        return _to_transaction(document)

    async def update_transaction(self, owner_id: str, transaction_id: str, payload: Any) -> Transaction:
        existing = await self._load_owned(owner_id, transaction_id)
        changes = _validate(TransactionUpdate, payload).model_dump(exclude_unset=True)

        current = _to_transaction(existing).model_dump(include=set(WRITABLE_FIELDS))
        current.update({key: value for key, value in changes.items() if key in WRITABLE_FIELDS})
        merged = _validate(TransactionCreate, current)

        # owner_id in the filter makes the write conditional on ownership
        try:
            updated = await self.collection.find_one_and_update(
                {"_id": existing["_id"], "owner_id": owner_id},
                {"$set": _to_document(merged)},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error(f"Error updating transaction {transaction_id}: {str(e)}")
            raise TransactionStoreError(str(e)) from e

        if updated is None:
            await self._raise_missing(owner_id, transaction_id)

        logger.info(f"Updated transaction {transaction_id} fields: {sorted(changes)}")
        return _to_transaction(updated)

    async def delete_transaction(self, owner_id: str, transaction_id: str) -> str:
        object_id = _parse_object_id(transaction_id)
        if object_id is None:
            logger.warning(f"Delete rejected, malformed transaction id: {transaction_id}")
            raise TransactionNotFoundError(transaction_id)

        try:
            delete_result = await self.collection.delete_one({"_id": object_id, "owner_id": owner_id})
        except PyMongoError as e:
            logger.error(f"Error deleting transaction {transaction_id}: {str(e)}")
            raise TransactionStoreError(str(e)) from e

        if delete_result.deleted_count == 0:
            await self._raise_missing(owner_id, transaction_id)

        logger.info(f"Deleted transaction {transaction_id}")
        return transaction_id

    async def _find(self, object_id: ObjectId) -> Optional[dict]:
        try:
            return await self.collection.find_one({"_id": object_id})
        except PyMongoError as e:
            logger.error(f"Error loading transaction {object_id}: {str(e)}")
            raise TransactionStoreError(str(e)) from e

    async def _load_owned(self, owner_id: str, transaction_id: str) -> dict:
        object_id = _parse_object_id(transaction_id)
        document = await self._find(object_id) if object_id is not None else None
        if document is None:
            logger.warning(f"Transaction {transaction_id} not found")
            raise TransactionNotFoundError(transaction_id)
        if document.get("owner_id") != owner_id:
            logger.warning(f"User {owner_id} denied access to transaction {transaction_id}")
            raise TransactionForbiddenError(transaction_id)
        return document

    async def _raise_missing(self, owner_id: str, transaction_id: str):
        """Explain why a conditional write matched nothing."""
        await self._load_owned(owner_id, transaction_id)
        raise TransactionNotFoundError(transaction_id)
