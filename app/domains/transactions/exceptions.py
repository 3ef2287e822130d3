from typing import Any, List, Optional


class TransactionServiceError(Exception):
    """Base class for failures raised by the transaction service."""


class TransactionNotFoundError(TransactionServiceError):
    def __init__(self, transaction_id: str):
        super().__init__(f"Transaction {transaction_id} not found")
        self.transaction_id = transaction_id


class TransactionForbiddenError(TransactionServiceError):
    def __init__(self, transaction_id: str):
        super().__init__(f"Not allowed to access transaction {transaction_id}")
        self.transaction_id = transaction_id


class TransactionValidationError(TransactionServiceError):
    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.errors = errors or []


class TransactionStoreError(TransactionServiceError):
    """The underlying store failed. The message is for logs, not for clients."""
