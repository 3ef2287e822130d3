from fastapi import APIRouter, Body, Request, Depends, HTTPException, Query
import logging
from typing import Any, Dict, Literal, Optional
from app.domains.auth.middleware import JWTAuthMiddleware
from app.domains.transactions import aggregation
from app.domains.transactions.exceptions import (
    TransactionForbiddenError,
    TransactionNotFoundError,
    TransactionServiceError,
    TransactionValidationError,
)
from app.domains.transactions.models import TransactionCreate, TransactionType
from app.domains.transactions.services import TransactionService

logger = logging.getLogger(__name__)

router = APIRouter()
jwt_auth = JWTAuthMiddleware()


def get_transaction_service(request: Request) -> TransactionService:
    return request.app.state.transaction_service


def to_http_error(e: TransactionServiceError, action: str) -> HTTPException:
    if isinstance(e, TransactionNotFoundError):
        return HTTPException(status_code=404, detail="Not found")
    if isinstance(e, TransactionForbiddenError):
        return HTTPException(status_code=403, detail="Forbidden")
    if isinstance(e, TransactionValidationError):
        return HTTPException(status_code=422, detail=str(e))
    logger.error(f"Error {action}: {e}")
    return HTTPException(status_code=500, detail="Internal Server Error")


@router.get("/transactions")
async def get_transactions(
    year: Optional[int] = None,
    month: Optional[int] = Query(default=None, ge=1, le=12),
    type: Optional[TransactionType] = None,
    category: Optional[str] = None,
    user_id: str = Depends(jwt_auth),
    service: TransactionService = Depends(get_transaction_service),
):
    try:
        transactions = await service.list_transactions(user_id)
    except TransactionServiceError as e:
        raise to_http_error(e, "fetching transactions")

    transactions = aggregation.filter_transactions(
        transactions, year=year, month=month, type=type, category=category
    )
    return {"transactions": transactions}


@router.get("/transactions/recent")
async def get_recent_transactions(
    limit: int = Query(default=5, ge=1, le=100),
    user_id: str = Depends(jwt_auth),
    service: TransactionService = Depends(get_transaction_service),
):
    try:
        transactions = await service.list_transactions(user_id)
    except TransactionServiceError as e:
        raise to_http_error(e, "fetching recent transactions")
    return {"transactions": aggregation.recent_transactions(transactions, limit=limit)}


@router.post("/transactions", status_code=201)
async def create_transaction(
    payload: TransactionCreate,
    user_id: str = Depends(jwt_auth),
    service: TransactionService = Depends(get_transaction_service),
):
    try:
        return await service.create_transaction(user_id, payload)
    except TransactionServiceError as e:
        raise to_http_error(e, "creating transaction")


@router.get("/transactions/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    user_id: str = Depends(jwt_auth),
    service: TransactionService = Depends(get_transaction_service),
):
    try:
        return await service.get_transaction(user_id, transaction_id)
    except TransactionServiceError as e:
        raise to_http_error(e, f"fetching transaction {transaction_id}")


@router.put("/transactions/{transaction_id}")
async def update_transaction(
    transaction_id: str,
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(jwt_auth),
    service: TransactionService = Depends(get_transaction_service),
):
    try:
        return await service.update_transaction(user_id, transaction_id, payload)
    except TransactionServiceError as e:
        raise to_http_error(e, f"updating transaction {transaction_id}")


@router.delete("/transactions/{transaction_id}")
async def delete_transaction(
    transaction_id: str,
    user_id: str = Depends(jwt_auth),
    service: TransactionService = Depends(get_transaction_service),
):
    try:
        deleted_id = await service.delete_transaction(user_id, transaction_id)
        return {"id": deleted_id}
    except TransactionServiceError as e:
        raise to_http_error(e, f"deleting transaction {transaction_id}")


@router.get("/stats/summary")
async def get_summary_stats(
    year: Optional[int] = None,
    month: Optional[int] = Query(default=None, ge=1, le=12),
    user_id: str = Depends(jwt_auth),
    service: TransactionService = Depends(get_transaction_service),
):
    try:
        transactions = await service.list_transactions(user_id)
    except TransactionServiceError as e:
        raise to_http_error(e, "fetching summary stats")

    transactions = aggregation.filter_transactions(transactions, year=year, month=month)
    return {"summary": aggregation.summarize(transactions)}


@router.get("/stats/category")
async def get_category_stats(
    type: TransactionType = TransactionType.EXPENSE,
    year: Optional[int] = None,
    month: Optional[int] = Query(default=None, ge=1, le=12),
    user_id: str = Depends(jwt_auth),
    service: TransactionService = Depends(get_transaction_service),
):
    try:
        transactions = await service.list_transactions(user_id)
    except TransactionServiceError as e:
        raise to_http_error(e, "fetching category stats")

    transactions = aggregation.filter_transactions(transactions, year=year, month=month)
    breakdown = aggregation.breakdown_by_category(transactions, type=type)
    return {"category_stats": list(breakdown.values())}


@router.get("/stats/monthly")
async def get_monthly_stats(
    year: Optional[int] = None,
    order: Literal["desc", "asc"] = "desc",
    user_id: str = Depends(jwt_auth),
    service: TransactionService = Depends(get_transaction_service),
):
    try:
        transactions = await service.list_transactions(user_id)
    except TransactionServiceError as e:
        raise to_http_error(e, "fetching monthly stats")

    transactions = aggregation.filter_transactions(transactions, year=year)
    series = aggregation.monthly_series(transactions, ascending=order == "asc")
    return {
        "monthly_stats": [
            {"period": totals.period, **totals.model_dump(mode="json")} for totals in series
        ]
    }


@router.get("/stats/years")
async def get_years(
    user_id: str = Depends(jwt_auth),
    service: TransactionService = Depends(get_transaction_service),
):
    try:
        transactions = await service.list_transactions(user_id)
    except TransactionServiceError as e:
        raise to_http_error(e, "fetching transaction years")
    return {"years": aggregation.available_years(transactions)}
