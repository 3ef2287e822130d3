"""Derived views over a list of transactions.

Everything here is pure: inputs are never mutated and nothing touches the
database. Amounts are summed as ``Decimal`` so totals stay exact; only the
category percentages are rounded, to one decimal place.
"""

from collections import defaultdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Union

from app.domains.transactions.models import (
    CategoryShare,
    MonthlyTotals,
    Summary,
    Transaction,
    TransactionType,
    TypeTotals,
)

ZERO = Decimal("0")
PERCENT_STEP = Decimal("0.1")


def _type_value(value: Union[TransactionType, str]) -> str:
    return value.value if isinstance(value, TransactionType) else str(value)


def totals_by_type(transactions: Iterable[Transaction]) -> TypeTotals:
    income = ZERO
    expense = ZERO
    for t in transactions:
        if t.type == TransactionType.INCOME:
            income += t.amount
        elif t.type == TransactionType.EXPENSE:
            expense += t.amount
    return TypeTotals(income=income, expense=expense)


def total_balance(transactions: Iterable[Transaction]) -> Decimal:
    return totals_by_type(transactions).balance


def breakdown_by_category(
    transactions: Iterable[Transaction],
    type: Union[TransactionType, str] = TransactionType.EXPENSE,
) -> Dict[str, CategoryShare]:
    """Sum amounts per category for one transaction type.

    Percentages are taken against that type's total, not the grand total.
    Categories without any transaction of the type are left out. The result
    is ordered by amount, largest first.
    """
    wanted = _type_value(type)
    sums: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for t in transactions:
        if t.type.value == wanted:
            sums[t.category] += t.amount

    type_total = sum(sums.values(), ZERO)
    ordered = sorted(sums.items(), key=lambda item: (-item[1], item[0]))

    breakdown: Dict[str, CategoryShare] = {}
    for category, amount in ordered:
        if type_total > 0:
            percentage = (amount / type_total * 100).quantize(PERCENT_STEP, rounding=ROUND_HALF_UP)
        else:
            percentage = ZERO
        breakdown[category] = CategoryShare(category=category, amount=amount, percentage=float(percentage))
    return breakdown


def monthly_series(transactions: Iterable[Transaction], ascending: bool = False) -> List[MonthlyTotals]:
    """Income and expense per calendar month of the transaction ``date``.

    Most recent month first unless ``ascending`` is set, which suits charts.
    """
    months: Dict[tuple, MonthlyTotals] = {}
    for t in transactions:
        key = (t.date.year, t.date.month)
        bucket = months.get(key)
        if bucket is None:
            bucket = months[key] = MonthlyTotals(year=key[0], month=key[1])
        if t.type == TransactionType.INCOME:
            bucket.income += t.amount
        elif t.type == TransactionType.EXPENSE:
            bucket.expense += t.amount

    return [months[key] for key in sorted(months, reverse=not ascending)]


def filter_transactions(
    transactions: Iterable[Transaction],
    year: Optional[int] = None,
    month: Optional[int] = None,
    type: Optional[Union[TransactionType, str]] = None,
    category: Optional[str] = None,
) -> List[Transaction]:
    """Keep transactions matching every criterion given.

    ``None`` and empty strings count as "not given" and match everything.
    Year and month are matched against ``date``, never ``created_at``.
    """
    wanted_type = _type_value(type) if type not in (None, "") else None
    wanted_category = category or None

    result = []
    for t in transactions:
        if year is not None and t.date.year != year:
            continue
        if month is not None and t.date.month != month:
            continue
        if wanted_type is not None and t.type.value != wanted_type:
            continue
        if wanted_category is not None and t.category != wanted_category:
            continue
        result.append(t)
    return result


def available_years(transactions: Iterable[Transaction]) -> List[int]:
    return sorted({t.date.year for t in transactions}, reverse=True)


def recent_transactions(transactions: Iterable[Transaction], limit: int = 5) -> List[Transaction]:
    if limit <= 0:
        return []
    ordered = sorted(transactions, key=lambda t: (t.date, t.created_at), reverse=True)
    return ordered[:limit]


def summarize(transactions: Iterable[Transaction]) -> Summary:
    items = list(transactions)
    totals = totals_by_type(items)
    return Summary(
        balance=totals.balance,
        income=totals.income,
        expense=totals.expense,
        transaction_count=len(items),
        categories=list(breakdown_by_category(items, TransactionType.EXPENSE).values()),
        monthly=monthly_series(items),
    )
