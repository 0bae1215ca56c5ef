"""Transaction payload validation.

Every rule is checked and every violation is collected, so a caller can
report all problems of a request at once instead of the first one only.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, TypeVar

from errors import ValidationFailed, ValidationIssue
from models import Currency, Month, TransactionType
from periods import days_in_month
from schemas import InlineCategoryIn, TransactionIn

MIN_YEAR = 2000

RATED_CURRENCIES = {Currency.usd, Currency.eur}

E = TypeVar("E", bound=Enum)


@dataclass(frozen=True)
class NewTransaction:
    type: TransactionType
    amount: float
    currency: Currency
    note: str
    day: Optional[int]
    month: Month
    year: int
    exchange_rate: Optional[float]
    category_id: Optional[str]
    category: Optional[InlineCategoryIn]


def parse_enum(enum_cls: type[E], raw: Optional[str]) -> Optional[E]:
    """Case-insensitive lookup of ``raw`` among the values of ``enum_cls``."""
    if raw is None:
        return None
    try:
        return enum_cls(raw.strip().upper())
    except ValueError:
        return None


def allowed_values(enum_cls: type[Enum]) -> str:
    return ", ".join(member.value for member in enum_cls)


def sanitize(payload: TransactionIn) -> TransactionIn:
    category_id = payload.category_id
    if category_id is not None and not category_id.strip():
        category_id = None
    category = payload.category
    if category is not None:
        category = InlineCategoryIn(
            type=category.type.strip().upper(),
            name=category.name.strip(),
            note=category.note.strip(),
        )
    return payload.model_copy(
        update={
            "month": payload.month.strip(),
            "note": payload.note.strip(),
            "category_id": category_id,
            "category": category,
        }
    )


def collect_issues(
    payload: TransactionIn, index: Optional[int] = None
) -> tuple[Optional[NewTransaction], list[ValidationIssue]]:
    payload = sanitize(payload)
    issues: list[ValidationIssue] = []

    def issue(field: str, message: str) -> None:
        issues.append(ValidationIssue(field=field, message=message, index=index))

    txn_type = parse_enum(TransactionType, payload.type)
    if txn_type is None:
        issue("type", f"Allowed values: {allowed_values(TransactionType)}")

    if not math.isfinite(payload.amount):
        issue("amount", "Amount must be a finite number")
    elif payload.amount <= 0:
        issue("amount", "Amount must be greater than zero")

    currency = parse_enum(Currency, payload.currency)
    if currency is None:
        issue("currency", "Unsupported currency")

    month = parse_enum(Month, payload.month)
    # month is already trimmed, so blank input counts as missing
    if not payload.month:
        issue("month", "Month is required")
    elif month is None:
        issue("month", "Invalid month")

    if payload.year < MIN_YEAR:
        issue("year", f"Year must be >= {MIN_YEAR}")

    if payload.day is not None:
        limit = days_in_month(month.value if month else None, payload.year)
        if payload.day <= 0 or payload.day > limit:
            issue("day", "Day is out of range for the provided month")

    if payload.exchange_rate is not None and not math.isfinite(payload.exchange_rate):
        issue("exchangeRate", "Exchange rate must be a finite number")
    elif currency in RATED_CURRENCIES and payload.exchange_rate is None:
        issue("exchangeRate", "Exchange rate is required for USD/EUR")

    if payload.category_id is None and payload.category is None:
        issue("category", "Either categoryId or category must be provided")
    if payload.category_id is not None and payload.category is not None:
        issue("category", "Provide only categoryId or category")

    if issues:
        return None, issues

    return (
        NewTransaction(
            type=txn_type,
            amount=payload.amount,
            currency=currency,
            note=payload.note,
            day=payload.day,
            month=month,
            year=payload.year,
            exchange_rate=payload.exchange_rate,
            category_id=payload.category_id,
            category=payload.category,
        ),
        [],
    )


def validate_transaction(
    payload: TransactionIn, index: Optional[int] = None
) -> NewTransaction:
    normalized, issues = collect_issues(payload, index)
    if issues:
        raise ValidationFailed(issues)
    return normalized


def validate_batch(payloads: Sequence[TransactionIn]) -> list[NewTransaction]:
    if not payloads:
        raise ValidationFailed(["transactions are required"])

    normalized: list[NewTransaction] = []
    issues: list[ValidationIssue] = []
    for index, payload in enumerate(payloads):
        item, item_issues = collect_issues(payload, index)
        issues.extend(item_issues)
        if item is not None:
            normalized.append(item)
    if issues:
        raise ValidationFailed(issues)
    return normalized
