from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence

import bcrypt
from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, joinedload

from config import get_settings
from errors import (
    BadAuth,
    CategoryHasTransactions,
    CategoryNotFound,
    ErrorCode,
    TransactionNotFound,
    TypeMismatch,
    UserExists,
    UserNotFound,
    ValidationFailed,
    ValidationIssue,
)
from models import (
    Category,
    Currency,
    Month,
    Transaction,
    TransactionType,
    User,
    new_id,
)
from periods import sort_months
from schemas import CategoryIn, InlineCategoryIn, TransactionIn, UserIn
from sessions import SessionStore, new_session_id
from validation import allowed_values, parse_enum, validate_batch


def round_cents(value: float) -> float:
    """Round to two decimals, halves away from zero."""
    scaled = Decimal(value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return float(scaled / 100)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    day: Optional[int] = None
    month: Optional[Month] = None
    year: Optional[int] = None


@dataclass
class BalanceSummary:
    total: float = 0.0
    uyu: float = 0.0
    usd: float = 0.0
    eur: float = 0.0

    def add(self, txn: Transaction) -> None:
        if txn.currency == Currency.uyu:
            self.uyu += txn.amount
            self.total += txn.amount
        elif txn.currency == Currency.usd:
            self.usd += txn.amount
            if txn.exchange_rate is not None:
                self.total += txn.amount * txn.exchange_rate
        elif txn.currency == Currency.eur:
            self.eur += txn.amount
            if txn.exchange_rate is not None:
                self.total += txn.amount * txn.exchange_rate

        # Rounded after every addition, not once at the end.
        self.total = round_cents(self.total)
        self.uyu = round_cents(self.uyu)
        self.usd = round_cents(self.usd)
        self.eur = round_cents(self.eur)


@dataclass
class TransactionBalances:
    expenses: BalanceSummary = field(default_factory=BalanceSummary)
    incomes: BalanceSummary = field(default_factory=BalanceSummary)
    savings: BalanceSummary = field(default_factory=BalanceSummary)

    def to_dict(self) -> dict[str, dict[str, float]]:
        return asdict(self)


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, data: UserIn) -> User:
        email = data.email.lower()
        exists = self.session.execute(
            select(func.count(User.id)).where(func.lower(User.email) == email)
        ).scalar_one()
        if exists:
            raise UserExists()

        user = User(
            id=new_id(),
            email=email,
            first_name=data.first_name,
            last_name=data.last_name,
            password_hash=hash_password(data.password),
        )
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def find_by_email(self, email: str) -> User:
        user = self.session.scalar(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        if not user:
            raise UserNotFound()
        return user

    def get(self, user_id: str) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise UserNotFound()
        return user


class AuthService:
    def __init__(self, session: Session, ttl: Optional[timedelta] = None) -> None:
        self.session = session
        self.users = UserService(session)
        self.store = SessionStore(session)
        if ttl is None:
            ttl = timedelta(hours=get_settings().session_ttl_hours)
        self.ttl = ttl

    def login(
        self, email: str, password: str, session_id: Optional[str] = None
    ) -> tuple[User, str]:
        user = self.users.find_by_email(email)
        if not verify_password(password, user.password_hash):
            raise BadAuth()

        session_id = session_id or new_session_id()
        self.store.set(session_id, user.id, self.ttl)
        return user, session_id

    def logout(self, session_id: Optional[str]) -> None:
        if not session_id:
            return
        self.store.delete(session_id)

    def resolve(self, session_id: Optional[str]) -> Optional[str]:
        if not session_id:
            return None
        return self.store.get(session_id)


class CategoryService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.user_id == self.user_id)
            .order_by(Category.created_at.desc())
        )
        return self.session.scalars(stmt).all()

    def get(self, category_id: str) -> Category:
        category = self.session.scalar(
            select(Category).where(
                Category.id == category_id, Category.user_id == self.user_id
            )
        )
        if not category:
            raise CategoryNotFound()
        return category

    def create(self, data: CategoryIn) -> Category:
        category_type = parse_enum(TransactionType, data.type)
        if category_type is None:
            raise ValidationFailed(
                [
                    ValidationIssue(
                        "type", f"Allowed values: {allowed_values(TransactionType)}"
                    )
                ]
            )
        category = self._add(category_type, data.name, data.note)
        self.session.commit()
        self.session.refresh(category)
        return category

    def _add(self, category_type: TransactionType, name: str, note: str) -> Category:
        category = Category(
            id=new_id(),
            user_id=self.user_id,
            type=category_type,
            name=name.strip(),
            note=note.strip(),
        )
        self.session.add(category)
        self.session.flush()
        return category

    def ensure_for_transaction(
        self,
        category_id: Optional[str],
        payload: Optional[InlineCategoryIn],
        transaction_type: TransactionType,
    ) -> Category:
        """Look up or create the category a new transaction is filed under.

        Runs inside the caller's unit of work and never commits.
        """
        if category_id is not None:
            category = self.get(category_id)
            if category.type != transaction_type:
                raise TypeMismatch()
            return category

        if payload is None:
            raise ValidationFailed(code=ErrorCode.too_few_params)

        if payload.type and payload.type.upper() != transaction_type.value:
            raise TypeMismatch()

        if not payload.name:
            raise ValidationFailed(
                [ValidationIssue("category.name", "Name is required")]
            )

        return self._add(transaction_type, payload.name, payload.note)

    def delete(self, category_id: str, delete_transactions: bool = False) -> None:
        try:
            category = self.get(category_id)
            scope = (
                Transaction.category_id == category.id,
                Transaction.user_id == self.user_id,
            )
            count = self.session.execute(
                select(func.count(Transaction.id)).where(*scope)
            ).scalar_one()
            if count and not delete_transactions:
                raise CategoryHasTransactions()

            if delete_transactions:
                self.session.execute(delete(Transaction).where(*scope))
            else:
                self.session.execute(
                    update(Transaction).where(*scope).values(category_id=None)
                )
            self.session.execute(delete(Category).where(Category.id == category.id))
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise


class TransactionService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def create(self, payloads: Sequence[TransactionIn]) -> list[Transaction]:
        """Persist a batch of transactions, all of them or none."""
        items = validate_batch(payloads)
        categories = CategoryService(self.session, self.user_id)

        created: list[Transaction] = []
        try:
            for item in items:
                category = categories.ensure_for_transaction(
                    item.category_id, item.category, item.type
                )
                txn = Transaction(
                    id=new_id(),
                    user_id=self.user_id,
                    type=item.type,
                    amount=item.amount,
                    currency=item.currency,
                    note=item.note,
                    day=item.day,
                    month=item.month,
                    year=item.year,
                    exchange_rate=item.exchange_rate,
                    category_id=category.id,
                )
                self.session.add(txn)
                self.session.flush()
                created.append(txn)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        for txn in created:
            self.session.refresh(txn)
        return created

    def _filtered(self, filters: TransactionFilters):
        stmt = select(Transaction).where(Transaction.user_id == self.user_id)
        if filters.type:
            stmt = stmt.where(Transaction.type == filters.type)
        if filters.day is not None:
            stmt = stmt.where(Transaction.day == filters.day)
        if filters.month:
            stmt = stmt.where(Transaction.month == filters.month)
        if filters.year is not None:
            stmt = stmt.where(Transaction.year == filters.year)
        return stmt

    def list(self, filters: Optional[TransactionFilters] = None) -> list[Transaction]:
        stmt = (
            self._filtered(filters or TransactionFilters())
            .options(joinedload(Transaction.category))
            .order_by(Transaction.created_at.desc())
        )
        return self.session.scalars(stmt).all()

    def get(self, transaction_id: str) -> Transaction:
        txn = self.session.scalar(
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.id == transaction_id,
                Transaction.user_id == self.user_id,
            )
        )
        if not txn:
            raise TransactionNotFound()
        return txn

    def delete(self, transaction_id: str) -> None:
        result = self.session.execute(
            delete(Transaction).where(
                Transaction.id == transaction_id,
                Transaction.user_id == self.user_id,
            )
        )
        if result.rowcount == 0:
            self.session.rollback()
            raise TransactionNotFound()
        self.session.commit()

    def balances(
        self, filters: Optional[TransactionFilters] = None
    ) -> TransactionBalances:
        summary = TransactionBalances()
        for txn in self.session.scalars(
            self._filtered(filters or TransactionFilters())
        ).all():
            if txn.type in (TransactionType.expense, TransactionType.installments):
                summary.expenses.add(txn)
            elif txn.type == TransactionType.income:
                summary.incomes.add(txn)
            elif txn.type == TransactionType.saving:
                summary.savings.add(txn)
        return summary

    def months_by_year(self) -> dict[int, list[Month]]:
        rows = self.session.execute(
            select(Transaction.month, Transaction.year).where(
                Transaction.user_id == self.user_id
            )
        ).all()

        seen: dict[int, set[Month]] = {}
        for row in rows:
            seen.setdefault(row.year, set()).add(row.month)
        return {year: sort_months(seen[year]) for year in sorted(seen)}

    def total_savings(self) -> float:
        total = self.session.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0.0)).where(
                Transaction.user_id == self.user_id,
                Transaction.type == TransactionType.saving,
            )
        ).scalar_one()
        return round_cents(float(total or 0))
