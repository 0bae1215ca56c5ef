import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class TransactionType(str, Enum):
    income = "INCOME"
    expense = "EXPENSE"
    saving = "SAVING"
    installments = "INSTALLMENTS"


class Currency(str, Enum):
    usd = "USD"
    uyu = "UYU"
    eur = "EUR"


class Month(str, Enum):
    january = "JANUARY"
    february = "FEBRUARY"
    march = "MARCH"
    april = "APRIL"
    may = "MAY"
    june = "JUNE"
    july = "JULY"
    august = "AUGUST"
    september = "SEPTEMBER"
    october = "OCTOBER"
    november = "NOVEMBER"
    december = "DECEMBER"


def _values_enum(enum_cls: type[Enum], name: str) -> SAEnum:
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
    )


TRANSACTION_TYPE_ENUM = _values_enum(TransactionType, "transactiontype")
CURRENCY_ENUM = _values_enum(Currency, "currency")
MONTH_ENUM = _values_enum(Month, "month")


def new_id() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    categories: Mapped[list["Category"]] = relationship(
        "Category", back_populates="user"
    )
    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="user"
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        TRANSACTION_TYPE_ENUM, nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")

    user: Mapped["User"] = relationship("User", back_populates="categories")
    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="category"
    )

    __table_args__ = (Index("ix_categories_user_created", "user_id", "created_at"),)


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        TRANSACTION_TYPE_ENUM, nullable=False
    )
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[Currency] = mapped_column(CURRENCY_ENUM, nullable=False)
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    day: Mapped[Optional[int]] = mapped_column(Integer)
    month: Mapped[Month] = mapped_column(MONTH_ENUM, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    exchange_rate: Mapped[Optional[float]] = mapped_column(Float)
    category_id: Mapped[Optional[str]] = mapped_column(ForeignKey("categories.id"))

    user: Mapped["User"] = relationship("User", back_populates="transactions")
    category: Mapped[Optional["Category"]] = relationship(
        "Category", back_populates="transactions"
    )

    __table_args__ = (
        Index("ix_transactions_user_period", "user_id", "year", "month", "day"),
        Index("ix_transactions_user_type", "user_id", "type"),
        Index("ix_transactions_user_category", "user_id", "category_id"),
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        CheckConstraint("year >= 2000", name="ck_transactions_year_min"),
    )


class UserSession(Base, TimestampMixin):
    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (Index("ix_sessions_expires_at", "expires_at"),)
