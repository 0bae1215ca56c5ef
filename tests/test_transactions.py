import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from database import Base
from errors import CategoryNotFound, TypeMismatch, ValidationFailed
from models import Category, Month, Transaction, TransactionType
from schemas import CategoryIn, InlineCategoryIn, TransactionIn, UserIn
from services import (
    CategoryService,
    TransactionFilters,
    TransactionService,
    UserService,
)


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def make_user(session, email: str = "demo@example.com") -> str:
    user = UserService(session).create(
        UserIn(email=email, first_name="Demo", last_name="User", password="secret123")
    )
    return user.id


def count(session, model) -> int:
    return session.execute(select(func.count(model.id))).scalar_one()


def test_create_with_existing_category() -> None:
    session = make_session()
    user_id = make_user(session)
    food = CategoryService(session, user_id).create(
        CategoryIn(type="expense", name="Food")
    )

    [txn] = TransactionService(session, user_id).create(
        [
            TransactionIn(
                type="expense",
                amount=250.5,
                currency="uyu",
                note=" Groceries ",
                day=14,
                month="march",
                year=2024,
                category_id=food.id,
            )
        ]
    )

    assert txn.id
    assert txn.type == TransactionType.expense
    assert txn.month == Month.march
    assert txn.note == "Groceries"
    assert txn.category_id == food.id
    assert txn.category.name == "Food"


def test_inline_category_defaults_to_transaction_type() -> None:
    session = make_session()
    user_id = make_user(session)

    [txn] = TransactionService(session, user_id).create(
        [
            TransactionIn(
                type="SAVING",
                amount=1000,
                currency="UYU",
                month="JANUARY",
                year=2025,
                category=InlineCategoryIn(name="  Emergency fund ", note="rainy day"),
            )
        ]
    )

    category = session.get(Category, txn.category_id)
    assert category.type == TransactionType.saving
    assert category.name == "Emergency fund"
    assert category.user_id == user_id


def test_inline_category_with_other_type_is_a_mismatch() -> None:
    session = make_session()
    user_id = make_user(session)

    with pytest.raises(TypeMismatch):
        TransactionService(session, user_id).create(
            [
                TransactionIn(
                    type="INCOME",
                    amount=10,
                    currency="UYU",
                    month="MAY",
                    year=2024,
                    category=InlineCategoryIn(type="expense", name="Salary"),
                )
            ]
        )
    assert count(session, Category) == 0


def test_category_type_mismatch_is_rejected() -> None:
    session = make_session()
    user_id = make_user(session)
    food = CategoryService(session, user_id).create(
        CategoryIn(type="EXPENSE", name="Food")
    )

    with pytest.raises(TypeMismatch):
        TransactionService(session, user_id).create(
            [
                TransactionIn(
                    type="INCOME",
                    amount=10,
                    currency="UYU",
                    month="MAY",
                    year=2024,
                    category_id=food.id,
                )
            ]
        )
    assert count(session, Transaction) == 0


def test_category_of_another_user_is_not_found() -> None:
    session = make_session()
    owner = make_user(session, "owner@example.com")
    intruder = make_user(session, "intruder@example.com")
    food = CategoryService(session, owner).create(
        CategoryIn(type="EXPENSE", name="Food")
    )

    with pytest.raises(CategoryNotFound):
        TransactionService(session, intruder).create(
            [
                TransactionIn(
                    type="EXPENSE",
                    amount=10,
                    currency="UYU",
                    month="MAY",
                    year=2024,
                    category_id=food.id,
                )
            ]
        )


def test_batch_is_all_or_nothing() -> None:
    session = make_session()
    user_id = make_user(session)
    food = CategoryService(session, user_id).create(
        CategoryIn(type="EXPENSE", name="Food")
    )

    with pytest.raises(CategoryNotFound):
        TransactionService(session, user_id).create(
            [
                TransactionIn(
                    type="EXPENSE",
                    amount=10,
                    currency="UYU",
                    month="MAY",
                    year=2024,
                    category=InlineCategoryIn(name="Rent"),
                ),
                TransactionIn(
                    type="EXPENSE",
                    amount=20,
                    currency="UYU",
                    month="MAY",
                    year=2024,
                    category_id=food.id,
                ),
                TransactionIn(
                    type="EXPENSE",
                    amount=30,
                    currency="UYU",
                    month="MAY",
                    year=2024,
                    category_id="missing",
                ),
            ]
        )

    assert count(session, Transaction) == 0
    assert [c.name for c in CategoryService(session, user_id).list_all()] == ["Food"]


def test_invalid_item_stops_the_batch_before_writing() -> None:
    session = make_session()
    user_id = make_user(session)

    with pytest.raises(ValidationFailed) as excinfo:
        TransactionService(session, user_id).create(
            [
                TransactionIn(
                    type="EXPENSE",
                    amount=10,
                    currency="UYU",
                    month="MAY",
                    year=2024,
                    category=InlineCategoryIn(name="Rent"),
                ),
                TransactionIn(
                    type="EXPENSE",
                    amount=-1,
                    currency="USD",
                    month="MAY",
                    year=2024,
                    category=InlineCategoryIn(name="Rent"),
                ),
            ]
        )

    assert [i.location for i in excinfo.value.issues] == [
        "transactions[1].amount",
        "transactions[1].exchangeRate",
    ]
    assert count(session, Category) == 0
    assert count(session, Transaction) == 0


def test_batch_returns_transactions_in_input_order() -> None:
    session = make_session()
    user_id = make_user(session)
    payloads = [
        TransactionIn(
            type="EXPENSE",
            amount=amount,
            currency="UYU",
            month="MAY",
            year=2024,
            category=InlineCategoryIn(name=f"Bucket {amount}"),
        )
        for amount in (3, 1, 2)
    ]

    created = TransactionService(session, user_id).create(payloads)

    assert [txn.amount for txn in created] == [3, 1, 2]
    assert len({txn.id for txn in created}) == 3


def test_list_filters_combine_and_scope_to_user() -> None:
    session = make_session()
    user_id = make_user(session)
    other_id = make_user(session, "other@example.com")
    service = TransactionService(session, user_id)

    def add(owner, txn_type, month, year, day=None):
        TransactionService(session, owner).create(
            [
                TransactionIn(
                    type=txn_type,
                    amount=5,
                    currency="UYU",
                    day=day,
                    month=month,
                    year=year,
                    category=InlineCategoryIn(name="General"),
                )
            ]
        )

    add(user_id, "EXPENSE", "MARCH", 2024, day=3)
    add(user_id, "EXPENSE", "MARCH", 2025)
    add(user_id, "INCOME", "MARCH", 2024)
    add(other_id, "EXPENSE", "MARCH", 2024, day=3)

    assert len(service.list()) == 3
    assert len(service.list(TransactionFilters(month=Month.march, year=2024))) == 2
    only = service.list(
        TransactionFilters(type=TransactionType.expense, day=3, year=2024)
    )
    assert len(only) == 1
    assert only[0].user_id == user_id


def test_get_and_delete_are_scoped_to_owner() -> None:
    session = make_session()
    user_id = make_user(session)
    other_id = make_user(session, "other@example.com")
    [txn] = TransactionService(session, user_id).create(
        [
            TransactionIn(
                type="INCOME",
                amount=5,
                currency="UYU",
                month="MAY",
                year=2024,
                category=InlineCategoryIn(name="Salary"),
            )
        ]
    )

    with pytest.raises(ValueError, match="Transaction not exist"):
        TransactionService(session, other_id).get(txn.id)
    with pytest.raises(ValueError, match="Transaction not exist"):
        TransactionService(session, other_id).delete(txn.id)

    TransactionService(session, user_id).delete(txn.id)
    assert count(session, Transaction) == 0
