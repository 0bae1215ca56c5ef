import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from database import Base
from errors import CategoryHasTransactions, CategoryNotFound, Conflict, ValidationFailed
from models import Category, Transaction, TransactionType
from schemas import CategoryIn, TransactionIn, UserIn
from services import CategoryService, TransactionService, UserService


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def make_user(session, email: str = "demo@example.com") -> str:
    return (
        UserService(session)
        .create(
            UserIn(
                email=email, first_name="Demo", last_name="User", password="secret123"
            )
        )
        .id
    )


def add_expense(session, user_id: str, category_id: str, amount: float = 10) -> None:
    TransactionService(session, user_id).create(
        [
            TransactionIn(
                type="EXPENSE",
                amount=amount,
                currency="UYU",
                month="JULY",
                year=2024,
                category_id=category_id,
            )
        ]
    )


def test_create_normalizes_type_and_trims_fields() -> None:
    session = make_session()
    user_id = make_user(session)

    category = CategoryService(session, user_id).create(
        CategoryIn(type="installments", name="  Laptop ", note=" 12 cuotas ")
    )

    assert category.type == TransactionType.installments
    assert category.name == "Laptop"
    assert category.note == "12 cuotas"


def test_create_rejects_unknown_type() -> None:
    session = make_session()
    user_id = make_user(session)

    with pytest.raises(ValidationFailed) as excinfo:
        CategoryService(session, user_id).create(CategoryIn(type="LOAN", name="Car"))
    assert excinfo.value.fields() == ["type"]


def test_get_is_scoped_to_owner() -> None:
    session = make_session()
    owner = make_user(session)
    other = make_user(session, "other@example.com")
    category = CategoryService(session, owner).create(
        CategoryIn(type="INCOME", name="Salary")
    )

    assert CategoryService(session, owner).get(category.id).name == "Salary"
    with pytest.raises(CategoryNotFound):
        CategoryService(session, other).get(category.id)
    assert CategoryService(session, other).list_all() == []


def test_delete_without_flag_conflicts_when_transactions_exist() -> None:
    session = make_session()
    user_id = make_user(session)
    food = CategoryService(session, user_id).create(
        CategoryIn(type="EXPENSE", name="Food")
    )
    add_expense(session, user_id, food.id)

    with pytest.raises(Conflict):
        CategoryService(session, user_id).delete(food.id)

    assert session.get(Category, food.id) is not None
    assert session.execute(select(func.count(Transaction.id))).scalar_one() == 1


def test_delete_with_flag_removes_category_and_transactions() -> None:
    session = make_session()
    user_id = make_user(session)
    service = CategoryService(session, user_id)
    food = service.create(CategoryIn(type="EXPENSE", name="Food"))
    rent = service.create(CategoryIn(type="EXPENSE", name="Rent"))
    add_expense(session, user_id, food.id, 10)
    add_expense(session, user_id, food.id, 20)
    add_expense(session, user_id, rent.id, 30)

    service.delete(food.id, delete_transactions=True)

    assert [c.name for c in service.list_all()] == ["Rent"]
    remaining = TransactionService(session, user_id).list()
    assert [txn.amount for txn in remaining] == [30]


def test_delete_unused_category() -> None:
    session = make_session()
    user_id = make_user(session)
    service = CategoryService(session, user_id)
    empty = service.create(CategoryIn(type="SAVING", name="Trip"))

    service.delete(empty.id)

    assert service.list_all() == []
    with pytest.raises(CategoryNotFound):
        service.delete(empty.id)


def test_category_has_transactions_is_reported_as_bad_request() -> None:
    error = CategoryHasTransactions()
    assert error.http_status == 400
    assert int(error.code) == 5002
