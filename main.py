import logging
from typing import Any, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings
from database import get_db
from errors import (
    AppError,
    NeedLogin,
    RouteNotFound,
    ValidationFailed,
    ValidationIssue,
)
from models import Category, Month, Transaction, TransactionType, User
from scheduler import SchedulerManager
from schemas import CategoryIn, LoginIn, TransactionEnvelopeIn, UserIn
from services import (
    AuthService,
    CategoryService,
    TransactionFilters,
    TransactionService,
    UserService,
)
from sessions import sign_session_id, unsign_session_id
from validation import MIN_YEAR, parse_enum

logger = logging.getLogger(__name__)


def _load_app_version() -> str:
    try:
        import tomllib
    except Exception:
        return "unknown"
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except Exception:
        return "unknown"


APP_VERSION = _load_app_version()

settings = get_settings()

app = FastAPI(title="Expenses API", version=APP_VERSION)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["Content-Type", "Authorization"],
)

scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def success(data: Any = None, status_code: int = 200) -> JSONResponse:
    body: dict[str, Any] = {"result": True}
    if data is not None:
        body["data"] = data
    return JSONResponse(status_code=status_code, content=body)


def error_response(exc: AppError) -> JSONResponse:
    definition = exc.definition
    body: dict[str, Any] = {
        "result": False,
        "message": definition.message,
        "showMessage": definition.show_message,
        "errorCode": int(exc.code),
    }
    if exc.data is not None:
        body["data"] = exc.data
    return JSONResponse(status_code=definition.http_status, content=body)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    logger.info(
        f"error on {request.method} {request.url.path}: {exc} | data={exc.data}"
    )
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    issues = [
        ValidationIssue(
            field=".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            message=err.get("msg", "Invalid value"),
        )
        for err in exc.errors()
    ]
    return await app_error_handler(request, ValidationFailed(issues))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return await app_error_handler(request, RouteNotFound())
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"unexpected error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def session_id_from_request(request: Request) -> Optional[str]:
    return unsign_session_id(request.cookies.get(settings.session_cookie_name))


def current_user_id(request: Request, db: Session = Depends(get_db)) -> str:
    user_id = AuthService(db).resolve(session_id_from_request(request))
    if not user_id:
        raise NeedLogin()
    return user_id


def filters_from_request(request: Request) -> TransactionFilters:
    filters = TransactionFilters()

    type_param = request.query_params.get("type")
    if type_param:
        filters.type = parse_enum(TransactionType, type_param)
        if filters.type is None:
            raise ValidationFailed("Invalid transaction type")

    month_param = request.query_params.get("month")
    if month_param:
        filters.month = parse_enum(Month, month_param)
        if filters.month is None:
            raise ValidationFailed("Invalid month")

    day_param = request.query_params.get("day")
    if day_param:
        try:
            day = int(day_param)
        except ValueError:
            day = 0
        if day <= 0 or day > 31:
            raise ValidationFailed("Day must be between 1 and 31")
        filters.day = day

    year_param = request.query_params.get("year")
    if year_param:
        try:
            year = int(year_param)
        except ValueError:
            year = 0
        if year < MIN_YEAR:
            raise ValidationFailed(f"Year must be >= {MIN_YEAR}")
        filters.year = year

    return filters


def user_to_dict(user: User) -> dict[str, Any]:
    return {
        "userId": user.id,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
    }


def category_to_dict(category: Category) -> dict[str, Any]:
    return {
        "categoryId": category.id,
        "type": category.type.value,
        "name": category.name,
        "note": category.note,
    }


def transaction_to_dict(txn: Transaction) -> dict[str, Any]:
    return {
        "transactionId": txn.id,
        "type": txn.type.value,
        "amount": txn.amount,
        "currency": txn.currency.value,
        "note": txn.note,
        "day": txn.day,
        "month": txn.month.value,
        "year": txn.year,
        "exchangeRate": txn.exchange_rate,
        "categoryId": txn.category_id,
        "category": category_to_dict(txn.category) if txn.category else None,
    }


@app.get("/api/health")
def health():
    return success("Up & running ;)!")


@app.post("/api/users")
def create_user(payload: UserIn, db: Session = Depends(get_db)):
    user = UserService(db).create(payload)
    return success(user_to_dict(user), status_code=201)


@app.get("/api/users")
def me(user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    return success(user_to_dict(UserService(db).get(user_id)))


@app.post("/api/auth/login")
def login(payload: LoginIn, request: Request, db: Session = Depends(get_db)):
    if not payload.email or not payload.password:
        raise ValidationFailed("Email and password are required")

    user, session_id = AuthService(db).login(
        payload.email, payload.password, session_id_from_request(request)
    )
    response = success(user_to_dict(user))
    response.set_cookie(
        key=settings.session_cookie_name,
        value=sign_session_id(session_id),
        max_age=settings.session_ttl_seconds,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response


@app.delete("/api/auth/logout")
def logout(
    request: Request,
    _user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    AuthService(db).logout(session_id_from_request(request))
    response = success()
    response.delete_cookie(key=settings.session_cookie_name, path="/", httponly=True)
    return response


@app.get("/api/categories")
def list_categories(
    user_id: str = Depends(current_user_id), db: Session = Depends(get_db)
):
    categories = CategoryService(db, user_id).list_all()
    return success([category_to_dict(c) for c in categories])


@app.post("/api/categories")
def create_category(
    payload: CategoryIn,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    category = CategoryService(db, user_id).create(payload)
    return success(category_to_dict(category), status_code=201)


@app.get("/api/categories/{category_id}")
def get_category(
    category_id: str,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return success(category_to_dict(CategoryService(db, user_id).get(category_id)))


@app.delete("/api/categories/{category_id}")
def delete_category(
    category_id: str,
    delete_transactions: bool = Query(False, alias="deleteTransactions"),
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    CategoryService(db, user_id).delete(category_id, delete_transactions)
    return success()


@app.get("/api/transactions")
def list_transactions(
    request: Request,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    filters = filters_from_request(request)
    items = TransactionService(db, user_id).list(filters)
    return success([transaction_to_dict(txn) for txn in items])


@app.post("/api/transactions")
def create_transactions(
    payload: TransactionEnvelopeIn,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    created = TransactionService(db, user_id).create(payload.payloads())
    items = [transaction_to_dict(txn) for txn in created]
    if len(items) == 1:
        return success(items[0], status_code=201)
    return success(items, status_code=201)


@app.get("/api/transactions/balance")
def transaction_balances(
    request: Request,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    filters = filters_from_request(request)
    return success(TransactionService(db, user_id).balances(filters).to_dict())


@app.get("/api/transactions/month-by-years")
def months_by_year(
    user_id: str = Depends(current_user_id), db: Session = Depends(get_db)
):
    result = TransactionService(db, user_id).months_by_year()
    return success(
        {str(year): [month.value for month in months] for year, months in result.items()}
    )


@app.get("/api/transactions/total-saving")
def total_savings(
    user_id: str = Depends(current_user_id), db: Session = Depends(get_db)
):
    return success({"totalSavings": TransactionService(db, user_id).total_savings()})


@app.get("/api/transactions/{transaction_id}")
def get_transaction(
    transaction_id: str,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    txn = TransactionService(db, user_id).get(transaction_id)
    return success(transaction_to_dict(txn))


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: str,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    TransactionService(db, user_id).delete(transaction_id)
    return success()
