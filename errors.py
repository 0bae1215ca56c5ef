"""Application errors and the registry describing how each one is reported."""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional


class ErrorCode(IntEnum):
    bad_auth = 1002
    need_login = 1005
    too_few_params = 2001
    params_missing = 2002
    not_found = 2003
    user_not_found = 3001
    user_exists = 3004
    transaction_not_found = 4001
    transaction_category_type_mismatch = 4002
    category_not_found = 5001
    category_has_transactions = 5002


@dataclass(frozen=True)
class ErrorDefinition:
    message: str
    show_message: dict[str, str]
    http_status: int


REGISTRY: dict[ErrorCode, ErrorDefinition] = {
    ErrorCode.bad_auth: ErrorDefinition(
        "Bad auth",
        {"EN": "Incorrect email/password", "ES": "Email o contraseña incorrectos"},
        400,
    ),
    ErrorCode.need_login: ErrorDefinition(
        "You need to be logged in",
        {"EN": "You need to be logged in", "ES": "Debe estar conectado"},
        401,
    ),
    ErrorCode.too_few_params: ErrorDefinition(
        "Too few parameters",
        {"EN": "Too few parameters", "ES": "Faltan parametros"},
        400,
    ),
    ErrorCode.params_missing: ErrorDefinition(
        "Some body parameters are missing or are incorrect",
        {
            "EN": "Some body parameters are missing or are incorrect",
            "ES": "Faltan o son incorrectos algunos parametros de la solicitud",
        },
        400,
    ),
    ErrorCode.not_found: ErrorDefinition(
        "Not found",
        {"EN": "Not found", "ES": "Recurso no encontrado"},
        404,
    ),
    ErrorCode.user_not_found: ErrorDefinition(
        "User does not exist",
        {"EN": "User does not exist", "ES": "El usuario no existe"},
        404,
    ),
    ErrorCode.user_exists: ErrorDefinition(
        "User already exists",
        {"EN": "User already exists", "ES": "El usuario ya existe"},
        409,
    ),
    ErrorCode.transaction_not_found: ErrorDefinition(
        "Transaction not exist",
        {"EN": "Transaction not exist", "ES": "La transacción no existe"},
        404,
    ),
    ErrorCode.transaction_category_type_mismatch: ErrorDefinition(
        "Transaction and category are not of the same type.",
        {
            "EN": "Transaction and category are not of the same type.",
            "ES": "La transacción y la categoría no son del mismo tipo.",
        },
        409,
    ),
    ErrorCode.category_not_found: ErrorDefinition(
        "Category not exist",
        {"EN": "Category not exist", "ES": "La categoria no existe"},
        404,
    ),
    ErrorCode.category_has_transactions: ErrorDefinition(
        "Cannot delete a category with transactions",
        {
            "EN": (
                "Cannot delete a category with transactions, try with the query "
                "?deleteTransactions=true to delete all transactions."
            ),
            "ES": (
                "No se puede eliminar una categoría con transacciones, pruebe con "
                "la query ?deleteTransactions=true para eliminar todas las "
                "transacciones"
            ),
        },
        400,
    ),
}

UNEXPECTED = ErrorDefinition(
    "Unexpected error",
    {"EN": "Unexpected error", "ES": "Error inesperado"},
    500,
)


def lookup(code: ErrorCode) -> ErrorDefinition:
    return REGISTRY.get(code, UNEXPECTED)


class AppError(ValueError):
    code: ErrorCode = ErrorCode.params_missing

    def __init__(self, data: Any = None, *, code: Optional[ErrorCode] = None) -> None:
        if code is not None:
            self.code = code
        self.data = data
        super().__init__(self.definition.message)

    @property
    def definition(self) -> ErrorDefinition:
        return lookup(self.code)

    @property
    def http_status(self) -> int:
        return self.definition.http_status


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str
    index: Optional[int] = None

    @property
    def location(self) -> str:
        if self.index is None:
            return self.field
        return f"transactions[{self.index}].{self.field}"

    def to_dict(self) -> dict[str, str]:
        return {"field": self.location, "msg": self.message}


class ValidationFailed(AppError):
    code = ErrorCode.params_missing

    def __init__(
        self,
        issues: Any = None,
        *,
        code: Optional[ErrorCode] = None,
    ) -> None:
        self.issues: list[ValidationIssue] = []
        if isinstance(issues, list) and all(
            isinstance(item, ValidationIssue) for item in issues
        ):
            self.issues = list(issues)
            data: Any = [issue.to_dict() for issue in self.issues]
        else:
            data = issues
        super().__init__(data, code=code)

    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues]


class NotFound(AppError):
    code = ErrorCode.not_found


class RouteNotFound(NotFound):
    code = ErrorCode.not_found


class UserNotFound(NotFound):
    code = ErrorCode.user_not_found


class TransactionNotFound(NotFound):
    code = ErrorCode.transaction_not_found


class CategoryNotFound(NotFound):
    code = ErrorCode.category_not_found


class Conflict(AppError):
    pass


class UserExists(Conflict):
    code = ErrorCode.user_exists


class CategoryHasTransactions(Conflict):
    code = ErrorCode.category_has_transactions


class TypeMismatch(AppError):
    code = ErrorCode.transaction_category_type_mismatch


class BadAuth(AppError):
    code = ErrorCode.bad_auth


class NeedLogin(AppError):
    code = ErrorCode.need_login
