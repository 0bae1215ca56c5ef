from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class CategoryIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    type: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    note: str = ""


class InlineCategoryIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    type: str = ""
    name: str = ""
    note: str = ""


class TransactionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str = ""
    amount: float = 0
    currency: str = ""
    note: str = ""
    day: Optional[int] = None
    month: str = ""
    year: int = 0
    exchange_rate: Optional[float] = Field(default=None, alias="exchangeRate")
    category_id: Optional[str] = Field(default=None, alias="categoryId")
    category: Optional[InlineCategoryIn] = None


class TransactionEnvelopeIn(TransactionIn):
    transactions: list[TransactionIn] = Field(default_factory=list)

    def payloads(self) -> list[TransactionIn]:
        if self.transactions:
            return list(self.transactions)
        return [TransactionIn.model_validate(self.model_dump(exclude={"transactions"}))]


class UserIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100, alias="firstName")
    last_name: str = Field(..., min_length=1, max_length=100, alias="lastName")
    password: str = Field(..., min_length=6)


class LoginIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = ""
    password: str = ""
