import re
from typing import Literal

from pydantic import Field, field_validator

from .base import CamelModel

FeedbackStatus = Literal["PENDING", "READ", "REPLIED", "ARCHIVED"]

_EMAIL_RE = re.compile(r"^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,3})+$")


class FeedbackCreate(CamelModel):
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    email: str = Field(max_length=120)
    phone: str = Field(min_length=10, max_length=20)
    company: str = Field(default="", max_length=100)
    message: str = Field(min_length=10, max_length=2000)

    @field_validator("email")
    @classmethod
    def _valid_email(cls, v: str) -> str:
        v = v.lower()
        if not _EMAIL_RE.match(v):
            raise ValueError("Please enter a valid email address")
        return v


class FeedbackStatusUpdate(CamelModel):
    status: FeedbackStatus
