from __future__ import annotations

import datetime as dt
from uuid import UUID

from pydantic import BaseModel, field_validator


class EmployeeCreate(BaseModel):
    name: str
    personal_email: str
    join_date: dt.date
    department_id: UUID | None = None
    org_department_id: UUID | None = None
    position_id: UUID | None = None
    phone: str | None = None
    asset_ids: list[UUID] = []
    memo: str | None = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name must not be empty")
        return v.strip()

    @field_validator("personal_email")
    @classmethod
    def email_shape(cls, v: str) -> str:
        v = v.strip().lower()
        local, _, domain = v.partition("@")
        if not local or "." not in domain:
            raise ValueError("Invalid email address")
        return v


class EmployeeCreated(BaseModel):
    employee_id: UUID
    company_email: str
    routing_created: bool
    external_failures: dict[str, str] = {}
