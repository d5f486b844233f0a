# Pydantic schemas for user-related requests/responses
# fastapi-users provides the base schemas; we only add the display name

import re
from typing import Optional
from uuid import UUID

from fastapi_users import schemas
from pydantic import field_validator

_NAME_RE = re.compile(r"^[A-Za-z\s]+$")


def _check_name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    if not 2 <= len(v) <= 50:
        raise ValueError("Name must be between 2 and 50 characters")
    if not _NAME_RE.match(v):
        raise ValueError("Name can only contain letters and spaces")
    return v


class UserRead(schemas.BaseUser[UUID]):
    name: Optional[str] = None


class UserCreate(schemas.BaseUserCreate):
    name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: Optional[str]) -> Optional[str]:
        return _check_name(v)


class UserUpdate(schemas.BaseUserUpdate):
    name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: Optional[str]) -> Optional[str]:
        return _check_name(v)
