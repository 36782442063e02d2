"""Pydantic schemas for request/response validation in Shortly.

Schema Hierarchy
=================
::
    LinkCreate (Input)
    ├─ originalUrl: str (validated absolute URL)
    ├─ customAlias: str | None (3-30 chars of [A-Za-z0-9_-])
    ├─ expiresAt: datetime | None
    └─ isQrCode: bool

    LinkUpdate (Input, partial)
    ├─ originalUrl: str | None (re-validated when present)
    ├─ expiresAt: datetime | None (explicit null clears it)
    └─ active: bool | None

    LinkResponse (Output)
    ├─ id, shortId, customAlias, originalUrl
    ├─ shortUrl (computed at read time, never stored)
    ├─ expiresAt, active, isExpired, isPremiumUrl
    ├─ qrCodeImageUrl
    └─ createdAt, updatedAt

    LinkListResponse / LinkDeleteResponse / HealthResponse / ErrorResponse

Key Behaviours
===============
- Wire names are camelCase; Python attributes stay snake_case.
- URL validation uses the validators library.
- Aliases are trimmed; a blank alias is treated as no alias.
- Fields omitted from an update are reported through ``model_fields_set``
  and left untouched by the service.
"""

import datetime
import re

import validators
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from shortly.enums import HealthStatus
from shortly.identifiers import RESERVED_PATH_SEGMENTS

__all__ = [
    "LinkCreate",
    "LinkUpdate",
    "LinkResponse",
    "LinkListResponse",
    "LinkDeleteResponse",
    "HealthResponse",
    "ErrorResponse",
    "validate_original_url",
]

ALIAS_PATTERN = re.compile(r"^[A-Za-z0-9_-]{3,30}$")


def validate_original_url(value: str) -> str:
    value = value.strip()
    # simple_host admits single-label hosts such as localhost.
    if not value or not validators.url(value, simple_host=True):
        raise ValueError("Invalid URL format")
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LinkCreate(CamelModel):
    original_url: str
    custom_alias: str | None = None
    expires_at: datetime.datetime | None = None
    is_qr_code: bool = False

    @field_validator("original_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return validate_original_url(v)

    @field_validator("custom_alias")
    @classmethod
    def validate_custom_alias(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            return None
        if not ALIAS_PATTERN.match(v):
            raise ValueError("Custom alias must be 3-30 characters of letters, digits, '-' or '_'")
        if v.lower() in RESERVED_PATH_SEGMENTS:
            raise ValueError(f"Custom alias '{v}' is reserved")
        return v


class LinkUpdate(CamelModel):
    original_url: str | None = None
    expires_at: datetime.datetime | None = None
    active: bool | None = None

    @field_validator("original_url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return validate_original_url(v)

    @model_validator(mode="after")
    def reject_null_required_fields(self) -> "LinkUpdate":
        for name in ("original_url", "active"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self


class LinkResponse(CamelModel):
    id: str
    short_url: str
    short_id: str
    custom_alias: str | None = None
    original_url: str
    expires_at: datetime.datetime | None = None
    active: bool
    is_expired: bool
    is_premium_url: bool = False
    qr_code_image_url: str | None = None
    created_at: datetime.datetime
    updated_at: datetime.datetime


class LinkListResponse(CamelModel):
    count: int
    links: list[LinkResponse]


class LinkDeleteResponse(CamelModel):
    message: str
    id: str
    qr_code_image_url: str | None = None


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus


class ErrorResponse(BaseModel):
    status: str = Field(..., description="Machine-readable error code, e.g. 'not_found'")
    message: str
