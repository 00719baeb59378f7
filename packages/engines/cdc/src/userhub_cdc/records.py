"""Read-store user record and the write-side row snapshot it is built from."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# Integer timestamps at or above these magnitudes are micro/milliseconds.
_MICROS_THRESHOLD = 10**14
_MILLIS_THRESHOLD = 10**11
# Integer dates below this magnitude are days since the epoch.
_EPOCH_DAYS_LIMIT = 100_000

_DATETIME = TypeAdapter(datetime)
_DATE = TypeAdapter(date)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _from_epoch_number(value: float) -> datetime:
    if abs(value) >= _MICROS_THRESHOLD:
        seconds = value / 1_000_000
    elif abs(value) >= _MILLIS_THRESHOLD:
        seconds = value / 1000
    else:
        seconds = value
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise ValueError(f"timestamp {value} is out of range") from e


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a captured temporal column into an aware UTC datetime.

    Accepts datetimes, ISO-8601 strings and epoch numbers in seconds,
    milliseconds or microseconds. Unparseable strings yield None; values of
    any other type raise ``ValueError``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, bool):
        raise ValueError("expected a timestamp, got a boolean")
    if isinstance(value, (int, float)):
        return _from_epoch_number(value)
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            return _as_utc(_DATETIME.validate_python(value))
        except ValidationError:
            logger.debug("Unparseable timestamp %r projected as null", value)
            return None
    raise ValueError(f"expected a timestamp, got {type(value).__name__}")


def parse_date(value: Any) -> datetime | None:
    """Parse a captured date column into midnight UTC.

    Small integers are days since the epoch (the ``io.debezium.time.Date``
    encoding); larger ones are treated as timestamps.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        if abs(value) < _EPOCH_DAYS_LIMIT:
            return _EPOCH + timedelta(days=value)
        value = _from_epoch_number(value)
    if isinstance(value, str) and value.strip():
        try:
            parsed = _DATE.validate_python(value)
        except ValidationError:
            return _midnight(parse_timestamp(value))
        return datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)
    return _midnight(parse_timestamp(value))


def _midnight(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


# Normalized column name (lower case, no underscores) -> snapshot field.
COLUMN_FIELDS: dict[str, str] = {
    "id": "id",
    "firstname": "first_name",
    "lastname": "last_name",
    "email": "email",
    "phonenumber": "phone_number",
    "birthdate": "birthdate",
    "latitude": "latitude",
    "longitude": "longitude",
    "aboutme": "about_me",
    "createdat": "created_at",
    "updatedat": "updated_at",
    "lastlogin": "last_login",
    "isdeleted": "is_deleted",
    "deletedat": "deleted_at",
}


def normalize_column(column: str) -> str:
    return column.replace("_", "").lower()


class UserSnapshot(BaseModel):
    """Typed view of a ``users`` row image.

    ``model_fields_set`` records which columns the image actually carried,
    so partial images can be applied without clobbering other fields.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone_number: str | None = None
    birthdate: datetime | None = None
    latitude: float | None = None
    longitude: float | None = None
    about_me: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_login: datetime | None = None
    is_deleted: bool | None = None
    deleted_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any] | None) -> UserSnapshot:
        """Build from a captured row; unknown columns are dropped."""
        values: dict[str, Any] = {}
        for column, value in (row or {}).items():
            field = COLUMN_FIELDS.get(normalize_column(column))
            if field is not None:
                values[field] = value
        return cls.model_validate(values)

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("created_at", "updated_at", "last_login", "deleted_at", mode="before")
    @classmethod
    def _timestamp(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)

    @field_validator("birthdate", mode="before")
    @classmethod
    def _date(cls, value: Any) -> datetime | None:
        return parse_date(value)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FullName(_CamelModel):
    first_name: str | None = None
    last_name: str | None = None


class Location(_CamelModel):
    latitude: float | None = None
    longitude: float | None = None


class UserProjection(_CamelModel):
    """Query-side user document, stored with camelCase field names."""

    id: str = Field(alias="_id")
    email: str | None = None
    full_name: FullName = Field(default_factory=FullName)
    phone_number: str | None = None
    birthdate: datetime | None = None
    location: Location = Field(default_factory=Location)
    about_me: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_login: datetime | None = None
    is_deleted: bool = False
    deleted_at: datetime | None = None
    search_terms: list[str] = Field(default_factory=list)
    synced_at: datetime | None = None

    def to_document(self) -> dict[str, Any]:
        """Stored form without ``_id`` (the sink keys documents itself)."""
        return self.model_dump(by_alias=True, exclude={"id"})


def search_terms(*values: str | None) -> list[str]:
    """Lower-cased, de-duplicated tokens of names and email, in order."""
    terms: list[str] = []
    for value in values:
        if not value:
            continue
        for token in value.lower().split():
            if token not in terms:
                terms.append(token)
    return terms
