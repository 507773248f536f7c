from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal
from typing import Any

import orjson
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.engine import Dialect
from sqlalchemy.sql.type_api import TypeEngine
from sqlalchemy.types import CHAR, JSON, DateTime, TypeDecorator


class GUID(TypeDecorator[uuid.UUID]):
    """Platform-independent GUID type.

    Uses PostgreSQL's native UUID type when available, otherwise falls back to
    a CHAR(36) representation.
    """

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value: uuid.UUID | None, dialect: Dialect) -> Any:
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value if dialect.name == "postgresql" else str(value)
        raise TypeError("GUID values must be UUID instances")

    def process_result_value(self, value: Any, dialect: Dialect) -> uuid.UUID | None:
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


JSONValue = dict[str, Any] | list[Any]


def _encode_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


class JSONType(TypeDecorator[JSONValue]):
    """JSON column storing JSONB on PostgreSQL and plain JSON elsewhere.

    Decimals are written as strings so monetary values survive the round trip
    without float rounding. UUIDs and datetimes are encoded by orjson.
    """

    impl = JSONB
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(JSON())

    def process_bind_param(self, value: JSONValue | None, dialect: Dialect) -> Any:
        if value is None:
            return value
        if not isinstance(value, (dict, list)):
            raise TypeError("JSONType values must be dicts or lists")
        normalised = orjson.loads(orjson.dumps(value, default=_encode_default))
        if isinstance(normalised, (dict, list)):
            return normalised
        raise TypeError("JSON serialisation returned unexpected type")

    def process_result_value(self, value: Any, dialect: Dialect) -> JSONValue | None:
        if value is None or isinstance(value, (dict, list)):
            return value
        decoded = orjson.loads(value)
        if isinstance(decoded, (dict, list)):
            return decoded
        raise TypeError("JSON deserialisation returned unexpected type")


class UTCDateTime(TypeDecorator[dt.datetime]):
    """Timezone-aware datetime that always comes back in UTC.

    SQLite drops the offset on write, so naive values read back are assumed
    to be UTC.
    """

    impl = DateTime
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        return dialect.type_descriptor(DateTime(timezone=True))

    def process_bind_param(self, value: dt.datetime | None, dialect: Dialect) -> Any:
        if value is None:
            return value
        if not isinstance(value, dt.datetime):
            raise TypeError("UTCDateTime values must be datetime instances")
        if value.tzinfo is None:
            raise ValueError("UTCDateTime requires timezone-aware datetime")
        return value.astimezone(dt.UTC)

    def process_result_value(self, value: Any, dialect: Dialect) -> dt.datetime | None:
        if value is None:
            return value
        if isinstance(value, str):
            value = dt.datetime.fromisoformat(value)
        if not isinstance(value, dt.datetime):
            raise TypeError(f"Expected datetime, got {type(value)}")
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)
