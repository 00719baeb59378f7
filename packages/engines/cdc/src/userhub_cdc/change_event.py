"""Change Event: decoded form of one captured write-side mutation."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Operation(str, Enum):
    """Debezium ``op`` codes."""

    CREATE = "c"
    READ = "r"
    UPDATE = "u"
    DELETE = "d"


class SourceInfo(BaseModel):
    """Connector metadata describing where a change was captured."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    connector: str | None = None
    name: str | None = None
    db: str | None = None
    schema_name: str | None = Field(default=None, alias="schema")
    table: str | None = None
    ts_ms: int | None = None
    tx_id: int | None = Field(default=None, alias="txId")
    lsn: int | None = None
    snapshot: str | bool | None = None


class ChangeEvent(BaseModel):
    """One decoded change: operation, row images, key and capture metadata."""

    model_config = ConfigDict(frozen=True)

    operation: Operation
    key: str = Field(min_length=1)
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    source: SourceInfo = Field(default_factory=SourceInfo)
    event_timestamp: datetime

    @property
    def position(self) -> int | None:
        """Source log position; orders changes to the same key."""
        return self.source.lsn
