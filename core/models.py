# ============================================================
# SQLA - SQL Assistant
# core/models.py - Connection, Schema & Query Data Model
# ============================================================
#
# Wire models mirror the backend's camelCase JSON. They are parsed
# leniently: missing optional fields fall back to defaults and unknown
# fields are ignored.
# ============================================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


T = TypeVar("T")
E = TypeVar("E", bound=Exception)


class WireModel(BaseModel):
    """Base for every model exchanged with the backend."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ════════════════════════════════════════════════════════════
# CONNECTION
# ════════════════════════════════════════════════════════════

class DatabaseKind(str, Enum):
    """Database engines the backend can connect to."""
    MYSQL = "MYSQL"
    POSTGRESQL = "POSTGRESQL"
    SQLITE = "SQLITE"
    H2 = "H2"

    @property
    def uses_host_port(self) -> bool:
        return self in (DatabaseKind.MYSQL, DatabaseKind.POSTGRESQL)

    @property
    def default_port(self) -> Optional[int]:
        return _DEFAULT_PORTS.get(self)

    @property
    def url_prefix(self) -> str:
        return _URL_PREFIXES[self]

    @property
    def label(self) -> str:
        return _LABELS[self]


DEFAULT_HOST = "localhost"

_DEFAULT_PORTS = {
    DatabaseKind.MYSQL: 3306,
    DatabaseKind.POSTGRESQL: 5432,
}

_URL_PREFIXES = {
    DatabaseKind.MYSQL: "jdbc:mysql://",
    DatabaseKind.POSTGRESQL: "jdbc:postgresql://",
    DatabaseKind.SQLITE: "jdbc:sqlite:",
    DatabaseKind.H2: "jdbc:h2:",
}

_LABELS = {
    DatabaseKind.MYSQL: "MySQL",
    DatabaseKind.POSTGRESQL: "PostgreSQL",
    DatabaseKind.SQLITE: "SQLite",
    DatabaseKind.H2: "H2 (In-Memory)",
}


class ConnectionParams(WireModel):
    """
    Declared connection parameters. Immutable: a change of parameters
    means a new connection, never an edit of the current one.
    """

    model_config = ConfigDict(frozen=True)

    kind: DatabaseKind = Field(alias="type")
    host: Optional[str] = None
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    database: str
    username: Optional[str] = None
    password: Optional[str] = None
    connection_string_override: Optional[str] = Field(default=None, alias="connectionString")

    @field_validator("database")
    @classmethod
    def _database_required(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("database is required")
        return value.strip()

    def connection_url(self) -> str:
        """JDBC-style URL the backend will resolve these parameters to."""
        override = self.connection_string_override
        if override and override.strip():
            return override.strip()

        if self.kind.uses_host_port:
            port = self.port or self.kind.default_port
            return f"{self.kind.url_prefix}{self.host or DEFAULT_HOST}:{port}/{self.database}"
        return f"{self.kind.url_prefix}{self.database}"

    def describe(self) -> str:
        return f"{self.kind.value} database: {self.database}"

    def to_wire(self) -> Dict[str, Any]:
        # The backend rejects a blank host even for file databases.
        body = self.model_dump(by_alias=True, mode="json", exclude_none=True)
        body.setdefault("host", DEFAULT_HOST)
        return body


@dataclass(frozen=True)
class ConnectionSession:
    """A successfully probed connection: backend-issued id + the params it was opened with."""
    id: str
    params: ConnectionParams


class ProbeResponse(WireModel):
    connection_id: str
    status: str = "SUCCESS"
    message: Optional[str] = None


class ConnectionCheck(WireModel):
    status: str = "SUCCESS"
    message: Optional[str] = None
    connection_url: Optional[str] = None
    driver_class: Optional[str] = None


# ════════════════════════════════════════════════════════════
# SCHEMA
# ════════════════════════════════════════════════════════════

def _null_to_empty(value: Any) -> Any:
    return "" if value is None else value


class ColumnInfo(WireModel):
    name: str
    column_type: str = ""
    data_type: Optional[str] = None
    nullable: bool = True
    is_primary_key: bool = False
    is_auto_increment: bool = False
    default_value: Any = None
    comment: Optional[str] = None

    _column_type_nullable = field_validator("column_type", mode="before")(_null_to_empty)


class IndexInfo(WireModel):
    name: Optional[str] = None
    is_unique: bool = False
    columns: List[str] = Field(default_factory=list)
    type: Optional[str] = None


class ForeignKeyInfo(WireModel):
    name: Optional[str] = None
    column_name: str = ""
    referenced_table: str = ""
    referenced_column: str = ""
    on_update: Optional[str] = None
    on_delete: Optional[str] = None

    _references_nullable = field_validator(
        "column_name", "referenced_table", "referenced_column", mode="before"
    )(_null_to_empty)


class TableInfo(WireModel):
    name: str
    schema_name: Optional[str] = Field(default=None, alias="schema")
    type: Optional[str] = None
    columns: List[ColumnInfo] = Field(default_factory=list)
    indexes: List[IndexInfo] = Field(default_factory=list)
    foreign_keys: List[ForeignKeyInfo] = Field(default_factory=list)
    comment: Optional[str] = None


class ViewInfo(WireModel):
    name: str
    schema_name: Optional[str] = Field(default=None, alias="schema")
    definition: Optional[str] = None
    columns: List[ColumnInfo] = Field(default_factory=list)
    comment: Optional[str] = None


class SchemaSnapshot(WireModel):
    database_name: str = ""
    tables: List[TableInfo] = Field(default_factory=list)
    views: List[ViewInfo] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    # SQLite reports no catalog, so the backend sends a null name.
    _database_name_nullable = field_validator("database_name", mode="before")(_null_to_empty)


class SchemaResponse(WireModel):
    connection_id: Optional[str] = None
    snapshot: SchemaSnapshot = Field(alias="schema")
    status: str = "SUCCESS"


# ════════════════════════════════════════════════════════════
# QUERY GENERATION & EXECUTION
# ════════════════════════════════════════════════════════════

class QueryMetadata(WireModel):
    query_type: Optional[str] = None
    tables_involved: List[str] = Field(default_factory=list)
    has_joins: bool = False
    has_subqueries: bool = False
    has_aggregations: bool = False
    complexity: Optional[str] = None
    timestamp: Any = None


class GeneratedQuery(WireModel):
    generated_sql: Optional[str] = None
    explanation: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    is_executable: bool = True
    metadata: Optional[QueryMetadata] = None


class GenerationResponse(WireModel):
    query: GeneratedQuery
    status: str = "SUCCESS"


class ExecutionPayload(WireModel):
    results: List[Dict[str, Any]] = Field(default_factory=list)
    column_names: List[str] = Field(default_factory=list)
    column_types: List[str] = Field(default_factory=list)
    row_count: int = Field(default=0, ge=0)
    execution_time_ms: int = Field(default=0, ge=0)
    status: str = "SUCCESS"
    error: Optional[str] = None
    metadata: Optional[QueryMetadata] = None


class ExecutionResponse(WireModel):
    execution: ExecutionPayload
    status: str = "SUCCESS"


class ValidationReport(WireModel):
    is_valid: bool = False
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    sanitized_query: Optional[str] = None


@dataclass(frozen=True)
class ExecutionSuccess:
    """
    Rows actually returned plus the server-reported row count.
    `row_count` may exceed `len(rows)`; render `rows`, label with `row_count`.
    """
    rows: List[Dict[str, Any]]
    column_names: List[str]
    column_types: List[str] = field(default_factory=list)
    row_count: int = 0
    elapsed_ms: int = 0

    @classmethod
    def from_payload(cls, payload: ExecutionPayload) -> "ExecutionSuccess":
        return cls(
            rows=list(payload.results),
            column_names=list(payload.column_names),
            column_types=list(payload.column_types),
            row_count=payload.row_count,
            elapsed_ms=payload.execution_time_ms,
        )


@dataclass(frozen=True)
class ExecutionFailure:
    message: str


ExecutionOutcome = Union[ExecutionSuccess, ExecutionFailure]


@dataclass(frozen=True)
class Result(Generic[T, E]):
    """Tagged outcome of an asynchronous controller operation."""
    value: Optional[T] = None
    error: Optional[E] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T, E]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: E) -> "Result[T, E]":
        return cls(error=error)

    def __repr__(self):
        if self.ok:
            return f"<Result OK {self.value!r}>"
        return f"<Result ERROR {self.error!r}>"
