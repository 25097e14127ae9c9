"""
Query descriptor models.

A QueryDescriptor is built once at startup from a ``QUERY_*`` declaration
(see ``querygate.core.descriptors``) and is read-only afterwards.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ProductTypeEnum(str, Enum):
    """Supported database product types."""

    ORACLE = "oracle"
    POSTGRES = "postgres"
    MYSQL = "mysql"
    TRINO = "trino"


class DialectEnum(str, Enum):
    """How the SQL text is produced: ${name} substitution or a mapper statement."""

    PLAIN = "plain"
    DYNAMIC = "dynamic"


class ExposureEnum(str, Enum):
    """PULL = HTTP endpoint returning rows; PUSH = interval publisher."""

    PULL = "pull"
    PUSH = "push"


class QueryKindEnum(str, Enum):
    """The four effective descriptor variants (dialect x exposure)."""

    API_PLAIN = "api"
    API_DYNAMIC = "mybatis"
    PUSH_PLAIN = "mqtt"
    PUSH_DYNAMIC = "mqtt-mybatis"


class BindDirectionEnum(str, Enum):
    IN = "in"
    OUT = "out"


class BindTypeEnum(str, Enum):
    STRING = "string"
    NUMBER = "number"
    CURSOR = "cursor"


# ---------------------------------------------------------------------------
# Descriptor
# ---------------------------------------------------------------------------


class OutputParam(BaseModel):
    """Declared bind slot of a dynamic statement."""

    model_config = ConfigDict(frozen=True)

    direction: BindDirectionEnum
    scalar_type: BindTypeEnum


class QueryDescriptor(BaseModel):
    """Declarative description of one query and how it is exposed.

    Exactly one of ``template`` / ``(namespace, statement_id)`` is expected;
    the loader enforces it, the model only records what was declared so the
    dispatcher can still refuse an incomplete descriptor at request time.
    """

    model_config = ConfigDict(frozen=True)

    name: str = ""
    dialect: DialectEnum
    exposure: ExposureEnum

    template: str | None = None
    namespace: str | None = None
    statement_id: str | None = None

    endpoint: str | None = None
    topic: str | None = None
    interval_ms: int | None = Field(default=None, gt=0)

    output_params: dict[str, OutputParam] = Field(default_factory=dict)
    max_rows: int | None = Field(default=None, gt=0)
    injection_check: bool = False

    @property
    def kind(self) -> QueryKindEnum:
        if self.exposure == ExposureEnum.PULL:
            if self.dialect == DialectEnum.PLAIN:
                return QueryKindEnum.API_PLAIN
            return QueryKindEnum.API_DYNAMIC
        if self.dialect == DialectEnum.PLAIN:
            return QueryKindEnum.PUSH_PLAIN
        return QueryKindEnum.PUSH_DYNAMIC

    @property
    def is_complete(self) -> bool:
        """True when the SQL source for this dialect is fully declared."""
        if self.dialect == DialectEnum.PLAIN:
            return bool(self.template)
        return bool(self.namespace) and bool(self.statement_id)

    @property
    def label(self) -> str:
        """Short human-readable identification for logs and error messages."""
        target = self.endpoint if self.exposure == ExposureEnum.PULL else self.topic
        if self.dialect == DialectEnum.DYNAMIC:
            return f"{self.kind.value} {self.namespace}.{self.statement_id} -> {target}"
        return f"{self.kind.value} -> {target}"


class DataSourceConfig(BaseModel):
    """Connection parameters of the single database the service queries."""

    model_config = ConfigDict(frozen=True)

    product_type: ProductTypeEnum
    host: str = "localhost"
    port: int | None = None
    database: str = ""
    username: str = ""
    password: str = ""
    dsn: str | None = None
    use_ssl: bool = False
