from sqlalchemy import BigInteger, Enum, Integer, JSON
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import JSONB
import enum

Base = declarative_base()

# BIGINT primary keys only autoincrement on SQLite as INTEGER
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")

# JSONB on PostgreSQL, generic JSON elsewhere
JSONPayload = JSON().with_variant(JSONB(), "postgresql")


# ============================================================================
# ENUMS
# ============================================================================

class PackageManager(str, enum.Enum):
    """Package ecosystems a tracked package can belong to"""
    NPM = "npm"
    DOCKER = "docker"
    NUGET = "nuget"
    PYPI = "pypi"
    MAVEN = "maven"
    CARGO = "cargo"


class MetricKind(str, enum.Enum):
    """How an ecosystem reports downloads"""
    POINT_SAMPLED = "point_sampled"
    CUMULATIVE_COUNTER = "cumulative_counter"


class RefreshMode(str, enum.Enum):
    """Stats refresh state of a tracked package"""
    PENDING = "pending"
    DAILY = "daily"


class IngestionMode(str, enum.Enum):
    """Ingestion run mode"""
    DAILY = "daily"
    BOOTSTRAP = "bootstrap"


class RunStatus(str, enum.Enum):
    """Ingestion run status"""
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


def enum_column_type(enum_cls, name: str) -> Enum:
    """Enum column storing member values rather than member names"""
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
    )
