from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


# ============================================================================
# ENUMS
# ============================================================================

class RunStatus(str, enum.Enum):
    """Reconciliation run lifecycle. STARTED is the only non-terminal state."""
    STARTED = "started"
    SUCCESS = "success"
    FAILED = "failed"


class ErrorKind(str, enum.Enum):
    """Error log classification"""
    VALIDATION = "validation"
    RETRY_EXHAUSTED = "retry_exhausted"
    LOAD = "load"
    MERGE = "merge"
    UNEXPECTED = "unexpected"


class PaymentStatus(str, enum.Enum):
    """Payment settlement status"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
