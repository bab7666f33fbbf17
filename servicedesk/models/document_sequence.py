"""DocumentSequence model for per-owner, per-year folio counters."""
import enum
from sqlalchemy import Column, String, Integer, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from servicedesk.database import Base, BigIntPK


class DocumentKind(str, enum.Enum):
    """Document kinds that draw numbers from their own sequence."""
    QUOTE = "COT"
    SERVICE_ORDER = "ORD"


class DocumentSequence(Base):
    """
    Last issued number for one (owner, kind, year) scope.

    Rows are created lazily on the first allocation of a scope and are never
    deleted. last_value only moves forward.
    """

    __tablename__ = 'document_sequence'
    __table_args__ = (
        UniqueConstraint('owner_id', 'kind', 'year', name='uq_document_sequence_scope'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    owner_id = Column(String(64), nullable=False)
    kind = Column(String(16), nullable=False)
    year = Column(Integer, nullable=False)
    last_value = Column(Integer, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<DocumentSequence(owner='{self.owner_id}', kind='{self.kind}', year={self.year}, last={self.last_value})>"
