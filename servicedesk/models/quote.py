"""Quote model for cotizaciones."""
from sqlalchemy import Column, String, Numeric, DateTime, Date, Text, Integer, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from servicedesk.database import Base, BigIntPK


class Quote(Base):
    """
    Quote (Cotización).

    The folio is allocated once, on first save, and never changes after that.
    Cached totals are refreshed from the lines on every save.
    """

    __tablename__ = 'quote'
    __table_args__ = (
        UniqueConstraint('owner_id', 'folio', name='uq_quote_owner_folio'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    owner_id = Column(String(64), nullable=False, index=True)
    folio = Column(String(64), nullable=False)
    folio_year = Column(Integer, nullable=False)
    folio_number = Column(Integer, nullable=False)
    customer_name = Column(String(255), nullable=False)
    customer_company = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    customer_email = Column(String(255), nullable=True)
    issued_on = Column(Date, nullable=False)
    valid_until = Column(Date, nullable=True)
    include_tax = Column(Boolean, nullable=False, default=False)
    terms = Column(Text, nullable=True)
    subtotal = Column(Numeric(14, 2), nullable=False, default=0)
    total_tax = Column(Numeric(14, 2), nullable=False, default=0)
    total = Column(Numeric(14, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    lines = relationship('QuoteLine', back_populates='quote', cascade='all, delete-orphan',
                         order_by='QuoteLine.position')

    def __repr__(self):
        return f"<Quote(id={self.id}, folio='{self.folio}', total={self.total})>"

    @property
    def is_expired(self):
        """Check if quote is expired (calculated, not stored)."""
        from datetime import date
        if self.valid_until:
            return date.today() > self.valid_until
        return False
