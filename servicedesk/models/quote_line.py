"""QuoteLine model for quote line items."""
from sqlalchemy import Column, BigInteger, String, Numeric, Integer, ForeignKey
from sqlalchemy.orm import relationship
from servicedesk.database import Base, BigIntPK


class QuoteLine(Base):
    """
    Quote Line (Artículo de Cotización).

    unit_cost is the internal cost basis and is never printed on the
    customer's copy.
    """

    __tablename__ = 'quote_line'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    quote_id = Column(BigInteger, ForeignKey('quote.id', ondelete='CASCADE'), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    description = Column(String(255), nullable=False, default='')
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False)
    unit_cost = Column(Numeric(14, 2), nullable=False, default=0)
    discount_percent = Column(Numeric(5, 2), nullable=False, default=0)
    line_total = Column(Numeric(14, 2), nullable=False)

    # Relationships
    quote = relationship('Quote', back_populates='lines')

    def __repr__(self):
        return f"<QuoteLine(id={self.id}, quote_id={self.quote_id}, description='{self.description}', qty={self.quantity}, total={self.line_total})>"
