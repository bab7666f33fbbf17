"""ServicePart model for parts/materials used on a service record."""
from sqlalchemy import Column, BigInteger, String, Numeric, Integer, ForeignKey
from sqlalchemy.orm import relationship
from servicedesk.database import Base, BigIntPK


class ServicePart(Base):
    """Service Part (Repuesto / Material)."""

    __tablename__ = 'service_part'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    service_record_id = Column(BigInteger, ForeignKey('service_record.id', ondelete='CASCADE'), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    description = Column(String(255), nullable=False, default='')
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False)  # precio público
    unit_cost = Column(Numeric(14, 2), nullable=False, default=0)  # costo empresa
    tax_percent = Column(Numeric(5, 2), nullable=False, default=0)

    # Relationships
    service_record = relationship('ServiceRecord', back_populates='parts')

    def __repr__(self):
        return f"<ServicePart(id={self.id}, record={self.service_record_id}, description='{self.description}', qty={self.quantity})>"
