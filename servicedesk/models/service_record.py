"""ServiceRecord model for repair/installation jobs (órdenes de servicio)."""
import enum
from sqlalchemy import Column, String, Numeric, DateTime, Date, Text, Integer, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from servicedesk.database import Base, BigIntPK


class ServiceType(str, enum.Enum):
    """Kinds of jobs handled by the workshop."""
    CCTV = "CCTV"
    PC = "PC"
    PHONE = "PHONE"
    NETWORK = "NETWORK"


SERVICE_TYPE_LABELS = {
    ServiceType.CCTV.value: 'Videovigilancia (CCTV)',
    ServiceType.PC.value: 'Computadora',
    ServiceType.PHONE.value: 'Celular',
    ServiceType.NETWORK.value: 'Redes',
}


class ServiceStatus(str, enum.Enum):
    """Repair progress as shown to the customer."""
    RECEIVED = "recibido"
    DIAGNOSED = "diagnosticado"
    READY = "listo_para_entregar"
    DELIVERED = "entregado"
    NOT_REPAIRABLE = "no_reparable"


# value -> (label, progress %)
STATUS_OPTIONS = {
    ServiceStatus.RECEIVED.value: ('Recibido', 20),
    ServiceStatus.DIAGNOSED.value: ('Diagnosticado', 40),
    ServiceStatus.READY.value: ('Listo para Entregar', 80),
    ServiceStatus.DELIVERED.value: ('Entregado', 100),
    ServiceStatus.NOT_REPAIRABLE.value: ('No fue posible reparar', 100),
}


def normalize_status(status):
    """Return the catalogue value for status, or None if it is unknown."""
    if not status:
        return None
    value = str(status).strip().lower()
    return value if value in STATUS_OPTIONS else None


def status_label(status):
    """Spanish label for a status; 'Pendiente' when missing."""
    if not status:
        return 'Pendiente'
    value = normalize_status(status)
    return STATUS_OPTIONS[value][0] if value else str(status)


def status_progress(status):
    """Progress percentage for a status; 0 when missing or unknown."""
    value = normalize_status(status)
    return STATUS_OPTIONS[value][1] if value else 0


class ServiceRecord(Base):
    """
    Service record (orden de servicio).

    public_token is the only credential for the anonymous tracking page.
    It is attached on first share and lives as long as the record.
    """

    __tablename__ = 'service_record'
    __table_args__ = (
        UniqueConstraint('owner_id', 'order_folio', name='uq_service_record_owner_folio'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    owner_id = Column(String(64), nullable=False, index=True)
    service_type = Column(String(20), nullable=False)
    order_folio = Column(String(64), nullable=False)
    order_year = Column(Integer, nullable=False)
    order_number = Column(Integer, nullable=False)
    status = Column(String(32), nullable=False, default=ServiceStatus.RECEIVED.value)
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)
    customer_email = Column(String(255), nullable=True)
    device_description = Column(String(255), nullable=True)
    problem_description = Column(Text, nullable=True)
    diagnosis = Column(Text, nullable=True)
    labor_amount = Column(Numeric(14, 2), nullable=False, default=0)
    include_tax = Column(Boolean, nullable=False, default=False)
    advance_payment = Column(Numeric(14, 2), nullable=False, default=0)
    received_on = Column(Date, nullable=False)
    delivery_on = Column(Date, nullable=True)
    subtotal = Column(Numeric(14, 2), nullable=False, default=0)
    total_tax = Column(Numeric(14, 2), nullable=False, default=0)
    total = Column(Numeric(14, 2), nullable=False, default=0)
    public_token = Column(String(64), nullable=True, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    parts = relationship('ServicePart', back_populates='service_record', cascade='all, delete-orphan',
                         order_by='ServicePart.position')

    def __repr__(self):
        return f"<ServiceRecord(id={self.id}, folio='{self.order_folio}', type='{self.service_type}', status='{self.status}')>"

    @property
    def balance_due(self):
        """Total minus advance (calculated, not stored)."""
        return (self.total or 0) - (self.advance_payment or 0)
