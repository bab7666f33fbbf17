"""Service record service - repair/installation orders and their public view."""
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from servicedesk.exceptions import BusinessLogicError, NotFoundError
from servicedesk.models import (
    Quote, ServiceRecord, ServicePart, ServiceType, ServiceStatus, DocumentKind,
    STATUS_OPTIONS, normalize_status
)
from servicedesk.services import public_token_service
from servicedesk.services.document_service import (
    ServiceDocument, PublicServiceDocument, build_identity,
    project_service, project_public_service
)
from servicedesk.services.sequence_service import get_allocator, DEFAULT_MAX_ATTEMPTS
from servicedesk.services.totals_service import (
    LineItem, TotalsFlags, DocumentTotals, DEFAULT_TAX_RATE,
    compute_totals, line_items_from_input, service_line_items
)
from servicedesk.utils.formatters import format_folio, parse_date_input, parse_flag
from servicedesk.utils.money import ZERO, to_decimal

logger = logging.getLogger(__name__)


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _non_negative(value: Any) -> Decimal:
    """Clamp a captured amount: blank, garbage and negatives become 0."""
    try:
        amount = to_decimal(str(value).replace(',', '') if value not in (None, '') else 0)
    except ValueError:
        return ZERO
    return amount if amount > 0 else ZERO


def _date_field(data: Mapping[str, Any], key: str) -> Optional[date]:
    try:
        return parse_date_input(data.get(key))
    except ValueError as e:
        raise BusinessLogicError(str(e), payload={'field': key})


def _flags(include_tax: bool) -> TotalsFlags:
    # The flat IVA toggle wins; per-part tax only applies without it.
    return TotalsFlags(document_level_tax=include_tax, per_item_tax=True)


def _part_items(record: ServiceRecord) -> List[LineItem]:
    return [
        LineItem(
            quantity=part.quantity,
            unit_price=part.unit_price,
            unit_cost=part.unit_cost,
            tax_percent=part.tax_percent,
            description=part.description,
        )
        for part in record.parts
    ]


def _record_totals(record: ServiceRecord,
                   tax_rate: Decimal) -> Tuple[List[LineItem], DocumentTotals]:
    items = service_line_items(record.labor_amount or 0, _part_items(record))
    return items, compute_totals(items, _flags(record.include_tax), tax_rate)


def _record_entity(record: ServiceRecord, items: List[LineItem]) -> Dict[str, Any]:
    return {
        'service_type': record.service_type,
        'status': record.status,
        'customer_name': record.customer_name,
        'customer_phone': record.customer_phone,
        'customer_email': record.customer_email,
        'device_description': record.device_description,
        'problem_description': record.problem_description,
        'diagnosis': record.diagnosis,
        'include_tax': record.include_tax,
        'advance_payment': record.advance_payment,
        'public_token': record.public_token,
        'items': items,
    }


def _public_entity(record: ServiceRecord, items: List[LineItem]) -> Dict[str, Any]:
    # no contact data, diagnosis or token
    return {
        'service_type': record.service_type,
        'status': record.status,
        'customer_name': record.customer_name,
        'device_description': record.device_description,
        'problem_description': record.problem_description,
        'advance_payment': record.advance_payment,
        'items': items,
    }


def _identity(record: ServiceRecord):
    return build_identity(record.order_folio, record.received_on, record.delivery_on, valid_days=None)


def _project(record: ServiceRecord, tax_rate: Decimal) -> ServiceDocument:
    items, totals = _record_totals(record, tax_rate)
    return project_service(_record_entity(record, items), totals, _identity(record))


def _parts_from_quote(session: Session, owner_id: str, quote_id: Any) -> List[LineItem]:
    """Quote lines as service parts: same quantity, price and cost, no tax."""
    try:
        quote_id = int(quote_id)
    except (TypeError, ValueError):
        quote_id = None
    quote = None
    if quote_id is not None:
        quote = session.query(Quote).filter(Quote.id == quote_id, Quote.owner_id == owner_id).first()
    if quote is None:
        raise BusinessLogicError('Cotización no encontrada.', payload={'field': 'from_quote_id'})

    return [
        LineItem(
            quantity=line.quantity,
            unit_price=line.unit_price,
            unit_cost=line.unit_cost,
            description=line.description,
        )
        for line in quote.lines
    ]


def create_service_record(session: Session, owner_id: str, data: Mapping[str, Any],
                          prefix: str = 'ORD', tax_rate: Decimal = DEFAULT_TAX_RATE,
                          max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> int:
    """
    Persist a new service record with the next order number.

    All service types share one ORD sequence per owner and year. With
    from_quote_id, that quote's lines are appended to the given parts.

    Raises:
        BusinessLogicError: unknown service type, missing customer name,
            unknown status, a bad date or an unknown from_quote_id.
        SequenceUnavailable: no order number could be allocated; safe to retry.
    """
    service_type = (_clean(data.get('service_type')) or '').upper()
    if service_type not in {t.value for t in ServiceType}:
        raise BusinessLogicError(f'Tipo de servicio inválido: {service_type or "-"}',
                                 payload={'field': 'service_type'})

    customer_name = _clean(data.get('customer_name'))
    if not customer_name:
        raise BusinessLogicError('Nombre de cliente requerido.', payload={'field': 'customer_name'})

    status = ServiceStatus.RECEIVED.value
    if data.get('status'):
        status = normalize_status(data.get('status'))
        if not status:
            raise BusinessLogicError(f"Estado inválido: {data.get('status')}", payload={'field': 'status'})

    received_on = _date_field(data, 'received_on') or date.today()
    delivery_on = _date_field(data, 'delivery_on')
    include_tax = parse_flag(data.get('include_tax'))
    labor_amount = _non_negative(data.get('labor_amount'))
    advance_payment = _non_negative(data.get('advance_payment'))
    parts = line_items_from_input(data.get('parts'))
    if data.get('from_quote_id') not in (None, ''):
        parts += _parts_from_quote(session, owner_id, data.get('from_quote_id'))

    totals = compute_totals(service_line_items(labor_amount, parts), _flags(include_tax), tax_rate)

    number = get_allocator(session, max_attempts).next_number(owner_id, DocumentKind.SERVICE_ORDER, received_on.year)
    folio = format_folio(prefix, received_on.year, number)

    try:
        record = ServiceRecord(
            owner_id=owner_id,
            service_type=service_type,
            order_folio=folio,
            order_year=received_on.year,
            order_number=number,
            status=status,
            customer_name=customer_name,
            customer_phone=_clean(data.get('customer_phone')),
            customer_email=_clean(data.get('customer_email')),
            device_description=_clean(data.get('device_description')),
            problem_description=_clean(data.get('problem_description')),
            diagnosis=_clean(data.get('diagnosis')),
            labor_amount=labor_amount,
            include_tax=include_tax,
            advance_payment=advance_payment,
            received_on=received_on,
            delivery_on=delivery_on,
            subtotal=totals.subtotal,
            total_tax=totals.total_tax,
            total=totals.grand_total,
            parts=[
                ServicePart(
                    position=position,
                    description=part.description,
                    quantity=part.quantity,
                    unit_price=part.unit_price,
                    unit_cost=part.unit_cost,
                    tax_percent=part.tax_percent
                )
                for position, part in enumerate(parts)
            ]
        )
        session.add(record)
        session.commit()
        logger.info(f"[FOLIO] Service order {folio} ({service_type}) saved for owner {owner_id}")
        return record.id
    except Exception:
        session.rollback()
        logger.error(f"[FOLIO] Service order {folio} could not be saved; number {number} skipped")
        raise


def _get_record(session: Session, record_id: int, owner_id: str) -> ServiceRecord:
    record = session.query(ServiceRecord).filter(
        ServiceRecord.id == record_id,
        ServiceRecord.owner_id == owner_id
    ).first()
    if not record:
        raise NotFoundError(f'Servicio {record_id} no encontrado.')
    return record


def update_status(session: Session, record_id: int, owner_id: str, status: Any,
                  diagnosis: Optional[str] = None) -> str:
    """
    Move a record to another catalogue status.

    Returns the stored status value.

    Raises:
        BusinessLogicError: if status is not in STATUS_OPTIONS.
        NotFoundError: if the record does not exist for this owner.
    """
    value = normalize_status(status)
    if not value:
        valid = ', '.join(STATUS_OPTIONS)
        raise BusinessLogicError(f'Estado inválido: {status}. Opciones: {valid}', payload={'field': 'status'})

    try:
        record = _get_record(session, record_id, owner_id)
        record.status = value
        if diagnosis is not None:
            record.diagnosis = _clean(diagnosis)
        session.commit()
        logger.info(f"[FOLIO] Service {record.order_folio} moved to {value}")
        return value
    except Exception:
        session.rollback()
        raise


def get_service_document(session: Session, record_id: int, owner_id: str,
                         tax_rate: Decimal = DEFAULT_TAX_RATE) -> ServiceDocument:
    """Internal document for staff, with cost and margin."""
    return _project(_get_record(session, record_id, owner_id), tax_rate)


def get_public_service_document(session: Session, token: str,
                                tax_rate: Decimal = DEFAULT_TAX_RATE) -> PublicServiceDocument:
    """
    Public projection reachable with a share token.

    Raises:
        RecordNotFound: for any token that does not resolve.
    """
    record = public_token_service.resolve(session, token)
    items, totals = _record_totals(record, tax_rate)
    return project_public_service(_public_entity(record, items), totals, _identity(record))


def share_service(session: Session, record_id: int, owner_id: str, base_url: str) -> Tuple[str, str]:
    """Issue (or reuse) the record's token; returns (token, public_url)."""
    token = public_token_service.issue_or_reuse(session, record_id, owner_id)
    return token, public_token_service.build_public_url(base_url, token)


def delete_service_record(session: Session, record_id: int, owner_id: str) -> str:
    """
    Delete a service record with its parts; returns the order folio.

    Its public token goes with it, so the tracking link stops resolving.

    Raises:
        NotFoundError: if the record does not exist for this owner.
    """
    try:
        record = _get_record(session, record_id, owner_id)
        folio = record.order_folio
        shared = record.public_token is not None
        session.delete(record)
        session.commit()
        logger.info(f"[FOLIO] Service order {folio} deleted by owner {owner_id}"
                    f"{'; tracking link revoked' if shared else ''}")
        return folio
    except Exception:
        session.rollback()
        raise
